# site_tracer/crawler/fetcher.py
"""
Fetcher module: one HTTP exchange per call, redirects followed, no retries.
"""
from __future__ import annotations

import asyncio
from typing import Tuple, Type

from aiohttp import ClientError, ClientSession

from site_tracer.crawler.models import FetchResult

__all__ = ("Fetcher", "FETCH_ERRORS", "MAX_REDIRECTS", "describe_error")

MAX_REDIRECTS = 5

# Everything a single request may raise that is terminal for that URL only.
# aiohttp's InvalidURL is a ValueError as well; non-HTTP schemes land there too.
FETCH_ERRORS: Tuple[Type[BaseException], ...] = (ClientError, asyncio.TimeoutError, ValueError)


def describe_error(exc: BaseException, timeout: float) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return f"Request timed out after {timeout:g}s"
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


class Fetcher:
    """Issues GET or HEAD requests and never raises on HTTP error statuses."""

    def __init__(self, session: ClientSession, timeout: float) -> None:
        self.session = session
        self.timeout = timeout

    async def fetch(self, url: str, method: str = "GET") -> FetchResult:
        """
        Fetch *url* following up to :data:`MAX_REDIRECTS` redirects.

        The body is read only for GET responses that announce HTML.
        Network errors and timeouts propagate (see :data:`FETCH_ERRORS`).
        """
        async with self.session.request(
            method,
            url,
            allow_redirects=True,
            max_redirects=MAX_REDIRECTS,
            raise_for_status=False,
        ) as resp:
            ctype = resp.headers.get("Content-Type", "")
            result = FetchResult(
                url=url,
                status=resp.status,
                final_url=str(resp.url) if resp.history else url,
                content_type=ctype,
            )
            if method == "GET" and result.is_html:
                result.body = await resp.text(errors="replace")
            return result
