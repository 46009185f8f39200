# site_tracer/crawler/urls.py
"""
URL canonicalisation for the crawl frontier.

Every reference found on a page goes through :meth:`UrlNormalizer.normalize`
before it touches the visited-set or the store, so the function must be
deterministic and idempotent.
"""
from __future__ import annotations

import logging
import re
from typing import FrozenSet, Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

__all__ = ("UrlNormalizer", "TRACKING_PARAMS", "is_data_url", "is_data_image", "hostname_of")

logger = logging.getLogger("SiteTracer.urls")

TRACKING_PARAMS: FrozenSet[str] = frozenset(
    {"utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content"}
)

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*:")


def is_data_url(url: str) -> bool:
    return url[:5].lower() == "data:"


def is_data_image(url: str) -> bool:
    return url[:10].lower() == "data:image"


def hostname_of(url: str) -> str:
    """Hostname of *url* or ``""`` when it cannot be parsed."""
    try:
        return urlsplit(url).hostname or ""
    except ValueError:
        return ""


class UrlNormalizer:
    """Turns discovered references into comparable absolute URLs.

    Root-relative and protocol-relative references are anchored on the seed
    (scheme and host, port included); other relative references are resolved
    against the page they were found on.
    """

    def __init__(self, seed_url: str) -> None:
        parts = urlsplit(seed_url.strip())
        self.scheme: str = parts.scheme.lower()
        self.netloc: str = parts.netloc.lower()
        self.hostname: str = parts.hostname or ""
        self.seed_url: str = seed_url.strip()

    def is_inbound(self, url: str) -> bool:
        return hostname_of(url) == self.hostname

    def normalize(self, reference: str, base_url: Optional[str] = None) -> str:
        url = reference.strip()
        if not url:
            return url
        try:
            return self._normalize(url, base_url or self.seed_url)
        except ValueError as exc:
            logger.debug("Could not normalize %r: %s", reference, exc)
            return url

    def _normalize(self, url: str, base_url: str) -> str:
        if url.startswith("//"):
            url = f"{self.scheme}:{url}"
        elif url.startswith("/"):
            url = f"{self.scheme}://{self.netloc}{url}"
        elif not _SCHEME_RE.match(url):
            url = urljoin(base_url, url)

        parts = urlsplit(url)
        if parts.scheme.lower() not in ("http", "https"):
            return url

        # Trailing slashes come off the query, or off the path when no query is left.
        query = self._strip_tracking(parts.query).rstrip("/")
        path = parts.path if query else parts.path.rstrip("/")
        return urlunsplit(
            (parts.scheme.lower(), parts.netloc.lower(), path, query, "")
        )

    @staticmethod
    def _strip_tracking(query: str) -> str:
        if not query:
            return query
        try:
            pairs = parse_qsl(query, keep_blank_values=True)
        except ValueError:
            return query
        if not any(key in TRACKING_PARAMS for key, _ in pairs):
            return query
        return urlencode([(k, v) for k, v in pairs if k not in TRACKING_PARAMS])
