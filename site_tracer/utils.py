# File: site_tracer/utils.py
"""site_tracer.utils: console helpers shared by the CLI commands."""

from __future__ import annotations

from typing import Optional, Sequence
from urllib.parse import urlsplit

import click

__all__: Sequence[str] = ("truncate_url", "status_color", "styled_status")


def truncate_url(url: str, max_length: int = 70) -> str:
    """Shorten *url* for display, keeping scheme and host when possible."""
    if not url:
        return ""
    if len(url) <= max_length:
        return url
    try:
        parts = urlsplit(url)
    except ValueError:
        return url[: max_length - 3] + "..."
    if not parts.scheme or not parts.hostname:
        return url[: max_length - 3] + "..."
    domain = f"{parts.scheme}://{parts.hostname}"
    if len(domain) >= max_length - 5:
        return domain[: max_length - 5] + "..."
    return domain + parts.path[: max_length - len(domain) - 5] + "..."


def status_color(status: Optional[int | str]) -> str:
    """Green for 2xx, yellow for 3xx, red for 4xx/5xx, white otherwise."""
    try:
        code = int(status)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return "white"
    if 200 <= code < 300:
        return "green"
    if 300 <= code < 400:
        return "yellow"
    if code >= 400:
        return "red"
    return "white"


def styled_status(status: Optional[int | str]) -> str:
    return click.style(str(status if status is not None else "unchecked"), fg=status_color(status))
