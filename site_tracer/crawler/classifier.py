# site_tracer/crawler/classifier.py
"""Maps a URL and the tag that referenced it to an asset category."""
from __future__ import annotations

import re
from enum import Enum
from typing import Optional

__all__ = ("AssetType", "TagKind", "classify")


class AssetType(str, Enum):
    LINK = "link"
    CSS = "css"
    SCRIPT = "script"
    IMAGE = "image"
    OTHER = "other"


class TagKind(str, Enum):
    """Kind of element a reference was extracted from."""

    ANCHOR = "a"
    STYLESHEET = "link"
    SCRIPT = "script"
    IMG = "img"


_IMAGE_RE = re.compile(r"\.(jpg|jpeg|png|gif|svg|webp|ico)($|\?)", re.IGNORECASE)
_CSS_RE = re.compile(r"\.css($|\?)", re.IGNORECASE)
_JS_RE = re.compile(r"\.js($|\?)", re.IGNORECASE)


def classify(url: str, tag: Optional[TagKind] = None) -> AssetType:
    """Explicit tag kind wins, then the file extension; ``other`` otherwise.

    A stylesheet ``<link>`` only counts as CSS when its URL ends in ``.css``;
    anything else falls through to extension sniffing.
    """
    if tag is TagKind.ANCHOR:
        return AssetType.LINK
    if tag is TagKind.STYLESHEET and _CSS_RE.search(url):
        return AssetType.CSS
    if tag is TagKind.SCRIPT:
        return AssetType.SCRIPT
    if tag is TagKind.IMG:
        return AssetType.IMAGE
    if _IMAGE_RE.search(url):
        return AssetType.IMAGE
    if _CSS_RE.search(url):
        return AssetType.CSS
    if _JS_RE.search(url):
        return AssetType.SCRIPT
    return AssetType.OTHER
