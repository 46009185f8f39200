# site_tracer/crawler/link_extractor.py
"""
Reference extraction for SiteTracer: anchors, stylesheets, scripts and images.
"""
from __future__ import annotations

from typing import Iterator, List, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag

from site_tracer.crawler.classifier import TagKind
from site_tracer.crawler.models import Reference

_SKIP_PREFIXES: Tuple[str, ...] = ("javascript:", "mailto:", "tel:", "data:image")


def _attr(tag: Tag, name: str) -> str:
    value = tag.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    return value.strip() if isinstance(value, str) else ""


def _is_stylesheet(tag: Tag) -> bool:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return "stylesheet" in (r.lower() for r in rel) or _attr(tag, "type").lower() == "text/css"


def _iter_raw(soup: BeautifulSoup) -> Iterator[Tuple[str, TagKind]]:
    for tag in soup.find_all(["a", "link", "script", "img"]):
        if not isinstance(tag, Tag):
            continue
        if tag.name == "a":
            yield _attr(tag, "href"), TagKind.ANCHOR
        elif tag.name == "link" and _is_stylesheet(tag):
            yield _attr(tag, "href"), TagKind.STYLESHEET
        elif tag.name == "script":
            yield _attr(tag, "src"), TagKind.SCRIPT
        elif tag.name == "img":
            yield _attr(tag, "src"), TagKind.IMG


def extract_references(html: str) -> List[Reference]:
    """
    Extract raw (not yet normalized) references from an HTML document.

    Skips javascript:, mailto:, tel: and inline data:image references.
    Order follows the document; the same raw value is kept once.
    """
    soup = BeautifulSoup(html, "html.parser")
    seen: set[str] = set()
    refs: List[Reference] = []
    for raw, kind in _iter_raw(soup):
        if not raw or raw.lower().startswith(_SKIP_PREFIXES):
            continue
        if raw in seen:
            continue
        seen.add(raw)
        refs.append(Reference(url=raw, tag=kind))
    return refs
