# site_tracer/crawler/models.py
"""
Data models for the SiteTracer crawler.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional

from site_tracer.crawler.classifier import AssetType, TagKind


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass(slots=True)
class Reference:
    """A link found in a document together with the tag it came from."""

    url: str
    tag: TagKind


@dataclass(slots=True)
class FrontierItem:
    """Unit of work waiting for dispatch.

    ``source_pages`` is the referrer chain from the seed to this discovery.
    """

    url: str
    referrer: str = ""
    depth: int = 0
    source_pages: List[str] = field(default_factory=list)
    tag: Optional[TagKind] = None


@dataclass(slots=True)
class FetchResult:
    """Outcome of one HTTP exchange after redirects."""

    url: str
    status: int
    final_url: str
    content_type: str = ""
    body: Optional[str] = None

    @property
    def is_html(self) -> bool:
        return "text/html" in self.content_type.lower()

    @property
    def is_redirect(self) -> bool:
        return self.final_url != self.url


@dataclass(slots=True)
class ResourceRecord:
    """Facts stored for one normalized URL.

    A record with ``status is None`` is a discovery stub that no fetch has
    completed yet.
    """

    url: str
    asset_type: AssetType = AssetType.OTHER
    is_inbound: bool = False
    status: Optional[int] = None
    content_type: str = ""
    final_url: str = ""
    is_redirect: bool = False
    depth: Optional[int] = None
    checked_at: Optional[str] = None
    error: Optional[str] = None
    is_data_image: bool = False

    @property
    def is_stub(self) -> bool:
        return self.status is None

    @classmethod
    def stub(cls, url: str, asset_type: AssetType, is_inbound: bool) -> ResourceRecord:
        return cls(url=url, asset_type=asset_type, is_inbound=is_inbound)

    def to_fields(self) -> Dict[str, str]:
        """Flat string mapping for hash-style storage; unset fields are omitted."""
        fields: Dict[str, str] = {
            "url": self.url,
            "type": self.asset_type.value,
            "is_inbound": "1" if self.is_inbound else "0",
        }
        if self.status is not None:
            fields["status"] = str(self.status)
            fields["content_type"] = self.content_type
            fields["final_url"] = self.final_url or self.url
            fields["is_redirect"] = "1" if self.is_redirect else "0"
        if self.depth is not None:
            fields["depth"] = str(self.depth)
        if self.checked_at is not None:
            fields["checked_at"] = self.checked_at
        if self.error is not None:
            fields["error"] = self.error
        if self.is_data_image:
            fields["is_data_image"] = "1"
        return fields

    @classmethod
    def from_fields(cls, fields: Mapping[str, str]) -> ResourceRecord:
        status = fields.get("status")
        depth = fields.get("depth")
        try:
            asset_type = AssetType(fields.get("type", AssetType.OTHER.value))
        except ValueError:
            asset_type = AssetType.OTHER
        return cls(
            url=fields.get("url", ""),
            asset_type=asset_type,
            is_inbound=fields.get("is_inbound") == "1",
            status=int(status) if status not in (None, "") else None,
            content_type=fields.get("content_type", ""),
            final_url=fields.get("final_url", ""),
            is_redirect=fields.get("is_redirect") == "1",
            depth=int(depth) if depth not in (None, "") else None,
            checked_at=fields.get("checked_at") or None,
            error=fields.get("error") or None,
            is_data_image=fields.get("is_data_image") == "1",
        )
