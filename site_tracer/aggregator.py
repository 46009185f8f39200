# File: site_tracer/aggregator.py
"""site_tracer.aggregator: crawl summary and provenance lookup over the result store."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TypedDict

from site_tracer.crawler.classifier import AssetType
from site_tracer.store import ResultStore


class StatusBucket(TypedDict):
    """URL counts for one HTTP status code."""

    total: int
    internal: int
    external: int


class SampleUrl(TypedDict):
    """Example inbound URL for a status code and where it was found."""

    url: str
    source_count: int
    first_source: str


@dataclass(slots=True)
class CrawlReport:
    """Final crawl statistics, built once after the scheduler finishes."""

    total: int = 0
    internal: int = 0
    external: int = 0
    types: Dict[str, int] = field(default_factory=dict)
    status_codes: Dict[str, StatusBucket] = field(default_factory=dict)
    samples: Dict[str, List[SampleUrl]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": {"total": self.total, "internal": self.internal, "external": self.external},
            "types": dict(self.types),
            "statusCodes": {code: dict(bucket) for code, bucket in self.status_codes.items()},
        }

    def json(self, *, pretty: bool = False) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2 if pretty else None)


@dataclass(slots=True)
class SourceLookup:
    """Everything the store knows about one URL."""

    url: str
    status: Optional[int]
    asset_type: str
    is_inbound: bool
    is_redirect: bool
    final_url: str
    error: Optional[str]
    sources: List[str]


async def aggregate(store: ResultStore, total_visited: int, sample_size: int = 5) -> CrawlReport:
    """Read the final store state into a :class:`CrawlReport`."""
    report = CrawlReport(total=total_visited)

    for asset_type in AssetType:
        report.types[asset_type.value] = await store.cardinality(store.type_key(asset_type))

    records = await store.records()
    for record in records.values():
        if record.is_inbound:
            report.internal += 1
        else:
            report.external += 1

    for code in await store.status_codes():
        urls = sorted(await store.members(store.status_key(code)))
        inbound = [u for u in urls if u in records and records[u].is_inbound]
        key = str(code)
        report.status_codes[key] = {
            "total": len(urls),
            "internal": len(inbound),
            "external": len(urls) - len(inbound),
        }
        samples: List[SampleUrl] = []
        for url in inbound[:sample_size]:
            sources = await store.sources(url)
            samples.append(
                {
                    "url": url,
                    "source_count": len(sources),
                    "first_source": sources[0] if sources else "",
                }
            )
        if samples:
            report.samples[key] = samples
    return report


async def lookup_sources(store: ResultStore, url: str) -> Optional[SourceLookup]:
    """Status, type, redirect target and source pages of *url*; ``None`` if unknown."""
    record = await store.get_record(url)
    if record is None:
        return None
    return SourceLookup(
        url=url,
        status=record.status,
        asset_type=record.asset_type.value,
        is_inbound=record.is_inbound,
        is_redirect=record.is_redirect,
        final_url=record.final_url,
        error=record.error,
        sources=await store.sources(url),
    )
