# site_tracer/store/result_store.py
"""
Result store adapter: per-URL records, provenance sets and global indices.

Key layout (``<p>`` is the configured prefix)::

    <p><b64(url)>          hash   resource record
    <p>sources:<b64(url)>  set    pages that reference the URL
    <p>all_urls            set    every stored URL
    <p>type:<asset>        set    URLs per asset type
    <p>status:<code>       set    URLs per HTTP status

Write and read failures are logged and swallowed: losing one fact must not
abort a crawl. Only :meth:`ResultStore.ping` raises.
"""
from __future__ import annotations

import base64
import logging
from typing import Dict, List, Mapping, Optional, Set

from site_tracer.crawler.classifier import AssetType
from site_tracer.crawler.models import ResourceRecord
from site_tracer.store.backends import KeyValueBackend

__all__ = ["ResultStore", "StoreUnavailableError", "encode_url_key", "decode_url_key"]

logger = logging.getLogger("SiteTracer.store")


class StoreUnavailableError(RuntimeError):
    """The backing store cannot be reached."""


def encode_url_key(url: str) -> str:
    return base64.b64encode(url.encode("utf-8")).decode("ascii")


def decode_url_key(key: str) -> str:
    return base64.b64decode(key.encode("ascii"), validate=True).decode("utf-8")


class ResultStore:
    """Narrow persistence interface used by the crawl engine and the reports."""

    SOURCES = "sources:"
    TYPE = "type:"
    STATUS = "status:"
    ALL_URLS = "all_urls"

    def __init__(self, backend: KeyValueBackend, prefix: str = "tracer:") -> None:
        self.backend = backend
        self.prefix = prefix

    # -- key helpers -------------------------------------------------------

    def record_key(self, url: str) -> str:
        return f"{self.prefix}{encode_url_key(url)}"

    def sources_key(self, url: str) -> str:
        return f"{self.prefix}{self.SOURCES}{encode_url_key(url)}"

    def type_key(self, asset_type: AssetType | str) -> str:
        value = asset_type.value if isinstance(asset_type, AssetType) else asset_type
        return f"{self.prefix}{self.TYPE}{value}"

    def status_key(self, status: int | str) -> str:
        return f"{self.prefix}{self.STATUS}{status}"

    @property
    def all_urls_key(self) -> str:
        return f"{self.prefix}{self.ALL_URLS}"

    # -- lifecycle ---------------------------------------------------------

    async def ping(self) -> None:
        try:
            ok = await self.backend.ping()
        except Exception as exc:
            raise StoreUnavailableError(f"Result store unreachable: {exc}") from exc
        if not ok:
            raise StoreUnavailableError("Result store did not answer ping")

    async def clear(self) -> int:
        """Delete every key under the prefix (results of earlier runs)."""
        try:
            keys = await self.backend.keys(self.prefix)
            removed = await self.backend.delete(*keys) if keys else 0
        except Exception as exc:
            logger.warning("Store cleanup failed: %s", exc)
            return 0
        logger.info("Deleted %d keys from previous crawl", len(keys))
        return removed

    async def close(self) -> None:
        try:
            await self.backend.close()
        except Exception as exc:
            logger.warning("Error closing store: %s", exc)

    # -- writes ------------------------------------------------------------

    async def put_record(self, url: str, fields: Mapping[str, str], *, overwrite: bool = True) -> None:
        """Write record fields; with ``overwrite=False`` stored fields are kept."""
        try:
            await self.backend.hash_set(self.record_key(url), fields, overwrite=overwrite)
        except Exception as exc:
            logger.warning("Error storing record for %s: %s", url, exc)

    async def add_provenance(self, url: str, *referrers: str) -> None:
        members = [r for r in referrers if r]
        if not members:
            return
        try:
            await self.backend.set_add(self.sources_key(url), *members)
        except Exception as exc:
            logger.warning("Error adding source pages for %s: %s", url, exc)

    async def add_to_all_urls(self, url: str) -> None:
        await self._set_add(self.all_urls_key, url)

    async def add_to_type_index(self, asset_type: AssetType | str, url: str) -> None:
        await self._set_add(self.type_key(asset_type), url)

    async def add_to_status_index(self, status: int, url: str) -> None:
        await self._set_add(self.status_key(status), url)

    async def _set_add(self, key: str, member: str) -> None:
        try:
            await self.backend.set_add(key, member)
        except Exception as exc:
            logger.warning("Error adding %s to set %s: %s", member, key, exc)

    # -- reads -------------------------------------------------------------

    async def get_record(self, url: str) -> Optional[ResourceRecord]:
        try:
            fields = await self.backend.hash_get_all(self.record_key(url))
        except Exception as exc:
            logger.warning("Error reading record for %s: %s", url, exc)
            return None
        return ResourceRecord.from_fields(fields) if fields else None

    async def sources(self, url: str) -> List[str]:
        return sorted(await self.members(self.sources_key(url)))

    async def members(self, set_key: str) -> Set[str]:
        try:
            return await self.backend.set_members(set_key)
        except Exception as exc:
            logger.warning("Error getting set members for %s: %s", set_key, exc)
            return set()

    async def cardinality(self, set_key: str) -> int:
        try:
            return await self.backend.set_cardinality(set_key)
        except Exception as exc:
            logger.warning("Error getting set cardinality for %s: %s", set_key, exc)
            return 0

    async def status_codes(self) -> List[int]:
        """Status codes that have at least one URL, ascending."""
        base = f"{self.prefix}{self.STATUS}"
        try:
            keys = await self.backend.keys(base)
        except Exception as exc:
            logger.warning("Error listing status indices: %s", exc)
            return []
        codes: Set[int] = set()
        for key in keys:
            try:
                codes.add(int(key[len(base):]))
            except ValueError:
                continue
        return sorted(codes)

    async def records(self) -> Dict[str, ResourceRecord]:
        """Every stored record keyed by URL."""
        out: Dict[str, ResourceRecord] = {}
        for url in await self.members(self.all_urls_key):
            record = await self.get_record(url)
            if record is not None:
                out[url] = record
        return out
