# site_tracer/crawler/worker.py
"""
Fetch-and-extract worker: checks one URL, stores what it learned and returns
the references it found for the scheduler to consider.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from site_tracer.config import CrawlConfig
from site_tracer.crawler.classifier import AssetType, classify
from site_tracer.crawler.fetcher import FETCH_ERRORS, Fetcher, describe_error
from site_tracer.crawler.link_extractor import extract_references
from site_tracer.crawler.models import FetchResult, FrontierItem, ResourceRecord, utc_now
from site_tracer.crawler.policy import CrawlPolicy
from site_tracer.crawler.urls import UrlNormalizer, hostname_of, is_data_image
from site_tracer.events import ErrorEvent, EventEmitter, UrlCheckedEvent
from site_tracer.store import ResultStore

__all__ = ("CrawlWorker",)

logger = logging.getLogger("SiteTracer.worker")


class CrawlWorker:
    """Processes one :class:`FrontierItem` at a time.

    Strategy: a GET for pages that will be expanded, a HEAD otherwise. A HEAD
    that reveals an expandable HTML page is followed by a GET to get its body.
    HTTP error statuses are ordinary results; transport errors are recorded
    as status 0 with a message and never retried.
    """

    def __init__(
        self,
        config: CrawlConfig,
        fetcher: Fetcher,
        store: ResultStore,
        normalizer: UrlNormalizer,
        policy: CrawlPolicy,
        events: Optional[EventEmitter] = None,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.store = store
        self.normalizer = normalizer
        self.policy = policy
        self.events = events or EventEmitter()

    async def process(self, item: FrontierItem) -> List[FrontierItem]:
        url = item.url
        if is_data_image(url) and self.config.skip_data_images:
            logger.debug("[%d] Skipping data URL", item.depth)
            await self._save(self._data_image_record(item), item)
            return []

        inbound = self.normalizer.is_inbound(url)
        expandable = inbound and item.depth < self.config.max_depth
        wants_body = expandable and classify(url, item.tag) is AssetType.LINK
        method = "GET" if wants_body else "HEAD"

        try:
            result = await self.fetcher.fetch(url, method)
            if method == "HEAD" and result.is_html and expandable:
                result = await self.fetcher.fetch(url, "GET")
        except FETCH_ERRORS as exc:
            message = describe_error(exc, self.config.request_timeout)
            status = getattr(exc, "status", 0)
            logger.warning("Error checking %s: %s", url, message)
            self.events.emit(ErrorEvent(f"Error checking {url}: {message}"))
            record = ResourceRecord(
                url=url,
                asset_type=classify(url, item.tag),
                is_inbound=inbound,
                status=status if isinstance(status, int) else 0,
                final_url=url,
                depth=item.depth,
                checked_at=utc_now(),
                error=message,
            )
            await self._save(record, item)
            return []

        record = self._record_from(result, item, inbound)
        await self._save(record, item)
        logger.debug("[%d] %s -> %d", item.depth, url, result.status)

        if not (result.is_html and expandable and result.body):
            return []
        return await self._expand(url, result.final_url, result.body, item)

    # ------------------------------------------------------------------ #

    def _record_from(self, result: FetchResult, item: FrontierItem, inbound: bool) -> ResourceRecord:
        asset_type = AssetType.LINK if result.is_html else classify(item.url, item.tag)
        return ResourceRecord(
            url=item.url,
            asset_type=asset_type,
            is_inbound=inbound,
            status=result.status,
            content_type=result.content_type,
            final_url=result.final_url,
            is_redirect=result.is_redirect,
            depth=item.depth,
            checked_at=utc_now(),
        )

    @staticmethod
    def _data_image_record(item: FrontierItem) -> ResourceRecord:
        return ResourceRecord(
            url=item.url,
            asset_type=AssetType.IMAGE,
            is_inbound=True,
            status=200,
            content_type="image/embedded",
            final_url=item.url,
            depth=item.depth,
            checked_at=utc_now(),
            is_data_image=True,
        )

    async def _save(self, record: ResourceRecord, item: FrontierItem) -> None:
        url = record.url
        await self.store.put_record(url, record.to_fields())
        await self.store.add_provenance(url, item.referrer)
        await self.store.add_to_all_urls(url)
        await self.store.add_to_type_index(record.asset_type, url)
        await self.store.add_to_status_index(record.status or 0, url)
        self.events.emit(
            UrlCheckedEvent(
                url=url,
                status=record.status or 0,
                domain=hostname_of(url) or "unknown",
                source_pages=list(item.source_pages),
            )
        )

    async def _expand(
        self, page_url: str, base_url: str, body: str, item: FrontierItem
    ) -> List[FrontierItem]:
        children: List[FrontierItem] = []
        chain = [*item.source_pages, page_url]
        for ref in extract_references(body):
            child_url = self.normalizer.normalize(ref.url, base_url)
            if not child_url or self.policy.is_refused(child_url):
                continue
            inbound = self.normalizer.is_inbound(child_url)
            stub = ResourceRecord.stub(child_url, classify(child_url, ref.tag), inbound)
            await self.store.put_record(child_url, stub.to_fields(), overwrite=False)
            await self.store.add_provenance(child_url, page_url)
            await self.store.add_to_all_urls(child_url)
            children.append(
                FrontierItem(
                    url=child_url,
                    referrer=page_url,
                    depth=self.policy.child_depth(item.depth, inbound),
                    source_pages=list(chain),
                    tag=ref.tag,
                )
            )
        logger.debug("%s: %d references", page_url, len(children))
        return children

