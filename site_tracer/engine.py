# File: site_tracer/engine.py
"""site_tracer.engine: orchestration of a crawl run and of report queries."""

from __future__ import annotations

from typing import Iterable, Optional

from site_tracer.aggregator import CrawlReport, SourceLookup, aggregate, lookup_sources
from site_tracer.config import CrawlConfig
from site_tracer.crawler.tracer import SiteTracer
from site_tracer.events import ErrorEvent, EventEmitter, Listener, SummaryEvent
from site_tracer.logger import logger
from site_tracer.store import ResultStore, StoreUnavailableError, open_store

__all__ = ["start_crawl", "show_sources"]


async def start_crawl(
    config: CrawlConfig,
    store: Optional[ResultStore] = None,
    listeners: Iterable[Listener] = (),
) -> CrawlReport:
    """Run one crawl and return its aggregated report.

    Raises :class:`StoreUnavailableError` when the store cannot be reached
    before the crawl starts. A store passed in by the caller is left open.
    """
    events = EventEmitter()
    for listener in listeners:
        events.subscribe(listener)

    owns_store = store is None
    if store is None:
        store = open_store(config.redis_url, config.key_prefix)
    try:
        try:
            await store.ping()
        except StoreUnavailableError as exc:
            events.emit(ErrorEvent(str(exc)))
            logger.error("%s", exc)
            raise
        logger.info("Connected to result store")

        if config.cleanup_prior_state:
            logger.info("Cleaning up previous crawl data…")
            await store.clear()

        async with SiteTracer(config, store, events) as tracer:
            visited = await tracer.crawl()

        report = await aggregate(store, len(visited), config.sample_size)
        events.emit(SummaryEvent(stats=report.to_dict()))
        return report
    finally:
        if owns_store:
            await store.close()


async def show_sources(
    url: str, redis_url: Optional[str], key_prefix: str = "tracer:"
) -> Optional[SourceLookup]:
    """Look up one URL in the store of a finished (or running) crawl."""
    store = open_store(redis_url, key_prefix)
    try:
        await store.ping()
        return await lookup_sources(store, url)
    finally:
        await store.close()
