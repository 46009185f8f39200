# site_tracer/crawler/tracer.py
from __future__ import annotations

import logging
from typing import Optional, Set

from aiohttp import ClientSession, ClientTimeout

from site_tracer.config import CrawlConfig
from site_tracer.crawler.classifier import TagKind
from site_tracer.crawler.fetcher import Fetcher
from site_tracer.crawler.models import FrontierItem
from site_tracer.crawler.policy import CrawlPolicy
from site_tracer.crawler.scheduler import CrawlScheduler
from site_tracer.crawler.urls import UrlNormalizer
from site_tracer.crawler.worker import CrawlWorker
from site_tracer.events import EventEmitter
from site_tracer.store import ResultStore

__all__ = ("SiteTracer",)


class SiteTracer:
    """Async crawl session: owns the HTTP session and wires the crawl parts.

    Usage::

        async with SiteTracer(config, store) as tracer:
            visited = await tracer.crawl()
    """

    def __init__(
        self,
        config: CrawlConfig,
        store: ResultStore,
        events: Optional[EventEmitter] = None,
        session: Optional[ClientSession] = None,
    ) -> None:
        self.config = config
        self.store = store
        self.events = events or EventEmitter()
        self.session = session
        self._owns_session = session is None
        self.normalizer = UrlNormalizer(config.seed_url)
        self.policy = CrawlPolicy(config)
        self.scheduler: Optional[CrawlScheduler] = None
        self.logger = logging.getLogger("SiteTracer")

    async def __aenter__(self) -> SiteTracer:
        if self.session is None:
            self.session = ClientSession(
                timeout=ClientTimeout(total=self.config.request_timeout),
                headers={"User-Agent": self.config.user_agent},
                raise_for_status=False,
            )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._owns_session and self.session and not self.session.closed:
            await self.session.close()

    def build_worker(self) -> CrawlWorker:
        if not self.session:
            raise RuntimeError("Session not initialized")
        fetcher = Fetcher(self.session, self.config.request_timeout)
        return CrawlWorker(self.config, fetcher, self.store, self.normalizer, self.policy, self.events)

    def seed_item(self) -> FrontierItem:
        seed = self.normalizer.normalize(self.config.seed_url)
        return FrontierItem(url=seed, referrer="", depth=0, source_pages=[], tag=TagKind.ANCHOR)

    async def crawl(self) -> Set[str]:
        """Run the crawl to completion (or until :meth:`stop`); returns visited URLs."""
        self.logger.info("Starting crawl: %s", self.config.seed_url)
        self.logger.info(
            "Max depth: %d, concurrency: %d", self.config.max_depth, self.config.concurrency
        )
        if self.config.skip_data_images:
            self.logger.info("Data image URLs will be skipped")
        worker = self.build_worker()
        self.scheduler = CrawlScheduler(
            worker.process,
            self.policy,
            self.store,
            self.config.concurrency,
            self.events,
        )
        return await self.scheduler.run([self.seed_item()])

    def stop(self) -> None:
        if self.scheduler is not None:
            self.scheduler.stop()
