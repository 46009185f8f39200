# site_tracer/crawler/scheduler.py
"""
Frontier scheduler: the only owner of the work queue and the visited-set.

A fixed pool of worker tasks receives already-claimed items through a
dispatch queue and hands discovered children back through a completion
queue. Workers never touch the frontier or the visited-set, so a URL can be
claimed exactly once without locks.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable, Deque, Iterable, List, Optional, Set, Tuple

from site_tracer.crawler.models import FrontierItem
from site_tracer.crawler.policy import CrawlPolicy
from site_tracer.events import EventEmitter, ProgressEvent
from site_tracer.store import ResultStore

__all__ = ("CrawlScheduler", "ProcessFn")

logger = logging.getLogger("SiteTracer.scheduler")

ProcessFn = Callable[[FrontierItem], Awaitable[List[FrontierItem]]]
_Completion = Optional[Tuple[FrontierItem, List[FrontierItem]]]


class CrawlScheduler:
    """Bounded-parallelism BFS over the frontier.

    ``process`` is the per-item work (normally :meth:`CrawlWorker.process`);
    whatever it returns is appended to the frontier. One instance serves one
    crawl run.
    """

    def __init__(
        self,
        process: ProcessFn,
        policy: CrawlPolicy,
        store: ResultStore,
        concurrency: int,
        events: Optional[EventEmitter] = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._process = process
        self.policy = policy
        self.store = store
        self.concurrency = concurrency
        self.events = events or EventEmitter()

        self.frontier: Deque[FrontierItem] = deque()
        self.visited: Set[str] = set()
        self.in_flight: int = 0
        self.rediscovered: int = 0
        self._stopped = False
        self._dispatch: asyncio.Queue[FrontierItem] = asyncio.Queue()
        self._done: asyncio.Queue[_Completion] = asyncio.Queue()

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        """Stop dispatching and abort in-flight fetches; stored results stay."""
        if self._stopped:
            return
        logger.info("Stop requested: %d URLs claimed, %d in flight", len(self.visited), self.in_flight)
        self._stopped = True
        self._done.put_nowait(None)

    async def run(self, seeds: Iterable[FrontierItem]) -> Set[str]:
        """Crawl until the frontier is empty and nothing is in flight.

        Returns the visited-set (every URL claimed for fetching).
        """
        self.frontier.extend(seeds)
        start = time.monotonic()
        workers = [
            asyncio.create_task(self._worker(n), name=f"tracer-worker-{n}")
            for n in range(self.concurrency)
        ]
        try:
            while True:
                await self._fill()
                if self.in_flight == 0:
                    break
                completion = await self._done.get()
                if completion is None:
                    break
                _, children = completion
                self.in_flight -= 1
                self.frontier.extend(children)
        finally:
            for w in workers:
                w.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        duration = time.monotonic() - start
        logger.info(
            "Crawl %s: %d URLs in %.2f s (%d re-discoveries merged)",
            "stopped" if self._stopped else "complete",
            len(self.visited),
            duration,
            self.rediscovered,
        )
        return self.visited

    async def _fill(self) -> None:
        while not self._stopped and self.in_flight < self.concurrency and self.frontier:
            item = self.frontier.popleft()
            if not self.policy.should_crawl(item):
                continue
            if item.url in self.visited:
                self.rediscovered += 1
                await self.store.add_provenance(item.url, item.referrer)
                continue
            self.visited.add(item.url)
            self.in_flight += 1
            self._dispatch.put_nowait(item)
            self.events.emit(
                ProgressEvent(checked=len(self.visited), total=len(self.visited) + len(self.frontier))
            )

    async def _worker(self, n: int) -> None:
        while True:
            item = await self._dispatch.get()
            try:
                children = await self._process(item)
            except Exception:
                logger.exception("Worker %d failed on %s", n, item.url)
                children = []
            self._done.put_nowait((item, children))
