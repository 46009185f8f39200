# File: tests/conftest.py
import asyncio
from collections import Counter
from typing import AsyncIterator, Dict, List, Optional, Tuple, Union

import pytest
from aiohttp import web

from site_tracer.config import CrawlConfig
from site_tracer.crawler.classifier import TagKind
from site_tracer.crawler.models import FetchResult, FrontierItem
from site_tracer.crawler.policy import CrawlPolicy
from site_tracer.crawler.scheduler import CrawlScheduler
from site_tracer.crawler.urls import UrlNormalizer
from site_tracer.crawler.worker import CrawlWorker
from site_tracer.events import CrawlEvent, EventEmitter
from site_tracer.store import MemoryBackend, ResultStore


def pytest_configure(config):
    """Register custom markers so that `--strict-markers` does not fail."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )


# --------------------------------------------------------------------------- #
#                               Fake HTTP layer                               #
# --------------------------------------------------------------------------- #

Page = Tuple[int, str, Optional[str]]  # status, content type, body


class FakeFetcher:
    """Serves canned responses and counts requests per (method, url)."""

    def __init__(
        self,
        pages: Dict[str, Union[Page, BaseException]],
        *,
        redirects: Optional[Dict[str, str]] = None,
        delay: float = 0.0,
        slow: Optional[Dict[str, float]] = None,
    ) -> None:
        self.pages = pages
        self.redirects = redirects or {}
        self.delay = delay
        self.slow = slow or {}
        self.calls: List[Tuple[str, str]] = []

    def count(self, url: str) -> int:
        return sum(1 for _, u in self.calls if u == url)

    @property
    def methods(self) -> Counter:
        return Counter(self.calls)

    async def fetch(self, url: str, method: str = "GET") -> FetchResult:
        self.calls.append((method, url))
        await asyncio.sleep(self.slow.get(url, self.delay))
        final = self.redirects.get(url, url)
        page = self.pages.get(final, (404, "text/html", "<h1>Not found</h1>"))
        if isinstance(page, BaseException):
            raise page
        status, ctype, body = page
        result = FetchResult(url=url, status=status, final_url=final, content_type=ctype)
        if method == "GET" and result.is_html:
            result.body = body
        return result


class EventRecorder:
    def __init__(self) -> None:
        self.events: List[CrawlEvent] = []

    def __call__(self, event: CrawlEvent) -> None:
        self.events.append(event)

    def of_type(self, name: str) -> List[CrawlEvent]:
        return [e for e in self.events if e.type == name]


# --------------------------------------------------------------------------- #
#                                  Fixtures                                   #
# --------------------------------------------------------------------------- #


@pytest.fixture()
def store() -> ResultStore:
    return ResultStore(MemoryBackend(), prefix="test:")


@pytest.fixture()
def recorder() -> EventRecorder:
    return EventRecorder()


def make_config(seed: str = "https://ex.com", **kwargs) -> CrawlConfig:
    kwargs.setdefault("max_depth", 1)
    kwargs.setdefault("concurrency", 4)
    kwargs.setdefault("request_timeout", 2.0)
    kwargs.setdefault("user_agent", "TestAgent/1.0")
    return CrawlConfig(seed_url=seed, **kwargs)


def make_worker(
    config: CrawlConfig,
    fetcher,
    store: ResultStore,
    events: Optional[EventEmitter] = None,
) -> CrawlWorker:
    return CrawlWorker(
        config,
        fetcher,
        store,
        UrlNormalizer(config.seed_url),
        CrawlPolicy(config),
        events,
    )


async def run_crawl(
    config: CrawlConfig,
    fetcher,
    store: ResultStore,
    recorder: Optional[EventRecorder] = None,
) -> CrawlScheduler:
    """Run scheduler + worker over a fake fetcher; returns the finished scheduler."""
    events = EventEmitter()
    if recorder is not None:
        events.subscribe(recorder)
    worker = make_worker(config, fetcher, store, events)
    scheduler = CrawlScheduler(worker.process, worker.policy, store, config.concurrency, events)
    seed = FrontierItem(url=worker.normalizer.normalize(config.seed_url), tag=TagKind.ANCHOR)
    await asyncio.wait_for(scheduler.run([seed]), timeout=10)
    return scheduler


async def serve_app(app: web.Application) -> AsyncIterator[str]:
    """Start *app* on a free localhost port, yield its base URL, clean up."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    port = runner.addresses[0][1]
    try:
        yield f"http://127.0.0.1:{port}"
    finally:
        await runner.cleanup()
