# File: tests/test_crawler.py
# End-to-end tests of the SiteTracer crawl against a local aiohttp server.
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web

from site_tracer.crawler.classifier import AssetType
from site_tracer.crawler.fetcher import FETCH_ERRORS, Fetcher
from site_tracer.crawler.tracer import SiteTracer
from site_tracer.engine import start_crawl
from site_tracer.events import SummaryEvent

from .conftest import EventRecorder, make_config, serve_app

#: seconds the slow handler sleeps; longer than the request timeout below
SLOW_SLEEP: float = 1.5


# --------------------------------------------------------------------------- #
#                            Test-server fixtures                             #
# --------------------------------------------------------------------------- #


@pytest.fixture()
def hits() -> dict[str, list[str]]:
    """Request methods seen by the test site, per path."""
    return {}


@pytest_asyncio.fixture
async def site(hits: dict[str, list[str]]) -> AsyncIterator[str]:
    app = web.Application()

    def track(request: web.Request) -> None:
        hits.setdefault(request.path, []).append(request.method)

    async def root(request):
        track(request)
        return web.Response(
            text=(
                '<link rel="stylesheet" href="/style.css">'
                '<script src="/app.js"></script>'
                '<img src="/img.png">'
                '<a href="/page1">P1</a>'
                '<a href="/old">Old</a>'
                '<a href="/missing">Broken</a>'
                '<a href="/slow">Slow</a>'
                '<a href="mailto:a@b.c">Mail</a>'
            ),
            content_type="text/html",
        )

    async def page1(request):
        track(request)
        return web.Response(
            text='<a href="/page2">P2</a><link rel="stylesheet" href="/style.css">',
            content_type="text/html",
        )

    async def page2(request):
        track(request)
        return web.Response(text="<h1>Too deep to expand</h1><a href='/page3'>3</a>",
                            content_type="text/html")

    async def old(request):
        track(request)
        raise web.HTTPMovedPermanently(location="/page1")

    async def slow(request):
        track(request)
        await asyncio.sleep(SLOW_SLEEP)
        return web.Response(text="<h1>late</h1>", content_type="text/html")

    async def asset(request):
        track(request)
        types = {".css": "text/css", ".js": "application/javascript", ".png": "image/png"}
        suffix = request.path[request.path.rfind("."):]
        return web.Response(body=b"x", content_type=types[suffix])

    app.router.add_get("/", root)
    app.router.add_get("/page1", page1)
    app.router.add_get("/page2", page2)
    app.router.add_get("/old", old)
    app.router.add_get("/slow", slow)
    app.router.add_get("/style.css", asset)
    app.router.add_get("/app.js", asset)
    app.router.add_get("/img.png", asset)

    async for base in serve_app(app):
        yield base


@pytest_asyncio.fixture
async def session() -> AsyncIterator[aiohttp.ClientSession]:
    async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=0.5)) as s:
        yield s


# --------------------------------------------------------------------------- #
#                                  Fetcher                                    #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_fetch_follows_redirects(site: str, session):
    result = await Fetcher(session, 0.5).fetch(f"{site}/old")
    assert result.status == 200
    assert result.final_url == f"{site}/page1"
    assert result.is_redirect
    assert "/page2" in result.body


@pytest.mark.asyncio()
async def test_head_reads_no_body(site: str, session):
    result = await Fetcher(session, 0.5).fetch(f"{site}/page1", "HEAD")
    assert result.status == 200
    assert result.is_html
    assert result.body is None
    assert not result.is_redirect


@pytest.mark.asyncio()
async def test_http_error_status_is_returned(site: str, session):
    result = await Fetcher(session, 0.5).fetch(f"{site}/missing")
    assert result.status == 404


@pytest.mark.asyncio()
async def test_slow_response_raises_fetch_error(site: str, session):
    with pytest.raises(FETCH_ERRORS):
        await Fetcher(session, 0.5).fetch(f"{site}/slow")


@pytest.mark.asyncio()
async def test_redirect_loop_is_cut_off(session):
    app = web.Application()

    async def loop(_):
        raise web.HTTPFound(location="/loop")

    app.router.add_get("/loop", loop)
    async for base in serve_app(app):
        with pytest.raises(aiohttp.TooManyRedirects):
            await Fetcher(session, 0.5).fetch(f"{base}/loop")


# --------------------------------------------------------------------------- #
#                                Whole crawl                                  #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_crawl_site(site: str, store):
    config = make_config(site, max_depth=2, request_timeout=0.5, concurrency=3)
    async with SiteTracer(config, store) as tracer:
        visited = await asyncio.wait_for(tracer.crawl(), timeout=15)

    assert visited == {
        site,
        f"{site}/style.css",
        f"{site}/app.js",
        f"{site}/img.png",
        f"{site}/page1",
        f"{site}/old",
        f"{site}/missing",
        f"{site}/slow",
        f"{site}/page2",
    }

    records = await store.records()
    assert records[f"{site}/missing"].status == 404
    assert records[f"{site}/old"].is_redirect
    assert records[f"{site}/old"].final_url == f"{site}/page1"
    assert records[f"{site}/slow"].status == 0
    assert "timed out" in records[f"{site}/slow"].error
    assert records[f"{site}/style.css"].asset_type is AssetType.CSS
    assert records[f"{site}/img.png"].asset_type is AssetType.IMAGE
    assert records[f"{site}/page2"].depth == 2
    assert f"{site}/page3" not in records

    assert await store.sources(f"{site}/style.css") == [site, f"{site}/old", f"{site}/page1"]
    assert tracer.session.closed


@pytest.mark.asyncio()
async def test_each_url_requested_once(site: str, hits, store):
    config = make_config(site, max_depth=2, request_timeout=0.5, concurrency=5)
    async with SiteTracer(config, store) as tracer:
        await asyncio.wait_for(tracer.crawl(), timeout=15)

    assert hits["/"] == ["GET"]
    # Referenced by three pages, checked with a single HEAD.
    assert hits["/style.css"] == ["HEAD"]
    assert hits["/app.js"] == ["HEAD"]
    assert hits["/page2"] == ["HEAD"]
    assert hits["/old"] == ["GET"]
    assert "/page3" not in hits
    assert tracer.scheduler.rediscovered >= 2


@pytest.mark.asyncio()
async def test_start_crawl_report(site: str, store):
    recorder = EventRecorder()
    config = make_config(site, max_depth=1, request_timeout=0.5)

    report = await asyncio.wait_for(start_crawl(config, store=store, listeners=[recorder]),
                                    timeout=15)

    data = report.to_dict()
    assert data["summary"]["total"] == 8
    assert data["summary"]["internal"] == 8
    assert data["summary"]["external"] == 0
    assert data["types"]["css"] == 1
    assert data["types"]["script"] == 1
    assert data["types"]["image"] == 1
    assert data["statusCodes"]["404"] == {"total": 1, "internal": 1, "external": 0}
    assert data["statusCodes"]["0"]["total"] == 1

    summaries = [e for e in recorder.events if isinstance(e, SummaryEvent)]
    assert len(summaries) == 1
    assert summaries[0].stats == data
    assert recorder.events[-1] is summaries[0]
    # The caller's store stays usable.
    assert await store.get_record(site) is not None


@pytest.mark.asyncio()
async def test_stop_ends_a_running_crawl(store):
    started = asyncio.Event()
    release = asyncio.Event()
    requested: list[str] = []
    app = web.Application()

    async def root(_):
        body = '<a href="/s1">1</a><a href="/s2">2</a><a href="/s3">3</a>'
        return web.Response(text=body, content_type="text/html")

    async def stalled(request):
        requested.append(request.path)
        started.set()
        await release.wait()
        return web.Response(text="late", content_type="text/html")

    app.router.add_get("/", root)
    for path in ("/s1", "/s2", "/s3"):
        app.router.add_get(path, stalled)

    async for base in serve_app(app):
        config = make_config(base, max_depth=2, concurrency=1, request_timeout=10)
        try:
            async with SiteTracer(config, store) as tracer:
                task = asyncio.create_task(tracer.crawl())
                await asyncio.wait_for(started.wait(), timeout=5)
                tracer.stop()
                visited = await asyncio.wait_for(task, timeout=5)
        finally:
            release.set()

        assert tracer.scheduler.stopped
        assert len(requested) == 1
        assert visited == {base, f"{base}{requested[0]}"}
        assert len(tracer.scheduler.frontier) == 2
        assert tracer.session.closed
