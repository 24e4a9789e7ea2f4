"""Tests for the web fetcher against a local aiohttp server."""

import asyncio

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp import test_utils

from sitesearch.crawler.fetcher import WebFetcher
from sitesearch.utils.monitoring import IndexingMonitor


async def html_page(request):
    return web.Response(text="<html><title>Главная</title><p>Привет</p></html>", content_type="text/html")


async def missing_page(request):
    return web.Response(text="<p>not found</p>", status=404, content_type="text/html")


async def echo_headers(request):
    return web.Response(
        text=f"{request.headers.get('User-Agent')}|{request.headers.get('Referer')}",
        content_type="text/plain"
    )


async def image(request):
    return web.Response(body=b"\x89PNG\r\n", content_type="image/png")


async def slow_page(request):
    await asyncio.sleep(2)
    return web.Response(text="late", content_type="text/html")


@pytest_asyncio.fixture
async def server():
    app = web.Application()
    app.router.add_get("/", html_page)
    app.router.add_get("/missing", missing_page)
    app.router.add_get("/headers", echo_headers)
    app.router.add_get("/image.png", image)
    app.router.add_get("/slow", slow_page)

    test_server = test_utils.TestServer(app)
    await test_server.start_server()
    yield test_server
    await test_server.close()


@pytest_asyncio.fixture
async def fetcher():
    async with WebFetcher(
        user_agent="TestBot/1.0",
        referrer="http://referrer.test",
        request_timeout=5,
        politeness_delay=0,
        monitor=IndexingMonitor()
    ) as web_fetcher:
        yield web_fetcher


class TestWebFetcher:
    """Test fetch results for successful and failing requests."""

    @pytest.mark.asyncio
    async def test_fetch_html(self, server, fetcher):
        result = await fetcher.fetch(str(server.make_url("/")))

        assert result.ok
        assert result.status_code == 200
        assert "Привет" in result.content
        assert result.is_html
        assert fetcher.get_stats()['successful_requests'] == 1

    @pytest.mark.asyncio
    async def test_non_2xx_is_a_successful_fetch(self, server, fetcher):
        result = await fetcher.fetch(str(server.make_url("/missing")))

        assert result.ok
        assert result.error is None
        assert result.status_code == 404
        assert "not found" in result.content

    @pytest.mark.asyncio
    async def test_sends_user_agent_and_referrer(self, server, fetcher):
        result = await fetcher.fetch(str(server.make_url("/headers")))
        assert result.content == "TestBot/1.0|http://referrer.test"

    @pytest.mark.asyncio
    async def test_query_and_fragment_are_dropped(self, server, fetcher):
        result = await fetcher.fetch(str(server.make_url("/missing")) + "?page=2#top")
        assert result.url.endswith("/missing")
        assert result.status_code == 404

    @pytest.mark.asyncio
    async def test_binary_content_is_not_read(self, server, fetcher):
        result = await fetcher.fetch(str(server.make_url("/image.png")))

        assert result.ok
        assert result.content == ''
        assert not result.is_html

    @pytest.mark.asyncio
    async def test_timeout_is_reported(self, server):
        async with WebFetcher(user_agent="TestBot/1.0", request_timeout=0.2, politeness_delay=0) as fetcher:
            result = await fetcher.fetch(str(server.make_url("/slow")))

        assert not result.ok
        assert result.status_code == 0
        assert result.error == "Request timeout"

    @pytest.mark.asyncio
    async def test_connection_failure_is_reported(self, fetcher):
        result = await fetcher.fetch("http://127.0.0.1:1/")

        assert not result.ok
        assert result.status_code == 0
        assert result.error.startswith("Client error")
        assert fetcher.get_stats()['failed_requests'] == 1

    @pytest.mark.asyncio
    async def test_empty_url(self, fetcher):
        result = await fetcher.fetch("  ")
        assert result.error == "Empty URL"

    @pytest.mark.asyncio
    async def test_politeness_delay_precedes_request(self, server):
        async with WebFetcher(user_agent="TestBot/1.0", politeness_delay=0.2) as fetcher:
            loop = asyncio.get_running_loop()
            started = loop.time()
            await fetcher.fetch(str(server.make_url("/")))
            assert loop.time() - started >= 0.2
