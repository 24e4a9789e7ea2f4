"""Tests for depth-bounded concurrent site discovery."""

import asyncio

import pytest

from sitesearch.crawler.fetcher import FetchResult
from sitesearch.crawler.parser import ContentParser
from sitesearch.crawler.site_crawler import SiteCrawler

from conftest import FakeFetcher, make_html


ROOT = "http://site.test/"


def url(path: str) -> str:
    return "http://site.test" + path


def site_graph() -> FakeFetcher:
    return FakeFetcher({
        ROOT: (200, make_html(links=["/a", "/b", "https://other.test/x"])),
        url("/a"): (200, make_html(links=["/b", "/c", "/a#top"])),
        url("/b"): (200, make_html(links=["/a", "/c?page=2"])),
        url("/c"): (200, make_html(links=["/d"])),
        url("/d"): (200, make_html(links=["/e"])),
        url("/e"): (200, make_html(links=["/f"])),
    })


class StoppingFetcher(FakeFetcher):
    """Sets the stop event once the first page has been fetched."""

    def __init__(self, pages, stop_event: asyncio.Event):
        super().__init__(pages)
        self.stop_event = stop_event

    async def fetch(self, url: str) -> FetchResult:
        result = await super().fetch(url)
        self.stop_event.set()
        return result


class TestSiteCrawler:
    """Test discovery, deduplication, depth bound and cancellation."""

    @pytest.mark.asyncio
    async def test_discovers_reachable_urls(self):
        fetcher = site_graph()
        crawler = SiteCrawler(fetcher, ContentParser(), max_depth=3)

        urls = await crawler.crawl(ROOT)

        assert urls == {ROOT, url("/a"), url("/b"), url("/c"), url("/d"), url("/e")}

    @pytest.mark.asyncio
    async def test_never_fetches_a_url_twice(self):
        fetcher = site_graph()
        crawler = SiteCrawler(fetcher, ContentParser(), max_depth=5)

        await crawler.crawl(ROOT)

        assert len(fetcher.calls) == len(set(fetcher.calls))
        assert set(fetcher.calls) == {ROOT, url("/a"), url("/b"), url("/c"), url("/d"), url("/e"), url("/f")}

    @pytest.mark.asyncio
    async def test_does_not_recurse_past_max_depth(self):
        fetcher = site_graph()
        crawler = SiteCrawler(fetcher, ContentParser(), max_depth=1)

        urls = await crawler.crawl(ROOT)

        assert set(fetcher.calls) == {ROOT, url("/a"), url("/b")}
        # Links of the deepest level are reported but not fetched
        assert url("/c") in urls
        assert url("/d") not in urls

    @pytest.mark.asyncio
    async def test_depth_zero_fetches_only_the_seed(self):
        fetcher = site_graph()
        crawler = SiteCrawler(fetcher, ContentParser(), max_depth=0)

        urls = await crawler.crawl(ROOT)

        assert fetcher.calls == [ROOT]
        assert urls == {ROOT, url("/a"), url("/b")}

    @pytest.mark.asyncio
    async def test_failed_branch_does_not_abort_siblings(self):
        fetcher = site_graph()
        fetcher.errors.add(url("/a"))
        crawler = SiteCrawler(fetcher, ContentParser(), max_depth=3)

        urls = await crawler.crawl(ROOT)

        assert url("/a") in urls
        assert url("/c") in urls
        assert url("/d") in fetcher.calls

    @pytest.mark.asyncio
    async def test_stopped_before_start(self):
        fetcher = site_graph()
        crawler = SiteCrawler(fetcher, ContentParser())
        stop_event = asyncio.Event()
        stop_event.set()

        urls = await crawler.crawl(ROOT, stop_event)

        assert urls == set()
        assert fetcher.calls == []

    @pytest.mark.asyncio
    async def test_stop_returns_urls_found_so_far(self):
        stop_event = asyncio.Event()
        fetcher = StoppingFetcher(site_graph().pages, stop_event)
        crawler = SiteCrawler(fetcher, ContentParser())

        urls = await crawler.crawl(ROOT, stop_event)

        assert fetcher.calls == [ROOT]
        assert urls == {ROOT, url("/a"), url("/b")}

    @pytest.mark.asyncio
    async def test_non_html_pages_have_no_links(self):
        fetcher = FakeFetcher()

        async def fetch(target):
            fetcher.calls.append(target)
            return FetchResult(url=target, status_code=200, content='<a href="/a">a</a>', content_type='image/png')

        fetcher.fetch = fetch
        crawler = SiteCrawler(fetcher, ContentParser())

        assert await crawler.crawl(ROOT) == {ROOT}
