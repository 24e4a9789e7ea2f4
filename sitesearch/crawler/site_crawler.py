"""
Depth-bounded concurrent discovery of a site's pages.
"""

import asyncio
import logging
import time
from typing import Optional, Set
from dataclasses import dataclass, field

from .fetcher import WebFetcher
from .parser import ContentParser
from .urls import normalize_url


@dataclass
class CrawlSession:
    """State shared by every branch of one site crawl."""
    seed_url: str
    stop_event: asyncio.Event
    visited: Set[str] = field(default_factory=set)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    errors: int = 0
    start_time: float = field(default_factory=time.time)

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()


class SiteCrawler:
    """
    Discovers all in-domain URLs reachable from a seed URL.

    Every node marks itself visited, fetches its page, extracts links and
    explores the unvisited ones one level deeper in parallel, joining the
    children's results before returning. Nodes at ``max_depth`` still report
    their links but do not recurse.
    """

    def __init__(self, fetcher: WebFetcher, parser: ContentParser, max_depth: int = 3):
        self.fetcher = fetcher
        self.parser = parser
        self.max_depth = max_depth
        self.logger = logging.getLogger(__name__)

    async def crawl(self, seed_url: str, stop_event: Optional[asyncio.Event] = None) -> Set[str]:
        """
        Crawl from ``seed_url``.

        Setting ``stop_event`` stops scheduling new fetches; the URLs found so
        far are returned.
        """
        session = CrawlSession(
            seed_url=normalize_url(seed_url),
            stop_event=stop_event or asyncio.Event()
        )

        urls = await self._visit(session, session.seed_url, 0)

        elapsed = time.time() - session.start_time
        self.logger.info(
            f"Crawl of {session.seed_url} finished: {len(urls)} URLs found, "
            f"{len(session.visited)} fetched, {session.errors} errors, {elapsed:.1f}s"
            + (" (stopped)" if session.stopped else "")
        )
        return urls

    async def _visit(self, session: CrawlSession, url: str, depth: int) -> Set[str]:
        if session.stopped:
            return set()

        async with session.lock:
            if url in session.visited or depth > self.max_depth:
                return set()
            session.visited.add(url)

        found = {url}
        links = await self._fetch_links(session, url)
        found |= links

        if depth < self.max_depth and not session.stopped:
            children = [
                self._visit(session, link, depth + 1)
                for link in links
                if link not in session.visited
            ]
            if children:
                for child_urls in await asyncio.gather(*children):
                    found |= child_urls

        return found

    async def _fetch_links(self, session: CrawlSession, url: str) -> Set[str]:
        """Links of one page; any failure yields an empty set."""
        try:
            result = await self.fetcher.fetch(url)
            if not result.ok:
                session.errors += 1
                self.logger.warning(f"Error crawling page {url}: {result.error}")
                return set()

            if not result.is_html or not result.content:
                return set()

            links = self.parser.extract_links(result.content, url)
            return {normalize_url(link) for link in links}

        except Exception as e:
            session.errors += 1
            self.logger.error(f"Error parsing page {url}: {e}", exc_info=True)
            return set()
