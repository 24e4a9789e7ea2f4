"""
Page indexer: keeps a page's stored state and its lemma postings consistent
with one fetch of the page.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .lemmatizer import Lemmatizer
from ..crawler.fetcher import WebFetcher
from ..crawler.parser import ContentParser
from ..crawler.urls import normalize_url, extract_path
from ..storage import repositories
from ..storage.database import DatabaseManager
from ..storage.models import Lemma, Page, Site


@dataclass
class PageIndexResult:
    """Outcome of indexing one URL."""
    url: str
    path: str
    status_code: int = 0
    lemma_count: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def unindex_page(session: AsyncSession, page: Page) -> int:
    """
    Remove a page together with its postings.

    Each lemma the page referenced loses one unit of frequency; lemmas left
    without pages are deleted.

    Returns:
        Number of lemmas deleted
    """
    lemma_ids = await repositories.lemma_ids_for_page(session, page.id)

    await repositories.delete_entries_by_page(session, page.id)
    deleted = await repositories.decrement_lemmas(session, lemma_ids)
    await repositories.delete_page_row(session, page.id)
    if page in session:
        session.expunge(page)
    return len(deleted)


async def clear_site_data(session: AsyncSession, site_id: int):
    """Delete every entry, page and lemma of a site."""
    await repositories.delete_entries_by_site(session, site_id)
    await repositories.delete_pages_by_site(session, site_id)
    await repositories.delete_lemmas_by_site(session, site_id)


class PageIndexer:
    """
    Fetches pages and writes them into the index.

    All writes for one site go through that site's lock, so lemma frequency
    updates of concurrently indexed pages never interleave.
    """

    def __init__(self, database: DatabaseManager, fetcher: WebFetcher,
                 parser: ContentParser, lemmatizer: Lemmatizer):
        self.database = database
        self.fetcher = fetcher
        self.parser = parser
        self.lemmatizer = lemmatizer
        self.logger = logging.getLogger(__name__)
        self._site_locks: Dict[int, asyncio.Lock] = {}

    def site_lock(self, site_id: int) -> asyncio.Lock:
        """The single-writer lock of a site."""
        lock = self._site_locks.get(site_id)
        if lock is None:
            lock = self._site_locks[site_id] = asyncio.Lock()
        return lock

    async def index_page(self, url: str, site: Site) -> PageIndexResult:
        """
        Fetch ``url`` and store it as a page of ``site``.

        A page already stored at the same path is unindexed first. Lemmas are
        recorded only for pages answering 200. Fetch failures are returned in
        the result and leave storage untouched.
        """
        url = normalize_url(url)
        path = extract_path(url, site.url)

        fetch_result = await self.fetcher.fetch(url)
        if not fetch_result.ok:
            return PageIndexResult(url=url, path=path, error=fetch_result.error)

        content = fetch_result.content or ''
        lemmas: Dict[str, int] = {}
        if fetch_result.status_code == 200:
            lemmas = self.lemmatizer.extract_lemmas(self.parser.extract_text(content))
        else:
            self.logger.warning(f"Page returned non-200 status: {url} - {fetch_result.status_code}")

        async with self.site_lock(site.id):
            async with self.database.transaction() as session:
                existing = await repositories.find_page(session, site.id, path)
                if existing is not None:
                    await unindex_page(session, existing)

                page = await repositories.add_page(session, site.id, path, fetch_result.status_code, content)
                if lemmas:
                    await self._store_lemmas(session, site.id, page.id, lemmas)

        self.logger.debug(f"Indexed {url} ({fetch_result.status_code}): {len(lemmas)} lemmas")
        return PageIndexResult(
            url=url,
            path=path,
            status_code=fetch_result.status_code,
            lemma_count=len(lemmas)
        )

    async def _store_lemmas(self, session: AsyncSession, site_id: int, page_id: int, lemmas: Dict[str, int]):
        known = {lemma.lemma: lemma for lemma in await repositories.find_lemmas(session, site_id, lemmas)}

        for text in lemmas:
            lemma = known.get(text)
            if lemma is None:
                lemma = Lemma(site_id=site_id, lemma=text, frequency=1)
                session.add(lemma)
                known[text] = lemma
            else:
                lemma.frequency += 1
        await session.flush()

        await repositories.add_entries(
            session, page_id, {known[text].id: float(count) for text, count in lemmas.items()}
        )

    async def delete_page(self, site: Site, path: str) -> bool:
        """Unindex the page stored at ``path``; False if there is none."""
        async with self.site_lock(site.id):
            async with self.database.transaction() as session:
                page = await repositories.find_page(session, site.id, path)
                if page is None:
                    return False
                deleted = await unindex_page(session, page)

        self.logger.debug(f"Deleted page {path} of {site.url}, {deleted} lemmas removed")
        return True

    async def clear_site(self, site: Site, delete_site: bool = False):
        """Wipe all indexed data of a site, optionally deleting the site row too."""
        async with self.site_lock(site.id):
            async with self.database.transaction() as session:
                await clear_site_data(session, site.id)
                if delete_site:
                    await repositories.delete_site(session, site.id)

        if delete_site:
            self._site_locks.pop(site.id, None)
        self.logger.info(f"Cleaned data for site: {site.url}" + (" (row deleted)" if delete_site else ""))
