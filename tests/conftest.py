"""Shared fixtures: an in-process fake web, a fake morphology and a temporary database."""

import asyncio
from typing import Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from sitesearch.crawler.fetcher import FetchResult
from sitesearch.crawler.parser import ContentParser
from sitesearch.crawler.urls import normalize_url
from sitesearch.indexing.indexer import PageIndexer
from sitesearch.indexing.lemmatizer import Lemmatizer
from sitesearch.storage import repositories
from sitesearch.storage.database import DatabaseManager
from sitesearch.storage.models import IndexEntry, Lemma, SiteStatus
from sitesearch.utils.config import Config, DatabaseConfig, IndexingConfig, SiteConfig


SITE_URL = "http://site.test"

# word -> (first morphological tag, normal form)
DICTIONARY = {
    'кошка': ('NOUN,anim,femn sing,nomn', 'кошка'),
    'кошки': ('NOUN,anim,femn sing,gent', 'кошка'),
    'кошку': ('NOUN,anim,femn sing,accs', 'кошка'),
    'собака': ('NOUN,anim,femn sing,nomn', 'собака'),
    'собаки': ('NOUN,anim,femn plur,nomn', 'собака'),
    'лес': ('NOUN,inan,masc sing,nomn', 'лес'),
    'леса': ('NOUN,inan,masc sing,gent', 'лес'),
    'лесу': ('NOUN,inan,masc sing,loc2', 'лес'),
    'зверь': ('NOUN,anim,masc sing,nomn', 'зверь'),
    'звери': ('NOUN,anim,masc plur,nomn', 'зверь'),
    'слон': ('NOUN,anim,masc sing,nomn', 'слон'),
    'дом': ('NOUN,inan,masc sing,nomn', 'дом'),
    'река': ('NOUN,inan,femn sing,nomn', 'река'),
    'большой': ('ADJF,Qual masc,sing,nomn', 'большой'),
    'и': ('CONJ', 'и'),
    'в': ('PREP', 'в'),
    'не': ('PRCL', 'не'),
    'ой': ('INTJ', 'ой'),
    'он': ('NPRO,masc,3per,Anph sing,nomn', 'он'),
    'этот': ('ADJF,Apro,Subx,Anph masc,sing,nomn', 'этот'),
}


class FakeMorphology:
    """Dictionary-backed morphology covering the words used in tests."""

    def morph_info(self, word: str) -> List[str]:
        entry = DICTIONARY.get(word)
        return [entry[0]] if entry else []

    def normal_forms(self, word: str) -> List[str]:
        entry = DICTIONARY.get(word)
        return [entry[1]] if entry else []


class FakeFetcher:
    """Serves pages from a dict keyed by normalized URL; unknown URLs answer 404."""

    def __init__(self, pages: Optional[Dict[str, Tuple[int, str]]] = None, errors=None):
        self.pages: Dict[str, Tuple[int, str]] = {
            normalize_url(url): page for url, page in (pages or {}).items()
        }
        self.errors = {normalize_url(url) for url in (errors or [])}
        self.calls: List[str] = []

    def set_page(self, url: str, html: str, status: int = 200):
        self.pages[normalize_url(url)] = (status, html)

    async def fetch(self, url: str) -> FetchResult:
        url = normalize_url(url)
        self.calls.append(url)
        await asyncio.sleep(0)

        if url in self.errors:
            return FetchResult(url=url, status_code=0, error="Client error: connection refused")

        status, html = self.pages.get(url, (404, ''))
        return FetchResult(url=url, status_code=status, content=html, content_type='text/html')


class BlockingFetcher(FakeFetcher):
    """Fetcher whose requests never complete until cancelled."""

    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()

    async def fetch(self, url: str) -> FetchResult:
        self.calls.append(normalize_url(url))
        self.started.set()
        await asyncio.Event().wait()


def make_html(title: str = '', text: str = '', links=()) -> str:
    anchors = ''.join(f'<a href="{link}">{link}</a>' for link in links)
    return (
        f"<html><head><title>{title}</title></head>"
        f"<body><p>{text}</p>{anchors}</body></html>"
    )


async def lemma_frequencies(database: DatabaseManager, site_id: int) -> Dict[str, int]:
    async with database.transaction() as session:
        return {lemma.lemma: lemma.frequency for lemma in await repositories.find_lemmas_by_site(session, site_id)}


async def lemma_page_counts(database: DatabaseManager, site_id: int) -> Dict[str, int]:
    """Distinct pages per lemma, counted from the index entries."""
    async with database.transaction() as session:
        result = await session.execute(
            select(Lemma.lemma, func.count(func.distinct(IndexEntry.page_id)))
            .join(IndexEntry, IndexEntry.lemma_id == Lemma.id)
            .where(Lemma.site_id == site_id)
            .group_by(Lemma.lemma)
        )
        return dict(result.all())


@pytest.fixture
def morphology():
    return FakeMorphology()


@pytest.fixture
def lemmatizer(morphology):
    return Lemmatizer(morphology)


@pytest.fixture
def parser():
    return ContentParser()


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def config(tmp_path):
    return Config(
        sites=[SiteConfig(url=SITE_URL, name="Test Site")],
        indexing=IndexingConfig(heartbeat_interval=2, shutdown_timeout=2.0),
        database=DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'sitesearch.db'}"),
    )


@pytest_asyncio.fixture
async def database(config):
    manager = DatabaseManager(config.database)
    await manager.initialize()
    yield manager
    await manager.close()


@pytest_asyncio.fixture
async def site(database):
    async with database.transaction() as session:
        return await repositories.create_site(session, SITE_URL, "Test Site", SiteStatus.INDEXED)


@pytest.fixture
def indexer(database, fetcher, parser, lemmatizer):
    return PageIndexer(database, fetcher, parser, lemmatizer)
