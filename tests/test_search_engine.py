"""Tests for ranked search: common-lemma filtering, intersection, ranking and pagination."""

import pytest
import pytest_asyncio

from sitesearch.search.engine import SearchEngine, EMPTY_QUERY_ERROR, NO_INDEXED_SITES_ERROR
from sitesearch.storage import repositories
from sitesearch.storage.models import SiteStatus
from sitesearch.utils.config import SearchConfig
from sitesearch.utils.monitoring import IndexingMonitor

from conftest import SITE_URL, make_html


async def index_pages(fetcher, indexer, site, texts):
    for number, text in enumerate(texts):
        url = f"{site.url}/p{number}"
        fetcher.set_page(url, make_html(f"Страница {number}", text))
        await indexer.index_page(url, site)


@pytest.fixture
def engine(database, lemmatizer, parser):
    return SearchEngine(database, lemmatizer, parser, SearchConfig(), IndexingMonitor())


class TestSearchErrors:
    """Test user-facing search errors."""

    @pytest.mark.asyncio
    async def test_empty_query(self, engine, site):
        for query in ("", "   ", None):
            response = await engine.search(query)
            assert not response.result
            assert response.error == EMPTY_QUERY_ERROR

    @pytest.mark.asyncio
    async def test_no_indexed_sites(self, engine, database):
        response = await engine.search("кошка")
        assert response.error == NO_INDEXED_SITES_ERROR

    @pytest.mark.asyncio
    async def test_failed_site_is_not_searched(self, engine, database, site):
        async with database.transaction() as session:
            await repositories.set_site_status(session, site.id, SiteStatus.FAILED, "boom")

        response = await engine.search("кошка", site_url=SITE_URL)

        assert not response.result
        assert response.error == NO_INDEXED_SITES_ERROR
        assert response.to_dict() == {'result': False, 'error': NO_INDEXED_SITES_ERROR}

    @pytest.mark.asyncio
    async def test_unknown_site_filter(self, engine, site):
        response = await engine.search("кошка", site_url="http://unknown.test")
        assert response.error == NO_INDEXED_SITES_ERROR

    @pytest.mark.asyncio
    async def test_storage_failure_is_reported(self, engine, site, monkeypatch):
        async def broken(*args, **kwargs):
            raise RuntimeError("database is locked")

        monkeypatch.setattr(repositories, "find_lemmas", broken)

        response = await engine.search("кошка")

        assert not response.result
        assert response.error == "search failed: database is locked"


class TestCommonLemmaFilter:
    """Lemmas on more than 80% of a site's pages are ignored."""

    @pytest_asyncio.fixture
    async def ten_pages(self, fetcher, indexer, site):
        texts = []
        for number in range(10):
            words = []
            if number < 9:
                words.append("кошка")
            if number < 8:
                words.append("собака")
            words.append("дом")
            texts.append(" ".join(words))
        await index_pages(fetcher, indexer, site, texts)

    @pytest.mark.asyncio
    async def test_lemma_on_nine_of_ten_pages_is_excluded(self, engine, ten_pages):
        response = await engine.search("кошка")

        assert response.result
        assert response.count == 0
        assert response.data == []

    @pytest.mark.asyncio
    async def test_lemma_on_eight_of_ten_pages_is_included(self, engine, ten_pages):
        response = await engine.search("собака")

        assert response.result
        assert response.count == 8

    @pytest.mark.asyncio
    async def test_excluded_lemma_does_not_restrict_results(self, engine, ten_pages):
        response = await engine.search("кошка собака")
        assert response.count == 8


class TestRanking:
    """Test intersection, relevance and pagination."""

    @pytest.mark.asyncio
    async def test_pages_must_contain_every_lemma(self, engine, fetcher, indexer, site):
        await index_pages(fetcher, indexer, site, [
            "кошка собака", "кошка", "собака", "лес", "река", "дом",
        ])

        response = await engine.search("кошки и собаки")

        assert response.count == 1
        assert response.data[0].uri == "/p0"

    @pytest.mark.asyncio
    async def test_relevance_is_normalized_by_best_page(self, engine, fetcher, indexer, site):
        await index_pages(fetcher, indexer, site, [
            "лес", "лес лес лес лес", "лес лес", "дом", "река", "слон",
        ])

        response = await engine.search("лес")

        assert [item.uri for item in response.data] == ["/p1", "/p2", "/p0"]
        assert [item.relevance for item in response.data] == [1.0, 0.5, 0.25]

    @pytest.mark.asyncio
    async def test_result_fields(self, engine, fetcher, indexer, site):
        await index_pages(fetcher, indexer, site, ["большой лес", "дом", "река"])

        response = await engine.search("лесу")
        item = response.data[0]

        assert item.site == SITE_URL
        assert item.site_name == "Test Site"
        assert item.uri == "/p0"
        assert item.title == "Страница 0"
        assert "<b>лес</b>" in item.snippet
        assert item.to_dict()['siteName'] == "Test Site"

    @pytest.mark.asyncio
    async def test_pagination(self, engine, fetcher, indexer, site):
        # 10 matching pages out of 13, lemma weight grows with the page number
        texts = [" ".join(["лес"] * (number + 1)) for number in range(10)] + ["дом", "река", "слон"]
        await index_pages(fetcher, indexer, site, texts)

        response = await engine.search("лес", offset=5, limit=3)

        assert response.count == 10
        assert [item.uri for item in response.data] == ["/p4", "/p3", "/p2"]

        response = await engine.search("лес", offset=20, limit=3)
        assert response.result
        assert response.count == 10
        assert response.data == []

    @pytest.mark.asyncio
    async def test_default_limit(self, database, lemmatizer, parser, fetcher, indexer, site):
        engine = SearchEngine(database, lemmatizer, parser, SearchConfig(default_limit=2))
        await index_pages(fetcher, indexer, site, ["лес", "лес", "лес", "дом", "река"])

        response = await engine.search("лес")

        assert response.count == 3
        assert len(response.data) == 2

    @pytest.mark.asyncio
    async def test_results_merge_across_sites(self, engine, database, fetcher, indexer, site):
        async with database.transaction() as session:
            other = await repositories.create_site(session, "http://other.test", "Other", SiteStatus.INDEXED)

        await index_pages(fetcher, indexer, site, ["лес", "дом", "река"])
        await index_pages(fetcher, indexer, other, ["лес лес", "дом", "река"])

        response = await engine.search("лес")
        assert {(item.site, item.relevance) for item in response.data} == {
            (SITE_URL, 1.0), ("http://other.test", 1.0)
        }

        response = await engine.search("лес", site_url="http://other.test/")
        assert [item.site for item in response.data] == ["http://other.test"]

    @pytest.mark.asyncio
    async def test_query_without_lemmas(self, engine, fetcher, indexer, site):
        await index_pages(fetcher, indexer, site, ["лес", "дом", "река"])

        response = await engine.search("и в hello")

        assert response.result
        assert response.count == 0
