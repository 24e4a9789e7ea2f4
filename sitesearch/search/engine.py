"""
Ranked full-text search over the lemma index.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .snippet import build_snippet
from ..crawler.parser import ContentParser
from ..crawler.urls import canonical_site_url
from ..indexing.lemmatizer import Lemmatizer
from ..storage import repositories
from ..storage.database import DatabaseManager
from ..storage.models import Lemma, Site, SiteStatus
from ..utils.config import SearchConfig
from ..utils.monitoring import IndexingMonitor


EMPTY_QUERY_ERROR = "empty query"
NO_INDEXED_SITES_ERROR = "no indexed sites"


@dataclass
class SearchResult:
    """One ranked page."""
    site: str
    site_name: str
    uri: str
    title: str
    snippet: str
    relevance: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'site': self.site,
            'siteName': self.site_name,
            'uri': self.uri,
            'title': self.title,
            'snippet': self.snippet,
            'relevance': self.relevance,
        }


@dataclass
class SearchResponse:
    """Outcome of a search; ``error`` is set when ``result`` is False."""
    result: bool
    count: int = 0
    data: List[SearchResult] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if not self.result:
            return {'result': False, 'error': self.error}
        return {
            'result': True,
            'count': self.count,
            'data': [item.to_dict() for item in self.data],
        }


@dataclass
class _Candidate:
    site: Site
    page_id: int
    relevance: float


class SearchEngine:
    """
    Answers queries against the indexed sites.

    For each searched site the query lemmas present on more than
    ``frequency_threshold`` of its pages are dropped. The posting lists of the
    remaining lemmas are intersected starting from the rarest one, and every
    surviving page is scored by the summed weights of its entries, normalized
    by the best page of the site.
    """

    def __init__(self, database: DatabaseManager, lemmatizer: Lemmatizer, parser: ContentParser,
                 config: Optional[SearchConfig] = None, monitor: Optional[IndexingMonitor] = None):
        self.database = database
        self.lemmatizer = lemmatizer
        self.parser = parser
        self.config = config or SearchConfig()
        self.monitor = monitor
        self.logger = logging.getLogger(__name__)

    async def search(self, query: str, site_url: Optional[str] = None,
                     offset: int = 0, limit: Optional[int] = None) -> SearchResponse:
        """
        Search ``query`` in one site or in every indexed site.

        Args:
            query: Free-text query
            site_url: Restrict the search to this site
            offset: Number of ranked results to skip
            limit: Maximum number of results returned

        Returns:
            SearchResponse with the total match count and the requested page
        """
        start_time = time.time()

        if not query or not query.strip():
            self._record('empty', start_time)
            return SearchResponse(result=False, error=EMPTY_QUERY_ERROR)

        if limit is None:
            limit = self.config.default_limit

        try:
            async with self.database.transaction() as session:
                sites = await self._sites_to_search(session, site_url)
                if not sites:
                    self._record('no_sites', start_time)
                    return SearchResponse(result=False, error=NO_INDEXED_SITES_ERROR)

                lemmas = self.lemmatizer.extract_query_lemmas(query)
                candidates: List[_Candidate] = []
                if lemmas:
                    for site in sites:
                        candidates.extend(await self._search_site(session, site, lemmas))

                # Stable: ties keep site order, then page order
                candidates.sort(key=lambda candidate: candidate.relevance, reverse=True)

                total = len(candidates)
                start = min(max(offset, 0), total)
                end = min(start + max(limit, 0), total)

                query_words = lemmas + query.split()
                data = await self._build_results(session, candidates[start:end], query_words)

        except Exception as e:
            self.logger.error(f"Search error for query '{query}': {e}", exc_info=True)
            self._record('error', start_time)
            return SearchResponse(result=False, error=f"search failed: {e}")

        self.logger.debug(f"Query '{query}': {total} matches, returning {len(data)}")
        self._record('ok', start_time)
        return SearchResponse(result=True, count=total, data=data)

    async def _sites_to_search(self, session: AsyncSession, site_url: Optional[str]) -> List[Site]:
        if site_url:
            sites = await repositories.find_sites_by_url(session, canonical_site_url(site_url))
            return [site for site in sites[:1] if site.status == SiteStatus.INDEXED]
        return await repositories.find_sites(session, SiteStatus.INDEXED)

    async def _search_site(self, session: AsyncSession, site: Site, lemmas: List[str]) -> List[_Candidate]:
        found = await repositories.find_lemmas(session, site.id, lemmas)
        selected = await self._filter_common(session, site, found)
        if not selected:
            return []

        selected.sort(key=lambda lemma: lemma.frequency)

        page_ids = await repositories.page_ids_for_lemma(session, selected[0].id)
        for lemma in selected[1:]:
            if not page_ids:
                break
            page_ids &= await repositories.page_ids_for_lemma(session, lemma.id)

        if not page_ids:
            return []

        relevance = await repositories.relevance_by_page(
            session, page_ids, [lemma.id for lemma in selected]
        )
        max_relevance = max(relevance.values(), default=0.0)

        candidates = []
        for page_id in sorted(page_ids):
            value = relevance.get(page_id, 0.0)
            if max_relevance > 0:
                value /= max_relevance
            candidates.append(_Candidate(site=site, page_id=page_id, relevance=value))
        return candidates

    async def _filter_common(self, session: AsyncSession, site: Site, lemmas: List[Lemma]) -> List[Lemma]:
        """Drop lemmas present on more than the threshold share of the site's pages."""
        if not lemmas:
            return []

        total_pages = await repositories.count_pages(session, site.id)
        if total_pages == 0:
            return []

        threshold = self.config.frequency_threshold
        selected = [lemma for lemma in lemmas if lemma.frequency / total_pages <= threshold]

        dropped = len(lemmas) - len(selected)
        if dropped:
            self.logger.debug(f"Excluded {dropped} common lemmas on {site.url}")
        return selected

    async def _build_results(self, session: AsyncSession, candidates: List[_Candidate],
                             query_words: List[str]) -> List[SearchResult]:
        pages = {page.id: page for page in await repositories.find_pages(session, [c.page_id for c in candidates])}

        results = []
        for candidate in candidates:
            page = pages.get(candidate.page_id)
            if page is None:
                continue
            text = self.parser.extract_text(page.content)
            results.append(SearchResult(
                site=candidate.site.url,
                site_name=candidate.site.name,
                uri=page.path,
                title=self.parser.extract_title(page.content),
                snippet=build_snippet(text, query_words, self.config.snippet_length),
                relevance=candidate.relevance
            ))
        return results

    def _record(self, outcome: str, start_time: float):
        if self.monitor:
            self.monitor.record_search(outcome, time.time() - start_time)
