"""
Index statistics: totals across all sites and one detail row per configured site.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TYPE_CHECKING

from .crawler.urls import canonical_site_url
from .storage import repositories
from .storage.database import DatabaseManager
from .storage.models import SiteStatus
from .utils.config import Config, SiteConfig

if TYPE_CHECKING:
    from .indexing.orchestrator import IndexingOrchestrator


NOT_INDEXED_ERROR = "Site is not indexed"


def epoch_seconds(moment: Optional[datetime]) -> int:
    """Seconds since the epoch; naive datetimes are taken as UTC."""
    if moment is None:
        return 0
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp())


class StatisticsService:
    """Derives statistics from the configuration, storage and the orchestrator state."""

    def __init__(self, config: Config, database: DatabaseManager,
                 orchestrator: Optional['IndexingOrchestrator'] = None):
        self.config = config
        self.database = database
        self.orchestrator = orchestrator
        self.logger = logging.getLogger(__name__)

    async def get_statistics(self) -> Dict[str, Any]:
        """
        Collect statistics.

        Returns:
            ``{"result": True, "statistics": {"total": {...}, "detailed": [...]}}``
        """
        async with self.database.transaction() as session:
            total = {
                'sites': len(self.config.sites),
                'pages': await repositories.count_pages(session),
                'lemmas': await repositories.count_lemmas(session),
                'indexing': self.orchestrator.is_indexing_active() if self.orchestrator else False,
            }

            detailed = []
            for site_config in self.config.sites:
                detailed.append(await self._site_details(session, site_config))

        return {'result': True, 'statistics': {'total': total, 'detailed': detailed}}

    async def _site_details(self, session, site_config: SiteConfig) -> Dict[str, Any]:
        item = {'url': site_config.url, 'name': site_config.name}

        site = await repositories.find_site_by_url(session, canonical_site_url(site_config.url))
        if site is None:
            item.update({
                'status': SiteStatus.FAILED.value,
                'statusTime': 0,
                'error': NOT_INDEXED_ERROR,
                'pages': 0,
                'lemmas': 0,
            })
            return item

        item.update({
            'status': site.status.value,
            'statusTime': epoch_seconds(site.status_time),
            'error': site.last_error,
            'pages': await repositories.count_pages(session, site.id),
            'lemmas': await repositories.count_lemmas(session, site.id),
        })
        return item
