"""
Application wiring: builds and owns every component of one site search instance.
"""

import logging
from typing import Optional

from .crawler.fetcher import WebFetcher
from .crawler.parser import ContentParser
from .crawler.site_crawler import SiteCrawler
from .indexing.indexer import PageIndexer
from .indexing.lemmatizer import Lemmatizer, Morphology
from .indexing.orchestrator import IndexingOrchestrator
from .search.engine import SearchEngine
from .statistics import StatisticsService
from .storage.database import DatabaseManager
from .utils.config import Config
from .utils.monitoring import IndexingMonitor, initialize_monitoring


class SiteSearchApp:
    """
    Coordinates all components.

    ``initialize`` must be awaited on the event loop the components will run
    on; ``close`` stops an active indexing run and releases connections.
    """

    def __init__(self, config: Config, morphology: Optional[Morphology] = None):
        self.config = config
        self.morphology = morphology
        self.logger = logging.getLogger(__name__)

        self.monitor: Optional[IndexingMonitor] = None
        self.database: Optional[DatabaseManager] = None
        self.fetcher: Optional[WebFetcher] = None
        self.parser: Optional[ContentParser] = None
        self.lemmatizer: Optional[Lemmatizer] = None
        self.crawler: Optional[SiteCrawler] = None
        self.indexer: Optional[PageIndexer] = None
        self.orchestrator: Optional[IndexingOrchestrator] = None
        self.search_engine: Optional[SearchEngine] = None
        self.statistics: Optional[StatisticsService] = None

    async def initialize(self):
        """Initialize all components."""
        try:
            self.monitor = initialize_monitoring(
                enable_server=self.config.monitoring.metrics_enabled,
                prometheus_port=self.config.monitoring.prometheus_port
            )

            self.database = DatabaseManager(self.config.database)
            await self.database.initialize()

            crawler_config = self.config.crawler
            self.fetcher = WebFetcher(
                user_agent=crawler_config.user_agent,
                referrer=crawler_config.referrer,
                request_timeout=crawler_config.request_timeout,
                politeness_delay=crawler_config.politeness_delay,
                max_concurrent_requests=crawler_config.max_concurrent_requests,
                monitor=self.monitor
            )
            await self.fetcher.start()

            self.parser = ContentParser()
            self.lemmatizer = Lemmatizer(self.morphology)
            self.crawler = SiteCrawler(self.fetcher, self.parser, max_depth=crawler_config.max_depth)
            self.indexer = PageIndexer(self.database, self.fetcher, self.parser, self.lemmatizer)

            self.orchestrator = IndexingOrchestrator(
                self.config, self.database, self.crawler, self.indexer, self.monitor
            )
            self.search_engine = SearchEngine(
                self.database, self.lemmatizer, self.parser, self.config.search, self.monitor
            )
            self.statistics = StatisticsService(self.config, self.database, self.orchestrator)

            self.logger.info(f"Site search initialized with {len(self.config.sites)} sites")

        except Exception as e:
            self.logger.error(f"Failed to initialize site search: {e}")
            raise

    async def close(self):
        """Stop indexing and release all resources."""
        if self.orchestrator and self.orchestrator.is_indexing_active():
            await self.orchestrator.stop_indexing()

        if self.fetcher:
            await self.fetcher.close()

        if self.database:
            await self.database.close()

        self.logger.info("Site search closed")
