"""
Indexing orchestrator that drives each configured site through discovery,
fetching and indexing, and tracks the per-site status.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .indexer import PageIndexer
from ..crawler.site_crawler import SiteCrawler
from ..crawler.urls import canonical_site_url, extract_path, is_under_site, normalize_url
from ..storage import repositories
from ..storage.database import DatabaseManager
from ..storage.models import Site, SiteStatus
from ..utils.config import Config, SiteConfig
from ..utils.logger import get_site_logger
from ..utils.monitoring import IndexingMonitor


STOPPED_BY_USER = "Indexing stopped by user"


def critical_error_message(error: BaseException) -> str:
    return f"Critical error: {type(error).__name__} - {error}"


@dataclass
class IndexingRun:
    """One full indexing run over all configured sites."""
    stop_event: asyncio.Event = field(default_factory=asyncio.Event)
    tasks: Dict[str, asyncio.Task] = field(default_factory=dict)
    supervisor: Optional[asyncio.Task] = None
    start_time: float = field(default_factory=time.time)

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()


class IndexingOrchestrator:
    """
    Starts and stops full indexing runs and re-indexes single pages.

    A full run launches one task per configured site. The indexing-active flag
    belongs to this instance and gates only the start of a new full run.
    """

    def __init__(self, config: Config, database: DatabaseManager, crawler: SiteCrawler,
                 indexer: PageIndexer, monitor: Optional[IndexingMonitor] = None):
        self.config = config
        self.database = database
        self.crawler = crawler
        self.indexer = indexer
        self.monitor = monitor
        self.logger = logging.getLogger(__name__)

        self._active = False
        self._stopping = False
        self._run: Optional[IndexingRun] = None

    def is_indexing_active(self) -> bool:
        return self._active

    async def start_full_indexing(self) -> bool:
        """
        Launch indexing of every configured site.

        Returns:
            False if a run is already active or still stopping, True otherwise
        """
        if self._active:
            self.logger.warning("Indexing is already running")
            return False
        if self._stopping:
            self.logger.warning("Previous indexing run is still stopping")
            return False

        self._active = True
        self._set_active_metric(True)

        run = IndexingRun()
        self._run = run

        for site_config in self.config.sites:
            site_url = canonical_site_url(site_config.url)
            if site_url not in run.tasks:
                run.tasks[site_url] = asyncio.create_task(self._index_site(site_config, run))
        run.supervisor = asyncio.create_task(self._supervise(run))

        self.logger.info(f"Started indexing of {len(run.tasks)} sites")
        return True

    async def stop_indexing(self) -> bool:
        """
        Stop the active run.

        Outstanding site tasks are cancelled and given up to
        ``indexing.shutdown_timeout`` seconds to unwind; every site still in
        INDEXING then becomes FAILED.

        Returns:
            False if no run is active, True otherwise
        """
        if not self._active:
            self.logger.warning("Indexing is not running")
            return False

        self._active = False
        self._stopping = True
        self._set_active_metric(False)
        self.logger.info("Stopping indexing...")

        try:
            await self._cancel_run(self._run)

            async with self.database.transaction() as session:
                failed = await repositories.replace_site_status(
                    session, SiteStatus.INDEXING, SiteStatus.FAILED, STOPPED_BY_USER
                )
        finally:
            self._stopping = False

        for url in failed:
            self.logger.info(f"Site marked as failed after stop: {url}")
        return True

    async def _cancel_run(self, run: Optional[IndexingRun]):
        if run is None:
            return

        run.stop_event.set()
        pending: List[asyncio.Task] = [task for task in run.tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        if run.supervisor is not None and not run.supervisor.done():
            pending.append(run.supervisor)

        if pending:
            _, still_running = await asyncio.wait(
                pending, timeout=self.config.indexing.shutdown_timeout
            )
            if still_running:
                self.logger.warning(
                    f"{len(still_running)} indexing tasks did not finish within "
                    f"{self.config.indexing.shutdown_timeout}s"
                )

    async def index_single_page(self, url: str) -> bool:
        """
        Re-index one page of a configured site.

        Returns:
            False if the URL is outside every configured site or an unexpected
            error occurred, True otherwise
        """
        site_config = self._find_site_config(url)
        if site_config is None:
            self.logger.warning(f"Page is outside the configured sites: {url}")
            return False

        site_logger = get_site_logger(__name__, site=site_config.url)
        try:
            site_url = canonical_site_url(site_config.url)
            async with self.database.transaction() as session:
                site = await repositories.find_site_by_url(session, site_url)
                if site is None:
                    site = await repositories.create_site(
                        session, site_url, site_config.name, SiteStatus.INDEXED
                    )

            await self.indexer.delete_page(site, extract_path(normalize_url(url), site.url))

            result = await self.indexer.index_page(url, site)
            if result.ok:
                site_logger.log_url_event(logging.INFO, result.url, "Page indexed")
                self._record_page(site.url, True)
            else:
                site_logger.log_url_event(logging.WARNING, result.url, f"Page not indexed ({result.error})")
                self._record_page(site.url, False)
            return True

        except Exception as e:
            site_logger.error(f"Error indexing page {url}: {e}", exc_info=True)
            return False

    async def wait(self):
        """Wait until the current run has finished."""
        run = self._run
        if run is not None and run.supervisor is not None:
            await asyncio.gather(run.supervisor, return_exceptions=True)

    async def _supervise(self, run: IndexingRun):
        await asyncio.gather(*run.tasks.values(), return_exceptions=True)

        if self._run is run and self._active:
            self._active = False
            self._set_active_metric(False)
            self.logger.info(f"Indexing finished in {time.time() - run.start_time:.1f}s")

    async def _index_site(self, site_config: SiteConfig, run: IndexingRun):
        """Rebuild the index of one site; failures are confined to this site."""
        site_url = canonical_site_url(site_config.url)
        site_logger = get_site_logger(__name__, site=site_url)
        site: Optional[Site] = None

        try:
            site = await self._prepare_site(site_url, site_config.name)
            site_logger.info("Site indexing started")

            urls = await self.crawler.crawl(site_url, run.stop_event)
            if self.monitor:
                self.monitor.update_urls_discovered(site_url, len(urls))
            site_logger.info(f"Discovered {len(urls)} URLs")

            indexed = 0
            for url in urls:
                if run.stopped:
                    site_logger.info("Stop requested, aborting site indexing")
                    break

                result = await self.indexer.index_page(url, site)
                if not result.ok:
                    site_logger.log_url_event(logging.WARNING, url, f"Skipping page ({result.error})")
                    self._record_page(site_url, False)
                    continue

                indexed += 1
                self._record_page(site_url, True)
                if indexed % self.config.indexing.heartbeat_interval == 0:
                    async with self.database.transaction() as session:
                        await repositories.touch_site(session, site.id)

            if run.stopped:
                return

            async with self.database.transaction() as session:
                await repositories.set_site_status(session, site.id, SiteStatus.INDEXED)
            self._record_site(SiteStatus.INDEXED)
            site_logger.info(f"Site indexed: {indexed} pages")

        except asyncio.CancelledError:
            site_logger.info("Site indexing cancelled")
            raise

        except Exception as e:
            site_logger.error(f"Site indexing failed: {e}", exc_info=True)
            if site is not None:
                await self._mark_failed(site, critical_error_message(e))
            self._record_site(SiteStatus.FAILED)

    async def _prepare_site(self, site_url: str, name: str) -> Site:
        """Resolve the single live Site row for ``site_url`` and wipe its data."""
        async with self.database.transaction() as session:
            sites = await repositories.find_sites_by_url(session, site_url)
            if not sites:
                sites = [await repositories.create_site(session, site_url, name, SiteStatus.INDEXING)]

        site, extras = sites[0], sites[1:]
        for extra in extras:
            self.logger.warning(f"Removing duplicate site row {extra.id} for {site_url}")
            await self.indexer.clear_site(extra, delete_site=True)

        await self.indexer.clear_site(site)

        async with self.database.transaction() as session:
            await repositories.set_site_status(session, site.id, SiteStatus.INDEXING)
        return site

    async def _mark_failed(self, site: Site, message: str):
        try:
            async with self.database.transaction() as session:
                await repositories.set_site_status(session, site.id, SiteStatus.FAILED, message)
        except Exception as e:
            self.logger.error(f"Failed to record failure of {site.url}: {e}")

    def _find_site_config(self, url: str) -> Optional[SiteConfig]:
        for site_config in self.config.sites:
            if is_under_site(url, site_config.url):
                return site_config
        return None

    def _record_page(self, site_url: str, ok: bool):
        if not self.monitor:
            return
        if ok:
            self.monitor.record_page_indexed(site_url)
        else:
            self.monitor.record_page_error(site_url)

    def _record_site(self, status: SiteStatus):
        if self.monitor:
            self.monitor.record_site_finished(status.value)

    def _set_active_metric(self, active: bool):
        if self.monitor:
            self.monitor.set_indexing_active(active)
