"""
Monitoring and metrics collection for crawling, indexing and search.
"""

import time
import logging
from typing import Dict, Optional, Any

from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, generate_latest
from prometheus_client import start_http_server


class MetricsCollector:
    """Owns the Prometheus metrics of one application instance."""

    def __init__(self, enable_server: bool = False, prometheus_port: int = 8000):
        self.logger = logging.getLogger(__name__)
        self.enable_server = enable_server
        self.prometheus_port = prometheus_port

        # Per-instance registry so several collectors can coexist in one process
        self.registry = CollectorRegistry()

        self.pages_fetched_total = Counter(
            'sitesearch_pages_fetched_total',
            'Total number of HTTP fetches by status code',
            ['status_code'],
            registry=self.registry
        )
        self.fetch_errors_total = Counter(
            'sitesearch_fetch_errors_total',
            'Total number of network-level fetch failures',
            ['error_type'],
            registry=self.registry
        )
        self.response_time_seconds = Histogram(
            'sitesearch_response_time_seconds',
            'Response time for HTTP requests',
            registry=self.registry
        )
        self.pages_indexed_total = Counter(
            'sitesearch_pages_indexed_total',
            'Total number of pages written to the index',
            ['site'],
            registry=self.registry
        )
        self.page_errors_total = Counter(
            'sitesearch_page_errors_total',
            'Total number of pages skipped because of an error',
            ['site'],
            registry=self.registry
        )
        self.site_runs_total = Counter(
            'sitesearch_site_runs_total',
            'Finished site indexing runs by final status',
            ['status'],
            registry=self.registry
        )
        self.urls_discovered = Gauge(
            'sitesearch_urls_discovered',
            'URLs discovered by the last crawl of a site',
            ['site'],
            registry=self.registry
        )
        self.indexing_active = Gauge(
            'sitesearch_indexing_active',
            'Whether a full indexing run is in progress',
            registry=self.registry
        )
        self.searches_total = Counter(
            'sitesearch_searches_total',
            'Search requests by outcome',
            ['outcome'],
            registry=self.registry
        )
        self.search_latency_seconds = Histogram(
            'sitesearch_search_latency_seconds',
            'Search request latency',
            registry=self.registry
        )

    def start_server(self):
        """Start the Prometheus exporter HTTP server."""
        if not self.enable_server:
            return

        try:
            start_http_server(self.prometheus_port, registry=self.registry)
            self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")
        except OSError as e:
            self.logger.error(f"Failed to start Prometheus server: {e}")

    def export(self) -> bytes:
        """Render all metrics in the Prometheus text format."""
        return generate_latest(self.registry)


class IndexingMonitor:
    """High-level monitoring interface used by the fetcher, orchestrator and search engine."""

    def __init__(self, metrics_collector: Optional[MetricsCollector] = None):
        self.metrics = metrics_collector or MetricsCollector()
        self.start_time = time.time()
        self._counts: Dict[str, int] = {
            'pages_fetched': 0,
            'fetch_errors': 0,
            'pages_indexed': 0,
            'page_errors': 0,
            'searches': 0,
        }

    def record_fetch(self, status_code: int, response_time: float):
        self._counts['pages_fetched'] += 1
        self.metrics.pages_fetched_total.labels(status_code=str(status_code)).inc()
        self.metrics.response_time_seconds.observe(response_time)

    def record_fetch_error(self, error_type: str):
        self._counts['fetch_errors'] += 1
        self.metrics.fetch_errors_total.labels(error_type=error_type).inc()

    def record_page_indexed(self, site: str):
        self._counts['pages_indexed'] += 1
        self.metrics.pages_indexed_total.labels(site=site).inc()

    def record_page_error(self, site: str):
        self._counts['page_errors'] += 1
        self.metrics.page_errors_total.labels(site=site).inc()

    def record_site_finished(self, status: str):
        self.metrics.site_runs_total.labels(status=status).inc()

    def update_urls_discovered(self, site: str, count: int):
        self.metrics.urls_discovered.labels(site=site).set(count)

    def set_indexing_active(self, active: bool):
        self.metrics.indexing_active.set(1 if active else 0)

    def record_search(self, outcome: str, latency: float):
        self._counts['searches'] += 1
        self.metrics.searches_total.labels(outcome=outcome).inc()
        self.metrics.search_latency_seconds.observe(latency)

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the counters."""
        runtime = time.time() - self.start_time
        return {
            'runtime_seconds': runtime,
            'counts': dict(self._counts),
            'rates': {
                'pages_per_minute': self._counts['pages_indexed'] / (runtime / 60) if runtime > 0 else 0,
            }
        }


def initialize_monitoring(enable_server: bool = False, prometheus_port: int = 8000) -> IndexingMonitor:
    """Create a monitor and start its exporter when enabled."""
    collector = MetricsCollector(enable_server, prometheus_port)
    collector.start_server()
    return IndexingMonitor(collector)
