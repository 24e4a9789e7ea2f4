"""
Configuration management for the site search system.
"""

import yaml
import logging
from pathlib import Path
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field

from ..crawler.urls import canonical_site_url


@dataclass
class SiteConfig:
    """A site to crawl and index."""
    url: str
    name: str


@dataclass
class CrawlerConfig:
    """Configuration for crawler and fetcher behavior."""
    user_agent: str = "SiteSearchBot/1.0"
    referrer: str = "http://www.google.com"
    politeness_delay: float = 1.0
    request_timeout: int = 10
    max_concurrent_requests: int = 10
    max_depth: int = 3


@dataclass
class IndexingConfig:
    """Configuration for the indexing orchestrator."""
    heartbeat_interval: int = 10
    shutdown_timeout: float = 10.0


@dataclass
class SearchConfig:
    """Configuration for query processing."""
    frequency_threshold: float = 0.8
    snippet_length: int = 200
    default_limit: int = 20


@dataclass
class DatabaseConfig:
    """Configuration for database storage."""
    url: str = "sqlite+aiosqlite:///data/sitesearch.db"
    echo: bool = False


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    file: str = "logs/sitesearch.log"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    json_format: bool = False


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    prometheus_port: int = 8000
    metrics_enabled: bool = False


@dataclass
class ServerConfig:
    """Configuration for the HTTP API."""
    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class Config:
    """Main configuration class."""
    sites: List[SiteConfig] = field(default_factory=list)
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    indexing: IndexingConfig = field(default_factory=IndexingConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Build a configuration from parsed YAML data."""
        return cls(
            sites=[SiteConfig(**site) for site in data.get('sites') or []],
            crawler=CrawlerConfig(**(data.get('crawler') or {})),
            indexing=IndexingConfig(**(data.get('indexing') or {})),
            search=SearchConfig(**(data.get('search') or {})),
            database=DatabaseConfig(**(data.get('database') or {})),
            logging=LoggingConfig(**(data.get('logging') or {})),
            monitoring=MonitoringConfig(**(data.get('monitoring') or {})),
            server=ServerConfig(**(data.get('server') or {})),
        )


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = Path(config_path)
        self._config: Optional[Config] = None

    def load_config(self) -> Config:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r', encoding='utf-8') as file:
            config_data = yaml.safe_load(file) or {}

        self._config = Config.from_dict(config_data)
        validate_config(self._config)
        return self._config

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ValueError("Configuration not loaded. Call load_config() first.")
        return self._config


def validate_config(config: Config):
    """Validate configuration values."""
    if not config.sites:
        raise ValueError("At least one site must be configured")

    seen = set()
    for site in config.sites:
        if not site.url or not site.url.strip():
            raise ValueError(f"Site '{site.name}' has an empty url")
        key = canonical_site_url(site.url)
        if key in seen:
            raise ValueError(f"Site url configured twice: {site.url}")
        seen.add(key)

    if config.crawler.max_depth < 0:
        raise ValueError("max_depth must be non-negative")

    if config.crawler.politeness_delay < 0:
        raise ValueError("politeness_delay must be non-negative")

    if config.crawler.max_concurrent_requests < 1:
        raise ValueError("max_concurrent_requests must be at least 1")

    if config.indexing.heartbeat_interval < 1:
        raise ValueError("heartbeat_interval must be at least 1")

    if not 0 < config.search.frequency_threshold <= 1:
        raise ValueError("frequency_threshold must be in (0, 1]")

    if config.search.snippet_length < 1:
        raise ValueError("snippet_length must be positive")

    logging.getLogger(__name__).info("Configuration validation passed")


def load_config(config_path: str = "config.yaml") -> Config:
    """Load configuration from file."""
    return ConfigManager(config_path).load_config()
