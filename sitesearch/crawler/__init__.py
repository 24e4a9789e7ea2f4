"""
Site crawler components.
"""

from .fetcher import WebFetcher, FetchResult
from .parser import ContentParser
from .site_crawler import SiteCrawler, CrawlSession
from .urls import normalize_url, canonical_site_url, extract_path, is_under_site

__all__ = [
    'WebFetcher', 'FetchResult',
    'ContentParser',
    'SiteCrawler', 'CrawlSession',
    'normalize_url', 'canonical_site_url', 'extract_path', 'is_under_site'
]
