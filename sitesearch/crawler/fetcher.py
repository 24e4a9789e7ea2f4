"""
Web page fetcher with a fixed politeness delay and bounded concurrency.
"""

import asyncio
import aiohttp
import logging
import time
from typing import Optional, Dict
from dataclasses import dataclass
from aiohttp import ClientSession, ClientTimeout, ClientError

from .urls import normalize_url
from ..utils.monitoring import IndexingMonitor


@dataclass
class FetchResult:
    """Result of a fetch operation.

    A non-2xx response is still a successful fetch; ``error`` is only set for
    network-level failures, in which case ``status_code`` is 0.
    """
    url: str
    status_code: int
    content: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    error: Optional[str] = None
    fetch_time: float = 0.0
    content_type: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def is_html(self) -> bool:
        return not self.content_type or 'html' in self.content_type


class WebFetcher:
    """
    Fetches web pages one GET at a time, sleeping the politeness delay before
    every request.
    """

    def __init__(self, user_agent: str, referrer: str = "",
                 request_timeout: int = 10, politeness_delay: float = 1.0,
                 max_concurrent_requests: int = 10,
                 monitor: Optional[IndexingMonitor] = None):
        self.user_agent = user_agent
        self.referrer = referrer
        self.request_timeout = request_timeout
        self.politeness_delay = politeness_delay
        self.max_concurrent_requests = max_concurrent_requests
        self.monitor = monitor

        self.logger = logging.getLogger(__name__)

        self.session: Optional[ClientSession] = None
        self.semaphore = asyncio.Semaphore(max_concurrent_requests)

        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Initialize the fetcher session."""
        if self.session is None:
            timeout = ClientTimeout(total=self.request_timeout)
            headers = {'User-Agent': self.user_agent}
            if self.referrer:
                headers['Referer'] = self.referrer

            self.session = aiohttp.ClientSession(
                timeout=timeout,
                headers=headers,
                connector=aiohttp.TCPConnector(
                    limit=self.max_concurrent_requests * 2,
                    limit_per_host=self.max_concurrent_requests,
                    ttl_dns_cache=300
                )
            )
            self.logger.info("WebFetcher session started")

    async def close(self):
        """Close the fetcher session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.info("WebFetcher session closed")

    async def fetch(self, url: str) -> FetchResult:
        """
        Fetch a single URL.

        Args:
            url: The URL to fetch; it is normalized before use

        Returns:
            FetchResult with the body and status code, or the error description
        """
        url = normalize_url(url)
        if not url:
            return FetchResult(url=url, status_code=0, error="Empty URL")

        if self.session is None:
            await self.start()

        async with self.semaphore:
            await asyncio.sleep(self.politeness_delay)
            start_time = time.time()

            try:
                self.stats['total_requests'] += 1

                async with self.session.get(url) as response:
                    content_type = response.headers.get('content-type', '').lower()
                    headers = dict(response.headers)

                    if self._is_text_content(content_type):
                        content = await self._read_content_safely(response)
                    else:
                        self.logger.debug(f"Skipping body of non-text content: {url} ({content_type})")
                        content = ''

                    fetch_time = time.time() - start_time
                    self.stats['successful_requests'] += 1
                    self.stats['total_bytes_downloaded'] += len(content or '')
                    if self.monitor:
                        self.monitor.record_fetch(response.status, fetch_time)

                    self.logger.debug(f"Fetched {url}: {response.status} ({len(content or '')} chars)")
                    return FetchResult(
                        url=url,
                        status_code=response.status,
                        content=content or '',
                        headers=headers,
                        content_type=content_type,
                        fetch_time=fetch_time
                    )

            except asyncio.TimeoutError:
                error_type = 'timeout'
                error_msg = "Request timeout"
                self.logger.warning(f"Timeout fetching {url}")

            except ClientError as e:
                error_type = 'client'
                error_msg = f"Client error: {str(e)}"
                self.logger.warning(f"Client error fetching {url}: {e}")

            except ValueError as e:
                error_type = 'invalid_url'
                error_msg = f"Invalid URL: {str(e)}"
                self.logger.warning(f"Invalid URL {url}: {e}")

            self.stats['failed_requests'] += 1
            if self.monitor:
                self.monitor.record_fetch_error(error_type)

            return FetchResult(
                url=url,
                status_code=0,
                error=error_msg,
                fetch_time=time.time() - start_time
            )

    def _is_text_content(self, content_type: str) -> bool:
        """Check if content type is text-based."""
        if not content_type:
            return True

        text_types = [
            'text/html',
            'text/plain',
            'text/xml',
            'application/xml',
            'application/xhtml+xml'
        ]

        return any(text_type in content_type for text_type in text_types)

    async def _read_content_safely(self, response, max_size: int = 10 * 1024 * 1024) -> Optional[str]:
        """
        Read response content with a size limit.

        Args:
            response: aiohttp response object
            max_size: Maximum content size in bytes (default 10MB)

        Returns:
            Decoded content, or None if the body is too large
        """
        content_length = response.headers.get('content-length')
        if content_length and content_length.isdigit() and int(content_length) > max_size:
            self.logger.warning(f"Content too large ({content_length} bytes): {response.url}")
            return None

        content_bytes = b''
        async for chunk in response.content.iter_chunked(8192):
            content_bytes += chunk
            if len(content_bytes) > max_size:
                self.logger.warning(f"Content exceeded size limit during reading: {response.url}")
                return None

        encoding = response.charset or 'utf-8'
        try:
            return content_bytes.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            for fallback_encoding in ['utf-8', 'cp1251', 'latin-1']:
                try:
                    return content_bytes.decode(fallback_encoding)
                except UnicodeDecodeError:
                    continue

            return content_bytes.decode('utf-8', errors='ignore')

    def get_stats(self) -> Dict[str, int]:
        """Get fetcher statistics."""
        return self.stats.copy()
