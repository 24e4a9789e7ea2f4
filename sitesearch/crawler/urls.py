"""
URL normalization helpers shared by the crawler and the indexer.
"""

import logging
from urllib.parse import urlparse, urlunparse

logger = logging.getLogger(__name__)


def normalize_url(url: str) -> str:
    """
    Normalize a URL for fetching and deduplication.

    Strips surrounding whitespace, adds an ``http://`` scheme when none is
    present, lowercases the host and drops the query string and fragment.
    An empty path becomes ``/``.
    """
    url = (url or '').strip()
    if not url:
        return ''

    if not url.lower().startswith(('http://', 'https://')):
        url = 'http://' + url

    parsed = urlparse(url)
    return urlunparse((
        parsed.scheme,
        parsed.netloc.lower(),
        parsed.path or '/',
        parsed.params,
        '',
        ''
    ))


def canonical_site_url(url: str) -> str:
    """Canonical form of a configured site URL, without a trailing slash."""
    return normalize_url(url).rstrip('/')


def _site_key(url: str) -> str:
    key = url.strip().lower()
    for prefix in ('http://', 'https://'):
        if key.startswith(prefix):
            key = key[len(prefix):]
            break
    if key.startswith('www.'):
        key = key[4:]
    return key


def is_under_site(url: str, site_url: str) -> bool:
    """Check whether ``url`` lies under the ``site_url`` prefix, ignoring scheme and ``www.``."""
    if not url or not site_url:
        return False

    base = _site_key(site_url).rstrip('/')
    full = _site_key(url)
    if not full.startswith(base):
        return False
    rest = full[len(base):]
    return rest == '' or rest[0] in '/?#'


def extract_path(full_url: str, base_url: str) -> str:
    """
    Path of ``full_url`` relative to the site root ``base_url``.

    The result always starts with ``/`` and carries no query or fragment.
    URLs outside the site fall back to ``/``.
    """
    if not full_url or not base_url:
        logger.warning(f"Cannot extract path from '{full_url}' (base: '{base_url}')")
        return '/'

    if not is_under_site(full_url, base_url):
        logger.warning(f"URL {full_url} doesn't start with base URL {base_url}")
        return '/'

    full_path = urlparse(normalize_url(full_url)).path
    base_path = urlparse(normalize_url(base_url)).path.rstrip('/')

    path = full_path[len(base_path):] if full_path.startswith(base_path) else full_path
    if not path.startswith('/'):
        path = '/' + path
    return path
