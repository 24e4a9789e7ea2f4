"""
Search engine and snippet generation.
"""

from .engine import SearchEngine, SearchResult, SearchResponse, EMPTY_QUERY_ERROR, NO_INDEXED_SITES_ERROR
from .snippet import build_snippet, highlight

__all__ = [
    'SearchEngine', 'SearchResult', 'SearchResponse',
    'EMPTY_QUERY_ERROR', 'NO_INDEXED_SITES_ERROR',
    'build_snippet', 'highlight'
]
