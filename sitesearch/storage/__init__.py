"""
Storage layer for sites, pages, lemmas and the inverted index.
"""

from .database import DatabaseManager, DatabaseError
from .models import Base, Site, SiteStatus, Page, Lemma, IndexEntry

__all__ = [
    'DatabaseManager', 'DatabaseError',
    'Base', 'Site', 'SiteStatus', 'Page', 'Lemma', 'IndexEntry'
]
