"""
Lemmatization, page indexing and the site indexing orchestrator.
"""

from .lemmatizer import Lemmatizer, Morphology, PymorphyMorphology
from .indexer import PageIndexer, PageIndexResult
from .orchestrator import IndexingOrchestrator, IndexingRun, STOPPED_BY_USER

__all__ = [
    'Lemmatizer', 'Morphology', 'PymorphyMorphology',
    'PageIndexer', 'PageIndexResult',
    'IndexingOrchestrator', 'IndexingRun', 'STOPPED_BY_USER'
]
