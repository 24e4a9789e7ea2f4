"""
SiteSearch

Crawls configured websites, builds a per-site lemma index and answers ranked
full-text queries against it.
"""

__version__ = "1.0.0"
__description__ = "A site crawler with a lemma-based inverted index and ranked search"
