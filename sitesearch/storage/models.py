"""Database models for sites, pages, lemmas and the inverted index."""
import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Float, Enum, ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SiteStatus(str, enum.Enum):
    """Lifecycle stage of a site's index."""
    INDEXING = "INDEXING"
    INDEXED = "INDEXED"
    FAILED = "FAILED"


class Site(Base):
    """A configured website and the state of its index."""
    __tablename__ = 'site'

    id = Column(Integer, primary_key=True)
    status = Column(Enum(SiteStatus, name='site_status'), nullable=False)
    status_time = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_error = Column(Text, nullable=True)
    # Not unique: duplicate rows are reconciled when the site is re-indexed
    url = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)

    __table_args__ = (
        Index('idx_site_url', 'url'),
    )

    def __repr__(self) -> str:
        return f"<Site id={self.id} url={self.url!r} status={self.status}>"


class Page(Base):
    """A fetched page of a site."""
    __tablename__ = 'page'

    id = Column(Integer, primary_key=True)
    site_id = Column(Integer, ForeignKey('site.id'), nullable=False)
    path = Column(String(2048), nullable=False)
    code = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)

    __table_args__ = (
        UniqueConstraint('site_id', 'path', name='uq_page_site_path'),
    )

    def __repr__(self) -> str:
        return f"<Page id={self.id} site_id={self.site_id} path={self.path!r} code={self.code}>"


class Lemma(Base):
    """A lemma of a site; ``frequency`` is the number of pages containing it."""
    __tablename__ = 'lemma'

    id = Column(Integer, primary_key=True)
    site_id = Column(Integer, ForeignKey('site.id'), nullable=False)
    lemma = Column(String(255), nullable=False)
    frequency = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint('site_id', 'lemma', name='uq_lemma_site_lemma'),
    )

    def __repr__(self) -> str:
        return f"<Lemma id={self.id} site_id={self.site_id} lemma={self.lemma!r} frequency={self.frequency}>"


class IndexEntry(Base):
    """One posting: a lemma occurring ``rank`` times on a page."""
    __tablename__ = 'search_index'

    id = Column(Integer, primary_key=True)
    page_id = Column(Integer, ForeignKey('page.id'), nullable=False)
    lemma_id = Column(Integer, ForeignKey('lemma.id'), nullable=False)
    rank = Column(Float, nullable=False)

    __table_args__ = (
        UniqueConstraint('page_id', 'lemma_id', name='uq_index_page_lemma'),
        Index('idx_index_lemma', 'lemma_id'),
    )
