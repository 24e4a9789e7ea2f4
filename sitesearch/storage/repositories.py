"""
Queries over sites, pages, lemmas and index entries.

Every function works inside the caller's session so that several of them can
be composed into one transaction.
"""

from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Site, SiteStatus, Page, Lemma, IndexEntry, utcnow


# Sites

async def find_sites_by_url(session: AsyncSession, url: str) -> List[Site]:
    result = await session.execute(select(Site).where(Site.url == url).order_by(Site.id))
    return list(result.scalars())


async def find_site_by_url(session: AsyncSession, url: str) -> Optional[Site]:
    sites = await find_sites_by_url(session, url)
    return sites[0] if sites else None


async def find_sites(session: AsyncSession, status: Optional[SiteStatus] = None) -> List[Site]:
    query = select(Site).order_by(Site.id)
    if status is not None:
        query = query.where(Site.status == status)
    result = await session.execute(query)
    return list(result.scalars())


async def create_site(session: AsyncSession, url: str, name: str, status: SiteStatus) -> Site:
    site = Site(url=url, name=name, status=status, status_time=utcnow())
    session.add(site)
    await session.flush()
    return site


async def set_site_status(session: AsyncSession, site_id: int, status: SiteStatus,
                          last_error: Optional[str] = None):
    """Write a status; the status time is refreshed on every write."""
    await session.execute(
        update(Site)
        .where(Site.id == site_id)
        .values(status=status, last_error=last_error, status_time=utcnow())
        .execution_options(synchronize_session=False)
    )


async def touch_site(session: AsyncSession, site_id: int):
    await session.execute(
        update(Site)
        .where(Site.id == site_id)
        .values(status_time=utcnow())
        .execution_options(synchronize_session=False)
    )


async def replace_site_status(session: AsyncSession, from_status: SiteStatus,
                              to_status: SiteStatus, last_error: Optional[str] = None) -> List[str]:
    """Move every site in ``from_status`` to ``to_status``; returns the affected URLs."""
    sites = await find_sites(session, from_status)
    for site in sites:
        await set_site_status(session, site.id, to_status, last_error)
    return [site.url for site in sites]


async def delete_site(session: AsyncSession, site_id: int):
    """Delete a site row; its pages, lemmas and entries must be cleared first."""
    await session.execute(delete(Site).where(Site.id == site_id).execution_options(synchronize_session=False))


# Pages

async def find_page(session: AsyncSession, site_id: int, path: str) -> Optional[Page]:
    result = await session.execute(select(Page).where(Page.site_id == site_id, Page.path == path))
    return result.scalar_one_or_none()


async def find_pages(session: AsyncSession, page_ids: Iterable[int]) -> List[Page]:
    ids = list(page_ids)
    if not ids:
        return []
    result = await session.execute(select(Page).where(Page.id.in_(ids)).order_by(Page.id))
    return list(result.scalars())


async def find_pages_by_site(session: AsyncSession, site_id: int) -> List[Page]:
    result = await session.execute(select(Page).where(Page.site_id == site_id).order_by(Page.id))
    return list(result.scalars())


async def count_pages(session: AsyncSession, site_id: Optional[int] = None) -> int:
    query = select(func.count(Page.id))
    if site_id is not None:
        query = query.where(Page.site_id == site_id)
    return (await session.execute(query)).scalar_one()


async def add_page(session: AsyncSession, site_id: int, path: str, code: int, content: str) -> Page:
    page = Page(site_id=site_id, path=path, code=code, content=content)
    session.add(page)
    await session.flush()
    return page


async def delete_page_row(session: AsyncSession, page_id: int):
    await session.execute(delete(Page).where(Page.id == page_id).execution_options(synchronize_session=False))


async def delete_pages_by_site(session: AsyncSession, site_id: int):
    await session.execute(delete(Page).where(Page.site_id == site_id).execution_options(synchronize_session=False))


# Lemmas

async def find_lemmas(session: AsyncSession, site_id: int, lemmas: Iterable[str]) -> List[Lemma]:
    values = list(lemmas)
    if not values:
        return []
    result = await session.execute(
        select(Lemma).where(Lemma.site_id == site_id, Lemma.lemma.in_(values))
    )
    return list(result.scalars())


async def find_lemmas_by_site(session: AsyncSession, site_id: int) -> List[Lemma]:
    result = await session.execute(select(Lemma).where(Lemma.site_id == site_id).order_by(Lemma.id))
    return list(result.scalars())


async def count_lemmas(session: AsyncSession, site_id: Optional[int] = None) -> int:
    """Number of lemma rows; per site this is the unique lemma count."""
    if site_id is None:
        return (await session.execute(select(func.count(Lemma.id)))).scalar_one()
    return (await session.execute(
        select(func.count(func.distinct(Lemma.lemma))).where(Lemma.site_id == site_id)
    )).scalar_one()


async def decrement_lemmas(session: AsyncSession, lemma_ids: Iterable[int]) -> List[int]:
    """
    Decrease the frequency of each lemma by one and delete the ones that drop
    to zero or below, together with their entries.

    Returns:
        Ids of the deleted lemmas
    """
    ids = list(lemma_ids)
    if not ids:
        return []

    await session.execute(
        update(Lemma)
        .where(Lemma.id.in_(ids))
        .values(frequency=Lemma.frequency - 1)
        .execution_options(synchronize_session=False)
    )

    result = await session.execute(
        select(Lemma.id).where(Lemma.id.in_(ids), Lemma.frequency <= 0)
    )
    exhausted = list(result.scalars())
    if exhausted:
        await delete_entries_by_lemmas(session, exhausted)
        await session.execute(
            delete(Lemma).where(Lemma.id.in_(exhausted)).execution_options(synchronize_session=False)
        )
    return exhausted


async def delete_lemmas_by_site(session: AsyncSession, site_id: int):
    await session.execute(delete(Lemma).where(Lemma.site_id == site_id).execution_options(synchronize_session=False))


# Index entries

async def lemma_ids_for_page(session: AsyncSession, page_id: int) -> List[int]:
    result = await session.execute(select(IndexEntry.lemma_id).where(IndexEntry.page_id == page_id))
    return list(result.scalars())


async def add_entries(session: AsyncSession, page_id: int, weights: Dict[int, float]):
    """Insert one entry per ``lemma_id -> weight`` pair."""
    session.add_all([
        IndexEntry(page_id=page_id, lemma_id=lemma_id, rank=weight)
        for lemma_id, weight in weights.items()
    ])
    await session.flush()


async def page_ids_for_lemma(session: AsyncSession, lemma_id: int) -> Set[int]:
    """Posting list of a lemma."""
    result = await session.execute(select(IndexEntry.page_id).where(IndexEntry.lemma_id == lemma_id))
    return set(result.scalars())


async def relevance_by_page(session: AsyncSession, page_ids: Iterable[int],
                            lemma_ids: Iterable[int]) -> Dict[int, float]:
    """Sum of entry weights per page, restricted to the given lemmas."""
    pages = list(page_ids)
    lemmas = list(lemma_ids)
    if not pages or not lemmas:
        return {}

    result = await session.execute(
        select(IndexEntry.page_id, func.sum(IndexEntry.rank))
        .where(IndexEntry.page_id.in_(pages), IndexEntry.lemma_id.in_(lemmas))
        .group_by(IndexEntry.page_id)
    )
    return {page_id: float(total or 0.0) for page_id, total in result.all()}


async def delete_entries_by_page(session: AsyncSession, page_id: int):
    await session.execute(
        delete(IndexEntry).where(IndexEntry.page_id == page_id).execution_options(synchronize_session=False)
    )


async def delete_entries_by_site(session: AsyncSession, site_id: int):
    site_pages = select(Page.id).where(Page.site_id == site_id)
    await session.execute(
        delete(IndexEntry).where(IndexEntry.page_id.in_(site_pages)).execution_options(synchronize_session=False)
    )


async def delete_entries_by_lemmas(session: AsyncSession, lemma_ids: Iterable[int]):
    await session.execute(
        delete(IndexEntry).where(IndexEntry.lemma_id.in_(list(lemma_ids))).execution_options(synchronize_session=False)
    )
