"""
Ship catalog reads: filtered/paginated listing, lookups and projections
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Dict, Any, AsyncIterator, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_, or_
import math
import uuid
import logging

from models.ship import Ship
from schemas.ship import ShipDocument
from catalog.images import primary_image_url
from core.config import settings

logger = logging.getLogger(__name__)

MAX_IDS_PER_QUERY = 50
MAX_OFFSET = 2 ** 63 - 1


@dataclass
class ShipQueryFilters:
    """All filters optional, combined with AND"""
    manufacturer: Optional[str] = None
    size: Optional[str] = None
    classification: Optional[str] = None
    production_status: Optional[str] = None
    search: Optional[str] = None
    page: int = 1
    page_size: Optional[int] = None
    include_stale: bool = False


@dataclass
class ShipPage:
    items: List[ShipDocument]
    total: int
    page: int
    page_size: int
    total_pages: int


def total_pages(total: int, page_size: int) -> int:
    """Number of pages; at least 1 even for an empty result"""
    return max(1, math.ceil(total / page_size))


def clamp_page(page: Optional[int], page_size: int = 1) -> int:
    """Clamp to at least 1, and low enough that the row offset fits a signed 64-bit integer"""
    last_page = MAX_OFFSET // max(1, page_size) + 1
    return min(max(1, page or 1), last_page)


def clamp_page_size(page_size: Optional[int]) -> int:
    if page_size is None:
        return settings.QUERY_DEFAULT_PAGE_SIZE
    return min(max(1, page_size), settings.QUERY_MAX_PAGE_SIZE)


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except (ValueError, AttributeError, TypeError):
        return False
    return True


def build_conditions(filters: ShipQueryFilters) -> list:
    conditions = []

    if filters.manufacturer:
        conditions.append(or_(
            Ship.manufacturer_slug == filters.manufacturer,
            Ship.manufacturer_code == filters.manufacturer
        ))

    if filters.size:
        conditions.append(Ship.size == filters.size)

    if filters.classification:
        conditions.append(Ship.classification == filters.classification)

    if filters.production_status:
        conditions.append(Ship.production_status == filters.production_status)

    search = (filters.search or "").strip()
    if search:
        conditions.append(Ship.name.ilike(f"%{escape_like(search)}%", escape="\\"))

    if not filters.include_stale:
        conditions.append(Ship.is_stale.is_(False))

    return conditions


async def query_ships(session: AsyncSession, filters: ShipQueryFilters) -> ShipPage:
    """
    Filtered, paginated ship listing.

    Filters are applied before pagination and ``total`` counts the filtered
    set. Ordering is ``name`` then ``fleetyards_id`` so pages are stable.
    """
    page_size = clamp_page_size(filters.page_size)
    page = clamp_page(filters.page, page_size)
    conditions = build_conditions(filters)

    count_query = select(func.count()).select_from(Ship)
    if conditions:
        count_query = count_query.where(and_(*conditions))
    total = (await session.execute(count_query)).scalar() or 0

    query = select(Ship)
    if conditions:
        query = query.where(and_(*conditions))
    query = (
        query.order_by(Ship.name.asc(), Ship.fleetyards_id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    ships = (await session.execute(query)).scalars().all()

    logger.debug(f"query_ships: {len(ships)} of {total} (page {page}, size {page_size})")

    return ShipPage(
        items=[ShipDocument.from_row(ship) for ship in ships],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total, page_size),
    )


async def get_ship_by_id_or_slug(session: AsyncSession, value: str) -> Optional[ShipDocument]:
    """
    Look up one ship by external id or slug.

    UUID-shaped values try ``fleetyards_id`` first, anything else tries
    ``slug`` first; each falls back to the other key.
    """
    value = (value or "").strip()
    if not value:
        return None

    keys = [Ship.fleetyards_id, Ship.slug] if is_uuid(value) else [Ship.slug, Ship.fleetyards_id]
    for column in keys:
        ship = (await session.execute(select(Ship).where(column == value))).scalar_one_or_none()
        if ship is not None:
            return ShipDocument.from_row(ship)
    return None


async def get_ships_by_fleetyards_ids(session: AsyncSession, ids: Sequence[str]) -> Dict[str, ShipDocument]:
    """
    Resolve up to 50 external ids in one IN query.

    Unknown ids are simply absent from the result.
    """
    if not ids:
        return {}
    if len(ids) > MAX_IDS_PER_QUERY:
        raise ValueError(f"At most {MAX_IDS_PER_QUERY} ids per query, got {len(ids)}")

    result = await session.execute(select(Ship).where(Ship.fleetyards_id.in_(list(ids))))
    return {ship.fleetyards_id: ShipDocument.from_row(ship) for ship in result.scalars().all()}


async def list_manufacturers(session: AsyncSession) -> List[Dict[str, Any]]:
    """Distinct manufacturers with their (non-stale) ship counts, sorted by name"""
    result = await session.execute(
        select(
            Ship.manufacturer_name,
            Ship.manufacturer_code,
            Ship.manufacturer_slug,
            func.count(Ship.id).label("ship_count")
        )
        .where(Ship.is_stale.is_(False))
        .group_by(Ship.manufacturer_name, Ship.manufacturer_code, Ship.manufacturer_slug)
        .order_by(Ship.manufacturer_name.asc())
    )
    return [
        {
            "name": row.manufacturer_name,
            "code": row.manufacturer_code,
            "slug": row.manufacturer_slug,
            "ship_count": row.ship_count,
        }
        for row in result
    ]


async def iter_primary_images(session: AsyncSession) -> AsyncIterator[Tuple[str, Optional[str]]]:
    """Yield ``(fleetyards_id, primary image url)`` for every non-stale ship"""
    result = await session.execute(
        select(Ship.fleetyards_id, Ship.images)
        .where(Ship.is_stale.is_(False))
        .order_by(Ship.name.asc())
    )
    for row in result:
        yield row.fleetyards_id, primary_image_url(row.images)
