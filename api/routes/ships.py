"""
Ship catalog read endpoints: listing, lookup, batch and sync status
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional
import uuid
import logging

from api.dependencies import get_db, get_session_factory
from catalog.batch import BatchResolver, normalize_ids, store_chunk_fetcher
from catalog.query import (
    ShipQueryFilters,
    query_ships,
    get_ship_by_id_or_slug,
    list_manufacturers
)
from core.exceptions import BatchResolveError
from models.sync_run import ShipSyncRun
from schemas.api import (
    BatchRequest,
    BatchResponse,
    ManufacturerInfo,
    ManufacturerListResponse,
    ShipListResponse,
    SyncStatusResponse
)
from schemas.ship import ShipDocument

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/ships", tags=["Ships"])

LIST_CACHE_CONTROL = "public, max-age=300, stale-while-revalidate=60"
SYNC_STATUS_CACHE_CONTROL = "public, max-age=60, stale-while-revalidate=30"


@router.get("", response_model=ShipListResponse)
async def list_ships(
    request: Request,
    response: Response,
    manufacturer: Optional[str] = Query(None, description="Manufacturer slug or code"),
    size: Optional[str] = Query(None, description="Exact size"),
    classification: Optional[str] = Query(None, description="Exact classification"),
    production_status: Optional[str] = Query(None, alias="productionStatus", description="Exact production status"),
    search: Optional[str] = Query(None, description="Case-insensitive substring of the name"),
    page: int = Query(1, description="Page number, clamped to at least 1"),
    page_size: Optional[int] = Query(None, alias="pageSize", description="Items per page, clamped to the configured maximum"),
    db: AsyncSession = Depends(get_db)
):
    """
    Filtered, paginated ship listing.

    Filters combine with AND. Results are ordered by name.
    """
    request_id = getattr(request.state, "request_id", f"req_{uuid.uuid4().hex[:12]}")
    logger.info(
        f"[{request_id}] GET /ships - page={page}, page_size={page_size}, "
        f"filters: manufacturer={manufacturer}, size={size}, search={search}"
    )

    result = await query_ships(db, ShipQueryFilters(
        manufacturer=manufacturer,
        size=size,
        classification=classification,
        production_status=production_status,
        search=search,
        page=page,
        page_size=page_size
    ))

    response.headers["Cache-Control"] = LIST_CACHE_CONTROL
    return ShipListResponse(
        items=result.items,
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages
    )


@router.post("/batch", response_model=BatchResponse)
async def batch_ships(
    body: BatchRequest,
    response: Response,
    session_factory=Depends(get_session_factory)
):
    """Resolve up to 50 FleetYards ids; unknown ids are omitted"""
    response.headers["Cache-Control"] = "no-store"

    ids = normalize_ids(body.ids)
    resolver = BatchResolver(store_chunk_fetcher(session_factory))
    try:
        found = await resolver.resolve(ids)
    except BatchResolveError as e:
        logger.error(f"Batch resolution failed: {e.message}", extra={"error_context": e.to_dict()})
        raise HTTPException(status_code=500, detail="Failed to resolve ships")

    return BatchResponse(items=[found[i] for i in ids if i in found])


@router.get("/manufacturers", response_model=ManufacturerListResponse)
async def manufacturers(response: Response, db: AsyncSession = Depends(get_db)):
    response.headers["Cache-Control"] = LIST_CACHE_CONTROL
    rows = await list_manufacturers(db)
    return ManufacturerListResponse(items=[ManufacturerInfo(**row) for row in rows])


@router.get("/sync-status", response_model=SyncStatusResponse)
async def sync_status(response: Response, db: AsyncSession = Depends(get_db)):
    """Most recent sync run; ``unknown`` when none has run"""
    response.headers["Cache-Control"] = SYNC_STATUS_CACHE_CONTROL

    result = await db.execute(
        select(ShipSyncRun).order_by(ShipSyncRun.sync_version.desc()).limit(1)
    )
    run = result.scalar_one_or_none()
    if run is None:
        return SyncStatusResponse()

    return SyncStatusResponse(
        last_sync_at=run.completed_at or run.started_at,
        ship_count=run.ship_count,
        status=run.status.value,
        sync_version=run.sync_version
    )


@router.get("/{id_or_slug}", response_model=ShipDocument)
async def get_ship(id_or_slug: str, db: AsyncSession = Depends(get_db)):
    """Single ship by FleetYards id or slug"""
    ship = await get_ship_by_id_or_slug(db, id_or_slug)
    if ship is None:
        raise HTTPException(status_code=404, detail="Ship not found")
    return ship
