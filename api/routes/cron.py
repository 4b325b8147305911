"""
Cron-triggered jobs: ship sync and image cache warm-up.

Both endpoints are open unless ``CRON_SECRET`` is configured, in which case
they require ``Authorization: Bearer <secret>``.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from api.dependencies import get_db, get_catalog_source, verify_cron_secret
from catalog.warmer import ImageCacheWarmer
from core.config import settings
from core.exceptions import CatalogException, SyncInProgressError
from ingestion.base import CatalogSource
from ingestion.runner import ShipSyncRunner
from models.base import SyncStatus
from schemas.api import ErrorResponse, SyncTriggerResponse, WarmImagesResponse

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/cron",
    tags=["Cron"],
    dependencies=[Depends(verify_cron_secret)]
)


def _error_response(status_code: int, error: str) -> JSONResponse:
    body = ErrorResponse(error=error)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.api_route("/ship-sync", methods=["GET", "POST"], response_model=SyncTriggerResponse)
async def ship_sync(
    db: AsyncSession = Depends(get_db),
    source: CatalogSource = Depends(get_catalog_source)
):
    """
    Run one ship sync now.

    Returns:
    - 200 with run counters (``success`` is false for a failed run)
    - 409 when another sync is in progress
    - 500 when the upstream fetch failed or a safety guard aborted the run
    """
    logger.info("[ship-sync] Sync triggered")

    try:
        result = await ShipSyncRunner(db).run(source)
    except SyncInProgressError as e:
        logger.info(f"[ship-sync] {e.message}")
        return _error_response(409, e.message)
    except CatalogException as e:
        logger.error(f"[ship-sync] Sync failed: {e.message}", extra={"error_context": e.to_dict()})
        return _error_response(500, e.message)

    if result.errors:
        logger.warning(f"[ship-sync] Sync completed with errors: {result.errors[:10]}")

    return SyncTriggerResponse(
        success=result.status != SyncStatus.FAILED,
        sync_version=result.sync_version,
        status=result.status.value,
        ship_count=result.ship_count,
        new_ships=result.new_ships,
        updated_ships=result.updated_ships,
        unchanged_ships=result.unchanged_ships,
        skipped_ships=result.skipped_ships,
        stale_ships=result.stale_ships,
        pages_processed=result.pages_processed,
        duration_ms=result.duration_ms,
        errors=result.errors
    )


@router.get("/warm-images", response_model=WarmImagesResponse)
async def warm_images(request: Request, db: AsyncSession = Depends(get_db)):
    """Pre-populate the image optimization cache for every ship's primary image"""
    origin = settings.WARM_ORIGIN or str(request.base_url)
    logger.info(f"[warm-images] Starting image cache warm-up against {origin}")

    warmer = ImageCacheWarmer(origin)
    try:
        result = await warmer.warm(db)
    except Exception as e:
        logger.exception("[warm-images] Warm-up failed")
        return _error_response(500, str(e))

    return WarmImagesResponse(
        success=True,
        total_ships=result.total_ships,
        unique_images=result.unique_images,
        warmed=result.warmed,
        failed=result.failed,
        widths=result.widths
    )
