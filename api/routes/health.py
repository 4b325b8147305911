"""
Health check endpoint with database and ship sync status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, text
from api.dependencies import get_db
from schemas.api import HealthCheckResponse, SyncRunInfo
from models.sync_run import ShipSyncRun
from core.config import settings
from datetime import datetime, timedelta
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Most recent ship sync run
    - Whether the sync schedule has fallen behind
    """

    # Check database connectivity
    db_connected = False

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}")

    last_sync = None
    sync_overdue = False

    if db_connected:
        try:
            result = await db.execute(
                select(ShipSyncRun).order_by(ShipSyncRun.sync_version.desc()).limit(1)
            )
            run = result.scalar_one_or_none()
            if run is not None:
                last_sync = SyncRunInfo.model_validate(run)
                threshold = datetime.utcnow() - timedelta(hours=settings.SYNC_OVERDUE_HOURS)
                sync_overdue = run.started_at < threshold
        except Exception as e:
            logger.error(f"Failed to fetch last sync run: {str(e)}")

    # Overall status is derived by the HealthCheckResponse validator
    return HealthCheckResponse(
        timestamp=datetime.utcnow(),
        database_connected=db_connected,
        last_sync=last_sync,
        sync_overdue=sync_overdue
    )
