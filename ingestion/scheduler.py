import logging
from datetime import datetime, timedelta
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy import select
from core.config import settings
from core.database import async_session_maker
from core.exceptions import CatalogException, SyncInProgressError
from ingestion.runner import ShipSyncRunner
from ingestion.extractors.fleetyards_client import FleetYardsClient
from models.sync_run import ShipSyncRun

logger = logging.getLogger(__name__)


async def last_sync_at(session) -> Optional[datetime]:
    """Start time of the most recent sync run, whatever its outcome"""
    result = await session.execute(
        select(ShipSyncRun.started_at).order_by(ShipSyncRun.sync_version.desc()).limit(1)
    )
    return result.scalar()


class ShipSyncScheduler:
    def __init__(self, session_factory=None, source_factory=None):
        self.scheduler = AsyncIOScheduler()
        self.SessionLocal = session_factory or async_session_maker
        self.source_factory = source_factory or FleetYardsClient

    async def run_sync_job(self):
        """Job to run one ship sync; failures are logged, never raised"""
        logger.info("Scheduler: Starting ship sync job")
        async with self.SessionLocal() as session:
            try:
                runner = ShipSyncRunner(session)
                await runner.run(self.source_factory())
            except SyncInProgressError as e:
                logger.info(f"Scheduler: {e.message}; skipping this tick")
            except CatalogException as e:
                logger.error(
                    f"Scheduler: ship sync failed - {e.message}",
                    extra={"error_context": e.to_dict()}
                )
            except Exception as e:
                logger.error(f"Scheduler: ship sync failed - {e}")

    async def is_overdue(self) -> bool:
        async with self.SessionLocal() as session:
            last = await last_sync_at(session)
        threshold = datetime.utcnow() - timedelta(hours=settings.SYNC_OVERDUE_HOURS)
        return last is None or last < threshold

    async def run_if_overdue(self):
        """Catch up after downtime: sync now when the last run is too old"""
        try:
            overdue = await self.is_overdue()
        except Exception as e:
            logger.warning(f"Scheduler: overdue check failed - {e}")
            return

        if overdue:
            logger.info(f"Scheduler: last sync older than {settings.SYNC_OVERDUE_HOURS}h, running now")
            await self.run_sync_job()

    def start(self) -> bool:
        """Start the scheduler; returns False when disabled or misconfigured"""
        if not settings.SHIP_SYNC_ENABLED:
            logger.info("Ship sync schedule disabled via SHIP_SYNC_ENABLED=false")
            return False

        try:
            trigger = CronTrigger.from_crontab(settings.SHIP_SYNC_CRON_SCHEDULE)
        except ValueError as e:
            logger.error(f"Invalid cron schedule '{settings.SHIP_SYNC_CRON_SCHEDULE}': {e}")
            return False

        self.scheduler.add_job(
            self.run_sync_job,
            trigger=trigger,
            id="ship_sync",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        # No trigger: runs once, immediately
        self.scheduler.add_job(
            self.run_if_overdue,
            id="ship_sync_overdue_check",
            replace_existing=True
        )
        self.scheduler.start()
        logger.info(f"Ship sync scheduled: {settings.SHIP_SYNC_CRON_SCHEDULE}")
        return True

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown()
        logger.info("Ship sync scheduler stopped")
