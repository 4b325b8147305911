"""
Ship Sync Runner - Orchestrates fetch, validate, transform, upsert, stale detection.

This module provides robust sync orchestration with:
- Single-flight execution (in-process lock plus a lease on the run record)
- Monotonic sync versions read from the store at run start
- Safety guards against empty or shrunken upstream payloads
- Partial failure support (skip individual bad records, keep going)
- Configurable stale record policy (flag, delete, ignore)
- An audit record per run in ``ship_sync_runs``
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta
from typing import Dict, Any, List, Optional, Set
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
import asyncio
import time
import logging

from ingestion.base import CatalogSource, FetchResult
from ingestion.lock import SyncLock, sync_lock
from ingestion.loaders.ship_loader import ShipLoader
from ingestion.transformers.ship_transform import transform_ship
from models.base import SyncStatus, StalePolicy
from models.ship import Ship
from models.sync_run import ShipSyncRun
from schemas.fleetyards import validate_ship_record, record_display_name
from core.config import settings
from core.exceptions import (
    CatalogException,
    ExtractionError,
    SyncAbortedError,
    SyncInProgressError,
    UpsertError
)

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one sync run, mirrored in its ``ship_sync_runs`` record"""
    sync_version: int
    previous_version: int
    status: SyncStatus
    ship_count: int = 0
    new_ships: int = 0
    updated_ships: int = 0
    unchanged_ships: int = 0
    skipped_ships: int = 0
    stale_ships: int = 0
    pages_processed: int = 0
    duration_ms: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


class ShipSyncRunner:
    """
    Ship sync orchestrator

    Responsibilities:
    - Guarantee at most one run at a time
    - Compute the next sync version from the store
    - Fetch → validate → transform → upsert
    - Detect stale ships and apply the configured policy
    - Record accurate run metrics
    """

    def __init__(
        self,
        db_session: AsyncSession,
        stale_policy: Optional[str] = None,
        delta_enabled: Optional[bool] = None,
        min_count_ratio: Optional[float] = None,
        lease_seconds: Optional[int] = None,
        lock: Optional[SyncLock] = None
    ):
        self.db = db_session
        self.loader = ShipLoader(db_session)
        self.stale_policy = StalePolicy(stale_policy or settings.STALE_POLICY)
        self.delta_enabled = settings.SYNC_DELTA_ENABLED if delta_enabled is None else delta_enabled
        self.min_count_ratio = settings.SYNC_MIN_COUNT_RATIO if min_count_ratio is None else min_count_ratio
        self.lease_seconds = lease_seconds or settings.SYNC_LEASE_SECONDS
        self.lock = lock or sync_lock

    # ------------------------------------------------------------------
    # Store queries
    # ------------------------------------------------------------------

    async def current_version(self) -> int:
        """Highest sync version seen in either the run log or the ships table"""
        run_max = (await self.db.execute(select(func.max(ShipSyncRun.sync_version)))).scalar() or 0
        ship_max = await self.loader.current_version()
        return max(run_max, ship_max, 0)

    async def previous_ship_count(self) -> int:
        """Ship count of the last run that wrote data"""
        result = await self.db.execute(
            select(ShipSyncRun.ship_count)
            .where(ShipSyncRun.status.in_([SyncStatus.SUCCESS, SyncStatus.PARTIAL]))
            .order_by(ShipSyncRun.sync_version.desc())
            .limit(1)
        )
        return result.scalar() or 0

    async def active_ship_count(self) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Ship).where(Ship.is_stale.is_(False))
        )
        return result.scalar() or 0

    async def _check_lease(self):
        cutoff = datetime.utcnow() - timedelta(seconds=self.lease_seconds)
        result = await self.db.execute(
            select(ShipSyncRun.sync_version).where(
                ShipSyncRun.status == SyncStatus.RUNNING,
                ShipSyncRun.started_at > cutoff
            ).limit(1)
        )
        running = result.scalar()
        if running is not None:
            raise SyncInProgressError(
                "Another ship sync holds the run lease",
                context={"sync_version": running, "lease_seconds": self.lease_seconds}
            )

    async def _start_run(self, sync_version: int) -> int:
        run = ShipSyncRun(
            sync_version=sync_version,
            status=SyncStatus.RUNNING,
            stale_policy=self.stale_policy.value,
            started_at=datetime.utcnow(),
            errors=[]
        )
        self.db.add(run)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise SyncInProgressError(
                f"Sync version {sync_version} was claimed by another run",
                context={"sync_version": sync_version},
                original_exception=e
            )
        return run.id

    async def _abandon_run(self, run_id: int, result: SyncResult):
        await self.db.rollback()
        await self._complete_run(run_id, result)

    async def _complete_run(self, run_id: int, result: SyncResult):
        await self.db.execute(
            update(ShipSyncRun)
            .where(ShipSyncRun.id == run_id)
            .values(
                status=result.status,
                completed_at=datetime.utcnow(),
                duration_ms=result.duration_ms,
                ship_count=result.ship_count,
                new_ships=result.new_ships,
                updated_ships=result.updated_ships,
                unchanged_ships=result.unchanged_ships,
                skipped_ships=result.skipped_ships,
                stale_ships=result.stale_ships,
                pages_processed=result.pages_processed,
                errors=list(result.errors)
            )
        )
        await self.db.commit()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self, source: CatalogSource) -> SyncResult:
        """
        Execute one sync run end to end.

        Args:
            source: Catalog source to fetch from

        Returns:
            SyncResult with status "success" or "partial" or "failed"

        Raises:
            SyncInProgressError: Another run is active
            ExtractionError: The source could not be fully read (run recorded as failed)
            SyncAbortedError: A safety guard stopped the run (run recorded as failed)
        """
        async with self.lock.hold():
            await self._check_lease()

            previous_version = await self.current_version()
            sync_version = previous_version + 1
            run_id = await self._start_run(sync_version)

            logger.info(
                f"Starting ship sync v{sync_version} from {source.source_name} "
                f"(stale policy: {self.stale_policy.value})"
            )

            started = time.monotonic()
            result = SyncResult(
                sync_version=sync_version,
                previous_version=previous_version,
                status=SyncStatus.RUNNING
            )

            try:
                await self._execute(source, result)
            except (ExtractionError, SyncAbortedError) as e:
                logger.error(
                    f"Ship sync v{sync_version} failed: {e.message}",
                    extra={"error_context": e.to_dict()}
                )
                await self.db.rollback()
                result.status = SyncStatus.FAILED
                result.errors.insert(0, e.message)
                result.duration_ms = int((time.monotonic() - started) * 1000)
                await self._complete_run(run_id, result)
                raise
            except asyncio.CancelledError:
                logger.warning(f"Ship sync v{sync_version} cancelled")
                result.status = SyncStatus.FAILED
                result.errors.insert(0, "Sync cancelled")
                result.duration_ms = int((time.monotonic() - started) * 1000)
                # release the run lease even if the caller cancels again
                await asyncio.shield(self._abandon_run(run_id, result))
                raise
            except Exception as e:
                logger.exception(f"Unexpected error in ship sync v{sync_version}")
                await self.db.rollback()
                result.status = SyncStatus.FAILED
                result.errors.insert(0, f"Unexpected error: {e}")
                result.duration_ms = int((time.monotonic() - started) * 1000)
                await self._complete_run(run_id, result)
                raise CatalogException(
                    "Unexpected error in ship sync",
                    context={"sync_version": sync_version},
                    original_exception=e
                )

            result.duration_ms = int((time.monotonic() - started) * 1000)
            await self._complete_run(run_id, result)

            logger.info(
                f"Ship sync v{sync_version} {result.status.value}: "
                f"{result.ship_count} ships, {result.new_ships} new, "
                f"{result.updated_ships} updated, {result.unchanged_ships} unchanged, "
                f"{result.skipped_ships} skipped, {result.stale_ships} stale "
                f"({result.duration_ms}ms)"
            )
            return result

    async def _execute(self, source: CatalogSource, result: SyncResult):
        sync_version = result.sync_version

        # --------------------------------------------------
        # PHASE 1: FETCH
        # --------------------------------------------------
        try:
            fetched: FetchResult = await source.fetch_all()
        except ExtractionError:
            raise
        except Exception as e:
            raise ExtractionError(
                "Unexpected error during fetch",
                context={"source_name": source.source_name},
                original_exception=e
            )

        result.pages_processed = fetched.pages_processed
        fetch_errors = list(fetched.errors)
        raw_records = fetched.records
        logger.info(f"Fetched {len(raw_records)} records in {fetched.pages_processed} pages")

        # --------------------------------------------------
        # PHASE 2: SAFETY GUARDS
        # --------------------------------------------------
        if not raw_records:
            result.errors.extend(fetch_errors)
            raise SyncAbortedError(
                "Fetch returned 0 ships",
                context={"sync_version": sync_version}
            )

        previous_count = await self.previous_ship_count()
        if previous_count > 0 and len(raw_records) < previous_count * self.min_count_ratio:
            result.errors.extend(fetch_errors)
            raise SyncAbortedError(
                f"Ship count dropped below {int(self.min_count_ratio * 100)}% threshold",
                context={
                    "sync_version": sync_version,
                    "fetched": len(raw_records),
                    "previous_count": previous_count
                }
            )

        # --------------------------------------------------
        # PHASE 3: VALIDATE + DELTA
        # --------------------------------------------------
        stored = await self.loader.existing_versions()
        validation_errors: List[str] = []
        upsert_errors: List[str] = []
        observed_ids: Set[str] = set()
        unchanged_ids: List[str] = []
        to_write = []

        for raw in raw_records:
            ship, issues = validate_ship_record(raw)
            if ship is None:
                message = f'Validation failed for "{record_display_name(raw)}": {", ".join(issues)}'
                validation_errors.append(message)
                logger.warning(message)
                raw_id = raw.get("id") if isinstance(raw, dict) else None
                if isinstance(raw_id, str):
                    observed_ids.add(raw_id)
                continue

            observed_ids.add(ship.id)
            upstream_updated_at = ship.updated_at or ship.last_updated_at or ""
            stored_updated_at = stored.get(ship.id)

            if (
                self.delta_enabled
                and stored_updated_at
                and stored_updated_at == upstream_updated_at
            ):
                unchanged_ids.append(ship.id)
                continue

            to_write.append(ship)

        logger.info(
            f"Validation: {len(to_write)} new/changed, {len(unchanged_ids)} unchanged, "
            f"{len(validation_errors)} invalid"
        )

        # --------------------------------------------------
        # PHASE 4: TRANSFORM + UPSERT
        # --------------------------------------------------
        written: Set[str] = set()
        for ship in to_write:
            item = transform_ship(ship, sync_version)
            existed = item.fleetyards_id in stored or item.fleetyards_id in written
            try:
                await self.loader.upsert(item)
            except UpsertError as e:
                upsert_errors.append(f'Upsert failed for "{item.name}": {e.original_exception or e.message}')
                logger.error(
                    f"Upsert failed for {item.fleetyards_id} ({item.name})",
                    extra={"error_context": e.to_dict()}
                )
                continue

            written.add(item.fleetyards_id)
            if existed:
                result.updated_ships += 1
            else:
                result.new_ships += 1

        if unchanged_ids:
            await self.loader.restamp(unchanged_ids, sync_version)

        # Observed upstream but not written this run: keep them out of the stale set
        unchanged_set = set(unchanged_ids)
        unwritten = [
            fid for fid in observed_ids
            if fid in stored and fid not in written and fid not in unchanged_set
        ]
        if unwritten:
            await self.loader.restamp(unwritten, sync_version)

        result.unchanged_ships = len(unchanged_ids)
        result.skipped_ships = len(validation_errors) + len(upsert_errors)

        # --------------------------------------------------
        # PHASE 5: STALE DETECTION
        # --------------------------------------------------
        nothing_valid = not written and not unchanged_ids
        if nothing_valid:
            logger.warning("No ship validated or matched; skipping stale detection")
        elif fetch_errors:
            logger.warning("Fetch reported errors; payload may be truncated, skipping stale detection")
        else:
            result.stale_ships = await self.loader.apply_stale_policy(sync_version, self.stale_policy)

        # --------------------------------------------------
        # PHASE 6: STATUS
        # --------------------------------------------------
        result.ship_count = await self.active_ship_count()
        result.errors.extend(fetch_errors + validation_errors + upsert_errors)

        if nothing_valid:
            result.status = SyncStatus.FAILED
        elif result.errors:
            result.status = SyncStatus.PARTIAL
        else:
            result.status = SyncStatus.SUCCESS
