"""
Integration tests for the ship sync pipeline
"""

import asyncio
import pytest
from datetime import datetime, timedelta
from sqlalchemy import select, func
from ingestion.base import CatalogSource, FetchResult
from ingestion.runner import ShipSyncRunner
from ingestion.lock import SyncLock
from models.base import SyncStatus
from models.ship import Ship
from models.sync_run import ShipSyncRun
from core.exceptions import NetworkError, SyncAbortedError, SyncInProgressError


async def _ships(session):
    result = await session.execute(select(Ship).order_by(Ship.name).execution_options(populate_existing=True))
    return result.scalars().all()


async def _runs(session):
    result = await session.execute(select(ShipSyncRun).order_by(ShipSyncRun.sync_version).execution_options(populate_existing=True))
    return result.scalars().all()


def _runner(session, **kwargs):
    kwargs.setdefault("lock", SyncLock())
    return ShipSyncRunner(session, **kwargs)


class TestSyncPipeline:
    """End-to-end sync behaviour"""

    @pytest.mark.asyncio
    async def test_first_sync_inserts_ships(self, db_session, ship_record, stub_source):
        source = stub_source([ship_record("Aurora MR"), ship_record("Avenger Titan")])

        result = await _runner(db_session).run(source)

        assert result.status == SyncStatus.SUCCESS
        assert result.sync_version == 1
        assert result.previous_version == 0
        assert result.new_ships == 2
        assert result.updated_ships == 0
        assert result.ship_count == 2
        assert result.errors == []

        ships = await _ships(db_session)
        assert [s.name for s in ships] == ["Aurora MR", "Avenger Titan"]
        for ship in ships:
            assert ship.sync_version == 1
            assert ship.is_stale is False
            assert ship.created_at == ship.updated_at

        runs = await _runs(db_session)
        assert len(runs) == 1
        assert runs[0].status == SyncStatus.SUCCESS
        assert runs[0].ship_count == 2
        assert runs[0].completed_at is not None

    @pytest.mark.asyncio
    async def test_resync_preserves_created_at(self, db_session, ship_record, stub_source):
        await _runner(db_session).run(stub_source([ship_record("Aurora MR")]))
        first = (await _ships(db_session))[0]
        created_at = first.created_at

        changed = ship_record("Aurora MR", cargo=12, updatedAt="2024-03-01T00:00:00Z")
        result = await _runner(db_session).run(stub_source([changed]))

        db_session.expire_all()
        ship = (await _ships(db_session))[0]
        assert result.sync_version == 2
        assert result.updated_ships == 1
        assert result.new_ships == 0
        assert ship.cargo == 12
        assert ship.sync_version == 2
        assert ship.created_at == created_at
        assert ship.updated_at >= created_at
        assert await db_session.scalar(select(func.count()).select_from(Ship)) == 1

    @pytest.mark.asyncio
    async def test_unchanged_records_restamped(self, db_session, ship_record, stub_source):
        records = [ship_record("Aurora MR"), ship_record("Avenger Titan")]
        await _runner(db_session).run(stub_source(records))

        result = await _runner(db_session).run(stub_source(records))

        db_session.expire_all()
        assert result.unchanged_ships == 2
        assert result.updated_ships == 0
        assert result.status == SyncStatus.SUCCESS
        assert all(s.sync_version == 2 for s in await _ships(db_session))

    @pytest.mark.asyncio
    async def test_delta_disabled_rewrites_everything(self, db_session, ship_record, stub_source):
        records = [ship_record("Aurora MR")]
        await _runner(db_session).run(stub_source(records))

        result = await _runner(db_session, delta_enabled=False).run(stub_source(records))

        assert result.updated_ships == 1
        assert result.unchanged_ships == 0

    @pytest.mark.asyncio
    async def test_missing_ship_flagged_stale(self, db_session, ship_record, stub_source):
        await _runner(db_session).run(stub_source([
            ship_record("Aurora MR"),
            ship_record("Avenger Titan"),
            ship_record("Mustang Alpha"),
        ]))

        result = await _runner(db_session, min_count_ratio=0).run(stub_source([
            ship_record("Aurora MR"),
            ship_record("Avenger Titan"),
        ]))

        db_session.expire_all()
        ships = {s.name: s for s in await _ships(db_session)}
        assert result.stale_ships == 1
        assert result.ship_count == 2
        assert ships["Mustang Alpha"].is_stale is True
        assert ships["Mustang Alpha"].sync_version == 1
        assert ships["Aurora MR"].is_stale is False

    @pytest.mark.asyncio
    async def test_stale_ship_returns(self, db_session, ship_record, stub_source):
        three = [ship_record("Aurora MR"), ship_record("Avenger Titan"), ship_record("Mustang Alpha")]
        await _runner(db_session).run(stub_source(three))
        await _runner(db_session, min_count_ratio=0).run(stub_source(three[:2]))

        await _runner(db_session).run(stub_source(three))

        db_session.expire_all()
        assert all(not s.is_stale for s in await _ships(db_session))

    @pytest.mark.asyncio
    async def test_delete_policy(self, db_session, ship_record, stub_source):
        await _runner(db_session).run(stub_source([
            ship_record("Aurora MR"),
            ship_record("Avenger Titan"),
            ship_record("Mustang Alpha"),
        ]))

        result = await _runner(db_session, stale_policy="delete", min_count_ratio=0).run(stub_source([
            ship_record("Aurora MR"),
            ship_record("Avenger Titan"),
        ]))

        assert result.stale_ships == 1
        assert [s.name for s in await _ships(db_session)] == ["Aurora MR", "Avenger Titan"]

    @pytest.mark.asyncio
    async def test_invalid_record_skipped(self, db_session, ship_record, stub_source):
        bad = ship_record("Broken Ship")
        del bad["slug"]

        result = await _runner(db_session).run(stub_source([ship_record("Aurora MR"), bad]))

        assert result.status == SyncStatus.PARTIAL
        assert result.new_ships == 1
        assert result.skipped_ships == 1
        assert result.errors[0].startswith('Validation failed for "Broken Ship"')
        assert [s.name for s in await _ships(db_session)] == ["Aurora MR"]

    @pytest.mark.asyncio
    async def test_invalid_known_ship_not_flagged_stale(self, db_session, ship_record, stub_source):
        await _runner(db_session).run(stub_source([ship_record("Aurora MR"), ship_record("Avenger Titan")]))

        broken = ship_record("Avenger Titan", updatedAt="2024-05-01T00:00:00Z")
        broken["manufacturer"] = None
        result = await _runner(db_session).run(stub_source([ship_record("Aurora MR"), broken]))

        db_session.expire_all()
        ships = {s.name: s for s in await _ships(db_session)}
        assert result.status == SyncStatus.PARTIAL
        assert result.stale_ships == 0
        assert ships["Avenger Titan"].is_stale is False

    @pytest.mark.asyncio
    async def test_all_invalid_fails_without_stale_pass(self, db_session, ship_record, stub_source):
        await _runner(db_session).run(stub_source([ship_record("Aurora MR")]))

        bad = ship_record("Other", id="nope")
        result = await _runner(db_session).run(stub_source([bad]))

        db_session.expire_all()
        assert result.status == SyncStatus.FAILED
        assert result.stale_ships == 0
        assert (await _ships(db_session))[0].is_stale is False

    @pytest.mark.asyncio
    async def test_fetch_errors_skip_stale_detection(self, db_session, ship_record, stub_source):
        await _runner(db_session).run(stub_source([ship_record("Aurora MR"), ship_record("Avenger Titan")]))

        source = stub_source([ship_record("Aurora MR")], errors=["Reached MAX_PAGES limit (10); pagination stopped"])
        result = await _runner(db_session, min_count_ratio=0).run(source)

        assert result.status == SyncStatus.PARTIAL
        assert result.stale_ships == 0
        assert "Reached MAX_PAGES limit (10); pagination stopped" in result.errors


class TestSyncGuards:
    """Runs that must not touch the catalog"""

    @pytest.mark.asyncio
    async def test_fetch_failure_writes_nothing(self, db_session, stub_source):
        source = stub_source(exc=NetworkError("Server error after 3 retries"))

        with pytest.raises(NetworkError):
            await _runner(db_session).run(source)

        runs = await _runs(db_session)
        assert await _ships(db_session) == []
        assert len(runs) == 1
        assert runs[0].status == SyncStatus.FAILED
        assert runs[0].errors[0] == "Server error after 3 retries"

    @pytest.mark.asyncio
    async def test_empty_fetch_aborts(self, db_session, ship_record, stub_source):
        await _runner(db_session).run(stub_source([ship_record("Aurora MR")]))

        with pytest.raises(SyncAbortedError):
            await _runner(db_session).run(stub_source([]))

        db_session.expire_all()
        ships = await _ships(db_session)
        assert len(ships) == 1
        assert ships[0].is_stale is False
        assert ships[0].sync_version == 1

    @pytest.mark.asyncio
    async def test_shrunken_fetch_aborts(self, db_session, ship_record, stub_source):
        ten = [ship_record(f"Ship {i}") for i in range(10)]
        await _runner(db_session).run(stub_source(ten))

        with pytest.raises(SyncAbortedError):
            await _runner(db_session).run(stub_source(ten[:7]))

        db_session.expire_all()
        assert all(not s.is_stale for s in await _ships(db_session))
        runs = await _runs(db_session)
        assert runs[-1].status == SyncStatus.FAILED

    @pytest.mark.asyncio
    async def test_failed_run_consumes_version(self, db_session, ship_record, stub_source):
        with pytest.raises(SyncAbortedError):
            await _runner(db_session).run(stub_source([]))

        result = await _runner(db_session).run(stub_source([ship_record("Aurora MR")]))

        assert result.sync_version == 2
        assert result.previous_version == 1

    @pytest.mark.asyncio
    async def test_concurrent_run_rejected(self, db_session, ship_record, stub_source):
        lock = SyncLock()

        async with lock.hold():
            with pytest.raises(SyncInProgressError):
                await _runner(db_session, lock=lock).run(stub_source([ship_record("Aurora MR")]))

        assert await _runs(db_session) == []

    @pytest.mark.asyncio
    async def test_running_lease_rejects(self, db_session, ship_record, stub_source):
        db_session.add(ShipSyncRun(
            sync_version=1,
            status=SyncStatus.RUNNING,
            stale_policy="flag",
            started_at=datetime.utcnow() - timedelta(minutes=5),
            errors=[]
        ))
        await db_session.commit()

        with pytest.raises(SyncInProgressError):
            await _runner(db_session).run(stub_source([ship_record("Aurora MR")]))

    @pytest.mark.asyncio
    async def test_expired_lease_ignored(self, db_session, ship_record, stub_source):
        db_session.add(ShipSyncRun(
            sync_version=1,
            status=SyncStatus.RUNNING,
            stale_policy="flag",
            started_at=datetime.utcnow() - timedelta(hours=2),
            errors=[]
        ))
        await db_session.commit()

        result = await _runner(db_session, lease_seconds=3600).run(stub_source([ship_record("Aurora MR")]))

        assert result.sync_version == 2
        assert result.status == SyncStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_cancelled_run_releases_lease(self, db_session, ship_record, stub_source):
        class HangingSource(CatalogSource):
            source_name = "hanging"

            def __init__(self):
                self.started = asyncio.Event()

            async def fetch_all(self) -> FetchResult:
                self.started.set()
                await asyncio.Event().wait()

        source = HangingSource()
        task = asyncio.create_task(_runner(db_session).run(source))
        await asyncio.wait_for(source.started.wait(), timeout=5)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        runs = await _runs(db_session)
        assert [(r.sync_version, r.status) for r in runs] == [(1, SyncStatus.FAILED)]
        assert runs[0].errors == ["Sync cancelled"]
        assert runs[0].completed_at is not None

        result = await _runner(db_session).run(stub_source([ship_record("Aurora MR")]))

        assert result.sync_version == 2
        assert result.status == SyncStatus.SUCCESS
