import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch
from ingestion.scheduler import ShipSyncScheduler
from core.exceptions import NetworkError, SyncInProgressError
from models.base import SyncStatus
from models.sync_run import ShipSyncRun


def _session_factory(session):
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = session
    return factory


def test_scheduler_initialization():
    scheduler = ShipSyncScheduler()
    assert scheduler.scheduler is not None
    assert scheduler.SessionLocal is not None


@pytest.mark.asyncio
async def test_sync_job_runs_runner():
    source = MagicMock()
    with patch("ingestion.scheduler.ShipSyncRunner") as mock_runner_cls:
        mock_runner = AsyncMock()
        mock_runner_cls.return_value = mock_runner

        scheduler = ShipSyncScheduler(
            session_factory=_session_factory(AsyncMock()),
            source_factory=lambda: source
        )
        await scheduler.run_sync_job()

        mock_runner.run.assert_awaited_once_with(source)


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    SyncInProgressError("busy"),
    NetworkError("upstream down"),
    RuntimeError("unexpected"),
])
async def test_sync_job_never_raises(error):
    with patch("ingestion.scheduler.ShipSyncRunner") as mock_runner_cls:
        mock_runner_cls.return_value.run = AsyncMock(side_effect=error)

        scheduler = ShipSyncScheduler(
            session_factory=_session_factory(AsyncMock()),
            source_factory=MagicMock()
        )
        await scheduler.run_sync_job()


@pytest.mark.asyncio
async def test_overdue_when_never_synced(session_factory):
    scheduler = ShipSyncScheduler(session_factory=session_factory)
    assert await scheduler.is_overdue() is True


@pytest.mark.asyncio
async def test_not_overdue_after_recent_run(session_factory):
    async with session_factory() as session:
        session.add(ShipSyncRun(
            sync_version=1,
            status=SyncStatus.SUCCESS,
            stale_policy="flag",
            started_at=datetime.utcnow() - timedelta(hours=1),
            errors=[]
        ))
        await session.commit()

    scheduler = ShipSyncScheduler(session_factory=session_factory)
    assert await scheduler.is_overdue() is False


@pytest.mark.asyncio
async def test_run_if_overdue_triggers_sync():
    scheduler = ShipSyncScheduler()
    scheduler.is_overdue = AsyncMock(return_value=True)
    scheduler.run_sync_job = AsyncMock()

    await scheduler.run_if_overdue()

    scheduler.run_sync_job.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_if_overdue_skips_recent():
    scheduler = ShipSyncScheduler()
    scheduler.is_overdue = AsyncMock(return_value=False)
    scheduler.run_sync_job = AsyncMock()

    await scheduler.run_if_overdue()

    scheduler.run_sync_job.assert_not_called()


def test_start_disabled():
    with patch("ingestion.scheduler.settings") as mock_settings:
        mock_settings.SHIP_SYNC_ENABLED = False
        scheduler = ShipSyncScheduler()
        assert scheduler.start() is False
        assert not scheduler.scheduler.running


def test_start_rejects_invalid_cron():
    with patch("ingestion.scheduler.settings") as mock_settings:
        mock_settings.SHIP_SYNC_ENABLED = True
        mock_settings.SHIP_SYNC_CRON_SCHEDULE = "not a cron"
        scheduler = ShipSyncScheduler()
        assert scheduler.start() is False


@pytest.mark.asyncio
async def test_start_registers_jobs():
    with patch("ingestion.scheduler.settings") as mock_settings:
        mock_settings.SHIP_SYNC_ENABLED = True
        mock_settings.SHIP_SYNC_CRON_SCHEDULE = "0 0 */2 * *"
        scheduler = ShipSyncScheduler()
        scheduler.run_if_overdue = AsyncMock()

        assert scheduler.start() is True
        try:
            job = scheduler.scheduler.get_job("ship_sync")
            assert job is not None
            assert job.max_instances == 1
            assert job.coalesce is True
        finally:
            scheduler.stop()
