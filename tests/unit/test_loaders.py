"""
Unit tests for the ship loader
"""

import pytest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy import select
from ingestion.loaders.ship_loader import ShipLoader
from ingestion.transformers.ship_transform import transform_ship
from schemas.fleetyards import validate_ship_record
from models.base import StalePolicy
from models.ship import Ship
from core.exceptions import UpsertError


def _item(record, sync_version=1):
    ship, _ = validate_ship_record(record)
    return transform_ship(ship, sync_version)


async def _all(session):
    result = await session.execute(
        select(Ship).order_by(Ship.name).execution_options(populate_existing=True)
    )
    return result.scalars().all()


class TestShipLoader:
    """Test idempotent upserts and stale handling"""

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(self, db_session, ship_record):
        loader = ShipLoader(db_session)
        item = _item(ship_record("Aurora MR"))

        await loader.upsert(item, now=datetime(2024, 1, 1))
        await loader.upsert(item, now=datetime(2024, 1, 2))

        ships = await _all(db_session)
        assert len(ships) == 1
        assert ships[0].created_at == datetime(2024, 1, 1)
        assert ships[0].updated_at == datetime(2024, 1, 2)
        assert ships[0].images["angledView"] == "https://cdn.example.com/aurora-mr/angled.jpg"

    @pytest.mark.asyncio
    async def test_existing_versions(self, db_session, ship_record):
        loader = ShipLoader(db_session)
        record = ship_record("Aurora MR")
        await loader.upsert(_item(record, 4))

        assert await loader.existing_versions() == {record["id"]: "2024-01-15T10:00:00Z"}
        assert await loader.current_version() == 4

    @pytest.mark.asyncio
    async def test_restamp(self, db_session, ship_record):
        loader = ShipLoader(db_session)
        record = ship_record("Aurora MR")
        await loader.upsert(_item(record, 1), now=datetime(2024, 1, 1))

        touched = await loader.restamp([record["id"], "unknown"], 2, now=datetime(2024, 2, 1))

        ship = (await _all(db_session))[0]
        assert touched == 1
        assert ship.sync_version == 2
        assert ship.synced_at == datetime(2024, 2, 1)
        assert ship.updated_at == datetime(2024, 1, 1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("policy,remaining,flagged", [
        (StalePolicy.FLAG, 2, True),
        (StalePolicy.DELETE, 1, None),
        (StalePolicy.IGNORE, 2, False),
    ])
    async def test_apply_stale_policy(self, db_session, ship_record, policy, remaining, flagged):
        loader = ShipLoader(db_session)
        await loader.upsert(_item(ship_record("Aurora MR"), 1))
        await loader.upsert(_item(ship_record("Mustang Alpha"), 1))
        await loader.upsert(_item(ship_record("Aurora MR"), 2))

        count = await loader.apply_stale_policy(2, policy)

        ships = {s.name: s for s in await _all(db_session)}
        assert count == 1
        assert len(ships) == remaining
        assert ships["Aurora MR"].is_stale is False
        if flagged is not None:
            assert ships["Mustang Alpha"].is_stale is flagged

    @pytest.mark.asyncio
    async def test_upsert_failure_rolls_back(self, ship_record):
        session = MagicMock()
        session.get_bind.return_value.dialect.name = "sqlite"
        session.execute = AsyncMock(side_effect=RuntimeError("disk full"))
        session.commit = AsyncMock()
        session.rollback = AsyncMock()

        with pytest.raises(UpsertError) as exc_info:
            await ShipLoader(session).upsert(_item(ship_record("Aurora MR")))

        session.rollback.assert_awaited_once()
        session.commit.assert_not_called()
        assert exc_info.value.context["name"] == "Aurora MR"

    def test_unsupported_dialect(self):
        session = MagicMock()
        session.get_bind.return_value.dialect.name = "mysql"

        with pytest.raises(UpsertError):
            ShipLoader(session)._insert()
