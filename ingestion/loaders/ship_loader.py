"""
Load transformed ships into the catalog store with upsert logic (idempotency)
"""

from typing import Dict, List, Optional, Iterable
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func
from sqlalchemy.dialects import postgresql, sqlite
from models.ship import Ship
from models.base import StalePolicy
from schemas.ship import ShipUpsert
from core.exceptions import UpsertError
import logging

logger = logging.getLogger(__name__)

# Columns never rewritten by an update
INSERT_ONLY_COLUMNS = {"id", "created_at"}

RESTAMP_CHUNK_SIZE = 500


class ShipLoader:
    """
    Write ships with idempotent upsert operations keyed by ``fleetyards_id``.

    Ensures:
    - No duplicate rows on repeated runs
    - ``created_at`` is written on first insert only
    - Every other column is replaced on update
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(Ship)
        if dialect == "sqlite":
            return sqlite.insert(Ship)
        raise UpsertError(f"Upsert is not supported on dialect {dialect}", context={"dialect": dialect})

    async def existing_versions(self) -> Dict[str, str]:
        """``fleetyards_id -> fleetyards_updated_at`` for every stored ship"""
        result = await self.db.execute(select(Ship.fleetyards_id, Ship.fleetyards_updated_at))
        return {row.fleetyards_id: row.fleetyards_updated_at for row in result}

    async def current_version(self) -> int:
        result = await self.db.execute(select(func.max(Ship.sync_version)))
        return result.scalar() or 0

    async def upsert(self, item: ShipUpsert, now: Optional[datetime] = None) -> None:
        """
        Upsert one ship and commit (INSERT ... ON CONFLICT DO UPDATE).

        Raises:
            UpsertError: The write failed; the session has been rolled back
        """
        now = now or datetime.utcnow()
        row = item.to_row()
        row["synced_at"] = row.get("synced_at") or now
        row["updated_at"] = row.get("updated_at") or now
        row["is_stale"] = False

        stmt = self._insert().values(created_at=now, **row)
        stmt = stmt.on_conflict_do_update(
            index_elements=["fleetyards_id"],
            set_={
                column: stmt.excluded[column]
                for column in row
                if column not in INSERT_ONLY_COLUMNS and column != "fleetyards_id"
            }
        )

        try:
            await self.db.execute(stmt)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            raise UpsertError(
                f"Failed to upsert ship {item.name}",
                context={"fleetyards_id": item.fleetyards_id, "name": item.name},
                original_exception=e
            )

    async def restamp(self, fleetyards_ids: Iterable[str], sync_version: int, now: Optional[datetime] = None) -> int:
        """
        Mark unchanged ships as observed by this run without rewriting them.

        Returns:
            Number of rows touched
        """
        now = now or datetime.utcnow()
        ids = list(fleetyards_ids)
        touched = 0

        for i in range(0, len(ids), RESTAMP_CHUNK_SIZE):
            chunk = ids[i:i + RESTAMP_CHUNK_SIZE]
            result = await self.db.execute(
                update(Ship)
                .where(Ship.fleetyards_id.in_(chunk))
                .values(sync_version=sync_version, synced_at=now, is_stale=False)
            )
            touched += result.rowcount or 0

        await self.db.commit()
        return touched

    async def stale_ids(self, sync_version: int) -> List[str]:
        result = await self.db.execute(
            select(Ship.fleetyards_id).where(Ship.sync_version < sync_version)
        )
        return list(result.scalars().all())

    async def apply_stale_policy(self, sync_version: int, policy: StalePolicy) -> int:
        """
        Handle ships last observed before ``sync_version``.

        Returns:
            Number of stale ships found
        """
        stale = await self.stale_ids(sync_version)
        if not stale or policy == StalePolicy.IGNORE:
            return len(stale)

        for i in range(0, len(stale), RESTAMP_CHUNK_SIZE):
            chunk = stale[i:i + RESTAMP_CHUNK_SIZE]
            if policy == StalePolicy.DELETE:
                await self.db.execute(delete(Ship).where(Ship.fleetyards_id.in_(chunk)))
            else:
                await self.db.execute(
                    update(Ship).where(Ship.fleetyards_id.in_(chunk)).values(is_stale=True)
                )

        await self.db.commit()
        logger.info(f"Applied stale policy '{policy.value}' to {len(stale)} ships")
        return len(stale)
