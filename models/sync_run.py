from sqlalchemy import Column, BigInteger, Integer, String, Enum, DateTime, Index
from datetime import datetime
from models.base import Base, JSONType, SyncStatus


class ShipSyncRun(Base):
    """
    Audit record for one ship sync run.

    Purpose:
    - Persist the monotonic sync version (one row per version)
    - Lease for the cross-process single-flight check (status RUNNING)
    - Counters for the sync-status endpoint and the health check
    - Shrink guard baseline (ship_count of the last successful run)
    """
    __tablename__ = "ship_sync_runs"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    sync_version = Column(Integer, nullable=False, unique=True)

    status = Column(
        Enum(SyncStatus, name="sync_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SyncStatus.RUNNING,
        index=True
    )
    stale_policy = Column(String(20), nullable=False, default="flag")

    # Timestamps
    started_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)
    duration_ms = Column(Integer, nullable=True)

    # Statistics
    ship_count = Column(Integer, nullable=False, default=0)
    new_ships = Column(Integer, nullable=False, default=0)
    updated_ships = Column(Integer, nullable=False, default=0)
    unchanged_ships = Column(Integer, nullable=False, default=0)
    skipped_ships = Column(Integer, nullable=False, default=0)
    stale_ships = Column(Integer, nullable=False, default=0)
    pages_processed = Column(Integer, nullable=False, default=0)

    # Diagnostics
    errors = Column(JSONType, nullable=False, default=list)

    __table_args__ = (
        Index("idx_sync_run_status_started", "status", "started_at"),
    )
