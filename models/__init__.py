"""
SQLAlchemy ORM models for database tables.

Models:
    base: Base declarative class, portable JSON type and shared enums (SyncStatus, StalePolicy)
    ship: The canonical ship catalog record
    sync_run: Audit log of ship sync runs (also carries the sync version counter)

Database Schema:
    All models inherit from the Base declarative class. JSON columns use
    JSONB on PostgreSQL and plain JSON elsewhere so the same models run
    against SQLite in tests.

Usage:
    from models import Ship, ShipSyncRun
    from models.base import SyncStatus, StalePolicy
"""

from models.base import Base, SyncStatus, StalePolicy
from models.ship import Ship
from models.sync_run import ShipSyncRun

__all__ = [
    "Base",
    "SyncStatus",
    "StalePolicy",
    "Ship",
    "ShipSyncRun",
]
