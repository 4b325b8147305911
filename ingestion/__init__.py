"""
Ship sync pipeline components.

This package contains all components for pulling the ship catalog from the
external FleetYards service into the local store:

Modules:
    base: Abstract catalog source and the FetchResult container
    runner: Sync orchestrator (guards, validation, upsert, stale detection)
    scheduler: APScheduler cron integration with an overdue catch-up run
    lock: In-process single-flight guard for sync runs

Subpackages:
    extractors: FleetYards HTTP client (pagination, retries, circuit breaker)
    transformers: Validated record -> canonical ship mapping
    loaders: Idempotent upsert, re-stamping and stale handling

Architecture:
    1. Fetch - read every page from the source (any page failure aborts)
    2. Validate - records failing the source schema are skipped with a diagnostic
    3. Transform + Upsert - keyed by fleetyards_id, created_at insert-only
    4. Stale detection - ships not observed by this run are flagged/deleted/ignored

Usage:
    from ingestion.runner import ShipSyncRunner
    from ingestion.extractors.fleetyards_client import FleetYardsClient

Example:
    async with async_session_maker() as session:
        result = await ShipSyncRunner(session).run(FleetYardsClient())
        print(f"Sync v{result.sync_version}: {result.status.value}")
"""

__all__ = [
    "CatalogSource",
    "FetchResult",
    "ShipSyncRunner",
    "SyncResult",
    "ShipSyncScheduler",
    "FleetYardsClient",
    "transform_ship",
    "ShipLoader",
]
