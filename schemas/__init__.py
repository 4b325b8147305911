"""
Pydantic schemas for data validation and serialization.

Schemas:
    fleetyards: Validation schema for raw records from the FleetYards catalog service
    ship: ShipUpsert (transform output) and ShipDocument (API shape)
    api: API endpoint request/response schemas

Usage:
    from schemas.fleetyards import FleetYardsShip, validate_ship_record
    from schemas.ship import ShipDocument, ShipUpsert
    from schemas.api import ShipListResponse, BatchRequest

Example:
    ship, issues = validate_ship_record(raw_record)
    if ship is None:
        logger.warning(f"Skipping record: {issues}")

Serialization:
    API-facing models use camelCase aliases (``pageSize``, ``fleetyardsId``)
    and accept snake_case names on input.
"""

__all__ = [
    "FleetYardsShip",
    "validate_ship_record",
    "ShipUpsert",
    "ShipDocument",
    "ShipImages",
    "ShipListResponse",
    "BatchRequest",
    "BatchResponse",
    "SyncStatusResponse",
    "WarmImagesResponse",
    "HealthCheckResponse",
]
