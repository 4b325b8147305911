"""
Transform validated FleetYards records into the canonical ship shape
"""

from typing import Optional
from datetime import datetime
import math
from schemas.fleetyards import FleetYardsShip
from schemas.ship import ShipUpsert, ShipImages
from catalog.images import extract_image_url


def _physical(value: Optional[float]) -> float:
    """Physical numerics: 0 means unknown, never negative"""
    if value is None or not math.isfinite(value) or value < 0:
        return 0
    return value


def _optional(value: Optional[float]) -> Optional[float]:
    """Performance/commercial numerics: None means not applicable"""
    if value is None or not math.isfinite(value) or value < 0:
        return None
    return value


def _crew(value: Optional[float]) -> int:
    return int(_physical(value))


def _url(value: Optional[str]) -> Optional[str]:
    if value and value.strip():
        return value.strip()
    return None


def transform_ship(
    raw: FleetYardsShip,
    sync_version: int,
    synced_at: Optional[datetime] = None
) -> ShipUpsert:
    """
    Map one validated source record to a ShipUpsert.

    Every field is mapped explicitly; unknown source fields never reach
    storage. The output depends only on the arguments: when ``synced_at`` is
    None the loader stamps ``synced_at``/``updated_at`` at write time.

    Args:
        raw: Record validated by ``FleetYardsShip`` (defaults applied)
        sync_version: Version of the sync run writing this record
        synced_at: Optional write timestamp

    Returns:
        ShipUpsert ready for the loader (no id, no created_at)
    """
    return ShipUpsert(
        # Identity
        fleetyards_id=raw.id,
        slug=raw.slug,
        name=raw.name,
        sc_identifier=raw.sc_identifier or None,

        # Manufacturer (long name dropped)
        manufacturer_name=raw.manufacturer.name,
        manufacturer_code=raw.manufacturer.code,
        manufacturer_slug=raw.manufacturer.slug,

        # Classification and status
        classification=raw.classification or "",
        classification_label=raw.classification_label or "",
        focus=raw.focus or "",
        size=raw.size or "",
        production_status=raw.production_status or "",

        # Crew
        crew_min=_crew(raw.crew.min if raw.crew else None),
        crew_max=_crew(raw.crew.max if raw.crew else None),

        # Physical
        cargo=_physical(raw.cargo),
        length=_physical(raw.length),
        beam=_physical(raw.beam),
        height=_physical(raw.height),
        mass=_physical(raw.mass),

        # Performance
        scm_speed=_optional(raw.scm_speed),
        hydrogen_fuel_tank_size=_optional(raw.hydrogen_fuel_tank_size),
        quantum_fuel_tank_size=_optional(raw.quantum_fuel_tank_size),

        # Pricing
        pledge_price=_optional(raw.pledge_price),
        price=_optional(raw.price),

        # Content
        description=raw.description,
        store_url=_url(raw.store_url),

        # Images at source and medium resolutions
        images=ShipImages(
            store=_url(raw.store_image),
            angled_view=extract_image_url(raw.angled_view, "source"),
            angled_view_medium=extract_image_url(raw.angled_view, "medium"),
            side_view=extract_image_url(raw.side_view, "source"),
            side_view_medium=extract_image_url(raw.side_view, "medium"),
            top_view=extract_image_url(raw.top_view, "source"),
            top_view_medium=extract_image_url(raw.top_view, "medium"),
            front_view=extract_image_url(raw.front_view, "source"),
            front_view_medium=extract_image_url(raw.front_view, "medium"),
            fleetchart_image=_url(raw.fleetchart_image),
        ),

        # Sync metadata
        sync_version=sync_version,
        fleetyards_updated_at=raw.updated_at or raw.last_updated_at or "",
        synced_at=synced_at,
        updated_at=synced_at,
    )
