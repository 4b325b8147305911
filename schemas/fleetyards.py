"""
Validation schema for ship records returned by the FleetYards catalog service.

This is the trust boundary of the sync pipeline: raw JSON from the source is
validated into ``FleetYardsShip`` before it reaches the transform stage.

Required (a record failing these is skipped):
- id (UUID), name, slug, manufacturer {name, code, slug}

Everything else is optional with defaults so that records missing
non-critical data are still ingested. Unknown fields are kept on the model
but never mapped into storage.
"""

from pydantic import BaseModel, Field, ValidationError, validator, root_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Any, Tuple
import uuid

VIEW_FIELDS = ("angledView", "sideView", "topView", "frontView")


class FleetYardsImageView(BaseModel):
    """One image view at several resolutions"""
    source: Optional[str] = None
    small: Optional[str] = None
    medium: Optional[str] = None
    large: Optional[str] = None

    class Config:
        extra = "ignore"


class FleetYardsManufacturer(BaseModel):
    name: str
    code: str
    slug: str
    long_name: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "allow"


class FleetYardsCrew(BaseModel):
    min: float = 0
    max: float = 0
    min_label: Optional[str] = None
    max_label: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "allow"

    @validator("min", "max", pre=True)
    def none_to_zero(cls, v):
        return 0 if v is None else v


class FleetYardsShip(BaseModel):
    """A single ship record as served by ``GET /v1/models``."""

    # Required
    id: str
    name: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    manufacturer: FleetYardsManufacturer

    # Identifiers
    sc_identifier: Optional[str] = None
    rsi_id: Optional[int] = None
    rsi_name: Optional[str] = None
    rsi_slug: Optional[str] = None

    # Categories
    classification: str = ""
    classification_label: str = ""
    focus: str = ""
    production_status: str = ""
    size: str = ""

    # Crew and physical
    crew: FleetYardsCrew = Field(default_factory=FleetYardsCrew)
    cargo: float = 0
    mass: float = 0
    length: float = 0
    beam: float = 0
    height: float = 0

    # Performance and pricing
    hydrogen_fuel_tank_size: Optional[float] = None
    quantum_fuel_tank_size: Optional[float] = None
    scm_speed: Optional[float] = None
    pledge_price: Optional[float] = None
    price: Optional[float] = None

    # Content
    description: Optional[str] = None
    store_image: Optional[str] = None
    store_url: Optional[str] = None
    angled_view: Optional[FleetYardsImageView] = None
    side_view: Optional[FleetYardsImageView] = None
    top_view: Optional[FleetYardsImageView] = None
    front_view: Optional[FleetYardsImageView] = None
    fleetchart_image: Optional[str] = None

    # Flags
    on_sale: bool = False
    has_images: bool = False
    has_paints: bool = False

    # Source timestamps (kept as ISO strings)
    last_updated_at: str = ""
    created_at: str = ""
    updated_at: str = ""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "allow"

    @root_validator(pre=True)
    def merge_media_views(cls, values):
        """Fill absent top-level image views from the nested ``media`` object"""
        if not isinstance(values, dict):
            return values

        media = values.get("media")
        if not isinstance(media, dict):
            return values

        values = dict(values)
        for key in VIEW_FIELDS + ("storeImage", "fleetchartImage"):
            if values.get(key) is None and media.get(key) is not None:
                values[key] = media[key]
        return values

    @validator("id")
    def validate_uuid(cls, v):
        try:
            uuid.UUID(v)
        except (ValueError, AttributeError, TypeError):
            raise ValueError("id must be a UUID")
        return v

    @validator("angled_view", "side_view", "top_view", "front_view", pre=True)
    def coerce_flat_view(cls, v):
        """The current API format serves some views as a flat URL string"""
        if isinstance(v, str):
            return {"source": v} if v else None
        return v

    @validator("store_image", "fleetchart_image", pre=True)
    def coerce_view_to_url(cls, v):
        if isinstance(v, dict):
            return v.get("source") or v.get("medium")
        return v

    @validator(
        "classification", "classification_label", "focus", "production_status",
        "size", "last_updated_at", "created_at", "updated_at",
        pre=True
    )
    def none_to_empty(cls, v):
        return "" if v is None else v

    @validator("cargo", "mass", "length", "beam", "height", pre=True)
    def none_to_zero(cls, v):
        return 0 if v is None else v

    @validator("crew", pre=True)
    def none_to_default_crew(cls, v):
        return {} if v is None else v


def validate_ship_record(record: Any) -> Tuple[Optional[FleetYardsShip], Optional[List[str]]]:
    """
    Validate one raw record.

    Returns:
        (ship, None) on success, (None, issues) on failure
    """
    try:
        return FleetYardsShip.model_validate(record), None
    except ValidationError as e:
        issues = []
        for err in e.errors():
            location = ".".join(str(part) for part in err.get("loc", ())) or "record"
            issues.append(f"{location}: {err.get('msg')}")
        return None, issues


def record_display_name(record: Any) -> str:
    """Best-effort name of a raw record for diagnostics"""
    if isinstance(record, dict):
        name = record.get("name")
        if isinstance(name, str) and name:
            return name
    return "unknown"
