"""
Pydantic schemas for the canonical ship record.

ShipUpsert is the transform stage output (flat, column-shaped, ready for the
loader). ShipDocument is the nested, camelCase shape served by the API.
"""

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Optional, Dict, Any
from datetime import datetime

IMAGE_KEYS = (
    "store",
    "angledView",
    "angledViewMedium",
    "sideView",
    "sideViewMedium",
    "topView",
    "topViewMedium",
    "frontView",
    "frontViewMedium",
    "fleetchartImage",
)


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


class ShipImages(CamelModel):
    """Stored image URLs; every key is a URL or None, never ''"""
    store: Optional[str] = None
    angled_view: Optional[str] = None
    angled_view_medium: Optional[str] = None
    side_view: Optional[str] = None
    side_view_medium: Optional[str] = None
    top_view: Optional[str] = None
    top_view_medium: Optional[str] = None
    front_view: Optional[str] = None
    front_view_medium: Optional[str] = None
    fleetchart_image: Optional[str] = None

    def to_json(self) -> Dict[str, Optional[str]]:
        """camelCase dict as stored in the ``images`` column"""
        return self.model_dump(by_alias=True)


class Manufacturer(CamelModel):
    name: str
    code: str
    slug: str


class Crew(CamelModel):
    min: int = 0
    max: int = 0


class ShipUpsert(BaseModel):
    """
    One transformed record, keyed by ``fleetyards_id``.

    ``synced_at``/``updated_at`` are left as None by a pure transform and
    stamped by the loader at write time.
    """
    fleetyards_id: str
    slug: str
    name: str
    sc_identifier: Optional[str] = None

    manufacturer_name: str
    manufacturer_code: str
    manufacturer_slug: str

    classification: str = ""
    classification_label: str = ""
    focus: str = ""
    size: str = ""
    production_status: str = ""

    crew_min: int = Field(default=0, ge=0)
    crew_max: int = Field(default=0, ge=0)

    cargo: float = Field(default=0, ge=0)
    length: float = Field(default=0, ge=0)
    beam: float = Field(default=0, ge=0)
    height: float = Field(default=0, ge=0)
    mass: float = Field(default=0, ge=0)

    scm_speed: Optional[float] = Field(default=None, ge=0)
    hydrogen_fuel_tank_size: Optional[float] = Field(default=None, ge=0)
    quantum_fuel_tank_size: Optional[float] = Field(default=None, ge=0)

    pledge_price: Optional[float] = Field(default=None, ge=0)
    price: Optional[float] = Field(default=None, ge=0)

    description: Optional[str] = None
    store_url: Optional[str] = None
    images: ShipImages = Field(default_factory=ShipImages)

    sync_version: int = Field(..., ge=1)
    fleetyards_updated_at: str = ""
    synced_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_row(self) -> Dict[str, Any]:
        """Column values for ``models.ship.Ship``"""
        row = self.model_dump(exclude={"images"})
        row["images"] = self.images.to_json()
        return row


class ShipDocument(CamelModel):
    """Ship as served by the catalog API"""
    id: int
    fleetyards_id: str
    slug: str
    name: str
    sc_identifier: Optional[str] = None
    manufacturer: Manufacturer
    classification: str = ""
    classification_label: str = ""
    focus: str = ""
    size: str = ""
    production_status: str = ""
    crew: Crew = Field(default_factory=Crew)
    cargo: float = 0
    length: float = 0
    beam: float = 0
    height: float = 0
    mass: float = 0
    scm_speed: Optional[float] = None
    hydrogen_fuel_tank_size: Optional[float] = None
    quantum_fuel_tank_size: Optional[float] = None
    pledge_price: Optional[float] = None
    price: Optional[float] = None
    description: Optional[str] = None
    store_url: Optional[str] = None
    images: ShipImages = Field(default_factory=ShipImages)
    synced_at: datetime
    sync_version: int
    fleetyards_updated_at: str = ""
    is_stale: bool = False
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, ship) -> "ShipDocument":
        """Build the nested document from a ``Ship`` row"""
        images = ship.images or {}
        return cls(
            id=ship.id,
            fleetyards_id=ship.fleetyards_id,
            slug=ship.slug,
            name=ship.name,
            sc_identifier=ship.sc_identifier,
            manufacturer=Manufacturer(
                name=ship.manufacturer_name,
                code=ship.manufacturer_code,
                slug=ship.manufacturer_slug,
            ),
            classification=ship.classification,
            classification_label=ship.classification_label,
            focus=ship.focus,
            size=ship.size,
            production_status=ship.production_status,
            crew=Crew(min=ship.crew_min, max=ship.crew_max),
            cargo=ship.cargo,
            length=ship.length,
            beam=ship.beam,
            height=ship.height,
            mass=ship.mass,
            scm_speed=ship.scm_speed,
            hydrogen_fuel_tank_size=ship.hydrogen_fuel_tank_size,
            quantum_fuel_tank_size=ship.quantum_fuel_tank_size,
            pledge_price=ship.pledge_price,
            price=ship.price,
            description=ship.description,
            store_url=ship.store_url,
            images=ShipImages(**{key: images.get(key) for key in IMAGE_KEYS}),
            synced_at=ship.synced_at,
            sync_version=ship.sync_version,
            fleetyards_updated_at=ship.fleetyards_updated_at,
            is_stale=ship.is_stale,
            created_at=ship.created_at,
            updated_at=ship.updated_at,
        )
