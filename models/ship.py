from sqlalchemy import Column, Integer, String, Float, Text, DateTime, Boolean, Index
from datetime import datetime
from models.base import Base, JSONType


class Ship(Base):
    """
    Canonical catalog record for one vehicle.

    Keyed by ``fleetyards_id`` for upserts; ``slug`` is the secondary unique key
    used by URL lookups. The manufacturer and crew sub-entities are flattened
    into columns so they can be filtered and indexed; ``images`` keeps the
    camelCase view keys served by the API.

    Field defaults:
    - categorical strings -> '' (never NULL)
    - physical numerics (crew, cargo, dimensions, mass) -> 0 meaning unknown
    - performance and commercial numerics -> NULL meaning not applicable
    """
    __tablename__ = "ships"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Identity
    fleetyards_id = Column(String(64), nullable=False, unique=True)
    slug = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=False, index=True)
    sc_identifier = Column(String(255), nullable=True)

    # Manufacturer
    manufacturer_name = Column(String(255), nullable=False, default="")
    manufacturer_code = Column(String(64), nullable=False, default="")
    manufacturer_slug = Column(String(255), nullable=False, default="")

    # Categories
    classification = Column(String(100), nullable=False, default="")
    classification_label = Column(String(100), nullable=False, default="")
    focus = Column(String(100), nullable=False, default="")
    size = Column(String(50), nullable=False, default="")
    production_status = Column(String(50), nullable=False, default="")

    # Crew
    crew_min = Column(Integer, nullable=False, default=0)
    crew_max = Column(Integer, nullable=False, default=0)

    # Physical
    cargo = Column(Float, nullable=False, default=0)
    length = Column(Float, nullable=False, default=0)
    beam = Column(Float, nullable=False, default=0)
    height = Column(Float, nullable=False, default=0)
    mass = Column(Float, nullable=False, default=0)

    # Performance
    scm_speed = Column(Float, nullable=True)
    hydrogen_fuel_tank_size = Column(Float, nullable=True)
    quantum_fuel_tank_size = Column(Float, nullable=True)

    # Commercial
    pledge_price = Column(Float, nullable=True)
    price = Column(Float, nullable=True)

    # Content
    description = Column(Text, nullable=True)
    store_url = Column(String(2048), nullable=True)
    images = Column(JSONType, nullable=False, default=dict)

    # Sync metadata
    synced_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    sync_version = Column(Integer, nullable=False, default=0)
    fleetyards_updated_at = Column(String(64), nullable=False, default="")
    is_stale = Column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_ship_manufacturer_code", "manufacturer_code"),
        Index("idx_ship_production_status", "production_status"),
        Index("idx_ship_classification", "classification"),
        Index("idx_ship_size", "size"),
        Index("idx_ship_manufacturer_size", "manufacturer_code", "size"),
        Index("idx_ship_sync_version", "sync_version"),
    )

    def __repr__(self):
        return f"<Ship {self.slug} v{self.sync_version}>"
