"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime
from schemas.ship import CamelModel, ShipDocument

MAX_BATCH_IDS = 50


# ============================================================================
# Ship Query Schemas
# ============================================================================

class ShipListResponse(CamelModel):
    """Paginated ship list"""
    items: List[ShipDocument]
    total: int
    page: int
    page_size: int
    total_pages: int

    class Config:
        json_schema_extra = {
            "example": {
                "items": [],
                "total": 1,
                "page": 1,
                "pageSize": 25,
                "totalPages": 1
            }
        }


class BatchRequest(BaseModel):
    """Body of ``POST /ships/batch``"""
    ids: List[str] = Field(..., min_length=1, max_length=MAX_BATCH_IDS)


class BatchResponse(BaseModel):
    items: List[ShipDocument]


class ManufacturerInfo(CamelModel):
    name: str
    code: str
    slug: str
    ship_count: int


class ManufacturerListResponse(BaseModel):
    items: List[ManufacturerInfo]


class SyncStatusResponse(CamelModel):
    """Summary of the most recent sync run"""
    last_sync_at: Optional[datetime] = None
    ship_count: int = 0
    status: str = "unknown"
    sync_version: int = 0


# ============================================================================
# Cron Schemas
# ============================================================================

class SyncTriggerResponse(CamelModel):
    success: bool
    sync_version: int
    status: str
    ship_count: int = 0
    new_ships: int = 0
    updated_ships: int = 0
    unchanged_ships: int = 0
    skipped_ships: int = 0
    stale_ships: int = 0
    pages_processed: int = 0
    duration_ms: int = 0
    errors: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class WarmImagesResponse(CamelModel):
    success: bool
    total_ships: int
    unique_images: int
    warmed: int
    failed: int
    widths: List[int]
    timestamp: datetime = Field(default_factory=datetime.utcnow)


# ============================================================================
# Health Check Schemas
# ============================================================================

class SyncRunInfo(BaseModel):
    """Last sync run information for health check"""
    sync_version: int
    status: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    ship_count: int = 0
    skipped_ships: int = 0

    @validator("status", pre=True)
    def status_value(cls, v):
        return getattr(v, "value", v)

    class Config:
        from_attributes = True


class HealthCheckResponse(BaseModel):
    """Health check response model"""
    database_connected: bool
    last_sync: Optional[SyncRunInfo] = None
    sync_overdue: bool = False
    status: str = Field(default="healthy", description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    @validator("status", pre=True, always=True)
    def determine_status(cls, v, values):
        """Determine overall health status"""
        if not values.get("database_connected", False):
            return "unhealthy"

        last_sync = values.get("last_sync")
        if last_sync is None:
            return "healthy"  # No sync has run yet

        if last_sync.status == "failed" or values.get("sync_overdue"):
            return "degraded"
        return "healthy"

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "sync_overdue": False,
                "last_sync": {
                    "sync_version": 12,
                    "status": "success",
                    "started_at": "2024-01-15T00:00:00Z",
                    "completed_at": "2024-01-15T00:00:41Z",
                    "ship_count": 247,
                    "skipped_ships": 0
                }
            }
        }


# ============================================================================
# Error Response Schema
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response"""
    success: bool = False
    error: str
    detail: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
