"""
FastAPI application initialization
"""

from fastapi import FastAPI
from api.routes import health, ships, cron
from core.config import settings
from core.database import init_models
from core.logging import setup_logging
import logging
from api.middleware import RequestContextMiddleware
from ingestion.scheduler import ShipSyncScheduler

setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Ship Catalog API",
    description="FleetYards ship catalog ingestion and query service",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Initialize Scheduler
scheduler = ShipSyncScheduler()


# Include routers
app.include_router(health.router)
app.include_router(ships.router)
app.include_router(cron.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Ship Catalog API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    await init_models()

    # Start Scheduler
    scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Ship Catalog API")
    scheduler.stop()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Ship Catalog API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "ships": "/ships",
            "batch": "/ships/batch",
            "manufacturers": "/ships/manufacturers",
            "sync_status": "/ships/sync-status",
            "cron": ["/cron/ship-sync", "/cron/warm-images"]
        }
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host=settings.API_HOST, port=settings.API_PORT)
