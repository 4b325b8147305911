"""
Pytest configuration and fixtures
"""

import os

# Settings are read at import time; point them at throwaway values first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["SHIP_SYNC_ENABLED"] = "false"
os.environ.pop("CRON_SECRET", None)
os.environ.pop("WARM_ORIGIN", None)

import uuid
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
from typing import AsyncGenerator, Any, Dict, List, Optional
from models.base import Base
import models.ship  # noqa: F401
import models.sync_run  # noqa: F401
from ingestion.base import CatalogSource, FetchResult


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create test database engine (SQLite file per test)"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}",
        echo=False,
        poolclass=NullPool,  # Disable connection pooling for tests
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()


def make_ship_record(
    name: str,
    /,
    manufacturer_code: str = "RSI",
    manufacturer_name: str = "Roberts Space Industries",
    updated_at: str = "2024-01-15T10:00:00Z",
    **overrides
) -> Dict[str, Any]:
    """Raw record in the FleetYards ``/v1/models`` shape"""
    slug = name.lower().replace(" ", "-")
    record = {
        "id": str(uuid.uuid5(uuid.NAMESPACE_URL, f"fleetyards/{slug}")),
        "name": name,
        "slug": slug,
        "scIdentifier": slug.replace("-", "_"),
        "manufacturer": {
            "name": manufacturer_name,
            "code": manufacturer_code,
            "slug": manufacturer_name.lower().replace(" ", "-"),
            "longName": manufacturer_name,
        },
        "classification": "exploration",
        "classificationLabel": "Exploration",
        "focus": "Starter",
        "productionStatus": "flight-ready",
        "size": "small",
        "crew": {"min": 1, "max": 2},
        "cargo": 6,
        "mass": 25000,
        "length": 19.5,
        "beam": 10.0,
        "height": 4.0,
        "scmSpeed": 220,
        "pledgePrice": 45,
        "description": f"The {name}.",
        "storeImage": f"https://cdn.example.com/{slug}/store.jpg",
        "storeUrl": f"https://robertsspaceindustries.com/pledge/ships/{slug}",
        "angledView": {
            "source": f"https://cdn.example.com/{slug}/angled.jpg",
            "medium": f"https://cdn.example.com/{slug}/angled-medium.jpg",
        },
        "updatedAt": updated_at,
    }
    record.update(overrides)
    return record


@pytest.fixture
def ship_record():
    return make_ship_record


class StubSource(CatalogSource):
    """In-memory catalog source"""

    source_name = "stub"

    def __init__(self, records: Optional[List[Dict[str, Any]]] = None, errors=None, exc: Exception = None):
        self.records = records or []
        self.errors = errors or []
        self.exc = exc
        self.calls = 0

    async def fetch_all(self) -> FetchResult:
        self.calls += 1
        if self.exc is not None:
            raise self.exc
        return FetchResult(records=list(self.records), pages_processed=1, errors=list(self.errors))


@pytest.fixture
def stub_source():
    return StubSource
