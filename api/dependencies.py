"""
Shared FastAPI dependencies
"""

from typing import AsyncIterator, Optional
import secrets
from fastapi import Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from core.config import settings
from core.database import async_session_maker, get_session
from ingestion.extractors.fleetyards_client import FleetYardsClient


async def get_db() -> AsyncIterator[AsyncSession]:
    """Database session per request"""
    async for session in get_session():
        yield session


def _extract_bearer_token(authorization: Optional[str]) -> str:
    raw = (authorization or "").strip()
    if not raw:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header"
        )

    parts = raw.split(" ", 1)
    if len(parts) != 2 or parts[0].strip().lower() != "bearer" or not parts[1].strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization must be: Bearer <token>"
        )
    return parts[1].strip()


async def verify_cron_secret(authorization: Optional[str] = Header(default=None)):
    """
    Guard for cron endpoints.

    Open when ``CRON_SECRET`` is unset; otherwise the bearer token must match.
    """
    if not settings.CRON_SECRET:
        return

    token = _extract_bearer_token(authorization)
    if not secrets.compare_digest(token, settings.CRON_SECRET):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )


def get_session_factory():
    """Session factory for work that opens its own sessions (batch chunks)"""
    return async_session_maker


def get_catalog_source():
    """Upstream catalog used by manual sync triggers"""
    return FleetYardsClient()
