"""
Core utilities and configuration for the ship catalog backend.

This package provides foundational components used by the sync pipeline
and the query API:

Modules:
    config: Application configuration and environment variable management
    database: Async engine and session management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration

Usage:
    from core.config import settings
    from core.database import get_session, async_session_maker
    from core.exceptions import ExtractionError, SyncInProgressError
    from core.logging import setup_logging

Example:
    setup_logging()

    async with async_session_maker() as session:
        page = await query_ships(session, ShipQueryFilters(search="aurora"))
"""

__all__ = [
    "settings",
    "get_session",
    "setup_logging",
    # Exceptions
    "CatalogException",
    "RetryableError",
    "NonRetryableError",
    "ExtractionError",
    "NetworkError",
    "RateLimitError",
    "AuthenticationError",
    "ResourceNotFoundError",
    "LoadError",
    "UpsertError",
    "SyncError",
    "SyncAbortedError",
    "SyncInProgressError",
    "BatchResolveError",
    "ResolutionCancelled",
]
