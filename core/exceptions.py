"""
Custom exceptions for the ship catalog with structured error context.

Every exception carries a context dictionary so failures can be logged
and stored in the sync audit log without losing detail.

Exception Hierarchy:
    CatalogException (base)
    ├── ExtractionError
    │   ├── NetworkError (retryable)
    │   ├── RateLimitError (retryable)
    │   ├── AuthenticationError (non-retryable)
    │   └── ResourceNotFoundError (non-retryable)
    ├── LoadError
    │   └── UpsertError
    ├── SyncError
    │   ├── SyncAbortedError
    │   └── SyncInProgressError
    ├── BatchResolveError
    └── ResolutionCancelled
"""

from typing import Optional, Dict, Any
from datetime import datetime


class CatalogException(Exception):
    """
    Base exception for all ship catalog errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (source, sync version, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(CatalogException):
    """
    Errors that should trigger retry logic.

    Network timeouts, HTTP 429 and HTTP 5xx responses from the catalog service.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0
    ):
        super().__init__(message, context, original_exception)
        self.max_retries = max_retries
        self.retry_delay = retry_delay


class NonRetryableError(CatalogException):
    """Errors that should NOT trigger retry logic (HTTP 401/403/404, bad payloads)."""
    pass


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(CatalogException):
    """
    Fetching from the external catalog service failed.

    Context should include:
        - api_url: The endpoint that failed
        - page: Page number being fetched
        - status_code: HTTP status code (if applicable)
    """
    pass


class NetworkError(RetryableError, ExtractionError):
    """Network errors and 5xx responses, raised after retries are exhausted."""
    pass


class RateLimitError(RetryableError, ExtractionError):
    """Rate limiting (HTTP 429) that persisted through every retry."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after
        if retry_after:
            self.context["retry_after"] = retry_after


class AuthenticationError(NonRetryableError, ExtractionError):
    """HTTP 401/403 from the catalog service."""
    pass


class ResourceNotFoundError(NonRetryableError, ExtractionError):
    """HTTP 404 from the catalog service."""
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(CatalogException):
    """Base exception for store write failures."""
    pass


class UpsertError(LoadError):
    """
    Upserting a single ship failed.

    Context should include:
        - fleetyards_id: External identifier of the record
        - name: Display name of the record
    """
    pass


# ============================================================================
# Sync Errors
# ============================================================================

class SyncError(CatalogException):
    """Base exception for sync orchestration failures."""
    pass


class SyncAbortedError(SyncError):
    """A sync run was aborted by a safety guard before any write happened."""
    pass


class SyncInProgressError(SyncError):
    """Another sync run holds the lock."""
    pass


# ============================================================================
# Batch Resolution Errors
# ============================================================================

class BatchResolveError(CatalogException):
    """
    Resolving a chunk of identifiers failed; the whole batch is discarded.

    Context should include:
        - chunk_index: Index of the failing chunk
        - chunk_size: Number of identifiers in that chunk
    """
    pass


class ResolutionCancelled(CatalogException):
    """A batch resolution was cancelled by its caller. Not an error for callers."""
    pass
