"""
FleetYards catalog client with pagination, rate limiting, and retry logic.

This module provides robust extraction of the ship catalog with:
- Link header (RFC 8288) and page-length based pagination
- Exponential backoff retry logic for 5xx and network failures
- Retry-After handling for rate limited (429) responses
- Circuit breaker pattern to prevent cascading failures
- MAX_PAGES safety limit against runaway pagination
"""

import httpx
import asyncio
import re
from typing import List, Dict, Any, Optional
from datetime import datetime, timedelta
from ingestion.base import CatalogSource, FetchResult
from core.config import settings
from core.exceptions import (
    ExtractionError,
    NetworkError,
    RateLimitError,
    AuthenticationError,
    ResourceNotFoundError,
)
import logging

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER = 5  # seconds, when a 429 carries no usable Retry-After

_LINK_URL = re.compile(r"<([^>]+)>")
_LINK_REL = re.compile(r'rel="([^"]+)"')


def parse_next_link(link_header: Optional[str]) -> Optional[str]:
    """Return the ``rel="next"`` URL of an RFC 8288 Link header, if any"""
    if not link_header:
        return None

    for part in link_header.split(","):
        url_match = _LINK_URL.search(part)
        rel_match = _LINK_REL.search(part)
        if url_match and rel_match and rel_match.group(1) == "next":
            return url_match.group(1)
    return None


def _retry_after_seconds(value: Optional[str]) -> int:
    try:
        return int(value) if value is not None else DEFAULT_RETRY_AFTER
    except ValueError:
        return DEFAULT_RETRY_AFTER


class FleetYardsClient(CatalogSource):
    """
    Fetch the full ship catalog from the FleetYards public API.

    Any page that still fails after retries aborts the fetch with an
    ExtractionError, so the sync never runs on an incomplete catalog.

    Attributes:
        max_retries: Maximum attempts per page (default: 3)
        retry_delay: Initial retry delay in seconds (default: 1.0)
        timeout: Request timeout in seconds (default: 30.0)
        per_page: Records per page (API cap: 200)
        max_pages: Safety limit on pages fetched (default: 10)
        page_delay: Pause between pages in seconds (default: 0.3)
    """

    source_name = "fleetyards"

    def __init__(
        self,
        api_base: Optional[str] = None,
        per_page: Optional[int] = None,
        max_pages: Optional[int] = None,
        page_delay: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.api_base = (api_base or settings.FLEETYARDS_API_BASE).rstrip("/")
        self.per_page = per_page or settings.FLEETYARDS_PER_PAGE
        self.max_pages = max_pages or settings.FLEETYARDS_MAX_PAGES
        self.page_delay = settings.FLEETYARDS_PAGE_DELAY if page_delay is None else page_delay
        self.max_retries = max_retries or settings.MAX_RETRIES
        self.retry_delay = settings.RETRY_DELAY if retry_delay is None else retry_delay
        self.timeout = timeout or settings.FLEETYARDS_TIMEOUT
        self._client = client

        # Circuit breaker state
        self._circuit_breaker_failures = 0
        self._circuit_breaker_threshold = 5
        self._circuit_breaker_open_until: Optional[datetime] = None
        self._circuit_breaker_timeout = 60  # seconds

    def page_url(self, page: int) -> str:
        return f"{self.api_base}/models?page={page}&perPage={self.per_page}"

    def _is_circuit_open(self) -> bool:
        """Check if circuit breaker is open."""
        if self._circuit_breaker_open_until is None:
            return False

        if datetime.utcnow() >= self._circuit_breaker_open_until:
            logger.info(f"Circuit breaker reset for {self.source_name}")
            self._circuit_breaker_failures = 0
            self._circuit_breaker_open_until = None
            return False

        return True

    def _record_failure(self):
        """Record a failure and potentially open circuit breaker."""
        self._circuit_breaker_failures += 1

        if self._circuit_breaker_failures >= self._circuit_breaker_threshold:
            self._circuit_breaker_open_until = datetime.utcnow() + timedelta(
                seconds=self._circuit_breaker_timeout
            )
            logger.warning(
                f"Circuit breaker opened for {self.source_name}. "
                f"Will retry after {self._circuit_breaker_timeout} seconds."
            )

    def _record_success(self):
        """Record a successful request."""
        self._circuit_breaker_failures = 0
        self._circuit_breaker_open_until = None

    async def _get_with_retry(self, client: httpx.AsyncClient, url: str, page: int) -> httpx.Response:
        """
        GET one page with retry logic.

        Retry policy:
        - Network errors and timeouts: exponential backoff
        - 5xx: exponential backoff
        - 429: wait Retry-After (or 5s), then retry
        - Other 4xx: no retry

        Raises:
            AuthenticationError: 401/403
            ResourceNotFoundError: 404
            RateLimitError: 429 on every attempt
            NetworkError: 5xx or network failure on every attempt
            ExtractionError: Any other non-success status, or circuit open
        """
        if self._is_circuit_open():
            raise ExtractionError(
                f"Circuit breaker is open for {self.source_name}",
                context={
                    "api_url": url,
                    "page": page,
                    "open_until": self._circuit_breaker_open_until.isoformat()
                }
            )

        for attempt in range(self.max_retries):
            last_attempt = attempt == self.max_retries - 1
            delay = self.retry_delay * (2 ** attempt)

            try:
                logger.debug(f"Page {page} attempt {attempt + 1}/{self.max_retries}: {url}")
                response = await client.get(url, headers={"Accept": "application/json"})
            except httpx.TimeoutException as e:
                if not last_attempt:
                    logger.warning(f"Page {page} timed out. Retrying in {delay} seconds")
                    await asyncio.sleep(delay)
                    continue
                self._record_failure()
                raise NetworkError(
                    f"Request timeout after {self.max_retries} retries",
                    context={"api_url": url, "page": page, "timeout": self.timeout},
                    original_exception=e
                )
            except httpx.TransportError as e:
                if not last_attempt:
                    logger.warning(f"Page {page} network error: {e}. Retrying in {delay} seconds")
                    await asyncio.sleep(delay)
                    continue
                self._record_failure()
                raise NetworkError(
                    f"Network error after {self.max_retries} retries",
                    context={"api_url": url, "page": page},
                    original_exception=e
                )

            status = response.status_code

            if status in (401, 403):
                self._record_failure()
                raise AuthenticationError(
                    f"Authentication failed for {url}",
                    context={"status_code": status, "api_url": url, "page": page}
                )

            if status == 404:
                self._record_failure()
                raise ResourceNotFoundError(
                    f"Resource not found: {url}",
                    context={"status_code": 404, "api_url": url, "page": page}
                )

            if status == 429:
                retry_after = _retry_after_seconds(response.headers.get("Retry-After"))
                if not last_attempt:
                    logger.warning(
                        f"Page {page} rate limited. Waiting {retry_after}s "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(retry_after)
                    continue
                self._record_failure()
                raise RateLimitError(
                    f"Rate limit exceeded for {url}",
                    context={"status_code": 429, "api_url": url, "page": page},
                    retry_after=retry_after
                )

            if status >= 500:
                if not last_attempt:
                    logger.warning(
                        f"Page {page} server error {status}. "
                        f"Retrying in {delay} seconds (attempt {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(delay)
                    continue
                self._record_failure()
                raise NetworkError(
                    f"Server error after {self.max_retries} retries",
                    context={
                        "status_code": status,
                        "api_url": url,
                        "page": page,
                        "response_body": response.text[:500]
                    }
                )

            if not 200 <= status < 300:
                self._record_failure()
                raise ExtractionError(
                    f"Unexpected status {status} for {url}",
                    context={
                        "status_code": status,
                        "api_url": url,
                        "page": page,
                        "response_body": response.text[:500]
                    }
                )

            self._record_success()
            return response

        raise ExtractionError(
            "Max retries exceeded",
            context={"api_url": url, "page": page}
        )

    async def fetch_all(self) -> FetchResult:
        """
        Fetch every ship across all pages.

        Pagination:
        1. ``Link: <...>; rel="next"`` when present
        2. otherwise a page shorter than ``per_page`` is the last one
        3. otherwise the next page URL is built from the page number
        Stops at ``max_pages`` and records a diagnostic.

        Raises:
            ExtractionError: When any page fails or returns malformed JSON
        """
        if self._client is not None:
            return await self._fetch_pages(self._client)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._fetch_pages(client)

    async def _fetch_pages(self, client: httpx.AsyncClient) -> FetchResult:
        records: List[Dict[str, Any]] = []
        errors: List[str] = []
        pages_processed = 0
        page = 1
        next_url: Optional[str] = self.page_url(page)

        while next_url and page <= self.max_pages:
            logger.info(f"Fetching page {page} from {self.source_name}")

            response = await self._get_with_retry(client, next_url, page)

            try:
                page_records = response.json()
            except ValueError as e:
                raise ExtractionError(
                    "Failed to parse JSON response",
                    context={
                        "api_url": next_url,
                        "page": page,
                        "response_body": response.text[:500]
                    },
                    original_exception=e
                )

            if not isinstance(page_records, list):
                raise ExtractionError(
                    "Expected a JSON array of ships",
                    context={"api_url": next_url, "page": page, "payload_type": type(page_records).__name__}
                )

            if not page_records:
                logger.info(f"Page {page}: empty response, pagination complete")
                next_url = None
                break

            records.extend(page_records)
            pages_processed += 1
            logger.debug(f"Page {page}: {len(page_records)} ships")

            link_next = parse_next_link(response.headers.get("Link"))
            if link_next:
                next_url = link_next
            elif len(page_records) < self.per_page:
                next_url = None
            else:
                next_url = self.page_url(page + 1)

            page += 1

            if next_url and page <= self.max_pages and self.page_delay > 0:
                await asyncio.sleep(self.page_delay)

        if next_url and page > self.max_pages:
            message = f"Reached MAX_PAGES limit ({self.max_pages}); pagination stopped"
            errors.append(message)
            logger.warning(message)

        logger.info(
            f"Fetched {len(records)} ships from {self.source_name} "
            f"({pages_processed} pages)"
        )
        return FetchResult(records=records, pages_processed=pages_processed, errors=errors)
