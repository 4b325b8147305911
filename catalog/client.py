"""
Consumer-side helpers for the catalog HTTP API.

ShipCatalogClient wraps the read endpoints with httpx; its ``fetch_batch``
plugs straight into BatchResolver as a chunk fetcher. DebouncedSearch holds
back search queries until typing settles.
"""

import asyncio
import inspect
from typing import Any, Callable, Dict, List, Mapping, Optional
import httpx
import logging

from schemas.ship import ShipDocument

logger = logging.getLogger(__name__)

SEARCH_DEBOUNCE_SECONDS = 0.3

QUERY_PARAM_NAMES = {
    "manufacturer": "manufacturer",
    "size": "size",
    "classification": "classification",
    "production_status": "productionStatus",
    "search": "search",
    "page": "page",
    "page_size": "pageSize",
}


class ShipCatalogClient:
    """Async client for ``/ships`` endpoints"""

    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self._client = client
        self.timeout = timeout

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = f"{self.base_url}{path}"
        if self._client is not None:
            return await self._client.request(method, url, **kwargs)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.request(method, url, **kwargs)

    async def list_ships(self, **filters) -> Dict[str, Any]:
        """``GET /ships``; filter names in snake_case, None values dropped"""
        params = {}
        for key, value in filters.items():
            if key not in QUERY_PARAM_NAMES:
                raise ValueError(f"Unknown ship filter: {key}")
            if value is not None and value != "":
                params[QUERY_PARAM_NAMES[key]] = value

        response = await self._request("GET", "/ships", params=params)
        response.raise_for_status()
        return response.json()

    async def get_ship(self, id_or_slug: str) -> Optional[ShipDocument]:
        response = await self._request("GET", f"/ships/{id_or_slug}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return ShipDocument.model_validate(response.json())

    async def fetch_batch(self, ids: List[str]) -> Mapping[str, ShipDocument]:
        """``POST /ships/batch`` for at most 50 ids"""
        response = await self._request("POST", "/ships/batch", json={"ids": list(ids)})
        response.raise_for_status()
        items = response.json().get("items", [])
        ships = [ShipDocument.model_validate(item) for item in items]
        return {ship.fleetyards_id: ship for ship in ships}


class DebouncedSearch:
    """
    Debounce search input before it reaches the query path.

    ``update(term)`` restarts the timer; the callback fires with the latest
    term once no update arrived for ``delay`` seconds. ``clear()`` drops any
    pending term and fires the callback with "" right away.
    """

    def __init__(self, callback: Callable[[str], Any], delay: float = SEARCH_DEBOUNCE_SECONDS):
        self.callback = callback
        self.delay = delay
        self._pending: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def _cancel_pending(self):
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def _invoke(self, term: str):
        result = self.callback(term)
        if inspect.isawaitable(result):
            await result

    async def _fire_later(self, term: str):
        await asyncio.sleep(self.delay)
        await self._invoke(term)

    def update(self, term: str):
        self._cancel_pending()
        self._pending = asyncio.ensure_future(self._fire_later(term))

    async def clear(self):
        self._cancel_pending()
        await self._invoke("")

    def close(self):
        self._cancel_pending()
