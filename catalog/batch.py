"""
Batch resolution of ship identifiers to documents.

Identifiers are normalized (blank entries dropped, duplicates removed) and
resolved in chunks of at most 50. Chunks run one at a time by default; the
``pool`` strategy runs a bounded number concurrently. A failing chunk fails
the whole batch. A resolution can be cancelled cooperatively through a
CancellationToken, in which case no partial result escapes.
"""

import asyncio
from typing import Awaitable, Callable, Dict, Iterable, List, Mapping, Optional
import logging

from core.config import settings
from core.exceptions import BatchResolveError, ResolutionCancelled
from schemas.ship import ShipDocument

logger = logging.getLogger(__name__)

BATCH_SIZE = 50

FetchChunk = Callable[[List[str]], Awaitable[Mapping[str, ShipDocument]]]


def normalize_ids(ids: Iterable[str]) -> List[str]:
    """Strip, drop blanks and dedupe, keeping first-seen order"""
    seen = set()
    normalized = []
    for value in ids or []:
        if not isinstance(value, str):
            continue
        value = value.strip()
        if not value or value in seen:
            continue
        seen.add(value)
        normalized.append(value)
    return normalized


def chunk_ids(ids: List[str], size: int = BATCH_SIZE) -> List[List[str]]:
    if size < 1:
        raise ValueError("chunk size must be at least 1")
    return [ids[i:i + size] for i in range(0, len(ids), size)]


class CancellationToken:
    """Cooperative cancel signal shared between a caller and a resolution"""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self):
        await self._event.wait()

    def raise_if_cancelled(self):
        if self.cancelled:
            raise ResolutionCancelled("Batch resolution cancelled")


class BatchResolver:
    """
    Resolve identifier lists through a chunk fetcher.

    Args:
        fetch_chunk: Coroutine function taking at most ``chunk_size`` ids and
            returning ``{id: ShipDocument}`` for the ids it found
        chunk_size: Ids per fetch (ceiling 50)
        strategy: "sequential" (one chunk at a time) or "pool"
        max_workers: Concurrent chunks for the pool strategy
    """

    def __init__(
        self,
        fetch_chunk: FetchChunk,
        chunk_size: Optional[int] = None,
        strategy: Optional[str] = None,
        max_workers: Optional[int] = None
    ):
        self.fetch_chunk = fetch_chunk
        self.chunk_size = min(chunk_size or settings.BATCH_CHUNK_SIZE, BATCH_SIZE)
        self.strategy = strategy or settings.BATCH_STRATEGY
        self.max_workers = max(1, max_workers or settings.BATCH_MAX_WORKERS)

        if self.strategy not in ("sequential", "pool"):
            raise ValueError(f"Unknown batch strategy: {self.strategy}")

    async def resolve(
        self,
        ids: Iterable[str],
        cancel_token: Optional[CancellationToken] = None
    ) -> Dict[str, ShipDocument]:
        """
        Resolve ``ids`` to documents.

        Raises:
            BatchResolveError: A chunk failed; no partial map is returned
            ResolutionCancelled: ``cancel_token`` was cancelled
        """
        normalized = normalize_ids(ids)
        if not normalized:
            return {}

        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        chunks = chunk_ids(normalized, self.chunk_size)
        logger.debug(f"Resolving {len(normalized)} ids in {len(chunks)} chunks ({self.strategy})")

        if self.strategy == "pool" and len(chunks) > 1:
            results = await self._resolve_pool(chunks, cancel_token)
        else:
            results = []
            for index, chunk in enumerate(chunks):
                results.append(await self._run_chunk(index, chunk, cancel_token))

        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        merged: Dict[str, ShipDocument] = {}
        for found in results:
            merged.update(found)
        return merged

    async def _resolve_pool(self, chunks, cancel_token):
        semaphore = asyncio.Semaphore(self.max_workers)

        async def bounded(index, chunk):
            async with semaphore:
                return await self._run_chunk(index, chunk, cancel_token)

        tasks = [asyncio.ensure_future(bounded(i, chunk)) for i, chunk in enumerate(chunks)]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _run_chunk(self, index: int, chunk: List[str], cancel_token) -> Mapping[str, ShipDocument]:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        fetch = asyncio.ensure_future(self.fetch_chunk(chunk))

        if cancel_token is not None:
            waiter = asyncio.ensure_future(cancel_token.wait())
            try:
                await asyncio.wait({fetch, waiter}, return_when=asyncio.FIRST_COMPLETED)
            except asyncio.CancelledError:
                fetch.cancel()
                raise
            finally:
                waiter.cancel()

            if not fetch.done():
                fetch.cancel()
                await asyncio.gather(fetch, return_exceptions=True)
                raise ResolutionCancelled(
                    "Batch resolution cancelled",
                    context={"chunk_index": index, "chunk_size": len(chunk)}
                )

        try:
            return await fetch
        except (asyncio.CancelledError, ResolutionCancelled):
            raise
        except Exception as e:
            raise BatchResolveError(
                f"Failed to resolve chunk {index}",
                context={"chunk_index": index, "chunk_size": len(chunk)},
                original_exception=e
            )


def store_chunk_fetcher(session_factory) -> FetchChunk:
    """Chunk fetcher reading straight from the catalog store"""
    from catalog.query import get_ships_by_fleetyards_ids

    async def fetch(ids: List[str]) -> Mapping[str, ShipDocument]:
        async with session_factory() as session:
            return await get_ships_by_fleetyards_ids(session, ids)

    return fetch


class ShipBatchLoader:
    """
    Caller-side state for batch resolution.

    Holds the last resolved ``ships``, the last ``error`` and an
    ``is_loading`` flag. Starting a new ``load`` cancels the one in flight;
    a cancelled load leaves the state untouched and is not an error.
    """

    def __init__(self, resolver: BatchResolver):
        self.resolver = resolver
        self.ships: Dict[str, ShipDocument] = {}
        self.error: Optional[str] = None
        self.is_loading = False
        self._token: Optional[CancellationToken] = None

    def cancel(self):
        if self._token is not None:
            self._token.cancel()

    async def load(self, ids: Iterable[str]) -> Dict[str, ShipDocument]:
        self.cancel()

        normalized = normalize_ids(ids)
        if not normalized:
            self._token = None
            self.ships = {}
            self.is_loading = False
            self.error = None
            return self.ships

        token = CancellationToken()
        self._token = token
        self.is_loading = True
        self.error = None

        try:
            ships = await self.resolver.resolve(normalized, token)
        except ResolutionCancelled:
            return self.ships
        except BatchResolveError as e:
            if not token.cancelled:
                self.error = e.message
            return self.ships
        finally:
            if self._token is token:
                self.is_loading = False

        if token.cancelled:
            return self.ships

        self.ships = ships
        self.error = None
        return self.ships
