"""
Single-flight guard for ship sync runs within one process
"""

import asyncio
from contextlib import asynccontextmanager
from core.exceptions import SyncInProgressError


class SyncLock:
    """
    Non-blocking mutual exclusion for sync runs.

    A second caller does not queue behind the running sync; it fails fast
    with SyncInProgressError. Cross-process exclusion is handled by the
    runner's lease check on ``ship_sync_runs``.
    """

    def __init__(self):
        self._lock = asyncio.Lock()

    def locked(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def hold(self):
        if self._lock.locked():
            raise SyncInProgressError("A ship sync is already running in this process")

        await self._lock.acquire()
        try:
            yield
        finally:
            self._lock.release()


sync_lock = SyncLock()
