"""
Periodic background sweep of expired cache entries.

Read-triggered eviction alone never frees keys that are not requested
again, so a cancellable task tied to the app lifespan sweeps the store.
"""
import asyncio
import logging
from typing import Optional

from .store import CacheStore

logger = logging.getLogger("cache.reaper")

DEFAULT_INTERVAL_SECONDS = 300.0


class CacheReaper:
    """
    Runs CacheStore.purge_expired() every interval seconds.

    Usage:
        reaper = CacheReaper(store, interval_seconds=300)
        reaper.start()        # inside a running event loop
        ...
        await reaper.stop()
    """

    def __init__(self, store: CacheStore, interval_seconds: float = DEFAULT_INTERVAL_SECONDS):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._store = store
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self.sweeps = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="cache-reaper")
        logger.info(f"Cache reaper started (every {self._interval:g}s)")

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Cache reaper stopped")

    def sweep(self) -> int:
        """Run one sweep now."""
        removed = self._store.purge_expired()
        self.sweeps += 1
        if removed:
            logger.info(f"Reaped {removed} expired cache entries")
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("Cache sweep failed")
