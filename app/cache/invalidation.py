"""
Invalidation bridge: data-layer change events -> cache invalidation.

Each resource type maps to the route families whose views it can affect.
Invalidation is deliberately coarse (whole route families) and idempotent,
so duplicate or out-of-order events are harmless.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional, Protocol, Tuple

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type

from .store import CacheStore

logger = logging.getLogger("cache.invalidation")


@dataclass(frozen=True)
class ChangeEvent:
    """A row-level change reported by the data layer."""
    resource_type: str            # "match", "league", "vote", "statistic"
    id: Optional[str] = None
    operation: str = "update"     # "insert", "update", "delete"


# Resource type -> key patterns to invalidate
RESOURCE_INVALIDATIONS: Dict[str, Tuple[str, ...]] = {
    # A match change moves league tables and rankings too
    "match": ("/matches*", "/leagues*", "/leaderboard*", "/world-ranking*"),
    "league": ("/leagues*",),
    "vote": ("/matches*", "/players*", "/leaderboard*"),
    "statistic": ("/matches*", "/players*", "/leaderboard*", "/world-ranking*", "/leagues*"),
}


class ChangeFeed(Protocol):
    """
    Transport delivering ChangeEvents.

    Implementations:
    - PostgresChangeFeed: LISTEN/NOTIFY via asyncpg
    """

    async def connect(self) -> None:
        ...

    def events(self) -> AsyncIterator[ChangeEvent]:
        """Yield events until the connection is lost (then raise)."""
        ...

    async def close(self) -> None:
        ...


def backoff_delay(attempt: int, initial: float, maximum: float) -> float:
    """Exponential backoff: initial, 2*initial, 4*initial, ... capped at maximum."""
    return min(maximum, initial * (2 ** attempt))


class InvalidationBridge:
    """
    Applies ChangeEvents to a CacheStore.

    run() keeps a ChangeFeed connected, reconnecting with exponential
    backoff. While disconnected the cache simply relies on TTL expiry.
    """

    def __init__(
        self,
        store: CacheStore,
        feed: Optional[ChangeFeed] = None,
        invalidations: Optional[Dict[str, Tuple[str, ...]]] = None,
        initial_backoff: float = 1.0,
        max_backoff: float = 60.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            store: Store to invalidate
            feed: Change notification transport (None = in-process events only)
            invalidations: Resource type -> patterns (defaults to RESOURCE_INVALIDATIONS)
            initial_backoff: First reconnect delay in seconds
            max_backoff: Reconnect delay cap in seconds
            sleep: Awaitable sleep (injectable for tests)
        """
        self._store = store
        self._feed = feed
        self._invalidations = invalidations if invalidations is not None else RESOURCE_INVALIDATIONS
        self._initial_backoff = initial_backoff
        self._max_backoff = max_backoff
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._connected_attempt = 1
        self.connected = False

        self._stats = {
            "events": 0,
            "ignored": 0,
            "entries_invalidated": 0,
            "connects": 0,
            "disconnects": 0,
        }

    @property
    def has_feed(self) -> bool:
        return self._feed is not None

    def handle_event(self, event: ChangeEvent) -> int:
        """
        Invalidate every pattern mapped to the event's resource type.

        Returns:
            Number of entries removed
        """
        patterns = self._invalidations.get(event.resource_type)
        if not patterns:
            self._stats["ignored"] += 1
            logger.debug(f"No invalidation rule for resource '{event.resource_type}'")
            return 0

        removed = sum(self._store.invalidate(pattern) for pattern in patterns)
        self._stats["events"] += 1
        self._stats["entries_invalidated"] += removed
        logger.info(
            f"{event.resource_type} {event.operation} (id={event.id}): "
            f"invalidated {removed} entries"
        )
        return removed

    async def consume(self, events: AsyncIterator[ChangeEvent]) -> None:
        """Apply events one at a time, in arrival order."""
        async for event in events:
            self.handle_event(event)

    async def run(self) -> None:
        """Connect, consume, and reconnect with backoff until cancelled."""
        if self._feed is None:
            raise RuntimeError("InvalidationBridge.run() needs a change feed")

        self._connected_attempt = 1
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(Exception),
            wait=self._reconnect_delay,
            sleep=self._sleep,
            before_sleep=self._log_reconnect,
        )
        async for attempt in retrying:
            with attempt:
                await self._session(attempt.retry_state.attempt_number)

    async def _session(self, attempt_number: int) -> None:
        """One connection lifetime. Always ends with an exception."""
        try:
            await self._feed.connect()
            self.connected = True
            self._stats["connects"] += 1
            self._connected_attempt = attempt_number
            logger.info("Change feed connected")
            await self.consume(self._feed.events())
            raise ConnectionError("Change feed ended")
        finally:
            if self.connected:
                self._stats["disconnects"] += 1
            self.connected = False
            await self._close_feed()

    def _reconnect_delay(self, retry_state: RetryCallState) -> float:
        # Failures since the last successful connect
        failures = retry_state.attempt_number - self._connected_attempt
        return backoff_delay(failures, self._initial_backoff, self._max_backoff)

    def _log_reconnect(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"Change feed unavailable ({error}); falling back to TTL expiry, "
            f"reconnecting in {delay:g}s"
        )

    async def _close_feed(self) -> None:
        try:
            await self._feed.close()
        except Exception as e:
            logger.debug(f"Ignoring error while closing change feed: {e}")

    def start(self) -> None:
        """Run the reconnect loop as a background task."""
        if self._feed is None or (self._task is not None and not self._task.done()):
            return
        self._task = asyncio.get_running_loop().create_task(self.run(), name="cache-invalidation")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Invalidation bridge stopped")

    def get_stats(self) -> Dict[str, object]:
        return {"connected": self.connected, "has_feed": self.has_feed, **self._stats}
