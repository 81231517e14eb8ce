"""
In-process response store with TTL expiry, capacity bound and
pattern-based invalidation.
"""
import hashlib
import json
import logging
import re
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from .core import CacheEntry, FingerprintError

logger = logging.getLogger("cache.store")

DEFAULT_MAX_ENTRIES = 500


def compute_etag(body: Any) -> str:
    """
    Deterministic fingerprint of a response body, as a quoted ETag token.

    Dict keys are sorted before hashing so equal payloads built in a
    different order share an ETag.

    Raises:
        FingerprintError: body cannot be serialized
    """
    if isinstance(body, bytes):
        data = body
    elif isinstance(body, str):
        data = body.encode("utf-8")
    else:
        try:
            data = json.dumps(
                body, sort_keys=True, separators=(",", ":"), ensure_ascii=False
            ).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise FingerprintError(f"Cannot fingerprint {type(body).__name__}: {e}") from e

    digest = hashlib.md5(data, usedforsecurity=False).hexdigest()
    return f'"{digest}"'


def _compile_pattern(pattern: str) -> "re.Pattern[str]":
    """Translate a '*' wildcard pattern into a regex anchored at the key start."""
    return re.compile(".*".join(re.escape(part) for part in pattern.split("*")))


class CacheStore:
    """
    Key -> CacheEntry map shared by every request in the process.

    - Reads take no lock; entries are immutable and replaced atomically
    - Writes, evictions and invalidations hold one RLock for a bounded pass
    - Capacity overflow evicts oldest-by-created_at first (insertion order)
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            max_entries: Capacity bound, must be positive
            clock: Source of epoch seconds (injectable for tests)
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._max_entries = max_entries
        self._clock = clock

        # Diagnostic counters, updated from the event loop and the threadpool
        self._stats_lock = threading.Lock()
        self._stats = {
            "hits": 0,
            "misses": 0,
            "expired": 0,
            "evictions": 0,
            "invalidations": 0,
        }

    def _count(self, **increments: int) -> None:
        with self._stats_lock:
            for name, amount in increments.items():
                self._stats[name] += amount

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock

    def get(self, key: str) -> Optional[CacheEntry]:
        """
        Return the live entry for key, or None.

        An expired entry found here is deleted on the spot.
        """
        entry = self._entries.get(key)
        if entry is None:
            self._count(misses=1)
            return None

        if not entry.is_valid(self._clock()):
            with self._lock:
                # Only drop the entry we saw; a concurrent put may have replaced it
                dropped = self._entries.get(key) is entry
                if dropped:
                    del self._entries[key]
            self._count(misses=1, expired=1 if dropped else 0)
            logger.debug(f"Expired on read: {key}")
            return None

        self._count(hits=1)
        return entry

    def put(self, key: str, body: Any, ttl_seconds: float) -> CacheEntry:
        """
        Store body under key for ttl_seconds and return the new entry.

        Raises:
            ValueError: ttl_seconds is not positive
            FingerprintError: body cannot be fingerprinted (nothing is stored)
        """
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")

        etag = compute_etag(body)

        with self._lock:
            now = self._clock()
            entry = CacheEntry(
                key=key,
                body=body,
                etag=etag,
                created_at=now,
                expires_at=now + ttl_seconds,
            )
            # Re-insert so dict order stays created_at order
            self._entries.pop(key, None)
            self._entries[key] = entry

            evicted = 0
            while len(self._entries) > self._max_entries:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                evicted += 1

        if evicted:
            self._count(evictions=evicted)
            logger.info(f"Evicted {evicted} oldest entries (capacity {self._max_entries})")
        return entry

    def invalidate(self, key_or_pattern: str) -> int:
        """
        Remove one exact key, or every key matching a '*' wildcard pattern.

        '/matches*' is a prefix match; '*' elsewhere matches any run of
        characters. Patterns are anchored at the start of the key.

        Returns:
            Number of entries removed
        """
        if "*" not in key_or_pattern:
            with self._lock:
                removed = 1 if self._entries.pop(key_or_pattern, None) is not None else 0
            if removed:
                self._count(invalidations=1)
                logger.info(f"Invalidated cache: {key_or_pattern}")
            return removed

        stem = key_or_pattern.rstrip("*")
        if "*" not in stem:
            return self.invalidate_prefix(stem)

        regex = _compile_pattern(key_or_pattern)
        return self._remove_where(lambda key: regex.match(key) is not None, key_or_pattern)

    def invalidate_prefix(self, prefix: str) -> int:
        """Remove every key starting with prefix."""
        return self._remove_where(lambda key: key.startswith(prefix), f"{prefix}*")

    def _remove_where(self, predicate: Callable[[str], bool], label: str) -> int:
        with self._lock:
            to_delete = [k for k in self._entries if predicate(k)]
            for key in to_delete:
                del self._entries[key]
        if to_delete:
            self._count(invalidations=len(to_delete))
            logger.info(f"Invalidated {len(to_delete)} entries matching '{label}'")
        return len(to_delete)

    def clear(self) -> int:
        """
        Drop every entry. Administrative reset only.

        Returns:
            Number of entries cleared
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"Cleared {count} cache entries")
        return count

    def purge_expired(self) -> int:
        """
        One sweep removing expired entries.

        Scans a snapshot outside the lock, then deletes under the lock only
        the entries that are still the exact objects seen in the snapshot.
        """
        with self._lock:
            snapshot = list(self._entries.items())

        now = self._clock()
        expired = [(key, entry) for key, entry in snapshot if not entry.is_valid(now)]
        if not expired:
            return 0

        removed = 0
        with self._lock:
            for key, entry in expired:
                if self._entries.get(key) is entry:
                    del self._entries[key]
                    removed += 1

        self._count(expired=removed)
        return removed

    def keys(self) -> List[str]:
        """Snapshot of current keys, oldest first."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        now = self._clock()
        with self._lock:
            entries = list(self._entries.values())
        with self._stats_lock:
            counters = dict(self._stats)

        active = sum(1 for e in entries if e.is_valid(now))
        lookups = counters["hits"] + counters["misses"]
        hit_rate = (counters["hits"] / lookups * 100) if lookups > 0 else 0

        return {
            "entries": len(entries),
            "active": active,
            "expired": len(entries) - active,
            "max_entries": self._max_entries,
            "hits": counters["hits"],
            "misses": counters["misses"],
            "expired_removed": counters["expired"],
            "evictions": counters["evictions"],
            "invalidations": counters["invalidations"],
            "hit_rate_percent": round(hit_rate, 1),
        }
