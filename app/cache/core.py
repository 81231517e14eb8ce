"""
Core cache data structures.
"""
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


class CacheStatus(Enum):
    """How a response was produced, reported in the X-Cache header."""
    HIT = "HIT"      # Served from the store
    MISS = "MISS"    # Produced by the handler and stored


class CacheError(Exception):
    """Base error for cache-internal faults. Never surfaced to callers."""


class FingerprintError(CacheError):
    """Raised when a body cannot be serialized for ETag computation."""


@dataclass(frozen=True)
class CacheEntry:
    """
    A stored response body. Immutable: a refresh replaces the entry.
    """
    key: str
    body: Any
    etag: str
    created_at: float
    expires_at: float

    def is_valid(self, now: float) -> bool:
        """An entry is valid strictly before its expiry."""
        return now < self.expires_at

    def age_seconds(self, now: float) -> float:
        """Seconds since the entry was stored."""
        return max(0.0, now - self.created_at)

    def remaining_seconds(self, now: float) -> int:
        """Whole seconds of freshness left (for Cache-Control max-age)."""
        return max(0, math.ceil(self.expires_at - now))


@dataclass(frozen=True)
class RequestDescriptor:
    """
    Framework-independent view of an inbound request.

    query keeps every (name, value) pair in arrival order so multi-valued
    parameters still produce distinct cache keys.
    """
    method: str
    path: str
    query: Tuple[Tuple[str, str], ...] = ()
    headers: Mapping[str, str] = field(default_factory=dict)
    identity: Optional[str] = None

    @property
    def params(self) -> Dict[str, str]:
        """Query parameters as a dict (last value wins)."""
        return dict(self.query)

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


@dataclass
class HandlerResponse:
    """
    What a downstream handler produced.

    body is the decoded JSON payload, or None when the response is not
    something the cache understands. raw carries the framework response for
    untouched pass-through.
    """
    status: int
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    raw: Any = None


@dataclass
class CacheResponse:
    """Response produced by the conditional cache layer."""
    status: int
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    cache_status: Optional[CacheStatus] = None
    raw: Any = None

    @property
    def is_passthrough(self) -> bool:
        return self.raw is not None
