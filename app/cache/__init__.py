"""
Response caching with ETag revalidation, page views and change-driven invalidation.
"""
from .core import (
    CacheEntry,
    CacheError,
    CacheResponse,
    CacheStatus,
    FingerprintError,
    HandlerResponse,
    RequestDescriptor,
)
from .store import CacheStore, compute_etag
from .reaper import CacheReaper
from .ttl_policies import (
    ROUTE_POLICIES,
    NO_CACHE_SEGMENTS,
    RoutePolicy,
    get_policy_for_path,
)
from .keys import build_cache_key, normalize_path
from .chunking import ChunkRequest, chunk_body, parse_chunk_request
from .conditional import ConditionalResponseCache, etag_matches
from .invalidation import (
    RESOURCE_INVALIDATIONS,
    ChangeEvent,
    ChangeFeed,
    InvalidationBridge,
)

__all__ = [
    # Core types
    "CacheEntry",
    "CacheError",
    "CacheResponse",
    "CacheStatus",
    "FingerprintError",
    "HandlerResponse",
    "RequestDescriptor",
    # Store
    "CacheStore",
    "CacheReaper",
    "compute_etag",
    # Policies and keys
    "ROUTE_POLICIES",
    "NO_CACHE_SEGMENTS",
    "RoutePolicy",
    "get_policy_for_path",
    "build_cache_key",
    "normalize_path",
    # Chunking
    "ChunkRequest",
    "chunk_body",
    "parse_chunk_request",
    # Conditional responses
    "ConditionalResponseCache",
    "etag_matches",
    # Invalidation
    "RESOURCE_INVALIDATIONS",
    "ChangeEvent",
    "ChangeFeed",
    "InvalidationBridge",
]
