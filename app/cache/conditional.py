"""
Conditional-response caching for GET requests.

ConditionalResponseCache wraps a downstream handler:
- hit + matching If-None-Match -> 304, empty body
- hit otherwise -> 200 from the store
- miss -> run the handler, store a 200 body, attach ETag/Cache-Control
Non-GET requests, non-200 responses and empty bodies pass through untouched.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from .chunking import (
    DEFAULT_CHUNK_SIZE,
    MAX_CHUNK_SIZE,
    ChunkRequest,
    chunk_body,
    parse_chunk_request,
    view_etag,
)
from .core import (
    CacheEntry,
    CacheResponse,
    CacheStatus,
    FingerprintError,
    HandlerResponse,
    RequestDescriptor,
)
from .keys import build_cache_key, normalize_path
from .store import CacheStore
from .ttl_policies import RoutePolicy, get_policy_for_path

logger = logging.getLogger("cache.conditional")

Handler = Callable[[RequestDescriptor], Awaitable[HandlerResponse]]
PolicyResolver = Callable[[str], RoutePolicy]


def etag_matches(if_none_match: Optional[str], etag: str) -> bool:
    """
    Evaluate an If-None-Match header against the current ETag.

    Accepts a comma-separated list; weak validators compare equal to their
    strong form and '*' matches any representation.
    """
    if not if_none_match:
        return False

    def strip_weak(tag: str) -> str:
        tag = tag.strip()
        return tag[2:] if tag.startswith("W/") else tag

    target = strip_weak(etag)
    for candidate in if_none_match.split(","):
        candidate = candidate.strip()
        if candidate == "*" or strip_weak(candidate) == target:
            return True
    return False


def cache_control_value(policy: RoutePolicy, max_age: int) -> str:
    parts = ["private" if policy.vary_by_identity else "public", f"max-age={max_age}"]
    if policy.must_revalidate:
        parts.append("must-revalidate")
    return ", ".join(parts)


def _is_empty(body: Any) -> bool:
    return body is None or body == b"" or body == ""


class ConditionalResponseCache:
    """
    Serves GET responses from a CacheStore with ETag revalidation and
    on-demand page views.

    Usage:
        cache = ConditionalResponseCache(store)
        response = await cache.handle(request, handler)
    """

    def __init__(
        self,
        store: CacheStore,
        default_ttl: Optional[int] = None,
        chunk_default_size: int = DEFAULT_CHUNK_SIZE,
        chunk_max_size: int = MAX_CHUNK_SIZE,
        enabled: bool = True,
        policy_resolver: Optional[PolicyResolver] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Args:
            store: Shared response store
            default_ttl: TTL for routes without a specific policy
            chunk_default_size: Page size when ?limit is absent
            chunk_max_size: Upper bound for ?limit
            enabled: False turns the layer into chunking-only pass-through
            policy_resolver: path -> RoutePolicy (defaults to ttl_policies)
            clock: Epoch-seconds source, defaults to the store's clock
        """
        self._store = store
        self._default_ttl = default_ttl
        self._chunk_default_size = chunk_default_size
        self._chunk_max_size = chunk_max_size
        self.enabled = enabled
        self._policy_resolver = policy_resolver or (
            lambda path: get_policy_for_path(path, default_ttl=self._default_ttl)
        )
        self._clock = clock or store.clock

        self._stats = {
            "not_modified": 0,
            "refreshed": 0,
            "bypassed": 0,
            "uncacheable": 0,
            "fingerprint_errors": 0,
        }

    @property
    def store(self) -> CacheStore:
        return self._store

    async def handle(self, request: RequestDescriptor, handler: Handler) -> CacheResponse:
        """
        Answer request from the store or by delegating to handler.

        Handler exceptions (including cancellation) propagate and leave the
        store untouched.
        """
        if request.method.upper() != "GET":
            return self._passthrough(await handler(request))

        path = normalize_path(request.path)
        policy = self._policy_resolver(path)
        chunk = parse_chunk_request(
            request.params,
            default_limit=self._chunk_default_size,
            max_limit=self._chunk_max_size,
        )

        if not self.enabled or not policy.cacheable:
            self._stats["uncacheable"] += 1
            return self._render_uncached(await handler(request), chunk)

        if self._bypass_requested(request):
            self._stats["bypassed"] += 1
            logger.debug(f"CACHE BYPASS: {path}")
            return self._render_uncached(await handler(request), chunk)

        key = build_cache_key(request, vary_by_identity=policy.vary_by_identity)

        if self._refresh_requested(request):
            self._stats["refreshed"] += 1
            logger.info(f"FORCE REFRESH: {key}")
        else:
            entry = self._store.get(key)
            if entry is not None:
                logger.debug(f"CACHE HIT: {key}")
                return self._respond(request, entry, policy, chunk, CacheStatus.HIT)
            logger.info(f"CACHE MISS: {key}")

        response = await handler(request)
        if response.status != 200 or _is_empty(response.body):
            return self._passthrough(response)

        try:
            entry = self._store.put(key, response.body, policy.ttl_seconds)
        except FingerprintError as e:
            self._stats["fingerprint_errors"] += 1
            logger.warning(f"Not caching {key}: {e}")
            return self._render_uncached(response, chunk)

        return self._respond(
            request, entry, policy, chunk, CacheStatus.MISS, extra_headers=response.headers
        )

    def _bypass_requested(self, request: RequestDescriptor) -> bool:
        """?skipCache=true or Cache-Control: no-store skip the store entirely."""
        if str(request.params.get("skipCache", "")).lower() == "true":
            return True
        return "no-store" in (request.header("cache-control") or "").lower()

    def _refresh_requested(self, request: RequestDescriptor) -> bool:
        """no-cache skips the lookup but still stores the fresh body."""
        if "no-cache" in (request.header("cache-control") or "").lower():
            return True
        return "no-cache" in (request.header("pragma") or "").lower()

    def _respond(
        self,
        request: RequestDescriptor,
        entry: CacheEntry,
        policy: RoutePolicy,
        chunk: Optional[ChunkRequest],
        status: CacheStatus,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> CacheResponse:
        now = self._clock()
        body, info = chunk_body(entry.body, chunk)
        etag = view_etag(entry.etag, chunk) if info is not None else entry.etag

        headers: Dict[str, str] = dict(extra_headers or {})
        headers["ETag"] = etag
        headers["Cache-Control"] = cache_control_value(policy, entry.remaining_seconds(now))
        headers["X-Cache"] = status.value
        if status is CacheStatus.HIT:
            headers["X-Cache-Age"] = f"{int(entry.age_seconds(now))}s"

        if etag_matches(request.header("if-none-match"), etag):
            self._stats["not_modified"] += 1
            return CacheResponse(status=304, body=None, headers=headers, cache_status=status)

        if info is not None:
            headers.update(info.headers())
        return CacheResponse(status=200, body=body, headers=headers, cache_status=status)

    def _render_uncached(
        self, response: HandlerResponse, chunk: Optional[ChunkRequest]
    ) -> CacheResponse:
        """Apply chunking to a 200 body that is not going through the store."""
        if response.status != 200 or _is_empty(response.body):
            return self._passthrough(response)

        body, info = chunk_body(response.body, chunk)
        headers = dict(response.headers)
        if info is not None:
            headers.update(info.headers())
        return CacheResponse(status=200, body=body, headers=headers)

    @staticmethod
    def _passthrough(response: HandlerResponse) -> CacheResponse:
        return CacheResponse(
            status=response.status,
            body=response.body,
            headers=dict(response.headers),
            raw=response.raw,
        )

    def get_stats(self) -> Dict[str, Any]:
        """Store statistics plus conditional-layer counters."""
        return {
            "enabled": self.enabled,
            **self._store.stats(),
            **self._stats,
        }
