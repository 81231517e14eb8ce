"""
Cache key construction.

Keys read "<path>?<sorted query>|<identity>" so that route-prefix patterns
such as '/matches*' select every view of a route family.
"""
import re
from typing import Iterable, Optional, Tuple
from urllib.parse import urlencode

from .core import RequestDescriptor

PUBLIC_IDENTITY = "public"

# Query parameters that never change the cached full body
IGNORED_QUERY_PARAMS = frozenset({"page", "limit", "chunked", "skipCache"})

_SLASHES = re.compile(r"/{2,}")


def normalize_path(path: str) -> str:
    """Collapse duplicate slashes and drop a trailing slash."""
    path = _SLASHES.sub("/", path or "/")
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/")
    return path


def normalize_query(query: Iterable[Tuple[str, str]]) -> str:
    """Sorted, URL-encoded query without pagination/cache-control params."""
    pairs = sorted(
        (name, value) for name, value in query if name not in IGNORED_QUERY_PARAMS
    )
    return urlencode(pairs)


def identity_tag(identity: Optional[str], vary_by_identity: bool) -> str:
    if vary_by_identity and identity:
        return f"user:{identity}"
    return PUBLIC_IDENTITY


def build_cache_key(request: RequestDescriptor, vary_by_identity: bool = False) -> str:
    """
    Build the store key for a GET request.

    Args:
        request: Inbound request
        vary_by_identity: True when the body depends on the caller

    Returns:
        Key such as '/matches?leagueId=7|public'
    """
    path = normalize_path(request.path)
    query = normalize_query(request.query)
    tag = identity_tag(request.identity, vary_by_identity)
    if query:
        return f"{path}?{query}|{tag}"
    return f"{path}|{tag}"
