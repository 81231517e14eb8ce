"""
Page views over full collection responses.

The full collection is what gets cached; a page is a cheap view computed
per request from the stored body, so pages never need their own entries.

Clients ask for a page with ?page=N&limit=M, or ?chunked=true for page 1.
"""
import hashlib
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

DEFAULT_CHUNK_SIZE = 20
MAX_CHUNK_SIZE = 100

# Conventional names of the array field in a collection body, in lookup order
ARRAY_FIELDS: Tuple[str, ...] = ("data", "leagues", "matches", "users", "players", "stats")

# Field used when the body itself is the array
FALLBACK_FIELD = "data"


@dataclass(frozen=True)
class ChunkRequest:
    """A validated page request (both values >= 1)."""
    page: int
    limit: int


@dataclass(frozen=True)
class ArrayLocation:
    """Where the collection lives in a body. field is None for a bare list."""
    field: Optional[str]
    items: List[Any]


@dataclass(frozen=True)
class ChunkInfo:
    page: int
    limit: int
    total_items: int
    total_chunks: int
    has_more: bool
    items: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "totalItems": self.total_items,
            "totalChunks": self.total_chunks,
            "hasMore": self.has_more,
            "items": self.items,
        }

    def headers(self) -> Dict[str, str]:
        """Diagnostic response headers."""
        return {
            "X-Chunk-Page": str(self.page),
            "X-Chunk-Total": str(self.total_chunks),
            "X-Total-Items": str(self.total_items),
        }


def _to_int(value: Any, default: int) -> int:
    if value is None:
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def wants_chunks(params: Mapping[str, str]) -> bool:
    """True when the request carries a page parameter or chunked=true."""
    return "page" in params or str(params.get("chunked", "")).lower() == "true"


def parse_chunk_request(
    params: Mapping[str, str],
    default_limit: int = DEFAULT_CHUNK_SIZE,
    max_limit: int = MAX_CHUNK_SIZE,
) -> Optional[ChunkRequest]:
    """
    Read page/limit from query parameters.

    Malformed values fall back to the defaults and out-of-range values are
    clamped; pagination is a read-side convenience, never a rejection.

    Returns:
        ChunkRequest, or None when no chunking was requested
    """
    if not wants_chunks(params):
        return None

    page = max(1, _to_int(params.get("page"), 1))
    limit = _to_int(params.get("limit"), default_limit)
    limit = min(max(1, max_limit), max(1, limit))
    return ChunkRequest(page=page, limit=limit)


def locate_array(body: Any, fields: Tuple[str, ...] = ARRAY_FIELDS) -> Optional[ArrayLocation]:
    """Find the collection in a body: known field names first, then a bare list."""
    if isinstance(body, Mapping):
        for name in fields:
            value = body.get(name)
            if isinstance(value, list):
                return ArrayLocation(field=name, items=value)
        return None
    if isinstance(body, list):
        return ArrayLocation(field=None, items=body)
    return None


def chunk_info(total_items: int, request: ChunkRequest) -> Tuple[ChunkInfo, int, int]:
    """Chunk metadata plus the half-open slice bounds for the page."""
    total_chunks = math.ceil(total_items / request.limit)
    start = min((request.page - 1) * request.limit, total_items)
    end = min(request.page * request.limit, total_items)
    info = ChunkInfo(
        page=request.page,
        limit=request.limit,
        total_items=total_items,
        total_chunks=total_chunks,
        has_more=request.page < total_chunks,
        items=end - start,
    )
    return info, start, end


def chunk_body(
    body: Any,
    request: Optional[ChunkRequest],
    fields: Tuple[str, ...] = ARRAY_FIELDS,
) -> Tuple[Any, Optional[ChunkInfo]]:
    """
    Build the page view of a collection body.

    Returns:
        (view, info). When chunking was not requested or no array is found
        the original body is returned unchanged with info None.
    """
    if request is None:
        return body, None

    location = locate_array(body, fields)
    if location is None:
        return body, None

    info, start, end = chunk_info(len(location.items), request)
    page_items = location.items[start:end]

    success = True
    if isinstance(body, Mapping):
        success = body.get("success") is not False

    view: Dict[str, Any] = {"success": success, "chunk": info.to_dict()}
    if isinstance(body, Mapping):
        for name, value in body.items():
            if name not in (location.field, "success", "chunk"):
                view[name] = value
    view[location.field or FALLBACK_FIELD] = page_items
    return view, info


def view_etag(etag: str, request: ChunkRequest) -> str:
    """ETag of one page view, derived from the full-body ETag."""
    seed = f"{etag}:{request.page}:{request.limit}".encode("utf-8")
    return f'"{hashlib.md5(seed, usedforsecurity=False).hexdigest()}"'
