"""
Starlette/FastAPI adapter for ConditionalResponseCache.

Turns the ASGI request into a RequestDescriptor, materializes JSON bodies
from downstream responses and renders CacheResponse back into Starlette
responses. Everything else passes through as produced.
"""
import json
import logging
from typing import Callable, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from app.identity import get_request_identity

from .conditional import ConditionalResponseCache
from .core import CacheResponse, HandlerResponse, RequestDescriptor

logger = logging.getLogger("cache.middleware")

# Headers recomputed when a body is re-rendered
_BODY_HEADERS = frozenset({"content-length", "content-type", "etag"})

IdentityResolver = Callable[[Request], Optional[str]]


def _is_json(response: Response) -> bool:
    content_type = response.headers.get("content-type", "")
    return content_type.split(";")[0].strip().lower() == "application/json"


def _forwardable_headers(response: Response) -> Dict[str, str]:
    return {
        name: value
        for name, value in response.headers.items()
        if name.lower() not in _BODY_HEADERS
    }


async def materialize(response: Response) -> HandlerResponse:
    """
    Read a downstream response into a HandlerResponse.

    Only 200 JSON bodies are decoded; anything else is handed back as raw
    so it can be returned untouched.
    """
    if response.status_code != 200 or not _is_json(response):
        return HandlerResponse(status=response.status_code, raw=response)

    chunks = []
    async for chunk in response.body_iterator:
        chunks.append(chunk if isinstance(chunk, bytes) else chunk.encode("utf-8"))
    raw_body = b"".join(chunks)

    rebuilt = Response(
        content=raw_body,
        status_code=response.status_code,
        headers=dict(response.headers),
    )
    if not raw_body:
        return HandlerResponse(status=response.status_code, raw=rebuilt)

    try:
        body = json.loads(raw_body)
    except ValueError:
        logger.warning("Downstream declared JSON but body did not decode; passing through")
        return HandlerResponse(status=response.status_code, raw=rebuilt)

    return HandlerResponse(
        status=response.status_code,
        body=body,
        headers=_forwardable_headers(response),
        raw=None,
    )


def render(result: CacheResponse) -> Response:
    """Convert a CacheResponse into a Starlette response."""
    if result.is_passthrough:
        return result.raw
    if result.status == 304:
        return Response(status_code=304, headers=result.headers)
    if result.body is None:
        return Response(status_code=result.status, headers=result.headers)
    return JSONResponse(content=result.body, status_code=result.status, headers=result.headers)


def describe(request: Request, identity_resolver: IdentityResolver) -> RequestDescriptor:
    return RequestDescriptor(
        method=request.method,
        path=request.url.path,
        query=tuple(request.query_params.multi_items()),
        headers={name.lower(): value for name, value in request.headers.items()},
        identity=identity_resolver(request),
    )


class ResponseCacheMiddleware(BaseHTTPMiddleware):
    """
    Caches GET responses through a shared ConditionalResponseCache.

    Usage:
        app.add_middleware(ResponseCacheMiddleware, cache=cache)
    """

    def __init__(
        self,
        app,
        cache: ConditionalResponseCache,
        identity_resolver: IdentityResolver = get_request_identity,
    ):
        super().__init__(app)
        self._cache = cache
        self._identity_resolver = identity_resolver

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method != "GET":
            return await call_next(request)

        descriptor = describe(request, self._identity_resolver)

        async def handler(_descriptor: RequestDescriptor) -> HandlerResponse:
            return await materialize(await call_next(request))

        result = await self._cache.handle(descriptor, handler)
        return render(result)
