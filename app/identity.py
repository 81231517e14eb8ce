"""
Caller identity helpers.

Authentication happens upstream: an auth layer sets request.state.user_id,
and trusted internal callers may pass X-User-Id instead.
"""
import hashlib
from typing import Optional

from fastapi import Request


def _hash_token(token: str) -> str:
    """Hash a credential so raw tokens never end up in cache keys."""
    return hashlib.sha256(token.strip().encode()).hexdigest()[:16]


def get_user_id(request: Request) -> Optional[str]:
    """Authenticated user id, or None for anonymous callers."""
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return str(user_id)
    header = request.headers.get("x-user-id", "").strip()
    return header or None


def get_request_identity(request: Request) -> Optional[str]:
    """
    Discriminator for per-caller cache entries.

    Falls back to a hash of the Authorization header so bearer-token callers
    without a resolved user id still get their own entries.
    """
    user_id = get_user_id(request)
    if user_id:
        return user_id
    authorization = request.headers.get("authorization")
    if authorization:
        return f"token:{_hash_token(authorization)}"
    return None
