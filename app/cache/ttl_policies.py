"""
TTL configuration and path-to-policy mapping.
"""
from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class RoutePolicy:
    """Caching behaviour for a family of routes."""
    ttl_seconds: int
    cacheable: bool = True
    vary_by_identity: bool = False   # Body depends on the caller
    must_revalidate: bool = True


# Route prefixes and their policies (first match wins, matched per path
# segment; "*" stands for any one segment)
ROUTE_POLICIES: Tuple[Tuple[str, RoutePolicy], ...] = (
    ("/leagues/*/matches", RoutePolicy(ttl_seconds=60)),  # match views nested under a league
    ("/leagues", RoutePolicy(ttl_seconds=120)),           # 2 minutes
    ("/matches", RoutePolicy(ttl_seconds=60)),            # 1 minute
    ("/players", RoutePolicy(ttl_seconds=600)),           # 10 minutes
    ("/leaderboard", RoutePolicy(ttl_seconds=180)),       # 3 minutes
    ("/world-ranking", RoutePolicy(ttl_seconds=180)),     # 3 minutes
    ("/trophy-room", RoutePolicy(ttl_seconds=240)),       # 4 minutes
    ("/auth/data", RoutePolicy(ttl_seconds=300, vary_by_identity=True)),
    ("/profile", RoutePolicy(ttl_seconds=300, vary_by_identity=True)),
)

# Path segments that are never cached (mutations, admin, real-time views)
NO_CACHE_SEGMENTS: Tuple[str, ...] = (
    "/vote",
    "/votes",
    "/admin",
    "/upload",
    "/delete",
    "/create",
    "/update",
    "/confirm",
    "/reject",
    "/invite",
    "/join",
    "/leave",
    "/remove",
    "/kick",
    "/notifications",
    "/stats-window",
    "/cache",
    "/health",
)

DEFAULT_TTL_SECONDS = 60

NO_CACHE_POLICY = RoutePolicy(ttl_seconds=0, cacheable=False)


def _segments(path: str) -> List[str]:
    return [part for part in path.lower().split("/") if part]


def _matches_prefix(path: str, prefix: str) -> bool:
    """'/leagues' matches '/leagues' and '/leagues/7' but not '/leaguesx'."""
    path_parts = _segments(path)
    prefix_parts = _segments(prefix)
    if len(path_parts) < len(prefix_parts):
        return False
    return all(want == "*" or want == got for want, got in zip(prefix_parts, path_parts))


def is_no_cache_path(path: str) -> bool:
    """True when any whole path segment is a no-cache segment."""
    parts = set(_segments(path))
    return any(segment.strip("/") in parts for segment in NO_CACHE_SEGMENTS)


def get_policy_for_path(
    path: str,
    default_ttl: Optional[int] = None,
) -> RoutePolicy:
    """
    Determine the caching policy for a request path.

    Args:
        path: Normalized request path
        default_ttl: TTL for cacheable paths without a specific rule

    Returns:
        RoutePolicy (NO_CACHE_POLICY for excluded paths)
    """
    if is_no_cache_path(path):
        return NO_CACHE_POLICY

    for prefix, policy in ROUTE_POLICIES:
        if _matches_prefix(path, prefix):
            return policy

    ttl = default_ttl if default_ttl is not None else DEFAULT_TTL_SECONDS
    if ttl <= 0:
        return NO_CACHE_POLICY
    # Unknown routes: assume the body may depend on the caller
    return RoutePolicy(ttl_seconds=ttl, vary_by_identity=True)
