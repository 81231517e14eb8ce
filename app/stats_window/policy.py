"""
Stats submission window policy.

Only the two most recent results of a league stay open to players; older
games need a league admin. The recency order is rebuilt on every check from
the league's current matches and is never cached.
"""
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from app.errors import StatsWindowViolation

from .models import MatchRecord, StatsWindow


def _timestamp(value: Optional[datetime]) -> float:
    # Missing start times sort first
    return value.timestamp() if value is not None else 0.0


def _recency_key(match: MatchRecord) -> Tuple[float, float, int]:
    """Scheduled start, then creation time, then id for identical starts."""
    return (_timestamp(match.start), _timestamp(match.created_at), match.id)


def order_results(matches: Iterable[MatchRecord]) -> List[MatchRecord]:
    """League matches with a result, oldest first."""
    return sorted((m for m in matches if m.results_available), key=_recency_key)


def index_from_end(match_id: int, matches: Iterable[MatchRecord]) -> Optional[int]:
    """
    Position of match_id counted back from the newest result.

    Returns:
        0 for the newest result, 1 for the one before, ...; None when the
        match has no result in the league
    """
    ordered = order_results(matches)
    for index, match in enumerate(ordered):
        if match.id == match_id:
            return len(ordered) - 1 - index
    return None


def evaluate_window(
    match: MatchRecord,
    league_matches: Iterable[MatchRecord],
    is_admin: bool = False,
) -> StatsWindow:
    """Compute the stats window of match within its league."""
    return StatsWindow(
        match_id=match.id,
        results_uploaded=match.results_available,
        index_from_end=index_from_end(match.id, league_matches),
        is_admin=is_admin,
    )


def enforce_window(
    match: MatchRecord,
    league_matches: Iterable[MatchRecord],
    is_admin: bool = False,
) -> StatsWindow:
    """
    Check that the acting user may submit statistics for match.

    Raises:
        StatsWindowViolation: non-admin outside the last two results
    """
    window = evaluate_window(match, league_matches, is_admin=is_admin)
    if not window.can_submit:
        raise StatsWindowViolation(match_id=match.id)
    return window
