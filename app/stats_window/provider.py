"""
Provider interface for the stats submission window.

Loads a match and its league's results through an accessor, then applies
the window policy. The SQLAlchemy accessor is the production one; tests
plug in an in-memory accessor.
"""
import logging
from typing import List, Optional, Protocol

from sqlalchemy.orm import Session

from app import crud
from app.errors import NotAuthenticatedError, NotFoundError, StatsWindowViolation

from .models import RESULTS_AVAILABLE_STATUSES, MatchRecord, StatsWindow
from .policy import enforce_window, evaluate_window

logger = logging.getLogger("stats_window.provider")


class StatsWindowAccessor(Protocol):
    def get_match(self, match_id: int) -> Optional[MatchRecord]:
        ...

    def list_results_available_matches(self, league_id: int) -> List[MatchRecord]:
        ...

    def is_league_admin(self, user_id: str, league_id: int) -> bool:
        ...


def to_record(match) -> MatchRecord:
    """Project an ORM Match onto the fields the policy reads."""
    return MatchRecord(
        id=match.id,
        league_id=match.league_id,
        status=match.status,
        start=match.start,
        created_at=match.created_at,
    )


class SqlStatsWindowAccessor:
    """Accessor backed by a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def get_match(self, match_id: int) -> Optional[MatchRecord]:
        match = crud.get_match_by_id(self.db, match_id)
        return to_record(match) if match is not None else None

    def list_results_available_matches(self, league_id: int) -> List[MatchRecord]:
        matches = crud.get_matches_with_status(self.db, league_id, RESULTS_AVAILABLE_STATUSES)
        return [to_record(m) for m in matches]

    def is_league_admin(self, user_id: str, league_id: int) -> bool:
        return crud.is_league_admin(self.db, user_id, league_id)


class StatsWindowService:
    """
    Main interface for stats window checks.

    Handles:
    - Window reports for a match (what the UI shows)
    - Enforcement before a statistic write
    """

    def __init__(self, accessor: StatsWindowAccessor):
        self.accessor = accessor

    def _load(self, match_id: int) -> MatchRecord:
        match = self.accessor.get_match(match_id)
        if match is None:
            raise NotFoundError("Match not found")
        return match

    def get_window(self, match_id: int, user_id: Optional[str] = None) -> StatsWindow:
        """
        Window report for match_id as seen by user_id.

        Raises:
            NotFoundError: unknown match
        """
        match = self._load(match_id)
        is_admin = bool(user_id) and self.accessor.is_league_admin(user_id, match.league_id)
        league_matches = self.accessor.list_results_available_matches(match.league_id)
        return evaluate_window(match, league_matches, is_admin=is_admin)

    def enforce(self, match_id: int, user_id: Optional[str]) -> StatsWindow:
        """
        Check a statistic write before it happens.

        Raises:
            NotAuthenticatedError: no acting user
            NotFoundError: unknown match
            StatsWindowViolation: non-admin outside the last two results
        """
        if not user_id:
            raise NotAuthenticatedError()

        match = self._load(match_id)

        # Admins may always edit; skip loading the league's results
        if self.accessor.is_league_admin(user_id, match.league_id):
            return StatsWindow(
                match_id=match.id,
                results_uploaded=match.results_available,
                index_from_end=None,
                is_admin=True,
            )

        league_matches = self.accessor.list_results_available_matches(match.league_id)
        try:
            return enforce_window(match, league_matches)
        except StatsWindowViolation:
            logger.info(f"Rejected stats write for match {match_id} by user {user_id}")
            raise
