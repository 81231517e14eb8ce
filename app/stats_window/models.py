"""
Data models for the stats submission window.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

RESULT_UPLOADED = "RESULT_UPLOADED"
RESULT_PUBLISHED = "RESULT_PUBLISHED"

# Match statuses in which a result exists and statistics may be submitted
RESULTS_AVAILABLE_STATUSES = frozenset({RESULT_UPLOADED, RESULT_PUBLISHED})

# How many of the most recent results stay open to non-admins
EDITABLE_RECENT_RESULTS = 2


@dataclass(frozen=True)
class MatchRecord:
    """The slice of a match the window policy needs."""
    id: int
    league_id: int
    status: str
    start: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def results_available(self) -> bool:
        return self.status in RESULTS_AVAILABLE_STATUSES


@dataclass(frozen=True)
class StatsWindow:
    """
    Editability of one match's statistics.

    index_from_end: 0 = most recent result, 1 = the one before, ...
    None when the match has no result yet.
    """
    match_id: int
    results_uploaded: bool
    index_from_end: Optional[int]
    is_admin: bool = False

    @property
    def is_within_last_two(self) -> bool:
        return self.index_from_end is not None and self.index_from_end < EDITABLE_RECENT_RESULTS

    @property
    def is_older_than_two(self) -> bool:
        return self.index_from_end is not None and self.index_from_end >= EDITABLE_RECENT_RESULTS

    @property
    def can_player_submit(self) -> bool:
        return self.results_uploaded and self.is_within_last_two

    @property
    def admin_can_submit(self) -> bool:
        return True

    @property
    def can_submit(self) -> bool:
        """Decision for the acting user."""
        return self.is_admin or self.can_player_submit

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            "resultsUploaded": self.results_uploaded,
            "isWithinLastTwo": self.is_within_last_two,
            "isOlderThanTwo": self.is_older_than_two,
            "canPlayerSubmit": self.can_player_submit,
            "adminCanSubmit": self.admin_can_submit,
            "isAdmin": self.is_admin,
            "indexFromEnd": self.index_from_end,
        }
