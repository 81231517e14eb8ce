"""
Stats window - who may submit match statistics, and when.

Players may edit statistics for the two most recent results of their
league; older games are admin-only.
"""

from .models import (
    MatchRecord,
    StatsWindow,
    RESULT_UPLOADED,
    RESULT_PUBLISHED,
    RESULTS_AVAILABLE_STATUSES,
    EDITABLE_RECENT_RESULTS,
)
from .policy import (
    order_results,
    index_from_end,
    evaluate_window,
    enforce_window,
)
from .provider import (
    StatsWindowAccessor,
    SqlStatsWindowAccessor,
    StatsWindowService,
    to_record,
)

__all__ = [
    # Models
    "MatchRecord",
    "StatsWindow",
    "RESULT_UPLOADED",
    "RESULT_PUBLISHED",
    "RESULTS_AVAILABLE_STATUSES",
    "EDITABLE_RECENT_RESULTS",
    # Policy
    "order_results",
    "index_from_end",
    "evaluate_window",
    "enforce_window",
    # Provider
    "StatsWindowAccessor",
    "SqlStatsWindowAccessor",
    "StatsWindowService",
    "to_record",
]
