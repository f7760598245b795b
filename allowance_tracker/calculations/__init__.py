"""Ledger and goal calculations."""

from allowance_tracker.calculations.balance import (
    balance_at,
    current_balance,
    find_balance_errors,
    recompute,
)
from allowance_tracker.calculations.projection import (
    AlreadyAchievableError,
    InvalidScheduleError,
    NoScheduleConfiguredError,
    ProjectionError,
    iter_occurrences,
    project,
)

__all__ = [
    # Balance
    "balance_at",
    "current_balance",
    "find_balance_errors",
    "recompute",
    # Projection
    "AlreadyAchievableError",
    "InvalidScheduleError",
    "NoScheduleConfiguredError",
    "ProjectionError",
    "iter_occurrences",
    "project",
]
