"""
Goal Projection Calculator

Forecasts when a savings goal will be reached from the recurring
allowance alone (no spending, no gifts).

Algorithm:
1. amount_needed = target - current_balance; nothing to forecast if <= 0
2. The schedule must exist, be active and pay a positive amount
3. cycles_needed = ceil(amount_needed / allowance)
4. Walk that many scheduled paydays strictly after as_of
5. Flag (don't reject) dates beyond the configured horizon

Schedules with interval_weeks > 1 are anchored on the first matching
weekday on or after the day the schedule was created, so every caller
sees the same paydays.
"""

import math
from collections.abc import Iterator
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from allowance_tracker.config import get_settings
from allowance_tracker.models.family import AllowanceSchedule
from allowance_tracker.models.goal import Projection, ProjectionFailureReason
from allowance_tracker.models.ledger import to_money


class ProjectionError(Exception):
    """Base exception for goals that cannot be forecast."""
    reason: ProjectionFailureReason


class AlreadyAchievableError(ProjectionError):
    """The current balance already covers the target."""
    reason = ProjectionFailureReason.ALREADY_ACHIEVABLE


class NoScheduleConfiguredError(ProjectionError):
    """There is no active allowance to project from."""
    reason = ProjectionFailureReason.NO_SCHEDULE_CONFIGURED


class InvalidScheduleError(ProjectionError):
    """The allowance amount is zero or negative."""
    reason = ProjectionFailureReason.INVALID_SCHEDULE


def _first_payday_after(schedule: AllowanceSchedule, after: date) -> date:
    days_ahead = (schedule.day_of_week - after.weekday()) % 7 or 7
    candidate = after + timedelta(days=days_ahead)
    if schedule.interval_weeks == 1:
        return candidate

    created = schedule.created_at.date()
    anchor = created + timedelta(days=(schedule.day_of_week - created.weekday()) % 7)
    if candidate <= anchor:
        return anchor
    weeks_since_anchor = (candidate - anchor).days // 7
    return candidate + timedelta(weeks=(-weeks_since_anchor) % schedule.interval_weeks)


def iter_occurrences(
    schedule: AllowanceSchedule,
    after: date,
    until: Optional[date] = None,
) -> Iterator[date]:
    """
    Yield scheduled paydays strictly after `after`.

    Stops after `until` (inclusive) when given; otherwise the iterator
    is unbounded.
    """
    step = timedelta(weeks=schedule.interval_weeks)
    payday = _first_payday_after(schedule, after)
    while until is None or payday <= until:
        yield payday
        payday += step


def project(
    current_balance: Decimal,
    target: Decimal,
    schedule: Optional[AllowanceSchedule],
    as_of: date,
    horizon_days: Optional[int] = None,
) -> Projection:
    """
    Forecast the completion date of a goal.

    Raises:
        AlreadyAchievableError: Balance already meets the target
        NoScheduleConfiguredError: No schedule, or the schedule is inactive
        InvalidScheduleError: Schedule amount <= 0
    """
    if horizon_days is None:
        horizon_days = get_settings().projection.horizon_days

    amount_needed = to_money(target - current_balance)
    if amount_needed <= 0:
        raise AlreadyAchievableError(
            f"Current balance {current_balance} already covers the target {target}"
        )
    if schedule is None or not schedule.is_active:
        raise NoScheduleConfiguredError("No active allowance is configured")
    if schedule.amount <= 0:
        raise InvalidScheduleError(
            f"Allowance amount must be positive, got {schedule.amount}"
        )

    cycles_needed = math.ceil(amount_needed / schedule.amount)
    projected = None
    for count, payday in enumerate(iter_occurrences(schedule, as_of), start=1):
        if count == cycles_needed:
            projected = payday
            break

    return Projection(
        as_of=as_of,
        current_balance=current_balance,
        target_amount=target,
        amount_needed=amount_needed,
        allowance_amount=schedule.amount,
        cycles_needed=cycles_needed,
        projected_completion_date=projected,
        exceeds_horizon=projected > as_of + timedelta(days=horizon_days),
    )
