"""Command validation package."""

from allowance_tracker.validation.validator import (
    ActiveGoalExistsError,
    EmptySelectionError,
    InvalidAmountError,
    InvalidChildError,
    InvalidDescriptionError,
    InvalidScheduleInputError,
    InvalidTargetAmountError,
    LedgerValidator,
    NoActiveGoalError,
    ValidationError,
    parse_amount,
)

__all__ = [
    "ActiveGoalExistsError",
    "EmptySelectionError",
    "InvalidAmountError",
    "InvalidChildError",
    "InvalidDescriptionError",
    "InvalidScheduleInputError",
    "InvalidTargetAmountError",
    "LedgerValidator",
    "NoActiveGoalError",
    "ValidationError",
    "parse_amount",
]
