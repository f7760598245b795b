"""
Command Validation

DESIGN DECISION: Every command is validated before any file is touched.
A rejected command leaves all data files and their history unchanged.

Checks are grouped by command:
- transactions: description, amount, delete selection
- goals: description, target, the one-active-goal rule
- profiles: name, birthdate
- allowance schedules: amount, day of week, interval

IMPORTANT: Validation NEVER silently fixes input beyond trimming
whitespace and rounding money to cents. Anything else is reported.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from allowance_tracker.config import AppSettings, get_settings
from allowance_tracker.models.goal import Goal
from allowance_tracker.models.ledger import to_money
from allowance_tracker.models.validation import ValidationIssue


AmountInput = Union[Decimal, int, float, str]

MAX_CHILD_NAME_LENGTH = 100


class ValidationError(Exception):
    """Base exception for rejected commands."""

    issue_type = "invalid"

    def __init__(self, message: str, field: str = "", suggested_fix: Optional[str] = None):
        super().__init__(message)
        self.issues = [
            ValidationIssue(
                field=field or "command",
                issue_type=self.issue_type,
                message=message,
                severity="error",
                suggested_fix=suggested_fix,
            )
        ]


class InvalidDescriptionError(ValidationError):
    issue_type = "invalid_description"


class InvalidAmountError(ValidationError):
    issue_type = "invalid_amount"


class EmptySelectionError(ValidationError):
    issue_type = "empty_selection"


class InvalidTargetAmountError(ValidationError):
    issue_type = "invalid_target_amount"


class ActiveGoalExistsError(ValidationError):
    issue_type = "active_goal_exists"


class NoActiveGoalError(ValidationError):
    issue_type = "no_active_goal"


class InvalidChildError(ValidationError):
    issue_type = "invalid_child"


class InvalidScheduleInputError(ValidationError):
    issue_type = "invalid_schedule"


def parse_amount(value: AmountInput, field: str, error: type = InvalidAmountError) -> Decimal:
    """Convert user input to a cent-quantized Decimal."""
    if isinstance(value, bool):
        raise error(f"{field} must be a number", field=field)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        raise error(f"{field} must be a number, got {value!r}", field=field)
    if not amount.is_finite():
        raise error(f"{field} must be a finite number", field=field)
    try:
        return to_money(amount)
    except ValueError as e:
        raise error(f"{field} {e}", field=field) from e


class LedgerValidator:
    """
    Validates commands before they reach storage.

    Each method returns the cleaned value(s) or raises a ValidationError
    subclass describing the first problem found.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def validate_description(self, description: Optional[str], field: str = "description") -> str:
        text = (description or "").strip()
        if not text:
            raise InvalidDescriptionError(
                "Description cannot be empty",
                field=field,
                suggested_fix="Say what the money was for",
            )
        limit = self._settings.max_description_length
        if len(text) > limit:
            raise InvalidDescriptionError(
                f"Description is {len(text)} characters; the limit is {limit}",
                field=field,
            )
        return text

    def validate_transaction(
        self,
        amount: AmountInput,
        description: Optional[str],
    ) -> tuple[Decimal, str]:
        """
        Checks:
        - description present and within the length limit
        - amount non-zero and within the configured maximum

        Returns: (amount, description)
        """
        text = self.validate_description(description)
        value = parse_amount(amount, "amount")
        if value == 0:
            raise InvalidAmountError("Amount cannot be zero", field="amount")
        if abs(value) > Decimal(str(self._settings.max_transaction_amount)):
            raise InvalidAmountError(
                f"Amount {value} exceeds the maximum of {self._settings.max_transaction_amount}",
                field="amount",
            )
        return value, text

    def validate_deletion(self, transaction_ids: list[str]) -> list[str]:
        """Returns the distinct, non-blank IDs in request order."""
        ids = []
        for transaction_id in transaction_ids or []:
            cleaned = (transaction_id or "").strip()
            if cleaned and cleaned not in ids:
                ids.append(cleaned)
        if not ids:
            raise EmptySelectionError(
                "Select at least one transaction to delete",
                field="transaction_ids",
            )
        return ids

    def validate_target_amount(self, target_amount: AmountInput) -> Decimal:
        value = parse_amount(target_amount, "target_amount", InvalidTargetAmountError)
        if value <= 0:
            raise InvalidTargetAmountError(
                "Goal target must be greater than zero",
                field="target_amount",
            )
        if value > Decimal(str(self._settings.max_goal_amount)):
            raise InvalidTargetAmountError(
                f"Goal target {value} exceeds the maximum of {self._settings.max_goal_amount}",
                field="target_amount",
            )
        return value

    def validate_new_goal(
        self,
        description: Optional[str],
        target_amount: AmountInput,
        current_goal: Optional[Goal],
    ) -> tuple[str, Decimal]:
        """
        Checks:
        - no goal is currently Active
        - description and target are valid

        Returns: (description, target_amount)
        """
        if current_goal is not None:
            raise ActiveGoalExistsError(
                f"Goal {current_goal.id} is still active",
                field="goal",
                suggested_fix="Cancel the current goal first",
            )
        return (
            self.validate_description(description),
            self.validate_target_amount(target_amount),
        )

    def require_active_goal(self, goal: Optional[Goal]) -> Goal:
        if goal is None:
            raise NoActiveGoalError("There is no active goal", field="goal")
        return goal

    def validate_child(self, name: Optional[str], birthdate: date, today: date) -> str:
        """Returns the trimmed name."""
        cleaned = self.validate_child_name(name)
        if birthdate > today:
            raise InvalidChildError(
                f"Birthdate {birthdate.isoformat()} is in the future",
                field="birthdate",
            )
        return cleaned

    def validate_child_name(self, name: Optional[str]) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise InvalidChildError("Child name cannot be empty", field="name")
        if len(cleaned) > MAX_CHILD_NAME_LENGTH:
            raise InvalidChildError(
                f"Child name cannot exceed {MAX_CHILD_NAME_LENGTH} characters",
                field="name",
            )
        return cleaned

    def validate_schedule(
        self,
        amount: AmountInput,
        day_of_week: int,
        interval_weeks: int,
    ) -> Decimal:
        """
        Checks:
        - amount is not negative and within the transaction maximum
        - day_of_week in 0..6 (Monday..Sunday)
        - interval_weeks in 1..52

        Returns: the allowance amount
        """
        value = parse_amount(amount, "amount", InvalidScheduleInputError)
        if value < 0:
            raise InvalidScheduleInputError("Allowance cannot be negative", field="amount")
        if value > Decimal(str(self._settings.max_transaction_amount)):
            raise InvalidScheduleInputError(
                f"Allowance {value} exceeds the maximum of {self._settings.max_transaction_amount}",
                field="amount",
            )
        if not 0 <= day_of_week <= 6:
            raise InvalidScheduleInputError(
                f"Day of week must be 0 (Monday) to 6 (Sunday), got {day_of_week}",
                field="day_of_week",
            )
        if not 1 <= interval_weeks <= 52:
            raise InvalidScheduleInputError(
                f"Interval must be between 1 and 52 weeks, got {interval_weeks}",
                field="interval_weeks",
            )
        return value
