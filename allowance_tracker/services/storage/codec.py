"""
Record Codec

Converts between raw CSV rows (dict[str, str] keyed by column name) and
domain models.

DESIGN DECISION: This module is the only place that parses date strings.
Everything above storage works with timezone-aware datetimes.

Canonical timestamp form is ISO-8601 with a fixed offset at second
precision, e.g. 2025-01-20T10:00:00-05:00. Older files may contain:
- RFC 3339 timestamps with fractional seconds (fraction dropped)
- bare YYYY-MM-DD dates (midnight at the legacy UTC offset)
Nothing else is accepted.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import ValidationError

from allowance_tracker.config import get_settings
from allowance_tracker.models.family import (
    AllowanceSchedule,
    Child,
    ControlAttempt,
    GlobalConfig,
)
from allowance_tracker.models.goal import Goal, GoalState
from allowance_tracker.models.ledger import Transaction, to_money
from allowance_tracker.services.storage.interface import (
    MalformedDateError,
    MalformedRecordError,
)


CANONICAL_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
FRACTIONAL_FORMAT = "%Y-%m-%dT%H:%M:%S.%f%z"
DATE_ONLY_FORMAT = "%Y-%m-%d"


def encode_timestamp(value: datetime) -> str:
    return value.isoformat(timespec="seconds")


def decode_timestamp(text: str, legacy_offset: timezone) -> datetime:
    """
    Parse a stored timestamp.

    Raises:
        MalformedDateError: If the text matches no accepted format
    """
    text = text.strip()
    for fmt in (CANONICAL_FORMAT, FRACTIONAL_FORMAT):
        try:
            return datetime.strptime(text, fmt).replace(microsecond=0)
        except ValueError:
            continue
    try:
        day = datetime.strptime(text, DATE_ONLY_FORMAT)
    except ValueError:
        raise MalformedDateError(f"Unrecognized timestamp: {text!r}")
    return day.replace(tzinfo=legacy_offset)


def encode_amount(value: Decimal) -> str:
    return format(to_money(value), "f")


def decode_amount(text: str, column: str) -> Decimal:
    try:
        value = Decimal(text.strip())
    except InvalidOperation:
        raise MalformedRecordError(f"{column}: not a decimal amount: {text!r}")
    if not value.is_finite():
        raise MalformedRecordError(f"{column}: amount must be finite: {text!r}")
    return value


def encode_bool(value: bool) -> str:
    return "true" if value else "false"


def decode_bool(text: str, column: str) -> bool:
    lowered = text.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise MalformedRecordError(f"{column}: expected true/false, got {text!r}")


def decode_int(text: str, column: str) -> int:
    try:
        return int(text.strip())
    except ValueError:
        raise MalformedRecordError(f"{column}: not an integer: {text!r}")


def decode_date(text: str, column: str) -> date:
    try:
        return datetime.strptime(text.strip(), DATE_ONLY_FORMAT).date()
    except ValueError:
        raise MalformedDateError(f"{column}: expected YYYY-MM-DD, got {text!r}")


class RecordCodec:
    """
    Base class for per-entity codecs.

    Subclasses declare their columns and implement _build and encode.
    """

    columns: tuple[str, ...] = ()
    entity_name = "record"

    def __init__(self, legacy_utc_offset_minutes: Optional[int] = None):
        if legacy_utc_offset_minutes is None:
            legacy_utc_offset_minutes = get_settings().storage.legacy_utc_offset_minutes
        self._legacy_offset = timezone(timedelta(minutes=legacy_utc_offset_minutes))

    def decode(self, row: dict[str, Optional[str]]):
        """
        Build an entity from a raw row.

        Raises:
            MalformedRecordError: Missing column, bad value or failed model validation
            MalformedDateError: Unparseable timestamp
        """
        missing = [column for column in self.columns if row.get(column) is None]
        if missing:
            raise MalformedRecordError(f"{self.entity_name}: missing columns {missing}")
        try:
            return self._build(row)
        except ValidationError as e:
            raise MalformedRecordError(
                f"{self.entity_name}: {e.error_count()} invalid fields: {e.errors()[0]['msg']}"
            ) from e

    def encode(self, entity) -> dict[str, str]:
        raise NotImplementedError

    def _build(self, row: dict[str, str]):
        raise NotImplementedError

    def _timestamp(self, text: str) -> datetime:
        return decode_timestamp(text, self._legacy_offset)


class TransactionCodec(RecordCodec):
    columns = ("id", "child_id", "amount", "description", "occurred_at", "balance")
    entity_name = "transaction"

    def _build(self, row: dict[str, str]) -> Transaction:
        return Transaction(
            id=row["id"],
            child_id=row["child_id"],
            amount=decode_amount(row["amount"], "amount"),
            description=row["description"],
            occurred_at=self._timestamp(row["occurred_at"]),
            balance=decode_amount(row["balance"], "balance"),
        )

    def encode(self, entity: Transaction) -> dict[str, str]:
        return {
            "id": entity.id,
            "child_id": entity.child_id,
            "amount": encode_amount(entity.amount),
            "description": entity.description,
            "occurred_at": encode_timestamp(entity.occurred_at),
            "balance": encode_amount(entity.balance),
        }


class ChildCodec(RecordCodec):
    columns = ("id", "name", "birthdate", "directory", "created_at", "updated_at")
    entity_name = "child"

    def _build(self, row: dict[str, str]) -> Child:
        return Child(
            id=row["id"],
            name=row["name"],
            birthdate=decode_date(row["birthdate"], "birthdate"),
            directory=row["directory"],
            created_at=self._timestamp(row["created_at"]),
            updated_at=self._timestamp(row["updated_at"]),
        )

    def encode(self, entity: Child) -> dict[str, str]:
        return {
            "id": entity.id,
            "name": entity.name,
            "birthdate": entity.birthdate.isoformat(),
            "directory": entity.directory,
            "created_at": encode_timestamp(entity.created_at),
            "updated_at": encode_timestamp(entity.updated_at),
        }


class GoalCodec(RecordCodec):
    columns = (
        "id",
        "child_id",
        "description",
        "target_amount",
        "state",
        "created_at",
        "updated_at",
    )
    entity_name = "goal"

    def _build(self, row: dict[str, str]) -> Goal:
        try:
            state = GoalState(row["state"].strip().lower())
        except ValueError:
            raise MalformedRecordError(f"goal: unknown state {row['state']!r}")
        return Goal(
            id=row["id"],
            child_id=row["child_id"],
            description=row["description"],
            target_amount=decode_amount(row["target_amount"], "target_amount"),
            state=state,
            created_at=self._timestamp(row["created_at"]),
            updated_at=self._timestamp(row["updated_at"]),
        )

    def encode(self, entity: Goal) -> dict[str, str]:
        return {
            "id": entity.id,
            "child_id": entity.child_id,
            "description": entity.description,
            "target_amount": encode_amount(entity.target_amount),
            "state": entity.state.value,
            "created_at": encode_timestamp(entity.created_at),
            "updated_at": encode_timestamp(entity.updated_at),
        }


class AllowanceScheduleCodec(RecordCodec):
    columns = (
        "child_id",
        "amount",
        "day_of_week",
        "interval_weeks",
        "is_active",
        "created_at",
        "updated_at",
    )
    entity_name = "allowance_schedule"

    def _build(self, row: dict[str, str]) -> AllowanceSchedule:
        return AllowanceSchedule(
            child_id=row["child_id"],
            amount=decode_amount(row["amount"], "amount"),
            day_of_week=decode_int(row["day_of_week"], "day_of_week"),
            interval_weeks=decode_int(row["interval_weeks"], "interval_weeks"),
            is_active=decode_bool(row["is_active"], "is_active"),
            created_at=self._timestamp(row["created_at"]),
            updated_at=self._timestamp(row["updated_at"]),
        )

    def encode(self, entity: AllowanceSchedule) -> dict[str, str]:
        return {
            "child_id": entity.child_id,
            "amount": encode_amount(entity.amount),
            "day_of_week": str(entity.day_of_week),
            "interval_weeks": str(entity.interval_weeks),
            "is_active": encode_bool(entity.is_active),
            "created_at": encode_timestamp(entity.created_at),
            "updated_at": encode_timestamp(entity.updated_at),
        }


class ControlAttemptCodec(RecordCodec):
    columns = ("id", "timestamp", "attempted_value", "success")
    entity_name = "control_attempt"

    def _build(self, row: dict[str, str]) -> ControlAttempt:
        return ControlAttempt(
            id=decode_int(row["id"], "id"),
            timestamp=self._timestamp(row["timestamp"]),
            attempted_value=row["attempted_value"],
            success=decode_bool(row["success"], "success"),
        )

    def encode(self, entity: ControlAttempt) -> dict[str, str]:
        return {
            "id": str(entity.id),
            "timestamp": encode_timestamp(entity.timestamp),
            "attempted_value": entity.attempted_value,
            "success": encode_bool(entity.success),
        }


class GlobalConfigCodec(RecordCodec):
    columns = (
        "active_child_directory",
        "data_format_version",
        "created_at",
        "updated_at",
    )
    entity_name = "global_config"

    def _build(self, row: dict[str, str]) -> GlobalConfig:
        return GlobalConfig(
            active_child_directory=row["active_child_directory"].strip() or None,
            data_format_version=row["data_format_version"],
            created_at=self._timestamp(row["created_at"]),
            updated_at=self._timestamp(row["updated_at"]),
        )

    def encode(self, entity: GlobalConfig) -> dict[str, str]:
        return {
            "active_child_directory": entity.active_child_directory or "",
            "data_format_version": entity.data_format_version,
            "created_at": encode_timestamp(entity.created_at),
            "updated_at": encode_timestamp(entity.updated_at),
        }
