"""
Ledger Models for Allowance Tracker

These models define the strict schemas for a child's transactions.
They are designed to:
1. Enforce type safety at runtime
2. Keep money exact (Decimal, two places)
3. Keep timestamps unambiguous (timezone-aware, second precision)

DESIGN DECISION: Timestamp fields are strict. A raw string is never coerced
into a datetime here; only the storage codec turns text into timestamps.
"""

import secrets
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


CENT = Decimal("0.01")


def to_money(value: Decimal) -> Decimal:
    """
    Quantize an amount to cents.

    Raises ValueError when the amount has too many digits to hold at
    two places.
    """
    try:
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValueError(f"Amount {value} is too large") from e


def require_aware(value: datetime) -> datetime:
    """Reject naive timestamps and drop sub-second precision."""
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError("Timestamp must carry a UTC offset")
    return value.replace(microsecond=0)


def epoch_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


class TransactionKind(str, Enum):
    """Direction of a transaction, derived from the sign of its amount."""
    INCOME = "income"
    EXPENSE = "expense"


class Transaction(BaseModel):
    """
    A single ledger entry.

    The balance field is derived: it is rewritten by the balance
    recalculation engine after every insert or delete and never
    edited on its own.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Unique transaction ID (in-/ex-<epoch_ms>-<hex>)"
    )
    child_id: str = Field(
        ...,
        min_length=1,
        description="Owning child"
    )
    amount: Decimal = Field(
        ...,
        description="Signed amount: positive for income, negative for spending"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=1000,
        description="What the money was for"
    )
    occurred_at: datetime = Field(
        ...,
        strict=True,
        description="When the transaction happened"
    )
    balance: Decimal = Field(
        default=Decimal("0.00"),
        description="Running balance after this transaction"
    )

    @field_validator('amount', 'balance')
    @classmethod
    def quantize_money(cls, v: Decimal) -> Decimal:
        return to_money(v)

    @field_validator('occurred_at')
    @classmethod
    def validate_occurred_at(cls, v: datetime) -> datetime:
        return require_aware(v)

    @property
    def kind(self) -> TransactionKind:
        return TransactionKind.INCOME if self.amount >= 0 else TransactionKind.EXPENSE

    @staticmethod
    def generate_id(amount: Decimal, now: datetime) -> str:
        """
        Generate a transaction ID.

        Format: <type>-<timestamp_ms>-<random_suffix>
        Example: in-1625846400123-af3c
        """
        prefix = "in" if amount >= 0 else "ex"
        return f"{prefix}-{epoch_millis(now)}-{secrets.token_hex(2)}"


class DeletionResult(BaseModel):
    """Outcome of a multi-transaction delete."""

    deleted_ids: list[str] = Field(
        default_factory=list,
        description="IDs that existed and were removed"
    )
    not_found_ids: list[str] = Field(
        default_factory=list,
        description="Requested IDs that did not exist in the ledger"
    )

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_ids)

    @property
    def success_message(self) -> str:
        if self.deleted_count == 0:
            return "No transactions were deleted"
        if self.deleted_count == 1:
            return "1 transaction deleted successfully"
        return f"{self.deleted_count} transactions deleted successfully"


class LedgerExport(BaseModel):
    """A spreadsheet-friendly copy of a child's ledger."""

    child_name: str
    filename: str = Field(description="Suggested file name, e.g. alex_transactions_20250120.csv")
    transaction_count: int = Field(ge=0)
    csv_content: str
