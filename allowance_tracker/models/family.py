"""
Family Models for Allowance Tracker

Child profiles, allowance schedules, the active-child pointer and the
parental control audit trail.
"""

import unicodedata
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from allowance_tracker.models.ledger import epoch_millis, require_aware, to_money


DAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


class Child(BaseModel):
    """
    A child profile.

    The directory is fixed when the profile is created. Renaming a child
    changes the display name only; the data never moves.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Unique child ID (child::<epoch_ms>)"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    birthdate: date = Field(
        ...,
        strict=True,
    )
    directory: str = Field(
        ...,
        min_length=1,
        pattern=r"^[a-z0-9_]+$",
        description="Name of the child's directory under the data directory"
    )
    created_at: datetime = Field(..., strict=True)
    updated_at: datetime = Field(..., strict=True)

    @field_validator('created_at', 'updated_at')
    @classmethod
    def validate_timestamps(cls, v: datetime) -> datetime:
        return require_aware(v)

    @staticmethod
    def generate_id(now: datetime) -> str:
        return f"child::{epoch_millis(now)}"

    @staticmethod
    def directory_name_for(name: str) -> str:
        """
        Derive a filesystem-safe directory name from a display name.

        Accents are folded, whitespace and punctuation become underscores.
        Example: "José María" -> "jose_maria"
        """
        folded = unicodedata.normalize("NFKD", name.strip())
        chars = []
        for char in folded:
            if unicodedata.combining(char):
                continue
            if char.isascii() and char.isalnum():
                chars.append(char.lower())
            else:
                chars.append("_")
        directory = "".join(chars).strip("_")
        return directory or "child"


class AllowanceSchedule(BaseModel):
    """
    Recurring allowance for one child.

    day_of_week follows Python's convention: 0 = Monday ... 6 = Sunday.
    """

    child_id: str = Field(..., min_length=1)
    amount: Decimal = Field(
        ...,
        description="Amount paid on every occurrence"
    )
    day_of_week: int = Field(
        ...,
        ge=0,
        le=6,
    )
    interval_weeks: int = Field(
        default=1,
        ge=1,
        le=52,
        description="1 = weekly, 2 = every other week, ..."
    )
    is_active: bool = True
    created_at: datetime = Field(..., strict=True)
    updated_at: datetime = Field(..., strict=True)

    @field_validator('amount')
    @classmethod
    def quantize_amount(cls, v: Decimal) -> Decimal:
        return to_money(v)

    @field_validator('created_at', 'updated_at')
    @classmethod
    def validate_timestamps(cls, v: datetime) -> datetime:
        return require_aware(v)

    @property
    def day_name(self) -> str:
        return DAY_NAMES[self.day_of_week]


class GlobalConfig(BaseModel):
    """Process-wide pointer to the active child."""

    active_child_directory: Optional[str] = None
    data_format_version: str = "1.0"
    created_at: datetime = Field(..., strict=True)
    updated_at: datetime = Field(..., strict=True)

    @field_validator('created_at', 'updated_at')
    @classmethod
    def validate_timestamps(cls, v: datetime) -> datetime:
        return require_aware(v)


class ControlAttempt(BaseModel):
    """
    One parental control authorization attempt.

    Attempts are append-only; they are never edited or deleted.
    """

    id: int = Field(..., ge=1)
    timestamp: datetime = Field(..., strict=True)
    attempted_value: str
    success: bool

    @field_validator('timestamp')
    @classmethod
    def validate_timestamp(cls, v: datetime) -> datetime:
        return require_aware(v)

    @property
    def sanitized_value(self) -> str:
        """The attempted value, truncated for logs."""
        if len(self.attempted_value) > 3:
            return f"{self.attempted_value[:3]}..."
        return "***"


class ControlResult(BaseModel):
    success: bool
    message: str


class ControlStats(BaseModel):
    total_attempts: int = Field(ge=0)
    successful_attempts: int = Field(ge=0)
    failed_attempts: int = Field(ge=0)
    success_rate: float = Field(
        ge=0.0,
        le=100.0,
        description="Percentage of successful attempts"
    )
