"""
Goal Models for Allowance Tracker

A goal moves through a small state machine:

    ACTIVE -> COMPLETED   (automatic, when the balance reaches the target)
    ACTIVE -> CANCELLED   (explicit user action)

DESIGN DECISION: Goal history is append-only. A transition is recorded as a
new row carrying the same goal ID; the latest row for an ID is its state.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from allowance_tracker.models.ledger import epoch_millis, require_aware, to_money


class GoalState(str, Enum):
    """Lifecycle state of a goal."""
    ACTIVE = "active"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Goal(BaseModel):
    """One row of a child's goal history."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Goal ID (goal::<child_id>_<epoch_ms>)"
    )
    child_id: str = Field(..., min_length=1)
    description: str = Field(
        ...,
        min_length=1,
        max_length=1000,
    )
    target_amount: Decimal = Field(
        ...,
        description="Balance the child is saving towards"
    )
    state: GoalState = GoalState.ACTIVE
    created_at: datetime = Field(..., strict=True)
    updated_at: datetime = Field(..., strict=True)

    @field_validator('target_amount')
    @classmethod
    def quantize_target(cls, v: Decimal) -> Decimal:
        return to_money(v)

    @field_validator('created_at', 'updated_at')
    @classmethod
    def validate_timestamps(cls, v: datetime) -> datetime:
        return require_aware(v)

    @model_validator(mode='after')
    def validate_dates(self) -> 'Goal':
        if self.updated_at < self.created_at:
            raise ValueError("Goal updated_at cannot be before created_at")
        return self

    @property
    def is_active(self) -> bool:
        return self.state == GoalState.ACTIVE

    @staticmethod
    def generate_id(child_id: str, now: datetime) -> str:
        return f"goal::{child_id}_{epoch_millis(now)}"

    def transition(self, state: GoalState, now: datetime) -> 'Goal':
        """Return the history row recording a move to `state`."""
        return self.model_copy(update={"state": state, "updated_at": require_aware(now)})


class ProjectionFailureReason(str, Enum):
    """Why a goal cannot be forecast."""
    ALREADY_ACHIEVABLE = "already_achievable"
    NO_SCHEDULE_CONFIGURED = "no_schedule_configured"
    INVALID_SCHEDULE = "invalid_schedule"


class Projection(BaseModel):
    """Forecast for reaching a goal from recurring allowance alone."""

    as_of: date
    current_balance: Decimal
    target_amount: Decimal
    amount_needed: Decimal = Field(
        ...,
        gt=0,
        description="target_amount - current_balance"
    )
    allowance_amount: Decimal = Field(..., gt=0)
    cycles_needed: int = Field(
        ...,
        ge=1,
        description="Allowance payments needed to close the gap"
    )
    projected_completion_date: date
    exceeds_horizon: bool = Field(
        default=False,
        description="The projected date lies beyond the configured horizon"
    )


class GoalStatus(BaseModel):
    """
    A goal together with its forecast.

    When the goal cannot be forecast, projection is None and
    projection_failure says why; the goal itself is still usable.
    """

    goal: Goal
    current_balance: Decimal
    projection: Optional[Projection] = None
    projection_failure: Optional[ProjectionFailureReason] = None
    projection_message: Optional[str] = None

    @model_validator(mode='after')
    def validate_outcome(self) -> 'GoalStatus':
        if self.projection is not None and self.projection_failure is not None:
            raise ValueError("A goal status carries a projection or a failure, not both")
        return self

    @property
    def has_projection(self) -> bool:
        return self.projection is not None
