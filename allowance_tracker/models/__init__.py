"""
Data Models Package

This package contains all Pydantic models used in the Allowance Tracker.
All data flowing between storage, calculations and services conforms to
these schemas.
"""

from allowance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from allowance_tracker.models.family import (
    AllowanceSchedule,
    Child,
    ControlAttempt,
    ControlResult,
    ControlStats,
    GlobalConfig,
)
from allowance_tracker.models.goal import (
    Goal,
    GoalState,
    GoalStatus,
    Projection,
    ProjectionFailureReason,
)
from allowance_tracker.models.ledger import (
    DeletionResult,
    LedgerExport,
    Transaction,
    TransactionKind,
    to_money,
)
from allowance_tracker.models.validation import ValidationIssue

__all__ = [
    # Ledger models
    "DeletionResult",
    "LedgerExport",
    "Transaction",
    "TransactionKind",
    "to_money",
    # Family models
    "AllowanceSchedule",
    "Child",
    "ControlAttempt",
    "ControlResult",
    "ControlStats",
    "GlobalConfig",
    # Goal models
    "Goal",
    "GoalState",
    "GoalStatus",
    "Projection",
    "ProjectionFailureReason",
    # Validation
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
