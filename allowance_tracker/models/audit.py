"""
Audit Models for Allowance Tracker

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of every ledger and goal mutation
2. Debugging information when things go wrong
3. Ability to reconstruct what a parent or child did

DESIGN DECISION: Audit events are emitted as structured log records only.
The ledger files and their git history are the durable record.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Ledger
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTIONS_DELETED = "transactions_deleted"
    BALANCES_RECALCULATED = "balances_recalculated"
    ALLOWANCE_ISSUED = "allowance_issued"

    # Goals
    GOAL_CREATED = "goal_created"
    GOAL_UPDATED = "goal_updated"
    GOAL_CANCELLED = "goal_cancelled"
    GOAL_COMPLETED = "goal_completed"

    # Profiles
    CHILD_CREATED = "child_created"
    CHILD_RENAMED = "child_renamed"
    ACTIVE_CHILD_CHANGED = "active_child_changed"
    ALLOWANCE_SCHEDULE_UPDATED = "allowance_schedule_updated"

    # Parental control
    CONTROL_ATTEMPT_RECORDED = "control_attempt_recorded"

    # Validation
    VALIDATION_REJECTED = "validation_rejected"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'goal', 'child')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    child_id: Optional[str] = Field(
        default=None,
        description="Child whose data was touched"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., a delete and its auto-completion)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "child_id": self.child_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(child_id, tx_id, amount, balance)
        event = AuditEventBuilder.goal_completed(child_id, goal_id, target)
    """

    @staticmethod
    def transaction_added(
        child_id: str,
        transaction_id: str,
        amount: Decimal,
        balance: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=transaction_id,
            child_id=child_id,
            correlation_id=correlation_id,
            description=f"Transaction added: {amount}",
            details={
                "amount": str(amount),
                "balance": str(balance),
            },
            is_user_action=True,
        )

    @staticmethod
    def transactions_deleted(
        child_id: str,
        deleted_ids: list[str],
        not_found_ids: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_DELETED,
            entity_type="transaction",
            child_id=child_id,
            correlation_id=correlation_id,
            description=f"Deleted {len(deleted_ids)} transactions",
            details={
                "deleted_ids": deleted_ids,
                "not_found_ids": not_found_ids,
            },
            is_user_action=True,
        )

    @staticmethod
    def balances_recalculated(
        child_id: str,
        record_count: int,
        final_balance: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCES_RECALCULATED,
            severity=AuditSeverity.DEBUG,
            entity_type="ledger",
            child_id=child_id,
            correlation_id=correlation_id,
            description=f"Recalculated {record_count} balances",
            details={
                "record_count": record_count,
                "final_balance": str(final_balance),
            },
        )

    @staticmethod
    def allowance_issued(
        child_id: str,
        transaction_ids: list[str],
        amount: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALLOWANCE_ISSUED,
            entity_type="transaction",
            child_id=child_id,
            description=f"Issued {len(transaction_ids)} pending allowances",
            details={
                "transaction_ids": transaction_ids,
                "amount": str(amount),
            },
        )

    @staticmethod
    def goal_created(
        child_id: str,
        goal_id: str,
        target_amount: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_CREATED,
            entity_type="goal",
            entity_id=goal_id,
            child_id=child_id,
            description=f"Goal created with target {target_amount}",
            details={"target_amount": str(target_amount)},
            is_user_action=True,
        )

    @staticmethod
    def goal_updated(
        child_id: str,
        goal_id: str,
        changes: dict[str, str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_UPDATED,
            entity_type="goal",
            entity_id=goal_id,
            child_id=child_id,
            description="Goal updated",
            details={"changes": changes},
            is_user_action=True,
        )

    @staticmethod
    def goal_cancelled(child_id: str, goal_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_CANCELLED,
            entity_type="goal",
            entity_id=goal_id,
            child_id=child_id,
            description="Goal cancelled",
            is_user_action=True,
        )

    @staticmethod
    def goal_completed(
        child_id: str,
        goal_id: str,
        target_amount: Decimal,
        balance: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_COMPLETED,
            entity_type="goal",
            entity_id=goal_id,
            child_id=child_id,
            correlation_id=correlation_id,
            description=f"Goal completed: balance {balance} reached target {target_amount}",
            details={
                "target_amount": str(target_amount),
                "balance": str(balance),
            },
        )

    @staticmethod
    def child_created(child_id: str, name: str, directory: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHILD_CREATED,
            entity_type="child",
            entity_id=child_id,
            child_id=child_id,
            description=f"Child profile created: {name}",
            details={"directory": directory},
            is_user_action=True,
        )

    @staticmethod
    def child_renamed(child_id: str, old_name: str, new_name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHILD_RENAMED,
            entity_type="child",
            entity_id=child_id,
            child_id=child_id,
            description=f"Child renamed: {old_name} -> {new_name}",
            details={"old_name": old_name, "new_name": new_name},
            is_user_action=True,
        )

    @staticmethod
    def active_child_changed(directory: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTIVE_CHILD_CHANGED,
            entity_type="global_config",
            description=(
                f"Active child set to {directory}" if directory else "Active child cleared"
            ),
            details={"active_child_directory": directory},
            is_user_action=True,
        )

    @staticmethod
    def allowance_schedule_updated(
        child_id: str,
        amount: Decimal,
        day_of_week: int,
        interval_weeks: int,
        is_active: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALLOWANCE_SCHEDULE_UPDATED,
            entity_type="allowance_schedule",
            child_id=child_id,
            description=f"Allowance schedule set to {amount} every {interval_weeks} week(s)",
            details={
                "amount": str(amount),
                "day_of_week": day_of_week,
                "interval_weeks": interval_weeks,
                "is_active": is_active,
            },
            is_user_action=True,
        )

    @staticmethod
    def control_attempt_recorded(
        child_id: str,
        attempt_id: int,
        sanitized_value: str,
        success: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONTROL_ATTEMPT_RECORDED,
            severity=AuditSeverity.INFO if success else AuditSeverity.WARNING,
            entity_type="control_attempt",
            entity_id=str(attempt_id),
            child_id=child_id,
            description=(
                "Parental control unlocked" if success else "Parental control attempt failed"
            ),
            details={
                "attempted_value": sanitized_value,
                "success": success,
            },
            is_user_action=True,
        )

    @staticmethod
    def validation_rejected(
        operation: str,
        issues: list[dict],
        child_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_REJECTED,
            severity=AuditSeverity.WARNING,
            child_id=child_id,
            description=f"{operation} rejected with {len(issues)} issues",
            details={
                "operation": operation,
                "issues": issues,
            },
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
