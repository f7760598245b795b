"""
Audit Logger

DESIGN DECISION: Every mutation of a child's data is logged.
This provides:
1. Traceability of ledger, goal and profile changes
2. Debugging capability
3. A place where best-effort failures (versioning) stay visible

The audit logger:
- Is synchronous, like every storage call it reports on
- Gracefully handles failures (a log record that cannot be rendered never
  breaks the command that produced it)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from allowance_tracker.models.audit import AuditEvent, AuditEventBuilder


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Renders AuditEvent models as structured log records.
    """

    def __init__(self):
        self._logger = structlog.get_logger("allowance_tracker.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the record was emitted.
        """
        log_dict = event.to_log_dict()

        try:
            if event.severity.value in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            elif event.severity.value == "debug":
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except (TypeError, ValueError) as e:
            self._logger.error(
                "audit_render_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

        return True

    def log_transaction_added(
        self,
        child_id: str,
        transaction_id: str,
        amount: Decimal,
        balance: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a new ledger entry."""
        self.log(AuditEventBuilder.transaction_added(
            child_id=child_id,
            transaction_id=transaction_id,
            amount=amount,
            balance=balance,
            correlation_id=correlation_id,
        ))

    def log_transactions_deleted(
        self,
        child_id: str,
        deleted_ids: list[str],
        not_found_ids: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a multi-transaction delete."""
        self.log(AuditEventBuilder.transactions_deleted(
            child_id=child_id,
            deleted_ids=deleted_ids,
            not_found_ids=not_found_ids,
            correlation_id=correlation_id,
        ))

    def log_balances_recalculated(
        self,
        child_id: str,
        record_count: int,
        final_balance: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.balances_recalculated(
            child_id=child_id,
            record_count=record_count,
            final_balance=final_balance,
            correlation_id=correlation_id,
        ))

    def log_allowance_issued(
        self,
        child_id: str,
        transaction_ids: list[str],
        amount: Decimal,
    ) -> None:
        self.log(AuditEventBuilder.allowance_issued(
            child_id=child_id,
            transaction_ids=transaction_ids,
            amount=amount,
        ))

    def log_goal_created(self, child_id: str, goal_id: str, target_amount: Decimal) -> None:
        self.log(AuditEventBuilder.goal_created(child_id, goal_id, target_amount))

    def log_goal_updated(self, child_id: str, goal_id: str, changes: dict[str, str]) -> None:
        self.log(AuditEventBuilder.goal_updated(child_id, goal_id, changes))

    def log_goal_cancelled(self, child_id: str, goal_id: str) -> None:
        self.log(AuditEventBuilder.goal_cancelled(child_id, goal_id))

    def log_goal_completed(
        self,
        child_id: str,
        goal_id: str,
        target_amount: Decimal,
        balance: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an automatic goal completion."""
        self.log(AuditEventBuilder.goal_completed(
            child_id=child_id,
            goal_id=goal_id,
            target_amount=target_amount,
            balance=balance,
            correlation_id=correlation_id,
        ))

    def log_child_created(self, child_id: str, name: str, directory: str) -> None:
        self.log(AuditEventBuilder.child_created(child_id, name, directory))

    def log_child_renamed(self, child_id: str, old_name: str, new_name: str) -> None:
        self.log(AuditEventBuilder.child_renamed(child_id, old_name, new_name))

    def log_active_child_changed(self, directory: Optional[str]) -> None:
        self.log(AuditEventBuilder.active_child_changed(directory))

    def log_schedule_updated(
        self,
        child_id: str,
        amount: Decimal,
        day_of_week: int,
        interval_weeks: int,
        is_active: bool,
    ) -> None:
        self.log(AuditEventBuilder.allowance_schedule_updated(
            child_id=child_id,
            amount=amount,
            day_of_week=day_of_week,
            interval_weeks=interval_weeks,
            is_active=is_active,
        ))

    def log_control_attempt(
        self,
        child_id: str,
        attempt_id: int,
        sanitized_value: str,
        success: bool,
    ) -> None:
        """Log a parental control attempt. The raw answer is never logged."""
        self.log(AuditEventBuilder.control_attempt_recorded(
            child_id=child_id,
            attempt_id=attempt_id,
            sanitized_value=sanitized_value,
            success=success,
        ))

    def log_validation_rejected(
        self,
        operation: str,
        issues: list[dict],
        child_id: Optional[str] = None,
    ) -> None:
        """Log a command rejected before any write."""
        self.log(AuditEventBuilder.validation_rejected(
            operation=operation,
            issues=issues,
            child_id=child_id,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user command (e.g., a delete) and pass it
    to every event the command produces.
    """
    return uuid4()


def configure_logging(level: str = "INFO") -> None:
    """Set the stdlib level that filter_by_level checks for our loggers."""
    logging.basicConfig(format="%(message)s", stream=sys.stderr)
    logging.getLogger("allowance_tracker").setLevel(level)
