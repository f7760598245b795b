"""
Main Orchestrator for Allowance Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Ledger changes (validate -> load -> mutate -> recompute -> rewrite -> commit)
2. Goals (create, edit, cancel, forecast, auto-complete)
3. Child profiles, allowance schedules and the active child
4. Parental control attempts

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is written before validation passes
- Every ledger mutation is one recompute and one rewrite
- Every step is audited
- Versioning failures never reach the caller

Services hold no state between calls. The active child is loaded once
per session and passed explicitly to every call.
"""

import csv
import io
from collections.abc import Callable
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Optional
from uuid import UUID

import structlog

from allowance_tracker.audit import AuditLogger, configure_logging, create_correlation_id
from allowance_tracker.calculations import (
    AlreadyAchievableError,
    ProjectionError,
    current_balance,
    find_balance_errors,
    iter_occurrences,
    project,
    recompute,
)
from allowance_tracker.calculations import balance_at as balance_at_moment
from allowance_tracker.config import AppSettings, get_settings
from allowance_tracker.models.family import (
    AllowanceSchedule,
    Child,
    ControlAttempt,
    ControlResult,
    ControlStats,
)
from allowance_tracker.models.goal import Goal, GoalState, GoalStatus
from allowance_tracker.models.ledger import DeletionResult, LedgerExport, Transaction
from allowance_tracker.services.storage import (
    AllowanceScheduleStorageInterface,
    ChildStorageInterface,
    ControlAttemptStorageInterface,
    CsvAllowanceScheduleStorage,
    CsvChildStorage,
    CsvControlAttemptStorage,
    CsvDataClient,
    CsvGlobalConfigStorage,
    CsvGoalStorage,
    CsvTransactionStorage,
    GlobalConfigStorageInterface,
    GoalStorageInterface,
    IoFailureError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)
from allowance_tracker.services.versioning import GitVersioningManager
from allowance_tracker.validation import LedgerValidator, ValidationError
from allowance_tracker.validation.validator import AmountInput


logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]

EXPORT_COLUMNS = ("transaction_id", "transaction_date", "description", "amount")


def local_now(offset_minutes: Optional[int] = None) -> datetime:
    """Current time at the configured UTC offset, second precision."""
    if offset_minutes is None:
        offset_minutes = get_settings().app.default_utc_offset_minutes
    tz = timezone(timedelta(minutes=offset_minutes))
    return datetime.now(tz).replace(microsecond=0)


class _Service:
    """Shared plumbing: clock, audit logger and rejected-command logging."""

    def __init__(
        self,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Clock] = None,
    ):
        self._audit_logger = audit_logger or AuditLogger()
        self._clock = clock or local_now

    def _now(self) -> datetime:
        return self._clock().replace(microsecond=0)

    def _rejected(self, operation: str, error: ValidationError, child: Optional[Child] = None) -> None:
        self._audit_logger.log_validation_rejected(
            operation=operation,
            issues=[issue.model_dump() for issue in error.issues],
            child_id=child.id if child else None,
        )

    def _write_failed(
        self,
        operation: str,
        error: StorageError,
        child: Child,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self._audit_logger.log_error(
            error_type=type(error).__name__,
            error_message=str(error),
            details={"operation": operation, "child_id": child.id},
            correlation_id=correlation_id,
        )


class GoalService(_Service):
    """
    Manages a child's savings goal.

    State machine:
        ACTIVE -> COMPLETED  (balance reached the target)
        ACTIVE -> CANCELLED  (explicit)

    Every transition and every edit appends a history row.
    """

    def __init__(
        self,
        goal_storage: GoalStorageInterface,
        transaction_storage: TransactionStorageInterface,
        schedule_storage: AllowanceScheduleStorageInterface,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Clock] = None,
        horizon_days: Optional[int] = None,
    ):
        super().__init__(audit_logger, clock)
        self._goals = goal_storage
        self._transactions = transaction_storage
        self._schedules = schedule_storage
        self._validator = validator or LedgerValidator()
        if horizon_days is None:
            horizon_days = get_settings().projection.horizon_days
        self._horizon_days = horizon_days

    def _balance(self, child: Child) -> Decimal:
        return current_balance(recompute(self._transactions.list_all(child)))

    def _append(
        self,
        child: Child,
        goal: Goal,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        try:
            self._goals.append(child, goal)
        except StorageError as e:
            self._write_failed(operation, e, child, correlation_id)
            raise

    def _project(self, child: Child, target: Decimal, balance: Decimal, as_of: date):
        return project(
            current_balance=balance,
            target=target,
            schedule=self._schedules.get(child),
            as_of=as_of,
            horizon_days=self._horizon_days,
        )

    def _status(self, child: Child, goal: Goal, balance: Decimal, as_of: date) -> GoalStatus:
        try:
            projection = self._project(child, goal.target_amount, balance, as_of)
        except ProjectionError as e:
            return GoalStatus(
                goal=goal,
                current_balance=balance,
                projection_failure=e.reason,
                projection_message=str(e),
            )
        return GoalStatus(goal=goal, current_balance=balance, projection=projection)

    def _unique_id(self, child: Child, now: datetime) -> str:
        existing = {goal.id for goal in self._goals.list_all(child)}
        moment = now
        goal_id = Goal.generate_id(child.id, moment)
        while goal_id in existing:
            moment += timedelta(milliseconds=1)
            goal_id = Goal.generate_id(child.id, moment)
        return goal_id

    def create_goal(
        self,
        child: Child,
        description: str,
        target_amount: AmountInput,
        as_of: Optional[datetime] = None,
    ) -> GoalStatus:
        """
        Create the child's Active goal.

        Raises:
            ActiveGoalExistsError: Another goal is still Active
            InvalidDescriptionError / InvalidTargetAmountError: Bad input
            AlreadyAchievableError: The balance already covers the target
                                    (nothing is written)
        """
        now = as_of or self._now()
        try:
            text, target = self._validator.validate_new_goal(
                description, target_amount, self._goals.current(child)
            )
        except ValidationError as e:
            self._rejected("create_goal", e, child)
            raise

        balance = self._balance(child)
        projection = None
        failure: Optional[ProjectionError] = None
        try:
            projection = self._project(child, target, balance, now.date())
        except AlreadyAchievableError:
            logger.info("goal_rejected_already_achievable", child_id=child.id, target=str(target))
            raise
        except ProjectionError as e:
            failure = e

        goal = Goal(
            id=self._unique_id(child, now),
            child_id=child.id,
            description=text,
            target_amount=target,
            state=GoalState.ACTIVE,
            created_at=now,
            updated_at=now,
        )
        self._append(child, goal, "create_goal")
        self._audit_logger.log_goal_created(child.id, goal.id, target)

        if failure is not None:
            return GoalStatus(
                goal=goal,
                current_balance=balance,
                projection_failure=failure.reason,
                projection_message=str(failure),
            )
        return GoalStatus(goal=goal, current_balance=balance, projection=projection)

    def cancel_goal(self, child: Child) -> Goal:
        """
        Cancel the Active goal.

        Raises:
            NoActiveGoalError: Nothing to cancel
        """
        try:
            goal = self._validator.require_active_goal(self._goals.current(child))
        except ValidationError as e:
            self._rejected("cancel_goal", e, child)
            raise
        cancelled = goal.transition(GoalState.CANCELLED, max(self._now(), goal.updated_at))
        self._append(child, cancelled, "cancel_goal")
        self._audit_logger.log_goal_cancelled(child.id, goal.id)
        return cancelled

    def update_goal(
        self,
        child: Child,
        description: Optional[str] = None,
        target_amount: Optional[AmountInput] = None,
    ) -> GoalStatus:
        """
        Edit the Active goal's description and/or target.

        Raises:
            NoActiveGoalError: Nothing to edit
            AlreadyAchievableError: The new target is already covered (nothing is written)
        """
        try:
            goal = self._validator.require_active_goal(self._goals.current(child))
            changes = {}
            if description is not None:
                changes["description"] = self._validator.validate_description(description)
            if target_amount is not None:
                changes["target_amount"] = self._validator.validate_target_amount(target_amount)
        except ValidationError as e:
            self._rejected("update_goal", e, child)
            raise

        now = max(self._now(), goal.updated_at)
        balance = self._balance(child)
        target = changes.get("target_amount", goal.target_amount)
        if balance >= target:
            raise AlreadyAchievableError(
                f"Current balance {balance} already covers the target {target}"
            )

        edited = goal.model_copy(update={**changes, "updated_at": now})
        self._append(child, edited, "update_goal")
        self._audit_logger.log_goal_updated(
            child.id, goal.id, {key: str(value) for key, value in changes.items()}
        )
        return self._status(child, edited, balance, now.date())

    def get_current_goal_with_projection(
        self,
        child: Child,
        as_of: Optional[datetime] = None,
    ) -> GoalStatus:
        """
        The Active goal with its forecast.

        A goal whose target the balance has reached is completed on the
        spot and returned with the ALREADY_ACHIEVABLE failure reason.

        Raises:
            NotFoundError: No goal is Active
        """
        goal = self._goals.current(child)
        if goal is None:
            raise NotFoundError(f"No active goal for child {child.id}")
        now = as_of or self._now()
        balance = self._balance(child)
        if balance >= goal.target_amount:
            completed = self._complete(child, goal, balance, now)
            return self._status(child, completed, balance, now.date())
        return self._status(child, goal, balance, now.date())

    def check_and_complete_goal(
        self,
        child: Child,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Goal]:
        """Complete the Active goal if the balance has reached it."""
        goal = self._goals.current(child)
        if goal is None:
            return None
        balance = self._balance(child)
        if balance < goal.target_amount:
            return None
        return self._complete(child, goal, balance, self._now(), correlation_id)

    def goal_history(self, child: Child, limit: Optional[int] = None) -> list[Goal]:
        """Every history row, newest first."""
        rows = list(reversed(self._goals.list_all(child)))
        if limit is not None:
            rows = rows[:limit]
        return rows

    def _complete(
        self,
        child: Child,
        goal: Goal,
        balance: Decimal,
        now: datetime,
        correlation_id: Optional[UUID] = None,
    ) -> Goal:
        completed = goal.transition(GoalState.COMPLETED, max(now, goal.updated_at))
        self._append(child, completed, "complete_goal", correlation_id)
        self._audit_logger.log_goal_completed(
            child_id=child.id,
            goal_id=goal.id,
            target_amount=goal.target_amount,
            balance=balance,
            correlation_id=correlation_id,
        )
        return completed


class TransactionService(_Service):
    """
    Manages a child's ledger.

    Flow for every mutation:
    1. Validate the command
    2. Load the full ledger
    3. Apply the change in memory
    4. Recompute every running balance
    5. Rewrite the file once (and commit it)
    6. Let the goal service complete a goal the new balance reached
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        schedule_storage: Optional[AllowanceScheduleStorageInterface] = None,
        goal_service: Optional[GoalService] = None,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(audit_logger, clock)
        self._transactions = transaction_storage
        self._schedules = schedule_storage
        self._goal_service = goal_service
        self._validator = validator or LedgerValidator()

    def _normalize_when(self, when: Optional[datetime]) -> datetime:
        if when is None:
            return self._now()
        if when.tzinfo is None or when.utcoffset() is None:
            when = when.replace(tzinfo=self._now().tzinfo)
        return when.replace(microsecond=0)

    def _rewrite(
        self,
        child: Child,
        transactions: list[Transaction],
        action: str,
        correlation_id: UUID,
    ) -> list[Transaction]:
        updated = recompute(transactions)
        try:
            self._transactions.replace_all(child, updated, action)
        except StorageError as e:
            self._write_failed("rewrite_ledger", e, child, correlation_id)
            raise
        self._audit_logger.log_balances_recalculated(
            child_id=child.id,
            record_count=len(updated),
            final_balance=current_balance(updated),
            correlation_id=correlation_id,
        )
        return updated

    def _after_change(self, child: Child, correlation_id: UUID) -> None:
        if self._goal_service is not None:
            self._goal_service.check_and_complete_goal(child, correlation_id)

    def add_transaction(
        self,
        child: Child,
        amount: AmountInput,
        description: str,
        when: Optional[datetime] = None,
    ) -> Transaction:
        """
        Record income (positive amount) or spending (negative amount).

        Args:
            child: Ledger owner
            amount: Signed amount
            description: What the money was for
            when: When it happened (defaults to now; naive values are
                  read at the configured UTC offset)

        Returns:
            The stored transaction with its running balance

        Raises:
            InvalidDescriptionError / InvalidAmountError: Bad input
            StorageError: The ledger could not be read or written
        """
        correlation_id = create_correlation_id()
        try:
            value, text = self._validator.validate_transaction(amount, description)
        except ValidationError as e:
            self._rejected("add_transaction", e, child)
            raise

        occurred_at = self._normalize_when(when)
        ledger = self._transactions.list_all(child)
        existing_ids = {tx.id for tx in ledger}

        transaction_id = Transaction.generate_id(value, self._now())
        while transaction_id in existing_ids:
            transaction_id = Transaction.generate_id(value, self._now())

        transaction = Transaction(
            id=transaction_id,
            child_id=child.id,
            amount=value,
            description=text,
            occurred_at=occurred_at,
        )
        updated = self._rewrite(
            child,
            ledger + [transaction],
            f"added {transaction.kind.value} {transaction.id}",
            correlation_id,
        )
        saved = next(tx for tx in updated if tx.id == transaction.id)

        self._audit_logger.log_transaction_added(
            child_id=child.id,
            transaction_id=saved.id,
            amount=saved.amount,
            balance=saved.balance,
            correlation_id=correlation_id,
        )
        self._after_change(child, correlation_id)
        return saved

    def delete_transactions(self, child: Child, transaction_ids: list[str]) -> DeletionResult:
        """
        Delete several transactions with one recompute and one rewrite.

        Unknown IDs are reported in not_found_ids. When none of the IDs
        exist, the ledger file is not touched.

        Raises:
            EmptySelectionError: No IDs given
        """
        correlation_id = create_correlation_id()
        try:
            ids = self._validator.validate_deletion(transaction_ids)
        except ValidationError as e:
            self._rejected("delete_transactions", e, child)
            raise

        ledger = self._transactions.list_all(child)
        present = {tx.id for tx in ledger}
        deleted = [tx_id for tx_id in ids if tx_id in present]
        not_found = [tx_id for tx_id in ids if tx_id not in present]
        result = DeletionResult(deleted_ids=deleted, not_found_ids=not_found)

        if not deleted:
            logger.info("delete_nothing_matched", child_id=child.id, not_found_ids=not_found)
            return result

        doomed = set(deleted)
        remaining = [tx for tx in ledger if tx.id not in doomed]
        action = "deleted 1 entry" if len(deleted) == 1 else f"deleted {len(deleted)} entries"
        self._rewrite(child, remaining, action, correlation_id)

        self._audit_logger.log_transactions_deleted(
            child_id=child.id,
            deleted_ids=deleted,
            not_found_ids=not_found,
            correlation_id=correlation_id,
        )
        self._after_change(child, correlation_id)
        return result

    def list_transactions(
        self,
        child: Child,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
        newest_first: bool = False,
    ) -> list[Transaction]:
        """
        Transactions with start <= occurred_at <= end, chronological
        unless newest_first is set.
        """
        start = self._normalize_when(start) if start is not None else None
        end = self._normalize_when(end) if end is not None else None
        transactions = [
            tx for tx in self._transactions.list_all(child)
            if (start is None or tx.occurred_at >= start)
            and (end is None or tx.occurred_at <= end)
        ]
        if newest_first:
            transactions.reverse()
        if limit is not None:
            transactions = transactions[:limit]
        return transactions

    def current_balance(self, child: Child) -> Decimal:
        return current_balance(recompute(self._transactions.list_all(child)))

    def balance_at(self, child: Child, moment: datetime) -> Decimal:
        return balance_at_moment(self._transactions.list_all(child), self._normalize_when(moment))

    def validate_balances(self, child: Child) -> list[str]:
        """Diagnostic: transactions whose stored balance is wrong."""
        errors = find_balance_errors(self._transactions.list_all(child))
        if errors:
            logger.warning("balance_errors_found", child_id=child.id, count=len(errors))
        return errors

    def export_csv(
        self,
        child: Child,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> LedgerExport:
        """
        Render the ledger as a spreadsheet-friendly CSV, oldest first.

        Columns: transaction_id (1, 2, ...), transaction_date (YYYY/MM/DD),
        description, amount. Nothing is written to disk.
        """
        transactions = self.list_transactions(child, start=start, end=end)
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(EXPORT_COLUMNS)
        for index, transaction in enumerate(transactions, start=1):
            writer.writerow([
                index,
                transaction.occurred_at.strftime("%Y/%m/%d"),
                transaction.description,
                format(transaction.amount, "f"),
            ])

        export = LedgerExport(
            child_name=child.name,
            filename=f"{child.directory}_transactions_{self._now():%Y%m%d}.csv",
            transaction_count=len(transactions),
            csv_content=buffer.getvalue(),
        )
        logger.info(
            "ledger_exported",
            child_id=child.id,
            transaction_count=export.transaction_count,
            filename=export.filename,
        )
        return export

    def export_to_path(
        self,
        child: Child,
        export_dir: Path,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Path:
        """
        Write export_csv() output into `export_dir` and return the file path.

        Raises:
            IoFailureError: The directory or file cannot be written
        """
        export = self.export_csv(child, start=start, end=end)
        path = Path(export_dir).expanduser() / export.filename
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(export.csv_content, encoding="utf-8")
        except OSError as e:
            error = IoFailureError(f"Failed to write export {path}: {e}")
            self._write_failed("export_ledger", error, child)
            raise error from e
        return path

    def issue_pending_allowances(
        self,
        child: Child,
        as_of: Optional[datetime] = None,
        lookback_days: int = 7,
    ) -> list[Transaction]:
        """
        Record scheduled allowances that have not been paid yet.

        Looks at paydays in the last `lookback_days` days (today included)
        and skips any day that already has an allowance transaction.
        All new entries are written with one recompute and one rewrite.
        """
        if self._schedules is None:
            return []
        schedule = self._schedules.get(child)
        if schedule is None or not schedule.is_active or schedule.amount <= 0:
            return []

        now = as_of or self._now()
        today = now.date()
        window_start = max(today - timedelta(days=lookback_days), schedule.created_at.date())
        paydays = list(iter_occurrences(schedule, window_start - timedelta(days=1), today))
        if not paydays:
            return []

        ledger = self._transactions.list_all(child)
        paid_days = {
            tx.occurred_at.date() for tx in ledger
            if tx.amount > 0 and "allowance" in tx.description.lower()
        }
        description = (
            "Weekly allowance" if schedule.interval_weeks == 1
            else f"Allowance (every {schedule.interval_weeks} weeks)"
        )

        existing_ids = {tx.id for tx in ledger}
        new_transactions = []
        for payday in paydays:
            if payday in paid_days:
                continue
            transaction_id = Transaction.generate_id(schedule.amount, self._now())
            while transaction_id in existing_ids:
                transaction_id = Transaction.generate_id(schedule.amount, self._now())
            existing_ids.add(transaction_id)
            new_transactions.append(Transaction(
                id=transaction_id,
                child_id=child.id,
                amount=schedule.amount,
                description=description,
                occurred_at=datetime.combine(payday, time(0, 0), tzinfo=now.tzinfo),
            ))

        if not new_transactions:
            return []

        correlation_id = create_correlation_id()
        count = len(new_transactions)
        updated = self._rewrite(
            child,
            ledger + new_transactions,
            "issued 1 allowance" if count == 1 else f"issued {count} allowances",
            correlation_id,
        )
        new_ids = {tx.id for tx in new_transactions}
        issued = [tx for tx in updated if tx.id in new_ids]
        self._audit_logger.log_allowance_issued(child.id, [tx.id for tx in issued], schedule.amount)
        self._after_change(child, correlation_id)
        return issued


class ProfileService(_Service):
    """
    Manages child profiles, their allowance schedules and which child
    is active.
    """

    def __init__(
        self,
        child_storage: ChildStorageInterface,
        schedule_storage: AllowanceScheduleStorageInterface,
        config_storage: GlobalConfigStorageInterface,
        versioning: Optional[GitVersioningManager] = None,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(audit_logger, clock)
        self._children = child_storage
        self._schedules = schedule_storage
        self._config = config_storage
        self._versioning = versioning
        self._validator = validator or LedgerValidator()

    def _unique_directory(self, name: str) -> str:
        base = Child.directory_name_for(name)
        taken = {child.directory for child in self._children.list_all()}
        directory = base
        suffix = 2
        while directory in taken or self._directory_in_use(directory):
            directory = f"{base}_{suffix}"
            suffix += 1
        return directory

    def _directory_in_use(self, directory: str) -> bool:
        return self._children.directory_path(directory).exists()

    def create_child(
        self,
        name: str,
        birthdate: date,
        as_of: Optional[datetime] = None,
    ) -> Child:
        """
        Create a profile and its data directory.

        The directory name is derived from the display name and never
        changes afterwards.

        Raises:
            InvalidChildError: Empty or overlong name, birthdate in the future
        """
        now = as_of or self._now()
        try:
            cleaned = self._validator.validate_child(name, birthdate, now.date())
        except ValidationError as e:
            self._rejected("create_child", e)
            raise

        child_id = Child.generate_id(now)
        existing_ids = {child.id for child in self._children.list_all()}
        moment = now
        while child_id in existing_ids:
            moment += timedelta(milliseconds=1)
            child_id = Child.generate_id(moment)

        child = Child(
            id=child_id,
            name=cleaned,
            birthdate=birthdate,
            directory=self._unique_directory(cleaned),
            created_at=now,
            updated_at=now,
        )
        if self._versioning is not None:
            self._versioning.ensure_initialized(self.directory_path(child))
        self._children.store(child, f"created profile {child.id}")
        self._audit_logger.log_child_created(child.id, child.name, child.directory)
        return child

    def rename_child(self, child_id: str, new_name: str) -> Child:
        """Change the display name. The data directory stays put."""
        try:
            cleaned = self._validator.validate_child_name(new_name)
        except ValidationError as e:
            self._rejected("rename_child", e)
            raise
        child = self._children.get(child_id)
        renamed = child.model_copy(update={
            "name": cleaned,
            "updated_at": max(self._now(), child.updated_at),
        })
        self._children.store(renamed, f"renamed to {cleaned}")
        self._audit_logger.log_child_renamed(child.id, child.name, cleaned)
        return renamed

    def directory_path(self, child: Child) -> Path:
        return self._children.directory_path(child.directory)

    def list_children(self) -> list[Child]:
        return self._children.list_all()

    def get_child(self, child_id: str) -> Child:
        return self._children.get(child_id)

    def get_active_child(self) -> Optional[Child]:
        """The child named in the global config, or None."""
        config = self._config.load()
        if not config.active_child_directory:
            return None
        try:
            return self._children.get_by_directory(config.active_child_directory)
        except NotFoundError:
            logger.warning("active_child_missing", directory=config.active_child_directory)
            return None

    def set_active_child(self, child_id: str) -> Child:
        """
        Raises:
            NotFoundError: Unknown child
        """
        child = self._children.get(child_id)
        config = self._config.load()
        self._config.store(config.model_copy(update={
            "active_child_directory": child.directory,
            "updated_at": max(self._now(), config.updated_at),
        }))
        self._audit_logger.log_active_child_changed(child.directory)
        return child

    def clear_active_child(self) -> None:
        config = self._config.load()
        self._config.store(config.model_copy(update={
            "active_child_directory": None,
            "updated_at": max(self._now(), config.updated_at),
        }))
        self._audit_logger.log_active_child_changed(None)

    def get_allowance_schedule(self, child: Child) -> Optional[AllowanceSchedule]:
        return self._schedules.get(child)

    def update_allowance_schedule(
        self,
        child: Child,
        amount: AmountInput,
        day_of_week: int,
        interval_weeks: int = 1,
        is_active: bool = True,
    ) -> AllowanceSchedule:
        """
        Create or replace the child's recurring allowance.

        Raises:
            InvalidScheduleInputError: Negative amount, bad day or interval
        """
        try:
            value = self._validator.validate_schedule(amount, day_of_week, interval_weeks)
        except ValidationError as e:
            self._rejected("update_allowance_schedule", e, child)
            raise

        now = self._now()
        existing = self._schedules.get(child)
        schedule = AllowanceSchedule(
            child_id=child.id,
            amount=value,
            day_of_week=day_of_week,
            interval_weeks=interval_weeks,
            is_active=is_active,
            created_at=existing.created_at if existing else now,
            updated_at=max(now, existing.updated_at) if existing else now,
        )
        self._schedules.store(child, schedule)
        self._audit_logger.log_schedule_updated(
            child_id=child.id,
            amount=value,
            day_of_week=day_of_week,
            interval_weeks=interval_weeks,
            is_active=is_active,
        )
        return schedule


class ParentalControlService(_Service):
    """
    Gatekeeper for parent-only actions.

    Every attempt is recorded in the child's control log, successful
    or not.
    """

    def __init__(
        self,
        attempt_storage: ControlAttemptStorageInterface,
        settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(audit_logger, clock)
        self._attempts = attempt_storage
        self._settings = settings or get_settings().app

    def validate_answer(self, child: Child, answer: str) -> ControlResult:
        """Compare the answer (trimmed, case-insensitive) and record the attempt."""
        expected = self._settings.parental_control_answer.strip().lower()
        success = (answer or "").strip().lower() == expected

        attempt = ControlAttempt(
            id=self._attempts.next_id(child),
            timestamp=self._now(),
            attempted_value=answer or "",
            success=success,
        )
        self._attempts.append(child, attempt)
        self._audit_logger.log_control_attempt(
            child_id=child.id,
            attempt_id=attempt.id,
            sanitized_value=attempt.sanitized_value,
            success=success,
        )

        if success:
            return ControlResult(success=True, message="Access granted")
        return ControlResult(success=False, message="Incorrect answer. Please try again.")

    def recent_attempts(self, child: Child, limit: int = 10) -> list[ControlAttempt]:
        return self._attempts.list_recent(child, limit)

    def stats(self, child: Child) -> ControlStats:
        attempts = self._attempts.list_recent(child)
        total = len(attempts)
        successful = sum(1 for attempt in attempts if attempt.success)
        return ControlStats(
            total_attempts=total,
            successful_attempts=successful,
            failed_attempts=total - successful,
            success_rate=(successful / total * 100.0) if total else 0.0,
        )


class AllowanceTracker:
    """
    Boundary facade used by a UI.

    Exposes the ledger and goal commands directly; profile, schedule and
    parental control operations are reachable through the service
    attributes.
    """

    def __init__(
        self,
        transactions: TransactionService,
        goals: GoalService,
        profiles: ProfileService,
        parental_control: ParentalControlService,
        versioning: Optional[GitVersioningManager] = None,
        data_dir: Optional[Path] = None,
    ):
        self.transactions = transactions
        self.goals = goals
        self.profiles = profiles
        self.parental_control = parental_control
        self.versioning = versioning
        self.data_dir = data_dir

    def add_transaction(
        self,
        child: Child,
        amount: AmountInput,
        description: str,
        when: Optional[datetime] = None,
    ) -> Transaction:
        return self.transactions.add_transaction(child, amount, description, when)

    def delete_transactions(self, child: Child, transaction_ids: list[str]) -> DeletionResult:
        return self.transactions.delete_transactions(child, transaction_ids)

    def list_transactions(self, child: Child, **filters) -> list[Transaction]:
        return self.transactions.list_transactions(child, **filters)

    def current_balance(self, child: Child) -> Decimal:
        return self.transactions.current_balance(child)

    def export_csv(
        self,
        child: Child,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> LedgerExport:
        return self.transactions.export_csv(child, start=start, end=end)

    def create_goal(self, child: Child, description: str, target_amount: AmountInput) -> GoalStatus:
        return self.goals.create_goal(child, description, target_amount)

    def cancel_goal(self, child: Child) -> Goal:
        return self.goals.cancel_goal(child)

    def get_current_goal_with_projection(self, child: Child) -> GoalStatus:
        return self.goals.get_current_goal_with_projection(child)

    def active_child(self) -> Optional[Child]:
        return self.profiles.get_active_child()

    def file_history(self, child: Child, filename: Optional[str] = None, limit: int = 20) -> list[str]:
        """Commit subjects for the child's directory, newest first."""
        if self.versioning is None:
            return []
        return self.versioning.history(self.profiles.directory_path(child), filename, limit)


def create_app_components(
    data_dir: Optional[Path] = None,
    clock: Optional[Clock] = None,
    versioning_enabled: Optional[bool] = None,
) -> AllowanceTracker:
    """
    Factory function to wire all application components.

    Args:
        data_dir: Base data directory (defaults to the configured one)
        clock: Source of "now" (defaults to local time at the configured offset)
        versioning_enabled: Override the configured git versioning switch

    Returns:
        The AllowanceTracker facade
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)
    base = Path(data_dir) if data_dir is not None else settings.storage.data_dir

    versioning_settings = settings.versioning
    if versioning_enabled is not None:
        versioning_settings = versioning_settings.model_copy(update={"enabled": versioning_enabled})
    versioning = GitVersioningManager(versioning_settings)

    client = CsvDataClient(base)
    audit_logger = AuditLogger()
    validator = LedgerValidator(settings.app)

    transaction_storage = CsvTransactionStorage(client, versioning)
    schedule_storage = CsvAllowanceScheduleStorage(client, versioning)
    goal_storage = CsvGoalStorage(client, versioning)

    goals = GoalService(
        goal_storage=goal_storage,
        transaction_storage=transaction_storage,
        schedule_storage=schedule_storage,
        validator=validator,
        audit_logger=audit_logger,
        clock=clock,
        horizon_days=settings.projection.horizon_days,
    )
    transactions = TransactionService(
        transaction_storage=transaction_storage,
        schedule_storage=schedule_storage,
        goal_service=goals,
        validator=validator,
        audit_logger=audit_logger,
        clock=clock,
    )
    profiles = ProfileService(
        child_storage=CsvChildStorage(client, versioning),
        schedule_storage=schedule_storage,
        config_storage=CsvGlobalConfigStorage(client),
        versioning=versioning,
        validator=validator,
        audit_logger=audit_logger,
        clock=clock,
    )
    parental_control = ParentalControlService(
        attempt_storage=CsvControlAttemptStorage(client, versioning),
        settings=settings.app,
        audit_logger=audit_logger,
        clock=clock,
    )

    logger.info("app_components_created", data_dir=str(base), versioning=versioning.enabled)
    return AllowanceTracker(
        transactions=transactions,
        goals=goals,
        profiles=profiles,
        parental_control=parental_control,
        versioning=versioning,
        data_dir=base,
    )
