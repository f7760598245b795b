"""
Abstract Storage Interface

DESIGN DECISION: We define one abstract interface per entity.
This allows us to:
1. Keep business logic decoupled from the file layout
2. Use in-memory fakes in tests where the disk is irrelevant
3. Give every backing file exactly one owner

The interfaces are intentionally small - we're not building an ORM.
Every call re-reads its file; there is no cache to invalidate.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from allowance_tracker.models.family import (
    AllowanceSchedule,
    Child,
    ControlAttempt,
    GlobalConfig,
)
from allowance_tracker.models.goal import Goal
from allowance_tracker.models.ledger import Transaction


class TransactionStorageInterface(ABC):
    """
    Abstract interface for a child's ledger.

    The ledger is rewritten as a whole after every balance recalculation.
    """

    @abstractmethod
    def list_all(self, child: Child) -> list[Transaction]:
        """
        Load the full ledger in chronological order.

        Raises:
            MalformedRecordError: If any row cannot be decoded
            IoFailureError: If the file cannot be read
        """
        pass

    @abstractmethod
    def get(self, child: Child, transaction_id: str) -> Transaction:
        """
        Retrieve a transaction by its ID.

        Raises:
            NotFoundError: If no transaction has this ID
        """
        pass

    @abstractmethod
    def store(self, child: Child, transaction: Transaction) -> None:
        """
        Insert a transaction, or replace the one with the same ID.

        Stored balances are not recalculated; use replace_all after
        running the balance engine.
        """
        pass

    @abstractmethod
    def replace_all(
        self,
        child: Child,
        transactions: list[Transaction],
        action: str,
    ) -> None:
        """
        Rewrite the ledger with exactly these transactions.

        Args:
            child: Owner of the ledger
            transactions: Full recomputed sequence
            action: Short description used in the version history
                    (e.g. "deleted 3 entries")

        Raises:
            IoFailureError: If the file cannot be written
        """
        pass


class ChildStorageInterface(ABC):
    """Abstract interface for child profiles."""

    @abstractmethod
    def list_all(self) -> list[Child]:
        """All child profiles, ordered by directory name."""
        pass

    @abstractmethod
    def get(self, child_id: str) -> Child:
        """
        Retrieve a child by ID.

        Raises:
            NotFoundError: If no profile has this ID
        """
        pass

    @abstractmethod
    def get_by_directory(self, directory: str) -> Child:
        """
        Retrieve the child stored in `directory`.

        Raises:
            NotFoundError: If the directory holds no profile
        """
        pass

    @abstractmethod
    def store(self, child: Child, action: str) -> None:
        """Write the profile, creating the child's directory if needed."""
        pass

    @abstractmethod
    def directory_path(self, directory: str) -> Path:
        """Absolute path of a child data directory (which may not exist yet)."""
        pass


class GoalStorageInterface(ABC):
    """
    Abstract interface for goal history.

    Goal history is append-only - rows are never deleted or edited.
    """

    @abstractmethod
    def list_all(self, child: Child) -> list[Goal]:
        """Every history row, in file order."""
        pass

    @abstractmethod
    def get(self, child: Child, goal_id: str) -> Goal:
        """
        Latest row for a goal ID.

        Raises:
            NotFoundError: If the goal ID never appears
        """
        pass

    @abstractmethod
    def current(self, child: Child) -> Optional[Goal]:
        """The goal whose latest row is Active, or None."""
        pass

    @abstractmethod
    def append(self, child: Child, goal: Goal) -> None:
        """Append one history row."""
        pass


class AllowanceScheduleStorageInterface(ABC):
    """Abstract interface for a child's recurring allowance."""

    @abstractmethod
    def get(self, child: Child) -> Optional[AllowanceSchedule]:
        """The configured schedule, or None when none was ever saved."""
        pass

    @abstractmethod
    def store(self, child: Child, schedule: AllowanceSchedule) -> None:
        pass


class ControlAttemptStorageInterface(ABC):
    """
    Abstract interface for the parental control audit trail.

    Attempts are append-only - we never delete or modify them.
    """

    @abstractmethod
    def list_recent(self, child: Child, limit: Optional[int] = None) -> list[ControlAttempt]:
        """
        Recorded attempts, newest first.

        Args:
            child: Owner of the log
            limit: Maximum number of attempts to return (None for all)
        """
        pass

    @abstractmethod
    def append(self, child: Child, attempt: ControlAttempt) -> None:
        pass

    @abstractmethod
    def next_id(self, child: Child) -> int:
        """The ID the next attempt should use (1 for an empty log)."""
        pass


class GlobalConfigStorageInterface(ABC):
    """Abstract interface for the process-wide configuration record."""

    @abstractmethod
    def load(self) -> GlobalConfig:
        """The stored config, or defaults when the file does not exist."""
        pass

    @abstractmethod
    def store(self, config: GlobalConfig) -> None:
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class IoFailureError(StorageError):
    """The filesystem refused a read or write (disk full, permissions)."""
    pass


class MalformedRecordError(StorageError):
    """
    A stored row could not be decoded.

    The codec raises it without a location; the repository reading the
    file attaches the path and line before it reaches the caller.
    """

    def __init__(
        self,
        reason: str,
        path: Optional[Path] = None,
        line: Optional[int] = None,
    ):
        self.reason = reason
        self.path = path
        self.line = line
        if path is not None:
            super().__init__(f"{path}, line {line}: {reason}")
        else:
            super().__init__(reason)

    def located(self, path: Path, line: int) -> "MalformedRecordError":
        """Copy of this error pointing at a file and line."""
        return type(self)(self.reason, path=path, line=line)


class MalformedDateError(MalformedRecordError):
    """A timestamp matched none of the accepted formats."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass
