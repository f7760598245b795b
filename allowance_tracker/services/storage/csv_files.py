"""
CSV File Storage Implementation

DESIGN DECISION: Plain CSV files are the storage backend because:
1. Parents can open a child's ledger in any spreadsheet program
2. No database setup required
3. Line-based files diff cleanly, so git history stays readable

Layout:
    <data_dir>/global_config.csv
    <data_dir>/<child_dir>/child.csv
    <data_dir>/<child_dir>/transactions.csv
    <data_dir>/<child_dir>/allowance_schedule.csv
    <data_dir>/<child_dir>/goals.csv
    <data_dir>/<child_dir>/control_attempts.csv

Every write reads the whole file, applies the change in memory, writes the
full record set to a temporary file in the same directory, fsyncs it and
renames it over the original. A crash leaves either the old file or the new
one, never a torn one.

TRADEOFFS:
- Whole-file rewrites are O(n) per change (fine for a family ledger)
- No locking: one process per data directory
"""

import csv
import os
import tempfile
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import structlog

from allowance_tracker.config import get_settings
from allowance_tracker.models.family import (
    AllowanceSchedule,
    Child,
    ControlAttempt,
    GlobalConfig,
)
from allowance_tracker.models.goal import Goal
from allowance_tracker.models.ledger import Transaction
from allowance_tracker.services.storage.codec import (
    AllowanceScheduleCodec,
    ChildCodec,
    ControlAttemptCodec,
    GlobalConfigCodec,
    GoalCodec,
    RecordCodec,
    TransactionCodec,
)
from allowance_tracker.services.storage.interface import (
    AllowanceScheduleStorageInterface,
    ChildStorageInterface,
    ControlAttemptStorageInterface,
    DuplicateError,
    GlobalConfigStorageInterface,
    GoalStorageInterface,
    IoFailureError,
    MalformedRecordError,
    NotFoundError,
    TransactionStorageInterface,
)
from allowance_tracker.services.versioning import GitVersioningManager


logger = structlog.get_logger(__name__)


GLOBAL_CONFIG_FILE = "global_config.csv"
CHILD_FILE = "child.csv"
TRANSACTIONS_FILE = "transactions.csv"
SCHEDULE_FILE = "allowance_schedule.csv"
GOALS_FILE = "goals.csv"
CONTROL_ATTEMPTS_FILE = "control_attempts.csv"


class CsvDataClient:
    """
    Low-level CSV file access for one data directory.

    Handles paths, header checks and atomic rewrites. Knows nothing
    about the entities stored in the files.
    """

    def __init__(self, data_dir: Optional[Path] = None):
        self._data_dir = Path(data_dir) if data_dir is not None else get_settings().storage.data_dir

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def child_dir(self, directory: str) -> Path:
        return self._data_dir / directory

    def child_directories(self) -> list[Path]:
        """Subdirectories that hold a child profile, sorted by name."""
        if not self._data_dir.is_dir():
            return []
        return sorted(
            path for path in self._data_dir.iterdir()
            if path.is_dir() and (path / CHILD_FILE).is_file()
        )

    def read_records(self, path: Path, codec: RecordCodec) -> list:
        """
        Decode every row of a CSV file.

        A missing or empty file has no records.

        Raises:
            MalformedRecordError: Unexpected header or undecodable row (with path and line)
            IoFailureError: The file exists but cannot be read
        """
        if not path.exists():
            return []
        records = []
        try:
            with open(path, newline="", encoding="utf-8") as handle:
                reader = csv.DictReader(handle)
                if reader.fieldnames is None:
                    return []
                if tuple(reader.fieldnames) != codec.columns:
                    raise MalformedRecordError(
                        f"unexpected header {reader.fieldnames}, expected {list(codec.columns)}",
                        path=path,
                        line=1,
                    )
                for row in reader:
                    if None in row:
                        raise MalformedRecordError(
                            "row has more fields than the header", path=path, line=reader.line_num
                        )
                    try:
                        records.append(codec.decode(row))
                    except MalformedRecordError as e:
                        raise e.located(path, reader.line_num) from e
        except UnicodeDecodeError as e:
            raise MalformedRecordError(f"not valid UTF-8: {e}", path=path, line=0) from e
        except csv.Error as e:
            raise MalformedRecordError(f"CSV syntax error: {e}", path=path, line=0) from e
        except OSError as e:
            raise IoFailureError(f"Failed to read {path}: {e}") from e
        return records

    def write_records(self, path: Path, codec: RecordCodec, records: Iterable) -> None:
        """
        Atomically replace `path` with the encoded records.

        Raises:
            IoFailureError: If the temporary file cannot be written or renamed
        """
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                dir=path.parent,
                prefix=f".{path.name}.",
                suffix=".tmp",
                newline="",
                encoding="utf-8",
                delete=False,
            ) as handle:
                tmp_name = handle.name
                writer = csv.DictWriter(handle, fieldnames=codec.columns, lineterminator="\n")
                writer.writeheader()
                for record in records:
                    writer.writerow(codec.encode(record))
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise IoFailureError(f"Failed to write {path}: {e}") from e


class _CsvRepository:
    """Shared wiring for the per-entity repositories."""

    filename = ""

    def __init__(
        self,
        client: Optional[CsvDataClient] = None,
        versioning: Optional[GitVersioningManager] = None,
        codec: Optional[RecordCodec] = None,
    ):
        self._client = client or CsvDataClient()
        self._versioning = versioning
        self._codec = codec or self._default_codec()

    def _default_codec(self) -> RecordCodec:
        raise NotImplementedError

    def _path(self, child: Child) -> Path:
        return self._client.child_dir(child.directory) / self.filename

    def _read(self, child: Child) -> list:
        return self._client.read_records(self._path(child), self._codec)

    def _write(self, child: Child, records: Iterable, action: str) -> None:
        path = self._path(child)
        self._client.write_records(path, self._codec, records)
        logger.debug("file_written", path=str(path), action=action)
        if self._versioning is not None:
            self._versioning.commit_file(path.parent, self.filename, f"Update {self.filename}: {action}")


class CsvTransactionStorage(_CsvRepository, TransactionStorageInterface):
    """
    CSV implementation of the ledger.

    One row per transaction, stored in chronological order.
    """

    filename = TRANSACTIONS_FILE

    def _default_codec(self) -> RecordCodec:
        return TransactionCodec()

    def list_all(self, child: Child) -> list[Transaction]:
        transactions = self._read(child)
        return sorted(transactions, key=lambda tx: tx.occurred_at)

    def get(self, child: Child, transaction_id: str) -> Transaction:
        for transaction in self._read(child):
            if transaction.id == transaction_id:
                return transaction
        raise NotFoundError(f"Transaction not found: {transaction_id}")

    def store(self, child: Child, transaction: Transaction) -> None:
        transactions = self._read(child)
        for idx, existing in enumerate(transactions):
            if existing.id == transaction.id:
                transactions[idx] = transaction
                action = f"updated entry {transaction.id}"
                break
        else:
            transactions.append(transaction)
            action = f"added entry {transaction.id}"
        self._write(child, transactions, action)

    def replace_all(self, child: Child, transactions: list[Transaction], action: str) -> None:
        ids = [tx.id for tx in transactions]
        if len(ids) != len(set(ids)):
            raise DuplicateError(f"Duplicate transaction IDs in ledger for {child.directory}")
        self._write(child, transactions, action)


class CsvChildStorage(_CsvRepository, ChildStorageInterface):
    """
    CSV implementation of child profiles.

    Each child directory holds a one-row child.csv.
    """

    filename = CHILD_FILE

    def _default_codec(self) -> RecordCodec:
        return ChildCodec()

    def list_all(self) -> list[Child]:
        children = []
        for directory in self._client.child_directories():
            children.extend(self._client.read_records(directory / CHILD_FILE, self._codec))
        return children

    def get(self, child_id: str) -> Child:
        for child in self.list_all():
            if child.id == child_id:
                return child
        raise NotFoundError(f"Child not found: {child_id}")

    def get_by_directory(self, directory: str) -> Child:
        path = self._client.child_dir(directory) / CHILD_FILE
        records = self._client.read_records(path, self._codec)
        if not records:
            raise NotFoundError(f"No child profile in directory: {directory}")
        return records[0]

    def store(self, child: Child, action: str) -> None:
        self._write(child, [child], action)

    def directory_path(self, directory: str) -> Path:
        return self._client.child_dir(directory)


class CsvGoalStorage(_CsvRepository, GoalStorageInterface):
    """
    CSV implementation of goal history.

    Append-only: each transition adds a row with the same goal ID.
    """

    filename = GOALS_FILE

    def _default_codec(self) -> RecordCodec:
        return GoalCodec()

    def list_all(self, child: Child) -> list[Goal]:
        return self._read(child)

    def _latest_rows(self, child: Child) -> dict[str, Goal]:
        latest: dict[str, Goal] = {}
        for goal in self._read(child):
            latest[goal.id] = goal
        return latest

    def get(self, child: Child, goal_id: str) -> Goal:
        latest = self._latest_rows(child)
        if goal_id not in latest:
            raise NotFoundError(f"Goal not found: {goal_id}")
        return latest[goal_id]

    def current(self, child: Child) -> Optional[Goal]:
        active = [goal for goal in self._latest_rows(child).values() if goal.is_active]
        if not active:
            return None
        return max(active, key=lambda goal: goal.updated_at)

    def append(self, child: Child, goal: Goal) -> None:
        goals = self._read(child)
        goals.append(goal)
        self._write(child, goals, f"goal {goal.id} {goal.state.value}")


class CsvAllowanceScheduleStorage(_CsvRepository, AllowanceScheduleStorageInterface):
    filename = SCHEDULE_FILE

    def _default_codec(self) -> RecordCodec:
        return AllowanceScheduleCodec()

    def get(self, child: Child) -> Optional[AllowanceSchedule]:
        schedules = self._read(child)
        return schedules[-1] if schedules else None

    def store(self, child: Child, schedule: AllowanceSchedule) -> None:
        self._write(
            child,
            [schedule],
            f"allowance {schedule.amount} every {schedule.interval_weeks} week(s) on {schedule.day_name}",
        )


class CsvControlAttemptStorage(_CsvRepository, ControlAttemptStorageInterface):
    """CSV implementation of the parental control audit trail."""

    filename = CONTROL_ATTEMPTS_FILE

    def _default_codec(self) -> RecordCodec:
        return ControlAttemptCodec()

    def list_recent(self, child: Child, limit: Optional[int] = None) -> list[ControlAttempt]:
        attempts = sorted(self._read(child), key=lambda a: a.id, reverse=True)
        if limit is not None:
            attempts = attempts[:limit]
        return attempts

    def append(self, child: Child, attempt: ControlAttempt) -> None:
        attempts = self._read(child)
        if any(existing.id == attempt.id for existing in attempts):
            raise DuplicateError(f"Control attempt already recorded: {attempt.id}")
        attempts.append(attempt)
        outcome = "success" if attempt.success else "failure"
        self._write(child, attempts, f"attempt {attempt.id} ({outcome})")

    def next_id(self, child: Child) -> int:
        attempts = self._read(child)
        return max((a.id for a in attempts), default=0) + 1


class CsvGlobalConfigStorage(GlobalConfigStorageInterface):
    """
    CSV implementation of the global config record.

    Lives at the root of the data directory and is not versioned.
    """

    def __init__(
        self,
        client: Optional[CsvDataClient] = None,
        codec: Optional[GlobalConfigCodec] = None,
    ):
        self._client = client or CsvDataClient()
        self._codec = codec or GlobalConfigCodec()

    @property
    def path(self) -> Path:
        return self._client.data_dir / GLOBAL_CONFIG_FILE

    def load(self) -> GlobalConfig:
        records = self._client.read_records(self.path, self._codec)
        if records:
            return records[0]
        now = self._now()
        return GlobalConfig(created_at=now, updated_at=now)

    def store(self, config: GlobalConfig) -> None:
        self._client.write_records(self.path, self._codec, [config])
        logger.debug("file_written", path=str(self.path), action="global config")

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc).replace(microsecond=0)
