"""Services package."""

from allowance_tracker.services.storage import (
    CsvAllowanceScheduleStorage,
    CsvChildStorage,
    CsvControlAttemptStorage,
    CsvDataClient,
    CsvGlobalConfigStorage,
    CsvGoalStorage,
    CsvTransactionStorage,
    DuplicateError,
    IoFailureError,
    MalformedDateError,
    MalformedRecordError,
    NotFoundError,
    StorageError,
)
from allowance_tracker.services.versioning import (
    GitVersioningManager,
    VersioningError,
)

__all__ = [
    # Storage services
    "CsvAllowanceScheduleStorage",
    "CsvChildStorage",
    "CsvControlAttemptStorage",
    "CsvDataClient",
    "CsvGlobalConfigStorage",
    "CsvGoalStorage",
    "CsvTransactionStorage",
    "DuplicateError",
    "IoFailureError",
    "MalformedDateError",
    "MalformedRecordError",
    "NotFoundError",
    "StorageError",
    # Versioning
    "GitVersioningManager",
    "VersioningError",
]
