"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements plain CSV files per child directory.
"""

from allowance_tracker.services.storage.interface import (
    AllowanceScheduleStorageInterface,
    ChildStorageInterface,
    ControlAttemptStorageInterface,
    DuplicateError,
    GlobalConfigStorageInterface,
    GoalStorageInterface,
    IoFailureError,
    MalformedDateError,
    MalformedRecordError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)
from allowance_tracker.services.storage.csv_files import (
    CsvAllowanceScheduleStorage,
    CsvChildStorage,
    CsvControlAttemptStorage,
    CsvDataClient,
    CsvGlobalConfigStorage,
    CsvGoalStorage,
    CsvTransactionStorage,
)

__all__ = [
    # Interfaces
    "AllowanceScheduleStorageInterface",
    "ChildStorageInterface",
    "ControlAttemptStorageInterface",
    "GlobalConfigStorageInterface",
    "GoalStorageInterface",
    "TransactionStorageInterface",
    # Exceptions
    "DuplicateError",
    "IoFailureError",
    "MalformedDateError",
    "MalformedRecordError",
    "NotFoundError",
    "StorageError",
    # CSV implementation
    "CsvAllowanceScheduleStorage",
    "CsvChildStorage",
    "CsvControlAttemptStorage",
    "CsvDataClient",
    "CsvGlobalConfigStorage",
    "CsvGoalStorage",
    "CsvTransactionStorage",
]
