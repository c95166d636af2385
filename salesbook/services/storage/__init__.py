"""
Storage Services Package

Provides the abstract record store interface and its SQLite implementation.
"""

from salesbook.services.storage.interface import (
    DataImportError,
    RecordStoreInterface,
    StorageError,
    StorageUnavailableError,
)
from salesbook.services.storage.migrations import LATEST_VERSION, run_migrations
from salesbook.services.storage.sqlite_store import SQLiteRecordStore
from salesbook.services.storage.summary import SummaryMaintainer

__all__ = [
    # Interface
    "RecordStoreInterface",
    # Exceptions
    "DataImportError",
    "StorageError",
    "StorageUnavailableError",
    # SQLite implementation
    "LATEST_VERSION",
    "SQLiteRecordStore",
    "SummaryMaintainer",
    "run_migrations",
]
