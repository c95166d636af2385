"""Services package."""

from salesbook.services.notification import (
    LogNotifier,
    NotificationSeverity,
    Notifier,
)
from salesbook.services.storage import (
    DataImportError,
    RecordStoreInterface,
    SQLiteRecordStore,
    StorageError,
    StorageUnavailableError,
    SummaryMaintainer,
)

__all__ = [
    # Notifications
    "LogNotifier",
    "NotificationSeverity",
    "Notifier",
    # Storage services
    "DataImportError",
    "RecordStoreInterface",
    "SQLiteRecordStore",
    "StorageError",
    "StorageUnavailableError",
    "SummaryMaintainer",
]
