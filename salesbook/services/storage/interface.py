"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the SQLite file for another embedded engine later
2. Keep reports and PIN logic decoupled from the storage implementation
3. Substitute failing stores in tests

The interface is intentionally small. Transactions are append-only:
there is no update or delete.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Mapping, Optional, Union

from salesbook.models.security import PinRecord
from salesbook.models.transaction import (
    AppSettingsRecord,
    DailySummary,
    NewExpense,
    NewSale,
    StoreSnapshot,
    Transaction,
    UserPreferences,
)


DateBound = Union[datetime, date, str]
NewTransactionInput = Union[NewSale, NewExpense, Mapping[str, Any]]
SnapshotInput = Union[str, bytes, Mapping[str, Any], StoreSnapshot]


class RecordStoreInterface(ABC):
    """
    Abstract interface for the local record store.

    Any storage implementation must implement these methods. Every
    operation commits before returning; reads always observe the last
    committed state.
    """

    @abstractmethod
    async def add_transaction(self, data: NewTransactionInput) -> str:
        """
        Persist a new transaction and fold it into its daily summary.

        The insert and the summary update happen atomically: either both
        are committed or neither is.

        Args:
            data: A NewSale / NewExpense, or a mapping parsed into one

        Returns:
            The id assigned to the transaction

        Raises:
            TransactionValidationError: If the payload is invalid (nothing written)
            StorageUnavailableError: If the database cannot be opened
            StorageError: If the write fails (nothing written)
        """
        pass

    @abstractmethod
    async def get_transactions(self, date_key: Optional[str] = None) -> list[Transaction]:
        """
        List transactions, newest first.

        Args:
            date_key: Restrict to one YYYY-MM-DD day

        Returns:
            Matching transactions ordered by datetime descending
        """
        pass

    @abstractmethod
    async def get_transactions_by_date_range(
        self,
        start: DateBound,
        end: DateBound,
    ) -> list[Transaction]:
        """
        List transactions with start <= datetime <= end, newest first.

        A plain date as `end` covers that whole day.
        """
        pass

    @abstractmethod
    async def get_daily_summary(self, date_key: str) -> DailySummary:
        """
        Get the summary for one day.

        Returns a zero-valued summary when the day has no transactions.
        """
        pass

    @abstractmethod
    async def get_all_summaries(self) -> list[DailySummary]:
        """All stored daily summaries, newest day first."""
        pass

    @abstractmethod
    async def get_pin_record(self) -> Optional[PinRecord]:
        """Get the singleton PIN record, or None when never created."""
        pass

    @abstractmethod
    async def save_pin_record(self, record: PinRecord) -> None:
        """Create or replace the singleton PIN record."""
        pass

    @abstractmethod
    async def get_user_preferences(self) -> UserPreferences:
        """Get preferences, or defaults when none are stored."""
        pass

    @abstractmethod
    async def save_user_preferences(self, prefs: UserPreferences) -> None:
        """Create or replace the preferences record."""
        pass

    @abstractmethod
    async def get_app_settings(self) -> AppSettingsRecord:
        """Get the passive application flags, or defaults."""
        pass

    @abstractmethod
    async def save_app_settings(self, record: AppSettingsRecord) -> None:
        """Create or replace the application flags."""
        pass

    @abstractmethod
    async def export_all(self) -> str:
        """
        Serialize transactions, summaries and preferences to JSON.

        Returns:
            The snapshot document, pretty-printed with 2-space indent
        """
        pass

    @abstractmethod
    async def import_all(
        self,
        snapshot: SnapshotInput,
        rebuild_summaries: bool = False,
    ) -> StoreSnapshot:
        """
        Replace the store contents with a snapshot.

        The snapshot is fully validated before anything is touched, and
        the clear-then-insert runs in one transaction. With
        rebuild_summaries the imported summaries are discarded and
        recomputed from the imported transactions.

        Returns:
            The snapshot that was applied

        Raises:
            DataImportError: If the snapshot is malformed or the write fails
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying database resources."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageUnavailableError(StorageError):
    """The database could not be opened."""
    pass


class DataImportError(StorageError):
    """A snapshot could not be imported; the store is unchanged."""
    pass
