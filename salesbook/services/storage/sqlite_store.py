"""
SQLite Storage Implementation

DESIGN DECISION: An embedded SQLite file is the only backend because:
1. The app is single-user and offline-first
2. No server or account setup is needed
3. SQLite transactions give us atomic transaction + summary writes
4. The whole store can be exported to a single JSON document

The store is opened lazily on first use. Every public operation opens
its own session, commits before returning, and closes the session, so
reads always see the last committed state.

The implementation follows the abstract interface, so reports and PIN
logic never touch SQLAlchemy directly.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime, time
from typing import Optional
from uuid import uuid4

import structlog
from pydantic import ValidationError
from sqlalchemy import Engine, create_engine, delete, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from salesbook.config import StorageSettings, get_settings
from salesbook.models.security import PinRecord
from salesbook.models.transaction import (
    AppSettingsRecord,
    DailySummary,
    Expense,
    NewExpense,
    NewSale,
    Sale,
    StoreSnapshot,
    Transaction,
    UserPreferences,
    as_utc,
    date_key_for,
)
from salesbook.services.storage.interface import (
    DataImportError,
    DateBound,
    NewTransactionInput,
    RecordStoreInterface,
    SnapshotInput,
    StorageError,
    StorageUnavailableError,
)
from salesbook.services.storage.migrations import run_migrations
from salesbook.services.storage.summary import SummaryMaintainer
from salesbook.services.storage.tables import (
    PIN_ROW_ID,
    PinSettingsRow,
    PreferencesRow,
    SettingsRow,
    SummaryRow,
    TransactionRow,
)
from salesbook.validation.validator import TransactionValidator


logger = structlog.get_logger(__name__)

APP_SETTINGS_ID = "app"


def _to_db_time(value: datetime) -> datetime:
    """Aware datetime -> naive UTC for storage."""
    return as_utc(value).replace(tzinfo=None)


def _from_db_time(value: Optional[datetime]) -> Optional[datetime]:
    return as_utc(value) if value is not None else None


def _parse_bound(value: DateBound) -> datetime | date:
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    return value


def _lower_bound(value: DateBound) -> datetime:
    bound = _parse_bound(value)
    if isinstance(bound, datetime):
        return _to_db_time(bound)
    return datetime.combine(bound, time.min)


def _upper_bound(value: DateBound) -> datetime:
    bound = _parse_bound(value)
    if isinstance(bound, datetime):
        return _to_db_time(bound)
    # A bare date covers the whole day
    return datetime.combine(bound, time.max)


class SQLiteRecordStore(RecordStoreInterface):
    """
    SQLite implementation of the record store.

    Transactions and their daily summaries are written in the same
    SQLAlchemy session. Timestamps are stored as naive UTC.
    """

    def __init__(
        self,
        settings: Optional[StorageSettings] = None,
        summary_maintainer: Optional[SummaryMaintainer] = None,
        validator: Optional[TransactionValidator] = None,
    ):
        self._settings = settings or get_settings().storage
        self._summaries = summary_maintainer or SummaryMaintainer()
        self._validator = validator or TransactionValidator()
        self._engine: Optional[Engine] = None
        self._session_maker: Optional[sessionmaker[Session]] = None
        self._schema_version = 0

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def schema_version(self) -> int:
        return self._schema_version

    # =========================================================================
    # CONNECTION
    # =========================================================================

    def _connect(self) -> Engine:
        engine = create_engine(self._settings.database_url, echo=self._settings.echo)
        try:
            self._schema_version = run_migrations(engine)
        except SQLAlchemyError:
            engine.dispose()
            raise
        return engine

    def _ensure_open(self) -> sessionmaker[Session]:
        """Open the database on first use, retrying transient failures."""
        if self._session_maker is not None:
            return self._session_maker

        retrying = Retrying(
            stop=stop_after_attempt(self._settings.connect_attempts),
            wait=wait_exponential(
                multiplier=self._settings.connect_backoff_seconds,
                max=10,
            ),
            retry=retry_if_exception_type(OperationalError),
            reraise=True,
        )
        try:
            engine = retrying(self._connect)
        except (RetryError, SQLAlchemyError) as e:
            logger.error(
                "store_open_failed",
                database=self._settings.database_path,
                error=str(e),
            )
            raise StorageUnavailableError(
                f"Could not open database {self._settings.database_path}: {e}"
            ) from e

        self._engine = engine
        self._session_maker = sessionmaker(bind=engine, expire_on_commit=False, class_=Session)
        logger.info(
            "store_opened",
            database=self._settings.database_path,
            schema_version=self._schema_version,
        )
        return self._session_maker

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""
        session = self._ensure_open()()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    async def open(self) -> int:
        """
        Open the database eagerly.

        Returns:
            The schema version after migrations
        """
        self._ensure_open()
        return self._schema_version

    async def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_maker = None

    # =========================================================================
    # ROW CONVERSION
    # =========================================================================

    def _transaction_to_row(self, tx: Transaction) -> TransactionRow:
        row = TransactionRow(
            id=tx.id,
            type=tx.type,
            amount=tx.amount,
            occurred_at=_to_db_time(tx.occurred_at),
            date_key=tx.date_key,
            category=tx.category,
        )
        if isinstance(tx, Sale):
            row.customer = tx.customer
            row.notes = tx.notes
        else:
            row.vendor = tx.vendor
            row.description = tx.description
            row.payment_method = tx.payment_method.value
        return row

    def _row_to_transaction(self, row: TransactionRow) -> Transaction:
        common = dict(
            id=row.id,
            amount=row.amount,
            occurred_at=_from_db_time(row.occurred_at),
            date_key=row.date_key,
            category=row.category,
        )
        if row.type == "sale":
            return Sale(customer=row.customer, notes=row.notes, **common)
        return Expense(
            vendor=row.vendor,
            description=row.description,
            payment_method=row.payment_method or "cash",
            **common,
        )

    @staticmethod
    def _row_to_summary(row: SummaryRow) -> DailySummary:
        return DailySummary(
            date_key=row.date_key,
            summary_date=row.summary_date,
            total_sales=row.total_sales,
            total_expenses=row.total_expenses,
            net_profit=row.net_profit,
            transaction_count=row.transaction_count,
        )

    @staticmethod
    def _summary_to_row(summary: DailySummary) -> SummaryRow:
        return SummaryRow(
            date_key=summary.date_key,
            summary_date=summary.summary_date,
            total_sales=summary.total_sales,
            total_expenses=summary.total_expenses,
            net_profit=summary.net_profit,
            transaction_count=summary.transaction_count,
        )

    @staticmethod
    def _row_to_preferences(row: PreferencesRow) -> UserPreferences:
        return UserPreferences(
            id=row.id,
            theme=row.theme,
            currency=row.currency,
            business_name=row.business_name,
            business_type=row.business_type,
            default_categories=list(row.default_categories or []),
            notification_enabled=row.notification_enabled,
        )

    @staticmethod
    def _preferences_to_row(prefs: UserPreferences) -> PreferencesRow:
        return PreferencesRow(
            id=prefs.id,
            theme=prefs.theme.value,
            currency=prefs.currency,
            business_name=prefs.business_name,
            business_type=prefs.business_type,
            default_categories=list(prefs.default_categories),
            notification_enabled=prefs.notification_enabled,
        )

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def _stamp(self, payload: NewSale | NewExpense) -> Transaction:
        """Assign id and date key to a validated payload."""
        data = payload.model_dump()
        data["id"] = str(uuid4())
        data["date_key"] = date_key_for(payload.occurred_at)
        if isinstance(payload, NewSale):
            return Sale(**data)
        return Expense(**data)

    async def add_transaction(self, data: NewTransactionInput) -> str:
        """Validate, insert and fold into the daily summary, atomically."""
        # Raises TransactionValidationError before anything is written
        payload = self._validator.parse_or_raise(data)
        tx = self._stamp(payload)

        try:
            with self.session_scope() as session:
                session.add(self._transaction_to_row(tx))
                session.flush()
                self._summaries.apply(session, tx.date_key, tx.transaction_type, tx.amount)
        except StorageError:
            raise
        except Exception as e:
            logger.error(
                "transaction_save_failed",
                transaction_type=tx.type,
                date_key=tx.date_key,
                error=str(e),
            )
            raise StorageError(f"Failed to save transaction: {e}") from e

        logger.info(
            "transaction_saved",
            transaction_id=tx.id,
            transaction_type=tx.type,
            date_key=tx.date_key,
        )
        return tx.id

    async def get_transactions(self, date_key: Optional[str] = None) -> list[Transaction]:
        stmt = select(TransactionRow).order_by(TransactionRow.occurred_at.desc())
        if date_key is not None:
            stmt = stmt.where(TransactionRow.date_key == date_key)
        try:
            with self.session_scope() as session:
                return [self._row_to_transaction(row) for row in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list transactions: {e}") from e

    async def get_transactions_by_date_range(
        self,
        start: DateBound,
        end: DateBound,
    ) -> list[Transaction]:
        try:
            lower = _lower_bound(start)
            upper = _upper_bound(end)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid date range {start!r} - {end!r}: {e}") from e

        stmt = (
            select(TransactionRow)
            .where(TransactionRow.occurred_at >= lower)
            .where(TransactionRow.occurred_at <= upper)
            .order_by(TransactionRow.occurred_at.desc())
        )
        try:
            with self.session_scope() as session:
                return [self._row_to_transaction(row) for row in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list transactions by date range: {e}") from e

    # =========================================================================
    # SUMMARIES
    # =========================================================================

    async def get_daily_summary(self, date_key: str) -> DailySummary:
        try:
            with self.session_scope() as session:
                row = session.get(SummaryRow, date_key)
                if row is None:
                    return DailySummary.empty(date_key)
                return self._row_to_summary(row)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get daily summary: {e}") from e

    async def get_all_summaries(self) -> list[DailySummary]:
        stmt = select(SummaryRow).order_by(SummaryRow.date_key.desc())
        try:
            with self.session_scope() as session:
                return [self._row_to_summary(row) for row in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list summaries: {e}") from e

    async def rebuild_summaries(self) -> int:
        """Recompute all summaries from the transaction log."""
        try:
            with self.session_scope() as session:
                return self._summaries.rebuild(session)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to rebuild summaries: {e}") from e

    # =========================================================================
    # PIN
    # =========================================================================

    async def get_pin_record(self) -> Optional[PinRecord]:
        try:
            with self.session_scope() as session:
                row = session.get(PinSettingsRow, PIN_ROW_ID)
                if row is None:
                    return None
                return PinRecord(
                    pin=row.pin,
                    is_enabled=row.is_enabled,
                    created_at=_from_db_time(row.created_at),
                    last_modified=_from_db_time(row.last_modified),
                    failed_attempts=row.failed_attempts,
                    last_attempt=_from_db_time(row.last_attempt),
                    is_locked=row.is_locked,
                    lock_until=_from_db_time(row.lock_until),
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get PIN record: {e}") from e

    async def save_pin_record(self, record: PinRecord) -> None:
        row = PinSettingsRow(
            id=PIN_ROW_ID,
            pin=record.pin,
            is_enabled=record.is_enabled,
            created_at=_to_db_time(record.created_at),
            last_modified=_to_db_time(record.last_modified),
            failed_attempts=record.failed_attempts,
            last_attempt=_to_db_time(record.last_attempt) if record.last_attempt else None,
            is_locked=record.is_locked,
            lock_until=_to_db_time(record.lock_until) if record.lock_until else None,
        )
        try:
            with self.session_scope() as session:
                session.merge(row)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save PIN record: {e}") from e

    # =========================================================================
    # PREFERENCES & SETTINGS
    # =========================================================================

    async def get_user_preferences(self) -> UserPreferences:
        try:
            with self.session_scope() as session:
                row = session.get(PreferencesRow, "default")
                if row is None:
                    return UserPreferences()
                return self._row_to_preferences(row)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get preferences: {e}") from e

    async def save_user_preferences(self, prefs: UserPreferences) -> None:
        try:
            with self.session_scope() as session:
                session.merge(self._preferences_to_row(prefs))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save preferences: {e}") from e

    async def get_app_settings(self) -> AppSettingsRecord:
        try:
            with self.session_scope() as session:
                row = session.get(SettingsRow, APP_SETTINGS_ID)
                if row is None:
                    return AppSettingsRecord()
                return AppSettingsRecord.model_validate(row.data)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get app settings: {e}") from e

    async def save_app_settings(self, record: AppSettingsRecord) -> None:
        row = SettingsRow(
            id=record.id,
            data=record.model_dump(mode="json", by_alias=True),
        )
        try:
            with self.session_scope() as session:
                session.merge(row)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save app settings: {e}") from e

    # =========================================================================
    # EXPORT / IMPORT
    # =========================================================================

    async def export_all(self) -> str:
        try:
            with self.session_scope() as session:
                transactions = [
                    self._row_to_transaction(row)
                    for row in session.scalars(
                        select(TransactionRow).order_by(TransactionRow.occurred_at.desc())
                    )
                ]
                summaries = [
                    self._row_to_summary(row)
                    for row in session.scalars(select(SummaryRow).order_by(SummaryRow.date_key))
                ]
                preferences = [
                    self._row_to_preferences(row)
                    for row in session.scalars(select(PreferencesRow))
                ]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to export data: {e}") from e

        snapshot = StoreSnapshot(
            transactions=transactions,
            summaries=summaries,
            preferences=preferences,
        )
        logger.info(
            "store_exported",
            transactions=len(transactions),
            summaries=len(summaries),
        )
        return snapshot.to_json()

    @staticmethod
    def _parse_snapshot(snapshot: SnapshotInput) -> StoreSnapshot:
        if isinstance(snapshot, StoreSnapshot):
            return snapshot
        try:
            if isinstance(snapshot, (str, bytes)):
                return StoreSnapshot.model_validate_json(snapshot)
            return StoreSnapshot.model_validate(snapshot)
        except ValidationError as e:
            raise DataImportError(f"Invalid snapshot: {e}") from e

    async def import_all(
        self,
        snapshot: SnapshotInput,
        rebuild_summaries: bool = False,
    ) -> StoreSnapshot:
        """
        Replace transactions, summaries and preferences with the snapshot.

        Args:
            snapshot: JSON text/bytes, a mapping, or a parsed StoreSnapshot
            rebuild_summaries: Recompute summaries from the imported
                transactions instead of taking them from the snapshot
        """
        parsed = self._parse_snapshot(snapshot)

        try:
            with self.session_scope() as session:
                session.execute(delete(TransactionRow))
                session.execute(delete(SummaryRow))
                session.execute(delete(PreferencesRow))
                session.flush()

                session.add_all(self._transaction_to_row(tx) for tx in parsed.transactions)
                session.flush()
                if rebuild_summaries:
                    self._summaries.rebuild(session)
                else:
                    session.add_all(self._summary_to_row(s) for s in parsed.summaries)
                session.add_all(self._preferences_to_row(p) for p in parsed.preferences)
        except StorageUnavailableError:
            raise
        except Exception as e:
            logger.error("store_import_failed", error=str(e))
            raise DataImportError(f"Failed to import snapshot: {e}") from e

        logger.info(
            "store_imported",
            transactions=len(parsed.transactions),
            summaries=len(parsed.summaries),
            preferences=len(parsed.preferences),
        )
        return parsed
