"""
Main Orchestrator for SalesBook

This module ties together all the components and defines the
end-to-end flows for:
1. Recording (payload → validate → store + summary → audit → notify)
2. Unlocking and changing the PIN
3. Backup (export / import of the whole store)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the store without passing validation
- Write failures are always surfaced to the caller, never swallowed
- Every step is audited

Components are constructed explicitly and passed in; there is no
module-level store or notifier.
"""

from datetime import datetime
from typing import Any, Mapping, NamedTuple, Optional, Union
from uuid import UUID

import structlog

from salesbook.audit import AuditLogger, create_correlation_id
from salesbook.config import AppSettings, Settings, get_settings
from salesbook.models.security import AuthSession, PinRecord, PinVerificationResult
from salesbook.models.transaction import (
    NewExpense,
    NewSale,
    PaymentMethod,
    StoreSnapshot,
    Transaction,
    TransactionType,
    ValidationResult,
    as_utc,
    date_key_for,
    utc_now,
)
from salesbook.queries import ReportEngine
from salesbook.queries.aggregation import format_currency
from salesbook.security import PinManager, PinPolicyError, validate_pin
from salesbook.services.notification import LogNotifier, Notifier
from salesbook.services.storage import (
    DataImportError,
    RecordStoreInterface,
    SQLiteRecordStore,
    StorageError,
)
from salesbook.services.storage.interface import SnapshotInput
from salesbook.validation import TransactionValidationError, TransactionValidator


logger = structlog.get_logger(__name__)


class TransactionFlow:
    """
    Orchestrates recording a sale or an expense.

    Flow:
    1. Validate → Two-stage validation (errors block, warnings don't)
    2. Save → Store inserts the transaction and updates its daily summary atomically
    3. Audit → Record what happened
    4. Notify → Tell the user

    Failures are reported to the user and then re-raised.
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        notifier: Notifier,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._store = store
        self._notifier = notifier
        self._settings = settings or AppSettings()
        self._validator = validator or TransactionValidator(self._settings)
        self._audit_logger = audit_logger

    async def record(
        self,
        payload: Union[NewSale, NewExpense, Mapping[str, Any]],
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[str, ValidationResult]:
        """
        Validate and store a transaction.

        Returns:
            (transaction_id, validation_result); the result carries any
            non-blocking warnings

        Raises:
            TransactionValidationError: If the payload is invalid
            StorageError: If the store could not save it
        """
        correlation_id = correlation_id or create_correlation_id()

        # Step 1: Validate
        model, result = self._validator.validate(payload, now=now)
        if model is None:
            if self._audit_logger:
                await self._audit_logger.log_transaction_rejected(
                    issues=result.error_messages,
                    correlation_id=correlation_id,
                )
            self._notifier.error(
                self._validator.get_user_friendly_summary(result),
                "Validation Error",
            )
            raise TransactionValidationError(result)

        if result.warnings:
            logger.info("transaction_warnings", warnings=result.warnings)

        label = "Sale" if model.transaction_type is TransactionType.SALE else "Expense"

        # Step 2: Save
        try:
            transaction_id = await self._store.add_transaction(model)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_save_failed(str(e), correlation_id=correlation_id)
            self._notifier.error(
                f"Failed to save {label.lower()}. Please try again.",
                "Save Error",
            )
            raise

        # Step 3: Audit
        if self._audit_logger:
            await self._audit_logger.log_transaction_added(
                transaction_id=transaction_id,
                transaction_type=model.type,
                amount=model.amount,
                date_key=date_key_for(model.occurred_at),
                correlation_id=correlation_id,
            )

        # Step 4: Notify
        self._notifier.success(
            f"{label} of {format_currency(model.amount, self._settings.currency)} "
            "recorded successfully!",
            f"{label} Saved",
        )
        return transaction_id, result

    async def record_sale(
        self,
        amount: float,
        occurred_at: Optional[datetime] = None,
        customer: Optional[str] = None,
        category: Optional[str] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> tuple[str, ValidationResult]:
        now = as_utc(now) if now is not None else utc_now()
        return await self.record({
            "type": TransactionType.SALE.value,
            "amount": amount,
            "datetime": occurred_at or now,
            "customer": customer,
            "category": category,
            "notes": notes,
        }, now=now)

    async def record_expense(
        self,
        amount: float,
        category: str,
        occurred_at: Optional[datetime] = None,
        vendor: Optional[str] = None,
        description: Optional[str] = None,
        payment_method: Union[PaymentMethod, str] = PaymentMethod.CASH,
        now: Optional[datetime] = None,
    ) -> tuple[str, ValidationResult]:
        now = as_utc(now) if now is not None else utc_now()
        return await self.record({
            "type": TransactionType.EXPENSE.value,
            "amount": amount,
            "datetime": occurred_at or now,
            "category": category,
            "vendor": vendor,
            "description": description,
            "paymentMethod": PaymentMethod(payment_method),
        }, now=now)

    async def recent(
        self,
        transaction_type: TransactionType,
        limit: int = 4,
    ) -> list[Transaction]:
        """Newest transactions of one type, or [] if the read fails."""
        try:
            transactions = await self._store.get_transactions()
        except StorageError as e:
            logger.warning("recent_transactions_failed", error=str(e))
            return []
        wanted = TransactionType(transaction_type)
        return [tx for tx in transactions if tx.transaction_type is wanted][:limit]


class SecurityFlow:
    """
    Orchestrates the passcode and update-PIN screens.

    Returns user-facing messages alongside results so the UI only renders.
    """

    def __init__(
        self,
        pin_manager: PinManager,
        notifier: Notifier,
    ):
        self._pins = pin_manager
        self._notifier = notifier

    async def unlock(
        self,
        candidate: str,
        now: Optional[datetime] = None,
    ) -> tuple[PinVerificationResult, Optional[AuthSession], str]:
        """
        Try to unlock the app with a PIN.

        Returns:
            (verification_result, session_if_successful, message)
        """
        now = as_utc(now) if now is not None else utc_now()

        status = await self._pins.lock_status(now)
        if status.is_locked:
            return status, None, (
                f"Account locked. Try again in {status.lock_time_remaining} minutes."
            )

        if not validate_pin(candidate):
            return status, None, "PIN must be 4 digits"

        result = await self._pins.verify(candidate, now)
        if result.is_valid:
            return result, self._pins.start_session(now), "PIN verified"
        if result.is_locked:
            message = (
                "Too many failed attempts. "
                f"Account locked for {result.lock_time_remaining} minutes."
            )
            self._notifier.warning(message, "Account Locked")
            return result, None, message
        return result, None, (
            f"Incorrect PIN. {result.remaining_attempts} attempt(s) remaining."
        )

    async def setup_pin(
        self,
        pin: str,
        confirm_pin: str,
        now: Optional[datetime] = None,
    ) -> PinRecord:
        """
        First-time PIN setup.

        Raises:
            PinPolicyError: If the PINs differ, or the PIN is invalid or weak
        """
        try:
            if pin != confirm_pin:
                raise PinPolicyError("PINs do not match")
            record = await self._pins.setup_pin(pin, now)
        except PinPolicyError as e:
            self._notifier.error(str(e), "PIN Setup")
            raise
        self._notifier.success("PIN set up successfully", "Security Updated")
        return record

    async def update_pin(
        self,
        current_pin: Optional[str],
        new_pin: str,
        confirm_pin: str,
        now: Optional[datetime] = None,
    ) -> PinRecord:
        """
        Change the PIN from the settings screen.

        Raises:
            PinPolicyError: If any PIN rule is violated
            StorageError: If the new record could not be saved
        """
        try:
            if new_pin != confirm_pin:
                raise PinPolicyError("PINs do not match")
            record = await self._pins.change_pin(new_pin, current_pin=current_pin, now=now)
        except PinPolicyError as e:
            self._notifier.error(str(e), "Update PIN")
            raise
        except StorageError:
            self._notifier.error("Failed to update PIN. Please try again.")
            raise

        self._notifier.success("PIN updated successfully", "Security Updated")
        return record


class BackupFlow:
    """Orchestrates export and import of the whole store."""

    def __init__(
        self,
        store: RecordStoreInterface,
        notifier: Notifier,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._notifier = notifier
        self._audit_logger = audit_logger

    async def export_data(self, now: Optional[datetime] = None) -> str:
        """
        Serialize the store and remember when the backup was taken.

        Returns:
            The JSON snapshot
        """
        now = as_utc(now) if now is not None else utc_now()
        try:
            document = await self._store.export_all()
            app_settings = await self._store.get_app_settings()
            await self._store.save_app_settings(
                app_settings.model_copy(update={"last_backup": now})
            )
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error("export", str(e))
            self._notifier.error("Failed to export data", "Export Error")
            raise

        if self._audit_logger:
            snapshot = StoreSnapshot.model_validate_json(document)
            await self._audit_logger.log_data_exported(
                transaction_count=len(snapshot.transactions),
                summary_count=len(snapshot.summaries),
            )
        self._notifier.success("Data exported successfully", "Export Complete")
        return document

    async def import_data(
        self,
        snapshot: SnapshotInput,
        rebuild_summaries: bool = False,
    ) -> StoreSnapshot:
        """
        Replace the store contents with a snapshot.

        Raises:
            DataImportError: If the snapshot is malformed or could not be
                written; the store is left unchanged
        """
        try:
            applied = await self._store.import_all(snapshot, rebuild_summaries=rebuild_summaries)
        except DataImportError as e:
            if self._audit_logger:
                await self._audit_logger.log_import_failed(str(e))
            self._notifier.error("Failed to import data. Your existing data was not changed.", "Import Error")
            raise

        if self._audit_logger:
            await self._audit_logger.log_data_imported(
                transaction_count=len(applied.transactions),
                summary_count=len(applied.summaries),
                preference_count=len(applied.preferences),
            )
        self._notifier.success(
            f"Imported {len(applied.transactions)} transactions",
            "Import Complete",
        )
        return applied


class AppComponents(NamedTuple):
    settings: Settings
    store: RecordStoreInterface
    notifier: Notifier
    audit_logger: AuditLogger
    validator: TransactionValidator
    pin_manager: PinManager
    reports: ReportEngine
    transactions: TransactionFlow
    security: SecurityFlow
    backup: BackupFlow


def create_app_components(
    settings: Optional[Settings] = None,
    store: Optional[RecordStoreInterface] = None,
    notifier: Optional[Notifier] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use (defaults to the cached environment settings)
        store: Record store to use (defaults to SQLite at the configured path)
        notifier: Notification sink (defaults to the structured log)

    Returns:
        AppComponents with every flow wired to the same store and notifier
    """
    settings = settings or get_settings()
    app_settings = settings.app

    notifier = notifier or LogNotifier()
    audit_logger = AuditLogger()
    validator = TransactionValidator(app_settings)
    store = store or SQLiteRecordStore(settings.storage, validator=validator)
    pin_manager = PinManager(store, settings.security, audit_logger)

    return AppComponents(
        settings=settings,
        store=store,
        notifier=notifier,
        audit_logger=audit_logger,
        validator=validator,
        pin_manager=pin_manager,
        reports=ReportEngine(store, notifier, app_settings, audit_logger),
        transactions=TransactionFlow(store, notifier, validator, audit_logger, app_settings),
        security=SecurityFlow(pin_manager, notifier),
        backup=BackupFlow(store, notifier, audit_logger),
    )
