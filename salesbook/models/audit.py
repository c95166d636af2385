"""
Audit Models for SalesBook

Every significant action on the books is logged for audit purposes.
This provides:
1. Traceability of every write to the record store
2. Debugging information when things go wrong
3. A security trail for PIN attempts and lockouts

DESIGN DECISION: Audit events are append-only. We never modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from salesbook.models.transaction import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Bookkeeping writes
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_REJECTED = "transaction_rejected"
    SAVE_FAILED = "save_failed"

    # Backup & restore
    DATA_EXPORTED = "data_exported"
    DATA_IMPORTED = "data_imported"
    IMPORT_FAILED = "import_failed"

    # Reports
    REPORT_FAILED = "report_failed"

    # PIN security
    PIN_INITIALIZED = "pin_initialized"
    PIN_SETUP_COMPLETE = "pin_setup_complete"
    PIN_VALIDATION_SUCCESS = "pin_validation_success"
    PIN_VALIDATION_FAILED = "pin_validation_failed"
    PIN_CHANGED = "pin_changed"
    ACCOUNT_LOCKED = "account_locked"
    ACCOUNT_UNLOCKED = "account_unlocked"

    # System events
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'pin', 'snapshot')"
    )
    entity_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(tx_id, "sale", 120.0, "2024-05-01")
        event = AuditEventBuilder.account_locked(failed_attempts=5, lock_minutes=5)
    """

    @staticmethod
    def transaction_added(
        transaction_id: str,
        transaction_type: str,
        amount: float,
        date_key: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"{transaction_type.capitalize()} of {amount:,.2f} recorded for {date_key}",
            details={
                "type": transaction_type,
                "amount": amount,
                "date_key": date_key,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_rejected(
        issues: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Transaction rejected with {len(issues)} issue(s)",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def save_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="transaction",
            correlation_id=correlation_id,
            description="Transaction could not be saved",
            error_message=error_message,
        )

    @staticmethod
    def data_exported(
        transaction_count: int,
        summary_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_EXPORTED,
            entity_type="snapshot",
            description=f"Exported {transaction_count} transactions",
            details={
                "transactions": transaction_count,
                "summaries": summary_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def data_imported(
        transaction_count: int,
        summary_count: int,
        preference_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_IMPORTED,
            severity=AuditSeverity.WARNING,
            entity_type="snapshot",
            description=f"Store replaced from snapshot with {transaction_count} transactions",
            details={
                "transactions": transaction_count,
                "summaries": summary_count,
                "preferences": preference_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def import_failed(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="snapshot",
            description="Snapshot import failed; store left unchanged",
            error_message=error_message,
        )

    @staticmethod
    def report_failed(report: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPORT_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="report",
            description=f"Could not load data for {report}; showing empty report",
            details={"report": report},
            error_message=error_message,
        )

    @staticmethod
    def pin_event(
        event_type: AuditEventType,
        description: str,
        failed_attempts: int = 0,
        severity: AuditSeverity = AuditSeverity.INFO,
    ) -> AuditEvent:
        # The PIN itself is never written to the log.
        return AuditEvent(
            event_type=event_type,
            severity=severity,
            entity_type="pin",
            description=description,
            details={"failed_attempts": failed_attempts},
            is_user_action=True,
        )

    @staticmethod
    def account_locked(failed_attempts: int, lock_minutes: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_LOCKED,
            severity=AuditSeverity.WARNING,
            entity_type="pin",
            description=f"Account locked for {lock_minutes} minutes after {failed_attempts} failed attempts",
            details={
                "failed_attempts": failed_attempts,
                "lock_minutes": lock_minutes,
            },
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
