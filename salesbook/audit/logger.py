"""
Audit Logger

DESIGN DECISION: Every significant action on the books is logged.
This provides:
1. Traceability of writes, imports and PIN attempts
2. Debugging capability

The audit logger:
- Is async so callers can await it alongside store operations
- Never raises: a logging failure must not undo a committed write
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from salesbook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Events go to the structured local log. Recent events are also kept in
    memory (bounded) so the application can show a short activity trail.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("salesbook.audit")
        self._history: list[AuditEvent] = []
        self._history_size = history_size

    @property
    def recent_events(self) -> list[AuditEvent]:
        """Most recent events, newest last."""
        return list(self._history)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the event was recorded.
        """
        log_dict = event.to_log_dict()

        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except (TypeError, ValueError) as e:
            # Unserializable details; keep the event in memory anyway
            self._logger.error(
                "audit_log_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            self._remember(event)
            return False

        self._remember(event)
        return True

    def _remember(self, event: AuditEvent) -> None:
        self._history.append(event)
        if len(self._history) > self._history_size:
            del self._history[: len(self._history) - self._history_size]

    async def log_transaction_added(
        self,
        transaction_id: str,
        transaction_type: str,
        amount: float,
        date_key: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a committed transaction."""
        await self.log(AuditEventBuilder.transaction_added(
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=amount,
            date_key=date_key,
            correlation_id=correlation_id,
        ))

    async def log_transaction_rejected(
        self,
        issues: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_rejected(
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_save_failed(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.save_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_data_exported(self, transaction_count: int, summary_count: int) -> None:
        await self.log(AuditEventBuilder.data_exported(transaction_count, summary_count))

    async def log_data_imported(
        self,
        transaction_count: int,
        summary_count: int,
        preference_count: int,
    ) -> None:
        await self.log(AuditEventBuilder.data_imported(
            transaction_count, summary_count, preference_count,
        ))

    async def log_import_failed(self, error_message: str) -> None:
        await self.log(AuditEventBuilder.import_failed(error_message))

    async def log_report_failed(self, report: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.report_failed(report, error_message))

    async def log_pin_event(
        self,
        event_type: AuditEventType,
        description: str,
        failed_attempts: int = 0,
        severity: AuditSeverity = AuditSeverity.INFO,
    ) -> None:
        await self.log(AuditEventBuilder.pin_event(
            event_type=event_type,
            description=description,
            failed_attempts=failed_attempts,
            severity=severity,
        ))

    async def log_account_locked(self, failed_attempts: int, lock_minutes: int) -> None:
        await self.log(AuditEventBuilder.account_locked(failed_attempts, lock_minutes))

    async def log_storage_error(self, operation: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.storage_error(operation, error_message))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., recording a sale).
    """
    return uuid4()
