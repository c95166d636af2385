"""
PIN Record Lifecycle

DESIGN DECISION: The PIN record is a small state machine.

    Absent --ensure--> Active(attempts=0)
    Active --wrong PIN--> Active(attempts+1)
    Active --wrong PIN, attempts >= max--> Locked(lock_until = now + lockout)
    Locked --now >= lock_until--> Active(attempts=0)
    Active/Locked(expired) --correct PIN--> Active(attempts=0)

While a lockout is in force every verification is rejected without
touching the record. A lockout is reported as a result, not raised:
it is an expected outcome the caller shows to the user.

Every method takes an optional `now` so lockout timing can be tested
without waiting.
"""

import math
from datetime import datetime, timedelta
from typing import Optional

import structlog

from salesbook.audit.logger import AuditLogger
from salesbook.config import SecuritySettings
from salesbook.models.audit import AuditEventType, AuditSeverity
from salesbook.models.security import (
    AuthSession,
    PinRecord,
    PinStrength,
    PinVerificationResult,
)
from salesbook.models.transaction import as_utc, utc_now
from salesbook.security.pin_utils import assess_pin_strength, validate_pin
from salesbook.services.storage.interface import RecordStoreInterface


logger = structlog.get_logger(__name__)


class PinPolicyError(ValueError):
    """A new PIN was rejected (bad format, weak at setup, unchanged, wrong current PIN)."""
    pass


def _minutes_until(until: datetime, now: datetime) -> int:
    return max(0, math.ceil((until - now).total_seconds() / 60))


class PinManager:
    """Owns every read and write of the PIN record."""

    def __init__(
        self,
        store: RecordStoreInterface,
        settings: Optional[SecuritySettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._settings = settings or SecuritySettings()
        self._audit = audit_logger

    @property
    def max_attempts(self) -> int:
        return self._settings.max_attempts

    async def _audit_pin(
        self,
        event_type: AuditEventType,
        description: str,
        failed_attempts: int = 0,
        severity: AuditSeverity = AuditSeverity.INFO,
    ) -> None:
        if self._audit is not None:
            await self._audit.log_pin_event(event_type, description, failed_attempts, severity)

    async def has_pin_record(self) -> bool:
        return await self._store.get_pin_record() is not None

    async def ensure_pin_record(self, now: Optional[datetime] = None) -> PinRecord:
        """Return the PIN record, creating it with the default PIN if absent."""
        record = await self._store.get_pin_record()
        if record is not None:
            return record

        now = as_utc(now) if now is not None else utc_now()
        record = PinRecord(
            pin=self._settings.default_pin,
            created_at=now,
            last_modified=now,
        )
        await self._store.save_pin_record(record)
        logger.info("pin_record_initialized")
        await self._audit_pin(AuditEventType.PIN_INITIALIZED, "Default PIN installed")
        return record

    async def _clear_lockout(self, record: PinRecord) -> PinRecord:
        cleared = record.model_copy(update={
            "failed_attempts": 0,
            "is_locked": False,
            "lock_until": None,
        })
        await self._store.save_pin_record(cleared)
        logger.info("pin_lockout_expired")
        await self._audit_pin(AuditEventType.ACCOUNT_UNLOCKED, "Lockout period ended")
        return cleared

    def _locked_result(self, record: PinRecord, now: datetime) -> PinVerificationResult:
        return PinVerificationResult(
            is_valid=False,
            is_locked=True,
            remaining_attempts=0,
            lock_time_remaining=_minutes_until(record.lock_until, now),
        )

    async def lock_status(self, now: Optional[datetime] = None) -> PinVerificationResult:
        """
        Current lock state without making an attempt.

        An expired lockout is cleared as a side effect.
        """
        now = as_utc(now) if now is not None else utc_now()
        record = await self.ensure_pin_record(now)

        if record.is_locked_at(now):
            return self._locked_result(record, now)
        if record.is_locked:
            record = await self._clear_lockout(record)

        return PinVerificationResult(
            is_valid=False,
            is_locked=False,
            remaining_attempts=max(0, self.max_attempts - record.failed_attempts),
        )

    async def verify(
        self,
        candidate: str,
        now: Optional[datetime] = None,
    ) -> PinVerificationResult:
        """
        Check a PIN attempt and update the attempt counter / lockout.

        Returns:
            PinVerificationResult; is_locked with is_valid False means the
            attempt was refused because of a lockout
        """
        now = as_utc(now) if now is not None else utc_now()
        record = await self.ensure_pin_record(now)

        if record.is_locked_at(now):
            logger.warning("pin_attempt_while_locked")
            return self._locked_result(record, now)
        if record.is_locked:
            record = await self._clear_lockout(record)

        if candidate == record.pin:
            updated = record.model_copy(update={
                "failed_attempts": 0,
                "is_locked": False,
                "lock_until": None,
                "last_attempt": now,
            })
            await self._store.save_pin_record(updated)
            await self._audit_pin(AuditEventType.PIN_VALIDATION_SUCCESS, "PIN accepted")
            return PinVerificationResult(
                is_valid=True,
                is_locked=False,
                remaining_attempts=self.max_attempts,
            )

        attempts = record.failed_attempts + 1
        locked = attempts >= self.max_attempts
        lockout = timedelta(minutes=self._settings.lockout_minutes)
        updated = record.model_copy(update={
            "failed_attempts": attempts,
            "last_attempt": now,
            "last_modified": now,
            "is_locked": locked,
            "lock_until": now + lockout if locked else None,
        })
        await self._store.save_pin_record(updated)

        if locked:
            logger.warning("pin_account_locked", failed_attempts=attempts)
            if self._audit is not None:
                await self._audit.log_account_locked(attempts, self._settings.lockout_minutes)
            return PinVerificationResult(
                is_valid=False,
                is_locked=True,
                remaining_attempts=0,
                lock_time_remaining=self._settings.lockout_minutes,
            )

        await self._audit_pin(
            AuditEventType.PIN_VALIDATION_FAILED,
            "Incorrect PIN entered",
            failed_attempts=attempts,
            severity=AuditSeverity.WARNING,
        )
        return PinVerificationResult(
            is_valid=False,
            is_locked=False,
            remaining_attempts=self.max_attempts - attempts,
        )

    async def setup_pin(self, pin: str, now: Optional[datetime] = None) -> PinRecord:
        """
        First-time PIN setup.

        Raises:
            PinPolicyError: If the PIN is not 4 digits or is weak
        """
        if not validate_pin(pin):
            raise PinPolicyError("PIN must be 4 digits")
        if assess_pin_strength(pin) is PinStrength.WEAK:
            raise PinPolicyError("Please choose a stronger PIN. Avoid simple patterns.")

        now = as_utc(now) if now is not None else utc_now()
        existing = await self._store.get_pin_record()
        record = PinRecord(
            pin=pin,
            created_at=existing.created_at if existing else now,
            last_modified=now,
        )
        await self._store.save_pin_record(record)
        await self._audit_pin(AuditEventType.PIN_SETUP_COMPLETE, "PIN set up")
        return record

    async def change_pin(
        self,
        new_pin: str,
        current_pin: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PinRecord:
        """
        Replace the PIN.

        The new record keeps created_at, has zero failed attempts and is
        unlocked. Weak PINs are accepted here but logged.

        Raises:
            PinPolicyError: If the current PIN is wrong, the new PIN is not
                4 digits, or it equals the current PIN
        """
        now = as_utc(now) if now is not None else utc_now()
        existing = await self._store.get_pin_record()
        stored_pin = existing.pin if existing else self._settings.default_pin

        if current_pin is not None and current_pin != stored_pin:
            raise PinPolicyError("Incorrect current PIN")
        if not validate_pin(new_pin):
            raise PinPolicyError("PIN must be 4 digits")
        if new_pin == stored_pin:
            raise PinPolicyError("New PIN cannot be same as current PIN")

        strength = assess_pin_strength(new_pin)
        if strength is PinStrength.WEAK:
            logger.warning("weak_pin_chosen")

        record = PinRecord(
            pin=new_pin,
            is_enabled=True,
            created_at=existing.created_at if existing else now,
            last_modified=now,
            failed_attempts=0,
            is_locked=False,
            lock_until=None,
        )
        await self._store.save_pin_record(record)
        await self._audit_pin(AuditEventType.PIN_CHANGED, f"PIN changed ({strength.value})")
        return record

    def start_session(self, now: Optional[datetime] = None) -> AuthSession:
        now = as_utc(now) if now is not None else utc_now()
        return AuthSession(
            is_authenticated=True,
            authentication_time=now,
            session_expiry=now + timedelta(minutes=self._settings.session_timeout_minutes),
        )
