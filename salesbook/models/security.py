"""
PIN Security Models

The PIN record is a singleton stored alongside the bookkeeping data.
It is mutated on every verification attempt and replaced wholesale when
the PIN changes.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from salesbook.models.transaction import RecordModel, as_utc, utc_now


class PinStrength(str, Enum):
    """Informational PIN strength levels."""
    WEAK = "weak"      # Repeated digits, sequential, common
    MEDIUM = "medium"  # Some variation
    STRONG = "strong"  # Four distinct digits, no pattern


class PinRecord(RecordModel):
    """
    Persisted PIN credential plus lockout state.

    INVARIANT: when is_locked is true, lock_until is set.
    """

    pin: str = Field(
        ...,
        pattern=r"^\d{4}$",
        description="4-digit PIN"
    )
    is_enabled: bool = Field(default=True, alias="isEnabled")
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    last_modified: datetime = Field(default_factory=utc_now, alias="lastModified")
    failed_attempts: int = Field(default=0, ge=0, alias="failedAttempts")
    last_attempt: Optional[datetime] = Field(default=None, alias="lastAttempt")
    is_locked: bool = Field(default=False, alias="isLocked")
    lock_until: Optional[datetime] = Field(default=None, alias="lockUntil")

    @field_validator('created_at', 'last_modified', 'last_attempt', 'lock_until')
    @classmethod
    def normalize_timestamps(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else None

    @model_validator(mode='after')
    def validate_lock(self) -> 'PinRecord':
        if self.is_locked and self.lock_until is None:
            raise ValueError("A locked PIN record needs lock_until")
        return self

    def is_locked_at(self, now: datetime) -> bool:
        """Is the lockout still in force at `now`?"""
        return (
            self.is_locked
            and self.lock_until is not None
            and as_utc(now) < self.lock_until
        )


class PinVerificationResult(BaseModel):
    """
    Outcome of a PIN verification attempt.

    When is_locked is true and is_valid is false the attempt was rejected
    because of a lockout. lock_time_remaining then holds whole minutes,
    rounded up.
    """

    is_valid: bool
    is_locked: bool
    remaining_attempts: int = Field(ge=0)
    lock_time_remaining: Optional[int] = Field(
        default=None,
        ge=0,
        description="Minutes until the lockout ends"
    )


class AuthSession(BaseModel):
    """Authenticated session started after a successful PIN entry."""

    is_authenticated: bool
    authentication_time: datetime
    session_expiry: datetime
    requires_reauth: bool = False

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return as_utc(now or utc_now()) >= self.session_expiry
