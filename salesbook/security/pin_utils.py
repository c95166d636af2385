"""
PIN helpers: format checks, strength assessment and session timing.

Strength is informational. Only first-time setup refuses weak PINs.
"""

import re
import secrets
from datetime import datetime
from typing import Optional

from salesbook.models.security import PinStrength
from salesbook.models.transaction import as_utc, utc_now


PIN_LENGTH = 4
_PIN_PATTERN = re.compile(r"[0-9]{4}")
_REPEATED = re.compile(r"([0-9])\1{3}")

DEFAULT_PINS = frozenset({"4321", "0000", "1234"})
COMMON_PINS = frozenset({
    "0000", "1111", "2222", "3333", "4444", "5555", "6666", "7777", "8888", "9999",
    "1234", "4321",
})
ASCENDING = "0123456789"
DESCENDING = "9876543210"
STEP_PATTERNS = frozenset({"1357", "2468", "3579"})

MASK_CHAR = "•"


def validate_pin(pin: Optional[str]) -> bool:
    """Exactly four ASCII digits."""
    return bool(pin) and _PIN_PATTERN.fullmatch(pin) is not None


def is_default_pin(pin: str) -> bool:
    return pin in DEFAULT_PINS


def assess_pin_strength(pin: str) -> PinStrength:
    if _REPEATED.fullmatch(pin):
        return PinStrength.WEAK
    if pin in ASCENDING or pin in DESCENDING or pin in STEP_PATTERNS:
        return PinStrength.WEAK
    if pin in COMMON_PINS:
        return PinStrength.WEAK
    if len(set(pin)) == PIN_LENGTH:
        return PinStrength.STRONG
    return PinStrength.MEDIUM


def generate_random_pin() -> str:
    """A random PIN that is neither a default nor weak."""
    while True:
        pin = str(1000 + secrets.randbelow(9000))
        if not is_default_pin(pin) and assess_pin_strength(pin) is not PinStrength.WEAK:
            return pin


def mask_pin(pin: str) -> str:
    return MASK_CHAR * len(pin)


def should_require_reauth(
    last_auth: datetime,
    timeout_minutes: int,
    now: Optional[datetime] = None,
) -> bool:
    """True once `timeout_minutes` have passed since `last_auth`."""
    now = as_utc(now) if now is not None else utc_now()
    elapsed_minutes = (now - as_utc(last_auth)).total_seconds() / 60
    return elapsed_minutes >= timeout_minutes
