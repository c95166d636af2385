"""PIN security package."""

from salesbook.security.pin_manager import PinManager, PinPolicyError
from salesbook.security.pin_utils import (
    assess_pin_strength,
    generate_random_pin,
    is_default_pin,
    mask_pin,
    should_require_reauth,
    validate_pin,
)

__all__ = [
    "PinManager",
    "PinPolicyError",
    "assess_pin_strength",
    "generate_random_pin",
    "is_default_pin",
    "mask_pin",
    "should_require_reauth",
    "validate_pin",
]
