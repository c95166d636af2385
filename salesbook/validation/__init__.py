"""Transaction validation package."""

from salesbook.validation.validator import (
    TransactionValidationError,
    TransactionValidator,
)

__all__ = [
    "TransactionValidationError",
    "TransactionValidator",
]
