"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Type checking
- Required field presence (an expense needs a category)
- Amount must be a finite number greater than zero
- This catches malformed input before anything touches the database

STAGE 2 - SEMANTIC VALIDATION:
- Future date detection
- Very old date detection
- Absurd amount detection
- This catches suspicious but storable data

WHY TWO STAGES:
1. Separation of concerns (structural vs logical)
2. Better error messages (know exactly what kind of issue)
3. Can skip stage 2 if stage 1 fails

Stage 2 only ever produces warnings. A transaction that passes stage 1
is always storable.
"""

from datetime import datetime, timedelta
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from salesbook.config import AppSettings
from salesbook.models.transaction import (
    NEW_TRANSACTION_ADAPTER,
    NewExpense,
    NewSale,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    as_utc,
    utc_now,
)


Payload = Union[NewSale, NewExpense, Mapping[str, Any]]

_TAGS = {t.value for t in TransactionType}

_SUGGESTED_FIXES = {
    "amount": "Enter an amount greater than zero",
    "category": "Choose a category for this expense",
    "datetime": "Enter the date and time of the transaction",
    "occurred_at": "Enter the date and time of the transaction",
    "type": "Use 'sale' or 'expense'",
    "paymentMethod": "Use cash, mobile money, bank transfer, credit card or other",
    "payment_method": "Use cash, mobile money, bank transfer, credit card or other",
}


class TransactionValidationError(ValueError):
    """
    A transaction payload failed schema validation.

    Raised before any storage write happens.
    """

    def __init__(self, result: ValidationResult):
        self.result = result
        message = "; ".join(result.error_messages) or "Invalid transaction"
        super().__init__(message)


def _issue_from_error(error: dict) -> ValidationIssue:
    loc = [str(part) for part in error.get("loc", ())]
    # Discriminated unions prefix the location with the tag
    if loc and loc[0] in _TAGS:
        loc = loc[1:]
    field = ".".join(loc) or "type"

    error_type = error.get("type", "")
    if error_type == "missing":
        issue_type = "missing"
        message = f"{field} is required"
    elif error_type.startswith("union_tag"):
        field = "type"
        issue_type = "invalid_type"
        message = "Transaction type must be 'sale' or 'expense'"
    else:
        issue_type = "invalid_value"
        message = f"{field}: {error.get('msg', 'invalid value')}"

    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="error",
        suggested_fix=_SUGGESTED_FIXES.get(field),
    )


class TransactionValidator:
    """
    Validates transaction payloads through a two-stage pipeline.

    Stage 1: Schema validation (pydantic parsing into NewSale / NewExpense)
    Stage 2: Semantic validation (warnings only)
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or AppSettings()

    def _validate_schema(
        self,
        payload: Payload,
    ) -> tuple[Optional[Union[NewSale, NewExpense]], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (parsed_model_or_None, list_of_issues)
        """
        # Models are re-checked: fields may have been assigned after construction
        if isinstance(payload, (NewSale, NewExpense)):
            payload = payload.model_dump()

        if not isinstance(payload, Mapping):
            return None, [ValidationIssue(
                field="payload",
                issue_type="invalid_type",
                message="Transaction data must be a mapping of fields",
                severity="error",
            )]

        try:
            model = NEW_TRANSACTION_ADAPTER.validate_python(dict(payload))
        except ValidationError as e:
            return None, [_issue_from_error(err) for err in e.errors()]

        return model, []

    def _validate_semantic(
        self,
        model: Union[NewSale, NewExpense],
        now: datetime,
    ) -> list[ValidationIssue]:
        """
        Stage 2: Semantic validation.

        Checks:
        - Future dates
        - Very old dates
        - Absurd amounts
        """
        issues = []
        occurred = model.occurred_at

        max_future = now + timedelta(days=self._settings.future_date_tolerance_days)
        if occurred > max_future:
            issues.append(ValidationIssue(
                field="datetime",
                issue_type="future_date",
                message=f"Transaction date ({occurred.date()}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        min_reasonable = now - timedelta(days=365 * 2)
        if occurred < min_reasonable:
            issues.append(ValidationIssue(
                field="datetime",
                issue_type="suspicious_date",
                message=f"Transaction date ({occurred.date()}) seems unusually old",
                severity="warning",
                suggested_fix="Please verify the date was entered correctly",
            ))

        if model.amount > self._settings.max_transaction_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=(
                    f"Amount ({self._settings.currency} {model.amount:,.2f}) "
                    "seems unusually high"
                ),
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        return issues

    def validate(
        self,
        payload: Payload,
        now: Optional[datetime] = None,
    ) -> tuple[Optional[Union[NewSale, NewExpense]], ValidationResult]:
        """
        Run the full two-stage validation pipeline.

        Args:
            payload: A NewSale / NewExpense or a mapping of fields
            now: Reference time for date checks (defaults to current UTC time)

        Returns:
            (parsed model or None, ValidationResult with all issues found)
        """
        now = as_utc(now) if now is not None else utc_now()

        model, all_issues = self._validate_schema(payload)
        schema_valid = model is not None and not any(
            issue.severity == "error" for issue in all_issues
        )

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            all_issues.extend(self._validate_semantic(model, now))
            semantic_valid = not any(issue.severity == "error" for issue in all_issues)

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        result = ValidationResult(
            transaction_type=model.transaction_type if model is not None else None,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )
        return (model if schema_valid else None), result

    def parse_or_raise(
        self,
        payload: Payload,
        now: Optional[datetime] = None,
    ) -> Union[NewSale, NewExpense]:
        """
        Parse a payload, raising if it cannot be stored.

        Raises:
            TransactionValidationError: If stage 1 fails
        """
        model, result = self.validate(payload, now=now)
        if model is None:
            raise TransactionValidationError(result)
        return model

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show to the shop owner.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []

        if not result.schema_valid:
            lines.append("❌ This transaction can't be saved yet:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        lines.append("")
        if result.schema_valid:
            lines.append("You can still save it, but please double-check.")
        else:
            lines.append("Please fix the issues above before saving.")

        return "\n".join(lines)
