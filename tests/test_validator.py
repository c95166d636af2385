"""
Tests for the two-stage transaction validator.
"""

from datetime import timedelta

import pytest

from salesbook.config import AppSettings
from salesbook.models.transaction import NewExpense, NewSale, TransactionType
from salesbook.validation import TransactionValidationError, TransactionValidator


@pytest.fixture
def validator(app_settings) -> TransactionValidator:
    return TransactionValidator(app_settings)


def sale_payload(now, **overrides) -> dict:
    payload = {"type": "sale", "amount": 150.0, "datetime": now.isoformat()}
    payload.update(overrides)
    return payload


class TestSchemaValidation:
    """Stage 1: structural checks block the write."""

    def test_valid_sale(self, validator, now):
        model, result = validator.validate(sale_payload(now, customer="Kofi"), now=now)
        assert isinstance(model, NewSale)
        assert model.customer == "Kofi"
        assert result.is_valid is True
        assert result.transaction_type is TransactionType.SALE
        assert result.issues == []

    def test_model_is_accepted(self, validator, now):
        expense = NewExpense(amount=20, occurred_at=now, category="Rent")
        model, result = validator.validate(expense, now=now)
        assert model == expense
        assert result.is_valid is True

    def test_model_changed_after_construction_is_rechecked(self, validator, now):
        sale = NewSale(amount=10, occurred_at=now)
        sale.amount = -5
        model, result = validator.validate(sale, now=now)
        assert model is None
        assert [issue.field for issue in result.issues] == ["amount"]

    @pytest.mark.parametrize("amount", [0, -10, "abc"])
    def test_bad_amount(self, validator, now, amount):
        model, result = validator.validate(sale_payload(now, amount=amount), now=now)
        assert model is None
        assert result.schema_valid is False
        assert [issue.field for issue in result.issues] == ["amount"]
        assert result.issues[0].suggested_fix == "Enter an amount greater than zero"

    def test_expense_without_category(self, validator, now):
        model, result = validator.validate(
            {"type": "expense", "amount": 50, "datetime": now.isoformat()},
            now=now,
        )
        assert model is None
        issue = result.issues[0]
        assert issue.field == "category"
        assert issue.issue_type == "missing"
        assert issue.message == "category is required"

    @pytest.mark.parametrize("payload", [
        {"type": "refund", "amount": 5, "datetime": "2024-05-15T10:00:00Z"},
        {"amount": 5, "datetime": "2024-05-15T10:00:00Z"},
    ])
    def test_unknown_or_missing_type(self, validator, now, payload):
        model, result = validator.validate(payload, now=now)
        assert model is None
        assert result.issues[0].field == "type"
        assert result.issues[0].issue_type == "invalid_type"

    def test_missing_datetime(self, validator, now):
        model, result = validator.validate({"type": "sale", "amount": 5}, now=now)
        assert model is None
        assert result.issues[0].field == "datetime"

    def test_non_mapping_payload(self, validator, now):
        model, result = validator.validate(["sale", 10], now=now)
        assert model is None
        assert result.issues[0].field == "payload"

    def test_parse_or_raise(self, validator, now):
        with pytest.raises(TransactionValidationError) as exc_info:
            validator.parse_or_raise(sale_payload(now, amount=-1), now=now)
        assert exc_info.value.result.error_count == 1
        assert "amount" in str(exc_info.value)


class TestSemanticValidation:
    """Stage 2: suspicious values only warn."""

    def test_future_date_warns(self, validator, now):
        future = now + timedelta(days=3)
        model, result = validator.validate(sale_payload(now, datetime=future.isoformat()), now=now)
        assert model is not None
        assert result.is_valid is True
        assert any("future" in w for w in result.warnings)

    def test_within_tolerance_does_not_warn(self, validator, now):
        soon = now + timedelta(hours=12)
        _, result = validator.validate(sale_payload(now, datetime=soon.isoformat()), now=now)
        assert result.warnings == []

    def test_old_date_warns(self, validator, now):
        old = now - timedelta(days=800)
        _, result = validator.validate(sale_payload(now, datetime=old.isoformat()), now=now)
        assert any("unusually old" in w for w in result.warnings)

    def test_large_amount_warns(self, now):
        validator = TransactionValidator(AppSettings(max_transaction_amount=1000))
        model, result = validator.validate(sale_payload(now, amount=5000), now=now)
        assert model is not None
        assert result.warnings == ["Amount (GHS 5,000.00) seems unusually high"]


class TestUserFriendlySummary:

    def test_all_passed(self, validator, now):
        _, result = validator.validate(sale_payload(now), now=now)
        assert validator.get_user_friendly_summary(result) == "✅ All checks passed."

    def test_errors_listed_with_fixes(self, validator, now):
        _, result = validator.validate(sale_payload(now, amount=0), now=now)
        summary = validator.get_user_friendly_summary(result)
        assert "can't be saved" in summary
        assert "Enter an amount greater than zero" in summary
        assert summary.endswith("Please fix the issues above before saving.")
