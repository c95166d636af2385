"""
Core Data Models for SalesBook

These models define the strict schemas for everything the record store
persists: sales, expenses, daily summaries, preferences and the export
snapshot.

DESIGN DECISION: A transaction is an explicit tagged variant.
`Sale` and `Expense` are separate models discriminated on `type`, so
variant-specific fields (customer vs. vendor) are only reachable through
the concrete class, never through unchecked attribute access.

Timestamps are always timezone-aware UTC. A naive datetime is read as UTC,
and `date_key` is the UTC calendar date of the transaction.

Field aliases are the camelCase names used by the exported JSON snapshot.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)


SNAPSHOT_VERSION = "1.0"
UNCATEGORIZED = "Uncategorized"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def date_key_for(value: datetime) -> str:
    """Canonical YYYY-MM-DD bucket key for a point in time."""
    return as_utc(value).date().isoformat()


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Discriminant of the transaction union."""
    SALE = "sale"
    EXPENSE = "expense"


class PaymentMethod(str, Enum):
    """How an expense was paid."""
    CASH = "cash"
    MOBILE_MONEY = "mobile money"
    BANK_TRANSFER = "bank transfer"
    CREDIT_CARD = "credit card"
    OTHER = "other"


class ExpenseCategory(str, Enum):
    """
    Suggested expense categories.

    The category field itself is free text; these are the values offered
    by default when recording an expense.
    """
    SUPPLIES = "Supplies"
    TRANSPORTATION = "Transportation"
    UTILITIES = "Utilities"
    RENT = "Rent"
    STAFF = "Staff"
    MARKETING = "Marketing"
    MAINTENANCE = "Maintenance"
    FOOD_DRINKS = "Food & Drinks"
    OTHER = "Other"


class SaleCategory(str, Enum):
    """Suggested sale categories."""
    RETAIL = "Retail Sales"
    WHOLESALE = "Wholesale"
    SERVICES = "Services"
    ONLINE = "Online Sales"
    CASH_SALES = "Cash Sales"
    CREDIT_SALES = "Credit Sales"
    OTHER = "Other"


class Theme(str, Enum):
    DARK = "dark"
    LIGHT = "light"


# =============================================================================
# TRANSACTIONS
# =============================================================================

class RecordModel(BaseModel):
    """Base for persisted records: strips whitespace, accepts names or aliases."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )


class _TransactionFields(RecordModel):
    """Fields shared by both transaction variants."""

    amount: float = Field(
        ...,
        gt=0,
        allow_inf_nan=False,
        description="Transaction amount (must be positive)"
    )
    occurred_at: datetime = Field(
        ...,
        alias="datetime",
        description="When the transaction happened (caller supplied)"
    )

    @field_validator('occurred_at')
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return as_utc(v)

    @property
    def transaction_type(self) -> TransactionType:
        return TransactionType(self.type)

    @property
    def is_sale(self) -> bool:
        return self.transaction_type is TransactionType.SALE


def _blank_to_none(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    return v or None


class NewSale(_TransactionFields):
    """A sale as submitted by the caller, before the store assigns an id."""

    type: Literal["sale"] = "sale"
    customer: Optional[str] = Field(default=None, max_length=200)
    category: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator('customer', 'category', 'notes')
    @classmethod
    def empty_text_is_missing(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)


class NewExpense(_TransactionFields):
    """
    An expense as submitted by the caller.

    Unlike a sale, an expense MUST carry a category.
    """

    type: Literal["expense"] = "expense"
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Expense category (required)"
    )
    vendor: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    payment_method: PaymentMethod = Field(
        default=PaymentMethod.CASH,
        alias="paymentMethod",
    )

    @field_validator('vendor', 'description')
    @classmethod
    def empty_text_is_missing(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)


class _StoredFields(RecordModel):
    """Store-assigned identity, mixed into the persisted variants."""

    id: str = Field(
        ...,
        min_length=1,
        description="Unique transaction id (assigned by the store)"
    )
    date_key: str = Field(
        default="",
        alias="dateKey",
        description="UTC calendar date of the transaction (YYYY-MM-DD)"
    )

    @model_validator(mode='after')
    def derive_date_key(self):
        """Fill date_key from the timestamp and refuse inconsistent keys."""
        expected = date_key_for(self.occurred_at)
        if not self.date_key:
            self.date_key = expected
        elif self.date_key != expected:
            raise ValueError(
                f"dateKey {self.date_key} does not match transaction date {expected}"
            )
        return self


class Sale(NewSale, _StoredFields):
    """A persisted sale."""


class Expense(NewExpense, _StoredFields):
    """A persisted expense."""


NewTransaction = Annotated[Union[NewSale, NewExpense], Field(discriminator="type")]
Transaction = Annotated[Union[Sale, Expense], Field(discriminator="type")]

NEW_TRANSACTION_ADAPTER: TypeAdapter = TypeAdapter(NewTransaction)
TRANSACTION_ADAPTER: TypeAdapter = TypeAdapter(Transaction)


def counterparty_label(tx: Union[Sale, Expense]) -> str:
    """Customer for a sale, vendor for an expense, or a generic label."""
    if isinstance(tx, Sale):
        return tx.customer or "Sale"
    return tx.vendor or "Expense"


# =============================================================================
# DAILY SUMMARY
# =============================================================================

class DailySummary(RecordModel):
    """
    Incrementally maintained totals for one calendar day.

    INVARIANT: for a given date_key, total_sales / total_expenses /
    transaction_count always equal the sums over the stored transactions
    with that date_key, and net_profit = total_sales - total_expenses.
    """

    date_key: str = Field(..., alias="dateKey")
    summary_date: date = Field(..., alias="date")
    total_sales: float = Field(default=0.0, alias="totalSales")
    total_expenses: float = Field(default=0.0, alias="totalExpenses")
    net_profit: float = Field(default=0.0, alias="netProfit")
    transaction_count: int = Field(default=0, ge=0, alias="transactionCount")

    @field_validator('date_key')
    @classmethod
    def validate_date_key(cls, v: str) -> str:
        date.fromisoformat(v)
        return v

    @field_validator('summary_date', mode='before')
    @classmethod
    def accept_timestamp(cls, v: Any) -> Any:
        """Older exports stored the day as a midnight timestamp."""
        if isinstance(v, str) and "T" in v:
            return v.split("T", 1)[0]
        if isinstance(v, datetime):
            return v.date()
        return v

    @classmethod
    def empty(cls, date_key: str) -> "DailySummary":
        """Zero-valued summary for a day with no transactions."""
        return cls(date_key=date_key, summary_date=date.fromisoformat(date_key))

    @property
    def is_empty(self) -> bool:
        return self.transaction_count == 0


# =============================================================================
# PREFERENCES & SETTINGS
# =============================================================================

class UserPreferences(RecordModel):
    """User-facing settings. Not relevant to aggregation."""

    id: str = Field(default="default", description="Singleton key")
    theme: Theme = Theme.LIGHT
    currency: str = Field(default="GHS", min_length=1, max_length=8)
    business_name: Optional[str] = Field(default=None, alias="businessName")
    business_type: Optional[str] = Field(default=None, alias="businessType")
    default_categories: list[str] = Field(
        default_factory=list,
        alias="defaultCategories",
    )
    notification_enabled: bool = Field(default=True, alias="notificationEnabled")


class AppSettingsRecord(RecordModel):
    """Passive application flags stored in the `settings` table."""

    id: str = Field(default="app")
    version: str = SNAPSHOT_VERSION
    first_launch: bool = Field(default=True, alias="firstLaunch")
    onboarding_completed: bool = Field(default=False, alias="onboardingCompleted")
    last_backup: Optional[datetime] = Field(default=None, alias="lastBackup")
    data_export_format: Literal["json", "csv"] = Field(
        default="json",
        alias="dataExportFormat",
    )


# =============================================================================
# EXPORT SNAPSHOT
# =============================================================================

class StoreSnapshot(RecordModel):
    """
    A complete serialized copy of the store.

    Missing or null top-level arrays are treated as empty; unknown
    top-level keys are ignored.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    transactions: list[Transaction] = Field(default_factory=list)
    summaries: list[DailySummary] = Field(default_factory=list)
    preferences: list[UserPreferences] = Field(default_factory=list)
    export_date: datetime = Field(default_factory=utc_now, alias="exportDate")
    version: str = SNAPSHOT_VERSION

    @field_validator('transactions', 'summaries', 'preferences', mode='before')
    @classmethod
    def null_is_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'future_date')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage transaction validation.

    Stage 1: Schema validation (types, required variant fields)
    Stage 2: Semantic validation (suspicious dates and amounts)
    """

    validated_at: datetime = Field(default_factory=utc_now)
    transaction_type: Optional[TransactionType] = None

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def error_messages(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "error"]
