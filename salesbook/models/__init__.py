"""
Data Models Package

This package contains all Pydantic models used by SalesBook.
All data flowing through the system must conform to these schemas.
"""

from salesbook.models.transaction import (
    NEW_TRANSACTION_ADAPTER,
    SNAPSHOT_VERSION,
    TRANSACTION_ADAPTER,
    UNCATEGORIZED,
    AppSettingsRecord,
    DailySummary,
    Expense,
    ExpenseCategory,
    NewExpense,
    NewSale,
    NewTransaction,
    PaymentMethod,
    Sale,
    SaleCategory,
    StoreSnapshot,
    Theme,
    Transaction,
    TransactionType,
    UserPreferences,
    ValidationIssue,
    ValidationResult,
    as_utc,
    counterparty_label,
    date_key_for,
    utc_now,
)
from salesbook.models.security import (
    AuthSession,
    PinRecord,
    PinStrength,
    PinVerificationResult,
)
from salesbook.models.report import (
    ActivityItem,
    BestDay,
    DashboardData,
    DashboardPeriod,
    DayPoint,
    ExpenseRatio,
    HistoryFilter,
    HistoryView,
    MonthlyReport,
    MonthStatus,
    PeakHour,
    PerformanceMetrics,
    PeriodData,
    PeriodTotals,
    QuickStat,
    TopCategory,
    WeekOverview,
)
from salesbook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "NEW_TRANSACTION_ADAPTER",
    "SNAPSHOT_VERSION",
    "TRANSACTION_ADAPTER",
    "UNCATEGORIZED",
    "AppSettingsRecord",
    "DailySummary",
    "Expense",
    "ExpenseCategory",
    "NewExpense",
    "NewSale",
    "NewTransaction",
    "PaymentMethod",
    "Sale",
    "SaleCategory",
    "StoreSnapshot",
    "Theme",
    "Transaction",
    "TransactionType",
    "UserPreferences",
    "ValidationIssue",
    "ValidationResult",
    "as_utc",
    "counterparty_label",
    "date_key_for",
    "utc_now",
    # Security models
    "AuthSession",
    "PinRecord",
    "PinStrength",
    "PinVerificationResult",
    # Report models
    "ActivityItem",
    "BestDay",
    "DashboardData",
    "DashboardPeriod",
    "DayPoint",
    "ExpenseRatio",
    "HistoryFilter",
    "HistoryView",
    "MonthlyReport",
    "MonthStatus",
    "PeakHour",
    "PerformanceMetrics",
    "PeriodData",
    "PeriodTotals",
    "QuickStat",
    "TopCategory",
    "WeekOverview",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
