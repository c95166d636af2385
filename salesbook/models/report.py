"""
Report Models

Read-side views produced by the aggregation engine. None of these are
persisted; every instance is recomputed from the transaction log.
"""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field

from salesbook.models.transaction import DailySummary, Transaction


Trend = Literal["up", "down"]


class DashboardPeriod(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


class HistoryFilter(str, Enum):
    """Filters offered by the transaction history view."""
    TODAY = "today"
    YESTERDAY = "yesterday"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"


class MonthStatus(str, Enum):
    UPCOMING = "Upcoming"
    HAS_DATA = "Has Data"
    NO_DATA = "No Data"


class PeriodTotals(BaseModel):
    """Sales, expenses and profit over one window."""

    sales: float = 0.0
    expenses: float = 0.0
    profit: float = 0.0
    transactions: int = Field(default=0, ge=0)


class PeriodData(BaseModel):
    """Dashboard totals: today, rolling 7 days, rolling 30 days."""

    today: PeriodTotals = Field(default_factory=PeriodTotals)
    week: PeriodTotals = Field(default_factory=PeriodTotals)
    month: PeriodTotals = Field(default_factory=PeriodTotals)

    def for_period(self, period: DashboardPeriod) -> PeriodTotals:
        return getattr(self, DashboardPeriod(period).value)


class BestDay(BaseModel):
    day: str = "No data"
    amount: float = 0.0
    trend: Trend = "up"


class PeakHour(BaseModel):
    hour: str = "No data"
    percentage: int = 0


class TopCategory(BaseModel):
    name: str = "No data"
    percentage: int = 0


class ExpenseRatio(BaseModel):
    percentage: int = 0
    trend: Trend = "down"


class PerformanceMetrics(BaseModel):
    best_day: BestDay = Field(default_factory=BestDay)
    peak_hour: PeakHour = Field(default_factory=PeakHour)
    top_category: TopCategory = Field(default_factory=TopCategory)
    expense_ratio: ExpenseRatio = Field(default_factory=ExpenseRatio)


class QuickStat(BaseModel):
    label: str
    value: str
    trend: Trend


class ActivityItem(BaseModel):
    """One line of the recent-activity feed."""

    transaction_id: str
    type: str
    amount: float
    description: str
    time: str
    icon: str


class DashboardData(BaseModel):
    """Everything the dashboard shows for the selected period."""

    selected_period: DashboardPeriod = DashboardPeriod.TODAY
    periods: PeriodData = Field(default_factory=PeriodData)
    performance: PerformanceMetrics = Field(default_factory=PerformanceMetrics)
    quick_stats: list[QuickStat] = Field(default_factory=list)
    recent_activity: list[ActivityItem] = Field(default_factory=list)
    profit_margin: int = 0
    expense_ratio: int = 0


class DayPoint(BaseModel):
    """One bar of the seven-day chart."""

    date_key: str
    day: str
    sales: float = 0.0
    expenses: float = 0.0


class WeekOverview(BaseModel):
    """
    Home screen figures: today's totals plus a seven-day sales series.

    `days` always holds seven entries, oldest first, including days with
    no transactions.
    """

    today: PeriodTotals = Field(default_factory=PeriodTotals)
    today_sale_count: int = 0
    days: list[DayPoint] = Field(default_factory=list)
    total_sales: float = 0.0
    average_sales: int = 0
    highest_sales: float = 0.0
    lowest_sales: float = 0.0


class MonthlyReport(BaseModel):
    """
    Calendar-month report.

    Uses true calendar boundaries, unlike the rolling 30-day dashboard
    window.
    """

    year: int
    month: int = Field(ge=1, le=12)
    month_name: str

    sales: float = 0.0
    expenses: float = 0.0
    profit: float = 0.0
    transaction_count: int = 0

    previous_month_profit: float = 0.0
    previous_month_sales: float = 0.0
    previous_month_transaction_count: int = 0

    best_day: str = "N/A"
    worst_day: str = "N/A"
    top_category: str = "N/A"

    profit_growth: float = 0.0
    average_daily_profit: int = 0
    expense_ratio: int = 0
    sales_increase: float = 0.0
    transaction_growth: int = 0

    status: MonthStatus = MonthStatus.NO_DATA

    @property
    def has_data(self) -> bool:
        return self.transaction_count > 0

    @property
    def growth_direction(self) -> str:
        if self.profit_growth > 0:
            return "positive"
        if self.profit_growth < 0:
            return "negative"
        return "neutral"


class HistoryView(BaseModel):
    transactions: list[Transaction] = Field(default_factory=list)
    daily_summaries: list[DailySummary] = Field(default_factory=list)
    history_filter: HistoryFilter = HistoryFilter.TODAY
    search: Optional[str] = None
