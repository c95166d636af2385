"""
Aggregation Engine

Pure functions that derive every read-side view from a list of
transactions. Nothing here touches storage or keeps state; callers fetch
a fresh transaction list and recompute on every request.

DESIGN DECISION: Two windowing policies exist and must stay separate:
- Dashboard windows are rolling: "week" is now - 7 days and "month" is
  now - 30 days, never aligned to calendar boundaries.
- The monthly report uses true calendar months: [first instant of the
  month, first instant of the next month).

All day, weekday and hour buckets are evaluated in UTC. Percentages are
rounded half-up, with exact halves going toward positive infinity (-2.5
becomes -2), never banker's rounding.
"""

from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_DOWN, ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

from salesbook.models.report import (
    ActivityItem,
    BestDay,
    DashboardData,
    DashboardPeriod,
    DayPoint,
    ExpenseRatio,
    HistoryFilter,
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
from salesbook.models.transaction import (
    UNCATEGORIZED,
    DailySummary,
    Expense,
    Sale,
    Transaction,
    TransactionType,
    as_utc,
    counterparty_label,
    date_key_for,
)


NO_DATA = "No data"
NOT_AVAILABLE = "N/A"

WEEKDAYS = (
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
)
MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

# Quick-stat trend thresholds
HIGH_EXPENSE_RATIO = 70
HEALTHY_PROFIT_MARGIN = 20

DAYS_PER_MONTH = 30


# =============================================================================
# ARITHMETIC
# =============================================================================

def _decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_half_up(value, digits: int = 0) -> float:
    """
    Round to `digits` decimals; exact halves go toward positive infinity.

    Negative halves therefore round toward zero: -12.25 -> -12.2.
    """
    value = _decimal(value)
    quantum = Decimal(1).scaleb(-digits)
    rounding = ROUND_HALF_UP if value >= 0 else ROUND_HALF_DOWN
    # + 0.0 turns -0.0 into 0.0
    return float(value.quantize(quantum, rounding=rounding)) + 0.0


def _percent(part: float, whole: float) -> int:
    if whole == 0:
        return 0
    return int(round_half_up(_decimal(part) / _decimal(whole) * 100))


def profit_growth(current: float, previous: float) -> float:
    """
    Period-over-period growth in percent, one decimal.

    A zero previous value is a display convention, not a rate: growth is
    100 when the current value is positive and 0 otherwise.
    """
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    change = (_decimal(current) - _decimal(previous)) / _decimal(previous)
    return round_half_up(change * 100, 1)


def expense_ratio(sales: float, expenses: float) -> int:
    """Expenses as a whole percentage of sales; 0 when there are no sales."""
    return _percent(expenses, sales)


def profit_margin(sales: float, profit: float) -> int:
    """Profit as a whole percentage of sales; 0 when there are no sales."""
    return _percent(profit, sales)


def period_totals(transactions: Iterable[Transaction]) -> PeriodTotals:
    sales = 0.0
    expenses = 0.0
    count = 0
    for tx in transactions:
        if tx.type == TransactionType.SALE:
            sales += tx.amount
        else:
            expenses += tx.amount
        count += 1
    return PeriodTotals(
        sales=sales,
        expenses=expenses,
        profit=sales - expenses,
        transactions=count,
    )


# =============================================================================
# WINDOWS
# =============================================================================

def filter_on_date(transactions: Iterable[Transaction], date_key: str) -> list[Transaction]:
    return [tx for tx in transactions if tx.date_key == date_key]


def filter_since(transactions: Iterable[Transaction], start: datetime) -> list[Transaction]:
    """Transactions at or after `start` (no upper bound)."""
    start = as_utc(start)
    return [tx for tx in transactions if tx.occurred_at >= start]


def dashboard_windows(now: datetime) -> tuple[str, datetime, datetime]:
    """(today's date key, rolling week start, rolling month start)."""
    now = as_utc(now)
    return (
        date_key_for(now),
        now - timedelta(days=7),
        now - timedelta(days=DAYS_PER_MONTH),
    )


def previous_month(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def calendar_month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    """[first instant of the month, first instant of the next month)."""
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(year, month + 1, 1, tzinfo=timezone.utc)
    return start, end


def filter_calendar_month(
    transactions: Iterable[Transaction],
    year: int,
    month: int,
) -> list[Transaction]:
    start, end = calendar_month_bounds(year, month)
    return [tx for tx in transactions if start <= tx.occurred_at < end]


def _midnight(now: datetime) -> datetime:
    return as_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)


# =============================================================================
# GROUPING
# =============================================================================

def daily_totals(transactions: Iterable[Transaction]) -> dict[str, PeriodTotals]:
    """Totals per date key."""
    by_day: dict[str, list[Transaction]] = defaultdict(list)
    for tx in transactions:
        by_day[tx.date_key].append(tx)
    return {key: period_totals(txs) for key, txs in by_day.items()}


def weekday_sales(transactions: Iterable[Transaction]) -> dict[str, float]:
    """Sale amounts summed per weekday name."""
    totals: dict[str, float] = defaultdict(float)
    for tx in transactions:
        if tx.type == TransactionType.SALE:
            totals[WEEKDAYS[tx.occurred_at.weekday()]] += tx.amount
    return dict(totals)


def category_sales(transactions: Iterable[Transaction]) -> dict[str, float]:
    """Sale amounts summed per category; a missing category is 'Uncategorized'."""
    totals: dict[str, float] = defaultdict(float)
    for tx in transactions:
        if tx.type == TransactionType.SALE:
            totals[tx.category or UNCATEGORIZED] += tx.amount
    return dict(totals)


def hourly_sales(transactions: Iterable[Transaction]) -> dict[int, float]:
    """Sale amounts summed per UTC hour of day."""
    totals: dict[int, float] = defaultdict(float)
    for tx in transactions:
        if tx.type == TransactionType.SALE:
            totals[tx.occurred_at.hour] += tx.amount
    return dict(totals)


def best_group(totals: dict) -> Optional[tuple]:
    """
    Group with the largest positive sum.

    Ties go to the smallest key, so the result never depends on the order
    transactions were read in.
    """
    candidates = [(key, value) for key, value in totals.items() if value > 0]
    if not candidates:
        return None
    return min(candidates, key=lambda kv: (-kv[1], kv[0]))


def worst_group(totals: dict) -> Optional[tuple]:
    """Group with the smallest positive sum (ties go to the smallest key)."""
    candidates = [(key, value) for key, value in totals.items() if value > 0]
    if not candidates:
        return None
    return min(candidates, key=lambda kv: (kv[1], kv[0]))


# =============================================================================
# FORMATTING
# =============================================================================

def format_amount(amount: float, decimals: Optional[int] = None) -> str:
    """
    Thousands-separated amount.

    With `decimals` the value is fixed-point; without, trailing zeros are
    dropped (at most 3 decimals).
    """
    if decimals is not None:
        return f"{amount:,.{decimals}f}"
    text = f"{amount:,.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def format_currency(amount: float, currency: str = "GHS", decimals: Optional[int] = None) -> str:
    return f"{currency} {format_amount(amount, decimals)}"


def month_name(month: int) -> str:
    return MONTHS[month - 1]


def format_day_name(date_key: str, now: datetime) -> str:
    """'Today', 'Yesterday', or the weekday name for a date key."""
    if date_key == NO_DATA:
        return NO_DATA
    day = date.fromisoformat(date_key)
    today = as_utc(now).date()
    if day == today:
        return "Today"
    if day == today - timedelta(days=1):
        return "Yesterday"
    return WEEKDAYS[day.weekday()]


def format_hour_range(hour: int) -> str:
    """12-hour label for a one-hour bucket, e.g. '2PM - 3PM'."""
    def label(h: int) -> str:
        h %= 24
        suffix = "AM" if h < 12 else "PM"
        return f"{h % 12 or 12}{suffix}"
    return f"{label(hour)} - {label(hour + 1)}"


def format_summary_date(day: date) -> str:
    """e.g. 'Mon, 6 May 2024'."""
    return f"{WEEKDAYS[day.weekday()][:3]}, {day.day} {MONTHS[day.month - 1][:3]} {day.year}"


def time_ago(then: datetime, now: datetime) -> str:
    elapsed = (as_utc(now) - as_utc(then)).total_seconds()
    minutes = int(elapsed // 60)
    hours = int(elapsed // 3600)
    days = int(elapsed // 86400)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    return f"{days}d ago"


def _amount_text(amount: float) -> str:
    """Plain number text used by search ('100', '12.5')."""
    if amount == int(amount):
        return str(int(amount))
    return repr(amount)


def render_monthly_report_text(report: MonthlyReport, currency: str = "GHS") -> str:
    """Shareable plain-text version of a monthly report."""
    return "\n".join([
        f"Monthly Report - {report.month_name}",
        f"Profit: {format_currency(report.profit, currency)}",
        f"Sales: {format_currency(report.sales, currency)}",
        f"Expenses: {format_currency(report.expenses, currency)}",
        f"Growth: {report.profit_growth:g}%",
        f"Transactions: {report.transaction_count}",
        f"Best Day: {report.best_day}",
        f"Top Category: {report.top_category}",
    ])


def render_daily_summary_text(summary: DailySummary, currency: str = "GHS") -> str:
    return "\n".join([
        f"Daily Summary - {format_summary_date(summary.summary_date)}",
        f"Sales: {format_currency(summary.total_sales, currency, 2)}",
        f"Expenses: {format_currency(summary.total_expenses, currency, 2)}",
        f"Net Profit: {format_currency(summary.net_profit, currency, 2)}",
        f"Transactions: {summary.transaction_count}",
    ])


# =============================================================================
# DASHBOARD
# =============================================================================

def build_period_data(transactions: Sequence[Transaction], now: datetime) -> PeriodData:
    today_key, week_start, month_start = dashboard_windows(now)
    return PeriodData(
        today=period_totals(filter_on_date(transactions, today_key)),
        week=period_totals(filter_since(transactions, week_start)),
        month=period_totals(filter_since(transactions, month_start)),
    )


def build_performance_metrics(
    transactions: Sequence[Transaction],
    period_data: PeriodData,
    period: DashboardPeriod,
    now: datetime,
) -> PerformanceMetrics:
    """
    Best day, peak hour and top category over the rolling 30-day window,
    plus the expense ratio of the selected period.
    """
    _, _, month_start = dashboard_windows(now)
    recent = filter_since(transactions, month_start)

    best_day = BestDay()
    best = best_group({key: t.sales for key, t in daily_totals(recent).items()})
    if best is not None:
        best_day = BestDay(day=format_day_name(best[0], now), amount=best[1], trend="up")

    peak_hour = PeakHour()
    hourly = hourly_sales(recent)
    peak = best_group(hourly)
    if peak is not None:
        peak_hour = PeakHour(
            hour=format_hour_range(peak[0]),
            percentage=_percent(peak[1], sum(hourly.values())),
        )

    top_category = TopCategory()
    top = best_group(category_sales(recent))
    if top is not None:
        top_category = TopCategory(
            name=top[0],
            percentage=_percent(top[1], period_data.month.sales),
        )

    selected = period_data.for_period(period)
    ratio = expense_ratio(selected.sales, selected.expenses)

    return PerformanceMetrics(
        best_day=best_day,
        peak_hour=peak_hour,
        top_category=top_category,
        expense_ratio=ExpenseRatio(
            percentage=ratio,
            trend="down" if ratio > HIGH_EXPENSE_RATIO else "up",
        ),
    )


def build_quick_stats(
    period_data: PeriodData,
    period: DashboardPeriod,
    currency: str = "GHS",
) -> list[QuickStat]:
    selected = period_data.for_period(period)
    month = period_data.month

    avg_daily_sales = month.sales / DAYS_PER_MONTH if month.transactions > 0 else 0.0
    ratio = expense_ratio(selected.sales, selected.expenses)
    margin = profit_margin(selected.sales, selected.profit)

    return [
        QuickStat(
            label="Avg Daily Sales",
            value=f"{currency} {int(round_half_up(avg_daily_sales))}",
            trend="up",
        ),
        QuickStat(label="Transaction Count", value=str(selected.transactions), trend="up"),
        QuickStat(
            label="Expense Ratio",
            value=f"{ratio}%",
            trend="down" if ratio > HIGH_EXPENSE_RATIO else "up",
        ),
        QuickStat(
            label="Profit Margin",
            value=f"{margin}%",
            trend="up" if margin > HEALTHY_PROFIT_MARGIN else "down",
        ),
    ]


def build_recent_activity(
    transactions: Iterable[Transaction],
    now: datetime,
    limit: int = 10,
) -> list[ActivityItem]:
    newest = sorted(transactions, key=lambda tx: tx.occurred_at, reverse=True)[:limit]
    return [
        ActivityItem(
            transaction_id=tx.id,
            type=tx.type,
            amount=tx.amount,
            description=counterparty_label(tx),
            time=time_ago(tx.occurred_at, now),
            icon="arrow-up" if tx.type == TransactionType.SALE else "arrow-down",
        )
        for tx in newest
    ]


def build_dashboard(
    transactions: Sequence[Transaction],
    period: DashboardPeriod,
    now: datetime,
    currency: str = "GHS",
    activity_limit: int = 10,
) -> DashboardData:
    period = DashboardPeriod(period)
    period_data = build_period_data(transactions, now)
    selected = period_data.for_period(period)
    return DashboardData(
        selected_period=period,
        periods=period_data,
        performance=build_performance_metrics(transactions, period_data, period, now),
        quick_stats=build_quick_stats(period_data, period, currency),
        recent_activity=build_recent_activity(transactions, now, activity_limit),
        profit_margin=profit_margin(selected.sales, selected.profit),
        expense_ratio=expense_ratio(selected.sales, selected.expenses),
    )


# =============================================================================
# HOME
# =============================================================================

def build_week_chart(
    transactions: Iterable[Transaction],
    now: datetime,
    days: int = 7,
) -> list[DayPoint]:
    """Sales and expenses per UTC day for the last `days` days, oldest first."""
    today = as_utc(now).date()
    totals = daily_totals(transactions)
    chart = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        key = day.isoformat()
        day_totals = totals.get(key, PeriodTotals())
        chart.append(DayPoint(
            date_key=key,
            day=WEEKDAYS[day.weekday()][:3],
            sales=day_totals.sales,
            expenses=day_totals.expenses,
        ))
    return chart


def build_week_overview(transactions: Sequence[Transaction], now: datetime) -> WeekOverview:
    today_txs = filter_on_date(transactions, date_key_for(as_utc(now)))
    chart = build_week_chart(transactions, now)
    daily_sales = [point.sales for point in chart]
    total = sum(daily_sales)
    return WeekOverview(
        today=period_totals(today_txs),
        today_sale_count=sum(1 for tx in today_txs if tx.type == TransactionType.SALE),
        days=chart,
        total_sales=total,
        average_sales=int(round_half_up(total / len(chart))),
        highest_sales=max(daily_sales),
        lowest_sales=min(daily_sales),
    )


# =============================================================================
# MONTHLY REPORT
# =============================================================================

def build_monthly_report(
    transactions: Sequence[Transaction],
    year: int,
    month: int,
    now: datetime,
) -> MonthlyReport:
    current_txs = filter_calendar_month(transactions, year, month)
    current = period_totals(current_txs)
    previous = period_totals(filter_calendar_month(transactions, *previous_month(year, month)))

    by_weekday = weekday_sales(current_txs)
    best = best_group(by_weekday)
    worst = worst_group(by_weekday)
    top = best_group(category_sales(current_txs))

    now = as_utc(now)
    if (year, month) > (now.year, now.month):
        status = MonthStatus.UPCOMING
    elif current.transactions > 0:
        status = MonthStatus.HAS_DATA
    else:
        status = MonthStatus.NO_DATA

    return MonthlyReport(
        year=year,
        month=month,
        month_name=f"{month_name(month)} {year}",
        sales=current.sales,
        expenses=current.expenses,
        profit=current.profit,
        transaction_count=current.transactions,
        previous_month_profit=previous.profit,
        previous_month_sales=previous.sales,
        previous_month_transaction_count=previous.transactions,
        best_day=best[0] if best else NOT_AVAILABLE,
        worst_day=worst[0] if worst else NOT_AVAILABLE,
        top_category=top[0] if top else NOT_AVAILABLE,
        profit_growth=profit_growth(current.profit, previous.profit),
        average_daily_profit=int(round_half_up(current.profit / DAYS_PER_MONTH)),
        expense_ratio=expense_ratio(current.sales, current.expenses),
        sales_increase=current.sales - previous.sales,
        transaction_growth=current.transactions - previous.transactions,
        status=status,
    )


def build_year_overview(
    transactions: Sequence[Transaction],
    year: int,
    now: datetime,
) -> list[MonthlyReport]:
    return [build_monthly_report(transactions, year, month, now) for month in range(1, 13)]


# =============================================================================
# HISTORY
# =============================================================================

def _matches_search(tx: Transaction, query: str) -> bool:
    if isinstance(tx, Sale):
        fields = [tx.customer, tx.category]
    elif isinstance(tx, Expense):
        fields = [tx.vendor, tx.description, tx.category]
    else:
        fields = []
    fields.append(_amount_text(tx.amount))
    return any(query in text.lower() for text in fields if text)


def filter_history(
    transactions: Iterable[Transaction],
    history_filter: HistoryFilter,
    search: Optional[str],
    now: datetime,
) -> list[Transaction]:
    """
    Transaction history filter.

    Day windows here are aligned to UTC midnight: "week" means since
    midnight seven days ago, unlike the rolling dashboard window.
    """
    history_filter = HistoryFilter(history_filter)
    midnight = _midnight(now)
    today = midnight.date()
    result = list(transactions)

    if history_filter is HistoryFilter.TODAY:
        result = [tx for tx in result if tx.occurred_at.date() == today]
    elif history_filter is HistoryFilter.YESTERDAY:
        yesterday = today - timedelta(days=1)
        result = [tx for tx in result if tx.occurred_at.date() == yesterday]
    elif history_filter is HistoryFilter.WEEK:
        result = filter_since(result, midnight - timedelta(days=7))
    elif history_filter is HistoryFilter.MONTH:
        result = filter_since(result, midnight - timedelta(days=DAYS_PER_MONTH))

    query = (search or "").strip().lower()
    if query:
        result = [tx for tx in result if _matches_search(tx, query)]

    return sorted(result, key=lambda tx: tx.occurred_at, reverse=True)


def recent_daily_summaries(
    transactions: Iterable[Transaction],
    sample: int = 50,
    days: int = 3,
) -> list[DailySummary]:
    """Day summaries built from the newest `sample` transactions, newest day first."""
    newest = sorted(transactions, key=lambda tx: tx.occurred_at, reverse=True)[:sample]
    summaries = []
    for key, totals in daily_totals(newest).items():
        summaries.append(DailySummary(
            date_key=key,
            summary_date=date.fromisoformat(key),
            total_sales=totals.sales,
            total_expenses=totals.expenses,
            net_profit=totals.profit,
            transaction_count=totals.transactions,
        ))
    summaries.sort(key=lambda s: s.date_key, reverse=True)
    return summaries[:days]
