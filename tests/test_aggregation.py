"""
Tests for the pure aggregation functions.

Reference time is Wednesday 2024-05-15 12:00 UTC.
"""

from datetime import date, datetime, timedelta, timezone
from itertools import count

import pytest

from salesbook.models.report import DashboardPeriod, HistoryFilter, MonthStatus
from salesbook.models.transaction import DailySummary, Expense, Sale
from salesbook.queries import aggregation
from salesbook.queries.aggregation import (
    best_group,
    build_dashboard,
    build_monthly_report,
    build_period_data,
    build_quick_stats,
    build_week_chart,
    build_week_overview,
    build_year_overview,
    category_sales,
    expense_ratio,
    filter_calendar_month,
    filter_history,
    format_amount,
    format_hour_range,
    period_totals,
    profit_growth,
    profit_margin,
    recent_daily_summaries,
    render_daily_summary_text,
    render_monthly_report_text,
    round_half_up,
    time_ago,
    weekday_sales,
    worst_group,
)


_ids = count(1)


def at(year, month, day, hour=12, minute=0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def sale(amount, when, **kwargs) -> Sale:
    return Sale(id=f"s{next(_ids)}", amount=amount, occurred_at=when, **kwargs)


def expense(amount, when, category="Supplies", **kwargs) -> Expense:
    return Expense(id=f"e{next(_ids)}", amount=amount, occurred_at=when, category=category, **kwargs)


@pytest.fixture
def may_and_april():
    """Four May transactions and two April ones."""
    return [
        sale(300, at(2024, 5, 6, 10), category="Retail Sales"),   # Monday
        sale(200, at(2024, 5, 7, 9), category="Services"),        # Tuesday
        sale(100, at(2024, 5, 13, 15), category="Services"),      # Monday
        expense(150, at(2024, 5, 8), category="Rent"),
        sale(250, at(2024, 4, 10)),
        expense(50, at(2024, 4, 11)),
    ]


class TestArithmetic:

    @pytest.mark.parametrize("value, digits, expected", [
        (2.5, 0, 3.0),
        (-2.5, 0, -2.0),
        (-2.51, 0, -3.0),
        (-12.25, 1, -12.2),
        (-0.4, 0, 0.0),
        (0.125, 2, 0.13),
        (12.34, 1, 12.3),
    ])
    def test_round_half_up(self, value, digits, expected):
        assert round_half_up(value, digits) == expected

    @pytest.mark.parametrize("current, previous, expected", [
        (200, 100, 100.0),
        (0, 0, 0.0),
        (50, 0, 100.0),
        (-10, 0, 0.0),
        (75, 100, -25.0),
        (150, 200, -25.0),
        (100, 0, 100.0),
        (1, 3, -66.7),
        (351, 400, -12.2),
    ])
    def test_profit_growth(self, current, previous, expected):
        assert profit_growth(current, previous) == expected

    def test_ratios_without_sales_are_zero(self):
        assert expense_ratio(0, 50) == 0
        assert profit_margin(0, -50) == 0

    def test_ratios(self):
        assert expense_ratio(200, 50) == 25
        assert profit_margin(200, 150) == 75
        assert expense_ratio(3, 1) == 33

    def test_negative_halves_round_toward_positive_infinity(self):
        assert profit_margin(200, -5) == -2
        assert profit_margin(200, -7) == -3
        assert str(round_half_up(-0.4)) == "0.0"

    def test_period_totals(self, now):
        totals = period_totals([sale(100, now), sale(20, now), expense(45.5, now)])
        assert totals.sales == 120
        assert totals.expenses == 45.5
        assert totals.profit == 74.5
        assert totals.transactions == 3

    def test_period_totals_empty(self):
        totals = period_totals([])
        assert (totals.sales, totals.expenses, totals.profit, totals.transactions) == (0, 0, 0, 0)


class TestWindows:
    """Rolling dashboard windows differ from calendar months."""

    def test_rolling_month_vs_calendar_month(self, now):
        late_april = sale(40, now - timedelta(days=29))
        txs = [late_april, sale(10, now)]

        periods = build_period_data(txs, now)
        assert periods.month.transactions == 2
        assert filter_calendar_month(txs, 2024, 5) == [txs[1]]
        assert filter_calendar_month(txs, 2024, 4) == [late_april]

    def test_week_is_seven_rolling_days(self, now):
        txs = [
            sale(1, now - timedelta(days=7)),
            sale(2, now - timedelta(days=7, seconds=1)),
        ]
        periods = build_period_data(txs, now)
        assert periods.week.sales == 1
        assert periods.month.sales == 3

    def test_today_uses_date_key(self, now):
        txs = [sale(5, at(2024, 5, 15, 0, 0)), sale(7, at(2024, 5, 14, 23, 59))]
        assert build_period_data(txs, now).today.sales == 5

    def test_calendar_month_end_is_exclusive(self):
        txs = [sale(1, at(2024, 6, 1, 0, 0)), sale(2, at(2024, 5, 31, 23, 59))]
        assert [tx.amount for tx in filter_calendar_month(txs, 2024, 5)] == [2]

    def test_december_bounds(self):
        txs = [sale(1, at(2024, 12, 31, 23, 0)), sale(2, at(2025, 1, 1, 0, 0))]
        assert [tx.amount for tx in filter_calendar_month(txs, 2024, 12)] == [1]


class TestGrouping:

    def test_best_group_tie_goes_to_smallest_key(self):
        assert best_group({"Tuesday": 100, "Monday": 100}) == ("Monday", 100)

    def test_groups_ignore_non_positive(self):
        assert best_group({"Monday": 0}) is None
        assert worst_group({}) is None

    def test_worst_group(self):
        assert worst_group({"Monday": 40, "Friday": 10, "Sunday": 10}) == ("Friday", 10)

    def test_category_sales_counts_sales_only(self, now):
        totals = category_sales([
            sale(10, now, category="Wholesale"),
            sale(5, now),
            expense(99, now, category="Wholesale"),
        ])
        assert totals == {"Wholesale": 10, "Uncategorized": 5}

    def test_weekday_sales(self, may_and_april):
        totals = weekday_sales(filter_calendar_month(may_and_april, 2024, 5))
        assert totals == {"Monday": 400, "Tuesday": 200}


class TestMonthlyReport:

    def test_report(self, may_and_april, now):
        report = build_monthly_report(may_and_april, 2024, 5, now)
        assert report.month_name == "May 2024"
        assert report.sales == 600
        assert report.expenses == 150
        assert report.profit == 450
        assert report.transaction_count == 4
        assert report.previous_month_profit == 200
        assert report.previous_month_sales == 250
        assert report.profit_growth == 125.0
        assert report.best_day == "Monday"
        assert report.worst_day == "Tuesday"
        # Retail Sales and Services tie at 300
        assert report.top_category == "Retail Sales"
        assert report.average_daily_profit == 15
        assert report.expense_ratio == 25
        assert report.sales_increase == 350
        assert report.transaction_growth == 2
        assert report.status is MonthStatus.HAS_DATA

    def test_empty_month(self, may_and_april, now):
        report = build_monthly_report(may_and_april, 2024, 3, now)
        assert report.transaction_count == 0
        assert report.best_day == "N/A"
        assert report.top_category == "N/A"
        assert report.status is MonthStatus.NO_DATA

    def test_future_month_is_upcoming(self, may_and_april, now):
        assert build_monthly_report(may_and_april, 2024, 6, now).status is MonthStatus.UPCOMING

    def test_january_compares_with_previous_december(self, now):
        txs = [sale(100, at(2023, 12, 20)), sale(300, at(2024, 1, 5))]
        report = build_monthly_report(txs, 2024, 1, now)
        assert report.previous_month_profit == 100
        assert report.profit_growth == 200.0

    def test_year_overview(self, may_and_april, now):
        reports = build_year_overview(may_and_april, 2024, now)
        assert [r.month for r in reports] == list(range(1, 13))
        assert reports[3].profit == 200
        assert reports[4].profit == 450

    def test_share_text(self, may_and_april, now):
        text = render_monthly_report_text(build_monthly_report(may_and_april, 2024, 5, now))
        assert text.splitlines() == [
            "Monthly Report - May 2024",
            "Profit: GHS 450",
            "Sales: GHS 600",
            "Expenses: GHS 150",
            "Growth: 125%",
            "Transactions: 4",
            "Best Day: Monday",
            "Top Category: Retail Sales",
        ]


class TestDashboard:

    @pytest.fixture
    def transactions(self, now):
        return [
            sale(80, at(2024, 5, 15, 9), customer="Ama", category="Retail Sales"),
            expense(20, at(2024, 5, 15, 8), vendor="Makola"),
            sale(120, at(2024, 5, 14, 14), category="Wholesale"),
            sale(60, at(2024, 5, 10, 14), category="Retail Sales"),
            sale(500, at(2024, 3, 1, 9), category="Wholesale"),
        ]

    def test_period_totals(self, transactions, now):
        dashboard = build_dashboard(transactions, DashboardPeriod.TODAY, now)
        assert dashboard.periods.today.sales == 80
        assert dashboard.periods.today.expenses == 20
        assert dashboard.periods.week.sales == 260
        assert dashboard.periods.month.transactions == 4
        assert dashboard.profit_margin == 75
        assert dashboard.expense_ratio == 25

    def test_performance_uses_rolling_month(self, transactions, now):
        performance = build_dashboard(transactions, DashboardPeriod.MONTH, now).performance
        assert performance.best_day.day == "Yesterday"
        assert performance.best_day.amount == 120
        # 14:00 bucket holds 180 of 260
        assert performance.peak_hour.hour == "2PM - 3PM"
        assert performance.peak_hour.percentage == 69
        assert performance.top_category.name == "Retail Sales"
        assert performance.top_category.percentage == 54
        assert performance.expense_ratio.percentage == 8
        assert performance.expense_ratio.trend == "up"

    def test_empty_dashboard(self, now):
        dashboard = build_dashboard([], "week", now)
        assert dashboard.performance.best_day.day == "No data"
        assert dashboard.performance.peak_hour.hour == "No data"
        assert dashboard.performance.top_category.percentage == 0
        assert dashboard.recent_activity == []

    def test_recent_activity(self, transactions, now):
        dashboard = build_dashboard(transactions, DashboardPeriod.TODAY, now, activity_limit=2)
        activity = dashboard.recent_activity
        assert [item.description for item in activity] == ["Ama", "Makola"]
        assert [item.time for item in activity] == ["3h ago", "4h ago"]
        assert activity[0].icon == "arrow-up"
        assert activity[1].icon == "arrow-down"

    def test_quick_stats(self, transactions, now):
        periods = build_period_data(transactions, now)
        stats = {s.label: s for s in build_quick_stats(periods, DashboardPeriod.TODAY)}
        assert stats["Avg Daily Sales"].value == "GHS 9"
        assert stats["Transaction Count"].value == "2"
        assert stats["Expense Ratio"].value == "25%"
        assert stats["Expense Ratio"].trend == "up"
        assert stats["Profit Margin"].value == "75%"
        assert stats["Profit Margin"].trend == "up"

    def test_high_expense_ratio_trends_down(self, now):
        periods = build_period_data([sale(100, now), expense(90, now)], now)
        stats = {s.label: s for s in build_quick_stats(periods, DashboardPeriod.TODAY)}
        assert stats["Expense Ratio"].trend == "down"
        assert stats["Profit Margin"].trend == "down"


class TestWeekOverview:
    """Home screen: today's figures and the seven-day chart."""

    @pytest.fixture
    def week(self):
        return [
            sale(100, at(2024, 5, 15, 9)),
            sale(50, at(2024, 5, 15, 10)),
            expense(30, at(2024, 5, 15, 11)),
            sale(70, at(2024, 5, 13)),
            expense(20, at(2024, 5, 11)),
            sale(999, at(2024, 5, 8)),   # eight days back
        ]

    def test_chart_includes_empty_days(self, week, now):
        chart = build_week_chart(week, now)

        assert [p.date_key for p in chart] == [
            "2024-05-09", "2024-05-10", "2024-05-11", "2024-05-12",
            "2024-05-13", "2024-05-14", "2024-05-15",
        ]
        assert [p.day for p in chart] == ["Thu", "Fri", "Sat", "Sun", "Mon", "Tue", "Wed"]
        assert [p.sales for p in chart] == [0, 0, 0, 0, 70, 0, 150]
        assert [p.expenses for p in chart] == [0, 0, 20, 0, 0, 0, 30]

    def test_overview(self, week, now):
        overview = build_week_overview(week, now)

        assert overview.today.sales == 150
        assert overview.today.expenses == 30
        assert overview.today.profit == 120
        assert overview.today_sale_count == 2
        assert overview.total_sales == 220
        # 220 / 7 = 31.43
        assert overview.average_sales == 31
        assert overview.highest_sales == 150
        assert overview.lowest_sales == 0

    def test_no_transactions(self, now):
        overview = build_week_overview([], now)

        assert len(overview.days) == 7
        assert all(p.sales == 0 and p.expenses == 0 for p in overview.days)
        assert overview.today_sale_count == 0
        assert (overview.total_sales, overview.average_sales) == (0, 0)
        assert (overview.highest_sales, overview.lowest_sales) == (0, 0)


class TestHistory:

    @pytest.fixture
    def transactions(self):
        return [
            sale(250, at(2024, 5, 15, 10), customer="Kwame Mensah", notes="secret"),
            expense(12.5, at(2024, 5, 14, 10), vendor="Shell", description="Fuel"),
            sale(40, at(2024, 5, 8, 1), category="Wholesale"),
            sale(10, at(2024, 4, 1)),
        ]

    def test_yesterday(self, transactions, now):
        result = filter_history(transactions, HistoryFilter.YESTERDAY, None, now)
        assert [tx.amount for tx in result] == [12.5]

    def test_week_is_midnight_aligned(self, transactions, now):
        result = filter_history(transactions, HistoryFilter.WEEK, None, now)
        assert [tx.amount for tx in result] == [250, 12.5, 40]

    def test_all_newest_first(self, transactions, now):
        result = filter_history(reversed(transactions), HistoryFilter.ALL, "", now)
        assert [tx.amount for tx in result] == [250, 12.5, 40, 10]

    @pytest.mark.parametrize("query, expected", [
        ("kwame", [250]),
        ("FUEL", [12.5]),
        ("wholesale", [40]),
        ("12.5", [12.5]),
        ("2", [250, 12.5]),
        ("secret", []),
    ])
    def test_search(self, transactions, now, query, expected):
        result = filter_history(transactions, HistoryFilter.ALL, query, now)
        assert [tx.amount for tx in result] == expected

    def test_recent_daily_summaries(self, transactions):
        summaries = recent_daily_summaries(transactions)
        assert [s.date_key for s in summaries] == ["2024-05-15", "2024-05-14", "2024-05-08"]
        assert summaries[1].net_profit == -12.5


class TestFormatting:

    @pytest.mark.parametrize("seconds, expected", [
        (30, "Just now"),
        (5 * 60, "5m ago"),
        (3 * 3600, "3h ago"),
        (2 * 86400 + 60, "2d ago"),
    ])
    def test_time_ago(self, now, seconds, expected):
        assert time_ago(now - timedelta(seconds=seconds), now) == expected

    @pytest.mark.parametrize("hour, expected", [
        (0, "12AM - 1AM"),
        (11, "11AM - 12PM"),
        (14, "2PM - 3PM"),
        (23, "11PM - 12AM"),
    ])
    def test_format_hour_range(self, hour, expected):
        assert format_hour_range(hour) == expected

    def test_format_amount(self):
        assert format_amount(1234.5) == "1,234.5"
        assert format_amount(1000) == "1,000"
        assert format_amount(0) == "0"
        assert format_amount(99.999, 2) == "100.00"

    def test_day_names(self, now):
        assert aggregation.format_day_name("2024-05-15", now) == "Today"
        assert aggregation.format_day_name("2024-05-14", now) == "Yesterday"
        assert aggregation.format_day_name("2024-05-10", now) == "Friday"

    def test_daily_summary_text(self):
        summary = DailySummary(
            date_key="2024-05-06",
            summary_date=date(2024, 5, 6),
            total_sales=1500,
            total_expenses=200.5,
            net_profit=1299.5,
            transaction_count=7,
        )
        assert render_daily_summary_text(summary).splitlines() == [
            "Daily Summary - Mon, 6 May 2024",
            "Sales: GHS 1,500.00",
            "Expenses: GHS 200.50",
            "Net Profit: GHS 1,299.50",
            "Transactions: 7",
        ]
