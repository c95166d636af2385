"""Read-side aggregation and reporting."""

from salesbook.queries.aggregation import (
    best_group,
    build_dashboard,
    build_monthly_report,
    build_week_chart,
    build_week_overview,
    calendar_month_bounds,
    category_sales,
    expense_ratio,
    filter_history,
    period_totals,
    profit_growth,
    profit_margin,
    round_half_up,
    weekday_sales,
    worst_group,
)
from salesbook.queries.reports import ReportEngine

__all__ = [
    "ReportEngine",
    "best_group",
    "build_dashboard",
    "build_monthly_report",
    "build_week_chart",
    "build_week_overview",
    "calendar_month_bounds",
    "category_sales",
    "expense_ratio",
    "filter_history",
    "period_totals",
    "profit_growth",
    "profit_margin",
    "round_half_up",
    "weekday_sales",
    "worst_group",
]
