"""
Report Engine

DESIGN DECISION: Reports are always recomputed.
Every call fetches a fresh transaction list from the store and runs the
pure aggregation functions over it. Nothing is cached, so a report never
disagrees with the data that was just written.

Read failures degrade gracefully: the error is logged and reported to
the user, and the report is computed over an empty list. This applies to
reads only; writes always surface their errors.
"""

from datetime import datetime
from typing import Optional

import structlog

from salesbook.audit.logger import AuditLogger
from salesbook.config import AppSettings
from salesbook.models.report import (
    DashboardData,
    DashboardPeriod,
    HistoryFilter,
    HistoryView,
    MonthlyReport,
    PeriodTotals,
    WeekOverview,
)
from salesbook.models.transaction import (
    DailySummary,
    Transaction,
    as_utc,
    date_key_for,
    utc_now,
)
from salesbook.queries import aggregation
from salesbook.services.notification import Notifier
from salesbook.services.storage.interface import (
    DateBound,
    RecordStoreInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


class ReportEngine:
    """
    Computes dashboard, monthly and history views from stored transactions.

    GUARANTEES:
    - Only returns figures derived from stored data
    - Never raises on a failed read; an empty report is returned instead
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        notifier: Notifier,
        settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._notifier = notifier
        self._settings = settings or AppSettings()
        self._audit = audit_logger

    async def _load(self, report: str) -> list[Transaction]:
        """Fetch every transaction, or an empty list if the read fails."""
        try:
            return await self._store.get_transactions()
        except StorageError as e:
            return await self._degrade(report, e)

    async def _degrade(self, report: str, error: Exception) -> list[Transaction]:
        logger.warning("report_read_failed", report=report, error=str(error))
        self._notifier.error(f"Failed to load {report} data", "Data Error")
        if self._audit is not None:
            await self._audit.log_report_failed(report, str(error))
        return []

    async def dashboard(
        self,
        period: DashboardPeriod = DashboardPeriod.TODAY,
        now: Optional[datetime] = None,
    ) -> DashboardData:
        now = as_utc(now) if now is not None else utc_now()
        transactions = await self._load("dashboard")
        return aggregation.build_dashboard(
            transactions,
            period,
            now,
            currency=self._settings.currency,
            activity_limit=self._settings.recent_activity_limit,
        )

    async def week_overview(self, now: Optional[datetime] = None) -> WeekOverview:
        """Today's totals and the last seven days of sales for the home screen."""
        now = as_utc(now) if now is not None else utc_now()
        transactions = await self._load("dashboard")
        return aggregation.build_week_overview(transactions, now)

    async def period_totals(self, start: DateBound, end: DateBound) -> PeriodTotals:
        """Totals over a custom inclusive range."""
        try:
            transactions = await self._store.get_transactions_by_date_range(start, end)
        except StorageError as e:
            transactions = await self._degrade("custom range", e)
        return aggregation.period_totals(transactions)

    async def monthly_report(
        self,
        year: int,
        month: int,
        now: Optional[datetime] = None,
    ) -> MonthlyReport:
        now = as_utc(now) if now is not None else utc_now()
        transactions = await self._load("monthly report")
        return aggregation.build_monthly_report(transactions, year, month, now)

    async def year_overview(
        self,
        year: int,
        now: Optional[datetime] = None,
    ) -> list[MonthlyReport]:
        """One monthly report per calendar month of `year`."""
        now = as_utc(now) if now is not None else utc_now()
        transactions = await self._load("monthly report")
        return aggregation.build_year_overview(transactions, year, now)

    async def share_monthly_report(
        self,
        year: int,
        month: int,
        now: Optional[datetime] = None,
    ) -> str:
        report = await self.monthly_report(year, month, now)
        return aggregation.render_monthly_report_text(report, self._settings.currency)

    async def transaction_history(
        self,
        history_filter: HistoryFilter = HistoryFilter.TODAY,
        search: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> HistoryView:
        now = as_utc(now) if now is not None else utc_now()
        transactions = await self._load("transaction history")
        return HistoryView(
            transactions=aggregation.filter_history(transactions, history_filter, search, now),
            daily_summaries=aggregation.recent_daily_summaries(transactions),
            history_filter=history_filter,
            search=search,
        )

    async def daily_summary_text(self, now: Optional[datetime] = None) -> Optional[str]:
        """
        Shareable summary of today's figures.

        Reads the persisted summary for today's date key, so the figures
        cover every transaction of the day. Returns None (and warns the
        user) when today has no transactions.
        """
        now = as_utc(now) if now is not None else utc_now()
        today_key = date_key_for(now)
        try:
            summary = await self._store.get_daily_summary(today_key)
        except StorageError as e:
            await self._degrade("daily summary", e)
            summary = DailySummary.empty(today_key)

        if summary.is_empty:
            self._notifier.warning("No summary data available for today", "No Data")
            return None
        return aggregation.render_daily_summary_text(summary, self._settings.currency)
