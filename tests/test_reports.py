"""
Tests for the report engine.

Reports are recomputed from the store on every call, and a failed read
yields an empty report plus a user notification instead of an exception.
"""

from datetime import timedelta

import pytest

from salesbook.audit import AuditLogger
from salesbook.models.audit import AuditEventType
from salesbook.models.report import DashboardPeriod, HistoryFilter
from salesbook.models.transaction import NewExpense, NewSale
from salesbook.queries import ReportEngine
from salesbook.services.notification import NotificationSeverity
from salesbook.services.storage import RecordStoreInterface, StorageError


class UnreadableStore(RecordStoreInterface):
    """Every operation fails as if the database were corrupt."""

    def _fail(self, *args, **kwargs):
        raise StorageError("database disk image is malformed")

    async def add_transaction(self, data):
        self._fail()

    async def get_transactions(self, date_key=None):
        self._fail()

    async def get_transactions_by_date_range(self, start, end):
        self._fail()

    async def get_daily_summary(self, date_key):
        self._fail()

    async def get_all_summaries(self):
        self._fail()

    async def get_pin_record(self):
        self._fail()

    async def save_pin_record(self, record):
        self._fail()

    async def get_user_preferences(self):
        self._fail()

    async def save_user_preferences(self, prefs):
        self._fail()

    async def get_app_settings(self):
        self._fail()

    async def save_app_settings(self, record):
        self._fail()

    async def export_all(self):
        self._fail()

    async def import_all(self, snapshot, rebuild_summaries=False):
        self._fail()

    async def close(self):
        pass


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger()


@pytest.fixture
def reports(store, notifier, app_settings, audit_logger) -> ReportEngine:
    return ReportEngine(store, notifier, app_settings, audit_logger)


@pytest.fixture
def broken_reports(notifier, app_settings, audit_logger) -> ReportEngine:
    return ReportEngine(UnreadableStore(), notifier, app_settings, audit_logger)


class TestRecompute:
    """Reports always reflect the latest committed writes."""

    @pytest.mark.asyncio
    async def test_dashboard_sees_new_writes(self, reports, store, now):
        before = await reports.dashboard(DashboardPeriod.TODAY, now)
        assert before.periods.today.sales == 0

        await store.add_transaction(NewSale(amount=90, occurred_at=now - timedelta(hours=1)))
        after = await reports.dashboard(DashboardPeriod.TODAY, now)
        assert after.periods.today.sales == 90
        assert after.recent_activity[0].time == "1h ago"

    @pytest.mark.asyncio
    async def test_week_overview(self, reports, store, now):
        await store.add_transaction(NewSale(amount=40, occurred_at=now))
        await store.add_transaction(NewSale(amount=60, occurred_at=now - timedelta(days=2)))

        overview = await reports.week_overview(now)
        assert overview.today_sale_count == 1
        assert [p.sales for p in overview.days] == [0, 0, 0, 0, 60, 0, 40]
        assert overview.highest_sales == 60

    @pytest.mark.asyncio
    async def test_monthly_report(self, reports, store, now):
        await store.add_transaction(NewSale(amount=300, occurred_at=now, category="Services"))
        await store.add_transaction(NewExpense(amount=100, occurred_at=now, category="Rent"))

        report = await reports.monthly_report(2024, 5, now)
        assert report.profit == 200
        assert report.best_day == "Wednesday"
        assert report.top_category == "Services"

        text = await reports.share_monthly_report(2024, 5, now)
        assert text.startswith("Monthly Report - May 2024\nProfit: GHS 200")

    @pytest.mark.asyncio
    async def test_period_totals_for_custom_range(self, reports, store, now):
        await store.add_transaction(NewSale(amount=10, occurred_at=now - timedelta(days=1)))
        await store.add_transaction(NewSale(amount=20, occurred_at=now - timedelta(days=5)))

        totals = await reports.period_totals("2024-05-13", "2024-05-15")
        assert totals.sales == 10
        assert totals.transactions == 1

    @pytest.mark.asyncio
    async def test_transaction_history(self, reports, store, now):
        await store.add_transaction(NewSale(amount=10, occurred_at=now, customer="Esi"))
        await store.add_transaction(NewSale(amount=20, occurred_at=now - timedelta(days=1)))

        view = await reports.transaction_history(HistoryFilter.TODAY, None, now)
        assert [tx.amount for tx in view.transactions] == [10]
        assert [s.date_key for s in view.daily_summaries] == ["2024-05-15", "2024-05-14"]

        searched = await reports.transaction_history(HistoryFilter.ALL, "esi", now)
        assert [tx.amount for tx in searched.transactions] == [10]

    @pytest.mark.asyncio
    async def test_daily_summary_text(self, reports, store, notifier, now):
        assert await reports.daily_summary_text(now) is None
        assert notifier.of(NotificationSeverity.WARNING) == [
            ("No summary data available for today", "No Data"),
        ]

        await store.add_transaction(NewSale(amount=120, occurred_at=now))
        text = await reports.daily_summary_text(now)
        assert text.splitlines()[0] == "Daily Summary - Wed, 15 May 2024"
        assert "Sales: GHS 120.00" in text

    @pytest.mark.asyncio
    async def test_daily_summary_text_covers_busy_day(self, reports, store, now):
        for i in range(60):
            await store.add_transaction(NewSale(amount=10, occurred_at=now - timedelta(minutes=i)))

        text = await reports.daily_summary_text(now)
        assert "Sales: GHS 600.00" in text
        assert text.splitlines()[-1] == "Transactions: 60"


class TestGracefulDegradation:
    """Read failures produce empty reports, never exceptions."""

    @pytest.mark.asyncio
    async def test_dashboard(self, broken_reports, notifier, audit_logger, now):
        dashboard = await broken_reports.dashboard(DashboardPeriod.MONTH, now)

        assert dashboard.periods.month.transactions == 0
        assert dashboard.recent_activity == []
        assert notifier.of(NotificationSeverity.ERROR) == [
            ("Failed to load dashboard data", "Data Error"),
        ]
        assert audit_logger.recent_events[-1].event_type is AuditEventType.REPORT_FAILED

    @pytest.mark.asyncio
    async def test_monthly_and_history(self, broken_reports, now):
        report = await broken_reports.monthly_report(2024, 5, now)
        assert report.transaction_count == 0
        assert report.profit_growth == 0.0

        view = await broken_reports.transaction_history(HistoryFilter.ALL, "x", now)
        assert view.transactions == []

    @pytest.mark.asyncio
    async def test_week_overview(self, broken_reports, now):
        overview = await broken_reports.week_overview(now)
        assert len(overview.days) == 7
        assert overview.total_sales == 0

    @pytest.mark.asyncio
    async def test_custom_range(self, broken_reports, notifier):
        totals = await broken_reports.period_totals("2024-05-01", "2024-05-31")
        assert totals.transactions == 0
        assert notifier.of(NotificationSeverity.ERROR)[0][0] == "Failed to load custom range data"

    @pytest.mark.asyncio
    async def test_daily_summary_text(self, broken_reports, notifier, now):
        assert await broken_reports.daily_summary_text(now) is None
        assert notifier.of(NotificationSeverity.ERROR) == [
            ("Failed to load daily summary data", "Data Error"),
        ]
        assert notifier.of(NotificationSeverity.WARNING) == [
            ("No summary data available for today", "No Data"),
        ]
