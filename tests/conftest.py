"""
Shared fixtures for SalesBook tests.

Every store lives in pytest's tmp_path, so tests never share a database.
Time-dependent code always receives an explicit `now`.
"""

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from salesbook.config import AppSettings, SecuritySettings, StorageSettings
from salesbook.services.notification import NotificationSeverity, Notifier
from salesbook.services.storage import SQLiteRecordStore


# Wednesday
NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


class RecordingNotifier(Notifier):
    """Keeps every notification so tests can assert on it."""

    def __init__(self):
        self.messages: list[tuple[NotificationSeverity, str, str]] = []

    def notify(self, severity, message, title=None):
        self.messages.append((NotificationSeverity(severity), message, title))

    def of(self, severity: NotificationSeverity) -> list[tuple[str, str]]:
        return [(m, t) for s, m, t in self.messages if s is severity]


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(currency="GHS")


@pytest.fixture
def security_settings() -> SecuritySettings:
    return SecuritySettings(max_attempts=5, lockout_minutes=5, default_pin="4321")


@pytest_asyncio.fixture
async def store_factory(tmp_path):
    """Create stores on separate files in tmp_path; all are closed afterwards."""
    created = []

    def factory(name: str = "books.db", **kwargs) -> SQLiteRecordStore:
        settings = StorageSettings(
            database_path=str(tmp_path / name),
            connect_attempts=1,
            connect_backoff_seconds=0,
        )
        store = SQLiteRecordStore(settings, **kwargs)
        created.append(store)
        return store

    yield factory

    for store in created:
        await store.close()


@pytest_asyncio.fixture
async def store(store_factory) -> SQLiteRecordStore:
    return store_factory()
