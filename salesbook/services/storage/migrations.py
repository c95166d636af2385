"""
Schema migrations for the SQLite record store.

Migrations are an ordered list of (version, function) pairs. Each applied
version is recorded in `schema_migrations`; versions already recorded are
skipped. All pending migrations run inside one transaction.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

import structlog
from sqlalchemy import Connection, Engine, Table, inspect, text

from salesbook.services.storage.tables import Base, SummaryRow, TransactionRow


logger = structlog.get_logger(__name__)


def _create_index(conn: Connection, table: Table, name: str) -> None:
    index = next(ix for ix in table.indexes if ix.name == name)
    index.create(conn, checkfirst=True)


def _v1_base_tables(conn: Connection) -> None:
    Base.metadata.create_all(conn, checkfirst=True)


def _v2_transaction_date_type_index(conn: Connection) -> None:
    _create_index(conn, TransactionRow.__table__, "ix_transactions_date_key_type")


def _v3_summary_date_index(conn: Connection) -> None:
    _create_index(conn, SummaryRow.__table__, "ix_summaries_date")


MIGRATIONS: list[tuple[int, Callable[[Connection], None]]] = [
    (1, _v1_base_tables),
    (2, _v2_transaction_date_type_index),
    (3, _v3_summary_date_index),
]

LATEST_VERSION = MIGRATIONS[-1][0]


def current_version(conn: Connection) -> int:
    if not inspect(conn).has_table("schema_migrations"):
        return 0
    row = conn.execute(text("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")).one()
    return int(row[0])


def run_migrations(engine: Engine) -> int:
    """
    Bring the database schema up to date.

    Returns:
        The schema version after migrating
    """
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE IF NOT EXISTS schema_migrations "
            "(version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)"
        ))
        version = current_version(conn)

        for target, migration in MIGRATIONS:
            if target <= version:
                continue
            migration(conn)
            conn.execute(
                text("INSERT INTO schema_migrations (version, applied_at) VALUES (:v, :at)"),
                {"v": target, "at": datetime.now(timezone.utc).isoformat()},
            )
            logger.info("schema_migration_applied", version=target)
            version = target

    return version
