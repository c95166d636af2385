"""
Daily Summary Maintenance

DESIGN DECISION: The summary update runs inside the caller's session.
The maintainer never commits; the store commits once after both the
transaction insert and the summary update succeed, so either both are
visible or neither is.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date

import structlog
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from salesbook.models.transaction import TransactionType
from salesbook.services.storage.tables import SummaryRow, TransactionRow


logger = structlog.get_logger(__name__)


class SummaryMaintainer:
    """Keeps the `summaries` table consistent with the transaction log."""

    def apply(
        self,
        session: Session,
        date_key: str,
        transaction_type: TransactionType,
        amount: float,
    ) -> SummaryRow:
        """Fold one new transaction into its day's summary."""
        row = session.get(SummaryRow, date_key)
        if row is None:
            row = SummaryRow(
                date_key=date_key,
                summary_date=date.fromisoformat(date_key),
                total_sales=0.0,
                total_expenses=0.0,
                net_profit=0.0,
                transaction_count=0,
            )
            session.add(row)

        if TransactionType(transaction_type) is TransactionType.SALE:
            row.total_sales += amount
        else:
            row.total_expenses += amount
        row.net_profit = row.total_sales - row.total_expenses
        row.transaction_count += 1

        session.flush()
        return row

    def rebuild(self, session: Session) -> int:
        """
        Recompute every summary from the stored transactions.

        Returns:
            Number of summaries written
        """
        totals: dict[str, list[float]] = defaultdict(lambda: [0.0, 0.0, 0])
        for tx_type, amount, date_key in session.execute(
            select(TransactionRow.type, TransactionRow.amount, TransactionRow.date_key)
        ):
            bucket = totals[date_key]
            if tx_type == TransactionType.SALE.value:
                bucket[0] += amount
            else:
                bucket[1] += amount
            bucket[2] += 1

        session.execute(delete(SummaryRow))
        for date_key, (sales, expenses, count) in totals.items():
            session.add(SummaryRow(
                date_key=date_key,
                summary_date=date.fromisoformat(date_key),
                total_sales=sales,
                total_expenses=expenses,
                net_profit=sales - expenses,
                transaction_count=int(count),
            ))
        session.flush()

        logger.info("summaries_rebuilt", days=len(totals))
        return len(totals)
