"""
ORM table definitions for the SQLite record store.

Timestamps are stored as naive UTC; the store converts them back to aware
datetimes when building pydantic models.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class TransactionRow(Base):
    __tablename__ = "transactions"
    __table_args__ = (Index("ix_transactions_date_key_type", "date_key", "type"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(
        "datetime", DateTime, nullable=False, index=True
    )
    date_key: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    # Sale fields
    customer: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Expense fields
    vendor: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(32), nullable=True)


class SummaryRow(Base):
    __tablename__ = "summaries"
    __table_args__ = (Index("ix_summaries_date", "date"),)

    date_key: Mapped[str] = mapped_column(String(10), primary_key=True)
    summary_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    total_sales: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_expenses: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    net_profit: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    transaction_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class PreferencesRow(Base):
    __tablename__ = "preferences"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    theme: Mapped[str] = mapped_column(String(8), nullable=False, default="light")
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="GHS")
    business_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    business_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    default_categories: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    notification_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class PinSettingsRow(Base):
    __tablename__ = "pin_settings"

    # Singleton: always id 1
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    pin: Mapped[str] = mapped_column(String(4), nullable=False)
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    last_modified: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    failed_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_attempt: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    lock_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class SettingsRow(Base):
    __tablename__ = "settings"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)


PIN_ROW_ID = 1

__all__ = [
    "Base",
    "PIN_ROW_ID",
    "PinSettingsRow",
    "PreferencesRow",
    "SettingsRow",
    "SummaryRow",
    "TransactionRow",
]
