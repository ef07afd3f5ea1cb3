"""SQLAlchemy ORM models for the journal database.

Four tables, one per persisted collection:

    orderbooks          one row per distinct uploaded file per user
    executed_trades     raw executed legs, unique on their natural key
    journal_day_stats   versioned day snapshots
    daily_journal       per-day trading plans

``journal_day_stats`` carries a partial unique index on
(user_id, trading_date) restricted to active rows, so the database
itself rejects a second active snapshot for the same day.

Primary keys are UUID strings rather than native UUID columns so the
same schema runs on PostgreSQL and on SQLite in tests.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_uuid() -> str:
    return str(uuid.uuid4())


_MONEY = Numeric(24, 8)


# ---------------------------------------------------------------------------
# Declarative base
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""

    pass


# ---------------------------------------------------------------------------
# OrderbookRecord
# ---------------------------------------------------------------------------

class OrderbookRecord(Base):
    """An uploaded orderbook file, deduplicated by content hash per user."""

    __tablename__ = "orderbooks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    file_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    source_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    broker: Mapped[str] = mapped_column(String(32), nullable=False, default="unknown")
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "file_hash", name="uq_orderbooks_user_hash"),
    )

    def __repr__(self) -> str:
        return f"<OrderbookRecord {self.id} user={self.user_id} hash={self.file_hash[:12]}>"


# ---------------------------------------------------------------------------
# ExecutedTradeRecord
# ---------------------------------------------------------------------------

class ExecutedTradeRecord(Base):
    """A raw executed leg, shown in the calendar day view."""

    __tablename__ = "executed_trades"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    trading_date: Mapped[date] = mapped_column(Date, nullable=False)
    symbol: Mapped[str] = mapped_column(String(64), nullable=False)
    trade_type: Mapped[str] = mapped_column(String(8), nullable=False)  # BUY / SELL
    price: Mapped[Decimal] = mapped_column(_MONEY, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    trade_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    charges: Mapped[Decimal] = mapped_column(_MONEY, nullable=False, default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "trading_date", "symbol", "trade_type", "price", "quantity",
            name="uq_executed_trades_natural_key",
        ),
        Index("ix_executed_trades_user_date", "user_id", "trading_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<ExecutedTradeRecord {self.symbol} {self.trade_type} "
            f"{self.quantity}@{self.price} on {self.trading_date}>"
        )


# ---------------------------------------------------------------------------
# DaySnapshotRecord
# ---------------------------------------------------------------------------

class DaySnapshotRecord(Base):
    """One version of a user's statistics for one trading day."""

    __tablename__ = "journal_day_stats"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    trading_date: Mapped[date] = mapped_column(Date, nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    broker: Mapped[str] = mapped_column(String(32), nullable=False, default="unknown")
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_superseded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    frozen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )

    # Aggregates
    trade_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    net_pnl: Mapped[Decimal] = mapped_column(_MONEY, nullable=False, default=Decimal("0"))
    gross_profit: Mapped[Decimal] = mapped_column(_MONEY, nullable=False, default=Decimal("0"))
    gross_loss: Mapped[Decimal] = mapped_column(_MONEY, nullable=False, default=Decimal("0"))
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    win_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    profit_factor: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    best_trade_pnl: Mapped[Decimal] = mapped_column(_MONEY, nullable=False, default=Decimal("0"))
    worst_trade_pnl: Mapped[Decimal] = mapped_column(_MONEY, nullable=False, default=Decimal("0"))
    fees: Mapped[Decimal] = mapped_column(_MONEY, nullable=False, default=Decimal("0"))
    symbol_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    long_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    short_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index(
            "uq_journal_day_stats_active",
            "user_id",
            "trading_date",
            unique=True,
            postgresql_where=text("NOT is_superseded"),
            sqlite_where=text("NOT is_superseded"),
        ),
        UniqueConstraint(
            "user_id", "trading_date", "version",
            name="uq_journal_day_stats_version",
        ),
        Index("ix_journal_day_stats_user_date", "user_id", "trading_date"),
    )

    def __repr__(self) -> str:
        state = "superseded" if self.is_superseded else "active"
        return (
            f"<DaySnapshotRecord {self.user_id} {self.trading_date} "
            f"v{self.version} {state}>"
        )


# ---------------------------------------------------------------------------
# DailyPlanRecord
# ---------------------------------------------------------------------------

class DailyPlanRecord(Base):
    """A user's plan for one day; planned trades are kept as a JSON list."""

    __tablename__ = "daily_journal"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    plan_date: Mapped[date] = mapped_column(Date, nullable=False)
    plan_notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    planned_trades: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Mindset
    confidence_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    stress_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    distractions: Mapped[str | None] = mapped_column(Text, nullable=True)
    sleep_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    mood: Mapped[str | None] = mapped_column(String(64), nullable=True)
    focus: Mapped[int | None] = mapped_column(Integer, nullable=True)
    energy: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "plan_date", name="uq_daily_journal_user_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<DailyPlanRecord {self.user_id} {self.plan_date} "
            f"trades={len(self.planned_trades or [])}>"
        )
