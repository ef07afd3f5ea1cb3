"""Persisted domain models.

These are the documents the journal writes to its store.  The
in-memory trade models used while computing statistics live in
:mod:`tradebook_journal.journal.record`.
"""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, Field, PlainSerializer, field_validator

from .enums import Direction, SnapshotState
from .ids import new_id, utc_now

# Money stays exact in Python and serializes to a JSON number
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# ---------------------------------------------------------------------------
# Orderbook upload metadata
# ---------------------------------------------------------------------------

class OrderbookMeta(BaseModel):
    """One uploaded source file, unique per (user_id, file_hash)."""

    id: str = Field(default_factory=new_id)
    user_id: str
    file_hash: str
    source_name: str = ""
    size: int = 0
    broker: str = "unknown"
    uploaded_at: datetime = Field(default_factory=utc_now)


# ---------------------------------------------------------------------------
# Executed legs (raw rows kept for the calendar day view)
# ---------------------------------------------------------------------------

class ExecutedLeg(BaseModel):
    """A raw executed leg, recorded once per natural key."""

    user_id: str
    trading_date: date
    symbol: str
    direction: Direction
    price: Money
    quantity: int
    trade_time: time | None = None
    charges: Money = Decimal("0")
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def natural_key(self) -> tuple:
        return (
            self.user_id,
            self.trading_date,
            self.symbol,
            self.direction.value.upper(),
            self.price,
            self.quantity,
        )


# ---------------------------------------------------------------------------
# Day snapshot
# ---------------------------------------------------------------------------

class DayAggregates(BaseModel):
    """Day-level statistics computed from the round trips closed that day."""

    trade_count: int = 0
    net_pnl: Money = Decimal("0")
    gross_profit: Money = Decimal("0")
    gross_loss: Money = Decimal("0")
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0
    profit_factor: float = 0.0
    best_trade_pnl: Money = Decimal("0")
    worst_trade_pnl: Money = Decimal("0")
    fees: Money = Decimal("0")
    symbol_count: int = 0
    long_count: int = 0
    short_count: int = 0


class DaySnapshot(DayAggregates):
    """Immutable, versioned statistics for one (user, trading date).

    At most one version per (user_id, trading_date) has
    ``is_superseded=False``.
    """

    id: str = Field(default_factory=new_id)
    user_id: str
    trading_date: date
    source_id: str | None = None
    broker: str = "unknown"
    version: int = 1
    is_superseded: bool = False
    frozen_at: datetime = Field(default_factory=utc_now)

    @property
    def state(self) -> SnapshotState:
        return SnapshotState.SUPERSEDED if self.is_superseded else SnapshotState.ACTIVE


# ---------------------------------------------------------------------------
# Daily plan
# ---------------------------------------------------------------------------

class PlannedTrade(BaseModel):
    """One trade the user intends to take on the plan date."""

    symbol: str
    trade_type: Direction
    entry: Money
    quantity: int = 0
    strategy: str = ""
    stop_loss: Money | None = None
    target: Money | None = None
    reason: str = ""

    @field_validator("trade_type", mode="before")
    @classmethod
    def _parse_trade_type(cls, value: object) -> object:
        if isinstance(value, str):
            return Direction.parse(value) or value
        return value


class DailyPlan(BaseModel):
    """A user's pre-market plan for one day, unique per (user_id, plan_date).

    The mindset fields are self-reported scores; ``None`` means not given.
    """

    id: str = Field(default_factory=new_id)
    user_id: str
    plan_date: date
    plan_notes: str = ""
    planned_trades: list[PlannedTrade] = Field(default_factory=list)
    confidence_level: int | None = None
    stress_level: int | None = None
    distractions: str | None = None
    sleep_hours: float | None = None
    mood: str | None = None
    focus: int | None = None
    energy: int | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
