"""Shared fixtures for the tradebook-journal test suite."""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from decimal import Decimal

import pytest

from tradebook_journal.core.clock import SimClock
from tradebook_journal.core.config import Settings
from tradebook_journal.core.enums import Direction
from tradebook_journal.journal.record import RoundTrip, TradeLeg
from tradebook_journal.storage.memory import InMemoryJournalStore

D = Decimal


# ---------------------------------------------------------------------------
# Leg / round-trip builders
# ---------------------------------------------------------------------------

def make_leg(
    direction: Direction = Direction.BUY,
    quantity: int = 10,
    price: str | Decimal = "100",
    *,
    symbol: str = "ABC",
    day: date = date(2024, 3, 5),
    at: time | None = time(10, 0),
    charges: str | Decimal = "0",
    **kwargs,
) -> TradeLeg:
    """Create a test leg."""
    return TradeLeg(
        date=day,
        time=at,
        symbol=symbol,
        direction=direction,
        quantity=quantity,
        price=D(str(price)),
        charges=D(str(charges)),
        **kwargs,
    )


def make_round_trip(
    pnl: str | Decimal = "100",
    *,
    symbol: str = "ABC",
    entry_at: time = time(10, 0),
    exit_at: time = time(10, 30),
    day: date = date(2024, 3, 5),
    direction: Direction = Direction.BUY,
    quantity: int = 10,
    entry_price: str = "100",
    exit_price: str | None = None,
    stop_distance: str | None = None,
) -> RoundTrip:
    """Round trip with an explicit P&L; prices default to a consistent move."""
    pnl = D(str(pnl))
    if exit_price is None:
        move = pnl / quantity
        if direction is Direction.SELL:
            move = -move
        exit_price = str(D(entry_price) + move)
    entry = make_leg(
        direction, quantity, entry_price, symbol=symbol, day=day, at=entry_at,
        stop_distance=D(stop_distance) if stop_distance else None,
    )
    exit_ = make_leg(direction.opposite, quantity, exit_price, symbol=symbol, day=day, at=exit_at)
    minutes = int(round(
        (datetime.combine(day, exit_at) - datetime.combine(day, entry_at)).total_seconds() / 60
    ))
    return RoundTrip(
        symbol=symbol, entry=entry, exit=exit_, pnl=pnl, holding_minutes=minutes,
    )


# ---------------------------------------------------------------------------
# CSV samples
# ---------------------------------------------------------------------------

RETAIL_HEADER = (
    "symbol,isin,trade_date,exchange,segment,series,trade_type,auction,"
    "quantity,price,trade_id,order_id,order_execution_time"
)


def retail_csv(*rows: str) -> str:
    return "\n".join([RETAIL_HEADER, *rows]) + "\n"


CONTRACT_HEADER = (
    "Scrip/Contract,Buy/Sell,Buy Price,Sell Price,Quantity,Date,Time,"
    "Brokerage,GST,STT,Sebi Tax,Stamp Duty,Exchange Turnover Charges"
)


def contract_csv(*rows: str) -> str:
    return "\n".join([CONTRACT_HEADER, *rows]) + "\n"


@pytest.fixture
def retail_day_csv() -> str:
    """Two closed round trips on one day: one win, one loss."""
    return retail_csv(
        "INFY,INE009A01021,2024-03-05,NSE,EQ,EQ,buy,false,10,1500.00,1,11,2024-03-05T09:30:00",
        "INFY,INE009A01021,2024-03-05,NSE,EQ,EQ,sell,false,10,1510.00,2,12,2024-03-05T09:45:00",
        "TCS,INE467B01029,2024-03-05,NSE,EQ,EQ,buy,false,5,3900.00,3,13,2024-03-05T10:00:00",
        "TCS,INE467B01029,2024-03-05,NSE,EQ,EQ,sell,false,5,3890.00,4,14,2024-03-05T10:20:00",
    )


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------

@pytest.fixture
def sim_clock() -> SimClock:
    return SimClock(datetime(2024, 3, 5, 16, 0, tzinfo=timezone.utc))


@pytest.fixture
def memory_store() -> InMemoryJournalStore:
    return InMemoryJournalStore()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        use_memory_store=True,
        ingest={"upload_dir": str(tmp_path / "uploads")},
    )
