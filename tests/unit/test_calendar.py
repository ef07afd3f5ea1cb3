"""Tests for the calendar read views."""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal

import pytest

from tradebook_journal.core.enums import Direction
from tradebook_journal.core.models import DaySnapshot, ExecutedLeg
from tradebook_journal.snapshots.calendar import (
    DAY_CARD_FIELDS,
    CalendarService,
    month_range,
    month_summary,
)

D = Decimal


def _snap(day: date, net: str, *, wins=1, losses=0, gp="0", gl="0", trades=1) -> DaySnapshot:
    return DaySnapshot(
        user_id="u1",
        trading_date=day,
        trade_count=trades,
        net_pnl=D(net),
        wins=wins,
        losses=losses,
        gross_profit=D(gp),
        gross_loss=D(gl),
    )


class TestMonthRange:
    def test_regular_month(self):
        assert month_range(2024, 3) == (date(2024, 3, 1), date(2024, 4, 1))

    def test_december_rolls_year(self):
        assert month_range(2024, 12) == (date(2024, 12, 1), date(2025, 1, 1))

    def test_month_clamped(self):
        assert month_range(2024, 0)[0] == date(2024, 1, 1)
        assert month_range(2024, 13)[0] == date(2024, 12, 1)


class TestMonthSummary:
    def test_totals(self):
        summary = month_summary([
            _snap(date(2024, 3, 4), "150", wins=2, losses=1, gp="200", gl="50", trades=3),
            _snap(date(2024, 3, 5), "-30", wins=0, losses=1, gp="0", gl="30", trades=1),
        ])
        assert summary["total_trades"] == 4
        assert summary["net_pnl"] == 120.0
        assert summary["win_rate"] == 0.5
        assert summary["profit_factor"] == 2.5
        assert summary["best_day"] == {"date": "2024-03-04", "net_pnl": 150.0}

    def test_empty_month(self):
        summary = month_summary([])
        assert summary["total_trades"] == 0
        assert summary["profit_factor"] == 0.0
        assert summary["best_day"] == {"date": None, "net_pnl": 0.0}


class TestCalendarService:
    @pytest.mark.asyncio
    async def test_month_view_shows_active_snapshots_only(self, memory_store):
        await memory_store.supersede_and_insert(_snap(date(2024, 3, 5), "10"))
        await memory_store.supersede_and_insert(_snap(date(2024, 3, 5), "25"))
        await memory_store.supersede_and_insert(_snap(date(2024, 4, 2), "99"))

        view = await CalendarService(memory_store).month_view("u1", 2024, 3)
        assert len(view["days"]) == 1
        card = view["days"][0]
        assert set(card) == set(DAY_CARD_FIELDS)
        assert card["trading_date"] == "2024-03-05"
        assert card["net_pnl"] == 25.0
        assert view["month_summary"]["net_pnl"] == 25.0

    @pytest.mark.asyncio
    async def test_month_view_other_user_sees_nothing(self, memory_store):
        await memory_store.supersede_and_insert(_snap(date(2024, 3, 5), "10"))
        view = await CalendarService(memory_store).month_view("u2", 2024, 3)
        assert view["days"] == []

    @pytest.mark.asyncio
    async def test_day_view(self, memory_store):
        day = date(2024, 3, 5)
        await memory_store.supersede_and_insert(_snap(day, "10"))
        await memory_store.upsert_executed_legs([
            ExecutedLeg(
                user_id="u1", trading_date=day, symbol="INFY", direction=Direction.BUY,
                price=D("1500.5"), quantity=10, trade_time=time(9, 30),
            ),
        ])
        view = await CalendarService(memory_store).day_view("u1", day)
        assert view["snapshot"]["version"] == 1
        assert view["snapshot"]["is_superseded"] is False
        leg = view["executed_legs"][0]
        assert leg["symbol"] == "INFY"
        assert leg["direction"] == "Buy"
        assert leg["price"] == 1500.5
        assert "user_id" not in leg

    @pytest.mark.asyncio
    async def test_day_view_without_snapshot(self, memory_store):
        view = await CalendarService(memory_store).day_view("u1", date(2024, 3, 5))
        assert view == {"snapshot": None, "executed_legs": []}
