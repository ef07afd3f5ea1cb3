"""Tests for daily plans: plan-vs-executed matching, badges and the store."""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal

import pytest

from tradebook_journal.core.enums import Direction
from tradebook_journal.core.errors import InvalidDateError, InvalidPlanError
from tradebook_journal.core.models import DailyPlan, ExecutedLeg, PlannedTrade
from tradebook_journal.snapshots.plan import (
    MINDSET_DEFAULTS,
    DailyJournalService,
    InstrumentKey,
    badge_for,
    compare_plan,
    execution_percent,
    instrument_key,
    mindset,
    parse_plan_date,
    trade_matches_plan,
)

D = Decimal
DAY = date(2024, 3, 5)


def _planned(symbol="INFY", side="BUY", entry="1500", quantity=10) -> PlannedTrade:
    return PlannedTrade(symbol=symbol, trade_type=side, entry=D(entry), quantity=quantity)


def _executed(
    symbol="INFY", direction=Direction.BUY, price="1500", quantity=10, at=time(9, 30),
) -> ExecutedLeg:
    return ExecutedLeg(
        user_id="u1", trading_date=DAY, symbol=symbol, direction=direction,
        price=D(price), quantity=quantity, trade_time=at,
    )


# ---------------------------------------------------------------------------
# Matching rule
# ---------------------------------------------------------------------------

class TestTradeMatchesPlan:
    @pytest.mark.parametrize("price, expected", [
        ("1500", True),
        ("1500.99", True),
        ("1499.01", True),
        ("1501", False),
        ("1499", False),
    ])
    def test_entry_tolerance(self, price, expected):
        assert trade_matches_plan(_planned(entry="1500"), _executed(price=price)) is expected

    def test_side_must_match(self):
        assert not trade_matches_plan(_planned(side="SELL"), _executed())

    def test_side_spellings(self):
        assert _planned(side="s").trade_type is Direction.SELL
        assert _planned(side="Buy").trade_type is Direction.BUY

    @pytest.mark.parametrize("planned_qty, executed_qty, expected", [
        (10, 10, True),
        (10, 5, False),
        (0, 5, True),
        (10, 0, True),
    ])
    def test_quantity_equal_or_unset(self, planned_qty, executed_qty, expected):
        result = trade_matches_plan(
            _planned(quantity=planned_qty), _executed(quantity=executed_qty),
        )
        assert result is expected

    def test_symbol_must_match(self):
        assert not trade_matches_plan(_planned(symbol="TCS"), _executed())

    def test_symbol_punctuation_and_case_ignored(self):
        assert trade_matches_plan(_planned(symbol="m&m"), _executed(symbol="M&M"))
        assert trade_matches_plan(_planned(symbol="BAJAJ-AUTO"), _executed(symbol="BAJAJAUTO"))


class TestInstrumentKey:
    def test_plain_symbol(self):
        assert instrument_key("INFY") == InstrumentKey("INFY")

    def test_option_notations_agree(self):
        dashed = instrument_key("NIFTY-MAR2024-22000-CE")
        spaced = instrument_key("OPTIDX NIFTY MAR 28 2024 22000 CE")
        weekly = instrument_key("NIFTY24H2822000CE")
        expected = InstrumentKey("NIFTY", "MAR", "2024", D("22000"), "CE")
        assert dashed == spaced == weekly == expected

    def test_option_matches_across_notations(self):
        planned = _planned(symbol="NIFTY-MAR2024-22000-CE", entry="120", quantity=50)
        leg = _executed(symbol="NIFTY 28 MAR 2024 22000 CE", price="120.5", quantity=50)
        # day-first notation is not recognized; falls back to the plain key
        assert not trade_matches_plan(planned, leg)
        leg = _executed(symbol="NIFTY MAR 28 2024 22000 CE", price="120.5", quantity=50)
        assert trade_matches_plan(planned, leg)

    def test_strike_and_type_distinguish(self):
        assert instrument_key("NIFTY-MAR2024-22000-CE") != instrument_key("NIFTY-MAR2024-22000-PE")
        assert not trade_matches_plan(
            _planned(symbol="NIFTY-MAR2024-22000-CE", entry="120"),
            _executed(symbol="NIFTY-MAR2024-22100-CE", price="120"),
        )


# ---------------------------------------------------------------------------
# Badges
# ---------------------------------------------------------------------------

class TestBadges:
    @pytest.mark.parametrize("percent, badge", [
        (100, "MASTER"),
        (90, "MASTER"),
        (89, "EXPERT"),
        (75, "EXPERT"),
        (74, "SKILLED"),
        (60, "SKILLED"),
        (59, "LEARNING"),
        (0, "LEARNING"),
    ])
    def test_thresholds(self, percent, badge):
        assert badge_for(percent) == badge

    def test_execution_percent_rounds_half_up(self):
        assert execution_percent(2, 3) == 67
        assert execution_percent(1, 8) == 13
        assert execution_percent(1, 200) == 1
        assert execution_percent(0, 0) == 0


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------

class TestComparePlan:
    def test_all_followed(self):
        result = compare_plan(
            [_planned(), _planned(symbol="TCS", entry="3900", quantity=5)],
            [_executed(symbol="TCS", price="3900.4", quantity=5, at=time(10, 0)), _executed()],
        )
        assert len(result.matched) == 2
        assert result.missed == []
        assert result.unplanned == []
        assert result.execution_percent == 100
        assert result.badge == "MASTER"
        assert result.insights == ["Executed 2 of 2 planned trades (100%)"]
        assert result.what_went_wrong == ["Great job! You stuck to your plan. Keep it up."]

    def test_each_leg_matches_once(self):
        result = compare_plan([_planned(), _planned()], [_executed()])
        assert len(result.matched) == 1
        assert len(result.missed) == 1
        assert result.execution_percent == 50
        assert result.badge == "LEARNING"
        assert result.what_went_wrong == ["You missed 1 planned trade."]

    def test_earliest_matching_leg_used(self):
        late = _executed(at=time(11, 0))
        early = _executed(at=time(9, 16))
        result = compare_plan([_planned()], [late, early])
        assert result.matched[0].trade_time == time(9, 16)
        assert result.unplanned[0].trade_time == time(11, 0)

    def test_unplanned_trades_grouped(self):
        result = compare_plan(
            [_planned()],
            [
                _executed(),
                _executed(symbol="SBIN", price="700", at=time(10, 0)),
                _executed(symbol="SBIN", price="702", at=time(10, 5)),
                _executed(symbol="TCS", direction=Direction.SELL, price="3900", at=time(10, 10)),
            ],
        )
        assert list(result.grouped_unplanned()) == ["SBIN BUY", "TCS SELL"]
        assert "You took 3 unplanned trades (overtrading)." in result.insights
        assert result.what_went_wrong == [
            "Most common unplanned trade: SBIN BUY (2 times)",
            "Try to stick to your plan and avoid impulsive/unplanned trades.",
        ]
        body = result.to_dict()
        assert [t["symbol"] for t in body["extra_trades"]] == ["SBIN", "SBIN", "TCS"]
        assert "user_id" not in body["matched_trades"][0]

    def test_single_unplanned_not_called_most_common(self):
        result = compare_plan([], [_executed()])
        assert result.what_went_wrong == [
            "Try to stick to your plan and avoid impulsive/unplanned trades.",
        ]
        assert result.badge == "LEARNING"

    def test_no_executions(self):
        result = compare_plan([_planned(), _planned(symbol="TCS")], [])
        body = result.to_dict()
        assert body["status"] == "no-executions"
        assert body["badge"] == "NO DATA"
        assert body["execution_percent"] == 0
        assert len(body["missed_trades"]) == 2
        assert body["insights"] == []
        assert body["what_went_wrong"] == []

    def test_mindset_defaults(self):
        assert mindset(None) == MINDSET_DEFAULTS
        plan = DailyPlan(user_id="u1", plan_date=DAY, stress_level=2, mood="tired")
        values = mindset(plan)
        assert values["stress_level"] == 2
        assert values["mood"] == "tired"
        assert values["sleep_hours"] == 7


# ---------------------------------------------------------------------------
# Service and in-memory store
# ---------------------------------------------------------------------------

class TestParsePlanDate:
    @pytest.mark.parametrize("raw", ["2024-03-05", "05-03-2024", "5/3/2024"])
    def test_shapes(self, raw):
        assert parse_plan_date(raw) == DAY

    @pytest.mark.parametrize("raw", [None, "", "tomorrow", 20240305])
    def test_invalid(self, raw):
        with pytest.raises(InvalidDateError):
            parse_plan_date(raw)


class TestDailyJournalService:
    @pytest.mark.asyncio
    async def test_upsert_keeps_identity(self, memory_store):
        service = DailyJournalService(memory_store)
        first = await service.save_plan("u1", {"date": "2024-03-05", "planned_trades": []})
        second = await service.save_plan(
            "u1", {"date": "2024-03-05", "planned_trades": [], "plan_notes": "revised"},
        )
        assert second.id == first.id
        assert second.created_at == first.created_at
        stored = await memory_store.get_daily_plan("u1", DAY)
        assert stored.plan_notes == "revised"
        assert await memory_store.get_daily_plan("u2", DAY) is None

    @pytest.mark.asyncio
    async def test_rejects_non_list_trades(self, memory_store):
        with pytest.raises(InvalidPlanError):
            await DailyJournalService(memory_store).save_plan("u1", {"date": "2024-03-05"})

    @pytest.mark.asyncio
    async def test_comparison_reads_executed_legs(self, memory_store):
        service = DailyJournalService(memory_store)
        await service.save_plan("u1", {
            "date": "2024-03-05",
            "planned_trades": [{"symbol": "INFY", "trade_type": "BUY", "entry": 1500.4}],
            "focus": 9,
        })
        await memory_store.upsert_executed_legs([_executed()])
        body = await service.comparison("u1", "2024-03-05")
        assert body["matched"] == 1
        assert body["badge"] == "MASTER"
        assert body["focus"] == 9
        assert body["energy"] == 5
