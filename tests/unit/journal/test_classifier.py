"""Tests for the demon / good-practice classifier."""

from __future__ import annotations

from datetime import datetime, time
from decimal import Decimal

import pytest

from tradebook_journal.core.config import ClassifierConfig
from tradebook_journal.core.enums import Direction
from tradebook_journal.journal.classifier import (
    CHASED_ENTRY,
    DEMON_RULES,
    DISCIPLINED,
    GOOD_RISK_REWARD,
    GOOD_RULES,
    HELD_FOR_TARGET,
    HELD_LOSS_TOO_LONG,
    MISSED_STOP_LOSS,
    OVERTRADING,
    POOR_RISK_REWARD,
    PREMATURE_EXIT,
    PROPER_ENTRY,
    PROPER_EXIT,
    REMEDIATION,
    REVENGE_TRADING,
    STANDARD_DEMONS,
    STANDARD_GOOD,
    STOP_LOSS_RESPECTED,
    WRONG_POSITION_SIZE,
    BatchAverages,
    Rule,
    TradeClassifier,
    TradeContext,
)

from tests.conftest import make_round_trip

D = Decimal


def _predicate(tag: str):
    for rule in (*DEMON_RULES, *GOOD_RULES):
        if rule.tag == tag:
            return rule.predicate
    raise KeyError(tag)


def _ctx(avg_win: float = 0.0, avg_loss: float = 0.0, **kwargs) -> TradeContext:
    return TradeContext(config=ClassifierConfig(), avg_win=avg_win, avg_loss=avg_loss, **kwargs)


def _hhmm(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


class TestVocabulary:
    def test_every_demon_has_remediation(self):
        assert set(REMEDIATION) == set(STANDARD_DEMONS)

    def test_rule_tables_cover_vocabularies(self):
        assert {r.tag for r in DEMON_RULES} == set(STANDARD_DEMONS)
        assert {r.tag for r in GOOD_RULES} <= set(STANDARD_GOOD)


class TestBatchAverages:
    def test_averages(self):
        rts = [make_round_trip("100"), make_round_trip("300"), make_round_trip("-50"), make_round_trip("0")]
        avg = BatchAverages.from_round_trips(rts)
        assert (avg.wins, avg.losses) == (2, 1)
        assert avg.avg_win == D("200")
        assert avg.avg_loss == D("50")

    def test_empty(self):
        avg = BatchAverages.from_round_trips([])
        assert avg.avg_win == 0
        assert avg.avg_loss == 0


class TestDemonRules:
    def test_poor_risk_reward(self):
        check = _predicate(POOR_RISK_REWARD)
        assert check(make_round_trip("100", stop_distance="10"), _ctx())
        assert not check(make_round_trip("100", stop_distance="5"), _ctx())
        assert not check(make_round_trip("100"), _ctx())
        assert not check(make_round_trip("-100", stop_distance="10"), _ctx())

    def test_held_loss_too_long(self):
        check = _predicate(HELD_LOSS_TOO_LONG)
        assert check(make_round_trip("-10", entry_at=time(10, 0), exit_at=time(11, 31)), _ctx())
        assert not check(make_round_trip("-10", entry_at=time(10, 0), exit_at=time(11, 30)), _ctx())
        assert not check(make_round_trip("10", entry_at=time(10, 0), exit_at=time(12, 0)), _ctx())

    def test_premature_exit(self):
        check = _predicate(PREMATURE_EXIT)
        assert check(make_round_trip("10", exit_at=time(10, 5)), _ctx(avg_win=100))
        assert not check(make_round_trip("10", exit_at=time(10, 8)), _ctx(avg_win=100))
        assert not check(make_round_trip("90", exit_at=time(10, 5)), _ctx(avg_win=100))

    def test_missed_stop_loss(self):
        check = _predicate(MISSED_STOP_LOSS)
        assert check(make_round_trip("-131"), _ctx(avg_loss=100))
        assert not check(make_round_trip("-130"), _ctx(avg_loss=100))

    def test_chased_entry(self):
        check = _predicate(CHASED_ENTRY)
        assert check(make_round_trip("10", entry_at=time(9, 15)), _ctx())
        assert not check(make_round_trip("10", entry_at=time(9, 20)), _ctx())

    def test_wrong_position_size_over_capital_risk(self):
        check = _predicate(WRONG_POSITION_SIZE)
        # 10 units moved 201 -> 2010 > 2% of 100k
        assert check(make_round_trip("2010"), _ctx())
        assert not check(make_round_trip("2000"), _ctx())

    def test_wrong_position_size_over_average_loss(self):
        check = _predicate(WRONG_POSITION_SIZE)
        assert check(make_round_trip("-300"), _ctx(avg_loss=100))
        assert not check(make_round_trip("-250"), _ctx(avg_loss=100))

    def test_overtrading(self):
        check = _predicate(OVERTRADING)
        assert check(make_round_trip("10"), _ctx(day_ordinal=6))
        assert not check(make_round_trip("10"), _ctx(day_ordinal=5))

    def test_revenge_trading(self):
        check = _predicate(REVENGE_TRADING)
        ctx = dict(prev_loss_exit=datetime(2024, 3, 5, 10, 0), prev_loss_direction=Direction.BUY)
        assert check(make_round_trip("-5", entry_at=time(10, 10), exit_at=time(10, 20)), _ctx(**ctx))
        assert not check(make_round_trip("-5", entry_at=time(10, 20), exit_at=time(10, 30)), _ctx(**ctx))
        assert not check(make_round_trip("5", entry_at=time(10, 10), exit_at=time(10, 20)), _ctx(**ctx))
        assert not check(
            make_round_trip("-5", entry_at=time(10, 10), exit_at=time(10, 20), direction=Direction.SELL),
            _ctx(**ctx),
        )
        assert not check(make_round_trip("-5", entry_at=time(10, 10), exit_at=time(10, 20)), _ctx())


class TestGoodRules:
    def test_good_risk_reward(self):
        check = _predicate(GOOD_RISK_REWARD)
        assert check(make_round_trip("120"), _ctx(avg_loss=100))
        assert not check(make_round_trip("119"), _ctx(avg_loss=100))
        assert not check(make_round_trip("500"), _ctx(avg_loss=0))

    def test_proper_entry(self):
        check = _predicate(PROPER_ENTRY)
        assert check(make_round_trip("10"), _ctx())
        assert not check(make_round_trip("10", entry_at=time(9, 0)), _ctx())
        assert not check(make_round_trip("-200"), _ctx(avg_loss=100))

    def test_proper_exit_depends_on_prior_demons(self):
        check = _predicate(PROPER_EXIT)
        rt = make_round_trip("10")
        assert check(rt, _ctx())
        assert not check(rt, _ctx(demons=[PREMATURE_EXIT]))
        assert not check(rt, _ctx(demons=[MISSED_STOP_LOSS]))

    def test_stop_loss_respected(self):
        check = _predicate(STOP_LOSS_RESPECTED)
        assert check(make_round_trip("-100"), _ctx(avg_loss=100))
        assert not check(make_round_trip("100"), _ctx(avg_loss=100))

    def test_held_for_target(self):
        check = _predicate(HELD_FOR_TARGET)
        assert check(make_round_trip("130", exit_at=time(10, 13)), _ctx(avg_loss=100))
        assert not check(make_round_trip("130", exit_at=time(10, 12)), _ctx(avg_loss=100))

    def test_disciplined(self):
        check = _predicate(DISCIPLINED)
        rt = make_round_trip("10")
        assert check(rt, _ctx(good=[PROPER_ENTRY, PROPER_EXIT]))
        assert not check(rt, _ctx(good=[PROPER_ENTRY]))
        assert not check(rt, _ctx(good=[PROPER_ENTRY, PROPER_EXIT], demons=[OVERTRADING]))


class TestTradeClassifier:
    def test_clean_win_and_controlled_loss(self):
        win = make_round_trip("200", entry_at=time(10, 0), exit_at=time(10, 30))
        loss = make_round_trip("-100", entry_at=time(11, 0), exit_at=time(11, 20))
        summary = TradeClassifier().classify([win, loss])

        assert win.demon_tags == []
        assert win.good_tags == [GOOD_RISK_REWARD, PROPER_ENTRY, PROPER_EXIT, HELD_FOR_TARGET, DISCIPLINED]
        assert win.is_good_trade
        assert loss.demon_tags == []
        assert STOP_LOSS_RESPECTED in loss.good_tags
        assert loss.is_good_trade
        assert not loss.is_bad_trade

        assert summary.total_good_trade_profit == D("200")
        assert summary.good_trade_counts[GOOD_RISK_REWARD].count == 1
        assert summary.good_trade_counts[STOP_LOSS_RESPECTED].count == 0

    def test_only_first_demon_is_tallied(self):
        win = make_round_trip("100", entry_at=time(10, 0), exit_at=time(10, 10))
        loss = make_round_trip("-500", entry_at=time(9, 10), exit_at=time(11, 0))
        summary = TradeClassifier().classify([win, loss])

        assert loss.demon_tags == [HELD_LOSS_TOO_LONG, CHASED_ENTRY]
        assert loss.is_bad_trade
        assert summary.bad_trade_counts[HELD_LOSS_TOO_LONG].count == 1
        assert summary.bad_trade_counts[HELD_LOSS_TOO_LONG].total == D("500")
        assert summary.bad_trade_counts[CHASED_ENTRY].count == 0
        assert summary.total_bad_trade_cost == D("500")
        assert summary.entered_too_soon_count == 1

    def test_sixth_trade_of_the_day_is_overtrading(self):
        rts = [
            make_round_trip("10", entry_at=_hhmm(600 + i * 20), exit_at=_hhmm(610 + i * 20))
            for i in range(6)
        ]
        TradeClassifier().classify(rts)
        assert rts[4].demon_tags == []
        assert rts[5].demon_tags == [OVERTRADING]
        assert not rts[5].is_bad_trade

    def test_revenge_after_recent_loss(self):
        first = make_round_trip("-100", entry_at=time(10, 0), exit_at=time(10, 5))
        second = make_round_trip("-100", entry_at=time(10, 10), exit_at=time(10, 30))
        TradeClassifier().classify([first, second])
        assert REVENGE_TRADING not in first.demon_tags
        assert second.demon_tags == [REVENGE_TRADING]
        assert second.is_bad_trade

    def test_opposite_direction_is_not_revenge(self):
        first = make_round_trip("-100", entry_at=time(10, 0), exit_at=time(10, 5))
        second = make_round_trip(
            "-100", entry_at=time(10, 10), exit_at=time(10, 30), direction=Direction.SELL,
        )
        TradeClassifier().classify([first, second])
        assert REVENGE_TRADING not in second.demon_tags

    def test_custom_rule_table(self):
        rt = make_round_trip("-10")
        classifier = TradeClassifier(
            demon_rules=[Rule("ALWAYS", lambda rt, ctx: True)], good_rules=[],
        )
        summary = classifier.classify([rt])
        assert rt.demon_tags == ["ALWAYS"]
        assert summary.bad_trade_counts["ALWAYS"].count == 1

    @pytest.mark.parametrize("tag", STANDARD_DEMONS)
    def test_summary_seeds_every_demon(self, tag):
        summary = TradeClassifier().classify([])
        assert summary.bad_trade_counts[tag].count == 0
