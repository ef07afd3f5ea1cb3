"""Trade quality classifier: demons and good practices.

Each round trip is checked against two ordered rule tables.  A rule is
a tag plus a predicate over the trade and a :class:`TradeContext` that
carries the batch-wide averages (computed once, up front), the trade's
ordinal within its exit day, the previous losing trade, and the tags
assigned so far.  Rule order matters: it fixes tag order, and the first
demon / good tag of a trade is the one counted in the tag summaries.

Inspired by structured mistake tracking: every behaviour is classified,
counted and tied to its P&L so the trader can see what each habit costs.

Usage::

    classifier = TradeClassifier(ClassifierConfig())
    summary = classifier.classify(round_trips)
    print(summary.entered_too_soon_count, round_trips[0].demon_tags)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Sequence

from tradebook_journal.core.config import ClassifierConfig
from tradebook_journal.core.enums import Direction
from tradebook_journal.observability.metrics import record_demon

from .record import ZERO, RoundTrip

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Vocabularies
# ---------------------------------------------------------------------------

POOR_RISK_REWARD = "POOR RISK/REWARD TRADE"
HELD_LOSS_TOO_LONG = "HELD LOSS TOO LONG"
PREMATURE_EXIT = "PREMATURE EXIT"
REVENGE_TRADING = "REVENGE TRADING"
OVERTRADING = "OVERTRADING"
WRONG_POSITION_SIZE = "WRONG POSITION SIZE"
CHASED_ENTRY = "CHASED ENTRY"
MISSED_STOP_LOSS = "MISSED STOP LOSS"

GOOD_RISK_REWARD = "GOOD RISK/REWARD"
PROPER_ENTRY = "PROPER ENTRY"
PROPER_EXIT = "PROPER EXIT"
FOLLOWED_PLAN = "FOLLOWED PLAN"  # reserved; no rule assigns it yet
STOP_LOSS_RESPECTED = "STOP LOSS RESPECTED"
HELD_FOR_TARGET = "HELD FOR TARGET"
DISCIPLINED = "DISCIPLINED"

STANDARD_DEMONS: tuple[str, ...] = (
    POOR_RISK_REWARD,
    HELD_LOSS_TOO_LONG,
    PREMATURE_EXIT,
    REVENGE_TRADING,
    OVERTRADING,
    WRONG_POSITION_SIZE,
    CHASED_ENTRY,
    MISSED_STOP_LOSS,
)

STANDARD_GOOD: tuple[str, ...] = (
    GOOD_RISK_REWARD,
    PROPER_ENTRY,
    PROPER_EXIT,
    FOLLOWED_PLAN,
    STOP_LOSS_RESPECTED,
    HELD_FOR_TARGET,
    DISCIPLINED,
)

# One remediation sentence per demon, surfaced for the top issues.
REMEDIATION: dict[str, str] = {
    POOR_RISK_REWARD: "Only take setups with ≥1.5R potential; predefine targets and partial exits.",
    HELD_LOSS_TOO_LONG: "Use hard SL and exit immediately when hit, no averaging down or hoping.",
    PREMATURE_EXIT: "Trail stops using structure; take partial at 1R and let the rest run.",
    REVENGE_TRADING: "After a loss, enforce a 15-30 min cooldown and skip the very next signal.",
    OVERTRADING: "Cap to 5 trades/day; stop after 2 consecutive losses for the session.",
    WRONG_POSITION_SIZE: "Risk ≤2% per trade; size via calculator using stop distance.",
    CHASED_ENTRY: "Avoid early entries; wait for retest/limit fill and skip first 5 minutes.",
    MISSED_STOP_LOSS: "Place OCO protective stops with the entry and never cancel them.",
}


# ---------------------------------------------------------------------------
# Batch averages and per-trade context
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BatchAverages:
    """Win / loss totals over the whole batch of round trips."""

    wins: int = 0
    losses: int = 0
    profit_sum: Decimal = ZERO
    loss_sum: Decimal = ZERO  # absolute value

    @property
    def avg_win(self) -> Decimal:
        return self.profit_sum / self.wins if self.wins else ZERO

    @property
    def avg_loss(self) -> Decimal:
        return self.loss_sum / self.losses if self.losses else ZERO

    @classmethod
    def from_round_trips(cls, round_trips: Sequence[RoundTrip]) -> BatchAverages:
        wins = losses = 0
        profit = loss = ZERO
        for rt in round_trips:
            if rt.pnl > 0:
                wins += 1
                profit += rt.pnl
            elif rt.pnl < 0:
                losses += 1
                loss += -rt.pnl
        return cls(wins=wins, losses=losses, profit_sum=profit, loss_sum=loss)


@dataclass
class TradeContext:
    """Everything a rule may look at besides the trade itself."""

    config: ClassifierConfig
    avg_win: float
    avg_loss: float
    day_ordinal: int = 1
    prev_loss_exit: datetime | None = None
    prev_loss_direction: Direction | None = None
    demons: list[str] = field(default_factory=list)
    good: list[str] = field(default_factory=list)

    @property
    def stop_tolerance(self) -> float:
        return abs(self.avg_loss * self.config.sl_tolerance)


@dataclass(frozen=True)
class Rule:
    tag: str
    predicate: Callable[[RoundTrip, TradeContext], bool]


# ---------------------------------------------------------------------------
# Demon predicates
# ---------------------------------------------------------------------------

def _poor_risk_reward(rt: RoundTrip, ctx: TradeContext) -> bool:
    stop = rt.entry.stop_distance
    if rt.pnl <= 0 or not stop or stop <= 0:
        return False
    risk = float(stop) * (rt.entry.quantity or 1)
    return float(rt.pnl) / risk < ctx.config.min_good_rr


def _held_loss_too_long(rt: RoundTrip, ctx: TradeContext) -> bool:
    return rt.pnl < 0 and rt.holding_minutes > ctx.config.held_loss_minutes


def _premature_exit(rt: RoundTrip, ctx: TradeContext) -> bool:
    return (
        rt.pnl > 0
        and rt.holding_minutes < ctx.config.premature_exit_minutes
        and float(rt.pnl) < ctx.avg_win * ctx.config.premature_exit_ratio
    )


def _missed_stop_loss(rt: RoundTrip, ctx: TradeContext) -> bool:
    return rt.pnl < 0 and abs(float(rt.pnl)) > ctx.stop_tolerance


def _chased_entry(rt: RoundTrip, ctx: TradeContext) -> bool:
    return rt.entry.time is not None and rt.entry.time < ctx.config.early_entry_cutoff


def _wrong_position_size(rt: RoundTrip, ctx: TradeContext) -> bool:
    # Price move times size stands in for risk when no stop is known
    risk = abs(float((rt.entry.price - rt.exit.price) * (rt.entry.quantity or 1)))
    if risk > ctx.config.max_risk_amount:
        return True
    return ctx.avg_loss > 0 and risk > ctx.avg_loss * ctx.config.oversize_loss_multiple


def _overtrading(rt: RoundTrip, ctx: TradeContext) -> bool:
    return ctx.day_ordinal > ctx.config.overtrade_limit


def _revenge_trading(rt: RoundTrip, ctx: TradeContext) -> bool:
    if ctx.prev_loss_exit is None or rt.entry.time is None or rt.pnl >= 0:
        return False
    if ctx.prev_loss_direction != rt.entry.direction:
        return False
    gap = round((rt.entry.timestamp - ctx.prev_loss_exit).total_seconds() / 60)
    return 0 <= gap <= ctx.config.revenge_window_minutes


# ---------------------------------------------------------------------------
# Good-practice predicates
# ---------------------------------------------------------------------------

def _good_risk_reward(rt: RoundTrip, ctx: TradeContext) -> bool:
    return (
        rt.pnl > 0
        and ctx.avg_loss > 0
        and float(rt.pnl) >= abs(ctx.avg_loss * ctx.config.good_rr_multiple)
    )


def _respected_stop(rt: RoundTrip, ctx: TradeContext) -> bool:
    return rt.pnl > 0 or abs(float(rt.pnl)) <= ctx.stop_tolerance


def _proper_entry(rt: RoundTrip, ctx: TradeContext) -> bool:
    return CHASED_ENTRY not in ctx.demons and not _chased_entry(rt, ctx) and _respected_stop(rt, ctx)


def _proper_exit(rt: RoundTrip, ctx: TradeContext) -> bool:
    return PREMATURE_EXIT not in ctx.demons and MISSED_STOP_LOSS not in ctx.demons


def _stop_loss_respected(rt: RoundTrip, ctx: TradeContext) -> bool:
    return rt.pnl < 0 and abs(float(rt.pnl)) <= ctx.stop_tolerance


def _held_for_target(rt: RoundTrip, ctx: TradeContext) -> bool:
    return (
        rt.pnl > 0
        and rt.holding_minutes > ctx.config.hold_target_minutes
        and float(rt.pnl) > abs(ctx.avg_loss * ctx.config.good_rr_multiple)
    )


def _disciplined(rt: RoundTrip, ctx: TradeContext) -> bool:
    return not ctx.demons and len(ctx.good) >= ctx.config.disciplined_min_good_tags


# Evaluation order, not vocabulary order
DEMON_RULES: tuple[Rule, ...] = (
    Rule(POOR_RISK_REWARD, _poor_risk_reward),
    Rule(HELD_LOSS_TOO_LONG, _held_loss_too_long),
    Rule(PREMATURE_EXIT, _premature_exit),
    Rule(MISSED_STOP_LOSS, _missed_stop_loss),
    Rule(CHASED_ENTRY, _chased_entry),
    Rule(WRONG_POSITION_SIZE, _wrong_position_size),
    Rule(OVERTRADING, _overtrading),
    Rule(REVENGE_TRADING, _revenge_trading),
)

GOOD_RULES: tuple[Rule, ...] = (
    Rule(GOOD_RISK_REWARD, _good_risk_reward),
    Rule(PROPER_ENTRY, _proper_entry),
    Rule(PROPER_EXIT, _proper_exit),
    Rule(STOP_LOSS_RESPECTED, _stop_loss_respected),
    Rule(HELD_FOR_TARGET, _held_for_target),
    Rule(DISCIPLINED, _disciplined),
)


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

@dataclass
class TagTally:
    """Count and money total for one tag."""

    count: int = 0
    total: Decimal = ZERO

    def add(self, amount: Decimal) -> None:
        self.count += 1
        self.total += amount


@dataclass
class ClassificationSummary:
    """Batch-level output of the classifier."""

    averages: BatchAverages
    bad_trade_counts: dict[str, TagTally]
    good_trade_counts: dict[str, TagTally]
    total_bad_trade_cost: Decimal = ZERO
    total_good_trade_profit: Decimal = ZERO
    entered_too_soon_count: int = 0


def seed_tallies(vocabulary: Sequence[str]) -> dict[str, TagTally]:
    return {tag: TagTally() for tag in vocabulary}


class TradeClassifier:
    """Tags round trips with demons and good practices.

    Parameters
    ----------
    config : ClassifierConfig
        Rule thresholds.
    demon_rules, good_rules : sequence of Rule
        Ordered rule tables.  Defaults to :data:`DEMON_RULES` and
        :data:`GOOD_RULES`.
    """

    def __init__(
        self,
        config: ClassifierConfig | None = None,
        *,
        demon_rules: Sequence[Rule] = DEMON_RULES,
        good_rules: Sequence[Rule] = GOOD_RULES,
    ) -> None:
        self._config = config or ClassifierConfig()
        self._demon_rules = tuple(demon_rules)
        self._good_rules = tuple(good_rules)

    @property
    def config(self) -> ClassifierConfig:
        return self._config

    def classify(self, round_trips: Sequence[RoundTrip]) -> ClassificationSummary:
        """Tag every round trip in place, in exit order.

        Returns the batch summary: per-tag tallies (first tag of each
        bad / good trade), cost and profit totals, and the number of
        early entries.
        """
        averages = BatchAverages.from_round_trips(round_trips)
        summary = ClassificationSummary(
            averages=averages,
            bad_trade_counts=seed_tallies(STANDARD_DEMONS),
            good_trade_counts=seed_tallies(STANDARD_GOOD),
        )

        day_ordinal: dict = {}
        prev_loss_exit: datetime | None = None
        prev_loss_direction: Direction | None = None

        for rt in round_trips:
            day_ordinal[rt.exit_date] = day_ordinal.get(rt.exit_date, 0) + 1
            ctx = TradeContext(
                config=self._config,
                avg_win=float(averages.avg_win),
                avg_loss=float(averages.avg_loss),
                day_ordinal=day_ordinal[rt.exit_date],
                prev_loss_exit=prev_loss_exit,
                prev_loss_direction=prev_loss_direction,
            )
            self._apply(rt, ctx)

            if rt.pnl < 0:
                prev_loss_exit = rt.exit.timestamp
                prev_loss_direction = rt.entry.direction

            if CHASED_ENTRY in rt.demon_tags:
                summary.entered_too_soon_count += 1
            if rt.is_bad_trade:
                cost = -rt.pnl
                summary.total_bad_trade_cost += cost
                summary.bad_trade_counts.setdefault(rt.demon_tags[0], TagTally()).add(cost)
            if rt.is_good_trade and rt.pnl > 0:
                summary.total_good_trade_profit += rt.pnl
                summary.good_trade_counts.setdefault(rt.good_tags[0], TagTally()).add(rt.pnl)
            for tag in rt.demon_tags:
                record_demon(tag)

        logger.debug(
            "Classified %d round trips: %d bad, %d good",
            len(round_trips),
            sum(1 for rt in round_trips if rt.is_bad_trade),
            sum(1 for rt in round_trips if rt.is_good_trade),
        )
        return summary

    def _apply(self, rt: RoundTrip, ctx: TradeContext) -> None:
        for rule in self._demon_rules:
            if rule.tag not in ctx.demons and rule.predicate(rt, ctx):
                ctx.demons.append(rule.tag)
        for rule in self._good_rules:
            if rule.tag not in ctx.good and rule.predicate(rt, ctx):
                ctx.good.append(rule.tag)

        rt.demon_tags = list(ctx.demons)
        rt.good_tags = list(ctx.good)
        rt.is_bad_trade = bool(rt.demon_tags) and rt.pnl < 0
        rt.is_good_trade = (
            len(rt.good_tags) >= self._config.disciplined_min_good_tags
            and not rt.demon_tags
            and (rt.pnl > 0 or STOP_LOSS_RESPECTED in rt.good_tags)
        )
