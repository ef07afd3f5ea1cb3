"""Statistics aggregation over classified round trips.

A pure reduction, no I/O.  Produces the :class:`Stats` returned for one
upload: win rates, profit factor, composite score, top issues with their
remediation plan, and a direction-aware per-symbol summary whose rows
sum to the header net P&L.
"""

from __future__ import annotations

import math
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Sequence

from tradebook_journal.core.config import ScoreConfig
from tradebook_journal.core.enums import Direction

from .classifier import (
    REMEDIATION,
    STANDARD_DEMONS,
    STANDARD_GOOD,
    ClassificationSummary,
    TagTally,
    seed_tallies,
)
from .reconciliation import ReconciliationResult
from .record import ZERO, RoundTrip, TradeLeg, r2

LOW_WIN_RATE_ACTION = "Trade only A+ setups for a week; skip marginal conditions."
WEAK_PROFIT_FACTOR_ACTION = "Tighten losses and let winners run using R-based take-profits."
EARLY_ENTRY_ACTION = "No entries before 09:20; let structure form before engaging."


@dataclass
class ScripSummaryRow:
    """Per-symbol rollup of closed round trips."""

    symbol: str
    total_quantity: int
    average_buy_price: Decimal
    average_sell_price: Decimal
    charges: Decimal
    net_realized: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "total_quantity": self.total_quantity,
            "average_buy_price": float(self.average_buy_price),
            "average_sell_price": float(self.average_sell_price),
            "charges": float(self.charges),
            "net_realized": float(self.net_realized),
        }


@dataclass
class Stats:
    """Engine output for one upload.  Not persisted."""

    net_pnl: Decimal = ZERO
    trade_win_percent: float = 0.0
    profit_factor: float = 0.0
    day_win_percent: float = 0.0
    avg_win: Decimal = ZERO
    avg_loss: Decimal = ZERO
    score: int = 0
    patience: float = 80.0
    wins: int = 0
    losses: int = 0
    trades: list[RoundTrip] = field(default_factory=list)
    trade_dates: list[date] = field(default_factory=list)
    bad_trade_counts: dict[str, TagTally] = field(default_factory=lambda: seed_tallies(STANDARD_DEMONS))
    good_trade_counts: dict[str, TagTally] = field(default_factory=lambda: seed_tallies(STANDARD_GOOD))
    total_bad_trade_cost: Decimal = ZERO
    total_good_trade_profit: Decimal = ZERO
    entered_too_soon_count: int = 0
    top_issues: list[str] = field(default_factory=list)
    plan_of_action: list[str] = field(default_factory=list)
    scrip_summary: list[ScripSummaryRow] = field(default_factory=list)
    open_legs: list[TradeLeg] = field(default_factory=list)
    reconciliation: ReconciliationResult | None = None

    @property
    def empty(self) -> bool:
        return not self.trades

    @property
    def reconciled(self) -> bool:
        return self.reconciliation is not None and self.reconciliation.applied

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view.  A non-finite profit factor becomes ``"Infinity"``."""
        pf: float | str = self.profit_factor
        if math.isinf(pf):
            pf = "Infinity"
        return {
            "empty": self.empty,
            "net_pnl": float(self.net_pnl),
            "trade_win_percent": self.trade_win_percent,
            "profit_factor": pf,
            "day_win_percent": self.day_win_percent,
            "avg_win_loss": {
                "avg_win": float(r2(self.avg_win)),
                "avg_loss": float(r2(self.avg_loss)),
            },
            "score": self.score,
            "pointers": {
                "patience": self.patience,
                "demon_finder": list(self.top_issues),
                "plan_of_action": list(self.plan_of_action),
            },
            "trades": [rt.to_dict() for rt in self.trades],
            "trade_dates": [d.isoformat() for d in self.trade_dates],
            "total_bad_trade_cost": float(r2(self.total_bad_trade_cost)),
            "total_good_trade_profit": float(r2(self.total_good_trade_profit)),
            "bad_trade_counts": {
                tag: {"count": t.count, "total_cost": float(r2(t.total))}
                for tag, t in self.bad_trade_counts.items()
            },
            "good_trade_counts": {
                tag: {"count": t.count, "total_profit": float(r2(t.total))}
                for tag, t in self.good_trade_counts.items()
            },
            "standard_demons": list(STANDARD_DEMONS),
            "standard_good": list(STANDARD_GOOD),
            "entered_too_soon_count": self.entered_too_soon_count,
            "scrip_summary": [row.to_dict() for row in self.scrip_summary],
            "open_positions": len(self.open_legs),
            "reconciled": self.reconciled,
            "baseline_net": (
                float(self.reconciliation.baseline)
                if self.reconciliation and self.reconciliation.baseline is not None
                else None
            ),
        }


# ---------------------------------------------------------------------------
# Reductions
# ---------------------------------------------------------------------------

def profit_factor(gross_profit: Decimal, gross_loss: Decimal) -> float:
    """Gross profit / gross loss.

    0 with neither profit nor loss; ``math.inf`` with profit but no loss.
    """
    if gross_loss == 0:
        return math.inf if gross_profit > 0 else 0.0
    return float(gross_profit / gross_loss)


def _percent(part: int, whole: int) -> float:
    return part / whole * 100 if whole else 0.0


def composite_score(trade_win: float, day_win: float, config: ScoreConfig) -> int:
    """Weighted blend of a fixed baseline and both win rates, in [0, 100]."""
    raw = min(
        100.0,
        config.baseline * config.baseline_weight
        + trade_win * config.trade_win_weight
        + day_win * config.day_win_weight,
    )
    return max(0, math.floor(raw + 0.5))


def top_issues(counts: dict[str, TagTally], limit: int = 3) -> list[str]:
    """Demon tags that occurred, highest count first (ties keep table order)."""
    ranked = sorted(counts.items(), key=lambda item: item[1].count, reverse=True)
    return [tag for tag, tally in ranked if tally.count > 0][:limit]


def plan_of_action(
    issues: Sequence[str],
    trade_win_percent: float,
    pf: float,
    entered_too_soon: int,
    config: ScoreConfig,
) -> list[str]:
    """Remediation sentences for the top issues plus generic advice.

    Deduplicated, capped at ``config.max_plan_items``.
    """
    actions = [REMEDIATION[tag] for tag in issues if tag in REMEDIATION]
    if trade_win_percent < config.low_win_percent:
        actions.append(LOW_WIN_RATE_ACTION)
    if math.isfinite(pf) and pf < 1:
        actions.append(WEAK_PROFIT_FACTOR_ACTION)
    if entered_too_soon > 0:
        actions.append(EARLY_ENTRY_ACTION)
    return list(OrderedDict.fromkeys(actions))[: config.max_plan_items]


def scrip_summary(round_trips: Sequence[RoundTrip]) -> list[ScripSummaryRow]:
    """Direction-aware per-symbol rollup.

    Charges are back-solved as ``(gross_sell - gross_buy) - net`` so each
    row's ``net_realized`` is the reconciled net for that symbol.
    """
    acc: dict[str, dict[str, Any]] = {}
    for rt in round_trips:
        a = acc.setdefault(
            rt.symbol,
            {"qty": 0, "gross_buy": ZERO, "gross_sell": ZERO, "net": ZERO},
        )
        qty = rt.entry.quantity
        a["qty"] += qty
        if rt.entry.direction is Direction.BUY:
            a["gross_buy"] += rt.entry.price * qty
            a["gross_sell"] += rt.exit.price * qty
        else:
            a["gross_sell"] += rt.entry.price * qty
            a["gross_buy"] += rt.exit.price * qty
        a["net"] += rt.pnl

    rows = []
    for symbol, a in acc.items():
        qty = a["qty"]
        rows.append(ScripSummaryRow(
            symbol=symbol,
            total_quantity=qty,
            average_buy_price=r2(a["gross_buy"] / qty) if qty else ZERO,
            average_sell_price=r2(a["gross_sell"] / qty) if qty else ZERO,
            charges=r2((a["gross_sell"] - a["gross_buy"]) - a["net"]),
            net_realized=r2(a["net"]),
        ))
    rows.sort(key=lambda row: row.net_realized, reverse=True)
    return rows


def aggregate(
    round_trips: Sequence[RoundTrip],
    summary: ClassificationSummary,
    config: ScoreConfig | None = None,
    *,
    open_legs: Sequence[TradeLeg] = (),
    reconciliation: ReconciliationResult | None = None,
) -> Stats:
    """Reduce classified round trips to :class:`Stats`."""
    config = config or ScoreConfig()
    averages = summary.averages

    pnl_by_date: dict[date, Decimal] = {}
    for rt in round_trips:
        pnl_by_date[rt.exit_date] = pnl_by_date.get(rt.exit_date, ZERO) + rt.pnl

    trade_win = _percent(averages.wins, len(round_trips))
    day_win = _percent(sum(1 for v in pnl_by_date.values() if v > 0), len(pnl_by_date))
    pf = profit_factor(averages.profit_sum, averages.loss_sum)
    issues = top_issues(summary.bad_trade_counts, config.max_top_issues)

    return Stats(
        net_pnl=r2(sum((rt.pnl for rt in round_trips), ZERO)),
        trade_win_percent=trade_win,
        profit_factor=pf,
        day_win_percent=day_win,
        avg_win=averages.avg_win,
        avg_loss=averages.avg_loss,
        score=composite_score(trade_win, day_win, config),
        patience=config.baseline,
        wins=averages.wins,
        losses=averages.losses,
        trades=list(round_trips),
        trade_dates=list(pnl_by_date),
        bad_trade_counts=summary.bad_trade_counts,
        good_trade_counts=summary.good_trade_counts,
        total_bad_trade_cost=summary.total_bad_trade_cost,
        total_good_trade_profit=summary.total_good_trade_profit,
        entered_too_soon_count=summary.entered_too_soon_count,
        top_issues=issues,
        plan_of_action=plan_of_action(
            issues, trade_win, pf, summary.entered_too_soon_count, config,
        ),
        scrip_summary=scrip_summary(round_trips),
        open_legs=list(open_legs),
        reconciliation=reconciliation,
    )
