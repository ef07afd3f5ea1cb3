"""Reconcile matched round-trip P&L against the broker-implied baseline.

Contract-note exports carry raw buy and sell prices per row, so the
broker's own view of the day's net can be rebuilt from the unsplit rows::

    baseline = sum(sell_raw * qty) - sum(buy_raw * qty) - sum(charges)

When the matched round trips disagree with that figure by a cent or
more, the difference is spread over the round trips in proportion to
their absolute P&L, with the last round trip absorbing the rounding
remainder so the total lands exactly on the baseline.

Reconciliation is skipped while any position is still open; the
baseline includes the open legs and would not be comparable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from tradebook_journal.observability.metrics import record_reconciliation

from .matcher import MatchResult
from .record import ZERO, RoundTrip, TradeLeg, r2

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = Decimal("0.01")


@dataclass
class ReconciliationResult:
    """What a reconciliation pass did."""

    status: str  # applied, within_tolerance, skipped_open, no_baseline, no_trades, disabled
    baseline: Decimal | None = None
    delta: Decimal = ZERO

    @property
    def applied(self) -> bool:
        return self.status == "applied"


def compute_baseline(legs: Sequence[TradeLeg]) -> Decimal | None:
    """Broker-implied net from raw unsplit rows, or ``None`` without raw prices."""
    if not any(leg.has_raw_prices for leg in legs):
        return None

    gross_sell = ZERO
    gross_buy = ZERO
    charges = ZERO
    for leg in legs:
        qty = Decimal(leg.quantity)
        if leg.sell_price_raw and qty:
            gross_sell += leg.sell_price_raw * qty
        if leg.buy_price_raw and qty:
            gross_buy += leg.buy_price_raw * qty
        charges += leg.charges
    return r2(gross_sell - gross_buy - charges)


def reconcile(
    round_trips: Sequence[RoundTrip],
    baseline: Decimal | None,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> ReconciliationResult:
    """Overwrite round-trip P&L in place so it sums to *baseline*.

    P&L is rounded to the cent before the delta is taken, so after an
    applied pass ``sum(rt.pnl for rt in round_trips) == baseline``
    exactly.
    """
    if baseline is None:
        return ReconciliationResult(status="no_baseline")
    if not round_trips:
        return ReconciliationResult(status="no_trades", baseline=baseline)

    current = sum((rt.pnl for rt in round_trips), ZERO)
    delta = r2(baseline - current)
    if abs(delta) < tolerance:
        return ReconciliationResult(
            status="within_tolerance", baseline=baseline, delta=delta,
        )

    for rt in round_trips:
        rt.pnl = r2(rt.pnl)
    delta = r2(baseline - sum((rt.pnl for rt in round_trips), ZERO))

    total_abs = sum((abs(rt.pnl) for rt in round_trips), ZERO)
    n = len(round_trips)
    allocated = ZERO
    for i, rt in enumerate(round_trips):
        if i == n - 1:
            adj = r2(delta - allocated)
        elif total_abs == 0:
            adj = r2(delta / n)
        else:
            adj = r2(delta * abs(rt.pnl) / total_abs)
        rt.pnl = r2(rt.pnl + adj)
        allocated = r2(allocated + adj)

    logger.info(
        "Reconciled %d round trips to baseline %s (delta %s)",
        n, baseline, delta,
    )
    return ReconciliationResult(status="applied", baseline=baseline, delta=delta)


def reconcile_match(
    match: MatchResult,
    legs: Sequence[TradeLeg],
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> ReconciliationResult:
    """Reconcile a matching pass, skipping it when a position is still open."""
    if match.has_open_position:
        result = ReconciliationResult(status="skipped_open")
        logger.debug(
            "Reconciliation skipped: %d open legs remain", len(match.open_legs),
        )
    else:
        result = reconcile(match.round_trips, compute_baseline(legs), tolerance)
    record_reconciliation(result.status)
    return result
