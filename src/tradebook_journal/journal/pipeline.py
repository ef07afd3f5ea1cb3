"""End-to-end processing of one batch of trade legs.

match -> reconcile -> classify -> aggregate
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Sequence

from tradebook_journal.core.config import Settings
from tradebook_journal.observability.metrics import record_round_trips

from .classifier import TradeClassifier
from .matcher import match_round_trips
from .reconciliation import ReconciliationResult, reconcile_match
from .record import TradeLeg
from .stats import Stats, aggregate

logger = logging.getLogger(__name__)


def process_trades(
    legs: Sequence[TradeLeg],
    settings: Settings | None = None,
) -> Stats:
    """Turn raw legs into classified round trips and their statistics.

    Reconciliation runs before classification so every rule sees the
    final, reconciled P&L.
    """
    settings = settings or Settings()

    match = match_round_trips(legs)
    record_round_trips(len(match.round_trips))

    if settings.reconciliation.enabled:
        recon = reconcile_match(
            match, legs, Decimal(str(settings.reconciliation.tolerance)),
        )
    else:
        recon = ReconciliationResult(status="disabled")

    summary = TradeClassifier(settings.classifier).classify(match.round_trips)
    stats = aggregate(
        match.round_trips,
        summary,
        settings.score,
        open_legs=match.open_legs,
        reconciliation=recon,
    )
    logger.info(
        "Processed %d legs into %d round trips: net=%s score=%d reconciliation=%s",
        len(legs), len(stats.trades), stats.net_pnl, stats.score, recon.status,
    )
    return stats
