"""Day snapshot freezer.

Turns round trips into one immutable statistics document per trading
day and writes it as the next version for that (user, day), superseding
the previously active version.  Round trips are attributed to the day
they were *closed*: a position opened Monday and closed Tuesday counts
entirely towards Tuesday.

Per (user, day) a snapshot moves through::

    no-snapshot -> active -> superseded

Nothing is ever deleted.  The store guarantees at most one active
version per day; a concurrent freeze that loses the race gets a
:class:`SnapshotConflictError`, which is retried here a bounded number
of times.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from tradebook_journal.core.clock import IClock, WallClock
from tradebook_journal.core.errors import SnapshotConflictError
from tradebook_journal.core.interfaces import IJournalStore
from tradebook_journal.core.models import DayAggregates, DaySnapshot
from tradebook_journal.journal.matcher import match_round_trips
from tradebook_journal.journal.record import ZERO, RoundTrip, TradeLeg, r2
from tradebook_journal.observability.metrics import (
    record_snapshot_conflict,
    record_snapshot_frozen,
)

logger = logging.getLogger(__name__)


def _round(value: float, places: int) -> float:
    q = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def day_aggregates(round_trips: Sequence[RoundTrip]) -> DayAggregates:
    """Statistics for round trips that all closed on the same day."""
    gross_profit = gross_loss = net = fees = ZERO
    wins = losses = longs = shorts = 0
    best: Decimal | None = None
    worst: Decimal | None = None
    symbols: set[str] = set()

    for rt in round_trips:
        pnl = rt.pnl
        net += pnl
        fees += rt.charges
        if pnl > 0:
            wins += 1
            gross_profit += pnl
        elif pnl < 0:
            losses += 1
            gross_loss += -pnl
        best = pnl if best is None or pnl > best else best
        worst = pnl if worst is None or pnl < worst else worst
        symbols.add(rt.symbol)
        if rt.is_long:
            longs += 1
        else:
            shorts += 1

    closed = wins + losses
    return DayAggregates(
        trade_count=len(round_trips),
        net_pnl=r2(net),
        gross_profit=r2(gross_profit),
        gross_loss=r2(gross_loss),
        wins=wins,
        losses=losses,
        win_rate=_round(wins / closed, 4) if closed else 0.0,
        profit_factor=_round(float(gross_profit / gross_loss), 2) if gross_loss else 0.0,
        best_trade_pnl=r2(best) if best is not None else ZERO,
        worst_trade_pnl=r2(worst) if worst is not None else ZERO,
        fees=r2(fees),
        symbol_count=len(symbols),
        long_count=longs,
        short_count=shorts,
    )


def compute_day_aggregates(
    round_trips: Sequence[RoundTrip],
) -> "OrderedDict[date, DayAggregates]":
    """Group round trips by exit date and aggregate each day.

    Days appear in first-seen order of their exits.
    """
    by_day: OrderedDict[date, list[RoundTrip]] = OrderedDict()
    for rt in round_trips:
        by_day.setdefault(rt.exit_date, []).append(rt)
    return OrderedDict((day, day_aggregates(rts)) for day, rts in by_day.items())


class SnapshotFreezer:
    """Writes versioned day snapshots to a journal store.

    Parameters
    ----------
    store : IJournalStore
        Destination store.
    conflict_retries : int
        Extra attempts after a :class:`SnapshotConflictError` before it is
        re-raised to the caller.
    broker : str
        Broker label stamped on each snapshot.
    clock : IClock
        Source of ``frozen_at``.
    """

    def __init__(
        self,
        store: IJournalStore,
        *,
        conflict_retries: int = 3,
        broker: str = "unknown",
        clock: IClock | None = None,
    ) -> None:
        self._store = store
        self._retries = max(0, conflict_retries)
        self._broker = broker
        self._clock = clock or WallClock()

    async def freeze_round_trips(
        self,
        user_id: str,
        source_id: str | None,
        round_trips: Sequence[RoundTrip],
        *,
        broker: str | None = None,
    ) -> list[DaySnapshot]:
        """Freeze one snapshot per exit day touched by *round_trips*."""
        frozen: list[DaySnapshot] = []
        for day, agg in compute_day_aggregates(round_trips).items():
            snapshot = DaySnapshot(
                user_id=user_id,
                trading_date=day,
                source_id=source_id,
                broker=broker or self._broker,
                frozen_at=self._clock.now(),
                **agg.model_dump(),
            )
            frozen.append(await self._write(snapshot))
        return frozen

    async def freeze_legs(
        self,
        user_id: str,
        source_id: str | None,
        legs: Sequence[TradeLeg],
        *,
        broker: str | None = None,
    ) -> list[DaySnapshot]:
        """Pair raw legs (FIFO, no reconciliation) and freeze the result."""
        match = match_round_trips(legs)
        return await self.freeze_round_trips(
            user_id, source_id, match.round_trips, broker=broker,
        )

    async def _write(self, snapshot: DaySnapshot) -> DaySnapshot:
        attempt = 0
        while True:
            try:
                stored = await self._store.supersede_and_insert(snapshot)
            except SnapshotConflictError:
                record_snapshot_conflict()
                if attempt >= self._retries:
                    logger.error(
                        "Snapshot conflict for %s on %s persisted after %d retries",
                        snapshot.user_id, snapshot.trading_date, attempt,
                    )
                    raise
                attempt += 1
                logger.warning(
                    "Snapshot conflict for %s on %s, retrying (%d/%d)",
                    snapshot.user_id, snapshot.trading_date, attempt, self._retries,
                )
                continue
            record_snapshot_frozen()
            logger.info(
                "Froze snapshot v%d for %s on %s (%d trades, net %s)",
                stored.version, stored.user_id, stored.trading_date,
                stored.trade_count, stored.net_pnl,
            )
            return stored
