"""FIFO round-trip matcher.

Pairs opposite-direction legs per symbol in time order.  Each symbol
keeps a FIFO queue of open legs that all share one direction.  A leg in
the opposite direction closes against the head of the queue, slice by
slice, splitting partial fills; whatever it cannot close opens a new
position in its own direction.

Quantity is conserved per symbol::

    sum(round trip quantities) + sum(open quantities) == sum(input quantities)

Usage::

    result = match_round_trips(legs)
    for rt in result.round_trips:
        print(rt.symbol, rt.quantity, rt.pnl)
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable

from .record import ZERO, RoundTrip, TradeLeg

logger = logging.getLogger(__name__)


@dataclass
class MatchResult:
    """Output of one matching pass."""

    round_trips: list[RoundTrip] = field(default_factory=list)
    open_legs: list[TradeLeg] = field(default_factory=list)
    dropped: int = 0

    @property
    def has_open_position(self) -> bool:
        return bool(self.open_legs)

    def open_quantity(self, symbol: str) -> int:
        return sum(leg.quantity for leg in self.open_legs if leg.symbol == symbol)


def _holding_minutes(entry: TradeLeg, exit_: TradeLeg) -> int:
    delta = exit_.timestamp - entry.timestamp
    return int(round(delta.total_seconds() / 60))


def _close(entry: TradeLeg, exit_: TradeLeg) -> RoundTrip:
    """Build a round trip from two equal-quantity slices."""
    rt = RoundTrip(
        symbol=entry.symbol,
        entry=entry,
        exit=exit_,
        pnl=ZERO,
        holding_minutes=_holding_minutes(entry, exit_),
    )
    rt.pnl = rt.gross_pnl - rt.charges
    return rt


def match_round_trips(legs: Iterable[TradeLeg]) -> MatchResult:
    """Pair legs into round trips using per-symbol FIFO queues.

    Legs with no symbol, no direction, no price or a non-positive
    quantity are dropped first.  The rest are stably sorted by
    timestamp, so legs sharing a timestamp keep their input order.
    """
    result = MatchResult()
    usable: list[TradeLeg] = []
    for leg in legs:
        if leg.is_usable:
            usable.append(leg)
        else:
            result.dropped += 1

    usable.sort(key=lambda leg: leg.timestamp)

    book: dict[str, deque[TradeLeg]] = {}

    for leg in usable:
        queue = book.setdefault(leg.symbol, deque())

        if not queue or queue[0].direction == leg.direction:
            queue.append(leg)
            continue

        remaining = leg.quantity
        while queue and remaining > 0:
            head = queue[0]
            qty = min(remaining, head.quantity)
            result.round_trips.append(_close(head.sliced(qty), leg.sliced(qty)))

            if head.quantity > qty:
                queue[0] = head.remainder(head.quantity - qty)
            else:
                queue.popleft()
            remaining -= qty

        if remaining > 0:
            # Position flipped: the leftover opens the other side
            queue.append(leg.remainder(remaining))

    for queue in book.values():
        result.open_legs.extend(queue)

    if result.dropped:
        logger.debug("Matcher dropped %d unusable legs", result.dropped)
    logger.debug(
        "Matched %d round trips (%d open legs)",
        len(result.round_trips), len(result.open_legs),
    )
    return result
