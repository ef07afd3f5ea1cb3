"""Trade row model: executed legs and the round trips built from them.

A :class:`TradeLeg` is one executed buy or sell as normalized from a
broker export.  Legs are immutable; matching derives new legs by
slicing off a quantity and carrying a proportional share of charges.

A :class:`RoundTrip` is one closed position: an entry slice paired with
an opposite-direction exit slice of the same quantity.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field, replace
from decimal import ROUND_HALF_UP, Decimal

from tradebook_journal.core.enums import Direction

ZERO = Decimal("0")
CENT = Decimal("0.01")


def r2(value: Decimal) -> Decimal:
    """Round a money value to the cent (half away from zero)."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class TradeLeg:
    """A single executed leg.

    Parameters
    ----------
    date : datetime.date
        Trading date of the execution.
    symbol : str
        Broker scrip / contract name.
    direction : Direction | None
        ``Buy`` or ``Sell``.  ``None`` marks an unusable row.
    quantity : int
        Quantity of this leg (or slice).
    price : Decimal | None
        Execution price.  ``None`` marks an unusable row.
    time : datetime.time | None
        Execution time when the export carries one.
    charges : Decimal
        All charges attributed to this leg (or slice).
    full_quantity : int
        Lot size of the original unsplit leg.  Charges of every slice are
        prorated against this.  Defaults to ``quantity``.
    buy_price_raw, sell_price_raw : Decimal | None
        Contract-note raw prices, used for the reconciliation baseline.
    stop_distance : Decimal | None
        Per-unit distance to the predefined stop, when known.
    """

    date: dt.date
    symbol: str
    direction: Direction | None
    quantity: int
    price: Decimal | None
    time: dt.time | None = None
    charges: Decimal = ZERO
    full_quantity: int = 0
    buy_price_raw: Decimal | None = None
    sell_price_raw: Decimal | None = None
    stop_distance: Decimal | None = None

    def __post_init__(self) -> None:
        if self.full_quantity <= 0:
            object.__setattr__(self, "full_quantity", self.quantity)

    @property
    def timestamp(self) -> dt.datetime:
        """Date + time; legs without a time sort at start of day."""
        return dt.datetime.combine(self.date, self.time or dt.time.min)

    @property
    def has_raw_prices(self) -> bool:
        return self.buy_price_raw is not None or self.sell_price_raw is not None

    @property
    def is_usable(self) -> bool:
        """Whether the leg carries everything matching needs."""
        return (
            bool(self.symbol)
            and self.direction is not None
            and self.quantity > 0
            and self.price is not None
            and self.price >= 0
        )

    def charge_for(self, quantity: int) -> Decimal:
        """Charges prorated to *quantity* of the original lot."""
        if self.full_quantity <= 0:
            return ZERO
        return self.charges * Decimal(quantity) / Decimal(self.full_quantity)

    def sliced(self, quantity: int) -> TradeLeg:
        """A slice of this leg charged ``quantity / full_quantity`` of its charges."""
        return replace(self, quantity=quantity, charges=self.charge_for(quantity))

    def remainder(self, quantity: int) -> TradeLeg:
        """The unconsumed part of this leg.

        Keeps the original charges and lot size so later slices are
        prorated against the same denominator.
        """
        return replace(self, quantity=quantity)


@dataclass
class RoundTrip:
    """One closed position.

    ``pnl`` starts as gross minus the prorated charges of both slices and
    may be overwritten once by reconciliation.  Tags and flags are filled
    in once by the classifier.
    """

    symbol: str
    entry: TradeLeg
    exit: TradeLeg
    pnl: Decimal
    holding_minutes: int
    demon_tags: list[str] = field(default_factory=list)
    good_tags: list[str] = field(default_factory=list)
    is_bad_trade: bool = False
    is_good_trade: bool = False

    @property
    def quantity(self) -> int:
        return self.entry.quantity

    @property
    def is_long(self) -> bool:
        return self.entry.direction is Direction.BUY

    @property
    def charges(self) -> Decimal:
        return self.entry.charges + self.exit.charges

    @property
    def gross_pnl(self) -> Decimal:
        diff = self.exit.price - self.entry.price
        if not self.is_long:
            diff = -diff
        return diff * self.quantity

    @property
    def legs(self) -> tuple[TradeLeg, TradeLeg]:
        return (self.entry, self.exit)

    @property
    def exit_date(self) -> dt.date:
        return self.exit.date

    def to_dict(self) -> dict:
        """Flat JSON-friendly view used by the API and exporters."""
        return {
            "symbol": self.symbol,
            "direction": self.entry.direction.value if self.entry.direction else None,
            "quantity": self.quantity,
            "entry_date": self.entry.date.isoformat(),
            "entry_time": self.entry.time.strftime("%H:%M") if self.entry.time else None,
            "entry_price": str(self.entry.price),
            "exit_date": self.exit.date.isoformat(),
            "exit_time": self.exit.time.strftime("%H:%M") if self.exit.time else None,
            "exit_price": str(self.exit.price),
            "charges": str(r2(self.charges)),
            "pnl": str(r2(self.pnl)),
            "holding_minutes": self.holding_minutes,
            "demon_tags": list(self.demon_tags),
            "good_tags": list(self.good_tags),
            "is_bad_trade": self.is_bad_trade,
            "is_good_trade": self.is_good_trade,
        }
