"""Broker tradebook parsers.

Each parser recognizes one export shape by its header line and turns the
rows beneath it into :class:`TradeLeg` objects.  Rows missing a required
field are dropped and counted, never reported individually.

Adding a broker means adding a parser class and listing it in
:data:`PARSERS`; matching and classification are untouched.

Usage::

    result = parse_tradebook(text)
    print(result.parser, len(result.legs), result.dropped)
"""

from __future__ import annotations

import csv
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import ClassVar, Iterable, Protocol, Sequence

from tradebook_journal.core.enums import Direction
from tradebook_journal.core.errors import WrongFileError
from tradebook_journal.journal.record import ZERO, TradeLeg
from tradebook_journal.observability.metrics import record_rows_dropped

from .dates import normalize_date, normalize_time

logger = logging.getLogger(__name__)

_WS = re.compile(r"\s")


def _squash(text: str) -> str:
    return _WS.sub("", text).lower()


def _decimal(raw: str | None) -> Decimal | None:
    if raw is None:
        return None
    text = raw.strip().replace(",", "")
    if not text:
        return None
    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def _quantity(raw: str | None) -> int:
    value = _decimal(raw)
    if value is None:
        return 0
    return int(abs(value))


def _first(row: dict[str, str | None], *keys: str) -> str:
    for key in keys:
        value = row.get(key)
        if value and value.strip():
            return value.strip()
    return ""


def _stop_distance(price: Decimal, stop: Decimal | None) -> Decimal | None:
    if stop is None or stop <= 0:
        return None
    return abs(price - stop)


@dataclass
class ParseResult:
    """Legs parsed from one file plus bookkeeping."""

    parser: str
    legs: list[TradeLeg] = field(default_factory=list)
    dropped: int = 0
    header_index: int = 0


class TradebookParser(Protocol):
    """Strategy interface: one implementation per export shape."""

    name: str

    def matches(self, header_line: str) -> bool: ...

    def parse_rows(self, rows: Iterable[dict[str, str | None]]) -> ParseResult: ...


class _HeaderParser:
    """Shared header sniffing: whitespace-insensitive, case-insensitive prefix."""

    name: ClassVar[str] = ""
    header_prefixes: ClassVar[tuple[str, ...]] = ()

    def __init__(self, *, day_first: bool = False) -> None:
        self._day_first = day_first

    def matches(self, header_line: str) -> bool:
        line = _squash(header_line)
        return any(line.startswith(_squash(p)) for p in self.header_prefixes)

    def parse_rows(self, rows: Iterable[dict[str, str | None]]) -> ParseResult:
        result = ParseResult(parser=self.name)
        for row in rows:
            leg = self.parse_row(row)
            if leg is None or not leg.is_usable:
                result.dropped += 1
            else:
                result.legs.append(leg)
        record_rows_dropped(self.name, result.dropped)
        return result

    def parse_row(self, row: dict[str, str | None]) -> TradeLeg | None:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Retail broker: symbol,isin,trade_date,...,trade_type,quantity,price
# ---------------------------------------------------------------------------

class RetailBrokerParser(_HeaderParser):
    """Retail discount-broker tradebook.

    Time comes from ``order_execution_time`` (``date T time`` or
    ``date time``) or else ``trade_time``.  These exports carry no
    charges.
    """

    name = "retail"
    header_prefixes = ("symbol,isin,trade_date",)

    def parse_row(self, row: dict[str, str | None]) -> TradeLeg | None:
        symbol = _first(row, "symbol")
        if not symbol:
            return None

        raw_date = _first(row, "trade_date")
        raw_time = ""
        executed = _first(row, "order_execution_time")
        if executed:
            for sep in ("T", " "):
                if sep in executed:
                    raw_date, raw_time = executed.split(sep, 1)
                    break
        else:
            raw_time = _first(row, "trade_time")

        trade_date = normalize_date(raw_date, day_first=self._day_first)
        price = _decimal(_first(row, "price"))
        if trade_date is None or price is None:
            return None

        return TradeLeg(
            date=trade_date,
            time=normalize_time(raw_time),
            symbol=symbol,
            direction=Direction.parse(_first(row, "trade_type")),
            quantity=_quantity(_first(row, "quantity")),
            price=price,
            stop_distance=_stop_distance(price, _decimal(_first(row, "stop_loss"))),
        )


# ---------------------------------------------------------------------------
# Contract note: Scrip/Contract,Buy/Sell,Buy Price,Sell Price,Quantity,...
# ---------------------------------------------------------------------------

_CHARGE_COLUMNS = (
    "Brokerage",
    "GST",
    "STT",
    "Sebi Tax",
    "Stamp Duty",
    "Other Charges",
    "IPFT Charges",
)


class ContractNoteParser(_HeaderParser):
    """Full-service broker contract note with itemized charges.

    The row's price is its buy price for buys and sell price for sells;
    both raw prices are kept for the reconciliation baseline.  Itemized
    charge columns are summed into one figure.
    """

    name = "contract_note"
    header_prefixes = ("Scrip/Contract,Buy/Sell,Buy Price",)

    def parse_row(self, row: dict[str, str | None]) -> TradeLeg | None:
        symbol = _first(row, "Scrip/Contract")
        direction = Direction.parse(_first(row, "Buy/Sell"))
        if not symbol or direction is None:
            return None

        buy_price = _decimal(_first(row, "Buy Price"))
        sell_price = _decimal(_first(row, "Sell Price"))
        price = buy_price if direction is Direction.BUY else sell_price
        if price is None:
            return None

        raw_date = _first(row, "Date", "Trade Date")
        raw_time = _first(row, "Time", "Trade Time", "Order Time", "TradeDateTime")
        if " " in raw_time:
            raw_date, raw_time = raw_time.split(" ", 1)
        trade_date = normalize_date(raw_date, day_first=self._day_first)
        if trade_date is None:
            return None

        charges = sum(
            (_decimal(row.get(col)) or ZERO for col in _CHARGE_COLUMNS), ZERO,
        )
        charges += (
            _decimal(row.get("Exchange Turnover Charges"))
            or _decimal(row.get("Exchange Turnover"))
            or ZERO
        )

        return TradeLeg(
            date=trade_date,
            time=normalize_time(raw_time, strict=True),
            symbol=symbol,
            direction=direction,
            quantity=_quantity(_first(row, "Quantity")),
            price=price,
            charges=charges,
            # A zero raw price means the side did not trade
            buy_price_raw=buy_price or None,
            sell_price_raw=sell_price or None,
            stop_distance=_stop_distance(price, _decimal(_first(row, "Stop Loss"))),
        )


# ---------------------------------------------------------------------------
# Bank-broker tradebook: Scrip Name,Trade Type,Trade Date,...
# ---------------------------------------------------------------------------

class ScripNameParser(_HeaderParser):
    """Bank-broker tradebook keyed by scrip name, brokerage in one column."""

    name = "scrip_name"
    header_prefixes = ("Scrip Name,Trade Type,Trade Date",)

    def parse_row(self, row: dict[str, str | None]) -> TradeLeg | None:
        symbol = _first(row, "Scrip Name")
        trade_date = normalize_date(_first(row, "Trade Date"), day_first=self._day_first)
        price = _decimal(_first(row, "Price", "Trade Price", "Rate"))
        if not symbol or trade_date is None or price is None:
            return None

        return TradeLeg(
            date=trade_date,
            time=normalize_time(_first(row, "Trade Time", "Time")),
            symbol=symbol,
            direction=Direction.parse(_first(row, "Trade Type")),
            quantity=_quantity(_first(row, "Quantity", "Qty")),
            price=price,
            charges=_decimal(_first(row, "Brokerage")) or ZERO,
        )


PARSERS: tuple[type[_HeaderParser], ...] = (
    ContractNoteParser,
    RetailBrokerParser,
    ScripNameParser,
)


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------

def detect(
    header_line: str,
    *,
    day_first: bool = False,
    parsers: Sequence[type[_HeaderParser]] = PARSERS,
) -> TradebookParser | None:
    """Return a parser for *header_line*, or ``None`` if no shape matches."""
    for cls in parsers:
        parser = cls(day_first=day_first)
        if parser.matches(header_line):
            return parser
    return None


def find_header(
    lines: Sequence[str], *, day_first: bool = False,
) -> tuple[int, TradebookParser] | None:
    """Locate the first line that is a known header.

    Broker exports often put account details above the trade table, so
    every line is tried in order.
    """
    for idx, line in enumerate(lines):
        parser = detect(line, day_first=day_first)
        if parser is not None:
            return idx, parser
    return None


def parse_tradebook(text: str, *, day_first: bool = False) -> ParseResult:
    """Parse a whole CSV export into legs.

    Raises:
        WrongFileError: no known header, or zero usable rows.
    """
    lines = text.lstrip("\ufeff").splitlines()
    found = find_header(lines, day_first=day_first)
    if found is None:
        raise WrongFileError("No recognizable trade table found")
    idx, parser = found

    reader = csv.DictReader(
        (line for line in lines[idx:] if line.strip()),
        skipinitialspace=True,
    )
    # Header cells sometimes carry stray padding
    if reader.fieldnames:
        reader.fieldnames = [name.strip() for name in reader.fieldnames]
    result = parser.parse_rows(reader)
    result.header_index = idx

    if not result.legs:
        raise WrongFileError(f"No usable trade rows ({result.dropped} dropped)")

    logger.info(
        "Parsed %d legs with %s parser (%d rows dropped)",
        len(result.legs), result.parser, result.dropped,
    )
    return result
