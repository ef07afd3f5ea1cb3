"""Round-trip export: CSV and JSON.

Writes classified round trips in flat formats for spreadsheets and
archival, and the per-symbol summary table as its own CSV.

Usage::

    exporter = RoundTripExporter()
    csv_str = exporter.to_csv(stats.trades)
    json_str = exporter.to_json(stats.trades)
    summary_csv = exporter.scrip_summary_csv(stats.scrip_summary)
"""

from __future__ import annotations

import csv
import io
import json
import logging
from typing import Any, Sequence

from .record import RoundTrip
from .stats import ScripSummaryRow

logger = logging.getLogger(__name__)

_CSV_COLUMNS = [
    "symbol",
    "direction",
    "quantity",
    "entry_date",
    "entry_time",
    "entry_price",
    "exit_date",
    "exit_time",
    "exit_price",
    "charges",
    "pnl",
    "holding_minutes",
    "demon_tags",
    "good_tags",
    "is_bad_trade",
    "is_good_trade",
]

_SUMMARY_COLUMNS = [
    "symbol",
    "total_quantity",
    "average_buy_price",
    "average_sell_price",
    "charges",
    "net_realized",
]


class RoundTripExporter:
    """Export round trips to CSV/JSON.

    Parameters
    ----------
    tag_separator : str
        Joins multiple tags inside one CSV cell.  Default ``"; "``.
    """

    def __init__(self, *, tag_separator: str = "; ") -> None:
        self._sep = tag_separator

    def to_csv(
        self,
        round_trips: Sequence[RoundTrip],
        *,
        columns: list[str] | None = None,
    ) -> str:
        """Export round trips as a CSV string with a header row."""
        cols = columns or _CSV_COLUMNS
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=cols, extrasaction="ignore")
        writer.writeheader()

        for rt in round_trips:
            row = self._row(rt)
            writer.writerow({c: row.get(c, "") for c in cols})

        return buf.getvalue()

    def to_json(self, round_trips: Sequence[RoundTrip], *, indent: int = 2) -> str:
        """Export round trips as a JSON list."""
        return json.dumps([rt.to_dict() for rt in round_trips], indent=indent, default=str)

    def scrip_summary_csv(self, rows: Sequence[ScripSummaryRow]) -> str:
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=_SUMMARY_COLUMNS)
        writer.writeheader()
        for row in rows:
            writer.writerow(row.to_dict())
        return buf.getvalue()

    def _row(self, rt: RoundTrip) -> dict[str, Any]:
        row = rt.to_dict()
        row["demon_tags"] = self._sep.join(rt.demon_tags)
        row["good_tags"] = self._sep.join(rt.good_tags)
        row["entry_time"] = row["entry_time"] or ""
        row["exit_time"] = row["exit_time"] or ""
        return row
