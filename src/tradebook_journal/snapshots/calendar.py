"""Calendar read views over frozen day snapshots.

Only active (non-superseded) snapshots are ever shown.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from tradebook_journal.core.interfaces import IJournalStore
from tradebook_journal.core.models import DaySnapshot
from tradebook_journal.journal.record import ZERO, r2

# Fields shown on a month grid cell
DAY_CARD_FIELDS = (
    "trading_date",
    "trade_count",
    "net_pnl",
    "win_rate",
    "profit_factor",
    "best_trade_pnl",
)


def month_range(year: int, month: int) -> tuple[date, date]:
    """``[first of month, first of next month)``; month is clamped to 1..12."""
    month = max(1, min(12, month))
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start, end


def _day_card(snapshot: DaySnapshot) -> dict[str, Any]:
    return snapshot.model_dump(mode="json", include=set(DAY_CARD_FIELDS))


def month_summary(snapshots: list[DaySnapshot]) -> dict[str, Any]:
    """Totals across a month of active snapshots."""
    total_trades = wins = losses = 0
    net = gross_profit = gross_loss = ZERO
    best: DaySnapshot | None = None

    for snap in snapshots:
        total_trades += snap.trade_count
        net += snap.net_pnl
        wins += snap.wins
        losses += snap.losses
        gross_profit += snap.gross_profit
        gross_loss += snap.gross_loss
        if best is None or snap.net_pnl > best.net_pnl:
            best = snap

    closed = wins + losses
    return {
        "total_trades": total_trades,
        "net_pnl": float(r2(net)),
        "win_rate": wins / closed if closed else 0.0,
        "profit_factor": float(gross_profit / gross_loss) if gross_loss else 0.0,
        "best_day": {
            "date": best.trading_date.isoformat() if best else None,
            "net_pnl": float(best.net_pnl) if best else 0.0,
        },
    }


class CalendarService:
    """Month and day views for one user's journal."""

    def __init__(self, store: IJournalStore) -> None:
        self._store = store

    async def month_view(self, user_id: str, year: int, month: int) -> dict[str, Any]:
        start, end = month_range(year, month)
        snapshots = await self._store.list_active_snapshots(user_id, start, end)
        return {
            "days": [_day_card(s) for s in snapshots],
            "month_summary": month_summary(snapshots),
        }

    async def day_view(self, user_id: str, trading_date: date) -> dict[str, Any]:
        snapshot = await self._store.get_active_snapshot(user_id, trading_date)
        if snapshot is None:
            return {"snapshot": None, "executed_legs": []}
        legs = await self._store.list_executed_legs(user_id, trading_date)
        return {
            "snapshot": snapshot.model_dump(mode="json"),
            "executed_legs": [
                leg.model_dump(mode="json", exclude={"user_id"}) for leg in legs
            ],
        }
