"""Protocol interfaces for the trade journal.

Store boundaries are defined here as Protocol classes so the in-memory
and SQL implementations can be swapped without changing callers.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol, Sequence, runtime_checkable

from .models import DailyPlan, DaySnapshot, ExecutedLeg, OrderbookMeta


# ---------------------------------------------------------------------------
# Journal store
# ---------------------------------------------------------------------------

@runtime_checkable
class IJournalStore(Protocol):
    """Persistence for orderbooks, executed legs, day snapshots and daily plans."""

    # Orderbooks
    async def get_or_create_orderbook(
        self, meta: OrderbookMeta,
    ) -> tuple[OrderbookMeta, bool]:
        """Return the stored meta for (user_id, file_hash) and whether it was new."""
        ...

    # Executed legs
    async def upsert_executed_legs(self, legs: Sequence[ExecutedLeg]) -> int:
        """Insert legs whose natural key is absent.  Returns the insert count."""
        ...

    async def list_executed_legs(
        self, user_id: str, trading_date: date,
    ) -> list[ExecutedLeg]: ...

    # Day snapshots
    async def supersede_and_insert(self, snapshot: DaySnapshot) -> DaySnapshot:
        """Flag the active snapshot superseded and insert *snapshot* as the next version.

        Raises:
            SnapshotConflictError: another active snapshot appeared for the
                same (user_id, trading_date) in the meantime.
        """
        ...

    async def get_active_snapshot(
        self, user_id: str, trading_date: date,
    ) -> DaySnapshot | None: ...

    async def list_active_snapshots(
        self, user_id: str, start: date, end: date,
    ) -> list[DaySnapshot]:
        """Active snapshots with ``start <= trading_date < end``, ordered by date."""
        ...

    async def list_snapshot_versions(
        self, user_id: str, trading_date: date,
    ) -> list[DaySnapshot]:
        """All versions for one day, oldest first."""
        ...

    # Daily plans
    async def upsert_daily_plan(self, plan: DailyPlan) -> DailyPlan:
        """Insert or replace the plan for (user_id, plan_date).

        An existing plan keeps its ``id`` and ``created_at``.
        """
        ...

    async def get_daily_plan(
        self, user_id: str, plan_date: date,
    ) -> DailyPlan | None: ...
