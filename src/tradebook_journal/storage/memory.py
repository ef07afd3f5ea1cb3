"""In-memory journal store.

Implements :class:`IJournalStore` with plain dicts and lists.  Used by
the CLI, tests, and single-process deployments where losing history on
restart is acceptable.

The active-snapshot constraint is enforced on insert exactly like the
SQL partial unique index: inserting a second active snapshot for the
same (user, day) raises :class:`SnapshotConflictError`.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Sequence

from tradebook_journal.core.errors import SnapshotConflictError
from tradebook_journal.core.models import DailyPlan, DaySnapshot, ExecutedLeg, OrderbookMeta

logger = logging.getLogger(__name__)


class InMemoryJournalStore:
    """Dict-backed store.  Every record is copied in and out."""

    def __init__(self) -> None:
        self._orderbooks: dict[tuple[str, str], OrderbookMeta] = {}
        self._legs: dict[tuple, ExecutedLeg] = {}
        self._snapshots: list[DaySnapshot] = []
        self._plans: dict[tuple[str, date], DailyPlan] = {}

    # ------------------------------------------------------------------ #
    # Orderbooks                                                           #
    # ------------------------------------------------------------------ #

    async def get_or_create_orderbook(
        self, meta: OrderbookMeta,
    ) -> tuple[OrderbookMeta, bool]:
        key = (meta.user_id, meta.file_hash)
        existing = self._orderbooks.get(key)
        if existing is not None:
            return existing.model_copy(), False
        self._orderbooks[key] = meta.model_copy()
        return meta, True

    @property
    def orderbook_count(self) -> int:
        return len(self._orderbooks)

    # ------------------------------------------------------------------ #
    # Executed legs                                                        #
    # ------------------------------------------------------------------ #

    async def upsert_executed_legs(self, legs: Sequence[ExecutedLeg]) -> int:
        inserted = 0
        for leg in legs:
            key = leg.natural_key
            if key not in self._legs:
                self._legs[key] = leg.model_copy()
                inserted += 1
        return inserted

    async def list_executed_legs(
        self, user_id: str, trading_date: date,
    ) -> list[ExecutedLeg]:
        return [
            leg.model_copy()
            for leg in self._legs.values()
            if leg.user_id == user_id and leg.trading_date == trading_date
        ]

    # ------------------------------------------------------------------ #
    # Day snapshots                                                        #
    # ------------------------------------------------------------------ #

    async def supersede_and_insert(self, snapshot: DaySnapshot) -> DaySnapshot:
        superseded = await self.supersede_active(snapshot.user_id, snapshot.trading_date)
        versions = await self.list_snapshot_versions(snapshot.user_id, snapshot.trading_date)
        next_version = max((s.version for s in versions), default=0) + 1
        stored = snapshot.model_copy(update={"version": next_version, "is_superseded": False})
        await self.insert_snapshot(stored)
        if superseded:
            logger.debug(
                "Superseded %d snapshot(s) for %s on %s",
                superseded, snapshot.user_id, snapshot.trading_date,
            )
        return stored.model_copy()

    async def supersede_active(self, user_id: str, trading_date: date) -> int:
        """Flag every active snapshot for the day superseded.  Returns the count."""
        count = 0
        for i, snap in enumerate(self._snapshots):
            if (
                snap.user_id == user_id
                and snap.trading_date == trading_date
                and not snap.is_superseded
            ):
                self._snapshots[i] = snap.model_copy(update={"is_superseded": True})
                count += 1
        return count

    async def insert_snapshot(self, snapshot: DaySnapshot) -> None:
        """Insert as-is, enforcing one active snapshot per (user, day)."""
        if not snapshot.is_superseded and await self.get_active_snapshot(
            snapshot.user_id, snapshot.trading_date,
        ) is not None:
            raise SnapshotConflictError(snapshot.user_id, snapshot.trading_date)
        self._snapshots.append(snapshot.model_copy())

    async def get_active_snapshot(
        self, user_id: str, trading_date: date,
    ) -> DaySnapshot | None:
        for snap in self._snapshots:
            if (
                snap.user_id == user_id
                and snap.trading_date == trading_date
                and not snap.is_superseded
            ):
                return snap.model_copy()
        return None

    async def list_active_snapshots(
        self, user_id: str, start: date, end: date,
    ) -> list[DaySnapshot]:
        found = [
            snap.model_copy()
            for snap in self._snapshots
            if snap.user_id == user_id
            and not snap.is_superseded
            and start <= snap.trading_date < end
        ]
        return sorted(found, key=lambda s: s.trading_date)

    async def list_snapshot_versions(
        self, user_id: str, trading_date: date,
    ) -> list[DaySnapshot]:
        found = [
            snap.model_copy()
            for snap in self._snapshots
            if snap.user_id == user_id and snap.trading_date == trading_date
        ]
        return sorted(found, key=lambda s: s.version)

    # ------------------------------------------------------------------ #
    # Daily plans                                                          #
    # ------------------------------------------------------------------ #

    async def upsert_daily_plan(self, plan: DailyPlan) -> DailyPlan:
        key = (plan.user_id, plan.plan_date)
        existing = self._plans.get(key)
        if existing is not None:
            plan = plan.model_copy(
                update={"id": existing.id, "created_at": existing.created_at},
            )
        self._plans[key] = plan.model_copy(deep=True)
        return plan.model_copy(deep=True)

    async def get_daily_plan(
        self, user_id: str, plan_date: date,
    ) -> DailyPlan | None:
        plan = self._plans.get((user_id, plan_date))
        return plan.model_copy(deep=True) if plan is not None else None
