"""Repository and store for async database operations.

:class:`JournalRepo` holds the query logic and works inside one
:class:`AsyncSession`.  :class:`SqlJournalStore` implements
:class:`IJournalStore` on top of it, one transaction per call, and maps
unique-constraint violations on the snapshot table to
:class:`SnapshotConflictError`.

Conversion helpers translate between the pydantic models in
:mod:`tradebook_journal.core.models` and ORM records.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from tradebook_journal.core.enums import Direction
from tradebook_journal.core.errors import SnapshotConflictError
from tradebook_journal.core.models import DailyPlan, DaySnapshot, ExecutedLeg, OrderbookMeta

from .connection import make_session_factory, session_scope
from .models import DailyPlanRecord, DaySnapshotRecord, ExecutedTradeRecord, OrderbookRecord

logger = logging.getLogger(__name__)

_SNAPSHOT_FIELDS = tuple(DaySnapshot.model_fields)
_PLAN_FIELDS = tuple(DailyPlan.model_fields)


# ---------------------------------------------------------------------------
# Conversion helpers
# ---------------------------------------------------------------------------

def _orderbook_to_record(meta: OrderbookMeta) -> OrderbookRecord:
    return OrderbookRecord(**meta.model_dump())


def _record_to_orderbook(record: OrderbookRecord) -> OrderbookMeta:
    return OrderbookMeta(
        id=record.id,
        user_id=record.user_id,
        file_hash=record.file_hash,
        source_name=record.source_name,
        size=record.size,
        broker=record.broker,
        uploaded_at=record.uploaded_at,
    )


def _leg_to_values(leg: ExecutedLeg) -> dict[str, Any]:
    return {
        "user_id": leg.user_id,
        "trading_date": leg.trading_date,
        "symbol": leg.symbol,
        "trade_type": leg.direction.value.upper(),
        "price": leg.price,
        "quantity": leg.quantity,
        "trade_time": leg.trade_time,
        "charges": leg.charges,
        "created_at": leg.created_at,
    }


def _record_to_leg(record: ExecutedTradeRecord) -> ExecutedLeg:
    return ExecutedLeg(
        user_id=record.user_id,
        trading_date=record.trading_date,
        symbol=record.symbol,
        direction=Direction(record.trade_type.capitalize()),
        price=record.price,
        quantity=record.quantity,
        trade_time=record.trade_time,
        charges=record.charges,
        created_at=record.created_at,
    )


def _snapshot_to_record(snapshot: DaySnapshot) -> DaySnapshotRecord:
    return DaySnapshotRecord(**snapshot.model_dump())


def _record_to_snapshot(record: DaySnapshotRecord) -> DaySnapshot:
    return DaySnapshot(**{name: getattr(record, name) for name in _SNAPSHOT_FIELDS})


def _plan_to_values(plan: DailyPlan) -> dict[str, Any]:
    values = plan.model_dump(exclude={"id", "created_at", "planned_trades"})
    values["planned_trades"] = [t.model_dump(mode="json") for t in plan.planned_trades]
    return values


def _record_to_plan(record: DailyPlanRecord) -> DailyPlan:
    return DailyPlan(**{name: getattr(record, name) for name in _PLAN_FIELDS})


# ---------------------------------------------------------------------------
# JournalRepo
# ---------------------------------------------------------------------------

class JournalRepo:
    """Query logic for the journal tables, inside one session."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # Orderbooks

    async def find_orderbook(self, user_id: str, file_hash: str) -> OrderbookMeta | None:
        stmt = select(OrderbookRecord).where(
            OrderbookRecord.user_id == user_id,
            OrderbookRecord.file_hash == file_hash,
        )
        record = (await self._session.execute(stmt)).scalar_one_or_none()
        return _record_to_orderbook(record) if record else None

    async def add_orderbook(self, meta: OrderbookMeta) -> None:
        self._session.add(_orderbook_to_record(meta))
        await self._session.flush()
        logger.debug("Recorded orderbook %s for user %s", meta.id, meta.user_id)

    # Executed legs

    async def insert_leg_if_absent(self, leg: ExecutedLeg) -> bool:
        """Insert on the natural key, doing nothing on conflict."""
        dialect = self._session.get_bind().dialect.name
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = insert(ExecutedTradeRecord).values(**_leg_to_values(leg))
        stmt = stmt.on_conflict_do_nothing(
            index_elements=[
                "user_id", "trading_date", "symbol", "trade_type", "price", "quantity",
            ],
        )
        result = await self._session.execute(stmt)
        return (result.rowcount or 0) > 0

    async def list_legs(self, user_id: str, trading_date: date) -> list[ExecutedLeg]:
        stmt = (
            select(ExecutedTradeRecord)
            .where(
                ExecutedTradeRecord.user_id == user_id,
                ExecutedTradeRecord.trading_date == trading_date,
            )
            .order_by(ExecutedTradeRecord.trade_time, ExecutedTradeRecord.id)
        )
        result = await self._session.execute(stmt)
        return [_record_to_leg(r) for r in result.scalars().all()]

    # Day snapshots

    async def supersede_active(self, user_id: str, trading_date: date) -> int:
        stmt = (
            update(DaySnapshotRecord)
            .where(
                DaySnapshotRecord.user_id == user_id,
                DaySnapshotRecord.trading_date == trading_date,
                DaySnapshotRecord.is_superseded.is_(False),
            )
            .values(is_superseded=True)
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0

    async def max_version(self, user_id: str, trading_date: date) -> int:
        stmt = select(func.max(DaySnapshotRecord.version)).where(
            DaySnapshotRecord.user_id == user_id,
            DaySnapshotRecord.trading_date == trading_date,
        )
        return (await self._session.scalar(stmt)) or 0

    async def add_snapshot(self, snapshot: DaySnapshot) -> None:
        self._session.add(_snapshot_to_record(snapshot))
        await self._session.flush()

    async def find_snapshots(
        self,
        user_id: str,
        *,
        trading_date: date | None = None,
        start: date | None = None,
        end: date | None = None,
        active_only: bool = True,
    ) -> list[DaySnapshot]:
        stmt = select(DaySnapshotRecord).where(DaySnapshotRecord.user_id == user_id)
        if trading_date is not None:
            stmt = stmt.where(DaySnapshotRecord.trading_date == trading_date)
        if start is not None:
            stmt = stmt.where(DaySnapshotRecord.trading_date >= start)
        if end is not None:
            stmt = stmt.where(DaySnapshotRecord.trading_date < end)
        if active_only:
            stmt = stmt.where(DaySnapshotRecord.is_superseded.is_(False))
        stmt = stmt.order_by(DaySnapshotRecord.trading_date, DaySnapshotRecord.version)
        result = await self._session.execute(stmt)
        return [_record_to_snapshot(r) for r in result.scalars().all()]

    # Daily plans

    async def find_plan(self, user_id: str, plan_date: date) -> DailyPlanRecord | None:
        stmt = select(DailyPlanRecord).where(
            DailyPlanRecord.user_id == user_id,
            DailyPlanRecord.plan_date == plan_date,
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def save_plan(self, plan: DailyPlan) -> DailyPlan:
        """Update the existing row for the day in place, or insert one."""
        record = await self.find_plan(plan.user_id, plan.plan_date)
        values = _plan_to_values(plan)
        if record is None:
            record = DailyPlanRecord(id=plan.id, created_at=plan.created_at, **values)
            self._session.add(record)
        else:
            for name, value in values.items():
                setattr(record, name, value)
        await self._session.flush()
        return _record_to_plan(record)


# ---------------------------------------------------------------------------
# SqlJournalStore
# ---------------------------------------------------------------------------

class SqlJournalStore:
    """:class:`IJournalStore` backed by SQLAlchemy, one transaction per call."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._factory = make_session_factory(engine)

    def _scope(self):
        return session_scope(self._factory)

    async def get_or_create_orderbook(
        self, meta: OrderbookMeta,
    ) -> tuple[OrderbookMeta, bool]:
        async with self._scope() as session:
            repo = JournalRepo(session)
            existing = await repo.find_orderbook(meta.user_id, meta.file_hash)
            if existing is not None:
                return existing, False
        try:
            async with self._scope() as session:
                await JournalRepo(session).add_orderbook(meta)
            return meta, True
        except IntegrityError:
            # Lost a race with an identical upload; the other row wins
            async with self._scope() as session:
                existing = await JournalRepo(session).find_orderbook(
                    meta.user_id, meta.file_hash,
                )
            if existing is None:
                raise
            return existing, False

    async def upsert_executed_legs(self, legs: Sequence[ExecutedLeg]) -> int:
        inserted = 0
        async with self._scope() as session:
            repo = JournalRepo(session)
            for leg in legs:
                if await repo.insert_leg_if_absent(leg):
                    inserted += 1
        return inserted

    async def list_executed_legs(
        self, user_id: str, trading_date: date,
    ) -> list[ExecutedLeg]:
        async with self._scope() as session:
            return await JournalRepo(session).list_legs(user_id, trading_date)

    async def supersede_and_insert(self, snapshot: DaySnapshot) -> DaySnapshot:
        """Supersede then insert in one transaction.

        The partial unique index rejects the insert if a concurrent
        transaction committed its own active snapshot first.
        """
        try:
            async with self._scope() as session:
                repo = JournalRepo(session)
                await repo.supersede_active(snapshot.user_id, snapshot.trading_date)
                version = await repo.max_version(snapshot.user_id, snapshot.trading_date)
                stored = snapshot.model_copy(
                    update={"version": version + 1, "is_superseded": False},
                )
                await repo.add_snapshot(stored)
        except IntegrityError as exc:
            raise SnapshotConflictError(snapshot.user_id, snapshot.trading_date) from exc
        return stored

    async def get_active_snapshot(
        self, user_id: str, trading_date: date,
    ) -> DaySnapshot | None:
        async with self._scope() as session:
            found = await JournalRepo(session).find_snapshots(
                user_id, trading_date=trading_date,
            )
        return found[0] if found else None

    async def list_active_snapshots(
        self, user_id: str, start: date, end: date,
    ) -> list[DaySnapshot]:
        async with self._scope() as session:
            return await JournalRepo(session).find_snapshots(user_id, start=start, end=end)

    async def list_snapshot_versions(
        self, user_id: str, trading_date: date,
    ) -> list[DaySnapshot]:
        async with self._scope() as session:
            return await JournalRepo(session).find_snapshots(
                user_id, trading_date=trading_date, active_only=False,
            )

    async def upsert_daily_plan(self, plan: DailyPlan) -> DailyPlan:
        try:
            async with self._scope() as session:
                return await JournalRepo(session).save_plan(plan)
        except IntegrityError:
            # A concurrent first save for the same day won; update that row
            async with self._scope() as session:
                return await JournalRepo(session).save_plan(plan)

    async def get_daily_plan(
        self, user_id: str, plan_date: date,
    ) -> DailyPlan | None:
        async with self._scope() as session:
            record = await JournalRepo(session).find_plan(user_id, plan_date)
            return _record_to_plan(record) if record is not None else None
