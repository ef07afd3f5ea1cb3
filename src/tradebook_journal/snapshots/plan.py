"""Daily plan journal: store a day's plan and compare it with what was executed.

A planned trade is matched by the first unused executed leg of the day
(in time order) that satisfies all of:

* same instrument (see :func:`instrument_key`);
* same side;
* same quantity, or either quantity unset (zero);
* execution price within :data:`ENTRY_TOLERANCE` of the planned entry.

Executed legs left over are unplanned trades.  The share of planned
trades that were matched earns a badge from :data:`BADGE_THRESHOLDS`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, time
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, NamedTuple, Sequence

from pydantic import ValidationError

from tradebook_journal.core.errors import InvalidDateError, InvalidPlanError
from tradebook_journal.core.interfaces import IJournalStore
from tradebook_journal.core.models import DailyPlan, ExecutedLeg, PlannedTrade
from tradebook_journal.ingest.dates import normalize_date
from tradebook_journal.observability.metrics import record_plan_comparison

logger = logging.getLogger(__name__)

ENTRY_TOLERANCE = Decimal("1.0")
STRIKE_TOLERANCE = Decimal("0.01")

BADGE_THRESHOLDS = ((90, "MASTER"), (75, "EXPERT"), (60, "SKILLED"))
BADGE_FLOOR = "LEARNING"
NO_DATA_BADGE = "NO DATA"

# Reported when the plan leaves a mindset field unset
MINDSET_DEFAULTS: dict[str, Any] = {
    "confidence_level": 5,
    "stress_level": 5,
    "distractions": "",
    "sleep_hours": 7,
    "mood": "",
    "focus": 5,
    "energy": 5,
}

_PLAN_INPUT_FIELDS = ("plan_notes", "planned_trades", *MINDSET_DEFAULTS)


# ---------------------------------------------------------------------------
# Instrument identity
# ---------------------------------------------------------------------------

class InstrumentKey(NamedTuple):
    base: str
    expiry_month: str | None = None
    expiry_year: str | None = None
    strike: Decimal | None = None
    option_type: str | None = None


_MONTH_CODES = {
    "F": "JAN", "G": "FEB", "H": "MAR", "J": "APR", "K": "MAY", "M": "JUN",
    "N": "JUL", "Q": "AUG", "U": "SEP", "V": "OCT", "O": "OCT", "X": "NOV",
    "Z": "DEC",
}

# NIFTY-MAR2024-22000-CE
_DASHED_OPTION = re.compile(r"^([A-Z]+)-([A-Z]{3,})\s?(\d{4})-(\d+)-([A-Z]{2,})$")
# OPTIDX NIFTY MAR 28 2024 22000 CE (...)
_SPACED_OPTION = re.compile(
    r"^(?:OPTIDX|OPTSTK|FUTIDX|FUTSTK|BSXOPT|BSXFUT)? ?([A-Z]+)\s+([A-Z]{3,})\s+"
    r"(\d{1,2})?\s?(\d{4})\s+([\d.]+)\s+([A-Z]{2,})(?:\s?\(.*\))?$"
)
# NIFTY24M2822000CE (weekly: year, month code, day, strike, type)
_WEEKLY_OPTION = re.compile(r"^([A-Z]+)(\d{2})([A-Z])(\d{1,2})(\d+)([A-Z]{2})$")


def _clean(symbol: str) -> str:
    return re.sub(r"[\W_]", "", symbol)


def instrument_key(symbol: str) -> InstrumentKey:
    """Reduce a broker symbol to the parts that identify the instrument.

    Option contracts written in the common broker notations reduce to
    (underlying, expiry month, expiry year, strike, CE/PE); anything else
    reduces to its alphanumeric characters.
    """
    text = symbol.strip().upper()

    m = _DASHED_OPTION.match(text)
    if m:
        return InstrumentKey(
            _clean(m.group(1)), m.group(2)[:3], m.group(3), Decimal(m.group(4)), m.group(5)[:2],
        )
    m = _SPACED_OPTION.match(text)
    if m:
        return InstrumentKey(
            _clean(m.group(1)), m.group(2)[:3], m.group(4), Decimal(m.group(5)), m.group(6)[:2],
        )
    m = _WEEKLY_OPTION.match(text)
    if m:
        month = _MONTH_CODES.get(m.group(3), m.group(3))
        return InstrumentKey(
            m.group(1), month, "20" + m.group(2), Decimal(m.group(5)), m.group(6),
        )
    return InstrumentKey(_clean(text))


def same_instrument(a: InstrumentKey, b: InstrumentKey) -> bool:
    if a.strike is None or b.strike is None:
        strikes_match = a.strike == b.strike
    else:
        strikes_match = abs(a.strike - b.strike) < STRIKE_TOLERANCE
    return (
        a.base == b.base
        and strikes_match
        and a.option_type == b.option_type
        and a.expiry_month == b.expiry_month
        and a.expiry_year == b.expiry_year
    )


def trade_matches_plan(planned: PlannedTrade, leg: ExecutedLeg) -> bool:
    """True when *leg* executes *planned*."""
    return (
        same_instrument(instrument_key(planned.symbol), instrument_key(leg.symbol))
        and planned.trade_type is leg.direction
        and (
            planned.quantity == leg.quantity
            or not planned.quantity
            or not leg.quantity
        )
        and abs(planned.entry - leg.price) < ENTRY_TOLERANCE
    )


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------

def execution_percent(matched: int, planned: int) -> int:
    """Matched share of planned trades as a whole percent, halves rounded up."""
    if not planned:
        return 0
    share = Decimal(matched * 100) / planned
    return int(share.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def badge_for(percent: int) -> str:
    for floor, badge in BADGE_THRESHOLDS:
        if percent >= floor:
            return badge
    return BADGE_FLOOR


def _extra_key(leg: ExecutedLeg) -> str:
    return f"{leg.symbol} {leg.direction.value.upper()}"


def _leg_dict(leg: ExecutedLeg) -> dict[str, Any]:
    return leg.model_dump(mode="json", exclude={"user_id"})


@dataclass
class PlanComparison:
    """Outcome of comparing one day's plan with its executed legs."""

    planned: list[PlannedTrade]
    matched: list[ExecutedLeg] = field(default_factory=list)
    missed: list[PlannedTrade] = field(default_factory=list)
    unplanned: list[ExecutedLeg] = field(default_factory=list)
    has_executions: bool = True
    insights: list[str] = field(default_factory=list)
    what_went_wrong: list[str] = field(default_factory=list)

    @property
    def execution_percent(self) -> int:
        return execution_percent(len(self.matched), len(self.planned))

    @property
    def badge(self) -> str:
        return badge_for(self.execution_percent) if self.has_executions else NO_DATA_BADGE

    def grouped_unplanned(self) -> dict[str, list[ExecutedLeg]]:
        groups: dict[str, list[ExecutedLeg]] = {}
        for leg in self.unplanned:
            groups.setdefault(_extra_key(leg), []).append(leg)
        return groups

    def to_dict(self) -> dict[str, Any]:
        groups = self.grouped_unplanned()
        return {
            "status": "ok" if self.has_executions else "no-executions",
            "matched": len(self.matched),
            "total_planned": len(self.planned),
            "execution_percent": self.execution_percent,
            "badge": self.badge,
            "planned": [t.model_dump(mode="json") for t in self.planned],
            "matched_trades": [_leg_dict(leg) for leg in self.matched],
            "missed_trades": [t.model_dump(mode="json") for t in self.missed],
            "extra_trades": [_leg_dict(leg) for legs in groups.values() for leg in legs],
            "grouped_extras": {
                key: [_leg_dict(leg) for leg in legs] for key, legs in groups.items()
            },
            "insights": list(self.insights),
            "what_went_wrong": list(self.what_went_wrong),
        }


def compare_plan(
    planned: Sequence[PlannedTrade],
    executed: Sequence[ExecutedLeg],
) -> PlanComparison:
    """Match *planned* against *executed* and summarize plan discipline.

    Pure: reads nothing from the store.
    """
    planned = list(planned)
    if not executed:
        return PlanComparison(planned=planned, missed=list(planned), has_executions=False)

    legs = sorted(executed, key=lambda leg: leg.trade_time or time.min)
    used: set[int] = set()
    result = PlanComparison(planned=planned)

    for trade in planned:
        idx = next(
            (
                i for i, leg in enumerate(legs)
                if i not in used and trade_matches_plan(trade, leg)
            ),
            None,
        )
        if idx is None:
            result.missed.append(trade)
        else:
            used.add(idx)
            result.matched.append(legs[idx])
    result.unplanned = [leg for i, leg in enumerate(legs) if i not in used]

    _write_insights(result)
    return result


def _write_insights(result: PlanComparison) -> None:
    matched, missed, extra = len(result.matched), len(result.missed), len(result.unplanned)

    if matched:
        result.insights.append(
            f"Executed {matched} of {len(result.planned)} planned trades "
            f"({result.execution_percent}%)"
        )
    if extra:
        result.insights.append(f"You took {extra} unplanned trades (overtrading).")

    if missed:
        plural = "s" if missed > 1 else ""
        result.what_went_wrong.append(f"You missed {missed} planned trade{plural}.")
    if extra:
        key, count = max(
            ((k, len(v)) for k, v in result.grouped_unplanned().items()),
            key=lambda item: item[1],
        )
        if count > 1:
            result.what_went_wrong.append(
                f"Most common unplanned trade: {key} ({count} times)"
            )
        result.what_went_wrong.append(
            "Try to stick to your plan and avoid impulsive/unplanned trades."
        )
    if not missed and not extra:
        result.what_went_wrong.append("Great job! You stuck to your plan. Keep it up.")


def mindset(plan: DailyPlan | None) -> dict[str, Any]:
    """Mindset fields of *plan*, unset ones filled from :data:`MINDSET_DEFAULTS`."""
    out = dict(MINDSET_DEFAULTS)
    if plan is not None:
        for name in MINDSET_DEFAULTS:
            value = getattr(plan, name)
            if value is not None:
                out[name] = value
    return out


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

def parse_plan_date(raw: Any) -> date:
    """Read a plan date (ISO, or day-first ``DD-MM-YYYY`` / ``DD/MM/YYYY``)."""
    if not raw or not isinstance(raw, str):
        raise InvalidDateError("date (YYYY-MM-DD) is required")
    day = normalize_date(raw, day_first=True)
    if day is None:
        raise InvalidDateError(f"Invalid date: {raw!r} (expected YYYY-MM-DD)")
    return day


class DailyJournalService:
    """Read, save and review one user's daily plans."""

    def __init__(self, store: IJournalStore) -> None:
        self._store = store

    async def get_plan(self, user_id: str, raw_date: Any) -> dict[str, Any]:
        """The stored plan for the day, or ``{}`` when none was saved."""
        day = parse_plan_date(raw_date)
        plan = await self._store.get_daily_plan(user_id, day)
        if plan is None:
            return {}
        return plan.model_dump(mode="json", exclude={"user_id"})

    async def save_plan(self, user_id: str, payload: dict[str, Any]) -> DailyPlan:
        day = parse_plan_date(payload.get("date"))
        if not isinstance(payload.get("planned_trades"), list):
            raise InvalidPlanError("planned_trades must be a list")
        try:
            plan = DailyPlan(
                user_id=user_id,
                plan_date=day,
                **{k: payload[k] for k in _PLAN_INPUT_FIELDS if k in payload},
            )
        except ValidationError as exc:
            raise InvalidPlanError(f"Invalid plan: {exc.error_count()} field error(s)") from exc

        stored = await self._store.upsert_daily_plan(plan)
        logger.info(
            "Saved daily plan for %s on %s (%d planned trades)",
            user_id, day, len(stored.planned_trades),
        )
        return stored

    async def comparison(self, user_id: str, raw_date: Any) -> dict[str, Any]:
        day = parse_plan_date(raw_date)
        plan = await self._store.get_daily_plan(user_id, day)
        legs = await self._store.list_executed_legs(user_id, day)
        result = compare_plan(plan.planned_trades if plan else [], legs)
        record_plan_comparison(result.badge)
        logger.debug(
            "Plan comparison for %s on %s: %d/%d matched, %d unplanned",
            user_id, day, len(result.matched), len(result.planned), len(result.unplanned),
        )
        body = result.to_dict()
        body.update(mindset(plan))
        return body
