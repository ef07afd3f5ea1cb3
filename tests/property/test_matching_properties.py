"""Property tests: FIFO matching conservation and reconciliation totals.

Uses hypothesis to generate random single-symbol leg sequences and
checks that matching neither creates nor loses quantity or charges,
and that an applied reconciliation lands exactly on the baseline.
"""

from datetime import datetime, timedelta
from decimal import Decimal

from hypothesis import given, settings, strategies as st

from tradebook_journal.core.enums import Direction
from tradebook_journal.journal.matcher import match_round_trips
from tradebook_journal.journal.reconciliation import reconcile

from tests.conftest import make_leg, make_round_trip

D = Decimal
EPS = D("0.000001")

_START = datetime(2024, 3, 5, 9, 15)

_leg_spec = st.tuples(
    st.sampled_from([Direction.BUY, Direction.SELL]),
    st.integers(min_value=1, max_value=500),
    st.decimals(min_value=D("1"), max_value=D("5000"), places=2),
    st.decimals(min_value=D("0"), max_value=D("50"), places=2),
)


def _legs(specs, *, close_out: bool):
    legs = []
    net = 0
    for i, (direction, qty, price, charges) in enumerate(specs):
        at = (_START + timedelta(minutes=i)).time()
        legs.append(make_leg(direction, qty, price, charges=charges, at=at))
        net += qty if direction is Direction.BUY else -qty
    if close_out and net:
        at = (_START + timedelta(minutes=len(specs))).time()
        direction = Direction.SELL if net > 0 else Direction.BUY
        legs.append(make_leg(direction, abs(net), "100", charges="1", at=at))
    return legs


def _total(legs, direction):
    return sum(leg.quantity for leg in legs if leg.direction is direction)


@given(specs=st.lists(_leg_spec, min_size=1, max_size=20))
@settings(max_examples=200)
def test_quantity_is_conserved(specs):
    """Every unit bought or sold ends up in a round trip or an open leg."""
    legs = _legs(specs, close_out=False)
    result = match_round_trips(legs)
    matched = sum(rt.quantity for rt in result.round_trips)

    for direction in (Direction.BUY, Direction.SELL):
        assert _total(legs, direction) == matched + _total(result.open_legs, direction)

    assert len({leg.direction for leg in result.open_legs}) <= 1


@given(specs=st.lists(_leg_spec, min_size=1, max_size=20))
@settings(max_examples=200)
def test_closed_book_conserves_charges_and_cash(specs):
    """With every position closed, P&L equals net cash flow minus charges."""
    legs = _legs(specs, close_out=True)
    result = match_round_trips(legs)
    assert result.open_legs == []

    leg_charges = sum((leg.charges for leg in legs), D(0))
    rt_charges = sum((rt.charges for rt in result.round_trips), D(0))
    assert abs(leg_charges - rt_charges) < EPS

    cash = sum(
        (
            leg.price * leg.quantity * (1 if leg.direction is Direction.SELL else -1)
            for leg in legs
        ),
        D(0),
    )
    pnl = sum((rt.pnl for rt in result.round_trips), D(0))
    assert abs(pnl - (cash - leg_charges)) < EPS


@given(
    pnls=st.lists(
        st.decimals(min_value=D("-5000"), max_value=D("5000"), places=2),
        min_size=1,
        max_size=15,
    ),
    baseline=st.decimals(min_value=D("-20000"), max_value=D("20000"), places=2),
)
@settings(max_examples=200)
def test_reconciled_total_equals_baseline(pnls, baseline):
    round_trips = [make_round_trip(str(p), symbol=f"S{i}") for i, p in enumerate(pnls)]
    result = reconcile(round_trips, baseline)

    assert sum((rt.pnl for rt in round_trips), D(0)) == baseline
    assert result.status in ("applied", "within_tolerance")
