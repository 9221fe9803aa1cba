"""Obligation policies.

Bills and buckets share one cycle engine. What differs between them is
captured by a small policy value selected by ``Obligation.kind``:

    boundary     (obligation, reference date) -> CycleBounds
    carryover    (obligation, previous cycle) -> Decimal
    is_satisfied (obligation, cycle)          -> bool
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from duecycle.core.models import Cycle, Obligation, ObligationKind
from duecycle.engine.boundaries import (
    ONE_DAY,
    CycleBounds,
    first_cycle_bounds,
    fixed_cycle_bounds,
    variable_cycle_bounds,
)


@dataclass(frozen=True)
class ObligationPolicy:
    """Cycle behaviour of one obligation family."""

    kind: ObligationKind
    boundary: Callable[[Obligation, date], CycleBounds]
    carryover: Callable[[Obligation, Cycle | None], Decimal]
    is_satisfied: Callable[[Obligation, Cycle], bool]
    tracks_carryover: bool = False

    def bounds_for(self, obligation: Obligation, reference: date) -> CycleBounds:
        return self.boundary(obligation, reference)

    def first_bounds(self, obligation: Obligation) -> CycleBounds:
        return first_cycle_bounds(obligation)

    def next_bounds(self, obligation: Obligation, current: CycleBounds) -> CycleBounds | None:
        """Bounds of the cycle following ``current``, None for a one-time bill."""
        candidate = self.boundary(obligation, current.end + ONE_DAY)
        if candidate.start <= current.end:
            return None
        return candidate

    def previous_bounds(self, obligation: Obligation, current: CycleBounds) -> CycleBounds | None:
        candidate = self.boundary(obligation, current.start - ONE_DAY)
        if candidate.end >= current.start:
            return None
        return candidate


# -----------------------------------------------------------------------------
# Carryover
# -----------------------------------------------------------------------------


def no_carryover(obligation: Obligation, previous: Cycle | None) -> Decimal:
    return Decimal(0)


def rolling_carryover(obligation: Obligation, previous: Cycle | None) -> Decimal:
    """Unspent balance of the previous cycle.

    carryover(N) = (budget(N-1) + carryover(N-1)) - spent(N-1)

    Zero for the first cycle or when carryover is disabled. The result is
    negative when the previous cycle was overspent.
    """
    if previous is None or not obligation.carryover_enabled:
        return Decimal(0)
    return previous.amount + previous.carryover - previous.total


# -----------------------------------------------------------------------------
# Satisfaction
# -----------------------------------------------------------------------------


def bill_is_satisfied(obligation: Obligation, cycle: Cycle) -> bool:
    """Whether a bill cycle counts as paid.

    A variable-amount bill is satisfied by any payment, since its real
    amount is only known once paid. Otherwise the expected amount must be
    covered. An explicit mark always satisfies.
    """
    if cycle.marked_paid:
        return True
    if obligation.is_variable_amount:
        return cycle.total > 0
    return cycle.total >= cycle.amount


def bucket_is_satisfied(obligation: Obligation, cycle: Cycle) -> bool:
    """A bucket cycle is satisfied while it is not overspent."""
    return cycle.amount + cycle.carryover - cycle.total >= 0


FIXED_POLICY = ObligationPolicy(
    kind=ObligationKind.FIXED,
    boundary=fixed_cycle_bounds,
    carryover=no_carryover,
    is_satisfied=bill_is_satisfied,
)

VARIABLE_POLICY = ObligationPolicy(
    kind=ObligationKind.VARIABLE,
    boundary=variable_cycle_bounds,
    carryover=rolling_carryover,
    is_satisfied=bucket_is_satisfied,
    tracks_carryover=True,
)

_POLICIES = {
    ObligationKind.FIXED: FIXED_POLICY,
    ObligationKind.VARIABLE: VARIABLE_POLICY,
}


def policy_for(obligation: Obligation) -> ObligationPolicy:
    return _POLICIES[obligation.kind]
