"""Cycle boundary calculation.

Pure functions mapping an obligation's recurrence and a reference date
to the [start, end] bounds of the cycle containing that date.

Boundary conventions:
    Fixed (bill):      cycles close on a due date.
                       start = due_k + 1 day, end = due_(k+1)
    Variable (bucket): cycles open on an anchor date.
                       start = anchor_k, end = anchor_(k+1) - 1 day

where ``due_k`` / ``anchor_k`` is the anchor stepped by k whole recurrences.
Every stepped date is computed from the original anchor, never from the
previous stepped date, so month-end anchors do not drift (a bill due on
the 31st is due on the 30th in April and on the 31st again in May).
"""

from datetime import date, timedelta
from typing import NamedTuple

from dateutil.relativedelta import relativedelta

from duecycle.core.exceptions import InvalidConfigurationError
from duecycle.core.models import Obligation, ObligationKind, Recurrence, RecurrenceUnit

ONE_DAY = timedelta(days=1)


class CycleBounds(NamedTuple):
    """Closed [start, end] interval of one cycle, day granularity."""

    start: date
    end: date


def validate_recurrence(recurrence: Recurrence | None) -> Recurrence:
    """Reject recurrences that would never advance.

    Raises:
        InvalidConfigurationError: If the recurrence is missing, has no unit,
            or has a zero/negative interval.
    """
    if recurrence is None or recurrence.unit is None:
        raise InvalidConfigurationError("Recurring obligation requires an interval and unit")
    if recurrence.interval is None or recurrence.interval < 1:
        raise InvalidConfigurationError(
            f"Recurrence interval must be a positive integer, got {recurrence.interval!r}"
        )
    return recurrence


def shift(anchor: date, recurrence: Recurrence, periods: int) -> date:
    """Step ``anchor`` by ``periods`` whole recurrences (may be negative).

    Calendar units go through relativedelta, which clamps to the last
    valid day of the target month.
    """
    amount = recurrence.interval * periods
    if recurrence.unit == RecurrenceUnit.DAY:
        return anchor + relativedelta(days=amount)
    if recurrence.unit == RecurrenceUnit.WEEK:
        return anchor + relativedelta(weeks=amount)
    if recurrence.unit == RecurrenceUnit.MONTH:
        return anchor + relativedelta(months=amount)
    return anchor + relativedelta(years=amount)


def bounds_at(anchor: date, recurrence: Recurrence, index: int, closes_on_anchor: bool) -> CycleBounds:
    """Bounds of the index-th cycle relative to the anchor.

    Args:
        anchor: Due date or anchor date.
        recurrence: Validated recurrence.
        index: Cycle index; 0 is the first cycle after (bills) or at
            (buckets) the anchor.
        closes_on_anchor: True for due-date anchored cycles.

    Returns:
        CycleBounds for that cycle.
    """
    opening = shift(anchor, recurrence, index)
    closing = shift(anchor, recurrence, index + 1)
    if closes_on_anchor:
        return CycleBounds(opening + ONE_DAY, closing)
    return CycleBounds(opening, closing - ONE_DAY)


def locate_bounds(
    anchor: date,
    recurrence: Recurrence,
    reference: date,
    closes_on_anchor: bool,
) -> CycleBounds:
    """Find the cycle containing ``reference``.

    Steps forward whole cycles while the candidate ends before the
    reference, then back while it starts after it. Each step moves by at
    least one day, so both loops terminate.
    """
    validate_recurrence(recurrence)

    index = 0
    bounds = bounds_at(anchor, recurrence, index, closes_on_anchor)
    while bounds.end < reference:
        index += 1
        bounds = bounds_at(anchor, recurrence, index, closes_on_anchor)
    while bounds.start > reference:
        index -= 1
        bounds = bounds_at(anchor, recurrence, index, closes_on_anchor)
    return bounds


def one_time_bounds(obligation: Obligation) -> CycleBounds:
    """The single cycle of a non-recurring bill: creation through due date."""
    start = min(obligation.created_at, obligation.anchor_date)
    return CycleBounds(start, obligation.anchor_date)


def fixed_cycle_bounds(obligation: Obligation, reference: date) -> CycleBounds:
    """Cycle of a bill containing ``reference``.

    A one-time bill has exactly one cycle whatever the reference date.
    """
    if obligation.recurrence is None:
        return one_time_bounds(obligation)
    return locate_bounds(obligation.anchor_date, obligation.recurrence, reference, closes_on_anchor=True)


def variable_cycle_bounds(obligation: Obligation, reference: date) -> CycleBounds:
    """Cycle of a bucket containing ``reference``."""
    if obligation.frequency is None:
        raise InvalidConfigurationError(f"Bucket {obligation.name!r} has no frequency")
    return locate_bounds(
        obligation.anchor_date,
        obligation.frequency.to_recurrence(),
        reference,
        closes_on_anchor=False,
    )


def first_cycle_bounds(obligation: Obligation) -> CycleBounds:
    """Bounds of the first cycle materialized for a new obligation."""
    step = obligation.step
    if step is None:
        return one_time_bounds(obligation)
    return bounds_at(
        obligation.anchor_date,
        validate_recurrence(step),
        0,
        closes_on_anchor=obligation.kind == ObligationKind.FIXED,
    )
