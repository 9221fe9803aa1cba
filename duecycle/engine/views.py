"""Computed, presentation-only views of persisted cycles.

Nothing here reads or writes storage.
"""

from decimal import Decimal

from duecycle.core.models import Cycle, CycleView, Obligation, UsageStats
from duecycle.engine.policy import policy_for


def build_cycle_view(obligation: Obligation, cycle: Cycle) -> CycleView:
    """Attach derived fields to a cycle.

    Bills:   remaining = expected - paid, percent_paid capped at 100.
    Buckets: starting_balance = budget + carryover,
             remaining = starting_balance - spent.
    """
    return CycleView(
        cycle=cycle,
        kind=obligation.kind,
        is_satisfied=policy_for(obligation).is_satisfied(obligation, cycle),
    )


def calculate_usage_stats(cycles: list[Cycle]) -> UsageStats | None:
    """Summarize what was actually paid over recent cycles.

    Args:
        cycles: Cycles with a non-zero total, newest first.

    Returns:
        UsageStats, or None when there is no payment history.
    """
    amounts = [cycle.total for cycle in cycles if cycle.total > 0]
    if not amounts:
        return None

    total = sum(amounts, Decimal(0))
    return UsageStats(
        count=len(amounts),
        average=(total / len(amounts)).quantize(Decimal("0.01")),
        min=min(amounts),
        max=max(amounts),
        last_amount=amounts[0],
    )
