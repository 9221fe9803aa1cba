"""Forward recalculation of cycle totals.

Totals are re-derived from ledger rows on every pass, so edits and
deletes can never leave a stale running counter behind.
"""

import logging
from datetime import date
from decimal import Decimal

from duecycle.core.models import Cycle, Obligation
from duecycle.engine.policy import policy_for
from duecycle.storage.base import Store

logger = logging.getLogger(__name__)


class CycleRecalculator:
    """Recomputes totals, carryover and paid state of persisted cycles."""

    def __init__(self, store: Store):
        self.store = store
        self.cycles = store.get_cycle_repository()
        self.ledger = store.get_ledger_repository()

    def recalculate_from(self, obligation: Obligation, start: date) -> list[Cycle]:
        """Recalculate every cycle with start_date >= start, oldest first.

        Order matters: a bucket cycle's carryover is computed from the
        preceding cycle, which must already hold its corrected total.
        Cycles before ``start`` are never touched and no new cycles are
        created.

        Args:
            obligation: Owning obligation.
            start: Start date of the earliest affected cycle.

        Returns:
            The updated cycles, oldest first.
        """
        policy = policy_for(obligation)
        updated: list[Cycle] = []

        with self.store.transaction():
            for cycle in self.cycles.list_from(obligation.id, start):
                total = sum(self.ledger.amounts_for_cycle(cycle.id), Decimal(0))
                changes: dict = {"total": total}

                if policy.tracks_carryover:
                    previous = self.cycles.previous(obligation.id, cycle.start_date)
                    changes["carryover"] = policy.carryover(obligation, previous)
                else:
                    changes["carryover"] = Decimal(0)

                recalculated = cycle.model_copy(update=changes)
                if not policy.tracks_carryover:
                    recalculated.is_paid = policy.is_satisfied(obligation, recalculated)

                updated.append(self.cycles.update(recalculated))

        logger.debug(
            "Recalculated %d cycle(s) of %r from %s",
            len(updated),
            obligation.name,
            start,
        )
        return updated
