"""Cycle materialization.

Ensures an obligation has a contiguous run of persisted cycles from its
first cycle through a target date (normally today).
"""

import logging
from collections.abc import Callable
from datetime import date
from decimal import Decimal

from duecycle.core.models import Cycle, Obligation
from duecycle.engine.boundaries import CycleBounds
from duecycle.engine.policy import policy_for
from duecycle.storage.base import Store

logger = logging.getLogger(__name__)


class CycleMaterializer:
    """Creates missing cycles for obligations.

    Cycles take a snapshot of the obligation's amount when created, so
    later changes to the obligation never reach back into past cycles.
    """

    def __init__(self, store: Store, today: Callable[[], date] = date.today):
        self.store = store
        self.today = today
        self.cycles = store.get_cycle_repository()

    def ensure_cycles(self, obligation: Obligation, through: date | None = None) -> list[Cycle]:
        """Materialize cycles up to and including the one containing ``through``.

        Starts from the latest persisted cycle (by end date), or from the
        obligation's first cycle when none exist. Each new bucket cycle
        receives the carryover of its predecessor, which is closed.
        Calling this again without new data creates nothing.

        Args:
            obligation: Persisted obligation.
            through: Target date (default: today).

        Returns:
            Newly created cycles, oldest first.
        """
        target = through or self.today()
        policy = policy_for(obligation)
        created: list[Cycle] = []

        with self.store.transaction():
            latest = self.cycles.latest(obligation.id)
            if latest is None:
                latest = self._create(obligation, policy.first_bounds(obligation), previous=None)
                created.append(latest)

            while latest.end_date < target:
                bounds = policy.next_bounds(obligation, CycleBounds(latest.start_date, latest.end_date))
                if bounds is None:
                    break  # one-time bill

                if policy.tracks_carryover and not latest.is_closed:
                    latest = self.cycles.update(latest.model_copy(update={"is_closed": True}))

                latest = self._create(obligation, bounds, previous=latest)
                created.append(latest)

        if created:
            logger.info(
                "Materialized %d cycle(s) for %r through %s",
                len(created),
                obligation.name,
                created[-1].end_date,
            )
        return created

    def ensure_cycle(self, obligation: Obligation, bounds: CycleBounds) -> Cycle:
        """Return the persisted cycle with these bounds, creating it if needed.

        Used for backdated ledger entries older than any materialized
        cycle. The amount snapshot comes from the nearest later cycle,
        which reflects the obligation as it was closest to that period;
        the obligation's current amount is used when there is none.
        """
        existing = self.cycles.get_by_start(obligation.id, bounds.start)
        if existing is not None:
            return existing

        with self.store.transaction():
            following = self.cycles.following(obligation.id, bounds.start)
            amount = following.amount if following is not None else obligation.amount
            previous = self.cycles.previous(obligation.id, bounds.start)
            cycle = self._create(
                obligation,
                bounds,
                previous=previous,
                amount=amount,
                is_closed=policy_for(obligation).tracks_carryover and bounds.end < self.today(),
            )

        logger.info(
            "Created backdated cycle %s..%s for %r",
            cycle.start_date,
            cycle.end_date,
            obligation.name,
        )
        return cycle

    def _create(
        self,
        obligation: Obligation,
        bounds: CycleBounds,
        previous: Cycle | None,
        amount: Decimal | None = None,
        is_closed: bool = False,
    ) -> Cycle:
        policy = policy_for(obligation)
        cycle = Cycle(
            obligation_id=obligation.id,
            start_date=bounds.start,
            end_date=bounds.end,
            amount=obligation.amount if amount is None else amount,
            carryover=policy.carryover(obligation, previous),
            is_closed=is_closed,
        )
        return self.cycles.insert(cycle)
