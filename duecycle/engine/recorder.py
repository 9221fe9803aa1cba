"""Ledger recording.

Assigns payments and spend transactions to the cycle their date falls
into and keeps the affected cycle chains recalculated.
"""

import logging
from collections.abc import Callable
from datetime import date
from decimal import Decimal

from duecycle.core.exceptions import LedgerEntryNotFoundError, ObligationNotFoundError
from duecycle.core.models import Cycle, LedgerEntry, LedgerEntryPatch, Obligation
from duecycle.engine.materializer import CycleMaterializer
from duecycle.engine.policy import policy_for
from duecycle.engine.recalculator import CycleRecalculator
from duecycle.storage.base import Store

logger = logging.getLogger(__name__)


class LedgerRecorder:
    """Records, edits and deletes ledger entries."""

    def __init__(
        self,
        store: Store,
        materializer: CycleMaterializer,
        recalculator: CycleRecalculator,
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.materializer = materializer
        self.recalculator = recalculator
        self.today = today
        self.obligations = store.get_obligation_repository()
        self.cycles = store.get_cycle_repository()
        self.ledger = store.get_ledger_repository()

    def record(
        self,
        obligation_id: int,
        amount: Decimal,
        event_date: date,
        notes: str | None = None,
    ) -> LedgerEntry:
        """Record a monetary event against an obligation.

        Args:
            obligation_id: Target obligation.
            amount: Amount paid or spent.
            event_date: Day the event happened.
            notes: Optional free text.

        Returns:
            The persisted ledger entry.

        Raises:
            ObligationNotFoundError: If the obligation does not exist.
        """
        with self.store.transaction():
            obligation = self._get_obligation(obligation_id)
            cycle = self._cycle_for(obligation, event_date)

            entry = self.ledger.insert(
                LedgerEntry(
                    obligation_id=obligation.id,
                    cycle_id=cycle.id,
                    amount=amount,
                    event_date=event_date,
                    notes=notes,
                )
            )
            self.recalculator.recalculate_from(obligation, cycle.start_date)

        logger.info(
            "Recorded %s on %s for %r in cycle %s..%s",
            amount,
            event_date,
            obligation.name,
            cycle.start_date,
            cycle.end_date,
        )
        return entry

    def update(self, entry_id: int, patch: LedgerEntryPatch) -> LedgerEntry:
        """Edit a ledger entry, moving it to another cycle if its date changed.

        Both the old and the new cycle chains are recalculated.

        Raises:
            LedgerEntryNotFoundError: If the entry does not exist.
        """
        changes = {
            key: value
            for key, value in patch.model_dump(exclude_unset=True).items()
            if value is not None or key == "notes"
        }

        with self.store.transaction():
            entry = self._get_entry(entry_id)
            obligation = self._get_obligation(entry.obligation_id)
            old_cycle = self.cycles.get(entry.cycle_id)
            new_cycle = old_cycle

            new_date = changes.get("event_date")
            if new_date is not None and new_date != entry.event_date:
                new_cycle = self._cycle_for(obligation, new_date)
                changes["cycle_id"] = new_cycle.id

            updated = self.ledger.update(entry.model_copy(update=changes))

            # recalculating from the earlier start covers both chains
            starts = [c.start_date for c in (old_cycle, new_cycle) if c is not None]
            self.recalculator.recalculate_from(obligation, min(starts))

        if new_cycle.id != old_cycle.id:
            logger.info(
                "Moved ledger entry %s to cycle %s..%s",
                entry_id,
                new_cycle.start_date,
                new_cycle.end_date,
            )
        return updated

    def delete(self, entry_id: int) -> None:
        """Delete a ledger entry and recalculate from its former cycle.

        Raises:
            LedgerEntryNotFoundError: If the entry does not exist.
        """
        with self.store.transaction():
            entry = self._get_entry(entry_id)
            obligation = self._get_obligation(entry.obligation_id)
            cycle = self.cycles.get(entry.cycle_id)
            self.ledger.delete(entry_id)
            if cycle is not None:
                self.recalculator.recalculate_from(obligation, cycle.start_date)

        logger.info("Deleted ledger entry %s of %r", entry_id, obligation.name)

    def _cycle_for(self, obligation: Obligation, event_date: date) -> Cycle:
        """Find or create the cycle an event date belongs to.

        Cycles are first materialized through today (or the event date when
        it lies in the future). A backdated event older than every
        persisted cycle gets its single cycle created on demand.
        """
        self.materializer.ensure_cycles(obligation, through=max(self.today(), event_date))
        bounds = policy_for(obligation).bounds_for(obligation, event_date)
        return self.materializer.ensure_cycle(obligation, bounds)

    def _get_obligation(self, obligation_id: int) -> Obligation:
        obligation = self.obligations.get(obligation_id)
        if obligation is None:
            raise ObligationNotFoundError(obligation_id)
        return obligation

    def _get_entry(self, entry_id: int) -> LedgerEntry:
        entry = self.ledger.get(entry_id)
        if entry is None:
            raise LedgerEntryNotFoundError(entry_id)
        return entry
