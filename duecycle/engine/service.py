"""Obligation service.

The public surface of the cycle engine. Every read materializes cycles
lazily up to today; every write runs in a single store transaction.

Usage:
    storage = SQLiteStorage(config.db_path)
    service = ObligationService(storage)
    bill = service.create_bill("Rent", Decimal("1200"), date(2025, 1, 1), interval=1, unit="month")
    service.record_ledger_entry(bill.id, Decimal("1200"), date(2025, 1, 1))
"""

import logging
from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import ValidationError

from duecycle.core.exceptions import (
    CycleNotFoundError,
    InvalidConfigurationError,
    ObligationNotFoundError,
)
from duecycle.core.models import (
    Cycle,
    CycleView,
    Frequency,
    LedgerEntry,
    LedgerEntryPatch,
    Obligation,
    ObligationKind,
    ObligationPatch,
    ObligationSnapshot,
    Recurrence,
    UsageStats,
)
from duecycle.engine.boundaries import validate_recurrence
from duecycle.engine.materializer import CycleMaterializer
from duecycle.engine.recalculator import CycleRecalculator
from duecycle.engine.recorder import LedgerRecorder
from duecycle.engine.views import build_cycle_view, calculate_usage_stats
from duecycle.storage.base import Store

logger = logging.getLogger(__name__)


def _validated(model: type, data: dict[str, Any]):
    """Build a pydantic model, reporting failures as InvalidConfigurationError."""
    try:
        return model(**data)
    except ValidationError as e:
        raise InvalidConfigurationError(str(e)) from e


class ObligationService:
    """Bills, buckets, their cycles and ledger entries."""

    def __init__(
        self,
        store: Store,
        today: Callable[[], date] = date.today,
        usage_stats_window: int = 6,
    ):
        self.store = store
        self.today = today
        self.usage_stats_window = usage_stats_window
        self.obligations = store.get_obligation_repository()
        self.cycles = store.get_cycle_repository()
        self.ledger = store.get_ledger_repository()
        self.materializer = CycleMaterializer(store, today)
        self.recalculator = CycleRecalculator(store)
        self.recorder = LedgerRecorder(store, self.materializer, self.recalculator, today)

    # -------------------------------------------------------------------------
    # Obligations
    # -------------------------------------------------------------------------

    def create_bill(
        self,
        name: str,
        amount: Decimal,
        due_date: date,
        interval: int | None = None,
        unit: str | None = None,
        is_autopay: bool = False,
        is_variable_amount: bool = False,
        notes: str | None = None,
    ) -> Obligation:
        """Create a fixed obligation.

        Leave both ``interval`` and ``unit`` unset for a one-time bill.

        Raises:
            InvalidConfigurationError: If only one of interval/unit is given,
                the interval is not positive, or the amount is negative.
        """
        recurrence = None
        if interval is not None or unit is not None:
            if interval is None or unit is None:
                raise InvalidConfigurationError("Recurring bill requires both an interval and a unit")
            recurrence = _validated(Recurrence, {"interval": interval, "unit": unit})

        obligation = _validated(
            Obligation,
            {
                "kind": ObligationKind.FIXED,
                "name": name,
                "amount": amount,
                "anchor_date": due_date,
                "recurrence": recurrence,
                "is_autopay": is_autopay,
                "is_variable_amount": is_variable_amount,
                "notes": notes,
                "created_at": self.today(),
            },
        )
        return self.create_obligation(obligation)

    def create_bucket(
        self,
        name: str,
        budget: Decimal,
        frequency: Frequency | str,
        anchor_date: date,
        carryover_enabled: bool = False,
        notes: str | None = None,
    ) -> Obligation:
        """Create a variable obligation."""
        obligation = _validated(
            Obligation,
            {
                "kind": ObligationKind.VARIABLE,
                "name": name,
                "amount": budget,
                "anchor_date": anchor_date,
                "frequency": frequency,
                "carryover_enabled": carryover_enabled,
                "notes": notes,
                "created_at": self.today(),
            },
        )
        return self.create_obligation(obligation)

    def create_obligation(self, obligation: Obligation) -> Obligation:
        """Persist an obligation and materialize its cycles through today."""
        if obligation.step is not None:
            validate_recurrence(obligation.step)

        with self.store.transaction():
            stored = self.obligations.insert(obligation)
            self.materializer.ensure_cycles(stored)

        logger.info("Created %s obligation %r (id=%s)", stored.kind.value, stored.name, stored.id)
        return stored

    def get_obligation(self, obligation_id: int) -> Obligation:
        obligation = self.obligations.get(obligation_id)
        if obligation is None:
            raise ObligationNotFoundError(obligation_id)
        return obligation

    def get_obligation_with_current_cycle(self, obligation_id: int) -> ObligationSnapshot:
        """Obligation, the cycle containing today, and usage stats.

        Usage stats are only computed for variable-amount bills.

        Raises:
            ObligationNotFoundError: If the obligation does not exist.
        """
        obligation = self.get_obligation(obligation_id)
        return self._snapshot(obligation)

    def list_obligations_with_current_cycle(self) -> list[ObligationSnapshot]:
        """All obligations that are not soft-deleted, by name."""
        return [self._snapshot(obligation) for obligation in self.obligations.list_active()]

    def update_obligation(self, obligation_id: int, patch: ObligationPatch | dict[str, Any]) -> Obligation:
        """Apply a patch to an obligation.

        A new amount is pushed onto the current and all later cycles,
        never onto past ones; the chain is then recalculated from the
        current cycle. Toggling carryover or the variable-amount flag
        recalculates every cycle.

        Raises:
            ObligationNotFoundError: If the obligation does not exist.
            InvalidConfigurationError: If the patched obligation is invalid.
        """
        if isinstance(patch, dict):
            patch = _validated(ObligationPatch, patch)
        changes = {
            key: value
            for key, value in patch.model_dump(exclude_unset=True).items()
            if value is not None or key == "notes"
        }

        with self.store.transaction():
            obligation = self.get_obligation(obligation_id)
            self.materializer.ensure_cycles(obligation)
            updated = _validated(Obligation, {**obligation.model_dump(), **changes})
            updated = self.obligations.update(updated)

            recalc_from: date | None = None
            if "amount" in changes and changes["amount"] != obligation.amount:
                today = self.today()
                current = self.cycles.containing(obligation_id, today)
                push_from = current.start_date if current is not None else today
                count = self.cycles.set_amount_from(obligation_id, push_from, updated.amount)
                logger.info(
                    "Pushed amount %s onto %d cycle(s) of %r from %s",
                    updated.amount,
                    count,
                    updated.name,
                    push_from,
                )
                recalc_from = push_from

            rederive_all = any(
                key in changes and changes[key] != getattr(obligation, key)
                for key in ("carryover_enabled", "is_variable_amount")
            )
            if rederive_all:
                cycles = self.cycles.list_for_obligation(obligation_id)
                if cycles:
                    recalc_from = cycles[0].start_date

            if recalc_from is not None:
                self.recalculator.recalculate_from(updated, recalc_from)

        return updated

    def delete_obligation(self, obligation_id: int) -> None:
        """Delete an obligation.

        Buckets are soft-deleted and keep their history. Bills are removed
        together with their cycles and ledger entries.
        """
        with self.store.transaction():
            obligation = self.get_obligation(obligation_id)
            if obligation.kind == ObligationKind.VARIABLE:
                self.obligations.update(obligation.model_copy(update={"is_deleted": True}))
            else:
                self.obligations.delete(obligation_id)

        logger.info("Deleted %s obligation %r", obligation.kind.value, obligation.name)

    # -------------------------------------------------------------------------
    # Cycles
    # -------------------------------------------------------------------------

    def get_cycles_for_obligation(self, obligation_id: int) -> list[Cycle]:
        """All cycles of an obligation, oldest first."""
        obligation = self.get_obligation(obligation_id)
        self.materializer.ensure_cycles(obligation)
        return self.cycles.list_for_obligation(obligation_id)

    def get_cycle_views(self, obligation_id: int) -> list[CycleView]:
        obligation = self.get_obligation(obligation_id)
        return [build_cycle_view(obligation, c) for c in self.get_cycles_for_obligation(obligation_id)]

    def set_cycle_marked_paid(self, cycle_id: int, marked: bool = True) -> CycleView:
        """Explicitly mark a bill cycle paid (or clear the mark).

        Raises:
            CycleNotFoundError: If the cycle does not exist.
        """
        with self.store.transaction():
            cycle = self.cycles.get(cycle_id)
            if cycle is None:
                raise CycleNotFoundError(cycle_id)
            obligation = self.get_obligation(cycle.obligation_id)
            self.cycles.update(cycle.model_copy(update={"marked_paid": marked}))
            self.recalculator.recalculate_from(obligation, cycle.start_date)
            cycle = self.cycles.get(cycle_id)

        return build_cycle_view(obligation, cycle)

    def recalculate(self, obligation_id: int, start: date | None = None) -> list[Cycle]:
        """Recalculate an obligation's cycles from ``start`` (default: first cycle)."""
        obligation = self.get_obligation(obligation_id)
        if start is None:
            cycles = self.cycles.list_for_obligation(obligation_id)
            if not cycles:
                return []
            start = cycles[0].start_date
        return self.recalculator.recalculate_from(obligation, start)

    # -------------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------------

    def record_ledger_entry(
        self,
        obligation_id: int,
        amount: Decimal,
        event_date: date | datetime,
        notes: str | None = None,
    ) -> LedgerEntry:
        if isinstance(event_date, datetime):
            event_date = event_date.date()
        return self.recorder.record(obligation_id, Decimal(str(amount)), event_date, notes)

    def update_ledger_entry(self, entry_id: int, patch: LedgerEntryPatch | dict[str, Any]) -> LedgerEntry:
        if isinstance(patch, dict):
            patch = _validated(LedgerEntryPatch, patch)
        return self.recorder.update(entry_id, patch)

    def delete_ledger_entry(self, entry_id: int) -> None:
        self.recorder.delete(entry_id)

    def list_ledger_entries(self, obligation_id: int, cycle_id: int | None = None) -> list[LedgerEntry]:
        """Ledger entries of an obligation (or one of its cycles), newest first."""
        self.get_obligation(obligation_id)
        if cycle_id is not None:
            return self.ledger.list_for_cycle(cycle_id)
        return self.ledger.list_for_obligation(obligation_id)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _snapshot(self, obligation: Obligation) -> ObligationSnapshot:
        self.materializer.ensure_cycles(obligation)
        current = self.cycles.containing(obligation.id, self.today())
        return ObligationSnapshot(
            obligation=obligation,
            current_cycle=build_cycle_view(obligation, current) if current else None,
            usage_stats=self._usage_stats(obligation),
        )

    def _usage_stats(self, obligation: Obligation) -> UsageStats | None:
        if obligation.kind != ObligationKind.FIXED or not obligation.is_variable_amount:
            return None
        recent = self.cycles.recent_with_total(obligation.id, self.usage_stats_window)
        return calculate_usage_stats(recent)
