"""Repository interfaces the cycle engine depends on.

The engine receives a Store at construction time and only talks to these
protocols; it never imports a concrete storage module.
"""

from contextlib import AbstractContextManager
from datetime import date
from decimal import Decimal
from typing import Protocol

from duecycle.core.models import Cycle, LedgerEntry, Obligation


class ObligationRepository(Protocol):
    def get(self, obligation_id: int) -> Obligation | None: ...

    def insert(self, obligation: Obligation) -> Obligation: ...

    def update(self, obligation: Obligation) -> Obligation: ...

    def delete(self, obligation_id: int) -> bool: ...

    def list_active(self) -> list[Obligation]: ...


class CycleRepository(Protocol):
    def get(self, cycle_id: int) -> Cycle | None: ...

    def latest(self, obligation_id: int) -> Cycle | None:
        """Cycle with the greatest end date."""
        ...

    def get_by_start(self, obligation_id: int, start_date: date) -> Cycle | None: ...

    def containing(self, obligation_id: int, day: date) -> Cycle | None: ...

    def previous(self, obligation_id: int, before: date) -> Cycle | None:
        """Nearest cycle with end_date < before."""
        ...

    def following(self, obligation_id: int, after: date) -> Cycle | None:
        """Nearest cycle with start_date > after."""
        ...

    def list_from(self, obligation_id: int, start_date: date) -> list[Cycle]:
        """Cycles with start_date >= start_date, oldest first."""
        ...

    def list_for_obligation(self, obligation_id: int) -> list[Cycle]:
        """All cycles, oldest first."""
        ...

    def recent_with_total(self, obligation_id: int, limit: int) -> list[Cycle]:
        """Most recent cycles with a non-zero total, newest first."""
        ...

    def insert(self, cycle: Cycle) -> Cycle:
        """Insert a cycle; if one already starts on that date, return it instead."""
        ...

    def update(self, cycle: Cycle) -> Cycle: ...

    def set_amount_from(self, obligation_id: int, start_date: date, amount: Decimal) -> int: ...


class LedgerRepository(Protocol):
    def get(self, entry_id: int) -> LedgerEntry | None: ...

    def insert(self, entry: LedgerEntry) -> LedgerEntry: ...

    def update(self, entry: LedgerEntry) -> LedgerEntry: ...

    def delete(self, entry_id: int) -> bool: ...

    def amounts_for_cycle(self, cycle_id: int) -> list[Decimal]: ...

    def list_for_cycle(self, cycle_id: int) -> list[LedgerEntry]: ...

    def list_for_obligation(self, obligation_id: int) -> list[LedgerEntry]: ...


class Store(Protocol):
    """Transactional access to all repositories."""

    def transaction(self) -> AbstractContextManager[None]: ...

    def get_obligation_repository(self) -> ObligationRepository: ...

    def get_cycle_repository(self) -> CycleRepository: ...

    def get_ledger_repository(self) -> LedgerRepository: ...
