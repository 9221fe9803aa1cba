"""Periodic obligation cycle engine.

Components, leaf first:
    boundaries    - cycle [start, end] calculation
    policy        - per-kind boundary/carryover/satisfaction rules
    materializer  - creates missing cycles up to a date
    recalculator  - re-derives totals and carryover forward
    recorder      - assigns ledger entries to cycles
    views         - presentation-only derived fields
    service       - public interface
"""

from duecycle.engine.service import ObligationService

__all__ = ["ObligationService"]
