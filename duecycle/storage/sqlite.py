"""SQLite storage backend.

One connection per SQLiteStorage, opened when the store is constructed
and passed explicitly to the service. Money is stored as TEXT to keep
Decimal values exact; dates are ISO strings so they sort correctly.
"""

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

from duecycle.core.exceptions import StorageError
from duecycle.core.models import (
    Cycle,
    Frequency,
    LedgerEntry,
    Obligation,
    ObligationKind,
    Recurrence,
    RecurrenceUnit,
)

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS obligations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    kind TEXT NOT NULL,
    name TEXT NOT NULL,
    amount TEXT NOT NULL,
    anchor_date TEXT NOT NULL,
    recurrence_interval INTEGER,
    recurrence_unit TEXT,
    frequency TEXT,
    is_autopay INTEGER NOT NULL DEFAULT 0,
    is_variable_amount INTEGER NOT NULL DEFAULT 0,
    carryover_enabled INTEGER NOT NULL DEFAULT 0,
    is_deleted INTEGER NOT NULL DEFAULT 0,
    notes TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS cycles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    obligation_id INTEGER NOT NULL REFERENCES obligations(id) ON DELETE CASCADE,
    start_date TEXT NOT NULL,
    end_date TEXT NOT NULL,
    amount TEXT NOT NULL,
    total TEXT NOT NULL DEFAULT '0',
    carryover TEXT NOT NULL DEFAULT '0',
    is_paid INTEGER NOT NULL DEFAULT 0,
    is_closed INTEGER NOT NULL DEFAULT 0,
    marked_paid INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL,
    UNIQUE (obligation_id, start_date)
);

CREATE INDEX IF NOT EXISTS ix_cycles_end ON cycles (obligation_id, end_date);

CREATE TABLE IF NOT EXISTS ledger_entries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    obligation_id INTEGER NOT NULL REFERENCES obligations(id) ON DELETE CASCADE,
    cycle_id INTEGER NOT NULL REFERENCES cycles(id) ON DELETE CASCADE,
    amount TEXT NOT NULL,
    event_date TEXT NOT NULL,
    notes TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS ix_ledger_cycle ON ledger_entries (cycle_id);
CREATE INDEX IF NOT EXISTS ix_ledger_obligation ON ledger_entries (obligation_id, event_date);
"""


# -----------------------------------------------------------------------------
# Row conversion
# -----------------------------------------------------------------------------


def _row_to_obligation(row: sqlite3.Row) -> Obligation:
    recurrence = None
    if row["recurrence_unit"] is not None:
        recurrence = Recurrence(
            interval=row["recurrence_interval"],
            unit=RecurrenceUnit(row["recurrence_unit"]),
        )
    return Obligation(
        id=row["id"],
        kind=ObligationKind(row["kind"]),
        name=row["name"],
        amount=Decimal(row["amount"]),
        anchor_date=date.fromisoformat(row["anchor_date"]),
        recurrence=recurrence,
        frequency=Frequency(row["frequency"]) if row["frequency"] else None,
        is_autopay=bool(row["is_autopay"]),
        is_variable_amount=bool(row["is_variable_amount"]),
        carryover_enabled=bool(row["carryover_enabled"]),
        is_deleted=bool(row["is_deleted"]),
        notes=row["notes"],
        created_at=date.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _row_to_cycle(row: sqlite3.Row) -> Cycle:
    return Cycle(
        id=row["id"],
        obligation_id=row["obligation_id"],
        start_date=date.fromisoformat(row["start_date"]),
        end_date=date.fromisoformat(row["end_date"]),
        amount=Decimal(row["amount"]),
        total=Decimal(row["total"]),
        carryover=Decimal(row["carryover"]),
        is_paid=bool(row["is_paid"]),
        is_closed=bool(row["is_closed"]),
        marked_paid=bool(row["marked_paid"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _row_to_entry(row: sqlite3.Row) -> LedgerEntry:
    return LedgerEntry(
        id=row["id"],
        obligation_id=row["obligation_id"],
        cycle_id=row["cycle_id"],
        amount=Decimal(row["amount"]),
        event_date=date.fromisoformat(row["event_date"]),
        notes=row["notes"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _now() -> str:
    return datetime.utcnow().isoformat()


# -----------------------------------------------------------------------------
# Repositories
# -----------------------------------------------------------------------------


class _Repository:
    def __init__(self, storage: "SQLiteStorage"):
        self.storage = storage

    def _fetch_one(self, sql: str, params: tuple[Any, ...]) -> sqlite3.Row | None:
        return self.storage.execute(sql, params).fetchone()

    def _fetch_all(self, sql: str, params: tuple[Any, ...]) -> list[sqlite3.Row]:
        return self.storage.execute(sql, params).fetchall()


class SQLiteObligationRepository(_Repository):
    """Obligation persistence."""

    def get(self, obligation_id: int) -> Obligation | None:
        row = self._fetch_one("SELECT * FROM obligations WHERE id = ?", (obligation_id,))
        return _row_to_obligation(row) if row else None

    def insert(self, obligation: Obligation) -> Obligation:
        recurrence = obligation.recurrence
        cursor = self.storage.execute(
            """
            INSERT INTO obligations (
                kind, name, amount, anchor_date, recurrence_interval, recurrence_unit,
                frequency, is_autopay, is_variable_amount, carryover_enabled,
                is_deleted, notes, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                obligation.kind.value,
                obligation.name,
                str(obligation.amount),
                obligation.anchor_date.isoformat(),
                recurrence.interval if recurrence else None,
                recurrence.unit.value if recurrence else None,
                obligation.frequency.value if obligation.frequency else None,
                int(obligation.is_autopay),
                int(obligation.is_variable_amount),
                int(obligation.carryover_enabled),
                int(obligation.is_deleted),
                obligation.notes,
                obligation.created_at.isoformat(),
                obligation.updated_at.isoformat(),
            ),
        )
        return obligation.model_copy(update={"id": cursor.lastrowid})

    def update(self, obligation: Obligation) -> Obligation:
        updated = obligation.model_copy(update={"updated_at": datetime.utcnow()})
        self.storage.execute(
            """
            UPDATE obligations SET
                name = ?, amount = ?, is_autopay = ?, is_variable_amount = ?,
                carryover_enabled = ?, is_deleted = ?, notes = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                updated.name,
                str(updated.amount),
                int(updated.is_autopay),
                int(updated.is_variable_amount),
                int(updated.carryover_enabled),
                int(updated.is_deleted),
                updated.notes,
                updated.updated_at.isoformat(),
                updated.id,
            ),
        )
        return updated

    def delete(self, obligation_id: int) -> bool:
        cursor = self.storage.execute("DELETE FROM obligations WHERE id = ?", (obligation_id,))
        return cursor.rowcount > 0

    def list_active(self) -> list[Obligation]:
        rows = self._fetch_all(
            "SELECT * FROM obligations WHERE is_deleted = 0 ORDER BY name COLLATE NOCASE, id",
            (),
        )
        return [_row_to_obligation(row) for row in rows]


class SQLiteCycleRepository(_Repository):
    """Cycle persistence with date-range lookups."""

    def get(self, cycle_id: int) -> Cycle | None:
        row = self._fetch_one("SELECT * FROM cycles WHERE id = ?", (cycle_id,))
        return _row_to_cycle(row) if row else None

    def latest(self, obligation_id: int) -> Cycle | None:
        row = self._fetch_one(
            "SELECT * FROM cycles WHERE obligation_id = ? ORDER BY end_date DESC LIMIT 1",
            (obligation_id,),
        )
        return _row_to_cycle(row) if row else None

    def get_by_start(self, obligation_id: int, start_date: date) -> Cycle | None:
        row = self._fetch_one(
            "SELECT * FROM cycles WHERE obligation_id = ? AND start_date = ?",
            (obligation_id, start_date.isoformat()),
        )
        return _row_to_cycle(row) if row else None

    def containing(self, obligation_id: int, day: date) -> Cycle | None:
        row = self._fetch_one(
            """
            SELECT * FROM cycles
            WHERE obligation_id = ? AND start_date <= ? AND end_date >= ?
            ORDER BY start_date DESC LIMIT 1
            """,
            (obligation_id, day.isoformat(), day.isoformat()),
        )
        return _row_to_cycle(row) if row else None

    def previous(self, obligation_id: int, before: date) -> Cycle | None:
        row = self._fetch_one(
            """
            SELECT * FROM cycles WHERE obligation_id = ? AND end_date < ?
            ORDER BY end_date DESC LIMIT 1
            """,
            (obligation_id, before.isoformat()),
        )
        return _row_to_cycle(row) if row else None

    def following(self, obligation_id: int, after: date) -> Cycle | None:
        row = self._fetch_one(
            """
            SELECT * FROM cycles WHERE obligation_id = ? AND start_date > ?
            ORDER BY start_date ASC LIMIT 1
            """,
            (obligation_id, after.isoformat()),
        )
        return _row_to_cycle(row) if row else None

    def list_from(self, obligation_id: int, start_date: date) -> list[Cycle]:
        rows = self._fetch_all(
            """
            SELECT * FROM cycles WHERE obligation_id = ? AND start_date >= ?
            ORDER BY start_date ASC
            """,
            (obligation_id, start_date.isoformat()),
        )
        return [_row_to_cycle(row) for row in rows]

    def list_for_obligation(self, obligation_id: int) -> list[Cycle]:
        rows = self._fetch_all(
            "SELECT * FROM cycles WHERE obligation_id = ? ORDER BY start_date ASC",
            (obligation_id,),
        )
        return [_row_to_cycle(row) for row in rows]

    def recent_with_total(self, obligation_id: int, limit: int) -> list[Cycle]:
        # total is TEXT, so compare numerically
        rows = self._fetch_all(
            """
            SELECT * FROM cycles
            WHERE obligation_id = ? AND CAST(total AS REAL) > 0
            ORDER BY end_date DESC LIMIT ?
            """,
            (obligation_id, limit),
        )
        return [_row_to_cycle(row) for row in rows]

    def insert(self, cycle: Cycle) -> Cycle:
        cursor = self.storage.execute(
            """
            INSERT INTO cycles (
                obligation_id, start_date, end_date, amount, total, carryover,
                is_paid, is_closed, marked_paid, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (obligation_id, start_date) DO NOTHING
            """,
            (
                cycle.obligation_id,
                cycle.start_date.isoformat(),
                cycle.end_date.isoformat(),
                str(cycle.amount),
                str(cycle.total),
                str(cycle.carryover),
                int(cycle.is_paid),
                int(cycle.is_closed),
                int(cycle.marked_paid),
                _now(),
            ),
        )
        if cursor.rowcount == 0:
            logger.debug(
                "Cycle %s..%s for obligation %s already exists",
                cycle.start_date,
                cycle.end_date,
                cycle.obligation_id,
            )
        stored = self.get_by_start(cycle.obligation_id, cycle.start_date)
        if stored is None:
            raise StorageError(
                f"Cycle starting {cycle.start_date} for obligation {cycle.obligation_id} was not stored"
            )
        return stored

    def update(self, cycle: Cycle) -> Cycle:
        self.storage.execute(
            """
            UPDATE cycles SET
                amount = ?, total = ?, carryover = ?, is_paid = ?, is_closed = ?,
                marked_paid = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                str(cycle.amount),
                str(cycle.total),
                str(cycle.carryover),
                int(cycle.is_paid),
                int(cycle.is_closed),
                int(cycle.marked_paid),
                _now(),
                cycle.id,
            ),
        )
        return cycle

    def set_amount_from(self, obligation_id: int, start_date: date, amount: Decimal) -> int:
        cursor = self.storage.execute(
            "UPDATE cycles SET amount = ?, updated_at = ? WHERE obligation_id = ? AND start_date >= ?",
            (str(amount), _now(), obligation_id, start_date.isoformat()),
        )
        return cursor.rowcount


class SQLiteLedgerRepository(_Repository):
    """Ledger entry persistence."""

    def get(self, entry_id: int) -> LedgerEntry | None:
        row = self._fetch_one("SELECT * FROM ledger_entries WHERE id = ?", (entry_id,))
        return _row_to_entry(row) if row else None

    def insert(self, entry: LedgerEntry) -> LedgerEntry:
        cursor = self.storage.execute(
            """
            INSERT INTO ledger_entries (
                obligation_id, cycle_id, amount, event_date, notes, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.obligation_id,
                entry.cycle_id,
                str(entry.amount),
                entry.event_date.isoformat(),
                entry.notes,
                entry.created_at.isoformat(),
                entry.updated_at.isoformat(),
            ),
        )
        return entry.model_copy(update={"id": cursor.lastrowid})

    def update(self, entry: LedgerEntry) -> LedgerEntry:
        updated = entry.model_copy(update={"updated_at": datetime.utcnow()})
        self.storage.execute(
            """
            UPDATE ledger_entries SET
                cycle_id = ?, amount = ?, event_date = ?, notes = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                updated.cycle_id,
                str(updated.amount),
                updated.event_date.isoformat(),
                updated.notes,
                updated.updated_at.isoformat(),
                updated.id,
            ),
        )
        return updated

    def delete(self, entry_id: int) -> bool:
        cursor = self.storage.execute("DELETE FROM ledger_entries WHERE id = ?", (entry_id,))
        return cursor.rowcount > 0

    def amounts_for_cycle(self, cycle_id: int) -> list[Decimal]:
        rows = self._fetch_all("SELECT amount FROM ledger_entries WHERE cycle_id = ?", (cycle_id,))
        return [Decimal(row["amount"]) for row in rows]

    def list_for_cycle(self, cycle_id: int) -> list[LedgerEntry]:
        rows = self._fetch_all(
            "SELECT * FROM ledger_entries WHERE cycle_id = ? ORDER BY event_date DESC, id DESC",
            (cycle_id,),
        )
        return [_row_to_entry(row) for row in rows]

    def list_for_obligation(self, obligation_id: int) -> list[LedgerEntry]:
        rows = self._fetch_all(
            "SELECT * FROM ledger_entries WHERE obligation_id = ? ORDER BY event_date DESC, id DESC",
            (obligation_id,),
        )
        return [_row_to_entry(row) for row in rows]


# -----------------------------------------------------------------------------
# Storage
# -----------------------------------------------------------------------------


class SQLiteStorage:
    """SQLite-backed store.

    Writes made by the engine happen inside ``transaction()``, which takes
    the database write lock up front (BEGIN IMMEDIATE) so two processes
    cannot interleave a materialize or recalculate sequence. Nested calls
    join the outer transaction.

    Usage:
        storage = SQLiteStorage(Path("duecycle.db"))
        with storage.transaction():
            ...
        storage.close()
    """

    def __init__(self, path: Path | str = ":memory:"):
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = sqlite3.connect(self.path, isolation_level=None)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open database {self.path}: {e}") from e
        self._conn.row_factory = sqlite3.Row
        self._depth = 0
        self._obligations = SQLiteObligationRepository(self)
        self._cycles = SQLiteCycleRepository(self)
        self._ledger = SQLiteLedgerRepository(self)
        self.init_schema()

    def init_schema(self) -> None:
        try:
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.executescript(SCHEMA_SQL)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot initialize schema: {e}") from e

    def execute(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed block atomically.

        Raises:
            StorageError: If the database fails; the transaction is rolled back.
        """
        if self._depth > 0:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        self.execute("BEGIN IMMEDIATE")
        self._depth = 1
        try:
            yield
        except BaseException:
            self._depth = 0
            self._rollback()
            raise
        self._depth = 0
        try:
            self._conn.execute("COMMIT")
        except sqlite3.Error as e:
            self._rollback()
            raise StorageError(f"Commit failed: {e}") from e

    def _rollback(self) -> None:
        # SQLite may already have rolled back on its own after some errors
        if self._conn.in_transaction:
            self._conn.execute("ROLLBACK")

    def get_obligation_repository(self) -> SQLiteObligationRepository:
        return self._obligations

    def get_cycle_repository(self) -> SQLiteCycleRepository:
        return self._cycles

    def get_ledger_repository(self) -> SQLiteLedgerRepository:
        return self._ledger

    def close(self) -> None:
        self._conn.close()
