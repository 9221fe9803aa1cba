"""Domain models for DueCycle.

All obligation, cycle and ledger structures are defined here using
Pydantic v2 for validation.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, Field, computed_field, model_validator


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------


class ObligationKind(str, Enum):
    """Obligation family.

    FIXED:    A bill. One expected amount per cycle, optional recurrence.
    VARIABLE: A bucket. A rolling budget with optional balance carryover.
    """

    FIXED = "fixed"
    VARIABLE = "variable"


class RecurrenceUnit(str, Enum):
    """Calendar unit a recurrence steps by."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class Frequency(str, Enum):
    """Cycle frequency for variable obligations."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

    def to_recurrence(self) -> "Recurrence":
        interval, unit = _FREQUENCY_STEPS[self]
        return Recurrence(interval=interval, unit=unit)


_FREQUENCY_STEPS: dict[Frequency, tuple[int, RecurrenceUnit]] = {
    Frequency.WEEKLY: (1, RecurrenceUnit.WEEK),
    Frequency.BIWEEKLY: (2, RecurrenceUnit.WEEK),
    Frequency.MONTHLY: (1, RecurrenceUnit.MONTH),
    Frequency.QUARTERLY: (3, RecurrenceUnit.MONTH),
    Frequency.YEARLY: (1, RecurrenceUnit.YEAR),
}


# -----------------------------------------------------------------------------
# Obligation Model
# -----------------------------------------------------------------------------


class Recurrence(BaseModel):
    """How often a fixed obligation repeats, e.g. every 2 weeks."""

    interval: Annotated[int, Field(ge=1)]
    unit: RecurrenceUnit

    def describe(self) -> str:
        """Human-readable description ("Every month", "Every 2 weeks")."""
        if self.interval == 1:
            return f"Every {self.unit.value}"
        return f"Every {self.interval} {self.unit.value}s"


class Obligation(BaseModel):
    """A recurring or one-time financial commitment.

    Attributes:
        id: Database identifier (None until persisted).
        kind: FIXED (bill) or VARIABLE (bucket).
        name: Display name.
        amount: Expected amount per cycle (bills) or budget per cycle (buckets).
            Zero for bills whose amount is only known once paid.
        anchor_date: Due date for bills, anchor date for buckets.
        recurrence: Recurrence for bills. None = one-time bill.
        frequency: Cycle frequency for buckets.
        is_autopay: Bill is paid automatically.
        is_variable_amount: Bill amount varies from cycle to cycle.
        carryover_enabled: Bucket rolls its unspent balance forward.
        is_deleted: Soft-delete flag (buckets only).
        notes: Free text.
        created_at: Creation date, start of a one-time bill's only cycle.
        updated_at: Last modification timestamp.

    Kind Rules:
        - VARIABLE requires frequency and never has a recurrence.
        - FIXED never has a frequency and never carries over.
    """

    id: int | None = None
    kind: ObligationKind
    name: str = Field(min_length=1)
    amount: Annotated[Decimal, Field(ge=0)] = Decimal(0)
    anchor_date: date
    recurrence: Recurrence | None = None
    frequency: Frequency | None = None
    is_autopay: bool = False
    is_variable_amount: bool = False
    carryover_enabled: bool = False
    is_deleted: bool = False
    notes: str | None = None
    created_at: date = Field(default_factory=date.today)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode="after")
    def validate_kind(self) -> "Obligation":
        """Ensure kind-specific fields are consistent."""
        if self.kind == ObligationKind.VARIABLE:
            if self.frequency is None:
                raise ValueError("frequency required for a variable obligation")
            if self.recurrence is not None:
                raise ValueError("variable obligations use frequency, not recurrence")
        else:
            if self.frequency is not None:
                raise ValueError("fixed obligations use recurrence, not frequency")
            if self.carryover_enabled:
                raise ValueError("carryover is only available for variable obligations")
        return self

    @property
    def is_recurring(self) -> bool:
        return self.kind == ObligationKind.VARIABLE or self.recurrence is not None

    @property
    def step(self) -> Recurrence | None:
        """Recurrence the cycle boundaries step by, None for one-time bills."""
        if self.frequency is not None:
            return self.frequency.to_recurrence()
        return self.recurrence

    def describe_recurrence(self) -> str:
        step = self.step
        return step.describe() if step is not None else "One time"


class ObligationPatch(BaseModel):
    """Fields of an Obligation that may change after creation.

    Anchor date, recurrence and frequency are fixed at creation because
    persisted cycles were sliced from them.
    """

    name: str | None = Field(default=None, min_length=1)
    amount: Annotated[Decimal, Field(ge=0)] | None = None
    is_autopay: bool | None = None
    is_variable_amount: bool | None = None
    carryover_enabled: bool | None = None
    notes: str | None = None


# -----------------------------------------------------------------------------
# Cycle Model
# -----------------------------------------------------------------------------


class Cycle(BaseModel):
    """A materialized accounting period of one obligation.

    Attributes:
        id: Database identifier (None until persisted).
        obligation_id: Owning obligation.
        start_date: First day of the cycle (inclusive).
        end_date: Last day of the cycle (inclusive).
        amount: Expected amount / budget snapshot taken when the cycle was created.
        total: Sum of ledger entries assigned to this cycle (paid or spent).
        carryover: Balance carried in from the previous cycle (buckets only).
        is_paid: Bill cycle is satisfied.
        is_closed: Bucket cycle has been superseded by a newer cycle.
        marked_paid: User explicitly marked the cycle paid.

    Invariant:
        total is always re-derived from ledger rows during recalculation,
        never incremented.
    """

    id: int | None = None
    obligation_id: int
    start_date: date
    end_date: date
    amount: Decimal = Decimal(0)
    total: Decimal = Decimal(0)
    carryover: Decimal = Decimal(0)
    is_paid: bool = False
    is_closed: bool = False
    marked_paid: bool = False
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode="after")
    def validate_bounds(self) -> "Cycle":
        """Ensure the cycle spans at least one day."""
        if self.end_date < self.start_date:
            raise ValueError("cycle end_date precedes start_date")
        return self

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


# -----------------------------------------------------------------------------
# Ledger Entry Model
# -----------------------------------------------------------------------------


class LedgerEntry(BaseModel):
    """A single payment (bill) or spend transaction (bucket)."""

    id: int | None = None
    obligation_id: int
    cycle_id: int
    amount: Decimal
    event_date: date
    notes: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class LedgerEntryPatch(BaseModel):
    """Editable ledger entry fields. None = unchanged."""

    amount: Decimal | None = None
    event_date: date | None = None
    notes: str | None = None


# -----------------------------------------------------------------------------
# View Models (output only)
# -----------------------------------------------------------------------------


class CycleView(BaseModel):
    """A cycle with presentation-only fields derived from it.

    Built by the computed view; never written back to storage.
    """

    cycle: Cycle
    kind: ObligationKind
    is_satisfied: bool = False

    @computed_field  # type: ignore[misc]
    @property
    def starting_balance(self) -> Decimal:
        """Budget plus carried-in balance (buckets); expected amount (bills)."""
        if self.kind == ObligationKind.VARIABLE:
            return self.cycle.amount + self.cycle.carryover
        return self.cycle.amount

    @computed_field  # type: ignore[misc]
    @property
    def remaining(self) -> Decimal:
        return self.starting_balance - self.cycle.total

    @computed_field  # type: ignore[misc]
    @property
    def percent_paid(self) -> Decimal:
        """Share of the expected amount paid, capped at 100 (bills only)."""
        if self.kind != ObligationKind.FIXED or self.cycle.amount <= 0:
            return Decimal(0)
        return min(self.cycle.total / self.cycle.amount * 100, Decimal(100))


class UsageStats(BaseModel):
    """Payment statistics over recent cycles of a variable-amount bill."""

    count: int
    average: Decimal
    min: Decimal
    max: Decimal
    last_amount: Decimal


class ObligationSnapshot(BaseModel):
    """An obligation together with its current cycle."""

    obligation: Obligation
    current_cycle: CycleView | None = None
    usage_stats: UsageStats | None = None
