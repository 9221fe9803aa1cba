"""Tests for ledger recording and forward recalculation."""

import logging
from datetime import date, datetime
from decimal import Decimal

import pytest

from duecycle.core.exceptions import LedgerEntryNotFoundError, ObligationNotFoundError


@pytest.fixture
def bucket(service, clock):
    """Monthly grocery bucket anchored on Jan 1 with three cycles materialized."""
    clock.set(date(2025, 3, 15))
    return service.create_bucket(
        "Groceries",
        Decimal("100"),
        "monthly",
        date(2025, 1, 1),
        carryover_enabled=True,
    )


class TestRecordBillPayment:
    """Tests for payments against bills."""

    def test_payment_lands_in_cycle_containing_its_date(self, service, clock) -> None:
        """Test a payment made after the first due date."""
        bill = service.create_bill("Rent", Decimal("100"), date(2025, 1, 15), interval=1, unit="month")
        clock.set(date(2025, 2, 20))

        entry = service.record_ledger_entry(bill.id, Decimal("100"), date(2025, 2, 20))

        cycles = service.get_cycles_for_obligation(bill.id)
        assert [(c.start_date, c.end_date) for c in cycles] == [
            (date(2025, 1, 16), date(2025, 2, 15)),
            (date(2025, 2, 16), date(2025, 3, 15)),
        ]
        assert entry.cycle_id == cycles[1].id
        assert cycles[0].total == Decimal("0")
        assert not cycles[0].is_paid
        assert cycles[1].total == Decimal("100")
        assert cycles[1].is_paid

    def test_partial_payments_accumulate(self, service, clock) -> None:
        """Test that a bill is paid once its payments cover the amount."""
        clock.set(date(2025, 2, 1))
        bill = service.create_bill("Phone", Decimal("100"), date(2025, 1, 15), interval=1, unit="month")

        service.record_ledger_entry(bill.id, Decimal("40"), date(2025, 2, 1))
        assert not service.get_obligation_with_current_cycle(bill.id).current_cycle.cycle.is_paid

        service.record_ledger_entry(bill.id, Decimal("60"), date(2025, 2, 3))
        view = service.get_obligation_with_current_cycle(bill.id).current_cycle
        assert view.cycle.total == Decimal("100")
        assert view.cycle.is_paid
        assert view.remaining == Decimal("0")

    def test_payment_on_due_date_before_first_cycle(self, service, clock) -> None:
        """Test that paying on the first due date creates the cycle it closes."""
        bill = service.create_bill("Rent", Decimal("100"), date(2025, 1, 15), interval=1, unit="month")
        clock.set(date(2025, 1, 15))

        entry = service.record_ledger_entry(bill.id, Decimal("100"), date(2025, 1, 15))

        cycles = service.get_cycles_for_obligation(bill.id)
        assert (cycles[0].start_date, cycles[0].end_date) == (date(2024, 12, 16), date(2025, 1, 15))
        assert entry.cycle_id == cycles[0].id
        assert cycles[0].is_paid

    def test_one_time_bill_takes_late_payment(self, service, clock) -> None:
        """Test that a one-time bill's single cycle receives payments after its due date."""
        bill = service.create_bill("Car repair", Decimal("450"), date(2025, 3, 1))
        clock.set(date(2025, 6, 1))

        service.record_ledger_entry(bill.id, Decimal("450"), date(2025, 5, 5))

        cycles = service.get_cycles_for_obligation(bill.id)
        assert len(cycles) == 1
        assert cycles[0].is_paid
        assert service.get_obligation_with_current_cycle(bill.id).current_cycle is None

    def test_variable_amount_bill_paid_by_any_payment(self, service, clock) -> None:
        """Test that one cent satisfies a variable-amount bill with no expected amount."""
        clock.set(date(2025, 2, 1))
        bill = service.create_bill(
            "Electricity",
            Decimal("0"),
            date(2025, 1, 15),
            interval=1,
            unit="month",
            is_variable_amount=True,
        )

        service.record_ledger_entry(bill.id, Decimal("0.01"), date(2025, 2, 1))

        assert service.get_obligation_with_current_cycle(bill.id).current_cycle.is_satisfied

    def test_unknown_obligation(self, service) -> None:
        """Test recording against a missing obligation."""
        with pytest.raises(ObligationNotFoundError, match="Obligation 42 not found"):
            service.record_ledger_entry(42, Decimal("10"), date(2025, 1, 1))

    def test_accepts_datetime(self, service, clock) -> None:
        """Test that a datetime event is reduced to its day."""
        clock.set(date(2025, 2, 1))
        bill = service.create_bill("Rent", Decimal("100"), date(2025, 1, 15), interval=1, unit="month")
        entry = service.record_ledger_entry(bill.id, 100, datetime(2025, 2, 1, 18, 30))

        assert entry.event_date == date(2025, 2, 1)
        assert entry.amount == Decimal("100")


class TestCarryoverChain:
    """Tests for bucket carryover across consecutive cycles."""

    def test_spending_rolls_forward(self, service, bucket) -> None:
        """Test carryover and remaining after spending 60, then 150, then nothing."""
        service.record_ledger_entry(bucket.id, Decimal("60"), date(2025, 1, 10))
        service.record_ledger_entry(bucket.id, Decimal("150"), date(2025, 2, 12))

        views = service.get_cycle_views(bucket.id)
        assert [v.cycle.total for v in views] == [Decimal("60"), Decimal("150"), Decimal("0")]
        assert [v.cycle.carryover for v in views] == [Decimal("0"), Decimal("40"), Decimal("-10")]
        assert [v.remaining for v in views] == [Decimal("40"), Decimal("-10"), Decimal("90")]
        assert [v.is_satisfied for v in views] == [True, False, True]

    def test_backdated_edit_recalculates_later_cycles(self, service, bucket) -> None:
        """Test that recording in an old cycle changes every later carryover."""
        service.record_ledger_entry(bucket.id, Decimal("150"), date(2025, 2, 12))
        service.record_ledger_entry(bucket.id, Decimal("60"), date(2025, 1, 10))

        views = service.get_cycle_views(bucket.id)
        assert [v.cycle.carryover for v in views] == [Decimal("0"), Decimal("40"), Decimal("-10")]

    def test_disabled_carryover(self, service, clock) -> None:
        """Test that a bucket without carryover starts every cycle fresh."""
        clock.set(date(2025, 2, 15))
        bucket = service.create_bucket("Dining", Decimal("100"), "monthly", date(2025, 1, 1))
        service.record_ledger_entry(bucket.id, Decimal("30"), date(2025, 1, 10))

        views = service.get_cycle_views(bucket.id)
        assert [v.cycle.carryover for v in views] == [Decimal("0"), Decimal("0")]
        assert views[1].remaining == Decimal("100")

    def test_toggling_carryover_recalculates(self, service, bucket) -> None:
        """Test that switching carryover off clears every carryover."""
        service.record_ledger_entry(bucket.id, Decimal("60"), date(2025, 1, 10))

        service.update_obligation(bucket.id, {"carryover_enabled": False})

        assert all(c.carryover == 0 for c in service.get_cycles_for_obligation(bucket.id))

    def test_backdated_entry_creates_one_cycle(self, service, clock) -> None:
        """Test that spending before the first cycle creates only its own cycle."""
        clock.set(date(2025, 4, 15))
        bucket = service.create_bucket(
            "Groceries", Decimal("100"), "monthly", date(2025, 3, 1), carryover_enabled=True
        )

        service.record_ledger_entry(bucket.id, Decimal("30"), date(2025, 1, 20))

        cycles = service.get_cycles_for_obligation(bucket.id)
        assert [(c.start_date, c.end_date) for c in cycles] == [
            (date(2025, 1, 1), date(2025, 1, 31)),
            (date(2025, 3, 1), date(2025, 3, 31)),
            (date(2025, 4, 1), date(2025, 4, 30)),
        ]
        assert cycles[0].total == Decimal("30")
        assert cycles[1].carryover == Decimal("70")
        assert cycles[2].carryover == Decimal("170")

    def test_future_entry_materializes_through_its_date(self, service, clock) -> None:
        """Test that a future-dated entry creates the cycles leading up to it."""
        clock.set(date(2025, 1, 10))
        bucket = service.create_bucket("Travel", Decimal("500"), "monthly", date(2025, 1, 1))

        entry = service.record_ledger_entry(bucket.id, Decimal("200"), date(2025, 3, 5))

        cycles = service.get_cycles_for_obligation(bucket.id)
        assert [c.start_date for c in cycles] == [date(2025, 1, 1), date(2025, 2, 1), date(2025, 3, 1)]
        assert entry.cycle_id == cycles[2].id


class TestUpdateLedgerEntry:
    """Tests for editing ledger entries."""

    def test_amount_change(self, service, bucket) -> None:
        """Test that editing an amount re-derives the cycle total."""
        entry = service.record_ledger_entry(bucket.id, Decimal("60"), date(2025, 1, 10))

        service.update_ledger_entry(entry.id, {"amount": Decimal("80")})

        cycles = service.get_cycles_for_obligation(bucket.id)
        assert cycles[0].total == Decimal("80")
        assert cycles[1].carryover == Decimal("20")

    def test_date_change_moves_entry(self, service, bucket) -> None:
        """Test that a new date reassigns the entry and recalculates both cycles."""
        entry = service.record_ledger_entry(bucket.id, Decimal("60"), date(2025, 1, 10))

        moved = service.update_ledger_entry(entry.id, {"event_date": date(2025, 2, 10)})

        january, february, march = service.get_cycles_for_obligation(bucket.id)
        assert moved.cycle_id == february.id
        assert january.total == Decimal("0")
        assert february.total == Decimal("60")
        assert february.carryover == Decimal("100")
        assert march.carryover == Decimal("140")

    def test_move_to_earlier_cycle(self, service, bucket) -> None:
        """Test moving an entry backwards in time."""
        entry = service.record_ledger_entry(bucket.id, Decimal("60"), date(2025, 3, 1))

        service.update_ledger_entry(entry.id, {"event_date": date(2025, 1, 31)})

        january, february, march = service.get_cycles_for_obligation(bucket.id)
        assert january.total == Decimal("60")
        assert march.total == Decimal("0")
        assert march.carryover == Decimal("140")

    def test_notes_can_be_cleared(self, service, bucket) -> None:
        """Test that an explicit None clears notes while other fields stay."""
        entry = service.record_ledger_entry(bucket.id, Decimal("60"), date(2025, 1, 10), notes="market")

        updated = service.update_ledger_entry(entry.id, {"notes": None})

        assert updated.notes is None
        assert updated.amount == Decimal("60")

    def test_unknown_entry(self, service) -> None:
        """Test editing a missing entry."""
        with pytest.raises(LedgerEntryNotFoundError):
            service.update_ledger_entry(999, {"amount": Decimal("1")})

    def test_same_cycle_date_change_is_not_a_move(self, service, bucket, caplog, monkeypatch) -> None:
        """Test that a new date inside the same cycle keeps the entry in place."""
        monkeypatch.setattr(logging.getLogger("duecycle"), "propagate", True)
        entry = service.record_ledger_entry(bucket.id, Decimal("60"), date(2025, 1, 10))

        with caplog.at_level(logging.INFO, logger="duecycle.engine.recorder"):
            updated = service.update_ledger_entry(entry.id, {"event_date": date(2025, 1, 20)})

        assert updated.cycle_id == entry.cycle_id
        assert updated.event_date == date(2025, 1, 20)
        assert not any("Moved ledger entry" in r.getMessage() for r in caplog.records)

        with caplog.at_level(logging.INFO, logger="duecycle.engine.recorder"):
            service.update_ledger_entry(entry.id, {"event_date": date(2025, 2, 3)})

        assert any("Moved ledger entry" in r.getMessage() for r in caplog.records)


class TestDeleteLedgerEntry:
    """Tests for deleting ledger entries."""

    def test_delete_recalculates(self, service, bucket) -> None:
        """Test that deleting an entry restores totals and carryover."""
        entry = service.record_ledger_entry(bucket.id, Decimal("60"), date(2025, 1, 10))

        service.delete_ledger_entry(entry.id)

        january, february, _ = service.get_cycles_for_obligation(bucket.id)
        assert january.total == Decimal("0")
        assert february.carryover == Decimal("100")
        assert service.list_ledger_entries(bucket.id) == []

    def test_delete_bill_payment_unpays_cycle(self, service, clock) -> None:
        """Test that removing the only payment marks the cycle unpaid again."""
        clock.set(date(2025, 2, 1))
        bill = service.create_bill("Rent", Decimal("100"), date(2025, 1, 15), interval=1, unit="month")
        entry = service.record_ledger_entry(bill.id, Decimal("100"), date(2025, 2, 1))

        service.delete_ledger_entry(entry.id)

        (cycle,) = service.get_cycles_for_obligation(bill.id)
        assert cycle.total == Decimal("0")
        assert not cycle.is_paid

    def test_unknown_entry(self, service) -> None:
        """Test deleting a missing entry."""
        with pytest.raises(LedgerEntryNotFoundError, match="Ledger entry 7 not found"):
            service.delete_ledger_entry(7)


class TestListLedgerEntries:
    """Tests for listing ledger entries."""

    def test_newest_first(self, service, bucket) -> None:
        """Test ordering and filtering by cycle."""
        first = service.record_ledger_entry(bucket.id, Decimal("10"), date(2025, 1, 5))
        second = service.record_ledger_entry(bucket.id, Decimal("20"), date(2025, 2, 5))
        third = service.record_ledger_entry(bucket.id, Decimal("30"), date(2025, 2, 20))

        assert [e.id for e in service.list_ledger_entries(bucket.id)] == [third.id, second.id, first.id]
        assert [e.id for e in service.list_ledger_entries(bucket.id, cycle_id=second.cycle_id)] == [
            third.id,
            second.id,
        ]

    def test_unknown_obligation(self, service) -> None:
        """Test listing entries of a missing obligation."""
        with pytest.raises(ObligationNotFoundError):
            service.list_ledger_entries(5)
