"""Tests for the command line interface."""

from datetime import date, timedelta

import pytest
from typer.testing import CliRunner

from duecycle.cli.main import app
from duecycle.storage.sqlite import SQLiteStorage

runner = CliRunner()


@pytest.fixture
def db(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DUECYCLE_DB_PATH", raising=False)
    monkeypatch.delenv("DUECYCLE_LOG_LEVEL", raising=False)
    return str(tmp_path / "test.db")


def invoke(*args: str):
    return runner.invoke(app, list(args))


def add_rent(db: str):
    due = date.today() - timedelta(days=5)
    return invoke(
        "bill", "add", "Rent",
        "--amount", "1,200",
        "--due", due.isoformat(),
        "--every", "1",
        "--unit", "month",
        "--db", db,
    )


class TestBillCommands:
    """Tests for bill add/list/show."""

    def test_add_bill(self, db) -> None:
        """Test creating a recurring bill."""
        result = add_rent(db)

        assert result.exit_code == 0, result.output
        assert "Created bill" in result.output
        assert "Every month" in result.output
        assert "1,200.00 USD" in result.output

    def test_list(self, db) -> None:
        """Test that created obligations are listed."""
        add_rent(db)
        invoke("bucket", "add", "Food", "--budget", "400", "--db", db)

        result = invoke("list", "--db", db)

        assert result.exit_code == 0, result.output
        assert "Rent" in result.output
        assert "Food" in result.output

    def test_list_empty(self, db) -> None:
        """Test the hint shown when nothing exists yet."""
        result = invoke("list", "--db", db)

        assert result.exit_code == 0
        assert "No obligations yet" in result.output

    def test_show(self, db) -> None:
        """Test showing a bill with its cycles."""
        add_rent(db)

        result = invoke("show", "1", "--db", db)

        assert result.exit_code == 0, result.output
        assert "Current Cycle" in result.output
        assert "Cycles" in result.output

    def test_show_missing(self, db) -> None:
        """Test that an unknown obligation exits with an error."""
        result = invoke("show", "99", "--db", db)

        assert result.exit_code == 1
        assert "Obligation 99 not found" in result.output

    def test_one_time_bill_requires_both_recurrence_options(self, db) -> None:
        """Test that --every without --unit is rejected."""
        result = invoke("bill", "add", "Fee", "--due", "2025-01-01", "--every", "1", "--db", db)

        assert result.exit_code == 1
        assert "Error" in result.output


class TestPayCommands:
    """Tests for recording and editing payments."""

    def test_pay(self, db) -> None:
        """Test that a payment is recorded in the current cycle."""
        add_rent(db)

        result = invoke("pay", "1", "1200", "--db", db)

        assert result.exit_code == 0, result.output
        assert "Recorded" in result.output
        assert "Remaining this cycle: 0.00 USD" in result.output

    def test_pay_invalid_amount(self, db) -> None:
        """Test that a malformed amount is a usage error."""
        add_rent(db)

        result = invoke("pay", "1", "lots", "--db", db)

        assert result.exit_code != 0
        assert "Recorded" not in result.output

    def test_entry_update_and_delete(self, db) -> None:
        """Test editing and deleting a ledger entry."""
        add_rent(db)
        invoke("pay", "1", "1000", "--db", db)

        updated = invoke("entry", "update", "1", "--amount", "1200", "--db", db)
        listed = invoke("entry", "list", "1", "--db", db)
        deleted = invoke("entry", "delete", "1", "--db", db)
        missing = invoke("entry", "delete", "1", "--db", db)

        assert updated.exit_code == 0, updated.output
        assert "1,200.00 USD" in updated.output
        assert "1,200.00" in listed.output
        assert deleted.exit_code == 0
        assert missing.exit_code == 1
        assert "Ledger entry 1 not found" in missing.output

    def test_mark_paid(self, db) -> None:
        """Test marking and unmarking a cycle."""
        add_rent(db)

        marked = invoke("mark-paid", "1", "--db", db)
        unmarked = invoke("mark-paid", "1", "--undo", "--db", db)

        assert marked.exit_code == 0, marked.output
        assert "now paid" in marked.output
        assert "now unpaid" in unmarked.output


class TestObligationCommands:
    """Tests for update and delete."""

    def test_update_amount(self, db) -> None:
        """Test updating a bill amount."""
        add_rent(db)

        result = invoke("update", "1", "--amount", "1300", "--db", db)
        shown = invoke("show", "1", "--db", db)

        assert result.exit_code == 0, result.output
        assert "1,300.00 USD" in shown.output

    def test_toggle_variable_amount(self, db) -> None:
        """Test switching a bill to a variable amount and back."""
        add_rent(db)

        on = invoke("update", "1", "--variable-amount", "--db", db)
        storage = SQLiteStorage(db)
        try:
            assert storage.get_obligation_repository().get(1).is_variable_amount
        finally:
            storage.close()
        off = invoke("update", "1", "--no-variable-amount", "--db", db)
        storage = SQLiteStorage(db)
        try:
            assert not storage.get_obligation_repository().get(1).is_variable_amount
        finally:
            storage.close()

        assert on.exit_code == 0, on.output
        assert off.exit_code == 0, off.output

    def test_update_without_changes(self, db) -> None:
        """Test that an empty update does nothing."""
        result = invoke("update", "1", "--db", db)

        assert result.exit_code == 0
        assert "Nothing to update" in result.output

    def test_delete_requires_confirm(self, db) -> None:
        """Test that deletion needs --confirm."""
        add_rent(db)

        result = invoke("delete", "1", "--db", db)

        assert result.exit_code == 0
        assert "--confirm" in result.output
        assert "Rent" in invoke("list", "--db", db).output

    def test_delete(self, db) -> None:
        """Test deleting with confirmation."""
        add_rent(db)

        result = invoke("delete", "1", "--confirm", "--db", db)

        assert result.exit_code == 0, result.output
        assert "No obligations yet" in invoke("list", "--db", db).output
