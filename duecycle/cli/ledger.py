"""Ledger commands: record, edit and delete payments/spending."""

from datetime import datetime
from pathlib import Path

import typer
from rich.table import Table

from duecycle.cli.obligations import DATE_FORMATS
from duecycle.cli.utils import DB_OPTION_HELP, console, format_currency, open_service, parse_amount, to_date

entry_app = typer.Typer(help="Edit or delete recorded payments and spending")


def pay_command(
    obligation_id: int = typer.Argument(..., help="Obligation ID"),
    amount: str = typer.Argument(..., help="Amount paid or spent"),
    on: datetime = typer.Option(None, "--date", "-d", formats=DATE_FORMATS, help="Event date (default: today)"),
    notes: str = typer.Option(None, "--notes", help="Free text"),
    db: Path = typer.Option(None, "--db", help=DB_OPTION_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Record a payment (bill) or spend transaction (bucket)."""
    with open_service(db, verbose) as (service, config):
        entry = service.record_ledger_entry(
            obligation_id,
            parse_amount(amount),
            to_date(on, service.today()),
            notes,
        )
        snapshot = service.get_obligation_with_current_cycle(obligation_id)
        console.print(
            f"[green]Recorded[/green] entry #{entry.id}: "
            f"{format_currency(entry.amount, config.currency)} on {entry.event_date} "
            f"for {snapshot.obligation.name}"
        )
        if snapshot.current_cycle is not None:
            remaining = format_currency(snapshot.current_cycle.remaining, config.currency)
            console.print(f"[dim]Remaining this cycle: {remaining}[/dim]")


def mark_paid_command(
    cycle_id: int = typer.Argument(..., help="Cycle ID (see 'duecycle show')"),
    undo: bool = typer.Option(False, "--undo", help="Clear the paid mark"),
    db: Path = typer.Option(None, "--db", help=DB_OPTION_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Mark a bill cycle paid without recording a payment."""
    with open_service(db, verbose) as (service, config):
        view = service.set_cycle_marked_paid(cycle_id, marked=not undo)
        state = "paid" if view.is_satisfied else "unpaid"
        console.print(f"Cycle {view.cycle.start_date} .. {view.cycle.end_date} is now [bold]{state}[/bold]")


@entry_app.command(name="list")
def entry_list(
    obligation_id: int = typer.Argument(..., help="Obligation ID"),
    db: Path = typer.Option(None, "--db", help=DB_OPTION_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """List ledger entries of an obligation, newest first."""
    with open_service(db, verbose) as (service, config):
        entries = service.list_ledger_entries(obligation_id)
        if not entries:
            console.print("[yellow]No entries recorded[/yellow]")
            raise typer.Exit(0)

        table = Table(title="Ledger")
        table.add_column("ID")
        table.add_column("Date")
        table.add_column("Amount", justify="right")
        table.add_column("Cycle")
        table.add_column("Notes")
        for entry in entries:
            table.add_row(
                str(entry.id),
                str(entry.event_date),
                format_currency(entry.amount, config.currency),
                str(entry.cycle_id),
                entry.notes or "",
            )
        console.print(table)


@entry_app.command(name="update")
def entry_update(
    entry_id: int = typer.Argument(..., help="Ledger entry ID"),
    amount: str = typer.Option(None, "--amount", "-a", help="New amount"),
    on: datetime = typer.Option(None, "--date", "-d", formats=DATE_FORMATS, help="New event date"),
    notes: str = typer.Option(None, "--notes", help="Replace notes"),
    db: Path = typer.Option(None, "--db", help=DB_OPTION_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Edit a ledger entry. A new date may move it to another cycle."""
    patch: dict = {}
    if amount is not None:
        patch["amount"] = parse_amount(amount)
    if on is not None:
        patch["event_date"] = to_date(on)
    if notes is not None:
        patch["notes"] = notes

    if not patch:
        console.print("[yellow]Nothing to update[/yellow]")
        raise typer.Exit(0)

    with open_service(db, verbose) as (service, config):
        entry = service.update_ledger_entry(entry_id, patch)
        console.print(
            f"[green]Updated[/green] entry #{entry.id}: "
            f"{format_currency(entry.amount, config.currency)} on {entry.event_date}"
        )


@entry_app.command(name="delete")
def entry_delete(
    entry_id: int = typer.Argument(..., help="Ledger entry ID"),
    db: Path = typer.Option(None, "--db", help=DB_OPTION_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Delete a ledger entry and recalculate its cycles."""
    with open_service(db, verbose) as (service, config):
        service.delete_ledger_entry(entry_id)
        console.print(f"[green]Deleted[/green] entry #{entry_id}")
