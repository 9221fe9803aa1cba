"""Obligation commands: add, list, show, update, delete."""

from datetime import datetime
from pathlib import Path

import typer
from rich.panel import Panel
from rich.table import Table

from duecycle.cli.utils import (
    DB_OPTION_HELP,
    console,
    format_currency,
    format_percentage,
    open_service,
    parse_amount,
    to_date,
)
from duecycle.core.models import (
    CycleView,
    Frequency,
    ObligationKind,
    ObligationSnapshot,
    RecurrenceUnit,
)

bill_app = typer.Typer(help="Manage fixed obligations (bills)")
bucket_app = typer.Typer(help="Manage variable obligations (budget buckets)")

DATE_FORMATS = ["%Y-%m-%d"]


@bill_app.command(name="add")
def bill_add(
    name: str = typer.Argument(..., help="Bill name"),
    amount: str = typer.Option("0", "--amount", "-a", help="Expected amount per cycle"),
    due: datetime = typer.Option(..., "--due", "-d", formats=DATE_FORMATS, help="Due date (YYYY-MM-DD)"),
    every: int = typer.Option(None, "--every", "-e", help="Recurrence interval, e.g. 1"),
    unit: RecurrenceUnit = typer.Option(None, "--unit", "-u", help="Recurrence unit"),
    autopay: bool = typer.Option(False, "--autopay", help="Bill is paid automatically"),
    variable_amount: bool = typer.Option(False, "--variable-amount", help="Amount varies per cycle"),
    notes: str = typer.Option(None, "--notes", help="Free text"),
    db: Path = typer.Option(None, "--db", help=DB_OPTION_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Add a bill. Omit --every/--unit for a one-time bill."""
    with open_service(db, verbose) as (service, config):
        bill = service.create_bill(
            name=name,
            amount=parse_amount(amount),
            due_date=due.date(),
            interval=every,
            unit=unit.value if unit else None,
            is_autopay=autopay,
            is_variable_amount=variable_amount,
            notes=notes,
        )
        console.print(
            f"[green]Created bill[/green] #{bill.id} {bill.name} "
            f"({bill.describe_recurrence()}, {format_currency(bill.amount, config.currency)})"
        )


@bucket_app.command(name="add")
def bucket_add(
    name: str = typer.Argument(..., help="Bucket name"),
    budget: str = typer.Option(..., "--budget", "-b", help="Budget per cycle"),
    frequency: Frequency = typer.Option(Frequency.MONTHLY, "--frequency", "-f", help="Cycle frequency"),
    anchor: datetime = typer.Option(
        None, "--anchor", formats=DATE_FORMATS, help="First cycle start (default: today)"
    ),
    carryover: bool = typer.Option(False, "--carryover", help="Roll unspent budget forward"),
    notes: str = typer.Option(None, "--notes", help="Free text"),
    db: Path = typer.Option(None, "--db", help=DB_OPTION_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Add a budget bucket."""
    with open_service(db, verbose) as (service, config):
        bucket = service.create_bucket(
            name=name,
            budget=parse_amount(budget),
            frequency=frequency,
            anchor_date=to_date(anchor, service.today()),
            carryover_enabled=carryover,
            notes=notes,
        )
        console.print(
            f"[green]Created bucket[/green] #{bucket.id} {bucket.name} "
            f"({bucket.describe_recurrence()}, {format_currency(bucket.amount, config.currency)})"
        )


def _status_label(view: CycleView | None) -> str:
    if view is None:
        return "[dim]no current cycle[/dim]"
    if view.kind == ObligationKind.VARIABLE:
        return "[green]on budget[/green]" if view.is_satisfied else "[red]over budget[/red]"
    return "[green]paid[/green]" if view.is_satisfied else "[yellow]unpaid[/yellow]"


def _snapshot_row(snapshot: ObligationSnapshot, currency: str) -> list[str]:
    obligation = snapshot.obligation
    view = snapshot.current_cycle
    if view is None:
        period = remaining = "-"
    else:
        period = f"{view.cycle.start_date} .. {view.cycle.end_date}"
        remaining = format_currency(view.remaining, currency)
    return [
        str(obligation.id),
        obligation.name,
        "bill" if obligation.kind == ObligationKind.FIXED else "bucket",
        obligation.describe_recurrence(),
        format_currency(obligation.amount, currency),
        period,
        remaining,
        _status_label(view),
    ]


def list_command(
    db: Path = typer.Option(None, "--db", help=DB_OPTION_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """List obligations with their current cycle."""
    with open_service(db, verbose) as (service, config):
        snapshots = service.list_obligations_with_current_cycle()
        if not snapshots:
            console.print("[yellow]No obligations yet[/yellow]")
            console.print("Run 'duecycle bill add' or 'duecycle bucket add' to create one")
            raise typer.Exit(0)

        table = Table(title="Obligations")
        for column in ("ID", "Name", "Kind", "Recurrence", "Amount", "Current cycle", "Remaining", "Status"):
            table.add_column(column)
        for snapshot in snapshots:
            table.add_row(*_snapshot_row(snapshot, config.currency))
        console.print(table)


def show_command(
    obligation_id: int = typer.Argument(..., help="Obligation ID"),
    db: Path = typer.Option(None, "--db", help=DB_OPTION_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Show an obligation, its current cycle and cycle history."""
    with open_service(db, verbose) as (service, config):
        currency = config.currency
        snapshot = service.get_obligation_with_current_cycle(obligation_id)
        obligation = snapshot.obligation
        is_bucket = obligation.kind == ObligationKind.VARIABLE

        console.print()
        console.print(Panel(f"[bold]{obligation.name}[/bold] ({obligation.describe_recurrence()})", style="cyan"))

        view = snapshot.current_cycle
        if view is not None:
            console.print("[bold]Current Cycle[/bold]")
            console.print(f"  Period:     {view.cycle.start_date} .. {view.cycle.end_date}")
            if is_bucket:
                console.print(f"  Budget:     {format_currency(view.cycle.amount, currency):>14}")
                console.print(f"  Carryover:  {format_currency(view.cycle.carryover, currency):>14}")
                console.print(f"  Spent:      {format_currency(view.cycle.total, currency):>14}")
            else:
                console.print(f"  Expected:   {format_currency(view.cycle.amount, currency):>14}")
                console.print(
                    f"  Paid:       {format_currency(view.cycle.total, currency):>14}"
                    f"  ({format_percentage(view.percent_paid)})"
                )
            console.print(f"  Remaining:  {format_currency(view.remaining, currency):>14}  {_status_label(view)}")
            console.print()

        stats = snapshot.usage_stats
        if stats is not None:
            console.print(f"[bold]Usage (last {stats.count} paid cycles)[/bold]")
            console.print(f"  Average: {format_currency(stats.average, currency)}")
            console.print(f"  Range:   {format_currency(stats.min, currency)} .. {format_currency(stats.max, currency)}")
            console.print(f"  Last:    {format_currency(stats.last_amount, currency)}")
            console.print()

        table = Table(title="Cycles")
        table.add_column("ID")
        table.add_column("Start")
        table.add_column("End")
        table.add_column("Budget" if is_bucket else "Expected", justify="right")
        if is_bucket:
            table.add_column("Carryover", justify="right")
        table.add_column("Spent" if is_bucket else "Paid", justify="right")
        table.add_column("Remaining", justify="right")
        table.add_column("Status")
        for cycle_view in reversed(service.get_cycle_views(obligation_id)):
            cycle = cycle_view.cycle
            row = [str(cycle.id), str(cycle.start_date), str(cycle.end_date), format_currency(cycle.amount, currency)]
            if is_bucket:
                row.append(format_currency(cycle.carryover, currency))
            row += [
                format_currency(cycle.total, currency),
                format_currency(cycle_view.remaining, currency),
                _status_label(cycle_view),
            ]
            table.add_row(*row)
        console.print(table)


def update_command(
    obligation_id: int = typer.Argument(..., help="Obligation ID"),
    name: str = typer.Option(None, "--name", help="New name"),
    amount: str = typer.Option(None, "--amount", "-a", help="New amount/budget (current and future cycles)"),
    carryover: bool = typer.Option(None, "--carryover/--no-carryover", help="Toggle carryover (buckets)"),
    autopay: bool = typer.Option(None, "--autopay/--no-autopay", help="Toggle autopay (bills)"),
    variable_amount: bool = typer.Option(
        None, "--variable-amount/--no-variable-amount", help="Toggle variable amount (bills)"
    ),
    notes: str = typer.Option(None, "--notes", help="Replace notes"),
    db: Path = typer.Option(None, "--db", help=DB_OPTION_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Update an obligation. Past cycles keep their amounts."""
    patch: dict = {}
    if name is not None:
        patch["name"] = name
    if amount is not None:
        patch["amount"] = parse_amount(amount)
    if carryover is not None:
        patch["carryover_enabled"] = carryover
    if autopay is not None:
        patch["is_autopay"] = autopay
    if variable_amount is not None:
        patch["is_variable_amount"] = variable_amount
    if notes is not None:
        patch["notes"] = notes

    if not patch:
        console.print("[yellow]Nothing to update[/yellow]")
        raise typer.Exit(0)

    with open_service(db, verbose) as (service, config):
        obligation = service.update_obligation(obligation_id, patch)
        console.print(f"[green]Updated[/green] #{obligation.id} {obligation.name}")


def delete_command(
    obligation_id: int = typer.Argument(..., help="Obligation ID"),
    confirm: bool = typer.Option(False, "--confirm", "-y", help="Confirm deletion (required)"),
    db: Path = typer.Option(None, "--db", help=DB_OPTION_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Delete an obligation.

    Buckets are archived. Bills are removed together with their cycles
    and payments. Requires --confirm flag to execute.
    """
    with open_service(db, verbose) as (service, config):
        obligation = service.get_obligation(obligation_id)
        if not confirm:
            console.print(f"[yellow]This will delete {obligation.name!r}[/yellow]")
            console.print("Run with [bold]--confirm[/bold] to proceed")
            raise typer.Exit(0)
        service.delete_obligation(obligation_id)
        console.print(f"[green]Deleted[/green] #{obligation.id} {obligation.name}")
