"""Shared CLI helpers: service construction and formatting."""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

import typer
from rich.console import Console

from duecycle.core.config import AppConfig, load_config
from duecycle.core.exceptions import DuecycleError
from duecycle.core.log import configure_logging
from duecycle.engine.service import ObligationService
from duecycle.storage.sqlite import SQLiteStorage

console = Console()

DB_OPTION_HELP = "Path to database (default: from duecycle.json or .duecycle/duecycle.db)"


@contextmanager
def open_service(
    db: Path | None = None,
    verbose: bool = False,
    config_path: Path | None = None,
) -> Iterator[tuple[ObligationService, AppConfig]]:
    """Build the store and service for one CLI invocation.

    DuecycleError raised inside the block is printed and turned into
    exit code 1.
    """
    try:
        config = load_config(config_path)
    except DuecycleError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    configure_logging("DEBUG" if verbose else config.log_level)

    try:
        storage = SQLiteStorage(db or config.db_path)
    except DuecycleError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    service = ObligationService(storage, usage_stats_window=config.usage_stats_window)
    try:
        yield service, config
    except DuecycleError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    finally:
        storage.close()


def parse_amount(value: str) -> Decimal:
    """Parse a user-supplied amount such as "1,200.50" or "$45"."""
    cleaned = value.strip().replace(",", "").replace("$", "")
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        raise typer.BadParameter(f"Not a valid amount: {value!r}")
    if not amount.is_finite():
        raise typer.BadParameter(f"Not a valid amount: {value!r}")
    return amount


def to_date(value: datetime | None, default: date | None = None) -> date | None:
    if value is None:
        return default
    return value.date()


def format_currency(amount: Decimal, currency: str) -> str:
    """Format an amount with thousands separators and currency code."""
    return f"{amount:,.2f} {currency}"


def format_percentage(value: Decimal) -> str:
    return f"{value:.1f}%"
