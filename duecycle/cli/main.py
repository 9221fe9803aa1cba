"""DueCycle command line interface."""

import typer

from duecycle.cli.ledger import entry_app, mark_paid_command, pay_command
from duecycle.cli.obligations import (
    bill_app,
    bucket_app,
    delete_command,
    list_command,
    show_command,
    update_command,
)

app = typer.Typer(
    name="duecycle",
    help="Track bills and budget buckets cycle by cycle.",
    no_args_is_help=True,
)

app.add_typer(bill_app, name="bill")
app.add_typer(bucket_app, name="bucket")
app.add_typer(entry_app, name="entry")

app.command(name="list")(list_command)
app.command(name="show")(show_command)
app.command(name="update")(update_command)
app.command(name="delete")(delete_command)
app.command(name="pay")(pay_command)
app.command(name="mark-paid")(mark_paid_command)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
