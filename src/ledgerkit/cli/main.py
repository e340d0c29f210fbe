"""Main CLI entry point."""

import logging

import click

from ledgerkit.config import ReconciliationSettings, ReportSettings
from ledgerkit.domain.errors import DomainError

# Import and register all commands at module level
from ledgerkit.cli.commands import (
    compare,
    import_cmd,
    journal,
    reconcile,
    reports,
)

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool) -> None:
    """Send ledgerkit log records to stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        force=True,
    )


@click.group()
@click.option(
    "--book",
    "book_path",
    type=click.Path(dir_okay=False),
    help="Path to book JSON file (overrides LEDGERKIT_BOOK environment variable)",
    envvar="LEDGERKIT_BOOK",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug messages to stderr")
@click.pass_context
def cli(ctx, book_path: str | None, verbose: bool):
    """Ledgerkit - double-entry accounting reports and bank reconciliation.

    Builds journal entries from business transactions, generates trial
    balance, balance sheet, profit & loss and general ledger reports, compares
    periods, and reconciles bank statements against the books.
    """
    ctx.ensure_object(dict)
    configure_logging(verbose)
    try:
        ctx.obj["report_settings"] = ReportSettings.from_env()
        ctx.obj["reconciliation_settings"] = ReconciliationSettings.from_env()
    except DomainError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
    ctx.obj["book_path"] = book_path


# Register all commands
journal.register_commands(cli)
reports.register_commands(cli)
compare.register_commands(cli)
reconcile.register_commands(cli)
import_cmd.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
