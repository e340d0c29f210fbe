"""Bank statement import commands."""

import json
from decimal import Decimal

import click

from ledgerkit.cli.date_filters import parse_cli_date
from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.cli.formatting import amount_row, heading, money, rule
from ledgerkit.domain.bank_import import import_bank_statement_csv
from ledgerkit.domain.errors import DomainError


def statement_to_dict(statement) -> dict:
    """Serialize a statement in the book file layout."""
    return {
        "id": statement.id,
        "bank_account_id": statement.bank_account_id,
        "statement_number": statement.statement_number,
        "statement_date": statement.statement_date.isoformat(),
        "opening_balance": str(statement.opening_balance),
        "closing_balance": str(statement.closing_balance),
        "transactions": [
            {
                "id": t.id,
                "date": t.date.isoformat(),
                "description": t.description,
                "amount": str(t.amount),
                "type": t.type.value,
                "reference": t.reference,
            }
            for t in statement.transactions
        ],
    }


@click.command("import-statement")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--bank-account", required=True, help="Bank account id the statement belongs to")
@click.option("--statement-number", help="Statement number")
@click.option("--statement-date", help="Statement date (defaults to the latest transaction date)")
@click.option("--opening-balance", type=float, default=0.0, show_default=True, help="Opening balance")
@click.option("--closing-balance", type=float, help="Stated closing balance")
@click.option("--output", "-o", type=click.Path(dir_okay=False, writable=True), help="Write the statement as JSON")
@click.pass_context
def import_statement(
    ctx,
    csv_file: str,
    bank_account: str,
    statement_number: str | None,
    statement_date: str | None,
    opening_balance: float,
    closing_balance: float | None,
    output: str | None,
):
    """Import a bank statement from a CSV file.

    The file needs a date column and either an amount column (negative for
    money out) or separate debit and credit columns.

    Examples:
        ledgerkit import-statement feb.csv --bank-account 1002 --opening-balance 5000
        ledgerkit import-statement feb.csv --bank-account 1002 -o feb.json
    """
    stmt_date = parse_cli_date(ctx, statement_date, "statement date")
    try:
        result = import_bank_statement_csv(
            csv_file,
            bank_account_id=bank_account,
            statement_number=statement_number,
            statement_date=stmt_date,
            opening_balance=Decimal(str(opening_balance)),
            closing_balance=None if closing_balance is None else Decimal(str(closing_balance)),
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    statement = result.statement
    heading(
        f"Statement {statement.statement_number}",
        f"{statement.bank_account_id}, {statement.statement_date.isoformat()}",
    )
    for txn in statement.transactions:
        click.echo(
            f"{txn.date.isoformat():<10}  {txn.description[:40]:<40} {money(txn.signed_amount):>16}"
        )
    rule()
    amount_row("Opening balance", statement.opening_balance)
    amount_row("Credits", statement.total_credits)
    amount_row("Debits", statement.total_debits)
    amount_row("Closing balance", statement.closing_balance)
    click.echo(f"\nImported {result.imported} transaction(s), skipped {result.skipped} duplicate(s)")

    if output:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(statement_to_dict(statement), f, indent=2)
        click.echo(f"Wrote statement to {output}")

    if result.errors:
        click.echo(f"\nErrors ({len(result.errors)}):", err=True)
        for error in result.errors:
            click.echo(f"  {error}", err=True)


def register_commands(cli):
    """Register import commands with main CLI."""
    cli.add_command(import_statement)
