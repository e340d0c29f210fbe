"""Journal entry commands."""

import click

from ledgerkit.cli.book import get_book
from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.cli.formatting import money, rule
from ledgerkit.domain.errors import DomainError
from ledgerkit.domain.journal import JournalEntryBuilder, validate_ledger


@click.command("journal")
@click.option("--cash-account", default="1002", show_default=True, help="Account receiving and paying cash")
@click.option("--verbose", "-v", is_flag=True, help="Show every line of each entry")
@click.pass_context
def journal(ctx, cash_account: str, verbose: bool):
    """Build journal entries from the book's transactions.

    Manual entries from the book are listed first. Transactions that cannot
    be journalized are reported and make the command fail.

    Examples:
        ledgerkit --book book.json journal
        ledgerkit --book book.json journal --cash-account 1001 -v
    """
    book = get_book(ctx)
    try:
        builder = JournalEntryBuilder(
            book.chart,
            cash_account=cash_account,
            first_number=len(book.journal_entries) + 1,
        )
        result = builder.build(book.transactions)
        entries = [*book.journal_entries, *result.entries]
        total_debit, total_credit = validate_ledger(entries)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not entries:
        click.echo("No journal entries.")
    else:
        click.echo(f"\nJournal ({len(entries)} entries):")
        rule("=")
        click.echo(f"{'Number':<10} {'Date':<10}  {'Status':<8} {'Description':<30} {'Amount':>17}")
        rule()
        for entry in entries:
            click.echo(
                f"{entry.entry_number:<10} {entry.date.isoformat():<10}  "
                f"{entry.status.value:<8} {entry.description[:30]:<30} "
                f"{money(entry.total_debit):>17}"
            )
            if verbose:
                for line in entry.lines:
                    click.echo(
                        f"{'':<12}{line.account_code:<6} {line.account_name[:30]:<30} "
                        f"{money(line.debit) if line.is_debit else '':>14} "
                        f"{'' if line.is_debit else money(line.credit):>14}"
                    )
        rule()
        click.echo(f"{'Total debit':<60} {money(total_debit):>19}")
        click.echo(f"{'Total credit':<60} {money(total_credit):>19}")

    if result.skipped:
        click.echo(f"\nSkipped {len(result.skipped)} cancelled transaction(s): {', '.join(result.skipped)}")
    if result.rejected:
        click.echo(f"\nRejected {len(result.rejected)} transaction(s):", err=True)
        for item in result.rejected:
            click.echo(f"  {item.transaction_id}: {item.reason}", err=True)
        ctx.exit(1)


def register_commands(cli):
    """Register journal commands with main CLI."""
    cli.add_command(journal)
