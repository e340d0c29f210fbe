"""Bank reconciliation commands."""

from decimal import Decimal

import click

from ledgerkit.cli.book import get_book
from ledgerkit.cli.commands.reports import load_ledger
from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.cli.formatting import amount_row, heading, money, rule
from ledgerkit.config import ReconciliationSettings
from ledgerkit.domain.errors import DomainError
from ledgerkit.domain.reconciliation import (
    BankReconciliationService,
    MatchStatus,
    candidates_from_invoices,
    candidates_from_journal_entries,
)


@click.command("reconcile")
@click.argument("bank_account_id", metavar="BANK_ACCOUNT_ID")
@click.option(
    "--cash-account",
    "cash_accounts",
    multiple=True,
    help="Ledger account(s) mirroring the bank account (defaults to BANK_ACCOUNT_ID)",
)
@click.option(
    "--date-window-days",
    type=click.IntRange(min=0),
    envvar="LEDGERKIT_RECON_DATE_WINDOW_DAYS",
    help="Days a ledger date may differ from the bank date",
)
@click.option(
    "--amount-tolerance",
    type=click.FloatRange(min=0),
    envvar="LEDGERKIT_RECON_AMOUNT_TOLERANCE",
    help="Amount difference accepted for low confidence matches",
)
@click.option("--no-invoices", is_flag=True, help="Do not match against invoices")
@click.pass_context
def reconcile(
    ctx,
    bank_account_id: str,
    cash_accounts: tuple[str, ...],
    date_window_days: int | None,
    amount_tolerance: float | None,
    no_invoices: bool,
):
    """Reconcile bank statements against the books.

    Examples:
        ledgerkit --book book.json reconcile 1002
        ledgerkit --book book.json reconcile 1002 --date-window-days 5 --no-invoices
    """
    book = get_book(ctx)
    chart, entries = load_ledger(ctx)
    defaults = ctx.find_root().obj["reconciliation_settings"]
    try:
        settings = ReconciliationSettings(
            date_window_days=(
                defaults.date_window_days if date_window_days is None else date_window_days
            ),
            amount_tolerance=(
                defaults.amount_tolerance
                if amount_tolerance is None
                else Decimal(str(amount_tolerance))
            ),
        )
        cash_refs = set(cash_accounts or (bank_account_id,))
        for ref in list(cash_refs):
            account = chart.get(ref) or chart.find_by_code(ref)
            if account is not None:
                cash_refs.update({account.id, account.code})
        candidates = candidates_from_journal_entries(entries, cash_refs)
        if not no_invoices:
            candidates += candidates_from_invoices(book.invoices)
        report = BankReconciliationService(settings).reconcile(
            bank_account_id, book.bank_statements, candidates
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    heading(
        f"Bank Reconciliation - {bank_account_id}",
        f"Date window {settings.date_window_days} day(s), "
        f"amount tolerance {settings.amount_tolerance}",
    )
    click.echo("Statements")
    for summary in report.statements:
        status = "ok" if summary.is_balanced else f"off by {money(summary.difference)}"
        click.echo(
            f"  {summary.statement_number:<14} {summary.statement_date.isoformat()} "
            f"opening {money(summary.opening_balance):>12} closing {money(summary.closing_balance):>12} "
            f"({status})"
        )
    rule()

    click.echo(f"Matched ({report.matched_count})")
    for match in report.matches:
        if match.status != MatchStatus.MATCHED:
            continue
        txn = match.bank_transaction
        click.echo(
            f"  {txn.date.isoformat()} {txn.description[:26]:<26} {money(txn.signed_amount):>12} "
            f"-> {match.candidate.id} [{match.confidence.value}]"
        )
    if report.ambiguous_matches:
        click.echo(f"\nAmbiguous ({len(report.ambiguous_matches)})")
        for match in report.ambiguous_matches:
            txn = match.bank_transaction
            options = ", ".join(a.candidate.id for a in match.alternatives)
            click.echo(
                f"  {txn.id} {txn.date.isoformat()} {money(txn.signed_amount):>12}: {options}"
            )
    ambiguous_ids = {m.bank_transaction.id for m in report.ambiguous_matches}
    unmatched = [t for t in report.unmatched_transactions if t.id not in ambiguous_ids]
    if unmatched:
        click.echo(f"\nUnmatched bank transactions ({len(unmatched)})")
        for txn in unmatched:
            click.echo(
                f"  {txn.id} {txn.date.isoformat()} {txn.description[:30]:<30} {money(txn.signed_amount):>12}"
            )
    if report.unmatched_candidates:
        click.echo(f"\nUnmatched ledger items ({len(report.unmatched_candidates)})")
        for candidate in report.unmatched_candidates:
            click.echo(
                f"  {candidate.id} {candidate.date.isoformat()} {candidate.description[:30]:<30} "
                f"{money(candidate.amount):>12}"
            )
    rule()
    amount_row("Opening balance", report.opening_balance)
    amount_row("Matched amount", report.matched_amount)
    amount_row("Closing balance", report.closing_balance)
    amount_row("Discrepancy", report.discrepancy)
    click.echo("Reconciled" if report.is_reconciled else "NOT RECONCILED")


def register_commands(cli):
    """Register reconciliation commands with main CLI."""
    cli.add_command(reconcile)
