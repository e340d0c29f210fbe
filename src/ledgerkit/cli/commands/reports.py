"""Financial report commands."""

from datetime import date
from decimal import Decimal

import click

from ledgerkit.cli.book import get_book
from ledgerkit.cli.date_filters import parse_cli_date, period_options, resolve_cli_date_range
from ledgerkit.cli.error_handling import handle_build_error, handle_domain_error
from ledgerkit.cli.formatting import amount_row, heading, money, rule
from ledgerkit.domain.errors import DomainError, JournalBuildError
from ledgerkit.domain.reports import (
    StatementSection,
    generate_all_general_ledgers,
    generate_balance_sheet,
    generate_general_ledger,
    generate_profit_and_loss,
    generate_trial_balance,
)
from ledgerkit.utils.account_resolver import resolve_account


def load_ledger(ctx):
    """Return the book's chart and its full list of journal entries."""
    book = get_book(ctx)
    try:
        return book.chart, book.ledger()
    except JournalBuildError as e:
        handle_build_error(ctx, e)
    except DomainError as e:
        handle_domain_error(ctx, e)


def _section(title: str, section: StatementSection, total_label: str) -> None:
    click.echo(title)
    for line in section.items:
        indent = 4 if line.account.is_sub_account else 2
        amount_row(f"{line.account.code} {line.account.name}", line.balance, indent)
    amount_row(total_label, section.total)


@click.command("trial-balance")
@click.option("--as-of", help="Report date (YYYY-MM-DD or relative like 'today')")
@click.option("--include-zero", is_flag=True, help="Include accounts without activity")
@click.pass_context
def trial_balance(ctx, as_of: str | None, include_zero: bool):
    """Show the trial balance.

    Examples:
        ledgerkit --book book.json trial-balance --as-of 2026-02-28
    """
    chart, entries = load_ledger(ctx)
    as_of_date = parse_cli_date(ctx, as_of, "as-of date")
    try:
        tb = generate_trial_balance(
            chart, entries, as_of_date=as_of_date, include_zero_balances=include_zero
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    heading("Trial Balance", f"As of {tb.report_date.isoformat()} ({tb.currency})")
    click.echo(f"{'Account':<46} {'Debit':>16} {'Credit':>16}")
    rule()
    for line in tb.accounts:
        label = f"{line.account.code} {line.account.name}"[:46]
        debit = money(line.debit_balance) if line.debit_balance else ""
        credit = money(line.credit_balance) if line.credit_balance else ""
        click.echo(f"{label:<46} {debit:>16} {credit:>16}")
    rule()
    click.echo(
        f"{'Total':<46} {money(tb.totals.total_debit):>16} {money(tb.totals.total_credit):>16}"
    )
    click.echo("Balanced" if tb.totals.is_balanced else "NOT BALANCED")


@click.command("balance-sheet")
@click.option("--as-of", help="Report date (YYYY-MM-DD or relative like 'today')")
@click.option("--fiscal-year-start", help="First day of the fiscal year; earlier earnings are retained")
@click.pass_context
def balance_sheet(ctx, as_of: str | None, fiscal_year_start: str | None):
    """Show the balance sheet.

    Examples:
        ledgerkit --book book.json balance-sheet --as-of 2026-02-28
        ledgerkit --book book.json balance-sheet --fiscal-year-start 2026-01-01
    """
    chart, entries = load_ledger(ctx)
    as_of_date = parse_cli_date(ctx, as_of, "as-of date")
    fy_start = parse_cli_date(ctx, fiscal_year_start, "fiscal year start")
    try:
        bs = generate_balance_sheet(
            chart, entries, as_of_date=as_of_date, fiscal_year_start=fy_start
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    heading("Balance Sheet", f"As of {bs.report_date.isoformat()} ({bs.currency})")
    click.echo("Assets")
    _section("  Current assets", bs.current_assets, "  Total current assets")
    _section("  Non-current assets", bs.non_current_assets, "  Total non-current assets")
    rule()
    amount_row("Total assets", bs.total_assets)
    click.echo()
    click.echo("Liabilities")
    _section("  Current liabilities", bs.current_liabilities, "  Total current liabilities")
    _section(
        "  Non-current liabilities",
        bs.non_current_liabilities,
        "  Total non-current liabilities",
    )
    rule()
    amount_row("Total liabilities", bs.total_liabilities)
    click.echo()
    _section("Equity", bs.equity, "  Total equity accounts")
    amount_row("Retained earnings", bs.retained_earnings, 2)
    amount_row("Current period net income", bs.current_period_net_income, 2)
    rule()
    amount_row("Total equity", bs.total_equity)
    amount_row("Total liabilities and equity", bs.total_liabilities_and_equity)
    rule("=")
    click.echo("Balanced" if bs.is_balanced else "NOT BALANCED")


@click.command("profit-loss")
@click.option("--start-date", help="Start date (YYYY-MM-DD or relative like 'last month', 'this year')")
@click.option("--end-date", help="End date (YYYY-MM-DD or relative like 'today')")
@period_options
@click.option(
    "--income-tax-rate",
    type=click.FloatRange(0, 1),
    help="Apply a flat income tax rate instead of booked tax expense",
)
@click.pass_context
def profit_loss(ctx, start_date, end_date, income_tax_rate, **periods):
    """Show the profit and loss statement.

    Defaults to the current month.

    Examples:
        ledgerkit --book book.json profit-loss --start-date 2026-02-01 --end-date 2026-02-28
        ledgerkit --book book.json profit-loss --last-quarter --income-tax-rate 0.25
    """
    start, end = resolve_cli_date_range(
        ctx,
        start_date=start_date,
        end_date=end_date,
        period_flags=periods,
    )
    today = date.today()
    start = start or today.replace(day=1)
    end = end or today
    if income_tax_rate is None:
        rate = ctx.find_root().obj["report_settings"].income_tax_rate
    else:
        rate = Decimal(str(income_tax_rate))

    chart, entries = load_ledger(ctx)
    try:
        pl = generate_profit_and_loss(chart, entries, start, end, income_tax_rate=rate)
    except DomainError as e:
        handle_domain_error(ctx, e)

    heading(
        "Profit and Loss",
        f"{pl.start_date.isoformat()} to {pl.end_date.isoformat()} ({pl.currency})",
    )
    _section("Revenue", pl.revenue, "  Total revenue")
    _section("Cost of goods sold", pl.cost_of_goods_sold, "  Total cost of goods sold")
    rule()
    amount_row("Gross profit", pl.gross_profit)
    click.echo()
    _section("Operating expenses", pl.operating_expenses, "  Total operating expenses")
    rule()
    amount_row("Operating income", pl.operating_income)
    click.echo()
    _section("Other income", pl.other_income, "  Total other income")
    _section("Other expenses", pl.other_expenses, "  Total other expenses")
    rule()
    amount_row("Income before tax", pl.income_before_tax)
    amount_row("Income tax", pl.income_tax)
    rule("=")
    amount_row("Net income", pl.net_income)


def _print_ledger(ledger) -> None:
    account = ledger.account
    click.echo(f"\n{account.code} {account.name} ({account.normal_balance.value} balance)")
    rule()
    click.echo(f"{'Date':<10}  {'Entry':<10} {'Description':<22} {'Debit':>11} {'Credit':>11} {'Balance':>11}")
    rule()
    click.echo(f"{'':<10}  {'':<10} {'Opening balance':<22} {'':>11} {'':>11} {money(ledger.opening_balance):>11}")
    for posting in ledger.postings:
        click.echo(
            f"{posting.date.isoformat():<10}  {posting.entry_number:<10} "
            f"{posting.description[:22]:<22} "
            f"{money(posting.debit) if posting.debit else '':>11} "
            f"{money(posting.credit) if posting.credit else '':>11} "
            f"{money(posting.balance):>11}"
        )
    rule()
    click.echo(
        f"{'':<10}  {'':<10} {'Closing balance':<22} {money(ledger.total_debit):>11} "
        f"{money(ledger.total_credit):>11} {money(ledger.closing_balance):>11}"
    )


@click.command("ledger")
@click.argument("account", metavar="ACCOUNT", required=False)
@click.option("--start-date", help="Start date (YYYY-MM-DD or relative like 'last month')")
@click.option("--end-date", help="End date (YYYY-MM-DD or relative like 'today')")
@period_options
@click.pass_context
def ledger(ctx, account: str | None, start_date, end_date, **periods):
    """Show general ledgers.

    ACCOUNT can be an account id, code or name. Without it, every account
    with postings in the range is shown.

    Examples:
        ledgerkit --book book.json ledger 1002 --this-month
        ledgerkit --book book.json ledger "Rent Expense"
    """
    start, end = resolve_cli_date_range(
        ctx,
        start_date=start_date,
        end_date=end_date,
        period_flags=periods,
    )
    chart, entries = load_ledger(ctx)
    try:
        if account:
            target = resolve_account(chart, account)
            ledgers = [generate_general_ledger(chart, entries, target.id, start, end)]
        else:
            ledgers = generate_all_general_ledgers(chart, entries, start, end)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not ledgers:
        click.echo("No postings found.")
        return
    for item in ledgers:
        _print_ledger(item)


def register_commands(cli):
    """Register report commands with main CLI."""
    cli.add_command(trial_balance)
    cli.add_command(balance_sheet)
    cli.add_command(profit_loss)
    cli.add_command(ledger)
