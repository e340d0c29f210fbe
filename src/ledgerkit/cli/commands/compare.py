"""Comparative report commands."""

import click

from ledgerkit.cli.commands.reports import load_ledger
from ledgerkit.cli.date_filters import parse_cli_date
from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.cli.formatting import heading, money, percent, rule
from ledgerkit.domain.comparative import (
    ComparisonPeriod,
    ComparisonPreset,
    SectionComparison,
    ValueComparison,
    generate_balance_sheet_comparison,
    generate_profit_and_loss_comparison,
    generate_trial_balance_comparison,
)
from ledgerkit.domain.errors import DomainError


def comparison_options(func):
    """Add preset and explicit range options to a compare command."""
    options = [
        click.option(
            "--preset",
            type=click.Choice([p.value for p in ComparisonPreset]),
            default=ComparisonPreset.MONTH_OVER_MONTH.value,
            show_default=True,
            help="Named comparison period",
        ),
        click.option("--today", help="Reference date for the preset (defaults to today)"),
        click.option("--current-start", help="Start of the current range"),
        click.option("--current-end", help="End of the current range"),
        click.option("--previous-start", help="Start of the previous range"),
        click.option("--previous-end", help="End of the previous range"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def resolve_period(ctx, preset, today, current_start, current_end, previous_start, previous_end):
    """Build a ComparisonPeriod from explicit ranges or a preset."""
    explicit = [current_start, current_end, previous_start, previous_end]
    try:
        if any(explicit):
            if not all(explicit):
                click.echo(
                    "Error: --current-start, --current-end, --previous-start and "
                    "--previous-end must be given together.",
                    err=True,
                )
                ctx.exit(1)
            return ComparisonPeriod.custom(
                parse_cli_date(ctx, current_start, "current start"),
                parse_cli_date(ctx, current_end, "current end"),
                parse_cli_date(ctx, previous_start, "previous start"),
                parse_cli_date(ctx, previous_end, "previous end"),
            )
        return ComparisonPeriod.from_preset(preset, today=parse_cli_date(ctx, today, "today"))
    except DomainError as e:
        handle_domain_error(ctx, e)


def _header(period: ComparisonPeriod) -> None:
    click.echo(
        f"Current {period.current.start} to {period.current.end}, "
        f"previous {period.previous.start} to {period.previous.end}"
    )
    rule()
    click.echo(f"{'':<30} {'Current':>12} {'Previous':>12} {'Change':>12} {'%':>9}")
    rule()


def _row(label: str, value, indent: int = 0) -> None:
    label = (" " * indent + label)[:30]
    click.echo(
        f"{label:<30} {money(value.current_value):>12} {money(value.previous_value):>12} "
        f"{money(value.change):>12} {percent(value.change_percent):>9} "
        f"{value.direction.value}"
    )


def _section(title: str, section: SectionComparison) -> None:
    click.echo(title)
    for item in section.accounts:
        _row(f"{item.account.code} {item.account.name}", item, 2)
    _row("Total", section.total, 2)


def _value(label: str, value: ValueComparison) -> None:
    rule()
    _row(label, value)


@click.group("compare")
def compare_group():
    """Compare reports between two periods."""
    pass


@compare_group.command("trial-balance")
@comparison_options
@click.pass_context
def compare_trial_balance(ctx, preset, today, **ranges):
    """Compare trial balances at the end of each range.

    Examples:
        ledgerkit --book book.json compare trial-balance --preset year-over-year
    """
    period = resolve_period(ctx, preset, today, **ranges)
    chart, entries = load_ledger(ctx)
    try:
        comparison = generate_trial_balance_comparison(chart, entries, period)
    except DomainError as e:
        handle_domain_error(ctx, e)

    heading("Trial Balance Comparison")
    _header(period)
    for item in comparison.accounts:
        _row(f"{item.account.code} {item.account.name}", item)
    _value("Total debit", comparison.total_debit)
    _row("Total credit", comparison.total_credit)


@compare_group.command("balance-sheet")
@comparison_options
@click.option(
    "--fiscal-year-start",
    help="Fiscal year start; only month and day are used (defaults to January 1)",
)
@click.pass_context
def compare_balance_sheet(ctx, preset, today, fiscal_year_start, **ranges):
    """Compare balance sheets at the end of each range.

    Earnings before the fiscal year containing each range end are retained.
    """
    period = resolve_period(ctx, preset, today, **ranges)
    fy_start = parse_cli_date(ctx, fiscal_year_start, "fiscal year start")
    chart, entries = load_ledger(ctx)
    try:
        comparison = generate_balance_sheet_comparison(
            chart, entries, period, fiscal_year_start=fy_start
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    heading("Balance Sheet Comparison")
    _header(period)
    _section("Current assets", comparison.current_assets)
    _section("Non-current assets", comparison.non_current_assets)
    _value("Total assets", comparison.total_assets)
    _section("Current liabilities", comparison.current_liabilities)
    _section("Non-current liabilities", comparison.non_current_liabilities)
    _value("Total liabilities", comparison.total_liabilities)
    _section("Equity", comparison.equity)
    _row("Retained earnings", comparison.retained_earnings, 2)
    _row("Current period net income", comparison.current_period_net_income, 2)
    _value("Total equity", comparison.total_equity)
    _row("Total liabilities and equity", comparison.total_liabilities_and_equity)


@compare_group.command("profit-loss")
@comparison_options
@click.pass_context
def compare_profit_loss(ctx, preset, today, **ranges):
    """Compare profit and loss statements over each range."""
    period = resolve_period(ctx, preset, today, **ranges)
    chart, entries = load_ledger(ctx)
    rate = ctx.find_root().obj["report_settings"].income_tax_rate
    try:
        comparison = generate_profit_and_loss_comparison(
            chart, entries, period, income_tax_rate=rate
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    heading("Profit and Loss Comparison")
    _header(period)
    _section("Revenue", comparison.revenue)
    _section("Cost of goods sold", comparison.cost_of_goods_sold)
    _value("Gross profit", comparison.gross_profit)
    _section("Operating expenses", comparison.operating_expenses)
    _value("Operating income", comparison.operating_income)
    _section("Other income", comparison.other_income)
    _section("Other expenses", comparison.other_expenses)
    _value("Income before tax", comparison.income_before_tax)
    for item in comparison.income_tax_accounts.accounts:
        _row(f"{item.account.code} {item.account.name}", item, 2)
    _row("Income tax", comparison.income_tax)
    _value("Net income", comparison.net_income)


def register_commands(cli):
    """Register compare commands with main CLI."""
    cli.add_command(compare_group, name="compare")
