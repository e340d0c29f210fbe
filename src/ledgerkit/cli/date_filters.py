"""CLI helpers for date range resolution."""

from datetime import date

import click

from ledgerkit.utils.date_parser import PERIODS, get_date_range, parse_date


def period_options(func):
    """Add one --<period> flag per supported period."""
    for period in reversed(PERIODS):
        label = period.replace("-", " ")
        func = click.option(
            f"--{period}", is_flag=True, help=f"Restrict to {label}"
        )(func)
    return func


def parse_cli_date(ctx, value: str | None, label: str) -> date | None:
    """Parse an optional date option, exiting with an error if it is invalid."""
    if not value:
        return None
    try:
        return parse_date(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)


def resolve_cli_date_range(
    ctx,
    *,
    start_date: str | None,
    end_date: str | None,
    period_flags: dict[str, bool],
    default_range: tuple[date, date] | None = None,
) -> tuple[date | None, date | None]:
    """Resolve CLI date range from period flags or explicit dates."""
    period_count = sum(1 for is_set in period_flags.values() if is_set)
    flags = ", ".join(f"--{p}" for p in PERIODS)

    if period_count > 1:
        click.echo(
            f"Error: Only one period option ({flags}) can be specified at a time.",
            err=True,
        )
        ctx.exit(1)

    if period_count > 0 and (start_date or end_date):
        click.echo(
            "Error: Period options (--this-month, --last-year, etc.) cannot be combined with --start-date or --end-date.",
            err=True,
        )
        ctx.exit(1)

    start = None
    end = None

    if period_count == 1:
        for period, is_set in period_flags.items():
            if is_set:
                start, end = get_date_range(period)
                break
    else:
        start = parse_cli_date(ctx, start_date, "start date")
        end = parse_cli_date(ctx, end_date, "end date")

        if start is None and end is None and default_range is not None:
            start, end = default_range

    return start, end
