"""Plain-text rendering helpers shared by CLI commands."""

from decimal import Decimal
from typing import Optional

import click

WIDTH = 80


def money(value: Optional[Decimal]) -> str:
    """Format an amount with thousands separators."""
    if value is None:
        return ""
    return f"{value:,.2f}"


def percent(value: Optional[Decimal]) -> str:
    """Format a percentage; undefined percentages render as n/a."""
    if value is None:
        return "n/a"
    return f"{value:,.2f}%"


def heading(title: str, subtitle: str = "") -> None:
    click.echo(f"\n{title}")
    if subtitle:
        click.echo(subtitle)
    click.echo("=" * WIDTH)


def rule(char: str = "-") -> None:
    click.echo(char * WIDTH)


def amount_row(label: str, amount: Optional[Decimal], indent: int = 0) -> None:
    label = " " * indent + label
    click.echo(f"{label:<58} {money(amount):>21}")
