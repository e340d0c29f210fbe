"""CLI error handling helpers."""

import click

from ledgerkit.domain.errors import DomainError, JournalBuildError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def handle_build_error(ctx: click.Context, error: JournalBuildError) -> None:
    """Render every rejected transaction and exit with failure."""
    click.echo(
        f"Error: {len(error.rejected)} transaction(s) could not be journalized:",
        err=True,
    )
    for item in error.rejected:
        click.echo(f"  {item.transaction_id}: {item.reason}", err=True)
    ctx.exit(1)
