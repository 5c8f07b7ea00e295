"""CLI error handling helpers."""

import click

from clubledger.domain.errors import DomainError, SplitValidationError, UnsafeMergeRejectedError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    if isinstance(error, SplitValidationError):
        click.echo("Error: Split rejected:", err=True)
        for reason in error.reasons:
            click.echo(f"  - {reason}", err=True)
    else:
        click.echo(f"Error: {error}", err=True)
    if isinstance(error, UnsafeMergeRejectedError):
        click.echo("Re-run with --confirm to delete them anyway.", err=True)
    ctx.exit(1)
