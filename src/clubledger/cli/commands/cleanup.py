"""Link cleanup command."""

import click
from clubledger.domain.links import LinkService


@click.command("cleanup")
@click.pass_context
def cleanup_links(ctx):
    """Remove links to deleted entities and repair reconciliation statuses."""
    db = ctx.obj["db"]
    stats, repaired = LinkService(db).cleanup()

    click.echo("Cleanup complete:")
    click.echo(f"  Transactions checked: {stats.transactions_checked}")
    click.echo(f"  Orphan links removed: {stats.links_removed}")
    click.echo(f"  Transactions changed: {stats.transactions_changed}")
    click.echo(f"  Statuses repaired: {repaired}")


def register_commands(cli):
    """Register cleanup command with main CLI."""
    cli.add_command(cleanup_links)
