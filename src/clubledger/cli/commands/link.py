"""Manual linking and reconciliation status commands."""

import click
from clubledger.cli.error_handling import handle_domain_error
from clubledger.domain.entities import EntityType
from clubledger.domain.errors import DomainError
from clubledger.domain.links import LinkService

ENTITY_TYPES = [entity_type.value for entity_type in EntityType]


@click.command("link")
@click.argument("transaction_id", type=int)
@click.argument("entity_type", type=click.Choice(ENTITY_TYPES))
@click.argument("entity_id")
@click.option("--notes", help="Why this transaction belongs to the entity")
@click.pass_context
def link_transaction(ctx, transaction_id: int, entity_type: str, entity_id: str, notes: str | None):
    """Link a transaction to an event, expense claim or registration.

    Linking an expense claim marks it reimbursed; linking a registration
    marks it paid.

    Examples:
        clubledger link 12 expense exp-7
    """
    db = ctx.obj["db"]
    service = LinkService(db)
    try:
        service.link(transaction_id, EntityType(entity_type), entity_id, notes=notes)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Linked transaction {transaction_id} to {entity_type} '{entity_id}'")


@click.command("unlink")
@click.argument("transaction_id", type=int)
@click.argument("entity_id")
@click.option("--type", "entity_type", type=click.Choice(ENTITY_TYPES), help="Only unlink this entity type")
@click.pass_context
def unlink_transaction(ctx, transaction_id: int, entity_id: str, entity_type: str | None):
    """Remove a link from a transaction.

    An unlinked expense claim goes back from reimbursed to approved.
    """
    db = ctx.obj["db"]
    service = LinkService(db)
    try:
        removal = service.unlink(
            transaction_id, entity_id, EntityType(entity_type) if entity_type else None
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Unlinked transaction {transaction_id} from '{entity_id}'")
    for instruction in removal.instructions:
        click.echo(
            f"  {instruction.entity_type.value} '{instruction.entity_id}': "
            f"{instruction.from_status} -> {instruction.to_status}"
        )
    click.echo(f"  Status: {removal.transaction.reconciliation_status.value}")


@click.command("status")
@click.argument("transaction_id", type=int)
@click.pass_context
def cycle_transaction_status(ctx, transaction_id: int):
    """Advance the manual status of an unlinked transaction.

    Cycles unverified -> not_found -> reconciled -> unverified.
    """
    db = ctx.obj["db"]
    service = LinkService(db)
    try:
        updated = service.cycle_status(transaction_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Transaction {transaction_id} is now {updated.reconciliation_status.value}")


def register_commands(cli):
    """Register link commands with main CLI."""
    cli.add_command(link_transaction)
    cli.add_command(unlink_transaction)
    cli.add_command(cycle_transaction_status)
