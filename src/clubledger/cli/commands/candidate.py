"""Candidate entity commands (events, expense claims, registrations)."""

import click
from clubledger.cli.error_handling import handle_domain_error
from clubledger.domain.entities import EntityType
from clubledger.domain.links import EXPENSE_APPROVED, REGISTRATION_UNPAID
from clubledger.utils.amount_parser import parse_amount
from clubledger.utils.date_parser import parse_date

ENTITY_TYPES = [entity_type.value for entity_type in EntityType]

DEFAULT_STATUS = {
    EntityType.EXPENSE: EXPENSE_APPROVED,
    EntityType.REGISTRATION: REGISTRATION_UNPAID,
}


@click.group()
def candidate_group():
    """Manage events, expense claims and registrations to match against."""
    pass


@candidate_group.command("add")
@click.argument("entity_type", type=click.Choice(ENTITY_TYPES))
@click.argument("entity_id")
@click.option("--name", required=True, help="Display name (event title, claim label, member)")
@click.option("--amount", required=True, help="Expected amount (e.g., 145.00 or 145,00)")
@click.option("--date", "expected_date", help="Expected date (YYYY-MM-DD)")
@click.option("--end-date", help="Last day of the event, for multi-day events")
@click.option("--description", default="", help="Free-text description")
@click.option("--counterpart", default="", help="Organizer, claimant or member name")
@click.option("--cash", is_flag=True, help="Payment is expected in cash")
@click.option("--status", help="Initial status (default: approved for expenses, unpaid for registrations)")
@click.pass_context
def add_candidate(
    ctx,
    entity_type: str,
    entity_id: str,
    name: str,
    amount: str,
    expected_date: str | None,
    end_date: str | None,
    description: str,
    counterpart: str,
    cash: bool,
    status: str | None,
):
    """Register an entity that bank transactions can be matched to.

    Examples:
        clubledger candidate add event ev-2025-07 --name "Summer BBQ" --amount 145 --date 2025-07-12
        clubledger candidate add expense exp-12 --name "Boat fuel" --amount 80 --counterpart "Jean Dupont"
    """
    db = ctx.obj["db"]
    kind = EntityType(entity_type)

    try:
        expected_amount = parse_amount(amount, decimal_separator=",")
        start = parse_date(expected_date) if expected_date else None
        end = parse_date(end_date) if end_date else None
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    if start is not None and end is not None and end < start:
        click.echo("Error: End date is before the start date", err=True)
        ctx.exit(1)

    try:
        db.create_candidate(
            entity_type=kind,
            entity_id=entity_id,
            name=name,
            expected_amount=expected_amount,
            expected_date=start,
            date_end=end,
            description=description,
            counterpart_name=counterpart,
            cash_expected=cash,
            status=status or DEFAULT_STATUS.get(kind),
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Created {kind.value} '{entity_id}': {name} ({expected_amount:,.2f})")


@candidate_group.command("list")
@click.option("--type", "entity_type", type=click.Choice(ENTITY_TYPES), help="Only this entity type")
@click.pass_context
def list_candidates(ctx, entity_type: str | None):
    """List registered entities."""
    db = ctx.obj["db"]
    candidates = db.fetch_candidates(EntityType(entity_type) if entity_type else None)

    if not candidates:
        click.echo("No candidates found.")
        return

    click.echo(f"\nFound {len(candidates)} candidate(s):")
    click.echo("-" * 100)
    click.echo(f"{'Type':<14} {'ID':<16} {'Amount':>10}  {'Date':<12} {'Status':<12} {'Name':<30}")
    click.echo("-" * 100)
    for c in candidates:
        date_str = str(c.expected_date) if c.expected_date else ""
        status = c.status or ""
        if c.cash_expected:
            status = f"{status} (cash)".strip()
        click.echo(
            f"{c.entity_type.value:<14} {c.id:<16} {c.expected_amount:>10,.2f}  {date_str:<12} "
            f"{status:<12} {c.name[:30]:<30}"
        )


def register_commands(cli: click.Group) -> None:
    """Register candidate commands with main CLI."""
    cli.add_command(candidate_group, name="candidate")
