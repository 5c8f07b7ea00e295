"""Transaction split commands."""

import click
from clubledger.cli.error_handling import handle_domain_error
from clubledger.domain.entities import SplitLine
from clubledger.domain.errors import DomainError
from clubledger.domain.splitting import SplitResult, SplitService
from clubledger.utils.amount_parser import parse_amount


def parse_split_line(value: str) -> SplitLine:
    """Parse "description:amount[:category[:account_code]]".

    The description may itself contain colons: the amount is the first
    field, after the first one, that parses as an amount and is followed
    by at most two more fields.

    Raises:
        ValueError: If the line is malformed
    """
    parts = value.split(":")
    for position in range(max(1, len(parts) - 3), len(parts)):
        try:
            amount = parse_amount(parts[position], decimal_separator=",")
        except ValueError:
            continue
        description = ":".join(parts[:position]).strip()
        extra = [part.strip() for part in parts[position + 1 :]]
        return SplitLine(
            description=description,
            amount=amount,
            category_id=extra[0] if len(extra) > 0 and extra[0] else None,
            account_code=extra[1] if len(extra) > 1 and extra[1] else None,
        )
    raise ValueError(
        f"Invalid split line '{value}'. Expected description:amount[:category[:account_code]]"
    )


def _echo_result(result: SplitResult) -> None:
    if result.deleted_ids:
        click.echo(f"  Deleted child transaction(s): {', '.join(str(i) for i in result.deleted_ids)}")
    if not result.children:
        click.echo(f"Transaction {result.parent.id} is standalone")
        return
    click.echo(f"Transaction {result.parent.id} split into {len(result.children)} lines:")
    for child in result.children:
        click.echo(f"  {child.id:<6} {child.amount:>10,.2f}  {child.counterparty_name}")


@click.command("split")
@click.argument("transaction_id", type=int)
@click.option(
    "--line",
    "lines",
    multiple=True,
    help='Split line "description:amount[:category[:account_code]]" (repeatable)',
)
@click.option("--confirm", is_flag=True, help="Allow deleting linked or reconciled child lines")
@click.pass_context
def split_transaction(ctx, transaction_id: int, lines: tuple[str, ...], confirm: bool):
    """Split a transaction into child lines, or merge it back.

    Amounts are magnitudes and must add up to the transaction amount.
    Passing fewer than two lines merges the transaction back.

    Examples:
        clubledger split 42 --line "BBQ Dupont:45" --line "BBQ Martin:45" --line "BBQ Leroy:60"
        clubledger split 42 --confirm
    """
    db = ctx.obj["db"]
    service = SplitService(db)

    try:
        split_lines = [parse_split_line(line) for line in lines]
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    try:
        result = service.commit_split(transaction_id, split_lines, confirm=confirm)
    except DomainError as e:
        handle_domain_error(ctx, e)

    _echo_result(result)


@click.command("delete-child")
@click.argument("child_id", type=int)
@click.option("--confirm", is_flag=True, help="Allow deleting linked or reconciled child lines")
@click.pass_context
def delete_child(ctx, child_id: int, confirm: bool):
    """Delete one child line of a split transaction.

    When fewer than two lines would remain the split is undone.
    """
    db = ctx.obj["db"]
    service = SplitService(db)
    try:
        result = service.delete_child(child_id, confirm=confirm)
    except DomainError as e:
        handle_domain_error(ctx, e)

    _echo_result(result)


def register_commands(cli):
    """Register split commands with main CLI."""
    cli.add_command(split_transaction)
    cli.add_command(delete_child)
