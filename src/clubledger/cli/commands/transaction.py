"""Transaction ledger commands."""

import click
from clubledger.cli.error_handling import handle_domain_error
from clubledger.domain.dedup import ImportService
from clubledger.domain.links import derived_status
from clubledger.domain.splitting import child_lines
from clubledger.utils.date_parser import parse_date


@click.group()
def transaction_group():
    """View and annotate ledger transactions."""
    pass


@transaction_group.command("list")
@click.option("--start-date", help="Start date (YYYY-MM-DD or 'today', 'yesterday')")
@click.option("--end-date", help="End date (YYYY-MM-DD or 'today', 'yesterday')")
@click.option("--unreconciled", is_flag=True, help="Show only transactions that still need a link")
@click.option("--limit", type=int, help="Show at most this many transactions")
@click.pass_context
def list_transactions(ctx, start_date: str, end_date: str, unreconciled: bool, limit: int | None):
    """View ledger transactions, newest first."""
    db = ctx.obj["db"]

    start = None
    if start_date:
        try:
            start = parse_date(start_date)
        except ValueError as e:
            click.echo(f"Error: Invalid start date: {e}", err=True)
            ctx.exit(1)

    end = None
    if end_date:
        try:
            end = parse_date(end_date)
        except ValueError as e:
            click.echo(f"Error: Invalid end date: {e}", err=True)
            ctx.exit(1)

    transactions = db.list_transactions(
        start_date=start, end_date=end, unreconciled_only=unreconciled, limit=limit
    )

    if not transactions:
        click.echo("No transactions found.")
        return

    click.echo(f"\nFound {len(transactions)} transaction(s):")
    click.echo("-" * 110)
    click.echo(
        f"{'ID':<6} {'Date':<12} {'Amount':>12}  {'Status':<11} {'Split':<10} {'Sequence':<18} {'Counterparty':<30}"
    )
    click.echo("-" * 110)

    for txn in transactions:
        date_str = str(txn.execution_date) if txn.execution_date else ""
        click.echo(
            f"{txn.id:<6} {date_str:<12} {txn.amount:>12,.2f}  {derived_status(txn).value:<11} "
            f"{txn.split_state.value:<10} {txn.sequence_number[:18]:<18} {txn.counterparty_name[:30]:<30}"
        )

    total_expenses = sum(txn.amount for txn in transactions if txn.amount < 0)
    total_income = sum(txn.amount for txn in transactions if txn.amount > 0)
    click.echo("-" * 110)
    click.echo(
        f"{'TOTAL':<6} {'':<12} Expenses: {abs(total_expenses):,.2f} | "
        f"Income: {total_income:,.2f} | Count: {len(transactions)}"
    )


@transaction_group.command("show")
@click.argument("transaction_id", type=int)
@click.pass_context
def show_transaction(ctx, transaction_id: int):
    """Show one transaction with its links and split lines."""
    db = ctx.obj["db"]
    txn = db.get_transaction(transaction_id)
    if txn is None:
        click.echo(f"Error: Transaction {transaction_id} not found", err=True)
        ctx.exit(1)

    click.echo(f"\nTransaction ID: {txn.id}")
    click.echo(f"  Sequence: {txn.sequence_number}")
    click.echo(f"  Date: {txn.execution_date or ''}")
    if txn.value_date:
        click.echo(f"  Value date: {txn.value_date}")
    click.echo(f"  Amount: {txn.amount:,.2f}")
    click.echo(f"  Counterparty: {txn.counterparty_name}")
    if txn.counterparty_iban:
        click.echo(f"  IBAN: {txn.counterparty_iban}")
    if txn.communication:
        click.echo(f"  Communication: {txn.communication}")
    if txn.category_id or txn.account_code:
        click.echo(f"  Category: {txn.category_id or ''}  Account code: {txn.account_code or ''}")
    if txn.comment:
        click.echo(f"  Comment: {txn.comment}")
    click.echo(f"  Status: {derived_status(txn).value}")
    if txn.is_child:
        click.echo(f"  Split: line {txn.child_index} of transaction {txn.parent_id}")

    if txn.links:
        click.echo("  Links:")
        for link in txn.links:
            click.echo(
                f"    {link.entity_type.value} '{link.entity_id}' {link.entity_name} "
                f"({link.confidence}%, {link.matched_by.value})"
            )

    children = db.list_children(txn.id)
    if children:
        click.echo(f"  Split into {len(children)} lines:")
        for child, line in zip(children, child_lines(children)):
            click.echo(f"    {child.id:<6} {line.amount:>10,.2f}  {line.description}")


@transaction_group.command("update")
@click.argument("transaction_id", type=int)
@click.option("--category", help="Category ID (empty string to clear)")
@click.option("--account-code", help="Accounting code (empty string to clear)")
@click.option("--comment", help="Administrator comment (empty string to clear)")
@click.pass_context
def update_transaction(
    ctx, transaction_id: int, category: str | None, account_code: str | None, comment: str | None
) -> None:
    """Update the classification or comment of a transaction.

    Examples:
        clubledger transaction update 3 --category events --account-code 730000
    """
    db = ctx.obj["db"]
    fields = {}
    if category is not None:
        fields["category_id"] = category or None
    if account_code is not None:
        fields["account_code"] = account_code or None
    if comment is not None:
        fields["comment"] = comment or None

    if not fields:
        click.echo("Nothing to update.")
        return

    try:
        db.update_transaction(transaction_id, **fields)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Updated transaction {transaction_id}")


@transaction_group.command("duplicates")
@click.pass_context
def list_duplicates(ctx):
    """List transactions that share a sequence number."""
    db = ctx.obj["db"]
    groups = ImportService(db).find_duplicates()
    if not groups:
        click.echo("No duplicates found.")
        return

    for sequence_number, records in groups.items():
        click.echo(f"\n{sequence_number} ({len(records)} records):")
        for txn in records:
            click.echo(f"  {txn.id:<6} {txn.amount:>10,.2f}  {txn.counterparty_name}")


def register_commands(cli: click.Group) -> None:
    """Register transaction commands with main CLI."""
    cli.add_command(transaction_group, name="transaction")
