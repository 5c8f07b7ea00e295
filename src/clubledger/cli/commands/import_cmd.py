"""Bank statement import command."""

import click
from clubledger.domain.dedup import Disposition, ImportService
from clubledger.utils.bank_csv import LAYOUTS, read_bank_csv


@click.command("import")
@click.argument("csv_file", type=click.Path(exists=True))
@click.option(
    "--layout",
    type=click.Choice(sorted(LAYOUTS)),
    help="CSV layout (detected from the header row when omitted)",
)
@click.option("--details", is_flag=True, help="Show what happened to each record")
@click.pass_context
def import_csv(ctx, csv_file: str, layout: str | None, details: bool):
    """Import transactions from a bank CSV export.

    The file may be ";" or "," delimited. Generic files use the columns
    sequence_number, execution_date, amount and optionally value_date,
    counterparty_name, counterparty_iban, communication, account_number.
    BNP Paribas Fortis exports are recognised by their French headers.

    Records already in the ledger are skipped; records that complete an
    earlier partial import (missing sequence number or counterparty) update
    it in place.
    """
    db = ctx.obj["db"]
    service = ImportService(db)

    try:
        records, row_errors = read_bank_csv(csv_file, layout_name=layout)
    except (ValueError, FileNotFoundError) as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    summary = service.import_records(records)

    click.echo("\nImport complete:")
    click.echo(f"  New: {summary.new} transactions")
    click.echo(f"  Updated: {summary.updated} transactions")
    click.echo(f"  Duplicates: {summary.duplicates} skipped")
    errors = row_errors + summary.errors
    if errors:
        click.echo(f"  Errors: {len(errors)}")
        for error in errors:
            click.echo(f"    {error}", err=True)

    if details:
        click.echo("")
        for label, decision in summary.decisions:
            if decision.disposition == Disposition.NEW:
                click.echo(f"  {label}: new")
            else:
                click.echo(f"  {label}: {decision.disposition.value} - {decision.reason}")


def register_commands(cli):
    """Register import command with main CLI."""
    cli.add_command(import_csv)
