"""Matching command."""

import click
from clubledger.cli.error_handling import handle_domain_error
from clubledger.domain.config import MatcherConfig
from clubledger.domain.entities import EntityType
from clubledger.domain.matching import MatchProposal
from clubledger.domain.reconciliation import ReconciliationService

ENTITY_TYPES = [entity_type.value for entity_type in EntityType]


def _describe(proposal: MatchProposal) -> str:
    return (
        f"txn {proposal.transaction_id} -> {proposal.entity_type.value} '{proposal.entity_id}' "
        f"{proposal.entity_name} ({proposal.confidence}%)"
    )


def _echo_section(title: str, proposals: list[MatchProposal], show_reasons: bool) -> None:
    if not proposals:
        return
    click.echo(f"\n{title} ({len(proposals)}):")
    for proposal in proposals:
        line = _describe(proposal)
        if proposal.suggested_split_count is not None:
            line += f", probably {proposal.suggested_split_count} lines"
        click.echo(f"  {line}")
        if show_reasons:
            for reason in proposal.reasons:
                click.echo(f"      {reason}")


@click.command("match")
@click.option(
    "--type",
    "entity_types",
    type=click.Choice(ENTITY_TYPES),
    multiple=True,
    help="Entity type to match (repeatable; default: all)",
)
@click.option("--apply", "apply_auto", is_flag=True, help="Link the auto-reconcilable matches")
@click.option("--reasons", is_flag=True, help="Show why each match was proposed")
@click.pass_context
def match_transactions(ctx, entity_types: tuple[str, ...], apply_auto: bool, reasons: bool):
    """Propose links between unreconciled transactions and entities.

    Weights and thresholds can be tuned with CLUBLEDGER_* environment
    variables, e.g. CLUBLEDGER_AUTO_THRESHOLD=90.
    """
    db = ctx.obj["db"]

    try:
        config = MatcherConfig.from_env()
    except ValueError as e:
        handle_domain_error(ctx, e)

    service = ReconciliationService(db, config)
    report = service.run_matching([EntityType(t) for t in entity_types] or None)

    if report.total == 0:
        click.echo("No matches found.")
        return

    _echo_section("Auto-reconcilable", report.auto, reasons)
    _echo_section("Needs review", report.review, reasons)
    _echo_section("Split suggestions", report.split_suggestions, reasons)

    if report.cash_suggestions:
        click.echo(f"\nExpected in cash ({len(report.cash_suggestions)}):")
        for proposal in report.cash_suggestions:
            click.echo(f"  {proposal.entity_type.value} '{proposal.entity_id}' {proposal.entity_name}")

    if apply_auto:
        result = service.apply_auto(report)
        click.echo(f"\nLinked {len(result.applied)} transaction(s)")
        if result.skipped:
            click.echo(f"  Skipped {len(result.skipped)} (entity already used in this run)")
        for error in result.errors:
            click.echo(f"  {error}", err=True)


def register_commands(cli):
    """Register match command with main CLI."""
    cli.add_command(match_transactions)
