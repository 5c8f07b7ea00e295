"""Main CLI entry point."""

import logging

import click
from clubledger.database.factories import create_sqlite_database

# Import and register all commands at module level
from clubledger.cli.commands import (
    candidate,
    cleanup,
    import_cmd,
    link,
    match,
    split,
    transaction,
)

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides CLUBLEDGER_DB_PATH environment variable)",
    envvar="CLUBLEDGER_DB_PATH",
)
@click.option("--verbose", "-v", is_flag=True, help="Log matching and import details")
@click.pass_context
def cli(ctx, db_path: str | None, verbose: bool):
    """Clubledger - Bank reconciliation for club treasurers.

    Import bank statements, match transactions to events, expense claims
    and registrations, and split bulk payments into separate lines.
    """
    ctx.ensure_object(dict)
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db


# Register all commands
import_cmd.register_commands(cli)
candidate.register_commands(cli)
match.register_commands(cli)
link.register_commands(cli)
split.register_commands(cli)
transaction.register_commands(cli)
cleanup.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
