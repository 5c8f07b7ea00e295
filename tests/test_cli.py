"""Tests for the command line interface."""

from decimal import Decimal

import pytest

from clubledger.cli.commands.split import parse_split_line
from clubledger.cli.main import cli
from clubledger.domain.entities import EntityType, ReconciliationStatus


def run(cli_runner, temp_db, *args):
    return cli_runner.invoke(cli, ["--db-path", temp_db.database_path, *args])


def import_generic(cli_runner, temp_db, fixtures_dir):
    result = run(cli_runner, temp_db, "import", str(fixtures_dir / "generic_statement.csv"))
    assert result.exit_code == 0, result.output
    return result


def add_event(cli_runner, temp_db):
    result = run(
        cli_runner,
        temp_db,
        "candidate",
        "add",
        "event",
        "ev-1",
        "--name",
        "Spring dinner",
        "--amount",
        "145",
        "--date",
        "2025-03-20",
    )
    assert result.exit_code == 0, result.output
    return result


class TestImportCommand:
    """Tests for the import command."""

    def test_import_and_reimport(self, cli_runner, temp_db, fixtures_dir):
        result = import_generic(cli_runner, temp_db, fixtures_dir)
        assert "New: 2 transactions" in result.output

        result = import_generic(cli_runner, temp_db, fixtures_dir)
        assert "New: 0 transactions" in result.output
        assert "Duplicates: 2 skipped" in result.output

    def test_incomplete_sequence_completed(self, cli_runner, temp_db, fixtures_dir):
        run(cli_runner, temp_db, "import", str(fixtures_dir / "partial_statement.csv"))

        result = run(
            cli_runner, temp_db, "import", str(fixtures_dir / "completed_statement.csv"), "--details"
        )

        assert result.exit_code == 0, result.output
        assert "New: 1 transactions" in result.output
        assert "Updated: 1 transactions" in result.output
        assert "2025-00042: incomplete_number_update" in result.output
        temp_db.disconnect()
        assert sorted(t.sequence_number for t in temp_db.fetch_all_transactions()) == [
            "2025-00042",
            "2025-00043",
        ]

    def test_row_errors_reported(self, cli_runner, temp_db, fixtures_dir):
        result = run(cli_runner, temp_db, "import", str(fixtures_dir / "bnp_statement.csv"))

        assert result.exit_code == 0, result.output
        assert "New: 3 transactions" in result.output
        assert "Errors: 1" in result.output

    def test_wrong_layout(self, cli_runner, temp_db, fixtures_dir):
        result = run(
            cli_runner, temp_db, "import", str(fixtures_dir / "generic_statement.csv"), "--layout", "bnp"
        )
        assert result.exit_code == 1
        assert "missing required columns" in result.output


class TestCandidateCommands:
    """Tests for candidate commands."""

    def test_add_and_list(self, cli_runner, temp_db):
        result = add_event(cli_runner, temp_db)
        assert "Created event 'ev-1': Spring dinner (145.00)" in result.output

        result = run(cli_runner, temp_db, "candidate", "list")
        assert result.exit_code == 0
        assert "Found 1 candidate(s):" in result.output
        assert "ev-1" in result.output

    def test_list_empty(self, cli_runner, temp_db):
        result = run(cli_runner, temp_db, "candidate", "list", "--type", "expense")
        assert "No candidates found." in result.output

    def test_default_status(self, cli_runner, temp_db):
        run(cli_runner, temp_db, "candidate", "add", "expense", "exp-1", "--name", "Fuel", "--amount", "80,00")
        temp_db.disconnect()
        assert temp_db.get_candidate(EntityType.EXPENSE, "exp-1").status == "approved"

    def test_duplicate_rejected(self, cli_runner, temp_db):
        add_event(cli_runner, temp_db)
        result = run(
            cli_runner, temp_db, "candidate", "add", "event", "ev-1", "--name", "Other", "--amount", "10"
        )
        assert result.exit_code == 1
        assert "Error: Event 'ev-1' already exists" in result.output

    def test_end_before_start(self, cli_runner, temp_db):
        result = run(
            cli_runner,
            temp_db,
            "candidate",
            "add",
            "event",
            "ev-2",
            "--name",
            "Camp",
            "--amount",
            "300",
            "--date",
            "2025-07-10",
            "--end-date",
            "2025-07-01",
        )
        assert result.exit_code == 1
        assert "End date is before the start date" in result.output


class TestMatchAndLinkCommands:
    """Tests for match, link, unlink and status commands."""

    def test_match_and_apply(self, cli_runner, temp_db, fixtures_dir):
        import_generic(cli_runner, temp_db, fixtures_dir)
        add_event(cli_runner, temp_db)

        result = run(cli_runner, temp_db, "match", "--reasons")
        assert result.exit_code == 0, result.output
        assert "Auto-reconcilable (1):" in result.output
        assert "txn 1 -> event 'ev-1' Spring dinner (100%)" in result.output
        assert "Memo mentions 'Spring dinner'" in result.output

        result = run(cli_runner, temp_db, "match", "--apply")
        assert "Linked 1 transaction(s)" in result.output

        result = run(cli_runner, temp_db, "match")
        assert "No matches found." in result.output

    def test_link_unlink(self, cli_runner, temp_db, fixtures_dir):
        import_generic(cli_runner, temp_db, fixtures_dir)
        add_event(cli_runner, temp_db)

        result = run(cli_runner, temp_db, "link", "1", "event", "ev-1", "--notes", "Paid at the door")
        assert result.exit_code == 0, result.output
        assert "Linked transaction 1 to event 'ev-1'" in result.output

        result = run(cli_runner, temp_db, "transaction", "show", "1")
        assert "Status: reconciled" in result.output
        assert "event 'ev-1' Spring dinner (100%, manual)" in result.output

        result = run(cli_runner, temp_db, "unlink", "1", "ev-1")
        assert result.exit_code == 0, result.output
        assert "Unlinked transaction 1 from 'ev-1'" in result.output
        assert "Status: unverified" in result.output

    def test_link_missing_entity(self, cli_runner, temp_db, fixtures_dir):
        import_generic(cli_runner, temp_db, fixtures_dir)

        result = run(cli_runner, temp_db, "link", "1", "event", "nope")

        assert result.exit_code == 1
        assert "Error: Event 'nope' not found" in result.output

    def test_status_cycle(self, cli_runner, temp_db, fixtures_dir):
        import_generic(cli_runner, temp_db, fixtures_dir)

        result = run(cli_runner, temp_db, "status", "1")

        assert result.exit_code == 0, result.output
        assert "Transaction 1 is now not_found" in result.output
        temp_db.disconnect()
        assert temp_db.get_transaction(1).reconciliation_status == ReconciliationStatus.NOT_FOUND

    def test_status_rejected_when_linked(self, cli_runner, temp_db, fixtures_dir):
        import_generic(cli_runner, temp_db, fixtures_dir)
        add_event(cli_runner, temp_db)
        run(cli_runner, temp_db, "link", "1", "event", "ev-1")

        result = run(cli_runner, temp_db, "status", "1")

        assert result.exit_code == 1
        assert "derived from its links" in result.output


class TestSplitCommands:
    """Tests for split and delete-child commands."""

    def test_split_and_merge(self, cli_runner, temp_db, fixtures_dir):
        import_generic(cli_runner, temp_db, fixtures_dir)

        result = run(cli_runner, temp_db, "split", "2", "--line", "Fuel:30", "--line", "Snacks:12,50")
        assert result.exit_code == 0, result.output
        assert "Transaction 2 split into 2 lines:" in result.output

        result = run(cli_runner, temp_db, "transaction", "show", "2")
        assert "Split into 2 lines:" in result.output

        result = run(cli_runner, temp_db, "split", "2")
        assert result.exit_code == 0, result.output
        assert "Transaction 2 is standalone" in result.output

    def test_split_rejected(self, cli_runner, temp_db, fixtures_dir):
        import_generic(cli_runner, temp_db, fixtures_dir)

        result = run(cli_runner, temp_db, "split", "2", "--line", "Fuel:30", "--line", ":0")

        assert result.exit_code == 1
        assert "Error: Split rejected:" in result.output
        assert "  - Line 2: description is required" in result.output
        assert "  - Line 2: amount must be greater than 0" in result.output

    def test_malformed_line(self, cli_runner, temp_db, fixtures_dir):
        import_generic(cli_runner, temp_db, fixtures_dir)

        result = run(cli_runner, temp_db, "split", "2", "--line", "Fuel", "--line", "Snacks:12")

        assert result.exit_code == 1
        assert "Invalid split line 'Fuel'" in result.output

    def test_linked_child_requires_confirm(self, cli_runner, temp_db, fixtures_dir):
        import_generic(cli_runner, temp_db, fixtures_dir)
        run(cli_runner, temp_db, "candidate", "add", "expense", "exp-1", "--name", "Fuel", "--amount", "30")
        run(cli_runner, temp_db, "split", "2", "--line", "Fuel:30", "--line", "Snacks:12,50")
        result = run(cli_runner, temp_db, "link", "3", "expense", "exp-1")
        assert result.exit_code == 0, result.output

        result = run(cli_runner, temp_db, "delete-child", "4")
        assert result.exit_code == 1
        assert "Re-run with --confirm" in result.output

        result = run(cli_runner, temp_db, "delete-child", "4", "--confirm")
        assert result.exit_code == 0, result.output
        assert "Deleted child transaction(s): 3, 4" in result.output
        assert "Transaction 2 is standalone" in result.output


class TestTransactionCommands:
    """Tests for transaction and cleanup commands."""

    def test_list(self, cli_runner, temp_db, fixtures_dir):
        import_generic(cli_runner, temp_db, fixtures_dir)

        result = run(cli_runner, temp_db, "transaction", "list")
        assert "Found 2 transaction(s):" in result.output

        result = run(cli_runner, temp_db, "transaction", "list", "--start-date", "2025-03-06")
        assert "Found 1 transaction(s):" in result.output

    def test_list_empty(self, cli_runner, temp_db):
        result = run(cli_runner, temp_db, "transaction", "list")
        assert "No transactions found." in result.output

    def test_update(self, cli_runner, temp_db, fixtures_dir):
        import_generic(cli_runner, temp_db, fixtures_dir)

        result = run(cli_runner, temp_db, "transaction", "update", "1", "--category", "events")

        assert result.exit_code == 0, result.output
        assert "Updated transaction 1" in result.output
        temp_db.disconnect()
        assert temp_db.get_transaction(1).category_id == "events"

    def test_show_missing(self, cli_runner, temp_db):
        result = run(cli_runner, temp_db, "transaction", "show", "99")
        assert result.exit_code == 1
        assert "Transaction 99 not found" in result.output

    def test_duplicates_and_cleanup(self, cli_runner, temp_db, fixtures_dir):
        import_generic(cli_runner, temp_db, fixtures_dir)

        result = run(cli_runner, temp_db, "transaction", "duplicates")
        assert "No duplicates found." in result.output

        result = run(cli_runner, temp_db, "cleanup")
        assert result.exit_code == 0, result.output
        assert "Cleanup complete:" in result.output
        assert "Transactions checked: 2" in result.output


class TestParseSplitLine:
    """Tests for parsing --line values."""

    def test_description_and_amount(self):
        line = parse_split_line("Snacks:12,50")
        assert line.description == "Snacks"
        assert line.amount == Decimal("12.50")
        assert line.category_id is None
        assert line.account_code is None

    def test_category_and_account_code(self):
        line = parse_split_line("Fuel:30:transport:6100")
        assert line.description == "Fuel"
        assert line.amount == Decimal("30")
        assert line.category_id == "transport"
        assert line.account_code == "6100"

    def test_description_with_colons(self):
        line = parse_split_line("BBQ: Dupont family:45:events")
        assert line.description == "BBQ: Dupont family"
        assert line.amount == Decimal("45")
        assert line.category_id == "events"

    def test_missing_amount(self):
        with pytest.raises(ValueError, match="Invalid split line"):
            parse_split_line("Fuel:lots")
