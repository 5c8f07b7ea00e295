"""Shared pytest fixtures for clubledger tests."""

import tempfile
import os
from pathlib import Path
from datetime import date
from decimal import Decimal
import pytest

from clubledger.database.factories import create_sqlite_database
from clubledger.domain.entities import (
    CandidateEntity,
    EntityType,
    IncomingRecord,
    TransactionRecord,
)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def make_record():
    """Build ledger records with sensible defaults."""

    def _make(id=1, amount="150.00", **overrides) -> TransactionRecord:
        values = {
            "id": id,
            "sequence_number": f"2025-{id:05d}" if id is not None else "2025-00001",
            "dedup_hash": None,
            "execution_date": date(2025, 3, 5),
            "value_date": date(2025, 3, 5),
            "amount": Decimal(amount),
        }
        values.update(overrides)
        return TransactionRecord(**values)

    return _make


@pytest.fixture
def make_incoming():
    """Build incoming import records with sensible defaults."""

    def _make(sequence_number="2025-00042", amount="-42.50", **overrides) -> IncomingRecord:
        values = {
            "sequence_number": sequence_number,
            "execution_date": date(2025, 3, 10),
            "amount": Decimal(amount),
            "counterparty_name": "ACME SA",
            "communication": "Invoice 7",
        }
        values.update(overrides)
        return IncomingRecord(**values)

    return _make


@pytest.fixture
def make_candidate():
    """Build candidate entities with sensible defaults."""

    def _make(id="ev-1", entity_type=EntityType.EVENT, amount="145.00", **overrides) -> CandidateEntity:
        values = {
            "id": id,
            "entity_type": entity_type,
            "name": "Spring dinner",
            "expected_amount": Decimal(amount),
            "expected_date": date(2025, 3, 20),
        }
        values.update(overrides)
        return CandidateEntity(**values)

    return _make


@pytest.fixture
def stored_transaction(temp_db, make_record):
    """Insert a ledger transaction and return it as stored."""

    def _store(**overrides) -> TransactionRecord:
        record = make_record(id=None, **overrides)
        transaction_id = temp_db.insert_transaction(record)
        return temp_db.get_transaction(transaction_id)

    return _store


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"
