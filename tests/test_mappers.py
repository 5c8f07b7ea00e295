"""Tests for database mappers."""

from datetime import datetime, date, UTC
from decimal import Decimal

from clubledger.database.models import (
    Candidate as ORMCandidate,
    Transaction as ORMTransaction,
)
from clubledger.database.mappers import (
    candidate_to_domain,
    link_to_domain,
    link_to_orm,
    transaction_to_domain,
    transaction_to_orm,
)
from clubledger.domain.entities import (
    CandidateEntity,
    EntityLink,
    EntityType,
    MatchedBy,
    ReconciliationStatus,
    TransactionRecord,
)


class TestTransactionMapper:
    """Tests for Transaction mapper."""

    def test_transaction_to_domain(self):
        """Test converting ORM Transaction to domain TransactionRecord."""
        orm_transaction = ORMTransaction(
            id=7,
            sequence_number="2025-00042",
            dedup_hash="abc",
            execution_date=date(2025, 3, 10),
            value_date=None,
            amount=Decimal("-42.50"),
            counterparty_name=None,
            communication="Invoice 7",
            reconciliation_status="not_found",
            parent_id=None,
            child_index=None,
            is_parent=False,
            child_count=0,
            imported_at=datetime.now(UTC),
        )

        record = transaction_to_domain(orm_transaction)

        assert isinstance(record, TransactionRecord)
        assert record.id == 7
        assert record.counterparty_name == ""
        assert record.reconciliation_status == ReconciliationStatus.NOT_FOUND
        assert record.links == ()

    def test_transaction_to_orm_excludes_id(self):
        record = TransactionRecord(
            id=3,
            sequence_number="2025-00042_child_1",
            dedup_hash=None,
            execution_date=date(2025, 3, 10),
            value_date=None,
            amount=Decimal("10.00"),
            parent_id=1,
            child_index=1,
        )

        orm_transaction = transaction_to_orm(record)

        assert orm_transaction.id is None
        assert orm_transaction.reconciliation_status == "unverified"
        assert orm_transaction.parent_id == 1
        assert orm_transaction.child_index == 1


class TestEntityLinkMapper:
    """Tests for EntityLink mapper."""

    def test_link_round_trip(self):
        link = EntityLink(
            entity_type=EntityType.EXPENSE,
            entity_id="exp-1",
            entity_name="Boat fuel",
            confidence=92,
            matched_at=datetime(2025, 3, 21, 10, 0),
            matched_by=MatchedBy.AUTOMATIC,
            notes="Amount 80.00 vs expected 80.00 (100%)",
        )

        orm_link = link_to_orm(link, transaction_id=5)

        assert orm_link.transaction_id == 5
        assert orm_link.entity_type == "expense"
        assert orm_link.matched_by == "automatic"
        assert link_to_domain(orm_link) == link


class TestCandidateMapper:
    """Tests for Candidate mapper."""

    def test_candidate_to_domain(self):
        orm_candidate = ORMCandidate(
            entity_type="registration",
            id="r1",
            name="Alice",
            expected_amount=Decimal("150.00"),
            description=None,
            counterpart_name="Alice Martin",
            cash_expected=False,
            status="unpaid",
        )

        candidate = candidate_to_domain(orm_candidate)

        assert isinstance(candidate, CandidateEntity)
        assert candidate.entity_type == EntityType.REGISTRATION
        assert candidate.description == ""
        assert candidate.expected_date is None
        assert candidate.status == "unpaid"
