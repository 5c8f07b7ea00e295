"""Tests for the link registry."""

from datetime import datetime

import pytest

from clubledger.domain.entities import (
    EntityType,
    MatchedBy,
    ReconciliationStatus,
    StatusInstruction,
)
from clubledger.domain.errors import (
    DuplicateLinkError,
    InvalidSplitTargetError,
    LinkStateError,
    NotFoundError,
    ValidationError,
)
from clubledger.domain.links import (
    LinkService,
    accept_link,
    clean_orphan_links,
    cycle_status,
    derived_status,
    propose_link,
    remove_link,
    repair_reconciliation_status,
)


def make_link(entity_id="ev-1", entity_type=EntityType.EVENT, confidence=100):
    return propose_link(1, entity_type, entity_id, confidence, MatchedBy.MANUAL, entity_name=entity_id)


class TestProposeLink:
    """Tests for building links."""

    def test_builds_link(self):
        link = propose_link(1, EntityType.EXPENSE, "exp-1", 92, MatchedBy.AUTOMATIC, notes="Amount 42.50")

        assert link.entity_type == EntityType.EXPENSE
        assert link.entity_id == "exp-1"
        assert link.entity_name == "exp-1"
        assert link.confidence == 92
        assert link.matched_by == MatchedBy.AUTOMATIC
        assert link.notes == "Amount 42.50"
        assert isinstance(link.matched_at, datetime)

    @pytest.mark.parametrize("confidence", [-1, 101])
    def test_rejects_confidence_out_of_range(self, confidence):
        with pytest.raises(ValidationError, match="Confidence"):
            propose_link(1, EntityType.EVENT, "ev-1", confidence, MatchedBy.MANUAL)

    def test_rejects_empty_entity_id(self):
        with pytest.raises(ValidationError):
            propose_link(1, EntityType.EVENT, "", 100, MatchedBy.MANUAL)


class TestAcceptLink:
    """Tests for adding links to a transaction."""

    def test_marks_reconciled(self, make_record):
        original = make_record()
        linked = accept_link(original, make_link())

        assert linked.reconciliation_status == ReconciliationStatus.RECONCILED
        assert [link.entity_id for link in linked.links] == ["ev-1"]
        assert original.links == ()

    def test_multiple_links_allowed(self, make_record):
        linked = accept_link(accept_link(make_record(), make_link("ev-1")), make_link("ev-2"))
        assert [link.entity_id for link in linked.links] == ["ev-1", "ev-2"]

    def test_same_id_different_type_allowed(self, make_record):
        linked = accept_link(
            accept_link(make_record(), make_link("42")),
            make_link("42", EntityType.EXPENSE),
        )
        assert len(linked.links) == 2

    def test_duplicate_rejected(self, make_record):
        linked = accept_link(make_record(), make_link())
        with pytest.raises(DuplicateLinkError):
            accept_link(linked, make_link())

    def test_parent_rejected(self, make_record):
        parent = make_record(is_parent=True, child_count=2)
        with pytest.raises(InvalidSplitTargetError):
            accept_link(parent, make_link())

    def test_child_accepted(self, make_record):
        child = make_record(id=2, parent_id=1, child_index=1)
        assert accept_link(child, make_link()).is_reconciled


class TestRemoveLink:
    """Tests for removing links."""

    def test_last_link_resets_status(self, make_record):
        linked = accept_link(make_record(), make_link())
        removal = remove_link(linked, "ev-1")

        assert removal.transaction.links == ()
        assert removal.transaction.reconciliation_status == ReconciliationStatus.UNVERIFIED
        assert [link.entity_id for link in removal.removed] == ["ev-1"]
        assert removal.instructions == ()

    def test_remaining_links_keep_reconciled(self, make_record):
        linked = accept_link(accept_link(make_record(), make_link("ev-1")), make_link("ev-2"))
        removal = remove_link(linked, "ev-1")

        assert [link.entity_id for link in removal.transaction.links] == ["ev-2"]
        assert removal.transaction.reconciliation_status == ReconciliationStatus.RECONCILED

    def test_expense_emits_status_instruction(self, make_record):
        linked = accept_link(make_record(amount="-42.50"), make_link("exp-1", EntityType.EXPENSE))
        removal = remove_link(linked, "exp-1")

        assert removal.instructions == (
            StatusInstruction(EntityType.EXPENSE, "exp-1", "reimbursed", "approved"),
        )

    def test_type_narrows_removal(self, make_record):
        linked = accept_link(
            accept_link(make_record(), make_link("42")),
            make_link("42", EntityType.EXPENSE),
        )
        removal = remove_link(linked, "42", EntityType.EVENT)

        assert [link.entity_type for link in removal.transaction.links] == [EntityType.EXPENSE]

    def test_missing_link(self, make_record):
        with pytest.raises(NotFoundError):
            remove_link(make_record(), "ev-1")


class TestStatus:
    """Tests for derived and manual statuses."""

    def test_derived_status(self, make_record):
        assert derived_status(make_record()) == ReconciliationStatus.UNVERIFIED
        assert derived_status(make_record(links=(make_link(),))) == ReconciliationStatus.RECONCILED

    def test_cycle(self, make_record):
        record = make_record()
        statuses = []
        for _ in range(3):
            record = cycle_status(record)
            statuses.append(record.reconciliation_status)

        assert statuses == [
            ReconciliationStatus.NOT_FOUND,
            ReconciliationStatus.RECONCILED,
            ReconciliationStatus.UNVERIFIED,
        ]

    def test_cycle_rejected_with_links(self, make_record):
        with pytest.raises(LinkStateError):
            cycle_status(make_record(links=(make_link(),)))

    def test_repair(self, make_record):
        broken = make_record(id=1, links=(make_link(),))
        fine = make_record(id=2)

        repaired = repair_reconciliation_status([broken, fine])

        assert [r.id for r in repaired] == [1]
        assert repaired[0].reconciliation_status == ReconciliationStatus.RECONCILED


class TestCleanOrphanLinks:
    """Tests for orphan link cleanup."""

    def test_removes_links_to_missing_entities(self, make_record):
        transactions = [
            make_record(
                id=1,
                links=(make_link("ev-1"), make_link("ev-gone")),
                reconciliation_status=ReconciliationStatus.RECONCILED,
            ),
            make_record(
                id=2,
                links=(make_link("exp-gone", EntityType.EXPENSE),),
                reconciliation_status=ReconciliationStatus.RECONCILED,
            ),
            make_record(id=3),
        ]

        changed, stats = clean_orphan_links(transactions, {EntityType.EVENT: {"ev-1"}})

        assert (stats.transactions_checked, stats.transactions_changed, stats.links_removed) == (3, 2, 2)
        by_id = {t.id: t for t in changed}
        assert [link.entity_id for link in by_id[1].links] == ["ev-1"]
        assert by_id[1].reconciliation_status == ReconciliationStatus.RECONCILED
        assert by_id[2].links == ()
        assert by_id[2].reconciliation_status == ReconciliationStatus.UNVERIFIED


class TestLinkService:
    """Tests for linking against the database."""

    def test_link_and_unlink_event(self, temp_db, stored_transaction):
        transaction = stored_transaction()
        temp_db.create_candidate(EntityType.EVENT, "ev-1", "Spring dinner", "145.00")
        service = LinkService(temp_db)

        service.link(transaction.id, EntityType.EVENT, "ev-1")

        stored = temp_db.get_transaction(transaction.id)
        assert stored.reconciliation_status == ReconciliationStatus.RECONCILED
        assert [(link.entity_id, link.entity_name) for link in stored.links] == [("ev-1", "Spring dinner")]
        assert stored.links[0].matched_by == MatchedBy.MANUAL

        service.unlink(transaction.id, "ev-1")

        stored = temp_db.get_transaction(transaction.id)
        assert stored.links == ()
        assert stored.reconciliation_status == ReconciliationStatus.UNVERIFIED

    def test_expense_status_round_trip(self, temp_db, stored_transaction):
        transaction = stored_transaction(amount="-42.50")
        temp_db.create_candidate(EntityType.EXPENSE, "exp-1", "Balls", "42.50", status="approved")
        service = LinkService(temp_db)

        service.link(transaction.id, EntityType.EXPENSE, "exp-1")
        assert temp_db.get_candidate(EntityType.EXPENSE, "exp-1").status == "reimbursed"

        removal = service.unlink(transaction.id, "exp-1")
        assert len(removal.instructions) == 1
        assert temp_db.get_candidate(EntityType.EXPENSE, "exp-1").status == "approved"

    def test_registration_status_round_trip(self, temp_db, stored_transaction):
        transaction = stored_transaction()
        temp_db.create_candidate(EntityType.REGISTRATION, "r1", "Alice", "150.00", status="unpaid")
        service = LinkService(temp_db)

        service.link(transaction.id, EntityType.REGISTRATION, "r1")
        assert temp_db.get_candidate(EntityType.REGISTRATION, "r1").status == "paid"

        service.unlink(transaction.id, "r1")
        assert temp_db.get_candidate(EntityType.REGISTRATION, "r1").status == "unpaid"

    def test_link_missing_candidate(self, temp_db, stored_transaction):
        transaction = stored_transaction()
        with pytest.raises(NotFoundError, match="Event 'ev-9' not found"):
            LinkService(temp_db).link(transaction.id, EntityType.EVENT, "ev-9")

    def test_link_missing_transaction(self, temp_db):
        with pytest.raises(NotFoundError, match="Transaction 99 not found"):
            LinkService(temp_db).link(99, EntityType.EVENT, "ev-1")

    def test_duplicate_link_rejected(self, temp_db, stored_transaction):
        transaction = stored_transaction()
        temp_db.create_candidate(EntityType.EVENT, "ev-1", "Spring dinner", "145.00")
        service = LinkService(temp_db)
        service.link(transaction.id, EntityType.EVENT, "ev-1")

        with pytest.raises(DuplicateLinkError):
            service.link(transaction.id, EntityType.EVENT, "ev-1")
        assert len(temp_db.get_transaction(transaction.id).links) == 1

    def test_cycle_status(self, temp_db, stored_transaction):
        transaction = stored_transaction()
        updated = LinkService(temp_db).cycle_status(transaction.id)

        assert updated.reconciliation_status == ReconciliationStatus.NOT_FOUND
        assert temp_db.get_transaction(transaction.id).reconciliation_status == ReconciliationStatus.NOT_FOUND

    def test_cleanup(self, temp_db, stored_transaction):
        orphaned = stored_transaction(links=(make_link("ev-gone"),))
        kept = stored_transaction(links=(make_link("ev-1"),))
        temp_db.create_candidate(EntityType.EVENT, "ev-1", "Spring dinner", "145.00")

        stats, repaired = LinkService(temp_db).cleanup()

        assert stats.links_removed == 1
        assert stats.transactions_changed == 1
        # kept was stored unverified despite its link
        assert repaired == 1
        assert temp_db.get_transaction(orphaned.id).links == ()
        assert temp_db.get_transaction(kept.id).reconciliation_status == ReconciliationStatus.RECONCILED
