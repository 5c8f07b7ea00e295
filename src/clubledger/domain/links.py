"""Link registry: links between transactions and club entities."""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, UTC
from typing import TYPE_CHECKING, Iterable, Mapping, Optional

from clubledger.domain.entities import (
    EntityLink,
    EntityType,
    LinkRemoval,
    MatchedBy,
    ReconciliationStatus,
    SplitState,
    StatusInstruction,
    TransactionRecord,
)
from clubledger.domain.errors import (
    DuplicateLinkError,
    InvalidSplitTargetError,
    LinkStateError,
    NotFoundError,
    ValidationError,
    candidate_not_found,
    duplicate_link,
    link_not_found,
    parent_not_linkable,
    transaction_not_found,
)

if TYPE_CHECKING:
    from clubledger.database.base import Database

logger = logging.getLogger(__name__)

EXPENSE_APPROVED = "approved"
EXPENSE_REIMBURSED = "reimbursed"
REGISTRATION_UNPAID = "unpaid"
REGISTRATION_PAID = "paid"

# Status an entity takes once a bank transaction is linked to it
LINKED_STATUS = {
    EntityType.EXPENSE: (EXPENSE_APPROVED, EXPENSE_REIMBURSED),
    EntityType.REGISTRATION: (REGISTRATION_UNPAID, REGISTRATION_PAID),
}

STATUS_CYCLE = {
    ReconciliationStatus.UNVERIFIED: ReconciliationStatus.NOT_FOUND,
    ReconciliationStatus.NOT_FOUND: ReconciliationStatus.RECONCILED,
    ReconciliationStatus.RECONCILED: ReconciliationStatus.UNVERIFIED,
}


@dataclass
class CleanupStats:
    """Result of an orphan-link cleanup pass."""

    transactions_checked: int = 0
    transactions_changed: int = 0
    links_removed: int = 0


def propose_link(
    transaction_id: Optional[int],
    entity_type: EntityType,
    entity_id: str,
    confidence: int,
    matched_by: MatchedBy,
    entity_name: str = "",
    notes: Optional[str] = None,
) -> EntityLink:
    """Build a link without touching any transaction.

    Raises:
        ValidationError: If confidence is outside 0-100 or the id is empty
    """
    if not entity_id:
        raise ValidationError("Entity id is required")
    if not 0 <= confidence <= 100:
        raise ValidationError(f"Confidence must be between 0 and 100, got {confidence}")
    logger.debug("Proposed link %s -> %s %s (%d)", transaction_id, entity_type.value, entity_id, confidence)
    return EntityLink(
        entity_type=EntityType(entity_type),
        entity_id=entity_id,
        entity_name=entity_name or entity_id,
        confidence=confidence,
        matched_at=datetime.now(UTC),
        matched_by=MatchedBy(matched_by),
        notes=notes,
    )


def accept_link(transaction: TransactionRecord, link: EntityLink) -> TransactionRecord:
    """Return ``transaction`` with ``link`` appended and marked reconciled.

    Raises:
        InvalidSplitTargetError: If the transaction is a split parent
        DuplicateLinkError: If the transaction already links this entity
    """
    if transaction.split_state == SplitState.PARENT:
        raise InvalidSplitTargetError(parent_not_linkable(transaction.id))
    if transaction.has_link(link.entity_type, link.entity_id):
        raise DuplicateLinkError(duplicate_link(transaction.id, link.entity_type.value, link.entity_id))

    return replace(
        transaction,
        links=transaction.links + (link,),
        reconciliation_status=ReconciliationStatus.RECONCILED,
    )


def remove_link(
    transaction: TransactionRecord,
    entity_id: str,
    entity_type: Optional[EntityType] = None,
) -> LinkRemoval:
    """Remove the link(s) to ``entity_id`` from a transaction.

    Without ``entity_type`` every link with that id is removed. Removing an
    expense link emits an instruction to put the claim back to approved.

    Raises:
        NotFoundError: If no link matches
    """
    removed = tuple(
        link
        for link in transaction.links
        if link.entity_id == entity_id and (entity_type is None or link.entity_type == entity_type)
    )
    if not removed:
        raise NotFoundError(link_not_found(transaction.id, entity_id))

    remaining = tuple(link for link in transaction.links if link not in removed)
    status = ReconciliationStatus.RECONCILED if remaining else ReconciliationStatus.UNVERIFIED

    instructions = tuple(
        StatusInstruction(
            entity_type=EntityType.EXPENSE,
            entity_id=link.entity_id,
            from_status=EXPENSE_REIMBURSED,
            to_status=EXPENSE_APPROVED,
        )
        for link in removed
        if link.entity_type == EntityType.EXPENSE
    )

    updated = replace(transaction, links=remaining, reconciliation_status=status)
    return LinkRemoval(transaction=updated, removed=removed, instructions=instructions)


def derived_status(transaction: TransactionRecord) -> ReconciliationStatus:
    """Status to display: linked transactions are always reconciled."""
    if transaction.links:
        return ReconciliationStatus.RECONCILED
    return transaction.reconciliation_status


def cycle_status(transaction: TransactionRecord) -> TransactionRecord:
    """Advance the manual status cycle of an unlinked transaction.

    Raises:
        LinkStateError: If the transaction has links
    """
    if transaction.links:
        raise LinkStateError(
            f"Transaction {transaction.id} is linked; its status is derived from its links"
        )
    return replace(
        transaction,
        reconciliation_status=STATUS_CYCLE[transaction.reconciliation_status],
    )


def clean_orphan_links(
    transactions: Iterable[TransactionRecord],
    existing_ids: Mapping[EntityType, set[str]],
) -> tuple[list[TransactionRecord], CleanupStats]:
    """Drop links to entities that no longer exist.

    A transaction left without links goes back to unverified.

    Returns:
        The changed transactions and counts for the pass
    """
    stats = CleanupStats()
    changed = []
    for transaction in transactions:
        stats.transactions_checked += 1
        kept = tuple(
            link for link in transaction.links if link.entity_id in existing_ids.get(link.entity_type, set())
        )
        if len(kept) == len(transaction.links):
            continue
        stats.links_removed += len(transaction.links) - len(kept)
        stats.transactions_changed += 1
        status = transaction.reconciliation_status
        if not kept and status == ReconciliationStatus.RECONCILED:
            status = ReconciliationStatus.UNVERIFIED
        changed.append(replace(transaction, links=kept, reconciliation_status=status))
    return changed, stats


def repair_reconciliation_status(transactions: Iterable[TransactionRecord]) -> list[TransactionRecord]:
    """Return the linked transactions whose stored status is not reconciled, fixed."""
    return [
        replace(transaction, reconciliation_status=ReconciliationStatus.RECONCILED)
        for transaction in transactions
        if transaction.links and transaction.reconciliation_status != ReconciliationStatus.RECONCILED
    ]


class LinkService:
    """Service for linking ledger transactions to club entities."""

    def __init__(self, db: "Database"):
        """Initialize link service.

        Args:
            db: Database instance
        """
        self.db = db

    def _get_transaction(self, transaction_id: int) -> TransactionRecord:
        transaction = self.db.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        return transaction

    def link(
        self,
        transaction_id: int,
        entity_type: EntityType,
        entity_id: str,
        confidence: int = 100,
        matched_by: MatchedBy = MatchedBy.MANUAL,
        notes: Optional[str] = None,
    ) -> TransactionRecord:
        """Link a transaction to an entity and update the entity status.

        Args:
            transaction_id: Ledger transaction ID
            entity_type: Type of the entity
            entity_id: ID of the entity
            confidence: Match confidence (0-100)
            matched_by: Manual or automatic
            notes: Optional match rationale

        Returns:
            The updated transaction

        Raises:
            NotFoundError: If the transaction or entity does not exist
            DuplicateLinkError: If the link already exists
            InvalidSplitTargetError: If the transaction is a split parent
        """
        transaction = self._get_transaction(transaction_id)
        candidate = self.db.get_candidate(entity_type, entity_id)
        if candidate is None:
            raise NotFoundError(candidate_not_found(entity_type.value, entity_id))

        link = propose_link(
            transaction_id,
            entity_type,
            entity_id,
            confidence,
            matched_by,
            entity_name=candidate.name,
            notes=notes,
        )
        updated = accept_link(transaction, link)
        self.db.set_links(transaction_id, updated.links)
        self.db.update_transaction(transaction_id, reconciliation_status=updated.reconciliation_status)

        if entity_type in LINKED_STATUS:
            before, after = LINKED_STATUS[entity_type]
            if candidate.status in (None, before):
                self.db.update_candidate_status(entity_type, entity_id, after)

        logger.info(
            "Linked transaction %s to %s %s (%s, %d)",
            transaction_id,
            entity_type.value,
            entity_id,
            link.matched_by.value,
            confidence,
        )
        return updated

    def unlink(
        self, transaction_id: int, entity_id: str, entity_type: Optional[EntityType] = None
    ) -> LinkRemoval:
        """Remove a link and apply the emitted status instructions.

        Raises:
            NotFoundError: If the transaction or the link does not exist
        """
        transaction = self._get_transaction(transaction_id)
        removal = remove_link(transaction, entity_id, entity_type)
        self.db.set_links(transaction_id, removal.transaction.links)
        self.db.update_transaction(
            transaction_id, reconciliation_status=removal.transaction.reconciliation_status
        )

        for link in removal.removed:
            if link.entity_type == EntityType.REGISTRATION:
                self._revert_status(
                    StatusInstruction(link.entity_type, link.entity_id, REGISTRATION_PAID, REGISTRATION_UNPAID)
                )
        for instruction in removal.instructions:
            self._revert_status(instruction)

        logger.info("Unlinked transaction %s from %s", transaction_id, entity_id)
        return removal

    def _revert_status(self, instruction: StatusInstruction) -> None:
        candidate = self.db.get_candidate(instruction.entity_type, instruction.entity_id)
        if candidate is None:
            logger.warning(
                "Cannot revert status of missing %s %s",
                instruction.entity_type.value,
                instruction.entity_id,
            )
            return
        if candidate.status == instruction.from_status:
            self.db.update_candidate_status(
                instruction.entity_type, instruction.entity_id, instruction.to_status
            )

    def cycle_status(self, transaction_id: int) -> TransactionRecord:
        """Advance the manual reconciliation status of a transaction."""
        updated = cycle_status(self._get_transaction(transaction_id))
        self.db.update_transaction(transaction_id, reconciliation_status=updated.reconciliation_status)
        return updated

    def cleanup(self) -> tuple[CleanupStats, int]:
        """Remove orphan links and repair stored statuses.

        Returns:
            Cleanup stats and the number of statuses repaired
        """
        existing = {
            entity_type: {c.id for c in self.db.fetch_candidates(entity_type)}
            for entity_type in EntityType
        }
        transactions = self.db.fetch_all_transactions()
        changed, stats = clean_orphan_links(transactions, existing)
        for transaction in changed:
            self.db.set_links(transaction.id, transaction.links)
            self.db.update_transaction(
                transaction.id, reconciliation_status=transaction.reconciliation_status
            )

        repaired = repair_reconciliation_status(self.db.fetch_all_transactions())
        for transaction in repaired:
            self.db.update_transaction(
                transaction.id, reconciliation_status=transaction.reconciliation_status
            )

        logger.info(
            "Cleanup removed %d orphan link(s) from %d transaction(s); repaired %d status(es)",
            stats.links_removed,
            stats.transactions_changed,
            len(repaired),
        )
        return stats, len(repaired)
