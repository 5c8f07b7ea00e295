"""Mapper functions to convert between domain models and SQLAlchemy models.

Enum-valued fields are stored as their string values.
"""

from clubledger.domain import entities as domain
from clubledger.database.models import (
    Candidate as ORMCandidate,
    EntityLink as ORMEntityLink,
    Transaction as ORMTransaction,
)


def link_to_domain(orm_link: ORMEntityLink) -> domain.EntityLink:
    """Convert SQLAlchemy EntityLink model to domain EntityLink entity."""
    return domain.EntityLink(
        entity_type=domain.EntityType(orm_link.entity_type),
        entity_id=orm_link.entity_id,
        entity_name=orm_link.entity_name,
        confidence=orm_link.confidence,
        matched_at=orm_link.matched_at,
        matched_by=domain.MatchedBy(orm_link.matched_by),
        notes=orm_link.notes,
    )


def link_to_orm(link: domain.EntityLink, transaction_id: int) -> ORMEntityLink:
    """Build a SQLAlchemy EntityLink row for a domain link."""
    return ORMEntityLink(
        transaction_id=transaction_id,
        entity_type=link.entity_type.value,
        entity_id=link.entity_id,
        entity_name=link.entity_name,
        confidence=link.confidence,
        matched_at=link.matched_at,
        matched_by=link.matched_by.value,
        notes=link.notes,
    )


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.TransactionRecord:
    """Convert SQLAlchemy Transaction model to domain TransactionRecord entity."""
    return domain.TransactionRecord(
        id=orm_transaction.id,
        sequence_number=orm_transaction.sequence_number,
        dedup_hash=orm_transaction.dedup_hash,
        execution_date=orm_transaction.execution_date,
        value_date=orm_transaction.value_date,
        amount=orm_transaction.amount,
        counterparty_name=orm_transaction.counterparty_name or "",
        counterparty_iban=orm_transaction.counterparty_iban,
        communication=orm_transaction.communication or "",
        account_number=orm_transaction.account_number,
        category_id=orm_transaction.category_id,
        account_code=orm_transaction.account_code,
        comment=orm_transaction.comment,
        reconciliation_status=domain.ReconciliationStatus(orm_transaction.reconciliation_status),
        links=tuple(link_to_domain(link) for link in orm_transaction.links),
        parent_id=orm_transaction.parent_id,
        child_index=orm_transaction.child_index,
        is_parent=orm_transaction.is_parent,
        child_count=orm_transaction.child_count,
        imported_at=orm_transaction.imported_at,
    )


def transaction_to_orm(record: domain.TransactionRecord) -> ORMTransaction:
    """Build a SQLAlchemy Transaction row for a new domain record (links excluded)."""
    orm_transaction = ORMTransaction(
        sequence_number=record.sequence_number,
        dedup_hash=record.dedup_hash,
        execution_date=record.execution_date,
        value_date=record.value_date,
        amount=record.amount,
        counterparty_name=record.counterparty_name or "",
        counterparty_iban=record.counterparty_iban,
        communication=record.communication or "",
        account_number=record.account_number,
        category_id=record.category_id,
        account_code=record.account_code,
        comment=record.comment,
        reconciliation_status=domain.ReconciliationStatus(record.reconciliation_status).value,
        parent_id=record.parent_id,
        child_index=record.child_index,
        is_parent=record.is_parent,
        child_count=record.child_count,
    )
    if record.imported_at is not None:
        orm_transaction.imported_at = record.imported_at
    return orm_transaction


def candidate_to_domain(orm_candidate: ORMCandidate) -> domain.CandidateEntity:
    """Convert SQLAlchemy Candidate model to domain CandidateEntity."""
    return domain.CandidateEntity(
        id=orm_candidate.id,
        entity_type=domain.EntityType(orm_candidate.entity_type),
        name=orm_candidate.name,
        expected_amount=orm_candidate.expected_amount,
        expected_date=orm_candidate.expected_date,
        date_end=orm_candidate.date_end,
        description=orm_candidate.description or "",
        counterpart_name=orm_candidate.counterpart_name or "",
        cash_expected=orm_candidate.cash_expected,
        status=orm_candidate.status,
        created_at=orm_candidate.created_at,
    )
