"""Domain model entities for clubledger.

These are pure data classes representing the reconciliation concepts,
independent of the database schema. Services return new instances
(via ``dataclasses.replace``) instead of mutating existing ones.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional


class EntityType(str, Enum):
    """Kinds of club entities a transaction can be matched to."""

    EVENT = "event"
    EXPENSE = "expense"
    REGISTRATION = "registration"


class MatchedBy(str, Enum):
    """Provenance of an entity link."""

    MANUAL = "manual"
    AUTOMATIC = "automatic"


class ReconciliationStatus(str, Enum):
    """Manual reconciliation status of a transaction."""

    UNVERIFIED = "unverified"
    NOT_FOUND = "not_found"
    RECONCILED = "reconciled"


class SplitState(str, Enum):
    """Position of a transaction in the split/merge state machine."""

    STANDALONE = "standalone"
    PARENT = "parent"
    CHILD = "child"


@dataclass(frozen=True)
class EntityLink:
    """Association between a transaction and a candidate entity."""

    entity_type: EntityType
    entity_id: str
    entity_name: str
    confidence: int
    matched_at: datetime
    matched_by: MatchedBy
    notes: Optional[str] = None

    @property
    def key(self) -> tuple[EntityType, str]:
        return (self.entity_type, self.entity_id)


@dataclass(frozen=True)
class TransactionRecord:
    """Ledger entry for one bank transaction (or one child of a split)."""

    id: Optional[int]
    sequence_number: str
    dedup_hash: Optional[str]
    execution_date: Optional[date]
    value_date: Optional[date]
    amount: Decimal
    counterparty_name: str = ""
    counterparty_iban: Optional[str] = None
    communication: str = ""
    account_number: Optional[str] = None
    category_id: Optional[str] = None
    account_code: Optional[str] = None
    comment: Optional[str] = None
    reconciliation_status: ReconciliationStatus = ReconciliationStatus.UNVERIFIED
    links: tuple[EntityLink, ...] = ()
    parent_id: Optional[int] = None
    child_index: Optional[int] = None
    is_parent: bool = False
    child_count: int = 0
    imported_at: Optional[datetime] = None

    @property
    def is_reconciled(self) -> bool:
        return bool(self.links) or self.reconciliation_status == ReconciliationStatus.RECONCILED

    @property
    def is_child(self) -> bool:
        return self.parent_id is not None

    @property
    def split_state(self) -> SplitState:
        if self.is_child:
            return SplitState.CHILD
        if self.is_parent and self.child_count > 0:
            return SplitState.PARENT
        return SplitState.STANDALONE

    def has_link(self, entity_type: EntityType, entity_id: str) -> bool:
        return any(link.key == (entity_type, entity_id) for link in self.links)


@dataclass(frozen=True)
class IncomingRecord:
    """A bank transaction as delivered by an importer, before it is in the ledger."""

    sequence_number: str
    execution_date: Optional[date]
    amount: Decimal
    counterparty_name: str = ""
    communication: str = ""
    value_date: Optional[date] = None
    counterparty_iban: Optional[str] = None
    account_number: Optional[str] = None
    dedup_hash: Optional[str] = None


@dataclass(frozen=True)
class CandidateEntity:
    """Event, expense claim or registration the matcher can propose.

    Only the fields the matcher reads are modelled here; each club entity
    projects itself onto this shape.
    """

    id: str
    entity_type: EntityType
    name: str
    expected_amount: Decimal
    expected_date: Optional[date] = None
    date_end: Optional[date] = None
    description: str = ""
    counterpart_name: str = ""
    cash_expected: bool = False
    status: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class SplitLine:
    """One proposed child line of a split."""

    description: str
    amount: Decimal
    category_id: Optional[str] = None
    account_code: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class StatusInstruction:
    """Status transition the caller must apply to an external entity."""

    entity_type: EntityType
    entity_id: str
    from_status: str
    to_status: str


@dataclass(frozen=True)
class LinkRemoval:
    """Outcome of removing a link from a transaction."""

    transaction: TransactionRecord
    removed: tuple[EntityLink, ...]
    instructions: tuple[StatusInstruction, ...] = field(default_factory=tuple)
