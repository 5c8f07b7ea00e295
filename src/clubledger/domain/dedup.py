"""Duplicate detection and enrichment for imported bank transactions."""

import hashlib
import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import datetime, UTC
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, Optional

from clubledger.domain.entities import IncomingRecord, TransactionRecord
from clubledger.domain.errors import PersistenceError

if TYPE_CHECKING:
    from clubledger.database.base import Database

logger = logging.getLogger(__name__)

INCOMPLETE_SEQUENCE = re.compile(r"^\d{4}-$")
COMPLETE_SEQUENCE = re.compile(r"^\d{4}-\d+$")


class Disposition(str, Enum):
    """What the resolver decided for one incoming record."""

    NEW = "new"
    DUPLICATE = "duplicate"
    INCOMPLETE_NUMBER_UPDATE = "incomplete_number_update"
    ENRICHMENT = "enrichment"


@dataclass(frozen=True)
class ImportDecision:
    """Disposition of one incoming record plus the ledger change it implies."""

    disposition: Disposition
    existing_id: Optional[int] = None
    updates: dict[str, Any] = field(default_factory=dict)
    reason: str = ""


@dataclass
class ImportSummary:
    """Counts for one import batch, plus the per-record outcome in import order."""

    new: int = 0
    updated: int = 0
    duplicates: int = 0
    errors: list[str] = field(default_factory=list)
    decisions: list[tuple[str, ImportDecision]] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)


def is_incomplete_sequence(sequence_number: Optional[str]) -> bool:
    """Return True for a year prefix without its trailing number, e.g. "2025-"."""
    return bool(sequence_number) and INCOMPLETE_SEQUENCE.match(sequence_number) is not None


def is_blank(value: Optional[str]) -> bool:
    return value is None or value.strip() == ""


def generate_dedup_hash(record: IncomingRecord) -> str:
    """Generate a deterministic content hash for duplicate detection.

    A complete sequence number is unique per account, so only it, the date
    and the amount are hashed; the counterparty can then be enriched later
    without changing the hash. Other records hash every identifying field.
    """
    date_str = record.execution_date.isoformat() if record.execution_date else ""
    amount_str = f"{record.amount:.2f}"
    if COMPLETE_SEQUENCE.match(record.sequence_number or ""):
        parts = [record.sequence_number, date_str, amount_str, "", ""]
    else:
        parts = [
            record.sequence_number or "",
            date_str,
            amount_str,
            (record.counterparty_name or "").strip(),
            (record.communication or "").strip(),
        ]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()[:32]


def record_from_incoming(incoming: IncomingRecord) -> TransactionRecord:
    """Build the ledger record to insert for a new incoming transaction."""
    return TransactionRecord(
        id=None,
        sequence_number=incoming.sequence_number,
        dedup_hash=incoming.dedup_hash or generate_dedup_hash(incoming),
        execution_date=incoming.execution_date,
        value_date=incoming.value_date,
        amount=incoming.amount,
        counterparty_name=incoming.counterparty_name or "",
        counterparty_iban=incoming.counterparty_iban,
        communication=incoming.communication or "",
        account_number=incoming.account_number,
        imported_at=datetime.now(UTC),
    )


class LedgerIndex:
    """In-memory lookup of the ledger used while resolving one batch.

    Later records in a batch see the changes made for earlier ones, so the
    index must be updated after every accepted disposition.
    """

    def __init__(self, records: Iterable[TransactionRecord] = ()):
        self._records: dict[int, TransactionRecord] = {}
        self._by_hash: dict[str, int] = {}
        self._by_sequence: dict[str, int] = {}
        self._incomplete: list[int] = []
        for record in records:
            self.add(record)

    @property
    def hashes(self) -> set[str]:
        return set(self._by_hash)

    @property
    def sequence_numbers(self) -> set[str]:
        return set(self._by_sequence)

    def find_by_hash(self, dedup_hash: Optional[str]) -> Optional[TransactionRecord]:
        if not dedup_hash or dedup_hash not in self._by_hash:
            return None
        return self._records[self._by_hash[dedup_hash]]

    def find_by_sequence(self, sequence_number: Optional[str]) -> Optional[TransactionRecord]:
        if not sequence_number or sequence_number not in self._by_sequence:
            return None
        return self._records[self._by_sequence[sequence_number]]

    def incomplete_records(self) -> list[TransactionRecord]:
        return [self._records[record_id] for record_id in self._incomplete]

    def add(self, record: TransactionRecord) -> None:
        """Register a ledger record. The first record seen for a key wins."""
        if record.id is None:
            raise ValueError("Only persisted records can be indexed")
        self._records[record.id] = record
        if record.dedup_hash:
            self._by_hash.setdefault(record.dedup_hash, record.id)
        if is_incomplete_sequence(record.sequence_number):
            if record.id not in self._incomplete:
                self._incomplete.append(record.id)
        elif record.sequence_number:
            self._by_sequence.setdefault(record.sequence_number, record.id)

    def apply_update(self, record_id: int, updates: dict[str, Any]) -> TransactionRecord:
        """Apply field updates to an indexed record and refresh the lookups."""
        record = replace(self._records[record_id], **updates)
        if record_id in self._incomplete and not is_incomplete_sequence(record.sequence_number):
            self._incomplete.remove(record_id)
        self.add(record)
        return record


def _same_content(existing: TransactionRecord, incoming: IncomingRecord) -> bool:
    # Dates are only compared when both sides have one
    if existing.execution_date is not None and incoming.execution_date is not None:
        if existing.execution_date != incoming.execution_date:
            return False
    # A blank stored counterparty is a partial write and is filled in later
    same_counterparty = is_blank(existing.counterparty_name) or (
        existing.counterparty_name.strip() == (incoming.counterparty_name or "").strip()
    )
    return (
        existing.amount == incoming.amount
        and same_counterparty
        and (existing.communication or "") == (incoming.communication or "")
    )


def find_incomplete_match(
    incoming: IncomingRecord, index: LedgerIndex
) -> Optional[TransactionRecord]:
    """Find a ledger record with an incomplete sequence number for ``incoming``.

    The incoming record must carry a complete number; the existing record
    must match it on date, amount, counterparty and communication.
    """
    if not incoming.sequence_number or is_incomplete_sequence(incoming.sequence_number):
        return None
    for existing in index.incomplete_records():
        if _same_content(existing, incoming):
            return existing
    return None


def _enrichment_or_duplicate(
    existing: TransactionRecord, incoming: IncomingRecord, matched_on: str
) -> ImportDecision:
    if is_blank(existing.counterparty_name) and not is_blank(incoming.counterparty_name):
        return ImportDecision(
            disposition=Disposition.ENRICHMENT,
            existing_id=existing.id,
            updates={"counterparty_name": incoming.counterparty_name.strip()},
            reason=f"Counterparty filled in on record {existing.id} (matched on {matched_on})",
        )
    return ImportDecision(
        disposition=Disposition.DUPLICATE,
        existing_id=existing.id,
        reason=f"Already imported as record {existing.id} (matched on {matched_on})",
    )


def resolve(incoming: IncomingRecord, index: LedgerIndex) -> ImportDecision:
    """Decide what to do with one incoming record.

    Checks run from most to least specific: incomplete sequence number,
    sequence number, dedup hash. Anything unmatched is new. The index is
    not modified.
    """
    dedup_hash = incoming.dedup_hash or generate_dedup_hash(incoming)

    incomplete = find_incomplete_match(incoming, index)
    if incomplete is not None:
        updates: dict[str, Any] = {
            "sequence_number": incoming.sequence_number,
            "dedup_hash": dedup_hash,
        }
        if is_blank(incomplete.counterparty_name) and not is_blank(incoming.counterparty_name):
            updates["counterparty_name"] = incoming.counterparty_name.strip()
        return ImportDecision(
            disposition=Disposition.INCOMPLETE_NUMBER_UPDATE,
            existing_id=incomplete.id,
            updates=updates,
            reason=(
                f"Record {incomplete.id} sequence number "
                f"'{incomplete.sequence_number}' completed to '{incoming.sequence_number}'"
            ),
        )

    by_sequence = index.find_by_sequence(incoming.sequence_number)
    if by_sequence is not None:
        return _enrichment_or_duplicate(by_sequence, incoming, "sequence number")

    by_hash = index.find_by_hash(dedup_hash)
    if by_hash is not None:
        return _enrichment_or_duplicate(by_hash, incoming, "hash")

    return ImportDecision(disposition=Disposition.NEW, updates={"dedup_hash": dedup_hash})


def find_duplicate_groups(records: Iterable[TransactionRecord]) -> dict[str, list[TransactionRecord]]:
    """Group ledger records that share a sequence number.

    Incomplete and empty numbers are ignored. Groups are returned in
    sequence-number order with records ordered by id.
    """
    groups: dict[str, list[TransactionRecord]] = defaultdict(list)
    for record in records:
        if not record.sequence_number or is_incomplete_sequence(record.sequence_number):
            continue
        groups[record.sequence_number].append(record)
    return {
        key: sorted(group, key=lambda r: r.id or 0)
        for key, group in sorted(groups.items())
        if len(group) > 1
    }


class ImportService:
    """Service for merging imported transactions into the ledger."""

    def __init__(self, db: "Database"):
        """Initialize import service.

        Args:
            db: Database instance
        """
        self.db = db

    def import_records(self, records: Iterable[IncomingRecord]) -> ImportSummary:
        """Resolve and persist a batch of incoming records, in order.

        Args:
            records: Incoming records in import order

        Returns:
            ImportSummary with new/updated/duplicate counts and errors.
            A failure writing one record is recorded and the batch continues.
        """
        index = LedgerIndex(self.db.fetch_all_transactions())
        summary = ImportSummary()

        for position, incoming in enumerate(records, start=1):
            label = incoming.sequence_number or f"#{position}"
            decision = resolve(incoming, index)
            summary.decisions.append((label, decision))

            if decision.disposition == Disposition.DUPLICATE:
                summary.duplicates += 1
                logger.debug("Duplicate %s: %s", label, decision.reason)
                continue

            try:
                self._persist(incoming, decision, index)
            except Exception as e:
                error = PersistenceError(f"Record {label}: {e}", sequence_number=incoming.sequence_number)
                summary.errors.append(str(error))
                logger.warning("Could not persist record %s: %s", label, e)
                continue

            if decision.disposition == Disposition.NEW:
                summary.new += 1
            else:
                summary.updated += 1
                logger.info("Updated record %s: %s", decision.existing_id, decision.reason)

        logger.info(
            "Import finished: %d new, %d updated, %d duplicates, %d errors",
            summary.new,
            summary.updated,
            summary.duplicates,
            summary.error_count,
        )
        return summary

    def _persist(self, incoming: IncomingRecord, decision: ImportDecision, index: LedgerIndex) -> None:
        if decision.disposition == Disposition.NEW:
            record = record_from_incoming(replace(incoming, dedup_hash=decision.updates["dedup_hash"]))
            record_id = self.db.insert_transaction(record)
            index.add(replace(record, id=record_id))
            return

        self.db.update_transaction(decision.existing_id, **decision.updates)
        index.apply_update(decision.existing_id, decision.updates)

    def find_duplicates(self) -> dict[str, list[TransactionRecord]]:
        """Return ledger records grouped by shared sequence number."""
        return find_duplicate_groups(self.db.fetch_all_transactions())
