"""Split/merge state machine for ledger transactions.

A standalone transaction becomes a parent when at least two split lines
are committed against it. Its amount is then owned by the children, which
are matched and linked on their own. Committing fewer than two lines, or
deleting children until fewer than two remain, merges the parent back to
standalone.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, Iterable, Sequence

from clubledger.domain.entities import (
    ReconciliationStatus,
    SplitLine,
    SplitState,
    TransactionRecord,
)
from clubledger.domain.errors import (
    InvalidSplitTargetError,
    NotFoundError,
    PartialSplitFailureError,
    SplitValidationError,
    UnsafeMergeRejectedError,
    transaction_not_found,
)

if TYPE_CHECKING:
    from clubledger.database.base import Database

logger = logging.getLogger(__name__)

SUM_TOLERANCE = Decimal("0.01")
MAX_DESCRIPTION_LENGTH = 200
MAX_NOTES_LENGTH = 500
MIN_CHILDREN = 2


@dataclass(frozen=True)
class SplitPlan:
    """Changes needed to bring a parent and its children to a new state."""

    parent_id: int
    delete_ids: tuple[int, ...] = ()
    create: tuple[TransactionRecord, ...] = ()
    child_updates: dict[int, dict[str, Any]] = field(default_factory=dict)
    parent_updates: dict[str, Any] = field(default_factory=dict)

    @property
    def reverts(self) -> bool:
        return not self.parent_updates.get("is_parent", False)


@dataclass
class SplitResult:
    """Parent and children after a split or merge was committed."""

    parent: TransactionRecord
    children: list[TransactionRecord]
    deleted_ids: list[int]


def remaining_amount(target_amount: Decimal, lines: Iterable[SplitLine]) -> Decimal:
    """Amount of ``|target_amount|`` not yet allocated to a line."""
    return abs(target_amount) - sum((Decimal(line.amount) for line in lines), Decimal("0"))


def validate_split_lines(target_amount: Decimal, lines: Sequence[SplitLine]) -> list[str]:
    """Return every constraint violated by ``lines``; empty when valid.

    Zero or one line is always valid: it merges the parent back.
    """
    if len(lines) < MIN_CHILDREN:
        return []

    reasons = []
    amounts_valid = True
    for i, line in enumerate(lines, start=1):
        description = (line.description or "").strip()
        if not description:
            reasons.append(f"Line {i}: description is required")
        elif len(description) > MAX_DESCRIPTION_LENGTH:
            reasons.append(
                f"Line {i}: description is longer than {MAX_DESCRIPTION_LENGTH} characters"
            )
        if line.amount is None or Decimal(line.amount) <= 0:
            reasons.append(f"Line {i}: amount must be greater than 0")
            amounts_valid = False
        if line.notes and len(line.notes) > MAX_NOTES_LENGTH:
            reasons.append(f"Line {i}: notes are longer than {MAX_NOTES_LENGTH} characters")

    if amounts_valid:
        remaining = remaining_amount(target_amount, lines)
        if abs(remaining) >= SUM_TOLERANCE:
            total = abs(target_amount) - remaining
            reasons.append(
                f"Lines sum to {total:.2f} but the transaction amount is {abs(target_amount):.2f}"
            )
    return reasons


def _guard_deletion(children: Iterable[TransactionRecord], confirm: bool) -> None:
    unsafe = [child.id for child in children if child.links or child.is_reconciled]
    if unsafe and not confirm:
        raise UnsafeMergeRejectedError(unsafe)


def child_communication(parent: TransactionRecord, index: int, count: int) -> str:
    return f"{parent.communication} - Ligne {index}/{count}".lstrip(" -")


def build_child(parent: TransactionRecord, line: SplitLine, index: int, count: int) -> TransactionRecord:
    """Child record for line ``index`` (1-based) of a split into ``count`` lines."""
    magnitude = Decimal(line.amount)
    communication = child_communication(parent, index, count)
    return TransactionRecord(
        id=None,
        sequence_number=f"{parent.sequence_number}_child_{index}",
        dedup_hash=f"{parent.dedup_hash}_child_{index}" if parent.dedup_hash else None,
        execution_date=parent.execution_date,
        value_date=parent.value_date,
        amount=-magnitude if parent.amount < 0 else magnitude,
        counterparty_name=line.description.strip(),
        counterparty_iban=parent.counterparty_iban,
        communication=communication,
        account_number=parent.account_number,
        category_id=line.category_id or parent.category_id,
        account_code=line.account_code or parent.account_code,
        comment=line.notes,
        reconciliation_status=ReconciliationStatus.UNVERIFIED,
        parent_id=parent.id,
        child_index=index,
        imported_at=parent.imported_at,
    )


def plan_split(
    parent: TransactionRecord,
    lines: Sequence[SplitLine],
    existing_children: Sequence[TransactionRecord] = (),
    confirm: bool = False,
) -> SplitPlan:
    """Plan replacing the children of ``parent`` with ``lines``.

    Args:
        parent: Transaction to split (standalone or already a parent)
        lines: New split lines; fewer than two merges the parent back
        existing_children: Current children, all of which are replaced
        confirm: Allow deleting linked or reconciled children

    Raises:
        InvalidSplitTargetError: If the target is a child, or a linked or
            reconciled standalone transaction
        SplitValidationError: If the lines are invalid
        UnsafeMergeRejectedError: If a linked or reconciled child would be
            deleted without confirmation
    """
    if parent.is_child:
        raise InvalidSplitTargetError(
            f"Transaction {parent.id} is a child of {parent.parent_id} and cannot be split"
        )
    splitting = len(lines) >= MIN_CHILDREN
    if splitting and parent.split_state == SplitState.STANDALONE and parent.is_reconciled:
        raise InvalidSplitTargetError(
            f"Transaction {parent.id} is linked or reconciled; unlink it before splitting"
        )

    reasons = validate_split_lines(parent.amount, lines)
    if reasons:
        raise SplitValidationError(reasons)

    _guard_deletion(existing_children, confirm)
    delete_ids = tuple(sorted(child.id for child in existing_children))

    if not splitting:
        return SplitPlan(
            parent_id=parent.id,
            delete_ids=delete_ids,
            parent_updates={"is_parent": False, "child_count": 0},
        )

    count = len(lines)
    create = tuple(build_child(parent, line, i, count) for i, line in enumerate(lines, start=1))
    return SplitPlan(
        parent_id=parent.id,
        delete_ids=delete_ids,
        create=create,
        parent_updates={"is_parent": True, "child_count": count},
    )


def plan_child_deletion(
    parent: TransactionRecord,
    children: Sequence[TransactionRecord],
    child_id: int,
    confirm: bool = False,
) -> SplitPlan:
    """Plan deleting one child; below two children the parent merges back.

    Raises:
        NotFoundError: If ``child_id`` is not a child of ``parent``
        UnsafeMergeRejectedError: If a linked or reconciled child would be
            deleted without confirmation
    """
    target = next((child for child in children if child.id == child_id), None)
    if target is None:
        raise NotFoundError(f"Transaction {child_id} is not a child of {parent.id}")

    remaining = [child for child in children if child.id != child_id]
    if len(remaining) < MIN_CHILDREN:
        _guard_deletion(children, confirm)
        return SplitPlan(
            parent_id=parent.id,
            delete_ids=tuple(sorted(child.id for child in children)),
            parent_updates={"is_parent": False, "child_count": 0},
        )

    _guard_deletion([target], confirm)

    # Survivors are renumbered 1..N so "Ligne i/N" stays consistent
    count = len(remaining)
    ordered = sorted(remaining, key=lambda c: (c.child_index or 0, c.id))
    child_updates = {}
    for index, child in enumerate(ordered, start=1):
        communication = child_communication(parent, index, count)
        if child.child_index != index or child.communication != communication:
            child_updates[child.id] = {"child_index": index, "communication": communication}

    return SplitPlan(
        parent_id=parent.id,
        delete_ids=(child_id,),
        child_updates=child_updates,
        parent_updates={"is_parent": True, "child_count": count},
    )


class SplitService:
    """Service for committing split plans to the ledger."""

    def __init__(self, db: "Database"):
        """Initialize split service.

        Args:
            db: Database instance
        """
        self.db = db

    def _get_transaction(self, transaction_id: int) -> TransactionRecord:
        transaction = self.db.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        return transaction

    def commit_split(
        self, parent_id: int, lines: Sequence[SplitLine], confirm: bool = False
    ) -> SplitResult:
        """Replace the children of a transaction with the given lines.

        Args:
            parent_id: Transaction to split
            lines: Split lines; fewer than two merges the transaction back
            confirm: Allow deleting linked or reconciled children

        Returns:
            SplitResult with the parent and its new children

        Raises:
            NotFoundError: If the transaction does not exist
            PartialSplitFailureError: If persistence failed part way through
        """
        parent = self._get_transaction(parent_id)
        children = self.db.list_children(parent_id)
        plan = plan_split(parent, lines, children, confirm=confirm)
        return self._apply(plan)

    def delete_child(self, child_id: int, confirm: bool = False) -> SplitResult:
        """Delete one child, merging the parent back below two children.

        Raises:
            NotFoundError: If the transaction does not exist
            InvalidSplitTargetError: If the transaction is not a child
            PartialSplitFailureError: If persistence failed part way through
        """
        child = self._get_transaction(child_id)
        if not child.is_child:
            raise InvalidSplitTargetError(f"Transaction {child_id} is not a split child")
        parent = self._get_transaction(child.parent_id)
        children = self.db.list_children(parent.id)
        plan = plan_child_deletion(parent, children, child_id, confirm=confirm)
        return self._apply(plan)

    def _apply(self, plan: SplitPlan) -> SplitResult:
        steps: list[tuple[str, Callable[[], Any]]] = []
        for child_id in plan.delete_ids:
            steps.append((f"delete child {child_id}", lambda cid=child_id: self.db.delete_transaction(cid)))
        for child in plan.create:
            steps.append(
                (f"create child {child.child_index}", lambda c=child: self.db.insert_transaction(c))
            )
        for child_id, updates in plan.child_updates.items():
            steps.append(
                (
                    f"renumber child {child_id}",
                    lambda cid=child_id, u=updates: self.db.update_transaction(cid, **u),
                )
            )
        steps.append(
            (
                f"update parent {plan.parent_id}",
                lambda: self.db.update_transaction(plan.parent_id, **plan.parent_updates),
            )
        )

        completed: list[str] = []
        for name, step in steps:
            try:
                step()
            except Exception as e:
                logger.warning(
                    "Split of transaction %s failed at '%s' after %d step(s): %s",
                    plan.parent_id,
                    name,
                    len(completed),
                    e,
                )
                raise PartialSplitFailureError(plan.parent_id, completed, name, e) from e
            completed.append(name)

        if plan.reverts:
            logger.info("Transaction %s merged back to standalone", plan.parent_id)
        else:
            logger.info(
                "Transaction %s split into %d child(ren)",
                plan.parent_id,
                plan.parent_updates["child_count"],
            )

        return SplitResult(
            parent=self._get_transaction(plan.parent_id),
            children=self.db.list_children(plan.parent_id),
            deleted_ids=list(plan.delete_ids),
        )


def child_lines(children: Iterable[TransactionRecord]) -> list[SplitLine]:
    """Split lines describing existing children, in child order."""
    ordered: list[TransactionRecord] = sorted(children, key=lambda c: c.child_index or 0)
    return [
        SplitLine(
            description=child.counterparty_name,
            amount=abs(child.amount),
            category_id=child.category_id,
            account_code=child.account_code,
            notes=child.comment,
        )
        for child in ordered
    ]
