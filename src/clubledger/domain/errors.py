"""Shared domain error messages and error types."""

from typing import Optional, Sequence


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class DependencyError(DomainError):
    """Operation blocked due to dependent domain data."""


class DuplicateLinkError(ConflictError):
    """The transaction is already linked to this entity."""


class InvalidSplitTargetError(ValidationError):
    """The transaction is in a state that forbids the requested split or link."""


class LinkStateError(ValidationError):
    """Manual reconciliation status change on a transaction that has links."""


class SplitValidationError(ValidationError):
    """One or more split lines violate the split constraints."""

    def __init__(self, reasons: Sequence[str]):
        self.reasons = list(reasons)
        super().__init__("Split rejected: " + "; ".join(self.reasons))


class UnsafeMergeRejectedError(DependencyError):
    """Deleting children would lose links or reconciliation history."""

    def __init__(self, child_ids: Sequence[int]):
        self.child_ids = list(child_ids)
        super().__init__(unsafe_merge(self.child_ids))


class PartialSplitFailureError(DomainError):
    """A split or merge stopped part way through its persistence steps."""

    def __init__(self, parent_id: int, completed: Sequence[str], failed_step: str, cause: Exception):
        self.parent_id = parent_id
        self.completed = list(completed)
        self.failed_step = failed_step
        self.cause = cause
        super().__init__(
            f"Split of transaction {parent_id} failed at '{failed_step}' "
            f"after {len(self.completed)} completed step(s): {cause}"
        )


class PersistenceError(DomainError):
    """Writing one record to the ledger failed."""

    def __init__(self, message: str, sequence_number: Optional[str] = None):
        self.sequence_number = sequence_number
        super().__init__(message)


def transaction_not_found(transaction_id: int) -> str:
    """Return message for missing transaction."""
    return f"Transaction {transaction_id} not found"


def candidate_not_found(entity_type: str, entity_id: str) -> str:
    """Return message for missing candidate entity."""
    return f"{entity_type.capitalize()} '{entity_id}' not found"


def duplicate_link(transaction_id: Optional[int], entity_type: str, entity_id: str) -> str:
    """Return message for a link that already exists."""
    return f"Transaction {transaction_id} is already linked to {entity_type} '{entity_id}'"


def link_not_found(transaction_id: Optional[int], entity_id: str) -> str:
    """Return message for unlinking an entity that is not linked."""
    return f"Transaction {transaction_id} has no link to '{entity_id}'"


def parent_not_linkable(transaction_id: Optional[int]) -> str:
    """Return message when linking a split parent."""
    return (
        f"Transaction {transaction_id} is split into child lines. "
        "Link the child transactions instead."
    )


def unsafe_merge(child_ids: Sequence[int]) -> str:
    """Return message when children with links would be deleted."""
    ids = ", ".join(str(child_id) for child_id in child_ids)
    return (
        f"Child transaction{'s' if len(child_ids) != 1 else ''} {ids} "
        f"{'are' if len(child_ids) != 1 else 'is'} linked or reconciled. "
        "Confirm to delete them and lose their reconciliation history."
    )
