"""Abstract database interface."""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Optional, Sequence

from clubledger.domain.entities import (
    CandidateEntity,
    EntityLink,
    EntityType,
    TransactionRecord,
)


class Database(ABC):
    """Abstract database interface for clubledger.

    Groups the ledger reader and writer, the candidate provider and the
    entity status sink used by the domain services.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Ledger reader
    @abstractmethod
    def fetch_all_transactions(self) -> list[TransactionRecord]:
        """List every ledger transaction, children included, ordered by ID."""
        pass

    @abstractmethod
    def get_transaction(self, transaction_id: int) -> Optional[TransactionRecord]:
        """Get transaction by ID."""
        pass

    @abstractmethod
    def list_children(self, parent_id: int) -> list[TransactionRecord]:
        """List the split children of a transaction, ordered by child index."""
        pass

    @abstractmethod
    def list_transactions(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        unreconciled_only: bool = False,
        limit: Optional[int] = None,
    ) -> list[TransactionRecord]:
        """List transactions with optional filters, newest first."""
        pass

    # Ledger writer
    @abstractmethod
    def insert_transaction(self, record: TransactionRecord) -> int:
        """Insert a transaction (its ID is ignored). Returns transaction ID."""
        pass

    @abstractmethod
    def update_transaction(self, transaction_id: int, **fields: Any) -> None:
        """Update the given transaction fields."""
        pass

    @abstractmethod
    def delete_transaction(self, transaction_id: int) -> None:
        """Delete a transaction and its links."""
        pass

    @abstractmethod
    def set_links(self, transaction_id: int, links: Sequence[EntityLink]) -> None:
        """Replace the links of a transaction."""
        pass

    # Candidate provider
    @abstractmethod
    def create_candidate(
        self,
        entity_type: EntityType,
        entity_id: str,
        name: str,
        expected_amount: Any,
        expected_date: Any = None,
        date_end: Any = None,
        description: str = "",
        counterpart_name: str = "",
        cash_expected: bool = False,
        status: Optional[str] = None,
    ) -> str:
        """Create a candidate entity. Returns its ID."""
        pass

    @abstractmethod
    def get_candidate(self, entity_type: EntityType, entity_id: str) -> Optional[CandidateEntity]:
        """Get candidate by type and ID."""
        pass

    @abstractmethod
    def fetch_candidates(self, entity_type: Optional[EntityType] = None) -> list[CandidateEntity]:
        """List candidates, optionally filtered by type, ordered by ID."""
        pass

    # Entity status sink
    @abstractmethod
    def update_candidate_status(self, entity_type: EntityType, entity_id: str, status: str) -> None:
        """Set the status of a candidate entity."""
        pass
