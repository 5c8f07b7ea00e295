"""SQLAlchemy models for clubledger database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


class Transaction(Base):
    """Ledger transaction model, split children included."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    sequence_number = Column(String, nullable=False, index=True)
    dedup_hash = Column(String, nullable=True, index=True)
    execution_date = Column(Date, nullable=True)
    value_date = Column(Date, nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    counterparty_name = Column(String, default="", nullable=False)
    counterparty_iban = Column(String, nullable=True)
    communication = Column(String, default="", nullable=False)
    account_number = Column(String, nullable=True)
    category_id = Column(String, nullable=True)
    account_code = Column(String, nullable=True)
    comment = Column(String, nullable=True)
    reconciliation_status = Column(String, default="unverified", nullable=False)
    parent_id = Column(Integer, ForeignKey("transactions.id"), nullable=True, index=True)
    child_index = Column(Integer, nullable=True)
    is_parent = Column(Boolean, default=False, nullable=False)
    child_count = Column(Integer, default=0, nullable=False)
    imported_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    links = relationship(
        "EntityLink",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="EntityLink.id",
    )


class EntityLink(Base):
    """Link between a transaction and a club entity.

    One (entity_type, entity_id) pair per transaction; checked on insert.
    """

    __tablename__ = "entity_links"

    id = Column(Integer, primary_key=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False, index=True)
    entity_type = Column(String, nullable=False)
    entity_id = Column(String, nullable=False)
    entity_name = Column(String, nullable=False)
    confidence = Column(Integer, nullable=False)
    matched_at = Column(DateTime, nullable=False)
    matched_by = Column(String, nullable=False)
    notes = Column(String, nullable=True)

    # Relationships
    transaction = relationship("Transaction", back_populates="links")


class Candidate(Base):
    """Event, expense claim or registration available for matching."""

    __tablename__ = "candidates"

    entity_type = Column(String, primary_key=True)
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    expected_amount = Column(Numeric(12, 2), nullable=False)
    expected_date = Column(Date, nullable=True)
    date_end = Column(Date, nullable=True)
    description = Column(String, default="", nullable=False)
    counterpart_name = Column(String, default="", nullable=False)
    cash_expected = Column(Boolean, default=False, nullable=False)
    status = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
