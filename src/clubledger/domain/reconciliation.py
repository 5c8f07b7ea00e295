"""Matching pass over the ledger and application of automatic matches."""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Optional

from clubledger.domain.config import MatcherConfig
from clubledger.domain.entities import EntityType, MatchedBy
from clubledger.domain.errors import DomainError
from clubledger.domain.links import EXPENSE_REIMBURSED, REGISTRATION_PAID, LinkService
from clubledger.domain.matching import EntityMatcher, MatchProposal, MatchReport

if TYPE_CHECKING:
    from clubledger.database.base import Database

logger = logging.getLogger(__name__)

SETTLED_STATUSES = {EXPENSE_REIMBURSED, REGISTRATION_PAID}


@dataclass
class ApplyResult:
    """Outcome of applying the automatic tier of a match report."""

    applied: list[MatchProposal] = field(default_factory=list)
    skipped: list[MatchProposal] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class ReconciliationService:
    """Service for matching the ledger against club entities."""

    def __init__(self, db: "Database", config: Optional[MatcherConfig] = None):
        """Initialize reconciliation service.

        Args:
            db: Database instance
            config: Matcher configuration (defaults to MatcherConfig())
        """
        self.db = db
        self.matcher = EntityMatcher(config)
        self.links = LinkService(db)

    def run_matching(self, entity_types: Optional[Iterable[EntityType]] = None) -> MatchReport:
        """Match unlinked transactions against unlinked, unsettled candidates.

        Args:
            entity_types: Types to match (defaults to all, in enum order)

        Returns:
            Combined MatchReport for all requested types
        """
        types = list(entity_types) if entity_types else list(EntityType)
        transactions = self.db.fetch_all_transactions()

        linked: dict[EntityType, set[str]] = {entity_type: set() for entity_type in EntityType}
        for transaction in transactions:
            for link in transaction.links:
                linked[link.entity_type].add(link.entity_id)

        report = MatchReport()
        for entity_type in types:
            candidates = [
                c
                for c in self.db.fetch_candidates(entity_type)
                if c.id not in linked[entity_type] and c.status not in SETTLED_STATUSES
            ]
            partial = self.matcher.match(transactions, candidates, entity_type)
            logger.info(
                "Matched %s: %d auto, %d review, %d split, %d cash",
                entity_type.value,
                len(partial.auto),
                len(partial.review),
                len(partial.split_suggestions),
                len(partial.cash_suggestions),
            )
            report.extend(partial)
        return report

    def apply_auto(self, report: MatchReport) -> ApplyResult:
        """Link the automatic-tier proposals of a report.

        Highest confidence goes first and each candidate is used at most
        once. A proposal that cannot be linked is recorded and skipped.
        """
        result = ApplyResult()
        used: set[tuple[EntityType, str]] = set()
        ordered = sorted(
            report.auto,
            key=lambda p: (-p.confidence, p.transaction_id, p.entity_type.value, p.entity_id),
        )
        for proposal in ordered:
            key = (proposal.entity_type, proposal.entity_id)
            if key in used:
                result.skipped.append(proposal)
                continue
            try:
                self.links.link(
                    proposal.transaction_id,
                    proposal.entity_type,
                    proposal.entity_id,
                    confidence=proposal.confidence,
                    matched_by=MatchedBy.AUTOMATIC,
                    notes="; ".join(proposal.reasons) or None,
                )
            except DomainError as e:
                logger.warning("Could not apply match for transaction %s: %s", proposal.transaction_id, e)
                result.errors.append(str(e))
                continue
            used.add(key)
            result.applied.append(proposal)
        return result
