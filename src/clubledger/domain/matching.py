"""Scoring of bank transactions against candidate club entities."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from clubledger.domain.config import MatcherConfig
from clubledger.domain.entities import CandidateEntity, EntityType, SplitState, TransactionRecord
from clubledger.domain.similarity import (
    amount_proximity,
    date_proximity,
    keyword_overlap,
    multiple_proximity,
    name_similarity,
)

logger = logging.getLogger(__name__)

MIN_SPLIT_COUNT = 2


class MatchTier(str, Enum):
    """How a proposal should be handled."""

    AUTO = "auto"
    REVIEW = "review"
    SPLIT = "split"
    CASH = "cash"


@dataclass(frozen=True)
class PairScore:
    """Score of one transaction/candidate pair with its components."""

    confidence: int
    amount: float
    date: Optional[float]
    name: Optional[float]
    keyword: bool
    bulk: bool
    reasons: tuple[str, ...]


@dataclass(frozen=True)
class MatchProposal:
    """A proposed link between a transaction and a candidate entity.

    Cash suggestions carry no transaction; split suggestions carry the
    number of child lines the transaction probably covers.
    """

    transaction_id: Optional[int]
    entity_type: EntityType
    entity_id: str
    entity_name: str
    confidence: int
    tier: MatchTier
    reasons: tuple[str, ...] = ()
    suggested_split_count: Optional[int] = None


@dataclass
class MatchReport:
    """Proposals from one matching pass, grouped by tier."""

    auto: list[MatchProposal] = field(default_factory=list)
    review: list[MatchProposal] = field(default_factory=list)
    split_suggestions: list[MatchProposal] = field(default_factory=list)
    cash_suggestions: list[MatchProposal] = field(default_factory=list)

    def extend(self, other: "MatchReport") -> None:
        self.auto.extend(other.auto)
        self.review.extend(other.review)
        self.split_suggestions.extend(other.split_suggestions)
        self.cash_suggestions.extend(other.cash_suggestions)
        self.sort()

    def sort(self) -> None:
        def key(p: MatchProposal):
            return (p.transaction_id or 0, p.entity_type.value, p.entity_id)

        self.auto.sort(key=key)
        self.review.sort(key=key)
        self.split_suggestions.sort(key=key)
        self.cash_suggestions.sort(key=key)

    @property
    def total(self) -> int:
        return (
            len(self.auto)
            + len(self.review)
            + len(self.split_suggestions)
            + len(self.cash_suggestions)
        )


def direction_allows(entity_type: EntityType, amount: Decimal) -> bool:
    """Expense claims are paid out, registrations are paid in, events go both ways."""
    if entity_type == EntityType.EXPENSE:
        return amount < 0
    if entity_type == EntityType.REGISTRATION:
        return amount > 0
    return amount != 0


def is_matchable(transaction: TransactionRecord) -> bool:
    """True for transactions that still need a link."""
    if transaction.id is None or transaction.split_state == SplitState.PARENT:
        return False
    return not transaction.is_reconciled


class EntityMatcher:
    """Scores transactions against candidates of one entity type."""

    def __init__(self, config: Optional[MatcherConfig] = None):
        self.config = config or MatcherConfig()

    def tier_for(self, confidence: int) -> Optional[MatchTier]:
        if confidence < max(self.config.review_threshold, self.config.quality_floor):
            return None
        if confidence >= self.config.auto_threshold:
            return MatchTier.AUTO
        return MatchTier.REVIEW

    def score_pair(self, transaction: TransactionRecord, candidate: CandidateEntity) -> PairScore:
        """Score one transaction against one candidate.

        Components that the candidate cannot provide (no date, no
        counterpart name) are left out and the remaining weights are
        rescaled so they still sum to one.
        """
        config = self.config
        magnitude = abs(transaction.amount)
        expected = abs(candidate.expected_amount)
        reasons = []

        bulk = False
        if expected > 0:
            ratio = float(magnitude / expected)
            bulk = config.split_ratio_threshold <= ratio <= config.split_ratio_max
        if bulk:
            amount_score = multiple_proximity(magnitude, expected)
            reasons.append(
                f"Amount {magnitude:.2f} is about {round(ratio)} x {expected:.2f}"
            )
        else:
            amount_score = amount_proximity(
                magnitude,
                expected,
                config.amount_full_tolerance,
                config.amount_partial_tolerance,
            )
            reasons.append(f"Amount {magnitude:.2f} vs expected {expected:.2f} ({amount_score:.0%})")

        weighted = [(config.amount_weight, amount_score)]

        date_score = None
        if candidate.expected_date is not None:
            date_score = date_proximity(
                transaction.execution_date,
                candidate.expected_date,
                config.date_window_days,
                candidate.date_end,
            )
            weighted.append((config.date_weight, date_score))
            reasons.append(f"Date {transaction.execution_date} vs {candidate.expected_date} ({date_score:.0%})")

        name_score = None
        if candidate.counterpart_name:
            name_score = max(
                name_similarity(text, target)
                for text in (transaction.counterparty_name, transaction.communication)
                for target in (candidate.counterpart_name, candidate.name)
            )
            weighted.append((config.name_weight, name_score))
            reasons.append(f"Name similarity {name_score:.0%}")

        total_weight = sum(weight for weight, _ in weighted)
        base = sum(weight * score for weight, score in weighted) / total_weight if total_weight else 0.0

        memo = " ".join(p for p in (transaction.communication, transaction.counterparty_name) if p)
        keyword = keyword_overlap(memo, candidate.name)
        points = 100.0 * base
        if keyword:
            points += config.keyword_bonus
            reasons.append(f"Memo mentions '{candidate.name}'")

        confidence = int(round(min(100.0, max(0.0, points))))
        return PairScore(
            confidence=confidence,
            amount=amount_score,
            date=date_score,
            name=name_score,
            keyword=keyword,
            bulk=bulk,
            reasons=tuple(reasons),
        )

    def match(
        self,
        transactions: Iterable[TransactionRecord],
        candidates: Iterable[CandidateEntity],
        entity_type: EntityType,
    ) -> MatchReport:
        """Propose the best candidate of ``entity_type`` for each transaction.

        Args:
            transactions: Ledger records; linked, reconciled and split
                parents are skipped
            candidates: Unlinked candidates; other entity types are ignored
            entity_type: Entity type matched in this pass

        Returns:
            MatchReport ordered by transaction id. Equal confidence goes to
            the lowest candidate id. A bulk pair becomes a split suggestion
            only when no direct candidate reaches the floor.
        """
        pool = sorted(
            (c for c in candidates if c.entity_type == entity_type),
            key=lambda c: c.id,
        )
        eligible = sorted(
            (t for t in transactions if is_matchable(t)),
            key=lambda t: t.id,
        )
        report = MatchReport()

        positive = [abs(c.expected_amount) for c in pool if c.expected_amount != 0]
        average = sum(positive, Decimal("0")) / len(positive) if positive else None

        best_for_candidate: dict[str, int] = {c.id: -1 for c in pool}

        for transaction in eligible:
            if not direction_allows(entity_type, transaction.amount):
                continue
            # Direct and bulk pairs compete separately; bulk is the fallback
            best_direct: Optional[tuple[CandidateEntity, PairScore]] = None
            best_bulk: Optional[tuple[CandidateEntity, PairScore]] = None
            for candidate in pool:
                score = self.score_pair(transaction, candidate)
                logger.debug(
                    "Transaction %s vs %s %s: %d",
                    transaction.id,
                    entity_type.value,
                    candidate.id,
                    score.confidence,
                )
                if score.confidence > best_for_candidate[candidate.id]:
                    best_for_candidate[candidate.id] = score.confidence
                if score.bulk:
                    if best_bulk is None or score.confidence > best_bulk[1].confidence:
                        best_bulk = (candidate, score)
                elif best_direct is None or score.confidence > best_direct[1].confidence:
                    best_direct = (candidate, score)

            direct_tier = self.tier_for(best_direct[1].confidence) if best_direct else None
            if direct_tier is not None:
                candidate, score = best_direct
                proposal = MatchProposal(
                    transaction_id=transaction.id,
                    entity_type=entity_type,
                    entity_id=candidate.id,
                    entity_name=candidate.name,
                    confidence=score.confidence,
                    tier=direct_tier,
                    reasons=score.reasons,
                )
                if direct_tier == MatchTier.AUTO:
                    report.auto.append(proposal)
                else:
                    report.review.append(proposal)
                continue

            if best_bulk is None or self.tier_for(best_bulk[1].confidence) is None:
                continue
            count = int(round(abs(transaction.amount) / average)) if average else 0
            if count < MIN_SPLIT_COUNT:
                continue
            candidate, score = best_bulk
            report.split_suggestions.append(
                MatchProposal(
                    transaction_id=transaction.id,
                    entity_type=entity_type,
                    entity_id=candidate.id,
                    entity_name=candidate.name,
                    confidence=score.confidence,
                    tier=MatchTier.SPLIT,
                    reasons=score.reasons,
                    suggested_split_count=count,
                )
            )

        for candidate in pool:
            if not candidate.cash_expected:
                continue
            best_score = max(best_for_candidate[candidate.id], 0)
            if best_score < self.config.quality_floor:
                report.cash_suggestions.append(
                    MatchProposal(
                        transaction_id=None,
                        entity_type=entity_type,
                        entity_id=candidate.id,
                        entity_name=candidate.name,
                        confidence=best_score,
                        tier=MatchTier.CASH,
                        reasons=("No bank transaction found; payment expected in cash",),
                    )
                )

        report.sort()
        return report
