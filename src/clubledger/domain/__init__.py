"""Domain models and business logic for clubledger."""

from clubledger.domain.config import MatcherConfig
from clubledger.domain.dedup import (
    Disposition,
    ImportDecision,
    ImportService,
    ImportSummary,
    LedgerIndex,
    find_duplicate_groups,
    generate_dedup_hash,
    resolve,
)
from clubledger.domain.entities import (
    CandidateEntity,
    EntityLink,
    EntityType,
    IncomingRecord,
    LinkRemoval,
    MatchedBy,
    ReconciliationStatus,
    SplitLine,
    SplitState,
    StatusInstruction,
    TransactionRecord,
)
from clubledger.domain.links import (
    LinkService,
    accept_link,
    clean_orphan_links,
    cycle_status,
    derived_status,
    propose_link,
    remove_link,
    repair_reconciliation_status,
)
from clubledger.domain.matching import EntityMatcher, MatchProposal, MatchReport, MatchTier
from clubledger.domain.reconciliation import ReconciliationService
from clubledger.domain.splitting import (
    SplitPlan,
    SplitService,
    plan_child_deletion,
    plan_split,
    remaining_amount,
    validate_split_lines,
)

__all__ = [
    "CandidateEntity",
    "Disposition",
    "EntityLink",
    "EntityMatcher",
    "EntityType",
    "ImportDecision",
    "ImportService",
    "ImportSummary",
    "IncomingRecord",
    "LedgerIndex",
    "LinkRemoval",
    "LinkService",
    "MatchProposal",
    "MatchReport",
    "MatchTier",
    "MatchedBy",
    "MatcherConfig",
    "ReconciliationService",
    "ReconciliationStatus",
    "SplitLine",
    "SplitPlan",
    "SplitService",
    "SplitState",
    "StatusInstruction",
    "TransactionRecord",
    "accept_link",
    "clean_orphan_links",
    "cycle_status",
    "derived_status",
    "find_duplicate_groups",
    "generate_dedup_hash",
    "plan_child_deletion",
    "plan_split",
    "propose_link",
    "remaining_amount",
    "remove_link",
    "repair_reconciliation_status",
    "resolve",
    "validate_split_lines",
]
