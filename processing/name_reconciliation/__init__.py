"""
Name Reconciliation Module

Reconciles entity names between two datasets before a join:
- Exact matching (set difference on names)
- Fuzzy name matching (rapidfuzz Levenshtein distance)
- Ordered manual override rules
"""

from processing.name_reconciliation.reconciler import (
    NameReconciler,
    ReconcilerConfig,
    ReconciliationReport,
    ReconciliationTable,
)
from processing.name_reconciliation.matchers import (
    Corpus,
    MatchCandidate,
    MatchMethod,
    MatchOutcome,
    OutcomeKind,
    classify_candidates,
    find_unmatched,
    fuzzy_candidates,
)
from processing.name_reconciliation.overrides import (
    COUNTRY_OVERRIDES,
    OverrideRule,
    apply_overrides,
    is_idempotent,
    load_overrides,
)

__all__ = [
    "NameReconciler",
    "ReconcilerConfig",
    "ReconciliationReport",
    "ReconciliationTable",
    "Corpus",
    "MatchCandidate",
    "MatchMethod",
    "MatchOutcome",
    "OutcomeKind",
    "classify_candidates",
    "find_unmatched",
    "fuzzy_candidates",
    "COUNTRY_OVERRIDES",
    "OverrideRule",
    "apply_overrides",
    "is_idempotent",
    "load_overrides",
]
