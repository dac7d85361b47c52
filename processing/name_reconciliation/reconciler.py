"""
Name Reconciler

Combines exact matching, bounded edit-distance matching and an ordered
manual override table into one reconciliation pass over two name lists.
"""

import csv
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from config.logging import logger
from config.settings import settings
from processing.name_reconciliation.matchers import (
    Corpus,
    MatchCandidate,
    MatchMethod,
    MatchOutcome,
    OutcomeKind,
    classify_candidates,
    find_unmatched,
    fuzzy_candidates,
    normalize_name,
)
from processing.name_reconciliation.overrides import (
    OverrideRule,
    OverridesLike,
    apply_overrides,
    as_rules,
)


@dataclass
class ReconcilerConfig:
    """Configuration for name reconciliation."""
    # Largest Levenshtein distance still treated as a candidate
    max_edit_distance: int = 2

    # Compare names after casefolding and collapsing whitespace
    normalize: bool = False

    # Approximate substring matching instead of whole-string distance
    partial: bool = False

    # Rewrite targets for unambiguous single fuzzy matches
    auto_accept_fuzzy: bool = True


@dataclass
class ReconciliationTable:
    """
    Rewrites to apply to the target dataset before the join.

    Holds one MatchCandidate per corrected source name. A manual candidate
    always replaces an automatic one for the same source name, and an
    automatic candidate never replaces a manual one.

    Exact candidates only align spelling (a target that matches a source
    name after normalization takes the source spelling). They are kept
    apart and applied last, on top of any manual or fuzzy rewrite.
    """
    candidates: dict[str, MatchCandidate] = field(default_factory=dict)
    spellings: dict[str, MatchCandidate] = field(default_factory=dict)

    def add(self, candidate: MatchCandidate) -> bool:
        """Add a candidate, returns False if a manual rule already owns the source name."""
        if candidate.method is MatchMethod.EXACT:
            existing = self.spellings.get(candidate.source_name)
            targets = existing.target_names if existing else ()
            merged = targets + tuple(t for t in candidate.target_names if t not in targets)
            self.spellings[candidate.source_name] = MatchCandidate(
                candidate.source_name, merged, MatchMethod.EXACT
            )
            return True

        existing = self.candidates.get(candidate.source_name)
        if existing is not None and existing.is_manual and not candidate.is_manual:
            logger.debug(
                f"Ignoring {candidate.method.value} match for '{candidate.source_name}', "
                f"manual override takes precedence"
            )
            return False
        self.candidates[candidate.source_name] = candidate
        return True

    @property
    def rewrites(self) -> dict[str, str]:
        """Literal target name -> replacement name."""
        mapping = {}
        # Manual first so an automatic rule can extend a manually rewritten name
        ordered = sorted(self.candidates.values(), key=lambda c: not c.is_manual)
        ordered.extend(self.spellings.values())
        for candidate in ordered:
            for target_name in candidate.target_names:
                mapping[target_name] = candidate.source_name
        return mapping

    def apply(self, target_names: Iterable[str]) -> tuple[str, ...]:
        rewrites = self.rewrites
        return tuple(rewrites.get(name, name) for name in target_names)

    def by_method(self, method: MatchMethod) -> list[MatchCandidate]:
        if method is MatchMethod.EXACT:
            return list(self.spellings.values())
        return [c for c in self.candidates.values() if c.method is method]

    def __len__(self) -> int:
        return len(self.candidates) + len(self.spellings)


@dataclass
class ReconciliationReport:
    """Everything one reconciliation pass produced."""
    source_corpus: Corpus
    target_corpus: Corpus
    corrected_names: tuple[str, ...]
    table: ReconciliationTable
    exact_matches: list[MatchCandidate] = field(default_factory=list)
    outcomes: dict[str, MatchOutcome] = field(default_factory=dict)
    unmatched: list[str] = field(default_factory=list)
    unmatched_targets: list[str] = field(default_factory=list)
    regressions: list[str] = field(default_factory=list)
    normalize: bool = False

    @property
    def corrected_corpus(self) -> Corpus:
        return Corpus(self.corrected_names)

    @property
    def ambiguous(self) -> list[MatchOutcome]:
        return [o for o in self.outcomes.values() if o.kind is OutcomeKind.MULTIPLE_MATCHES]

    @property
    def review_queue(self) -> list[MatchOutcome]:
        """Outcomes for source names still unmatched after all rules."""
        remaining = set(self.unmatched)
        return [o for name, o in self.outcomes.items() if name in remaining]

    def summary(self) -> dict:
        key = normalize_name if self.normalize else str
        source_keys = {key(name) for name in self.source_corpus}
        manual = self.table.by_method(MatchMethod.MANUAL_OVERRIDE)
        return {
            "source_names": len(self.source_corpus),
            "target_names": len(self.target_corpus),
            "exact_matches": len(self.exact_matches),
            "manual_rules_applied": len(manual),
            # Only replacements that actually land on a source name
            "manual_rewrites": sum(1 for c in manual if key(c.source_name) in source_keys),
            "spelling_fixes": len(self.table.by_method(MatchMethod.EXACT)),
            "fuzzy_rewrites": len(self.table.by_method(MatchMethod.FUZZY)),
            "ambiguous": len(self.ambiguous),
            "unmatched": len(self.unmatched),
            "unmatched_targets": len(self.unmatched_targets),
            "regressions": len(self.regressions),
        }


class NameReconciler:
    """
    Reconciles a source name list against a target name list.

    Resolution strategy:
    1. Apply the manual override table to the target names
    2. Exact matching finds the source names still missing
    3. Fuzzy matching looks for each missing name among the unclaimed targets
    4. Unambiguous, uncontested single matches become automatic rewrites
    5. Names equal only after normalization take the source spelling
    6. Anything left is reported, never guessed

    Usage:
        reconciler = NameReconciler(overrides=COUNTRY_OVERRIDES)
        report = reconciler.reconcile(emissions["country"], world["region"])
        world["region"] = report.table.apply(world["region"])
    """

    def __init__(
        self,
        config: Optional[ReconcilerConfig] = None,
        overrides: OverridesLike = (),
    ):
        self.config = config or ReconcilerConfig(
            max_edit_distance=settings.MAX_EDIT_DISTANCE,
            normalize=settings.NORMALIZE_NAMES,
            auto_accept_fuzzy=settings.AUTO_ACCEPT_FUZZY,
        )
        if self.config.max_edit_distance < 0:
            raise ValueError(
                f"max_edit_distance must be >= 0, got {self.config.max_edit_distance}"
            )
        self.overrides: tuple[OverrideRule, ...] = as_rules(overrides)

    def _key(self, name: str) -> str:
        return normalize_name(name) if self.config.normalize else name

    def reconcile(self, source: Iterable[str], target: Iterable[str]) -> ReconciliationReport:
        """
        Run one reconciliation pass.

        Args:
            source: Names whose spelling is authoritative (the join key)
            target: Names to be rewritten towards the source spelling

        Returns:
            ReconciliationReport with the corrected target names, the
            rewrite table and the residual unmatched names
        """
        source_corpus = Corpus.from_names(source)
        target_corpus = Corpus.from_names(target)
        source_keys = {self._key(name) for name in source_corpus}

        logger.info(
            f"Reconciling {len(source_corpus)} source names against "
            f"{len(target_corpus)} target names"
        )

        table = ReconciliationTable()

        # Source names the target already spells identically
        originals_by_key: dict[str, list[str]] = defaultdict(list)
        for name in target_corpus:
            originals_by_key[self._key(name)].append(name)
        exact_matches = [
            MatchCandidate(name, tuple(originals_by_key[self._key(name)]), MatchMethod.EXACT)
            for name in source_corpus
            if self._key(name) in originals_by_key
        ]

        # Step 1: manual overrides
        overridden = apply_overrides(target_corpus.names, self.overrides)
        manual_targets: dict[str, list[str]] = defaultdict(list)
        for original, rewritten in zip(target_corpus, overridden):
            if original != rewritten:
                manual_targets[rewritten].append(original)

        # Step 2: exact matching
        overridden_corpus = Corpus(overridden)
        missing = find_unmatched(source_corpus, overridden_corpus, normalize=self.config.normalize)

        # Step 3: fuzzy matching against targets no source name already owns
        pool = [name for name in overridden_corpus if self._key(name) not in source_keys]
        outcomes: dict[str, MatchOutcome] = {}
        claims: dict[str, list[str]] = defaultdict(list)

        for name in missing:
            outcome = classify_candidates(
                name,
                fuzzy_candidates(
                    name,
                    pool,
                    self.config.max_edit_distance,
                    normalize=self.config.normalize,
                    partial=self.config.partial,
                ),
            )
            outcomes[name] = outcome
            logger.debug(f"Fuzzy search: {outcome}")

            # Every candidate counts as a claim, so a target another name also
            # wants (even ambiguously) is never taken automatically
            for candidate_name in outcome.candidates:
                claims[candidate_name].append(name)
            if outcome.kind is OutcomeKind.MULTIPLE_MATCHES:
                logger.warning(
                    f"Ambiguous match for '{name}': {list(outcome.candidates)} - needs a manual rule"
                )

        # Step 4: accept unambiguous fuzzy matches
        if self.config.auto_accept_fuzzy:
            for candidate_name, claimants in claims.items():
                if len(claimants) > 1:
                    logger.warning(
                        f"Target '{candidate_name}' is claimed by several source names "
                        f"{claimants} - leaving for review"
                    )
                    continue
                if not outcomes[claimants[0]].is_match:
                    continue
                originals = tuple(
                    original
                    for original, rewritten in zip(target_corpus, overridden)
                    if rewritten == candidate_name
                )
                table.add(MatchCandidate(claimants[0], originals, MatchMethod.FUZZY))

        # Step 5: manual candidates, these win for their source name
        for replacement, originals in manual_targets.items():
            table.add(MatchCandidate(replacement, tuple(originals), MatchMethod.MANUAL_OVERRIDE))

        # Step 6: targets equal to a source name only after normalization take
        # the source spelling, otherwise the literal join would miss them
        source_by_key = {self._key(name): name for name in source_corpus}
        spelled: dict[str, list[str]] = defaultdict(list)
        for original, rewritten in zip(target_corpus, table.apply(target_corpus.names)):
            source_name = source_by_key.get(self._key(rewritten))
            if source_name is not None and rewritten != source_name:
                spelled[source_name].append(original)
        for source_name, originals in spelled.items():
            table.add(MatchCandidate(source_name, tuple(originals), MatchMethod.EXACT))

        # Step 7: corrected names and residual report
        corrected = table.apply(target_corpus.names)
        unmatched = find_unmatched(source_corpus, corrected, normalize=self.config.normalize)
        unmatched_targets = [
            name for name in Corpus(corrected) if self._key(name) not in source_keys
        ]
        regressions = [
            original
            for original, rewritten in zip(target_corpus, corrected)
            if self._key(original) in source_keys and self._key(rewritten) not in source_keys
        ]

        before = sum(1 for name in target_corpus if self._key(name) not in source_keys)
        if regressions or len(unmatched_targets) > before:
            logger.warning(
                f"Rewrites broke {len(regressions)} previously matching target names: {regressions}"
            )

        report = ReconciliationReport(
            source_corpus=source_corpus,
            target_corpus=target_corpus,
            corrected_names=corrected,
            table=table,
            exact_matches=exact_matches,
            outcomes=outcomes,
            unmatched=unmatched,
            unmatched_targets=unmatched_targets,
            regressions=regressions,
            normalize=self.config.normalize,
        )

        summary = report.summary()
        logger.info(
            f"Reconciliation complete: {summary['manual_rewrites']} manual, "
            f"{summary['fuzzy_rewrites']} fuzzy, {summary['ambiguous']} ambiguous, "
            f"{summary['unmatched']} source names still unmatched"
        )
        if unmatched:
            logger.info(f"Unmatched source names: {unmatched}")

        return report

    def export_review_queue(
        self,
        report: ReconciliationReport,
        path: Optional[Path] = None,
    ) -> Path:
        """
        Export unresolved source names to CSV for manual review.

        Columns:
        - source_name, outcome, candidates (semicolon separated)
        - suggested_action (accept/review/drop)
        - decision: left empty, fill with target name(s) to map onto source_name

        Returns:
            Path to the created CSV file
        """
        if path is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            path = Path(settings.OUTPUT_DIR) / f"review_queue_{timestamp}.csv"

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        queue = report.review_queue

        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(["source_name", "outcome", "candidates", "suggested_action", "decision"])

            for outcome in queue:
                if outcome.kind is OutcomeKind.SINGLE_MATCH:
                    suggested = "accept"
                elif outcome.kind is OutcomeKind.MULTIPLE_MATCHES:
                    suggested = "review"
                else:
                    suggested = "drop"
                writer.writerow([
                    outcome.name,
                    outcome.kind.value,
                    "; ".join(outcome.candidates),
                    suggested,
                    "",  # Decision column for manual input
                ])

        logger.info(f"Exported {len(queue)} items to {path}")
        return path

    @staticmethod
    def load_review_decisions(csv_path: Path) -> tuple[OverrideRule, ...]:
        """
        Turn a reviewed queue back into override rules.

        Each semicolon separated name in the decision column becomes an exact
        rule mapping that target name onto the row's source_name. Rows without a
        decision are skipped.
        """
        rules = []
        skipped = 0

        with open(csv_path, "r", newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)

            for row in reader:
                decision = (row.get("decision") or "").strip()
                if not decision:
                    skipped += 1
                    continue

                for target_name in decision.split(";"):
                    target_name = target_name.strip()
                    if target_name:
                        rules.append(OverrideRule(target_name, row["source_name"], exact=True))

        logger.info(f"Loaded {len(rules)} review decisions ({skipped} rows without decision)")
        return tuple(rules)
