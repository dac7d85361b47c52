#!/usr/bin/env python3
"""
Reconcile country names between an emissions table and a map polygon table,
then join them.

The emissions names are authoritative; the map names are rewritten through
the built-in override table, any extra override file, and unambiguous fuzzy
matches before the join.

Usage:
    python scripts/run_reconciliation.py --source emissions.csv --source-column Country \\
        --target world.csv --target-column region
    python scripts/run_reconciliation.py ... --max-distance 3 --how inner --output joined.csv
    python scripts/run_reconciliation.py ... --overrides my_rules.csv --no-auto-fuzzy
    python scripts/run_reconciliation.py ... --decisions data/review_queue_20260101_120000.csv
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import settings
from processing.name_reconciliation import (
    COUNTRY_OVERRIDES,
    NameReconciler,
    ReconcilerConfig,
    load_overrides,
)
from processing.tabular import (
    corpus_from_column,
    join_on_names,
    load_table,
    rewrite_column,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reconcile country names between two tables before joining them"
    )
    parser.add_argument("--source", type=Path, required=True, help="CSV with authoritative names")
    parser.add_argument("--source-column", required=True, help="Name column in the source CSV")
    parser.add_argument("--target", type=Path, required=True, help="CSV whose names get rewritten")
    parser.add_argument("--target-column", required=True, help="Name column in the target CSV")
    parser.add_argument(
        "--max-distance",
        type=int,
        default=settings.MAX_EDIT_DISTANCE,
        help=f"Maximum edit distance for fuzzy matches (default: {settings.MAX_EDIT_DISTANCE})",
    )
    parser.add_argument(
        "--overrides",
        type=Path,
        default=Path(settings.OVERRIDES_PATH) if settings.OVERRIDES_PATH else None,
        help="CSV of pattern,replacement rules applied after the built-in table",
    )
    parser.add_argument(
        "--decisions",
        type=Path,
        help="Reviewed review-queue CSV whose decisions become exact override rules",
    )
    parser.add_argument(
        "--no-default-overrides",
        action="store_true",
        help="Skip the built-in country override table",
    )
    parser.add_argument(
        "--no-auto-fuzzy",
        action="store_true",
        help="Report fuzzy matches without applying them",
    )
    parser.add_argument(
        "--partial",
        action="store_true",
        help="Use approximate substring distance instead of whole-name distance",
    )
    parser.add_argument(
        "--normalize",
        action=argparse.BooleanOptionalAction,
        default=settings.NORMALIZE_NAMES,
        help="Ignore case and repeated whitespace when comparing names (--no-normalize to turn off)",
    )
    parser.add_argument(
        "--how",
        choices=["left", "inner", "outer", "right"],
        default="left",
        help="Join type, left keeps every target row (default: left)",
    )
    parser.add_argument("--output", type=Path, help="Write the joined table to this CSV")
    parser.add_argument(
        "--no-review-queue",
        action="store_true",
        help="Don't export the review queue CSV",
    )
    return parser


def main():
    args = build_parser().parse_args()

    source_df = load_table(args.source, args.source_column)
    target_df = load_table(args.target, args.target_column)

    rules = [] if args.no_default_overrides else list(COUNTRY_OVERRIDES)
    if args.overrides:
        rules.extend(load_overrides(args.overrides))
    if args.decisions:
        rules.extend(NameReconciler.load_review_decisions(args.decisions))

    config = ReconcilerConfig(
        max_edit_distance=args.max_distance,
        normalize=args.normalize,
        partial=args.partial,
        auto_accept_fuzzy=not args.no_auto_fuzzy and settings.AUTO_ACCEPT_FUZZY,
    )
    reconciler = NameReconciler(config, overrides=rules)

    print("=" * 60)
    print("NAME RECONCILIATION")
    print("=" * 60)
    print(f"Source: {args.source} [{args.source_column}]")
    print(f"Target: {args.target} [{args.target_column}]")
    print(f"Override rules: {len(reconciler.overrides)}")
    print(f"Max edit distance: {config.max_edit_distance}")
    print(f"Fuzzy rewrites: {'APPLIED' if config.auto_accept_fuzzy else 'REPORT ONLY'}")
    print("=" * 60)

    report = reconciler.reconcile(
        corpus_from_column(source_df, args.source_column),
        corpus_from_column(target_df, args.target_column),
    )

    summary = report.summary()
    print(f"\nExact matches:      {summary['exact_matches']}")
    print(f"Manual rules hit:   {summary['manual_rules_applied']}")
    print(f"Manual rewrites:    {summary['manual_rewrites']}")
    print(f"Spelling fixes:     {summary['spelling_fixes']}")
    print(f"Fuzzy rewrites:     {summary['fuzzy_rewrites']}")
    print(f"Ambiguous:          {summary['ambiguous']}")
    print(f"Regressions:        {summary['regressions']}")
    print(f"Unmatched targets:  {summary['unmatched_targets']}")
    print(f"Unmatched sources:  {summary['unmatched']}")
    for name in report.unmatched:
        outcome = report.outcomes.get(name)
        hint = f" (candidates: {', '.join(outcome.candidates)})" if outcome and outcome.candidates else ""
        print(f"  - {name}{hint}")

    if report.review_queue and not args.no_review_queue:
        csv_path = reconciler.export_review_queue(report)
        print(f"\nReview queue exported to: {csv_path}")

    if args.output:
        rewritten = rewrite_column(target_df, args.target_column, report)
        joined = join_on_names(
            source_df,
            rewritten,
            source_column=args.source_column,
            target_column=args.target_column,
            how=args.how,
        )
        args.output.parent.mkdir(parents=True, exist_ok=True)
        joined.to_csv(args.output, index=False)
        print(f"\nJoined table ({len(joined)} rows) written to: {args.output}")


if __name__ == "__main__":
    main()
