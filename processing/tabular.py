"""
Tabular helpers around the name reconciler.

Loading, column rewriting and the final join are plain pandas; this module
only moves names between DataFrames and the reconciler.
"""

from pathlib import Path
from typing import Union

import pandas as pd

from config.logging import logger
from processing.name_reconciliation import Corpus, ReconciliationReport


def load_table(path: Union[str, Path], name_column: str) -> pd.DataFrame:
    """
    Read a CSV table and check it has the name column.

    Raises:
        KeyError: if name_column is not in the table
    """
    df = pd.read_csv(path)
    if name_column not in df.columns:
        raise KeyError(f"Column '{name_column}' not found in {path} (columns: {list(df.columns)})")
    logger.info(f"Loaded {len(df)} rows from {path}")
    return df


def corpus_from_column(df: pd.DataFrame, column: str) -> Corpus:
    """Unique, non-missing names from a column, in row order."""
    return Corpus.from_names(df[column].dropna().astype(str))


def rewrite_column(df: pd.DataFrame, column: str, report: ReconciliationReport) -> pd.DataFrame:
    """Return a copy of df with the column rewritten through the reconciliation table."""
    rewrites = report.table.rewrites
    out = df.copy()
    out[column] = out[column].map(lambda value: rewrites.get(value, value) if isinstance(value, str) else value)

    present = df[column].notna()
    changed = int((out.loc[present, column] != df.loc[present, column]).sum())
    logger.info(f"Rewrote {changed} rows in column '{column}'")
    return out


def join_on_names(
    source_df: pd.DataFrame,
    target_df: pd.DataFrame,
    source_column: str,
    target_column: str,
    how: str = "left",
) -> pd.DataFrame:
    """
    Join the already rewritten target table onto the source table.

    The join type is the caller's choice: "left" keeps every target row
    (unmatched ones get missing values), "inner" drops them.
    """
    if how not in ("left", "right", "inner", "outer"):
        raise ValueError(f"Unsupported join type: {how}")

    joined = target_df.merge(
        source_df,
        how=how,
        left_on=target_column,
        right_on=source_column,
        suffixes=("", "_source"),
    )
    logger.info(f"{how} join produced {len(joined)} rows")
    return joined
