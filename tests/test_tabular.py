#!/usr/bin/env python3
"""
Tests for the pandas side of the reconciliation pipeline.
"""

import importlib.util
import sys
from pathlib import Path

import pandas as pd
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from processing.name_reconciliation import NameReconciler, ReconcilerConfig
from processing.tabular import corpus_from_column, join_on_names, load_table, rewrite_column


def make_emissions() -> pd.DataFrame:
    return pd.DataFrame({
        "country": ["Antigua & Barbuda", "United States", "European Union"],
        "ghg_mt": [0.8, 6343.8, 4054.4],
    })


def make_world() -> pd.DataFrame:
    # One row per polygon vertex group, names repeat
    return pd.DataFrame({
        "region": ["Antigua", "Barbuda", "USA", "USA", "Greenland", None],
        "group": [1, 2, 3, 4, 5, 6],
    })


def reconcile(emissions: pd.DataFrame, world: pd.DataFrame):
    reconciler = NameReconciler(
        ReconcilerConfig(max_edit_distance=0),
        overrides={
            "Antigua": "Antigua & Barbuda",
            "Barbuda": "Antigua & Barbuda",
            "USA": "United States",
        },
    )
    return reconciler.reconcile(
        corpus_from_column(emissions, "country"),
        corpus_from_column(world, "region"),
    )


def test_corpus_from_column():
    corpus = corpus_from_column(make_world(), "region")
    assert corpus.names == ("Antigua", "Barbuda", "USA", "Greenland")
    print("✓ Column corpus skips missing values and repeats")


def test_rewrite_column():
    emissions, world = make_emissions(), make_world()
    report = reconcile(emissions, world)

    rewritten = rewrite_column(world, "region", report)
    assert rewritten["region"].tolist()[:5] == [
        "Antigua & Barbuda", "Antigua & Barbuda", "United States", "United States", "Greenland",
    ]
    assert pd.isna(rewritten["region"].iloc[5])
    assert world["region"].iloc[0] == "Antigua", "input frame must not be mutated"
    assert report.unmatched == ["European Union"]
    print("✓ Name column rewritten through the table")


def test_join_on_names():
    emissions, world = make_emissions(), make_world()
    report = reconcile(emissions, world)
    rewritten = rewrite_column(world, "region", report)

    left = join_on_names(emissions, rewritten, "country", "region", how="left")
    assert len(left) == 6
    assert left.loc[left["region"] == "United States", "ghg_mt"].tolist() == [6343.8, 6343.8]
    assert left.loc[left["region"] == "Greenland", "ghg_mt"].isna().all()
    print("✓ Left join keeps unmatched polygons with missing values")

    inner = join_on_names(emissions, rewritten, "country", "region", how="inner")
    assert len(inner) == 4
    assert "European Union" not in inner["country"].tolist()
    print("✓ Inner join drops unmatched rows")

    with pytest.raises(ValueError):
        join_on_names(emissions, rewritten, "country", "region", how="cross")


def test_normalized_reconcile_joins():
    emissions = pd.DataFrame({"country": ["United States", "France"], "ghg_mt": [6343.8, 458.0]})
    world = pd.DataFrame({"region": ["united  states", "FRANCE", "Greenland"], "group": [1, 2, 3]})

    reconciler = NameReconciler(ReconcilerConfig(max_edit_distance=0, normalize=True))
    report = reconciler.reconcile(
        corpus_from_column(emissions, "country"),
        corpus_from_column(world, "region"),
    )
    assert report.unmatched == []

    rewritten = rewrite_column(world, "region", report)
    inner = join_on_names(emissions, rewritten, "country", "region", how="inner")
    assert sorted(inner["country"].tolist()) == ["France", "United States"]
    assert len(inner) == 2
    print("✓ Names matched after normalization survive the literal join")


def test_normalize_flag_can_be_turned_off():
    script = Path(__file__).parent.parent / "scripts" / "run_reconciliation.py"
    spec = importlib.util.spec_from_file_location("run_reconciliation", script)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    build_parser = module.build_parser

    required = ["--source", "s.csv", "--source-column", "c", "--target", "t.csv", "--target-column", "r"]
    parser = build_parser()
    assert parser.parse_args(required + ["--normalize"]).normalize is True
    assert parser.parse_args(required + ["--no-normalize"]).normalize is False
    print("✓ --no-normalize overrides the configured default")


def test_load_table(tmp_path):
    path = tmp_path / "emissions.csv"
    make_emissions().to_csv(path, index=False)

    df = load_table(path, "country")
    assert df["country"].tolist() == ["Antigua & Barbuda", "United States", "European Union"]

    with pytest.raises(KeyError):
        load_table(path, "Country Name")
    print("✓ Table loading checks the name column")


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
