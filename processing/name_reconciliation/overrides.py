"""
Manual override rules.

An override rule rewrites every target name containing its pattern (or,
for exact rules, equal to it) to a fixed replacement. Rules run in
sequence and later rules see the output of earlier ones, so a rule table
is always an ordered tuple.
"""

import csv
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Union

from config.logging import logger


@dataclass(frozen=True)
class OverrideRule:
    """
    Pattern and the name that replaces any match wholesale.

    The pattern is a substring unless exact is set, then it must equal
    the whole name.
    """
    pattern: str
    replacement: str
    exact: bool = False

    def __post_init__(self):
        if not self.pattern:
            raise ValueError("Override pattern must be a non-empty string")

    def matches(self, name: str) -> bool:
        if self.exact:
            return name == self.pattern
        return self.pattern in name

    @property
    def is_self_matching(self) -> bool:
        """True when the pattern re-matches its own replacement."""
        return self.matches(self.replacement)


OverridesLike = Union[Mapping[str, str], Iterable[tuple[str, str]], Iterable[OverrideRule]]


# Corrections from map polygon names (Natural Earth / maps::world) to the
# World Bank style labels used by the emissions tables. Order matters.
COUNTRY_OVERRIDES: tuple[OverrideRule, ...] = (
    OverrideRule("USA", "United States"),
    OverrideRule("UK", "United Kingdom"),
    OverrideRule("Antigua", "Antigua & Barbuda"),
    OverrideRule("Barbuda", "Antigua & Barbuda"),
    OverrideRule("Trinidad", "Trinidad & Tobago"),
    OverrideRule("Tobago", "Trinidad & Tobago"),
    OverrideRule("Saint Kitts", "Saint Kitts & Nevis"),
    OverrideRule("Nevis", "Saint Kitts & Nevis"),
    OverrideRule("Saint Vincent", "Saint Vincent & Grenadines"),
    OverrideRule("Grenadines", "Saint Vincent & Grenadines"),
    # "Republic of Congo" is not a substring of the DRC name, keep DRC first anyway
    OverrideRule("Democratic Republic of the Congo", "Congo, Dem. Rep."),
    OverrideRule("Republic of Congo", "Congo, Rep."),
    OverrideRule("Ivory Coast", "Cote d'Ivoire"),
    OverrideRule("Gambia", "Gambia, The"),
    OverrideRule("Bahamas", "Bahamas, The"),
    OverrideRule("North Korea", "Korea, Dem. Rep."),
    OverrideRule("South Korea", "Korea, Rep."),
    OverrideRule("Russia", "Russian Federation"),
    OverrideRule("Macedonia", "Macedonia, FYR"),
    OverrideRule("Micronesia", "Micronesia, Fed. Sts."),
    OverrideRule("Kyrgyzstan", "Kyrgyz Republic"),
    OverrideRule("Slovakia", "Slovak Republic"),
    OverrideRule("Laos", "Lao PDR"),
    OverrideRule("Brunei", "Brunei Darussalam"),
    OverrideRule("Iran", "Iran, Islamic Rep."),
    OverrideRule("Egypt", "Egypt, Arab Rep."),
    OverrideRule("Yemen", "Yemen, Rep."),
    OverrideRule("Venezuela", "Venezuela, RB"),
    OverrideRule("Syria", "Syrian Arab Republic"),
)


def as_rules(overrides: OverridesLike) -> tuple[OverrideRule, ...]:
    """
    Coerce a mapping, a sequence of pairs or a sequence of rules into an
    ordered rule tuple. Mappings keep their insertion order.
    """
    if overrides is None:
        return ()
    if isinstance(overrides, Mapping):
        overrides = overrides.items()

    rules = []
    for item in overrides:
        if isinstance(item, OverrideRule):
            rules.append(item)
        else:
            pattern, replacement = item
            rules.append(OverrideRule(pattern, replacement))
    return tuple(rules)


def is_idempotent(overrides: OverridesLike) -> bool:
    """
    True when a second pass of the rules leaves rewritten names unchanged.

    Every rewritten name is some rule's replacement, so it is enough to run
    the table over the replacements. A rule whose pattern occurs in its own
    replacement is the usual suspect, but only breaks idempotence if the
    table then moves that replacement somewhere else.
    """
    rules = as_rules(overrides)
    replacements = tuple(rule.replacement for rule in rules)
    return apply_overrides(replacements, rules) == replacements


def apply_overrides(target_names: Iterable[str], manual_overrides: OverridesLike) -> tuple[str, ...]:
    """
    Rewrite target names with an ordered rule table.

    Each rule, in order, replaces every name that contains its pattern
    with the rule's replacement. The result is aligned with the input,
    duplicates included, and the input is left untouched.
    """
    rules = as_rules(manual_overrides)
    names = list(target_names)

    for rule in rules:
        hits = 0
        for i, name in enumerate(names):
            if rule.matches(name):
                if name != rule.replacement:
                    logger.debug(f"Override '{rule.pattern}': '{name}' -> '{rule.replacement}'")
                names[i] = rule.replacement
                hits += 1
        if hits == 0:
            logger.debug(f"Override '{rule.pattern}' matched nothing")

    return tuple(names)


def load_overrides(path: Union[str, Path]) -> tuple[OverrideRule, ...]:
    """
    Load override rules from a CSV file with pattern and replacement columns.

    Row order is rule order. Rows with an empty pattern are skipped. An
    optional exact column (true/yes/1) makes a rule match whole names only.

    Raises:
        ValueError: if either column is missing
    """
    path = Path(path)

    with open(path, "r", newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        missing = {"pattern", "replacement"} - set(reader.fieldnames or [])
        if missing:
            raise ValueError(f"{path}: missing column(s) {', '.join(sorted(missing))}")

        rules = []
        for row in reader:
            pattern = row["pattern"] or ""
            if not pattern.strip():
                continue
            exact = (row.get("exact") or "").strip().lower() in ("1", "true", "yes")
            rules.append(OverrideRule(pattern, row["replacement"] or "", exact=exact))

    logger.info(f"Loaded {len(rules)} override rules from {path}")
    return tuple(rules)
