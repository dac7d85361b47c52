"""
Name matching strategies for reconciliation.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Optional

from rapidfuzz.distance import Levenshtein


class MatchMethod(Enum):
    """How a source name was linked to its target names."""
    EXACT = "exact"                        # Identical strings
    FUZZY = "fuzzy"                        # Within the edit distance bound
    MANUAL_OVERRIDE = "manual-override"    # Hand-written rewrite rule


class OutcomeKind(Enum):
    """Result of the fuzzy search for one unmatched source name."""
    UNMATCHED = "no_match_found"
    SINGLE_MATCH = "single_match"
    MULTIPLE_MATCHES = "ambiguous_match"


@dataclass(frozen=True)
class Corpus:
    """
    Ordered, de-duplicated collection of entity names from one dataset.

    Duplicates collapse onto their first occurrence. Missing and blank
    values are dropped; everything else is kept verbatim.
    """
    names: tuple[str, ...] = ()
    _lookup: frozenset = field(default=frozenset(), init=False, repr=False, compare=False)

    def __post_init__(self):
        unique = []
        seen = set()
        for name in self.names:
            if name is None:
                continue
            name = str(name)
            if not name.strip() or name in seen:
                continue
            seen.add(name)
            unique.append(name)
        object.__setattr__(self, "names", tuple(unique))
        object.__setattr__(self, "_lookup", frozenset(seen))

    @classmethod
    def from_names(cls, names: Iterable) -> "Corpus":
        return cls(tuple(names))

    def __iter__(self):
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)

    def __contains__(self, name: object) -> bool:
        return name in self._lookup

    def __getitem__(self, index: int) -> str:
        return self.names[index]


@dataclass(frozen=True)
class MatchCandidate:
    """Association between one source name and the target names it covers."""
    source_name: str
    target_names: tuple[str, ...]
    method: MatchMethod

    @property
    def is_manual(self) -> bool:
        return self.method is MatchMethod.MANUAL_OVERRIDE


@dataclass(frozen=True)
class MatchOutcome:
    """Tagged result of a fuzzy search: unmatched, single or multiple candidates."""
    name: str
    kind: OutcomeKind
    candidates: tuple[str, ...] = ()

    @property
    def is_match(self) -> bool:
        return self.kind is OutcomeKind.SINGLE_MATCH

    @property
    def is_ambiguous(self) -> bool:
        return self.kind is OutcomeKind.MULTIPLE_MATCHES

    def __repr__(self) -> str:
        if self.candidates:
            return f"<MatchOutcome({self.name!r}, {self.kind.value}, {list(self.candidates)})>"
        return f"<MatchOutcome({self.name!r}, no match)>"


def normalize_name(name: str) -> str:
    """Casefold and collapse whitespace runs to single spaces."""
    return re.sub(r"\s+", " ", name).strip().casefold()


def partial_distance(
    s1: str,
    s2: str,
    processor: Optional[Callable[[str], str]] = None,
    score_cutoff: Optional[int] = None,
) -> int:
    """
    Approximate substring distance.

    Slides the shorter string over the longer one and returns the smallest
    Levenshtein distance against a window of the same length. A distance of
    0 means the shorter string occurs verbatim inside the longer one.
    """
    if processor is not None:
        s1, s2 = processor(s1), processor(s2)
    shorter, longer = sorted((s1, s2), key=len)
    width = len(shorter)

    best = width
    for start in range(len(longer) - width + 1):
        window = longer[start:start + width]
        best = min(best, Levenshtein.distance(shorter, window, score_cutoff=best))
        if best == 0:
            break

    if score_cutoff is not None and best > score_cutoff:
        return score_cutoff + 1
    return best


def find_unmatched(
    source_corpus: Iterable[str],
    target_corpus: Iterable[str],
    normalize: bool = False,
) -> list[str]:
    """
    Return source names without an exact match in the target corpus.

    Comparison is case- and whitespace-exact unless normalize is set.
    Order follows the source corpus.
    """
    key = normalize_name if normalize else str
    target_keys = {key(name) for name in target_corpus}
    return [name for name in source_corpus if key(name) not in target_keys]


def fuzzy_candidates(
    name: str,
    target_corpus: Iterable[str],
    max_edit_distance: int,
    normalize: bool = False,
    partial: bool = False,
) -> list[str]:
    """
    Return every target name within max_edit_distance edits of name.

    Uses whole-string Levenshtein distance, or approximate substring
    distance when partial is set. No disambiguation is attempted: zero,
    one or many candidates may come back, in target corpus order.

    Raises:
        ValueError: if max_edit_distance is negative
    """
    if max_edit_distance < 0:
        raise ValueError(f"max_edit_distance must be >= 0, got {max_edit_distance}")

    processor = normalize_name if normalize else None
    scorer = partial_distance if partial else Levenshtein.distance

    return [
        candidate
        for candidate in target_corpus
        if scorer(name, candidate, processor=processor, score_cutoff=max_edit_distance)
        <= max_edit_distance
    ]


def classify_candidates(name: str, candidates: Iterable[str]) -> MatchOutcome:
    """Wrap a fuzzy candidate list in a tagged outcome."""
    candidates = tuple(candidates)
    if not candidates:
        return MatchOutcome(name=name, kind=OutcomeKind.UNMATCHED)
    if len(candidates) == 1:
        return MatchOutcome(name=name, kind=OutcomeKind.SINGLE_MATCH, candidates=candidates)
    return MatchOutcome(name=name, kind=OutcomeKind.MULTIPLE_MATCHES, candidates=candidates)
