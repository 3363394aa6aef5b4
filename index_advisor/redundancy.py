"""
Redundancy elimination by leftmost-prefix subsumption.

An index on (A, B, C) serves every lookup an index on (A) or (A, B) serves,
so the shorter ones are redundant. Exact duplicates (same table, same key
order) collapse to one regardless of where they came from.
"""

from typing import Iterable, List, Tuple

from .models import IndexDef


def is_prefix(shorter: IndexDef, longer: IndexDef) -> bool:
    """True when ``shorter``'s key is a leading prefix of ``longer``'s (equality included)."""
    if shorter.table != longer.table:
        return False
    width = len(shorter.key_columns)
    return width <= len(longer.key_columns) and longer.key_columns[:width] == shorter.key_columns


def is_strict_prefix(shorter: IndexDef, longer: IndexDef) -> bool:
    return len(shorter.key_columns) < len(longer.key_columns) and is_prefix(shorter, longer)


def dedupe(indexes: Iterable[IndexDef]) -> List[IndexDef]:
    """
    Drop duplicates and every index that is a strict prefix of another.

    The result is sorted by index id, never larger than the input, and
    contains no two indexes in a prefix relationship.
    """
    unique = {}
    for index in indexes:
        unique.setdefault(index.id, index)

    survivors = [
        index for index in unique.values()
        if not any(is_strict_prefix(index, other) for other in unique.values())
    ]
    return sorted(survivors, key=lambda index: index.id)


def prune_against_existing(
    candidates: Iterable[IndexDef], existing: Iterable[IndexDef]
) -> List[IndexDef]:
    """Drop candidates an existing index already provides (same key or a prefix of it)."""
    existing = list(existing)
    return [
        candidate for candidate in candidates
        if not any(is_prefix(candidate, index) for index in existing)
    ]


def find_subsumed(indexes: Iterable[IndexDef]) -> List[Tuple[IndexDef, IndexDef]]:
    """Pairs (shorter, longer) where ``shorter`` is a strict prefix of ``longer``."""
    indexes = sorted({index.id: index for index in indexes}.values(), key=lambda index: index.id)
    return [
        (shorter, longer)
        for shorter in indexes
        for longer in indexes
        if is_strict_prefix(shorter, longer)
    ]
