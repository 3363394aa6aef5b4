"""
Candidate index synthesizer.

Builds the composite key order that best serves one normalized pattern:
equality columns first so the index narrows to one contiguous key range,
then the range columns so the remaining walk is a single contiguous range,
then the sort-only columns so the index can return rows already ordered.
Only the first column after the equality prefix contributes ordering; later
columns merely shrink the rows fetched.
"""

import logging
from typing import Iterable, List, Optional

from .models import IndexDef, NormalizedPattern


def synthesize(pattern: NormalizedPattern) -> Optional[IndexDef]:
    """
    Return the candidate index for ``pattern``, or None when the pattern
    neither filters nor sorts on any column.
    """
    key_columns: List[str] = []
    for column in pattern.equality + pattern.range + pattern.sort_only:
        if column not in key_columns:
            key_columns.append(column)

    if not key_columns:
        return None
    return IndexDef(table=pattern.table, key_columns=tuple(key_columns))


def synthesize_all(patterns: Iterable[NormalizedPattern]) -> List[IndexDef]:
    """Candidates for a whole workload, in pattern order (duplicates kept)."""
    candidates = []
    for pattern in patterns:
        candidate = synthesize(pattern)
        if candidate is None:
            logging.debug(f"Pattern {pattern.pattern_id} references no columns, no candidate")
            continue
        candidates.append(candidate)
    return candidates
