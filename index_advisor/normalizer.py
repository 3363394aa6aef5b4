"""
Predicate normalizer: classifies a pattern's columns into equality-bound,
range-bound and sort-only roles with a reproducible ordering.
"""

from .errors import ConflictingPredicate, InvalidPattern
from .models import NormalizedPattern, QueryPattern


def normalize(pattern: QueryPattern) -> NormalizedPattern:
    """
    Partition the columns of ``pattern``.

    Equality columns are sorted lexicographically. Range columns that also
    appear in ORDER BY come first, in ORDER BY order, followed by the rest
    lexicographically. Sort-only columns are the ORDER BY columns bound by no
    predicate, in ORDER BY order.

    Raises:
        ConflictingPredicate: a column is both equality- and range-bound
        InvalidPattern: non-positive frequency or a repeated ORDER BY column
    """
    conflicts = pattern.equality_columns & pattern.range_columns
    if conflicts:
        raise ConflictingPredicate(pattern.pattern_id, conflicts)

    if not pattern.frequency > 0:
        raise InvalidPattern(pattern.pattern_id, f"frequency must be positive, got {pattern.frequency}")

    if len(set(pattern.order_by)) != len(pattern.order_by):
        raise InvalidPattern(pattern.pattern_id, "ORDER BY repeats a column")

    for column in pattern.range_bounds:
        if column not in pattern.range_columns:
            raise InvalidPattern(pattern.pattern_id, f"bounds given for non-range column {column}")

    equality = tuple(sorted(pattern.equality_columns))

    ordered_ranges = [column for column in pattern.order_by if column in pattern.range_columns]
    ordered_ranges += sorted(pattern.range_columns - set(ordered_ranges))

    bound = pattern.equality_columns | pattern.range_columns
    sort_only = tuple(column for column in pattern.order_by if column not in bound)

    return NormalizedPattern(
        pattern_id=pattern.pattern_id,
        table=pattern.table,
        equality=equality,
        range=tuple(ordered_ranges),
        sort_only=sort_only,
        order_by=pattern.order_by,
        frequency=float(pattern.frequency),
        projection=pattern.projection,
        range_bounds=pattern.range_bounds,
    )
