"""
Typed failures raised by the index advisor.

Every error is raised at the point where the offending input is validated.
The advisor facade catches the per-pattern ones and reports them alongside the
results of the rest of the workload.
"""

from typing import Iterable, Optional


class AdvisorError(Exception):
    """Base class for all advisor errors"""
    pass


class UnknownTable(AdvisorError):
    """Statistics lookup against a table that was never registered"""

    def __init__(self, table: str):
        self.table = table
        super().__init__(f"Unknown table: {table}")


class UnknownColumn(AdvisorError):
    """Statistics lookup against a column that is not registered for its table"""

    def __init__(self, table: str, column: str):
        self.table = table
        self.column = column
        super().__init__(f"Unknown column: {table}.{column}")


class ConflictingPredicate(AdvisorError):
    """A column is bound by both an equality and a range predicate"""

    def __init__(self, pattern_id: str, columns: Iterable[str]):
        self.pattern_id = pattern_id
        self.columns = tuple(sorted(columns))
        super().__init__(
            f"Pattern {pattern_id} binds {', '.join(self.columns)} "
            f"as both equality and range"
        )


class TableMismatch(AdvisorError):
    """An index was offered for a pattern on a different table"""

    def __init__(self, expected: str, actual: str, index_id: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        self.index_id = index_id
        super().__init__(
            f"Index {index_id or '?'} is on table {actual}, expected {expected}"
        )


class InvalidStatistics(AdvisorError):
    """Negative counts or an impossible distinct count"""

    def __init__(self, message: str, table: Optional[str] = None):
        self.table = table
        prefix = f"{table}: " if table else ""
        super().__init__(f"{prefix}{message}")


class InvalidPattern(AdvisorError):
    """A workload pattern is malformed in a way other than conflicting predicates"""

    def __init__(self, pattern_id: str, reason: str):
        self.pattern_id = pattern_id
        self.reason = reason
        super().__init__(f"Pattern {pattern_id}: {reason}")


class InvalidIndexDefinition(AdvisorError):
    """Empty key or a column repeated within one index key"""

    def __init__(self, table: str, key_columns: Iterable[str], reason: str):
        self.table = table
        self.key_columns = tuple(key_columns)
        self.reason = reason
        super().__init__(f"Index on {table}{self.key_columns}: {reason}")
