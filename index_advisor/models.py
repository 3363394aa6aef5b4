"""
Value objects shared by every advisor component.

All of them are frozen dataclasses: a run builds them from its input snapshot
and never mutates them afterwards.
"""

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple

from .errors import AdvisorError, InvalidIndexDefinition


Bounds = Tuple[Optional[float], Optional[float]]


@dataclass(frozen=True)
class IndexDef:
    """An existing or candidate B-tree index; key order is the physical sort order."""

    table: str
    key_columns: Tuple[str, ...]
    name: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "key_columns", tuple(self.key_columns))
        if not self.key_columns:
            raise InvalidIndexDefinition(self.table, self.key_columns, "empty key")
        if len(set(self.key_columns)) != len(self.key_columns):
            raise InvalidIndexDefinition(self.table, self.key_columns, "duplicate key column")

    @property
    def id(self) -> str:
        return f"{self.table}({','.join(self.key_columns)})"

    @property
    def leading_column(self) -> str:
        return self.key_columns[0]

    def __str__(self):
        label = f"{self.name} " if self.name else ""
        return f"INDEX {label}ON {self.table}({', '.join(self.key_columns)})"


@dataclass(frozen=True)
class QueryPattern:
    """One workload entry: the predicate shape of a query and how often it runs."""

    table: str
    equality_columns: FrozenSet[str] = frozenset()
    range_columns: FrozenSet[str] = frozenset()
    order_by: Tuple[str, ...] = ()
    frequency: float = 1.0
    pattern_id: str = ""
    projection: Optional[FrozenSet[str]] = None  # None selects every column
    range_bounds: Mapping[str, Bounds] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "equality_columns", frozenset(self.equality_columns))
        object.__setattr__(self, "range_columns", frozenset(self.range_columns))
        object.__setattr__(self, "order_by", tuple(self.order_by))
        if self.projection is not None:
            object.__setattr__(self, "projection", frozenset(self.projection))
        object.__setattr__(self, "range_bounds", dict(self.range_bounds))
        if not self.pattern_id:
            object.__setattr__(self, "pattern_id", self._derive_id())

    def _derive_id(self) -> str:
        shape = "|".join([
            self.table,
            ",".join(sorted(self.equality_columns)),
            ",".join(sorted(self.range_columns)),
            ",".join(self.order_by),
            ",".join(sorted(self.projection)) if self.projection is not None else "*",
        ])
        digest = hashlib.sha1(shape.encode("utf-8")).hexdigest()[:10]
        return f"{self.table}:{digest}"


@dataclass(frozen=True)
class NormalizedPattern:
    """A pattern with its columns partitioned into equality, range and sort-only roles."""

    pattern_id: str
    table: str
    equality: Tuple[str, ...]
    range: Tuple[str, ...]
    sort_only: Tuple[str, ...]
    order_by: Tuple[str, ...]
    frequency: float
    projection: Optional[FrozenSet[str]] = None
    range_bounds: Mapping[str, Bounds] = field(default_factory=dict, hash=False)

    @property
    def predicate_columns(self) -> FrozenSet[str]:
        return frozenset(self.equality) | frozenset(self.range)

    @property
    def all_columns(self) -> FrozenSet[str]:
        """Every column the pattern filters or sorts on"""
        return self.predicate_columns | frozenset(self.order_by)

    @property
    def referenced_columns(self) -> Optional[FrozenSet[str]]:
        """Columns a covering index must hold, or None when every column is selected"""
        if self.projection is None:
            return None
        return self.all_columns | self.projection


class AccessKind(Enum):
    """Ways of answering a predicate pattern."""

    TABLE_SCAN = "table_scan"
    SINGLE_INDEX = "single_index"
    COMPOSITE_INDEX = "composite_index"
    INDEX_INTERSECTION = "index_intersection"


@dataclass(frozen=True)
class AccessPath:
    """One evaluated strategy for a pattern, with its estimated cost."""

    kind: AccessKind
    table: str
    estimated_cost: float
    estimated_rows_examined: int
    estimated_rows_returned: int
    index_ids: Tuple[str, ...] = ()
    covering: bool = False
    sort_avoided: bool = False
    chosen: bool = False
    metadata: Dict[str, float] = field(default_factory=dict, compare=False, hash=False)

    @property
    def indexes_touched(self) -> int:
        return len(set(self.index_ids))


@dataclass(frozen=True)
class Recommendation:
    """An index the workload optimizer selected."""

    index: IndexDef
    serves: Tuple[str, ...]
    estimated_cost_reduction: float
    storage_bytes: int


@dataclass(frozen=True)
class DropSuggestion:
    """An existing index the final configuration no longer needs."""

    index: IndexDef
    reason: str  # "prefix" or "unused"
    superseded_by: Optional[IndexDef] = None


@dataclass(frozen=True)
class AdvisorResult:
    """Everything one advisor run produces."""

    recommendations: List[Recommendation]
    chosen_paths: Dict[str, AccessPath]
    errors: Dict[str, AdvisorError]
    droppable: List[DropSuggestion]
    baseline_cost: float
    final_cost: float
    storage_used_bytes: int

    @property
    def recommended_indexes(self) -> List[IndexDef]:
        return [rec.index for rec in self.recommendations]
