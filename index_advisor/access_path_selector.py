"""
Access Path Selection Module for Cost-Based Index Advice.

This module enumerates the ways one normalized predicate pattern can be
answered against a set of available indexes and prices each of them with the
cost model:
- Sequential table scans
- Single-column and composite index scans over the usable key prefix
- Covering (index-only) scans
- Row-id intersections over several single-column indexes

Exactly one path per enumeration is marked chosen: the cheapest, with ties
going to the path that touches fewer indexes and then to the table scan.
"""

import itertools
import logging
import threading
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .cost_model import CostModel
from .errors import TableMismatch
from .models import AccessKind, AccessPath, IndexDef, NormalizedPattern
from .table_stats import PredicateKind, StatisticsCatalog, TableStats


class AccessPathSelector:
    """
    Cost-based access path enumerator for one advisor run.

    Index paths are memoized per (pattern, index) because the workload
    optimizer re-enumerates the same pattern against many configurations.
    """

    def __init__(
        self,
        catalog: StatisticsCatalog,
        cost_model: CostModel,
        max_intersection_width: int = 3,
    ):
        """
        Initialize the access path selector.

        Args:
            catalog: Statistics for selectivity estimates
            cost_model: Cost model for path evaluation
            max_intersection_width: Most indexes combined in one intersection
        """
        self.catalog = catalog
        self.cost_model = cost_model
        self.max_intersection_width = max_intersection_width

        self._path_cache: Dict[Tuple[NormalizedPattern, str], AccessPath] = {}
        self._cache_lock = threading.Lock()
        self.cache_hits = 0
        self.cache_misses = 0

        logging.debug("Initialized AccessPathSelector")

    def enumerate(
        self, pattern: NormalizedPattern, available_indexes: Iterable[IndexDef]
    ) -> List[AccessPath]:
        """
        Enumerate and price every feasible access path for a pattern.

        Args:
            pattern: Normalized predicate pattern
            available_indexes: Existing and candidate indexes on the pattern's table

        Returns:
            Access paths in enumeration order with exactly one marked chosen

        Raises:
            TableMismatch: an index belongs to another table
            UnknownTable, UnknownColumn: the pattern or an index references
                something the catalog does not know
        """
        table_stats = self.catalog.lookup(pattern.table)
        self.catalog.validate_columns(pattern.table, pattern.all_columns | (pattern.projection or frozenset()))
        indexes = self._check_indexes(pattern, available_indexes)

        # 1. Table scan
        candidate_paths = [self._evaluate_table_scan(pattern, table_stats)]

        # 2. Single-column and composite index scans
        for index in indexes:
            if set(index.key_columns) & pattern.all_columns:
                candidate_paths.append(self._cached_index_scan(pattern, index, table_stats))

        # 3. Index intersections
        candidate_paths.extend(self._evaluate_intersections(pattern, indexes, table_stats))

        return self._mark_chosen(candidate_paths)

    def select(
        self, pattern: NormalizedPattern, available_indexes: Iterable[IndexDef]
    ) -> AccessPath:
        """Return the chosen (cheapest) access path for a pattern."""
        best_path = next(path for path in self.enumerate(pattern, available_indexes) if path.chosen)

        logging.debug(
            f"Selected {best_path.kind.value} for {pattern.pattern_id} "
            f"(cost: {best_path.estimated_cost:.6f}, rows: {best_path.estimated_rows_examined})"
        )
        return best_path

    def _check_indexes(
        self, pattern: NormalizedPattern, available_indexes: Iterable[IndexDef]
    ) -> List[IndexDef]:
        """Validate the offered indexes and return them deduplicated, sorted by id."""
        unique = {}
        for index in available_indexes:
            if index.table != pattern.table:
                raise TableMismatch(pattern.table, index.table, index.id)
            self.catalog.validate_columns(index.table, index.key_columns)
            unique.setdefault(index.id, index)
        return [unique[index_id] for index_id in sorted(unique)]

    @staticmethod
    def _mark_chosen(paths: List[AccessPath]) -> List[AccessPath]:
        def rank(path: AccessPath):
            is_scan = path.kind == AccessKind.TABLE_SCAN
            return (path.estimated_cost, path.indexes_touched, 0 if is_scan else 1, path.index_ids)

        best = min(range(len(paths)), key=lambda i: rank(paths[i]))
        return [replace(path, chosen=(i == best)) for i, path in enumerate(paths)]

    def _predicate(self, pattern: NormalizedPattern, column: str):
        if column in pattern.equality:
            return (column, PredicateKind.EQUALITY, None)
        return (column, PredicateKind.RANGE, pattern.range_bounds.get(column))

    def _selectivity(self, pattern: NormalizedPattern, columns: Iterable[str]) -> float:
        return self.catalog.combined_selectivity(
            pattern.table, [self._predicate(pattern, column) for column in sorted(columns)]
        )

    def _evaluate_table_scan(self, pattern: NormalizedPattern, table_stats: TableStats) -> AccessPath:
        """Evaluate a sequential table scan; every predicate is applied per row."""
        result_selectivity = self._selectivity(pattern, pattern.predicate_columns)
        result_rows = table_stats.row_count * result_selectivity

        scan_cost = self.cost_model.sequential_scan_cost(table_stats)
        sort_cost = self.cost_model.sort_cost(result_rows) if pattern.order_by else 0.0

        return AccessPath(
            kind=AccessKind.TABLE_SCAN,
            table=pattern.table,
            estimated_cost=scan_cost + sort_cost,
            estimated_rows_examined=table_stats.row_count,
            estimated_rows_returned=int(round(result_rows)),
            covering=True,  # Table scan always covers all columns
            metadata={
                "selectivity": result_selectivity,
                "scan_cost": scan_cost,
                "sort_cost": sort_cost,
            },
        )

    def usable_prefix(
        self, pattern: NormalizedPattern, index: IndexDef
    ) -> Tuple[Tuple[str, ...], Optional[str]]:
        """
        Leading key columns the index can seek on for this pattern.

        Returns the run of equality-bound leading columns, and the single
        range-bound column right after it if there is one. Range predicates
        further along the key are only filtered, never seeked.
        """
        equality = set(pattern.equality)
        equality_prefix = []
        for column in index.key_columns:
            if column not in equality:
                break
            equality_prefix.append(column)

        range_column = None
        position = len(equality_prefix)
        if position < len(index.key_columns) and index.key_columns[position] in pattern.range:
            range_column = index.key_columns[position]

        return tuple(equality_prefix), range_column

    @staticmethod
    def sort_avoided(pattern: NormalizedPattern, index: IndexDef, equality_prefix: Sequence[str]) -> bool:
        """
        True when walking the index returns rows already in ORDER BY order.

        Columns pinned by equality are constant and drop out of the required
        order; the rest must be the key columns right after the equality prefix.
        """
        if not pattern.order_by:
            return False
        equality = set(pattern.equality)
        required = tuple(column for column in pattern.order_by if column not in equality)
        if not required:
            return True
        tail = index.key_columns[len(equality_prefix):]
        return tuple(tail[:len(required)]) == required

    def _cached_index_scan(
        self, pattern: NormalizedPattern, index: IndexDef, table_stats: TableStats
    ) -> AccessPath:
        cache_key = (pattern, index.id)
        cached = self._path_cache.get(cache_key)
        if cached is not None:
            with self._cache_lock:
                self.cache_hits += 1
            return cached

        path = self._evaluate_index_scan(pattern, index, table_stats)
        with self._cache_lock:
            self.cache_misses += 1
            self._path_cache[cache_key] = path
        return path

    def _evaluate_index_scan(
        self, pattern: NormalizedPattern, index: IndexDef, table_stats: TableStats
    ) -> AccessPath:
        """Evaluate a single-column or composite index scan."""
        equality_prefix, range_column = self.usable_prefix(pattern, index)
        seek_columns = list(equality_prefix) + ([range_column] if range_column else [])
        key_columns = set(index.key_columns)

        index_selectivity = self._selectivity(pattern, seek_columns)
        matching_rows = table_stats.row_count * index_selectivity

        # Predicates on key columns past the seek prefix are checked on the
        # index entries before any row is fetched.
        filter_columns = [c for c in pattern.predicate_columns if c in key_columns]
        fetched_rows = table_stats.row_count * self._selectivity(pattern, filter_columns)

        result_selectivity = self._selectivity(pattern, pattern.predicate_columns)
        result_rows = table_stats.row_count * result_selectivity

        referenced = pattern.referenced_columns
        covering = referenced is not None and referenced <= key_columns
        entry_bytes = self.cost_model.entry_bytes(index)

        probe_cost = self.cost_model.index_probe_cost(
            table_stats,
            matching_rows,
            covering=covering,
            entry_bytes=entry_bytes,
            fetched_rows=fetched_rows,
        )

        sort_avoided = self.sort_avoided(pattern, index, equality_prefix)
        sort_cost = 0.0
        if pattern.order_by and not sort_avoided:
            sort_cost = self.cost_model.sort_cost(result_rows)

        kind = AccessKind.SINGLE_INDEX if len(index.key_columns) == 1 else AccessKind.COMPOSITE_INDEX

        return AccessPath(
            kind=kind,
            table=pattern.table,
            estimated_cost=probe_cost + sort_cost,
            estimated_rows_examined=int(round(matching_rows)),
            estimated_rows_returned=int(round(result_rows)),
            index_ids=(index.id,),
            covering=covering,
            sort_avoided=sort_avoided,
            metadata={
                "index_selectivity": index_selectivity,
                "seek_columns": len(seek_columns),
                "fetched_rows": 0.0 if covering else fetched_rows,
                "entry_bytes": entry_bytes,
                "sort_cost": sort_cost,
            },
        )

    def _evaluate_intersections(
        self, pattern: NormalizedPattern, indexes: List[IndexDef], table_stats: TableStats
    ) -> List[AccessPath]:
        """Evaluate row-id intersections over single-column predicate indexes."""
        singles: Dict[str, IndexDef] = {}
        composite_reach = []
        for index in indexes:
            if len(index.key_columns) == 1:
                if index.leading_column in pattern.predicate_columns:
                    singles.setdefault(index.leading_column, index)
            else:
                equality_prefix, range_column = self.usable_prefix(pattern, index)
                reach = set(equality_prefix) | ({range_column} if range_column else set())
                if reach:
                    composite_reach.append(reach)

        if len(singles) < 2:
            return []

        intersection_paths = []
        columns = sorted(singles)
        widest = min(self.max_intersection_width, len(columns))
        for width in range(2, widest + 1):
            for combination in itertools.combinations(columns, width):
                if any(set(combination) <= reach for reach in composite_reach):
                    continue
                intersection_paths.append(
                    self._create_index_intersection_path(
                        pattern, [singles[column] for column in combination], table_stats
                    )
                )

        return intersection_paths

    def _create_index_intersection_path(
        self, pattern: NormalizedPattern, indexes: List[IndexDef], table_stats: TableStats
    ) -> AccessPath:
        """Create an index intersection access path."""
        id_set_sizes = [
            table_stats.row_count * self._selectivity(pattern, [index.leading_column])
            for index in indexes
        ]
        entry_bytes = [self.cost_model.entry_bytes(index) for index in indexes]

        intersection_selectivity = self._selectivity(pattern, [index.leading_column for index in indexes])
        surviving_rows = table_stats.row_count * intersection_selectivity

        result_rows = table_stats.row_count * self._selectivity(pattern, pattern.predicate_columns)

        intersection_cost = self.cost_model.intersection_cost(
            table_stats, id_set_sizes, surviving_rows, entry_bytes
        )
        # Row ids come out in heap order, never in ORDER BY order
        sort_cost = self.cost_model.sort_cost(result_rows) if pattern.order_by else 0.0

        return AccessPath(
            kind=AccessKind.INDEX_INTERSECTION,
            table=pattern.table,
            estimated_cost=intersection_cost + sort_cost,
            estimated_rows_examined=int(round(sum(id_set_sizes))),
            estimated_rows_returned=int(round(result_rows)),
            index_ids=tuple(index.id for index in indexes),
            metadata={
                "intersection_selectivity": intersection_selectivity,
                "num_indexes": len(indexes),
                "sort_cost": sort_cost,
            },
        )

    def explain_access_path(self, path: AccessPath) -> str:
        """Generate a human-readable explanation of an access path."""
        lines = [f"Access Method: {path.kind.value}"]
        lines.append(f"Table: {path.table}")
        lines.append(f"Estimated Cost: {path.estimated_cost:.6f}")
        lines.append(f"Rows Examined: {path.estimated_rows_examined:,}")
        lines.append(f"Rows Returned: {path.estimated_rows_returned:,}")

        if path.index_ids:
            lines.append(f"Indexes Used: {', '.join(path.index_ids)}")

        if path.kind != AccessKind.TABLE_SCAN:
            lines.append("Covering: Yes (no row fetch)" if path.covering else "Covering: No (row fetch required)")
            if path.sort_avoided:
                lines.append("Sort: avoided (index order)")

        return "\n".join(lines)

    def get_cache_statistics(self) -> Dict[str, float]:
        """Index-path memo statistics."""
        total = self.cache_hits + self.cache_misses
        return {
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "hit_rate": self.cache_hits / max(1, total),
            "cached_paths": len(self._path_cache),
        }
