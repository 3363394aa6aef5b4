"""
Cost Model for Access-Path Selection.

Converts a candidate access path (a sequential scan, an index walk, or a
row-id intersection over several indexes) into an estimated time cost.

Cost components:
- Sequential I/O: bytes read in file order at ``sequential_throughput``
- Random I/O: one page read per tree level and per fetched row at ``random_iops``
- CPU: one ``cpu_row_cost`` per row or index entry evaluated
- Merge: ``merge_cost_per_row`` per row id fed into an intersection
- Sort: ``sort_cost_per_row * n * log2(n)`` when the output must be ordered

There is no hard-coded scan/index threshold. The point at which a scan beats
an index (the tipping point) falls out of the ratio between the sequential
and random per-row costs, so changing the I/O parameters moves it.
"""

import logging
import math
from typing import Optional, Sequence

from .config import CostParameters
from .errors import InvalidStatistics
from .models import IndexDef
from .table_stats import StatisticsCatalog, TableStats


class CostModel:
    """
    Prices access paths for one advisor run.

    All estimates are in seconds, are zero for an empty table, and grow
    monotonically with the number of rows involved.
    """

    def __init__(self, catalog: StatisticsCatalog, parameters: Optional[CostParameters] = None):
        """
        Initialize the cost model.

        Args:
            catalog: Statistics for column widths and table sizing
            parameters: Cost parameters; a tipping point target is resolved here
        """
        self.catalog = catalog
        self.parameters = (parameters or CostParameters()).resolved()

        logging.debug(
            f"Initialized CostModel: seq={self.parameters.sequential_throughput:.0f} B/s, "
            f"random_iops={self.parameters.random_iops:.1f}, "
            f"cpu_row_cost={self.parameters.cpu_row_cost:g}"
        )

    @staticmethod
    def _check_count(value: float, what: str):
        if value < 0:
            raise InvalidStatistics(f"{what} must not be negative, got {value}")

    def entry_bytes(self, index: IndexDef) -> int:
        """Width of one index entry: key columns plus the row pointer."""
        key_bytes = sum(self.catalog.column_width(index.table, column) for column in index.key_columns)
        return key_bytes + self.parameters.row_pointer_bytes

    def _default_entry_bytes(self) -> int:
        return self.parameters.default_column_width + self.parameters.row_pointer_bytes

    def sequential_scan_cost(self, table: TableStats) -> float:
        """Read every row in file order and evaluate it."""
        self._check_count(table.row_count, "row_count")
        if table.row_count == 0:
            return 0.0

        io_cost = table.data_bytes / self.parameters.sequential_throughput
        cpu_cost = table.row_count * self.parameters.cpu_row_cost
        return io_cost + cpu_cost

    def tree_height(self, table: TableStats, entry_bytes: Optional[int] = None) -> int:
        """B-tree levels needed to index every row of ``table``."""
        if table.row_count <= 1:
            return 1
        entry_bytes = entry_bytes or self._default_entry_bytes()
        fanout = max(2, table.page_bytes // entry_bytes)
        return max(1, math.ceil(math.log(table.row_count) / math.log(fanout)))

    def descent_cost(self, table: TableStats, entry_bytes: Optional[int] = None) -> float:
        """Root-to-leaf walk, one random read per level."""
        if table.row_count == 0:
            return 0.0
        return self.tree_height(table, entry_bytes) / self.parameters.random_iops

    def row_fetch_cost(self, rows: float) -> float:
        """Fetch ``rows`` rows from the heap, one random read each."""
        self._check_count(rows, "rows")
        return rows / self.parameters.random_iops

    def index_probe_cost(
        self,
        table: TableStats,
        matching_rows: float,
        covering: bool = False,
        entry_bytes: Optional[int] = None,
        fetched_rows: Optional[float] = None,
    ) -> float:
        """
        Estimate one index lookup returning ``matching_rows`` entries.

        Args:
            table: Statistics of the indexed table
            matching_rows: Entries read from the contiguous key range
            covering: When True the index holds every referenced column and no
                row is fetched from the table
            entry_bytes: Width of one index entry
            fetched_rows: Rows fetched from the table when key columns past the
                usable prefix filter entries first; defaults to ``matching_rows``

        Returns:
            Estimated cost in seconds
        """
        self._check_count(matching_rows, "matching_rows")
        if fetched_rows is None:
            fetched_rows = matching_rows
        self._check_count(fetched_rows, "fetched_rows")
        if table.row_count == 0:
            return 0.0

        entry_bytes = entry_bytes or self._default_entry_bytes()
        descent = self.descent_cost(table, entry_bytes)
        leaf_scan = matching_rows * entry_bytes / self.parameters.sequential_throughput
        cpu_cost = matching_rows * self.parameters.cpu_row_cost
        fetch_cost = 0.0 if covering else self.row_fetch_cost(min(fetched_rows, matching_rows))
        return descent + leaf_scan + cpu_cost + fetch_cost

    def intersection_cost(
        self,
        table: TableStats,
        id_set_sizes: Sequence[float],
        result_rows: float,
        entry_bytes: Optional[Sequence[int]] = None,
    ) -> float:
        """
        Estimate a sorted row-id intersection over several indexes.

        Each index is probed for its row ids only (no row fetch), the id lists
        are merged at ``merge_cost_per_row`` per id, and only the surviving
        ``result_rows`` are fetched from the table.
        """
        self._check_count(result_rows, "result_rows")
        for size in id_set_sizes:
            self._check_count(size, "id_set_size")
        if table.row_count == 0:
            return 0.0

        if entry_bytes is None:
            entry_bytes = [self._default_entry_bytes()] * len(id_set_sizes)

        probe_cost = sum(
            self.index_probe_cost(table, size, covering=True, entry_bytes=width)
            for size, width in zip(id_set_sizes, entry_bytes)
        )
        merge_cost = self.parameters.merge_cost_per_row * sum(id_set_sizes)
        fetch_cost = self.row_fetch_cost(result_rows) + result_rows * self.parameters.cpu_row_cost
        return probe_cost + merge_cost + fetch_cost

    def sort_cost(self, rows: float) -> float:
        """Explicit sort of ``rows`` rows; zero when there is nothing to order."""
        self._check_count(rows, "rows")
        if rows <= 1:
            return 0.0
        return self.parameters.sort_cost_per_row * rows * math.log2(rows)

    def index_storage_bytes(self, index: IndexDef) -> int:
        """Estimated size of an index: one entry per table row."""
        table = self.catalog.lookup(index.table)
        return table.row_count * self.entry_bytes(index)

    def tipping_point(self, table: TableStats, entry_bytes: Optional[int] = None) -> float:
        """
        Fraction of rows at which a non-covering index probe costs as much as
        a sequential scan. Derived from the formulas, used for reporting only.
        """
        if table.row_count == 0:
            return 0.0

        entry_bytes = entry_bytes or self._default_entry_bytes()
        per_row = (
            entry_bytes / self.parameters.sequential_throughput
            + self.parameters.cpu_row_cost
            + 1.0 / self.parameters.random_iops
        )
        budget = self.sequential_scan_cost(table) - self.descent_cost(table, entry_bytes)
        ratio = budget / (per_row * table.row_count)
        return min(1.0, max(0.0, ratio))
