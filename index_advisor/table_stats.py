"""
Table statistics model for cost-based access-path selection.

Holds the read-only knowledge the advisor has about each table: cardinality,
per-column distinct counts and widths, and physical row/page sizing. A
StatisticsCatalog is seeded once per advisor run and answers selectivity
questions for the cost model and the access-path selector.
"""

import logging
import math
import numpy as np
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union
from dataclasses import dataclass, field
from enum import Enum

from .errors import InvalidStatistics, UnknownColumn, UnknownTable


DEFAULT_PAGE_BYTES = 8192


class PredicateKind(Enum):
    """Kinds of predicates the selectivity model distinguishes."""

    EQUALITY = "equality"
    RANGE = "range"


@dataclass(frozen=True)
class EquiHeightHistogram:
    """
    Equi-height histogram over a numeric column.

    ``bounds`` holds n+1 non-decreasing bucket boundaries; every bucket holds
    the same share of rows. Range selectivity interpolates linearly inside the
    buckets a range only partially covers.
    """

    bounds: Tuple[float, ...]

    def __post_init__(self):
        object.__setattr__(self, "bounds", tuple(float(b) for b in self.bounds))
        if len(self.bounds) < 2:
            raise InvalidStatistics("histogram needs at least two bounds")
        if any(b > a for a, b in zip(self.bounds[1:], self.bounds[:-1])):
            raise InvalidStatistics("histogram bounds must be non-decreasing")

    @classmethod
    def from_values(cls, values: Sequence[float], buckets: int = 100) -> 'EquiHeightHistogram':
        """Build a histogram from a sample of column values."""
        sample = np.asarray(values, dtype=float)
        sample = sample[~np.isnan(sample)]
        if sample.size == 0:
            raise InvalidStatistics("cannot build a histogram from an empty sample")

        n_buckets = max(1, min(buckets, np.unique(sample).size))
        bounds = np.quantile(sample, np.linspace(0.0, 1.0, n_buckets + 1))
        return cls(bounds=tuple(bounds.tolist()))

    @property
    def bucket_count(self) -> int:
        return len(self.bounds) - 1

    def _cdf(self, value: float) -> float:
        """Share of rows with a value <= ``value``"""
        bounds = np.asarray(self.bounds)
        shares = np.linspace(0.0, 1.0, len(bounds))
        # Repeated boundaries carry a point mass; keep the highest share per value
        unique_bounds, first = np.unique(bounds[::-1], return_index=True)
        unique_shares = shares[::-1][first]
        if unique_bounds.size == 1:
            return 1.0 if value >= unique_bounds[0] else 0.0
        return float(np.interp(value, unique_bounds, unique_shares, left=0.0, right=1.0))

    def range_selectivity(self, low: Optional[float], high: Optional[float]) -> float:
        """Estimated share of rows in [low, high]; either bound may be open."""
        upper = 1.0 if high is None else self._cdf(high)
        lower = 0.0 if low is None else self._cdf(low)
        if low is not None and self.bounds[0] == self.bounds[-1] and low == self.bounds[0]:
            lower = 0.0
        return max(0.0, min(1.0, upper - lower))


@dataclass(frozen=True)
class ColumnStats:
    """Per-column statistics."""

    distinct_count: int
    is_nullable: bool = True
    avg_width: Optional[int] = None  # bytes; None falls back to the configured default
    range_selectivity: Optional[float] = None
    histogram: Optional[EquiHeightHistogram] = None


@dataclass(frozen=True)
class TableStats:
    """The engine's knowledge of one table."""

    name: str
    row_count: int
    avg_row_bytes: int
    page_bytes: int = DEFAULT_PAGE_BYTES
    columns: Mapping[str, ColumnStats] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "columns", dict(self.columns))

        if self.row_count < 0:
            raise InvalidStatistics(f"negative row_count {self.row_count}", self.name)
        if self.avg_row_bytes < 0:
            raise InvalidStatistics(f"negative avg_row_bytes {self.avg_row_bytes}", self.name)
        if self.page_bytes <= 0:
            raise InvalidStatistics(f"page_bytes must be positive, got {self.page_bytes}", self.name)

        for column_name, column in self.columns.items():
            if column.distinct_count < 0:
                raise InvalidStatistics(
                    f"negative distinct_count for column {column_name}", self.name
                )
            if column.distinct_count == 0 and self.row_count > 0:
                raise InvalidStatistics(
                    f"column {column_name} has distinct_count 0 but the table has rows",
                    self.name,
                )
            if column.avg_width is not None and column.avg_width <= 0:
                raise InvalidStatistics(
                    f"column {column_name} has non-positive avg_width {column.avg_width}",
                    self.name,
                )
            if column.range_selectivity is not None and not 0.0 < column.range_selectivity <= 1.0:
                raise InvalidStatistics(
                    f"column {column_name} range_selectivity must be in (0, 1]",
                    self.name,
                )

    @property
    def data_bytes(self) -> int:
        return self.row_count * self.avg_row_bytes

    @property
    def page_count(self) -> int:
        return math.ceil(self.data_bytes / self.page_bytes)


class StatisticsCatalog:
    """
    Read-only statistics lookup seeded once per advisor run.

    Uses per-column distinct counts for equality predicates and, for range
    predicates, a histogram (when the caller supplies literal bounds), an
    explicit override, or the configured default.
    """

    def __init__(
        self,
        tables: Union[Iterable[TableStats], Mapping[str, TableStats]],
        default_range_selectivity: float = 0.3,
        default_column_width: int = 8,
    ):
        """
        Initialize the catalog.

        Args:
            tables: TableStats objects, or a mapping of name to TableStats
            default_range_selectivity: Selectivity of a range predicate without statistics
            default_column_width: Key width used when a column carries none
        """
        if isinstance(tables, Mapping):
            tables = tables.values()
        self._tables: Dict[str, TableStats] = {table.name: table for table in tables}
        self.default_range_selectivity = default_range_selectivity
        self.default_column_width = default_column_width

        logging.debug(f"Initialized StatisticsCatalog with {len(self._tables)} tables")

    @property
    def table_names(self) -> Tuple[str, ...]:
        return tuple(sorted(self._tables))

    def lookup(self, table: str) -> TableStats:
        """Return the statistics of ``table`` or raise UnknownTable."""
        try:
            return self._tables[table]
        except KeyError:
            raise UnknownTable(table) from None

    def column(self, table: str, column: str) -> ColumnStats:
        """Return the statistics of one column or raise UnknownColumn."""
        table_stats = self.lookup(table)
        try:
            return table_stats.columns[column]
        except KeyError:
            raise UnknownColumn(table, column) from None

    def validate_columns(self, table: str, columns: Iterable[str]):
        """Raise UnknownColumn for the first column not registered on ``table``."""
        table_stats = self.lookup(table)
        for column in sorted(columns):
            if column not in table_stats.columns:
                raise UnknownColumn(table, column)

    def column_width(self, table: str, column: str) -> int:
        column_stats = self.column(table, column)
        return column_stats.avg_width or self.default_column_width

    def selectivity(
        self,
        table: str,
        column: str,
        predicate_kind: PredicateKind,
        bounds: Optional[Tuple[Optional[float], Optional[float]]] = None,
    ) -> float:
        """
        Estimate the fraction of rows a single predicate matches.

        Args:
            table: Table name
            column: Column name
            predicate_kind: Equality or range
            bounds: Literal (low, high) of a range predicate, used with a histogram

        Returns:
            Probability in (0, 1], never below 1/row_count
        """
        table_stats = self.lookup(table)
        column_stats = self.column(table, column)

        if table_stats.row_count == 0:
            return 1.0
        floor = 1.0 / table_stats.row_count

        if predicate_kind == PredicateKind.EQUALITY:
            estimate = 1.0 / max(1, column_stats.distinct_count)
        elif column_stats.histogram is not None and bounds is not None:
            estimate = column_stats.histogram.range_selectivity(*bounds)
        elif column_stats.range_selectivity is not None:
            estimate = column_stats.range_selectivity
        else:
            estimate = self.default_range_selectivity

        return min(1.0, max(floor, estimate))

    def combined_selectivity(
        self,
        table: str,
        predicates: Iterable[Tuple[str, PredicateKind, Optional[Tuple[Optional[float], Optional[float]]]]],
    ) -> float:
        """Product of independent predicate selectivities (attribute independence)."""
        selectivities = [
            self.selectivity(table, column, kind, bounds)
            for column, kind, bounds in predicates
        ]
        if not selectivities:
            return 1.0
        return float(np.prod(selectivities))

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        default_range_selectivity: float = 0.3,
        default_column_width: int = 8,
    ) -> 'StatisticsCatalog':
        """
        Build a catalog from plain data.

        ``data`` maps table name to ``{row_count, avg_row_bytes, page_bytes?,
        columns: {name: {distinct_count, is_nullable?, avg_width?,
        range_selectivity?, histogram?}}}``. A histogram is given either as
        ``{"bounds": [...]}`` or as ``{"values": [...], "buckets": n}``.
        """
        tables = [table_stats_from_dict(name, spec) for name, spec in data.items()]
        return cls(tables, default_range_selectivity, default_column_width)


def _histogram_from_dict(spec: Mapping[str, Any]) -> EquiHeightHistogram:
    if "bounds" in spec:
        return EquiHeightHistogram(bounds=tuple(spec["bounds"]))
    if "values" in spec:
        return EquiHeightHistogram.from_values(spec["values"], spec.get("buckets", 100))
    raise InvalidStatistics("histogram needs 'bounds' or 'values'")


def table_stats_from_dict(name: str, spec: Mapping[str, Any]) -> TableStats:
    """Build one TableStats from plain data (see StatisticsCatalog.from_dict)."""
    try:
        columns = {}
        for column_name, column_spec in (spec.get("columns") or {}).items():
            histogram = column_spec.get("histogram")
            columns[column_name] = ColumnStats(
                distinct_count=int(column_spec["distinct_count"]),
                is_nullable=bool(column_spec.get("is_nullable", True)),
                avg_width=column_spec.get("avg_width"),
                range_selectivity=column_spec.get("range_selectivity"),
                histogram=_histogram_from_dict(histogram) if histogram else None,
            )
        return TableStats(
            name=name,
            row_count=int(spec["row_count"]),
            avg_row_bytes=int(spec["avg_row_bytes"]),
            page_bytes=int(spec.get("page_bytes", DEFAULT_PAGE_BYTES)),
            columns=columns,
        )
    except KeyError as e:
        raise InvalidStatistics(f"missing field {e.args[0]}", name) from e
