"""
Index advisor: one deterministic, stateless run over a workload snapshot.

Pipeline: normalize patterns -> synthesize candidate indexes -> drop
redundant and already-present candidates -> greedy selection under the
storage budget -> chosen access path per pattern under the final index set.
"""

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional, Union

from .access_path_selector import AccessPathSelector
from .config import AdvisorConfig
from .cost_model import CostModel
from .errors import AdvisorError, InvalidPattern
from .models import AdvisorResult, DropSuggestion, IndexDef, NormalizedPattern, QueryPattern
from .normalizer import normalize
from .redundancy import is_strict_prefix
from .snapshot import Snapshot
from .synthesizer import synthesize_all
from .table_stats import StatisticsCatalog, TableStats
from .workload_optimizer import OptimizationOutcome, WorkloadOptimizer

logger = logging.getLogger(__name__)


class IndexAdvisor:
    """
    Recommends indexes for a weighted workload.

    A malformed pattern is reported in ``AdvisorResult.errors`` and skipped;
    the rest of the workload still produces recommendations. Invalid table
    statistics abort the run since every estimate depends on them.
    """

    def __init__(self, config: Optional[AdvisorConfig] = None):
        self.config = config or AdvisorConfig()
        self.config.validate()

    def build_catalog(
        self, tables: Union[StatisticsCatalog, Iterable[TableStats], Mapping[str, TableStats]]
    ) -> StatisticsCatalog:
        if isinstance(tables, StatisticsCatalog):
            return tables
        return StatisticsCatalog(
            tables,
            default_range_selectivity=self.config.cost.default_range_selectivity,
            default_column_width=self.config.cost.default_column_width,
        )

    def run(
        self,
        tables: Union[StatisticsCatalog, Iterable[TableStats], Mapping[str, TableStats]],
        patterns: Iterable[QueryPattern],
        existing_indexes: Iterable[IndexDef] = (),
        budget_bytes: Optional[int] = None,
    ) -> AdvisorResult:
        """
        Run the advisor over one workload snapshot.

        Args:
            tables: Table statistics (or a ready catalog)
            patterns: Workload patterns
            existing_indexes: Indexes already built
            budget_bytes: Storage budget for new indexes; None means unbounded

        Returns:
            AdvisorResult with recommendations in selection order
        """
        catalog = self.build_catalog(tables)
        cost_model = CostModel(catalog, self.config.cost)
        selector = AccessPathSelector(catalog, cost_model, self.config.max_intersection_width)

        normalized, errors = self._normalize_workload(catalog, patterns)
        existing = self._usable_existing(catalog, existing_indexes)

        optimizer = WorkloadOptimizer(selector, cost_model, self.config.worker_count())
        outcome = optimizer.optimize(normalized, existing, synthesize_all(normalized), budget_bytes)

        droppable = self._droppable(existing, normalized, outcome)

        logger.info(
            f"Advisor run: {len(normalized)} patterns ({len(errors)} rejected), "
            f"{len(outcome.recommendations)} recommendations, "
            f"cost {outcome.baseline_cost:.6f} -> {outcome.final_cost:.6f}"
        )

        return AdvisorResult(
            recommendations=outcome.recommendations,
            chosen_paths=outcome.chosen_paths,
            errors=errors,
            droppable=droppable,
            baseline_cost=outcome.baseline_cost,
            final_cost=outcome.final_cost,
            storage_used_bytes=outcome.storage_used_bytes,
        )

    def _normalize_workload(self, catalog: StatisticsCatalog, patterns: Iterable[QueryPattern]):
        normalized: List[NormalizedPattern] = []
        errors: Dict[str, AdvisorError] = {}
        seen = set()

        for pattern in patterns:
            try:
                if pattern.pattern_id in seen:
                    raise InvalidPattern(pattern.pattern_id, "duplicate pattern id")
                seen.add(pattern.pattern_id)

                normalized_pattern = normalize(pattern)
                catalog.validate_columns(
                    normalized_pattern.table,
                    normalized_pattern.all_columns | (normalized_pattern.projection or frozenset()),
                )
            except AdvisorError as e:
                logger.warning(f"Skipping pattern {pattern.pattern_id}: {e}")
                errors.setdefault(pattern.pattern_id, e)
                continue
            normalized.append(normalized_pattern)

        return normalized, errors

    @staticmethod
    def _usable_existing(catalog: StatisticsCatalog, existing_indexes: Iterable[IndexDef]) -> List[IndexDef]:
        usable = []
        for index in existing_indexes:
            try:
                catalog.validate_columns(index.table, index.key_columns)
            except AdvisorError as e:
                logger.warning(f"Ignoring existing index {index.id}: {e}")
                continue
            usable.append(index)
        return usable

    @staticmethod
    def _droppable(
        existing: List[IndexDef],
        patterns: List[NormalizedPattern],
        outcome: OptimizationOutcome,
    ) -> List[DropSuggestion]:
        """Existing indexes subsumed by a longer index, or unused by a workload that touches their table."""
        used_ids = {index_id for path in outcome.chosen_paths.values() for index_id in path.index_ids}
        workload_tables = {pattern.table for pattern in patterns}

        suggestions = []
        for index in sorted({index.id: index for index in existing}.values(), key=lambda i: i.id):
            longer = [other for other in outcome.configuration if is_strict_prefix(index, other)]
            if longer:
                suggestions.append(DropSuggestion(
                    index=index,
                    reason="prefix",
                    superseded_by=min(longer, key=lambda i: i.id),
                ))
            elif index.table in workload_tables and index.id not in used_ids:
                suggestions.append(DropSuggestion(index=index, reason="unused"))

        return suggestions

    def run_snapshot(self, snapshot: Snapshot) -> AdvisorResult:
        """Run over a loaded snapshot; entries the loader rejected join the per-pattern errors."""
        result = self.run(
            snapshot.tables, snapshot.patterns, snapshot.existing_indexes, snapshot.budget_bytes
        )
        if not snapshot.errors:
            return result
        errors = dict(snapshot.errors)
        errors.update(result.errors)
        return replace(result, errors=errors)
