"""
Workload optimizer: greedy index selection under a storage budget.

Choosing the best index set for a workload is NP-hard; this module uses the
classical greedy marginal-gain heuristic. Each round prices every remaining
candidate against the current configuration and keeps the one with the
largest workload-weighted cost reduction per byte of index storage. Rounds
are strictly sequential since every pick changes the gains of the rest; the
candidates within a round are independent and may be priced in parallel.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from .access_path_selector import AccessPathSelector
from .cost_model import CostModel
from .models import AccessPath, IndexDef, NormalizedPattern, Recommendation
from .redundancy import dedupe, prune_against_existing

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class OptimizationOutcome:
    """Result of one greedy optimization."""

    recommendations: List[Recommendation]
    configuration: List[IndexDef]  # existing + recommended, by id
    chosen_paths: Dict[str, AccessPath]
    baseline_cost: float
    final_cost: float
    storage_used_bytes: int


class WorkloadOptimizer:
    """Selects the recommended index set for a weighted workload."""

    def __init__(self, selector: AccessPathSelector, cost_model: CostModel, max_workers: int = 1):
        """
        Initialize the optimizer.

        Args:
            selector: Access path selector used to price patterns
            cost_model: Cost model providing index storage estimates
            max_workers: Threads used to price candidates within a round
        """
        self.selector = selector
        self.cost_model = cost_model
        self.max_workers = max_workers

    def _map(self, fn: Callable[[T], R], items: Sequence[T]) -> List[R]:
        """Apply ``fn`` to ``items`` in order, fanning out when workers are available."""
        if self.max_workers <= 1 or len(items) <= 1:
            return [fn(item) for item in items]
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(fn, items))

    @staticmethod
    def _weighted(patterns: Iterable[NormalizedPattern], costs: Dict[str, float]) -> float:
        return sum(pattern.frequency * costs[pattern.pattern_id] for pattern in patterns)

    def optimize(
        self,
        patterns: Sequence[NormalizedPattern],
        existing_indexes: Iterable[IndexDef],
        candidate_pool: Iterable[IndexDef],
        budget_bytes: Optional[int],
    ) -> OptimizationOutcome:
        """
        Greedily pick candidate indexes until the budget or the gains run out.

        Args:
            patterns: Validated, normalized workload patterns
            existing_indexes: Indexes already present; they count in the baseline
            candidate_pool: Synthesized candidates (deduplicated here)
            budget_bytes: Storage budget; None means unbounded

        Returns:
            OptimizationOutcome with recommendations in selection order
        """
        patterns = list(patterns)
        existing = sorted({index.id: index for index in existing_indexes}.values(), key=lambda i: i.id)
        candidates = prune_against_existing(dedupe(candidate_pool), existing)

        configuration: Dict[str, List[IndexDef]] = {}
        for index in existing:
            configuration.setdefault(index.table, []).append(index)

        patterns_by_table: Dict[str, List[NormalizedPattern]] = {}
        for pattern in patterns:
            patterns_by_table.setdefault(pattern.table, []).append(pattern)

        current_costs = dict(zip(
            [pattern.pattern_id for pattern in patterns],
            self._map(
                lambda p: self.selector.select(p, configuration.get(p.table, [])).estimated_cost,
                patterns,
            ),
        ))
        baseline_cost = self._weighted(patterns, current_costs)

        selected: List[Tuple[IndexDef, float, int]] = []
        used_bytes = 0
        remaining = [c for c in candidates if c.table in patterns_by_table]
        if not patterns:
            logger.info("Empty workload, nothing to recommend")
        elif budget_bytes is not None and budget_bytes <= 0:
            logger.info("Zero storage budget, nothing to recommend")
            remaining = []
        sizes = {candidate.id: self.cost_model.index_storage_bytes(candidate) for candidate in remaining}

        def evaluate(candidate: IndexDef) -> Tuple[float, Dict[str, float]]:
            trial = configuration.get(candidate.table, []) + [candidate]
            gain = 0.0
            new_costs = {}
            for pattern in patterns_by_table[candidate.table]:
                cost = self.selector.select(pattern, trial).estimated_cost
                new_costs[pattern.pattern_id] = cost
                gain += pattern.frequency * (current_costs[pattern.pattern_id] - cost)
            return gain, new_costs

        round_number = 0
        while remaining:
            round_number += 1
            affordable = [
                candidate for candidate in remaining
                if budget_bytes is None or used_bytes + sizes[candidate.id] <= budget_bytes
            ]
            if not affordable:
                logger.debug(f"Round {round_number}: no remaining candidate fits the budget")
                break

            evaluations = self._map(evaluate, affordable)

            best = None
            best_ratio = 0.0
            for candidate, (gain, new_costs) in zip(affordable, evaluations):
                if gain <= 0.0:
                    continue
                ratio = gain / max(1, sizes[candidate.id])
                # affordable is in id order, so a strict comparison keeps the lowest id on ties
                if best is None or ratio > best_ratio:
                    best = (candidate, gain, new_costs)
                    best_ratio = ratio

            if best is None:
                logger.debug(f"Round {round_number}: no candidate reduces the workload cost")
                break

            candidate, gain, new_costs = best
            configuration.setdefault(candidate.table, []).append(candidate)
            current_costs.update(new_costs)
            used_bytes += sizes[candidate.id]
            selected.append((candidate, gain, sizes[candidate.id]))
            remaining = [c for c in remaining if c.id != candidate.id]

            logger.info(
                f"Selected {candidate.id}: gain {gain:.6f}, "
                f"{sizes[candidate.id]:,} bytes ({used_bytes:,} used)"
            )

        chosen_paths = dict(zip(
            [pattern.pattern_id for pattern in patterns],
            self._map(lambda p: self.selector.select(p, configuration.get(p.table, [])), patterns),
        ))

        recommendations = []
        for index, gain, size in selected:
            serves = tuple(sorted(
                pattern_id for pattern_id, path in chosen_paths.items() if index.id in path.index_ids
            ))
            recommendations.append(Recommendation(
                index=index,
                serves=serves,
                estimated_cost_reduction=gain,
                storage_bytes=size,
            ))

        final_configuration = sorted(
            (index for indexes in configuration.values() for index in indexes), key=lambda i: i.id
        )
        final_cost = self._weighted(
            patterns, {pattern_id: path.estimated_cost for pattern_id, path in chosen_paths.items()}
        )

        return OptimizationOutcome(
            recommendations=recommendations,
            configuration=final_configuration,
            chosen_paths=chosen_paths,
            baseline_cost=baseline_cost,
            final_cost=final_cost,
            storage_used_bytes=used_bytes,
        )
