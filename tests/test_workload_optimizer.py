"""
Tests for greedy index selection under a storage budget.
"""

import pytest

from index_advisor.access_path_selector import AccessPathSelector
from index_advisor.cost_model import CostModel
from index_advisor.models import IndexDef, QueryPattern
from index_advisor.normalizer import normalize
from index_advisor.synthesizer import synthesize_all
from index_advisor.table_stats import StatisticsCatalog
from index_advisor.workload_optimizer import WorkloadOptimizer


@pytest.fixture
def optimizer(events_catalog):
    """Optimizer over the events table with default (SSD) parameters."""
    cost_model = CostModel(events_catalog)
    return WorkloadOptimizer(AccessPathSelector(events_catalog, cost_model), cost_model)


@pytest.fixture
def workload():
    """A frequent per-account lookup and a rare point lookup."""
    return [
        normalize(QueryPattern(table="events", equality_columns={"account_id"}, frequency=5, pattern_id="by_account")),
        normalize(QueryPattern(table="events", equality_columns={"id"}, frequency=1, pattern_id="by_id")),
    ]


class TestGreedySelection:
    """Test the greedy loop."""

    def test_unbounded_budget_takes_all_useful(self, optimizer, workload):
        """Test every candidate with a positive gain is selected, best first."""
        outcome = optimizer.optimize(workload, [], synthesize_all(workload), None)
        assert [rec.index.id for rec in outcome.recommendations] == ["events(account_id)", "events(id)"]
        assert outcome.recommendations[0].serves == ("by_account",)
        assert outcome.recommendations[1].serves == ("by_id",)
        assert outcome.final_cost < outcome.baseline_cost
        assert outcome.storage_used_bytes == 32_000_000

    def test_gains_add_up(self, optimizer, workload):
        """Test the marginal gains account for the whole cost reduction."""
        outcome = optimizer.optimize(workload, [], synthesize_all(workload), None)
        total_gain = sum(rec.estimated_cost_reduction for rec in outcome.recommendations)
        assert total_gain == pytest.approx(outcome.baseline_cost - outcome.final_cost)

    def test_budget_respected(self, optimizer, workload):
        """Test the selection never exceeds the storage budget."""
        outcome = optimizer.optimize(workload, [], synthesize_all(workload), 20_000_000)
        assert [rec.index.id for rec in outcome.recommendations] == ["events(account_id)"]
        assert outcome.storage_used_bytes <= 20_000_000

    def test_zero_budget(self, optimizer, workload):
        """Test a zero budget recommends nothing."""
        outcome = optimizer.optimize(workload, [], synthesize_all(workload), 0)
        assert outcome.recommendations == []
        assert outcome.storage_used_bytes == 0
        assert outcome.final_cost == pytest.approx(outcome.baseline_cost)

    def test_empty_workload(self, optimizer):
        """Test an empty workload recommends nothing and costs nothing."""
        outcome = optimizer.optimize([], [], [IndexDef("events", ("kind",))], None)
        assert outcome.recommendations == []
        assert outcome.baseline_cost == 0.0
        assert outcome.chosen_paths == {}

    def test_existing_index_not_recommended(self, optimizer, workload):
        """Test candidates an existing index already provides are skipped."""
        existing = [IndexDef("events", ("account_id", "kind"))]
        outcome = optimizer.optimize(workload, existing, synthesize_all(workload), None)
        assert [rec.index.id for rec in outcome.recommendations] == ["events(id)"]
        assert outcome.chosen_paths["by_account"].index_ids == ("events(account_id,kind)",)

    def test_candidates_for_other_tables_ignored(self, optimizer, workload):
        """Test candidates on tables the workload never touches are dropped."""
        pool = synthesize_all(workload) + [IndexDef("archive", ("id",))]
        outcome = optimizer.optimize(workload, [], pool, None)
        assert all(rec.index.table == "events" for rec in outcome.recommendations)

    def test_no_gain_no_recommendation(self, events_catalog, hdd_parameters):
        """Test an index that never beats the scan is not recommended."""
        cost_model = CostModel(events_catalog, hdd_parameters)
        optimizer = WorkloadOptimizer(AccessPathSelector(events_catalog, cost_model), cost_model)
        patterns = [normalize(QueryPattern(table="events", equality_columns={"kind"}, pattern_id="by_kind"))]
        outcome = optimizer.optimize(patterns, [], synthesize_all(patterns), None)
        assert outcome.recommendations == []


class TestDeterminism:
    """Test repeated and parallel runs agree."""

    def test_repeatable(self, optimizer, workload):
        """Test the same inputs give the same recommendations and paths."""
        first = optimizer.optimize(workload, [], synthesize_all(workload), None)
        second = optimizer.optimize(workload, [], synthesize_all(workload), None)
        assert first.recommendations == second.recommendations
        assert first.chosen_paths == second.chosen_paths

    def test_parallel_matches_serial(self, events_catalog, workload):
        """Test pricing candidates on several threads changes nothing."""
        cost_model = CostModel(events_catalog)
        serial = WorkloadOptimizer(AccessPathSelector(events_catalog, cost_model), cost_model, max_workers=1)
        parallel = WorkloadOptimizer(AccessPathSelector(events_catalog, cost_model), cost_model, max_workers=4)
        pool = synthesize_all(workload)
        assert serial.optimize(workload, [], pool, None) == parallel.optimize(workload, [], pool, None)

    def test_tie_goes_to_lowest_id(self):
        """Test equal gain per byte picks the candidate with the smallest id."""
        catalog = StatisticsCatalog.from_dict({
            "t": {
                "row_count": 100_000,
                "avg_row_bytes": 200,
                "columns": {"a": {"distinct_count": 1000}, "b": {"distinct_count": 1000}},
            },
        })
        cost_model = CostModel(catalog)
        optimizer = WorkloadOptimizer(AccessPathSelector(catalog, cost_model), cost_model)
        patterns = [
            normalize(QueryPattern(table="t", equality_columns={"b"}, pattern_id="pb")),
            normalize(QueryPattern(table="t", equality_columns={"a"}, pattern_id="pa")),
        ]
        outcome = optimizer.optimize(patterns, [], synthesize_all(patterns), 1_600_000)
        assert [rec.index.id for rec in outcome.recommendations] == ["t(a)"]


class TestExistingPrefix:
    """Test an existing index serving lookups on its leading column."""

    def test_leading_column_lookup_is_cheaper(self, optimizer, workload):
        """Test an existing (A, ...) index lowers the cost of equality on A."""
        without = optimizer.optimize(workload, [], [], None)
        with_prefix = optimizer.optimize(workload, [IndexDef("events", ("account_id", "kind"))], [], None)

        assert with_prefix.baseline_cost < without.baseline_cost
        served = with_prefix.chosen_paths["by_account"]
        assert served.index_ids == ("events(account_id,kind)",)
        assert served.estimated_cost < without.chosen_paths["by_account"].estimated_cost
        assert with_prefix.chosen_paths["by_id"] == without.chosen_paths["by_id"]
