"""
Shared test fixtures and configuration for the index advisor test suite.
"""
import os
import sys
import logging
import pytest

# Add project root to path so the package imports without installation
project_root = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from index_advisor.access_path_selector import AccessPathSelector
from index_advisor.config import CostParameters
from index_advisor.cost_model import CostModel
from index_advisor.models import IndexDef, QueryPattern
from index_advisor.table_stats import ColumnStats, StatisticsCatalog, TableStats

# Configure logging for tests
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)


@pytest.fixture
def hdd_parameters():
    """Spinning-disk cost parameters: 200 MB/s sequential, 150 random IOPS."""
    return CostParameters(sequential_throughput=200e6, random_iops=150)


@pytest.fixture
def events_table():
    """One million 100-byte rows with columns of very different cardinality."""
    return TableStats(
        name="events",
        row_count=1_000_000,
        avg_row_bytes=100,
        columns={
            "id": ColumnStats(distinct_count=1_000_000, is_nullable=False, avg_width=8),
            "account_id": ColumnStats(distinct_count=1000, avg_width=8),
            "kind": ColumnStats(distinct_count=20, avg_width=8),
            "created_at": ColumnStats(distinct_count=500_000, avg_width=8),
            "score": ColumnStats(distinct_count=100, avg_width=8, range_selectivity=0.05),
        },
    )


@pytest.fixture
def events_catalog(events_table):
    """Catalog holding only the events table."""
    return StatisticsCatalog([events_table])


@pytest.fixture
def hdd_cost_model(events_catalog, hdd_parameters):
    """Cost model over the events catalog with spinning-disk parameters."""
    return CostModel(events_catalog, hdd_parameters)


@pytest.fixture
def hdd_selector(events_catalog, hdd_cost_model):
    """Access path selector over the events catalog."""
    return AccessPathSelector(events_catalog, hdd_cost_model)


@pytest.fixture
def sessions_table():
    """Sessions table used by the composite-versus-intersection workload."""
    return TableStats(
        name="sessions",
        row_count=1_000_000,
        avg_row_bytes=100,
        columns={
            "user_id": ColumnStats(distinct_count=10_000, avg_width=8),
            "status": ColumnStats(distinct_count=4, avg_width=8),
            "start_time": ColumnStats(distinct_count=1_000_000, avg_width=8),
        },
    )


@pytest.fixture
def sessions_pattern():
    """Per-user sessions listed by status, then start time."""
    return QueryPattern(
        table="sessions",
        equality_columns={"user_id"},
        order_by=("status", "start_time"),
        frequency=10,
        pattern_id="user_sessions",
    )


@pytest.fixture
def sessions_single_column_indexes():
    """The single-column indexes a naive schema would carry."""
    return [
        IndexDef("sessions", ("user_id",)),
        IndexDef("sessions", ("status",)),
        IndexDef("sessions", ("start_time",)),
    ]
