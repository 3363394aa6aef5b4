"""
Index Advisor: cost-based access-path selection and index recommendation.
Given table statistics and a weighted workload of predicate patterns, picks
the cheapest access path per pattern and the index set worth building.
"""

__version__ = "1.0.0"
__author__ = "pyHMSSQL Team"

from .access_path_selector import AccessPathSelector
from .advisor import IndexAdvisor
from .config import AdvisorConfig, CostParameters, configure_logging
from .cost_model import CostModel
from .errors import (
    AdvisorError,
    ConflictingPredicate,
    InvalidIndexDefinition,
    InvalidPattern,
    InvalidStatistics,
    TableMismatch,
    UnknownColumn,
    UnknownTable,
)
from .models import (
    AccessKind,
    AccessPath,
    AdvisorResult,
    DropSuggestion,
    IndexDef,
    NormalizedPattern,
    QueryPattern,
    Recommendation,
)
from .normalizer import normalize
from .redundancy import dedupe, find_subsumed, is_prefix
from .snapshot import Snapshot, load_snapshot, result_to_dict, snapshot_from_dict
from .synthesizer import synthesize
from .table_stats import ColumnStats, EquiHeightHistogram, StatisticsCatalog, TableStats
from .workload_optimizer import WorkloadOptimizer

__all__ = [
    'AccessPathSelector',
    'IndexAdvisor',
    'AdvisorConfig',
    'CostParameters',
    'configure_logging',
    'CostModel',
    'AdvisorError',
    'ConflictingPredicate',
    'InvalidIndexDefinition',
    'InvalidPattern',
    'InvalidStatistics',
    'TableMismatch',
    'UnknownColumn',
    'UnknownTable',
    'AccessKind',
    'AccessPath',
    'AdvisorResult',
    'DropSuggestion',
    'IndexDef',
    'NormalizedPattern',
    'QueryPattern',
    'Recommendation',
    'normalize',
    'dedupe',
    'find_subsumed',
    'is_prefix',
    'Snapshot',
    'load_snapshot',
    'result_to_dict',
    'snapshot_from_dict',
    'synthesize',
    'ColumnStats',
    'EquiHeightHistogram',
    'StatisticsCatalog',
    'TableStats',
    'WorkloadOptimizer',
]
