"""
Workload snapshot loading and result serialization.

A snapshot is a YAML (or JSON) document:

    budget_bytes: 67108864
    tables:
      orders:
        row_count: 1000000
        avg_row_bytes: 100
        columns:
          user_id: {distinct_count: 10000, avg_width: 8}
    existing_indexes:
      - {table: orders, columns: [user_id], name: idx_orders_user}
    patterns:
      - {id: recent_orders, table: orders, equality: [user_id],
         order_by: [created_at], frequency: 20}
    config:
      cost: {random_iops: 150}
"""

import json
import logging
import yaml
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .config import AdvisorConfig
from .errors import AdvisorError, InvalidIndexDefinition, InvalidPattern
from .models import AccessPath, AdvisorResult, IndexDef, QueryPattern
from .table_stats import TableStats, table_stats_from_dict


@dataclass(frozen=True)
class Snapshot:
    """Inputs of one advisor run, plus the workload entries that could not be read."""

    tables: List[TableStats]
    patterns: List[QueryPattern]
    existing_indexes: List[IndexDef] = field(default_factory=list)
    budget_bytes: Optional[int] = None
    config: Optional[AdvisorConfig] = None
    errors: Dict[str, AdvisorError] = field(default_factory=dict)


def _bound(pattern_id: str, column: str, value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidPattern(pattern_id, f"bound {value!r} for {column} is not numeric") from None


def _pattern_from_dict(spec: Mapping[str, Any], position: int) -> QueryPattern:
    """Build one pattern; any malformed field raises InvalidPattern."""
    if not isinstance(spec, Mapping):
        raise InvalidPattern(f"patterns[{position}]", "entry must be a mapping")
    pattern_id = str(spec.get("id") or "")
    label = pattern_id or f"patterns[{position}]"

    if "table" not in spec:
        raise InvalidPattern(label, "missing field table")

    bounds = {}
    for column, pair in (spec.get("range_bounds") or {}).items():
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise InvalidPattern(label, f"bounds for {column} must be [low, high]")
        bounds[column] = (_bound(label, column, pair[0]), _bound(label, column, pair[1]))

    try:
        frequency = float(spec.get("frequency", 1.0))
    except (TypeError, ValueError):
        raise InvalidPattern(label, f"frequency {spec.get('frequency')!r} is not numeric") from None

    projection = spec.get("projection")
    return QueryPattern(
        table=spec["table"],
        equality_columns=frozenset(spec.get("equality") or ()),
        range_columns=frozenset(spec.get("range") or ()),
        order_by=tuple(spec.get("order_by") or ()),
        frequency=frequency,
        pattern_id=pattern_id,
        projection=frozenset(projection) if projection is not None else None,
        range_bounds=bounds,
    )


def _index_from_dict(spec: Mapping[str, Any]) -> IndexDef:
    if not isinstance(spec, Mapping) or "table" not in spec or not spec.get("columns"):
        table = spec.get("table", "?") if isinstance(spec, Mapping) else "?"
        raise InvalidIndexDefinition(table, (), "entry needs table and columns")
    return IndexDef(table=spec["table"], key_columns=tuple(spec["columns"]), name=spec.get("name"))


def snapshot_from_dict(data: Mapping[str, Any]) -> Snapshot:
    """
    Build run inputs from plain data.

    Invalid table statistics abort loading. A malformed pattern is recorded
    in ``Snapshot.errors`` under its id (or ``patterns[i]``) and skipped; a
    malformed existing index is logged and skipped.
    """
    tables = [table_stats_from_dict(name, spec) for name, spec in (data.get("tables") or {}).items()]

    patterns = []
    errors: Dict[str, AdvisorError] = {}
    for position, spec in enumerate(data.get("patterns") or []):
        try:
            patterns.append(_pattern_from_dict(spec, position))
        except InvalidPattern as e:
            logging.warning(f"Skipping unreadable pattern: {e}")
            errors.setdefault(e.pattern_id, e)

    existing = []
    for spec in data.get("existing_indexes") or []:
        try:
            existing.append(_index_from_dict(spec))
        except InvalidIndexDefinition as e:
            logging.warning(f"Ignoring unreadable existing index: {e}")

    config = AdvisorConfig.from_dict(data["config"]) if data.get("config") else None

    budget = data.get("budget_bytes")
    return Snapshot(
        tables=tables,
        patterns=patterns,
        existing_indexes=existing,
        budget_bytes=int(budget) if budget is not None else None,
        config=config,
        errors=errors,
    )


def load_snapshot(path: str) -> Snapshot:
    """Load a snapshot file; YAML is a superset of JSON so both are accepted."""
    snapshot_path = Path(path)
    with open(snapshot_path, "r") as f:
        data = yaml.safe_load(f) or {}

    snapshot = snapshot_from_dict(data)
    logging.info(
        f"Loaded snapshot {snapshot_path.name}: {len(snapshot.tables)} tables, "
        f"{len(snapshot.patterns)} patterns, {len(snapshot.existing_indexes)} existing indexes"
    )
    return snapshot


def _index_to_dict(index: IndexDef) -> Dict[str, Any]:
    data = {"id": index.id, "table": index.table, "columns": list(index.key_columns)}
    if index.name:
        data["name"] = index.name
    return data


def access_path_to_dict(path: AccessPath) -> Dict[str, Any]:
    return {
        "kind": path.kind.value,
        "indexes": list(path.index_ids),
        "estimated_cost": path.estimated_cost,
        "estimated_rows_examined": path.estimated_rows_examined,
        "estimated_rows_returned": path.estimated_rows_returned,
        "covering": path.covering,
        "sort_avoided": path.sort_avoided,
    }


def result_to_dict(result: AdvisorResult) -> Dict[str, Any]:
    """Plain-data view of a result, ready for json.dumps."""
    return {
        "recommendations": [
            {
                "index": _index_to_dict(rec.index),
                "serves": list(rec.serves),
                "estimated_cost_reduction": rec.estimated_cost_reduction,
                "storage_bytes": rec.storage_bytes,
            }
            for rec in result.recommendations
        ],
        "chosen_paths": {
            pattern_id: access_path_to_dict(path)
            for pattern_id, path in sorted(result.chosen_paths.items())
        },
        "errors": {
            pattern_id: {"type": type(error).__name__, "message": str(error)}
            for pattern_id, error in sorted(result.errors.items())
        },
        "droppable": [
            {
                "index": _index_to_dict(suggestion.index),
                "reason": suggestion.reason,
                "superseded_by": suggestion.superseded_by.id if suggestion.superseded_by else None,
            }
            for suggestion in result.droppable
        ],
        "baseline_cost": result.baseline_cost,
        "final_cost": result.final_cost,
        "storage_used_bytes": result.storage_used_bytes,
    }


def dump_result(result: AdvisorResult, path: str):
    """Write a result as indented JSON."""
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(result_to_dict(result), f, indent=2)
