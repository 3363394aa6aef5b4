"""
Configuration management for the index advisor
"""

import os
import logging
import dataclasses
import yaml
import psutil
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from pathlib import Path


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class CostParameters:
    """Hardware and engine parameters of the cost model (costs are in seconds)"""
    sequential_throughput: float = 500e6  # bytes/s read sequentially
    random_iops: float = 7500.0  # random page reads per second
    cpu_row_cost: float = 1e-5  # evaluate one row or index entry
    merge_cost_per_row: float = 2e-7  # merge one row id during intersection
    sort_cost_per_row: float = 1e-6  # per n*log2(n) comparison unit
    default_range_selectivity: float = 0.3
    row_pointer_bytes: int = 8  # row id stored next to each index key
    default_column_width: int = 8

    # When set, random_iops is derived so that a non-covering index probe
    # breaks even with a full scan at this fraction of rows.
    tipping_point_ratio: Optional[float] = None
    reference_row_bytes: int = 100

    def validate(self):
        """Raise ValueError for parameters the formulas cannot use"""
        positive = {
            "sequential_throughput": self.sequential_throughput,
            "random_iops": self.random_iops,
            "row_pointer_bytes": self.row_pointer_bytes,
            "default_column_width": self.default_column_width,
            "reference_row_bytes": self.reference_row_bytes,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

        non_negative = {
            "cpu_row_cost": self.cpu_row_cost,
            "merge_cost_per_row": self.merge_cost_per_row,
            "sort_cost_per_row": self.sort_cost_per_row,
        }
        for name, value in non_negative.items():
            if value < 0:
                raise ValueError(f"{name} must not be negative, got {value}")

        if not 0.0 < self.default_range_selectivity <= 1.0:
            raise ValueError(
                f"default_range_selectivity must be in (0, 1], "
                f"got {self.default_range_selectivity}"
            )
        if self.tipping_point_ratio is not None and not 0.0 < self.tipping_point_ratio < 1.0:
            raise ValueError(
                f"tipping_point_ratio must be in (0, 1), got {self.tipping_point_ratio}"
            )

    def resolved(self) -> 'CostParameters':
        """
        Return the parameters the cost model should use.

        Without a tipping point target this is ``self``. With one, the random
        I/O rate is solved from the break-even equation

            t * (cpu + 1 / iops) = reference_row_bytes / throughput + cpu

        so the scan/index crossover lands on ``t`` for reference-width rows.
        """
        self.validate()
        if self.tipping_point_ratio is None:
            return self

        t = self.tipping_point_ratio
        scan_per_row = self.reference_row_bytes / self.sequential_throughput + self.cpu_row_cost
        fetch_per_row = scan_per_row / t - self.cpu_row_cost
        random_iops = 1.0 / fetch_per_row

        logging.debug(
            f"Derived random_iops={random_iops:.1f} from tipping point ratio {t:.4f}"
        )
        return dataclasses.replace(self, random_iops=random_iops, tipping_point_ratio=None)


def default_workers() -> int:
    """Half the available cores, at least one"""
    cpu_count = psutil.cpu_count() or 1
    return max(1, cpu_count // 2)


_INT_COST_FIELDS = ('row_pointer_bytes', 'default_column_width', 'reference_row_bytes')


def _number(name: str, value: Any, kind: type):
    """Convert a setting read from YAML or the environment; YAML 1.1 reads '200e6' as a string"""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}") from None
    if kind is int:
        if not number.is_integer():
            raise ValueError(f"{name} must be an integer, got {value!r}")
        return int(number)
    return number


def _cost_value(name: str, value: Any):
    if name == 'tipping_point_ratio' and value is None:
        return None
    return _number(name, value, int if name in _INT_COST_FIELDS else float)


def _worker_value(value: Any) -> Optional[int]:
    """'auto' (or null) sizes the pool from the host"""
    if value is None or (isinstance(value, str) and value.strip().lower() == 'auto'):
        return None
    return _number('max_workers', value, int)


@dataclass
class AdvisorConfig:
    """Main index advisor configuration"""
    log_level: str = "INFO"

    # None sizes the pool from the host; 1 keeps everything on the caller's thread
    max_workers: Optional[int] = 1
    max_intersection_width: int = 3

    cost: CostParameters = field(default_factory=CostParameters)

    def validate(self):
        """Raise ValueError for unusable settings"""
        self.cost.validate()
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.max_intersection_width < 2:
            raise ValueError(
                f"max_intersection_width must be at least 2, "
                f"got {self.max_intersection_width}"
            )
        if logging.getLevelName(self.log_level.upper()) not in (
            logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL
        ):
            raise ValueError(f"Unknown log level: {self.log_level}")

    def worker_count(self) -> int:
        """Number of threads used for per-pattern and per-candidate fan-out"""
        if self.max_workers is None:
            return default_workers()
        return self.max_workers

    @classmethod
    def from_file(cls, config_path: str) -> 'AdvisorConfig':
        """Load configuration from YAML file"""
        config_path = Path(config_path)
        if not config_path.exists():
            return cls()

        with open(config_path, 'r') as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AdvisorConfig':
        """Create config from dictionary, ignoring unknown keys"""
        config = cls()

        for key, value in data.items():
            if not hasattr(config, key):
                logging.warning(f"Ignoring unknown advisor setting: {key}")
                continue
            if key == 'cost':
                if not isinstance(value, dict):
                    raise ValueError(f"cost must be a mapping, got {value!r}")
                for sub_key, sub_value in value.items():
                    if hasattr(config.cost, sub_key):
                        setattr(config.cost, sub_key, _cost_value(sub_key, sub_value))
                    else:
                        logging.warning(f"Ignoring unknown advisor setting: {key}.{sub_key}")
            elif key == 'max_workers':
                config.max_workers = _worker_value(value)
            elif key == 'max_intersection_width':
                config.max_intersection_width = _number(key, value, int)
            else:
                setattr(config, key, str(value))

        config.validate()
        return config

    @classmethod
    def from_env(cls) -> 'AdvisorConfig':
        """Load configuration from environment variables"""
        config = cls()

        config.log_level = os.getenv('INDEX_ADVISOR_LOG_LEVEL', config.log_level)

        workers = os.getenv('INDEX_ADVISOR_MAX_WORKERS')
        if workers is not None:
            config.max_workers = _worker_value(workers)
        width = os.getenv('INDEX_ADVISOR_MAX_INTERSECTION_WIDTH')
        if width is not None:
            config.max_intersection_width = _number('max_intersection_width', width, int)

        for cost_field in dataclasses.fields(CostParameters):
            env_value = os.getenv(f'INDEX_ADVISOR_{cost_field.name.upper()}')
            if env_value is not None:
                setattr(config.cost, cost_field.name, _cost_value(cost_field.name, env_value))

        config.validate()
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary"""
        return dataclasses.asdict(self)

    def save_to_file(self, config_path: str):
        """Save configuration to YAML file"""
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, 'w') as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)


def configure_logging(level: str = "INFO"):
    """Configure root logging for scripts that embed the advisor"""
    logging.basicConfig(level=getattr(logging, level.upper()), format=LOG_FORMAT)
