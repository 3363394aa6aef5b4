"""
Tests for advisor configuration loading.
"""

import pytest

from index_advisor.config import AdvisorConfig, CostParameters, configure_logging, default_workers


class TestAdvisorConfig:
    """Test config construction, files and environment."""

    def test_defaults_valid(self):
        """Test the default configuration validates and runs single-threaded."""
        config = AdvisorConfig()
        config.validate()
        assert config.worker_count() == 1
        assert config.cost == CostParameters()

    def test_auto_workers(self):
        """Test no explicit worker count sizes the pool from the host."""
        config = AdvisorConfig(max_workers=None)
        assert config.worker_count() == default_workers()
        assert config.worker_count() >= 1

    def test_file_round_trip(self, tmp_path):
        """Test saving and loading a YAML file preserves every setting."""
        config = AdvisorConfig(log_level="DEBUG", max_workers=4)
        config.cost.random_iops = 150.0
        config.cost.tipping_point_ratio = 0.05

        path = tmp_path / "conf" / "advisor.yaml"
        config.save_to_file(str(path))
        assert AdvisorConfig.from_file(str(path)) == config

    def test_missing_file_gives_defaults(self, tmp_path):
        """Test a missing config file falls back to defaults."""
        assert AdvisorConfig.from_file(str(tmp_path / "absent.yaml")) == AdvisorConfig()

    def test_from_dict_ignores_unknown_keys(self):
        """Test unknown settings are skipped."""
        config = AdvisorConfig.from_dict({
            "max_intersection_width": 2,
            "colour": "blue",
            "cost": {"cpu_row_cost": 2e-5, "flux": 1},
        })
        assert config.max_intersection_width == 2
        assert config.cost.cpu_row_cost == 2e-5
        assert not hasattr(config, "colour")

    def test_from_dict_validates(self):
        """Test invalid values are rejected after loading."""
        with pytest.raises(ValueError):
            AdvisorConfig.from_dict({"cost": {"random_iops": 0}})
        with pytest.raises(ValueError):
            AdvisorConfig.from_dict({"max_workers": 0})
        with pytest.raises(ValueError):
            AdvisorConfig.from_dict({"log_level": "CHATTY"})

    def test_from_env(self, monkeypatch):
        """Test environment variables override the defaults."""
        monkeypatch.setenv("INDEX_ADVISOR_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("INDEX_ADVISOR_MAX_WORKERS", "auto")
        monkeypatch.setenv("INDEX_ADVISOR_RANDOM_IOPS", "150")
        monkeypatch.setenv("INDEX_ADVISOR_ROW_POINTER_BYTES", "6")

        config = AdvisorConfig.from_env()
        assert config.log_level == "WARNING"
        assert config.max_workers is None
        assert config.cost.random_iops == 150.0
        assert config.cost.row_pointer_bytes == 6

    def test_from_env_defaults(self, monkeypatch):
        """Test an empty environment yields the defaults."""
        monkeypatch.delenv("INDEX_ADVISOR_MAX_WORKERS", raising=False)
        monkeypatch.delenv("INDEX_ADVISOR_LOG_LEVEL", raising=False)
        assert AdvisorConfig.from_env().max_workers == 1


class TestLogging:
    """Test logging setup."""

    def test_configure_logging_accepts_config_level(self):
        """Test the configured level name is accepted."""
        configure_logging(AdvisorConfig(log_level="debug").log_level)


class TestYamlValues:
    """Test values written in YAML notation PyYAML leaves as strings."""

    def test_exponent_without_decimal_point(self, tmp_path):
        """Test '200e6' in a config file loads as a number."""
        path = tmp_path / "advisor.yaml"
        path.write_text("cost:\n  sequential_throughput: 200e6\n  row_pointer_bytes: 6\n")
        config = AdvisorConfig.from_file(str(path))
        assert config.cost.sequential_throughput == 200e6
        assert config.cost.row_pointer_bytes == 6

    def test_non_numeric_cost_rejected(self):
        """Test a non-numeric cost setting is a ValueError."""
        with pytest.raises(ValueError, match="random_iops"):
            AdvisorConfig.from_dict({"cost": {"random_iops": "fast"}})
        with pytest.raises(ValueError, match="row_pointer_bytes"):
            AdvisorConfig.from_dict({"cost": {"row_pointer_bytes": 6.5}})

    def test_auto_workers_in_file(self, tmp_path):
        """Test 'auto' workers is accepted from a file, as from the environment."""
        path = tmp_path / "advisor.yaml"
        path.write_text("max_workers: auto\nmax_intersection_width: '2'\n")
        config = AdvisorConfig.from_file(str(path))
        assert config.max_workers is None
        assert config.max_intersection_width == 2

    def test_bad_workers_rejected(self):
        """Test an unreadable worker count is a ValueError."""
        with pytest.raises(ValueError, match="max_workers"):
            AdvisorConfig.from_dict({"max_workers": "many"})
