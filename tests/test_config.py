"""
Tests for configuration, logging and thread-pool utilities.
"""

import logging
from pathlib import Path

import numpy as np
import pytest
import yaml


PROJECT_ROOT = Path(__file__).parent.parent


# =============================================================================
# Test HoughVotingConfig
# =============================================================================

class TestHoughVotingConfig:
    """Tests for parameter defaults and validation."""

    def test_defaults(self):
        from houghpose.utils.config_loader import HoughVotingConfig

        config = HoughVotingConfig()

        assert config.min_area == 400
        assert config.inlier_threshold == 0.5
        assert config.ransac_iterations == 256
        assert config.pose_iterations == 100
        assert config.min_ref_steps == 8
        assert config.seed is None

    @pytest.mark.parametrize("field_name", [
        "min_area", "ransac_iterations", "max_sample_attempts",
        "preemptive_batch", "max_inliers", "min_ref_steps", "pose_iterations",
    ])
    def test_negative_integers_rejected(self, field_name):
        from houghpose.utils.config_loader import HoughVotingConfig

        with pytest.raises(ValueError, match=field_name):
            HoughVotingConfig(**{field_name: -1})

    def test_non_integer_rejected(self):
        from houghpose.utils.config_loader import HoughVotingConfig

        with pytest.raises(ValueError):
            HoughVotingConfig(min_area=12.5)

    def test_numpy_integers_accepted(self):
        """Integer scalars read from .npz or computed by numpy are valid."""
        from houghpose.utils.config_loader import HoughVotingConfig

        config = HoughVotingConfig(seed=np.int64(3), min_area=np.int64(400), min_ref_steps=np.int32(2))

        assert config.seed == 3 and type(config.seed) is int
        assert config.min_area == 400 and type(config.min_area) is int
        assert config.min_ref_steps == 2

    def test_bool_rejected(self):
        from houghpose.utils.config_loader import HoughVotingConfig

        with pytest.raises(ValueError):
            HoughVotingConfig(min_area=True)
        with pytest.raises(ValueError):
            HoughVotingConfig(seed=True)

    def test_negative_numpy_integer_rejected(self):
        from houghpose.utils.config_loader import HoughVotingConfig

        with pytest.raises(ValueError, match="max_inliers"):
            HoughVotingConfig(max_inliers=np.int64(-1))
        with pytest.raises(ValueError):
            HoughVotingConfig(seed=np.int64(-1))

    def test_zero_values_allowed(self):
        """Zero budgets are valid, if degenerate."""
        from houghpose.utils.config_loader import HoughVotingConfig

        config = HoughVotingConfig(preemptive_batch=0, min_ref_steps=0, pose_iterations=0)
        assert config.preemptive_batch == 0

    def test_threshold_must_be_positive(self):
        from houghpose.utils.config_loader import HoughVotingConfig

        with pytest.raises(ValueError):
            HoughVotingConfig(inlier_threshold=0.0)

    def test_negative_ranges_rejected(self):
        from houghpose.utils.config_loader import HoughVotingConfig

        with pytest.raises(ValueError):
            HoughVotingConfig(translation_range_z=-0.1)
        with pytest.raises(ValueError):
            HoughVotingConfig(box_margin=-0.1)

    def test_invalid_seed(self):
        from houghpose.utils.config_loader import HoughVotingConfig

        with pytest.raises(ValueError):
            HoughVotingConfig(seed=-3)

    def test_from_dict_section(self):
        """The hough_voting section is used; unknown keys are ignored."""
        from houghpose.utils.config_loader import HoughVotingConfig

        config = HoughVotingConfig.from_dict({
            "hough_voting": {"min_area": 200, "seed": 4, "unused": True},
            "logging": {"level": "DEBUG"},
        })

        assert config.min_area == 200
        assert config.seed == 4
        assert config.ransac_iterations == 256

    def test_from_dict_flat(self):
        from houghpose.utils.config_loader import HoughVotingConfig

        assert HoughVotingConfig.from_dict({"max_inliers": 50}).max_inliers == 50
        assert HoughVotingConfig.from_dict(None) == HoughVotingConfig()

    def test_from_dict_empty_section(self):
        """An empty hough_voting section falls back to the defaults."""
        from houghpose.utils.config_loader import HoughVotingConfig

        config = yaml.safe_load("hough_voting:\nlogging:\n  level: INFO\n")

        assert HoughVotingConfig.from_dict(config) == HoughVotingConfig()

    def test_from_yaml(self, tmp_path):
        from houghpose.utils.config_loader import HoughVotingConfig

        path = tmp_path / "params.yaml"
        path.write_text(yaml.safe_dump({"hough_voting": {"pose_iterations": 20}}))

        assert HoughVotingConfig.from_yaml(path).pose_iterations == 20

    def test_default_config_file(self):
        """The shipped defaults match the built-in ones."""
        from houghpose.utils.config_loader import HoughVotingConfig

        config = HoughVotingConfig.from_yaml(PROJECT_ROOT / "configs" / "default.yaml")
        expected = HoughVotingConfig(seed=0).to_dict()

        assert config.to_dict() == expected


# =============================================================================
# Test Config Helpers
# =============================================================================

class TestConfigHelpers:
    """Tests for YAML loading and dotted-key access."""

    def test_nested_access(self):
        from houghpose.utils.config_loader import get_nested, set_nested

        config = {}
        set_nested(config, "hough_voting.min_area", 10)

        assert config == {"hough_voting": {"min_area": 10}}
        assert get_nested(config, "hough_voting.min_area") == 10
        assert get_nested(config, "hough_voting.missing", "x") == "x"

    def test_load_missing_file(self, tmp_path):
        from houghpose.utils.config_loader import load_config

        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_includes_and_overrides(self, tmp_path):
        """'!include' values are replaced by the referenced file, then overrides merged."""
        from houghpose.utils.config_loader import load_config

        (tmp_path / "params.yaml").write_text(yaml.safe_dump({"min_area": 1, "seed": 2}))
        (tmp_path / "main.yaml").write_text(yaml.safe_dump({
            "hough_voting": "!include params.yaml",
            "logging": {"level": "INFO"},
        }))

        config = load_config(
            tmp_path / "main.yaml",
            overrides={"hough_voting": {"min_area": 5}, "logging": {"level": "DEBUG"}},
        )

        assert config["hough_voting"] == {"min_area": 5, "seed": 2}
        assert config["logging"]["level"] == "DEBUG"


# =============================================================================
# Test Logging
# =============================================================================

class TestLogging:
    """Tests for the logger helpers."""

    def test_logger_mixin_namespace(self):
        """Class loggers live under the package logger."""
        from houghpose.voting.refiner import PreemptiveRefiner

        logger = PreemptiveRefiner().logger
        assert logger.name == "houghpose.PreemptiveRefiner"

    def test_setup_logger_level(self, tmp_path):
        from houghpose.utils.logger import setup_logger

        log_file = tmp_path / "logs" / "run.log"
        logger = setup_logger("houghpose.test_setup", level="DEBUG", log_file=str(log_file), console=False)
        logger.debug("hello")

        for handler in logger.handlers:
            handler.flush()

        assert logger.level == logging.DEBUG
        assert "hello" in log_file.read_text()


# =============================================================================
# Test Thread Pool Helpers
# =============================================================================

class TestParallel:
    """Tests for the data-parallel helpers."""

    def test_normalize_worker_count(self):
        from houghpose.utils.parallel import normalize_worker_count

        assert normalize_worker_count(3) == 3
        assert normalize_worker_count(0) >= 1
        assert normalize_worker_count(-2) >= 1

    def test_single_worker_has_no_executor(self):
        from houghpose.utils.parallel import create_executor

        assert create_executor(1) is None

    def test_parallel_map_keeps_order(self):
        from houghpose.utils.parallel import create_executor, parallel_map

        executor = create_executor(4)
        try:
            result = parallel_map(lambda x: x * x, range(50), executor)
        finally:
            executor.shutdown(wait=True)

        assert result == [x * x for x in range(50)]

    def test_parallel_map_serial(self):
        from houghpose.utils.parallel import parallel_map

        assert parallel_map(np.sqrt, [4.0, 9.0]) == [2.0, 3.0]
