"""Configuration loading utilities."""

import numbers
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


class ConfigLoader:
    """Load and manage YAML configurations."""

    def __init__(self, config_dir: Optional[str] = None):
        """
        Initialize config loader.

        Args:
            config_dir: Default directory for config files.
        """
        self.config_dir = Path(config_dir) if config_dir else Path("configs")
        self._cache: Dict[str, Dict] = {}

    def load(
        self,
        config_path: Union[str, Path],
        use_cache: bool = True,
    ) -> Dict[str, Any]:
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to config file.
            use_cache: Whether to use cached config.

        Returns:
            Configuration dictionary.
        """
        config_path = Path(config_path)

        # Resolve relative paths against config_dir unless they already exist
        if not config_path.is_absolute():
            if config_path.exists():
                pass
            elif str(config_path).startswith(str(self.config_dir)):
                pass
            else:
                config_path = self.config_dir / config_path

        cache_key = str(config_path)

        if use_cache and cache_key in self._cache:
            return self._cache[cache_key].copy()

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, "r") as f:
            config = yaml.safe_load(f) or {}

        config = self._process_includes(config, config_path.parent)

        if use_cache:
            self._cache[cache_key] = config

        return config.copy()

    def _process_includes(
        self,
        config: Dict,
        base_dir: Path,
    ) -> Dict:
        """
        Process !include directives in config.

        Args:
            config: Configuration dictionary.
            base_dir: Base directory for relative includes.

        Returns:
            Processed configuration.
        """
        if not isinstance(config, dict):
            return config

        result = {}

        for key, value in config.items():
            if isinstance(value, str) and value.startswith("!include "):
                include_path = base_dir / value[9:]
                with open(include_path, "r") as f:
                    result[key] = yaml.safe_load(f)
            elif isinstance(value, dict):
                result[key] = self._process_includes(value, base_dir)
            else:
                result[key] = value

        return result

    def merge(
        self,
        base: Dict[str, Any],
        override: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Deep merge two configurations.

        Args:
            base: Base configuration.
            override: Override configuration.

        Returns:
            Merged configuration.
        """
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self.merge(result[key], value)
            else:
                result[key] = value

        return result

    def save(
        self,
        config: Dict[str, Any],
        path: Union[str, Path],
    ) -> None:
        """
        Save configuration to YAML file.

        Args:
            config: Configuration dictionary.
            path: Output file path.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.dump(config, f, default_flow_style=False, sort_keys=False)


def load_config(
    config_path: Union[str, Path],
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Convenience function to load configuration.

    Args:
        config_path: Path to config file.
        overrides: Optional overrides to apply.

    Returns:
        Configuration dictionary.
    """
    loader = ConfigLoader()
    config = loader.load(config_path)

    if overrides:
        config = loader.merge(config, overrides)

    return config


def get_nested(
    config: Dict[str, Any],
    key: str,
    default: Any = None,
) -> Any:
    """
    Get nested config value using dot notation.

    Args:
        config: Configuration dictionary.
        key: Dot-separated key (e.g., 'hough_voting.min_area').
        default: Default value if key not found.

    Returns:
        Config value or default.
    """
    keys = key.split(".")
    value = config

    for k in keys:
        if isinstance(value, dict) and k in value:
            value = value[k]
        else:
            return default

    return value


def set_nested(
    config: Dict[str, Any],
    key: str,
    value: Any,
) -> None:
    """
    Set nested config value using dot notation.

    Args:
        config: Configuration dictionary.
        key: Dot-separated key.
        value: Value to set.
    """
    keys = key.split(".")
    current = config

    for k in keys[:-1]:
        if k not in current:
            current[k] = {}
        current = current[k]

    current[keys[-1]] = value


# =============================================================================
# Hough Voting Parameters
# =============================================================================

# Fields that must hold non-negative integers
_NON_NEGATIVE_INT_FIELDS = (
    "min_area",
    "ransac_iterations",
    "max_sample_attempts",
    "preemptive_batch",
    "max_inliers",
    "min_ref_steps",
    "pose_iterations",
)


@dataclass
class HoughVotingConfig:
    """
    Parameters of one Hough voting detection pass.

    Attributes:
        min_area: Minimum pixel count for a class to be considered (inclusive).
        inlier_threshold: Max point-to-line distance (pixels) of an inlier vote.
        ransac_iterations: Number of hypothesis sampling slots.
        max_sample_attempts: Attempts per slot before the slot yields nothing.
        preemptive_batch: Pixel budget added to a hypothesis per iteration.
        max_inliers: Inlier lists longer than this are down-sampled for refits.
        min_ref_steps: Refinements a lone surviving hypothesis must receive.
        pose_iterations: Objective evaluation budget of the pose optimizer.
        rotation_range_deg: Rotation search range per axis (degrees).
        translation_range_xy: X/Y translation search range (unit-depth units).
        translation_range_z: Z translation search range.
        box_margin: Fractional margin added on each side of the output box.
        jitter_fraction: Fractional box shift of the jittered detections.
        seed: Root seed of all random streams; None for fresh entropy.
        num_workers: Thread pool size; <= 0 uses one worker per CPU.
    """

    min_area: int = 400
    inlier_threshold: float = 0.5
    ransac_iterations: int = 256
    max_sample_attempts: int = 1000
    preemptive_batch: int = 1000
    max_inliers: int = 1000
    min_ref_steps: int = 8
    pose_iterations: int = 100
    rotation_range_deg: float = 180.0
    translation_range_xy: float = 0.1
    translation_range_z: float = 0.5
    box_margin: float = 0.1
    jitter_fraction: float = 0.05
    seed: Optional[int] = None
    num_workers: int = 1

    def __post_init__(self):
        """Validate parameter values."""
        self.validate()

    def validate(self) -> None:
        """
        Check parameter ranges.

        Raises:
            ValueError: If an integer field is negative or not an integer, or
                        a threshold/range is not positive.
        """
        for name in _NON_NEGATIVE_INT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise ValueError(f"Need integer {name}, got {value!r}")
            if value < 0:
                raise ValueError(f"Need {name} >= 0, got {value}")
            setattr(self, name, int(value))

        if self.inlier_threshold <= 0:
            raise ValueError(f"Need inlier_threshold > 0, got {self.inlier_threshold}")

        for name in ("rotation_range_deg", "translation_range_xy", "translation_range_z"):
            if getattr(self, name) < 0:
                raise ValueError(f"Need {name} >= 0, got {getattr(self, name)}")

        if self.box_margin < 0 or self.jitter_fraction < 0:
            raise ValueError("box_margin and jitter_fraction must be non-negative")

        if self.seed is not None:
            if (
                isinstance(self.seed, bool)
                or not isinstance(self.seed, numbers.Integral)
                or self.seed < 0
            ):
                raise ValueError(f"Need seed >= 0 or None, got {self.seed!r}")
            self.seed = int(self.seed)

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]]) -> "HoughVotingConfig":
        """
        Build from a configuration dictionary.

        Accepts either the flat parameter mapping or a full config whose
        'hough_voting' section holds it. Unknown keys are ignored.

        Args:
            config: Configuration dictionary (may be None).

        Returns:
            HoughVotingConfig instance.
        """
        config = config or {}
        section = config.get("hough_voting", config) or {}
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in section.items() if k in known})

    @classmethod
    def from_yaml(cls, config_path: Union[str, Path]) -> "HoughVotingConfig":
        """Load from a YAML config file."""
        return cls.from_dict(load_config(config_path))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)
