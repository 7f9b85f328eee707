"""Utility modules."""

from .config_loader import (
    ConfigLoader,
    HoughVotingConfig,
    get_nested,
    load_config,
    set_nested,
)
from .logger import LoggerMixin, get_logger, setup_logger

__all__ = [
    "ConfigLoader",
    "HoughVotingConfig",
    "load_config",
    "get_nested",
    "set_nested",
    "setup_logger",
    "get_logger",
    "LoggerMixin",
]
