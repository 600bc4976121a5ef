"""Application configuration helpers."""

from __future__ import annotations

from .env import env_csv, env_float, env_int
from .errors import ConfigurationError, MissingConfigurationError
from .graph import (
    ALL_PREDICTION_RULES,
    DuplicateConfig,
    GraphConfig,
    PredictionConfig,
    get_graph_config,
)
from .logging import configure_logging, resolve_log_level
from .retry import RetryPolicy
from .storage import StorageConfig, get_database_uri, get_storage_config

__all__ = [
    "ALL_PREDICTION_RULES",
    "ConfigurationError",
    "DuplicateConfig",
    "GraphConfig",
    "MissingConfigurationError",
    "PredictionConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "env_csv",
    "env_float",
    "env_int",
    "get_database_uri",
    "get_graph_config",
    "get_storage_config",
    "resolve_log_level",
]
