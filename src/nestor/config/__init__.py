"""Application configuration helpers."""

from __future__ import annotations

from .env import env_flag, non_blank_env, optional_positive_int, optional_seconds
from .errors import ConfigurationError, InvalidConfigurationError, MissingConfigurationError
from .logging import configure_logging
from .nested import NestedLimitsConfig, get_nested_limits_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "InvalidConfigurationError",
    "MissingConfigurationError",
    "NestedLimitsConfig",
    "StorageConfig",
    "configure_logging",
    "env_flag",
    "get_database_config",
    "get_nested_limits_config",
    "get_storage_config",
    "non_blank_env",
    "optional_positive_int",
    "optional_seconds",
]
