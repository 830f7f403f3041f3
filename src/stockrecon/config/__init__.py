"""Environment-driven settings, configuration errors and logging setup."""

from __future__ import annotations

from .env import positive_int_env, read_env, require_env_vars
from .errors import ConfigurationError, InvalidSettingError, MissingConfigurationError
from .logging import configure_logging, log_level_from_env
from .reconcile import ReconcileConfig, get_reconcile_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "InvalidSettingError",
    "MissingConfigurationError",
    "ReconcileConfig",
    "StorageConfig",
    "configure_logging",
    "get_database_config",
    "get_reconcile_config",
    "get_storage_config",
    "log_level_from_env",
    "positive_int_env",
    "read_env",
    "require_env_vars",
]
