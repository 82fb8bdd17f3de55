"""Application configuration helpers."""

from __future__ import annotations

from .env import prefixed_env, require_env_var, require_env_vars
from .errors import ConfigurationError, InvalidSettingError, MissingConfigurationError
from .logging import configure_logging
from .phantoms import (
    ENV_PREFIX,
    get_phantom_policy,
    get_policy_source_name,
    parse_flag,
    parse_id_set,
    parse_policy,
    parse_seconds,
)
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .sync import ReconcileConfig, get_reconcile_config

__all__ = [
    "ENV_PREFIX",
    "ConfigurationError",
    "DatabaseConfig",
    "InvalidSettingError",
    "MissingConfigurationError",
    "ReconcileConfig",
    "StorageConfig",
    "configure_logging",
    "get_database_config",
    "get_phantom_policy",
    "get_policy_source_name",
    "get_reconcile_config",
    "get_storage_config",
    "parse_flag",
    "parse_id_set",
    "parse_policy",
    "parse_seconds",
    "prefixed_env",
    "require_env_var",
    "require_env_vars",
]
