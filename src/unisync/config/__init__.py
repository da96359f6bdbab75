"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env_bool, optional_env_float, optional_env_int, require_env_vars
from .errors import ConfigurationError, InvalidConfigurationError, MissingConfigurationError
from .googledrive import GoogleDriveConfig, get_googledrive_config, googledrive_resilience
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .sync import SyncConfig, get_sync_config

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "GoogleDriveConfig",
    "InvalidConfigurationError",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "SyncConfig",
    "configure_logging",
    "get_database_config",
    "get_googledrive_config",
    "get_storage_config",
    "get_sync_config",
    "googledrive_resilience",
    "optional_env_bool",
    "optional_env_float",
    "optional_env_int",
    "require_env_vars",
]
