"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .reconcile import ReconcileSettings, get_reconcile_settings
from .record_service import (
    RecordOperation,
    RecordServiceConfig,
    ScriptDeployment,
    get_record_service_config,
)
from .storage import StorageConfig, get_storage_config

__all__ = [
    "ConfigurationError",
    "MissingConfigurationError",
    "RateLimit",
    "ReconcileSettings",
    "RecordOperation",
    "RecordServiceConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "ScriptDeployment",
    "StorageConfig",
    "configure_logging",
    "get_reconcile_settings",
    "get_record_service_config",
    "get_storage_config",
    "optional_env",
    "require_env_vars",
]
