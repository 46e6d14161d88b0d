"""
Configuration management for the governance engine.

Configuration is loaded from config/governance.yaml and validated with
Pydantic models. Environment variables can override:
    - REDIS_URL: Redis connection URL
    - LOG_LEVEL: Application log level
    - ALERT_POLICY_NAMESPACE: Policy key namespace

Example:
    >>> from alert_governance.config import load_config
    >>> config = load_config()
    >>> config.baseline.windows
    [7, 14, 30]

Modules:
    models: Pydantic models for configuration validation
    loader: Configuration file loading utilities
"""

from alert_governance.config.models import (
    # Enums
    LogFormat,
    LogLevel,
    StorageBackend,
    # Sections
    BaselineConfig,
    LoggingConfig,
    PolicyConfig,
    RedisConnectionConfig,
    StorageConfig,
    # Root config
    AppConfig,
)
from alert_governance.config.loader import ConfigLoadError, ConfigLoader, load_config

__all__: list[str] = [
    # Loader
    "load_config",
    "ConfigLoader",
    "ConfigLoadError",
    # Enums
    "LogFormat",
    "LogLevel",
    "StorageBackend",
    # Sections
    "PolicyConfig",
    "BaselineConfig",
    "StorageConfig",
    "RedisConnectionConfig",
    "LoggingConfig",
    # Root config
    "AppConfig",
]
