"""
Configuration loader for YAML-based application configuration.

This module loads config/governance.yaml, applies environment overrides and
validates the result with the Pydantic models in config.models. Default alert
settings are validated strictly: a bad cap or quiet-hours string in the
configuration file is a load error, not a silent coercion.

Environment variables override:
    - REDIS_URL: Redis connection URL
    - LOG_LEVEL: Application log level
    - ALERT_POLICY_NAMESPACE: Policy key namespace

Example:
    >>> from alert_governance.config.loader import load_config
    >>> config = load_config("config/governance.yaml")
    >>> config.policy.dedupe_window_ms
    3600000
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from alert_governance.config.models import AppConfig, LogLevel
from alert_governance.policy.validation import (
    SettingsValidationError,
    assert_valid_alert_settings,
)

DEFAULT_CONFIG_PATH = Path("config") / "governance.yaml"


class ConfigLoadError(Exception):
    """
    Raised when configuration loading fails.

    Attributes:
        message: Error message describing what went wrong.
        file_path: Path to the file that caused the error, if applicable.
        cause: Original exception that caused the error, if any.
    """

    def __init__(
        self,
        message: str,
        file_path: Optional[Path] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message
        self.file_path = file_path
        self.cause = cause
        super().__init__(message)


class ConfigLoader:
    """
    Loads and validates application configuration from a YAML file.

    Every top-level section is optional; missing sections take their model
    defaults.

    Example:
        >>> loader = ConfigLoader("config/governance.yaml")
        >>> config = loader.load()
        >>> config.storage.backend
        <StorageBackend.MEMORY: 'memory'>
    """

    def __init__(
        self,
        config_path: Path | str = DEFAULT_CONFIG_PATH,
        environ: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize config loader.

        Args:
            config_path: Path to the YAML file.
            environ: Environment mapping for overrides (defaults to os.environ).

        Raises:
            ConfigLoadError: If the file does not exist.
        """
        self.config_path = Path(config_path)
        self.environ = environ if environ is not None else os.environ
        if not self.config_path.exists():
            raise ConfigLoadError(
                f"Configuration file not found: {self.config_path}",
                file_path=self.config_path,
            )
        if not self.config_path.is_file():
            raise ConfigLoadError(
                f"Configuration path is not a file: {self.config_path}",
                file_path=self.config_path,
            )

    def _load_yaml(self) -> Dict[str, Any]:
        """
        Read and parse the YAML file.

        Returns:
            Dict containing parsed YAML content (empty for an empty file).

        Raises:
            ConfigLoadError: If the file is unreadable, invalid YAML, or not a mapping.
        """
        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigLoadError(
                f"Invalid YAML syntax in {self.config_path}: {e}",
                file_path=self.config_path,
                cause=e,
            ) from e
        except OSError as e:
            raise ConfigLoadError(
                f"Error reading {self.config_path}: {e}",
                file_path=self.config_path,
                cause=e,
            ) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigLoadError(
                f"Configuration root must be a mapping: {self.config_path}",
                file_path=self.config_path,
            )
        return data

    def _section(self, data: Dict[str, Any], name: str) -> Dict[str, Any]:
        section = data.get(name) or {}
        if not isinstance(section, dict):
            raise ConfigLoadError(
                f"Section '{name}' must be a mapping",
                file_path=self.config_path,
            )
        return dict(section)

    def _apply_env_overrides(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Overlay environment variables onto the parsed sections."""
        redis_url = self.environ.get("REDIS_URL")
        if redis_url:
            data["redis"] = {**self._section(data, "redis"), "url": redis_url}

        log_level = self.environ.get("LOG_LEVEL")
        if log_level:
            level = log_level.upper()
            if level not in LogLevel.__members__:
                raise ConfigLoadError(f"Invalid LOG_LEVEL: {log_level}")
            data["logging"] = {**self._section(data, "logging"), "level": level}

        namespace = self.environ.get("ALERT_POLICY_NAMESPACE")
        if namespace is not None:
            data["policy"] = {**self._section(data, "policy"), "namespace": namespace}

        return data

    def load(self) -> AppConfig:
        """
        Load and validate the configuration.

        Returns:
            AppConfig: Validated configuration.

        Raises:
            ConfigLoadError: If loading or validation fails.
        """
        data = self._apply_env_overrides(self._load_yaml())

        try:
            raw_defaults = data.pop("alert_defaults", None)
            alert_defaults = assert_valid_alert_settings(raw_defaults)
        except SettingsValidationError as e:
            raise ConfigLoadError(
                f"Invalid alert_defaults: {'; '.join(e.errors)}",
                file_path=self.config_path,
                cause=e,
            ) from e

        try:
            return AppConfig(**data, alert_defaults=alert_defaults)
        except ValidationError as e:
            raise ConfigLoadError(
                f"Configuration validation failed: {e}",
                file_path=self.config_path,
                cause=e,
            ) from e
        except TypeError as e:
            raise ConfigLoadError(
                f"Unexpected configuration structure: {e}",
                file_path=self.config_path,
                cause=e,
            ) from e


def load_config(
    config_path: Path | str = DEFAULT_CONFIG_PATH,
    environ: Optional[Dict[str, str]] = None,
) -> AppConfig:
    """
    Convenience function to load application configuration.

    Args:
        config_path: Path to the YAML file (default: config/governance.yaml).
        environ: Environment mapping for overrides (defaults to os.environ).

    Returns:
        AppConfig: Validated application configuration.

    Raises:
        ConfigLoadError: If configuration loading fails.
    """
    loader = ConfigLoader(config_path, environ=environ)
    return loader.load()
