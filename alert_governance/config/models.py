"""
Pydantic models for application configuration.

This module defines all configuration models that are validated when loading
the YAML configuration file. The models ensure type safety and provide
sensible defaults for optional settings.

Configuration file:
    - config/governance.yaml: policy, baseline, storage and logging settings

Example:
    >>> from alert_governance.config.models import AppConfig
    >>> config = AppConfig()
    >>> config.policy.dedupe_window_ms
    3600000
"""

from enum import Enum
from typing import Any, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from alert_governance.limits import (
    ADMISSION_LEDGER_MAX,
    AUDIT_MAX_ENTRIES,
    DEDUPE_WINDOW_MS,
    MAX_THROTTLE_DELAY_MS,
    THROTTLE_BASE_DELAY_MS,
)
from alert_governance.models.settings import AlertSettings


# =============================================================================
# ENUMS
# =============================================================================


class StorageBackend(str, Enum):
    """Where persisted engine state lives."""

    MEMORY = "memory"
    REDIS = "redis"


class LogFormat(str, Enum):
    """Logging format options."""

    JSON = "json"
    TEXT = "text"


class LogLevel(str, Enum):
    """Logging level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# =============================================================================
# POLICY ENGINE
# =============================================================================


class PolicyConfig(BaseModel):
    """Alert policy engine settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    namespace: str = Field(
        default="",
        description="Prefix for every persisted policy key",
    )
    timezone: str = Field(
        default="UTC",
        description="IANA timezone used for calendar days and quiet hours",
    )
    dedupe_window_ms: int = Field(
        default=DEDUPE_WINDOW_MS,
        description="Default deduplication bucket width",
        gt=0,
    )
    throttle_base_delay_ms: int = Field(
        default=THROTTLE_BASE_DELAY_MS,
        description="Backoff delay at zero attempts",
        gt=0,
        le=MAX_THROTTLE_DELAY_MS,
    )
    max_throttle_delay_ms: int = Field(
        default=MAX_THROTTLE_DELAY_MS,
        description="Upper bound on any throttle delay, never above six hours",
        gt=0,
        le=MAX_THROTTLE_DELAY_MS,
    )
    audit_max_entries: int = Field(
        default=AUDIT_MAX_ENTRIES,
        description="Audit entries retained per student",
        ge=1,
    )
    admission_ledger_max: int = Field(
        default=ADMISSION_LEDGER_MAX,
        description="Admitted alerts retained per student for cap counting",
        ge=1,
    )

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown IANA names."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v


# =============================================================================
# BASELINE SERVICE
# =============================================================================


class BaselineConfig(BaseModel):
    """Baseline service settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    windows: List[int] = Field(
        default_factory=lambda: [7, 14, 30],
        description="Rolling window lengths in days",
        min_length=1,
    )
    min_sessions: int = Field(
        default=10,
        description="Sessions needed before a baseline is computed",
        ge=1,
    )
    min_unique_days: int = Field(
        default=7,
        description="Distinct days needed before a baseline is computed",
        ge=1,
    )
    min_window_samples: int = Field(
        default=3,
        description="Samples needed for a (factor, window) statistic to be emitted",
        ge=1,
    )
    outlier_z_threshold: float = Field(
        default=3.5,
        description="Robust z-score beyond which a value is an outlier",
        gt=0,
    )
    prior_alpha: float = Field(
        default=0.5,
        description="Beta prior alpha for sensory rates (Jeffreys)",
        gt=0,
    )
    prior_beta: float = Field(
        default=0.5,
        description="Beta prior beta for sensory rates (Jeffreys)",
        gt=0,
    )
    confidence_level: float = Field(
        default=0.95,
        description="Level for confidence and credible intervals",
        gt=0,
        lt=1,
    )
    update_interval_days: int = Field(
        default=7,
        description="Suggested days between recomputations",
        ge=1,
    )

    @field_validator("windows")
    @classmethod
    def validate_windows(cls, v: List[int]) -> List[int]:
        """Windows must be positive; duplicates are dropped and order is ascending."""
        if any(w <= 0 for w in v):
            raise ValueError("windows must be positive day counts")
        return sorted(set(v))


# =============================================================================
# STORAGE / CONNECTIONS
# =============================================================================


class StorageConfig(BaseModel):
    """Persistence backend selection."""

    model_config = {"frozen": True, "extra": "forbid"}

    backend: StorageBackend = Field(
        default=StorageBackend.MEMORY,
        description="Key-value backend",
    )
    key_ttl_seconds: Optional[int] = Field(
        default=None,
        description="Expiry applied to every key written (redis only)",
        ge=1,
    )


class RedisConnectionConfig(BaseModel):
    """Redis connection configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL",
    )
    db: int = Field(
        default=0,
        description="Redis database number",
        ge=0,
        le=15,
    )
    socket_timeout: float = Field(
        default=5.0,
        description="Socket timeout in seconds",
        gt=0,
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    format: LogFormat = Field(
        default=LogFormat.JSON,
        description="Log output format",
    )
    level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Log level",
    )


# =============================================================================
# ROOT CONFIGURATION
# =============================================================================


class AppConfig(BaseModel):
    """Root configuration object."""

    model_config = {"frozen": True, "extra": "forbid"}

    policy: PolicyConfig = Field(
        default_factory=PolicyConfig,
        description="Alert policy engine settings",
    )
    baseline: BaselineConfig = Field(
        default_factory=BaselineConfig,
        description="Baseline service settings",
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Persistence backend",
    )
    redis: RedisConnectionConfig = Field(
        default_factory=RedisConnectionConfig,
        description="Redis connection config",
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging settings",
    )
    alert_defaults: AlertSettings = Field(
        default_factory=AlertSettings,
        description="Alert settings applied when a student has none",
    )

    def with_overrides(self, **updates: Any) -> "AppConfig":
        """Return a copy with top-level sections replaced."""
        return self.model_copy(update=updates)
