"""
Per-student alert settings.

Settings accept both snake_case and camelCase keys so payloads saved by the
web client (quietHours, dailyCaps, maxDelayBySeverity, ...) validate directly.
The models themselves are permissive; the engine always runs settings through
alert_governance.policy.validation before use.

Models:
    QuietHours: Daily suppression window
    DailyCaps: Per-severity admissions per calendar day
    ThrottleSettings: Per-severity backoff overrides
    SnoozePreferences: Default snooze durations
    AlertSettings: Per-student settings root
    SettingsValidationResult: Output of settings normalization
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from alert_governance.models.alerts import AlertSeverity

# Max-safe-integer sentinel; a cap this large never triggers.
UNBOUNDED_CAP = 2**53 - 1

_SETTINGS_MODEL_CONFIG = {
    "frozen": True,
    "extra": "ignore",
    "alias_generator": to_camel,
    "populate_by_name": True,
}


class QuietHours(BaseModel):
    """
    Daily window during which new alerts are held back.

    start > end denotes an overnight window that crosses midnight.

    Attributes:
        start: Window start, "HH:MM".
        end: Window end (exclusive), "HH:MM".
        days_of_week: Days the window applies on, 0=Sunday..6=Saturday.
                      None means every day.
        timezone: IANA timezone the times are expressed in.
    """

    model_config = _SETTINGS_MODEL_CONFIG

    start: str = Field(..., description="Window start, HH:MM")
    end: str = Field(..., description="Window end, HH:MM")
    days_of_week: Optional[List[int]] = Field(
        default=None,
        description="Days the window applies on (0=Sunday)",
    )
    timezone: Optional[str] = Field(
        default=None,
        description="IANA timezone name",
    )


class DailyCaps(BaseModel):
    """Maximum admissions per severity per calendar day."""

    model_config = _SETTINGS_MODEL_CONFIG

    critical: int = Field(default=1, description="Critical alerts per day")
    important: int = Field(default=2, description="Important alerts per day")
    moderate: int = Field(default=4, description="Moderate alerts per day")
    low: int = Field(default=UNBOUNDED_CAP, description="Low alerts per day")

    def for_severity(self, severity: AlertSeverity) -> int:
        return getattr(self, severity.value)


class ThrottleSettings(BaseModel):
    """
    Per-severity backoff overrides.

    Attributes:
        base_by_severity: Exponential base per severity.
        max_delay_by_severity: Delay ceiling per severity, in ms.
    """

    model_config = _SETTINGS_MODEL_CONFIG

    base_by_severity: Dict[AlertSeverity, float] = Field(
        default_factory=dict,
        description="Exponential base per severity",
    )
    max_delay_by_severity: Dict[AlertSeverity, float] = Field(
        default_factory=dict,
        description="Delay ceiling per severity (ms)",
    )


class SnoozePreferences(BaseModel):
    """Default durations for snooze and don't-show-again."""

    model_config = _SETTINGS_MODEL_CONFIG

    default_hours: float = Field(default=24, description="Snooze length in hours")
    dont_show_again_days: float = Field(
        default=7,
        description="Don't-show-again length in days",
    )


class AlertSettings(BaseModel):
    """
    Per-student alert settings.

    Example:
        >>> settings = AlertSettings.model_validate({
        ...     "studentId": "s1",
        ...     "quietHours": {"start": "22:00", "end": "07:00"},
        ...     "dailyCaps": {"critical": 1, "moderate": 4},
        ... })
        >>> settings.daily_caps.important
        2
    """

    model_config = _SETTINGS_MODEL_CONFIG

    student_id: str = Field(
        default="__global__",
        description="Student these settings belong to",
    )
    quiet_hours: Optional[QuietHours] = Field(
        default=None,
        description="Daily suppression window",
    )
    daily_caps: DailyCaps = Field(
        default_factory=DailyCaps,
        description="Per-severity daily caps",
    )
    throttle: Optional[ThrottleSettings] = Field(
        default=None,
        description="Backoff overrides",
    )
    snooze_preferences: SnoozePreferences = Field(
        default_factory=SnoozePreferences,
        description="Default snooze durations",
    )
    sensitivity_by_kind: Dict[str, str] = Field(
        default_factory=dict,
        description="Detector sensitivity per alert kind (low, medium, high)",
    )


class SettingsValidationResult(BaseModel):
    """Output of validate_alert_settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    normalized: AlertSettings
