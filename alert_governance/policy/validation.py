"""
Alert settings validation and normalization.

validate_alert_settings() never raises: malformed values are replaced by safe
defaults (or dropped) and each problem is recorded as an error string.
assert_valid_alert_settings() runs the same normalization and raises if any
problem was found, for call sites that must reject bad input.

Example:
    >>> result = validate_alert_settings({
    ...     "quietHours": {"start": "25:00", "end": "07:00"},
    ...     "dailyCaps": {"critical": -1},
    ... })
    >>> result.is_valid
    False
    >>> result.normalized.quiet_hours is None
    True
    >>> result.normalized.daily_caps.critical
    1
"""

import math
import re
from typing import Any, Dict, List, Mapping, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from alert_governance.models.alerts import AlertKind, AlertSeverity
from alert_governance.models.settings import (
    UNBOUNDED_CAP,
    AlertSettings,
    DailyCaps,
    QuietHours,
    SettingsValidationResult,
    SnoozePreferences,
    ThrottleSettings,
)
from alert_governance.policy.constants import (
    DEFAULT_DAILY_CAPS,
    DEFAULT_DONT_SHOW_DAYS,
    DEFAULT_SNOOZE_HOURS,
)

SettingsInput = Union[AlertSettings, Mapping[str, Any], None]

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")
_SENSITIVITY_LEVELS = ("low", "medium", "high")


class SettingsValidationError(ValueError):
    """
    Raised by assert_valid_alert_settings when normalization found problems.

    Attributes:
        errors: Every problem found, in the order detected.
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid alert settings: " + "; ".join(self.errors))


def parse_hhmm(value: Any) -> Optional[int]:
    """
    Parse "HH:MM" into minutes after midnight.

    Returns:
        Optional[int]: Minutes in [0, 1440), or None if unparsable or out of range.
    """
    if not isinstance(value, str):
        return None
    match = _HHMM.match(value.strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes


def is_valid_timezone(name: Any) -> bool:
    if not isinstance(name, str) or not name:
        return False
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def _pick(data: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in data and data[name] is not None:
            return data[name]
    return None


def _as_number(value: Any) -> Optional[float]:
    """Real numbers only; bools and numeric strings are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _normalize_quiet_hours(raw: Any, errors: List[str]) -> Optional[QuietHours]:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        errors.append("quiet_hours: expected an object with start and end")
        return None

    start = raw.get("start")
    end = raw.get("end")
    bad = [f"'{v}'" for v in (start, end) if parse_hhmm(v) is None]
    if bad:
        errors.append(f"quiet_hours: invalid time {', '.join(bad)} (expected HH:MM)")
        return None

    days: Optional[List[int]] = None
    raw_days = _pick(raw, "days_of_week", "daysOfWeek")
    if raw_days is not None:
        if isinstance(raw_days, (list, tuple)):
            days = []
            for day in raw_days:
                if isinstance(day, int) and not isinstance(day, bool) and 0 <= day <= 6:
                    if day not in days:
                        days.append(day)
                else:
                    errors.append(f"quiet_hours.days_of_week: dropped invalid day {day!r}")
            days = sorted(days) or None
        else:
            errors.append("quiet_hours.days_of_week: expected a list of 0-6")

    tz = raw.get("timezone")
    if tz is not None and not is_valid_timezone(tz):
        errors.append(f"quiet_hours.timezone: unknown timezone {tz!r}")
        tz = None

    return QuietHours(start=start.strip(), end=end.strip(), days_of_week=days, timezone=tz)


def _normalize_caps(raw: Any, errors: List[str]) -> DailyCaps:
    if raw is None:
        return DailyCaps()
    if not isinstance(raw, Mapping):
        errors.append("daily_caps: expected an object keyed by severity")
        return DailyCaps()

    caps: Dict[str, int] = {}
    for severity in AlertSeverity:
        default = DEFAULT_DAILY_CAPS[severity]
        value = raw.get(severity.value)
        if value is None:
            caps[severity.value] = default
            continue
        number = _as_number(value)
        if number is None or math.isnan(number) or number < 0:
            errors.append(
                f"daily_caps.{severity.value}: invalid value {value!r}, using {default}"
            )
            caps[severity.value] = default
        elif math.isinf(number):
            caps[severity.value] = UNBOUNDED_CAP
        else:
            caps[severity.value] = min(int(number), UNBOUNDED_CAP)
    return DailyCaps(**caps)


def _normalize_severity_map(
    raw: Any, field: str, minimum: float, errors: List[str]
) -> Dict[AlertSeverity, float]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        errors.append(f"throttle.{field}: expected an object keyed by severity")
        return {}

    result: Dict[AlertSeverity, float] = {}
    for key, value in raw.items():
        try:
            severity = AlertSeverity(key)
        except ValueError:
            errors.append(f"throttle.{field}: unknown severity {key!r}")
            continue
        number = _as_number(value)
        if number is None or not math.isfinite(number) or number <= 0 or number < minimum:
            errors.append(f"throttle.{field}.{severity.value}: dropped invalid value {value!r}")
            continue
        result[severity] = number
    return result


def _normalize_throttle(raw: Any, errors: List[str]) -> Optional[ThrottleSettings]:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        errors.append("throttle: expected an object")
        return None
    # Bases below 1 would shrink the delay as attempts grow.
    bases = _normalize_severity_map(
        _pick(raw, "base_by_severity", "baseBySeverity"), "base_by_severity", 1.0, errors
    )
    caps = _normalize_severity_map(
        _pick(raw, "max_delay_by_severity", "maxDelayBySeverity"),
        "max_delay_by_severity",
        0.0,
        errors,
    )
    return ThrottleSettings(base_by_severity=bases, max_delay_by_severity=caps)


def _normalize_snooze(raw: Any, errors: List[str]) -> SnoozePreferences:
    if raw is None:
        return SnoozePreferences()
    if not isinstance(raw, Mapping):
        errors.append("snooze_preferences: expected an object")
        return SnoozePreferences()

    values: Dict[str, float] = {}
    for field, camel, default in (
        ("default_hours", "defaultHours", DEFAULT_SNOOZE_HOURS),
        ("dont_show_again_days", "dontShowAgainDays", DEFAULT_DONT_SHOW_DAYS),
    ):
        value = _pick(raw, field, camel)
        if value is None:
            values[field] = default
            continue
        number = _as_number(value)
        if number is None or not math.isfinite(number) or number <= 0:
            errors.append(f"snooze_preferences.{field}: invalid value {value!r}, using {default}")
            values[field] = default
        else:
            values[field] = number
    return SnoozePreferences(**values)


def _normalize_sensitivity(raw: Any, errors: List[str]) -> Dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        errors.append("sensitivity_by_kind: expected an object keyed by alert kind")
        return {}

    result: Dict[str, str] = {}
    for kind, level in raw.items():
        try:
            kind_value = AlertKind(kind).value
        except ValueError:
            errors.append(f"sensitivity_by_kind: unknown alert kind {kind!r}")
            continue
        if level not in _SENSITIVITY_LEVELS:
            errors.append(f"sensitivity_by_kind.{kind_value}: invalid level {level!r}")
            continue
        result[kind_value] = level
    return result


def validate_alert_settings(settings: SettingsInput) -> SettingsValidationResult:
    """
    Validate and normalize alert settings. Never raises.

    Args:
        settings: AlertSettings, a raw mapping (snake_case or camelCase keys),
                  or None for defaults.

    Returns:
        SettingsValidationResult: is_valid, recorded errors, and the
        normalized settings safe to use.
    """
    errors: List[str] = []

    if settings is None:
        data: Mapping[str, Any] = {}
    elif isinstance(settings, AlertSettings):
        data = settings.model_dump(mode="json")
    elif isinstance(settings, Mapping):
        data = settings
    else:
        errors.append(f"settings: expected an object, got {type(settings).__name__}")
        data = {}

    student_id = _pick(data, "student_id", "studentId")
    normalized = AlertSettings(
        student_id=str(student_id) if student_id is not None else "__global__",
        quiet_hours=_normalize_quiet_hours(_pick(data, "quiet_hours", "quietHours"), errors),
        daily_caps=_normalize_caps(_pick(data, "daily_caps", "dailyCaps"), errors),
        throttle=_normalize_throttle(_pick(data, "throttle"), errors),
        snooze_preferences=_normalize_snooze(
            _pick(data, "snooze_preferences", "snoozePreferences"), errors
        ),
        sensitivity_by_kind=_normalize_sensitivity(
            _pick(data, "sensitivity_by_kind", "sensitivityByKind"), errors
        ),
    )

    return SettingsValidationResult(
        is_valid=not errors,
        errors=errors,
        normalized=normalized,
    )


def assert_valid_alert_settings(settings: SettingsInput) -> AlertSettings:
    """
    Strict variant of validate_alert_settings.

    Returns:
        AlertSettings: The normalized settings.

    Raises:
        SettingsValidationError: If any problem was found.
    """
    result = validate_alert_settings(settings)
    if not result.is_valid:
        raise SettingsValidationError(result.errors)
    return result.normalized
