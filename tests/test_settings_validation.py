from __future__ import annotations

import math

import pytest

from alert_governance.models import UNBOUNDED_CAP, AlertSettings, AlertSeverity
from alert_governance.policy.validation import (
    SettingsValidationError,
    assert_valid_alert_settings,
    parse_hhmm,
    validate_alert_settings,
)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("00:00", 0),
        ("07:30", 450),
        ("23:59", 1439),
        ("7:05", 425),
        ("24:00", None),
        ("25:00", None),
        ("12:60", None),
        ("noon", None),
        (730, None),
    ],
)
def test_parse_hhmm(value, expected) -> None:
    assert parse_hhmm(value) == expected


def test_defaults_are_valid() -> None:
    result = validate_alert_settings(None)
    assert result.is_valid
    assert result.errors == []
    assert result.normalized.daily_caps.critical == 1
    assert result.normalized.daily_caps.important == 2
    assert result.normalized.daily_caps.moderate == 4
    assert result.normalized.daily_caps.low == UNBOUNDED_CAP
    assert result.normalized.snooze_preferences.default_hours == 24


def test_bad_quiet_hours_and_negative_cap_are_normalized() -> None:
    result = validate_alert_settings(
        {
            "quietHours": {"start": "25:00", "end": "07:00"},
            "dailyCaps": {"critical": -1},
        }
    )

    assert not result.is_valid
    assert len(result.errors) == 2
    assert result.normalized.quiet_hours is None
    assert result.normalized.daily_caps.critical == 1


def test_strict_variant_raises_with_all_errors() -> None:
    with pytest.raises(SettingsValidationError) as exc:
        assert_valid_alert_settings(
            {
                "quietHours": {"start": "25:00", "end": "07:00"},
                "dailyCaps": {"critical": -1},
            }
        )
    assert len(exc.value.errors) == 2


def test_strict_variant_returns_normalized_settings() -> None:
    settings = assert_valid_alert_settings(
        {"studentId": "s9", "quietHours": {"start": "21:00", "end": "06:30"}}
    )
    assert isinstance(settings, AlertSettings)
    assert settings.student_id == "s9"
    assert settings.quiet_hours is not None
    assert settings.quiet_hours.end == "06:30"


def test_snake_case_keys_are_accepted() -> None:
    result = validate_alert_settings(
        {"daily_caps": {"moderate": 6}, "snooze_preferences": {"default_hours": 2}}
    )
    assert result.is_valid
    assert result.normalized.daily_caps.moderate == 6
    assert result.normalized.snooze_preferences.default_hours == 2


@pytest.mark.parametrize("bad", [float("nan"), "3", True, -0.5])
def test_invalid_cap_values_fall_back_to_default(bad) -> None:
    result = validate_alert_settings({"dailyCaps": {"important": bad}})
    assert not result.is_valid
    assert result.normalized.daily_caps.important == 2


def test_infinite_cap_means_unbounded() -> None:
    result = validate_alert_settings({"dailyCaps": {"critical": math.inf}})
    assert result.is_valid
    assert result.normalized.daily_caps.critical == UNBOUNDED_CAP


def test_invalid_days_are_dropped() -> None:
    result = validate_alert_settings(
        {"quietHours": {"start": "22:00", "end": "07:00", "daysOfWeek": [1, 7, "x", 1, 3]}}
    )
    assert not result.is_valid
    assert result.normalized.quiet_hours.days_of_week == [1, 3]


def test_unknown_timezone_is_dropped() -> None:
    result = validate_alert_settings(
        {"quietHours": {"start": "22:00", "end": "07:00", "timezone": "Mars/Olympus"}}
    )
    assert not result.is_valid
    assert result.normalized.quiet_hours is not None
    assert result.normalized.quiet_hours.timezone is None


def test_throttle_overrides_are_filtered() -> None:
    result = validate_alert_settings(
        {
            "throttle": {
                "baseBySeverity": {"critical": 1.1, "moderate": 0.5, "urgent": 2},
                "maxDelayBySeverity": {"low": 60_000, "important": -1},
            }
        }
    )
    throttle = result.normalized.throttle

    assert not result.is_valid
    assert len(result.errors) == 3
    assert throttle.base_by_severity == {AlertSeverity.CRITICAL: 1.1}
    assert throttle.max_delay_by_severity == {AlertSeverity.LOW: 60_000}


def test_non_positive_snooze_preferences_fall_back() -> None:
    result = validate_alert_settings(
        {"snoozePreferences": {"defaultHours": 0, "dontShowAgainDays": -2}}
    )
    assert not result.is_valid
    assert result.normalized.snooze_preferences.default_hours == 24
    assert result.normalized.snooze_preferences.dont_show_again_days == 7


def test_sensitivity_levels_are_checked() -> None:
    result = validate_alert_settings(
        {
            "sensitivityByKind": {
                "safety": "high",
                "emotion_pattern": "extreme",
                "unknown_kind": "low",
            }
        }
    )
    assert result.normalized.sensitivity_by_kind == {"safety": "high"}
    assert len(result.errors) == 2


def test_non_mapping_input_is_reported() -> None:
    result = validate_alert_settings(["not", "settings"])  # type: ignore[arg-type]
    assert not result.is_valid
    assert result.normalized.daily_caps.critical == 1


def test_model_input_round_trips_through_validation() -> None:
    settings = AlertSettings.model_validate(
        {"quietHours": {"start": "22:00", "end": "07:00"}, "dailyCaps": {"low": 10}}
    )
    result = validate_alert_settings(settings)
    assert result.is_valid
    assert result.normalized == settings
