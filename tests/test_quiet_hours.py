from __future__ import annotations

from datetime import datetime, timezone

import pytest

from alert_governance.clock import ManualClock
from alert_governance.config.models import PolicyConfig
from alert_governance.policy.engine import AlertPolicies

OVERNIGHT = {"quietHours": {"start": "22:00", "end": "07:00"}}


def _at(hour: int, minute: int = 0, day: int = 6) -> datetime:
    return datetime(2024, 3, day, hour, minute, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "hour,minute,expected",
    [
        (23, 30, True),
        (6, 30, True),
        (12, 0, False),
        (22, 0, True),
        (7, 0, False),
        (21, 59, False),
    ],
)
def test_overnight_window(policies: AlertPolicies, hour, minute, expected) -> None:
    assert policies.is_in_quiet_hours("s1", OVERNIGHT, _at(hour, minute)) is expected


def test_same_day_window(policies: AlertPolicies) -> None:
    settings = {"quietHours": {"start": "12:00", "end": "13:30"}}
    assert policies.is_in_quiet_hours("s1", settings, _at(12, 45))
    assert not policies.is_in_quiet_hours("s1", settings, _at(13, 30))
    assert not policies.is_in_quiet_hours("s1", settings, _at(11, 59))


def test_empty_window_never_matches(policies: AlertPolicies) -> None:
    settings = {"quietHours": {"start": "08:00", "end": "08:00"}}
    assert not policies.is_in_quiet_hours("s1", settings, _at(8, 0))


def test_no_quiet_hours_configured(policies: AlertPolicies) -> None:
    assert not policies.is_in_quiet_hours("s1", None, _at(23, 30))


def test_invalid_times_disable_the_window(policies: AlertPolicies) -> None:
    settings = {"quietHours": {"start": "25:00", "end": "07:00"}}
    assert not policies.is_in_quiet_hours("s1", settings, _at(23, 30))


def test_days_of_week_restricts_window(policies: AlertPolicies) -> None:
    # 2024-03-06 is a Wednesday (3 with Sunday = 0).
    wednesdays = {"quietHours": {"start": "22:00", "end": "07:00", "daysOfWeek": [3]}}
    mondays = {"quietHours": {"start": "22:00", "end": "07:00", "daysOfWeek": [1]}}

    assert policies.is_in_quiet_hours("s1", wednesdays, _at(23, 30))
    assert not policies.is_in_quiet_hours("s1", mondays, _at(23, 30))


def test_quiet_hours_timezone_is_honoured(policies: AlertPolicies) -> None:
    settings = {
        "quietHours": {"start": "22:00", "end": "07:00", "timezone": "America/New_York"}
    }
    # 03:30 UTC on 6 March is 22:30 the previous evening in New York.
    assert policies.is_in_quiet_hours("s1", settings, _at(3, 30))
    assert not policies.is_in_quiet_hours("s1", settings, _at(23, 30))


def test_engine_timezone_used_when_window_has_none(clock: ManualClock) -> None:
    policies = AlertPolicies(clock=clock, config=PolicyConfig(timezone="Asia/Tokyo"))
    # 14:00 UTC is 23:00 in Tokyo.
    assert policies.is_in_quiet_hours("s1", OVERNIGHT, _at(14, 0))


def test_defaults_to_clock_time(policies: AlertPolicies, clock: ManualClock) -> None:
    clock.set(_at(23, 15))
    assert policies.is_in_quiet_hours("s1", OVERNIGHT)
    clock.set(_at(9, 0))
    assert not policies.is_in_quiet_hours("s1", OVERNIGHT)


def test_apply_quiet_hours_annotates_alerts(policies: AlertPolicies, make_alert) -> None:
    night = make_alert(created_at=_at(23, 30))
    day = make_alert(created_at=_at(12, 0))

    annotated = policies.apply_quiet_hours([night, day], OVERNIGHT)

    assert [a.governance.quiet_hours for a in annotated] == [True, False]
    assert [a.id for a in annotated] == [night.id, day.id]
