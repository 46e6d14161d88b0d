from __future__ import annotations

from datetime import datetime

import pytest
from pydantic import ValidationError

from alert_governance.models import (
    AlertEvent,
    AlertKind,
    AlertSeverity,
    AlertStatus,
    GovernanceStatus,
    InvalidStatusTransition,
    build_dedupe_key,
    resolve_context_key,
)


def test_severity_rank_orders_by_urgency() -> None:
    assert AlertSeverity.by_urgency() == [
        AlertSeverity.CRITICAL,
        AlertSeverity.IMPORTANT,
        AlertSeverity.MODERATE,
        AlertSeverity.LOW,
    ]
    assert AlertSeverity.CRITICAL.rank > AlertSeverity.LOW.rank


def test_context_key_prefers_context_key_then_class_period() -> None:
    assert resolve_context_key({"contextKey": "room-3", "classPeriod": "p2"}) == "room-3"
    assert resolve_context_key({"classPeriod": "p2"}) == "p2"
    assert resolve_context_key({"contextKey": ""}) == "na"
    assert resolve_context_key(None) == "na"


def test_dedupe_key_is_deterministic_and_short(make_alert) -> None:
    a = make_alert(context="room-3")
    b = make_alert(context="room-3", minutes=45, severity=AlertSeverity.CRITICAL)
    c = make_alert(context="room-4")

    assert a.dedupe_key == b.dedupe_key
    assert a.dedupe_key != c.dedupe_key
    assert len(a.dedupe_key) == 16
    assert a.dedupe_key == build_dedupe_key("s1", AlertKind.BEHAVIOR_SPIKE, "room-3")


def test_dedupe_key_ignores_severity_but_not_kind(make_alert) -> None:
    a = make_alert(kind=AlertKind.SAFETY)
    b = make_alert(kind=AlertKind.EMOTION_PATTERN)
    assert a.dedupe_key != b.dedupe_key


def test_confidence_must_be_within_unit_interval(now: datetime) -> None:
    with pytest.raises(ValidationError):
        AlertEvent(
            student_id="s1",
            kind=AlertKind.SAFETY,
            severity=AlertSeverity.CRITICAL,
            confidence=1.5,
            created_at=now,
        )


def test_naive_created_at_is_treated_as_utc() -> None:
    alert = AlertEvent(
        student_id="s1",
        kind=AlertKind.SAFETY,
        severity=AlertSeverity.CRITICAL,
        confidence=0.9,
        created_at=datetime(2024, 3, 6, 12, 0),
    )
    assert alert.created_at.utcoffset() is not None


def test_alerts_get_unique_ids(make_alert) -> None:
    assert make_alert().id != make_alert().id


def test_with_governance_returns_annotated_copy(make_alert) -> None:
    alert = make_alert()
    flagged = alert.with_governance(cap_exceeded=True)

    assert alert.governance is None
    assert flagged.governance is not None
    assert flagged.governance.cap_exceeded is True
    assert flagged.governance.is_blocked
    assert flagged.id == alert.id


def test_governance_merge_keeps_other_flags() -> None:
    status = GovernanceStatus(snoozed=True).merge(quiet_hours=True)
    assert status.snoozed and status.quiet_hours
    assert not GovernanceStatus(has_duplicates=True).is_blocked


@pytest.mark.parametrize(
    "current,target",
    [
        (AlertStatus.NEW, AlertStatus.ACKNOWLEDGED),
        (AlertStatus.NEW, AlertStatus.SNOOZED),
        (AlertStatus.ACKNOWLEDGED, AlertStatus.RESOLVED),
        (AlertStatus.SNOOZED, AlertStatus.ACKNOWLEDGED),
    ],
)
def test_allowed_status_transitions(make_alert, current, target) -> None:
    alert = make_alert(status=current)
    assert alert.transition(target).status == target


def test_resolved_is_terminal(make_alert) -> None:
    alert = make_alert(status=AlertStatus.RESOLVED)
    with pytest.raises(InvalidStatusTransition) as exc:
        alert.transition(AlertStatus.NEW)
    assert exc.value.current == AlertStatus.RESOLVED
    assert exc.value.target == AlertStatus.NEW


def test_alerts_are_immutable(make_alert) -> None:
    alert = make_alert()
    with pytest.raises(ValidationError):
        alert.severity = AlertSeverity.LOW
