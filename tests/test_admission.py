from __future__ import annotations

import json
from datetime import datetime, timezone

from alert_governance.clock import ManualClock
from alert_governance.config.models import PolicyConfig
from alert_governance.models import AlertSeverity, AuditDecision
from alert_governance.policy.engine import AlertPolicies, create_alert_policies
from alert_governance.policy.validation import assert_valid_alert_settings
from alert_governance.storage.kv import InMemoryStore

OVERNIGHT = {"quietHours": {"start": "22:00", "end": "07:00"}}


def test_first_critical_allowed_second_capped(policies: AlertPolicies, make_alert) -> None:
    first = policies.can_create_alert(make_alert(severity=AlertSeverity.CRITICAL))
    second = policies.can_create_alert(
        make_alert(severity=AlertSeverity.CRITICAL, context="elsewhere", minutes=5)
    )

    assert first.allowed and first.reasons == []
    assert not second.allowed
    assert second.reasons == ["cap_exceeded"]
    assert second.status.cap_exceeded is True
    assert policies.get_today_counts("s1")[AlertSeverity.CRITICAL] == 1


def test_snoozed_key_is_denied(policies: AlertPolicies, make_alert) -> None:
    alert = make_alert()
    policies.snooze("s1", alert.dedupe_key, hours=1)

    decision = policies.can_create_alert(alert)

    assert not decision.allowed
    assert decision.reasons == ["snoozed"]
    assert decision.status.snoozed


def test_quiet_hours_deny(policies: AlertPolicies, make_alert) -> None:
    alert = make_alert(created_at=datetime(2024, 3, 6, 23, 30, tzinfo=timezone.utc))

    decision = policies.can_create_alert(alert, OVERNIGHT)

    assert not decision.allowed
    assert decision.reasons == ["quiet_hours"]


def test_reasons_follow_evaluation_order(policies: AlertPolicies, make_alert) -> None:
    alert = make_alert(
        severity=AlertSeverity.CRITICAL,
        created_at=datetime(2024, 3, 6, 23, 30, tzinfo=timezone.utc),
    )
    policies.snooze("s1", alert.dedupe_key, hours=1)

    decision = policies.can_create_alert(
        alert, OVERNIGHT, existing_today_counts={"critical": 1}, check_throttle=True
    )

    assert decision.reasons == ["snoozed", "cap_exceeded", "quiet_hours", "throttled"]
    assert decision.status.next_eligible_at is not None


def test_throttle_only_checked_on_request(policies: AlertPolicies, make_alert) -> None:
    alert = make_alert(severity=AlertSeverity.LOW)

    assert policies.can_create_alert(alert).allowed
    assert policies.get_throttle_attempts("s1", alert.dedupe_key) == 0

    decision = policies.can_create_alert(alert, check_throttle=True)
    assert decision.reasons == ["throttled"]


def test_existing_counts_override_ledger(policies: AlertPolicies, make_alert) -> None:
    policies.can_create_alert(make_alert(severity=AlertSeverity.CRITICAL))

    decision = policies.can_create_alert(
        make_alert(severity=AlertSeverity.CRITICAL, minutes=1),
        existing_today_counts={"critical": 0},
    )

    assert decision.allowed


def test_unknown_severity_counts_do_not_block(policies: AlertPolicies, make_alert) -> None:
    decision = policies.can_create_alert(
        make_alert(severity=AlertSeverity.CRITICAL),
        existing_today_counts={"bogus": 3},
    )

    assert decision.allowed
    assert decision.reasons == []


def test_caps_reset_next_day(policies: AlertPolicies, clock: ManualClock, make_alert) -> None:
    assert policies.can_create_alert(make_alert(severity=AlertSeverity.CRITICAL)).allowed

    clock.advance(days=1)
    tomorrow = make_alert(severity=AlertSeverity.CRITICAL, minutes=24 * 60)

    assert policies.can_create_alert(tomorrow).allowed


def test_every_decision_is_audited(policies: AlertPolicies, make_alert) -> None:
    allowed = make_alert(severity=AlertSeverity.CRITICAL)
    denied = make_alert(severity=AlertSeverity.CRITICAL, minutes=1)
    policies.can_create_alert(allowed)
    policies.can_create_alert(denied)

    trail = policies.get_audit_trail("s1")

    assert [e.alert_id for e in trail] == [allowed.id, denied.id]
    assert [e.decision for e in trail] == [AuditDecision.ALLOWED, AuditDecision.DENIED]
    assert trail[0].allowed and not trail[1].allowed
    assert trail[1].reasons == ["cap_exceeded"]
    assert trail[1].dedupe_key == denied.dedupe_key


def test_audit_trail_limit_and_retention(store: InMemoryStore, clock: ManualClock, make_alert) -> None:
    policies = AlertPolicies(
        store=store, clock=clock, config=PolicyConfig(audit_max_entries=3)
    )
    alerts = [make_alert(severity=AlertSeverity.LOW, minutes=m) for m in range(5)]
    for alert in alerts:
        policies.can_create_alert(alert)

    assert [e.alert_id for e in policies.get_audit_trail("s1")] == [a.id for a in alerts[2:]]
    assert [e.alert_id for e in policies.get_audit_trail("s1", limit=1)] == [alerts[-1].id]


def test_export_audit_trail_is_json(policies: AlertPolicies, make_alert) -> None:
    alert = make_alert()
    policies.can_create_alert(alert)

    exported = json.loads(policies.export_audit_trail("s1"))

    assert len(exported) == 1
    assert exported[0]["alert_id"] == alert.id
    assert exported[0]["decision"] == "allowed"


def test_export_empty_trail(policies: AlertPolicies) -> None:
    assert json.loads(policies.export_audit_trail("nobody")) == []


def test_clear_audit_trail(policies: AlertPolicies, make_alert) -> None:
    policies.can_create_alert(make_alert())
    policies.clear_audit_trail("s1")
    assert policies.get_audit_trail("s1") == []


def test_default_settings_apply_when_none_given(store: InMemoryStore, clock: ManualClock, make_alert) -> None:
    policies = create_alert_policies(
        store=store,
        clock=clock,
        default_settings=assert_valid_alert_settings(OVERNIGHT),
    )
    alert = make_alert(created_at=datetime(2024, 3, 6, 23, 30, tzinfo=timezone.utc))

    assert policies.can_create_alert(alert).reasons == ["quiet_hours"]


class TestNamespaceIsolation:
    def test_shared_store_does_not_leak_state(
        self, store: InMemoryStore, clock: ManualClock, make_alert
    ) -> None:
        a = AlertPolicies(namespace="tenant-a", store=store, clock=clock)
        b = AlertPolicies(namespace="tenant-b", store=store, clock=clock)
        alert = make_alert(severity=AlertSeverity.CRITICAL)

        a.snooze("s1", "key-1", hours=5)
        a.record_throttle_attempt("s1", alert.dedupe_key)
        assert a.can_create_alert(make_alert(severity=AlertSeverity.CRITICAL)).allowed

        assert not b.is_snoozed("s1", "key-1")
        assert b.get_throttle_attempts("s1", alert.dedupe_key) == 0
        assert b.get_audit_trail("s1") == []
        assert b.can_create_alert(alert).allowed

    def test_keys_carry_namespace_prefix(
        self, store: InMemoryStore, clock: ManualClock
    ) -> None:
        AlertPolicies(namespace="tenant-a", store=store, clock=clock).snooze("s1", "k", hours=1)
        AlertPolicies(store=store, clock=clock).snooze("s1", "k", hours=1)

        assert sorted(store.keys()) == [
            "alerts:policy:s1:snooze",
            "tenant-a:alerts:policy:s1:snooze",
        ]

    def test_namespace_from_config(self, store: InMemoryStore, clock: ManualClock) -> None:
        policies = AlertPolicies(store=store, clock=clock, config=PolicyConfig(namespace="cfg"))
        assert policies.namespace == "cfg"


class TestDegradedStorage:
    def test_admission_still_decides_when_store_fails(
        self, failing_store, clock: ManualClock, make_alert
    ) -> None:
        policies = AlertPolicies(store=failing_store, clock=clock)

        decision = policies.can_create_alert(make_alert(severity=AlertSeverity.CRITICAL))

        assert decision.allowed
        assert policies.storage_failures > 0
        assert policies.get_audit_trail("s1") == []
