from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import structlog

from alert_governance.clock import ManualClock
from alert_governance.logging_config import setup_logging
from alert_governance.models import AlertEvent, AlertKind, AlertSeverity
from alert_governance.policy.engine import AlertPolicies
from alert_governance.storage.kv import InMemoryStore

# Wednesday, midday UTC.
NOW = datetime(2024, 3, 6, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _logs_to_stderr():
    # Route structlog through setup_logging so log lines land on stderr and
    # never mix into command output captured from stdout.
    setup_logging("DEBUG", "json")
    yield
    structlog.reset_defaults()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(NOW)


@pytest.fixture
def policies(store: InMemoryStore, clock: ManualClock) -> AlertPolicies:
    return AlertPolicies(store=store, clock=clock)


@pytest.fixture
def make_alert() -> Callable[..., AlertEvent]:
    def _make_alert(
        *,
        student_id: str = "s1",
        kind: AlertKind = AlertKind.BEHAVIOR_SPIKE,
        severity: AlertSeverity = AlertSeverity.MODERATE,
        created_at: datetime = NOW,
        minutes: float = 0,
        context: str | None = None,
        confidence: float = 0.8,
        **extra: Any,
    ) -> AlertEvent:
        metadata = {"contextKey": context} if context is not None else {}
        return AlertEvent(
            student_id=student_id,
            kind=kind,
            severity=severity,
            confidence=confidence,
            created_at=created_at + timedelta(minutes=minutes),
            metadata=metadata,
            **extra,
        )

    return _make_alert


class FailingStore:
    """KeyValueStore whose every operation raises."""

    def __init__(self) -> None:
        self.calls = 0

    def get(self, key: str) -> str | None:
        self.calls += 1
        raise ConnectionError("backend down")

    def set(self, key: str, value: str) -> None:
        self.calls += 1
        raise ConnectionError("backend down")

    def delete(self, key: str) -> None:
        self.calls += 1
        raise ConnectionError("backend down")


@pytest.fixture
def failing_store() -> FailingStore:
    return FailingStore()
