"""
Alert data models for the governance engine.

This module defines candidate alert events, the governance annotations the
policy engine attaches to them, and the records it produces while deciding
admission.

Models:
    AlertSeverity: Severity levels (critical, important, moderate, low)
    AlertKind: Detector-assigned alert category
    AlertStatus: Lifecycle status with guarded transitions
    SourceType: Provenance category for alert sources
    AlertSource: Opaque provenance reference
    GovernanceStatus: Flags set by the policy engine
    AlertEvent: A single candidate notification
    AuditTrailEntry: One admission decision
    ThrottleDecision: Result of a backoff check
    AdmissionDecision: Result of composite admission
"""

import hashlib
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from alert_governance.clock import ensure_aware


class AlertSeverity(str, Enum):
    """
    Alert severity levels.

    Attributes:
        CRITICAL: Safety-relevant, shown with the shortest backoff.
        IMPORTANT: Needs attention soon.
        MODERATE: Worth reviewing.
        LOW: Informational.
    """

    CRITICAL = "critical"
    IMPORTANT = "important"
    MODERATE = "moderate"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Numeric rank; higher is more urgent."""
        return _SEVERITY_RANK[self]

    @classmethod
    def by_urgency(cls) -> List["AlertSeverity"]:
        """All severities, most urgent first."""
        return sorted(cls, key=lambda s: s.rank, reverse=True)


_SEVERITY_RANK: Dict[AlertSeverity, int] = {
    AlertSeverity.CRITICAL: 4,
    AlertSeverity.IMPORTANT: 3,
    AlertSeverity.MODERATE: 2,
    AlertSeverity.LOW: 1,
}


class AlertKind(str, Enum):
    """Category assigned by the detector that produced the alert."""

    SAFETY = "safety"
    BEHAVIOR_SPIKE = "behavior_spike"
    EMOTION_PATTERN = "emotion_pattern"
    CONTEXT_ASSOCIATION = "context_association"
    INTERVENTION_DUE = "intervention_due"
    DATA_QUALITY = "data_quality"
    IMPROVEMENT_NOTED = "improvement_noted"
    PATTERN_DETECTED = "pattern_detected"


class AlertStatus(str, Enum):
    """
    Alert lifecycle status.

    new -> acknowledged | resolved | snoozed
    acknowledged -> resolved | snoozed
    snoozed -> acknowledged | resolved
    resolved is terminal.
    """

    NEW = "new"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    SNOOZED = "snoozed"

    def can_transition_to(self, target: "AlertStatus") -> bool:
        """Check whether moving to target is a valid lifecycle step."""
        return target in _STATUS_TRANSITIONS[self]


_STATUS_TRANSITIONS: Dict[AlertStatus, frozenset] = {
    AlertStatus.NEW: frozenset(
        {AlertStatus.ACKNOWLEDGED, AlertStatus.RESOLVED, AlertStatus.SNOOZED}
    ),
    AlertStatus.ACKNOWLEDGED: frozenset({AlertStatus.RESOLVED, AlertStatus.SNOOZED}),
    AlertStatus.SNOOZED: frozenset({AlertStatus.ACKNOWLEDGED, AlertStatus.RESOLVED}),
    AlertStatus.RESOLVED: frozenset(),
}


class InvalidStatusTransition(ValueError):
    """Raised when an alert is moved to a status its lifecycle does not allow."""

    def __init__(self, current: AlertStatus, target: AlertStatus):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition alert from {current.value} to {target.value}")


class SourceType(str, Enum):
    """Provenance category of an alert source."""

    PATTERN_ENGINE = "pattern_engine"
    TEACHER_ACTION = "teacher_action"
    SENSOR = "sensor"
    MANUAL = "manual"
    BASELINE = "baseline"
    POLICY = "policy"


class AlertSource(BaseModel):
    """
    Provenance reference attached by a detector.

    The governance engine carries sources through untouched.
    """

    model_config = {"frozen": True, "extra": "allow"}

    type: SourceType = Field(
        ...,
        description="Source category",
    )
    id: Optional[str] = Field(
        default=None,
        description="Source identifier",
    )
    label: Optional[str] = Field(
        default=None,
        description="Human-readable label",
    )
    details: Dict[str, Any] = Field(
        default_factory=dict,
        description="Detector-specific details",
    )


class GovernanceStatus(BaseModel):
    """
    Governance flags attached to an alert by the policy engine.

    Attributes:
        throttled: Backoff window has not elapsed for this key.
        deduplicated: Alert lost to another in its dedupe bucket.
        has_duplicates: Alert won a dedupe bucket with more than one member.
        snoozed: The alert's key is snoozed.
        quiet_hours: Alert falls inside the student's quiet hours.
        cap_exceeded: Daily cap for the alert's severity is exhausted.
        next_eligible_at: When a throttled alert may be shown.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    throttled: bool = False
    deduplicated: bool = False
    has_duplicates: bool = False
    snoozed: bool = False
    quiet_hours: bool = False
    cap_exceeded: bool = False
    next_eligible_at: Optional[datetime] = None

    @property
    def is_blocked(self) -> bool:
        """True if any flag prevents display."""
        return (
            self.throttled
            or self.deduplicated
            or self.snoozed
            or self.quiet_hours
            or self.cap_exceeded
        )

    def merge(self, **updates: Any) -> "GovernanceStatus":
        """
        Return a copy with the given flags replaced.

        Example:
            >>> GovernanceStatus().merge(cap_exceeded=True).cap_exceeded
            True
        """
        return self.model_copy(update=updates)


def resolve_context_key(metadata: Optional[Mapping[str, Any]]) -> str:
    """
    Pick the context component of a dedupe key from alert metadata.

    Uses contextKey (or context_key), then classPeriod, then "na".
    """
    if not metadata:
        return "na"
    for field in ("contextKey", "context_key", "classPeriod"):
        value = metadata.get(field)
        if value is not None and value != "":
            return str(value)
    return "na"


def build_dedupe_key(student_id: str, kind: Any, context_key: str) -> str:
    """
    Deterministic dedupe key for a (student, kind, context) triple.

    Args:
        student_id: Owning student.
        kind: Alert kind (enum or raw string).
        context_key: Context component, see resolve_context_key.

    Returns:
        str: 16 hex characters of the SHA-1 digest.
    """
    kind_value = kind.value if isinstance(kind, Enum) else str(kind)
    raw = f"{student_id}|{kind_value}|{context_key}"
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:16]


class AlertEvent(BaseModel):
    """
    A single candidate notification.

    Alerts are immutable; the only changes the engine makes are returned as
    copies via with_governance() and transition().

    Attributes:
        id: Unique identifier, assigned at creation.
        student_id: Owning student.
        kind: Detector-assigned category.
        severity: Severity level.
        confidence: Detector confidence in [0, 1].
        created_at: When the alert was raised. Drives every time-based decision.
        status: Lifecycle status.
        metadata: Free-form detector data. contextKey groups recurring alerts.
        sources: Provenance references.
        governance: Flags attached by the policy engine.

    Example:
        >>> alert = AlertEvent(
        ...     student_id="s1",
        ...     kind=AlertKind.BEHAVIOR_SPIKE,
        ...     severity=AlertSeverity.MODERATE,
        ...     confidence=0.8,
        ...     created_at=datetime(2024, 3, 4, 10, 0, tzinfo=timezone.utc),
        ...     metadata={"contextKey": "room-3"},
        ... )
        >>> len(alert.dedupe_key)
        16
    """

    model_config = {"frozen": True, "extra": "forbid"}

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique identifier for this alert",
    )
    student_id: str = Field(
        ...,
        description="Owning student",
        min_length=1,
    )
    kind: AlertKind = Field(
        ...,
        description="Detector-assigned category",
    )
    severity: AlertSeverity = Field(
        ...,
        description="Severity level",
    )
    confidence: float = Field(
        ...,
        description="Detector confidence",
        ge=0.0,
        le=1.0,
    )
    created_at: datetime = Field(
        ...,
        description="When the alert was raised",
    )
    status: AlertStatus = Field(
        default=AlertStatus.NEW,
        description="Lifecycle status",
    )
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form detector data",
    )
    sources: List[AlertSource] = Field(
        default_factory=list,
        description="Provenance references",
    )
    governance: Optional[GovernanceStatus] = Field(
        default=None,
        description="Flags attached by the policy engine",
    )

    @field_validator("created_at")
    @classmethod
    def validate_created_at(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        return ensure_aware(v)

    @property
    def context_key(self) -> str:
        return resolve_context_key(self.metadata)

    @property
    def dedupe_key(self) -> str:
        """Derived key grouping conceptually identical recurring alerts."""
        return build_dedupe_key(self.student_id, self.kind, self.context_key)

    @property
    def effective_governance(self) -> GovernanceStatus:
        return self.governance or GovernanceStatus()

    def with_governance(self, **flags: Any) -> "AlertEvent":
        """
        Return a copy with governance flags merged in.

        Args:
            **flags: GovernanceStatus fields to set.

        Returns:
            AlertEvent: Annotated copy.
        """
        return self.model_copy(
            update={"governance": self.effective_governance.merge(**flags)}
        )

    def transition(self, status: AlertStatus) -> "AlertEvent":
        """
        Move the alert to a new lifecycle status.

        Args:
            status: Target status.

        Returns:
            AlertEvent: Copy with the new status.

        Raises:
            InvalidStatusTransition: If the lifecycle does not allow the move.
        """
        if not self.status.can_transition_to(status):
            raise InvalidStatusTransition(self.status, status)
        return self.model_copy(update={"status": status})


class AuditDecision(str, Enum):
    """Outcome recorded in the audit trail."""

    ALLOWED = "allowed"
    DENIED = "denied"


class AuditTrailEntry(BaseModel):
    """
    One admission decision.

    Attributes:
        alert_id: Alert the decision was made for.
        student_id: Owning student.
        dedupe_key: Key of the alert.
        decision: allowed or denied.
        reasons: Blocking conditions that fired (empty when allowed).
        timestamp: When the decision was made.
        created_at: When the alert was raised.
        governance: Flags computed during the decision.
    """

    model_config = {"frozen": True, "extra": "ignore"}

    alert_id: str
    student_id: str
    dedupe_key: str
    decision: AuditDecision
    reasons: List[str] = Field(default_factory=list)
    timestamp: datetime
    created_at: datetime
    governance: GovernanceStatus = Field(default_factory=GovernanceStatus)

    @property
    def allowed(self) -> bool:
        return self.decision == AuditDecision.ALLOWED


class ThrottleDecision(BaseModel):
    """Result of a backoff eligibility check."""

    model_config = {"frozen": True, "extra": "forbid"}

    throttled: bool
    next_eligible_at: Optional[datetime] = None
    delay_ms: float = 0.0


class AdmissionDecision(BaseModel):
    """
    Result of composite admission.

    Attributes:
        allowed: Whether the alert may be shown.
        status: Governance flags explaining the decision.
        reasons: Names of the blocking conditions, in evaluation order.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    allowed: bool
    status: GovernanceStatus
    reasons: List[str] = Field(default_factory=list)
