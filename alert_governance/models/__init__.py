"""
Shared Pydantic data models for the governance engine.

Modules:
    alerts: Alert events, governance flags, audit entries and decisions
    settings: Per-student alert settings
    entries: Raw emotion, sensory and tracking entries
    baseline: Baseline snapshot and statistics

Example:
    >>> from alert_governance.models import AlertEvent, AlertSeverity, AlertSettings
"""

# Alert models
from alert_governance.models.alerts import (
    AdmissionDecision,
    AlertEvent,
    AlertKind,
    AlertSeverity,
    AlertSource,
    AlertStatus,
    AuditDecision,
    AuditTrailEntry,
    GovernanceStatus,
    InvalidStatusTransition,
    SourceType,
    ThrottleDecision,
    build_dedupe_key,
    resolve_context_key,
)

# Settings models
from alert_governance.models.settings import (
    UNBOUNDED_CAP,
    AlertSettings,
    DailyCaps,
    QuietHours,
    SettingsValidationResult,
    SnoozePreferences,
    ThrottleSettings,
)

# Entry models
from alert_governance.models.entries import (
    ClassroomInfo,
    EmotionEntry,
    EnvironmentalData,
    RoomConditions,
    SensoryEntry,
    TrackingEntry,
)

# Baseline models
from alert_governance.models.baseline import (
    BaselineQualityMetrics,
    BaselineValidationResult,
    BetaPrior,
    ConfidenceInterval,
    EmotionBaselineStats,
    EnvironmentalBaselineStats,
    SampleInfo,
    SensoryBaselineStats,
    StabilityResult,
    StudentBaseline,
    TrendAnalysisResult,
)

__all__: list[str] = [
    # Alerts
    "AlertEvent",
    "AlertKind",
    "AlertSeverity",
    "AlertSource",
    "AlertStatus",
    "SourceType",
    "GovernanceStatus",
    "InvalidStatusTransition",
    "AuditDecision",
    "AuditTrailEntry",
    "ThrottleDecision",
    "AdmissionDecision",
    "build_dedupe_key",
    "resolve_context_key",
    # Settings
    "UNBOUNDED_CAP",
    "AlertSettings",
    "DailyCaps",
    "QuietHours",
    "SnoozePreferences",
    "ThrottleSettings",
    "SettingsValidationResult",
    # Entries
    "EmotionEntry",
    "SensoryEntry",
    "RoomConditions",
    "ClassroomInfo",
    "EnvironmentalData",
    "TrackingEntry",
    # Baseline
    "ConfidenceInterval",
    "BetaPrior",
    "TrendAnalysisResult",
    "BaselineValidationResult",
    "StabilityResult",
    "BaselineQualityMetrics",
    "EmotionBaselineStats",
    "SensoryBaselineStats",
    "EnvironmentalBaselineStats",
    "SampleInfo",
    "StudentBaseline",
]
