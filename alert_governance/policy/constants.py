"""
Alert policy constants.

Durations are in milliseconds.
"""

from typing import Dict

from alert_governance.limits import (
    ADMISSION_LEDGER_MAX,
    AUDIT_MAX_ENTRIES,
    DEDUPE_WINDOW_MS,
    MAX_THROTTLE_DELAY_MS,
    THROTTLE_BASE_DELAY_MS,
)
from alert_governance.models.alerts import AlertSeverity
from alert_governance.models.settings import UNBOUNDED_CAP

THROTTLE_BACKOFF_BASE = 2.0
MAX_BACKOFF_EXPONENT = 10

# Backoff grows slowest for the most urgent severities.
DEFAULT_BASE_BY_SEVERITY: Dict[AlertSeverity, float] = {
    AlertSeverity.CRITICAL: 1.3,
    AlertSeverity.IMPORTANT: 1.6,
    AlertSeverity.MODERATE: 2.0,
    AlertSeverity.LOW: 2.5,
}

DEFAULT_DAILY_CAPS: Dict[AlertSeverity, int] = {
    AlertSeverity.CRITICAL: 1,
    AlertSeverity.IMPORTANT: 2,
    AlertSeverity.MODERATE: 4,
    AlertSeverity.LOW: UNBOUNDED_CAP,
}

DEFAULT_SNOOZE_HOURS = 24.0
DEFAULT_DONT_SHOW_DAYS = 7.0

# Admission denial reasons, in evaluation order.
REASON_SNOOZED = "snoozed"
REASON_CAP_EXCEEDED = "cap_exceeded"
REASON_QUIET_HOURS = "quiet_hours"
REASON_THROTTLED = "throttled"
