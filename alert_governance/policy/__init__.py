"""
Alert policy engine.

Decides which candidate alerts a human actually sees, when, and how often.

Modules:
    constants: Windows, delays, default caps and backoff bases
    validation: Fail-soft settings normalization and the strict variant
    dedupe: Dedupe keys and bucketed deduplication
    engine: AlertPolicies, the stateful namespace-isolated gate
"""

from alert_governance.policy.engine import AlertPolicies, create_alert_policies
from alert_governance.policy.validation import (
    SettingsValidationError,
    assert_valid_alert_settings,
    parse_hhmm,
    validate_alert_settings,
)

__all__: list[str] = [
    "AlertPolicies",
    "create_alert_policies",
    "SettingsValidationError",
    "validate_alert_settings",
    "assert_valid_alert_settings",
    "parse_hhmm",
]
