"""
Numeric policy limits shared by configuration and the policy engine.

Durations are in milliseconds. This module imports nothing from the package
so that config models can use these values as field defaults.
"""

DEDUPE_WINDOW_MS = 60 * 60 * 1000

THROTTLE_BASE_DELAY_MS = 1000
MAX_THROTTLE_DELAY_MS = 6 * 60 * 60 * 1000

AUDIT_MAX_ENTRIES = 200
ADMISSION_LEDGER_MAX = 500
