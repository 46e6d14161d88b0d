"""
Alert Governance & Baseline Statistics Engine.

Decides which candidate behavioral alerts a human actually sees, when, and
how often, while maintaining robust per-student statistical baselines used
by detectors to judge whether an observation is "normal".

This package provides:
- Data models for alerts, alert settings, raw tracking entries, and baselines
- Robust statistics primitives (median, MAD, Huber regression, beta-binomial)
- BaselineService for versioned, persisted per-student baselines
- AlertPolicies for quiet hours, caps, dedupe, throttling, snooze and audit
- A synchronous key-value persistence port with memory and Redis backends
- Configuration management
"""

__version__ = "0.1.0"
