"""
Baseline service.

Computes robust per-student reference statistics that detectors compare new
observations against.
"""

from alert_governance.baseline.service import BaselineService, create_baseline_service

__all__: list[str] = [
    "BaselineService",
    "create_baseline_service",
]
