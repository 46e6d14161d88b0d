"""
Statistics used by the baseline service.

Modules:
    robust: Median/MAD estimators, Huber regression, correlation, beta-binomial
    baseline_utils: Confidence intervals, trend, outlier and sufficiency checks
"""

from alert_governance.stats.robust import (
    HuberFit,
    beta_mean,
    beta_posterior,
    beta_variance,
    huber_regression,
    mad,
    median,
    pearson_correlation,
    z_scores_median,
)
from alert_governance.stats.baseline_utils import (
    assess_data_quality,
    calculate_confidence_interval,
    detect_trend_in_baseline,
    generate_baseline_report,
    merge_baselines,
    validate_baseline_stability,
    validate_data_sufficiency,
)

__all__: list[str] = [
    "HuberFit",
    "median",
    "mad",
    "z_scores_median",
    "huber_regression",
    "pearson_correlation",
    "beta_posterior",
    "beta_mean",
    "beta_variance",
    "calculate_confidence_interval",
    "detect_trend_in_baseline",
    "assess_data_quality",
    "validate_data_sufficiency",
    "validate_baseline_stability",
    "generate_baseline_report",
    "merge_baselines",
]
