"""
Helpers for building and checking baselines.

Functions:
    calculate_confidence_interval: Interval around the median (or mean)
    detect_trend_in_baseline: Huber trend of values over days
    assess_data_quality: Split a series into cleaned values and outliers
    validate_data_sufficiency: Session/day minimums
    validate_baseline_stability: Slope-relative-to-spread shift score
    generate_baseline_report: Plain-text snapshot summary
    merge_baselines: Combine two snapshots, newer wins per key
"""

import math
from datetime import datetime
from typing import List, Sequence, Tuple

from alert_governance.models.baseline import (
    BaselineValidationResult,
    ConfidenceInterval,
    StabilityResult,
    StudentBaseline,
    TrendAnalysisResult,
)
from alert_governance.stats.robust import (
    MEAN_AD_NORMAL_SCALE,
    huber_regression,
    mad,
    median,
    z_scores_median,
)

SECONDS_PER_DAY = 86400.0

# Slope (per day, in MAD-sigma units) that maps to a full shift score of 1.
SHIFT_SLOPE_SCALE = 0.2


def _clamp01(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return min(1.0, max(0.0, value))


def z_for_level(level: float) -> float:
    """Two-sided normal critical value for common confidence levels."""
    if level >= 0.999:
        return 3.29
    if level >= 0.995:
        return 2.81
    if level >= 0.99:
        return 2.58
    return 1.96


def calculate_confidence_interval(
    values: Sequence[float],
    level: float = 0.95,
    center: str = "median",
) -> ConfidenceInterval:
    """
    Confidence interval for the center of a sample.

    Uses SE(median) ~= 1.2533 * sigma / sqrt(n) with sigma taken from the
    normal-consistent MAD.

    Args:
        values: Sample values (non-finite values are ignored).
        level: Confidence level.
        center: "median" or "mean".

    Returns:
        ConfidenceInterval: Degenerate [0, 0] interval with n=0 when empty.
    """
    data = [float(v) for v in values if v is not None and math.isfinite(v)]
    n = len(data)
    if n == 0:
        return ConfidenceInterval(lower=0.0, upper=0.0, level=level, n=0)

    z = z_for_level(level)
    c = median(data) if center == "median" else sum(data) / n
    sigma = mad(data, "normal")
    se = MEAN_AD_NORMAL_SCALE * (sigma or 1e-9) / math.sqrt(n)
    return ConfidenceInterval(lower=c - z * se, upper=c + z * se, level=level, n=n)


def detect_trend_in_baseline(
    timestamps: Sequence[datetime],
    values: Sequence[float],
) -> TrendAnalysisResult:
    """
    Robust trend of values over time.

    Args:
        timestamps: Observation times; the first one is day 0.
        values: Observed values, paired with timestamps.

    Returns:
        TrendAnalysisResult: Slope in units per day.
    """
    n = min(len(timestamps), len(values))
    if n == 0:
        return TrendAnalysisResult()

    t0 = timestamps[0]
    days = [(timestamps[i] - t0).total_seconds() / SECONDS_PER_DAY for i in range(n)]
    fit = huber_regression(days, list(values[:n]))
    return TrendAnalysisResult(
        slope=fit.slope,
        intercept=fit.intercept,
        iterations=fit.iterations,
        converged=fit.converged,
    )


def assess_data_quality(
    values: Sequence[float],
    z_threshold: float = 3.5,
) -> Tuple[List[float], List[int]]:
    """
    Remove outliers by robust z-score.

    Args:
        values: Sample values.
        z_threshold: Absolute robust z-score above which a value is an outlier.

    Returns:
        Tuple[List[float], List[int]]: (cleaned values, indices of outliers
        in the input). Non-finite values are in neither list.

    Example:
        >>> cleaned, outliers = assess_data_quality([3, 3, 4, 3, 30])
        >>> outliers
        [4]
    """
    scores = z_scores_median(values)
    cleaned: List[float] = []
    outlier_indices: List[int] = []
    for i, (v, z) in enumerate(zip(values, scores)):
        if v is None or not math.isfinite(v):
            continue
        if abs(z) > z_threshold:
            outlier_indices.append(i)
        else:
            cleaned.append(float(v))
    return cleaned, outlier_indices


def validate_data_sufficiency(
    sessions: int,
    unique_days: int,
    min_sessions: int,
    min_unique_days: int,
) -> BaselineValidationResult:
    """Sufficient when either the session or the distinct-day minimum is met."""
    reasons: List[str] = []
    if sessions < min_sessions:
        reasons.append(f"insufficient_sessions:{sessions}<{min_sessions}")
    if unique_days < min_unique_days:
        reasons.append(f"insufficient_days:{unique_days}<{min_unique_days}")
    return BaselineValidationResult(
        is_sufficient=sessions >= min_sessions or unique_days >= min_unique_days,
        min_sessions=min_sessions,
        min_unique_days=min_unique_days,
        sessions=sessions,
        unique_days=unique_days,
        reasons=reasons,
    )


def validate_baseline_stability(
    timestamps: Sequence[datetime],
    values: Sequence[float],
) -> StabilityResult:
    """
    Score how much a series drifts relative to its spread.

    score = clamp01(|slope per day| / sigma_MAD / 0.2); the series is
    considered shifted when score > 0.5. Series shorter than 3 points,
    mismatched, or with (near) zero spread score 0.
    """
    if not timestamps or not values or len(timestamps) != len(values):
        return StabilityResult()
    if len(timestamps) < 3:
        return StabilityResult()

    sigma = mad(values, "normal")
    if not sigma or sigma < 1e-8:
        return StabilityResult()

    trend = detect_trend_in_baseline(timestamps, values)
    score = _clamp01(abs(trend.slope) / sigma / SHIFT_SLOPE_SCALE)
    return StabilityResult(shifted=score > 0.5, score=score, trend=trend)


def generate_baseline_report(baseline: StudentBaseline) -> str:
    """Plain-text summary of a snapshot."""
    info = baseline.sample_info
    lines = [
        f"Baseline for student {baseline.student_id} "
        f"(v{baseline.version}) at {baseline.updated_at.isoformat()}",
        f"Windows: {', '.join(str(w) for w in info.windows)}",
        f"Sessions: {info.sessions}, Days: {info.unique_days}",
        f"Emotion keys: {len(baseline.emotion)}, "
        f"Sensory keys: {len(baseline.sensory)}, "
        f"Environmental keys: {len(baseline.environment)}",
    ]
    if baseline.quality is not None:
        lines.append(f"Reliability: {baseline.quality.reliability_score * 100:.0f}%")
        if baseline.quality.insufficient_keys:
            lines.append(
                f"Insufficient: {', '.join(baseline.quality.insufficient_keys)}"
            )
    return "\n".join(lines)


def merge_baselines(a: StudentBaseline, b: StudentBaseline) -> StudentBaseline:
    """
    Combine two snapshots of the same student.

    The more recently updated snapshot wins for every key it has; keys only
    present in the older snapshot are retained.
    """
    newer, older = (a, b) if a.updated_at >= b.updated_at else (b, a)
    return newer.model_copy(
        update={
            "emotion": {**older.emotion, **newer.emotion},
            "sensory": {**older.sensory, **newer.sensory},
            "environment": {**older.environment, **newer.environment},
        }
    )
