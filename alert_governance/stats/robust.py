"""
Robust statistics primitives.

Median/MAD based estimators that resist single extreme observations, a
Huber-weighted linear fit, Pearson correlation and beta-binomial helpers.
All functions are pure and ignore non-finite inputs.

Functions:
    median: Sample median
    mad: Median absolute deviation (raw or normal-consistent)
    z_scores_median: Robust z-scores around the median
    huber_regression: Outlier-resistant linear fit
    pearson_correlation: Linear correlation coefficient
    beta_posterior: Beta-binomial conjugate update
    beta_mean / beta_variance: Beta distribution moments
"""

import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

# Scales MAD to a consistent estimator of sigma under normality.
MAD_NORMAL_SCALE = 1.4826

# sqrt(pi/2): scales mean absolute deviation to sigma under normality.
MEAN_AD_NORMAL_SCALE = 1.2533

HUBER_DELTA = 1.345


def _finite(values: Sequence[float]) -> List[float]:
    return [float(v) for v in values if v is not None and math.isfinite(v)]


def median(values: Sequence[float]) -> float:
    """
    Sample median of the finite values.

    Returns:
        float: The median, or 0.0 for an empty input.
    """
    data = sorted(_finite(values))
    n = len(data)
    if n == 0:
        return 0.0
    mid = n // 2
    if n % 2:
        return data[mid]
    return (data[mid - 1] + data[mid]) / 2.0


def mad(values: Sequence[float], scale: str = "raw") -> float:
    """
    Median absolute deviation.

    Args:
        values: Sample values.
        scale: "raw" for the plain MAD, "normal" to multiply by 1.4826 so the
               result estimates the standard deviation of normal data.

    Returns:
        float: MAD, 0.0 for an empty input.

    Raises:
        ValueError: If scale is not "raw" or "normal".
    """
    if scale not in ("raw", "normal"):
        raise ValueError(f"Unknown MAD scale: {scale}")
    data = _finite(values)
    if not data:
        return 0.0
    center = median(data)
    raw = median([abs(v - center) for v in data])
    return raw * MAD_NORMAL_SCALE if scale == "normal" else raw


def z_scores_median(values: Sequence[float]) -> List[float]:
    """
    Robust z-scores: (x - median) / (1.4826 * MAD).

    When MAD is zero (more than half the values identical) the mean absolute
    deviation scaled by 1.2533 is used instead. If that is zero too every
    score is 0. The result is aligned with the input; non-finite inputs
    score 0.

    Example:
        >>> z_scores_median([3, 3, 4, 3, 30])[-1] > 3.5
        True
    """
    data = _finite(values)
    if not data:
        return [0.0 for _ in values]

    center = median(data)
    sigma = mad(data, "normal")
    if sigma <= 0:
        mean_ad = sum(abs(v - center) for v in data) / len(data)
        sigma = mean_ad * MEAN_AD_NORMAL_SCALE
    if sigma <= 0:
        return [0.0 for _ in values]

    scores: List[float] = []
    for v in values:
        if v is None or not math.isfinite(v):
            scores.append(0.0)
        else:
            scores.append((float(v) - center) / sigma)
    return scores


@dataclass
class HuberFit:
    """
    Result of a Huber-weighted linear fit.

    Attributes:
        slope: Fitted slope.
        intercept: Fitted intercept.
        iterations: Reweighting iterations performed.
        converged: True if coefficient changes fell below tolerance.
    """

    slope: float
    intercept: float
    iterations: int
    converged: bool


def _weighted_line(
    x: Sequence[float], y: Sequence[float], w: Sequence[float]
) -> Tuple[float, float]:
    sw = sum(w)
    if sw <= 0:
        return 0.0, median(y)
    x_bar = sum(wi * xi for wi, xi in zip(w, x)) / sw
    y_bar = sum(wi * yi for wi, yi in zip(w, y)) / sw
    sxx = sum(wi * (xi - x_bar) ** 2 for wi, xi in zip(w, x))
    if sxx <= 0:
        return 0.0, y_bar
    sxy = sum(wi * (xi - x_bar) * (yi - y_bar) for wi, xi, yi in zip(w, x, y))
    slope = sxy / sxx
    return slope, y_bar - slope * x_bar


def huber_regression(
    x: Sequence[float],
    y: Sequence[float],
    delta: float = HUBER_DELTA,
    max_iterations: int = 50,
    tolerance: float = 1e-6,
) -> HuberFit:
    """
    Fit y = intercept + slope * x with Huber weights (IRLS).

    Starts from ordinary least squares, then repeatedly downweights points
    whose residual exceeds delta robust standard deviations. The residual
    scale is the normal-consistent MAD of the current residuals.

    Args:
        x: Predictor values.
        y: Response values (paired with x; extra values are ignored).
        delta: Huber threshold in units of residual scale.
        max_iterations: Reweighting iteration limit.
        tolerance: Convergence threshold on coefficient change.

    Returns:
        HuberFit: Fitted coefficients and convergence information.
    """
    pairs = [
        (float(a), float(b))
        for a, b in zip(x, y)
        if a is not None and b is not None and math.isfinite(a) and math.isfinite(b)
    ]
    if not pairs:
        return HuberFit(slope=0.0, intercept=0.0, iterations=0, converged=False)

    xs = [p[0] for p in pairs]
    ys = [p[1] for p in pairs]
    if len(pairs) == 1:
        return HuberFit(slope=0.0, intercept=ys[0], iterations=0, converged=True)

    weights = [1.0] * len(pairs)
    slope, intercept = _weighted_line(xs, ys, weights)

    iterations = 0
    converged = False
    while iterations < max_iterations:
        iterations += 1
        residuals = [yi - (intercept + slope * xi) for xi, yi in zip(xs, ys)]
        scale = mad(residuals, "normal")
        if scale <= 1e-12:
            # Residuals are (almost) all zero: the current line is exact.
            converged = True
            break

        weights = []
        for r in residuals:
            u = abs(r) / scale
            weights.append(1.0 if u <= delta else delta / u)

        new_slope, new_intercept = _weighted_line(xs, ys, weights)
        change = max(abs(new_slope - slope), abs(new_intercept - intercept))
        slope, intercept = new_slope, new_intercept
        if change < tolerance:
            converged = True
            break

    return HuberFit(
        slope=slope,
        intercept=intercept,
        iterations=iterations,
        converged=converged,
    )


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Pearson correlation of paired finite values.

    Returns:
        float: Coefficient in [-1, 1]; 0.0 for fewer than 2 pairs or when
               either series has zero variance.
    """
    pairs = [
        (float(a), float(b))
        for a, b in zip(x, y)
        if a is not None and b is not None and math.isfinite(a) and math.isfinite(b)
    ]
    n = len(pairs)
    if n < 2:
        return 0.0
    mean_x = sum(p[0] for p in pairs) / n
    mean_y = sum(p[1] for p in pairs) / n
    sxx = sum((p[0] - mean_x) ** 2 for p in pairs)
    syy = sum((p[1] - mean_y) ** 2 for p in pairs)
    if sxx <= 0 or syy <= 0:
        return 0.0
    sxy = sum((p[0] - mean_x) * (p[1] - mean_y) for p in pairs)
    r = sxy / math.sqrt(sxx * syy)
    return max(-1.0, min(1.0, r))


def beta_posterior(
    successes: int,
    trials: int,
    prior_alpha: float = 0.5,
    prior_beta: float = 0.5,
) -> Tuple[float, float]:
    """
    Conjugate Beta update for a Bernoulli rate.

    Args:
        successes: Observed successes.
        trials: Observed trials.
        prior_alpha: Prior alpha (Jeffreys prior by default).
        prior_beta: Prior beta (Jeffreys prior by default).

    Returns:
        Tuple[float, float]: Posterior (alpha, beta).
    """
    successes = max(0, successes)
    failures = max(0, trials - successes)
    return prior_alpha + successes, prior_beta + failures


def beta_mean(alpha: float, beta: float) -> float:
    total = alpha + beta
    if total <= 0:
        return 0.0
    return alpha / total


def beta_variance(alpha: float, beta: float) -> float:
    total = alpha + beta
    denom = total * total * (total + 1)
    if denom <= 0:
        return 0.0
    return (alpha * beta) / denom
