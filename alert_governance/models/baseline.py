"""
Baseline snapshot models.

A StudentBaseline holds three maps keyed "<factor>:<windowDays>" plus
sample and quality information. Snapshots are persisted as JSON and returned
to detectors unchanged.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ConfidenceInterval(BaseModel):
    """Interval around a central estimate."""

    model_config = {"frozen": True, "extra": "forbid"}

    lower: float
    upper: float
    level: float = 0.95
    n: int = 0


class BetaPrior(BaseModel):
    """Beta distribution parameters."""

    model_config = {"frozen": True, "extra": "forbid"}

    alpha: float = Field(..., gt=0)
    beta: float = Field(..., gt=0)


class TrendAnalysisResult(BaseModel):
    """Robust linear trend; slope is in units per day."""

    model_config = {"frozen": True, "extra": "forbid"}

    slope: float = 0.0
    intercept: float = 0.0
    iterations: int = 0
    converged: bool = False


class BaselineValidationResult(BaseModel):
    """
    Data sufficiency check.

    Attributes:
        is_sufficient: Either minimum is met.
        min_sessions: Required session count.
        min_unique_days: Required distinct days.
        sessions: Observed sessions.
        unique_days: Observed distinct days.
        reasons: Unmet minimums, e.g. "insufficient_sessions:4<10".
    """

    model_config = {"frozen": True, "extra": "forbid"}

    is_sufficient: bool
    min_sessions: int
    min_unique_days: int
    sessions: int
    unique_days: int
    reasons: List[str] = Field(default_factory=list)


class StabilityResult(BaseModel):
    """Baseline shift check for a time series."""

    model_config = {"frozen": True, "extra": "forbid"}

    shifted: bool = False
    score: float = 0.0
    trend: Optional[TrendAnalysisResult] = None


class BaselineQualityMetrics(BaseModel):
    """
    Overall adequacy of a baseline snapshot.

    Low reliability should make consumers widen thresholds or suppress
    low-confidence alerts; that decision is left to them.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    reliability_score: float = Field(..., ge=0.0, le=1.0)
    outlier_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    outlier_counts_by_key: Dict[str, int] = Field(default_factory=dict)
    data_sufficiency: Optional[BaselineValidationResult] = None
    stability_score: float = Field(default=1.0, ge=0.0, le=1.0)
    insufficient_keys: List[str] = Field(default_factory=list)


class EmotionBaselineStats(BaseModel):
    """Robust intensity summary for one emotion over one window."""

    model_config = {"frozen": True, "extra": "forbid"}

    emotion: str
    median: float
    iqr: float
    mad: float
    window_days: int
    confidence_interval: ConfidenceInterval
    sample_count: int
    trend: Optional[TrendAnalysisResult] = None


class SensoryBaselineStats(BaseModel):
    """Beta-binomial occurrence rate for one sensory behavior over one window."""

    model_config = {"frozen": True, "extra": "forbid"}

    behavior: str
    rate_prior: BetaPrior
    window_days: int
    posterior_mean: float
    credible_interval: ConfidenceInterval
    trials: int
    successes: int


class EnvironmentalBaselineStats(BaseModel):
    """Robust summary of one environmental factor over one window."""

    model_config = {"frozen": True, "extra": "forbid"}

    factor: str
    median: float
    iqr: float
    window_days: int
    confidence_interval: ConfidenceInterval
    sample_count: int
    correlation_with_emotion: float = 0.0
    emotion_slope: float = 0.0


class SampleInfo(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    sessions: int
    unique_days: int
    windows: List[int]


class StudentBaseline(BaseModel):
    """
    Versioned per-student baseline snapshot.

    Example:
        >>> baseline = service.update_baseline("s1", emotions, sensory, tracking)
        >>> if baseline is not None:
        ...     calm = baseline.emotion.get("calm:7")
    """

    model_config = {"frozen": True, "extra": "forbid"}

    student_id: str
    version: int = Field(default=1, ge=1)
    updated_at: datetime
    next_suggested_update_at: datetime
    emotion: Dict[str, EmotionBaselineStats] = Field(default_factory=dict)
    sensory: Dict[str, SensoryBaselineStats] = Field(default_factory=dict)
    environment: Dict[str, EnvironmentalBaselineStats] = Field(default_factory=dict)
    sample_info: SampleInfo
    quality: Optional[BaselineQualityMetrics] = None

    @property
    def key_count(self) -> int:
        return len(self.emotion) + len(self.sensory) + len(self.environment)
