"""
Per-student robust baselines.

The BaselineService turns raw emotion, sensory and tracking entries into a
versioned StudentBaseline snapshot and persists it. Detectors read the last
snapshot through the getters and must tolerate None ("not enough data yet").

Key Features:
    - Median/MAD statistics with robust-z outlier removal
    - Beta-binomial sensory rates with a Jeffreys prior
    - Environment-to-emotion correlation and Huber slope
    - Windows with too few samples are omitted, never estimated

Example:
    >>> service = BaselineService(store=InMemoryStore(), clock=SystemClock())
    >>> baseline = service.update_baseline("s1", emotions, sensory, tracking)
    >>> if baseline is None:
    ...     print("Not enough data yet")
"""

import math
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from alert_governance.clock import Clock, SystemClock
from alert_governance.config.models import BaselineConfig
from alert_governance.models.baseline import (
    BaselineQualityMetrics,
    BaselineValidationResult,
    BetaPrior,
    ConfidenceInterval,
    EmotionBaselineStats,
    EnvironmentalBaselineStats,
    SampleInfo,
    SensoryBaselineStats,
    StudentBaseline,
)
from alert_governance.models.entries import EmotionEntry, SensoryEntry, TrackingEntry
from alert_governance.stats.baseline_utils import (
    assess_data_quality,
    calculate_confidence_interval,
    detect_trend_in_baseline,
    validate_baseline_stability,
    validate_data_sufficiency,
    z_for_level,
)
from alert_governance.stats.robust import (
    beta_mean,
    beta_posterior,
    beta_variance,
    huber_regression,
    mad,
    median,
    pearson_correlation,
)
from alert_governance.storage.kv import InMemoryStore, JsonStateStore, KeyValueStore

logger = structlog.get_logger(__name__)

# IQR of a normal distribution in units of sigma.
IQR_PER_SIGMA = 1.349

# Reliability when the sufficiency check passes, before penalties.
BASE_RELIABILITY = 0.8

ENVIRONMENT_FACTORS = ("noise_level", "temperature", "humidity", "student_count")

EntryT = TypeVar("EntryT", bound=BaseModel)


def _coerce(model: Type[EntryT], items: Optional[Iterable[Any]]) -> List[EntryT]:
    return [
        item if isinstance(item, model) else model.model_validate(item)
        for item in (items or [])
    ]


def _is_finite(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value)


def _factor_value(entry: TrackingEntry, factor: str) -> Optional[float]:
    env = entry.environmental_data
    if env is None:
        return None
    if factor == "student_count":
        return env.classroom.student_count if env.classroom else None
    if env.room_conditions is None:
        return None
    return getattr(env.room_conditions, factor)


class BaselineService:
    """
    Computes and persists per-student baselines.

    Attributes:
        config: Windows, minimums and prior settings.
        namespace: Prefix for persisted keys.
        _clock: Time source for window cutoffs and snapshot timestamps.
        _state: Fail-soft JSON store.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        clock: Optional[Clock] = None,
        config: Optional[BaselineConfig] = None,
        namespace: str = "",
    ) -> None:
        """
        Initialize the baseline service.

        Args:
            store: Key-value backend (defaults to a fresh InMemoryStore).
            clock: Time source (defaults to SystemClock).
            config: Baseline settings (defaults to BaselineConfig()).
            namespace: Key prefix isolating this instance's snapshots.
        """
        self.config = config or BaselineConfig()
        self.namespace = namespace
        self._clock = clock or SystemClock()
        self._state = JsonStateStore(
            store if store is not None else InMemoryStore(),
            component="baseline",
        )

        logger.debug(
            "baseline_service_initialized",
            namespace=namespace,
            windows=self.config.windows,
        )

    @property
    def storage_failures(self) -> int:
        """Persistence failures observed so far (degraded-mode signal)."""
        return self._state.failure_count

    def _key(self, student_id: str) -> str:
        prefix = f"{self.namespace}:" if self.namespace else ""
        return f"{prefix}alerts:baseline:{student_id}"

    # =========================================================================
    # Getters
    # =========================================================================

    def get_baseline(self, student_id: str) -> Optional[StudentBaseline]:
        """
        Return the last persisted snapshot without recomputation.

        Returns:
            Optional[StudentBaseline]: None if nothing (readable) is stored.
        """
        raw = self._state.read(self._key(student_id))
        if raw is None:
            return None
        try:
            return StudentBaseline.model_validate(raw)
        except ValidationError as e:
            logger.warning(
                "baseline_snapshot_invalid",
                student_id=student_id,
                error=str(e),
            )
            return None

    def get_emotion_baseline(self, student_id: str) -> Optional[StudentBaseline]:
        return self.get_baseline(student_id)

    def get_sensory_baseline(self, student_id: str) -> Optional[StudentBaseline]:
        return self.get_baseline(student_id)

    def get_environmental_baseline(self, student_id: str) -> Optional[StudentBaseline]:
        return self.get_baseline(student_id)

    def clear_baseline(self, student_id: str) -> bool:
        """Remove the persisted snapshot. Returns False if the delete failed."""
        return self._state.delete(self._key(student_id))

    # =========================================================================
    # Update
    # =========================================================================

    def update_baseline(
        self,
        student_id: str,
        emotions: Optional[Sequence[Any]] = None,
        sensory: Optional[Sequence[Any]] = None,
        tracking: Optional[Sequence[Any]] = None,
    ) -> Optional[StudentBaseline]:
        """
        Recompute the student's baseline from the full history given.

        Entries may be model instances or mappings (camelCase or snake_case).

        Args:
            student_id: Student to compute for.
            emotions: Emotion entries.
            sensory: Sensory entries.
            tracking: Tracking sessions.

        Returns:
            Optional[StudentBaseline]: The persisted snapshot, or None when
            history is empty or below the sufficiency minimums.
        """
        emotion_entries = _coerce(EmotionEntry, emotions)
        sensory_entries = _coerce(SensoryEntry, sensory)
        tracking_entries = _coerce(TrackingEntry, tracking)

        timestamps = (
            [e.timestamp for e in emotion_entries]
            + [s.timestamp for s in sensory_entries]
            + [t.timestamp for t in tracking_entries]
        )
        if not timestamps:
            logger.info("baseline_skipped_no_data", student_id=student_id)
            return None

        unique_days = len({ts.date() for ts in self._utc(timestamps)})
        sessions = len(tracking_entries) if tracking_entries else unique_days
        sufficiency = validate_data_sufficiency(
            sessions,
            unique_days,
            self.config.min_sessions,
            self.config.min_unique_days,
        )
        if not sufficiency.is_sufficient:
            logger.info(
                "baseline_skipped_insufficient_data",
                student_id=student_id,
                sessions=sessions,
                unique_days=unique_days,
                reasons=sufficiency.reasons,
            )
            return None

        now = self._clock.now()
        insufficient_keys: List[str] = []
        outlier_counts: Dict[str, int] = {}

        emotion_stats: Dict[str, EmotionBaselineStats] = {}
        sensory_stats: Dict[str, SensoryBaselineStats] = {}
        env_stats: Dict[str, EnvironmentalBaselineStats] = {}
        total_values = 0

        for window in self.config.windows:
            cutoff = now - timedelta(days=window)
            total_values += self._emotion_window(
                emotion_entries, window, cutoff, emotion_stats, outlier_counts, insufficient_keys
            )
            self._sensory_window(
                sensory_entries, tracking_entries, window, cutoff, sensory_stats, insufficient_keys
            )
            self._environment_window(
                tracking_entries, window, cutoff, env_stats, insufficient_keys
            )

        quality = self._quality(
            tracking_entries,
            now,
            sufficiency,
            outlier_counts,
            total_values,
            insufficient_keys,
        )

        previous = self.get_baseline(student_id)
        baseline = StudentBaseline(
            student_id=student_id,
            version=previous.version + 1 if previous else 1,
            updated_at=now,
            next_suggested_update_at=now + timedelta(days=self.config.update_interval_days),
            emotion=emotion_stats,
            sensory=sensory_stats,
            environment=env_stats,
            sample_info=SampleInfo(
                sessions=sessions,
                unique_days=unique_days,
                windows=list(self.config.windows),
            ),
            quality=quality,
        )

        self._state.write(self._key(student_id), baseline.model_dump(mode="json"))
        logger.info(
            "baseline_updated",
            student_id=student_id,
            version=baseline.version,
            emotion_keys=len(emotion_stats),
            sensory_keys=len(sensory_stats),
            environment_keys=len(env_stats),
            reliability=round(quality.reliability_score, 3),
        )
        return baseline

    @staticmethod
    def _utc(timestamps: Iterable[datetime]) -> List[datetime]:
        return [ts.astimezone(timezone.utc) for ts in timestamps]

    def _emotion_window(
        self,
        entries: List[EmotionEntry],
        window: int,
        cutoff: datetime,
        out: Dict[str, EmotionBaselineStats],
        outlier_counts: Dict[str, int],
        insufficient_keys: List[str],
    ) -> int:
        """Fill emotion stats for one window; returns the number of values seen."""
        grouped: Dict[str, List[Tuple[datetime, float]]] = defaultdict(list)
        for entry in entries:
            if entry.timestamp >= cutoff and _is_finite(entry.intensity):
                grouped[entry.emotion or "unknown"].append((entry.timestamp, entry.intensity))

        seen = 0
        for name, points in grouped.items():
            points.sort(key=lambda p: p[0])
            values = [p[1] for p in points]
            key = f"{name}:{window}"
            cleaned, outliers = assess_data_quality(values, self.config.outlier_z_threshold)
            outlier_counts[key] = len(outliers)
            seen += len(values)

            if outliers:
                logger.debug(
                    "emotion_outliers_removed",
                    key=key,
                    outliers=len(outliers),
                )
            if len(cleaned) < self.config.min_window_samples:
                insufficient_keys.append(f"emotion:{key}")
                continue

            dropped = set(outliers)
            kept_ts = [points[i][0] for i in range(len(points)) if i not in dropped]
            sigma = mad(cleaned, "normal")
            out[key] = EmotionBaselineStats(
                emotion=name,
                median=median(cleaned),
                iqr=sigma * IQR_PER_SIGMA,
                mad=mad(cleaned),
                window_days=window,
                confidence_interval=calculate_confidence_interval(
                    cleaned, self.config.confidence_level
                ),
                sample_count=len(cleaned),
                trend=detect_trend_in_baseline(kept_ts, cleaned),
            )
        return seen

    def _sensory_window(
        self,
        sensory: List[SensoryEntry],
        tracking: List[TrackingEntry],
        window: int,
        cutoff: datetime,
        out: Dict[str, SensoryBaselineStats],
        insufficient_keys: List[str],
    ) -> None:
        """Fill sensory rate stats for one window."""
        windowed_tracking = [t for t in tracking if t.timestamp >= cutoff]

        # Each trial is the set of behaviors observed in it.
        trials: List[set]
        if windowed_tracking:
            trials = [{s.behavior for s in t.sensory_inputs} for t in windowed_tracking]
        else:
            by_day: Dict[Any, set] = defaultdict(set)
            for entry in sensory:
                if entry.timestamp >= cutoff:
                    by_day[self._utc([entry.timestamp])[0].date()].add(entry.behavior)
            trials = list(by_day.values())

        behaviors = sorted(set().union(*trials)) if trials else []
        z = z_for_level(self.config.confidence_level)
        for behavior in behaviors:
            key = f"{behavior}:{window}"
            n = len(trials)
            if n < self.config.min_window_samples:
                insufficient_keys.append(f"sensory:{key}")
                continue

            successes = sum(1 for trial in trials if behavior in trial)
            alpha, beta = beta_posterior(
                successes, n, self.config.prior_alpha, self.config.prior_beta
            )
            mean = beta_mean(alpha, beta)
            std = math.sqrt(max(0.0, beta_variance(alpha, beta)))
            out[key] = SensoryBaselineStats(
                behavior=behavior,
                rate_prior=BetaPrior(alpha=alpha, beta=beta),
                window_days=window,
                posterior_mean=mean,
                credible_interval=ConfidenceInterval(
                    lower=max(0.0, mean - z * std),
                    upper=min(1.0, mean + z * std),
                    level=self.config.confidence_level,
                    n=n,
                ),
                trials=n,
                successes=successes,
            )

    def _environment_window(
        self,
        tracking: List[TrackingEntry],
        window: int,
        cutoff: datetime,
        out: Dict[str, EnvironmentalBaselineStats],
        insufficient_keys: List[str],
    ) -> None:
        """Fill environmental factor stats for one window."""
        factor_values: Dict[str, List[float]] = defaultdict(list)
        factor_emotion: Dict[str, List[float]] = defaultdict(list)
        for entry in tracking:
            if entry.timestamp < cutoff:
                continue
            peak = entry.max_emotion_intensity
            for factor in ENVIRONMENT_FACTORS:
                value = _factor_value(entry, factor)
                if _is_finite(value):
                    factor_values[factor].append(value)
                    factor_emotion[factor].append(peak)

        for factor, values in factor_values.items():
            key = f"{factor}:{window}"
            cleaned, outliers = assess_data_quality(values, self.config.outlier_z_threshold)
            if len(cleaned) < self.config.min_window_samples:
                insufficient_keys.append(f"environment:{key}")
                continue

            dropped = set(outliers)
            paired = [y for i, y in enumerate(factor_emotion[factor]) if i not in dropped]
            out[key] = EnvironmentalBaselineStats(
                factor=factor,
                median=median(cleaned),
                iqr=mad(cleaned, "normal") * IQR_PER_SIGMA,
                window_days=window,
                confidence_interval=calculate_confidence_interval(
                    cleaned, self.config.confidence_level
                ),
                sample_count=len(cleaned),
                correlation_with_emotion=pearson_correlation(cleaned, paired),
                emotion_slope=huber_regression(cleaned, paired).slope,
            )

    def _quality(
        self,
        tracking: List[TrackingEntry],
        now: datetime,
        sufficiency: BaselineValidationResult,
        outlier_counts: Dict[str, int],
        total_values: int,
        insufficient_keys: List[str],
    ) -> BaselineQualityMetrics:
        total_outliers = sum(outlier_counts.values())
        outlier_rate = total_outliers / total_values if total_values else 0.0

        # Noise level over the shortest window is the stability proxy.
        cutoff = now - timedelta(days=min(self.config.windows))
        series = sorted(
            (t.timestamp, _factor_value(t, "noise_level"))
            for t in tracking
            if t.timestamp >= cutoff and _is_finite(_factor_value(t, "noise_level"))
        )
        if len(series) < 3:
            stability = 1.0
        else:
            shift = validate_baseline_stability(
                [p[0] for p in series], [p[1] for p in series]
            )
            stability = 1.0 - shift.score

        reliability = (
            BASE_RELIABILITY
            * (1.0 - 0.5 * outlier_rate)
            * (0.5 + 0.5 * stability)
        )
        return BaselineQualityMetrics(
            reliability_score=min(1.0, max(0.0, reliability)),
            outlier_rate=min(1.0, outlier_rate),
            outlier_counts_by_key=outlier_counts,
            data_sufficiency=sufficiency,
            stability_score=min(1.0, max(0.0, stability)),
            insufficient_keys=insufficient_keys,
        )


def create_baseline_service(
    store: Optional[KeyValueStore] = None,
    clock: Optional[Clock] = None,
    config: Optional[BaselineConfig] = None,
    namespace: str = "",
) -> BaselineService:
    """
    Factory function to create a BaselineService.

    Example:
        >>> service = create_baseline_service(namespace="tenant-a")
    """
    return BaselineService(store=store, clock=clock, config=config, namespace=namespace)
