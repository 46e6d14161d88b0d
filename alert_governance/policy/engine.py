"""
Alert policy engine.

AlertPolicies is the single gate between "a detector thinks this is
noteworthy" and "a human is shown this". It owns quiet hours, deduplication,
daily caps, severity-aware exponential backoff, snoozes and the admission
audit trail. All state lives in a KeyValueStore under namespaced keys and
every "now" comes from the injected clock.

Persisted keys (per student):
    {ns}:alerts:policy:{student_id}:throttle    dedupe_key -> attempts
    {ns}:alerts:policy:{student_id}:snooze      dedupe_key -> ISO expiry
    {ns}:alerts:policy:{student_id}:admissions  admitted alerts (cap counting)
    {ns}:alerts:policy:{student_id}:audit       admission decisions

Example:
    >>> policies = AlertPolicies(namespace="tenant-a", clock=ManualClock(start))
    >>> decision = policies.can_create_alert(alert, settings)
    >>> if not decision.allowed:
    ...     print(decision.reasons)
    ['cap_exceeded']
"""

import json
import math
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
from zoneinfo import ZoneInfo

import structlog
from pydantic import ValidationError

from alert_governance.clock import Clock, SystemClock, ensure_aware
from alert_governance.config.models import PolicyConfig
from alert_governance.models.alerts import (
    AdmissionDecision,
    AlertEvent,
    AlertSeverity,
    AuditDecision,
    AuditTrailEntry,
    ThrottleDecision,
)
from alert_governance.models.settings import AlertSettings, SettingsValidationResult
from alert_governance.policy import dedupe
from alert_governance.policy.constants import (
    DEFAULT_BASE_BY_SEVERITY,
    DEFAULT_DONT_SHOW_DAYS,
    DEFAULT_SNOOZE_HOURS,
    MAX_BACKOFF_EXPONENT,
    MAX_THROTTLE_DELAY_MS,
    REASON_CAP_EXCEEDED,
    REASON_QUIET_HOURS,
    REASON_SNOOZED,
    REASON_THROTTLED,
    THROTTLE_BACKOFF_BASE,
)
from alert_governance.policy.validation import (
    SettingsInput,
    assert_valid_alert_settings,
    parse_hhmm,
    validate_alert_settings,
)
from alert_governance.storage.kv import InMemoryStore, JsonStateStore, KeyValueStore

logger = structlog.get_logger(__name__)

SeverityCounts = Mapping[Union[AlertSeverity, str], int]


class AlertPolicies:
    """
    Stateful, namespace-isolated alert governance.

    Two instances with different namespaces never observe each other's
    throttle, snooze, admission or audit state, even on a shared store.

    Attributes:
        namespace: Prefix for every persisted key.
        config: Engine settings (timezone, windows, delays, retention).
        default_settings: Settings used when a call passes none.
    """

    def __init__(
        self,
        namespace: str = "",
        store: Optional[KeyValueStore] = None,
        clock: Optional[Clock] = None,
        config: Optional[PolicyConfig] = None,
        default_settings: Optional[AlertSettings] = None,
    ) -> None:
        """
        Initialize the policy engine.

        Args:
            namespace: Key prefix; falls back to config.namespace when empty.
            store: Key-value backend (defaults to a fresh InMemoryStore).
            clock: Time source (defaults to SystemClock).
            config: Engine settings (defaults to PolicyConfig()).
            default_settings: Settings applied when a call passes None.
        """
        self.config = config or PolicyConfig()
        self.namespace = namespace or self.config.namespace
        self.default_settings = default_settings or AlertSettings()
        self._clock = clock or SystemClock()
        self._tz = ZoneInfo(self.config.timezone)
        self._state = JsonStateStore(
            store if store is not None else InMemoryStore(),
            component="alert_policies",
        )

        logger.debug(
            "alert_policies_initialized",
            namespace=self.namespace,
            timezone=self.config.timezone,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    @property
    def storage_failures(self) -> int:
        """Persistence failures observed so far (degraded-mode signal)."""
        return self._state.failure_count

    def _key(self, student_id: str, suffix: str) -> str:
        prefix = f"{self.namespace}:" if self.namespace else ""
        return f"{prefix}alerts:policy:{student_id}:{suffix}"

    def _read_map(self, student_id: str, suffix: str) -> Dict[str, Any]:
        value = self._state.read(self._key(student_id, suffix))
        return value if isinstance(value, dict) else {}

    def _read_list(self, student_id: str, suffix: str) -> List[Any]:
        value = self._state.read(self._key(student_id, suffix))
        return value if isinstance(value, list) else []

    def _now(self) -> datetime:
        return ensure_aware(self._clock.now())

    def _local_day(self, value: datetime) -> date:
        return ensure_aware(value).astimezone(self._tz).date()

    def _resolve(self, settings: SettingsInput) -> AlertSettings:
        result = validate_alert_settings(
            settings if settings is not None else self.default_settings
        )
        if not result.is_valid:
            logger.debug("alert_settings_normalized", errors=result.errors)
        return result.normalized

    # =========================================================================
    # Settings validation
    # =========================================================================

    def validate_alert_settings(self, settings: SettingsInput) -> SettingsValidationResult:
        """Normalize settings without raising. See policy.validation."""
        return validate_alert_settings(settings)

    def assert_valid_alert_settings(self, settings: SettingsInput) -> AlertSettings:
        """
        Normalize settings, raising if any problem was found.

        Raises:
            SettingsValidationError: If normalization recorded errors.
        """
        return assert_valid_alert_settings(settings)

    # =========================================================================
    # Quiet hours
    # =========================================================================

    def is_in_quiet_hours(
        self,
        student_id: str,
        settings: SettingsInput = None,
        at: Optional[datetime] = None,
    ) -> bool:
        """
        Check whether a moment falls inside the student's quiet hours.

        Windows are half-open [start, end). When start > end the window
        crosses midnight. days_of_week restricts the check to those days
        (0=Sunday), judged by the day of `at`. Times are evaluated in the
        quiet-hours timezone when set, else the engine timezone.

        Args:
            student_id: Student the settings belong to.
            settings: Alert settings (None uses the engine defaults).
            at: Moment to check (defaults to now).

        Returns:
            bool: True if inside quiet hours.
        """
        quiet = self._resolve(settings).quiet_hours
        if quiet is None:
            return False

        start = parse_hhmm(quiet.start)
        end = parse_hhmm(quiet.end)
        if start is None or end is None or start == end:
            return False

        tz = ZoneInfo(quiet.timezone) if quiet.timezone else self._tz
        local = ensure_aware(at or self._now()).astimezone(tz)

        if quiet.days_of_week:
            sunday_based = (local.weekday() + 1) % 7
            if sunday_based not in quiet.days_of_week:
                return False

        minutes = local.hour * 60 + local.minute
        if start < end:
            return start <= minutes < end
        return minutes >= start or minutes < end

    def apply_quiet_hours(
        self,
        alerts: Sequence[AlertEvent],
        settings: SettingsInput = None,
    ) -> List[AlertEvent]:
        """Annotate each alert with governance.quiet_hours for its created_at."""
        resolved = self._resolve(settings)
        return [
            alert.with_governance(
                quiet_hours=self.is_in_quiet_hours(alert.student_id, resolved, alert.created_at)
            )
            for alert in alerts
        ]

    # =========================================================================
    # Deduplication
    # =========================================================================

    def calculate_dedupe_key(self, alert: AlertEvent) -> str:
        return dedupe.calculate_dedupe_key(alert)

    def deduplicate_alerts(
        self,
        alerts: Sequence[AlertEvent],
        window_ms: Optional[float] = None,
    ) -> List[AlertEvent]:
        """
        Keep one alert per (dedupe key, window bucket).

        Args:
            alerts: Candidate alerts.
            window_ms: Bucket width (defaults to config.dedupe_window_ms).

        Returns:
            List[AlertEvent]: Representatives, highest severity then most recent.
        """
        window = window_ms if window_ms is not None else self.config.dedupe_window_ms
        survivors = dedupe.deduplicate_alerts(alerts, window)
        logger.debug(
            "alerts_deduplicated",
            received=len(alerts),
            kept=len(survivors),
            window_ms=window,
        )
        return survivors

    # =========================================================================
    # Daily caps
    # =========================================================================

    def _severity_counts(
        self, counts: Optional[SeverityCounts]
    ) -> Dict[AlertSeverity, int]:
        resolved: Dict[AlertSeverity, int] = {}
        for severity, count in (counts or {}).items():
            try:
                resolved[AlertSeverity(severity)] = int(count)
            except (TypeError, ValueError):
                logger.warning(
                    "severity_count_ignored",
                    severity=str(severity),
                    count=repr(count),
                )
        return resolved

    def enforce_cap_limits(
        self,
        alerts: Sequence[AlertEvent],
        settings: SettingsInput = None,
        existing_counts: Optional[SeverityCounts] = None,
    ) -> List[AlertEvent]:
        """
        Annotate alerts that exceed their severity's daily cap.

        Alerts are grouped by (severity, local calendar day of created_at) and
        admitted in created_at order until the cap is reached; the rest get
        governance.cap_exceeded=True. Nothing is removed and input order is
        preserved. This method does not touch persisted state.

        Args:
            alerts: Candidate alerts.
            settings: Alert settings (None uses the engine defaults).
            existing_counts: Admissions already made today per severity,
                             charged against the current local day.
                             Unknown severities and non-numeric counts are
                             logged and ignored.

        Returns:
            List[AlertEvent]: Annotated copies, in input order.
        """
        caps = self._resolve(settings).daily_caps
        today = self._local_day(self._now())

        used: Dict[tuple, int] = {
            (severity, today): count
            for severity, count in self._severity_counts(existing_counts).items()
        }

        order = sorted(range(len(alerts)), key=lambda i: alerts[i].created_at)
        exceeded: Dict[int, bool] = {}
        for i in order:
            alert = alerts[i]
            bucket = (alert.severity, self._local_day(alert.created_at))
            count = used.get(bucket, 0)
            if count >= caps.for_severity(alert.severity):
                exceeded[i] = True
            else:
                exceeded[i] = False
                used[bucket] = count + 1

        return [
            alert.with_governance(cap_exceeded=exceeded[i])
            for i, alert in enumerate(alerts)
        ]

    # =========================================================================
    # Throttling
    # =========================================================================

    def get_throttle_attempts(self, student_id: str, dedupe_key: str) -> int:
        value = self._read_map(student_id, "throttle").get(dedupe_key, 0)
        return value if isinstance(value, int) and value > 0 else 0

    def record_throttle_attempt(self, student_id: str, dedupe_key: str) -> int:
        """
        Increment the persisted attempt counter for a key.

        Returns:
            int: The new attempt count.
        """
        throttles = self._read_map(student_id, "throttle")
        current = throttles.get(dedupe_key, 0)
        attempts = (current if isinstance(current, int) and current > 0 else 0) + 1
        throttles[dedupe_key] = attempts
        self._state.write(self._key(student_id, "throttle"), throttles)

        logger.debug(
            "throttle_attempt_recorded",
            student_id=student_id,
            dedupe_key=dedupe_key,
            attempts=attempts,
        )
        return attempts

    def reset_throttle(self, student_id: str, dedupe_key: str) -> None:
        throttles = self._read_map(student_id, "throttle")
        if throttles.pop(dedupe_key, None) is not None:
            self._state.write(self._key(student_id, "throttle"), throttles)
            logger.debug("throttle_reset", student_id=student_id, dedupe_key=dedupe_key)

    def _delay_ceiling(self) -> int:
        # Configs built with model_construct skip field bounds.
        return min(self.config.max_throttle_delay_ms, MAX_THROTTLE_DELAY_MS)

    def _raw_delay(
        self,
        severity: AlertSeverity,
        exponent: int,
        settings: AlertSettings,
    ) -> float:
        throttle = settings.throttle
        base = DEFAULT_BASE_BY_SEVERITY[severity]
        cap = float(self._delay_ceiling())
        if throttle is not None:
            base = throttle.base_by_severity.get(severity, base)
            override = throttle.max_delay_by_severity.get(severity)
            if override is not None:
                cap = min(cap, override)
        return min(cap, self.config.throttle_base_delay_ms * base**exponent)

    def get_throttle_delay(
        self,
        student_id: str,
        dedupe_key: str,
        settings: SettingsInput = None,
        severity: Optional[AlertSeverity] = None,
    ) -> float:
        """
        Current backoff delay for a key, in milliseconds.

        Without a severity: min(base_delay * 2^attempts, MAX_THROTTLE_DELAY_MS).
        With a severity the per-severity base and cap apply, and the delay is
        also bounded by that of every less urgent severity, so for equal
        attempts critical <= important <= moderate <= low. The exponent is
        capped at MAX_BACKOFF_EXPONENT.

        Args:
            student_id: Owning student.
            dedupe_key: Alert key.
            settings: Alert settings (None uses the engine defaults).
            severity: Severity to compute for.

        Returns:
            float: Delay in milliseconds.
        """
        exponent = min(self.get_throttle_attempts(student_id, dedupe_key), MAX_BACKOFF_EXPONENT)
        if severity is None:
            return float(
                min(
                    self._delay_ceiling(),
                    self.config.throttle_base_delay_ms * THROTTLE_BACKOFF_BASE**exponent,
                )
            )

        resolved = self._resolve(settings)
        severity = AlertSeverity(severity)
        return min(
            self._raw_delay(other, exponent, resolved)
            for other in AlertSeverity
            if other.rank <= severity.rank
        )

    def get_throttle_delay_for(self, alert: AlertEvent, settings: SettingsInput = None) -> float:
        """Severity-aware delay for an alert's key."""
        return self.get_throttle_delay(
            alert.student_id,
            alert.dedupe_key,
            settings,
            severity=alert.severity,
        )

    def should_throttle(self, alert: AlertEvent, settings: SettingsInput = None) -> ThrottleDecision:
        """
        Decide whether an alert is still inside its backoff window.

        Throttled iff now < created_at + delay. A throttled check records an
        attempt (growing the next delay); an eligible check resets the key's
        attempts to 0.

        Returns:
            ThrottleDecision: throttled flag and, if throttled, next_eligible_at.
        """
        key = alert.dedupe_key
        delay = self.get_throttle_delay_for(alert, settings)
        eligible_at = alert.created_at + timedelta(milliseconds=delay)
        now = self._now()

        if now < eligible_at:
            attempts = self.record_throttle_attempt(alert.student_id, key)
            logger.info(
                "alert_throttled",
                alert_id=alert.id,
                student_id=alert.student_id,
                dedupe_key=key,
                attempts=attempts,
                next_eligible_at=eligible_at.isoformat(),
            )
            return ThrottleDecision(throttled=True, next_eligible_at=eligible_at, delay_ms=delay)

        self.reset_throttle(alert.student_id, key)
        return ThrottleDecision(throttled=False, delay_ms=delay)

    # =========================================================================
    # Snooze
    # =========================================================================

    def snooze(
        self,
        student_id: str,
        dedupe_key: str,
        hours: Optional[float] = None,
    ) -> datetime:
        """
        Snooze a key until now + hours.

        Args:
            student_id: Owning student.
            dedupe_key: Alert key.
            hours: Snooze length (defaults to the default settings' snooze
                   preference, 24h).

        Returns:
            datetime: The snooze expiry.

        Raises:
            ValueError: If hours is not a positive finite number.
        """
        if hours is None:
            hours = self.default_settings.snooze_preferences.default_hours or DEFAULT_SNOOZE_HOURS
        if not math.isfinite(hours) or hours <= 0:
            raise ValueError(f"Snooze hours must be positive, got {hours}")

        until = self._now() + timedelta(hours=hours)
        snoozes = self._read_map(student_id, "snooze")
        snoozes[dedupe_key] = until.isoformat()
        self._state.write(self._key(student_id, "snooze"), snoozes)

        logger.info(
            "alert_key_snoozed",
            student_id=student_id,
            dedupe_key=dedupe_key,
            until=until.isoformat(),
        )
        return until

    def dont_show_for_days(
        self,
        student_id: str,
        dedupe_key: str,
        days: Optional[float] = None,
    ) -> datetime:
        """Hide a key for N days (defaults to the don't-show-again preference, 7)."""
        if days is None:
            days = (
                self.default_settings.snooze_preferences.dont_show_again_days
                or DEFAULT_DONT_SHOW_DAYS
            )
        if not math.isfinite(days) or days <= 0:
            raise ValueError(f"Days must be positive, got {days}")
        return self.snooze(student_id, dedupe_key, hours=days * 24)

    def get_snoozed_until(self, student_id: str, dedupe_key: str) -> Optional[datetime]:
        raw = self._read_map(student_id, "snooze").get(dedupe_key)
        if not raw:
            return None
        try:
            return ensure_aware(datetime.fromisoformat(raw))
        except (TypeError, ValueError):
            logger.warning(
                "snooze_expiry_unreadable",
                student_id=student_id,
                dedupe_key=dedupe_key,
                value=raw,
            )
            return None

    def is_snoozed(
        self,
        student_id: str,
        dedupe_key: str,
        at: Optional[datetime] = None,
    ) -> bool:
        """True iff `at` (default now) is before the stored expiry."""
        until = self.get_snoozed_until(student_id, dedupe_key)
        if until is None:
            return False
        return ensure_aware(at or self._now()) < until

    def clear_snooze(self, student_id: str, dedupe_key: str) -> None:
        snoozes = self._read_map(student_id, "snooze")
        if snoozes.pop(dedupe_key, None) is not None:
            self._state.write(self._key(student_id, "snooze"), snoozes)

    # =========================================================================
    # Admission
    # =========================================================================

    def get_today_counts(
        self,
        student_id: str,
        day: Optional[date] = None,
    ) -> Dict[AlertSeverity, int]:
        """
        Admissions recorded for a local calendar day, per severity.

        Args:
            student_id: Owning student.
            day: Day to count (defaults to today in the engine timezone).
        """
        target = day or self._local_day(self._now())
        counts = {severity: 0 for severity in AlertSeverity}
        for record in self._read_list(student_id, "admissions"):
            if not isinstance(record, dict) or record.get("day") != target.isoformat():
                continue
            try:
                counts[AlertSeverity(record.get("severity"))] += 1
            except ValueError:
                continue
        return counts

    def _record_admission(self, alert: AlertEvent) -> None:
        ledger = self._read_list(alert.student_id, "admissions")
        ledger.append(
            {
                "alert_id": alert.id,
                "severity": alert.severity.value,
                "created_at": alert.created_at.isoformat(),
                "day": self._local_day(alert.created_at).isoformat(),
            }
        )
        ledger = ledger[-self.config.admission_ledger_max :]
        self._state.write(self._key(alert.student_id, "admissions"), ledger)

    def can_create_alert(
        self,
        alert: AlertEvent,
        settings: SettingsInput = None,
        existing_today_counts: Optional[SeverityCounts] = None,
        check_throttle: bool = False,
    ) -> AdmissionDecision:
        """
        Decide whether an alert may be shown.

        Conditions are evaluated in order: snooze, daily cap, quiet hours and,
        when check_throttle is set, throttle. Any condition denies. Allowed
        alerts are recorded for cap counting. Exactly one audit entry is
        written per call.

        Args:
            alert: Candidate alert.
            settings: Alert settings (None uses the engine defaults).
            existing_today_counts: Admissions already made on the alert's day,
                                   per severity; read from the ledger when None.
                                   Unknown severities and non-numeric counts are
                                   logged and ignored.
            check_throttle: Also apply the backoff check.

        Returns:
            AdmissionDecision: allowed, governance flags and denial reasons.
        """
        resolved = self._resolve(settings)
        key = alert.dedupe_key
        reasons: List[str] = []

        snoozed = self.is_snoozed(alert.student_id, key)
        if snoozed:
            reasons.append(REASON_SNOOZED)

        if existing_today_counts is not None:
            counts = self._severity_counts(existing_today_counts)
        else:
            counts = self.get_today_counts(alert.student_id, self._local_day(alert.created_at))
        cap_exceeded = counts.get(alert.severity, 0) >= resolved.daily_caps.for_severity(
            alert.severity
        )
        if cap_exceeded:
            reasons.append(REASON_CAP_EXCEEDED)

        quiet = self.is_in_quiet_hours(alert.student_id, resolved, alert.created_at)
        if quiet:
            reasons.append(REASON_QUIET_HOURS)

        throttled = False
        next_eligible_at = None
        if check_throttle:
            decision = self.should_throttle(alert, resolved)
            throttled = decision.throttled
            next_eligible_at = decision.next_eligible_at
            if throttled:
                reasons.append(REASON_THROTTLED)

        status = alert.effective_governance.merge(
            snoozed=snoozed,
            cap_exceeded=cap_exceeded,
            quiet_hours=quiet,
            throttled=throttled,
            next_eligible_at=next_eligible_at,
        )
        allowed = not reasons
        if allowed:
            self._record_admission(alert)

        self._append_audit(
            AuditTrailEntry(
                alert_id=alert.id,
                student_id=alert.student_id,
                dedupe_key=key,
                decision=AuditDecision.ALLOWED if allowed else AuditDecision.DENIED,
                reasons=reasons,
                timestamp=self._now(),
                created_at=alert.created_at,
                governance=status,
            )
        )

        logger.info(
            "alert_admission_allowed" if allowed else "alert_admission_denied",
            alert_id=alert.id,
            student_id=alert.student_id,
            severity=alert.severity.value,
            dedupe_key=key,
            reasons=reasons,
        )
        return AdmissionDecision(allowed=allowed, status=status, reasons=reasons)

    # =========================================================================
    # Audit trail
    # =========================================================================

    def _append_audit(self, entry: AuditTrailEntry) -> None:
        trail = self._read_list(entry.student_id, "audit")
        trail.append(entry.model_dump(mode="json"))
        trail = trail[-self.config.audit_max_entries :]
        self._state.write(self._key(entry.student_id, "audit"), trail)

    def get_audit_trail(self, student_id: str, limit: int = 100) -> List[AuditTrailEntry]:
        """
        Most recent admission decisions, oldest first.

        Args:
            student_id: Owning student.
            limit: Maximum entries to return; <= 0 returns everything retained.
        """
        entries: List[AuditTrailEntry] = []
        for raw in self._read_list(student_id, "audit"):
            try:
                entries.append(AuditTrailEntry.model_validate(raw))
            except ValidationError as e:
                logger.warning("audit_entry_unreadable", student_id=student_id, error=str(e))
        if limit > 0:
            entries = entries[-limit:]
        return entries

    def export_audit_trail(self, student_id: str, limit: int = 100) -> str:
        """Audit trail as a JSON array string; "[]" if it cannot be produced."""
        try:
            entries = self.get_audit_trail(student_id, limit)
            return json.dumps([entry.model_dump(mode="json") for entry in entries], indent=2)
        except (TypeError, ValueError) as e:
            logger.warning("audit_export_failed", student_id=student_id, error=str(e))
            return "[]"

    def clear_audit_trail(self, student_id: str) -> None:
        self._state.delete(self._key(student_id, "audit"))


def create_alert_policies(
    config: Optional[PolicyConfig] = None,
    store: Optional[KeyValueStore] = None,
    clock: Optional[Clock] = None,
    default_settings: Optional[AlertSettings] = None,
    namespace: str = "",
) -> AlertPolicies:
    """
    Factory function to create an AlertPolicies engine.

    Example:
        >>> config = load_config("config/governance.yaml")
        >>> policies = create_alert_policies(
        ...     config.policy,
        ...     store=create_store(config.storage, config.redis),
        ...     default_settings=config.alert_defaults,
        ... )
    """
    return AlertPolicies(
        namespace=namespace,
        store=store,
        clock=clock,
        config=config,
        default_settings=default_settings,
    )
