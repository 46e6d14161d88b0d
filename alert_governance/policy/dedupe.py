"""
Alert deduplication.

Alerts sharing a dedupe key are grouped into buckets anchored on the first
alert of each bucket: a later alert joins the open bucket for its key when
it was raised less than window_ms after the anchor, otherwise it opens a new
bucket. Each bucket keeps one representative.
"""

from datetime import timedelta
from typing import Dict, List, Sequence

from alert_governance.models.alerts import AlertEvent


def calculate_dedupe_key(alert: AlertEvent) -> str:
    """Deterministic key from student, kind and context (see AlertEvent.dedupe_key)."""
    return alert.dedupe_key


def _winner(members: List[AlertEvent]) -> AlertEvent:
    # Highest severity, then most recent; exact ties go to the later arrival.
    best = members[0]
    for candidate in members[1:]:
        if (candidate.severity.rank, candidate.created_at) >= (
            best.severity.rank,
            best.created_at,
        ):
            best = candidate
    return best


def deduplicate_alerts(alerts: Sequence[AlertEvent], window_ms: float) -> List[AlertEvent]:
    """
    Collapse recurring alerts into one representative per bucket.

    Args:
        alerts: Candidate alerts, in any order.
        window_ms: Bucket width in milliseconds, measured from the bucket's
                   first alert. Buckets are half-open: [anchor, anchor + window).

    Returns:
        List[AlertEvent]: One alert per (dedupe key, bucket), ordered by bucket
        anchor time. Representatives of buckets with more than one member
        carry governance.has_duplicates=True.

    Example:
        >>> survivors = deduplicate_alerts([moderate_t0, important_t30m], 3_600_000)
        >>> [a.severity for a in survivors]
        [<AlertSeverity.IMPORTANT: 'important'>]
    """
    window = timedelta(milliseconds=window_ms)
    ordered = sorted(alerts, key=lambda a: a.created_at)

    buckets: List[List[AlertEvent]] = []
    open_bucket: Dict[str, int] = {}
    for alert in ordered:
        key = alert.dedupe_key
        index = open_bucket.get(key)
        if index is not None and alert.created_at - buckets[index][0].created_at < window:
            buckets[index].append(alert)
            continue
        buckets.append([alert])
        open_bucket[key] = len(buckets) - 1

    return [
        _winner(members).with_governance(
            deduplicated=False,
            has_duplicates=len(members) > 1,
        )
        for members in buckets
    ]
