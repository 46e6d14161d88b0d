"""
Injectable time source.

Every "now" read in the engine goes through a Clock so that throttle
eligibility, snooze expiry, and baseline windows can be tested by moving
time explicitly instead of sleeping.

Example:
    >>> clock = ManualClock(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))
    >>> policies = AlertPolicies(clock=clock)
    >>> policies.snooze("s1", key, hours=1)
    >>> clock.advance(hours=25)
    >>> assert not policies.is_snoozed("s1", key)
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    """Protocol for time sources. Implementations return timezone-aware datetimes."""

    def now(self) -> datetime:
        """Return the current time."""
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """
    Clock that only moves when told to.

    Attributes:
        _current: The time returned by now().
    """

    def __init__(self, start: Optional[datetime] = None) -> None:
        """
        Initialize the manual clock.

        Args:
            start: Initial time. Naive values are treated as UTC.
                   Defaults to the current wall-clock time.
        """
        self._current = ensure_aware(start) if start is not None else datetime.now(timezone.utc)

    def now(self) -> datetime:
        return self._current

    def set(self, value: datetime) -> None:
        """Jump to an absolute time."""
        self._current = ensure_aware(value)

    def advance(self, delta: Optional[timedelta] = None, **kwargs: float) -> datetime:
        """
        Move the clock forward.

        Args:
            delta: Amount to advance by.
            **kwargs: timedelta keyword arguments (hours=25, milliseconds=1000, ...)
                      used when delta is not given.

        Returns:
            datetime: The new current time.
        """
        step = delta if delta is not None else timedelta(**kwargs)
        self._current = self._current + step
        return self._current


def ensure_aware(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; leave aware ones untouched."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
