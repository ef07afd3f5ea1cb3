"""Clock abstraction for time-dependent code.

WallClock: real wall-clock time (service runtime)
SimClock: deterministic time that only moves when told to (tests)

Cache expiry and frozen-at stamps read ``clock.now()`` rather than
calling ``datetime.now()`` directly.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


class IClock(Protocol):
    """Clock interface used by all time-dependent code."""

    def now(self) -> datetime:
        """Current time as timezone-aware UTC datetime."""
        ...

    def monotonic(self) -> float:
        """Seconds on a clock that never goes backwards."""
        ...


class WallClock:
    """Real wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        import time

        return time.monotonic()


class SimClock:
    """Simulated clock.

    Time advances only when explicitly moved by the caller.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._time = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._start = self._time

    def now(self) -> datetime:
        return self._time

    def monotonic(self) -> float:
        return (self._time - self._start).total_seconds()

    def set_time(self, t: datetime) -> None:
        """Move time. Must be monotonically increasing."""
        if t < self._time:
            raise ValueError(
                f"SimClock cannot go backwards: {t} < {self._time}"
            )
        self._time = t

    def advance(self, seconds: float) -> None:
        """Advance time by seconds."""
        self.set_time(self._time + timedelta(seconds=seconds))
