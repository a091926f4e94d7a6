"""
Clock -- Deterministic time abstraction.

Responsibility:
    Provides an injectable clock so that services and selectors never call
    ``datetime.now()`` or ``date.today()`` directly.  Event creation
    timestamps and the "as of today" date used for live warranty status
    both come from here.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).

Audit relevance:
    Deterministic clocks make the Lifecycle Aggregator reproducible in tests
    and replay: same history + same clock gives identical output.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        - ``now()`` returns a timezone-aware UTC ``datetime``.
        - ``today()`` returns the UTC calendar date of ``now()``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    def today(self) -> date:
        """Get the current UTC date."""
        return self.now().astimezone(timezone.utc).date()


class SystemClock(Clock):
    """Production clock that returns actual system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` returns the same value on repeated calls until
          ``advance()`` or ``set_time()`` is called.
        - ``tick()`` advances by exactly 1 second and returns the new time.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        self._advance_seconds = 0

    def now(self) -> datetime:
        return self._fixed_time + timedelta(seconds=self._advance_seconds)

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._fixed_time = time
        self._advance_seconds = 0

    def set_date(self, day: date) -> None:
        """Set the clock to noon UTC on a calendar date."""
        self.set_time(datetime(day.year, day.month, day.day, 12, 0, 0, tzinfo=timezone.utc))

    def advance(self, seconds: int = 1) -> None:
        """Advance the clock by the specified seconds."""
        self._advance_seconds += seconds

    def tick(self) -> datetime:
        """Advance by 1 second and return new time."""
        self.advance(1)
        return self.now()
