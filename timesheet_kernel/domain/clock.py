"""
Clock -- Deterministic time abstraction and week arithmetic.

Responsibility:
    Provides an injectable clock so that services never call
    ``datetime.now()`` directly, plus the week-start rule used to key
    timesheets (Monday 00:00 UTC).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).

Failure modes:
    - ValueError from ``ensure_utc`` / ``week_start`` on naive datetimes.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        All services that need current time receive a Clock instance via
        constructor injection.

    Guarantees:
        - ``now()`` returns a timezone-aware UTC ``datetime``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current UTC time."""
        ...


class SystemClock(Clock):
    """Production clock that returns actual system time in UTC."""

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
        self._current = ensure_utc(
            fixed_time or datetime(2024, 1, 3, 12, 0, 0, tzinfo=timezone.utc)
        )

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = ensure_utc(time)

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        self.advance(1)
        return self._current


def ensure_utc(value: datetime) -> datetime:
    """Normalise an aware datetime to UTC.  Naive values are rejected."""
    if value.tzinfo is None:
        raise ValueError(f"Naive datetime not allowed: {value!r}")
    return value.astimezone(timezone.utc)


def week_start(value: datetime) -> datetime:
    """
    Monday 00:00 UTC of the week containing ``value``.

    A Sunday belongs to the week that started six days earlier.
    """
    day = ensure_utc(value)
    monday = day - timedelta(days=day.weekday())
    return monday.replace(hour=0, minute=0, second=0, microsecond=0)
