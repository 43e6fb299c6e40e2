"""
Clock -- Injectable time source.

Responsibility:
    Every entry point of the billing engine receives either an explicit
    ``as_of`` timestamp or a ``Clock``; no service calls ``datetime.now()``
    or ``date.today()`` itself.  Due-date evaluation, schedule advancement
    and reminder selection are therefore reproducible under test.

Architecture position:
    Kernel > Domain.  ``SystemClock`` is the only place that reads the
    wall clock.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):

    @abstractmethod
    def now(self) -> datetime:
        """Current instant; timezone-aware UTC in production."""


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock pinned to ``fixed_time`` until moved.

    A scheduler test can ``advance(days=31)`` between ticks to reach the next
    billing cycle without sleeping.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or datetime(2025, 1, 1, 9, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: int = 0, *, days: int = 0) -> None:
        self._current += timedelta(seconds=seconds, days=days)
