"""
Clock
=====
Injectable time source. Analyzers never call ``date.today()`` themselves;
the engine reads the clock once per call and passes ``as_of`` down, so a
fixed clock makes every output reproducible.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from typing import Optional


class Clock(ABC):
    """Abstract clock interface."""

    @abstractmethod
    def now(self) -> datetime:
        """Current timezone-aware time."""
        ...


class SystemClock(Clock):
    """Production clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Clock pinned to a single instant (tests and replays)."""

    def __init__(self, fixed_time: Optional[datetime] = None):
        self._fixed_time = fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    @classmethod
    def on(cls, day: date) -> "FixedClock":
        """Clock fixed at noon UTC on ``day``."""
        return cls(datetime(day.year, day.month, day.day, 12, 0, 0, tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self._fixed_time
