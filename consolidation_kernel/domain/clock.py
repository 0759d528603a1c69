"""
Injectable clock for report timestamps.

The statements service stamps ``generated_at`` on every summary and breakdown
from a Clock passed to its constructor, never from ``datetime.now()``, so a
test can assert the exact metadata of a response.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone

DEFAULT_TEST_TIME = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Clock frozen at a fixed instant."""

    def __init__(self, fixed_time: datetime = DEFAULT_TEST_TIME):
        self._current = fixed_time

    def now(self) -> datetime:
        return self._current
