"""
Clocks - the wall-clock collaborator of the window maintainer.

SystemClock reads the real time in the market's timezone.
ManualClock is set by hand for replays and tests.
"""

from abc import ABC, abstractmethod
from typing import Optional

import pytz

from ..core.types import TimeOfDay
from ..core.exceptions import InvalidConfigError


class Clock(ABC):
    """Source of the current time of day."""

    @abstractmethod
    def now(self) -> TimeOfDay:
        """
        Current time of day.

        Raises:
            ClockUnavailableError: If the time cannot be read (fatal)
        """
        pass


class SystemClock(Clock):
    """Wall clock, optionally pinned to a timezone."""

    def __init__(self, timezone: Optional[str] = None):
        """
        Args:
            timezone: IANA zone name; host local time if None
        """
        if timezone is not None and timezone not in pytz.all_timezones_set:
            raise InvalidConfigError("Unknown timezone", timezone=timezone)
        self.timezone = timezone

    def now(self) -> TimeOfDay:
        return TimeOfDay.now(self.timezone)


class ManualClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, hour: int = 9, minute: int = 30, second: int = 0):
        self._time = TimeOfDay(hour, minute, second)

    def set(self, hour: int, minute: int, second: int = 0) -> None:
        self._time = TimeOfDay(hour, minute, second)

    def advance(self, minutes: int = 1) -> None:
        for _ in range(minutes):
            self._time = self._time.next_minute()

    def now(self) -> TimeOfDay:
        return self._time
