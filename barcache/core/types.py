"""Core data types for the bar cache.

This module defines the value types shared by every layer using
dataclasses:
- TimeOfDay: hour/minute/second within a single trading day
- Bar: one ticker's OHLC observation for one minute slot

Both are frozen and validated in __post_init__.
"""

from dataclasses import dataclass
from datetime import datetime
from functools import total_ordering
from typing import Optional, Tuple

import pytz

from .constants import MINUTES_PER_HOUR
from .exceptions import ClockUnavailableError, InvalidBarError, InvalidTimeError


# ============================================================================
# Time Types
# ============================================================================

@total_ordering
@dataclass(frozen=True, eq=False)
class TimeOfDay:
    """
    Wall-clock time within one trading day.

    Minute is always kept in [0, 59]. Stepping backward past minute 0
    borrows from the hour, and the hour may go negative: there is no
    day-boundary handling, the cache is scoped to a single session.

    Equality and ordering look at (hour, minute) only; seconds are carried
    for display.
    """
    hour: int
    minute: int
    second: int = 0

    def __post_init__(self):
        if not 0 <= self.minute < MINUTES_PER_HOUR:
            raise InvalidTimeError("Minute out of range", minute=self.minute)
        if not 0 <= self.second < 60:
            raise InvalidTimeError("Second out of range", second=self.second)

    @classmethod
    def now(cls, timezone: Optional[str] = None) -> "TimeOfDay":
        """
        Read the system clock.

        Args:
            timezone: IANA zone name (e.g. "America/New_York"); local time if None

        Raises:
            ClockUnavailableError: If the clock cannot be read
        """
        try:
            if timezone:
                current = datetime.now(pytz.timezone(timezone))
            else:
                current = datetime.now()
        except (OSError, OverflowError, pytz.UnknownTimeZoneError) as e:
            raise ClockUnavailableError(
                "System clock unavailable",
                timezone=timezone,
                error=str(e)
            ) from e
        return cls.from_datetime(current)

    @classmethod
    def from_datetime(cls, value: datetime) -> "TimeOfDay":
        return cls(value.hour, value.minute, value.second)

    @property
    def slot(self) -> Tuple[int, int]:
        """(hour, minute) identity used for bar lookups."""
        return (self.hour, self.minute)

    def previous_minute(self) -> "TimeOfDay":
        """One minute earlier; minute 0 wraps to 59 of the previous hour."""
        if self.minute == 0:
            return TimeOfDay(self.hour - 1, MINUTES_PER_HOUR - 1, self.second)
        return TimeOfDay(self.hour, self.minute - 1, self.second)

    def next_minute(self) -> "TimeOfDay":
        """One minute later; minute 59 wraps to 0 of the next hour."""
        if self.minute == MINUTES_PER_HOUR - 1:
            return TimeOfDay(self.hour + 1, 0, self.second)
        return TimeOfDay(self.hour, self.minute + 1, self.second)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TimeOfDay):
            return NotImplemented
        return self.slot == other.slot

    def __lt__(self, other: "TimeOfDay") -> bool:
        if not isinstance(other, TimeOfDay):
            return NotImplemented
        return self.slot < other.slot

    def __hash__(self) -> int:
        return hash(self.slot)

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}:{self.second:02d}"


# ============================================================================
# Market Data Types
# ============================================================================

@dataclass(frozen=True)
class Bar:
    """
    One-minute OHLC bar for a ticker.

    Validates OHLC integrity on creation.
    """
    ticker: str
    hour: int
    minute: int
    open: float
    close: float
    low: float
    high: float

    def __post_init__(self):
        """Validate bar integrity."""
        if not 0 <= self.minute < MINUTES_PER_HOUR:
            raise InvalidBarError(
                f"Invalid bar: minute ({self.minute}) out of range",
                ticker=self.ticker,
                hour=self.hour
            )

        # High must be >= max(open, close)
        if self.high < max(self.open, self.close):
            raise InvalidBarError(
                f"Invalid bar: high ({self.high}) < max(open, close)",
                ticker=self.ticker,
                slot=f"{self.hour:02d}:{self.minute:02d}"
            )

        # Low must be <= min(open, close)
        if self.low > min(self.open, self.close):
            raise InvalidBarError(
                f"Invalid bar: low ({self.low}) > min(open, close)",
                ticker=self.ticker,
                slot=f"{self.hour:02d}:{self.minute:02d}"
            )

    @property
    def slot(self) -> Tuple[int, int]:
        return (self.hour, self.minute)

    @property
    def time(self) -> TimeOfDay:
        return TimeOfDay(self.hour, self.minute)

    @property
    def typical_price(self) -> float:
        """(High + Low + Close) / 3"""
        return (self.high + self.low + self.close) / 3

    @property
    def range(self) -> float:
        """High - Low"""
        return self.high - self.low

    def __str__(self) -> str:
        return (
            f"{self.ticker} {self.hour:02d}:{self.minute:02d} "
            f"O={self.open} H={self.high} L={self.low} C={self.close}"
        )
