"""Exception hierarchy for the bar cache.

This module defines all custom exceptions used throughout the bar cache.
All exceptions inherit from BarCacheError for easy catching and handling.

A missing bar is NOT an exception: sources return None for a minute
without data, and aggregates return None when the window is too short.
"""

from typing import Any, Dict


class BarCacheError(Exception):
    """Base exception for all bar cache errors.

    All custom exceptions in the bar cache inherit from this class,
    allowing for easy catching of any cache related errors.
    """

    def __init__(self, message: str, **context: Any):
        """Initialize the exception with a message and optional context.

        Args:
            message: Error message describing what went wrong
            **context: Additional context information for logging and debugging
        """
        super().__init__(message)
        self.context: Dict[str, Any] = context

    def __str__(self) -> str:
        """Return string representation including context."""
        if self.context:
            ctx = ', '.join(f'{k}={v}' for k, v in self.context.items())
            return f"{super().__str__()} [{ctx}]"
        return super().__str__()


# ============================================================================
# Configuration Exceptions
# ============================================================================

class InvalidConfigError(BarCacheError):
    """Raised when configuration contains invalid values.

    Examples are a zero window capacity, a negative refresh interval or
    an empty ticker list.
    """


class MissingConfigError(BarCacheError):
    """Raised when the configuration file or a required section is missing."""


# ============================================================================
# Clock Exceptions
# ============================================================================

class ClockUnavailableError(BarCacheError):
    """Raised when the wall clock cannot be read.

    This is fatal: the refresh loop stops and the error is not retried.
    """


# ============================================================================
# Data Exceptions
# ============================================================================

class InvalidTimeError(BarCacheError):
    """Raised when a time of day has a minute or second outside [0, 59]."""


class InvalidBarError(BarCacheError):
    """Raised when a bar fails OHLC integrity checks.

    Raised when a bar has high below max(open, close), low above
    min(open, close), or a minute outside [0, 59].
    """


class BarSourceError(BarCacheError):
    """Raised when the bar source fails to answer a query.

    Distinct from NoData: the source could not be asked, rather than
    having nothing to report. The maintainer treats it as recoverable.
    """


class FetchTimeoutError(BarSourceError):
    """Raised when a bar fetch exceeds its time budget."""


class InsufficientWindowError(BarCacheError):
    """Raised in strict mode when an aggregate needs more bars than are cached."""


# ============================================================================
# Window Exceptions
# ============================================================================

class WindowError(BarCacheError):
    """Base class for misuse of a bounded bar window."""


class WindowEmptyError(WindowError):
    """Raised when removing or replacing an entry of an empty window."""


class WindowFullError(WindowError):
    """Raised when inserting into a window that is already at capacity.

    The window never evicts on its own; eviction policy belongs to the
    maintainer.
    """


class BarOrderError(WindowError):
    """Raised when a bar would break the window's time ordering.

    Covers a replacement whose minute differs from the newest bar and a
    fetched bar whose slot differs from the minute requested.
    """
