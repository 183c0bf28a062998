"""
Bounded Bar Window - fixed-capacity double-ended bar storage.

Bars are kept oldest (head) to newest (tail) in a ring of pre-allocated
slots addressed by index. Insertions and removals at either end are O(1)
and never move other bars.

The window holds no lock. Exactly one writer (the maintainer) may mutate
it at a time; concurrent readers must be serialized by the owner.
"""

from typing import Iterator, List, Optional

import numpy as np
import pandas as pd

from ..core.types import Bar, TimeOfDay
from ..core.exceptions import (
    InvalidConfigError,
    WindowEmptyError,
    WindowFullError,
    BarOrderError,
)


class WindowCursor:
    """
    Bidirectional cursor over a BoundedBarWindow.

    current() returns the bar under the cursor, or None once the cursor
    has moved past either end. Moving further past an end is a no-op;
    the cursor stays parked on the end marker. reset() restarts from the
    position the cursor was created at.
    """

    def __init__(self, window: "BoundedBarWindow", from_tail: bool = False):
        self._window = window
        self._from_tail = from_tail
        self._position = 0
        self.reset()

    def reset(self) -> None:
        self._position = len(self._window) - 1 if self._from_tail else 0

    def current(self) -> Optional[Bar]:
        return self._window._get(self._position)

    def advance(self) -> None:
        """Move one step toward the tail (newer bars)."""
        if self._position < len(self._window):
            self._position += 1

    def retreat(self) -> None:
        """Move one step toward the head (older bars)."""
        if self._position >= 0:
            self._position -= 1

    def at_end(self) -> bool:
        return self.current() is None


class BoundedBarWindow:
    """
    Fixed-capacity ordered sequence of bars.

    The window does not evict on its own: inserting into a full window
    raises WindowFullError, and eviction is the maintainer's decision.
    Time ordering is not enforced on enqueue either; callers validate it.
    The only ordering check is on replace_tail, which must keep the slot
    of the bar it replaces.
    """

    def __init__(self, capacity: int):
        """
        Initialize an empty window.

        Args:
            capacity: Maximum number of bars held (>= 1)
        """
        if capacity < 1:
            raise InvalidConfigError(
                "Window capacity must be at least 1",
                capacity=capacity
            )

        self._capacity = capacity
        self._slots: List[Optional[Bar]] = [None] * capacity
        self._head = 0
        self._size = 0

    # ------------------------------------------------------------------
    # Slot arithmetic
    # ------------------------------------------------------------------

    def _index(self, position: int) -> int:
        """Map a logical position (0 = head) to a slot index."""
        return (self._head + position) % self._capacity

    def _get(self, position: int) -> Optional[Bar]:
        if position < 0 or position >= self._size:
            return None
        return self._slots[self._index(position)]

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def enqueue_tail(self, bar: Bar) -> None:
        """Append a bar at the newest end."""
        if self.is_full():
            raise WindowFullError(
                "Cannot append to a full window",
                capacity=self._capacity,
                ticker=bar.ticker
            )
        self._slots[self._index(self._size)] = bar
        self._size += 1

    def enqueue_head(self, bar: Bar) -> None:
        """Insert a bar at the oldest end (history backfill)."""
        if self.is_full():
            raise WindowFullError(
                "Cannot prepend to a full window",
                capacity=self._capacity,
                ticker=bar.ticker
            )
        self._head = (self._head - 1) % self._capacity
        self._slots[self._head] = bar
        self._size += 1

    def dequeue_head(self) -> Bar:
        """Remove and return the oldest bar."""
        if self.is_empty():
            raise WindowEmptyError("Cannot dequeue from an empty window")

        bar = self._slots[self._head]
        self._slots[self._head] = None
        self._head = (self._head + 1) % self._capacity
        self._size -= 1
        return bar

    def replace_tail(self, bar: Bar) -> Bar:
        """
        Swap the newest bar for a fresh reading of the same minute.

        Args:
            bar: Replacement bar; must have the tail's (hour, minute)

        Returns:
            The bar that was replaced
        """
        if self.is_empty():
            raise WindowEmptyError("Cannot replace the tail of an empty window")

        index = self._index(self._size - 1)
        previous = self._slots[index]
        if bar.slot != previous.slot:
            raise BarOrderError(
                "Replacement bar does not match the newest minute",
                expected=f"{previous.hour:02d}:{previous.minute:02d}",
                got=f"{bar.hour:02d}:{bar.minute:02d}"
            )
        self._slots[index] = bar
        return previous

    def clear(self) -> None:
        self._slots = [None] * self._capacity
        self._head = 0
        self._size = 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def last_time(self) -> Optional[TimeOfDay]:
        """(hour, minute) of the newest bar, or None when empty."""
        tail = self.peek_tail()
        return tail.time if tail else None

    def peek_head(self) -> Optional[Bar]:
        return self._get(0)

    def peek_tail(self) -> Optional[Bar]:
        return self._get(self._size - 1)

    def is_empty(self) -> bool:
        return self._size == 0

    def is_full(self) -> bool:
        return self._size == self._capacity

    def __len__(self) -> int:
        return self._size

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    def iter_from_head(self) -> WindowCursor:
        return WindowCursor(self)

    def iter_from_tail(self) -> WindowCursor:
        return WindowCursor(self, from_tail=True)

    def __iter__(self) -> Iterator[Bar]:
        for position in range(self._size):
            yield self._slots[self._index(position)]

    def __reversed__(self) -> Iterator[Bar]:
        for position in range(self._size - 1, -1, -1):
            yield self._slots[self._index(position)]

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def closes(self) -> np.ndarray:
        """Close prices, oldest first."""
        return np.fromiter((bar.close for bar in self), dtype=np.float64, count=self._size)

    def to_dataframe(self) -> pd.DataFrame:
        """
        Snapshot of the window as a DataFrame.

        Returns:
            DataFrame with columns hour, minute, open, high, low, close,
            oldest bar first
        """
        return pd.DataFrame(
            [
                {
                    'hour': bar.hour,
                    'minute': bar.minute,
                    'open': bar.open,
                    'high': bar.high,
                    'low': bar.low,
                    'close': bar.close,
                }
                for bar in self
            ],
            columns=['hour', 'minute', 'open', 'high', 'low', 'close']
        )

    def __repr__(self) -> str:
        return f"BoundedBarWindow(size={self._size}, capacity={self._capacity})"
