"""
Moving Averages over a bar window.

Both averages read the newest `offset` close prices, walking the window
from the tail toward the head.

A window too short for the requested offset has no average: the result
is None, never a sentinel 0.0, so a genuine zero average stays
distinguishable from missing data.
"""

from typing import Optional, TYPE_CHECKING

import pandas as pd

if TYPE_CHECKING:
    from ..data.bar_window import BoundedBarWindow


class Aggregator:
    """Trailing SMA/EMA of close prices over one window."""

    def __init__(self, window: "BoundedBarWindow"):
        self.window = window

    def has_history(self, offset: int) -> bool:
        """True if the window holds at least `offset` bars."""
        return 1 <= offset <= min(self.window.capacity, len(self.window))

    def _trailing_closes(self, offset: int) -> Optional[pd.Series]:
        """
        Newest `offset` closes, oldest first, or None if unavailable.

        The walk stops with None if it meets an empty slot before
        `offset` bars have been read.
        """
        if not self.has_history(offset):
            return None

        closes = []
        cursor = self.window.iter_from_tail()
        for _ in range(offset):
            bar = cursor.current()
            if bar is None:
                return None
            closes.append(bar.close)
            cursor.retreat()
        closes.reverse()
        return pd.Series(closes, dtype='float64')

    def sma(self, offset: int) -> Optional[float]:
        """
        Simple Moving Average.

        SMA = sum(close[-offset:]) / offset

        Args:
            offset: Number of newest bars to average

        Returns:
            Average close, or None if fewer than `offset` bars are held
        """
        closes = self._trailing_closes(offset)
        if closes is None:
            return None
        return float(closes.rolling(window=offset).mean().iloc[-1])

    def ema(self, offset: int) -> Optional[float]:
        """
        Exponential Moving Average.

        alpha = 2 / (offset + 1)
        EMA_0 = oldest close in the walk
        EMA_t = alpha * close_t + (1 - alpha) * EMA_(t-1)

        The walk covers exactly `offset` bars and is seeded with the
        oldest of them, so it never reaches past the head of the window.

        Args:
            offset: Number of newest bars to smooth over

        Returns:
            EMA of the newest close, or None if fewer than `offset` bars
            are held
        """
        closes = self._trailing_closes(offset)
        if closes is None:
            return None
        return float(closes.ewm(span=offset, adjust=False).mean().iloc[-1])
