"""
Shared fixtures: an in-memory bar source and bar factories.
"""

from typing import Dict, List, Optional, Tuple

import pytest

from barcache.connectors.bar_source import BarSource
from barcache.connectors.clock import ManualClock
from barcache.core.types import Bar


def make_bar(hour: int, minute: int, close: float, ticker: str = "AAPL") -> Bar:
    """Bar whose open/low/high straddle the close."""
    return Bar(
        ticker=ticker,
        hour=hour,
        minute=minute,
        open=close,
        close=close,
        low=close - 0.5,
        high=close + 0.5
    )


class StaticBarSource(BarSource):
    """
    Source answering from a {(hour, minute): close} table.

    Minutes missing from the table are NoData. Every call is recorded.
    """

    def __init__(self, closes: Optional[Dict[Tuple[int, int], float]] = None, ticker: str = "AAPL"):
        self.closes = dict(closes or {})
        self.ticker = ticker
        self.calls: List[Tuple[str, int, int]] = []

    def set(self, hour: int, minute: int, close: float) -> None:
        self.closes[(hour, minute)] = close

    def remove(self, hour: int, minute: int) -> None:
        self.closes.pop((hour, minute), None)

    def fetch(self, ticker: str, hour: int, minute: int) -> Optional[Bar]:
        self.calls.append((ticker, hour, minute))
        if ticker != self.ticker or (hour, minute) not in self.closes:
            return None
        return make_bar(hour, minute, self.closes[(hour, minute)], ticker)


@pytest.fixture
def bar_factory():
    return make_bar


@pytest.fixture
def source():
    """Three closed minutes 9:00-9:02 with closes 10, 20, 30."""
    return StaticBarSource({(9, 0): 10.0, (9, 1): 20.0, (9, 2): 30.0})


@pytest.fixture
def source_factory():
    return StaticBarSource


@pytest.fixture
def clock():
    """Clock standing at 9:03, one minute after the last closed bar."""
    return ManualClock(9, 3)
