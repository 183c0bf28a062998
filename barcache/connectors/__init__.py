"""Collaborators of the cache: bar sources and clocks."""

from .bar_source import BarSource, DataFrameBarSource, TimeoutBarSource
from .clock import Clock, SystemClock, ManualClock

__all__ = [
    "BarSource",
    "DataFrameBarSource",
    "TimeoutBarSource",
    "Clock",
    "SystemClock",
    "ManualClock",
]
