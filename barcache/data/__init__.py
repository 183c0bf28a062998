"""
Data Layer - bounded bar windows and their upkeep.

Main Components:
    BoundedBarWindow: Fixed-capacity double-ended bar storage
    WindowMaintainer: Backfill / replace / roll decision per tick
    BarCache: Per-ticker windows behind the sma/ema query surface
    RefreshTask: Stoppable background refresh loop
"""

from .bar_window import BoundedBarWindow, WindowCursor
from .window_maintainer import WindowMaintainer
from .bar_cache import BarCache
from .refresh_task import RefreshTask

__all__ = [
    "BoundedBarWindow",
    "WindowCursor",
    "WindowMaintainer",
    "BarCache",
    "RefreshTask",
]
