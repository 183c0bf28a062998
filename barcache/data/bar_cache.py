"""
Bar Cache - per-ticker windows behind one query surface.

Responsibilities:
1. Own one window, maintainer and aggregator per ticker
2. Refresh a ticker's window before every aggregate read
3. Serialize refreshes and reads per ticker so a background refresh
   task and callers can share the cache
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import pandas as pd

from ..connectors.bar_source import BarSource
from ..connectors.clock import Clock
from ..core.constants import DEFAULT_CAPACITY, RefreshAction
from ..core.exceptions import InsufficientWindowError
from ..indicators.moving_average import Aggregator

from .bar_window import BoundedBarWindow
from .window_maintainer import WindowMaintainer


logger = logging.getLogger(__name__)


@dataclass
class TickerCache:
    """Everything held for one ticker."""
    window: BoundedBarWindow
    maintainer: WindowMaintainer
    aggregator: Aggregator
    lock: threading.RLock = field(default_factory=threading.RLock)


class BarCache:
    """
    Query surface for trailing moving averages.

    sma() and ema() run one refresh tick for the ticker and then read the
    window, both under the ticker's lock.
    """

    def __init__(
        self,
        source: BarSource,
        clock: Clock,
        capacity: int = DEFAULT_CAPACITY,
        tickers: Optional[Iterable[str]] = None
    ):
        """
        Initialize bar cache.

        Args:
            source: Bar source shared by all tickers
            clock: Wall clock shared by all tickers
            capacity: Window capacity per ticker
            tickers: Tickers to register up front (others are added on first use)
        """
        self.source = source
        self.clock = clock
        self.capacity = capacity

        self._entries: Dict[str, TickerCache] = {}
        self._registry_lock = threading.Lock()

        for ticker in tickers or []:
            self.add_ticker(ticker)

    def add_ticker(self, ticker: str) -> TickerCache:
        """Register a ticker (no-op if already present)."""
        with self._registry_lock:
            entry = self._entries.get(ticker)
            if entry is None:
                window = BoundedBarWindow(self.capacity)
                entry = TickerCache(
                    window=window,
                    maintainer=WindowMaintainer(window, self.source, self.clock, ticker),
                    aggregator=Aggregator(window)
                )
                self._entries[ticker] = entry
                logger.info("Registered %s with capacity %d", ticker, self.capacity)
            return entry

    @property
    def tickers(self) -> List[str]:
        with self._registry_lock:
            return list(self._entries)

    def refresh(self, ticker: str) -> RefreshAction:
        """Run one refresh tick for a ticker."""
        entry = self.add_ticker(ticker)
        with entry.lock:
            return entry.maintainer.refresh()

    def refresh_all(self) -> Dict[str, RefreshAction]:
        """Run one refresh tick for every registered ticker."""
        return {ticker: self.refresh(ticker) for ticker in self.tickers}

    def sma(self, ticker: str, offset: int, strict: bool = False) -> Optional[float]:
        """
        Simple moving average of the newest `offset` closes.

        Args:
            ticker: Instrument symbol
            offset: Number of bars to average
            strict: Raise instead of returning None on short history

        Returns:
            Average, or None if the window holds fewer than `offset` bars

        Raises:
            InsufficientWindowError: In strict mode, if history is short
        """
        entry = self.add_ticker(ticker)
        with entry.lock:
            entry.maintainer.refresh()
            value = entry.aggregator.sma(offset)
            return self._check(entry, ticker, "sma", offset, value, strict)

    def ema(self, ticker: str, offset: int, strict: bool = False) -> Optional[float]:
        """Exponential moving average of the newest `offset` closes (see sma)."""
        entry = self.add_ticker(ticker)
        with entry.lock:
            entry.maintainer.refresh()
            value = entry.aggregator.ema(offset)
            return self._check(entry, ticker, "ema", offset, value, strict)

    def _check(
        self,
        entry: TickerCache,
        ticker: str,
        name: str,
        offset: int,
        value: Optional[float],
        strict: bool
    ) -> Optional[float]:
        if value is None:
            logger.debug(
                "%s(%d) for %s unavailable: %d bars held",
                name, offset, ticker, len(entry.window)
            )
            if strict:
                raise InsufficientWindowError(
                    f"Not enough history for {name}",
                    ticker=ticker,
                    offset=offset,
                    bars=len(entry.window),
                    capacity=entry.window.capacity
                )
        return value

    def window(self, ticker: str) -> BoundedBarWindow:
        """The live window for a ticker. Hold no reference across refreshes."""
        return self.add_ticker(ticker).window

    def snapshot(self, ticker: str) -> pd.DataFrame:
        """Consistent copy of a ticker's window as a DataFrame."""
        entry = self.add_ticker(ticker)
        with entry.lock:
            return entry.window.to_dataframe()

    def close(self) -> None:
        self.source.close()
