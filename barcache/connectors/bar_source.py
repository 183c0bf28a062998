"""
Bar Sources - where minute bars come from.

A source answers one question: what was the OHLC bar for this ticker at
this (hour, minute)? A minute without observations is answered with
None (NoData), which is an expected outcome and never an exception.

Implementations:
    DataFrameBarSource: Aggregates raw price prints held in pandas
    TimeoutBarSource: Bounds the latency of any other source
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd

from ..core.types import Bar, TimeOfDay
from ..core.exceptions import BarSourceError, FetchTimeoutError
from ..core.constants import DEFAULT_FETCH_TIMEOUT_SEC


logger = logging.getLogger(__name__)


class BarSource(ABC):
    """
    Abstract source of one-minute bars.

    fetch() must be deterministic for a minute that has closed. The
    in-progress minute may answer differently on each call.
    """

    @abstractmethod
    def fetch(self, ticker: str, hour: int, minute: int) -> Optional[Bar]:
        """
        Fetch one minute's bar.

        Args:
            ticker: Instrument symbol (e.g., "AAPL")
            hour: Hour of the minute slot
            minute: Minute of the minute slot

        Returns:
            Bar, or None if no observation exists for that minute

        Raises:
            BarSourceError: If the source could not be queried
        """
        pass

    def fetch_range(self, ticker: str, start: TimeOfDay, end: TimeOfDay) -> List[Bar]:
        """
        Fetch every available bar from start to end inclusive.

        Minutes without data are skipped.
        """
        bars = []
        current = start
        while current <= end:
            bar = self.fetch(ticker, current.hour, current.minute)
            if bar is not None:
                bars.append(bar)
            current = current.next_minute()
        return bars

    def close(self) -> None:
        """Release any resources held by the source."""


class DataFrameBarSource(BarSource):
    """
    Bar source backed by a table of raw price prints.

    Each print row carries ticker, hour, minute and last_price. A bar is
    built from all prints in its minute, in table order:
    open = first, close = last, low = min, high = max.
    """

    REQUIRED_COLUMNS = ('ticker', 'hour', 'minute', 'last_price')

    def __init__(self, prints: Optional[pd.DataFrame] = None):
        """
        Initialize source.

        Args:
            prints: DataFrame of prints; column names are matched
                case-insensitively (HOUR, MINUTE, LAST_PRICE accepted)
        """
        self.prints = self._normalize(prints if prints is not None else pd.DataFrame())

    @classmethod
    def _normalize(cls, prints: pd.DataFrame) -> pd.DataFrame:
        df = prints.rename(columns={c: str(c).lower() for c in prints.columns})

        if df.empty and not set(cls.REQUIRED_COLUMNS).issubset(df.columns):
            return pd.DataFrame({
                'ticker': pd.Series(dtype='object'),
                'hour': pd.Series(dtype='int64'),
                'minute': pd.Series(dtype='int64'),
                'last_price': pd.Series(dtype='float64'),
            })

        missing = [c for c in cls.REQUIRED_COLUMNS if c not in df.columns]
        if missing:
            raise BarSourceError("Print table is missing columns", missing=missing)

        df = df.copy()
        # Stores may hold integer prices; bars are always float
        df['last_price'] = df['last_price'].astype('float64')
        df['hour'] = df['hour'].astype('int64')
        df['minute'] = df['minute'].astype('int64')
        return df

    @classmethod
    def from_csv(cls, filepath: Union[str, Path]) -> "DataFrameBarSource":
        """Load prints from a CSV file."""
        path = Path(filepath)
        if not path.exists():
            raise BarSourceError("Print file not found", path=str(path))

        df = pd.read_csv(path)
        if 'timestamp' in df.columns:
            df['timestamp'] = pd.to_datetime(df['timestamp'])
            df = df.sort_values('timestamp', kind='stable')

        logger.info("Loaded %d prints from %s", len(df), path)
        return cls(df)

    def append_prints(self, prints: pd.DataFrame) -> None:
        """Add new prints (e.g. the in-progress minute trading on)."""
        self.prints = pd.concat([self.prints, self._normalize(prints)], ignore_index=True)

    def fetch(self, ticker: str, hour: int, minute: int) -> Optional[Bar]:
        df = self.prints
        rows = df[(df['ticker'] == ticker) & (df['hour'] == hour) & (df['minute'] == minute)]
        if rows.empty:
            return None

        prices = rows['last_price']
        return Bar(
            ticker=ticker,
            hour=hour,
            minute=minute,
            open=float(prices.iloc[0]),
            close=float(prices.iloc[-1]),
            low=float(prices.min()),
            high=float(prices.max())
        )

    def __len__(self) -> int:
        return len(self.prints)


class TimeoutBarSource(BarSource):
    """
    Wraps another source and bounds each fetch to a time budget.

    The wrapped call runs on a worker thread. When the budget is exceeded
    FetchTimeoutError is raised; the worker is left to finish in the
    background and its late answer is discarded.
    """

    def __init__(
        self,
        source: BarSource,
        timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SEC,
        max_workers: int = 4
    ):
        """
        Initialize timeout wrapper.

        Args:
            source: Source to delegate to
            timeout_seconds: Maximum time to wait for one fetch
            max_workers: Worker threads available for concurrent fetches
        """
        self.source = source
        self.timeout = timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="BarFetch")

    def fetch(self, ticker: str, hour: int, minute: int) -> Optional[Bar]:
        future = self._executor.submit(self.source.fetch, ticker, hour, minute)
        try:
            return future.result(timeout=self.timeout)
        except FuturesTimeoutError as e:
            future.cancel()
            raise FetchTimeoutError(
                "Bar fetch timed out",
                ticker=ticker,
                slot=f"{hour:02d}:{minute:02d}",
                timeout=self.timeout
            ) from e

    def close(self) -> None:
        self._executor.shutdown(wait=False)
        self.source.close()
