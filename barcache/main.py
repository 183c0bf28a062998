"""
Bar Cache Service - entry point.

Main Loop:
1. Load configuration and set up logging
2. Build the bar source (with fetch timeout) and clock
3. Start the background refresh task
4. Every interval, report SMA/EMA for each ticker
5. Stop cleanly on SIGINT/SIGTERM or if the clock fails

Environments:
- dev: wall clock in the configured timezone
- replay: a manual clock stepped one minute per interval across the
  minutes covered by the print file
"""

import argparse
import signal
import sys
from typing import List, Optional

from barcache.connectors.bar_source import DataFrameBarSource, TimeoutBarSource
from barcache.connectors.clock import Clock, ManualClock, SystemClock
from barcache.core.config import CacheConfig, load_config
from barcache.core.constants import Environment
from barcache.core.exceptions import BarCacheError, MissingConfigError
from barcache.core.types import TimeOfDay
from barcache.data.bar_cache import BarCache
from barcache.data.refresh_task import RefreshTask
from barcache.monitoring.logger import get_logger, setup_logger


class BarCacheService:
    """
    Service wiring a bar cache to its source, clock and refresh task.
    """

    def __init__(self, config: CacheConfig):
        """
        Initialize service.

        Args:
            config: Validated configuration
        """
        self.config = config

        setup_logger(log_file=config.log_file, level=config.log_level)
        self.logger = get_logger(__name__)

        self.source: Optional[TimeoutBarSource] = None
        self.clock: Optional[Clock] = None
        self.cache: Optional[BarCache] = None
        self.refresh_task: Optional[RefreshTask] = None

        self._replay_end: Optional[TimeOfDay] = None

    def setup(self) -> None:
        """Build all components."""
        self.logger.info("=" * 60)
        self.logger.info("Initializing Bar Cache", env=self.config.environment.value)
        self.logger.info("=" * 60)

        if not self.config.csv_path:
            raise MissingConfigError("source.csv_path is required")

        raw_source = DataFrameBarSource.from_csv(self.config.csv_path)
        self.source = TimeoutBarSource(raw_source, timeout_seconds=self.config.fetch_timeout_sec)

        if self.config.environment == Environment.REPLAY:
            self.clock = self._replay_clock(raw_source)
        else:
            self.clock = SystemClock(self.config.timezone)

        self.cache = BarCache(
            source=self.source,
            clock=self.clock,
            capacity=self.config.capacity,
            tickers=self.config.tickers
        )
        self.refresh_task = RefreshTask(
            self.cache,
            interval_seconds=self.config.interval_sec,
            on_fatal=lambda e: self.logger.critical("Refresh stopped", error=str(e))
        )

        self.logger.info(
            "Bar cache ready",
            tickers=','.join(self.config.tickers),
            capacity=self.config.capacity,
            prints=len(raw_source)
        )

    def _replay_clock(self, source: DataFrameBarSource) -> ManualClock:
        prints = source.prints
        if prints.empty:
            raise BarCacheError("Replay needs a non-empty print file", path=self.config.csv_path)

        slots = sorted(set(zip(prints['hour'], prints['minute'])))
        first_hour, first_minute = slots[0]
        last_hour, last_minute = slots[-1]
        self._replay_end = TimeOfDay(int(last_hour), int(last_minute))
        return ManualClock(int(first_hour), int(first_minute))

    def report(self) -> None:
        """Log the configured averages for every ticker."""
        for ticker in self.cache.tickers:
            values = {}
            for offset in self.config.sma_offsets:
                values[f"sma{offset}"] = _fmt(self.cache.sma(ticker, offset))
            for offset in self.config.ema_offsets:
                values[f"ema{offset}"] = _fmt(self.cache.ema(ticker, offset))
            self.logger.info(
                ticker,
                bars=len(self.cache.window(ticker)),
                **values
            )

    def run(self, once: bool = False) -> int:
        """
        Run until stopped.

        Returns:
            Process exit code
        """
        self.setup()

        if once:
            self.cache.refresh_all()
            self.report()
            self.shutdown()
            return 0

        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        self.refresh_task.start()
        try:
            while not self.refresh_task.wait(self.config.interval_sec):
                self.report()
                if not self._step_replay():
                    break
        finally:
            self.shutdown()

        return 1 if self.refresh_task.fatal_error else 0

    def _step_replay(self) -> bool:
        """Advance the replay clock; False once the replay is over."""
        if not isinstance(self.clock, ManualClock) or self._replay_end is None:
            return True
        if self.clock.now() >= self._replay_end:
            self.logger.info("Replay finished", last=str(self._replay_end))
            return False
        self.clock.advance()
        return True

    def _signal_handler(self, signum, frame):
        self.logger.warning("Received signal, shutting down", signal=signum)
        if self.refresh_task:
            self.refresh_task.stop()

    def shutdown(self) -> None:
        """Stop the refresh task and release the source."""
        self.logger.info("Shutting down...")
        if self.refresh_task:
            self.refresh_task.stop()
        if self.cache:
            self.cache.close()
        self.logger.info("✓ Shutdown complete")


def _fmt(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:.4f}"


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Sliding-window bar cache")
    parser.add_argument(
        '--config',
        default='config/config.yaml',
        help='Configuration file path'
    )
    parser.add_argument(
        '--env',
        choices=[e.value for e in Environment],
        default=None,
        help='Override the configured environment'
    )
    parser.add_argument(
        '--ticker',
        action='append',
        help='Ticker to cache (repeatable, overrides the configured list)'
    )
    parser.add_argument(
        '--once',
        action='store_true',
        help='Run a single refresh, report, and exit'
    )

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
        if args.env:
            config.environment = Environment(args.env)
        if args.ticker:
            config.tickers = args.ticker
        service = BarCacheService(config)
        return service.run(once=args.once)
    except BarCacheError as e:
        print(f"barcache: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
