"""
Refresh Task - periodic background refresh of a bar cache.

Runs one refresh tick for every ticker each interval until stopped.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from ..core.constants import DEFAULT_REFRESH_INTERVAL_SEC
from ..core.exceptions import BarCacheError, ClockUnavailableError

from .bar_cache import BarCache


logger = logging.getLogger(__name__)


class RefreshTask:
    """
    Background thread that keeps a BarCache current.

    A failing tick is logged and the loop carries on, whatever the error.
    The exception is ClockUnavailableError, which stops the loop for good
    and is kept in `fatal_error`.
    """

    def __init__(
        self,
        cache: BarCache,
        interval_seconds: float = DEFAULT_REFRESH_INTERVAL_SEC,
        on_fatal: Optional[Callable[[BaseException], None]] = None
    ):
        """
        Initialize refresh task.

        Args:
            cache: Cache to refresh
            interval_seconds: Pause between ticks
            on_fatal: Called with the error if the loop stops on a fatal error
        """
        self.cache = cache
        self.interval = interval_seconds
        self.on_fatal = on_fatal

        self.running = False
        self._stop_event = threading.Event()
        self.thread: Optional[threading.Thread] = None

        self.ticks = 0
        self.consecutive_failures = 0
        self.last_successful_tick: Optional[datetime] = None
        self.fatal_error: Optional[BaseException] = None

        logger.info("RefreshTask initialized: interval=%.2fs", interval_seconds)

    def start(self) -> None:
        """Start refreshing in a background thread."""
        if self.running:
            logger.warning("Refresh task already running, ignoring start() call")
            return

        logger.info("Starting refresh task")
        self.running = True
        self.fatal_error = None
        self._stop_event.clear()
        self.thread = threading.Thread(target=self._run, daemon=True, name="RefreshTask")
        self.thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the loop to stop and wait for the thread to exit."""
        if self.thread is None:
            logger.debug("Refresh task not running, ignoring stop() call")
            return

        logger.info("Stopping refresh task")
        self.running = False
        self._stop_event.set()

        if self.thread is not threading.current_thread():
            self.thread.join(timeout=timeout)
            if self.thread.is_alive():
                logger.warning("Refresh task thread did not stop cleanly within timeout")
            else:
                logger.info("Refresh task stopped")

        self.thread = None

    def is_running(self) -> bool:
        return self.running and self.thread is not None and self.thread.is_alive()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the loop has been asked to stop; True if it was."""
        return self._stop_event.wait(timeout)

    def tick(self) -> None:
        """
        Run one refresh of every ticker.

        Raises:
            ClockUnavailableError: If the clock cannot be read
        """
        try:
            self.cache.refresh_all()
        except ClockUnavailableError:
            raise
        except BarCacheError as e:
            self.consecutive_failures += 1
            logger.error("Refresh tick failed (#%d): %s", self.consecutive_failures, e)
            return
        finally:
            self.ticks += 1

        self.consecutive_failures = 0
        self.last_successful_tick = datetime.now(timezone.utc)

    def _run(self) -> None:
        """Main refresh loop (runs in background thread)."""
        logger.info("Refresh loop started")

        while self.running and not self._stop_event.is_set():
            try:
                self.tick()
            except ClockUnavailableError as e:
                logger.critical("Clock unavailable, refresh loop stopping: %s", e)
                self.fatal_error = e
                self.running = False
                self._stop_event.set()
                if self.on_fatal:
                    self.on_fatal(e)
                break
            except Exception as e:
                self.consecutive_failures += 1
                logger.error(
                    "Unexpected error in refresh loop (#%d): %s",
                    self.consecutive_failures, e, exc_info=True
                )

            # Event.wait() so stop() interrupts the pause
            self._stop_event.wait(timeout=self.interval)

        logger.info("Refresh loop ended")

    def get_status(self) -> dict:
        """
        Get current refresh status.

        Returns:
            {
                'running': bool,
                'ticks': int,
                'last_success': datetime,
                'consecutive_failures': int,
                'fatal_error': str
            }
        """
        return {
            'running': self.is_running(),
            'ticks': self.ticks,
            'last_success': self.last_successful_tick,
            'consecutive_failures': self.consecutive_failures,
            'fatal_error': str(self.fatal_error) if self.fatal_error else None,
        }
