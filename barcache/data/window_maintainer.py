"""
Window Maintainer - advances a bar window once per refresh tick.

Per tick, exactly one of:
1. Backfill: window below capacity, prepend history walking backward
   from the previous minute until full or a minute has no data
2. Replace: window full and the clock is still in the newest bar's
   minute, re-read that minute and swap the newest bar in place
3. Roll: window full and a new minute has started, evict the oldest
   bar and append the new minute

If the new minute has no data after the eviction, the tick is skipped
and the window stays one short until the next tick backfills it.
"""

import logging
from typing import Optional

from ..connectors.bar_source import BarSource
from ..connectors.clock import Clock
from ..core.types import Bar, TimeOfDay
from ..core.constants import RefreshAction, SESSION_START_HOUR
from ..core.exceptions import BarSourceError, BarOrderError

from .bar_window import BoundedBarWindow


logger = logging.getLogger(__name__)


class WindowMaintainer:
    """
    Keeps one ticker's window current.

    Sole writer of its window. NoData and source failures are recoverable:
    they halt a backfill or skip an append, never abort the maintainer.
    ClockUnavailableError from the clock propagates to the caller.
    """

    def __init__(
        self,
        window: BoundedBarWindow,
        source: BarSource,
        clock: Clock,
        ticker: str
    ):
        """
        Initialize maintainer.

        Args:
            window: Window to maintain
            source: Where bars are fetched from
            clock: Wall clock deciding the current minute
            ticker: Instrument whose bars fill the window
        """
        self.window = window
        self.source = source
        self.clock = clock
        self.ticker = ticker

        self.ticks = 0
        self.last_action: Optional[RefreshAction] = None

    def refresh(self) -> RefreshAction:
        """
        Run one refresh tick.

        Returns:
            What the tick did to the window
        """
        now = self.clock.now()

        if not self.window.is_full():
            action = self._backfill(now)
        elif now == self.window.last_time:
            action = self._replace(now)
        else:
            action = self._roll(now)

        self.ticks += 1
        self.last_action = action
        logger.debug(
            "Refresh %s at %s: %s [%d/%d bars]",
            self.ticker, now, action.value, len(self.window), self.window.capacity
        )
        return action

    def _fetch(self, when: TimeOfDay) -> Optional[Bar]:
        """Fetch one minute, mapping source failures to NoData."""
        try:
            return self._fetch_checked(when)
        except BarSourceError as e:
            logger.warning("Bar fetch failed for %s at %s: %s", self.ticker, when, e)
            return None

    def _fetch_checked(self, when: TimeOfDay) -> Optional[Bar]:
        """
        Fetch one minute and check the bar belongs to it.

        Raises:
            BarSourceError: If the source fails
            BarOrderError: If the bar is for another ticker or slot
        """
        bar = self.source.fetch(self.ticker, when.hour, when.minute)
        if bar is not None and (bar.ticker != self.ticker or bar.slot != when.slot):
            raise BarOrderError(
                "Source returned a bar for a different slot",
                requested=f"{self.ticker} {when.hour:02d}:{when.minute:02d}",
                got=f"{bar.ticker} {bar.hour:02d}:{bar.minute:02d}"
            )
        return bar

    def _backfill(self, now: TimeOfDay) -> RefreshAction:
        added = 0

        tail = self.window.peek_tail()
        if tail is not None:
            added += self._catch_up(tail.time.next_minute(), now)

        head = self.window.peek_head()
        if head is None:
            cursor = now.previous_minute()
        else:
            cursor = head.time.previous_minute()

        while not self.window.is_full():
            # Single-session cache: never walk back past midnight
            if cursor.hour < SESSION_START_HOUR:
                logger.debug("Backfill for %s reached session start", self.ticker)
                break

            bar = self._fetch(cursor)
            if bar is None:
                logger.info(
                    "Backfill for %s halted at gap %s [%d/%d bars]",
                    self.ticker, cursor, len(self.window), self.window.capacity
                )
                break

            self.window.enqueue_head(bar)
            added += 1
            cursor = cursor.previous_minute()

        return RefreshAction.BACKFILL if added else RefreshAction.IDLE

    def _catch_up(self, start: TimeOfDay, now: TimeOfDay) -> int:
        """
        Append closed minutes newer than the tail, up to (not including) now.

        A short window that already holds bars is first brought forward so
        it never lags the clock. Gaps are skipped; if the window fills up
        the oldest bar is evicted for each newer one. A source failure
        stops the catch-up so that minute is retried on the next tick.
        """
        added = 0
        cursor = start
        while cursor < now:
            try:
                bar = self._fetch_checked(cursor)
            except BarSourceError as e:
                logger.warning(
                    "Catch-up for %s stopped at %s, retrying next tick: %s",
                    self.ticker, cursor, e
                )
                break
            if bar is not None:
                if self.window.is_full():
                    self.window.dequeue_head()
                self.window.enqueue_tail(bar)
                added += 1
            cursor = cursor.next_minute()

        if added:
            logger.info("Caught up %s by %d bars to %s", self.ticker, added, self.window.last_time)
        return added

    def _replace(self, now: TimeOfDay) -> RefreshAction:
        bar = self._fetch(now)
        if bar is None:
            return RefreshAction.IDLE

        self.window.replace_tail(bar)
        return RefreshAction.REPLACE

    def _roll(self, now: TimeOfDay) -> RefreshAction:
        tail = self.window.peek_tail()
        if tail is not None and now < tail.time:
            logger.warning(
                "Clock %s is behind newest bar %s for %s, tick ignored",
                now, tail.time, self.ticker
            )
            return RefreshAction.IDLE

        evicted = self.window.dequeue_head()
        bar = self._fetch(now)
        if bar is None:
            logger.info(
                "No data for %s at %s after evicting %02d:%02d, tick skipped",
                self.ticker, now, evicted.hour, evicted.minute
            )
            return RefreshAction.SKIP

        self.window.enqueue_tail(bar)
        return RefreshAction.ROLL
