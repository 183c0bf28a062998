"""
Integration tests for the background refresh task.
"""

import threading
import time

import pytest

from barcache.connectors.bar_source import BarSource
from barcache.connectors.clock import Clock, ManualClock
from barcache.core.exceptions import ClockUnavailableError
from barcache.data.bar_cache import BarCache
from barcache.data.refresh_task import RefreshTask


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class FlakyClock(Clock):
    """Works for a few reads, then the clock disappears."""

    def __init__(self, good_reads: int):
        self.inner = ManualClock(9, 3)
        self.reads = 0
        self.good_reads = good_reads

    def now(self):
        self.reads += 1
        if self.reads > self.good_reads:
            raise ClockUnavailableError("clock gone")
        return self.inner.now()


@pytest.fixture
def task_factory():
    tasks = []

    def _make(cache, interval=0.01, **kwargs):
        task = RefreshTask(cache, interval_seconds=interval, **kwargs)
        tasks.append(task)
        return task

    yield _make

    for task in tasks:
        task.stop()


def test_task_fills_window_in_background(source, clock, task_factory):
    cache = BarCache(source=source, clock=clock, capacity=3, tickers=['AAPL'])
    task = task_factory(cache)

    task.start()
    assert _wait_for(lambda: cache.window('AAPL').is_full())
    assert task.is_running()

    task.stop()
    assert not task.is_running()
    assert task.get_status()['ticks'] >= 1


def test_stop_interrupts_long_interval(source, clock, task_factory):
    cache = BarCache(source=source, clock=clock, capacity=3, tickers=['AAPL'])
    task = task_factory(cache, interval=60)
    task.start()
    assert _wait_for(lambda: task.ticks >= 1)

    started = time.monotonic()
    task.stop()
    assert time.monotonic() - started < 5


def test_double_start_is_ignored(source, clock, task_factory, caplog):
    cache = BarCache(source=source, clock=clock, capacity=3, tickers=['AAPL'])
    task = task_factory(cache)
    task.start()
    thread = task.thread
    task.start()
    assert task.thread is thread
    assert "already running" in caplog.text


def test_clock_failure_stops_loop(source, task_factory):
    fatal = []
    cache = BarCache(source=source, clock=FlakyClock(good_reads=2), capacity=3, tickers=['AAPL'])
    task = task_factory(cache, on_fatal=fatal.append)

    task.start()
    assert _wait_for(lambda: task.fatal_error is not None)
    assert _wait_for(lambda: not task.thread.is_alive())

    assert isinstance(fatal[0], ClockUnavailableError)
    assert task.wait(0) is True
    assert task.get_status()['fatal_error'] is not None


def test_recoverable_error_keeps_loop_running(clock, bar_factory, task_factory):
    class MislabelledSource(BarSource):
        def fetch(self, ticker, hour, minute):
            return bar_factory(hour, (minute + 1) % 60, 1.0)

    cache = BarCache(source=MislabelledSource(), clock=clock, capacity=3, tickers=['AAPL'])
    task = task_factory(cache)
    task.start()

    assert _wait_for(lambda: task.consecutive_failures >= 3)
    assert task.is_running()
    assert task.fatal_error is None


def test_unexpected_source_error_keeps_loop_running(source, clock, task_factory):
    class DroppedConnectionSource(BarSource):
        def __init__(self):
            self.calls = 0

        def fetch(self, ticker, hour, minute):
            self.calls += 1
            if self.calls == 1:
                raise ConnectionError("store connection reset")
            return source.fetch(ticker, hour, minute)

    flaky = DroppedConnectionSource()
    cache = BarCache(source=flaky, clock=clock, capacity=3, tickers=['AAPL'])
    task = task_factory(cache)
    task.start()

    assert _wait_for(lambda: cache.window('AAPL').is_full())
    assert task.is_running()
    assert task.fatal_error is None
    assert _wait_for(lambda: task.get_status()['last_success'] is not None)
    assert task.ticks >= 2
    assert flaky.calls > 1


def test_unexpected_error_is_counted_and_logged(clock, task_factory, caplog):
    class BrokenSource(BarSource):
        def fetch(self, ticker, hour, minute):
            raise ConnectionError("store unreachable")

    cache = BarCache(source=BrokenSource(), clock=clock, capacity=3, tickers=['AAPL'])
    task = task_factory(cache)
    task.start()

    assert _wait_for(lambda: task.consecutive_failures >= 2)
    assert task.is_running()
    assert "store unreachable" in caplog.text


def test_tick_raises_clock_failure_directly(source):
    cache = BarCache(source=source, clock=FlakyClock(good_reads=0), capacity=3, tickers=['AAPL'])
    task = RefreshTask(cache)
    with pytest.raises(ClockUnavailableError):
        task.tick()


def test_queries_run_safely_alongside_refresh(source_factory, task_factory):
    """Readers and the refresh thread share the cache through its lock."""
    closes = {(9, m): 100.0 for m in range(60)}
    clock = ManualClock(9, 20)
    cache = BarCache(source=source_factory(closes), clock=clock, capacity=10, tickers=['AAPL'])
    task = task_factory(cache, interval=0.001)
    task.start()

    errors = []
    results = []

    def reader():
        try:
            for _ in range(200):
                value = cache.sma('AAPL', 5)
                if value is not None:
                    results.append(value)
        except Exception as e:
            errors.append(e)

    def ticker():
        for _ in range(30):
            clock.advance()
            time.sleep(0.001)

    threads = [threading.Thread(target=reader) for _ in range(3)] + [threading.Thread(target=ticker)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert errors == []
    assert results and all(v == pytest.approx(100.0) for v in results)
    assert len(cache.window('AAPL')) <= 10