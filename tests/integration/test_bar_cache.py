"""
Integration tests for the bar cache query surface.

Each query runs a refresh tick first, so these tests walk the cache
through backfill, roll-forward and replace purely via sma()/ema().
"""

import logging

import pandas as pd
import pytest

from barcache.connectors.bar_source import DataFrameBarSource, TimeoutBarSource
from barcache.connectors.clock import ManualClock
from barcache.core.constants import RefreshAction
from barcache.core.exceptions import InsufficientWindowError
from barcache.data.bar_cache import BarCache


@pytest.fixture
def cache(source, clock):
    return BarCache(source=source, clock=clock, capacity=3, tickers=['AAPL'])


def test_backfill_then_roll_forward(cache, source):
    assert cache.sma('AAPL', 3) == pytest.approx(20.0)

    source.set(9, 3, 40.0)
    assert cache.sma('AAPL', 3) == pytest.approx(30.0)
    assert [b.slot for b in cache.window('AAPL')] == [(9, 1), (9, 2), (9, 3)]


def test_in_progress_minute_replaced(cache, source):
    cache.sma('AAPL', 3)
    source.set(9, 3, 40.0)
    cache.sma('AAPL', 3)

    source.set(9, 3, 41.0)
    assert cache.sma('AAPL', 1) == pytest.approx(41.0)
    assert len(cache.window('AAPL')) == 3


def test_gap_leaves_window_short(source_factory):
    source = source_factory({(9, 0): 10.0})
    cache = BarCache(source=source, clock=ManualClock(9, 1), capacity=5)

    assert cache.sma('AAPL', 5) is None
    assert len(cache.window('AAPL')) == 1
    assert cache.sma('AAPL', 1) == pytest.approx(10.0)


def test_strict_mode_raises_on_short_history(cache):
    with pytest.raises(InsufficientWindowError) as exc_info:
        cache.sma('AAPL', 10, strict=True)
    assert exc_info.value.context['offset'] == 10

    with pytest.raises(InsufficientWindowError):
        cache.ema('AAPL', 4, strict=True)


def test_ema_refreshes_before_reading(cache):
    assert cache.ema('AAPL', 3) == pytest.approx(22.5)


def test_unknown_ticker_registered_on_first_use(source, clock):
    cache = BarCache(source=source, clock=clock, capacity=3)
    assert cache.tickers == []
    assert cache.sma('MSFT', 1) is None
    assert cache.tickers == ['MSFT']


def test_refresh_all_reports_actions(source, clock):
    cache = BarCache(source=source, clock=clock, capacity=3, tickers=['AAPL', 'MSFT'])
    actions = cache.refresh_all()
    assert actions == {'AAPL': RefreshAction.BACKFILL, 'MSFT': RefreshAction.IDLE}


def test_snapshot_is_a_copy(cache):
    cache.refresh('AAPL')
    df = cache.snapshot('AAPL')
    assert df['close'].tolist() == [10.0, 20.0, 30.0]

    df.loc[0, 'close'] = -1.0
    assert cache.window('AAPL').peek_head().close == 10.0


def test_end_to_end_with_prints_and_timeout(caplog):
    """Raw prints -> minute bars -> window -> averages."""
    rows = []
    for minute, price in [(0, 10.0), (1, 20.0), (2, 30.0)]:
        rows.append({'ticker': 'AAPL', 'hour': 9, 'minute': minute, 'last_price': price - 1})
        rows.append({'ticker': 'AAPL', 'hour': 9, 'minute': minute, 'last_price': price})
    raw = DataFrameBarSource(pd.DataFrame(rows))
    source = TimeoutBarSource(raw, timeout_seconds=5)
    clock = ManualClock(9, 3)
    cache = BarCache(source=source, clock=clock, capacity=3)

    try:
        assert cache.sma('AAPL', 3) == pytest.approx(20.0)

        raw.append_prints(pd.DataFrame([{'ticker': 'AAPL', 'hour': 9, 'minute': 3, 'last_price': 40.0}]))
        assert cache.sma('AAPL', 3) == pytest.approx(30.0)

        clock.advance()
        assert cache.sma('AAPL', 3) is None
        assert any("tick skipped" in r.getMessage() for r in caplog.records if r.levelno == logging.INFO)
    finally:
        cache.close()
