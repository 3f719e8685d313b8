"""Shared fixtures for order-block retest engine tests."""

from __future__ import annotations

from datetime import datetime, timezone

import numpy as np
import pytest

from ob_retest.core.data_types import (
    BAR_DTYPE,
    MarketSnapshot,
    OrderBlock,
    RiskParameters,
    SymbolContext,
    SymbolSpec,
)
from ob_retest.core.errors import DataUnavailableError
from ob_retest.core.types import Indicator, TradeDirection

BASE_TS = 1_704_873_600_000_000_000  # 2024-01-10 08:00 UTC
M15_NS = 15 * 60 * 1_000_000_000


def flat_bars(n, low=1.0995, high=1.1005, close=1.1000, volume=100.0):
    """n M15 bars with identical range; tests poke individual bars."""
    bars = np.zeros(n, dtype=BAR_DTYPE)
    bars["timestamp_ns"] = BASE_TS + np.arange(n, dtype=np.int64) * M15_NS
    bars["open"] = close
    bars["high"] = high
    bars["low"] = low
    bars["close"] = close
    bars["volume"] = volume
    return bars


class StaticMarketData:
    """MarketDataProvider over fixed arrays aligned with the bars.

    NaN in an indicator array means the sample is unavailable.
    """

    def __init__(self):
        self._bars = {}
        self._series = {}
        self.bar_requests = []

    def add(self, symbol, bars, volume_ma, atr):
        self._bars[symbol] = bars
        self._series[(symbol, Indicator.VOLUME_MA)] = np.asarray(volume_ma, dtype=np.float64)
        self._series[(symbol, Indicator.ATR)] = np.asarray(atr, dtype=np.float64)

    def get_bars(self, symbol, timeframe, count):
        self.bar_requests.append((symbol, timeframe, count))
        if symbol not in self._bars:
            raise DataUnavailableError(f"{symbol}: no bars")
        return self._bars[symbol][-count:]

    def get_indicator(self, symbol, timeframe, indicator, period, shift):
        series = self._series[(symbol, indicator)]
        pos = len(series) - 1 - shift
        if pos < 0 or np.isnan(series[pos]):
            raise DataUnavailableError(f"{symbol}: {indicator.value} at shift {shift}")
        return float(series[pos])


@pytest.fixture
def bars_factory():
    return flat_bars


@pytest.fixture
def market_data():
    return StaticMarketData()


@pytest.fixture
def fx_spec():
    """5-digit FX symbol: 1 point = 1 tick = 1.0 account currency per lot."""
    return SymbolSpec(
        digits=5,
        point=0.00001,
        tick_size=0.00001,
        tick_value=1.0,
        volume_min=0.01,
        volume_max=100.0,
        volume_step=0.01,
    )


@pytest.fixture
def risk_params():
    return RiskParameters(
        risk_percent=1.0,
        rr_ratio=2.0,
        atr_stop_multiplier=1.5,
        lookback=20,
        max_spread_points=30,
        magic=240601,
        session_new_york=True,
        session_london=True,
        timeframe="M15",
    )


@pytest.fixture
def eurusd_ctx(risk_params):
    return SymbolContext.from_params("EURUSD", risk_params)


@pytest.fixture
def london_open():
    """10:00 UTC, inside the London window."""
    return datetime(2024, 1, 10, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def after_hours():
    """20:00 UTC, outside both windows."""
    return datetime(2024, 1, 10, 20, 0, tzinfo=timezone.utc)


@pytest.fixture
def bullish_block():
    """Bullish block at 1.1000 with ATR 10 pips."""
    return OrderBlock(
        symbol="EURUSD",
        direction=TradeDirection.LONG,
        price=1.1000,
        formed_at_ns=BASE_TS,
        shift=8,
        volume=400.0,
        volume_ma=100.0,
        atr=0.0010,
    )


@pytest.fixture
def bearish_block():
    """Bearish block at 1.1000 with ATR 10 pips."""
    return OrderBlock(
        symbol="EURUSD",
        direction=TradeDirection.SHORT,
        price=1.1000,
        formed_at_ns=BASE_TS,
        shift=8,
        volume=400.0,
        volume_ma=100.0,
        atr=0.0010,
    )


@pytest.fixture
def snapshot_factory(fx_spec):
    """Snapshot retesting the 1.1000 bullish block: bid 1.1001, ask 1.1003."""

    def make(**overrides):
        fields = dict(
            symbol="EURUSD",
            bid=1.1001,
            ask=1.1003,
            spread_points=20,
            balance=10_000.0,
            free_margin=10_000.0,
            spec=fx_spec,
        )
        fields.update(overrides)
        return MarketSnapshot(**fields)

    return make
