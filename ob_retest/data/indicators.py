"""Indicator series for offline providers (ATR, volume SMA).

Series are aligned with the bar array (oldest first); positions without
enough history are NaN so providers can report them as unavailable.
"""

from __future__ import annotations

import numpy as np


def _rolling_mean(values: np.ndarray, period: int) -> np.ndarray:
    out = np.full(len(values), np.nan)
    if period <= 0 or len(values) < period:
        return out
    csum = np.cumsum(np.insert(values.astype(np.float64), 0, 0.0))
    out[period - 1:] = (csum[period:] - csum[:-period]) / period
    return out


def true_range(bars: np.ndarray) -> np.ndarray:
    """TR per bar; the first bar has no previous close and uses high - low."""
    highs = bars["high"]
    lows = bars["low"]
    tr = highs - lows
    if len(bars) > 1:
        prev_close = bars["close"][:-1]
        tr[1:] = np.maximum.reduce([
            highs[1:] - lows[1:],
            np.abs(highs[1:] - prev_close),
            np.abs(lows[1:] - prev_close),
        ])
    return tr


def compute_atr_series(bars: np.ndarray, period: int = 14) -> np.ndarray:
    """Simple-average ATR. First valid value at position ``period``."""
    out = np.full(len(bars), np.nan)
    if len(bars) <= period:
        return out
    # Skip bar 0 (no previous close) so every TR in the window is a full TR.
    out[1:] = _rolling_mean(true_range(bars)[1:], period)
    return out


def compute_volume_sma_series(bars: np.ndarray, period: int = 20) -> np.ndarray:
    return _rolling_mean(bars["volume"], period)
