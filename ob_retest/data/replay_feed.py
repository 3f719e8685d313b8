"""Replay feed: MarketDataProvider + Clock over recorded bar arrays.

A shared cursor walks the bars forward; only bars up to the cursor are
visible, so the engine sees history exactly as it would have live. Indicator
series are computed once per (symbol, indicator, period) and served by shift.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

import numpy as np

from ob_retest.core.data_types import BAR_DTYPE
from ob_retest.core.errors import DataUnavailableError
from ob_retest.core.types import Indicator
from ob_retest.data.indicators import compute_atr_series, compute_volume_sma_series

logger = logging.getLogger(__name__)

CSV_COLUMNS = ("time", "open", "high", "low", "close", "volume")


def load_csv_bars(path: str | Path) -> np.ndarray:
    """Read an OHLCV CSV (time, open, high, low, close, volume) into BAR_DTYPE.

    ``tick_volume`` is accepted in place of ``volume`` (MT5 exports).
    """
    import pandas as pd

    frame = pd.read_csv(path)
    if "volume" not in frame.columns and "tick_volume" in frame.columns:
        frame = frame.rename(columns={"tick_volume": "volume"})
    missing = [c for c in CSV_COLUMNS if c not in frame.columns]
    if missing:
        raise ValueError(f"{path}: missing columns {missing}")

    times = pd.to_datetime(frame["time"], utc=True)
    frame = frame.assign(time=times).sort_values("time")

    bars = np.zeros(len(frame), dtype=BAR_DTYPE)
    bars["timestamp_ns"] = frame["time"].dt.as_unit("ns").astype("int64").to_numpy()
    for column in ("open", "high", "low", "close", "volume"):
        bars[column] = frame[column].to_numpy(dtype=np.float64)
    logger.info("Loaded %d bars from %s", len(bars), path)
    return bars


def _check_aligned(bars: dict[str, np.ndarray]) -> None:
    """All symbols share one cursor, so every array must cover the same bar times."""
    if not bars:
        return
    first, reference = next(iter(bars.items()))
    for symbol, other in bars.items():
        if len(other) != len(reference):
            raise ValueError(
                f"replay bars not aligned: {symbol} has {len(other)} bars, "
                f"{first} has {len(reference)}"
            )
        if not np.array_equal(other["timestamp_ns"], reference["timestamp_ns"]):
            raise ValueError(f"replay bars not aligned: {symbol} timestamps differ from {first}")


class ReplayFeed:
    def __init__(
        self,
        bars: dict[str, np.ndarray],
        timeframe: str,
        start: int = 0,
    ) -> None:
        self._bars = dict(bars)
        _check_aligned(self._bars)
        self._timeframe = timeframe
        self._cursor = start
        self._series: dict[tuple[str, Indicator, int], np.ndarray] = {}

    @classmethod
    def from_csv(cls, paths: dict[str, str | Path], timeframe: str, start: int = 0) -> ReplayFeed:
        return cls({symbol: load_csv_bars(p) for symbol, p in paths.items()}, timeframe, start)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def length(self) -> int:
        return max((len(b) for b in self._bars.values()), default=0)

    def advance(self) -> bool:
        """Move to the next bar. Returns False once past the end."""
        if self._cursor + 1 >= self.length:
            return False
        self._cursor += 1
        return True

    def current_bar(self, symbol: str) -> np.void:
        bars = self._require(symbol)
        if self._cursor >= len(bars):
            raise DataUnavailableError(f"{symbol}: replay exhausted")
        return bars[self._cursor]

    def quote(self, symbol: str, spread_points: int, point: float) -> tuple[float, float]:
        """Bid at the current bar's close, ask one spread above it."""
        bid = float(self.current_bar(symbol)["close"])
        return bid, bid + spread_points * point

    # -- Clock ---------------------------------------------------------------

    def now(self) -> datetime:
        first = next(iter(self._bars), None)
        if first is None:
            return datetime.now(timezone.utc)
        ts = int(self.current_bar(first)["timestamp_ns"])
        return datetime.fromtimestamp(ts / 1_000_000_000, tz=timezone.utc)

    # -- MarketDataProvider --------------------------------------------------

    def get_bars(self, symbol: str, timeframe: str, count: int) -> np.ndarray:
        self._check_timeframe(symbol, timeframe)
        visible = self._require(symbol)[:self._cursor + 1]
        if len(visible) == 0:
            raise DataUnavailableError(f"{symbol}: no bars")
        return visible[-count:]

    def get_indicator(
        self,
        symbol: str,
        timeframe: str,
        indicator: Indicator,
        period: int,
        shift: int,
    ) -> float:
        self._check_timeframe(symbol, timeframe)
        series = self._series_for(symbol, indicator, period)
        pos = min(self._cursor, len(series) - 1) - shift
        if pos < 0 or np.isnan(series[pos]):
            raise DataUnavailableError(f"{symbol}: {indicator.value}({period}) at shift {shift}")
        return float(series[pos])

    def _series_for(self, symbol: str, indicator: Indicator, period: int) -> np.ndarray:
        key = (symbol, indicator, period)
        if key not in self._series:
            bars = self._require(symbol)
            if indicator == Indicator.ATR:
                self._series[key] = compute_atr_series(bars, period)
            else:
                self._series[key] = compute_volume_sma_series(bars, period)
        return self._series[key]

    def _require(self, symbol: str) -> np.ndarray:
        bars = self._bars.get(symbol)
        if bars is None:
            raise DataUnavailableError(f"{symbol}: not in replay set")
        return bars

    def _check_timeframe(self, symbol: str, timeframe: str) -> None:
        if timeframe != self._timeframe:
            raise DataUnavailableError(
                f"{symbol}: replay holds {self._timeframe}, requested {timeframe}"
            )
