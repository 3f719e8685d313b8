"""Order Block Scanner: swing extremes formed on a volume spike.

Walks bar shifts from ``lookback`` down to ``swing_radius + 1`` (the forming
bar and anything without a full right-hand neighbourhood are excluded) and
returns the FIRST qualifying bar, i.e. the oldest one in the window. Later
or stronger candidates are not considered.

Indices whose volume-MA or ATR sample is unavailable are skipped.
"""

from __future__ import annotations

import logging

from ob_retest.core.data_types import OrderBlock, SymbolContext
from ob_retest.core.errors import DataUnavailableError
from ob_retest.core.ports import MarketDataProvider
from ob_retest.core.types import Indicator, TradeDirection
from ob_retest.structure.swing_detector import is_swing_high, is_swing_low

logger = logging.getLogger(__name__)


class OrderBlockScanner:
    """Stateless: every call re-detects from fresh bar history."""

    def __init__(self, data: MarketDataProvider) -> None:
        self._data = data

    def scan(self, ctx: SymbolContext) -> OrderBlock | None:
        """Return at most one OrderBlock for the symbol.

        Raises DataUnavailableError if the bar history itself cannot be read.
        """
        bars = self._data.get_bars(ctx.symbol, ctx.timeframe, ctx.lookback + ctx.swing_radius + 1)
        n = len(bars)
        highs = bars["high"]
        lows = bars["low"]
        volumes = bars["volume"]

        for shift in range(ctx.lookback, ctx.swing_radius, -1):
            pos = n - 1 - shift
            if pos < 0:
                continue

            volume_ma = self._sample(ctx, Indicator.VOLUME_MA, ctx.volume_ma_period, shift)
            if volume_ma is None:
                continue

            volume = float(volumes[pos])
            if volume <= ctx.volume_spike_mult * volume_ma:
                continue

            if is_swing_low(lows, pos, ctx.swing_radius):
                direction = TradeDirection.LONG
                price = float(lows[pos])
            elif is_swing_high(highs, pos, ctx.swing_radius):
                direction = TradeDirection.SHORT
                price = float(highs[pos])
            else:
                continue

            atr = self._sample(ctx, Indicator.ATR, ctx.atr_period, shift)
            if atr is None:
                continue

            block = OrderBlock(
                symbol=ctx.symbol,
                direction=direction,
                price=price,
                formed_at_ns=int(bars["timestamp_ns"][pos]),
                shift=shift,
                volume=volume,
                volume_ma=volume_ma,
                atr=atr,
            )
            logger.info(
                "%s: %s order block @ %.5f (shift=%d, vol=%.0f vs ma=%.0f, atr=%.5f)",
                ctx.symbol, direction.name, price, shift, volume, volume_ma, atr,
            )
            return block

        return None

    def _sample(
        self,
        ctx: SymbolContext,
        indicator: Indicator,
        period: int,
        shift: int,
    ) -> float | None:
        try:
            return self._data.get_indicator(ctx.symbol, ctx.timeframe, indicator, period, shift)
        except DataUnavailableError:
            logger.debug(
                "%s: %s(%d) unavailable at shift %d, skipping",
                ctx.symbol, indicator.value, period, shift,
            )
            return None
