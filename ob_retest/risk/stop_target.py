"""Stop/Target Calculator: ATR-scaled stop beyond the block, R-multiple target.

Bullish: stop = block - ATR * mult, target = entry + (entry - stop) * rr.
Bearish mirrors it. Prices are rounded to the instrument's digits.
"""

from __future__ import annotations

from ob_retest.core.data_types import OrderBlock, StopTarget
from ob_retest.core.types import TradeDirection

MIN_STOP_ATR_FRACTION = 0.5


class StopTargetCalculator:
    def __init__(
        self,
        atr_multiplier: float = 1.5,
        rr_ratio: float = 2.0,
        min_stop_atr_fraction: float = MIN_STOP_ATR_FRACTION,
    ) -> None:
        self._atr_mult = atr_multiplier
        self._rr_ratio = rr_ratio
        self._min_fraction = min_stop_atr_fraction

    def calculate(self, block: OrderBlock, entry_price: float, digits: int) -> StopTarget:
        offset = block.atr * self._atr_mult
        if block.direction == TradeDirection.LONG:
            stop = round(block.price - offset, digits)
            target = entry_price + (entry_price - stop) * self._rr_ratio
        else:
            stop = round(block.price + offset, digits)
            target = entry_price - (stop - entry_price) * self._rr_ratio
        return StopTarget(stop_price=stop, target_price=round(target, digits))

    def min_stop_distance(self, atr: float) -> float:
        return atr * self._min_fraction

    def is_too_tight(
        self,
        direction: TradeDirection,
        entry_price: float,
        stop_price: float,
        atr: float,
        digits: int,
    ) -> bool:
        """Stop closer than half an ATR means price already ran past the zone.

        The boundary passes: only a strictly smaller distance is too tight.
        A stop on the wrong side of entry has negative distance.
        """
        distance = round(stop_distance(direction, entry_price, stop_price), digits)
        return distance < self.min_stop_distance(atr)


def stop_distance(direction: TradeDirection, entry_price: float, stop_price: float) -> float:
    if direction == TradeDirection.LONG:
        return entry_price - stop_price
    return stop_price - entry_price
