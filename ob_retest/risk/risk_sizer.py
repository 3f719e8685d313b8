"""Risk Sizer: balance-risk position sizing.

lots = (balance * risk_pct / 100) / (stop_points * point_value) / tick_value,
rounded to 2 decimals, floored to the broker volume step, clamped to
[volume_min, volume_max]. Degenerate inputs fall back to a fixed small size.
"""

from __future__ import annotations

import logging
import math

from ob_retest.core.data_types import SizeResult, SymbolSpec

logger = logging.getLogger(__name__)


class RiskSizer:
    def __init__(self, risk_percent: float, fallback_lot: float = 0.1) -> None:
        self._risk_percent = risk_percent
        self._fallback_lot = fallback_lot

    @property
    def risk_percent(self) -> float:
        return self._risk_percent

    def size(
        self,
        symbol: str,
        stop_distance: float,
        balance: float | None,
        spec: SymbolSpec,
    ) -> SizeResult:
        """Size a position from the stop distance (price units)."""
        stop_points = stop_distance / spec.point if spec.point > 0 else 0.0
        point_value = spec.point_value

        problem = None
        if balance is None or not math.isfinite(balance) or balance <= 0:
            problem = f"balance={balance}"
        elif spec.tick_value <= 0:
            problem = f"tick_value={spec.tick_value}"
        elif point_value <= 0:
            problem = f"point_value={point_value}"
        elif stop_points <= 0:
            problem = f"stop_points={stop_points}"

        if problem is not None:
            lots = self._clamp(self._fallback_lot, spec)
            logger.warning(
                "%s: degraded sizing (%s), using fallback %.2f lots",
                symbol, problem, lots,
            )
            return SizeResult(lots=lots, degraded=True)

        risk_amount = balance * self._risk_percent / 100.0
        raw = (risk_amount / (stop_points * point_value)) / spec.tick_value
        lots = self._clamp(self._to_step(round(raw, 2), spec.volume_step), spec)
        logger.debug(
            "%s: risk=%.2f stop=%.1fpts raw=%.4f -> %.2f lots",
            symbol, risk_amount, stop_points, raw, lots,
        )
        return SizeResult(lots=lots)

    @staticmethod
    def _to_step(lots: float, step: float) -> float:
        if step <= 0.01:
            return lots
        return round(math.floor(lots / step + 1e-9) * step, 2)

    @staticmethod
    def _clamp(lots: float, spec: SymbolSpec) -> float:
        return min(max(lots, spec.volume_min), spec.volume_max)
