"""Trade Validator: sequential AND-gate in front of every order.

Evaluation order:
  1. Session window open
  2. No open position for (symbol, magic)
  3. Symbol selectable
  4. Spread <= max spread (points)
  5. Stop distance >= 0.5 x ATR
  6. Broker stops/freeze levels (adjust outward, then verify)
  7. Margin for the sized order <= free margin
  8. Trade mode is FULL

The first failing check rejects with no side effect. All checks read the
same MarketSnapshot.
"""

from __future__ import annotations

import logging
from datetime import datetime

from ob_retest.core.data_types import (
    MarketSnapshot,
    OrderBlock,
    StopTarget,
    SymbolSpec,
    ValidationResult,
)
from ob_retest.core.ports import BrokerGateway
from ob_retest.core.types import RejectReason, TradeDirection, TradeMode
from ob_retest.risk.risk_sizer import RiskSizer
from ob_retest.risk.stop_target import StopTargetCalculator, stop_distance
from ob_retest.structure.session_gate import SessionGate

logger = logging.getLogger(__name__)


def _points(distance: float, point: float) -> int:
    return int(round(distance / point))


def apply_broker_levels(
    direction: TradeDirection,
    levels: StopTarget,
    closing_price: float,
    spec: SymbolSpec,
) -> tuple[StopTarget, bool]:
    """Push stop/target out to the broker stops level, then check freeze level.

    Distances are whole points from the closing-side price. Returns the
    (possibly adjusted) levels and whether they satisfy the freeze level.
    Adjusting an already-compliant pair returns it unchanged.
    """
    point = spec.point
    sign = 1.0 if direction == TradeDirection.LONG else -1.0
    stop = levels.stop_price
    target = levels.target_price

    if spec.stops_level > 0:
        min_dist = spec.stops_level * point
        if _points(sign * (closing_price - stop), point) < spec.stops_level:
            stop = round(closing_price - sign * min_dist, spec.digits)
        if _points(sign * (target - closing_price), point) < spec.stops_level:
            target = round(closing_price + sign * min_dist, spec.digits)

    adjusted = StopTarget(stop_price=stop, target_price=target)
    if spec.freeze_level <= 0:
        return adjusted, True
    ok = (
        _points(sign * (closing_price - stop), point) >= spec.freeze_level
        and _points(sign * (target - closing_price), point) >= spec.freeze_level
    )
    return adjusted, ok


class TradeValidator:
    """All 8 checks must pass before a TradeIntent may be built."""

    def __init__(
        self,
        session_gate: SessionGate,
        calculator: StopTargetCalculator,
        sizer: RiskSizer,
        gateway: BrokerGateway,
        max_spread_points: int,
        broker_stop_adjustment: bool = True,
    ) -> None:
        self._session = session_gate
        self._calculator = calculator
        self._sizer = sizer
        self._gateway = gateway
        self._max_spread = max_spread_points
        self._broker_adjust = broker_stop_adjustment

    def validate(
        self,
        snapshot: MarketSnapshot,
        block: OrderBlock,
        magic: int,
        now: datetime,
    ) -> ValidationResult:
        symbol = snapshot.symbol
        spec = snapshot.spec

        # 1. Session
        if not self._session.is_open(now):
            return self._reject(symbol, RejectReason.SESSION_CLOSED, f"hour={now.hour}")

        # 2. Existing position
        if snapshot.has_position(magic):
            return self._reject(symbol, RejectReason.POSITION_OPEN, f"magic={magic}")

        # 3. Symbol availability
        if not snapshot.selectable:
            return self._reject(symbol, RejectReason.SYMBOL_UNAVAILABLE, "not selectable")

        # 4. Spread
        if snapshot.spread_points > self._max_spread:
            return self._reject(
                symbol, RejectReason.SPREAD_TOO_WIDE,
                f"spread={snapshot.spread_points} > {self._max_spread}",
            )

        # 5. Minimum stop distance
        entry = snapshot.entry_price(block.direction)
        levels = self._calculator.calculate(block, entry, spec.digits)
        if self._calculator.is_too_tight(
            block.direction, entry, levels.stop_price, block.atr, spec.digits,
        ):
            return self._reject(
                symbol, RejectReason.STOP_TOO_TIGHT,
                f"entry={entry:.5f} stop={levels.stop_price:.5f} "
                f"min={self._calculator.min_stop_distance(block.atr):.5f}",
            )

        # 6. Broker stops / freeze levels
        if self._broker_adjust:
            adjusted, ok = apply_broker_levels(
                block.direction, levels, snapshot.closing_price(block.direction), spec,
            )
            if adjusted != levels:
                logger.info(
                    "%s: levels adjusted for broker (SL %.5f->%.5f, TP %.5f->%.5f)",
                    symbol, levels.stop_price, adjusted.stop_price,
                    levels.target_price, adjusted.target_price,
                )
            if not ok:
                return self._reject(
                    symbol, RejectReason.BROKER_STOP_LEVEL,
                    f"stops_level={spec.stops_level} freeze_level={spec.freeze_level}",
                )
            levels = adjusted

        # 7. Margin
        size = self._sizer.size(
            symbol,
            stop_distance(block.direction, entry, levels.stop_price),
            snapshot.balance,
            spec,
        )
        margin = self._gateway.estimate_margin(symbol, block.direction, size.lots, entry)
        if margin is None:
            return self._reject(symbol, RejectReason.MARGIN_UNAVAILABLE, f"lots={size.lots:.2f}")
        free_margin = snapshot.free_margin if snapshot.free_margin is not None else 0.0
        if margin > free_margin:
            return self._reject(
                symbol, RejectReason.INSUFFICIENT_MARGIN,
                f"required={margin:.2f} free={free_margin:.2f}",
            )

        # 8. Trade mode
        if spec.trade_mode != TradeMode.FULL:
            return self._reject(
                symbol, RejectReason.TRADE_MODE_RESTRICTED, f"mode={spec.trade_mode.name}",
            )

        return ValidationResult(accepted=True, stop_target=levels, size=size)

    @staticmethod
    def _reject(symbol: str, reason: RejectReason, detail: str) -> ValidationResult:
        logger.info("%s: rejected (%s) %s", symbol, reason.value, detail)
        return ValidationResult(accepted=False, reason=reason, detail=detail)
