"""Paper broker gateway: in-memory account, quotes and positions.

Implements the BrokerGateway port for dry-run replays and tests. Return codes
mirror MT5 TRADE_RETCODE_* values so logs read the same as live.
"""

from __future__ import annotations

import itertools
import logging

from ob_retest.core.data_types import (
    MarketSnapshot,
    OpenPosition,
    SubmitResult,
    SymbolSpec,
    TradeIntent,
)
from ob_retest.core.errors import GatewayError
from ob_retest.core.types import TradeDirection, TradeMode

logger = logging.getLogger(__name__)

RETCODE_DONE = 10009
RETCODE_INVALID_VOLUME = 10014
RETCODE_INVALID_STOPS = 10016
RETCODE_TRADE_DISABLED = 10017
RETCODE_NO_MONEY = 10019


class PaperGateway:
    """Single-account simulated broker. Quotes are pushed in by the caller."""

    def __init__(
        self,
        balance: float,
        specs: dict[str, SymbolSpec],
        leverage: float = 100.0,
    ) -> None:
        self._balance = balance
        self._specs = dict(specs)
        self._leverage = leverage
        self._quotes: dict[str, tuple[float, float]] = {}
        self._positions: list[OpenPosition] = []
        self._tickets = itertools.count(1)
        self._submissions: list[tuple[TradeIntent, SubmitResult]] = []

    @property
    def balance(self) -> float:
        return self._balance

    @property
    def positions(self) -> list[OpenPosition]:
        return list(self._positions)

    @property
    def submissions(self) -> list[tuple[TradeIntent, SubmitResult]]:
        return list(self._submissions)

    def spec(self, symbol: str) -> SymbolSpec:
        if symbol not in self._specs:
            raise GatewayError(f"unknown symbol {symbol}")
        return self._specs[symbol]

    def set_quote(self, symbol: str, bid: float, ask: float) -> None:
        self._quotes[symbol] = (bid, ask)

    def used_margin(self) -> float:
        return sum(
            self._margin_for(p.symbol, p.volume, p.entry_price) for p in self._positions
        )

    # -- BrokerGateway -------------------------------------------------------

    def snapshot(self, symbol: str, magic: int) -> MarketSnapshot:
        spec = self._specs.get(symbol)
        quote = self._quotes.get(symbol)
        if spec is None:
            return MarketSnapshot(
                symbol=symbol, bid=0.0, ask=0.0, spread_points=0,
                balance=self._balance, free_margin=self._free_margin(),
                spec=SymbolSpec(digits=5, point=0.00001, tick_size=0.00001, tick_value=0.0,
                                volume_min=0.01, volume_max=0.01,
                                trade_mode=TradeMode.DISABLED),
                selectable=False,
            )
        if quote is None:
            raise GatewayError(f"no quote for {symbol}")
        bid, ask = quote
        return MarketSnapshot(
            symbol=symbol,
            bid=bid,
            ask=ask,
            spread_points=int(round((ask - bid) / spec.point)),
            balance=self._balance,
            free_margin=self._free_margin(),
            spec=spec,
            positions=tuple(p for p in self._positions if p.symbol == symbol),
        )

    def estimate_margin(
        self,
        symbol: str,
        direction: TradeDirection,
        size: float,
        price: float,
    ) -> float | None:
        if symbol not in self._specs or self._leverage <= 0:
            return None
        return self._margin_for(symbol, size, price)

    def submit(self, intent: TradeIntent, deviation_points: int = 10) -> SubmitResult:
        result = self._check(intent)
        if result is None:
            ticket = next(self._tickets)
            self._positions.append(OpenPosition(
                ticket=ticket,
                symbol=intent.symbol,
                magic=intent.magic,
                direction=intent.direction,
                volume=intent.size,
                entry_price=intent.entry_price,
                stop_price=intent.stop_price,
                target_price=intent.target_price,
            ))
            result = SubmitResult(success=True, retcode=RETCODE_DONE, reason="done", ticket=ticket)
        self._submissions.append((intent, result))
        return result

    # -- Position lifecycle --------------------------------------------------

    def mark_bar(self, symbol: str, high: float, low: float) -> list[OpenPosition]:
        """Close positions whose stop or target traded inside the bar.

        When both levels were touched the stop is assumed to fill first.
        Returns the closed positions.
        """
        closed = []
        for pos in [p for p in self._positions if p.symbol == symbol]:
            if pos.direction == TradeDirection.LONG:
                if low <= pos.stop_price:
                    exit_price = pos.stop_price
                elif high >= pos.target_price:
                    exit_price = pos.target_price
                else:
                    continue
            else:
                if high >= pos.stop_price:
                    exit_price = pos.stop_price
                elif low <= pos.target_price:
                    exit_price = pos.target_price
                else:
                    continue
            self.close_position(pos.ticket, exit_price)
            closed.append(pos)
        return closed

    def close_position(self, ticket: int, exit_price: float) -> float:
        """Close by ticket at exit_price; returns realised PnL."""
        for pos in self._positions:
            if pos.ticket == ticket:
                break
        else:
            raise GatewayError(f"unknown ticket {ticket}")
        spec = self._specs[pos.symbol]
        sign = 1.0 if pos.direction == TradeDirection.LONG else -1.0
        ticks = sign * (exit_price - pos.entry_price) / spec.tick_size
        pnl = ticks * spec.tick_value * pos.volume
        self._balance += pnl
        self._positions.remove(pos)
        logger.info(
            "%s: position %d closed @ %.5f, pnl=%.2f balance=%.2f",
            pos.symbol, ticket, exit_price, pnl, self._balance,
        )
        return pnl

    # -- Internals -----------------------------------------------------------

    def _check(self, intent: TradeIntent) -> SubmitResult | None:
        spec = self._specs.get(intent.symbol)
        if spec is None or spec.trade_mode != TradeMode.FULL:
            return SubmitResult(False, RETCODE_TRADE_DISABLED, "trade disabled")
        if not spec.volume_min <= intent.size <= spec.volume_max:
            return SubmitResult(False, RETCODE_INVALID_VOLUME, f"invalid volume {intent.size}")
        if intent.direction == TradeDirection.LONG:
            stops_ok = intent.stop_price < intent.entry_price < intent.target_price
        else:
            stops_ok = intent.target_price < intent.entry_price < intent.stop_price
        if not stops_ok:
            return SubmitResult(False, RETCODE_INVALID_STOPS, "invalid stops")
        if self._margin_for(intent.symbol, intent.size, intent.entry_price) > self._free_margin():
            return SubmitResult(False, RETCODE_NO_MONEY, "no money")
        return None

    def _margin_for(self, symbol: str, size: float, price: float) -> float:
        spec = self._specs[symbol]
        return size * spec.contract_size * price / self._leverage

    def _free_margin(self) -> float:
        return self._balance - self.used_margin()
