"""Execution Orchestrator: one pass per configured symbol per tick.

Per symbol:
  Snapshot -> Scan -> (no block: done) -> Retest check -> (not retesting: done)
  -> Validate -> (reject: done) -> Build intent -> Submit -> log result

Nothing is carried between ticks: zones are re-detected every pass and the
only cross-tick state (open positions) is read from the broker snapshot.
A failure in one symbol's pass ends that pass only.
"""

from __future__ import annotations

import logging
from datetime import datetime

from ob_retest.core.data_types import (
    MarketSnapshot,
    OrderBlock,
    PassResult,
    SymbolContext,
    TradeIntent,
)
from ob_retest.core.errors import DataUnavailableError, GatewayError
from ob_retest.core.ports import BrokerGateway
from ob_retest.core.types import PassOutcome, TradeDirection
from ob_retest.risk.trade_validator import TradeValidator
from ob_retest.structure.order_block_scanner import OrderBlockScanner

logger = logging.getLogger(__name__)

# Retest band around the block price, in ATR fractions (below, above).
# Longs are expected to come down into the zone, shorts to rally up into it.
BULLISH_RETEST_BAND = (0.1, 0.2)
BEARISH_RETEST_BAND = (0.2, 0.1)


def is_retesting(block: OrderBlock, snapshot: MarketSnapshot) -> bool:
    """Bullish: bid in [p - 0.1 ATR, p + 0.2 ATR]; bearish: ask in [p - 0.2 ATR, p + 0.1 ATR]."""
    if block.direction == TradeDirection.LONG:
        below, above = BULLISH_RETEST_BAND
        price = snapshot.bid
    else:
        below, above = BEARISH_RETEST_BAND
        price = snapshot.ask
    return block.price - below * block.atr <= price <= block.price + above * block.atr


class ExecutionOrchestrator:
    """Runs Scanner -> Retest -> Validator -> Submit for each symbol in order."""

    def __init__(
        self,
        contexts: list[SymbolContext],
        scanner: OrderBlockScanner,
        validator: TradeValidator,
        gateway: BrokerGateway,
        deviation_points: int = 10,
        comment: str = "ob-retest",
    ) -> None:
        self._contexts = list(contexts)
        self._scanner = scanner
        self._validator = validator
        self._gateway = gateway
        self._deviation = deviation_points
        self._comment = comment

    @property
    def symbols(self) -> list[str]:
        return [ctx.symbol for ctx in self._contexts]

    def run_tick(self, now: datetime) -> list[PassResult]:
        """One full pass over the instrument universe, strictly sequential."""
        results = []
        for ctx in self._contexts:
            try:
                result = self.run_symbol(ctx, now)
            except (DataUnavailableError, GatewayError) as exc:
                logger.warning("%s: pass aborted, data unavailable: %s", ctx.symbol, exc)
                result = PassResult(ctx.symbol, PassOutcome.DATA_UNAVAILABLE, detail=str(exc))
            except Exception as exc:
                logger.exception("%s: unexpected error during pass", ctx.symbol)
                result = PassResult(ctx.symbol, PassOutcome.ERROR, detail=repr(exc))
            results.append(result)
        return results

    def run_symbol(self, ctx: SymbolContext, now: datetime) -> PassResult:
        snapshot = self._gateway.snapshot(ctx.symbol, ctx.magic)

        block = self._scanner.scan(ctx)
        if block is None:
            logger.debug("%s: no order block in last %d bars", ctx.symbol, ctx.lookback)
            return PassResult(ctx.symbol, PassOutcome.NO_BLOCK)

        if not is_retesting(block, snapshot):
            logger.debug(
                "%s: %s block @ %.5f not retested (bid=%.5f ask=%.5f)",
                ctx.symbol, block.direction.name, block.price, snapshot.bid, snapshot.ask,
            )
            return PassResult(ctx.symbol, PassOutcome.NOT_RETESTING, block=block)

        validation = self._validator.validate(snapshot, block, ctx.magic, now)
        if not validation.accepted:
            return PassResult(
                ctx.symbol, PassOutcome.REJECTED,
                block=block, validation=validation, detail=validation.detail,
            )

        intent = TradeIntent(
            symbol=ctx.symbol,
            direction=block.direction,
            entry_price=snapshot.entry_price(block.direction),
            stop_price=validation.stop_target.stop_price,
            target_price=validation.stop_target.target_price,
            size=validation.size.lots,
            magic=ctx.magic,
            comment=self._comment,
        )
        logger.info(
            "%s: submitting %s %.2f lots @ %.5f SL=%.5f TP=%.5f%s",
            intent.symbol, intent.direction.name, intent.size, intent.entry_price,
            intent.stop_price, intent.target_price,
            " (degraded size)" if validation.size.degraded else "",
        )

        submit = self._gateway.submit(intent, self._deviation)
        if submit.success:
            logger.info(
                "%s: order accepted (retcode=%d ticket=%s)",
                intent.symbol, submit.retcode, submit.ticket,
            )
            outcome = PassOutcome.SUBMITTED
        else:
            logger.warning(
                "%s: order rejected by gateway (retcode=%d): %s",
                intent.symbol, submit.retcode, submit.reason,
            )
            outcome = PassOutcome.SUBMIT_FAILED

        return PassResult(
            ctx.symbol, outcome,
            block=block, validation=validation, intent=intent, submit=submit,
            detail=submit.reason,
        )
