"""Engine Runner: wires all components from configuration.

Initialization order:
  1. RiskParameters (frozen from ConfigManager) -> 2. SymbolContexts ->
  3. SessionGate -> 4. OrderBlockScanner -> 5. StopTargetCalculator ->
  6. RiskSizer -> 7. TradeValidator -> 8. ExecutionOrchestrator

Two drivers: a live TickLoop against MetaTrader 5, and a bar-by-bar replay
against the PaperGateway.
"""

from __future__ import annotations

import logging

from ob_retest.config.config_manager import ConfigManager
from ob_retest.core.data_types import PassResult, RiskParameters, SymbolContext
from ob_retest.core.ports import BrokerGateway, Clock, MarketDataProvider
from ob_retest.data.replay_feed import ReplayFeed
from ob_retest.execution.orchestrator import ExecutionOrchestrator
from ob_retest.execution.paper_gateway import PaperGateway
from ob_retest.execution.tick_loop import TickLoop
from ob_retest.risk.risk_sizer import RiskSizer
from ob_retest.risk.stop_target import StopTargetCalculator
from ob_retest.risk.trade_validator import TradeValidator
from ob_retest.structure.order_block_scanner import OrderBlockScanner
from ob_retest.structure.session_gate import SessionGate

logger = logging.getLogger(__name__)


class EngineRunner:
    """Builds the orchestrator once at startup; nothing is rebuilt per tick."""

    def __init__(self, config: ConfigManager) -> None:
        self._config = config
        self._params: RiskParameters = config.risk_parameters()
        self._symbols = config.symbols()

    @property
    def params(self) -> RiskParameters:
        return self._params

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols)

    def build(self, data: MarketDataProvider, gateway: BrokerGateway) -> ExecutionOrchestrator:
        params = self._params

        # 2. Per-symbol contexts
        contexts = [SymbolContext.from_params(symbol, params) for symbol in self._symbols]

        # 3-6. Components
        session_gate = SessionGate(new_york=params.session_new_york, london=params.session_london)
        scanner = OrderBlockScanner(data)
        calculator = StopTargetCalculator(
            atr_multiplier=params.atr_stop_multiplier,
            rr_ratio=params.rr_ratio,
        )
        sizer = RiskSizer(risk_percent=params.risk_percent, fallback_lot=params.fallback_lot)

        # 7. Validator
        validator = TradeValidator(
            session_gate=session_gate,
            calculator=calculator,
            sizer=sizer,
            gateway=gateway,
            max_spread_points=params.max_spread_points,
            broker_stop_adjustment=params.broker_stop_adjustment,
        )

        # 8. Orchestrator
        orchestrator = ExecutionOrchestrator(
            contexts=contexts,
            scanner=scanner,
            validator=validator,
            gateway=gateway,
            deviation_points=params.deviation_points,
            comment=self._config.get("execution.comment", "ob-retest"),
        )
        logger.info(
            "Engine built: profile=%s timeframe=%s symbols=%s broker_stop_adjustment=%s",
            self._config.profile, params.timeframe, ",".join(self._symbols),
            params.broker_stop_adjustment,
        )
        return orchestrator

    def build_tick_loop(
        self,
        data: MarketDataProvider,
        gateway: BrokerGateway,
        clock: Clock | None = None,
    ) -> TickLoop:
        return TickLoop(
            self.build(data, gateway),
            clock=clock,
            interval_seconds=float(self._config.get("execution.tick_interval_seconds", 1.0)),
        )

    def run_replay(
        self,
        feed: ReplayFeed,
        gateway: PaperGateway,
        spread_points: int = 10,
    ) -> list[PassResult]:
        """Drive one pass per recorded bar.

        Each step first settles open paper positions against the new bar's
        range, then quotes at its close and runs the tick. Bar arrays must be
        aligned (same length and timestamps) across symbols.
        """
        orchestrator = self.build(feed, gateway)
        results: list[PassResult] = []
        steps = 0
        while True:
            for symbol in self._symbols:
                bar = feed.current_bar(symbol)
                gateway.mark_bar(symbol, float(bar["high"]), float(bar["low"]))
                bid, ask = feed.quote(symbol, spread_points, gateway.spec(symbol).point)
                gateway.set_quote(symbol, bid, ask)
            tick_results = orchestrator.run_tick(feed.now())
            logger.debug(
                "Replay bar %d: %s", feed.cursor,
                ", ".join(f"{r.symbol}={r.outcome.value}" for r in tick_results),
            )
            results.extend(tick_results)
            steps += 1
            if not feed.advance():
                break
        logger.info(
            "Replay finished: %d steps, %d submissions, balance=%.2f",
            steps, len(gateway.submissions), gateway.balance,
        )
        return results
