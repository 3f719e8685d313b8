"""Frozen dataclasses and array dtypes for engine data structures."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ob_retest.core.types import PassOutcome, RejectReason, TradeDirection, TradeMode

# Bar history for one symbol/timeframe, ordered oldest -> newest.
BAR_DTYPE = np.dtype([
    ("timestamp_ns", np.int64),
    ("open", np.float64),
    ("high", np.float64),
    ("low", np.float64),
    ("close", np.float64),
    ("volume", np.float64),
])


@dataclass(frozen=True)
class OrderBlock:
    """Swing extreme that formed on a volume spike. Lives for one scan only."""

    symbol: str
    direction: TradeDirection
    price: float
    formed_at_ns: int
    shift: int  # bars back from the newest bar
    volume: float
    volume_ma: float
    atr: float


@dataclass(frozen=True)
class RiskParameters:
    """Immutable runtime configuration, loaded once at startup."""

    risk_percent: float
    rr_ratio: float
    atr_stop_multiplier: float
    lookback: int
    max_spread_points: int
    magic: int
    session_new_york: bool
    session_london: bool
    timeframe: str
    atr_period: int = 14
    volume_ma_period: int = 20
    swing_radius: int = 3
    volume_spike_mult: float = 1.5
    fallback_lot: float = 0.1
    broker_stop_adjustment: bool = True
    deviation_points: int = 10


@dataclass(frozen=True)
class SymbolContext:
    """Per-symbol handles and scan settings, built once at startup."""

    symbol: str
    timeframe: str
    lookback: int
    swing_radius: int
    volume_spike_mult: float
    atr_period: int
    volume_ma_period: int
    magic: int

    @classmethod
    def from_params(cls, symbol: str, params: RiskParameters) -> SymbolContext:
        return cls(
            symbol=symbol,
            timeframe=params.timeframe,
            lookback=params.lookback,
            swing_radius=params.swing_radius,
            volume_spike_mult=params.volume_spike_mult,
            atr_period=params.atr_period,
            volume_ma_period=params.volume_ma_period,
            magic=params.magic,
        )


@dataclass(frozen=True)
class SymbolSpec:
    """Broker-reported trading constraints for one symbol."""

    digits: int
    point: float
    tick_size: float
    tick_value: float
    volume_min: float
    volume_max: float
    volume_step: float = 0.01
    stops_level: int = 0   # points
    freeze_level: int = 0  # points
    trade_mode: TradeMode = TradeMode.FULL
    contract_size: float = 100_000.0

    @property
    def point_value(self) -> float:
        """Ticks per point; 1.0 for most FX symbols."""
        if self.tick_size <= 0:
            return 0.0
        return self.point / self.tick_size


@dataclass(frozen=True)
class OpenPosition:
    ticket: int
    symbol: str
    magic: int
    direction: TradeDirection
    volume: float
    entry_price: float
    stop_price: float
    target_price: float


@dataclass(frozen=True)
class MarketSnapshot:
    """One consistent view of quote, account and symbol state.

    Captured once at the start of a symbol's pass and threaded through every
    check so no step re-queries the broker mid-decision.
    """

    symbol: str
    bid: float
    ask: float
    spread_points: int
    balance: float | None
    free_margin: float | None
    spec: SymbolSpec
    selectable: bool = True
    positions: tuple[OpenPosition, ...] = ()
    taken_at_ns: int = 0

    def has_position(self, magic: int) -> bool:
        return any(p.symbol == self.symbol and p.magic == magic for p in self.positions)

    def entry_price(self, direction: TradeDirection) -> float:
        """Executable price: ask for buys, bid for sells."""
        return self.ask if direction == TradeDirection.LONG else self.bid

    def closing_price(self, direction: TradeDirection) -> float:
        """Price a position would close at: bid for buys, ask for sells."""
        return self.bid if direction == TradeDirection.LONG else self.ask


@dataclass(frozen=True)
class StopTarget:
    stop_price: float
    target_price: float


@dataclass(frozen=True)
class SizeResult:
    lots: float
    degraded: bool = False


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of the trade validation gate. Accepted results carry final levels."""

    accepted: bool
    reason: RejectReason | None = None
    detail: str = ""
    stop_target: StopTarget | None = None
    size: SizeResult | None = None


@dataclass(frozen=True)
class TradeIntent:
    """Validated, sized order. Consumed exactly once by the gateway."""

    symbol: str
    direction: TradeDirection
    entry_price: float
    stop_price: float
    target_price: float
    size: float
    magic: int
    comment: str = ""


@dataclass(frozen=True)
class SubmitResult:
    success: bool
    retcode: int
    reason: str = ""
    ticket: int | None = None


@dataclass(frozen=True)
class PassResult:
    """What happened to one symbol during one tick."""

    symbol: str
    outcome: PassOutcome
    block: OrderBlock | None = None
    validation: ValidationResult | None = None
    intent: TradeIntent | None = None
    submit: SubmitResult | None = None
    detail: str = ""
