"""MetaTrader 5 adapters for the MarketDataProvider and BrokerGateway ports.

The ``MetaTrader5`` package is imported lazily (Windows-only wheel); tests
pass a stand-in module instead. Indicator samples are derived from the
terminal's rate history because the Python API exposes no indicator handles.
"""

from __future__ import annotations

import logging
import time

import numpy as np

from ob_retest.core.data_types import (
    BAR_DTYPE,
    MarketSnapshot,
    OpenPosition,
    SubmitResult,
    SymbolSpec,
    TradeIntent,
)
from ob_retest.core.errors import DataUnavailableError, GatewayError
from ob_retest.core.types import TIMEFRAMES, Indicator, TradeDirection, TradeMode
from ob_retest.data.indicators import compute_atr_series, compute_volume_sma_series

logger = logging.getLogger(__name__)


def _load_mt5(module=None):
    if module is not None:
        return module
    import MetaTrader5 as mt5
    return mt5


def _rates_to_bars(rates) -> np.ndarray:
    bars = np.zeros(len(rates), dtype=BAR_DTYPE)
    bars["timestamp_ns"] = rates["time"].astype(np.int64) * 1_000_000_000
    for column in ("open", "high", "low", "close"):
        bars[column] = rates[column]
    bars["volume"] = rates["tick_volume"]
    return bars


class Mt5MarketData:
    """Rate history and derived indicator samples from a running terminal.

    ``get_bars`` pins the newest bar for the pass. Indicator series are then
    read anchored at that bar with ``copy_rates_from`` and reused until the
    next ``get_bars`` call, so shifts always refer to the scanned bars even
    if the terminal opens a new bar mid-pass.
    """

    def __init__(self, mt5_module=None, history_bars: int = 200) -> None:
        self._mt5 = _load_mt5(mt5_module)
        self._history_bars = history_bars
        self._anchors: dict[tuple[str, str], int] = {}  # newest bar open time, seconds
        self._series: dict[tuple[str, str, Indicator, int], np.ndarray] = {}

    def _timeframe(self, name: str) -> int:
        if name not in TIMEFRAMES:
            raise DataUnavailableError(f"unsupported timeframe {name}")
        return getattr(self._mt5, f"TIMEFRAME_{name}")

    def get_bars(self, symbol: str, timeframe: str, count: int) -> np.ndarray:
        rates = self._mt5.copy_rates_from_pos(symbol, self._timeframe(timeframe), 0, count)
        if rates is None or len(rates) == 0:
            raise DataUnavailableError(f"{symbol}: no rates ({self._mt5.last_error()})")
        key = (symbol, timeframe)
        self._anchors[key] = int(rates["time"][-1])
        self._series = {k: v for k, v in self._series.items() if k[:2] != key}
        return _rates_to_bars(rates)

    def get_indicator(
        self,
        symbol: str,
        timeframe: str,
        indicator: Indicator,
        period: int,
        shift: int,
    ) -> float:
        if (symbol, timeframe) not in self._anchors:
            self.get_bars(symbol, timeframe, 1)
        series = self._series_for(symbol, timeframe, indicator, period, shift)
        pos = len(series) - 1 - shift
        if pos < 0 or np.isnan(series[pos]):
            raise DataUnavailableError(f"{symbol}: {indicator.value}({period}) at shift {shift}")
        return float(series[pos])

    def _series_for(
        self,
        symbol: str,
        timeframe: str,
        indicator: Indicator,
        period: int,
        shift: int,
    ) -> np.ndarray:
        key = (symbol, timeframe, indicator, period)
        series = self._series.get(key)
        if series is not None and len(series) >= period + shift + 2:
            return series

        count = max(period + shift + 2, period + self._history_bars)
        anchor = self._anchors[(symbol, timeframe)]
        rates = self._mt5.copy_rates_from(symbol, self._timeframe(timeframe), anchor, count)
        if rates is None or len(rates) == 0:
            raise DataUnavailableError(f"{symbol}: no rates ({self._mt5.last_error()})")
        bars = _rates_to_bars(rates)
        if indicator == Indicator.ATR:
            series = compute_atr_series(bars, period)
        else:
            series = compute_volume_sma_series(bars, period)
        self._series[key] = series
        return series


class Mt5Gateway:
    """Account, symbol state and order submission through the terminal."""

    def __init__(self, mt5_module=None, filling_mode: int | None = None) -> None:
        self._mt5 = _load_mt5(mt5_module)
        self._filling = filling_mode

    def connect(self, login: int | None = None, password: str | None = None,
                server: str | None = None) -> None:
        kwargs = {}
        if login is not None:
            kwargs = {"login": login, "password": password, "server": server}
        if not self._mt5.initialize(**kwargs):
            raise GatewayError(f"MT5 initialize failed: {self._mt5.last_error()}")
        logger.info("Connected to MT5 terminal")

    def shutdown(self) -> None:
        self._mt5.shutdown()

    def snapshot(self, symbol: str, magic: int) -> MarketSnapshot:
        mt5 = self._mt5
        selectable = bool(mt5.symbol_select(symbol, True))
        info = mt5.symbol_info(symbol)
        tick = mt5.symbol_info_tick(symbol)
        account = mt5.account_info()
        if info is None or tick is None:
            raise GatewayError(f"{symbol}: no symbol info/tick ({mt5.last_error()})")

        positions = mt5.positions_get(symbol=symbol)
        if positions is None:
            raise GatewayError(f"{symbol}: positions_get failed ({mt5.last_error()})")
        return MarketSnapshot(
            symbol=symbol,
            bid=float(tick.bid),
            ask=float(tick.ask),
            spread_points=int(info.spread),
            balance=float(account.balance) if account is not None else None,
            free_margin=float(account.margin_free) if account is not None else None,
            spec=SymbolSpec(
                digits=int(info.digits),
                point=float(info.point),
                tick_size=float(info.trade_tick_size),
                tick_value=float(info.trade_tick_value),
                volume_min=float(info.volume_min),
                volume_max=float(info.volume_max),
                volume_step=float(info.volume_step),
                stops_level=int(info.trade_stops_level or 0),
                freeze_level=int(info.trade_freeze_level or 0),
                trade_mode=TradeMode(int(info.trade_mode)),
                contract_size=float(info.trade_contract_size),
            ),
            selectable=selectable,
            positions=tuple(
                OpenPosition(
                    ticket=int(p.ticket),
                    symbol=p.symbol,
                    magic=int(p.magic),
                    direction=(TradeDirection.LONG if p.type == mt5.POSITION_TYPE_BUY
                               else TradeDirection.SHORT),
                    volume=float(p.volume),
                    entry_price=float(p.price_open),
                    stop_price=float(p.sl),
                    target_price=float(p.tp),
                )
                for p in positions
            ),
            taken_at_ns=time.time_ns(),
        )

    def estimate_margin(
        self,
        symbol: str,
        direction: TradeDirection,
        size: float,
        price: float,
    ) -> float | None:
        margin = self._mt5.order_calc_margin(self._order_type(direction), symbol, size, price)
        if margin is None:
            logger.warning("%s: order_calc_margin failed (%s)", symbol, self._mt5.last_error())
            return None
        return float(margin)

    def submit(self, intent: TradeIntent, deviation_points: int = 10) -> SubmitResult:
        mt5 = self._mt5
        request = {
            "action": mt5.TRADE_ACTION_DEAL,
            "symbol": intent.symbol,
            "volume": intent.size,
            "type": self._order_type(intent.direction),
            "price": intent.entry_price,
            "sl": intent.stop_price,
            "tp": intent.target_price,
            "deviation": deviation_points,
            "magic": intent.magic,
            "comment": intent.comment,
            "type_time": mt5.ORDER_TIME_GTC,
            "type_filling": self._filling if self._filling is not None else mt5.ORDER_FILLING_IOC,
        }
        result = mt5.order_send(request)
        if result is None:
            code, message = mt5.last_error()
            return SubmitResult(success=False, retcode=code, reason=str(message))
        success = result.retcode == mt5.TRADE_RETCODE_DONE
        return SubmitResult(
            success=success,
            retcode=int(result.retcode),
            reason=str(result.comment),
            ticket=int(result.order) if success else None,
        )

    def _order_type(self, direction: TradeDirection) -> int:
        if direction == TradeDirection.LONG:
            return self._mt5.ORDER_TYPE_BUY
        return self._mt5.ORDER_TYPE_SELL
