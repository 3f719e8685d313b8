"""Port definitions for the engine's external collaborators."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

import numpy as np

from ob_retest.core.data_types import MarketSnapshot, SubmitResult, TradeIntent
from ob_retest.core.types import Indicator, TradeDirection


class MarketDataProvider(Protocol):
    def get_bars(self, symbol: str, timeframe: str, count: int) -> np.ndarray:
        """Return up to ``count`` bars (BAR_DTYPE, oldest first).

        Raises DataUnavailableError when no history can be read.
        """

    def get_indicator(
        self,
        symbol: str,
        timeframe: str,
        indicator: Indicator,
        period: int,
        shift: int,
    ) -> float:
        """Return one indicator sample ``shift`` bars back from the newest bar.

        Raises DataUnavailableError when the sample does not exist.
        """


class BrokerGateway(Protocol):
    def snapshot(self, symbol: str, magic: int) -> MarketSnapshot:
        """Capture quote, account, symbol constraints and open positions at once."""

    def estimate_margin(
        self,
        symbol: str,
        direction: TradeDirection,
        size: float,
        price: float,
    ) -> float | None:
        """Margin required for the order, or None if the broker cannot say."""

    def submit(self, intent: TradeIntent, deviation_points: int = 10) -> SubmitResult:
        """Send the order once. Never retried by the caller."""


class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current time (timezone-aware, UTC)."""
