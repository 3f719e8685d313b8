"""Core enums used across the order-block retest engine."""

from enum import Enum, auto


class TradeDirection(Enum):
    LONG = auto()   # bullish order block
    SHORT = auto()  # bearish order block


class Indicator(Enum):
    ATR = "atr"
    VOLUME_MA = "volume_ma"


class TradeMode(Enum):
    """Broker trading mode for a symbol (MT5 SYMBOL_TRADE_MODE_* values)."""

    DISABLED = 0
    LONG_ONLY = 1
    SHORT_ONLY = 2
    CLOSE_ONLY = 3
    FULL = 4


class RejectReason(Enum):
    SESSION_CLOSED = "session_closed"
    POSITION_OPEN = "position_open"
    SYMBOL_UNAVAILABLE = "symbol_unavailable"
    SPREAD_TOO_WIDE = "spread_too_wide"
    STOP_TOO_TIGHT = "stop_too_tight"
    BROKER_STOP_LEVEL = "broker_stop_level"
    MARGIN_UNAVAILABLE = "margin_unavailable"
    INSUFFICIENT_MARGIN = "insufficient_margin"
    TRADE_MODE_RESTRICTED = "trade_mode_restricted"


class PassOutcome(Enum):
    """Terminal state of one symbol's pass within a tick."""

    NO_BLOCK = "no_block"
    NOT_RETESTING = "not_retesting"
    REJECTED = "rejected"
    SUBMITTED = "submitted"
    SUBMIT_FAILED = "submit_failed"
    DATA_UNAVAILABLE = "data_unavailable"
    ERROR = "error"


# Bar timeframes understood by providers (MT5 naming).
TIMEFRAMES = ("M1", "M5", "M15", "M30", "H1", "H4", "D1")
