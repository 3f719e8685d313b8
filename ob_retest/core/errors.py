"""Typed errors for the order-block retest engine."""


class EngineError(Exception):
    """Base class for engine errors."""


class DataUnavailableError(EngineError):
    """Raised when bars or an indicator sample cannot be supplied.

    Distinct from a legitimate zero value: providers raise this instead of
    returning 0.0 or NaN.
    """


class GatewayError(EngineError):
    """Raised when the broker gateway cannot produce account/symbol state."""


class ConfigError(EngineError):
    """Raised when configuration fails validation at load time."""
