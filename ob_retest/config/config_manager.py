"""ConfigManager: 2-layer TOML config with deep merge and dot-notation access.

Merge order (last wins): ob_base.toml -> profiles/profile_<name>.toml

Loaded once at startup; the engine only ever sees the frozen
RiskParameters built from it.
"""

from __future__ import annotations

import copy
import sys
from pathlib import Path
from typing import Any

from ob_retest.core.data_types import RiskParameters
from ob_retest.core.errors import ConfigError
from ob_retest.core.types import TIMEFRAMES

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

DEFAULT_CONFIG_PATH = Path(__file__).parent / "ob_base.toml"

# dotted key -> (type, minimum or None). Booleans are checked separately
# because bool is a subclass of int.
_NUMERIC_RULES: dict[str, tuple[type, float | None]] = {
    "risk.risk_percent": (float, 0.0),
    "risk.rr_ratio": (float, 0.0),
    "risk.atr_stop_multiplier": (float, 0.0),
    "risk.max_spread_points": (int, 0),
    "risk.fallback_lot": (float, 0.0),
    "scanner.lookback": (int, 1),
    "scanner.swing_radius": (int, 1),
    "scanner.volume_spike_mult": (float, 0.0),
    "indicators.atr_period": (int, 1),
    "indicators.volume_ma_period": (int, 1),
    "execution.magic": (int, 0),
    "execution.deviation_points": (int, 0),
    "execution.tick_interval_seconds": (float, 0.0),
}
_BOOL_KEYS = (
    "session.new_york",
    "session.london",
    "execution.broker_stop_adjustment",
    "system.live_mode",
)


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base (last wins). Returns new dict."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _get_nested(d: dict, dotted_key: str, default: Any = None) -> Any:
    """Get a value from a nested dict using dot notation."""
    current = d
    for part in dotted_key.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return default
    return current


class ConfigManager:
    """Loads, merges and validates the engine configuration."""

    def __init__(self) -> None:
        self._config: dict[str, Any] = {}
        self._base_path: Path | None = None
        self._profile: str | None = None

    def load(
        self,
        base_path: str | Path = DEFAULT_CONFIG_PATH,
        profile: str | None = None,
    ) -> None:
        """Load and merge config layers, then validate.

        Args:
            base_path: Path to ob_base.toml
            profile: Profile name (e.g. 'swing'); loads profiles/profile_{name}.toml

        Raises ConfigError if the profile is missing or validation fails.
        """
        self._base_path = Path(base_path)
        self._profile = profile

        config = self._load_toml(self._base_path)
        if profile:
            profile_path = self._base_path.parent / "profiles" / f"profile_{profile}.toml"
            if not profile_path.exists():
                raise ConfigError(f"Unknown profile '{profile}' ({profile_path})")
            config = _deep_merge(config, self._load_toml(profile_path))

        errors = self.validate(config)
        if errors:
            raise ConfigError("Invalid configuration: " + "; ".join(errors))
        self._config = config

    def _load_toml(self, path: Path) -> dict[str, Any]:
        with open(path, "rb") as f:
            return tomllib.load(f)

    def get(self, dotted_key: str, default: Any = None) -> Any:
        """Get config value using dot notation. E.g. get('risk.rr_ratio')."""
        return _get_nested(self._config, dotted_key, default)

    @staticmethod
    def validate(config: dict[str, Any]) -> list[str]:
        """Return list of validation errors (empty = valid)."""
        errors = []
        for key, (kind, minimum) in _NUMERIC_RULES.items():
            value = _get_nested(config, key)
            if value is None:
                errors.append(f"{key}: missing")
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                errors.append(f"{key}: expected {kind.__name__}, got {type(value).__name__}")
                continue
            if kind is int and not isinstance(value, int):
                errors.append(f"{key}: expected int, got float")
                continue
            if minimum is not None and value < minimum:
                errors.append(f"{key}: {value} < {minimum}")

        # the scan window [radius + 1, lookback] must hold at least one bar
        lookback = _get_nested(config, "scanner.lookback")
        radius = _get_nested(config, "scanner.swing_radius")
        if (
            type(lookback) is int and type(radius) is int
            and radius >= 1 and lookback <= radius
        ):
            errors.append(
                f"scanner.lookback: {lookback} must exceed scanner.swing_radius ({radius})"
            )

        for key in _BOOL_KEYS:
            value = _get_nested(config, key, False)
            if not isinstance(value, bool):
                errors.append(f"{key}: expected bool, got {type(value).__name__}")

        timeframe = _get_nested(config, "execution.timeframe")
        if timeframe not in TIMEFRAMES:
            errors.append(f"execution.timeframe: {timeframe!r} not in {TIMEFRAMES}")

        symbols = _get_nested(config, "instruments.symbols")
        if not isinstance(symbols, list) or not symbols:
            errors.append("instruments.symbols: expected non-empty list")
        elif not all(isinstance(s, str) and s for s in symbols):
            errors.append("instruments.symbols: entries must be non-empty strings")
        elif len(set(symbols)) != len(symbols):
            errors.append("instruments.symbols: duplicate symbols")
        return errors

    def risk_parameters(self) -> RiskParameters:
        """Freeze the loaded values into the runtime parameter set."""
        if not self._config:
            raise RuntimeError("ConfigManager not loaded. Call load() first.")
        return RiskParameters(
            risk_percent=float(self.get("risk.risk_percent")),
            rr_ratio=float(self.get("risk.rr_ratio")),
            atr_stop_multiplier=float(self.get("risk.atr_stop_multiplier")),
            lookback=self.get("scanner.lookback"),
            max_spread_points=self.get("risk.max_spread_points"),
            magic=self.get("execution.magic"),
            session_new_york=self.get("session.new_york"),
            session_london=self.get("session.london"),
            timeframe=self.get("execution.timeframe"),
            atr_period=self.get("indicators.atr_period"),
            volume_ma_period=self.get("indicators.volume_ma_period"),
            swing_radius=self.get("scanner.swing_radius"),
            volume_spike_mult=float(self.get("scanner.volume_spike_mult")),
            fallback_lot=float(self.get("risk.fallback_lot")),
            broker_stop_adjustment=self.get("execution.broker_stop_adjustment"),
            deviation_points=self.get("execution.deviation_points"),
        )

    def symbols(self) -> list[str]:
        """Instrument universe in file order."""
        return list(self.get("instruments.symbols", []))

    def reload(self) -> None:
        """Re-read config from disk. Only allowed when live_mode=false."""
        if self.get("system.live_mode", False):
            raise RuntimeError("Hot-reload is disabled in live mode.")
        if self._base_path is not None:
            self.load(self._base_path, self._profile)

    @property
    def profile(self) -> str | None:
        return self._profile

    @property
    def raw(self) -> dict[str, Any]:
        """Access the raw merged config dict."""
        return self._config
