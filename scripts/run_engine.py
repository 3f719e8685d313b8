#!/usr/bin/env python3
"""Run the order-block retest engine.

Usage:
    # Live against a running MetaTrader 5 terminal
    python scripts/run_engine.py --profile intraday

    # Dry-run replay of recorded bars against the paper gateway
    python scripts/run_engine.py --profile swing \\
        --replay EURUSD=data/EURUSD_H1.csv --replay GBPUSD=data/GBPUSD_H1.csv
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections import Counter
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from ob_retest.config.config_manager import DEFAULT_CONFIG_PATH, ConfigManager
from ob_retest.core.data_types import SymbolSpec
from ob_retest.core.errors import ConfigError, GatewayError
from ob_retest.data.replay_feed import ReplayFeed
from ob_retest.execution.engine_runner import EngineRunner
from ob_retest.execution.paper_gateway import PaperGateway


def parse_args():
    parser = argparse.ArgumentParser(description="Order-block retest engine")
    parser.add_argument("--config", type=str, default=str(DEFAULT_CONFIG_PATH),
                        help="Path to base config TOML")
    parser.add_argument("--profile", type=str, default=None,
                        help="Profile override (intraday, swing)")
    parser.add_argument("--replay", action="append", default=[], metavar="SYMBOL=CSV",
                        help="Replay recorded bars for SYMBOL from CSV (repeatable)")
    parser.add_argument("--balance", type=float, default=10_000.0,
                        help="Paper account balance for replay mode")
    parser.add_argument("--spread", type=int, default=10,
                        help="Replay spread in points")
    parser.add_argument("--digits", type=int, default=5,
                        help="Replay price digits (point = 10^-digits)")
    parser.add_argument("--max-ticks", type=int, default=None,
                        help="Stop the live loop after N ticks")
    parser.add_argument("--verbose", action="store_true",
                        help="Enable debug logging")
    return parser.parse_args()


def parse_replay(entries: list[str]) -> dict[str, Path]:
    paths = {}
    for entry in entries:
        symbol, sep, path = entry.partition("=")
        if not sep or not symbol or not path:
            raise SystemExit(f"--replay expects SYMBOL=CSV, got {entry!r}")
        paths[symbol] = Path(path)
    return paths


def replay_spec(digits: int) -> SymbolSpec:
    point = 10.0 ** -digits
    return SymbolSpec(
        digits=digits,
        point=point,
        tick_size=point,
        tick_value=1.0,
        volume_min=0.01,
        volume_max=100.0,
        volume_step=0.01,
    )


def run_replay(runner: EngineRunner, args) -> int:
    paths = parse_replay(args.replay)
    missing = [s for s in runner.symbols if s not in paths]
    if missing:
        logging.error("No replay data for configured symbols: %s", ", ".join(missing))
        return 1

    try:
        feed = ReplayFeed.from_csv(paths, timeframe=runner.params.timeframe)
    except ValueError as exc:
        logging.error("Cannot build replay: %s", exc)
        return 1
    spec = replay_spec(args.digits)
    gateway = PaperGateway(balance=args.balance, specs={s: spec for s in runner.symbols})
    results = runner.run_replay(feed, gateway, spread_points=args.spread)

    outcomes = Counter(r.outcome.value for r in results)
    for outcome, count in sorted(outcomes.items()):
        print(f"{outcome:>18}: {count}")
    print(f"{'final balance':>18}: {gateway.balance:.2f}")
    return 0


def run_live(runner: EngineRunner, args) -> int:
    from ob_retest.execution.mt5_gateway import Mt5Gateway, Mt5MarketData

    gateway = Mt5Gateway()
    try:
        gateway.connect()
    except GatewayError as exc:
        logging.error("%s", exc)
        return 1

    loop = runner.build_tick_loop(Mt5MarketData(), gateway)
    try:
        asyncio.run(loop.run(max_ticks=args.max_ticks))
    except KeyboardInterrupt:
        logging.info("Interrupted")
    finally:
        gateway.shutdown()
    return 0


def main():
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    config = ConfigManager()
    try:
        config.load(args.config, profile=args.profile)
    except ConfigError as exc:
        logging.error("%s", exc)
        return 1

    runner = EngineRunner(config)
    if args.replay:
        return run_replay(runner, args)
    return run_live(runner, args)


if __name__ == "__main__":
    sys.exit(main())
