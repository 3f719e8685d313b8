"""Tests for EngineRunner wiring from configuration."""

import pytest

from ob_retest.config.config_manager import DEFAULT_CONFIG_PATH, ConfigManager
from ob_retest.execution.engine_runner import EngineRunner
from ob_retest.execution.paper_gateway import PaperGateway
from ob_retest.execution.tick_loop import TickLoop


@pytest.fixture
def config():
    cm = ConfigManager()
    cm.load(DEFAULT_CONFIG_PATH)
    return cm


class TestEngineRunner:
    def test_params_frozen_from_config(self, config):
        runner = EngineRunner(config)
        assert runner.params.timeframe == "M15"
        assert runner.params.magic == 240601
        assert runner.symbols == ["EURUSD", "GBPUSD", "USDJPY", "XAUUSD"]

    def test_build_orchestrator_covers_universe(self, config, market_data, fx_spec):
        runner = EngineRunner(config)
        gateway = PaperGateway(balance=10_000.0, specs={"EURUSD": fx_spec})
        orch = runner.build(market_data, gateway)
        assert orch.symbols == runner.symbols

    def test_build_tick_loop_interval(self, market_data, fx_spec):
        cm = ConfigManager()
        cm.load(DEFAULT_CONFIG_PATH, profile="swing")
        runner = EngineRunner(cm)
        loop = runner.build_tick_loop(market_data, PaperGateway(10_000.0, {"EURUSD": fx_spec}))
        assert isinstance(loop, TickLoop)
        assert loop._interval == pytest.approx(5.0)
        assert runner.params.broker_stop_adjustment is False

    def test_requires_loaded_config(self):
        with pytest.raises(RuntimeError):
            EngineRunner(ConfigManager())
