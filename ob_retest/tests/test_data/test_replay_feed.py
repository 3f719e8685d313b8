"""Tests for ReplayFeed: cursor visibility, indicators by shift, CSV loading."""

from datetime import datetime, timezone

import numpy as np
import pytest

from ob_retest.core.errors import DataUnavailableError
from ob_retest.core.types import Indicator
from ob_retest.data.replay_feed import ReplayFeed, load_csv_bars


@pytest.fixture
def feed(bars_factory):
    bars = bars_factory(30)
    bars["close"] = 1.1000 + np.arange(30) * 0.0001
    bars["volume"] = np.arange(1, 31, dtype=np.float64)
    return ReplayFeed({"EURUSD": bars}, timeframe="M15", start=20)


class TestReplayFeed:
    def test_only_history_up_to_cursor_visible(self, feed):
        bars = feed.get_bars("EURUSD", "M15", 100)
        assert len(bars) == 21
        assert bars["volume"][-1] == pytest.approx(21.0)

    def test_get_bars_count(self, feed):
        assert len(feed.get_bars("EURUSD", "M15", 5)) == 5

    def test_advance_until_end(self, feed):
        steps = 0
        while feed.advance():
            steps += 1
        assert steps == 9
        assert feed.cursor == 29
        assert not feed.advance()

    def test_clock_follows_cursor(self, feed):
        assert feed.now() == datetime(2024, 1, 10, 13, 0, tzinfo=timezone.utc)
        feed.advance()
        assert feed.now() == datetime(2024, 1, 10, 13, 15, tzinfo=timezone.utc)

    def test_quote_from_close(self, feed):
        bid, ask = feed.quote("EURUSD", spread_points=10, point=0.00001)
        assert bid == pytest.approx(1.1020)
        assert ask == pytest.approx(1.1021)

    def test_indicator_by_shift(self, feed):
        # volume SMA(3) at cursor 20 = mean(19, 20, 21)
        assert feed.get_indicator("EURUSD", "M15", Indicator.VOLUME_MA, 3, 0) == pytest.approx(20.0)
        assert feed.get_indicator("EURUSD", "M15", Indicator.VOLUME_MA, 3, 5) == pytest.approx(15.0)

    def test_indicator_without_history(self, feed):
        with pytest.raises(DataUnavailableError):
            feed.get_indicator("EURUSD", "M15", Indicator.VOLUME_MA, 3, 19)

    def test_timeframe_mismatch(self, feed):
        with pytest.raises(DataUnavailableError):
            feed.get_bars("EURUSD", "H1", 10)

    def test_unknown_symbol(self, feed):
        with pytest.raises(DataUnavailableError):
            feed.get_bars("GBPUSD", "M15", 10)

    def test_symbols_of_different_length_rejected(self, bars_factory):
        with pytest.raises(ValueError, match="not aligned"):
            ReplayFeed({"EURUSD": bars_factory(30), "GBPUSD": bars_factory(25)}, timeframe="M15")

    def test_symbols_with_shifted_times_rejected(self, bars_factory):
        gbp = bars_factory(30)
        gbp["timestamp_ns"] += 900 * 1_000_000_000
        with pytest.raises(ValueError, match="timestamps differ"):
            ReplayFeed({"EURUSD": bars_factory(30), "GBPUSD": gbp}, timeframe="M15")

    def test_aligned_symbols_share_cursor(self, bars_factory):
        gbp = bars_factory(30)
        gbp["close"] = 1.2700
        feed = ReplayFeed({"EURUSD": bars_factory(30), "GBPUSD": gbp}, timeframe="M15", start=29)
        assert feed.length == 30
        assert feed.current_bar("GBPUSD")["close"] == pytest.approx(1.2700)
        assert feed.current_bar("EURUSD")["timestamp_ns"] == feed.current_bar("GBPUSD")["timestamp_ns"]
        assert not feed.advance()


class TestLoadCsvBars:
    def test_mt5_export(self, tmp_path):
        path = tmp_path / "EURUSD_M15.csv"
        path.write_text(
            "time,open,high,low,close,tick_volume\n"
            "2024-01-10 08:15:00,1.1001,1.1006,1.0996,1.1002,120\n"
            "2024-01-10 08:00:00,1.1000,1.1005,1.0995,1.1001,100\n"
        )
        bars = load_csv_bars(path)
        assert len(bars) == 2
        assert bars["timestamp_ns"][0] == 1_704_873_600_000_000_000
        assert bars["volume"].tolist() == [100.0, 120.0]
        assert bars["close"][1] == pytest.approx(1.1002)

    def test_missing_columns(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("time,open,close\n2024-01-10 08:00:00,1.1,1.1\n")
        with pytest.raises(ValueError, match="missing columns"):
            load_csv_bars(path)

    def test_from_csv(self, tmp_path):
        path = tmp_path / "EURUSD.csv"
        path.write_text(
            "time,open,high,low,close,volume\n"
            "2024-01-10 08:00:00,1.1000,1.1005,1.0995,1.1001,100\n"
            "2024-01-10 08:15:00,1.1001,1.1006,1.0996,1.1002,120\n"
        )
        feed = ReplayFeed.from_csv({"EURUSD": path}, timeframe="M15")
        assert feed.length == 2
        assert feed.cursor == 0
