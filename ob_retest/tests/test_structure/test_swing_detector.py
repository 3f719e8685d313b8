"""Tests for swing detection over a fixed radius."""

import numpy as np

from ob_retest.structure.swing_detector import is_evaluable, is_swing_high, is_swing_low


class TestSwingDetector:
    def test_strict_low_is_swing_low(self):
        lows = np.array([5.0, 4.0, 3.0, 1.0, 3.0, 4.0, 5.0])
        assert is_swing_low(lows, 3, radius=3)
        assert not is_swing_high(lows, 3, radius=3)

    def test_equal_neighbour_still_swing_low(self):
        lows = np.array([2.0, 2.0, 2.0, 1.0, 1.0, 2.0, 2.0, 2.0])
        assert is_swing_low(lows, 3, radius=3)
        assert is_swing_low(lows, 4, radius=3)

    def test_lower_neighbour_breaks_swing_low(self):
        lows = np.array([5.0, 0.5, 3.0, 1.0, 3.0, 4.0, 5.0])
        assert not is_swing_low(lows, 3, radius=3)

    def test_swing_high_mirror(self):
        highs = np.array([1.0, 2.0, 3.0, 9.0, 3.0, 2.0, 1.0])
        assert is_swing_high(highs, 3, radius=3)
        assert not is_swing_low(highs, 3, radius=3)

    def test_edges_not_evaluable(self):
        lows = np.array([0.1, 5.0, 5.0, 5.0, 5.0, 5.0, 0.1])
        assert not is_swing_low(lows, 0, radius=3)
        assert not is_swing_low(lows, 6, radius=3)

    def test_is_evaluable_bounds(self):
        assert not is_evaluable(10, 2, radius=3)
        assert is_evaluable(10, 3, radius=3)
        assert is_evaluable(10, 6, radius=3)
        assert not is_evaluable(10, 7, radius=3)

    def test_strict_extreme_is_never_both(self):
        values = np.array([2.0, 2.0, 2.0, 1.0, 2.0, 2.0, 2.0])
        assert is_swing_low(values, 3) != is_swing_high(values, 3)
