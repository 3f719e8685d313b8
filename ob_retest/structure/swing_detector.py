"""Swing Detector: local extremes over a fixed radius.

Arrays are chronological (oldest first). A bar at ``i`` is a swing low when no
bar within ``radius`` on either side has a strictly lower low; swing high is
the mirror on highs. Indices without ``radius`` bars on both sides are not
evaluable and report False.
"""

from __future__ import annotations

import numpy as np

DEFAULT_SWING_RADIUS = 3


def is_evaluable(length: int, i: int, radius: int = DEFAULT_SWING_RADIUS) -> bool:
    return radius <= i < length - radius


def _neighbours(values: np.ndarray, i: int, radius: int) -> np.ndarray:
    return np.concatenate((values[i - radius:i], values[i + 1:i + radius + 1]))


def is_swing_low(lows: np.ndarray, i: int, radius: int = DEFAULT_SWING_RADIUS) -> bool:
    if not is_evaluable(len(lows), i, radius):
        return False
    return bool(lows[i] <= np.min(_neighbours(lows, i, radius)))


def is_swing_high(highs: np.ndarray, i: int, radius: int = DEFAULT_SWING_RADIUS) -> bool:
    if not is_evaluable(len(highs), i, radius):
        return False
    return bool(highs[i] >= np.max(_neighbours(highs, i, radius)))
