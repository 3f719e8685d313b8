"""Session Gate: London / New York trading windows (UTC).

Tradable iff (New York enabled and 13 <= hour < 17) or
(London enabled and 8 <= hour < 12). No override: with both windows
disabled nothing is tradable.
"""

from __future__ import annotations

from datetime import datetime, timezone

NEW_YORK_WINDOW = (13, 17)
LONDON_WINDOW = (8, 12)


def _in_window(hour: int, window: tuple[int, int]) -> bool:
    start, end = window
    return start <= hour < end


def is_tradable(hour: int, new_york: bool, london: bool) -> bool:
    """Pure session check on a UTC hour."""
    return (new_york and _in_window(hour, NEW_YORK_WINDOW)) or (
        london and _in_window(hour, LONDON_WINDOW)
    )


class SessionGate:
    """Wraps is_tradable() with the configured window enables."""

    def __init__(self, new_york: bool = True, london: bool = True) -> None:
        self._new_york = new_york
        self._london = london

    def is_open(self, now: datetime) -> bool:
        """Naive datetimes are taken to be UTC already."""
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc)
        return is_tradable(now.hour, self._new_york, self._london)
