"""Timer-driven tick loop.

Each tick runs one full orchestrator pass. The next pass never starts before
the previous one returned: the pass is awaited, then the loop sleeps.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from datetime import datetime, timezone

from ob_retest.core.data_types import PassResult
from ob_retest.core.ports import Clock
from ob_retest.execution.orchestrator import ExecutionOrchestrator

logger = logging.getLogger(__name__)


class UtcClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class TickLoop:
    def __init__(
        self,
        orchestrator: ExecutionOrchestrator,
        clock: Clock | None = None,
        interval_seconds: float = 1.0,
    ) -> None:
        self._orchestrator = orchestrator
        self._clock = clock or UtcClock()
        self._interval = interval_seconds
        self._running = False
        self._tick_count = 0

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_once(self) -> list[PassResult]:
        now = self._clock.now()
        results = self._orchestrator.run_tick(now)
        self._tick_count += 1
        summary = Counter(r.outcome.value for r in results)
        logger.debug("Tick %d @ %s: %s", self._tick_count, now.isoformat(), dict(summary))
        return results

    async def run(self, max_ticks: int | None = None) -> None:
        """Run until stop() is called or max_ticks passes have completed."""
        self._running = True
        logger.info(
            "Tick loop started: %d symbols, interval %.1fs",
            len(self._orchestrator.symbols), self._interval,
        )
        try:
            while self._running:
                await self.run_once()
                if max_ticks is not None and self._tick_count >= max_ticks:
                    break
                await asyncio.sleep(self._interval)
        finally:
            self._running = False
            logger.info("Tick loop stopped after %d ticks", self._tick_count)

    def stop(self) -> None:
        """Stop after the current pass completes."""
        self._running = False
