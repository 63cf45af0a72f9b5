"""
clickrank.client.autoclick — Auto-Clicker Loop
===============================================

While an auto-click power is active, feeds the aggregator one click value
every ``auto_click_interval_ms``.  The rate and click value come from the
latest :class:`~clickrank.services.notification_service.PowerSnapshot`; call
:meth:`AutoClicker.update` whenever a new snapshot arrives.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from clickrank.engine.powers import auto_click_interval_ms

if TYPE_CHECKING:
    from clickrank.client.aggregator import ClickAggregator

logger = logging.getLogger(__name__)


class AutoClicker:
    def __init__(self, aggregator: ClickAggregator) -> None:
        self.aggregator = aggregator
        self.rate = 0.0
        self.click_value = 1
        self._task: asyncio.Task | None = None

    @property
    def interval_ms(self) -> int | None:
        return auto_click_interval_ms(self.rate)

    @property
    def running(self) -> bool:
        return self._task is not None

    def update(self, rate: float, click_value: int = 1) -> None:
        """Apply a new rate; starts or stops the loop as needed."""
        self.rate = rate
        self.click_value = max(1, click_value)
        if self.interval_ms is None:
            self.stop()
        elif self._task is None:
            self._task = asyncio.get_running_loop().create_task(
                self._loop(), name="auto-click",
            )

    async def _loop(self) -> None:
        try:
            while True:
                interval = self.interval_ms
                if interval is None:
                    break
                await asyncio.sleep(interval / 1000)
                try:
                    self.aggregator.enqueue(self.click_value)
                except Exception:
                    logger.exception("Auto-click enqueue failed")
                    break
        finally:
            # A stop() + update() may already have replaced the handle.
            if self._task is asyncio.current_task():
                self._task = None

    def stop(self) -> None:
        if self._task:
            self._task.cancel()
            self._task = None
