"""
clickrank.client.speed — Click-Speed Meter
===========================================

Sliding-window count of manual clicks.  The best rate is reported through a
:class:`~clickrank.client.transport.ClickTransport` (``POST /api/click-speed``
over HTTP) where it feeds ``click_speed`` milestones.
"""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable
from typing import TYPE_CHECKING

from clickrank.constants import CLICK_SPEED_WINDOW_SECONDS

if TYPE_CHECKING:
    from clickrank.client.transport import ClickTransport


class ClickSpeedMeter:
    """Clicks counted within the last ``window`` seconds."""

    def __init__(
        self,
        window: float = CLICK_SPEED_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window = window
        self._clock = clock
        self._stamps: deque[float] = deque()
        self.best = 0
        self._reported = 0

    def _prune(self, now: float) -> None:
        cutoff = now - self.window
        while self._stamps and self._stamps[0] <= cutoff:
            self._stamps.popleft()

    def record(self, count: int = 1) -> int:
        """Record *count* clicks now; return the current rate."""
        now = self._clock()
        self._stamps.extend([now] * count)
        self._prune(now)
        rate = len(self._stamps)
        self.best = max(self.best, rate)
        return rate

    def rate(self) -> int:
        self._prune(self._clock())
        return len(self._stamps)

    async def report(self, transport: ClickTransport) -> list[int]:
        """Submit :attr:`best` when it improved since the last report.

        Returns the achievement ids the submission granted.  The reported
        value only advances once the transport accepted it.
        """
        best = self.best
        if best <= self._reported:
            return []
        granted = await transport.submit_click_speed(best)
        self._reported = best
        return granted
