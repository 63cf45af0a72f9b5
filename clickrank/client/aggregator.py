"""
clickrank.client.aggregator — Optimistic Click Aggregator
==========================================================

Clicks show up immediately in :attr:`ClickAggregator.visible_total` and are
written to the Ledger in batches.

How a flush works:
    1. Take a snapshot ``n`` of ``pending`` and send the *full* total
       ``confirmed_total + n`` (never a delta, so a retried request cannot
       double-count).
    2. On success ``confirmed_total`` becomes the returned value and ``n``
       is subtracted from ``pending``.  Clicks enqueued meanwhile stay
       pending.
    3. If clicks are still pending, the next flush is scheduled after a
       growing delay (100 ms → ×2.5 → capped at 5 s); an empty queue resets
       the delay.

Only one flush is ever in flight.  Failure handling:

* ``AuthenticationError`` — refresh credentials once, retry once, then
  surface.
* ``ValidationError`` — the Ledger is already ahead (another tab).  Resync
  ``confirmed_total`` from the Ledger; pending clicks are kept.
* ``TransientStoreError`` and anything else — surface; pending clicks are
  kept and retried by the next scheduled flush.

Failures are reported through ``on_failure`` and never lose a click.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from clickrank.constants import FLUSH_CAP_SECONDS, FLUSH_GROWTH, FLUSH_SEED_SECONDS
from clickrank.errors import AuthenticationError, ValidationError

if TYPE_CHECKING:
    from clickrank.client.transport import ClickTransport

logger = logging.getLogger(__name__)


def next_backoff_delay(
    previous: float,
    seed: float = FLUSH_SEED_SECONDS,
    cap: float = FLUSH_CAP_SECONDS,
) -> float:
    """Delay before the next flush given the previous one (0 → *seed*)."""
    if previous <= 0:
        return seed
    return min(cap, previous * FLUSH_GROWTH + previous)


class ClickAggregator:
    """Single-flight batching of clicks for one user.

    Must be used from a running event loop.

    Usage::

        agg = ClickAggregator(transport, confirmed_total=await transport.fetch_total())
        agg.enqueue(1)              # UI shows agg.visible_total right away
        await agg.close()           # final flush on shutdown
    """

    def __init__(
        self,
        transport: ClickTransport,
        *,
        confirmed_total: int = 0,
        refresh_credentials: Callable[[], Awaitable[None] | None] | None = None,
        seed_delay: float = FLUSH_SEED_SECONDS,
        max_delay: float = FLUSH_CAP_SECONDS,
        on_confirmed: Callable[[int], None] | None = None,
        on_failure: Callable[[Exception], None] | None = None,
    ) -> None:
        self.transport = transport
        self.confirmed_total = confirmed_total
        self.pending = 0
        self.seed_delay = seed_delay
        self.max_delay = max_delay
        self._refresh_credentials = refresh_credentials
        self._on_confirmed = on_confirmed
        self._on_failure = on_failure

        self._delay = 0.0
        self._inflight: asyncio.Task | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._closed = False

    # -------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------
    @property
    def visible_total(self) -> int:
        return self.confirmed_total + self.pending

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None

    @property
    def scheduled(self) -> bool:
        return self._timer is not None

    @property
    def current_delay(self) -> float:
        return self._delay

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------
    def enqueue(self, amount: int = 1) -> None:
        """Add *amount* clicks; start a flush if none is running or due."""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("Click amount must be a positive integer", amount=amount)
        if self._closed:
            raise ValidationError("Aggregator is closed")

        self.pending += amount
        if self._inflight is None and self._timer is None:
            self._start_flush()

    async def flush(self) -> int:
        """Flush now, skipping any scheduled delay.  Returns the confirmed total."""
        self._cancel_timer()
        if self._inflight is not None:
            await asyncio.shield(self._inflight)
            # The joined flush may have scheduled a retry; we run it now instead
            self._cancel_timer()
        if self.pending > 0 and self._inflight is None:
            await asyncio.shield(self._start_flush())
        return self.confirmed_total

    async def close(self) -> int:
        """Cancel the timer and make a final flush attempt."""
        self._closed = True
        await self.flush()
        self._cancel_timer()
        return self.confirmed_total

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _start_flush(self) -> asyncio.Task:
        self._timer = None
        if self._inflight is None:
            self._inflight = asyncio.get_running_loop().create_task(
                self._run_flush(), name="click-flush",
            )
        return self._inflight

    async def _run_flush(self) -> None:
        try:
            await self._flush_once()
        finally:
            self._inflight = None
            self._schedule_next()

    def _schedule_next(self) -> None:
        if self.pending == 0:
            self._delay = 0.0
            return
        if self._closed:
            return
        self._delay = next_backoff_delay(self._delay, self.seed_delay, self.max_delay)
        logger.debug("Next flush in %.2fs (%d pending)", self._delay, self.pending)
        self._timer = asyncio.get_running_loop().call_later(
            self._delay, self._start_flush,
        )

    async def _submit(self, new_total: int) -> int:
        try:
            return await self.transport.submit_total(new_total)
        except AuthenticationError:
            if self._refresh_credentials is None:
                raise
            logger.info("Flush rejected as unauthenticated; refreshing credentials")
            outcome = self._refresh_credentials()
            if inspect.isawaitable(outcome):
                await outcome
            return await self.transport.submit_total(new_total)

    async def _flush_once(self) -> None:
        amount = self.pending
        if amount == 0:
            return
        target = self.confirmed_total + amount

        try:
            confirmed = await self._submit(target)
        except ValidationError as exc:
            logger.warning("Flush of %d rejected, resyncing: %s", target, exc)
            await self._resync(exc)
            self._report(exc)
            return
        except Exception as exc:
            logger.warning("Flush of %d failed, %d clicks kept: %s", target, amount, exc)
            self._report(exc)
            return

        self.confirmed_total = max(self.confirmed_total, confirmed)
        self.pending -= amount
        logger.debug("Flushed %d clicks; confirmed total %d", amount, self.confirmed_total)
        if self._on_confirmed is not None:
            self._on_confirmed(self.confirmed_total)

    async def _resync(self, exc: ValidationError) -> None:
        try:
            self.confirmed_total = await self.transport.fetch_total()
        except Exception as fetch_exc:
            if exc.current_total is not None:
                self.confirmed_total = exc.current_total
            logger.warning("Resync fetch failed: %s", fetch_exc)

    def _report(self, exc: Exception) -> None:
        if self._on_failure is None:
            return
        try:
            self._on_failure(exc)
        except Exception:
            logger.exception("on_failure callback raised")
