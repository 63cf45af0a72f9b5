"""
clickrank.services.reconciliation_service — Power Cache Reconciliation
=======================================================================

The client keeps a cached view of its active powers so the click value can
be computed without a round trip.  That view drifts: a power expires, a grant
lands from another tab, a write is lost.  The monitor periodically compares
the cache with the Ledger and repairs both sides.

How it works:
    1. Read the user's power instances with one ``list_powers`` query.
    2. :func:`reconcile` (pure) decides, per power id:

       ========================  =================================  =========================
       cache                     Ledger                             action
       ========================  =================================  =========================
       active X                  missing / expired                  drop X from the cache
       active X                  inactive, not expired              repair write: activate X
       lacks X / other level     active X                           copy the Ledger's X
       agree                     agree                              nothing
       ========================  =================================  =========================

    3. Repairs are conditional on the version read in step 1, so they never
       clobber a concurrent change.  A failed repair is logged and retried on
       the next cycle.
    4. The cache contents are replaced with the reconciled view.

Only ids, active flags and levels are compared, never timestamps.  A second
pass right after a successful one finds nothing to do.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from clickrank.constants import RECONCILE_INTERVAL_SECONDS
from clickrank.database.engine import run_db
from clickrank.database.models import RewardKind
from clickrank.engine.powers import is_expired, utcnow
from clickrank.engine.records import PowerInstance, RewardDefinition
from clickrank.errors import ConflictError, NotFoundError, TransientStoreError

if TYPE_CHECKING:
    from clickrank.engine.cache import CatalogCache
    from clickrank.services.ledger import Ledger

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Cached view
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class CachedPower:
    power_id: int
    is_active: bool = True
    level: int = 1


class PowerCache:
    """Client-side view of the active powers, keyed by power id.

    Owned by whoever constructs it and handed to the monitor explicitly.
    """

    def __init__(self, entries: Iterable[CachedPower] = ()) -> None:
        self._lock = threading.Lock()
        self._entries: dict[int, CachedPower] = {e.power_id: e for e in entries}

    def snapshot(self) -> dict[int, CachedPower]:
        with self._lock:
            return dict(self._entries)

    def replace(self, view: Mapping[int, CachedPower]) -> None:
        with self._lock:
            self._entries = dict(view)

    def put(self, entry: CachedPower) -> None:
        with self._lock:
            self._entries[entry.power_id] = entry

    def discard(self, power_id: int) -> None:
        with self._lock:
            self._entries.pop(power_id, None)

    def get(self, power_id: int) -> CachedPower | None:
        with self._lock:
            return self._entries.get(power_id)

    def __contains__(self, power_id: object) -> bool:
        with self._lock:
            return power_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# ---------------------------------------------------------------------------
# Pure decision
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RepairWrite:
    """Conditional write that brings the Ledger in line with the cache."""

    power_id: int
    patch: dict
    expected_version: int


@dataclass
class ReconcileResult:
    view: dict[int, CachedPower] = field(default_factory=dict)
    repairs: list[RepairWrite] = field(default_factory=list)
    changed: bool = False


def _expired(
    instance: PowerInstance,
    definitions: Mapping[int, RewardDefinition],
    now: datetime,
) -> bool:
    definition = definitions.get(instance.power_id)
    if definition is not None:
        return is_expired(instance, definition, now)
    return instance.expires_at is not None and instance.expires_at < now


def reconcile(
    cached: Mapping[int, CachedPower],
    authoritative: Iterable[PowerInstance],
    now: datetime,
    definitions: Mapping[int, RewardDefinition] | None = None,
) -> ReconcileResult:
    """Compute the reconciled cache view and the repair writes."""
    definitions = definitions or {}
    by_id = {p.power_id: p for p in authoritative}
    result = ReconcileResult()

    for power_id, instance in by_id.items():
        if _expired(instance, definitions, now):
            continue
        entry = cached.get(power_id)
        if instance.is_active:
            result.view[power_id] = CachedPower(power_id, True, instance.level)
        elif entry is not None and entry.is_active:
            result.repairs.append(
                RepairWrite(power_id, {"is_active": True}, instance.version)
            )
            result.view[power_id] = CachedPower(power_id, True, instance.level)

    # Entries absent from result.view (missing, expired, or never active) are dropped
    result.changed = result.view != dict(cached)
    return result


# ---------------------------------------------------------------------------
# Monitor
# ---------------------------------------------------------------------------
class ReconciliationMonitor:
    """Runs :func:`reconcile` for one user every ``interval`` seconds.

    ``run_once`` is synchronous (Ledger I/O); the background loop and
    :meth:`trigger` ship it to a worker thread with ``run_db``.
    """

    def __init__(
        self,
        ledger: Ledger,
        user_id: str,
        cache: PowerCache,
        interval: float = RECONCILE_INTERVAL_SECONDS,
        catalog: CatalogCache | None = None,
    ) -> None:
        self.ledger = ledger
        self.user_id = user_id
        self.cache = cache
        self.interval = interval
        self.catalog = catalog
        self._task: asyncio.Task | None = None

    def _definitions(self) -> dict[int, RewardDefinition]:
        if self.catalog is None:
            return {}
        return {d.id: d for d in self.catalog.definitions(RewardKind.POWER)}

    def run_once(self, now: datetime | None = None) -> ReconcileResult:
        """One reconciliation pass.  Never raises on store trouble."""
        try:
            authoritative = self.ledger.list_powers(self.user_id)
        except TransientStoreError as exc:
            logger.warning("Reconciliation skipped for user=%s: %s", self.user_id, exc)
            return ReconcileResult(view=self.cache.snapshot())

        result = reconcile(
            self.cache.snapshot(), authoritative, now or utcnow(), self._definitions(),
        )

        for repair in result.repairs:
            try:
                self.ledger.insert_or_update_power(
                    self.user_id, repair.power_id, repair.patch,
                    expected_version=repair.expected_version,
                )
                logger.info(
                    "Reconciliation repaired power %s for user=%s",
                    repair.power_id, self.user_id,
                )
            except (ConflictError, NotFoundError, TransientStoreError) as exc:
                logger.warning(
                    "Repair of power %s for user=%s failed, retrying next cycle: %s",
                    repair.power_id, self.user_id, exc,
                )

        if result.changed:
            logger.info(
                "Reconciled power cache for user=%s: %d active",
                self.user_id, len(result.view),
            )
        self.cache.replace(result.view)
        return result

    async def trigger(self) -> ReconcileResult:
        """Run a pass now (e.g. after the tab regains focus)."""
        return await run_db(self.run_once)

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        """Start the periodic background task."""
        if self._task is not None:
            return

        async def _reconcile_loop() -> None:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    await self.trigger()
                except Exception:
                    logger.exception("Reconciliation loop error")

        self._task = loop.create_task(
            _reconcile_loop(), name=f"reconcile-{self.user_id}",
        )

    def stop(self) -> None:
        """Cancel the background task."""
        if self._task:
            self._task.cancel()
            self._task = None
