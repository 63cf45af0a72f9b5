"""
clickrank.engine.cache — In-Memory Reward Catalog Cache
========================================================

Catalog entries are immutable after creation, so the evaluator and the
lifecycle manager read them from memory instead of hitting the Ledger on
every flush.  ``invalidate()`` drops the snapshot; the next read reloads it
(e.g. after an operator adds new achievements).
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from clickrank.database.models import RewardKind

if TYPE_CHECKING:
    from clickrank.engine.records import RewardDefinition
    from clickrank.services.ledger import Ledger

logger = logging.getLogger(__name__)


class CatalogCache:
    """Thread-safe, lazily loaded view of the reward catalog.

    Usage:
        catalog = CatalogCache(ledger)
        catalog.load_all()

        powers = catalog.definitions(RewardKind.POWER)
        double = catalog.get(RewardKind.POWER, 1)
    """

    def __init__(self, ledger: Ledger) -> None:
        self._ledger = ledger
        self._lock = threading.Lock()
        # kind → {id → RewardDefinition}
        self._entries: dict[RewardKind, dict[int, RewardDefinition]] = {}

    # -------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------
    def load_all(self) -> None:
        """Load both catalog tables. Call on startup."""
        for kind in RewardKind:
            self._load(kind)

    def _load(self, kind: RewardKind) -> dict[int, RewardDefinition]:
        definitions = self._ledger.list_catalog(kind)
        entries = {d.id: d for d in definitions}
        with self._lock:
            self._entries[kind] = entries
        logger.info("Loaded %d %s definitions", len(entries), kind.value)
        return entries

    def invalidate(self) -> None:
        with self._lock:
            self._entries.clear()

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def _snapshot(self, kind: RewardKind) -> dict[int, RewardDefinition]:
        with self._lock:
            entries = self._entries.get(kind)
        if entries is None:
            entries = self._load(kind)
        return entries

    def definitions(self, kind: RewardKind | None = None) -> list[RewardDefinition]:
        """Definitions of *kind* (both kinds when None), in load order."""
        kinds = [kind] if kind is not None else list(RewardKind)
        result: list[RewardDefinition] = []
        for k in kinds:
            result.extend(self._snapshot(k).values())
        return result

    def get(self, kind: RewardKind, definition_id: int) -> RewardDefinition | None:
        return self._snapshot(kind).get(definition_id)

    def power(self, power_id: int) -> RewardDefinition | None:
        return self.get(RewardKind.POWER, power_id)

    def achievement(self, achievement_id: int) -> RewardDefinition | None:
        return self.get(RewardKind.ACHIEVEMENT, achievement_id)
