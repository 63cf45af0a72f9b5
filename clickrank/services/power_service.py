"""
clickrank.services.power_service — Power Lifecycle Manager
===========================================================

Applies user-initiated transitions to a power instance.  Each operation is
read → validate (pure planner in :mod:`clickrank.engine.powers`) → write
conditioned on the version that was read.  A concurrent writer therefore
makes the write fail with :class:`ConflictError` instead of being silently
overwritten; that, and a missing instance, are reported as ``False``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from clickrank.engine.powers import (
    PowerState,
    plan_activation,
    plan_upgrade,
    power_state,
    utcnow,
)
from clickrank.engine.records import PowerInstance, RewardDefinition
from clickrank.errors import ConflictError, NotFoundError

if TYPE_CHECKING:
    from clickrank.engine.cache import CatalogCache
    from clickrank.services.ledger import Ledger

logger = logging.getLogger(__name__)

Planner = Callable[[PowerInstance | None, RewardDefinition, datetime], dict | None]


class PowerLifecycleManager:
    """Activate, upgrade and confirm upgrades of a user's powers."""

    def __init__(self, ledger: Ledger, catalog: CatalogCache) -> None:
        self.ledger = ledger
        self.catalog = catalog

    def _apply(
        self,
        action: str,
        user_id: str,
        power_id: int,
        planner: Planner,
        now: datetime | None,
    ) -> bool:
        definition = self.catalog.power(power_id)
        if definition is None:
            logger.debug("%s: unknown power %s", action, power_id)
            return False

        now = now or utcnow()
        instance = self.ledger.get_power(user_id, power_id)
        patch = planner(instance, definition, now)
        if patch is None:
            logger.debug(
                "%s rejected: user=%s power=%s state=%s",
                action, user_id, power_id, power_state(instance, definition, now),
            )
            return False

        try:
            self.ledger.insert_or_update_power(
                user_id, power_id, patch, expected_version=instance.version,
            )
        except (ConflictError, NotFoundError) as exc:
            logger.info("%s lost a race: user=%s power=%s (%s)",
                        action, user_id, power_id, exc)
            return False

        logger.info("Power %s: user=%s power=%s", action, user_id, power_id)
        return True

    def activate(self, user_id: str, power_id: int, now: datetime | None = None) -> bool:
        """Inactive → Active; consumes one use when uses are capped."""
        return self._apply("activate", user_id, power_id, plan_activation, now)

    def upgrade(self, user_id: str, power_id: int, now: datetime | None = None) -> bool:
        """Raise the level by one and recompute the expiry."""
        return self._apply("upgrade", user_id, power_id, plan_upgrade, now)

    def confirm_upgrade(self, user_id: str, power_id: int) -> bool:
        def plan_confirm(instance, definition, now):
            return None if instance is None else {"upgrade_confirmed": True}

        return self._apply("confirm_upgrade", user_id, power_id, plan_confirm, None)

    def state(self, user_id: str, power_id: int, now: datetime | None = None) -> PowerState:
        definition = self.catalog.power(power_id)
        if definition is None:
            return PowerState.LOCKED
        instance = self.ledger.get_power(user_id, power_id)
        return power_state(instance, definition, now or utcnow())
