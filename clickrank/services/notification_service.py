"""
clickrank.services.notification_service — Presentation Feed
============================================================

What the presentation layer (toasts, badges, the power bar) consumes:

* :func:`claim_new_achievements` — newly unlocked achievements, each
  delivered at most once.  A grant is emitted only by the consumer whose
  ``mark_notified`` call flipped the flag, so two tabs polling at the same
  time never both show the toast.
* :func:`active_powers_snapshot` — the user's currently effective powers and
  the derived multiplier / auto-click rate / click value, all computed from
  one ``list_powers`` read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from clickrank.constants import RARITY_DISPLAY_MS
from clickrank.engine.powers import (
    auto_click_interval_ms,
    effect_totals,
    is_effective,
    remaining_seconds,
    utcnow,
)

if TYPE_CHECKING:
    from clickrank.engine.cache import CatalogCache
    from clickrank.services.ledger import Ledger

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AchievementEvent:
    achievement_id: int
    name: str
    description: str | None
    icon: str | None
    rarity: str
    unlocked_at: datetime | None
    display_ms: int


@dataclass(frozen=True, slots=True)
class ActivePower:
    power_id: int
    name: str
    effect_type: str
    level: int
    remaining_seconds: int | None


@dataclass(frozen=True, slots=True)
class PowerSnapshot:
    powers: list[ActivePower] = field(default_factory=list)
    multiplier: float = 1.0
    auto_click_rate: float = 0.0
    click_value: int = 1

    @property
    def auto_click_interval_ms(self) -> int | None:
        return auto_click_interval_ms(self.auto_click_rate)


def claim_new_achievements(
    ledger: Ledger, catalog: CatalogCache, user_id: str,
) -> list[AchievementEvent]:
    """Claim every pending grant; return the ones this caller won."""
    events: list[AchievementEvent] = []
    for pending in ledger.pending_notifications(user_id):
        if not ledger.mark_notified(user_id, pending.achievement_id):
            continue
        definition = catalog.achievement(pending.achievement_id)
        if definition is None:
            logger.warning(
                "Grant %s for user=%s has no catalog entry",
                pending.achievement_id, user_id,
            )
            continue
        events.append(AchievementEvent(
            achievement_id=definition.id,
            name=definition.name,
            description=definition.description,
            icon=definition.icon,
            rarity=definition.rarity,
            unlocked_at=pending.unlocked_at,
            display_ms=RARITY_DISPLAY_MS.get(definition.rarity, 3000),
        ))
    return events


def active_powers_snapshot(
    ledger: Ledger,
    catalog: CatalogCache,
    user_id: str,
    now: datetime | None = None,
) -> PowerSnapshot:
    now = now or utcnow()
    held = []
    for instance in ledger.list_powers(user_id):
        definition = catalog.power(instance.power_id)
        if definition is not None:
            held.append((instance, definition))

    active = [
        ActivePower(
            power_id=definition.id,
            name=definition.name,
            effect_type=str(definition.effect_type),
            level=instance.level,
            remaining_seconds=remaining_seconds(instance, definition, now),
        )
        for instance, definition in held
        if is_effective(instance, definition, now)
    ]
    totals = effect_totals(held, now)
    return PowerSnapshot(
        powers=active,
        multiplier=totals.multiplier,
        auto_click_rate=totals.auto_click_rate,
        click_value=totals.click_value,
    )
