"""
clickrank.engine.powers — Power State Machine & Effect Arithmetic
==================================================================

Pure functions over a single :class:`PowerInstance` and its template::

    LOCKED ──grant──▶ INACTIVE ──activate──▶ ACTIVE
                          │                    │
                          └──── expires_at ────┴──▶ EXPIRED

Expiry is evaluated lazily by comparing ``expires_at`` with *now*; nothing
sweeps rows in the background.  A power at ``max_level`` is permanent and
never expires regardless of ``expires_at``.

Effects scale linearly with level (``effect_value × level``).  Active
multiplier powers combine multiplicatively.

No database I/O here; :mod:`clickrank.services.power_service` does the
read-validate-write against the Ledger.
"""

from __future__ import annotations

import enum
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from clickrank.constants import MIN_AUTO_CLICK_INTERVAL_MS
from clickrank.database.models import EffectType
from clickrank.engine.records import PowerInstance, RewardDefinition


class PowerState(enum.StrEnum):
    LOCKED = "locked"
    INACTIVE = "inactive"
    ACTIVE = "active"
    EXPIRED = "expired"


def utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# State derivation
# ---------------------------------------------------------------------------
def is_max_level(instance: PowerInstance, definition: RewardDefinition) -> bool:
    return instance.level >= definition.max_level


def is_expired(
    instance: PowerInstance, definition: RewardDefinition, now: datetime,
) -> bool:
    """True once ``expires_at`` has passed, unless the power is max level."""
    if is_max_level(instance, definition):
        return False
    return instance.expires_at is not None and instance.expires_at < now


def power_state(
    instance: PowerInstance | None,
    definition: RewardDefinition,
    now: datetime,
) -> PowerState:
    if instance is None:
        return PowerState.LOCKED
    if is_expired(instance, definition, now):
        return PowerState.EXPIRED
    return PowerState.ACTIVE if instance.is_active else PowerState.INACTIVE


def is_effective(
    instance: PowerInstance, definition: RewardDefinition, now: datetime,
) -> bool:
    """Active and not expired — i.e. currently contributing its effect."""
    return power_state(instance, definition, now) is PowerState.ACTIVE


def remaining_seconds(
    instance: PowerInstance, definition: RewardDefinition, now: datetime,
) -> int | None:
    """Seconds until expiry, or None for a power that never expires."""
    if instance.expires_at is None or is_max_level(instance, definition):
        return None
    return max(0, int((instance.expires_at - now).total_seconds()))


# ---------------------------------------------------------------------------
# Transition planning — returns the patch to write, or None if invalid
# ---------------------------------------------------------------------------
def initial_values(definition: RewardDefinition, now: datetime) -> dict:
    """Column values for a freshly granted instance."""
    expires_at = None
    if definition.duration_seconds is not None:
        expires_at = now + timedelta(seconds=definition.duration_seconds)
    return {
        "level": 1,
        "is_active": definition.auto_activate,
        "acquired_at": now,
        "expires_at": expires_at,
        "uses_left": definition.max_uses,
        "upgrade_confirmed": False,
    }


def plan_activation(
    instance: PowerInstance | None,
    definition: RewardDefinition,
    now: datetime,
) -> dict | None:
    """Patch for ``activate``, valid only from INACTIVE with uses remaining."""
    if power_state(instance, definition, now) is not PowerState.INACTIVE:
        return None
    if instance.uses_left is not None and instance.uses_left <= 0:
        return None
    patch: dict = {"is_active": True}
    if instance.uses_left is not None:
        patch["uses_left"] = instance.uses_left - 1
    return patch


def upgrade_expiry(
    definition: RewardDefinition, new_level: int, now: datetime,
) -> datetime | None:
    """``now + duration × new_level``; None once max level is reached."""
    if new_level >= definition.max_level or definition.duration_seconds is None:
        return None
    return now + timedelta(seconds=definition.duration_seconds * new_level)


def plan_upgrade(
    instance: PowerInstance | None,
    definition: RewardDefinition,
    now: datetime,
) -> dict | None:
    """Patch for ``upgrade``.

    None when the power is not held, already at max level, expired (terminal
    until re-acquired) or still awaiting a required confirmation.
    """
    if instance is None or is_max_level(instance, definition):
        return None
    if power_state(instance, definition, now) is PowerState.EXPIRED:
        return None
    if definition.requires_confirmation and not instance.upgrade_confirmed:
        return None
    new_level = instance.level + 1
    return {
        "level": new_level,
        "upgrade_confirmed": False,
        "expires_at": upgrade_expiry(definition, new_level, now),
    }


# ---------------------------------------------------------------------------
# Effect arithmetic
# ---------------------------------------------------------------------------
def effective_value(instance: PowerInstance, definition: RewardDefinition) -> float:
    return definition.effect_value * instance.level


def _effective_of_type(
    held: Iterable[tuple[PowerInstance, RewardDefinition]],
    effect_type: EffectType,
    now: datetime,
) -> list[float]:
    return [
        effective_value(instance, definition)
        for instance, definition in held
        if definition.effect_type == effect_type
        and is_effective(instance, definition, now)
    ]


def combined_multiplier(
    held: Iterable[tuple[PowerInstance, RewardDefinition]], now: datetime,
) -> float:
    """Product of all active multiplier values (1.0 when none are active)."""
    return math.prod(_effective_of_type(held, EffectType.MULTIPLIER, now), start=1.0)


def auto_click_rate(
    held: Iterable[tuple[PowerInstance, RewardDefinition]], now: datetime,
) -> float:
    """Clicks per second of the fastest active auto-clicker (0 when none)."""
    return max(_effective_of_type(held, EffectType.AUTO_CLICK, now), default=0.0)


def permanent_bonus(
    held: Iterable[tuple[PowerInstance, RewardDefinition]], now: datetime,
) -> float:
    """Sum of active permanent base-click upgrades."""
    return sum(_effective_of_type(held, EffectType.PERMANENT, now))


def click_value(multiplier: float, bonus: float = 0.0) -> int:
    """Clicks credited for one manual click."""
    return max(1, math.floor((1 + bonus) * multiplier))


def auto_click_interval_ms(rate: float) -> int | None:
    """Milliseconds between auto-clicks for *rate*; None when not auto-clicking."""
    if rate <= 0:
        return None
    return max(MIN_AUTO_CLICK_INTERVAL_MS, math.floor(1000 / rate))


@dataclass(frozen=True, slots=True)
class EffectTotals:
    multiplier: float = 1.0
    auto_click_rate: float = 0.0
    permanent_bonus: float = 0.0

    @property
    def click_value(self) -> int:
        return click_value(self.multiplier, self.permanent_bonus)


def effect_totals(
    held: Iterable[tuple[PowerInstance, RewardDefinition]], now: datetime,
) -> EffectTotals:
    held = list(held)
    return EffectTotals(
        multiplier=combined_multiplier(held, now),
        auto_click_rate=auto_click_rate(held, now),
        permanent_bonus=permanent_bonus(held, now),
    )
