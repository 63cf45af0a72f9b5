"""
clickrank.engine.records — Detached Domain Records
===================================================

Frozen snapshots handed out by the Ledger.  The engine and the services
never hold ORM objects across session boundaries; they work on these.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from clickrank.database.models import EffectType, RewardKind, RewardType, TriggerType

__all__ = [
    "PowerInstance",
    "RankedPlayer",
    "RewardDefinition",
    "RewardEffect",
    "RewardGrant",
    "TotalUpdate",
]


@dataclass(frozen=True, slots=True)
class RewardEffect:
    """What unlocking a definition hands out.

    ``kind`` is one of ``none``, ``grants-power``, ``grants-multiplier``,
    ``grants-auto-click``; ``value`` is the power id, multiplier, or rate.
    """

    kind: str
    value: float | None = None


# ---------------------------------------------------------------------------
# RewardDefinition — one catalog entry (achievement or power template)
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RewardDefinition:
    """Immutable catalog entry.

    Achievement ids and power ids live in separate tables, so identity is
    the pair ``(kind, id)`` — see :attr:`key`.
    """

    kind: RewardKind
    id: int
    name: str
    threshold: float | None = None
    trigger: TriggerType | None = None
    rarity: str = "common"
    description: str | None = None
    icon: str | None = None

    # Achievement reward
    reward_type: RewardType = RewardType.NONE
    reward_value: float | None = None

    # Power template
    effect_type: EffectType | None = None
    effect_value: float = 0.0
    duration_seconds: int | None = None
    max_level: int = 1
    requires_confirmation: bool = False
    category: str | None = None
    auto_activate: bool = True
    max_uses: int | None = None

    @property
    def key(self) -> tuple[str, int]:
        return (self.kind.value, self.id)

    @property
    def is_permanent(self) -> bool:
        """A power with no base duration never expires."""
        return self.duration_seconds is None

    @property
    def reward_effect(self) -> RewardEffect:
        if self.kind is RewardKind.POWER:
            return RewardEffect("grants-power", float(self.id))
        if self.reward_type is RewardType.POWER and self.reward_value is not None:
            return RewardEffect("grants-power", self.reward_value)
        if self.reward_type is RewardType.MULTIPLIER:
            return RewardEffect("grants-multiplier", self.reward_value)
        if self.reward_type is RewardType.AUTO_CLICK:
            return RewardEffect("grants-auto-click", self.reward_value)
        return RewardEffect("none")

    @property
    def granted_power_id(self) -> int | None:
        """Power id an achievement's ``power`` reward points at, if any."""
        if self.kind is RewardKind.ACHIEVEMENT and self.reward_type is RewardType.POWER:
            if self.reward_value is not None:
                return int(self.reward_value)
        return None


# ---------------------------------------------------------------------------
# Grants and instances
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RewardGrant:
    """An unlocked achievement."""

    user_id: str
    achievement_id: int
    unlocked_at: datetime | None = None
    notified: bool = False


@dataclass(frozen=True, slots=True)
class PowerInstance:
    """A user's copy of a power template."""

    user_id: str
    power_id: int
    level: int = 1
    is_active: bool = False
    acquired_at: datetime | None = None
    expires_at: datetime | None = None
    uses_left: int | None = None
    upgrade_confirmed: bool = False
    version: int = 1
    id: int | None = None


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TotalUpdate:
    """Outcome of an authoritative total write."""

    user_id: str
    previous_total: int
    confirmed_total: int

    @property
    def changed(self) -> bool:
        return self.confirmed_total != self.previous_total


@dataclass(frozen=True, slots=True)
class RankedPlayer:
    user_id: str
    click_total: int
    rank: int
