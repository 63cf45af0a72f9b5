"""
clickrank.database.models — SQLAlchemy 2.0 Data Models
=======================================================

Tables:
- user_progress      — Per-user click total plus the last evaluated rank and
                       best click speed (previous values for milestones)
- achievements       — Achievement catalog (immutable after creation)
- special_powers     — Power catalog (immutable after creation)
- user_achievements  — Achievement grants, one per (user, achievement)
- user_powers        — Power instances, one per (user, power), versioned for
                       optimistic concurrency

The two catalog tables keep the column layout of the persisted reward
catalog so existing catalog dumps load unchanged.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all clickrank ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class RewardKind(enum.StrEnum):
    """Which catalog table a reward definition lives in."""
    ACHIEVEMENT = "achievement"
    POWER = "power"


class TriggerType(enum.StrEnum):
    """Metric an achievement threshold is compared against."""
    CLICKS = "clicks"
    RANK = "rank"
    CLICK_SPEED = "click_speed"


class Rarity(enum.StrEnum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class RewardType(enum.StrEnum):
    """What an achievement hands out when unlocked."""
    NONE = "none"
    MULTIPLIER = "multiplier"
    AUTO_CLICK = "auto_click"
    POWER = "power"


class EffectType(enum.StrEnum):
    """How a power modifies clicking while active."""
    MULTIPLIER = "multiplier"
    AUTO_CLICK = "auto_click"
    PERMANENT = "permanent"


class PowerCategory(enum.StrEnum):
    BUFF = "buff"
    ATTACK = "attack"
    SUPPORT = "support"


# ---------------------------------------------------------------------------
# UserProgress — one row per user
# ---------------------------------------------------------------------------
class UserProgress(Base):
    __tablename__ = "user_progress"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    click_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    best_click_speed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    achievements: Mapped[list[UserAchievement]] = relationship(
        back_populates="progress", cascade="all, delete-orphan"
    )
    powers: Mapped[list[UserPower]] = relationship(
        back_populates="progress", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("click_total >= 0", name="ck_user_progress_total_nonneg"),
        Index("ix_user_progress_total_desc", "click_total"),
    )

    def __repr__(self) -> str:
        return f"<UserProgress user={self.user_id!r} total={self.click_total}>"


# ---------------------------------------------------------------------------
# Achievement — catalog entry with a typed threshold trigger
# ---------------------------------------------------------------------------
class Achievement(Base):
    __tablename__ = "achievements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    icon: Mapped[str | None] = mapped_column(String(50), default=None)
    threshold: Mapped[float] = mapped_column(Float, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # clicks, rank, click_speed
    rarity: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Rarity.COMMON.value,
    )
    reward_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RewardType.NONE.value,
    )
    reward_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    unlocked_by: Mapped[list[UserAchievement]] = relationship(back_populates="achievement")

    __table_args__ = (
        CheckConstraint(
            "type IN ('clicks', 'rank', 'click_speed')", name="ck_achievements_type",
        ),
        CheckConstraint(
            "reward_type IN ('none', 'multiplier', 'auto_click', 'power')",
            name="ck_achievements_reward_type",
        ),
        Index("ix_achievements_type_threshold", "type", "threshold"),
    )

    def __repr__(self) -> str:
        return f"<Achievement id={self.id} name={self.name!r} {self.type}>={self.threshold}>"


# ---------------------------------------------------------------------------
# SpecialPower — levelable, time-bounded or permanent modifier
# ---------------------------------------------------------------------------
class SpecialPower(Base):
    __tablename__ = "special_powers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    icon: Mapped[str | None] = mapped_column(String(50), default=None)
    rarity: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Rarity.COMMON.value,
    )
    effect_type: Mapped[str] = mapped_column(String(20), nullable=False)
    effect_value: Mapped[float] = mapped_column(Float, nullable=False)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)  # NULL = permanent
    max_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    requires_confirmation: Mapped[bool] = mapped_column(Boolean, default=False)
    category: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PowerCategory.BUFF.value,
    )

    # Click-count milestone that grants this power directly (NULL = only via
    # an achievement reward)
    threshold: Mapped[int | None] = mapped_column(Integer, nullable=True)
    auto_activate: Mapped[bool] = mapped_column(Boolean, default=True)
    max_uses: Mapped[int | None] = mapped_column(Integer, nullable=True)  # NULL = unlimited
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    held_by: Mapped[list[UserPower]] = relationship(back_populates="power")

    __table_args__ = (
        CheckConstraint(
            "effect_type IN ('multiplier', 'auto_click', 'permanent')",
            name="ck_special_powers_effect_type",
        ),
        CheckConstraint(
            "category IN ('buff', 'attack', 'support')", name="ck_special_powers_category",
        ),
        CheckConstraint("max_level >= 1", name="ck_special_powers_max_level"),
    )

    def __repr__(self) -> str:
        return f"<SpecialPower id={self.id} name={self.name!r} {self.effect_type}>"


# ---------------------------------------------------------------------------
# UserAchievement — unlocked achievements
# ---------------------------------------------------------------------------
class UserAchievement(Base):
    __tablename__ = "user_achievements"

    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("user_progress.user_id", ondelete="CASCADE"),
        primary_key=True,
    )
    achievement_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("achievements.id", ondelete="CASCADE"), primary_key=True,
    )
    unlocked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    notified: Mapped[bool] = mapped_column(Boolean, default=False)

    progress: Mapped[UserProgress] = relationship(back_populates="achievements")
    achievement: Mapped[Achievement] = relationship(back_populates="unlocked_by")

    __table_args__ = (
        Index("ix_user_achievements_pending", "user_id", "notified"),
    )

    def __repr__(self) -> str:
        return f"<UserAchievement user={self.user_id!r} achievement={self.achievement_id}>"


# ---------------------------------------------------------------------------
# UserPower — a granted power instance
# ---------------------------------------------------------------------------
class UserPower(Base):
    __tablename__ = "user_powers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("user_progress.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    power_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("special_powers.id", ondelete="CASCADE"), nullable=False,
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False)
    acquired_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    uses_left: Mapped[int | None] = mapped_column(Integer, nullable=True)
    upgrade_confirmed: Mapped[bool] = mapped_column(Boolean, default=False)

    # Bumped on every write; conditional updates compare against it
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    progress: Mapped[UserProgress] = relationship(back_populates="powers")
    power: Mapped[SpecialPower] = relationship(back_populates="held_by")

    __table_args__ = (
        UniqueConstraint("user_id", "power_id", name="uq_user_powers_user_power"),
        CheckConstraint("level >= 1", name="ck_user_powers_level"),
        Index("ix_user_powers_user_active", "user_id", "is_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserPower user={self.user_id!r} power={self.power_id} "
            f"lvl={self.level} active={self.is_active}>"
        )
