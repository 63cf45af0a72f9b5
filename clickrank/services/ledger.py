"""
clickrank.services.ledger — Authoritative Progress Store
=========================================================

The Ledger is the single source of truth for click totals, the reward
catalog, achievement grants and power instances.  The rest of the package
only talks to the :class:`Ledger` protocol; :class:`SqlLedger` implements it
on SQLAlchemy (PostgreSQL in production, SQLite in tests).

Guarantees relied upon by the services:

* ``set_total`` is atomic and idempotent on an equal value, and rejects a
  decrease with :class:`ValidationError` (carrying the current total).
* ``insert_*_if_absent`` return ``None`` instead of creating a second row
  for the same (user, definition) pair — the unique constraint is the
  arbiter, not a lock.
* ``insert_or_update_power`` with ``expected_version`` is a conditional
  write: :class:`ConflictError` when the row moved on.
* Reads are read-after-write consistent, so one query always suffices.

Connection-level failures surface as :class:`TransientStoreError`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, Protocol

from sqlalchemy import Engine, and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session

from clickrank.database.engine import get_session
from clickrank.database.models import (
    Achievement,
    EffectType,
    RewardKind,
    RewardType,
    SpecialPower,
    TriggerType,
    UserAchievement,
    UserPower,
    UserProgress,
)
from clickrank.engine.ranking import rank_players
from clickrank.engine.records import (
    PowerInstance,
    RankedPlayer,
    RewardDefinition,
    RewardGrant,
    TotalUpdate,
)
from clickrank.errors import (
    ConflictError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Columns a caller may patch on a power instance
POWER_PATCH_FIELDS: frozenset[str] = frozenset({
    "level",
    "is_active",
    "acquired_at",
    "expires_at",
    "uses_left",
    "upgrade_confirmed",
})


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------
class Ledger(Protocol):
    """Operations the core consumes from the authoritative store."""

    def get_total(self, user_id: str) -> int: ...

    def set_total(self, user_id: str, new_total: int) -> TotalUpdate: ...

    def list_catalog(self, kind: RewardKind) -> list[RewardDefinition]: ...

    def list_grants(self, user_id: str) -> list[RewardGrant]: ...

    def list_powers(self, user_id: str) -> list[PowerInstance]: ...

    def get_power(self, user_id: str, power_id: int) -> PowerInstance | None: ...

    def insert_grant_if_absent(
        self, user_id: str, achievement_id: int,
    ) -> RewardGrant | None: ...

    def insert_power_if_absent(
        self, user_id: str, power_id: int, values: dict[str, Any],
    ) -> PowerInstance | None: ...

    def insert_or_update_power(
        self,
        user_id: str,
        power_id: int,
        patch: dict[str, Any],
        expected_version: int | None = None,
    ) -> PowerInstance: ...

    def mark_notified(self, user_id: str, achievement_id: int) -> bool: ...

    def pending_notifications(self, user_id: str) -> list[RewardGrant]: ...

    def get_rank(self, user_id: str) -> int | None: ...

    def leaderboard(self, limit: int = 50) -> list[RankedPlayer]: ...

    def record_rank(self, user_id: str, rank: int) -> int | None: ...

    def record_click_speed(self, user_id: str, rate: int) -> int: ...


# ---------------------------------------------------------------------------
# Row → record conversion
# ---------------------------------------------------------------------------
def _aware(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything in clickrank is UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _achievement_record(row: Achievement) -> RewardDefinition:
    return RewardDefinition(
        kind=RewardKind.ACHIEVEMENT,
        id=row.id,
        name=row.name,
        threshold=row.threshold,
        trigger=TriggerType(row.type),
        rarity=row.rarity,
        description=row.description,
        icon=row.icon,
        reward_type=RewardType(row.reward_type),
        reward_value=row.reward_value,
    )


def _power_record(row: SpecialPower) -> RewardDefinition:
    return RewardDefinition(
        kind=RewardKind.POWER,
        id=row.id,
        name=row.name,
        threshold=row.threshold,
        # A power with a milestone is granted straight from the click total
        trigger=TriggerType.CLICKS if row.threshold is not None else None,
        rarity=row.rarity,
        description=row.description,
        icon=row.icon,
        effect_type=EffectType(row.effect_type),
        effect_value=row.effect_value,
        duration_seconds=row.duration_seconds,
        max_level=row.max_level,
        requires_confirmation=bool(row.requires_confirmation),
        category=row.category,
        auto_activate=bool(row.auto_activate),
        max_uses=row.max_uses,
    )


def _grant_record(row: UserAchievement) -> RewardGrant:
    return RewardGrant(
        user_id=row.user_id,
        achievement_id=row.achievement_id,
        unlocked_at=_aware(row.unlocked_at),
        notified=bool(row.notified),
    )


def _power_instance(row: UserPower) -> PowerInstance:
    return PowerInstance(
        id=row.id,
        user_id=row.user_id,
        power_id=row.power_id,
        level=row.level,
        is_active=bool(row.is_active),
        acquired_at=_aware(row.acquired_at),
        expires_at=_aware(row.expires_at),
        uses_left=row.uses_left,
        upgrade_confirmed=bool(row.upgrade_confirmed),
        version=row.version,
    )


def _check_patch(patch: dict[str, Any]) -> None:
    unknown = set(patch) - POWER_PATCH_FIELDS
    if unknown:
        raise ValidationError(
            "Unknown power fields", fields=sorted(unknown),
        )
    if "level" in patch and patch["level"] < 1:
        raise ValidationError("Power level must be >= 1", level=patch["level"])


# ---------------------------------------------------------------------------
# SQLAlchemy implementation
# ---------------------------------------------------------------------------
class SqlLedger:
    """:class:`Ledger` backed by the clickrank schema.

    Every method runs in its own short transaction and returns detached
    records, so instances are safe to share across threads.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # -------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------
    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        try:
            with get_session(self.engine) as session:
                yield session
        except (OperationalError, InterfaceError) as exc:
            logger.warning("Ledger %s failed: %s", operation, exc)
            raise TransientStoreError(
                f"Ledger unavailable during {operation}",
            ) from exc

    @staticmethod
    def _ensure_progress(session: Session, user_id: str) -> UserProgress:
        """Fetch or insert the user's progress row (grants reference it)."""
        row = session.get(UserProgress, user_id)
        if row is None:
            row = UserProgress(user_id=user_id, click_total=0, best_click_speed=0)
            session.add(row)
            session.flush()
        return row

    # -------------------------------------------------------------------
    # Click totals
    # -------------------------------------------------------------------
    def get_total(self, user_id: str) -> int:
        with self._session("get_total") as session:
            total = session.scalar(
                select(UserProgress.click_total).where(UserProgress.user_id == user_id)
            )
            return total or 0

    def set_total(self, user_id: str, new_total: int) -> TotalUpdate:
        """Write the full new total; rejects negative or decreasing values."""
        if isinstance(new_total, bool) or not isinstance(new_total, int) or new_total < 0:
            raise ValidationError("Click total must be a non-negative integer",
                                  new_total=new_total)

        with self._session("set_total") as session:
            row = session.get(UserProgress, user_id, with_for_update=True)
            if row is None:
                try:
                    with session.begin_nested():   # SAVEPOINT
                        session.add(UserProgress(
                            user_id=user_id, click_total=new_total, best_click_speed=0,
                        ))
                        session.flush()
                    return TotalUpdate(user_id, 0, new_total)
                except IntegrityError:
                    # Another writer created the row first; fall through to
                    # the conditional update against its value.
                    row = session.get(UserProgress, user_id, populate_existing=True)

            previous = row.click_total
            if new_total < previous:
                raise ValidationError(
                    "Click total cannot decrease", current_total=previous,
                )
            if new_total == previous:
                return TotalUpdate(user_id, previous, previous)

            result = session.execute(
                update(UserProgress)
                .where(
                    UserProgress.user_id == user_id,
                    UserProgress.click_total <= new_total,
                )
                .values(click_total=new_total)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                current = session.scalar(
                    select(UserProgress.click_total)
                    .where(UserProgress.user_id == user_id)
                )
                raise ValidationError(
                    "Click total cannot decrease", current_total=current,
                )
            return TotalUpdate(user_id, previous, new_total)

    # -------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------
    def list_catalog(self, kind: RewardKind) -> list[RewardDefinition]:
        with self._session("list_catalog") as session:
            if RewardKind(kind) is RewardKind.ACHIEVEMENT:
                rows = session.scalars(
                    select(Achievement).order_by(Achievement.threshold, Achievement.id)
                ).all()
                return [_achievement_record(r) for r in rows]
            rows = session.scalars(
                select(SpecialPower).order_by(SpecialPower.id)
            ).all()
            return [_power_record(r) for r in rows]

    # -------------------------------------------------------------------
    # Achievement grants
    # -------------------------------------------------------------------
    def list_grants(self, user_id: str) -> list[RewardGrant]:
        with self._session("list_grants") as session:
            rows = session.scalars(
                select(UserAchievement)
                .where(UserAchievement.user_id == user_id)
                .order_by(UserAchievement.unlocked_at, UserAchievement.achievement_id)
            ).all()
            return [_grant_record(r) for r in rows]

    def insert_grant_if_absent(
        self, user_id: str, achievement_id: int,
    ) -> RewardGrant | None:
        """Create the grant with ``notified = False``; None if already held."""
        with self._session("insert_grant_if_absent") as session:
            if session.get(UserAchievement, (user_id, achievement_id)) is not None:
                return None
            self._ensure_progress(session, user_id)
            grant = UserAchievement(
                user_id=user_id,
                achievement_id=achievement_id,
                notified=False,
            )
            try:
                with session.begin_nested():   # SAVEPOINT
                    session.add(grant)
                    session.flush()
            except IntegrityError:
                # Concurrent evaluation won the race; the grant exists.
                return None
            session.refresh(grant)
            return _grant_record(grant)

    def mark_notified(self, user_id: str, achievement_id: int) -> bool:
        """Flip ``notified`` false→true; True only for the caller that flipped it."""
        with self._session("mark_notified") as session:
            result = session.execute(
                update(UserAchievement)
                .where(
                    UserAchievement.user_id == user_id,
                    UserAchievement.achievement_id == achievement_id,
                    UserAchievement.notified.is_(False),
                )
                .values(notified=True)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    def pending_notifications(self, user_id: str) -> list[RewardGrant]:
        with self._session("pending_notifications") as session:
            rows = session.scalars(
                select(UserAchievement)
                .where(
                    UserAchievement.user_id == user_id,
                    UserAchievement.notified.is_(False),
                )
                .order_by(UserAchievement.unlocked_at, UserAchievement.achievement_id)
            ).all()
            return [_grant_record(r) for r in rows]

    # -------------------------------------------------------------------
    # Power instances
    # -------------------------------------------------------------------
    def list_powers(self, user_id: str) -> list[PowerInstance]:
        with self._session("list_powers") as session:
            rows = session.scalars(
                select(UserPower)
                .where(UserPower.user_id == user_id)
                .order_by(UserPower.power_id)
            ).all()
            return [_power_instance(r) for r in rows]

    def get_power(self, user_id: str, power_id: int) -> PowerInstance | None:
        with self._session("get_power") as session:
            row = session.scalar(
                select(UserPower).where(
                    UserPower.user_id == user_id, UserPower.power_id == power_id,
                )
            )
            return _power_instance(row) if row is not None else None

    def insert_power_if_absent(
        self, user_id: str, power_id: int, values: dict[str, Any],
    ) -> PowerInstance | None:
        _check_patch(values)
        with self._session("insert_power_if_absent") as session:
            existing = session.scalar(
                select(UserPower.id).where(
                    UserPower.user_id == user_id, UserPower.power_id == power_id,
                )
            )
            if existing is not None:
                return None
            self._ensure_progress(session, user_id)
            row = UserPower(user_id=user_id, power_id=power_id, version=1, **values)
            try:
                with session.begin_nested():   # SAVEPOINT
                    session.add(row)
                    session.flush()
            except IntegrityError:
                return None
            session.refresh(row)
            return _power_instance(row)

    def insert_or_update_power(
        self,
        user_id: str,
        power_id: int,
        patch: dict[str, Any],
        expected_version: int | None = None,
    ) -> PowerInstance:
        """Upsert a power instance.

        With ``expected_version`` the write only lands if the row is still at
        that version (:class:`ConflictError` otherwise) and the row must
        exist (:class:`NotFoundError` otherwise).
        """
        _check_patch(patch)
        with self._session("insert_or_update_power") as session:
            row = session.scalar(
                select(UserPower).where(
                    UserPower.user_id == user_id, UserPower.power_id == power_id,
                )
            )
            if row is None:
                if expected_version is not None:
                    raise NotFoundError(
                        "Power not held", user_id=user_id, power_id=power_id,
                    )
                self._ensure_progress(session, user_id)
                values = {"level": 1, "is_active": False, "upgrade_confirmed": False}
                values.update(patch)
                row = UserPower(user_id=user_id, power_id=power_id, version=1, **values)
                session.add(row)
                session.flush()
                session.refresh(row)
                return _power_instance(row)

            version = row.version if expected_version is None else expected_version
            result = session.execute(
                update(UserPower)
                .where(UserPower.id == row.id, UserPower.version == version)
                .values(**patch, version=version + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictError(
                    "Power changed concurrently",
                    user_id=user_id, power_id=power_id, expected_version=version,
                )
            session.refresh(row)
            return _power_instance(row)

    # -------------------------------------------------------------------
    # Rank & click speed
    # -------------------------------------------------------------------
    def get_rank(self, user_id: str) -> int | None:
        """1-based rank by click total (ties → lower user id first)."""
        with self._session("get_rank") as session:
            total = session.scalar(
                select(UserProgress.click_total).where(UserProgress.user_id == user_id)
            )
            if total is None:
                return None
            ahead = session.scalar(
                select(func.count()).select_from(UserProgress).where(
                    or_(
                        UserProgress.click_total > total,
                        and_(
                            UserProgress.click_total == total,
                            UserProgress.user_id < user_id,
                        ),
                    )
                )
            )
            return (ahead or 0) + 1

    def leaderboard(self, limit: int = 50) -> list[RankedPlayer]:
        with self._session("leaderboard") as session:
            rows = session.execute(
                select(UserProgress.user_id, UserProgress.click_total)
                .order_by(UserProgress.click_total.desc(), UserProgress.user_id)
                .limit(limit)
            ).all()
            return rank_players((r.user_id, r.click_total) for r in rows)

    def record_rank(self, user_id: str, rank: int) -> int | None:
        """Store *rank* as the last evaluated rank; return the previous one."""
        with self._session("record_rank") as session:
            row = self._ensure_progress(session, user_id)
            previous = row.last_rank
            row.last_rank = rank
            return previous

    def record_click_speed(self, user_id: str, rate: int) -> int:
        """Keep the best click-speed seen; return the previous best."""
        if rate < 0:
            raise ValidationError("Click speed must be non-negative", rate=rate)
        with self._session("record_click_speed") as session:
            row = self._ensure_progress(session, user_id)
            previous = row.best_click_speed or 0
            if rate > previous:
                row.best_click_speed = rate
            return previous
