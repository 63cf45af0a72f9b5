"""
clickrank.services.progress_service — Authoritative Writes & Post-Write Hook
=============================================================================

Every accepted click total goes through :func:`submit_total`:

    1. ``ledger.set_total`` writes the full total (monotonic, idempotent).
    2. The post-write hook runs synchronously on the *confirmed* change:
       click milestones on ``(previous, confirmed)``, rank milestones on
       ``(last recorded rank, current rank)``.
    3. Newly crossed definitions are handed to the grantor, together with
       every definition already reached (``threshold <= current value``)
       that the user still does not hold.

The hook never raises into the caller — the total is already committed.  A
grant it missed, whether the grantor failed or the hook itself did, is
picked up by step 3 of the next accepted write, even an idempotent resubmit
of the same total.  Only the ``set_total`` step can fail the request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from clickrank.database.models import TriggerType
from clickrank.engine.milestones import MetricChange, evaluate_changes, evaluate_reached
from clickrank.engine.powers import utcnow
from clickrank.engine.records import RewardDefinition, TotalUpdate
from clickrank.services.grant_service import GrantResult, grant

if TYPE_CHECKING:
    from clickrank.engine.cache import CatalogCache
    from clickrank.services.ledger import Ledger

logger = logging.getLogger(__name__)


@dataclass
class ProgressUpdate:
    """Result of one accepted total write."""

    update: TotalUpdate
    rank: int | None = None
    granted: GrantResult = field(default_factory=GrantResult)

    @property
    def confirmed_total(self) -> int:
        return self.update.confirmed_total


def _held_keys(ledger: Ledger, user_id: str) -> set[tuple[str, int]]:
    keys = {("achievement", g.achievement_id) for g in ledger.list_grants(user_id)}
    keys.update(("power", p.power_id) for p in ledger.list_powers(user_id))
    return keys


def _unrewarded(
    definitions: list[RewardDefinition], held: set[tuple[str, int]],
) -> list[RewardDefinition]:
    """Held achievements whose ``power`` reward is missing."""
    known = {d.key for d in definitions}
    return [
        d for d in definitions
        if d.key in held
        and d.granted_power_id is not None
        and ("power", d.granted_power_id) in known
        and ("power", d.granted_power_id) not in held
    ]


def _outstanding(
    changes: list[MetricChange],
    values: dict[TriggerType, float | None],
    definitions: list[RewardDefinition],
    held: set[tuple[str, int]],
) -> list[RewardDefinition]:
    """Newly crossed definitions, plus any reached earlier but still unheld."""
    crossed = evaluate_changes(changes, definitions, held)
    seen = held | {d.key for d in crossed}
    backlog = evaluate_reached(values, definitions, seen)
    if backlog:
        logger.info(
            "Catching up %d reached but ungranted milestone(s): %s",
            len(backlog), ", ".join(d.name for d in backlog),
        )
    return crossed + backlog + _unrewarded(definitions, held)


def run_post_write_hook(
    ledger: Ledger,
    catalog: CatalogCache,
    update: TotalUpdate,
    now: datetime | None = None,
) -> tuple[int | None, GrantResult]:
    """Evaluate click and rank milestones for a confirmed write and grant.

    Returns ``(current rank, grant result)``.
    """
    user_id = update.user_id
    try:
        rank = ledger.get_rank(user_id)
        changes = [
            MetricChange(TriggerType.CLICKS, update.previous_total, update.confirmed_total),
        ]
        if rank is not None:
            previous_rank = ledger.record_rank(user_id, rank)
            if previous_rank != rank:
                changes.append(MetricChange(TriggerType.RANK, previous_rank, rank))

        pending = _outstanding(
            changes,
            {TriggerType.CLICKS: update.confirmed_total, TriggerType.RANK: rank},
            catalog.definitions(),
            _held_keys(ledger, user_id),
        )
        if not pending:
            return rank, GrantResult()
        return rank, grant(ledger, user_id, pending, now or utcnow(), catalog=catalog)
    except Exception:
        logger.exception("Post-write hook failed for user=%s", user_id)
        return None, GrantResult()


def submit_total(
    ledger: Ledger,
    catalog: CatalogCache,
    user_id: str,
    new_total: int,
    now: datetime | None = None,
) -> ProgressUpdate:
    """Write *new_total* and run the post-write hook.

    Raises
    ------
    ValidationError
        Negative or decreasing total (carries ``current_total``).
    TransientStoreError
        The Ledger is unavailable; nothing was written.
    """
    update = ledger.set_total(user_id, new_total)
    rank, granted = run_post_write_hook(ledger, catalog, update, now)
    if granted.granted_any:
        logger.info(
            "User %s reached %d clicks: %d achievement(s), %d power(s) granted",
            user_id, update.confirmed_total,
            len(granted.achievements), len(granted.powers),
        )
    return ProgressUpdate(update=update, rank=rank, granted=granted)


def record_click_speed(
    ledger: Ledger,
    catalog: CatalogCache,
    user_id: str,
    rate: int,
    now: datetime | None = None,
) -> GrantResult:
    """Store a click-speed measurement and grant any click-speed milestones."""
    previous = ledger.record_click_speed(user_id, rate)
    try:
        pending = _outstanding(
            [MetricChange(TriggerType.CLICK_SPEED, previous, rate)],
            {TriggerType.CLICK_SPEED: max(previous, rate)},
            catalog.definitions(),
            _held_keys(ledger, user_id),
        )
        if not pending:
            return GrantResult()
        return grant(ledger, user_id, pending, now or utcnow(), catalog=catalog)
    except Exception:
        logger.exception("Click-speed evaluation failed for user=%s", user_id)
        return GrantResult()
