"""
clickrank.services.grant_service — Reward Grantor
==================================================

Persists the definitions the milestone evaluator reported as crossed.

* Achievements become a ``user_achievements`` row with ``notified = False``.
  An achievement whose reward is ``power`` also grants that power.
* Powers become a ``user_powers`` row at level 1 (see
  :func:`clickrank.engine.powers.initial_values`).

Grants are idempotent: an already-held pair is skipped silently.  ``grant``
never raises; a definition that fails to persist is logged and listed in
:attr:`GrantResult.failed`.  The post-write hook re-offers every reached but
unheld definition on each write (see
:func:`clickrank.engine.milestones.evaluate_reached`), so the failed one is
granted by the next accepted write, including an idempotent resubmit.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from clickrank.database.models import RewardKind
from clickrank.engine.powers import initial_values, utcnow
from clickrank.engine.records import PowerInstance, RewardDefinition, RewardGrant
from clickrank.errors import ProgressionError

if TYPE_CHECKING:
    from clickrank.engine.cache import CatalogCache
    from clickrank.services.ledger import Ledger

logger = logging.getLogger(__name__)


@dataclass
class GrantResult:
    """What a single ``grant`` call actually created."""

    achievements: list[RewardGrant] = field(default_factory=list)
    powers: list[PowerInstance] = field(default_factory=list)
    failed: list[RewardDefinition] = field(default_factory=list)

    @property
    def granted_any(self) -> bool:
        return bool(self.achievements or self.powers)


def _grant_power(
    ledger: Ledger,
    user_id: str,
    definition: RewardDefinition,
    now: datetime,
) -> PowerInstance | None:
    instance = ledger.insert_power_if_absent(
        user_id, definition.id, initial_values(definition, now),
    )
    if instance is not None:
        logger.info(
            "Power granted: user=%s power=%s (%s)",
            user_id, definition.id, definition.name,
        )
    return instance


def grant(
    ledger: Ledger,
    user_id: str,
    definitions: Iterable[RewardDefinition],
    now: datetime | None = None,
    catalog: CatalogCache | None = None,
) -> GrantResult:
    """Create a grant or power instance for each definition not yet held.

    *catalog* is needed to resolve the power behind an achievement's
    ``power`` reward; without it such rewards are skipped with a warning.
    """
    now = now or utcnow()
    result = GrantResult()

    for definition in definitions:
        try:
            if definition.kind is RewardKind.ACHIEVEMENT:
                created = ledger.insert_grant_if_absent(user_id, definition.id)
                if created is not None:
                    result.achievements.append(created)
                    logger.info(
                        "Achievement granted: user=%s achievement=%s (%s)",
                        user_id, definition.id, definition.name,
                    )

                # Also runs for an achievement already held, so a power
                # reward lost on an earlier call is granted now.
                power_id = definition.granted_power_id
                if power_id is None:
                    continue
                template = catalog.power(power_id) if catalog is not None else None
                if template is None:
                    logger.warning(
                        "Achievement %s rewards unknown power %s",
                        definition.id, power_id,
                    )
                    continue
                instance = _grant_power(ledger, user_id, template, now)
                if instance is not None:
                    result.powers.append(instance)
            else:
                instance = _grant_power(ledger, user_id, definition, now)
                if instance is not None:
                    result.powers.append(instance)
        except ProgressionError as exc:
            logger.warning(
                "Grant failed for user=%s %s=%s: %s",
                user_id, definition.kind.value, definition.id, exc,
            )
            result.failed.append(definition)
        except Exception:
            logger.exception(
                "Unexpected error granting %s=%s to user=%s",
                definition.kind.value, definition.id, user_id,
            )
            result.failed.append(definition)

    return result
