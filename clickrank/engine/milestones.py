"""
clickrank.engine.milestones — Milestone Evaluator
==================================================

Decides which catalog entries a metric change has newly crossed.  A
definition is crossed when::

    previous < threshold <= new

so the upper boundary is inclusive and every intermediate threshold of a
large jump (90 → 600 crosses 100, 250 and 500) is reported, not only the
highest.  Definitions whose key is already granted are skipped, which makes
re-evaluating the same ``(previous, new)`` pair a no-op.

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from clickrank.database.models import TriggerType
from clickrank.engine.records import RewardDefinition

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# MetricChange — one observed (previous, new) pair for a trigger type
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class MetricChange:
    """A metric moved from ``previous`` to ``new``.

    ``previous`` is None when the metric has never been observed (e.g. the
    first rank computed for a user); it is then treated as 0.
    """

    trigger: TriggerType
    previous: float | None
    new: float


def crossed(threshold: float | None, previous: float, new: float) -> bool:
    """True if *threshold* lies in the half-open interval ``(previous, new]``."""
    if threshold is None:
        return False
    return previous < threshold <= new


def evaluate(
    previous: float | None,
    new: float,
    catalog: Iterable[RewardDefinition],
    already_granted: set[tuple[str, int]],
    trigger: TriggerType = TriggerType.CLICKS,
) -> list[RewardDefinition]:
    """Return the definitions of *trigger* type newly crossed by this change.

    Parameters
    ----------
    previous : Metric value before the change (None → 0).
    new : Metric value after the change.
    catalog : Candidate definitions; those of another trigger are ignored.
    already_granted : Keys (``RewardDefinition.key``) the user already holds.

    Returns
    -------
    Newly crossed definitions, ordered by threshold then id.
    """
    start = previous or 0
    if new <= start:
        return []

    newly_crossed = [
        definition
        for definition in catalog
        if definition.trigger == trigger
        and definition.key not in already_granted
        and crossed(definition.threshold, start, new)
    ]
    newly_crossed.sort(key=lambda d: (d.threshold, d.kind.value, d.id))

    for definition in newly_crossed:
        logger.debug(
            "Milestone crossed: %s %s (threshold=%s, %s→%s)",
            definition.kind.value, definition.name, definition.threshold, start, new,
        )
    return newly_crossed


def evaluate_changes(
    changes: Iterable[MetricChange],
    catalog: Iterable[RewardDefinition],
    already_granted: set[tuple[str, int]],
) -> list[RewardDefinition]:
    """Evaluate several metric changes at once, without duplicates.

    Used by the post-write hook, which observes a click change and a rank
    change from the same write.
    """
    definitions = list(catalog)
    seen = set(already_granted)
    result: list[RewardDefinition] = []
    for change in changes:
        for definition in evaluate(
            change.previous, change.new, definitions, seen, change.trigger,
        ):
            seen.add(definition.key)
            result.append(definition)
    return result


def evaluate_reached(
    values: dict[TriggerType, float | None],
    catalog: Iterable[RewardDefinition],
    already_granted: set[tuple[str, int]],
) -> list[RewardDefinition]:
    """Definitions whose threshold is at or below the current metric value but
    which the user does not hold yet.

    Catches up on grants a previous write reported as crossed but failed to
    persist.  *values* maps each trigger to its current value; a None value
    (metric never observed) reaches nothing.
    """
    reached = [
        definition
        for definition in catalog
        if definition.key not in already_granted
        and definition.threshold is not None
        and values.get(definition.trigger) is not None
        and 0 < definition.threshold <= values[definition.trigger]
    ]
    reached.sort(key=lambda d: (d.threshold, d.kind.value, d.id))
    return reached
