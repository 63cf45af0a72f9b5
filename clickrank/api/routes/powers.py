"""
clickrank.api.routes.powers — Power state, transitions & cache sync
====================================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from clickrank.api.deps import CatalogDep, CurrentUser, LedgerDep
from clickrank.database.models import RewardKind
from clickrank.engine.powers import power_state, remaining_seconds, utcnow
from clickrank.services.notification_service import active_powers_snapshot
from clickrank.services.power_service import PowerLifecycleManager
from clickrank.services.reconciliation_service import (
    CachedPower,
    PowerCache,
    ReconciliationMonitor,
)

router = APIRouter(prefix="/powers", tags=["powers"])
logger = logging.getLogger(__name__)


class CachedPowerIn(BaseModel):
    power_id: int
    is_active: bool = True
    level: int = 1


class SyncRequest(BaseModel):
    cached: list[CachedPowerIn] = []


def _cached_dict(entry: CachedPower) -> dict:
    return {"power_id": entry.power_id, "is_active": entry.is_active, "level": entry.level}


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
@router.get("")
def list_powers(user_id: CurrentUser, ledger: LedgerDep, catalog: CatalogDep):
    """Every power template with the user's state for it."""
    now = utcnow()
    held = {p.power_id: p for p in ledger.list_powers(user_id)}
    items = []
    for definition in catalog.definitions(RewardKind.POWER):
        instance = held.get(definition.id)
        items.append({
            "power_id": definition.id,
            "name": definition.name,
            "description": definition.description,
            "icon": definition.icon,
            "rarity": definition.rarity,
            "category": definition.category,
            "effect_type": str(definition.effect_type),
            "effect_value": definition.effect_value,
            "max_level": definition.max_level,
            "requires_confirmation": definition.requires_confirmation,
            "threshold": definition.threshold,
            "state": str(power_state(instance, definition, now)),
            "level": instance.level if instance else None,
            "uses_left": instance.uses_left if instance else None,
            "upgrade_confirmed": instance.upgrade_confirmed if instance else False,
            "remaining_seconds": (
                remaining_seconds(instance, definition, now) if instance else None
            ),
        })
    return items


@router.get("/active")
def active_powers(user_id: CurrentUser, ledger: LedgerDep, catalog: CatalogDep):
    snapshot = active_powers_snapshot(ledger, catalog, user_id)
    return {
        "powers": [
            {
                "power_id": p.power_id,
                "name": p.name,
                "effect_type": p.effect_type,
                "level": p.level,
                "remaining_seconds": p.remaining_seconds,
            }
            for p in snapshot.powers
        ],
        "multiplier": snapshot.multiplier,
        "auto_click_rate": snapshot.auto_click_rate,
        "auto_click_interval_ms": snapshot.auto_click_interval_ms,
        "click_value": snapshot.click_value,
    }


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------
def _transition(action: str, ok: bool, manager: PowerLifecycleManager,
                user_id: str, power_id: int) -> dict:
    if not ok:
        raise HTTPException(
            status.HTTP_409_CONFLICT,
            f"Cannot {action} power {power_id} in its current state",
        )
    return {"ok": True, "state": str(manager.state(user_id, power_id))}


@router.post("/{power_id}/activate")
def activate(power_id: int, user_id: CurrentUser, ledger: LedgerDep, catalog: CatalogDep):
    manager = PowerLifecycleManager(ledger, catalog)
    return _transition("activate", manager.activate(user_id, power_id),
                       manager, user_id, power_id)


@router.post("/{power_id}/upgrade")
def upgrade(power_id: int, user_id: CurrentUser, ledger: LedgerDep, catalog: CatalogDep):
    manager = PowerLifecycleManager(ledger, catalog)
    return _transition("upgrade", manager.upgrade(user_id, power_id),
                       manager, user_id, power_id)


@router.post("/{power_id}/confirm-upgrade")
def confirm_upgrade(power_id: int, user_id: CurrentUser, ledger: LedgerDep,
                    catalog: CatalogDep):
    manager = PowerLifecycleManager(ledger, catalog)
    return _transition("confirm the upgrade of", manager.confirm_upgrade(user_id, power_id),
                       manager, user_id, power_id)


# ---------------------------------------------------------------------------
# Cache sync
# ---------------------------------------------------------------------------
@router.post("/sync")
def sync(body: SyncRequest, user_id: CurrentUser, ledger: LedgerDep, catalog: CatalogDep):
    """Run one reconciliation pass against the client's cached view."""
    cache = PowerCache(
        CachedPower(c.power_id, c.is_active, c.level) for c in body.cached
    )
    monitor = ReconciliationMonitor(ledger, user_id, cache, catalog=catalog)
    result = monitor.run_once()
    return {
        "view": [_cached_dict(e) for e in sorted(result.view.values(),
                                                 key=lambda e: e.power_id)],
        "repairs": [r.power_id for r in result.repairs],
        "changed": result.changed,
    }
