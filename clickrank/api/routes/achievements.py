"""
clickrank.api.routes.achievements — Achievement catalog & unlock notifications
===============================================================================
"""

from __future__ import annotations

from fastapi import APIRouter

from clickrank.api.deps import CatalogDep, CurrentUser, LedgerDep
from clickrank.database.models import RewardKind
from clickrank.services.notification_service import claim_new_achievements

router = APIRouter(prefix="/achievements", tags=["achievements"])


@router.get("")
def list_achievements(user_id: CurrentUser, ledger: LedgerDep, catalog: CatalogDep):
    """The full catalog with the user's unlock state."""
    unlocked = {g.achievement_id: g for g in ledger.list_grants(user_id)}
    items = []
    for definition in catalog.definitions(RewardKind.ACHIEVEMENT):
        grant = unlocked.get(definition.id)
        items.append({
            "id": definition.id,
            "name": definition.name,
            "description": definition.description,
            "icon": definition.icon,
            "rarity": definition.rarity,
            "type": str(definition.trigger),
            "threshold": definition.threshold,
            "reward_type": str(definition.reward_type),
            "reward_value": definition.reward_value,
            "unlocked": grant is not None,
            "unlocked_at": grant.unlocked_at.isoformat() if grant and grant.unlocked_at else None,
        })
    return items


@router.get("/notifications")
def notifications(user_id: CurrentUser, ledger: LedgerDep, catalog: CatalogDep):
    """Claim unseen unlocks; each one is returned to exactly one caller."""
    return [
        {
            "id": e.achievement_id,
            "name": e.name,
            "description": e.description,
            "icon": e.icon,
            "rarity": e.rarity,
            "unlocked_at": e.unlocked_at.isoformat() if e.unlocked_at else None,
            "display_ms": e.display_ms,
        }
        for e in claim_new_achievements(ledger, catalog, user_id)
    ]
