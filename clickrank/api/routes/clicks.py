"""
clickrank.api.routes.clicks — Click totals, rank & click speed
===============================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from clickrank.api.deps import CatalogDep, CurrentUser, LedgerDep, get_config
from clickrank.config import ClickrankConfig
from clickrank.services import progress_service

router = APIRouter(tags=["clicks"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class TotalSubmit(BaseModel):
    total: int = Field(ge=0)


class ClickSpeedSubmit(BaseModel):
    rate: int = Field(ge=0)


# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------
@router.post("/clicks")
def submit_total(body: TotalSubmit, user_id: CurrentUser, ledger: LedgerDep,
                 catalog: CatalogDep):
    """Write the full click total and run the milestone hook."""
    result = progress_service.submit_total(ledger, catalog, user_id, body.total)
    return {
        "click_total": result.confirmed_total,
        "previous_total": result.update.previous_total,
        "rank": result.rank,
        "granted_achievements": [g.achievement_id for g in result.granted.achievements],
        "granted_powers": [p.power_id for p in result.granted.powers],
    }


@router.get("/clicks")
def get_total(user_id: CurrentUser, ledger: LedgerDep):
    return {
        "click_total": ledger.get_total(user_id),
        "rank": ledger.get_rank(user_id),
    }


@router.get("/leaderboard")
def leaderboard(
    ledger: LedgerDep,
    limit: int | None = Query(None, ge=1, le=500),
    cfg: ClickrankConfig = Depends(get_config),
):
    players = ledger.leaderboard(limit or cfg.leaderboard_size)
    return [
        {"user_id": p.user_id, "click_total": p.click_total, "rank": p.rank}
        for p in players
    ]


# ---------------------------------------------------------------------------
# Click speed
# ---------------------------------------------------------------------------
@router.post("/click-speed")
def submit_click_speed(body: ClickSpeedSubmit, user_id: CurrentUser,
                       ledger: LedgerDep, catalog: CatalogDep):
    granted = progress_service.record_click_speed(ledger, catalog, user_id, body.rate)
    return {
        "rate": body.rate,
        "granted_achievements": [g.achievement_id for g in granted.achievements],
        "granted_powers": [p.power_id for p in granted.powers],
    }
