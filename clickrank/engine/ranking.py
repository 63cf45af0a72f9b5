"""
clickrank.engine.ranking — Leaderboard Rank Derivation
=======================================================

Rank is never stored as truth; it is recomputed from the ordered set of all
click totals.  Higher total → better (smaller) rank, ties broken by user id
so the ordering is deterministic.
"""

from __future__ import annotations

from collections.abc import Iterable

from clickrank.engine.records import RankedPlayer


def rank_players(totals: Iterable[tuple[str, int]]) -> list[RankedPlayer]:
    """Turn ``(user_id, click_total)`` pairs into 1-based ranked players."""
    ordered = sorted(totals, key=lambda pair: (-pair[1], pair[0]))
    return [
        RankedPlayer(user_id=user_id, click_total=total, rank=index + 1)
        for index, (user_id, total) in enumerate(ordered)
    ]


def rank_of(user_id: str, totals: Iterable[tuple[str, int]]) -> int | None:
    for player in rank_players(totals):
        if player.user_id == user_id:
            return player.rank
    return None
