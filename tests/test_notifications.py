"""
tests/test_notifications.py — Presentation Feed Tests
======================================================
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from clickrank.database.models import RewardKind
from clickrank.services.grant_service import grant
from clickrank.services.notification_service import (
    active_powers_snapshot,
    claim_new_achievements,
)
from conftest import add_achievement, add_power

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class TestClaims:
    def test_each_unlock_delivered_once(self, db_engine, ledger, empty_catalog):
        aid = add_achievement(db_engine, "Century", 100, rarity="rare")
        grant(ledger, "u1", [empty_catalog.achievement(aid)], NOW)

        first = claim_new_achievements(ledger, empty_catalog, "u1")
        assert [(e.name, e.display_ms) for e in first] == [("Century", 5000)]
        assert claim_new_achievements(ledger, empty_catalog, "u1") == []

    def test_lost_claim_is_not_emitted(self, db_engine, ledger, empty_catalog):
        aid = add_achievement(db_engine, "Century", 100)
        grant(ledger, "u1", [empty_catalog.achievement(aid)], NOW)
        # Another consumer claims between our read and our flip
        pending = ledger.pending_notifications("u1")
        ledger.mark_notified("u1", aid)

        class StaleLedger:
            def pending_notifications(self, user_id):
                return pending

            def mark_notified(self, user_id, achievement_id):
                return ledger.mark_notified(user_id, achievement_id)

        assert claim_new_achievements(StaleLedger(), empty_catalog, "u1") == []


class TestSnapshot:
    def test_snapshot_reports_active_powers_and_derived_values(
        self, db_engine, ledger, empty_catalog,
    ):
        double = add_power(db_engine, "Double", effect_value=2.0, duration_seconds=60)
        triple = add_power(db_engine, "Triple", effect_value=3.0, duration_seconds=60)
        hands = add_power(db_engine, "Hands", effect_type="auto_click", effect_value=5,
                          duration_seconds=120, category="support")
        stored = add_power(db_engine, "Stored", auto_activate=False)
        grant(ledger, "u1", [empty_catalog.get(RewardKind.POWER, p)
                             for p in (double, triple, hands, stored)], NOW)

        snap = active_powers_snapshot(ledger, empty_catalog, "u1", NOW + timedelta(seconds=30))
        assert {p.name for p in snap.powers} == {"Double", "Triple", "Hands"}
        assert snap.multiplier == 6.0
        assert snap.auto_click_rate == 5
        assert snap.auto_click_interval_ms == 200
        assert snap.click_value == 6
        by_name = {p.name: p for p in snap.powers}
        assert by_name["Double"].remaining_seconds == 30

    def test_expired_powers_drop_out(self, db_engine, ledger, empty_catalog):
        pid = add_power(db_engine, "Double", duration_seconds=60)
        grant(ledger, "u1", [empty_catalog.get(RewardKind.POWER, pid)], NOW)
        snap = active_powers_snapshot(ledger, empty_catalog, "u1", NOW + timedelta(minutes=2))
        assert snap.powers == []
        assert snap.multiplier == 1.0
        assert snap.click_value == 1
