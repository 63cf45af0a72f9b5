"""
tests/test_ledger.py — SqlLedger Integration Tests
===================================================

Runs against the in-memory SQLite engine from conftest.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from clickrank.database.models import RewardKind, TriggerType
from clickrank.errors import (
    ConflictError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from conftest import add_achievement, add_power

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


# ===========================================================================
# Click totals
# ===========================================================================
class TestTotals:
    def test_unknown_user_total_is_zero(self, ledger):
        assert ledger.get_total("nobody") == 0

    def test_first_write_creates_row(self, ledger):
        update = ledger.set_total("u1", 40)
        assert (update.previous_total, update.confirmed_total) == (0, 40)
        assert ledger.get_total("u1") == 40

    def test_increasing_write_reports_previous(self, ledger):
        ledger.set_total("u1", 40)
        update = ledger.set_total("u1", 90)
        assert (update.previous_total, update.confirmed_total) == (40, 90)

    def test_equal_write_is_idempotent(self, ledger):
        ledger.set_total("u1", 40)
        update = ledger.set_total("u1", 40)
        assert not update.changed
        assert ledger.get_total("u1") == 40

    def test_decrease_rejected_with_current_total(self, ledger):
        ledger.set_total("u1", 40)
        with pytest.raises(ValidationError) as info:
            ledger.set_total("u1", 39)
        assert info.value.current_total == 40
        assert ledger.get_total("u1") == 40

    @pytest.mark.parametrize("bad", [-1, 1.5, "10", True])
    def test_invalid_totals_rejected(self, ledger, bad):
        with pytest.raises(ValidationError):
            ledger.set_total("u1", bad)

    def test_store_failure_translated(self, ledger, monkeypatch):
        def broken(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        monkeypatch.setattr("clickrank.services.ledger.get_session", broken)
        with pytest.raises(TransientStoreError) as info:
            ledger.get_total("u1")
        assert info.value.retryable


# ===========================================================================
# Catalog
# ===========================================================================
class TestCatalog:
    def test_achievements_ordered_by_threshold(self, db_engine, ledger):
        add_achievement(db_engine, "Big", 500)
        add_achievement(db_engine, "Small", 100)
        names = [d.name for d in ledger.list_catalog(RewardKind.ACHIEVEMENT)]
        assert names == ["Small", "Big"]

    def test_power_with_threshold_is_click_triggered(self, db_engine, ledger):
        add_power(db_engine, "Milestone", threshold=100)
        add_power(db_engine, "RewardOnly")
        by_name = {d.name: d for d in ledger.list_catalog(RewardKind.POWER)}
        assert by_name["Milestone"].trigger is TriggerType.CLICKS
        assert by_name["RewardOnly"].trigger is None


# ===========================================================================
# Grants
# ===========================================================================
class TestGrants:
    def test_insert_grant_once(self, db_engine, ledger):
        aid = add_achievement(db_engine, "Century", 100)
        first = ledger.insert_grant_if_absent("u1", aid)
        assert first is not None and first.notified is False
        assert ledger.insert_grant_if_absent("u1", aid) is None
        assert len(ledger.list_grants("u1")) == 1

    def test_grant_creates_progress_row(self, db_engine, ledger):
        aid = add_achievement(db_engine, "Century", 100)
        ledger.insert_grant_if_absent("fresh", aid)
        assert ledger.get_total("fresh") == 0
        assert ledger.get_rank("fresh") == 1

    def test_mark_notified_flips_exactly_once(self, db_engine, ledger):
        aid = add_achievement(db_engine, "Century", 100)
        ledger.insert_grant_if_absent("u1", aid)
        assert [g.achievement_id for g in ledger.pending_notifications("u1")] == [aid]
        assert ledger.mark_notified("u1", aid) is True
        assert ledger.mark_notified("u1", aid) is False
        assert ledger.pending_notifications("u1") == []

    def test_unlocked_at_is_timezone_aware(self, db_engine, ledger):
        aid = add_achievement(db_engine, "Century", 100)
        grant = ledger.insert_grant_if_absent("u1", aid)
        assert grant.unlocked_at.tzinfo is not None


# ===========================================================================
# Powers
# ===========================================================================
class TestPowers:
    def test_insert_power_once(self, db_engine, ledger):
        pid = add_power(db_engine, "Double")
        values = {"level": 1, "is_active": True, "expires_at": NOW + timedelta(seconds=60)}
        first = ledger.insert_power_if_absent("u1", pid, values)
        assert first.level == 1 and first.is_active and first.version == 1
        assert first.expires_at == NOW + timedelta(seconds=60)
        assert ledger.insert_power_if_absent("u1", pid, values) is None

    def test_conditional_update_bumps_version(self, db_engine, ledger):
        pid = add_power(db_engine, "Double")
        inst = ledger.insert_power_if_absent("u1", pid, {"level": 1})
        updated = ledger.insert_or_update_power(
            "u1", pid, {"level": 2}, expected_version=inst.version,
        )
        assert updated.level == 2
        assert updated.version == inst.version + 1

    def test_stale_version_conflicts(self, db_engine, ledger):
        pid = add_power(db_engine, "Double")
        inst = ledger.insert_power_if_absent("u1", pid, {"level": 1})
        ledger.insert_or_update_power("u1", pid, {"level": 2}, expected_version=inst.version)
        with pytest.raises(ConflictError):
            ledger.insert_or_update_power(
                "u1", pid, {"level": 3}, expected_version=inst.version,
            )
        assert ledger.get_power("u1", pid).level == 2

    def test_conditional_update_of_missing_power(self, db_engine, ledger):
        pid = add_power(db_engine, "Double")
        with pytest.raises(NotFoundError):
            ledger.insert_or_update_power("u1", pid, {"level": 2}, expected_version=1)

    def test_unconditional_upsert_inserts(self, db_engine, ledger):
        pid = add_power(db_engine, "Double")
        inst = ledger.insert_or_update_power("u1", pid, {"is_active": True})
        assert inst.is_active and inst.level == 1

    def test_unknown_patch_field_rejected(self, db_engine, ledger):
        pid = add_power(db_engine, "Double")
        with pytest.raises(ValidationError):
            ledger.insert_or_update_power("u1", pid, {"version": 99})


# ===========================================================================
# Rank & click speed
# ===========================================================================
class TestRank:
    def test_rank_orders_by_total_then_user_id(self, ledger):
        ledger.set_total("b", 100)
        ledger.set_total("a", 100)
        ledger.set_total("c", 500)
        assert ledger.get_rank("c") == 1
        assert ledger.get_rank("a") == 2
        assert ledger.get_rank("b") == 3
        assert ledger.get_rank("missing") is None

    def test_leaderboard_matches_get_rank(self, ledger):
        for user, total in [("a", 10), ("b", 30), ("c", 20)]:
            ledger.set_total(user, total)
        board = ledger.leaderboard(limit=2)
        assert [(p.user_id, p.rank) for p in board] == [("b", 1), ("c", 2)]

    def test_record_rank_returns_previous(self, ledger):
        ledger.set_total("u1", 10)
        assert ledger.record_rank("u1", 3) is None
        assert ledger.record_rank("u1", 2) == 3

    def test_record_click_speed_keeps_best(self, ledger):
        assert ledger.record_click_speed("u1", 12) == 0
        assert ledger.record_click_speed("u1", 8) == 12
        assert ledger.record_click_speed("u1", 15) == 12
