"""
tests/test_grant_service.py — Reward Grantor Tests
===================================================
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

from clickrank.database.models import RewardKind
from clickrank.errors import TransientStoreError
from clickrank.services.grant_service import grant
from conftest import add_achievement, add_power

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _definitions(catalog, *ids_by_kind):
    return [catalog.get(kind, id) for kind, id in ids_by_kind]


class TestGrant:
    def test_achievement_granted_unnotified(self, db_engine, ledger, empty_catalog):
        aid = add_achievement(db_engine, "Century", 100)
        result = grant(ledger, "u1", _definitions(empty_catalog, (RewardKind.ACHIEVEMENT, aid)), NOW)
        assert [g.achievement_id for g in result.achievements] == [aid]
        assert result.achievements[0].notified is False
        assert result.failed == []

    def test_at_most_one_grant_per_pair(self, db_engine, ledger, empty_catalog):
        aid = add_achievement(db_engine, "Century", 100)
        defs = _definitions(empty_catalog, (RewardKind.ACHIEVEMENT, aid))
        grant(ledger, "u1", defs, NOW)
        second = grant(ledger, "u1", defs, NOW)
        assert not second.granted_any
        assert len(ledger.list_grants("u1")) == 1

    def test_power_initial_values(self, db_engine, ledger, empty_catalog):
        pid = add_power(db_engine, "Double", duration_seconds=60, max_uses=3)
        result = grant(ledger, "u1", _definitions(empty_catalog, (RewardKind.POWER, pid)), NOW)
        inst = result.powers[0]
        assert inst.level == 1
        assert inst.is_active is True
        assert inst.expires_at == NOW + timedelta(seconds=60)
        assert inst.uses_left == 3
        assert inst.upgrade_confirmed is False

    def test_permanent_power_has_no_expiry(self, db_engine, ledger, empty_catalog):
        pid = add_power(db_engine, "Steady", effect_type="permanent",
                        duration_seconds=None, max_level=5, requires_confirmation=True)
        result = grant(ledger, "u1", _definitions(empty_catalog, (RewardKind.POWER, pid)), NOW)
        assert result.powers[0].expires_at is None

    def test_manual_activation_power_starts_inactive(self, db_engine, ledger, empty_catalog):
        pid = add_power(db_engine, "Stored", auto_activate=False)
        result = grant(ledger, "u1", _definitions(empty_catalog, (RewardKind.POWER, pid)), NOW)
        assert result.powers[0].is_active is False

    def test_achievement_power_reward_grants_power(self, db_engine, ledger, empty_catalog):
        pid = add_power(db_engine, "Double")
        aid = add_achievement(db_engine, "Gift", 100, reward_type="power", reward_value=pid)
        result = grant(
            ledger, "u1",
            _definitions(empty_catalog, (RewardKind.ACHIEVEMENT, aid)),
            NOW, catalog=empty_catalog,
        )
        assert [g.achievement_id for g in result.achievements] == [aid]
        assert [p.power_id for p in result.powers] == [pid]

    def test_failure_is_isolated_and_reported(self, db_engine, ledger, empty_catalog):
        a1 = add_achievement(db_engine, "First", 100)
        a2 = add_achievement(db_engine, "Second", 200)
        defs = _definitions(
            empty_catalog, (RewardKind.ACHIEVEMENT, a1), (RewardKind.ACHIEVEMENT, a2),
        )

        flaky = MagicMock(wraps=ledger)

        def insert(user_id, achievement_id):
            if achievement_id == a1:
                raise TransientStoreError("down")
            return ledger.insert_grant_if_absent(user_id, achievement_id)

        flaky.insert_grant_if_absent.side_effect = insert

        result = grant(flaky, "u1", defs, NOW)
        assert [d.id for d in result.failed] == [a1]
        assert [g.achievement_id for g in result.achievements] == [a2]

        # Offering the same definitions again grants only the failed one
        retry = grant(ledger, "u1", defs, NOW)
        assert [g.achievement_id for g in retry.achievements] == [a1]

    def test_unexpected_error_does_not_raise(self, db_engine, ledger, empty_catalog):
        aid = add_achievement(db_engine, "Century", 100)
        broken = MagicMock()
        broken.insert_grant_if_absent.side_effect = RuntimeError("boom")
        result = grant(broken, "u1", _definitions(empty_catalog, (RewardKind.ACHIEVEMENT, aid)), NOW)
        assert len(result.failed) == 1
