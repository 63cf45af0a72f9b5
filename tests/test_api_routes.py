"""
tests/test_api_routes.py — FastAPI Route Integration Tests
===========================================================

Runs the app against the in-memory ledger and seeded catalog from conftest
(dependency overrides, see the ``client`` fixture).
"""

from __future__ import annotations

import jwt

from clickrank.api.deps import JWT_ALGORITHM
from conftest import make_user_token


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ===========================================================================
# Health & auth
# ===========================================================================
class TestHealthAndAuth:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_missing_token_rejected(self, client):
        assert client.get("/api/clicks").status_code == 401

    def test_bad_signature_rejected(self, client):
        forged = jwt.encode({"sub": "u1"}, "not-the-secret-" + "y" * 40, algorithm=JWT_ALGORITHM)
        assert client.get("/api/clicks", headers=_auth(forged)).status_code == 401


# ===========================================================================
# Clicks
# ===========================================================================
class TestClicks:
    def test_submit_and_read_total(self, client, user_token):
        resp = client.post("/api/clicks", json={"total": 60}, headers=_auth(user_token))
        assert resp.status_code == 200
        body = resp.json()
        assert body["click_total"] == 60
        assert body["rank"] == 1
        assert len(body["granted_achievements"]) == 2

        resp = client.get("/api/clicks", headers=_auth(user_token))
        assert resp.json() == {"click_total": 60, "rank": 1}

    def test_decreasing_total_is_409_with_current_total(self, client, user_token):
        client.post("/api/clicks", json={"total": 60}, headers=_auth(user_token))
        resp = client.post("/api/clicks", json={"total": 10}, headers=_auth(user_token))
        assert resp.status_code == 409
        assert resp.json()["detail"]["current_total"] == 60

    def test_negative_total_is_422(self, client, user_token):
        resp = client.post("/api/clicks", json={"total": -1}, headers=_auth(user_token))
        assert resp.status_code == 422

    def test_leaderboard(self, client):
        for user, total in [("a", 10), ("b", 30)]:
            client.post("/api/clicks", json={"total": total},
                        headers=_auth(make_user_token(user)))
        resp = client.get("/api/leaderboard")
        assert resp.status_code == 200
        assert [(p["user_id"], p["rank"]) for p in resp.json()] == [("b", 1), ("a", 2)]

    def test_click_speed(self, client, user_token):
        resp = client.post("/api/click-speed", json={"rate": 12}, headers=_auth(user_token))
        assert resp.status_code == 200
        assert len(resp.json()["granted_achievements"]) == 1


# ===========================================================================
# Achievements
# ===========================================================================
class TestAchievements:
    def test_catalog_with_unlock_state(self, client, user_token):
        client.post("/api/clicks", json={"total": 30}, headers=_auth(user_token))
        resp = client.get("/api/achievements", headers=_auth(user_token))
        assert resp.status_code == 200
        unlocked = [a["name"] for a in resp.json() if a["unlocked"]]
        assert unlocked == ["Click Apprentice"]

    def test_notifications_claimed_once(self, client, user_token):
        client.post("/api/clicks", json={"total": 30}, headers=_auth(user_token))
        first = client.get("/api/achievements/notifications", headers=_auth(user_token))
        assert [n["name"] for n in first.json()] == ["Click Apprentice"]
        second = client.get("/api/achievements/notifications", headers=_auth(user_token))
        assert second.json() == []


# ===========================================================================
# Powers
# ===========================================================================
class TestPowers:
    def _unlock_double_trouble(self, client, token) -> int:
        client.post("/api/clicks", json={"total": 100}, headers=_auth(token))
        powers = client.get("/api/powers", headers=_auth(token)).json()
        return next(p["power_id"] for p in powers if p["name"] == "Double Trouble")

    def test_power_states(self, client, user_token):
        pid = self._unlock_double_trouble(client, user_token)
        powers = {p["power_id"]: p for p in client.get("/api/powers",
                                                       headers=_auth(user_token)).json()}
        assert powers[pid]["state"] == "active"
        assert sum(1 for p in powers.values() if p["state"] == "locked") == 14

    def test_active_snapshot(self, client, user_token):
        self._unlock_double_trouble(client, user_token)
        resp = client.get("/api/powers/active", headers=_auth(user_token))
        body = resp.json()
        assert [p["name"] for p in body["powers"]] == ["Double Trouble"]
        assert body["multiplier"] == 2.0
        assert body["click_value"] == 2

    def test_upgrade_and_invalid_activation(self, client, user_token):
        pid = self._unlock_double_trouble(client, user_token)
        resp = client.post(f"/api/powers/{pid}/upgrade", headers=_auth(user_token))
        assert resp.status_code == 200
        # Already active → activation is not a valid transition
        resp = client.post(f"/api/powers/{pid}/activate", headers=_auth(user_token))
        assert resp.status_code == 409

    def test_locked_power_transition_is_409(self, client, user_token):
        resp = client.post("/api/powers/1/upgrade", headers=_auth(user_token))
        assert resp.status_code == 409

    def test_sync_copies_and_drops(self, client, user_token):
        pid = self._unlock_double_trouble(client, user_token)
        resp = client.post(
            "/api/powers/sync",
            json={"cached": [{"power_id": 9999, "is_active": True, "level": 1}]},
            headers=_auth(user_token),
        )
        body = resp.json()
        assert body["view"] == [{"power_id": pid, "is_active": True, "level": 1}]
        assert body["changed"] is True
        assert body["repairs"] == []
