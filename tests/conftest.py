"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of clickrank.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import asyncio  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from clickrank.database.models import Achievement, Base, SpecialPower  # noqa: E402
from clickrank.database.seed import seed_catalog  # noqa: E402
from clickrank.engine.cache import CatalogCache  # noqa: E402
from clickrank.services.ledger import SqlLedger  # noqa: E402


# Helper to run async tests without pytest-asyncio
def run_async(coro):
    """Run an async coroutine in a fresh event loop."""
    return asyncio.run(coro)


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all clickrank tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def ledger(db_engine: Engine) -> SqlLedger:
    return SqlLedger(db_engine)


@pytest.fixture
def catalog(db_engine: Engine, ledger: SqlLedger) -> CatalogCache:
    """Catalog cache over the default seeded catalog."""
    seed_catalog(db_engine)
    cache = CatalogCache(ledger)
    cache.load_all()
    return cache


@pytest.fixture
def empty_catalog(ledger: SqlLedger) -> CatalogCache:
    """Catalog cache over whatever the test inserts itself."""
    return CatalogCache(ledger)


# ---------------------------------------------------------------------------
# Catalog factories
# ---------------------------------------------------------------------------
def add_achievement(
    engine: Engine,
    name: str,
    threshold: float,
    *,
    type: str = "clicks",
    rarity: str = "common",
    reward_type: str = "none",
    reward_value: float | None = None,
) -> int:
    """Insert an achievement and return its id."""
    with Session(engine) as session:
        row = Achievement(
            name=name, description=name, icon="star", threshold=threshold,
            type=type, rarity=rarity, reward_type=reward_type,
            reward_value=reward_value,
        )
        session.add(row)
        session.commit()
        return row.id


def add_power(
    engine: Engine,
    name: str,
    *,
    effect_type: str = "multiplier",
    effect_value: float = 2.0,
    duration_seconds: int | None = 60,
    max_level: int = 3,
    requires_confirmation: bool = False,
    threshold: int | None = None,
    auto_activate: bool = True,
    max_uses: int | None = None,
    category: str = "buff",
) -> int:
    """Insert a power template and return its id."""
    with Session(engine) as session:
        row = SpecialPower(
            name=name, description=name, icon="flame", rarity="common",
            effect_type=effect_type, effect_value=effect_value,
            duration_seconds=duration_seconds, max_level=max_level,
            requires_confirmation=requires_confirmation, category=category,
            threshold=threshold, auto_activate=auto_activate, max_uses=max_uses,
        )
        session.add(row)
        session.commit()
        return row.id


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------
def make_user_token(sub: str = "user-1") -> str:
    """Create a user JWT.  Usable as both a fixture and a factory function."""
    import jwt

    from clickrank.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode({"sub": sub}, JWT_SECRET, algorithm=JWT_ALGORITHM)


@pytest.fixture
def user_token():
    return make_user_token()


@pytest.fixture
def client(ledger: SqlLedger, catalog: CatalogCache):
    """FastAPI TestClient wired to the in-memory ledger and seeded catalog."""
    from fastapi.testclient import TestClient

    from clickrank.api import deps
    from clickrank.api.main import app
    from clickrank.config import ClickrankConfig

    app.dependency_overrides[deps.get_ledger] = lambda: ledger
    app.dependency_overrides[deps.get_catalog] = lambda: catalog
    app.dependency_overrides[deps.get_config] = lambda: ClickrankConfig(
        app_name="clickrank-test", api_port=8000,
    )
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
