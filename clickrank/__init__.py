"""
clickrank — Progression & Reward Reconciliation Engine
=======================================================
Tracks a monotonically increasing per-user click counter, derives a
leaderboard rank from it, and unlocks achievements and powers as the
counter crosses fixed milestones.  An optimistic client-side view is kept
consistent with the authoritative Ledger through batched flushes and a
periodic reconciliation pass.

Package layout::

    clickrank/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Backoff, click-speed and catalog constants
    ├── errors.py          # Error taxonomy shared by every layer
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # ORM models (progress, catalog, grants, powers)
    │   └── seed.py        # Default reward catalog seeder
    ├── engine/
    │   ├── records.py     # Detached domain records returned by the Ledger
    │   ├── milestones.py  # Threshold crossing evaluator (pure)
    │   ├── powers.py      # Power state machine + effect arithmetic (pure)
    │   ├── ranking.py     # Leaderboard rank derivation (pure)
    │   └── cache.py       # In-memory reward catalog cache
    ├── services/
    │   ├── ledger.py               # Ledger protocol + SQLAlchemy implementation
    │   ├── grant_service.py        # Idempotent reward granting
    │   ├── power_service.py        # Activation / upgrade / confirmation
    │   ├── progress_service.py     # Total submission + post-write hook
    │   ├── notification_service.py # Achievement claims, active-power snapshot
    │   └── reconciliation_service.py  # Cached view ↔ Ledger repair
    ├── client/
    │   ├── aggregator.py  # Single-flight click batching with backoff
    │   ├── transport.py   # HTTP and in-process flush transports
    │   ├── speed.py       # Sliding-window click-speed meter
    │   └── autoclick.py   # Auto-clicker driven by active powers
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Engine, ledger, JWT user dependencies
        └── routes/        # Clicks, powers, achievements
"""

__version__ = "0.1.0"
