"""
clickrank.constants — Shared Constants
=======================================

Single source of truth for the numeric constants used by the client and the
services.  Import from here instead of duplicating literals.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Click aggregator backoff
# ---------------------------------------------------------------------------
FLUSH_SEED_SECONDS: float = 0.1
FLUSH_CAP_SECONDS: float = 5.0
FLUSH_GROWTH: float = 1.5

# ---------------------------------------------------------------------------
# Auto-clicker
# ---------------------------------------------------------------------------
MIN_AUTO_CLICK_INTERVAL_MS: int = 100

# ---------------------------------------------------------------------------
# Click speed (clicks counted within a sliding window)
# ---------------------------------------------------------------------------
CLICK_SPEED_WINDOW_SECONDS: float = 5.0

# ---------------------------------------------------------------------------
# Reconciliation monitor
# ---------------------------------------------------------------------------
RECONCILE_INTERVAL_SECONDS: int = 30

# ---------------------------------------------------------------------------
# Catalog presentation
# ---------------------------------------------------------------------------
RARITY_ORDER: list[str] = ["common", "uncommon", "rare", "epic", "legendary"]

# Toast display time per rarity, in milliseconds
RARITY_DISPLAY_MS: dict[str, int] = {
    "common": 3000,
    "uncommon": 4000,
    "rare": 5000,
    "epic": 6000,
    "legendary": 7000,
}
