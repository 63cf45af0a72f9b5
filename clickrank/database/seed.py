"""
clickrank.database.seed — Default Reward Catalog Seeder
========================================================

Baseline achievements and powers seeded on first startup so a fresh
deployment has milestones to cross.

Idempotent — entries are matched by their unique ``name`` and only missing
ones are inserted.  Catalog rows are immutable after creation, so existing
rows are never touched.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select

from clickrank.database.engine import get_session
from clickrank.database.models import Achievement, SpecialPower

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Achievements: (name, description, icon, rarity, threshold, type,
#                reward_type, reward_value)
# ---------------------------------------------------------------------------
DEFAULT_ACHIEVEMENTS: list[tuple[str, str, str, str, int, str, str, float | None]] = [
    # Clicks
    ("Click Apprentice", "Reach 25 clicks", "mouse-pointer", "common", 25, "clicks", "none", None),
    ("Click Adept", "Reach 50 clicks", "mouse-pointer", "common", 50, "clicks", "multiplier", 1.1),
    ("Click Expert", "Reach 100 clicks", "mouse-pointer", "common", 100, "clicks", "multiplier", 1.2),
    ("Click Master", "Reach 250 clicks", "mouse-pointer", "uncommon", 250, "clicks", "multiplier", 1.3),
    ("Click Virtuoso", "Reach 500 clicks", "mouse-pointer", "uncommon", 500, "clicks", "multiplier", 1.4),
    ("Click Champion", "Reach 1,000 clicks", "zap", "uncommon", 1000, "clicks", "multiplier", 1.5),
    ("Click Prodigy", "Reach 2,500 clicks", "zap", "rare", 2500, "clicks", "multiplier", 1.6),
    ("Click Legend", "Reach 5,000 clicks", "zap", "rare", 5000, "clicks", "multiplier", 1.75),
    ("Click Mystic", "Reach 10,000 clicks", "sparkles", "rare", 10000, "clicks", "multiplier", 2.0),
    ("Click Demigod", "Reach 25,000 clicks", "sparkles", "epic", 25000, "clicks", "auto_click", 1),
    ("Click Deity", "Reach 50,000 clicks", "crown", "epic", 50000, "clicks", "auto_click", 2),
    ("Click Immortal", "Reach 100,000 clicks", "crown", "epic", 100000, "clicks", "auto_click", 5),
    ("Click Transcendent", "Reach 250,000 clicks", "star", "legendary", 250000, "clicks", "auto_click", 10),
    ("Click Cosmic", "Reach 500,000 clicks", "sun", "legendary", 500000, "clicks", "auto_click", 15),
    ("Click Universal", "Reach 1,000,000 clicks", "infinity", "legendary", 1000000, "clicks", "multiplier", 5.0),
    # Rank
    ("Rank Novice", "Reach rank 2", "arrow-up", "common", 2, "rank", "multiplier", 1.1),
    ("Rank Apprentice", "Reach rank 3", "arrow-up", "common", 3, "rank", "multiplier", 1.2),
    ("Rank Adept", "Reach rank 5", "arrow-up", "common", 5, "rank", "multiplier", 1.3),
    ("Rank Expert", "Reach rank 10", "award", "uncommon", 10, "rank", "multiplier", 1.5),
    ("Rank Master", "Reach rank 15", "award", "uncommon", 15, "rank", "multiplier", 1.75),
    ("Rank Champion", "Reach rank 25", "award", "uncommon", 25, "rank", "auto_click", 1),
    ("Rank Virtuoso", "Reach rank 40", "trophy", "rare", 40, "rank", "auto_click", 2),
    ("Rank Prodigy", "Reach rank 60", "trophy", "rare", 60, "rank", "auto_click", 3),
    ("Rank Legend", "Reach rank 85", "trophy", "rare", 85, "rank", "multiplier", 2.5),
    ("Rank Mythos", "Reach rank 100", "gem", "epic", 100, "rank", "auto_click", 5),
    ("Rank Demigod", "Reach rank 150", "gem", "epic", 150, "rank", "multiplier", 3.0),
    ("Rank Deity", "Reach rank 200", "gem", "epic", 200, "rank", "auto_click", 7),
    ("Rank Immortal", "Reach rank 250", "crown", "legendary", 250, "rank", "multiplier", 4.0),
    ("Rank Transcendent", "Reach rank 300", "crown", "legendary", 300, "rank", "auto_click", 10),
    ("Rank Cosmic", "Reach rank 500", "sun", "legendary", 500, "rank", "multiplier", 5.0),
    # Click speed (clicks within the speed window)
    ("Quick Clicker", "Click 10 times in 5 seconds", "clock", "common", 10, "click_speed", "multiplier", 1.2),
    ("Speed Demon", "Click 20 times in 5 seconds", "clock", "uncommon", 20, "click_speed", "multiplier", 1.5),
    ("Lightning Hands", "Click 30 times in 5 seconds", "zap", "rare", 30, "click_speed", "multiplier", 2.0),
    ("Sonic Clicker", "Click 40 times in 5 seconds", "zap", "epic", 40, "click_speed", "auto_click", 3),
    ("Speed of Light", "Click 50 times in 5 seconds", "sparkles", "legendary", 50, "click_speed", "auto_click", 10),
]
"""Each entry maps to one ``achievements`` row."""


# ---------------------------------------------------------------------------
# Powers: (name, description, effect_type, effect_value, duration_seconds,
#          icon, rarity, category, max_level, requires_confirmation,
#          click milestone)
# ---------------------------------------------------------------------------
DEFAULT_POWERS: list[
    tuple[str, str, str, float, int | None, str, str, str, int, bool, int | None]
] = [
    # Multipliers
    ("Double Trouble", "Double your clicks for 1 minute",
     "multiplier", 2.0, 60, "flame", "common", "buff", 3, False, 100),
    ("Triple Threat", "Triple your clicks for 1 minute",
     "multiplier", 3.0, 60, "flame", "uncommon", "buff", 3, False, 500),
    ("Quadra Power", "Quadruple your clicks for 1 minute",
     "multiplier", 4.0, 60, "flame", "rare", "buff", 3, False, 1000),
    ("Penta Power", "Multiply your clicks by 5 for 1 minute",
     "multiplier", 5.0, 60, "flame", "epic", "buff", 3, False, 5000),
    ("Deca Power", "Multiply your clicks by 10 for 1 minute",
     "multiplier", 10.0, 60, "flame", "legendary", "buff", 3, False, 10000),
    # Auto clickers
    ("Helping Hand", "Auto-click once per second for 2 minutes",
     "auto_click", 1, 120, "hand", "common", "support", 3, False, 1000),
    ("Busy Hands", "Auto-click 3 times per second for 2 minutes",
     "auto_click", 3, 120, "hand", "uncommon", "support", 3, False, 2500),
    ("Many Hands", "Auto-click 5 times per second for 2 minutes",
     "auto_click", 5, 120, "hand", "rare", "support", 3, False, 5000),
    ("Hundred Hands", "Auto-click 10 times per second for 2 minutes",
     "auto_click", 10, 120, "hand", "epic", "support", 3, False, 10000),
    ("Thousand Hands", "Auto-click 20 times per second for 2 minutes",
     "auto_click", 20, 120, "hand", "legendary", "support", 3, False, 25000),
    # Permanent upgrades
    ("Steady Hand", "Permanently increase base click value by 1",
     "permanent", 1, None, "hand-metal", "common", "attack", 5, True, 2000),
    ("Reinforced Click", "Permanently increase base click value by 2",
     "permanent", 2, None, "hand-metal", "uncommon", "attack", 5, True, 5000),
    ("Enhanced Click", "Permanently increase base click value by 5",
     "permanent", 5, None, "hand-metal", "rare", "attack", 5, True, 10000),
    ("Supercharged Click", "Permanently increase base click value by 10",
     "permanent", 10, None, "hand-metal", "epic", "attack", 5, True, 25000),
    ("Godly Click", "Permanently increase base click value by 25",
     "permanent", 25, None, "hand-metal", "legendary", "attack", 5, True, 50000),
]
"""Each entry maps to one ``special_powers`` row."""


# ---------------------------------------------------------------------------
# Seeder
# ---------------------------------------------------------------------------
def seed_catalog(engine: Engine) -> dict[str, int]:
    """Insert default achievements and powers that don't yet exist.

    Returns ``{"achievements": N, "powers": M}`` — the number of rows
    inserted on this call (0/0 on every run after the first).
    """
    inserted = {"achievements": 0, "powers": 0}

    with get_session(engine) as session:
        existing_achievements = set(session.scalars(select(Achievement.name)).all())
        for (name, desc, icon, rarity, threshold, type_,
             reward_type, reward_value) in DEFAULT_ACHIEVEMENTS:
            if name in existing_achievements:
                continue
            session.add(Achievement(
                name=name,
                description=desc,
                icon=icon,
                rarity=rarity,
                threshold=threshold,
                type=type_,
                reward_type=reward_type,
                reward_value=reward_value,
            ))
            inserted["achievements"] += 1

        existing_powers = set(session.scalars(select(SpecialPower.name)).all())
        for (name, desc, effect_type, effect_value, duration, icon, rarity,
             category, max_level, confirm, milestone) in DEFAULT_POWERS:
            if name in existing_powers:
                continue
            session.add(SpecialPower(
                name=name,
                description=desc,
                icon=icon,
                rarity=rarity,
                effect_type=effect_type,
                effect_value=effect_value,
                duration_seconds=duration,
                max_level=max_level,
                requires_confirmation=confirm,
                category=category,
                threshold=milestone,
                auto_activate=True,
            ))
            inserted["powers"] += 1

    if inserted["achievements"] or inserted["powers"]:
        logger.info(
            "Seeded catalog: %d achievements, %d powers.",
            inserted["achievements"], inserted["powers"],
        )
    return inserted
