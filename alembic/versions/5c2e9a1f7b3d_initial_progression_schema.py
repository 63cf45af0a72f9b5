"""Initial progression schema

Revision ID: 5c2e9a1f7b3d
Revises:
Create Date: 2026-10-18 10:12:03.418207

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '5c2e9a1f7b3d'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create user_progress, the reward catalog and the grant tables."""

    # --- user_progress ---
    op.create_table(
        "user_progress",
        sa.Column("user_id", sa.String(64), primary_key=True),
        sa.Column("click_total", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_rank", sa.Integer, nullable=True),
        sa.Column("best_click_speed", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
        sa.CheckConstraint("click_total >= 0", name="ck_user_progress_total_nonneg"),
    )
    op.create_index("ix_user_progress_total_desc", "user_progress", ["click_total"])

    # --- achievements ---
    op.create_table(
        "achievements",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("icon", sa.String(50), nullable=True),
        sa.Column("threshold", sa.Float, nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("rarity", sa.String(20), nullable=False, server_default="common"),
        sa.Column("reward_type", sa.String(20), nullable=False, server_default="none"),
        sa.Column("reward_value", sa.Float, nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "type IN ('clicks', 'rank', 'click_speed')", name="ck_achievements_type",
        ),
        sa.CheckConstraint(
            "reward_type IN ('none', 'multiplier', 'auto_click', 'power')",
            name="ck_achievements_reward_type",
        ),
    )
    op.create_index(
        "ix_achievements_type_threshold", "achievements", ["type", "threshold"],
    )

    # --- special_powers ---
    op.create_table(
        "special_powers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("icon", sa.String(50), nullable=True),
        sa.Column("rarity", sa.String(20), nullable=False, server_default="common"),
        sa.Column("effect_type", sa.String(20), nullable=False),
        sa.Column("effect_value", sa.Float, nullable=False),
        sa.Column("duration_seconds", sa.Integer, nullable=True),
        sa.Column("max_level", sa.Integer, nullable=False, server_default="1"),
        sa.Column("requires_confirmation", sa.Boolean, server_default=sa.false()),
        sa.Column("category", sa.String(20), nullable=False, server_default="buff"),
        sa.Column("threshold", sa.Integer, nullable=True),
        sa.Column("auto_activate", sa.Boolean, server_default=sa.true()),
        sa.Column("max_uses", sa.Integer, nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "effect_type IN ('multiplier', 'auto_click', 'permanent')",
            name="ck_special_powers_effect_type",
        ),
        sa.CheckConstraint(
            "category IN ('buff', 'attack', 'support')",
            name="ck_special_powers_category",
        ),
        sa.CheckConstraint("max_level >= 1", name="ck_special_powers_max_level"),
    )

    # --- user_achievements ---
    op.create_table(
        "user_achievements",
        sa.Column(
            "user_id", sa.String(64),
            sa.ForeignKey("user_progress.user_id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "achievement_id", sa.Integer,
            sa.ForeignKey("achievements.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "unlocked_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
        sa.Column("notified", sa.Boolean, server_default=sa.false()),
    )
    op.create_index(
        "ix_user_achievements_pending", "user_achievements", ["user_id", "notified"],
    )

    # --- user_powers ---
    op.create_table(
        "user_powers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.String(64),
            sa.ForeignKey("user_progress.user_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "power_id", sa.Integer,
            sa.ForeignKey("special_powers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("level", sa.Integer, nullable=False, server_default="1"),
        sa.Column("is_active", sa.Boolean, server_default=sa.false()),
        sa.Column(
            "acquired_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("uses_left", sa.Integer, nullable=True),
        sa.Column("upgrade_confirmed", sa.Boolean, server_default=sa.false()),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.UniqueConstraint("user_id", "power_id", name="uq_user_powers_user_power"),
        sa.CheckConstraint("level >= 1", name="ck_user_powers_level"),
    )
    op.create_index(
        "ix_user_powers_user_active", "user_powers", ["user_id", "is_active"],
    )


def downgrade() -> None:
    """Drop every progression table."""
    op.drop_index("ix_user_powers_user_active", table_name="user_powers")
    op.drop_table("user_powers")
    op.drop_index("ix_user_achievements_pending", table_name="user_achievements")
    op.drop_table("user_achievements")
    op.drop_table("special_powers")
    op.drop_index("ix_achievements_type_threshold", table_name="achievements")
    op.drop_table("achievements")
    op.drop_index("ix_user_progress_total_desc", table_name="user_progress")
    op.drop_table("user_progress")
