"""insight cache and dismissals

Revision ID: 202601050900
Revises:
Create Date: 2026-01-05 09:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "202601050900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "insight_cache",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=120), nullable=False),
        sa.Column("cycle_id", sa.String(length=7), nullable=False),
        sa.Column("signature", sa.String(length=64), nullable=False),
        sa.Column("generated_at", sa.DateTime(), nullable=False),
        sa.Column("payload", sa.Text(), nullable=False),
        sa.UniqueConstraint(
            "user_id", "cycle_id", name="uq_insight_cache_user_cycle"
        ),
    )
    op.create_index(
        "ix_insight_cache_generated_at", "insight_cache", ["generated_at"]
    )

    op.create_table(
        "insight_dismissals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=120), nullable=False),
        sa.Column("cycle_id", sa.String(length=7), nullable=False),
        sa.Column("item_id", sa.String(length=200), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "user_id", "cycle_id", "item_id", name="uq_insight_dismissal_item"
        ),
    )
    op.create_index(
        "ix_insight_dismissal_user_cycle",
        "insight_dismissals",
        ["user_id", "cycle_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_insight_dismissal_user_cycle", table_name="insight_dismissals")
    op.drop_table("insight_dismissals")
    op.drop_index("ix_insight_cache_generated_at", table_name="insight_cache")
    op.drop_table("insight_cache")
