"""create phantom accounting tables

Revision ID: 0001
Revises:
Create Date: 2026-09-02 10:14:00

"""
from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

from phantomledger.adapters.sqlalchemy.mappings import UTCDateTime

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "phantom_reaction",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("post_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("reaction_type", sa.String(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_phantom_reaction")),
        sa.UniqueConstraint(
            "post_id",
            "user_id",
            "reaction_type",
            name=op.f("uq_phantom_reaction_post_id"),
        ),
    )
    op.create_index("ix_phantom_reaction_user_id", "phantom_reaction", ["user_id"])
    op.create_index("ix_phantom_reaction_category_id", "phantom_reaction", ["category_id"])

    op.create_table(
        "user_stat",
        sa.Column("user_id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("likes_given", sa.Integer(), server_default="0", nullable=False),
        sa.Column("likes_received", sa.Integer(), server_default="0", nullable=False),
        sa.CheckConstraint(
            "likes_given >= 0", name=op.f("ck_user_stat_likes_given_non_negative")
        ),
        sa.CheckConstraint(
            "likes_received >= 0", name=op.f("ck_user_stat_likes_received_non_negative")
        ),
        sa.PrimaryKeyConstraint("user_id", name=op.f("pk_user_stat")),
    )


def downgrade() -> None:
    op.drop_table("user_stat")
    op.drop_index("ix_phantom_reaction_category_id", table_name="phantom_reaction")
    op.drop_index("ix_phantom_reaction_user_id", table_name="phantom_reaction")
    op.drop_table("phantom_reaction")
