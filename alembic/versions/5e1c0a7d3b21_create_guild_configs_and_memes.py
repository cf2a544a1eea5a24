"""Create guild_configs and memes tables

Revision ID: 5e1c0a7d3b21
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5e1c0a7d3b21"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create per-guild settings and the tracked-meme registry."""
    op.create_table(
        "guild_configs",
        sa.Column("guild_id", sa.BigInteger(), primary_key=True),
        sa.Column("meme_channel_id", sa.BigInteger(), nullable=True),
        sa.Column("downvote_limit", sa.Integer(), nullable=True),
        sa.Column("admin_role_id", sa.BigInteger(), nullable=True),
        sa.Column("cmd_channel_id", sa.BigInteger(), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "memes",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("channel_id", sa.BigInteger(), nullable=False),
        sa.Column("guild_id", sa.BigInteger(), nullable=False),
        sa.Column("submitter_id", sa.BigInteger(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_memes_guild", "memes", ["guild_id"])


def downgrade() -> None:
    """Drop the registry and guild settings."""
    op.drop_index("ix_memes_guild", table_name="memes")
    op.drop_table("memes")
    op.drop_table("guild_configs")
