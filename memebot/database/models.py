"""
memebot.database.models — SQLAlchemy 2.0 Data Models
=====================================================

Tables:
- guild_configs — Per-guild MemeBot settings (one row per guild, lazy)
- memes         — Memes currently tracked for downvote moderation
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all MemeBot ORM models."""


# ---------------------------------------------------------------------------
# Guild configuration — one row per guild, created on first write
# ---------------------------------------------------------------------------
class GuildConfig(Base):
    """Per-guild settings.

    Every nullable column uses ``None`` to mean "feature off":
    no meme channel disables posting, no cmd channel disables the
    channel restriction, and no admin role lets anyone moderate.
    """
    __tablename__ = "guild_configs"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    meme_channel_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    downvote_limit: Mapped[int | None] = mapped_column(Integer, default=None)
    admin_role_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    cmd_channel_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<GuildConfig guild={self.guild_id} meme_channel={self.meme_channel_id}>"


# ---------------------------------------------------------------------------
# Memes — one row per live post; deleted (never updated) on retraction
# ---------------------------------------------------------------------------
class Meme(Base):
    __tablename__ = "memes"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    channel_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    submitter_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_memes_guild", "guild_id"),
    )

    def __repr__(self) -> str:
        return f"<Meme id={self.id} channel={self.channel_id}>"
