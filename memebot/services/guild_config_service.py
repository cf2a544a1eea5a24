"""
memebot.services.guild_config_service — Per-Guild Settings
===========================================================

Typed read/write access to the ``guild_configs`` table.  Rows are created
lazily on the first write for a guild and never deleted here.  Concurrent
writes to the same guild are last-write-wins.

All functions are synchronous; call them from async code via
:func:`~memebot.database.engine.run_db`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import Engine
from sqlalchemy.orm import Session

from memebot.constants import DEFAULT_DOWNVOTE_LIMIT
from memebot.database.models import GuildConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GuildConfigSnapshot:
    """Read-only copy of one guild's settings, used for status output."""

    guild_id: int
    meme_channel_id: int | None
    downvote_limit: int
    admin_role_id: int | None
    cmd_channel_id: int | None

    @property
    def cmd_channel_enabled(self) -> bool:
        return self.cmd_channel_id is not None


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _read(engine: Engine, guild_id: int, column: str):
    with Session(engine) as session:
        row = session.get(GuildConfig, guild_id)
        return getattr(row, column) if row is not None else None


def _write(engine: Engine, guild_id: int, **values) -> None:
    with Session(engine) as session:
        row = session.get(GuildConfig, guild_id)
        if row is None:
            row = GuildConfig(guild_id=guild_id)
            session.add(row)
        for column, value in values.items():
            setattr(row, column, value)
        session.commit()
    logger.info("Guild %s config updated: %s", guild_id, values)


# ---------------------------------------------------------------------------
# Meme channel
# ---------------------------------------------------------------------------

def get_meme_channel(engine: Engine, guild_id: int) -> int | None:
    """Return the meme channel id, or None when posting is disabled."""
    return _read(engine, guild_id, "meme_channel_id")


def set_meme_channel(engine: Engine, guild_id: int, channel_id: int) -> None:
    _write(engine, guild_id, meme_channel_id=channel_id)


def disable_meme_channel(engine: Engine, guild_id: int) -> None:
    _write(engine, guild_id, meme_channel_id=None)


# ---------------------------------------------------------------------------
# Downvote limit
# ---------------------------------------------------------------------------

def get_downvote_limit(
    engine: Engine, guild_id: int, default: int = DEFAULT_DOWNVOTE_LIMIT
) -> int:
    """Return the guild's limit, or *default* if it never set one."""
    limit = _read(engine, guild_id, "downvote_limit")
    return default if limit is None else limit


def set_downvote_limit(engine: Engine, guild_id: int, limit: int) -> None:
    if limit < 1:
        raise ValueError(f"Downvote limit must be a positive integer, got {limit}")
    _write(engine, guild_id, downvote_limit=limit)


# ---------------------------------------------------------------------------
# Cmd channel
# ---------------------------------------------------------------------------

def get_cmd_channel(engine: Engine, guild_id: int) -> int | None:
    """Return the cmd channel id, or None when the restriction is off."""
    return _read(engine, guild_id, "cmd_channel_id")


def set_cmd_channel(engine: Engine, guild_id: int, channel_id: int) -> None:
    _write(engine, guild_id, cmd_channel_id=channel_id)


def disable_cmd_channel(engine: Engine, guild_id: int) -> None:
    _write(engine, guild_id, cmd_channel_id=None)


# ---------------------------------------------------------------------------
# Admin role
# ---------------------------------------------------------------------------

def get_admin_role(engine: Engine, guild_id: int) -> int | None:
    return _read(engine, guild_id, "admin_role_id")


def set_admin_role(engine: Engine, guild_id: int, role_id: int) -> None:
    _write(engine, guild_id, admin_role_id=role_id)


def initialize_guild(
    engine: Engine, guild_id: int, *, admin_role_id: int, cmd_channel_id: int
) -> None:
    """Set the admin role and cmd channel in a single commit (``mb init``)."""
    _write(
        engine, guild_id,
        admin_role_id=admin_role_id,
        cmd_channel_id=cmd_channel_id,
    )


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

def get_guild_config(
    engine: Engine, guild_id: int, default_limit: int = DEFAULT_DOWNVOTE_LIMIT
) -> GuildConfigSnapshot:
    with Session(engine) as session:
        row = session.get(GuildConfig, guild_id)
        if row is None:
            return GuildConfigSnapshot(guild_id, None, default_limit, None, None)
        return GuildConfigSnapshot(
            guild_id=guild_id,
            meme_channel_id=row.meme_channel_id,
            downvote_limit=row.downvote_limit if row.downvote_limit is not None else default_limit,
            admin_role_id=row.admin_role_id,
            cmd_channel_id=row.cmd_channel_id,
        )
