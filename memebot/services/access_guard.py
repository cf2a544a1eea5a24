"""
memebot.services.access_guard — Command Channel & Moderation Rights
====================================================================

Two yes/no questions asked before a guild command runs.  Each performs
exactly one ``guild_configs`` read; everything else is passed in by the
caller.  Call via :func:`~memebot.database.engine.run_db`.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import Engine

from memebot.services.guild_config_service import get_admin_role, get_cmd_channel


def is_authorized_channel(engine: Engine, guild_id: int, channel_id: int) -> bool:
    """True if no cmd channel is configured, or *channel_id* is that channel."""
    cmd_channel_id = get_cmd_channel(engine, guild_id)
    return cmd_channel_id is None or cmd_channel_id == channel_id


def has_moderation_rights(
    engine: Engine,
    guild_id: int,
    member_id: int,
    member_role_ids: Iterable[int],
    has_platform_admin: bool,
) -> bool:
    """True if no admin role is configured, the member holds it, or the
    member has Discord's Administrator permission."""
    admin_role_id = get_admin_role(engine, guild_id)
    if admin_role_id is None:
        return True
    return has_platform_admin or admin_role_id in set(member_role_ids)
