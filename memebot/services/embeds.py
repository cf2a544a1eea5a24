"""
memebot.services.embeds — Discord embed builders for command replies
=====================================================================

All reply layout lives here so the router only supplies a status and text.
"""

from __future__ import annotations

import enum

import discord

from memebot.services.guild_config_service import GuildConfigSnapshot


class CmdStatus(enum.StrEnum):
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    INFO = "INFO"


_STATUS_STYLE: dict[CmdStatus, tuple[str, discord.Color]] = {
    CmdStatus.SUCCESS: ("✅ Done", discord.Color.green()),
    CmdStatus.ERROR: ("❌ Error", discord.Color.red()),
    CmdStatus.INFO: ("ℹ️ Info", discord.Color.blurple()),
}


def build_response_embed(status: CmdStatus, text: str) -> discord.Embed:
    title, color = _STATUS_STYLE[status]
    return discord.Embed(title=title, description=text, color=color)


def _channel(channel_id: int | None) -> str:
    return "disabled" if channel_id is None else f"<#{channel_id}>"


def build_status_embed(config: GuildConfigSnapshot, tracked_memes: int) -> discord.Embed:
    """Summary of a guild's MemeBot settings for ``mb status``."""
    embed = discord.Embed(title="\U0001f4ca MemeBot Status", color=discord.Color.blurple())
    embed.add_field(name="Meme channel", value=_channel(config.meme_channel_id))
    embed.add_field(name="Cmd channel", value=_channel(config.cmd_channel_id))
    embed.add_field(
        name="Admin role",
        value="not set" if config.admin_role_id is None
        else f"<@&{config.admin_role_id}>",
    )
    embed.add_field(name="Downvote limit", value=str(config.downvote_limit))
    embed.add_field(name="Tracked memes", value=str(tracked_memes))
    return embed
