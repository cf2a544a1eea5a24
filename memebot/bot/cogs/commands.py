"""
memebot.bot.cogs.commands — on_message → CommandRouter
=======================================================

Normalizes each incoming message into a
:class:`~memebot.services.command_router.CommandContext` and hands it to
the router.  Guild messages and DMs both go through here; the router
decides which commands are allowed where.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from memebot.services.command_router import CommandContext

if TYPE_CHECKING:
    from memebot.bot.core import MemeBot

logger = logging.getLogger(__name__)


async def previous_attachments(message: discord.Message) -> Sequence[discord.Attachment]:
    """Attachments of the message sent right before *message* in its channel."""
    async for previous in message.channel.history(limit=1, before=message):
        return previous.attachments
    return []


def build_context(message: discord.Message) -> CommandContext:
    author = message.author
    guild = message.guild
    is_member = isinstance(author, discord.Member)

    async def reply(embed: discord.Embed):
        return await message.channel.send(embed=embed)

    async def fetch_previous_attachments():
        return await previous_attachments(message)

    return CommandContext(
        guild_id=guild.id if guild else None,
        channel_id=message.channel.id,
        author_id=author.id,
        author_name=author.display_name,
        reply=reply,
        fetch_previous_attachments=fetch_previous_attachments,
        role_ids=[role.id for role in author.roles] if is_member else [],
        is_platform_admin=is_member and author.guild_permissions.administrator,
        channel_names={ch.name: ch.id for ch in guild.text_channels} if guild else {},
        role_names={role.name: role.id for role in guild.roles} if guild else {},
    )


class Commands(commands.Cog, name="Commands"):
    """Text commands (``mb meme``, ``mb post``, ``mb init`` …)."""

    def __init__(self, bot: MemeBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        # Gate: ignore ourselves and other bots
        if message.author.bot:
            return
        if not message.content.startswith(self.bot.cfg.bot_prefix):
            return
        try:
            await self.bot.router.route(message.content, build_context(message))
        except Exception:
            logger.exception(
                "Error routing message %s from user %s", message.id, message.author.id,
            )


async def setup(bot: MemeBot) -> None:
    await bot.add_cog(Commands(bot))
