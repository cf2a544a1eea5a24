"""
memebot.bot.transport — discord.py implementation of MemeTransport
===================================================================

Resolves channels from the bot cache first and falls back to the REST API,
so posts in channels the cache hasn't seen yet (e.g. right after a
restart) still work.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord

if TYPE_CHECKING:
    from discord.ext import commands

logger = logging.getLogger(__name__)


class DiscordTransport:
    """Posts, reacts, deletes, and reads reactors through a discord.py bot."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    async def _channel(self, channel_id: int):
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            channel = await self.bot.fetch_channel(channel_id)
        return channel

    async def post_attachment(
        self, channel_id: int, attachment: discord.Attachment, caption: str | None = None
    ) -> int:
        channel = await self._channel(channel_id)
        file = await attachment.to_file()
        message = await channel.send(content=caption, file=file)
        return message.id

    async def add_reaction(self, channel_id: int, post_id: int, symbol: str) -> None:
        channel = await self._channel(channel_id)
        await channel.get_partial_message(post_id).add_reaction(symbol)

    async def delete_message(self, channel_id: int, post_id: int) -> bool:
        try:
            channel = await self._channel(channel_id)
            await channel.get_partial_message(post_id).delete()
        except discord.NotFound:
            logger.info("Meme %d was already deleted", post_id)
            return True
        except (discord.Forbidden, discord.HTTPException) as exc:
            logger.warning("Could not delete meme %d: %s", post_id, exc)
            return False
        return True

    async def fetch_reactors(
        self, channel_id: int, post_id: int, symbol: str
    ) -> set[int] | None:
        try:
            channel = await self._channel(channel_id)
            message = await channel.fetch_message(post_id)
        except discord.NotFound:
            return None
        for reaction in message.reactions:
            if str(reaction.emoji) == symbol:
                return {user.id async for user in reaction.users()}
        return set()
