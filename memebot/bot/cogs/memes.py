"""
memebot.bot.cogs.memes — Reaction Events → Watch Engine
========================================================

Listens for ``on_raw_reaction_add`` and feeds every reaction on a guild
message into :class:`~memebot.engine.watcher.MemeWatchEngine`.  Raw events
are used so memes posted before a restart (and therefore not in the
message cache) are still seen.

Also retries abandoned watches (memes that couldn't be re-watched on boot)
every five minutes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands, tasks

from memebot.engine.events import ReactionEvent

if TYPE_CHECKING:
    from memebot.bot.core import MemeBot

logger = logging.getLogger(__name__)


def event_from_payload(payload: discord.RawReactionActionEvent) -> ReactionEvent:
    return ReactionEvent(
        post_id=payload.message_id,
        channel_id=payload.channel_id,
        guild_id=payload.guild_id,
        symbol=str(payload.emoji),
        reactor_id=payload.user_id,
    )


class Memes(commands.Cog, name="Memes"):
    """Downvote moderation for the meme channel."""

    def __init__(self, bot: MemeBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        self.retry_abandoned_loop.start()

    async def cog_unload(self) -> None:
        self.retry_abandoned_loop.cancel()

    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        # Gate: memes only live in guild channels
        if payload.guild_id is None:
            return
        try:
            retracted = await self.bot.watcher.handle_reaction(event_from_payload(payload))
        except Exception:
            logger.exception(
                "Error processing reaction on message %s from user %s",
                payload.message_id, payload.user_id,
            )
            return
        if retracted:
            logger.info("Meme %s retracted by community vote", payload.message_id)

    @tasks.loop(minutes=5)
    async def retry_abandoned_loop(self) -> None:
        """Re-attempt watches that failed during the startup bootstrap."""
        try:
            await self.bot.watcher.retry_abandoned()
        except Exception:
            logger.exception("Retrying abandoned meme watches failed")

    @retry_abandoned_loop.before_loop
    async def _wait_ready(self) -> None:
        await self.bot.wait_until_ready()


async def setup(bot: MemeBot) -> None:
    await bot.add_cog(Memes(bot))
