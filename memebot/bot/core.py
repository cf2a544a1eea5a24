"""
memebot.bot.core — Bot Instance, Cog Loader & Watch Bootstrap
==============================================================

Defines :class:`MemeBot`, a ``commands.Bot`` subclass that:

1. Owns the shared state every cog reads via ``self.bot.*``: config, DB
   engine, meme registry, watch engine and command router.
2. Loads every cog listed in :data:`EXTENSIONS`.
3. On the first ``on_ready``, re-watches every meme that was live before
   the restart.
4. On shutdown, lets in-flight retractions finish before disconnecting.
"""

from __future__ import annotations

import logging

import discord
from discord.ext import commands
from sqlalchemy import Engine

from memebot.bot.transport import DiscordTransport
from memebot.config import MemeBotConfig
from memebot.engine.watcher import MemeWatchEngine
from memebot.services.command_router import CommandRouter
from memebot.services.meme_registry import MemeRegistry

logger = logging.getLogger(__name__)

EXTENSIONS: list[str] = [
    "memebot.bot.cogs.memes",
    "memebot.bot.cogs.commands",
]


class MemeBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`MemeBotConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine` holding guild configs and memes.
    """

    def __init__(self, cfg: MemeBotConfig, engine: Engine) -> None:
        intents = discord.Intents.default()
        intents.message_content = True  # Privileged: command text
        intents.presences = False

        super().__init__(
            command_prefix=cfg.bot_prefix,
            intents=intents,
            description="MemeBot - Automates and manages meme channels for Discord guilds",
        )

        self.cfg = cfg
        self.engine = engine
        self.registry = MemeRegistry(engine)
        self.transport = DiscordTransport(self)
        self.watcher = MemeWatchEngine(
            engine,
            self.registry,
            self.transport,
            downvote_symbol=cfg.downvote_emoji,
            default_limit=cfg.default_downvote_limit,
        )
        self.router = CommandRouter(cfg, engine, self.transport, self.watcher)
        self._watches_resumed = False

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load all cog extensions; one broken cog shouldn't stop the bot."""
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

    async def on_ready(self) -> None:
        assert self.user is not None  # guaranteed after on_ready
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

        # The bot seeds a 👎 on every meme; it must never count.
        self.watcher.ignore_reactor(self.user.id)

        # on_ready fires again after every reconnect; resume only once.
        if not self._watches_resumed:
            self._watches_resumed = True
            watched = await self.watcher.resume_all()
            logger.info("Watching %d memes", watched)

    async def on_message(self, message: discord.Message) -> None:
        """Prefix commands are routed by the Commands cog, not discord.ext."""

    async def close(self) -> None:
        logger.info("Bot shutting down…")
        await self.watcher.close()
        await super().close()
