"""
memebot.engine.transport — Chat Platform Boundary
==================================================

The watch engine and the submission pipeline never touch discord.py
directly; they talk to a :class:`MemeTransport`.  The production
implementation is :class:`memebot.bot.transport.DiscordTransport`, tests
use ``AsyncMock`` stand-ins.
"""

from __future__ import annotations

from typing import Any, Protocol


class MemeTransport(Protocol):
    async def post_attachment(
        self, channel_id: int, attachment: Any, caption: str | None = None
    ) -> int:
        """Repost *attachment* into *channel_id* and return the new message id."""
        ...

    async def add_reaction(self, channel_id: int, post_id: int, symbol: str) -> None:
        ...

    async def delete_message(self, channel_id: int, post_id: int) -> bool:
        """Delete a post.  Returns False when the platform refused."""
        ...

    async def fetch_reactors(
        self, channel_id: int, post_id: int, symbol: str
    ) -> set[int] | None:
        """Return the ids of everyone currently reacting with *symbol*.

        Returns None when the post (or its channel) no longer exists.
        """
        ...
