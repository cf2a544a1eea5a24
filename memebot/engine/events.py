"""
memebot.engine.events — MemePost and ReactionEvent
===================================================

Every tracked submission is represented as a :class:`MemePost`, and every
reaction coming off the gateway is normalized into a :class:`ReactionEvent`
before the watch engine sees it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

__all__ = ["MemePost", "ReactionEvent"]


@dataclass(frozen=True, slots=True)
class MemePost:
    """One reposted attachment under community vote.

    ``id`` is the snowflake of the reposted message and is unique for the
    post's whole lifetime.
    """

    id: int
    channel_id: int
    guild_id: int
    submitter_id: int
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True, slots=True)
class ReactionEvent:
    """A single reaction-add, as delivered by the transport."""

    post_id: int
    channel_id: int
    guild_id: int | None
    symbol: str
    reactor_id: int
