"""
memebot.services.submission_service — Meme Submission Pipeline
===============================================================

Members submit memes by DM: they send the image, then ``mb post``.  This
module takes the attachments of that preceding message and:

1. Resolves the target guild's meme channel (``PostingDisabled`` if none).
2. Requires exactly one attachment (``AttachmentCountMismatch`` otherwise).
3. Reposts it, optionally captioned with the submitter's name.
4. Seeds 👍 then 👎.
5. Registers the post and starts watching it, counting any down-votes
   that landed before the watch existed.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from memebot.constants import DOWNVOTE_EMOJI, UPVOTE_EMOJI
from memebot.database.engine import run_db
from memebot.engine.events import MemePost
from memebot.engine.transport import MemeTransport
from memebot.engine.watcher import MemeWatchEngine
from memebot.services.guild_config_service import get_meme_channel

logger = logging.getLogger(__name__)


class PostingDisabled(Exception):
    """The target guild has no meme channel configured."""

    def __init__(self, guild_id: int) -> None:
        super().__init__(f"Guild {guild_id} does not accept memes")
        self.guild_id = guild_id


class AttachmentCountMismatch(Exception):
    """The preceding message did not carry exactly one attachment."""

    def __init__(self, count: int) -> None:
        super().__init__(f"Expected exactly one attachment, got {count}")
        self.count = count


@dataclass(frozen=True, slots=True)
class Submission:
    """A ``post`` request, already detached from the Discord message."""

    guild_id: int
    submitter_id: int
    submitter_name: str
    attachments: Sequence[Any]
    attribution: bool = False


def build_caption(submission: Submission) -> str | None:
    if not submission.attribution:
        return None
    return f"Submitted by **{submission.submitter_name}**"


async def submit_meme(
    engine,
    transport: MemeTransport,
    watcher: MemeWatchEngine,
    submission: Submission,
    *,
    upvote_symbol: str = UPVOTE_EMOJI,
    downvote_symbol: str = DOWNVOTE_EMOJI,
) -> MemePost:
    """Run the whole pipeline and return the newly tracked post."""
    channel_id = await run_db(get_meme_channel, engine, submission.guild_id)
    if channel_id is None:
        raise PostingDisabled(submission.guild_id)

    if len(submission.attachments) != 1:
        raise AttachmentCountMismatch(len(submission.attachments))

    post_id = await transport.post_attachment(
        channel_id, submission.attachments[0], build_caption(submission),
    )

    # Order is only cosmetic: 👍 renders left of 👎.
    await transport.add_reaction(channel_id, post_id, upvote_symbol)
    await transport.add_reaction(channel_id, post_id, downvote_symbol)

    post = MemePost(
        id=post_id,
        channel_id=channel_id,
        guild_id=submission.guild_id,
        submitter_id=submission.submitter_id,
    )
    await run_db(watcher.registry.add, post)
    # Members can vote as soon as the post is visible; seeding reads back
    # any down-votes cast before the watch existed.
    await watcher.watch(post)

    logger.info(
        "Posted meme %d from user %d to channel %d",
        post_id, submission.submitter_id, channel_id,
    )
    return post
