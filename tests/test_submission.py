"""
tests/test_submission.py — Submission Pipeline Tests
=====================================================
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, call

import pytest

from memebot.constants import DOWNVOTE_EMOJI, UPVOTE_EMOJI
from memebot.engine.events import ReactionEvent
from memebot.engine.watcher import MemeWatchEngine
from memebot.services.guild_config_service import set_downvote_limit, set_meme_channel
from memebot.services.meme_registry import MemeRegistry
from memebot.services.submission_service import (
    AttachmentCountMismatch,
    PostingDisabled,
    Submission,
    build_caption,
    submit_meme,
)

GUILD_ID = 111222333
MEME_CHANNEL_ID = 55
NEW_POST_ID = 777
BOT_ID = 999


def run_async(coro):
    return asyncio.run(coro)


def _submission(attachments=None, *, attribution: bool = False) -> Submission:
    return Submission(
        guild_id=GUILD_ID,
        submitter_id=42,
        submitter_name="drew",
        attachments=[SimpleNamespace(filename="cat.png")] if attachments is None else attachments,
        attribution=attribution,
    )


@pytest.fixture
def transport():
    t = AsyncMock()
    t.post_attachment.return_value = NEW_POST_ID
    t.fetch_reactors.return_value = set()
    return t


@pytest.fixture
def watcher(db_engine, transport):
    return MemeWatchEngine(db_engine, MemeRegistry(db_engine), transport)


@pytest.fixture
def meme_channel(db_engine):
    set_meme_channel(db_engine, GUILD_ID, MEME_CHANNEL_ID)
    return MEME_CHANNEL_ID


class TestSubmitMeme:
    def test_single_attachment_is_posted_and_tracked(
        self, db_engine, transport, watcher, meme_channel
    ):
        submission = _submission()

        async def scenario():
            post = await submit_meme(db_engine, transport, watcher, submission)
            return post, watcher.is_watching(post.id)

        post, watching = run_async(scenario())

        assert post.id == NEW_POST_ID
        assert post.channel_id == MEME_CHANNEL_ID
        assert post.submitter_id == 42
        assert watching is True
        assert watcher.registry.get(NEW_POST_ID) is not None
        transport.post_attachment.assert_awaited_once_with(
            MEME_CHANNEL_ID, submission.attachments[0], None,
        )
        assert transport.add_reaction.await_args_list == [
            call(MEME_CHANNEL_ID, NEW_POST_ID, UPVOTE_EMOJI),
            call(MEME_CHANNEL_ID, NEW_POST_ID, DOWNVOTE_EMOJI),
        ]
        transport.fetch_reactors.assert_awaited_once_with(
            MEME_CHANNEL_ID, NEW_POST_ID, DOWNVOTE_EMOJI,
        )

    @pytest.mark.parametrize("count", [0, 2, 3])
    def test_wrong_attachment_count(self, db_engine, transport, watcher, meme_channel, count):
        attachments = [SimpleNamespace(filename=f"{i}.png") for i in range(count)]

        with pytest.raises(AttachmentCountMismatch) as exc_info:
            run_async(submit_meme(db_engine, transport, watcher, _submission(attachments)))

        assert exc_info.value.count == count
        transport.post_attachment.assert_not_awaited()
        assert watcher.registry.count() == 0

    def test_no_meme_channel(self, db_engine, transport, watcher):
        with pytest.raises(PostingDisabled):
            run_async(submit_meme(db_engine, transport, watcher, _submission()))
        transport.post_attachment.assert_not_awaited()

    def test_attribution_caption(self, db_engine, transport, watcher, meme_channel):
        run_async(submit_meme(
            db_engine, transport, watcher, _submission(attribution=True),
        ))
        _, _, caption = transport.post_attachment.await_args.args
        assert caption == "Submitted by **drew**"

    def test_downvotes_cast_while_seeding_reactions_count(
        self, db_engine, transport, watcher, meme_channel
    ):
        set_downvote_limit(db_engine, GUILD_ID, 1)
        voters = {BOT_ID}
        early_results = []
        watcher.ignore_reactor(BOT_ID)

        async def add_reaction(channel_id, post_id, symbol):
            if symbol != DOWNVOTE_EMOJI:
                return
            # Members 5 and 6 down-vote before the post is being watched.
            for reactor_id in (5, 6):
                voters.add(reactor_id)
                early_results.append(await watcher.handle_reaction(ReactionEvent(
                    NEW_POST_ID, MEME_CHANNEL_ID, GUILD_ID, DOWNVOTE_EMOJI, reactor_id,
                )))

        async def fetch_reactors(channel_id, post_id, symbol):
            return set(voters)

        transport.add_reaction.side_effect = add_reaction
        transport.fetch_reactors.side_effect = fetch_reactors
        transport.delete_message.return_value = True

        run_async(submit_meme(db_engine, transport, watcher, _submission()))

        assert early_results == [False, False]
        transport.delete_message.assert_awaited_once_with(MEME_CHANNEL_ID, NEW_POST_ID)
        assert watcher.registry.get(NEW_POST_ID) is None
        assert not watcher.is_watching(NEW_POST_ID)

    def test_single_early_downvote_stays_under_limit(
        self, db_engine, transport, watcher, meme_channel
    ):
        set_downvote_limit(db_engine, GUILD_ID, 1)
        watcher.ignore_reactor(BOT_ID)
        transport.fetch_reactors.return_value = {BOT_ID, 5}

        async def scenario():
            await submit_meme(db_engine, transport, watcher, _submission())
            tally = watcher.tally(NEW_POST_ID)
            retracted = await watcher.handle_reaction(ReactionEvent(
                NEW_POST_ID, MEME_CHANNEL_ID, GUILD_ID, DOWNVOTE_EMOJI, 6,
            ))
            return tally, retracted

        assert run_async(scenario()) == (1, True)

    def test_custom_vote_symbols(self, db_engine, transport, watcher, meme_channel):
        run_async(submit_meme(
            db_engine, transport, watcher, _submission(),
            upvote_symbol="⬆️", downvote_symbol="⬇️",
        ))
        symbols = [c.args[2] for c in transport.add_reaction.await_args_list]
        assert symbols == ["⬆️", "⬇️"]


class TestCaption:
    def test_no_caption_without_attribution(self):
        assert build_caption(_submission()) is None
