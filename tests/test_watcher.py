"""
tests/test_watcher.py — MemeWatchEngine Unit Tests
===================================================

Covers the removal threshold, per-reactor idempotency, ordering of
events for one post, restart recovery, and best-effort retraction.

Uses an in-memory SQLite database and an ``AsyncMock`` transport; no
Discord connection required.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from memebot.constants import DOWNVOTE_EMOJI, UPVOTE_EMOJI
from memebot.engine.events import MemePost, ReactionEvent
from memebot.engine.watcher import MemeWatchEngine, ReactionTally, exceeds_limit
from memebot.services.guild_config_service import set_downvote_limit
from memebot.services.meme_registry import MemeRegistry

GUILD_ID = 111222333
CHANNEL_ID = 500
BOT_ID = 999


def run_async(coro):
    """Run an async coroutine in a fresh event loop."""
    return asyncio.run(coro)


def _post(post_id: int = 1000) -> MemePost:
    return MemePost(id=post_id, channel_id=CHANNEL_ID, guild_id=GUILD_ID, submitter_id=42)


def _downvote(reactor_id: int, post_id: int = 1000, symbol: str = DOWNVOTE_EMOJI) -> ReactionEvent:
    return ReactionEvent(
        post_id=post_id,
        channel_id=CHANNEL_ID,
        guild_id=GUILD_ID,
        symbol=symbol,
        reactor_id=reactor_id,
    )


@pytest.fixture
def registry(db_engine):
    return MemeRegistry(db_engine)


@pytest.fixture
def transport():
    t = AsyncMock()
    t.fetch_reactors.return_value = set()
    t.delete_message.return_value = True
    return t


@pytest.fixture
def watcher(db_engine, registry, transport):
    set_downvote_limit(db_engine, GUILD_ID, 2)
    return MemeWatchEngine(db_engine, registry, transport, ignored_reactors=[BOT_ID])


async def _track(watcher: MemeWatchEngine, post: MemePost, *, seed: bool = False) -> None:
    watcher.registry.add(post)
    await watcher.watch(post, seed=seed)


# ---------------------------------------------------------------------------
# Removal policy
# ---------------------------------------------------------------------------
class TestRemovalPolicy:
    @pytest.mark.parametrize(
        "tally, limit, expected",
        [(0, 2, False), (2, 2, False), (3, 2, True), (1, 0, True)],
    )
    def test_strictly_greater_than(self, tally, limit, expected):
        assert exceeds_limit(tally, limit) is expected

    def test_tally_counts_each_reactor_once(self):
        tally = ReactionTally()
        assert tally.add(1) is True
        assert tally.add(1) is False
        assert tally.add(2) is True
        assert len(tally) == 2
        assert 1 in tally


class TestThreshold:
    def test_third_distinct_downvote_retracts_with_limit_two(self, watcher, registry, transport):
        async def scenario():
            post = _post()
            await _track(watcher, post)
            assert await watcher.handle_reaction(_downvote(1)) is False
            assert await watcher.handle_reaction(_downvote(2)) is False
            # Tally == limit: the meme survives
            assert watcher.is_watching(post.id)
            transport.delete_message.assert_not_awaited()

            assert await watcher.handle_reaction(_downvote(3)) is True

        run_async(scenario())
        transport.delete_message.assert_awaited_once_with(CHANNEL_ID, 1000)
        assert registry.get(1000) is None
        assert not watcher.is_watching(1000)

    def test_repeat_reactor_does_not_increase_tally(self, watcher, transport):
        async def scenario():
            await _track(watcher, _post())
            for _ in range(5):
                await watcher.handle_reaction(_downvote(7))
            return watcher.tally(1000)

        assert run_async(scenario()) == 1
        transport.delete_message.assert_not_awaited()

    def test_upvotes_and_other_symbols_never_count(self, watcher, transport):
        async def scenario():
            await _track(watcher, _post())
            for reactor in range(1, 6):
                await watcher.handle_reaction(_downvote(reactor, symbol=UPVOTE_EMOJI))
                await watcher.handle_reaction(_downvote(reactor, symbol="\U0001f602"))
            return watcher.tally(1000)

        assert run_async(scenario()) == 0
        transport.delete_message.assert_not_awaited()

    def test_bot_votes_are_ignored(self, watcher, transport):
        async def scenario():
            await _track(watcher, _post())
            await watcher.handle_reaction(_downvote(BOT_ID))
            return watcher.tally(1000)

        assert run_async(scenario()) == 0

    def test_limit_is_read_per_guild(self, db_engine, watcher, transport):
        """Raising the limit between votes is honored on the next vote."""
        async def scenario():
            await _track(watcher, _post())
            await watcher.handle_reaction(_downvote(1))
            await watcher.handle_reaction(_downvote(2))
            set_downvote_limit(db_engine, GUILD_ID, 10)
            return await watcher.handle_reaction(_downvote(3))

        assert run_async(scenario()) is False
        transport.delete_message.assert_not_awaited()

    def test_unconfigured_guild_uses_default_limit(self, db_engine, registry, transport):
        watcher = MemeWatchEngine(db_engine, registry, transport, default_limit=1)

        async def scenario():
            post = MemePost(id=5, channel_id=CHANNEL_ID, guild_id=424242, submitter_id=1)
            await _track(watcher, post)
            first = await watcher.handle_reaction(
                ReactionEvent(5, CHANNEL_ID, 424242, DOWNVOTE_EMOJI, 1))
            second = await watcher.handle_reaction(
                ReactionEvent(5, CHANNEL_ID, 424242, DOWNVOTE_EMOJI, 2))
            return first, second

        assert run_async(scenario()) == (False, True)


# ---------------------------------------------------------------------------
# Exactly-once retraction
# ---------------------------------------------------------------------------
class TestExactlyOnce:
    def test_concurrent_downvotes_retract_once(self, watcher, transport):
        async def scenario():
            await _track(watcher, _post())
            return await asyncio.gather(
                *(watcher.handle_reaction(_downvote(r)) for r in range(1, 8))
            )

        results = run_async(scenario())
        assert results.count(True) == 1
        # Events are evaluated in arrival order: the third voter triggers.
        assert results.index(True) == 2
        transport.delete_message.assert_awaited_once()

    def test_double_watch_is_a_single_subscription(self, watcher, transport):
        async def scenario():
            post = _post()
            await _track(watcher, post)
            await watcher.watch(post)
            await watcher.watch(post)
            for reactor in range(1, 6):
                await watcher.handle_reaction(_downvote(reactor))
            return watcher.watched_ids()

        assert run_async(scenario()) == set()
        transport.delete_message.assert_awaited_once()

    def test_event_after_removal_is_a_no_op(self, watcher, registry, transport):
        async def scenario():
            await _track(watcher, _post())
            for reactor in range(1, 4):
                await watcher.handle_reaction(_downvote(reactor))
            return await watcher.handle_reaction(_downvote(4))

        assert run_async(scenario()) is False
        transport.delete_message.assert_awaited_once()

    def test_event_for_untracked_post_is_a_no_op(self, watcher, transport):
        assert run_async(watcher.handle_reaction(_downvote(1, post_id=31337))) is False
        transport.delete_message.assert_not_awaited()

    def test_posts_are_independent(self, watcher, transport):
        async def scenario():
            await _track(watcher, _post(1))
            await _track(watcher, _post(2))
            for reactor in range(1, 4):
                await watcher.handle_reaction(_downvote(reactor, post_id=1))
            await watcher.handle_reaction(_downvote(1, post_id=2))
            return watcher.watched_ids(), watcher.tally(2)

        watched, tally = run_async(scenario())
        assert watched == {2}
        assert tally == 1


# ---------------------------------------------------------------------------
# Best-effort retraction
# ---------------------------------------------------------------------------
class TestRetraction:
    def test_failed_delete_still_unregisters(self, watcher, registry, transport):
        transport.delete_message.return_value = False

        async def scenario():
            await _track(watcher, _post())
            for reactor in range(1, 4):
                await watcher.handle_reaction(_downvote(reactor))

        run_async(scenario())
        assert registry.get(1000) is None

    def test_raising_delete_still_unregisters(self, watcher, registry, transport):
        transport.delete_message.side_effect = RuntimeError("permission revoked")

        async def scenario():
            await _track(watcher, _post())
            results = [await watcher.handle_reaction(_downvote(r)) for r in range(1, 4)]
            return results

        assert run_async(scenario()) == [False, False, True]
        assert registry.get(1000) is None


# ---------------------------------------------------------------------------
# Restart recovery
# ---------------------------------------------------------------------------
class TestRestartRecovery:
    def test_resume_watches_every_registered_post(self, db_engine, registry, transport):
        for post_id in range(1, 6):
            registry.add(_post(post_id))

        watcher = MemeWatchEngine(db_engine, registry, transport)
        watched = run_async(watcher.resume_all())

        assert watched == 5
        assert watcher.watched_ids() == {1, 2, 3, 4, 5}
        assert watcher.abandoned_ids() == set()

    def test_resume_seeds_tally_from_existing_votes(self, watcher, registry, transport):
        registry.add(_post())
        transport.fetch_reactors.return_value = {BOT_ID, 11, 12}

        async def scenario():
            await watcher.resume_all()
            tally = watcher.tally(1000)
            retracted = await watcher.handle_reaction(_downvote(13))
            return tally, retracted

        assert run_async(scenario()) == (2, True)
        transport.fetch_reactors.assert_awaited_with(CHANNEL_ID, 1000, DOWNVOTE_EMOJI)

    def test_resume_retracts_post_already_over_limit(self, watcher, registry, transport):
        registry.add(_post(7))
        transport.fetch_reactors.return_value = {1, 2, 3, 4, BOT_ID}

        run_async(watcher.resume_all())

        transport.delete_message.assert_awaited_once_with(CHANNEL_ID, 7)
        assert registry.get(7) is None
        assert not watcher.is_watching(7)
        assert watcher.abandoned_ids() == set()

    def test_resume_unregisters_post_deleted_while_offline(self, watcher, registry, transport):
        registry.add(_post(8))
        transport.fetch_reactors.return_value = None

        async def scenario():
            await watcher.resume_all()
            return [await watcher.retry_abandoned() for _ in range(3)]

        assert run_async(scenario()) == [0, 0, 0]
        assert registry.get(8) is None
        assert watcher.abandoned_ids() == set()
        assert not watcher.is_watching(8)
        transport.fetch_reactors.assert_awaited_once()
        transport.delete_message.assert_not_awaited()

    def test_downvote_during_seeding_waits_and_counts(self, watcher, registry, transport):
        async def scenario():
            pending = []

            async def fetch(channel_id, post_id, symbol):
                # Arrives mid-seed; must queue behind the watch lock.
                pending.append(asyncio.create_task(watcher.handle_reaction(_downvote(3))))
                await asyncio.sleep(0)
                return {1, 2, BOT_ID}

            transport.fetch_reactors.side_effect = fetch
            registry.add(_post())
            await watcher.watch(_post())
            seeded_alive = watcher.is_watching(1000)
            return seeded_alive, await pending[0]

        assert run_async(scenario()) == (True, True)
        transport.delete_message.assert_awaited_once_with(CHANNEL_ID, 1000)
        assert registry.get(1000) is None

    def test_one_failure_does_not_abort_the_others(self, db_engine, registry, transport):
        for post_id in range(1, 4):
            registry.add(_post(post_id))

        async def fetch(channel_id, post_id, symbol):
            if post_id == 2:
                raise RuntimeError("channel gone")
            return set()

        transport.fetch_reactors.side_effect = fetch
        watcher = MemeWatchEngine(db_engine, registry, transport)

        run_async(watcher.resume_all())
        assert watcher.watched_ids() == {1, 3}
        assert watcher.abandoned_ids() == {2}
        # The entry stays registered for a later retry.
        assert registry.get(2) is not None

    def test_retry_recovers_abandoned_posts(self, db_engine, registry, transport):
        registry.add(_post(1))
        transport.fetch_reactors.side_effect = [RuntimeError("flaky"), set()]
        watcher = MemeWatchEngine(db_engine, registry, transport)

        async def scenario():
            await watcher.resume_all()
            abandoned = watcher.abandoned_ids()
            recovered = await watcher.retry_abandoned()
            return abandoned, recovered

        assert run_async(scenario()) == ({1}, 1)
        assert watcher.is_watching(1)
        assert watcher.abandoned_ids() == set()

    def test_retry_drops_posts_no_longer_registered(self, db_engine, registry, transport):
        registry.add(_post(1))
        transport.fetch_reactors.side_effect = RuntimeError("down")
        watcher = MemeWatchEngine(db_engine, registry, transport)

        run_async(watcher.resume_all())
        registry.remove(1)
        assert run_async(watcher.retry_abandoned()) == 0
        assert watcher.abandoned_ids() == set()


# ---------------------------------------------------------------------------
# Shutdown
# ---------------------------------------------------------------------------
class TestClose:
    def test_close_waits_for_in_flight_retraction(self, watcher, registry, transport):
        async def scenario():
            gate = asyncio.Event()

            async def slow_delete(channel_id, post_id):
                await gate.wait()
                return True

            transport.delete_message.side_effect = slow_delete
            await _track(watcher, _post())
            await watcher.handle_reaction(_downvote(1))
            await watcher.handle_reaction(_downvote(2))
            retract = asyncio.create_task(watcher.handle_reaction(_downvote(3)))

            for _ in range(200):
                if transport.delete_message.await_count:
                    break
                await asyncio.sleep(0.01)

            closing = asyncio.create_task(watcher.close(timeout=5))
            await asyncio.sleep(0.05)
            assert not closing.done()

            gate.set()
            await closing
            return await retract

        assert run_async(scenario()) is True
        assert registry.get(1000) is None

    def test_events_after_close_are_ignored(self, watcher, transport):
        async def scenario():
            await _track(watcher, _post())
            await watcher.close()
            return [await watcher.handle_reaction(_downvote(r)) for r in range(1, 5)]

        assert run_async(scenario()) == [False] * 4
        transport.delete_message.assert_not_awaited()
