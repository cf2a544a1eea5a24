"""
memebot.engine.watcher — Downvote Moderation Engine
====================================================

Keeps one watch per tracked meme and retracts a meme once the number of
distinct members who down-voted it is **strictly greater** than the
guild's downvote limit.

Pipeline for a reaction-add:

1. Look up the watch for ``event.post_id``; untracked ids are a no-op.
2. Ignore anything that isn't the down-vote emoji, and the bot's own votes.
3. Under the watch's lock, add the reactor to the tally (a set, so toggling
   the reaction never counts twice) and read the guild's limit.
4. If ``tally > limit``, drop the watch *before* awaiting anything else,
   then retract: delete the post (best-effort) and unregister it.

Each watch holds an :class:`asyncio.Lock`.  Lock waiters are served FIFO,
so events for one post are evaluated in arrival order, while events for
different posts interleave freely.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy import Engine

from memebot.constants import DEFAULT_DOWNVOTE_LIMIT, DOWNVOTE_EMOJI
from memebot.database.engine import run_db
from memebot.engine.events import MemePost, ReactionEvent
from memebot.engine.transport import MemeTransport
from memebot.services.guild_config_service import get_downvote_limit
from memebot.services.meme_registry import MemeRegistry

logger = logging.getLogger(__name__)


def exceeds_limit(tally: int, limit: int) -> bool:
    """Removal policy: a meme needs one more downvote than the limit."""
    return tally > limit


class ReactionTally:
    """Distinct down-voters of one post.  Only ever grows."""

    __slots__ = ("_reactors",)

    def __init__(self, reactors: Iterable[int] = ()) -> None:
        self._reactors: set[int] = set(reactors)

    def add(self, reactor_id: int) -> bool:
        """Count *reactor_id*; returns False if they were already counted."""
        if reactor_id in self._reactors:
            return False
        self._reactors.add(reactor_id)
        return True

    def __len__(self) -> int:
        return len(self._reactors)

    def __contains__(self, reactor_id: object) -> bool:
        return reactor_id in self._reactors


@dataclass(eq=False, slots=True)
class _Watch:
    post: MemePost
    tally: ReactionTally = field(default_factory=ReactionTally)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class MemeWatchEngine:
    """Watches every tracked meme and applies the removal policy.

    Parameters
    ----------
    engine:
        SQLAlchemy engine holding ``guild_configs``.
    registry:
        The :class:`MemeRegistry` that owns tracked posts.
    transport:
        Platform boundary used to read reactors and delete posts.
    downvote_symbol:
        The only reaction that counts toward removal.
    default_limit:
        Limit used for guilds that never configured one.
    """

    def __init__(
        self,
        engine: Engine,
        registry: MemeRegistry,
        transport: MemeTransport,
        *,
        downvote_symbol: str = DOWNVOTE_EMOJI,
        default_limit: int = DEFAULT_DOWNVOTE_LIMIT,
        ignored_reactors: Iterable[int] = (),
    ) -> None:
        self.engine = engine
        self.registry = registry
        self.transport = transport
        self.downvote_symbol = downvote_symbol
        self.default_limit = default_limit
        self._ignored: set[int] = set(ignored_reactors)
        self._watches: dict[int, _Watch] = {}
        self._abandoned: dict[int, MemePost] = {}
        self._retractions: set[asyncio.Task] = set()
        self._closed = False

    # -----------------------------------------------------------------------
    # Introspection
    # -----------------------------------------------------------------------
    def is_watching(self, post_id: int) -> bool:
        return post_id in self._watches

    def watched_ids(self) -> set[int]:
        return set(self._watches)

    def abandoned_ids(self) -> set[int]:
        return set(self._abandoned)

    def tally(self, post_id: int) -> int:
        """Current downvote tally of a watched post (0 if not watched)."""
        watch = self._watches.get(post_id)
        return len(watch.tally) if watch else 0

    def ignore_reactor(self, reactor_id: int) -> None:
        """Never count votes from *reactor_id* (the bot's own account)."""
        self._ignored.add(reactor_id)

    # -----------------------------------------------------------------------
    # Watch lifecycle
    # -----------------------------------------------------------------------
    async def watch(self, post: MemePost, *, seed: bool = True) -> None:
        """Start watching *post*.  A second call for the same id is a no-op.

        With *seed*, the tally starts from whoever already down-voted the
        post, so votes cast while the bot was offline (or before the watch
        existed) still count.  Events arriving while seeding wait on the
        watch lock.  A seeded tally that is already over the limit retracts
        the post right away, and a post that no longer exists is dropped
        from the registry.  If seeding fails the watch is dropped and the
        exception propagates.
        """
        if self._closed or post.id in self._watches:
            return

        watch = _Watch(post)
        self._watches[post.id] = watch
        gone = over = False
        async with watch.lock:
            if not seed:
                return
            try:
                reactors = await self.transport.fetch_reactors(
                    post.channel_id, post.id, self.downvote_symbol,
                )
                if reactors is not None:
                    for reactor_id in reactors:
                        if reactor_id not in self._ignored:
                            watch.tally.add(reactor_id)
                    limit = await run_db(
                        get_downvote_limit, self.engine, post.guild_id, self.default_limit,
                    )
            except Exception:
                self._drop(watch)
                raise

            if reactors is None:
                gone = True
                self._drop(watch)
            elif self._watches.get(post.id) is watch and exceeds_limit(len(watch.tally), limit):
                over = True
                del self._watches[post.id]

        if gone:
            logger.info("Meme %d no longer exists, unregistering it", post.id)
            await run_db(self.registry.remove, post.id)
        elif over:
            logger.info(
                "Meme %d already exceeds the downvote limit (%d > %d), retracting",
                post.id, len(watch.tally), limit,
            )
            await self._retract(post)
        else:
            logger.debug("Watching meme %d (tally=%d)", post.id, len(watch.tally))

    def _drop(self, watch: _Watch) -> None:
        if self._watches.get(watch.post.id) is watch:
            del self._watches[watch.post.id]

    # -----------------------------------------------------------------------
    # Event handling
    # -----------------------------------------------------------------------
    async def handle_reaction(self, event: ReactionEvent) -> bool:
        """Evaluate one reaction-add.  Returns True if it retracted the post."""
        if self._closed:
            return False
        watch = self._watches.get(event.post_id)
        if watch is None:
            return False
        if event.symbol != self.downvote_symbol or event.reactor_id in self._ignored:
            return False

        async with watch.lock:
            # A previous event may have retracted the post while we waited.
            if self._watches.get(event.post_id) is not watch:
                return False

            watch.tally.add(event.reactor_id)
            tally = len(watch.tally)
            limit = await run_db(
                get_downvote_limit, self.engine, watch.post.guild_id, self.default_limit,
            )
            if self._watches.get(event.post_id) is not watch:
                return False
            if not exceeds_limit(tally, limit):
                logger.debug(
                    "Meme %d at %d/%d downvotes", event.post_id, tally, limit,
                )
                return False

            del self._watches[event.post_id]

        logger.info(
            "Meme %d exceeded the downvote limit (%d > %d), retracting",
            event.post_id, tally, limit,
        )
        await self._retract(watch.post)
        return True

    async def _retract(self, post: MemePost) -> None:
        task = asyncio.create_task(self._retract_now(post), name=f"retract-{post.id}")
        self._retractions.add(task)
        task.add_done_callback(self._retractions.discard)
        # Shielded so shutdown can still wait for it after the caller is cancelled.
        await asyncio.shield(task)

    async def _retract_now(self, post: MemePost) -> None:
        try:
            deleted = await self.transport.delete_message(post.channel_id, post.id)
        except Exception:
            logger.warning("Deleting meme %d raised", post.id, exc_info=True)
            deleted = False
        if not deleted:
            logger.warning(
                "Could not delete meme %d in channel %d; unregistering it anyway",
                post.id, post.channel_id,
            )
        await run_db(self.registry.remove, post.id)

    # -----------------------------------------------------------------------
    # Restart recovery
    # -----------------------------------------------------------------------
    async def resume_all(self) -> int:
        """Re-watch every registered meme.  Returns how many are now watched.

        A failure for one post is logged and leaves that post abandoned
        (see :meth:`retry_abandoned`); it never aborts the others.
        """
        posts = await run_db(self.registry.all)
        await self._watch_many(posts)
        logger.info(
            "Resumed %d of %d tracked memes (%d abandoned)",
            len(posts) - len(self._abandoned), len(posts), len(self._abandoned),
        )
        return len(self._watches)

    async def retry_abandoned(self) -> int:
        """Try again to watch every abandoned meme.  Returns how many recovered."""
        if not self._abandoned:
            return 0
        candidates = list(self._abandoned.values())
        still_tracked = []
        for post in candidates:
            if await run_db(self.registry.get, post.id) is None:
                self._abandoned.pop(post.id, None)
            else:
                still_tracked.append(post)
        before = len(self._abandoned)
        await self._watch_many(still_tracked)
        recovered = before - len(self._abandoned)
        if recovered:
            logger.info("Recovered %d abandoned memes", recovered)
        return recovered

    async def _watch_many(self, posts: list[MemePost]) -> None:
        results = await asyncio.gather(
            *(self.watch(post) for post in posts), return_exceptions=True,
        )
        for post, result in zip(posts, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Failed to watch meme %d: %s", post.id, result,
                    exc_info=result,
                )
                self._abandoned[post.id] = post
            else:
                self._abandoned.pop(post.id, None)

    # -----------------------------------------------------------------------
    # Shutdown
    # -----------------------------------------------------------------------
    async def close(self, timeout: float = 10.0) -> None:
        """Stop watching and give in-flight retractions *timeout* seconds."""
        self._closed = True
        self._watches.clear()
        pending = set(self._retractions)
        if pending:
            logger.info("Waiting for %d in-flight retractions", len(pending))
            _, not_done = await asyncio.wait(pending, timeout=timeout)
            if not_done:
                logger.warning("%d retractions did not finish before shutdown", len(not_done))
