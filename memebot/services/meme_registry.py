"""
memebot.services.meme_registry — Durable Set of Tracked Memes
==============================================================

The registry is the only writer of the ``memes`` table.  Every mutation
commits before the call returns, so a crash right after :meth:`add` still
leaves the post to be re-watched on the next boot.

Methods are synchronous; the watch engine and the submission pipeline
call them via :func:`~memebot.database.engine.run_db`.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from memebot.database.models import Meme
from memebot.engine.events import MemePost

logger = logging.getLogger(__name__)


class DuplicateMemeError(Exception):
    """A post with this id is already tracked."""

    def __init__(self, post_id: int) -> None:
        super().__init__(f"Meme {post_id} is already tracked")
        self.post_id = post_id


def _to_post(row: Meme) -> MemePost:
    return MemePost(
        id=row.id,
        channel_id=row.channel_id,
        guild_id=row.guild_id,
        submitter_id=row.submitter_id,
        created_at=row.created_at,
    )


class MemeRegistry:
    """CRUD over the ``memes`` table, keyed by posted message id."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def add(self, post: MemePost) -> None:
        """Insert *post*.  Raises :class:`DuplicateMemeError` if already tracked."""
        with Session(self.engine) as session:
            if session.get(Meme, post.id) is not None:
                raise DuplicateMemeError(post.id)
            session.add(Meme(
                id=post.id,
                channel_id=post.channel_id,
                guild_id=post.guild_id,
                submitter_id=post.submitter_id,
                created_at=post.created_at,
            ))
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateMemeError(post.id) from exc
        logger.info("Registered meme %d in channel %d", post.id, post.channel_id)

    def remove(self, post_id: int) -> None:
        """Delete the entry for *post_id*.  Absent ids are not an error."""
        with Session(self.engine) as session:
            result = session.execute(delete(Meme).where(Meme.id == post_id))
            session.commit()
        if result.rowcount:
            logger.info("Unregistered meme %d", post_id)

    def get(self, post_id: int) -> MemePost | None:
        with Session(self.engine) as session:
            row = session.get(Meme, post_id)
            return _to_post(row) if row is not None else None

    def all(self) -> list[MemePost]:
        """Every tracked post, oldest first."""
        with Session(self.engine) as session:
            rows = session.scalars(select(Meme).order_by(Meme.created_at, Meme.id)).all()
            return [_to_post(r) for r in rows]

    def count(self, guild_id: int | None = None) -> int:
        with Session(self.engine) as session:
            stmt = select(func.count()).select_from(Meme)
            if guild_id is not None:
                stmt = stmt.where(Meme.guild_id == guild_id)
            return session.scalar(stmt) or 0
