"""
alembic/env.py — MemeBot Migration Environment
===============================================

Migrates the two MemeBot tables, ``guild_configs`` (per-guild meme/cmd
channel, admin role and downvote limit) and ``memes`` (the registry of
posts under community vote).  The connection string comes from
``DATABASE_URL`` in ``.env``, the same variable the bot reads; the URL in
``alembic.ini`` is only a local-dev fallback.

    alembic upgrade head
    alembic revision --autogenerate -m "add column to memes"
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from dotenv import load_dotenv
from sqlalchemy import engine_from_config, pool

from alembic import context

load_dotenv()

config = context.config

database_url = os.getenv("DATABASE_URL")
if database_url:
    config.set_main_option("sqlalchemy.url", database_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# GuildConfig and Meme register themselves on Base.metadata at import.
from memebot.database.models import Base  # noqa: E402

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit the guild_configs/memes DDL as SQL without a live database."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations against the database named by DATABASE_URL."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            # memes.id is a Discord snowflake; BigInteger widths matter.
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
