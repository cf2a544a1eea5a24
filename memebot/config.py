"""
memebot.config — YAML Configuration Loader
===========================================

Reads ``config.yaml`` for soft settings (command prefix, target guild,
vote emoji, default limit).  Secrets such as ``DISCORD_TOKEN`` and
``DATABASE_URL`` live in ``.env``; per-guild settings changed by admin
commands live in the ``guild_configs`` table.

Usage::

    from memebot.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.bot_prefix)        # "mb"
    print(cfg.guild_id)          # 557276089869664288
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from memebot.constants import DEFAULT_DOWNVOTE_LIMIT, DOWNVOTE_EMOJI, UPVOTE_EMOJI


@dataclass(frozen=True, slots=True)
class MemeBotConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    bot_prefix: str
    guild_id: int  # Guild that DM submissions are posted to

    default_downvote_limit: int = DEFAULT_DOWNVOTE_LIMIT
    upvote_emoji: str = UPVOTE_EMOJI
    downvote_emoji: str = DOWNVOTE_EMOJI
    attribution_default: bool = False  # Caption memes with the submitter's name


def load_config(path: str | Path = "config.yaml") -> MemeBotConfig:
    """Read *path* and return a :class:`MemeBotConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key (``bot_prefix``, ``guild_id``) is missing.
    ValueError
        If ``default_downvote_limit`` is not a positive integer.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    limit = int(raw.get("default_downvote_limit", DEFAULT_DOWNVOTE_LIMIT))
    if limit < 1:
        raise ValueError(f"default_downvote_limit must be positive, got {limit}")

    return MemeBotConfig(
        bot_prefix=str(raw["bot_prefix"]),
        guild_id=int(raw["guild_id"]),
        default_downvote_limit=limit,
        upvote_emoji=raw.get("upvote_emoji") or UPVOTE_EMOJI,
        downvote_emoji=raw.get("downvote_emoji") or DOWNVOTE_EMOJI,
        attribution_default=bool(raw.get("attribution_default", False)),
    )
