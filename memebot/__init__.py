"""
MemeBot — Community-moderated meme channels for Discord
========================================================
Lets a community designate a channel for meme submissions, reposts
qualifying attachments there, and retracts a post once enough members
have down-voted it.

Package layout::

    memebot/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Emoji, defaults, CLI helper exit codes
    ├── cli.py             # `mb init` / `mb cmd` helper (exit-code protocol)
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # GuildConfig + Meme tables
    ├── engine/
    │   ├── events.py      # MemePost / ReactionEvent dataclasses
    │   ├── references.py  # Channel / role mention parsing
    │   ├── transport.py   # MemeTransport protocol
    │   └── watcher.py     # MemeWatchEngine (downvote moderation)
    ├── services/
    │   ├── guild_config_service.py  # Per-guild settings
    │   ├── meme_registry.py         # Durable set of tracked memes
    │   ├── access_guard.py          # cmd-channel + admin-role checks
    │   ├── submission_service.py    # DM → meme channel pipeline
    │   ├── command_router.py        # Command parsing + dispatch
    │   └── embeds.py                # Response embeds
    └── bot/
        ├── core.py        # Bot subclass, cog loader, watch bootstrap
        ├── transport.py   # discord.py implementation of MemeTransport
        └── cogs/
            ├── memes.py     # Reaction events → MemeWatchEngine
            └── commands.py  # on_message → CommandRouter
"""

__version__ = "0.4.0"
