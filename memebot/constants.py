"""
memebot.constants — Shared Constants
=====================================

Single source of truth for vote emoji, defaults, and the exit codes of the
``mb`` CLI helper.  Import from here instead of duplicating in cogs and
services.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Vote reactions (seeded on every meme, in this order)
# ---------------------------------------------------------------------------
UPVOTE_EMOJI = "\U0001f44d"    # 👍
DOWNVOTE_EMOJI = "\U0001f44e"  # 👎

# Used when a guild has never set its own limit.
DEFAULT_DOWNVOTE_LIMIT = 5

# ---------------------------------------------------------------------------
# CLI helper exit codes
# ---------------------------------------------------------------------------
# The parent process branches on these exact values; never renumber them.
EXIT_INIT = 2001
EXIT_CMD_PRINT = 3001
EXIT_CMD_SET = 3002
EXIT_CMD_DISABLE = 3003
EXIT_DONE = 4242

VERSION_STRING = "MemeBot version 0.4.0"
