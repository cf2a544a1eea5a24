"""
memebot.engine.references — Channel / Role Reference Parsing
=============================================================

Turns what a user typed (``<#123>``, ``<@&456>``, ``123``, ``#memes``)
into a snowflake.  Pure functions, no Discord access; name lookups use a
mapping supplied by the caller.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

_CHANNEL_MENTION = re.compile(r"^<#(\d+)>$")
_ROLE_MENTION = re.compile(r"^<@&(\d+)>$")
_SNOWFLAKE = re.compile(r"^\d{1,20}$")


class InvalidReference(ValueError):
    """Raised when a reference can't be resolved to an id."""


def _resolve(
    ref: str,
    mention: re.Pattern[str],
    sigil: str,
    names: Mapping[str, int] | None,
    kind: str,
) -> int:
    text = ref.strip()
    match = mention.match(text)
    if match:
        return int(match.group(1))
    if _SNOWFLAKE.match(text):
        return int(text)

    name = text.removeprefix(sigil).lower()
    if names and name:
        for candidate, snowflake in names.items():
            if candidate.lower() == name:
                return snowflake
    raise InvalidReference(f"Unknown {kind} reference: {ref!r}")


def parse_channel_ref(ref: str, names: Mapping[str, int] | None = None) -> int:
    """Resolve a channel mention, id, or ``#name`` to a channel id."""
    return _resolve(ref, _CHANNEL_MENTION, "#", names, "channel")


def parse_role_ref(ref: str, names: Mapping[str, int] | None = None) -> int:
    """Resolve a role mention, id, or ``@name`` to a role id."""
    return _resolve(ref, _ROLE_MENTION, "@", names, "role")
