"""
tests/test_references.py — Reference Parsing Tests
===================================================
"""

from __future__ import annotations

import pytest

from memebot.engine.references import InvalidReference, parse_channel_ref, parse_role_ref

CHANNELS = {"memes": 55, "Bot-Commands": 77}
ROLES = {"Meme Admin": 9}


class TestChannelRef:
    @pytest.mark.parametrize(
        "ref, expected",
        [
            ("<#557276089869664288>", 557276089869664288),
            ("55", 55),
            ("  <#55> ", 55),
            ("#memes", 55),
            ("bot-commands", 77),
        ],
    )
    def test_resolves(self, ref, expected):
        assert parse_channel_ref(ref, CHANNELS) == expected

    @pytest.mark.parametrize("ref", ["", "#nope", "<@&55>", "<#abc>"])
    def test_rejects(self, ref):
        with pytest.raises(InvalidReference):
            parse_channel_ref(ref, CHANNELS)

    def test_invalid_reference_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_channel_ref("#memes")


class TestRoleRef:
    def test_mention(self):
        assert parse_role_ref("<@&9>") == 9

    def test_name(self):
        assert parse_role_ref("@meme admin", ROLES) == 9

    def test_user_mention_is_not_a_role(self):
        with pytest.raises(InvalidReference):
            parse_role_ref("<@9>", ROLES)
