"""
memebot.services.command_router — Text Command Parsing & Dispatch
==================================================================

Every message starting with the bot prefix becomes a :class:`Command`, a
tagged value whose :class:`CommandKind` selects its handler from an
explicit mapping built in :class:`CommandRouter`.

``init`` and ``cmd`` are parsed by the ``mb`` helper in a child process
(:mod:`memebot.cli`); the router branches on the helper's exit code.  The
remaining commands are parsed in-process.

Failure replies:
- Submission problems (no meme channel, wrong attachment count) and bad
  references get precise messages.
- Anything else (DB down, Discord errors) gets a generic
  "couldn't complete that action" reply and is logged.
"""

from __future__ import annotations

import argparse
import enum
import logging
import shlex
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import discord
from sqlalchemy import Engine

from memebot.cli import HelperResult, run_helper
from memebot.config import MemeBotConfig
from memebot.constants import (
    EXIT_CMD_DISABLE,
    EXIT_CMD_PRINT,
    EXIT_CMD_SET,
    EXIT_DONE,
    EXIT_INIT,
)
from memebot.database.engine import run_db
from memebot.engine.references import InvalidReference, parse_channel_ref, parse_role_ref
from memebot.engine.transport import MemeTransport
from memebot.engine.watcher import MemeWatchEngine
from memebot.services import guild_config_service as guild_config
from memebot.services.access_guard import has_moderation_rights, is_authorized_channel
from memebot.services.embeds import CmdStatus, build_response_embed, build_status_embed
from memebot.services.submission_service import (
    AttachmentCountMismatch,
    PostingDisabled,
    Submission,
    submit_meme,
)

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "We couldn't complete that action.\nThat's all we know."


# ---------------------------------------------------------------------------
# Command values
# ---------------------------------------------------------------------------
class CommandKind(enum.StrEnum):
    POST = "post"
    SHOW_MEME_CHANNEL = "show_meme_channel"
    SET_MEME_CHANNEL = "set_meme_channel"
    DISABLE_MEME_CHANNEL = "disable_meme_channel"
    SHOW_LIMIT = "show_limit"
    SET_LIMIT = "set_limit"
    STATUS = "status"
    INIT = "init"
    SHOW_CMD_CHANNEL = "show_cmd_channel"
    SET_CMD_CHANNEL = "set_cmd_channel"
    DISABLE_CMD_CHANNEL = "disable_cmd_channel"
    HELP = "help"


# Kinds that change guild settings and therefore need moderation rights.
MUTATING_KINDS = frozenset({
    CommandKind.SET_MEME_CHANNEL,
    CommandKind.DISABLE_MEME_CHANNEL,
    CommandKind.SET_LIMIT,
    CommandKind.INIT,
    CommandKind.SET_CMD_CHANNEL,
    CommandKind.DISABLE_CMD_CHANNEL,
})

HELPER_KINDS: dict[int, CommandKind] = {
    EXIT_INIT: CommandKind.INIT,
    EXIT_CMD_PRINT: CommandKind.SHOW_CMD_CHANNEL,
    EXIT_CMD_SET: CommandKind.SET_CMD_CHANNEL,
    EXIT_CMD_DISABLE: CommandKind.DISABLE_CMD_CHANNEL,
}

HELPER_COMMANDS = frozenset({"init", "i", "cmd", "c"})


@dataclass(frozen=True, slots=True)
class Command:
    kind: CommandKind
    argument: str | None = None
    attribution: bool | None = None  # POST only; None → config default


class CommandSyntaxError(Exception):
    """The text after the prefix isn't a valid command."""


@dataclass(slots=True)
class CommandContext:
    """Everything a handler needs from the triggering message."""

    guild_id: int | None  # None in DMs
    channel_id: int
    author_id: int
    author_name: str
    reply: Callable[[discord.Embed], Awaitable[Any]]
    fetch_previous_attachments: Callable[[], Awaitable[Sequence[Any]]]
    role_ids: Sequence[int] = ()
    is_platform_admin: bool = False
    channel_names: Mapping[str, int] = field(default_factory=dict)
    role_names: Mapping[str, int] = field(default_factory=dict)

    @property
    def is_dm(self) -> bool:
        return self.guild_id is None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------
class _RouterParser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of printing and exiting."""

    def error(self, message: str):
        raise CommandSyntaxError(message)

    def exit(self, status: int = 0, message: str | None = None):
        raise CommandSyntaxError(message or "invalid command")


def _build_local_parser() -> _RouterParser:
    parser = _RouterParser(prog="mb", add_help=False)
    sub = parser.add_subparsers(dest="command", parser_class=_RouterParser)

    post = sub.add_parser("post", aliases=["p"], add_help=False)
    post.add_argument("-a", "--attribution", action="store_true", default=None)

    meme = sub.add_parser("meme", aliases=["m"], add_help=False)
    meme.add_argument("channel", nargs="?")
    meme.add_argument("-d", "--disable", action="store_true")

    limit = sub.add_parser("limit", aliases=["l"], add_help=False)
    limit.add_argument("value", nargs="?", type=int)

    sub.add_parser("status", aliases=["s"], add_help=False)
    return parser


_LOCAL_PARSER = _build_local_parser()


def parse_local(tokens: Sequence[str]) -> Command:
    """Parse ``post``, ``meme``, ``limit`` and ``status``."""
    args = _LOCAL_PARSER.parse_args(list(tokens))
    name = args.command
    if name in ("post", "p"):
        return Command(CommandKind.POST, attribution=args.attribution)
    if name in ("meme", "m"):
        if args.disable:
            return Command(CommandKind.DISABLE_MEME_CHANNEL)
        if args.channel is None:
            return Command(CommandKind.SHOW_MEME_CHANNEL)
        return Command(CommandKind.SET_MEME_CHANNEL, argument=args.channel)
    if name in ("limit", "l"):
        if args.value is None:
            return Command(CommandKind.SHOW_LIMIT)
        return Command(CommandKind.SET_LIMIT, argument=str(args.value))
    return Command(CommandKind.STATUS)


def command_from_helper(result: HelperResult) -> Command:
    """Translate the ``mb`` helper's exit code into a :class:`Command`."""
    kind = HELPER_KINDS.get(result.code)
    if kind is not None:
        return Command(kind, argument=result.output or None)
    if result.code in (0, EXIT_DONE):
        return Command(CommandKind.HELP, argument=result.output)
    lines = (result.error or "invalid command").splitlines()
    raise CommandSyntaxError(lines[-1])


async def parse_command(text: str, prefix: str) -> Command | None:
    """Return the command in *text*, or None if it isn't addressed to us."""
    if not text.startswith(prefix):
        return None
    rest = text[len(prefix):]
    if rest and not rest[0].isspace():
        return None
    try:
        tokens = shlex.split(rest)
    except ValueError as exc:
        raise CommandSyntaxError(str(exc)) from exc

    if not tokens or tokens[0] in HELPER_COMMANDS or tokens[0].startswith("-"):
        return command_from_helper(await run_helper(tokens))
    return parse_local(tokens)


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------
Handler = Callable[[Command, CommandContext], Awaitable[None]]


class CommandRouter:
    """Maps each :class:`CommandKind` to a handler and runs the access checks."""

    def __init__(
        self,
        cfg: MemeBotConfig,
        engine: Engine,
        transport: MemeTransport,
        watcher: MemeWatchEngine,
    ) -> None:
        self.cfg = cfg
        self.engine = engine
        self.transport = transport
        self.watcher = watcher
        self._handlers: dict[CommandKind, Handler] = {
            CommandKind.POST: self._post,
            CommandKind.SHOW_MEME_CHANNEL: self._show_meme_channel,
            CommandKind.SET_MEME_CHANNEL: self._set_meme_channel,
            CommandKind.DISABLE_MEME_CHANNEL: self._disable_meme_channel,
            CommandKind.SHOW_LIMIT: self._show_limit,
            CommandKind.SET_LIMIT: self._set_limit,
            CommandKind.STATUS: self._status,
            CommandKind.INIT: self._init,
            CommandKind.SHOW_CMD_CHANNEL: self._show_cmd_channel,
            CommandKind.SET_CMD_CHANNEL: self._set_cmd_channel,
            CommandKind.DISABLE_CMD_CHANNEL: self._disable_cmd_channel,
            CommandKind.HELP: self._help,
        }

    async def route(self, text: str, ctx: CommandContext) -> bool:
        """Parse and run *text*.  Returns False if it wasn't a command."""
        try:
            command = await parse_command(text, self.cfg.bot_prefix)
        except CommandSyntaxError as exc:
            await self._reply(ctx, CmdStatus.ERROR, f"Invalid command: {exc}")
            return True
        if command is None:
            return False
        await self.dispatch(command, ctx)
        return True

    async def dispatch(self, command: Command, ctx: CommandContext) -> None:
        try:
            if not await self._check_access(command, ctx):
                return
            await self._handlers[command.kind](command, ctx)
        except InvalidReference as exc:
            await self._reply(ctx, CmdStatus.ERROR, str(exc))
        except Exception:
            logger.exception(
                "Command %s failed for user %s in channel %s",
                command.kind, ctx.author_id, ctx.channel_id,
            )
            await self._reply(ctx, CmdStatus.ERROR, GENERIC_FAILURE)

    async def _check_access(self, command: Command, ctx: CommandContext) -> bool:
        if command.kind is CommandKind.POST:
            if not ctx.is_dm:
                await self._reply(
                    ctx, CmdStatus.ERROR,
                    "Send me your meme in a direct message, then use `post` there.",
                )
                return False
            return True

        if command.kind is CommandKind.HELP:
            return True

        if ctx.is_dm:
            await self._reply(ctx, CmdStatus.ERROR, "This command only works in a server.")
            return False

        # Commands outside the cmd channel are ignored silently.
        if not await run_db(is_authorized_channel, self.engine, ctx.guild_id, ctx.channel_id):
            logger.debug("Ignoring %s outside the cmd channel", command.kind)
            return False

        if command.kind in MUTATING_KINDS and not await run_db(
            has_moderation_rights,
            self.engine, ctx.guild_id, ctx.author_id, ctx.role_ids, ctx.is_platform_admin,
        ):
            await self._reply(
                ctx, CmdStatus.ERROR,
                "You need the MemeBot admin role to change settings.",
            )
            return False
        return True

    @staticmethod
    async def _reply(ctx: CommandContext, status: CmdStatus, text: str) -> None:
        await ctx.reply(build_response_embed(status, text))

    # -----------------------------------------------------------------------
    # Handlers
    # -----------------------------------------------------------------------
    async def _post(self, command: Command, ctx: CommandContext) -> None:
        attachments = await ctx.fetch_previous_attachments()
        attribution = (
            self.cfg.attribution_default if command.attribution is None
            else command.attribution
        )
        submission = Submission(
            guild_id=self.cfg.guild_id,
            submitter_id=ctx.author_id,
            submitter_name=ctx.author_name,
            attachments=attachments,
            attribution=attribution,
        )
        try:
            await submit_meme(
                self.engine, self.transport, self.watcher, submission,
                upvote_symbol=self.cfg.upvote_emoji,
                downvote_symbol=self.cfg.downvote_emoji,
            )
        except PostingDisabled:
            await self._reply(
                ctx, CmdStatus.ERROR,
                "We couldn't post your meme for the guild you specified "
                "doesn't allow for memes to be posted.",
            )
        except AttachmentCountMismatch:
            await self._reply(
                ctx, CmdStatus.ERROR,
                "The previous message needs to contain exactly one attachment",
            )
        else:
            await self._reply(ctx, CmdStatus.SUCCESS, "Your meme has been posted!")

    async def _show_meme_channel(self, command: Command, ctx: CommandContext) -> None:
        channel_id = await run_db(guild_config.get_meme_channel, self.engine, ctx.guild_id)
        text = "disabled." if channel_id is None else f"set to <#{channel_id}>"
        await self._reply(ctx, CmdStatus.INFO, f"The meme channel is {text}")

    async def _set_meme_channel(self, command: Command, ctx: CommandContext) -> None:
        channel_id = parse_channel_ref(command.argument or "", ctx.channel_names)
        await run_db(guild_config.set_meme_channel, self.engine, ctx.guild_id, channel_id)
        await self._reply(ctx, CmdStatus.SUCCESS, f"We've set the meme channel to <#{channel_id}>")

    async def _disable_meme_channel(self, command: Command, ctx: CommandContext) -> None:
        await run_db(guild_config.disable_meme_channel, self.engine, ctx.guild_id)
        await self._reply(ctx, CmdStatus.SUCCESS, "We successfully disabled the meme channel.")

    async def _show_limit(self, command: Command, ctx: CommandContext) -> None:
        limit = await run_db(
            guild_config.get_downvote_limit,
            self.engine, ctx.guild_id, self.cfg.default_downvote_limit,
        )
        await self._reply(
            ctx, CmdStatus.INFO,
            f"Memes are removed after more than {limit} downvotes.",
        )

    async def _set_limit(self, command: Command, ctx: CommandContext) -> None:
        limit = int(command.argument or 0)
        if limit < 1:
            await self._reply(ctx, CmdStatus.ERROR, "The downvote limit must be at least 1.")
            return
        await run_db(guild_config.set_downvote_limit, self.engine, ctx.guild_id, limit)
        await self._reply(ctx, CmdStatus.SUCCESS, f"We've set the downvote limit to {limit}.")

    async def _status(self, command: Command, ctx: CommandContext) -> None:
        snapshot = await run_db(
            guild_config.get_guild_config,
            self.engine, ctx.guild_id, self.cfg.default_downvote_limit,
        )
        tracked = await run_db(self.watcher.registry.count, ctx.guild_id)
        await ctx.reply(build_status_embed(snapshot, tracked))

    async def _init(self, command: Command, ctx: CommandContext) -> None:
        role_id = parse_role_ref(command.argument or "", ctx.role_names)
        await run_db(
            guild_config.initialize_guild,
            self.engine, ctx.guild_id,
            admin_role_id=role_id,
            cmd_channel_id=ctx.channel_id,
        )
        await self._reply(
            ctx, CmdStatus.SUCCESS,
            f"Initialized: the admin role is <@&{role_id}> and commands are "
            f"accepted in <#{ctx.channel_id}>.",
        )

    async def _show_cmd_channel(self, command: Command, ctx: CommandContext) -> None:
        channel_id = await run_db(guild_config.get_cmd_channel, self.engine, ctx.guild_id)
        text = "disabled." if channel_id is None else f"set to <#{channel_id}>"
        await self._reply(ctx, CmdStatus.INFO, f"The cmd channel is {text}")

    async def _set_cmd_channel(self, command: Command, ctx: CommandContext) -> None:
        channel_id = parse_channel_ref(command.argument or "", ctx.channel_names)
        await run_db(guild_config.set_cmd_channel, self.engine, ctx.guild_id, channel_id)
        await self._reply(ctx, CmdStatus.SUCCESS, f"We've set the cmd channel to <#{channel_id}>")

    async def _disable_cmd_channel(self, command: Command, ctx: CommandContext) -> None:
        await run_db(guild_config.disable_cmd_channel, self.engine, ctx.guild_id)
        await self._reply(ctx, CmdStatus.SUCCESS, "We successfully disabled the cmd channel.")

    async def _help(self, command: Command, ctx: CommandContext) -> None:
        await self._reply(ctx, CmdStatus.INFO, f"```\n{command.argument or ''}\n```")
