"""
memebot.cli — ``mb`` Command Helper
====================================

Parses the ``init`` and ``cmd`` admin commands in a child process and
reports the requested action through the process **exit code**; any
argument the parent needs (role or channel reference) is written to stdout.

=====  ==========================================
Code   Meaning
=====  ==========================================
2001   init requested (stdout: admin role ref)
3001   print the current cmd channel
3002   set the cmd channel (stdout: channel ref)
3003   disable the cmd channel check
4242   normal completion (help / version output)
=====  ==========================================

The parent branches on these exact values.  Run standalone with::

    python -m memebot.cli cmd "#bot-commands"; echo $?
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence
from dataclasses import dataclass

from memebot.constants import (
    EXIT_CMD_DISABLE,
    EXIT_CMD_PRINT,
    EXIT_CMD_SET,
    EXIT_DONE,
    EXIT_INIT,
    VERSION_STRING,
)

PROTOCOL_CODES = (EXIT_INIT, EXIT_CMD_PRINT, EXIT_CMD_SET, EXIT_CMD_DISABLE, EXIT_DONE)

# POSIX keeps only the low 8 bits of an exit status.
_BY_LOW_BYTE = {code & 0xFF: code for code in PROTOCOL_CODES}

EXAMPLES = """\
Examples:

  mb --version
  mb -v

  mb --help
  mb -h

  mb init @AdminRole
  mb i @AdminRole

  mb cmd #bot-commands
  mb c #bot-commands
  mb cmd
  mb c
"""


# ---------------------------------------------------------------------------
# Child side
# ---------------------------------------------------------------------------
def _init(args: argparse.Namespace) -> None:
    sys.stdout.write(args.admin_role)
    sys.exit(EXIT_INIT)


def _cmd_channel(args: argparse.Namespace) -> None:
    # --disable wins even with no channel given, so `mb cmd -d` disables.
    if args.cmd_channel is not None:
        sys.stdout.write(args.cmd_channel)
    if args.disable:
        sys.exit(EXIT_CMD_DISABLE)
    if args.cmd_channel is None:
        sys.exit(EXIT_CMD_PRINT)
    sys.exit(EXIT_CMD_SET)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mb",
        description="MemeBot - Automates and manages meme channels for Discord guilds",
        add_help=False,
    )
    parser.add_argument("-h", "--help", action="store_true", help="Show this help")
    parser.add_argument("-v", "--version", action="store_true", help="Print the version")
    parser.add_argument(
        "-e", "--example", action="store_true",
        help="Print examples with the help output",
    )
    sub = parser.add_subparsers(dest="command")

    cmd = sub.add_parser(
        "cmd", aliases=["c"],
        help="Set the cmd channel to [cmdChannel], or get the current cmd channel",
    )
    cmd.add_argument("cmd_channel", nargs="?", metavar="cmdChannel")
    cmd.add_argument("-d", "--disable", action="store_true",
                     help="Disable the cmd channel check")
    cmd.set_defaults(handler=_cmd_channel)

    init = sub.add_parser(
        "init", aliases=["i"],
        help="Initialize this guild; Sets the cmd channel to the one this command "
             "is issued in, and the admin role to <adminRole>",
    )
    init.add_argument("admin_role", metavar="adminRole")
    init.set_defaults(handler=_init)
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(VERSION_STRING)
        sys.exit(EXIT_DONE)

    if args.help or args.command is None:
        parser.print_help()
        print()
        print(EXAMPLES if args.example else "  Print examples using --example -h")
        sys.exit(EXIT_DONE)

    args.handler(args)
    sys.exit(EXIT_DONE)


# ---------------------------------------------------------------------------
# Parent side
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class HelperResult:
    code: int
    output: str
    error: str = ""


def normalize_exit_code(returncode: int) -> int:
    """Map an 8-bit truncated status back to its protocol code."""
    if returncode in PROTOCOL_CODES:
        return returncode
    return _BY_LOW_BYTE.get(returncode & 0xFF, returncode) if returncode > 0 else returncode


async def run_helper(tokens: Sequence[str]) -> HelperResult:
    """Run ``python -m memebot.cli *tokens`` and collect its verdict."""
    proc = await asyncio.create_subprocess_exec(
        sys.executable, "-m", "memebot.cli", *tokens,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    out, err = await proc.communicate()
    return HelperResult(
        code=normalize_exit_code(proc.returncode or 0),
        output=out.decode("utf-8", errors="replace").strip(),
        error=err.decode("utf-8", errors="replace").strip(),
    )


if __name__ == "__main__":
    main()
