"""Help-menu parsing — turn ``eask ... --help`` output into menu options.

Eask prints its subcommands in a ``Commands:`` section, one per line::

    Commands:
      install [names..]   Install packages
      remove [names..]    Remove packages

The name sits at a fixed whitespace-token position that depends on how
deeply the listing is nested, so callers pass that position explicitly.

``fetch_help`` runs the help command synchronously.  That is the only
blocking call in easkctl: a menu can't be built before its listing is
known, and no session is running at that point.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from easkctl.errors import HelpParseError

logger = logging.getLogger(__name__)

COMMANDS_MARKER = "Commands:"
HELP_TIMEOUT = 30.0

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*[a-zA-Z]")
_GAP_RE = re.compile(r" {2,}")


@dataclass(frozen=True)
class MenuOption:
    """One selectable subcommand."""

    id: str
    description: str = ""

    def as_tuple(self) -> tuple[str, str]:
        return (self.id, self.description)


def strip_ansi(text: str) -> str:
    """Strip ANSI escape sequences from text."""
    return _ANSI_RE.sub("", text)


def parse_help_text(
    text: str, token_index: int, command: str = "<help>"
) -> list[MenuOption]:
    """Parse the ``Commands:`` section of a help text.

    Args:
        text: Full help output.
        token_index: 1-based whitespace-token position of the command name
            within each listing line.
        command: Command line that produced ``text``, for error messages.

    Returns:
        Options in the order the tool printed them.

    Raises:
        HelpParseError: the text has no ``Commands:`` line.
    """
    if token_index < 1:
        raise ValueError(f"token_index is 1-based, got {token_index}")

    lines = strip_ansi(text).replace("\r\n", "\n").split("\n")
    try:
        start = next(i for i, line in enumerate(lines) if COMMANDS_MARKER in line)
    except StopIteration:
        raise HelpParseError(command) from None

    options: list[MenuOption] = []
    for line in lines[start + 1 :]:
        if not line.strip():
            break
        tokens = line.split()
        if len(tokens) < token_index:
            logger.debug("Skipping short listing line: %r", line)
            continue
        body = line.lstrip()
        gap = _GAP_RE.search(body)
        description = body[gap.end() :].strip() if gap else ""
        options.append(MenuOption(id=tokens[token_index - 1], description=description))
    return options


def fetch_help(
    command_line: str,
    token_index: int,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    timeout: float = HELP_TIMEOUT,
) -> list[MenuOption]:
    """Run a help command to completion and parse its listing.

    Blocks the caller until the command finishes.  Colour output is turned
    off for the child so the listing parses cleanly.
    """
    child_env = {**os.environ, **(env or {})}
    child_env["EASK_HASCOLORS"] = "false"
    logger.debug("Fetching help: %s", command_line)
    try:
        result = subprocess.run(
            command_line,
            shell=True,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            env=child_env,
            cwd=cwd,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        raise HelpParseError(command_line, f"timed out after {timeout:.0f}s") from None
    except OSError as e:
        raise HelpParseError(command_line, str(e)) from e

    output = result.stdout.decode("utf-8", errors="replace")
    return parse_help_text(output, token_index, command=command_line)


def token_index_for(path: Sequence[str], offset: int = 1) -> int:
    """Token position of the name in the listing of ``eask <path> --help``.

    Top-level listings hold the name at ``offset``; every nesting level
    shifts it by one.
    """
    return len(path) + offset
