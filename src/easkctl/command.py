"""Command line formatting for eask invocations."""

from __future__ import annotations

import shlex
from collections.abc import Iterable, Sequence


def format_command(
    verb: str,
    args: Sequence[str | None] = (),
    extra_flags: Iterable[str] = (),
    program: str = "eask",
) -> str:
    """Build one shell command line.

    ``verb`` may hold several words (``"clean all"``); each becomes its own
    token.  ``None`` entries in ``args`` are dropped rather than turned into
    empty strings.  Every remaining argument and flag is quoted separately.
    """
    parts = [shlex.quote(program)]
    parts.extend(shlex.quote(word) for word in verb.split())
    parts.extend(shlex.quote(arg) for arg in args if arg is not None)
    parts.extend(shlex.quote(flag) for flag in extra_flags)
    return " ".join(parts)
