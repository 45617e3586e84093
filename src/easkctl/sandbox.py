"""Sandbox scope — temporary environment for one controller operation.

Inside the scope the process works from the project root with the
configured environment overrides applied.  Leaving the scope, by any path
including an exception, restores the previous working directory and every
environment variable it touched.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)


@contextmanager
def sandbox_scope(
    root: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> Iterator[dict[str, str]]:
    """Apply ``env`` and change into ``root`` for the duration of the block.

    Yields a snapshot of the resulting environment.
    """
    overrides = dict(env or {})
    saved = {key: os.environ.get(key) for key in overrides}
    previous_cwd = os.getcwd()
    try:
        os.environ.update(overrides)
        if root is not None:
            os.chdir(root)
        logger.debug("Entered sandbox at %s (%d overrides)", root or previous_cwd, len(overrides))
        yield dict(os.environ)
    finally:
        for key, value in saved.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
        os.chdir(previous_cwd)
        logger.debug("Left sandbox, back in %s", previous_cwd)
