"""Controller — wires the formatter, parser, supervisor and sink together.

Shared between the plain CLI and the TUI.  One controller drives one
project: it checks preconditions, loads the Eask file quietly, fetches help
menus and runs commands inside a sandbox scope.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from collections.abc import Sequence
from pathlib import Path

from easkctl.command import format_command
from easkctl.config import EaskctlConfig
from easkctl.display import DisplaySink
from easkctl.errors import ConfigLoadError, ExecutableNotFound
from easkctl.help import MenuOption, fetch_help, token_index_for
from easkctl.process.session import Session
from easkctl.process.stream import StreamProcessor
from easkctl.process.supervisor import ConfirmCallback, Supervisor
from easkctl.registry import CommandRegistry, default_registry
from easkctl.sandbox import sandbox_scope
from easkctl.session.wire import Wire
from easkctl.workspace import (
    CapturingDiagnostics,
    ProjectDescriptor,
    find_workspace,
    load_descriptor,
)

logger = logging.getLogger(__name__)


class Controller:
    """Runs eask commands for the project around ``cwd``.

    ``color`` says whether the presentation surface can show colours; it is
    passed on to eask through ``EASK_HASCOLORS``.
    """

    def __init__(
        self,
        config: EaskctlConfig,
        sink: DisplaySink,
        confirm: ConfirmCallback | None = None,
        wire: Wire | None = None,
        cwd: str | None = None,
        color: bool = True,
        registry: CommandRegistry | None = None,
    ) -> None:
        self.config = config
        self.wire = wire or Wire()
        self.cwd = cwd or os.getcwd()
        self.color = color
        self.registry = registry or default_registry()
        self.processor = StreamProcessor(sink, strip_header=config.display.strip_header)
        self.supervisor = Supervisor(
            self.processor,
            confirm=confirm,
            timeout=config.timeout,
            wire=self.wire,
        )
        self.executable: str | None = None
        self.eask_file: Path | None = None
        self.project: ProjectDescriptor | None = None
        self._operation_lock = asyncio.Lock()

    @property
    def root(self) -> Path | None:
        return self.eask_file.parent if self.eask_file else None

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------

    def preflight(self) -> Path:
        """Check the executable and locate the Eask file.

        Raises:
            ExecutableNotFound: the eask executable is not on PATH.
            InvalidWorkspace: no Eask file at or above ``cwd``.
        """
        executable = shutil.which(self.config.executable)
        if executable is None:
            raise ExecutableNotFound(self.config.executable)
        self.executable = executable
        self.eask_file = find_workspace(self.cwd)
        logger.info("Using %s with %s", executable, self.eask_file)
        return self.eask_file

    def load_project(
        self, diagnostics: CapturingDiagnostics | None = None
    ) -> ProjectDescriptor:
        """Load the Eask file without printing anything.

        Diagnostics are captured into ``diagnostics`` (a fresh capture by
        default) instead of being logged.  Captured errors abort the load.

        Raises:
            ConfigLoadError: the Eask file has errors.
        """
        if self.eask_file is None:
            self.preflight()
        assert self.eask_file is not None

        capture = diagnostics if diagnostics is not None else CapturingDiagnostics()
        descriptor = load_descriptor(self.eask_file, capture)
        for warning in capture.warnings:
            logger.debug("%s: %s", self.eask_file.name, warning)
        if capture.errors:
            raise ConfigLoadError(str(self.eask_file), capture.formatted())
        self.project = descriptor
        return descriptor

    # ------------------------------------------------------------------
    # Menus
    # ------------------------------------------------------------------

    def help_command(self, path: Sequence[str] = ()) -> str:
        return format_command(
            " ".join(path),
            extra_flags=["--help"],
            program=self.executable or self.config.executable,
        )

    def help_menu(self, path: Sequence[str] = ()) -> list[MenuOption]:
        """Fetch the subcommands listed by ``eask <path> --help``.

        Blocks until the help command finishes.

        Raises:
            HelpParseError: the listing could not be parsed.
        """
        if self.eask_file is None:
            self.preflight()
        return fetch_help(
            self.help_command(path),
            token_index_for(path, self.config.help_token_offset),
            env=self.config.environment,
            cwd=str(self.root) if self.root else None,
        )

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def child_environment(self) -> dict[str, str]:
        return {
            **self.config.environment,
            "EASK_HASCOLORS": "true" if self.color else "false",
        }

    async def run(self, verb: str, args: Sequence[str | None] = ()) -> Session | None:
        """Run ``eask <verb> <args>`` and wait for it to end.

        A running command is stopped first (with confirmation).  The whole
        operation, from formatting the command line to the end of the
        session, runs in a sandbox scope; operations never overlap.

        Returns the finished session, or None if the user kept the running
        command.

        Raises:
            ExecutableNotFound, InvalidWorkspace: preconditions failed.
            ConfigLoadError: the Eask file has errors.
        """
        if self.supervisor.running and not await self.supervisor.stop():
            return None

        if self.eask_file is None:
            self.preflight()
        self.load_project()

        async with self._operation_lock:
            with sandbox_scope(self.root, self.child_environment()):
                command_line = format_command(
                    verb,
                    args,
                    self.config.extra_flags,
                    program=self.executable or self.config.executable,
                )
                session = await self.supervisor.start(command_line)
                if session is None:
                    return None
                await session.wait()
                return session

    async def stop(self) -> bool:
        return await self.supervisor.stop()

    def shutdown(self) -> None:
        self.supervisor.shutdown()
