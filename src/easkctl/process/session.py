"""Session — one supervised invocation of the eask executable."""

from __future__ import annotations

import asyncio
import enum
import logging
import os
import signal
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable

from easkctl.process.buffer import OutputBuffer

logger = logging.getLogger(__name__)

CHUNK_SIZE = 4096

OutputCallback = Callable[["Session", bytes], None]
ExitCallback = Callable[["Session", int], None]


class SessionStatus(enum.Enum):
    """Lifecycle states for a session."""

    RUNNING = "running"
    COMPLETED = "completed"  # Exited on its own, any exit code
    SIGNALED = "signaled"  # Terminated by a signal (including our kill)
    TIMED_OUT = "timed_out"  # Killed by the watchdog


@dataclass
class Session:
    """A child process started from a shell command line.

    The process runs in its own process group (``start_new_session``) so a
    kill takes down everything it spawned.  stdout and stderr are merged and
    read in chunks by a reader task; each chunk is handed to the output
    callback in the order the process wrote it.  When the stream ends the
    process is reaped, the status is classified and the exit callback runs.

    Both callbacks run on the event loop, one at a time.
    """

    command: str
    cwd: str | None = None
    env: dict[str, str] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])

    buffer: OutputBuffer = field(default_factory=OutputBuffer)
    started_at: float = field(default_factory=time.time)
    returncode: int | None = None
    watchdog: asyncio.TimerHandle | None = None

    # Internal state
    _status: SessionStatus = field(default=SessionStatus.RUNNING, init=False)
    _proc: asyncio.subprocess.Process | None = field(default=None, init=False)
    _reader_task: asyncio.Task | None = field(default=None, init=False)
    _done: asyncio.Event | None = field(default=None, init=False)
    _clock_start: float = field(default_factory=time.monotonic, init=False)

    async def spawn(self, on_output: OutputCallback, on_exit: ExitCallback) -> None:
        """Start the process and its reader task."""
        env = {**os.environ, **self.env}
        self._done = asyncio.Event()
        self._proc = await asyncio.create_subprocess_shell(
            self.command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=self.cwd,
            env=env,
            start_new_session=True,  # New process group, pgid == pid
        )
        self._clock_start = time.monotonic()
        self._reader_task = asyncio.create_task(self._read_loop(on_output, on_exit))
        logger.info("Session %s started: pid=%d cmd=%s", self.id, self.pid, self.command)

    async def _read_loop(self, on_output: OutputCallback, on_exit: ExitCallback) -> None:
        assert self._proc is not None and self._proc.stdout is not None
        delivering = True
        try:
            while True:
                chunk = await self._proc.stdout.read(CHUNK_SIZE)
                if not chunk:
                    break
                if not delivering:
                    # Keep draining the pipe or the child blocks on write
                    continue
                try:
                    on_output(self, chunk)
                except Exception:
                    logger.exception(
                        "Output handling failed for session %s, discarding the rest", self.id
                    )
                    delivering = False
        except asyncio.CancelledError:
            self.kill(SessionStatus.SIGNALED)
            self._finish()
            raise

        returncode = await self._proc.wait()
        self.returncode = returncode
        if self._status is SessionStatus.RUNNING:
            self._status = (
                SessionStatus.COMPLETED if returncode >= 0 else SessionStatus.SIGNALED
            )
        logger.info(
            "Session %s ended: status=%s code=%s", self.id, self._status.value, returncode
        )
        try:
            on_exit(self, returncode)
        except Exception:
            logger.exception("Error in exit callback for session %s", self.id)
        finally:
            self._finish()

    def _finish(self) -> None:
        if self._done is not None:
            self._done.set()

    def kill(self, status: SessionStatus = SessionStatus.SIGNALED) -> bool:
        """Kill the whole process group and record ``status``.

        Returns False if the session was no longer running.  Reaping and the
        exit callback happen later on the reader task.
        """
        if self._status is not SessionStatus.RUNNING or self._proc is None:
            return False

        self._status = status
        try:
            os.killpg(self._proc.pid, signal.SIGKILL)
            logger.info("Killed session %s (pgid=%d)", self.id, self._proc.pid)
        except ProcessLookupError:
            logger.debug("Process group already gone: %d", self._proc.pid)
        except OSError as e:
            logger.warning("Error killing session %s: %s", self.id, e)
        return True

    async def wait(self) -> SessionStatus:
        """Wait until the process has been reaped and the exit callback ran."""
        if self._done is None:
            raise RuntimeError(f"Session {self.id} was never started")
        await self._done.wait()
        return self._status

    @property
    def alive(self) -> bool:
        return self._status is SessionStatus.RUNNING

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def done(self) -> bool:
        return self._done is not None and self._done.is_set()

    @property
    def pid(self) -> int:
        return self._proc.pid if self._proc is not None else 0

    @property
    def elapsed(self) -> float:
        """Seconds since the process was spawned."""
        return time.monotonic() - self._clock_start

    def describe_exit(self) -> str:
        """One-line terminal status for the user."""
        if self._status is SessionStatus.RUNNING:
            return f"`{self.command}` is still running"
        if self._status is SessionStatus.TIMED_OUT:
            return f"`{self.command}` timed out after {self.elapsed:.1f}s and was killed"
        if self._status is SessionStatus.SIGNALED:
            code = self.returncode
            if code is not None and code < 0:
                try:
                    name = signal.Signals(-code).name
                except ValueError:
                    name = str(-code)
                return f"`{self.command}` terminated by {name}"
            return f"`{self.command}` was stopped"
        if self.returncode == 0:
            return f"`{self.command}` finished"
        return f"`{self.command}` exited with code {self.returncode}"
