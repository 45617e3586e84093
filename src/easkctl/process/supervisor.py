"""Supervisor — owns the single execution slot for eask sessions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Awaitable, Callable

from easkctl.errors import ProcessTimeout
from easkctl.process.session import Session, SessionStatus
from easkctl.process.stream import StreamProcessor
from easkctl.session.wire import Wire

if TYPE_CHECKING:
    from easkctl.display import DisplaySink

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[Session], Awaitable[bool]]

DEFAULT_TIMEOUT = 30.0


class Supervisor:
    """Runs at most one eask session at a time.

    State per slot: IDLE -> RUNNING -> {COMPLETED | SIGNALED | TIMED_OUT}
    -> IDLE.  The supervisor guarantees:

    - Starting while a session runs stops it first.  Stopping asks the
      ``confirm`` callback, and a refusal refuses the new start too.
    - Every session gets exactly one watchdog, canceled on exit.  A watchdog
      only ever kills the session that armed it.
    - Output of a session that is no longer active is dropped, so a stopped
      session can't write into the display of its successor.
    - A display error stops rendering for that session only.  It is
      reported on the Wire and the output is still drained.
    - Lifecycle events go out on the Wire (if attached).

    Without a ``confirm`` callback, stops are always confirmed.
    """

    def __init__(
        self,
        processor: StreamProcessor,
        confirm: ConfirmCallback | None = None,
        timeout: float | None = DEFAULT_TIMEOUT,
        wire: Wire | None = None,
    ) -> None:
        self._processor = processor
        self._confirm = confirm
        self.timeout = timeout
        self._wire = wire
        self._session: Session | None = None
        self._start_lock = asyncio.Lock()
        self._display_failed: set[str] = set()

    @property
    def session(self) -> Session | None:
        """The active session, if any."""
        return self._session

    @property
    def running(self) -> bool:
        return self._session is not None and self._session.alive

    @property
    def sink(self) -> DisplaySink:
        return self._processor.sink

    async def start(
        self,
        command_line: str,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> Session | None:
        """Start a new session for ``command_line``.

        Returns the new session, or None when a running session could not
        be stopped because the user declined.
        """
        async with self._start_lock:
            current = self._session
            if current is not None and current.alive and not await self.stop():
                logger.info("Start of `%s` refused by user", command_line)
                self._status(f"Kept `{current.command}` running")
                return None

            self.sink.reset()
            session = Session(command=command_line, env=dict(env or {}), cwd=cwd)
            await session.spawn(self._on_output, self._on_exit)
            self._session = session
            self.sink.session_started(session)
            self._arm_watchdog(session)

            if self._wire:
                self._wire.send_session_start(session.id, session.command)
            return session

    async def stop(self) -> bool:
        """Stop the active session after confirmation.

        Returns True if nothing is running afterwards, False if the user
        declined.
        """
        session = self._session
        if session is None or not session.alive:
            return True

        if self._confirm is not None and not await self._confirm(session):
            return False
        if session is not self._session or not session.alive:
            # Finished on its own while we were asking
            return True

        self._cancel_watchdog(session)
        session.kill(SessionStatus.SIGNALED)
        self._session = None
        self.sink.release()
        self._status(f"Stopped `{session.command}`")
        return True

    def shutdown(self) -> None:
        """Kill the active session without asking.  Used on exit."""
        session = self._session
        if session is None:
            return
        self._cancel_watchdog(session)
        session.kill(SessionStatus.SIGNALED)
        self._session = None
        self.sink.release()
        logger.info("Supervisor shut down")

    # ------------------------------------------------------------------
    # Watchdog
    # ------------------------------------------------------------------

    def _arm_watchdog(self, session: Session) -> None:
        self._cancel_watchdog(session)
        if not self.timeout:
            return
        loop = asyncio.get_running_loop()
        session.watchdog = loop.call_later(self.timeout, self._on_timeout, session)

    @staticmethod
    def _cancel_watchdog(session: Session) -> None:
        if session.watchdog is not None:
            session.watchdog.cancel()
            session.watchdog = None

    def _on_timeout(self, session: Session) -> None:
        session.watchdog = None
        if session is not self._session or not session.alive:
            return

        timeout = ProcessTimeout(session.command, session.elapsed)
        session.kill(SessionStatus.TIMED_OUT)
        logger.warning("%s", timeout)
        if self._wire:
            self._wire.send_warning(timeout.message)

    # ------------------------------------------------------------------
    # Session callbacks
    # ------------------------------------------------------------------

    def _on_output(self, session: Session, chunk: bytes) -> None:
        if session is not self._session:
            return
        if session.id in self._display_failed:
            session.buffer.append(chunk)
            return
        try:
            self._processor.feed(session.buffer, chunk)
        except Exception as e:
            self._display_failure(session, e)

    def _display_failure(self, session: Session, error: Exception) -> None:
        """Stop rendering ``session`` and report the failure once."""
        logger.exception("Display failed for session %s", session.id)
        self._display_failed.add(session.id)
        if self._wire:
            self._wire.send_error(
                f"Output of `{session.command}` can no longer be shown: {error}",
                hint="The command keeps running until it exits or times out.",
            )

    def _on_exit(self, session: Session, returncode: int) -> None:
        self._cancel_watchdog(session)
        message = session.describe_exit()
        display_failed = session.id in self._display_failed
        self._display_failed.discard(session.id)

        if self._wire:
            self._wire.send_session_exit(
                session.id, session.command, session.status.value, returncode, message
            )

        if session is not self._session:
            # Already detached by stop()/shutdown()
            return

        self._session = None
        if not display_failed:
            self._processor.flush(session.buffer, final=True)
        self.sink.session_finished(session)

    def _status(self, message: str) -> None:
        if self._wire:
            self._wire.send_status(message)
