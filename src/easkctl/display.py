"""Display sinks — where processed session output ends up.

Two interchangeable sinks share one interface:

* :class:`OverlaySink` — a transient overlay.  It opens on the first output
  of a session with a one-off tip, and after the session ends it stays up
  (scrollable) until focus moves somewhere else.
* :class:`SurfaceSink` — a persistent read-only area whose content is
  replaced wholesale, and cleared at the start of every session.

The sinks hold the lifecycle rules; drawing is delegated to a small view
object (Textual widgets in the TUI, a Rich ``Live`` in the plain CLI), which
keeps the rules testable without a terminal.
"""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Protocol

from rich.console import Console
from rich.live import Live
from rich.text import Text

if TYPE_CHECKING:
    from easkctl.process.session import Session

logger = logging.getLogger(__name__)

TIPS: tuple[str, ...] = (
    "Press ctrl+k to stop the running command.",
    "Press escape to go back to the parent menu.",
    "`eask info` shows what Eask knows about this package.",
    "`eask outdated` lists dependencies with newer versions.",
    "`eask clean all` removes every file Eask generated.",
    "`eask lint package` runs package-lint on your package files.",
    "Set EASKCTL_TIMEOUT to give long builds more time.",
    "Set EASKCTL_DISPLAY=surface to keep output in a fixed panel.",
    "Scripts declared with (script ...) in the Eask file appear under `run script`.",
)


class OverlayView(Protocol):
    """Drawing surface for :class:`OverlaySink`."""

    @property
    def is_open(self) -> bool: ...

    def open(self, title: str) -> None: ...

    def close(self) -> None: ...

    def update(self, text: Text, tip: str | None) -> None: ...

    def scroll_end(self) -> None: ...


class SurfaceView(Protocol):
    """Drawing surface for :class:`SurfaceSink`."""

    def clear(self) -> None: ...

    def replace(self, text: Text) -> None: ...


class DisplaySink(ABC):
    """Presentation target for session output."""

    @abstractmethod
    def reset(self) -> None:
        """Empty the sink before a new session writes to it."""

    @abstractmethod
    def render(self, text: Text) -> None:
        """Show ``text``, the full current output of the session."""

    def session_started(self, session: Session) -> None:
        """Called once the new session's process is running."""

    def session_finished(self, session: Session) -> None:
        """Called after the last render of a session that ended on its own."""

    def release(self) -> None:
        """Drop anything bound to the active session (stop/shutdown)."""


class OverlaySink(DisplaySink):
    """Transient overlay with a one-shot tip and auto-dismiss."""

    def __init__(
        self,
        view: OverlayView,
        tips: tuple[str, ...] = TIPS,
        rng: random.Random | None = None,
        scroll_to_end: bool = True,
        show_tips: bool = True,
    ) -> None:
        self._view = view
        self._tips = tips
        self._rng = rng or random.Random()
        self.scroll_to_end = scroll_to_end
        self.show_tips = show_tips
        self._title = ""
        self._first_render = True
        self._auto_dismiss = False

    @property
    def auto_dismiss_armed(self) -> bool:
        return self._auto_dismiss

    def reset(self) -> None:
        self._first_render = True
        self._auto_dismiss = False
        if self._view.is_open:
            self._view.update(Text(), None)

    def session_started(self, session: Session) -> None:
        self._title = session.command

    def render(self, text: Text) -> None:
        tip = None
        if self._first_render:
            self._first_render = False
            if self.show_tips and self._tips:
                tip = self._rng.choice(self._tips)
        if not self._view.is_open:
            self._view.open(self._title)
        self._view.update(text, tip)
        if self.scroll_to_end:
            self._view.scroll_end()

    def session_finished(self, session: Session) -> None:
        self._auto_dismiss = True

    def focus_changed(self, inside: bool) -> None:
        """Report a focus change.  ``inside`` is True if focus is still on
        the overlay itself."""
        if self._auto_dismiss and not inside:
            logger.debug("Dismissing output overlay")
            self._teardown()

    def release(self) -> None:
        self._teardown()

    def _teardown(self) -> None:
        self._auto_dismiss = False
        if self._view.is_open:
            self._view.close()


class SurfaceSink(DisplaySink):
    """Persistent, read-only output area."""

    def __init__(self, view: SurfaceView) -> None:
        self._view = view

    def reset(self) -> None:
        self._view.clear()

    def render(self, text: Text) -> None:
        self._view.replace(text)


class LiveSurfaceView:
    """:class:`SurfaceView` drawing into the terminal with a Rich ``Live``.

    Use as a context manager around the session.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()
        self._live = Live(
            Text(),
            console=self.console,
            auto_refresh=False,
            vertical_overflow="visible",
        )

    def __enter__(self) -> LiveSurfaceView:
        self._live.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._live.stop()

    def clear(self) -> None:
        self._live.update(Text(), refresh=True)

    def replace(self, text: Text) -> None:
        self._live.update(text, refresh=True)
