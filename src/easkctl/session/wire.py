"""Wire protocol — decouples the supervisor from the UI.

Session lifecycle events flow from the supervisor and controller to the UI.
The UI subscribes to the wire and renders events, so the plain CLI and the
TUI share the same core code.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from typing import Any


class EventType(enum.Enum):
    SESSION_START = "session_start"
    SESSION_EXIT = "session_exit"
    STATUS = "status"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class WireEvent:
    """An event on the wire."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)


class Wire:
    """Async message bus: supervisor -> UI subscribers.

    Single-producer, multi-consumer broadcast.
    """

    def __init__(self) -> None:
        self._subscribers: list[asyncio.Queue[WireEvent | None]] = []
        self._closed: bool = False

    def send(self, event: WireEvent) -> None:
        """Send an event to all subscribers.

        Silently drops events after ``close()`` has been called.
        """
        if self._closed:
            return
        for q in self._subscribers:
            q.put_nowait(event)

    def send_status(self, message: str) -> None:
        self.send(WireEvent(type=EventType.STATUS, data={"message": message}))

    def send_warning(self, message: str) -> None:
        self.send(WireEvent(type=EventType.WARNING, data={"message": message}))

    def send_error(self, error: str, hint: str = "") -> None:
        self.send(WireEvent(type=EventType.ERROR, data={"error": error, "hint": hint}))

    def send_session_start(self, session_id: str, command: str) -> None:
        self.send(
            WireEvent(
                type=EventType.SESSION_START,
                data={"session_id": session_id, "command": command},
            )
        )

    def send_session_exit(
        self,
        session_id: str,
        command: str,
        status: str,
        exit_code: int | None,
        message: str = "",
    ) -> None:
        """Notify subscribers that a session reached a terminal status."""
        self.send(
            WireEvent(
                type=EventType.SESSION_EXIT,
                data={
                    "session_id": session_id,
                    "command": command,
                    "status": status,
                    "exit_code": exit_code,
                    "message": message,
                },
            )
        )

    def subscribe(self) -> asyncio.Queue[WireEvent | None]:
        """Subscribe to events. Returns a queue to read from."""
        q: asyncio.Queue[WireEvent | None] = asyncio.Queue()
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        """Unsubscribe from events."""
        if q in self._subscribers:
            self._subscribers.remove(q)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Signal all subscribers that the wire is closing."""
        self._closed = True
        for q in self._subscribers:
            q.put_nowait(None)
