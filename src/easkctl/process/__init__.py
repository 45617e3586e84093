"""Process management — supervised eask sessions.

Every eask invocation runs as a supervised session: its own process group,
merged output streamed through an incremental ANSI decoder, a watchdog
timer, and at most one session running at a time.
"""

from easkctl.process.buffer import OutputBuffer
from easkctl.process.session import Session, SessionStatus
from easkctl.process.stream import StreamProcessor, strip_header_text
from easkctl.process.supervisor import Supervisor

__all__ = [
    "OutputBuffer",
    "Session",
    "SessionStatus",
    "StreamProcessor",
    "Supervisor",
    "strip_header_text",
]
