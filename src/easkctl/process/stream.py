"""Output stream processing — from raw chunks to the text a sink shows.

Every chunk is appended to the session buffer and only the new byte range is
ANSI-decoded.  The text to display is then re-derived from the whole decoded
buffer on each flush, dropping the preamble eask prints before the actual
result when header stripping is on.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rich.text import Text

from easkctl.process.buffer import OutputBuffer

if TYPE_CHECKING:
    from easkctl.display import DisplaySink

logger = logging.getLogger(__name__)

HEADER_MARKERS = ("Loading Eask file", "Checking system")


def trim_blank_lines(text: Text) -> Text:
    """Drop leading and trailing lines that hold only whitespace."""
    plain = text.plain
    lines = plain.split("\n")
    offsets = []
    pos = 0
    for line in lines:
        offsets.append((pos, pos + len(line)))
        pos += len(line) + 1

    filled = [i for i, line in enumerate(lines) if line.strip()]
    if not filled:
        return Text(end="")
    start = offsets[filled[0]][0]
    end = offsets[filled[-1]][1]
    trimmed = text[start:end]
    trimmed.end = ""
    return trimmed


def strip_header_text(text: Text, enabled: bool = True) -> Text:
    """Text to display for a whole buffer.

    When ``enabled`` and a header marker occurs, everything up to and
    including the marker's line is dropped.  Blank lines around the result
    are trimmed.  An empty result falls back to the full (trimmed) text, so
    something is always shown once output exists.
    """
    full = trim_blank_lines(text)
    if not enabled:
        return full

    plain = text.plain
    hits = [pos for pos in (plain.find(m) for m in HEADER_MARKERS) if pos != -1]
    if not hits:
        return full
    line_end = plain.find("\n", min(hits))
    if line_end == -1:
        return full

    stripped = trim_blank_lines(text[line_end + 1 :])
    return stripped if stripped.plain else full


class StreamProcessor:
    """Feeds session output through the buffer into a display sink.

    Knows nothing about the kind of sink it writes to.
    """

    def __init__(self, sink: DisplaySink, strip_header: bool = True) -> None:
        self.sink = sink
        self.strip_header = strip_header

    def feed(self, buffer: OutputBuffer, chunk: bytes) -> None:
        """Handle one output chunk: append, decode the new range, flush."""
        buffer.append(chunk)
        buffer.decode_pending()
        self.flush(buffer)

    def flush(self, buffer: OutputBuffer, final: bool = False) -> Text:
        """Re-derive the display text and forward it to the sink."""
        if final:
            buffer.decode_pending(final=True)
        text = self.display_text(buffer)
        self.sink.render(text)
        return text

    def display_text(self, buffer: OutputBuffer) -> Text:
        return strip_header_text(buffer.text, self.strip_header)
