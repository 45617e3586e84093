"""Output buffer for eask sessions."""

from __future__ import annotations

from rich.ansi import AnsiDecoder
from rich.text import Text


class OutputBuffer:
    """Append-only raw output plus its incrementally decoded text.

    Raw bytes are kept exactly as the child wrote them.  ``decode_pending()``
    turns the bytes after ``cursor`` into styled :class:`rich.text.Text`,
    interpreting ANSI colour/format sequences.  Only complete lines are
    decoded, so a UTF-8 character or an escape sequence split across two
    chunks is never cut in half; the unterminated tail is rendered on
    demand by :attr:`text` without advancing the cursor.

    The decoder keeps its style state between calls, so a colour opened on
    one line carries over to the next exactly as in a terminal.
    """

    def __init__(self) -> None:
        self._raw = bytearray()
        self._cursor = 0  # Bytes already decoded into _decoded
        self._decoded = Text(end="")
        self._decoder = AnsiDecoder()
        self._decoded_lines = 0

    def append(self, chunk: bytes) -> None:
        """Append raw bytes.  Does not decode."""
        self._raw.extend(chunk)

    def decode_pending(self, final: bool = False) -> int:
        """Decode the newly appended range.

        Args:
            final: Also decode a trailing line with no newline.  Used once
                the process has exited.

        Returns:
            Number of bytes consumed.
        """
        if final:
            end = len(self._raw)
        else:
            end = self._raw.rfind(b"\n", self._cursor) + 1
        if end <= self._cursor:
            return 0

        segment = bytes(self._raw[self._cursor : end]).decode(
            "utf-8", errors="replace"
        )
        lines = segment.split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        for line in lines:
            self._decoded.append_text(self._decode_line(self._decoder, line))
            self._decoded.append("\n")
            self._decoded_lines += 1

        consumed = end - self._cursor
        self._cursor = end
        return consumed

    @staticmethod
    def _decode_line(decoder: AnsiDecoder, line: str) -> Text:
        # AnsiDecoder keeps only what follows the last \r; a CRLF ending
        # would otherwise blank the whole line.
        if line.endswith("\r"):
            line = line[:-1]
        return decoder.decode_line(line)

    @property
    def text(self) -> Text:
        """Decoded text, including a preview of the unterminated tail."""
        text = self._decoded.copy()
        if self._cursor < len(self._raw):
            tail = bytes(self._raw[self._cursor :]).decode("utf-8", errors="ignore")
            preview = AnsiDecoder()
            preview.style = self._decoder.style
            text.append_text(self._decode_line(preview, tail))
        return text

    @property
    def plain(self) -> str:
        return self.text.plain

    @property
    def raw(self) -> bytes:
        return bytes(self._raw)

    @property
    def cursor(self) -> int:
        """Byte offset up to which the raw output has been decoded."""
        return self._cursor

    @property
    def pending(self) -> int:
        """Bytes appended but not yet decoded."""
        return len(self._raw) - self._cursor

    @property
    def line_count(self) -> int:
        """Number of decoded lines."""
        return self._decoded_lines

    def clear(self) -> None:
        """Empty the buffer and reset decoder state."""
        self._raw.clear()
        self._cursor = 0
        self._decoded = Text(end="")
        self._decoder = AnsiDecoder()
        self._decoded_lines = 0

    def __len__(self) -> int:
        return len(self._raw)
