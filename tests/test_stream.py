"""Tests for easkctl.process.stream (header stripping, StreamProcessor)."""

from __future__ import annotations

from rich.text import Text

from easkctl.display import DisplaySink
from easkctl.process.buffer import OutputBuffer
from easkctl.process.stream import StreamProcessor, strip_header_text, trim_blank_lines


class RecordingSink(DisplaySink):
    def __init__(self) -> None:
        self.rendered: list[str] = []
        self.resets = 0

    def reset(self) -> None:
        self.resets += 1

    def render(self, text: Text) -> None:
        self.rendered.append(text.plain)


# ---------------------------------------------------------------------------
# trim_blank_lines / strip_header_text
# ---------------------------------------------------------------------------


class TestTrimBlankLines:
    def test_trims_both_ends(self) -> None:
        assert trim_blank_lines(Text("\n  \nbody\nmore\n\n")).plain == "body\nmore"

    def test_inner_blank_lines_kept(self) -> None:
        assert trim_blank_lines(Text("a\n\nb\n")).plain == "a\n\nb"

    def test_all_blank(self) -> None:
        assert trim_blank_lines(Text("\n \n")).plain == ""

    def test_styles_kept(self) -> None:
        text = Text("\n")
        text.append("warn", style="yellow")
        trimmed = trim_blank_lines(text)
        assert trimmed.plain == "warn"
        assert trimmed.spans and str(trimmed.spans[0].style) == "yellow"


class TestStripHeaderText:
    def test_drops_through_marker_line(self) -> None:
        text = Text("Loading Eask file in /tmp/Eask... done!\n\nResult: OK\n")
        assert strip_header_text(text).plain == "Result: OK"

    def test_checking_system_marker(self) -> None:
        text = Text("Checking system GNU/Linux... done!\nEmacs 29.1\n")
        assert strip_header_text(text).plain == "Emacs 29.1"

    def test_earliest_marker_wins(self) -> None:
        text = Text("Checking system...\nLoading Eask file...\nresult\n")
        assert strip_header_text(text).plain == "Loading Eask file...\nresult"

    def test_disabled(self) -> None:
        text = Text("Loading Eask file\nResult\n")
        assert strip_header_text(text, enabled=False).plain == "Loading Eask file\nResult"

    def test_no_marker(self) -> None:
        assert strip_header_text(Text("\nplain output\n")).plain == "plain output"

    def test_empty_result_falls_back_to_full(self) -> None:
        text = Text("Loading Eask file\n\n")
        assert strip_header_text(text).plain == "Loading Eask file"

    def test_marker_without_line_end(self) -> None:
        assert strip_header_text(Text("Loading Eask file...")).plain == "Loading Eask file..."


# ---------------------------------------------------------------------------
# StreamProcessor
# ---------------------------------------------------------------------------


class TestStreamProcessor:
    def test_header_stripped_across_chunks(self) -> None:
        sink = RecordingSink()
        processor = StreamProcessor(sink, strip_header=True)
        buf = OutputBuffer()
        processor.feed(buf, b"Loading Eask file\n")
        processor.feed(buf, b"Result: OK\n")
        assert sink.rendered[-1] == "Result: OK"

    def test_first_chunk_shows_header_until_more_arrives(self) -> None:
        sink = RecordingSink()
        processor = StreamProcessor(sink)
        buf = OutputBuffer()
        processor.feed(buf, b"Loading Eask file\n")
        assert sink.rendered == ["Loading Eask file"]

    def test_flush_without_new_output_is_stable(self) -> None:
        sink = RecordingSink()
        processor = StreamProcessor(sink)
        buf = OutputBuffer()
        processor.feed(buf, b"Loading Eask file\nline\n")
        first = processor.flush(buf).plain
        second = processor.flush(buf).plain
        assert first == second == "line"

    def test_one_render_per_chunk(self) -> None:
        sink = RecordingSink()
        processor = StreamProcessor(sink, strip_header=False)
        buf = OutputBuffer()
        for chunk in (b"a\n", b"b\n", b"c\n"):
            processor.feed(buf, chunk)
        assert sink.rendered == ["a", "a\nb", "a\nb\nc"]

    def test_partial_line_previewed(self) -> None:
        sink = RecordingSink()
        processor = StreamProcessor(sink, strip_header=False)
        buf = OutputBuffer()
        processor.feed(buf, b"progress 50%")
        assert sink.rendered[-1] == "progress 50%"
        assert buf.cursor == 0

    def test_final_flush_decodes_tail(self) -> None:
        sink = RecordingSink()
        processor = StreamProcessor(sink, strip_header=False)
        buf = OutputBuffer()
        processor.feed(buf, b"done")
        processor.flush(buf, final=True)
        assert buf.pending == 0
        assert sink.rendered[-1] == "done"
