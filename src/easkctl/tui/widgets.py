"""Textual widgets backing the display sinks, plus the modal screens."""

from __future__ import annotations

from rich.markup import escape
from rich.text import Text
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Label, OptionList, Static
from textual.widgets.option_list import Option

from easkctl.help import MenuOption


def option_prompt(option: MenuOption) -> Text:
    prompt = Text(option.id, style="bold")
    if option.description:
        prompt.append("  ")
        prompt.append(option.description, style="dim")
    return prompt


def build_options(options: list[MenuOption]) -> list[Option]:
    """OptionList entries in the order given (never re-sorted)."""
    return [Option(option_prompt(o), id=o.id) for o in options]


class OutputOverlay(Vertical):
    """Floating output popup.  Implements ``OverlayView``."""

    DEFAULT_CSS = """
    OutputOverlay {
        layer: overlay;
        display: none;
        dock: bottom;
        height: 60%;
        margin: 0 2 2 2;
        border: round $accent;
        background: $panel;
    }

    OutputOverlay #overlay-title {
        color: $accent;
        padding: 0 1;
    }

    OutputOverlay #overlay-scroll {
        height: 1fr;
        padding: 0 1;
    }

    OutputOverlay #overlay-tip {
        color: $text-muted;
        padding: 0 1;
        display: none;
    }
    """

    BINDINGS = [Binding("escape", "leave", "Close", show=False)]

    def compose(self) -> ComposeResult:
        yield Static(id="overlay-title")
        with VerticalScroll(id="overlay-scroll"):
            yield Static(id="overlay-body")
        yield Static(id="overlay-tip")

    @property
    def is_open(self) -> bool:
        return self.display

    def open(self, title: str) -> None:
        self.query_one("#overlay-title", Static).update(f"[b]$ {escape(title)}[/b]")
        self.display = True
        self.query_one("#overlay-scroll", VerticalScroll).focus()

    def close(self) -> None:
        self.display = False
        self.query_one("#overlay-body", Static).update("")
        self.query_one("#overlay-tip", Static).display = False

    def update(self, text: Text, tip: str | None) -> None:
        self.query_one("#overlay-body", Static).update(text)
        tip_widget = self.query_one("#overlay-tip", Static)
        if tip:
            tip_widget.update(f"Tip: {escape(tip)}")
        tip_widget.display = bool(tip)

    def scroll_end(self) -> None:
        self.query_one("#overlay-scroll", VerticalScroll).scroll_end(animate=False)

    def action_leave(self) -> None:
        self.screen.focus_next()


class OutputSurface(VerticalScroll):
    """Read-only output panel.  Implements ``SurfaceView``."""

    DEFAULT_CSS = """
    OutputSurface {
        border: solid $secondary;
        padding: 0 1;
    }
    """

    def __init__(self, follow: bool = True, **kwargs) -> None:
        super().__init__(**kwargs)
        self.follow = follow

    def compose(self) -> ComposeResult:
        yield Static(id="surface-body")

    def clear(self) -> None:
        self.query_one("#surface-body", Static).update("")
        self.scroll_home(animate=False)

    def replace(self, text: Text) -> None:
        self.query_one("#surface-body", Static).update(text)
        if self.follow:
            self.scroll_end(animate=False)


class ConfirmScreen(ModalScreen[bool]):
    """Yes/no question.  Dismisses with the answer."""

    DEFAULT_CSS = """
    ConfirmScreen {
        align: center middle;
    }

    ConfirmScreen > Vertical {
        width: 60;
        height: auto;
        border: thick $warning;
        background: $surface;
        padding: 1 2;
    }

    ConfirmScreen Horizontal {
        height: auto;
        margin-top: 1;
    }

    ConfirmScreen Button {
        margin-right: 2;
    }
    """

    BINDINGS = [
        Binding("y", "answer(True)", "Yes"),
        Binding("n", "answer(False)", "No"),
        Binding("escape", "answer(False)", "No", show=False),
    ]

    def __init__(self, question: str) -> None:
        super().__init__()
        self.question = question

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Label(self.question)
            with Horizontal():
                yield Button("Yes", variant="error", id="yes")
                yield Button("No", variant="primary", id="no")

    def on_mount(self) -> None:
        self.query_one("#no", Button).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "yes")

    def action_answer(self, answer: bool) -> None:
        self.dismiss(answer)


class ChooseScreen(ModalScreen["MenuOption | None"]):
    """Pick one option from a list.  Dismisses with None on escape."""

    DEFAULT_CSS = """
    ChooseScreen {
        align: center middle;
    }

    ChooseScreen > Vertical {
        width: 80;
        height: auto;
        max-height: 80%;
        border: thick $accent;
        background: $surface;
        padding: 0 1;
    }
    """

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, title: str, options: list[MenuOption]) -> None:
        super().__init__()
        self.title_text = title
        self.options = options

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Label(f"[b]{escape(self.title_text)}[/b]")
            yield OptionList(*build_options(self.options), id="choices")

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        event.stop()
        self.dismiss(self.options[event.option_index])

    def action_cancel(self) -> None:
        self.dismiss(None)
