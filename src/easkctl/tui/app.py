"""Main Textual application for the easkctl TUI."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from rich.markup import escape
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widget import Widget
from textual.widgets import Footer, Header, OptionList, Static

from easkctl.config import EaskctlConfig
from easkctl.controller import Controller
from easkctl.display import OverlaySink, SurfaceSink
from easkctl.errors import ConfigLoadError, EaskctlError, HelpParseError
from easkctl.help import MenuOption
from easkctl.process.session import Session
from easkctl.registry import command_id
from easkctl.session.wire import EventType, Wire, WireEvent
from easkctl.tui.widgets import (
    ChooseScreen,
    ConfirmScreen,
    OutputOverlay,
    OutputSurface,
    build_options,
)
from easkctl.workspace import CapturingDiagnostics, ProjectDescriptor

logger = logging.getLogger(__name__)


class TUILogHandler(logging.Handler):
    """Logging handler that feeds the last log message to the status bar.

    Writing to stderr would corrupt the Textual display.
    """

    def __init__(self, app: EaskApp) -> None:
        super().__init__()
        self._app = app
        self.last_message: str = ""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.last_message = self.format(record)
            try:
                self._app.call_from_thread(self._app._update_status)
            except RuntimeError:
                # Already on the app's thread
                self._app.call_later(self._app._update_status)
        except Exception:
            self.handleError(record)


class EaskApp(App):
    """easkctl TUI: browse eask commands and watch them run."""

    TITLE = "easkctl"
    CSS = """
    Screen {
        layers: base overlay;
    }

    #main-layout {
        layout: horizontal;
        height: 1fr;
    }

    #menu-pane {
        width: 1fr;
        min-width: 30;
        max-width: 60;
        border: solid $primary;
    }

    #breadcrumb {
        color: $accent;
        padding: 0 1;
    }

    #menu {
        height: 1fr;
        border: none;
    }

    #menu-error {
        color: $error;
        padding: 0 1;
        display: none;
    }

    #output-surface {
        width: 3fr;
    }

    #project-info {
        width: 3fr;
        border: solid $secondary;
        padding: 0 1;
    }

    #status-bar {
        dock: bottom;
        height: 1;
        background: $surface;
        color: $text-muted;
        padding: 0 1;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("escape", "back", "Back"),
        Binding("ctrl+k", "stop_command", "Stop"),
    ]

    def __init__(
        self,
        config: EaskctlConfig,
        wire: Wire | None = None,
        cwd: str | None = None,
    ) -> None:
        super().__init__()
        self.config = config
        self.wire = wire or Wire()
        self.cwd = cwd
        self.controller: Controller | None = None
        self._overlay_sink: OverlaySink | None = None
        self._path: list[str] = []
        self._options: list[MenuOption] = []
        self._log_handler: TUILogHandler | None = None
        self._last_status = ""

    @property
    def surface_mode(self) -> bool:
        return self.config.display.mode == "surface"

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="main-layout"):
            with Vertical(id="menu-pane"):
                yield Static(id="breadcrumb")
                yield OptionList(id="menu")
                yield Static(id="menu-error")
            if self.surface_mode:
                yield OutputSurface(follow=self.config.display.scroll_to_end, id="output-surface")
            else:
                yield Static(id="project-info")
        if not self.surface_mode:
            yield OutputOverlay(id="output-overlay")
        yield Static(id="status-bar")
        yield Footer()

    def on_mount(self) -> None:
        self._install_log_handler()

        if self.surface_mode:
            sink = SurfaceSink(self.query_one(OutputSurface))
        else:
            self._overlay_sink = OverlaySink(
                self.query_one(OutputOverlay),
                scroll_to_end=self.config.display.scroll_to_end,
                show_tips=self.config.display.show_tips,
            )
            sink = self._overlay_sink
            self.watch(self.screen, "focused", self._on_focus_moved)

        self.controller = Controller(
            self.config,
            sink,
            confirm=self._confirm_stop,
            wire=self.wire,
            cwd=self.cwd,
            color=True,
        )
        self._listen_wire()
        self._start()

    def _install_log_handler(self) -> None:
        root = logging.getLogger()
        for handler in root.handlers[:]:
            root.removeHandler(handler)
        self._log_handler = TUILogHandler(self)
        self._log_handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        root.addHandler(self._log_handler)

    @work(exclusive=True, group="menu")
    async def _start(self) -> None:
        assert self.controller is not None
        try:
            self.controller.preflight()
        except EaskctlError as e:
            self._show_menu_error(e)
            return
        self._load_project_info()
        await self.open_menu([])

    def on_unmount(self) -> None:
        if self.controller is not None:
            self.controller.shutdown()
        self.wire.close()

    # --- Status bar ---

    def _update_status(self) -> None:
        try:
            status = self.query_one("#status-bar", Static)
        except Exception:
            return
        parts: list[str] = []
        if self.controller is not None and self.controller.project is not None:
            parts.append(escape(self.controller.project.label))
        if self.controller is not None and self.controller.supervisor.running:
            parts.append("[bold]running[/bold]")
        if self._last_status:
            parts.append(escape(self._last_status))
        if self._log_handler and self._log_handler.last_message:
            last_log = self._log_handler.last_message
            if len(last_log) > 80:
                last_log = last_log[:77] + "..."
            parts.append(f"[dim]{escape(last_log)}[/dim]")
        status.update(" | ".join(parts))

    # --- Project info ---

    def _load_project_info(self) -> None:
        assert self.controller is not None
        capture = CapturingDiagnostics()
        try:
            project = self.controller.load_project(capture)
        except ConfigLoadError as e:
            self._set_project_info(f"[red]{escape(e.format_banner())}[/red]")
            return
        self.sub_title = project.label
        self._set_project_info(_describe_project(project, capture))
        self._update_status()

    def _set_project_info(self, markup: str) -> None:
        if self.surface_mode:
            return
        self.query_one("#project-info", Static).update(markup)

    # --- Wire event loop ---

    @work(exclusive=True, group="wire")
    async def _listen_wire(self) -> None:
        queue = self.wire.subscribe()
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                self._handle_event(event)
        finally:
            self.wire.unsubscribe(queue)

    def _handle_event(self, event: WireEvent) -> None:
        data = event.data
        if event.type is EventType.SESSION_START:
            self._last_status = f"$ {data.get('command', '')}"
        elif event.type is EventType.SESSION_EXIT:
            self._last_status = data.get("message") or data.get("status", "")
        elif event.type is EventType.STATUS:
            self._last_status = data.get("message", "")
        elif event.type is EventType.WARNING:
            self.notify(data.get("message", ""), severity="warning")
        elif event.type is EventType.ERROR:
            message = data.get("error", "Unknown error")
            if data.get("hint"):
                message = f"{message}\n{data['hint']}"
            self.notify(message, severity="error")
        self._update_status()

    # --- Menu ---

    def _show_menu_error(self, error: EaskctlError) -> None:
        menu = self.query_one("#menu", OptionList)
        menu.clear_options()
        menu.display = False
        text = error.message
        if error.hint:
            text = f"{text}\n\n{error.hint}"
        notice = self.query_one("#menu-error", Static)
        notice.update(escape(text))
        notice.display = True

    async def open_menu(self, path: Sequence[str]) -> None:
        """Show the subcommands of ``eask <path>``."""
        assert self.controller is not None
        path = list(path)
        self.query_one("#breadcrumb", Static).update(
            escape(" ".join(["eask", *path]))
        )
        try:
            options = self.controller.help_menu(path)
        except HelpParseError as e:
            self._show_menu_error(e)
            self._path = path
            return
        except EaskctlError as e:
            self._show_menu_error(e)
            return

        self._path = path
        self._options = options
        self.query_one("#menu-error", Static).display = False
        menu = self.query_one("#menu", OptionList)
        menu.display = True
        menu.clear_options()
        menu.add_options(build_options(options))
        if options:
            menu.highlighted = 0
        menu.focus()

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        if event.option_list.id != "menu":
            return
        option = self._options[event.option_index]
        self._dispatch(command_id(self._path, option))

    @work(exclusive=False, group="dispatch")
    async def _dispatch(self, selected: str) -> None:
        assert self.controller is not None
        logger.debug("Selected %r", selected)
        await self.controller.registry.dispatch(self, selected)

    @work(exclusive=True, group="menu")
    async def action_back(self) -> None:
        if self._path:
            await self.open_menu(self._path[:-1])

    # --- Menu context ---

    @property
    def project(self) -> ProjectDescriptor | None:
        return self.controller.project if self.controller else None

    async def run_eask(self, verb: str, args: Sequence[str | None] = ()) -> None:
        """Run ``eask <verb> <args>`` in the active display sink."""
        assert self.controller is not None
        try:
            session = await self.controller.run(verb, args)
        except ConfigLoadError as e:
            self.notify(e.format_banner(), severity="error", timeout=10)
            return
        except EaskctlError as e:
            self.notify(f"{e.message}\n{e.hint or ''}".strip(), severity="error")
            return
        if session is not None:
            self._notify_exit(session)

    def _notify_exit(self, session: Session) -> None:
        message = f"{session.command}: {session.describe_exit()}"
        if session.returncode == 0:
            self.notify(message)
        else:
            self.notify(message, severity="warning")

    async def choose(self, title: str, options: list[MenuOption]) -> MenuOption | None:
        return await self.push_screen_wait(ChooseScreen(title, options))

    async def _confirm_stop(self, session: Session) -> bool:
        return await self.push_screen_wait(
            ConfirmScreen(f"`{session.command}` is still running. Stop it?")
        )

    # --- Stop / focus ---

    @work(exclusive=True, group="stop")
    async def action_stop_command(self) -> None:
        if self.controller is None or not self.controller.supervisor.running:
            self.notify("No command is running")
            return
        await self.controller.stop()
        self._update_status()

    def _on_focus_moved(self, focused: Widget | None) -> None:
        if self._overlay_sink is None:
            return
        overlay = self.query_one(OutputOverlay)
        inside = focused is not None and overlay in focused.ancestors_with_self
        self._overlay_sink.focus_changed(inside)


def _describe_project(project: ProjectDescriptor, capture: CapturingDiagnostics) -> str:
    lines = [f"[bold]{escape(project.label)}[/bold]"]
    if project.description:
        lines.append(escape(project.description))
    lines.append("")
    lines.append(f"[bold]Eask file:[/bold] {escape(str(project.path))}")
    if project.website_url:
        lines.append(f"[bold]Website:[/bold] {escape(project.website_url)}")
    if project.license:
        lines.append(f"[bold]License:[/bold] {escape(project.license)}")
    if project.sources:
        lines.append(f"[bold]Sources:[/bold] {escape(', '.join(project.sources))}")
    runtime = [d for d in project.dependencies if not d.development]
    dev = [d for d in project.dependencies if d.development]
    for label, deps in (("Depends on", runtime), ("Development", dev)):
        if deps:
            names = ", ".join(f"{d.name} {d.version}" if d.version else d.name for d in deps)
            lines.append(f"[bold]{label}:[/bold] {escape(names)}")
    if project.scripts:
        lines.append("[bold]Scripts:[/bold]")
        for name, cmd in project.scripts.items():
            lines.append(f"  {escape(name)}: [dim]{escape(cmd)}[/dim]")
    if capture.warnings:
        lines.append("")
        for warning in capture.warnings:
            lines.append(f"[yellow]{escape(str(warning))}[/yellow]")
    return "\n".join(lines)
