"""CLI entry point for easkctl."""

from __future__ import annotations

import asyncio
import logging
from typing import NoReturn

import typer
from rich.console import Console
from rich.table import Table

from easkctl.config import EaskctlConfig
from easkctl.controller import Controller
from easkctl.display import LiveSurfaceView, SurfaceSink
from easkctl.errors import ConfigLoadError, EaskctlError
from easkctl.process.session import SessionStatus
from easkctl.session.wire import EventType, Wire
from easkctl.workspace import CapturingDiagnostics

app = typer.Typer(
    name="easkctl",
    help="Browse and run Eask commands for the Emacs Lisp project in the current directory.",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

# Shell conventions for abnormal ends
EXIT_TIMEOUT = 124
EXIT_SIGNALED = 130


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _load_config(config_file: str | None) -> EaskctlConfig:
    try:
        return EaskctlConfig.load(config_file)
    except ConfigLoadError as e:
        _fail(e)


def _fail(error: EaskctlError) -> NoReturn:
    """Print ``error`` and exit with status 1."""
    if isinstance(error, ConfigLoadError):
        err_console.print(error.format_banner(), style="red", markup=False, highlight=False)
    else:
        err_console.print(f"Error: {error.message}", style="bold red", markup=False)
    if error.hint:
        err_console.print(error.hint, style="dim", markup=False)
    raise typer.Exit(1)


def _controller(config: EaskctlConfig, view: LiveSurfaceView, wire: Wire | None = None) -> Controller:
    return Controller(
        config,
        SurfaceSink(view),
        wire=wire,
        color=view.console.color_system is not None,
    )


@app.command()
def run(
    command: list[str] = typer.Argument(help="Eask command and its arguments, e.g. `clean all`."),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        "-t",
        min=0,
        help="Seconds before the command is killed (0 disables). Overrides config.",
    ),
    no_strip: bool = typer.Option(
        False, "--no-strip", help="Keep the preamble eask prints before the result."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Path to config JSON file."
    ),
) -> None:
    """Run one eask command and show its output."""
    setup_logging(verbose)
    config = _load_config(config_file)
    if timeout is not None:
        config = config.model_copy(update={"timeout": timeout})
    if no_strip:
        config.display.strip_header = False

    try:
        exit_code = asyncio.run(_run_command(config, command))
    except EaskctlError as e:
        _fail(e)
    raise typer.Exit(exit_code)


async def _run_command(config: EaskctlConfig, words: list[str]) -> int:
    wire = Wire()

    async def _consume_wire() -> None:
        queue = wire.subscribe()
        while True:
            event = await queue.get()
            if event is None:
                break
            d = event.data
            if event.type == EventType.STATUS:
                err_console.print(d.get("message", ""), style="dim", markup=False)
            elif event.type == EventType.WARNING:
                err_console.print(f"Warning: {d.get('message', '')}", style="yellow", markup=False)
            elif event.type == EventType.ERROR:
                err_console.print(f"ERROR: {d.get('error', 'Unknown error')}", style="bold red", markup=False)
                if d.get("hint"):
                    err_console.print(d["hint"], style="dim", markup=False)
        wire.unsubscribe(queue)

    consumer_task = asyncio.create_task(_consume_wire())
    view = LiveSurfaceView(console)
    controller = _controller(config, view, wire)
    try:
        with view:
            session = await controller.run(words[0], words[1:])
    finally:
        controller.shutdown()
        wire.close()
        await consumer_task

    if session is None:
        return 1
    if session.status is SessionStatus.TIMED_OUT:
        err_console.print(session.describe_exit(), style="yellow", markup=False)
        return EXIT_TIMEOUT
    if session.status is SessionStatus.SIGNALED:
        err_console.print(session.describe_exit(), style="yellow", markup=False)
        return EXIT_SIGNALED
    return session.returncode or 0


@app.command()
def commands(
    path: list[str] | None = typer.Argument(None, help="Parent command, e.g. `lint`."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Path to config JSON file."
    ),
) -> None:
    """List the subcommands eask offers, in the order eask lists them."""
    setup_logging(verbose)
    config = _load_config(config_file)
    controller = _controller(config, LiveSurfaceView(console))
    path = path or []
    try:
        options = controller.help_menu(path)
    except EaskctlError as e:
        _fail(e)

    table = Table(title=" ".join(["eask", *path]), show_header=True, header_style="bold")
    table.add_column("Command", style="bold", no_wrap=True)
    table.add_column("Description")
    for option in options:
        table.add_row(option.id, option.description)
    console.print(table)


@app.command()
def info(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Path to config JSON file."
    ),
) -> None:
    """Show what easkctl reads from the project's Eask file."""
    setup_logging(verbose)
    config = _load_config(config_file)
    controller = _controller(config, LiveSurfaceView(console))
    capture = CapturingDiagnostics()
    try:
        controller.preflight()
        project = controller.load_project(capture)
    except EaskctlError as e:
        _fail(e)

    table = Table(show_header=False, box=None)
    table.add_column(style="bold")
    table.add_column()
    table.add_row("Eask file", str(project.path))
    table.add_row("Package", project.label)
    if project.description:
        table.add_row("Description", project.description)
    if project.website_url:
        table.add_row("Website", project.website_url)
    if project.license:
        table.add_row("License", project.license)
    if project.keywords:
        table.add_row("Keywords", ", ".join(project.keywords))
    if project.sources:
        table.add_row("Sources", ", ".join(project.sources))
    for dep in project.dependencies:
        label = "Dev dependency" if dep.development else "Dependency"
        table.add_row(label, f"{dep.name} {dep.version}" if dep.version else dep.name)
    for name, cmd in project.scripts.items():
        table.add_row(f"Script {name}", cmd)
    console.print(table)

    for warning in capture.warnings:
        err_console.print(str(warning), style="yellow", markup=False)


@app.command()
def tui(
    display: str | None = typer.Option(
        None, "--display", "-d", help="'overlay' or 'surface'. Overrides config."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Path to config JSON file."
    ),
) -> None:
    """Launch the interactive command browser."""
    from easkctl.tui.app import EaskApp

    setup_logging(verbose)
    config = _load_config(config_file)
    if display is not None:
        if display not in ("overlay", "surface"):
            err_console.print(f"Error: unknown display mode {display!r}", style="bold red", markup=False)
            raise typer.Exit(2)
        config.display.mode = display

    EaskApp(config).run()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
