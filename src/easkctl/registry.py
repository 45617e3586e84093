"""Command registry — map menu selections to handlers.

Every selectable subcommand id (space-joined path such as ``"clean all"``)
is registered with an explicit handler.  Selections without a registration
resolve to a handler that reports the command as not implemented yet;
nothing is ever looked up by synthesising a name at runtime.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Awaitable, Callable, Protocol

from easkctl.help import MenuOption

if TYPE_CHECKING:
    from easkctl.workspace import ProjectDescriptor

logger = logging.getLogger(__name__)


class MenuContext(Protocol):
    """What a handler may do with the UI that invoked it."""

    @property
    def project(self) -> ProjectDescriptor | None: ...

    async def run_eask(self, verb: str, args: Sequence[str | None] = ()) -> None: ...

    async def open_menu(self, path: Sequence[str]) -> None: ...

    async def choose(self, title: str, options: list[MenuOption]) -> MenuOption | None: ...

    def notify(self, message: str, severity: str = "information") -> None: ...


Handler = Callable[[MenuContext, str], Awaitable[None]]


async def run_command(ctx: MenuContext, command_id: str) -> None:
    """Run the selected command without arguments."""
    await ctx.run_eask(command_id)


async def open_submenu(ctx: MenuContext, command_id: str) -> None:
    """Show the nested listing of the selected command."""
    await ctx.open_menu(command_id.split())


async def run_script(ctx: MenuContext, command_id: str) -> None:
    """Pick one of the project's scripts and run it."""
    project = ctx.project
    if project is None or not project.scripts:
        ctx.notify("No scripts declared in the Eask file", severity="warning")
        return
    options = [MenuOption(id=name, description=cmd) for name, cmd in project.scripts.items()]
    choice = await ctx.choose("Run script", options)
    if choice is not None:
        await ctx.run_eask("run script", [choice.id])


async def not_implemented(ctx: MenuContext, command_id: str) -> None:
    ctx.notify(f"`{command_id}` is not implemented yet", severity="warning")


class CommandRegistry:
    """Registry of menu handlers keyed by command id."""

    def __init__(self, fallback: Handler = not_implemented) -> None:
        self._handlers: dict[str, Handler] = {}
        self._fallback = fallback

    def register(self, command_id: str, handler: Handler) -> None:
        """Register a handler.

        Raises:
            ValueError: empty or badly spaced id, or id already registered.
            TypeError: handler is not callable.
        """
        normalized = " ".join(command_id.split())
        if not normalized or normalized != command_id:
            raise ValueError(f"Invalid command id: {command_id!r}")
        if not callable(handler):
            raise TypeError(f"Handler for {command_id!r} is not callable")
        if command_id in self._handlers:
            raise ValueError(f"Command {command_id!r} already registered")
        self._handlers[command_id] = handler

    def register_many(self, command_ids: Iterable[str], handler: Handler) -> None:
        """Register the same handler for several ids."""
        for command_id in command_ids:
            self.register(command_id, handler)

    def get(self, command_id: str) -> Handler | None:
        """Get a registered handler, without fallback."""
        return self._handlers.get(command_id)

    def resolve(self, command_id: str) -> Handler:
        """Get the handler for ``command_id``, or the fallback."""
        handler = self._handlers.get(command_id)
        if handler is None:
            logger.debug("No handler for %r, using fallback", command_id)
            return self._fallback
        return handler

    async def dispatch(self, ctx: MenuContext, command_id: str) -> None:
        await self.resolve(command_id)(ctx, command_id)

    def names(self) -> list[str]:
        """Get all registered command ids."""
        return list(self._handlers.keys())

    def __len__(self) -> int:
        return len(self._handlers)

    def __contains__(self, command_id: str) -> bool:
        return command_id in self._handlers


def command_id(path: Sequence[str], option: MenuOption) -> str:
    """Registry key of ``option`` shown in the menu at ``path``."""
    return " ".join([*path, option.id])


# Commands that do something useful without arguments
DIRECT_COMMANDS = (
    "analyze",
    "archives",
    "compile",
    "concat",
    "docs",
    "exec-path",
    "files",
    "info",
    "install",
    "install-deps",
    "keywords",
    "list",
    "load-path",
    "locate",
    "outdated",
    "package",
    "recipe",
    "refresh",
    "reinstall",
    "status",
    "upgrade",
    "upgrade-eask",
    "clean all",
    "clean autoloads",
    "clean dist",
    "clean elc",
    "clean log-file",
    "clean pkg-file",
    "clean workspace",
    "generate autoloads",
    "generate pkg-file",
    "generate recipe",
    "generate ignore",
    "generate test ert",
    "generate test ert-runner",
    "generate test buttercup",
    "generate workflow github",
    "link list",
    "lint checkdoc",
    "lint declare",
    "lint elint",
    "lint elisp-lint",
    "lint elsa",
    "lint indent",
    "lint keywords",
    "lint license",
    "lint package",
    "lint regexps",
    "source list",
    "test activate",
    "test ert",
    "test ert-runner",
    "test buttercup",
    "test ecukes",
    "test melpazoid",
)

# Commands whose help lists further subcommands
SUBMENU_COMMANDS = (
    "clean",
    "generate",
    "generate test",
    "generate workflow",
    "link",
    "lint",
    "run",
    "source",
    "test",
)


def default_registry() -> CommandRegistry:
    """Registry with the handlers easkctl ships."""
    registry = CommandRegistry()
    registry.register_many(DIRECT_COMMANDS, run_command)
    registry.register_many(SUBMENU_COMMANDS, open_submenu)
    registry.register("run script", run_script)
    return registry
