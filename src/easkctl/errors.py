"""Error taxonomy for easkctl.

Precondition failures (``ExecutableNotFound``, ``InvalidWorkspace``) abort an
operation before any session starts.  ``ConfigLoadError`` and
``HelpParseError`` abort the current invocation only; the controller stays
usable afterwards.
"""

from __future__ import annotations


class EaskctlError(Exception):
    """Base class for all easkctl errors.

    ``hint`` is a short remediation message shown to the user next to the
    error itself.
    """

    hint: str = ""

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        if hint is not None:
            self.hint = hint

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else ""


class ExecutableNotFound(EaskctlError):
    hint = (
        "Install Eask (npm install -g @emacs-eask/cli) or set "
        "EASKCTL_EXECUTABLE to the full path of the eask binary."
    )

    def __init__(self, executable: str) -> None:
        super().__init__(f"Executable not found: {executable}")
        self.executable = executable


class InvalidWorkspace(EaskctlError):
    hint = "Run inside an Eask project, or create one with `eask init`."

    def __init__(self, start: str) -> None:
        super().__init__(f"No Eask file found in {start} or any parent directory")
        self.start = start


class ConfigLoadError(EaskctlError):
    """A load phase finished with errors.

    ``details`` holds the individual diagnostic lines captured while loading.
    """

    hint = "Fix the reported problems and try again."

    def __init__(self, source: str, details: list[str] | None = None) -> None:
        super().__init__(f"Failed to load {source}")
        self.source = source
        self.details = list(details or [])

    def format_banner(self, width: int = 72) -> str:
        """Render the captured diagnostics as one banner block."""
        rule = "=" * width
        lines = [rule, f" {self.message}", rule]
        lines.extend(f"  {d}" for d in self.details)
        if self.details:
            lines.append(rule)
        return "\n".join(lines)


class HelpParseError(EaskctlError):
    hint = "Check that the eask executable works: try `eask --help` in a shell."

    def __init__(self, command: str, reason: str = "no 'Commands:' section") -> None:
        super().__init__(f"Could not parse help output of `{command}`: {reason}")
        self.command = command
        self.reason = reason


class ProcessTimeout(EaskctlError):
    """Describes a session killed by its watchdog.  Reported, never raised
    out of the supervisor."""

    hint = "Raise the timeout with --timeout or EASKCTL_TIMEOUT."

    def __init__(self, command: str, elapsed: float) -> None:
        super().__init__(f"Killed `{command}` after {elapsed:.1f}s without completion")
        self.command = command
        self.elapsed = elapsed
