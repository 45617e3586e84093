"""Workspace discovery and Eask file loading.

An Eask project is recognised by its descriptor file (``Eask``,
``Easkfile``, or a version-suffixed variant such as ``Eask.29``).  The file
is an Emacs Lisp DSL::

    (package "foo" "0.1.0" "Do foo things")
    (source "gnu")
    (depends-on "emacs" "27.1")
    (script "test" "eask test ert ./test/*.el")
    (development
     (depends-on "ert-runner"))

``load_descriptor`` reads the directives easkctl cares about without
evaluating anything.  Problems are reported to a diagnostics sink passed by
the caller; nothing is written to a global log behind the caller's back.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from easkctl.errors import InvalidWorkspace

logger = logging.getLogger(__name__)

_EASK_FILE_RE = re.compile(r"^Eask(file)?([.-][0-9][0-9.]*)?$")


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Diagnostic:
    level: str  # "warning" or "error"
    message: str
    line: int | None = None

    def __str__(self) -> str:
        where = f"line {self.line}: " if self.line is not None else ""
        return f"[{self.level}] {where}{self.message}"


class DiagnosticSink(Protocol):
    def warning(self, message: str, line: int | None = None) -> None: ...

    def error(self, message: str, line: int | None = None) -> None: ...


class NullDiagnostics:
    """Discards everything."""

    def warning(self, message: str, line: int | None = None) -> None:
        pass

    def error(self, message: str, line: int | None = None) -> None:
        pass


class LoggingDiagnostics:
    """Forwards diagnostics to a logger."""

    def __init__(self, log: logging.Logger = logger) -> None:
        self._log = log

    def warning(self, message: str, line: int | None = None) -> None:
        self._log.warning("%s", Diagnostic("warning", message, line))

    def error(self, message: str, line: int | None = None) -> None:
        self._log.error("%s", Diagnostic("error", message, line))


class CapturingDiagnostics:
    """Collects diagnostics for a silent load."""

    def __init__(self) -> None:
        self.diagnostics: list[Diagnostic] = []

    def warning(self, message: str, line: int | None = None) -> None:
        self.diagnostics.append(Diagnostic("warning", message, line))

    def error(self, message: str, line: int | None = None) -> None:
        self.diagnostics.append(Diagnostic("error", message, line))

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.level == "error"]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.level == "warning"]

    def formatted(self) -> list[str]:
        return [str(d) for d in self.diagnostics]


# ---------------------------------------------------------------------------
# Workspace discovery
# ---------------------------------------------------------------------------


def find_eask_file(start: str | Path) -> Path | None:
    """Find the nearest Eask file in ``start`` or its parents."""
    directory = Path(start).resolve()
    for candidate_dir in (directory, *directory.parents):
        try:
            names = sorted(p.name for p in candidate_dir.iterdir() if p.is_file())
        except OSError:
            continue
        matches = [n for n in names if _EASK_FILE_RE.match(n)]
        if matches:
            # Plain "Eask" wins over "Easkfile" and versioned variants
            matches.sort(key=lambda n: (n != "Eask", n != "Easkfile", n))
            return candidate_dir / matches[0]
    return None


def find_workspace(start: str | Path) -> Path:
    """Return the Eask file for ``start``.

    Raises:
        InvalidWorkspace: no Eask file in ``start`` or above.
    """
    found = find_eask_file(start)
    if found is None:
        raise InvalidWorkspace(str(start))
    return found


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Symbol:
    name: str


class ReadError(Exception):
    def __init__(self, message: str, line: int) -> None:
        super().__init__(message)
        self.line = line


@dataclass
class Form:
    """A parenthesised list with the line it starts on."""

    items: list
    line: int

    @property
    def head(self) -> str | None:
        if self.items and isinstance(self.items[0], Symbol):
            return self.items[0].name
        return None

    @property
    def args(self) -> list:
        return self.items[1:]


_ESCAPES = {"n": "\n", "t": "\t", '"': '"', "\\": "\\"}
_DELIMITERS = set("()\"'; \t\r\n")


def read_forms(source: str) -> list[Form]:
    """Read all top-level lists from Emacs Lisp source.

    Supports lists, strings, symbols, numbers, quotes and comments; enough
    for declarative Eask files.  Non-list top-level atoms are skipped.
    """
    pos = 0
    line = 1
    length = len(source)
    stack: list[Form] = []
    forms: list[Form] = []

    def push(value) -> None:
        if stack:
            stack[-1].items.append(value)
        elif isinstance(value, Form):
            forms.append(value)

    while pos < length:
        ch = source[pos]
        if ch == "\n":
            line += 1
            pos += 1
        elif ch in " \t\r":
            pos += 1
        elif ch == ";":
            while pos < length and source[pos] != "\n":
                pos += 1
        elif ch == "(":
            stack.append(Form(items=[], line=line))
            pos += 1
        elif ch == ")":
            if not stack:
                raise ReadError("unexpected ')'", line)
            form = stack.pop()
            push(form)
            pos += 1
        elif ch == "'" or ch == "`" or ch == "#":
            # Quotes don't change what we extract
            pos += 1
        elif ch == '"':
            start_line = line
            pos += 1
            chars: list[str] = []
            while True:
                if pos >= length:
                    raise ReadError("unterminated string", start_line)
                c = source[pos]
                if c == '"':
                    pos += 1
                    break
                if c == "\\" and pos + 1 < length:
                    nxt = source[pos + 1]
                    chars.append(_ESCAPES.get(nxt, nxt))
                    pos += 2
                    continue
                if c == "\n":
                    line += 1
                chars.append(c)
                pos += 1
            push("".join(chars))
        else:
            start = pos
            while pos < length and source[pos] not in _DELIMITERS:
                pos += 1
            push(_atom(source[start:pos]))

    if stack:
        raise ReadError("unbalanced parentheses: missing ')'", stack[-1].line)
    return forms


def _atom(token: str):
    try:
        return int(token)
    except ValueError:
        pass
    try:
        return float(token)
    except ValueError:
        return Symbol(token)


# ---------------------------------------------------------------------------
# Descriptor
# ---------------------------------------------------------------------------


@dataclass
class Dependency:
    name: str
    version: str | None = None
    development: bool = False


@dataclass
class ProjectDescriptor:
    """What easkctl knows about a project from its Eask file."""

    path: Path
    name: str = ""
    version: str = ""
    description: str = ""
    website_url: str = ""
    license: str = ""
    package_file: str = ""
    keywords: list[str] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)
    dependencies: list[Dependency] = field(default_factory=list)
    scripts: dict[str, str] = field(default_factory=dict)

    @property
    def root(self) -> Path:
        return self.path.parent

    @property
    def label(self) -> str:
        if self.name:
            return f"{self.name} {self.version}".strip()
        return self.root.name


# Directives read by Eask that easkctl has no use for
_IGNORED = {
    "files",
    "author",
    "source-priority",
    "exec-paths",
    "load-paths",
    "package-descriptor",
    "add-hook",
    "setq",
    "eask-defcommand",
    "enable-tabs",
}


def load_descriptor(path: str | Path, diagnostics: DiagnosticSink) -> ProjectDescriptor:
    """Read an Eask file.

    Never raises for content problems: syntax errors and unreadable files
    are reported as ``error`` diagnostics, unknown directives as
    ``warning`` diagnostics.  The caller decides what an error means.
    """
    path = Path(path)
    descriptor = ProjectDescriptor(path=path)
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        diagnostics.error(f"cannot read {path.name}: {e}")
        return descriptor

    try:
        forms = read_forms(source)
    except ReadError as e:
        diagnostics.error(str(e), e.line)
        return descriptor

    for form in forms:
        _apply(descriptor, form, diagnostics, development=False)
    return descriptor


def _strings(values: list) -> list[str]:
    return [v for v in values if isinstance(v, str)]


def _apply(
    descriptor: ProjectDescriptor,
    form: Form,
    diagnostics: DiagnosticSink,
    development: bool,
) -> None:
    head = form.head
    args = form.args
    strings = _strings(args)

    if head == "package":
        if len(strings) < 3:
            diagnostics.warning("(package NAME VERSION DESCRIPTION) needs 3 strings", form.line)
        name, version, description = (strings + ["", "", ""])[:3]
        descriptor.name, descriptor.version, descriptor.description = name, version, description
    elif head == "website-url" and strings:
        descriptor.website_url = strings[0]
    elif head == "license" and strings:
        descriptor.license = strings[0]
    elif head == "package-file" and strings:
        descriptor.package_file = strings[0]
    elif head == "keywords":
        descriptor.keywords.extend(strings)
    elif head == "source":
        if args:
            first = args[0]
            descriptor.sources.append(first.name if isinstance(first, Symbol) else str(first))
    elif head == "depends-on":
        if not strings:
            diagnostics.warning("(depends-on) without a package name", form.line)
            return
        version = strings[1] if len(strings) > 1 else None
        descriptor.dependencies.append(
            Dependency(name=strings[0], version=version, development=development)
        )
    elif head == "development":
        for sub in args:
            if isinstance(sub, Form):
                _apply(descriptor, sub, diagnostics, development=True)
    elif head == "script":
        if len(strings) < 2:
            diagnostics.warning("(script NAME COMMAND) needs 2 strings", form.line)
            return
        descriptor.scripts[strings[0]] = strings[1]
    elif head in _IGNORED:
        pass
    else:
        diagnostics.warning(f"unknown directive ({head or '?'} ...) ignored", form.line)
