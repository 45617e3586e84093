"""Tests for easkctl.controller.Controller with a stand-in eask script."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest
from rich.text import Text

from easkctl.config import EaskctlConfig
from easkctl.controller import Controller
from easkctl.display import DisplaySink
from easkctl.errors import ConfigLoadError, ExecutableNotFound, HelpParseError, InvalidWorkspace
from easkctl.help import MenuOption
from easkctl.process.session import SessionStatus
from easkctl.workspace import CapturingDiagnostics

FAKE_EASK = """\
#!/bin/sh
if [ "$1" = "broken" ]; then
  echo "no listing here"
  exit 1
fi
if [ "$1" = "--help" ]; then
  printf 'Commands:\\n  info    Show info\\n  clean   Clean things\\n\\n'
  exit 0
fi
if [ "$2" = "--help" ]; then
  printf 'Commands:\\n  eask clean all   Do all cleaning\\n\\n'
  exit 0
fi
echo "Loading Eask file in $(pwd -P)/Eask... done!"
echo "args: $*"
echo "color: $EASK_HASCOLORS"
echo "extra: $EASKCTL_TEST_EXTRA"
echo "cwd: $(pwd -P)"
"""


class RecordingSink(DisplaySink):
    def __init__(self) -> None:
        self.rendered: list[str] = []

    def reset(self) -> None:
        self.rendered.clear()

    def render(self, text: Text) -> None:
        self.rendered.append(text.plain)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "proj"
    (root / "src").mkdir(parents=True)
    (root / "Eask").write_text('(package "demo" "1.0.0" "Demo")\n(script "hello" "echo hi")\n')
    return root


@pytest.fixture
def fake_eask(tmp_path: Path) -> Path:
    script = tmp_path / "bin" / "eask"
    script.parent.mkdir()
    script.write_text(FAKE_EASK)
    script.chmod(0o755)
    return script


def _controller(fake_eask: Path, cwd: Path, **overrides) -> tuple[Controller, RecordingSink]:
    config = EaskctlConfig(executable=str(fake_eask), **overrides)
    sink = RecordingSink()
    return Controller(config, sink, cwd=str(cwd), color=False), sink


# ---------------------------------------------------------------------------
# Preconditions
# ---------------------------------------------------------------------------


class TestPreflight:
    def test_missing_executable(self, project: Path) -> None:
        config = EaskctlConfig(executable="eask-that-does-not-exist-anywhere")
        controller = Controller(config, RecordingSink(), cwd=str(project))
        with pytest.raises(ExecutableNotFound) as exc:
            controller.preflight()
        assert exc.value.executable == "eask-that-does-not-exist-anywhere"

    def test_invalid_workspace(self, fake_eask: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("easkctl.workspace.find_eask_file", lambda start: None)
        controller, _ = _controller(fake_eask, tmp_path)
        with pytest.raises(InvalidWorkspace):
            controller.preflight()

    def test_finds_project_from_subdir(self, fake_eask: Path, project: Path) -> None:
        controller, _ = _controller(fake_eask, project / "src")
        eask_file = controller.preflight()
        assert eask_file == (project / "Eask").resolve()
        assert controller.root == project.resolve()
        assert controller.executable == str(fake_eask)


class TestLoadProject:
    def test_loads_quietly(self, fake_eask: Path, project: Path) -> None:
        controller, _ = _controller(fake_eask, project)
        capture = CapturingDiagnostics()
        descriptor = controller.load_project(capture)
        assert descriptor.name == "demo"
        assert controller.project is descriptor
        assert capture.diagnostics == []

    def test_errors_abort(self, fake_eask: Path, project: Path) -> None:
        (project / "Eask").write_text('(package "demo"\n')
        controller, _ = _controller(fake_eask, project)
        with pytest.raises(ConfigLoadError) as exc:
            controller.load_project()
        assert exc.value.details
        assert controller.project is None


# ---------------------------------------------------------------------------
# Menus
# ---------------------------------------------------------------------------


class TestHelpMenu:
    def test_top_level(self, fake_eask: Path, project: Path) -> None:
        controller, _ = _controller(fake_eask, project)
        assert controller.help_menu() == [
            MenuOption("info", "Show info"),
            MenuOption("clean", "Clean things"),
        ]

    def test_nested(self, fake_eask: Path, project: Path) -> None:
        controller, _ = _controller(fake_eask, project)
        assert controller.help_menu(["clean"]) == [MenuOption("all", "Do all cleaning")]

    def test_unparseable(self, fake_eask: Path, project: Path) -> None:
        controller, _ = _controller(fake_eask, project)
        with pytest.raises(HelpParseError):
            controller.help_menu(["broken"])

    def test_help_command(self, fake_eask: Path, project: Path) -> None:
        controller, _ = _controller(fake_eask, project)
        assert controller.help_command(["lint"]) == f"{fake_eask} lint --help"


# ---------------------------------------------------------------------------
# Running
# ---------------------------------------------------------------------------


class TestRun:
    async def test_run_in_sandbox(self, fake_eask: Path, project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("EASKCTL_TEST_EXTRA", raising=False)
        controller, sink = _controller(
            fake_eask,
            project / "src",
            environment={"EASKCTL_TEST_EXTRA": "yes"},
            extra_flags=["--verbose", "4"],
        )
        before = os.getcwd()
        session = await asyncio.wait_for(controller.run("clean all"), 10)
        assert session is not None
        assert session.status is SessionStatus.COMPLETED
        assert sink.rendered[-1].split("\n") == [
            "args: clean all --verbose 4",
            "color: false",
            "extra: yes",
            f"cwd: {project.resolve()}",
        ]
        assert os.getcwd() == before
        assert "EASKCTL_TEST_EXTRA" not in os.environ

    async def test_args_passed(self, fake_eask: Path, project: Path) -> None:
        controller, sink = _controller(fake_eask, project)
        await asyncio.wait_for(controller.run("run script", ["hello world"]), 10)
        assert "args: run script hello world" in sink.rendered[-1]

    async def test_header_kept_when_disabled(self, fake_eask: Path, project: Path) -> None:
        controller, sink = _controller(fake_eask, project, display={"strip_header": False})
        await asyncio.wait_for(controller.run("info"), 10)
        assert sink.rendered[-1].startswith("Loading Eask file")

    async def test_config_error_prevents_start(self, fake_eask: Path, project: Path) -> None:
        (project / "Eask").write_text("(package\n")
        controller, sink = _controller(fake_eask, project)
        with pytest.raises(ConfigLoadError):
            await controller.run("info")
        assert sink.rendered == []
        assert controller.supervisor.session is None

    def test_child_environment(self, fake_eask: Path, project: Path) -> None:
        controller, _ = _controller(fake_eask, project, environment={"A": "1"})
        assert controller.child_environment() == {"A": "1", "EASK_HASCOLORS": "false"}
        controller.color = True
        assert controller.child_environment()["EASK_HASCOLORS"] == "true"
