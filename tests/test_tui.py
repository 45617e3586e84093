"""Tests for easkctl.tui.app.EaskApp, driven headless through Textual's pilot."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from easkctl.config import EaskctlConfig
from easkctl.controller import Controller
from easkctl.tui.app import EaskApp

FAKE_EASK = """\
#!/bin/sh
if [ "$1" = "--help" ]; then
  printf 'Commands:\\n  info    Show info\\n  clean   Clean things\\n\\n'
  exit 0
fi
echo "ran: $*"
"""


@pytest.fixture
def project(tmp_path: Path) -> tuple[Path, Path]:
    script = tmp_path / "eask"
    script.write_text(FAKE_EASK)
    script.chmod(0o755)
    root = tmp_path / "proj"
    root.mkdir()
    (root / "Eask").write_text('(package "demo" "1.0.0" "Demo")\n')
    return root, script


async def test_help_menu_fetched_on_loop_thread(
    project: tuple[Path, Path], monkeypatch: pytest.MonkeyPatch
) -> None:
    root, script = project
    callers: list[int] = []
    original = Controller.help_menu

    def recording(self: Controller, path=()):
        callers.append(threading.get_ident())
        return original(self, path)

    monkeypatch.setattr(Controller, "help_menu", recording)
    app = EaskApp(EaskctlConfig(executable=str(script)), cwd=str(root))

    async with app.run_test() as pilot:
        for _ in range(50):
            if app._options:
                break
            await pilot.pause(0.1)
        assert [option.id for option in app._options] == ["info", "clean"]

    assert callers == [threading.get_ident()]
