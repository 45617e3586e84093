"""Tests for easkctl.sandbox.sandbox_scope."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from easkctl.sandbox import sandbox_scope


class TestSandboxScope:
    def test_applies_and_restores_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EASKCTL_TEST_EXISTING", "before")
        monkeypatch.delenv("EASKCTL_TEST_NEW", raising=False)
        with sandbox_scope(env={"EASKCTL_TEST_EXISTING": "inside", "EASKCTL_TEST_NEW": "1"}) as env:
            assert os.environ["EASKCTL_TEST_EXISTING"] == "inside"
            assert os.environ["EASKCTL_TEST_NEW"] == "1"
            assert env["EASKCTL_TEST_NEW"] == "1"
        assert os.environ["EASKCTL_TEST_EXISTING"] == "before"
        assert "EASKCTL_TEST_NEW" not in os.environ

    def test_changes_and_restores_cwd(self, tmp_path: Path) -> None:
        before = os.getcwd()
        with sandbox_scope(tmp_path):
            assert Path(os.getcwd()).resolve() == tmp_path.resolve()
        assert os.getcwd() == before

    def test_restores_on_exception(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("EASKCTL_TEST_NEW", raising=False)
        before = os.getcwd()
        with pytest.raises(RuntimeError):
            with sandbox_scope(tmp_path, {"EASKCTL_TEST_NEW": "1"}):
                raise RuntimeError("boom")
        assert os.getcwd() == before
        assert "EASKCTL_TEST_NEW" not in os.environ

    def test_bad_root_restores_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("EASKCTL_TEST_NEW", raising=False)
        with pytest.raises(OSError):
            with sandbox_scope(tmp_path / "missing", {"EASKCTL_TEST_NEW": "1"}):
                pass
        assert "EASKCTL_TEST_NEW" not in os.environ

    def test_no_arguments(self) -> None:
        before = os.getcwd()
        with sandbox_scope() as env:
            assert env == dict(os.environ)
        assert os.getcwd() == before
