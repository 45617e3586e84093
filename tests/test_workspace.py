"""Tests for easkctl.workspace (discovery, reader, descriptor loading)."""

from __future__ import annotations

from pathlib import Path

import pytest

from easkctl.errors import InvalidWorkspace
from easkctl.workspace import (
    CapturingDiagnostics,
    Form,
    LoggingDiagnostics,
    NullDiagnostics,
    ReadError,
    Symbol,
    find_eask_file,
    find_workspace,
    load_descriptor,
    read_forms,
)

SAMPLE = """\
;; -*- mode: eask; lexical-binding: t -*-

(package "foo"
         "0.1.0"
         "Do foo things")

(website-url "https://example.com/foo")
(keywords "tools" "convenience")
(package-file "foo.el")
(license "GPLv3")

(script "test" "echo \\"Make a script with 'eask run script test'\\"")

(source 'gnu)
(source "melpa")

(depends-on "emacs" "27.1")
(depends-on "dash")

(development
 (depends-on "ert-runner"))

(setq network-security-level 'low)
"""


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class TestDiscovery:
    def test_finds_in_start_dir(self, tmp_path: Path) -> None:
        (tmp_path / "Eask").write_text("")
        assert find_eask_file(tmp_path) == (tmp_path / "Eask").resolve()

    def test_walks_up(self, tmp_path: Path) -> None:
        (tmp_path / "Easkfile").write_text("")
        nested = tmp_path / "src" / "deep"
        nested.mkdir(parents=True)
        assert find_eask_file(nested) == (tmp_path / "Easkfile").resolve()

    def test_prefers_plain_eask(self, tmp_path: Path) -> None:
        for name in ("Eask.29", "Easkfile", "Eask"):
            (tmp_path / name).write_text("")
        assert find_eask_file(tmp_path).name == "Eask"

    def test_versioned_name(self, tmp_path: Path) -> None:
        (tmp_path / "Eask.29.1").write_text("")
        assert find_eask_file(tmp_path).name == "Eask.29.1"

    def test_unrelated_names_ignored(self, tmp_path: Path) -> None:
        (tmp_path / "Eask.bak").write_text("")
        (tmp_path / "MyEask").write_text("")
        sub = tmp_path / "sub"
        sub.mkdir()
        found = find_eask_file(sub)
        assert found is None or found.parent != tmp_path.resolve()

    def test_find_workspace_raises(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("easkctl.workspace.find_eask_file", lambda start: None)
        with pytest.raises(InvalidWorkspace) as exc:
            find_workspace(tmp_path)
        assert exc.value.hint


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------


class TestReadForms:
    def test_basic(self) -> None:
        forms = read_forms('(package "a" "1" "d")\n(source gnu)')
        assert [f.head for f in forms] == ["package", "source"]
        assert forms[0].args == ["a", "1", "d"]
        assert forms[1].args == [Symbol("gnu")]

    def test_lines_tracked(self) -> None:
        forms = read_forms('\n\n(a)\n(b\n "x")')
        assert [f.line for f in forms] == [3, 4]

    def test_nested(self) -> None:
        (form,) = read_forms('(development (depends-on "x"))')
        assert isinstance(form.args[0], Form)
        assert form.args[0].head == "depends-on"

    def test_comments_and_quotes(self) -> None:
        (form,) = read_forms("; comment\n(source 'gnu) ; trailing")
        assert form.args == [Symbol("gnu")]

    def test_string_escapes(self) -> None:
        (form,) = read_forms(r'(x "a\"b\\c\n")')
        assert form.args == ['a"b\\c\n']

    def test_numbers(self) -> None:
        (form,) = read_forms("(x 1 2.5 -3)")
        assert form.args == [1, 2.5, -3]

    def test_unbalanced(self) -> None:
        with pytest.raises(ReadError) as exc:
            read_forms('\n(package "a"')
        assert exc.value.line == 2

    def test_stray_close(self) -> None:
        with pytest.raises(ReadError):
            read_forms("(a))")

    def test_unterminated_string(self) -> None:
        with pytest.raises(ReadError):
            read_forms('(a "oops)')


# ---------------------------------------------------------------------------
# Descriptor
# ---------------------------------------------------------------------------


class TestLoadDescriptor:
    def test_sample(self, tmp_path: Path) -> None:
        path = tmp_path / "Eask"
        path.write_text(SAMPLE)
        capture = CapturingDiagnostics()
        project = load_descriptor(path, capture)
        assert capture.diagnostics == []
        assert (project.name, project.version, project.description) == ("foo", "0.1.0", "Do foo things")
        assert project.website_url == "https://example.com/foo"
        assert project.keywords == ["tools", "convenience"]
        assert project.package_file == "foo.el"
        assert project.license == "GPLv3"
        assert project.sources == ["gnu", "melpa"]
        assert [(d.name, d.version, d.development) for d in project.dependencies] == [
            ("emacs", "27.1", False),
            ("dash", None, False),
            ("ert-runner", None, True),
        ]
        assert project.scripts == {"test": "echo \"Make a script with 'eask run script test'\""}
        assert project.label == "foo 0.1.0"
        assert project.root == tmp_path

    def test_unknown_directive_warns(self, tmp_path: Path) -> None:
        path = tmp_path / "Eask"
        path.write_text('(package "a" "1" "d")\n(frobnicate "x")\n')
        capture = CapturingDiagnostics()
        load_descriptor(path, capture)
        assert capture.errors == []
        assert len(capture.warnings) == 1
        assert capture.warnings[0].line == 2
        assert "frobnicate" in capture.warnings[0].message

    def test_syntax_error_reported_not_raised(self, tmp_path: Path) -> None:
        path = tmp_path / "Eask"
        path.write_text('(package "a" "1" "d"\n')
        capture = CapturingDiagnostics()
        project = load_descriptor(path, capture)
        assert len(capture.errors) == 1
        assert project.name == ""
        assert capture.formatted()[0].startswith("[error] line 1:")

    def test_unreadable_file(self, tmp_path: Path) -> None:
        capture = CapturingDiagnostics()
        load_descriptor(tmp_path / "missing" / "Eask", capture)
        assert len(capture.errors) == 1

    def test_label_without_package(self, tmp_path: Path) -> None:
        path = tmp_path / "Eask"
        path.write_text("")
        project = load_descriptor(path, NullDiagnostics())
        assert project.label == tmp_path.name

    def test_logging_diagnostics(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        path = tmp_path / "Eask"
        path.write_text("(mystery)\n")
        with caplog.at_level("WARNING", logger="easkctl.workspace"):
            load_descriptor(path, LoggingDiagnostics())
        assert "mystery" in caplog.text
