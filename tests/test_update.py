"""Tests for the update orchestrator and changed-formula extraction."""

from __future__ import annotations

import pytest

from brewer.modules import sync
from brewer.modules.sync import GitUnavailable
from brewer.modules.update import UpdateOrchestrator, UpdateResult, formula_names_from_paths
from tests.helpers import FakeVCS, output, string_console

OLD = "1a2b3c4d5e6f7a8b9c0d"
NEW = "9f8e7d6c5b4a39281706"


def orchestrator(vcs, settings, quiet_logger, git=True):
    console = string_console()
    upd = UpdateOrchestrator(vcs, settings, console=console, logger=quiet_logger,
                             git_check=lambda: git)
    return upd, console


class TestFormulaNamesFromPaths:
    def test_keeps_only_formula_files(self) -> None:
        paths = ["Formula/foo.rb", "Formula/bar.rb", "README.md"]
        assert formula_names_from_paths(paths, "Library/Formula", ".rb") == ["bar", "foo"]

    def test_full_formula_dir(self) -> None:
        paths = ["Library/Formula/wget.rb", "Library/Homebrew/utils.rb", "Library/Formula/wget.rb"]
        assert formula_names_from_paths(paths, "Library/Formula", ".rb") == ["wget"]

    def test_nested_and_foreign_suffixes_ignored(self) -> None:
        paths = ["Library/Formula/patches/fix.diff", "Library/Formula/notes.txt", "Library/Formula/.rb"]
        assert formula_names_from_paths(paths, "Library/Formula", ".rb") == []

    def test_no_paths(self) -> None:
        assert formula_names_from_paths([], "Library/Formula", ".rb") == []


class TestUpdate:
    def test_already_up_to_date(self, settings, quiet_logger) -> None:
        vcs = FakeVCS([OLD], changed=["Library/Formula/wget.rb"])
        upd, console = orchestrator(vcs, settings, quiet_logger)
        result = upd.update()
        assert result == UpdateResult(OLD, OLD)
        assert not result.updated
        assert vcs.diffs == []
        upd.report(result)
        assert output(console) == "Already up-to-date.\n"

    def test_reports_changed_formulae(self, settings, quiet_logger) -> None:
        vcs = FakeVCS([OLD, NEW], changed=["Library/Formula/wget.rb", "Library/Formula/git.rb", "README"])
        upd, console = orchestrator(vcs, settings, quiet_logger)
        result = upd.update()
        assert result.updated
        assert result.changed_formulae == ["git", "wget"]
        assert vcs.diffs == [(OLD, NEW)]
        upd.report(result)
        text = output(console)
        assert f"Updated brewer from {OLD[:8]} to {NEW[:8]}." in text
        assert "Updated formulae:" in text
        assert "git" in text and "wget" in text

    def test_revision_change_without_formula_changes(self, settings, quiet_logger) -> None:
        vcs = FakeVCS([OLD, NEW], changed=["README"])
        upd, console = orchestrator(vcs, settings, quiet_logger)
        result = upd.update()
        assert result.updated and not result.has_formula_changes
        upd.report(result)
        assert "No formulae were updated." in output(console)

    def test_fails_fast_without_git(self, settings, quiet_logger) -> None:
        vcs = FakeVCS([OLD, NEW])
        upd, _ = orchestrator(vcs, settings, quiet_logger, git=False)
        with pytest.raises(GitUnavailable) as exc:
            upd.update()
        assert "git is not installed" in str(exc.value)
        assert vcs.position == 0

    def test_default_git_check(self, settings, quiet_logger, monkeypatch) -> None:
        monkeypatch.setattr(sync, "git_available", lambda: False)
        upd = UpdateOrchestrator(FakeVCS([OLD]), settings, console=string_console(), logger=quiet_logger)
        with pytest.raises(GitUnavailable):
            upd.update()

    def test_repeated_update_without_upstream_change(self, settings, quiet_logger) -> None:
        vcs = FakeVCS([OLD])
        upd, console = orchestrator(vcs, settings, quiet_logger)
        upd.report(upd.update())
        upd.report(upd.update())
        assert output(console) == "Already up-to-date.\nAlready up-to-date.\n"
