"""Tests for failure classification and build-failure diagnostics."""

from __future__ import annotations

import traceback

import pytest

from brewer.modules import diagnostics, utils
from brewer.modules import failures as F
from brewer.modules.diagnostics import ErrorClassifier, extract_source_location
from tests.helpers import FakeVCS, output, string_console

USAGE = "Usage: brewer command"


class FakeIssues:
    def __init__(self, urls=None, error=None):
        self.urls = urls or []
        self.error = error
        self.queries = []

    def search(self, name):
        self.queries.append(name)
        if self.error:
            raise self.error
        return self.urls


class BrokenVCS:
    def current_revision(self):
        raise RuntimeError("not a repository")


@pytest.fixture(autouse=True)
def no_toolchain_probes(monkeypatch):
    monkeypatch.setattr(utils, "probe_version", lambda cmd: None)


@pytest.fixture
def classifier(settings, quiet_logger):
    def make(**kwargs):
        kwargs.setdefault("vcs", FakeVCS(["abc123"]))
        return ErrorClassifier(settings, USAGE, console=string_console(),
                               err_console=string_console(), logger=quiet_logger, **kwargs)
    return make


class TestSourceLocation:
    def test_plain_trace_line(self) -> None:
        trace = ["make: *** [all] Error 2", "/usr/local/Library/Formula/wget.rb:42:in `install'"]
        loc = extract_source_location(trace, "Library/Formula", ".rb")
        assert loc == F.SourceLocation("wget", 42)
        assert str(loc) == "wget:42"

    def test_python_style_frame(self) -> None:
        trace = ['  File "/repo/Library/Formula/zlib.rb", line 7, in install']
        assert extract_source_location(trace, "Library/Formula", ".rb") == F.SourceLocation("zlib", 7)

    def test_frame_summary_objects(self) -> None:
        frames = [traceback.FrameSummary("/x/lib/tool.py", 3, "f"),
                  traceback.FrameSummary("/x/Library/Formula/git.rb", 11, "install")]
        assert extract_source_location(frames, "Library/Formula", ".rb") == F.SourceLocation("git", 11)

    def test_later_reference_on_the_same_line(self) -> None:
        trace = ["error at 10:30 from /r/Library/Formula/foo.rb:42: in `install'"]
        assert extract_source_location(trace, "Library/Formula", ".rb") == F.SourceLocation("foo", 42)

    def test_no_match_is_empty(self) -> None:
        loc = extract_source_location(["/usr/lib/foo.c:10: error"], "Library/Formula", ".rb")
        assert not loc
        assert str(loc) == ""
        assert not extract_source_location(None, "Library/Formula", ".rb")


class TestEnvironment:
    def test_snapshot_fields(self, settings) -> None:
        snap = diagnostics.environment_snapshot(settings, FakeVCS(["deadbeef"]))
        for key in ("brewer_version", "word_size", "cores", "gcc", "clang", "xcode", "os", "revision"):
            assert key in snap
        assert snap["gcc"] == "N/A"
        assert snap["revision"] == "deadbeef"
        assert snap["prefix"] == settings.prefix

    def test_snapshot_survives_broken_vcs(self, settings) -> None:
        snap = diagnostics.environment_snapshot(settings, BrokenVCS())
        assert snap["revision"].startswith("N/A")

    def test_build_flags_allowlist(self) -> None:
        env = {"CFLAGS": "-O2", "HOME": "/root", "CC": "", "LDFLAGS": "-L/opt/lib"}
        assert diagnostics.build_flags(env) == {"CFLAGS": "-O2", "LDFLAGS": "-L/opt/lib"}

    def test_render_block_keeps_order(self) -> None:
        assert diagnostics.render_block({"b": 1, "a": "x"}) == "b: 1\na: x"


class TestClassifier:
    def test_success_passes_exit_status_through(self, classifier) -> None:
        c = classifier()
        assert c.handle(F.Success()) == 0
        assert c.handle(F.Success(7)) == 7
        assert output(c.err) == ""

    def test_usage_error_prints_usage(self, classifier) -> None:
        c = classifier()
        assert c.handle(F.UsageError("Unknown option --x for list")) == 1
        assert "Error: Unknown option --x for list" in output(c.err)
        assert USAGE in output(c.console)

    def test_usage_error_without_usage(self, classifier) -> None:
        c = classifier()
        c.handle(F.UsageError("Unknown command: frob", show_usage=False))
        assert output(c.console) == ""

    @pytest.mark.parametrize("kind, text", [
        (F.FORMULA, "This command requires a formula argument"),
        (F.KEG, "This command requires a keg argument"),
    ])
    def test_missing_argument(self, classifier, kind, text) -> None:
        c = classifier()
        assert c.handle(F.MissingArgument(kind)) == 1
        assert text in output(c.err)

    def test_unavailable_formula(self, classifier) -> None:
        c = classifier()
        assert c.handle(F.UnavailableFormula("ghost")) == 1
        assert "Error: No available formula for ghost" in output(c.err)

    def test_interrupted(self, classifier) -> None:
        c = classifier()
        assert c.handle(F.Interrupted()) == 130
        assert output(c.err) == "\n"

    def test_execution_fault_trace_only_when_verbose(self, classifier, settings, quiet_logger) -> None:
        c = classifier()
        c.handle(F.ExecutionFault("No such keg: /x", trace="Traceback: here"))
        assert "No such keg: /x" in output(c.err)
        assert "Traceback" not in output(c.err)

        verbose = ErrorClassifier(settings.with_flags(verbose=True), USAGE, console=string_console(),
                                  err_console=string_console(), logger=quiet_logger)
        verbose.handle(F.ExecutionFault("boom", trace="Traceback: here"))
        assert "Traceback: here" in output(verbose.err)

    def test_internal_fault_asks_for_report(self, classifier) -> None:
        c = classifier()
        assert c.handle(F.InternalFault("RuntimeError: boom", "Traceback (most recent call last)")) == 1
        text = output(c.err)
        assert "RuntimeError: boom" in text
        assert "Traceback (most recent call last)" in text
        assert diagnostics.REPORT_NOTICE in text

    def test_message_markup_is_escaped(self, classifier) -> None:
        c = classifier()
        c.handle(F.ExecutionFault("bad [bold]value[/bold]"))
        assert "bad [bold]value[/bold]" in output(c.err)


class TestBuildFailureReport:
    def failure(self, **kwargs):
        kwargs.setdefault("environment_snapshot", {"brewer_version": "0.1.0", "cores": 4})
        return F.BuildFailure(formula="wget", exit_status=2, **kwargs)

    def test_full_report(self, classifier, monkeypatch) -> None:
        monkeypatch.setenv("CFLAGS", "-O2 -pipe")
        issues = FakeIssues(["https://github.com/brewer-pm/brewer/issues/12"])
        c = classifier(issues=issues)
        code = c.handle(self.failure(source_location=F.SourceLocation("wget", 42)))
        text = output(c.err)
        assert code == 1
        assert "Error: Failed to build wget (wget:42)" in text
        assert "Exit status: 2" in text
        assert "==> Environment" in text and "cores: 4" in text
        assert "==> Build flags" in text and "CFLAGS: -O2 -pipe" in text
        assert diagnostics.ISSUES_NOTICE in text
        assert "https://github.com/brewer-pm/brewer/issues/12" in text
        assert text.rstrip().endswith(diagnostics.ISSUES_PAGE)
        assert issues.queries == ["wget"]

    def test_location_recovered_from_trace(self, classifier) -> None:
        c = classifier()
        c.handle(self.failure(trace=["/r/Library/Formula/wget.rb:9: undefined method"]))
        assert "Failed to build wget (wget:9)" in output(c.err)

    def test_no_location(self, classifier) -> None:
        c = classifier()
        c.handle(self.failure())
        assert "Error: Failed to build wget\n" in output(c.err)

    def test_issue_lookup_errors_are_not_fatal(self, classifier) -> None:
        c = classifier(issues=FakeIssues(error=RuntimeError("rate limited")))
        assert c.handle(self.failure()) == 1
        text = output(c.err)
        assert diagnostics.ISSUES_NOTICE not in text
        assert diagnostics.REPORT_NOTICE in text

    def test_snapshot_computed_when_missing(self, classifier) -> None:
        c = classifier()
        c.handle(F.BuildFailure(formula="wget", exit_status=1))
        assert "revision: abc123" in output(c.err)
