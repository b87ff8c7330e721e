# brewer/modules/diagnostics.py
"""
Error classification and failure diagnostics.

- ErrorClassifier.handle(outcome) is the single point every command outcome
  passes through; it prints the message for the failure kind and returns the
  process exit code.
- Build failures get the full bug-report bundle: source location, exit
  status, environment snapshot, build flags, related issues, report notice.
- environment_snapshot() also backs the `--config` verb.
"""

from __future__ import annotations
import os
import platform
import re
import struct
from typing import Any, Dict, Iterable, List, Optional

import yaml
from rich.console import Console
from rich.markup import escape

from brewer.modules.config import Settings
from brewer.modules import failures as F
from brewer.modules import logger as _logger
from brewer.modules import utils

TOOLCHAIN_PROBES = [
    ("gcc", ["gcc", "--version"]),
    ("clang", ["clang", "--version"]),
    ("xcode", ["xcodebuild", "-version"]),
]

BUILD_FLAG_VARS = (
    "CC", "CXX", "LD", "CPP",
    "CFLAGS", "CXXFLAGS", "CPPFLAGS", "LDFLAGS", "MAKEFLAGS",
    "PKG_CONFIG_PATH", "CMAKE_PREFIX_PATH", "CMAKE_INCLUDE_PATH", "CMAKE_LIBRARY_PATH",
    "ACLOCAL_PATH", "MACOSX_DEPLOYMENT_TARGET", "PATH",
)

ISSUES_NOTICE = "These open issues may also help:"
REPORT_NOTICE = "Please report this bug, including the output above:"
ISSUES_PAGE = "https://github.com/brewer-pm/brewer/issues"

PYTHON_FRAME_RE = re.compile(r'File "(?P<path>[^"]+)", line (?P<line>\d+)')
PLAIN_FRAME_RE = re.compile(r"(?P<path>[^\s:'\"`]+):(?P<line>\d+)")

MISSING_ARGUMENT_MESSAGES = {
    F.FORMULA: "This command requires a formula argument",
    F.KEG: "This command requires a keg argument",
}


def _frame_candidates(frame: Any):
    """(path, line) de cada referência em uma linha de trace, ou do FrameSummary."""
    if hasattr(frame, "filename") and hasattr(frame, "lineno"):
        yield frame.filename, frame.lineno
        return
    text = str(frame)
    for rx in (PYTHON_FRAME_RE, PLAIN_FRAME_RE):
        for m in rx.finditer(text):
            yield m.group("path"), int(m.group("line"))


def extract_source_location(trace: Iterable[Any], formula_dir: str, suffix: str) -> F.SourceLocation:
    """
    Procura o primeiro frame cujo caminho está no diretório de formulas e
    devolve (formula, linha). Sem correspondência: SourceLocation vazio.
    """
    dir_name = os.path.basename(formula_dir.rstrip("/"))
    for frame in trace or ():
        for path, line in _frame_candidates(frame):
            parent, filename = os.path.split(path.replace("\\", "/"))
            if os.path.basename(parent) == dir_name and filename.endswith(suffix):
                return F.SourceLocation(filename[:-len(suffix)], line)
    return F.SourceLocation()


def environment_snapshot(settings: Settings, vcs=None) -> Dict[str, Any]:
    snapshot: Dict[str, Any] = {
        "brewer_version": _version(),
        "word_size": struct.calcsize("P") * 8,
        "cores": os.cpu_count() or 1,
    }
    for name, cmd in TOOLCHAIN_PROBES:
        snapshot[name] = utils.probe_version(cmd) or "N/A"
    snapshot["os"] = platform.platform()
    revision = "N/A"
    if vcs is not None:
        try:
            revision = vcs.current_revision()
        except Exception as e:
            revision = f"N/A ({e})"
    snapshot["revision"] = revision
    snapshot["python"] = platform.python_version()
    snapshot["prefix"] = settings.prefix
    snapshot["cellar"] = settings.cellar
    snapshot["repository"] = settings.repository
    return snapshot


def build_flags(environ=None) -> Dict[str, str]:
    env = os.environ if environ is None else environ
    return {k: env[k] for k in BUILD_FLAG_VARS if env.get(k)}


def render_block(data: Dict[str, Any]) -> str:
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False, allow_unicode=True).rstrip()


def _version() -> str:
    from brewer import __version__
    return __version__


class ErrorClassifier:
    def __init__(self,
                 settings: Settings,
                 usage: str,
                 console: Optional[Console] = None,
                 err_console: Optional[Console] = None,
                 issues=None,
                 vcs=None,
                 logger: Optional[_logger.Logger] = None):
        self.settings = settings
        self.usage = usage
        self.console = console or Console()
        self.err = err_console or Console(stderr=True)
        self.issues = issues
        self.vcs = vcs
        self.log = logger or _logger.Logger("diagnostics", settings)

    def _error(self, message: str):
        self.err.print(f"[bold red]Error:[/bold red] {escape(message)}", highlight=False)

    def handle(self, outcome: F.Outcome) -> int:
        """Reporta `outcome` e devolve o código de saída do processo."""
        code = F.exit_code_for(outcome)
        if isinstance(outcome, F.Success):
            return code
        self.log.debug(f"Classifying failure {type(outcome).__name__}")

        if isinstance(outcome, F.UsageError):
            if outcome.message:
                self._error(outcome.message)
            if outcome.show_usage:
                self.console.print(self.usage, markup=False, highlight=False)
        elif isinstance(outcome, F.MissingArgument):
            self._error(MISSING_ARGUMENT_MESSAGES.get(outcome.kind, MISSING_ARGUMENT_MESSAGES[F.FORMULA]))
        elif isinstance(outcome, F.UnavailableFormula):
            self._error(f"No available formula for {outcome.name}")
        elif isinstance(outcome, F.BuildFailure):
            self.report_build_failure(outcome)
        elif isinstance(outcome, F.Interrupted):
            self.err.print()
        elif isinstance(outcome, F.ExecutionFault):
            self._error(outcome.message)
            if self.settings.verbose and outcome.trace:
                self.err.print(outcome.trace, markup=False, highlight=False)
        elif isinstance(outcome, F.InternalFault):
            self._error(outcome.message)
            if outcome.trace:
                self.err.print(outcome.trace, markup=False, highlight=False)
            self.err.print(f"{REPORT_NOTICE}\n    {ISSUES_PAGE}", highlight=False)
        return code

    def report_build_failure(self, failure: F.BuildFailure):
        err = self.err
        location = failure.source_location
        if not location and failure.trace:
            location = extract_source_location(failure.trace, self.settings.formula_dir,
                                               self.settings.formula_suffix)
        where = f" ({location})" if location else ""
        self._error(f"Failed to build {failure.formula}{where}")
        err.print(f"Exit status: {failure.exit_status}", highlight=False)

        snapshot = failure.environment_snapshot or environment_snapshot(self.settings, self.vcs)
        err.print()
        err.print("==> Environment", highlight=False)
        err.print(render_block(snapshot), markup=False, highlight=False)

        flags = build_flags()
        if flags:
            err.print()
            err.print("==> Build flags", highlight=False)
            for k, v in flags.items():
                err.print(f"{k}: {v}", markup=False, highlight=False)

        urls: List[str] = []
        if self.issues is not None:
            try:
                urls = self.issues.search(failure.formula)
            except Exception as e:
                self.log.debug(f"Issue lookup raised: {e}")
                urls = []
        if urls:
            err.print()
            err.print(ISSUES_NOTICE, highlight=False)
            for url in urls:
                err.print(f"    {url}", markup=False, highlight=False)

        err.print()
        err.print(f"{REPORT_NOTICE}\n    {ISSUES_PAGE}", highlight=False)
