# brewer/modules/failures.py
"""
Failure records and command outcomes.

Every command returns an Outcome: either Success (carrying the exit status,
which is forwarded verbatim for pass-through commands) or exactly one of the
Failure records below. The classifier in diagnostics.py consumes the record
once and maps it to a message and an exit code.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

FORMULA = "formula"
KEG = "keg"


@dataclass(frozen=True)
class Success:
    exit_status: int = EXIT_OK


@dataclass(frozen=True)
class UsageError:
    message: str = ""
    show_usage: bool = True


@dataclass(frozen=True)
class MissingArgument:
    kind: str = FORMULA


@dataclass(frozen=True)
class UnavailableFormula:
    name: str


@dataclass(frozen=True)
class SourceLocation:
    formula: str = ""
    line: Optional[int] = None

    def __bool__(self):
        return bool(self.formula)

    def __str__(self):
        if not self.formula:
            return ""
        return f"{self.formula}:{self.line}" if self.line is not None else self.formula


@dataclass(frozen=True)
class BuildFailure:
    formula: str
    exit_status: int
    environment_snapshot: Dict[str, Any] = field(default_factory=dict)
    source_location: SourceLocation = field(default_factory=SourceLocation)
    trace: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Interrupted:
    pass


@dataclass(frozen=True)
class ExecutionFault:
    message: str
    trace: str = ""


@dataclass(frozen=True)
class InternalFault:
    message: str
    trace: str = ""


Failure = Union[UsageError, MissingArgument, UnavailableFormula, BuildFailure,
                Interrupted, ExecutionFault, InternalFault]
Outcome = Union[Success, Failure]

EXIT_CODES = {
    UsageError: EXIT_FAILURE,
    MissingArgument: EXIT_FAILURE,
    UnavailableFormula: EXIT_FAILURE,
    BuildFailure: EXIT_FAILURE,
    Interrupted: EXIT_INTERRUPTED,
    ExecutionFault: EXIT_FAILURE,
    InternalFault: EXIT_FAILURE,
}


def is_failure(outcome: Outcome) -> bool:
    return not isinstance(outcome, Success)


def exit_code_for(outcome: Outcome) -> int:
    if isinstance(outcome, Success):
        return outcome.exit_status
    return EXIT_CODES[type(outcome)]
