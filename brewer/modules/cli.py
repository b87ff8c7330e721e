# brewer/modules/cli.py
"""
Central CLI for brewer.

- Verb-first command line: `brewer <verb> [options] [arguments]`.
- Help and version requests short-circuit before anything else.
- Global flags (--verbose/-v, --debug/-d, --no-color) may appear anywhere.
- Verbs and their aliases resolve through the CommandRegistry.
- Every outcome, including interrupts and unexpected exceptions, goes through
  the ErrorClassifier, which prints the report and picks the exit code.

Usage examples:
  python -m brewer.modules.cli deps wget
  python -m brewer.modules.cli uses pkg-config
  python -m brewer.modules.cli update
  python -m brewer.modules.cli install --verbose wget
"""

from __future__ import annotations
import argparse
import sys
import traceback
from typing import List, Optional, Tuple

from rich.console import Console

from brewer import __version__
from brewer.modules.config import ConfigError, Settings, load_settings
from brewer.modules import failures as F
from brewer.modules.commands import (CommandLineError, CommandRegistry, Context, VerbParser,
                                     build_context, make_console, unknown_command, usage_text)
from brewer.modules.diagnostics import ErrorClassifier

HELP_TOKENS = ("-h", "--help", "help", "-?")
VERSION_TOKENS = ("--version",)
GLOBAL_FLAGS = (
    (("-v", "--verbose"), "verbose output and full traces"),
    (("-d", "--debug"), "debug logging"),
    (("--no-color",), "disable colored output"),
)


def global_parser() -> argparse.ArgumentParser:
    parser = VerbParser(prog="brewer", add_help=False, allow_abbrev=False)
    for flags, help_text in GLOBAL_FLAGS:
        parser.add_argument(*flags, action="store_true", help=help_text)
    return parser


def split_global_flags(argv: List[str]) -> Tuple[List[str], dict]:
    """Remove as flags globais de qualquer posição; devolve (tokens, flags)."""
    flags, rest = global_parser().parse_known_args(argv)
    return rest, vars(flags)


def wants_help(argv: List[str]) -> bool:
    return not argv or argv[0] in HELP_TOKENS or "--help" in argv or "-h" in argv


def dispatch(ctx: Context, registry: CommandRegistry, argv: List[str]) -> F.Outcome:
    """Roteia argv para o comando; nunca levanta exceção."""
    verb, args = argv[0], argv[1:]
    try:
        command = registry.get(verb)
        if command is None:
            return unknown_command(verb)
        ctx.log.debug(f"Dispatching {verb} -> {command.name} {args}")
        return command.run(args)
    except KeyboardInterrupt:
        return F.Interrupted()
    except Exception as e:
        ctx.log.error(f"Unhandled error in {verb}: {e}")
        return F.InternalFault(f"{type(e).__name__}: {e}", traceback.format_exc())


def early_failure(outcome: F.Outcome, overrides: dict,
                  console: Optional[Console], err_console: Optional[Console]) -> int:
    """Reporta falhas anteriores ao Settings definitivo usando os defaults."""
    fallback = Settings(**overrides)
    classifier = ErrorClassifier(fallback, usage_text(), console=console,
                                 err_console=err_console or make_console(fallback, stderr=True))
    return classifier.handle(outcome)


def main(argv: Optional[List[str]] = None,
         console: Optional[Console] = None,
         err_console: Optional[Console] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    try:
        argv, flags = split_global_flags(argv)
    except CommandLineError as e:
        return early_failure(F.UsageError(str(e), show_usage=False), {}, console, err_console)

    if wants_help(argv):
        (console or Console(highlight=False, soft_wrap=True)).print(usage_text(), markup=False)
        return F.EXIT_OK
    if argv[0] in VERSION_TOKENS:
        (console or Console(highlight=False, soft_wrap=True)).print(__version__, markup=False)
        return F.EXIT_OK

    overrides = {"verbose": flags["verbose"], "debug": flags["debug"]}
    if flags["no_color"]:
        overrides["color_output"] = False
    try:
        settings = load_settings(**overrides)
    except ConfigError as e:
        return early_failure(F.ExecutionFault(str(e)), overrides, console, err_console)

    ctx = build_context(settings, console=console, err_console=err_console)
    classifier = ErrorClassifier(settings, usage_text(), console=ctx.console,
                                 err_console=ctx.err_console, issues=ctx.issues,
                                 vcs=ctx.vcs, logger=ctx.log)
    try:
        registry = CommandRegistry(ctx)
        outcome = dispatch(ctx, registry, argv)
        return classifier.handle(outcome)
    except KeyboardInterrupt:
        return classifier.handle(F.Interrupted())


if __name__ == "__main__":
    raise SystemExit(main())
