# brewer/modules/commands.py
"""
Command registry.

Each verb is a Command with three steps:
  parse(args)      -> ParsedArgs or a Failure (argument shape validation)
  execute(parsed)  -> Outcome (talks to the collaborators)
  report           -> printed through the shared console inside execute

Collaborator exceptions are converted to Failure records in Command.run, so
every command returns an Outcome and never raises for expected failures.
"""

from __future__ import annotations
import argparse
import os
import re
import traceback
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Type

from rich.console import Console

from brewer.modules.config import Settings
from brewer.modules import failures as F
from brewer.modules import logger as _logger
from brewer.modules import utils
from brewer.modules import diagnostics
from brewer.modules.formula import FormulaRepository, FormulaUnavailable, version_from_url, ARCHIVE_EXT_RE
from brewer.modules.installer import BuildError, InstallError, KegInstaller
from brewer.modules.issues import IssueLookup
from brewer.modules.resolver import DependencyResolver, format_deps, format_uses
from brewer.modules.sync import GitRepository, VersionControlError
from brewer.modules.update import UpdateOrchestrator

HOMEPAGE = "https://github.com/brewer-pm/brewer"

GIT_VERBS = ("branch", "checkout", "pull", "push", "rebase", "reset")

FORMULA_TEMPLATE = """require 'formula'

class {klass} <Formula
  url '{url}'
  homepage ''
  md5 ''

# depends_on 'cmake'

  def install
    system "./configure", "--prefix=#{{prefix}}", "--disable-debug", "--disable-dependency-tracking"
    system "make install"
  end
end
"""


@dataclass
class Context:
    settings: Settings
    console: Console
    err_console: Console
    log: _logger.Logger
    repository: FormulaRepository
    resolver: DependencyResolver
    installer: KegInstaller
    vcs: GitRepository
    updater: UpdateOrchestrator
    issues: IssueLookup


def build_context(settings: Settings, console: Optional[Console] = None,
                  err_console: Optional[Console] = None) -> Context:
    console = console or make_console(settings)
    err_console = err_console or make_console(settings, stderr=True)
    log = _logger.Logger("brewer", settings)
    installer = KegInstaller(settings, logger=log)
    repository = FormulaRepository(settings, installed_check=installer.is_installed, logger=log)
    resolver = DependencyResolver(repository, missing_policy=settings.missing_dependencies, logger=log)
    vcs = GitRepository(settings, logger=log)
    updater = UpdateOrchestrator(vcs, settings, console=console, logger=log)
    issues = IssueLookup(settings, logger=log)
    return Context(settings, console, err_console, log, repository, resolver,
                   installer, vcs, updater, issues)


def make_console(settings: Settings, stderr: bool = False) -> Console:
    if not settings.color_output:
        return Console(stderr=stderr, color_system=None, highlight=False, soft_wrap=True)
    return Console(stderr=stderr, highlight=False, soft_wrap=True)


def human_size(size: int) -> str:
    if size < 1024:
        return f"{size}B"
    value = float(size)
    for unit in ("K", "M", "G"):
        value /= 1024.0
        if value < 1024 or unit == "G":
            break
    return f"{value:.1f}{unit}"


class CommandLineError(Exception):
    pass


class VerbParser(argparse.ArgumentParser):
    """ArgumentParser que levanta CommandLineError em vez de imprimir o uso e sair."""

    def error(self, message):
        raise CommandLineError(message)


@dataclass
class ParsedArgs:
    names: List[str] = field(default_factory=list)
    options: Dict[str, object] = field(default_factory=dict)

    def flag(self, name: str) -> bool:
        return bool(self.options.get(name))


class Command:
    name = ""
    aliases: Tuple[str, ...] = ()
    summary = ""
    usage = ""
    requires: Optional[str] = None   # F.FORMULA, F.KEG or None
    options: Dict[str, dict] = {}    # flag -> add_argument kwargs

    def __init__(self, ctx: Context):
        self.ctx = ctx
        self.console = ctx.console
        self.log = ctx.log
        self.parser = self.build_parser()

    # -----------------------
    # parse
    # -----------------------
    def build_parser(self) -> argparse.ArgumentParser:
        parser = VerbParser(prog=f"brewer {self.name}", add_help=False, allow_abbrev=False)
        for flag, kwargs in self.options.items():
            parser.add_argument(flag, **kwargs)
        parser.add_argument("names", nargs="*")
        return parser

    def parse(self, args: List[str]):
        try:
            ns, unknown = self.parser.parse_known_intermixed_args(args)
        except CommandLineError as e:
            return F.UsageError(f"{e} for {self.name}")
        if unknown:
            return F.UsageError(f"Unknown option {unknown[0].partition('=')[0]} for {self.name}")

        parsed = ParsedArgs(names=list(ns.names))
        for flag in self.options:
            value = getattr(ns, flag.lstrip("-").replace("-", "_"))
            if value is not None and value is not False:
                parsed.options[flag] = value

        if self.requires == F.FORMULA and not parsed.names:
            return F.MissingArgument(F.FORMULA)
        if self.requires == F.KEG:
            if not parsed.names:
                return F.MissingArgument(F.KEG)
            for name in parsed.names:
                if not self.ctx.installer.is_installed(name):
                    return F.ExecutionFault(f"No such keg: {self.ctx.settings.keg_path(name)}")
        return parsed

    # -----------------------
    # execute
    # -----------------------
    def execute(self, parsed: ParsedArgs) -> F.Outcome:
        raise NotImplementedError

    def run(self, args: List[str]) -> F.Outcome:
        parsed = self.parse(args)
        if not isinstance(parsed, ParsedArgs):
            return parsed
        try:
            return self.execute(parsed)
        except KeyboardInterrupt:
            return F.Interrupted()
        except (FormulaUnavailable, BuildError, InstallError, VersionControlError,
                utils.PassthroughError, OSError) as e:
            return self.to_failure(e)

    def to_failure(self, exc: Exception) -> F.Failure:
        settings = self.ctx.settings
        if isinstance(exc, FormulaUnavailable):
            return F.UnavailableFormula(exc.name)
        if isinstance(exc, BuildError):
            return F.BuildFailure(
                formula=exc.formula,
                exit_status=exc.exit_status,
                environment_snapshot=diagnostics.environment_snapshot(settings, self.ctx.vcs),
                source_location=diagnostics.extract_source_location(
                    exc.trace, settings.formula_dir, settings.formula_suffix),
                trace=list(exc.trace),
            )
        return F.ExecutionFault(str(exc), traceback.format_exc())

    def say(self, text: str):
        self.console.print(text, markup=False)

    def ohai(self, text: str):
        self.console.print(f"[bold blue]==>[/bold blue] [bold]{text}[/bold]")


# -----------------------
# Path queries
# -----------------------
class CacheCommand(Command):
    name = "--cache"
    summary = "print the download cache directory"

    def execute(self, parsed):
        self.say(self.ctx.settings.cache)
        return F.Success()


class PrefixCommand(Command):
    name = "--prefix"
    usage = "[formula ...]"
    summary = "print the install prefix, or the keg prefix of each formula"

    def execute(self, parsed):
        settings = self.ctx.settings
        if not parsed.names:
            self.say(settings.prefix)
        for name in parsed.names:
            formula = self.ctx.repository.resolve(name)
            self.say(settings.keg_path(formula.name, formula.version or "HEAD"))
        return F.Success()


class RepositoryCommand(Command):
    name = "--repository"
    summary = "print the formula repository root"

    def execute(self, parsed):
        self.say(self.ctx.settings.repository)
        return F.Success()


class CellarCommand(Command):
    name = "--cellar"
    usage = "[formula ...]"
    summary = "print the cellar, or the cellar directory of each formula"

    def execute(self, parsed):
        settings = self.ctx.settings
        if not parsed.names:
            self.say(settings.cellar)
        for name in parsed.names:
            self.ctx.repository.resolve(name)
            self.say(settings.keg_path(name))
        return F.Success()


class ConfigCommand(Command):
    name = "--config"
    summary = "print the configuration and environment snapshot"

    def execute(self, parsed):
        snapshot = diagnostics.environment_snapshot(self.ctx.settings, self.ctx.vcs)
        if self.ctx.settings.config_file:
            snapshot["config_file"] = self.ctx.settings.config_file
        self.say(diagnostics.render_block(snapshot))
        return F.Success()


# -----------------------
# Pass-through commands
# -----------------------
class HomeCommand(Command):
    name = "home"
    aliases = ("homepage",)
    usage = "[formula ...]"
    summary = "open the project homepage or each formula's homepage"

    def execute(self, parsed):
        if not parsed.names:
            return F.Success(utils.open_url(HOMEPAGE))
        urls = []
        for name in parsed.names:
            formula = self.ctx.repository.resolve(name)
            if not formula.homepage:
                return F.ExecutionFault(f"{name} does not declare a homepage")
            urls.append(formula.homepage)
        status = 0
        for url in urls:
            status = utils.open_url(url) or status
        return F.Success(status)


class EditCommand(Command):
    name = "edit"
    usage = "[formula ...]"
    summary = "open formula files (or the whole repository) in $EDITOR"

    def execute(self, parsed):
        if not parsed.names:
            paths = [self.ctx.settings.repository]
        else:
            paths = []
            for name in parsed.names:
                if not self.ctx.repository.exists(name):
                    return F.UnavailableFormula(name)
                paths.append(self.ctx.repository.path_for(name))
        return F.Success(utils.open_in_editor(self.ctx.settings.editor, paths))


class LogCommand(Command):
    name = "log"
    usage = "[formula]"
    summary = "show the git log of the repository or of one formula"

    def execute(self, parsed):
        path = None
        if parsed.names:
            name = parsed.names[0]
            if not self.ctx.repository.exists(name):
                return F.UnavailableFormula(name)
            path = os.path.relpath(self.ctx.repository.path_for(name), self.ctx.settings.repository)
        return F.Success(self.ctx.vcs.show_log(path))


class CatCommand(Command):
    name = "cat"
    usage = "formula"
    summary = "print a formula definition"
    requires = F.FORMULA

    def execute(self, parsed):
        self.console.print(self.ctx.repository.read_source(parsed.names[0]),
                           markup=False, end="")
        return F.Success()


# -----------------------
# Formula queries
# -----------------------
class SearchCommand(Command):
    name = "search"
    aliases = ("-S",)
    usage = "[text|/regex/]"
    summary = "list formulae whose name matches"

    def execute(self, parsed):
        term = parsed.names[0] if parsed.names else None
        try:
            names = self.ctx.repository.search(term)
        except re.error as e:
            return F.UsageError(f"Invalid regex {term}: {e}", show_usage=False)
        for name in names:
            self.say(name)
        return F.Success()


class DepsCommand(Command):
    name = "deps"
    aliases = ("dependencies",)
    usage = "formula ..."
    summary = "list the transitive dependencies of formulae"
    requires = F.FORMULA

    def execute(self, parsed):
        results = self.ctx.resolver.deps(parsed.names)
        for name, deps in results.items():
            line = format_deps(name, deps)
            self.say(f"{name}: {line}" if len(results) > 1 and deps else line)
        return F.Success()


class UsesCommand(Command):
    name = "uses"
    usage = "formula"
    summary = "list formulae that directly depend on formula"
    requires = F.FORMULA

    def execute(self, parsed):
        dependents = self.ctx.resolver.uses(parsed.names[0])
        if dependents:
            self.say(format_uses(dependents))
        return F.Success()


class InfoCommand(Command):
    name = "info"
    usage = "[formula]"
    summary = "show formula details, or a summary of installed kegs"

    def execute(self, parsed):
        installer = self.ctx.installer
        if not parsed.names:
            count, size = installer.cellar_summary()
            self.say(f"{count} kegs, {human_size(size)}")
            return F.Success()
        for name in parsed.names:
            formula = self.ctx.repository.resolve(name)
            self.say(f"{formula.name} {formula.version or ''}".rstrip())
            if formula.homepage:
                self.say(formula.homepage)
            if formula.direct_dependencies:
                self.say("Depends on: " + ", ".join(formula.direct_dependencies))
            versions = installer.versions(name)
            if not versions:
                self.say("Not installed")
            for version in versions:
                self.say(self.ctx.settings.keg_path(name, version))
            self.say(formula.source_path)
        return F.Success()


class OutdatedCommand(Command):
    name = "outdated"
    summary = "list installed kegs whose version differs from their formula"

    def execute(self, parsed):
        versions = {}
        for name in self.ctx.installer.kegs():
            try:
                versions[name] = self.ctx.repository.resolve(name).version
            except FormulaUnavailable:
                self.log.debug(f"No formula for installed keg {name}")
        for name, installed, latest in self.ctx.installer.outdated(versions):
            if self.ctx.settings.verbose:
                self.say(f"{name} {installed} -> {latest}")
            else:
                self.say(name)
        return F.Success()


class ListCommand(Command):
    name = "list"
    aliases = ("ls",)
    usage = "[--unbrewed] [keg ...]"
    summary = "list installed kegs, the files of kegs, or unbrewed files"
    options = {"--unbrewed": {"action": "store_true"}}

    def parse(self, args):
        parsed = super().parse(args)
        if isinstance(parsed, ParsedArgs) and parsed.names and not parsed.flag("--unbrewed"):
            for name in parsed.names:
                if not self.ctx.installer.is_installed(name):
                    return F.ExecutionFault(f"No such keg: {self.ctx.settings.keg_path(name)}")
        return parsed

    def execute(self, parsed):
        installer = self.ctx.installer
        if parsed.flag("--unbrewed"):
            for path in installer.unbrewed_files():
                self.say(path)
        elif parsed.names:
            for name in parsed.names:
                for path in installer.keg_files(name):
                    self.say(path)
        else:
            for name in installer.kegs():
                self.say(name)
        return F.Success()


# -----------------------
# Update
# -----------------------
class UpdateCommand(Command):
    name = "update"
    aliases = ("up",)
    summary = "fetch the newest formulae from upstream"

    def execute(self, parsed):
        updater = self.ctx.updater
        result = updater.update()
        updater.report(result)
        return F.Success()


# -----------------------
# Keg management
# -----------------------
class InstallCommand(Command):
    name = "install"
    usage = "formula ..."
    summary = "install formulae and their missing dependencies"
    requires = F.FORMULA

    def execute(self, parsed):
        installer = self.ctx.installer
        roots = set(parsed.names)
        for name in self.ctx.resolver.install_order(parsed.names):
            formula = self.ctx.repository.resolve(name)
            if installer.installed(formula):
                if name in roots:
                    self.ctx.err_console.print(
                        f"[yellow]Warning:[/yellow] {name} {formula.version or ''} is already installed")
                continue
            self.ohai(f"Installing {name} {formula.version or ''}".rstrip())
            keg = installer.install(formula)
            self.say(keg)
        return F.Success()


class LinkCommand(Command):
    name = "link"
    aliases = ("ln",)
    usage = "keg ..."
    summary = "symlink keg files into the prefix"
    requires = F.KEG

    def execute(self, parsed):
        for name in parsed.names:
            keg = self.ctx.installer.current_keg(name)
            count = self.ctx.installer.link(name)
            self.say(f"Linking {keg}... {count} symlinks created")
        return F.Success()


class UnlinkCommand(Command):
    name = "unlink"
    usage = "keg ..."
    summary = "remove keg symlinks from the prefix"
    requires = F.KEG

    def execute(self, parsed):
        for name in parsed.names:
            count = self.ctx.installer.unlink(name)
            self.say(f"Unlinking {self.ctx.settings.keg_path(name)}... {count} links removed")
        return F.Success()


class UninstallCommand(Command):
    name = "uninstall"
    aliases = ("rm", "remove")
    usage = "keg ..."
    summary = "unlink and remove kegs"
    requires = F.KEG

    def execute(self, parsed):
        for name in parsed.names:
            path = self.ctx.installer.uninstall(name)
            self.say(f"Uninstalling {path}...")
        return F.Success()


class PruneCommand(Command):
    name = "prune"
    summary = "remove dangling symlinks and empty directories from the prefix"

    def execute(self, parsed):
        links, dirs = self.ctx.installer.prune()
        if links == 0 and dirs == 0:
            self.say("Nothing pruned")
        else:
            self.say(f"Pruned {links} symbolic links and {dirs} directories from {self.ctx.settings.prefix}")
        return F.Success()


class CleanupCommand(Command):
    name = "cleanup"
    usage = "[formula ...]"
    summary = "remove outdated versions of installed kegs"

    def execute(self, parsed):
        for name in parsed.names:
            if not self.ctx.installer.is_installed(name):
                return F.ExecutionFault(f"No such keg: {self.ctx.settings.keg_path(name)}")
        for name in parsed.names or self.ctx.installer.kegs():
            for path in self.ctx.installer.cleanup(name):
                self.say(f"Removing {path}...")
        return F.Success()


# -----------------------
# Authoring
# -----------------------
def name_from_url(url: str) -> Tuple[str, Optional[str]]:
    stem = ARCHIVE_EXT_RE.sub("", os.path.basename(url.rstrip("/")))
    version = version_from_url(url)
    name = stem
    if version and stem.endswith(version):
        name = re.sub(r"[-_]v?$", "", stem[:-len(version)]) or stem
    return name.lower(), version


class CreateCommand(Command):
    name = "create"
    usage = "url [--name=NAME]"
    summary = "write a formula skeleton for url and open it in $EDITOR"
    options = {"--name": {"metavar": "NAME"}}

    def parse(self, args):
        parsed = super().parse(args)
        if isinstance(parsed, ParsedArgs) and not parsed.names:
            return F.UsageError("create requires a URL")
        return parsed

    def execute(self, parsed):
        url = parsed.names[0]
        name = parsed.options.get("--name")
        if not isinstance(name, str) or not name:
            name, _ = name_from_url(url)
        path = self.ctx.repository.path_for(name)
        if os.path.exists(path):
            return F.ExecutionFault(f"{path} already exists")
        utils.ensure_dir(os.path.dirname(path))
        klass = "".join(part.capitalize() for part in name.replace("_", "-").split("-") if part)
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(FORMULA_TEMPLATE.format(klass=klass, url=url))
        self.say(path)
        return F.Success(utils.open_in_editor(self.ctx.settings.editor, [path]))


class ConfigureCommand(Command):
    name = "configure"
    summary = "print a --prefix for building the current directory by hand"

    def execute(self, parsed):
        dirname = os.path.basename(os.getcwd())
        name, version = name_from_url(dirname)
        if not version:
            return F.UsageError(f"Couldn't determine a version from {dirname}; "
                                "rename the directory to NAME-VERSION", show_usage=False)
        self.say(f"--prefix={self.ctx.settings.keg_path(name, version)}")
        return F.Success()


COMMANDS: List[Type[Command]] = [
    CacheCommand, PrefixCommand, RepositoryCommand, CellarCommand, ConfigCommand,
    HomeCommand, ListCommand, SearchCommand, EditCommand, UpdateCommand,
    LinkCommand, UnlinkCommand, UninstallCommand, PruneCommand, CreateCommand,
    ConfigureCommand, InfoCommand, CleanupCommand, InstallCommand, LogCommand,
    UsesCommand, DepsCommand, CatCommand, OutdatedCommand,
]


class CommandRegistry:
    """Canonical verb -> Command, built once at startup; aliases resolve to canonical verbs."""

    def __init__(self, ctx: Context, commands: Optional[List[Type[Command]]] = None):
        self.commands: Dict[str, Command] = {}
        self.aliases: Dict[str, str] = {}
        for cls in commands or COMMANDS:
            cmd = cls(ctx)
            self.commands[cmd.name] = cmd
            for alias in cmd.aliases:
                self.aliases[alias] = cmd.name

    def canonical(self, verb: str) -> str:
        return self.aliases.get(verb, verb)

    def get(self, verb: str) -> Optional[Command]:
        return self.commands.get(self.canonical(verb))

    def __contains__(self, verb: str) -> bool:
        return self.canonical(verb) in self.commands


def unknown_command(verb: str) -> F.UsageError:
    if verb in GIT_VERBS:
        return F.UsageError(f"Unknown command: {verb}. Did you mean `git {verb}`?", show_usage=False)
    return F.UsageError(f"Unknown command: {verb}", show_usage=False)


def usage_text(commands: Optional[List[Type[Command]]] = None) -> str:
    lines = ["Usage: brewer [--verbose] [--debug] command [options] [arguments]", "", "Commands:"]
    for cls in commands or COMMANDS:
        verb = cls.name
        if cls.aliases:
            verb += " (" + ", ".join(cls.aliases) + ")"
        lines.append(f"  {verb} {cls.usage}".rstrip())
        lines.append(f"      {cls.summary}")
    lines += ["", "Options:",
              "  -h, --help     show this message",
              "  --version      print the version",
              "  -v, --verbose  verbose output and full traces",
              "  -d, --debug    debug logging",
              "  --no-color     disable colored output"]
    return "\n".join(lines)
