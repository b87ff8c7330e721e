# brewer/modules/config.py
"""
config.py - configuração imutável do brewer.

- Lê brewer.conf (INI) do primeiro local disponível.
- Variáveis de ambiente BREWER_* sobrescrevem o arquivo.
- Flags globais da linha de comando (--verbose, --debug) entram por último.
- O resultado é um Settings congelado, criado uma vez no startup e passado
  explicitamente para cada componente.
"""

from __future__ import annotations
import configparser
import dataclasses
import os
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

DEFAULT_LOCATIONS = [
    "/etc/brewer/brewer.conf",
    os.path.expanduser("~/.config/brewer/brewer.conf"),
]

DEFAULT_PREFIX = "/usr/local"
DEFAULT_FORMULA_DIR = "Library/Formula"
DEFAULT_FORMULA_SUFFIX = ".rb"
DEFAULT_ISSUES_URL = "https://api.github.com/search/issues"
DEFAULT_BUILD_COMMAND = "ruby -W0 {repository}/Library/Homebrew/build.rb {formula_path}"

MISSING_POLICIES = ("skip", "warn")


class ConfigError(Exception):
    pass


class BrewerConfig:
    """Wrapper over ConfigParser with typed getters and fallbacks."""

    def __init__(self, locations=None):
        self.locations = locations or DEFAULT_LOCATIONS
        self.config = configparser.ConfigParser()
        self.loaded_from = None
        self.reload()

    def reload(self):
        """(Re)carrega a configuração do primeiro arquivo disponível."""
        self.config = configparser.ConfigParser()
        self.loaded_from = None
        for path in self.locations:
            if os.path.isfile(path):
                try:
                    self.config.read(path)
                except configparser.Error as e:
                    raise ConfigError(f"Invalid configuration file {path}: {e}")
                self.loaded_from = path
                return
        # no file: defaults apply

    def get(self, section, option, fallback=None):
        try:
            return self.config.get(section, option, fallback=fallback)
        except (configparser.NoSectionError, configparser.NoOptionError):
            return fallback

    def getboolean(self, section, option, fallback=False):
        try:
            return self.config.getboolean(section, option, fallback=fallback)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return fallback

    def getint(self, section, option, fallback=0):
        try:
            return self.config.getint(section, option, fallback=fallback)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return fallback

    def getlist(self, section, option, fallback=None, delimiter=","):
        raw = self.get(section, option, fallback="")
        if raw:
            return [item.strip() for item in raw.split(delimiter) if item.strip()]
        return fallback or []

    def __contains__(self, section):
        return section in self.config


@dataclass(frozen=True)
class Settings:
    prefix: str = DEFAULT_PREFIX
    repository: str = DEFAULT_PREFIX
    cellar: str = os.path.join(DEFAULT_PREFIX, "Cellar")
    cache: str = os.path.expanduser("~/Library/Caches/brewer")
    formula_dir: str = DEFAULT_FORMULA_DIR
    formula_suffix: str = DEFAULT_FORMULA_SUFFIX
    remote: str = "origin"
    branch: str = "master"
    build_command: str = DEFAULT_BUILD_COMMAND
    editor: str = "vi"
    issues_url: str = DEFAULT_ISSUES_URL
    issues_timeout: int = 10
    issues_repo: str = ""
    missing_dependencies: str = "skip"
    log_level: str = "warning"
    log_file: Optional[str] = None
    log_format: str = "text"
    color_output: bool = True
    verbose: bool = False
    debug: bool = False
    config_file: Optional[str] = None

    @property
    def formula_path(self) -> str:
        """Absolute directory holding the formula definition files."""
        return os.path.join(self.repository, self.formula_dir)

    def formula_file(self, name: str) -> str:
        return os.path.join(self.formula_path, name + self.formula_suffix)

    def keg_path(self, name: str, version: Optional[str] = None) -> str:
        if version:
            return os.path.join(self.cellar, name, version)
        return os.path.join(self.cellar, name)

    def with_flags(self, **flags) -> "Settings":
        return dataclasses.replace(self, **flags)

    def as_dict(self) -> Dict[str, object]:
        return dataclasses.asdict(self)


def load_settings(locations: Optional[List[str]] = None,
                  environ: Optional[Mapping[str, str]] = None,
                  **flags) -> Settings:
    """
    Constrói o Settings imutável: defaults < arquivo < ambiente < flags.
    """
    env = os.environ if environ is None else environ
    if env.get("BREWER_CONFIG"):
        locations = [env["BREWER_CONFIG"]]
    cfg = BrewerConfig(locations)

    prefix = env.get("BREWER_PREFIX") or cfg.get("paths", "prefix", fallback=DEFAULT_PREFIX)
    repository = env.get("BREWER_REPOSITORY") or cfg.get("paths", "repository", fallback=prefix)
    cellar = env.get("BREWER_CELLAR") or cfg.get("paths", "cellar", fallback=os.path.join(prefix, "Cellar"))
    cache = env.get("BREWER_CACHE") or cfg.get("paths", "cache", fallback=Settings.cache)

    policy = cfg.get("resolver", "missing_dependencies", fallback="skip").lower()
    if policy not in MISSING_POLICIES:
        raise ConfigError(f"[resolver] missing_dependencies must be one of {MISSING_POLICIES}, got {policy!r}")

    suffix = cfg.get("formula", "suffix", fallback=DEFAULT_FORMULA_SUFFIX)
    if not suffix.startswith("."):
        suffix = "." + suffix

    values = dict(
        prefix=os.path.abspath(os.path.expanduser(prefix)),
        repository=os.path.abspath(os.path.expanduser(repository)),
        cellar=os.path.abspath(os.path.expanduser(cellar)),
        cache=os.path.abspath(os.path.expanduser(cache)),
        formula_dir=cfg.get("formula", "directory", fallback=DEFAULT_FORMULA_DIR).strip("/"),
        formula_suffix=suffix,
        remote=cfg.get("update", "remote", fallback="origin"),
        branch=cfg.get("update", "branch", fallback="master"),
        build_command=cfg.get("install", "build_command", fallback=DEFAULT_BUILD_COMMAND),
        editor=env.get("EDITOR") or cfg.get("edit", "editor", fallback="vi"),
        issues_url=cfg.get("issues", "url", fallback=DEFAULT_ISSUES_URL),
        issues_timeout=cfg.getint("issues", "timeout", fallback=10),
        issues_repo=cfg.get("issues", "repo", fallback=""),
        missing_dependencies=policy,
        log_level=cfg.get("logging", "level", fallback="warning").lower(),
        log_file=cfg.get("logging", "log_file", fallback=None)
        if cfg.getboolean("logging", "log_to_file", fallback=True) else None,
        log_format=cfg.get("logging", "log_format", fallback="text").lower(),
        color_output=cfg.getboolean("logging", "color_output", fallback=True) and not env.get("NO_COLOR"),
        config_file=cfg.loaded_from,
    )
    values.update(flags)
    return Settings(**values)
