# brewer/modules/formula.py
"""
Formula repository - reads formula definitions from the repository checkout.

- Formulae live in <repository>/<formula_dir>/<name><suffix>.
- Only top-level declarations are scanned (version, homepage, url,
  depends_on); the definition language itself is never evaluated.
- Snapshots are read on demand and never cached across invocations.
- Provides the reverse "used-by" index consumed by `uses`.
"""

from __future__ import annotations
import os
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from brewer.modules.config import Settings
from brewer.modules import logger as _logger

NAME_RE = re.compile(r"^[A-Za-z0-9@+_.-]+$")
DECLARATION_RE = re.compile(r"""^\s*@?(url|homepage|version)\s*=?\s*\(?\s*['"]([^'"]+)['"]""")
DEPENDS_RE = re.compile(r"""^\s*depends_on\s*\(?\s*['"]([^'"]+)['"]""")
ARCHIVE_EXT_RE = re.compile(r"(\.tar\.(gz|bz2|xz)|\.tgz|\.tbz2?|\.zip|\.tar)$")
URL_VERSION_RES = [
    re.compile(r"[-_]v?(\d[\w.]*?)$"),
    re.compile(r"v?(\d+(\.\d+)+[a-z]?)"),
]


def valid_name(name: Optional[str]) -> bool:
    """Nome seguro para virar componente de caminho: sem separadores, sem `.`/`..`."""
    return bool(name) and bool(NAME_RE.match(name)) and name.strip(".") != ""


class FormulaUnavailable(Exception):
    def __init__(self, name: str, reason: str = ""):
        self.name = name
        self.reason = reason
        super().__init__(f"No available formula for {name}" + (f" ({reason})" if reason else ""))


@dataclass(frozen=True)
class Formula:
    name: str
    version: Optional[str]
    direct_dependencies: Tuple[str, ...] = ()
    installed: bool = False
    source_path: str = ""
    homepage: Optional[str] = None
    url: Optional[str] = None


def version_from_url(url: Optional[str]) -> Optional[str]:
    """Infere a versão a partir do nome do tarball (foo-1.2.3.tar.gz -> 1.2.3)."""
    if not url:
        return None
    stem = ARCHIVE_EXT_RE.sub("", os.path.basename(url.rstrip("/")))
    for rx in URL_VERSION_RES:
        m = rx.search(stem)
        if m:
            return m.group(1)
    return None


def scan_declarations(text: str) -> Dict[str, object]:
    """
    Extrai as declarações de topo de um arquivo de formula.
    Retorna {'url':..., 'homepage':..., 'version':..., 'depends': [...]}.
    """
    out: Dict[str, object] = {"url": None, "homepage": None, "version": None, "depends": []}
    depends: List[str] = []
    for line in text.splitlines():
        m = DEPENDS_RE.match(line)
        if m:
            if m.group(1) not in depends:
                depends.append(m.group(1))
            continue
        m = DECLARATION_RE.match(line)
        if m and out.get(m.group(1)) is None:
            out[m.group(1)] = m.group(2)
    out["depends"] = depends
    return out


class FormulaRepository:
    def __init__(self,
                 settings: Settings,
                 installed_check: Optional[Callable[[str], bool]] = None,
                 logger: Optional[_logger.Logger] = None):
        self.settings = settings
        self.formula_path = settings.formula_path
        self.suffix = settings.formula_suffix
        self.installed_check = installed_check
        self.log = logger or _logger.Logger("formula", settings)

    # -----------------------
    # Lookup
    # -----------------------
    def path_for(self, name: str) -> str:
        if not valid_name(name):
            raise FormulaUnavailable(name, "invalid formula name")
        return os.path.join(self.formula_path, name + self.suffix)

    def exists(self, name: str) -> bool:
        try:
            return os.path.isfile(self.path_for(name))
        except FormulaUnavailable:
            return False

    def resolve(self, name: str) -> Formula:
        """Lê a definição de `name`; levanta FormulaUnavailable se não existir."""
        path = self.path_for(name)
        try:
            with open(path, "r", encoding="utf-8") as fh:
                text = fh.read()
        except FileNotFoundError:
            raise FormulaUnavailable(name)
        except (OSError, UnicodeDecodeError) as e:
            raise FormulaUnavailable(name, str(e))

        decl = scan_declarations(text)
        version = decl["version"] or version_from_url(decl["url"])
        installed = bool(self.installed_check(name)) if self.installed_check else False
        self.log.debug(f"Formula loaded: {path}")
        return Formula(
            name=name,
            version=version,
            direct_dependencies=tuple(decl["depends"]),
            installed=installed,
            source_path=path,
            homepage=decl["homepage"],
            url=decl["url"],
        )

    def read_source(self, name: str) -> str:
        path = self.path_for(name)
        try:
            with open(path, "r", encoding="utf-8") as fh:
                return fh.read()
        except FileNotFoundError:
            raise FormulaUnavailable(name)

    # -----------------------
    # Enumeration
    # -----------------------
    def all_names(self) -> List[str]:
        if not os.path.isdir(self.formula_path):
            return []
        names = []
        for fn in os.listdir(self.formula_path):
            if fn.endswith(self.suffix) and os.path.isfile(os.path.join(self.formula_path, fn)):
                names.append(fn[:-len(self.suffix)])
        return sorted(names)

    def used_by_index(self) -> Dict[str, List[str]]:
        """Mapa nome -> formulas que dependem dele diretamente."""
        index: Dict[str, List[str]] = {}
        for name in self.all_names():
            try:
                formula = self.resolve(name)
            except FormulaUnavailable as e:
                self.log.warning(f"Skipping unreadable formula {name}: {e}")
                continue
            for dep in formula.direct_dependencies:
                users = index.setdefault(dep, [])
                if name not in users:
                    users.append(name)
        return index

    def search(self, term: Optional[str] = None) -> List[str]:
        """Nomes que contém `term`; `/regex/` usa expressão regular."""
        names = self.all_names()
        if not term:
            return names
        if len(term) > 1 and term.startswith("/") and term.endswith("/"):
            prog = re.compile(term[1:-1], re.IGNORECASE)
            return [n for n in names if prog.search(n)]
        term_l = term.lower()
        return [n for n in names if term_l in n.lower()]
