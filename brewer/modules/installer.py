# brewer/modules/installer.py
"""
Installer - colaborador que instala formulas e gerencia kegs.

Features:
 - install: delega o build a um processo auxiliar externo (build_command)
   e, em caso de sucesso, faz o link do keg no prefixo
 - falha de build vira BuildError com status de saída e o trace do stderr
 - link / unlink / uninstall de kegs (symlinks prefixo -> Cellar)
 - prune: remove symlinks quebrados e diretórios vazios no prefixo
 - cleanup: remove versões antigas de kegs
 - consultas: kegs instalados, arquivos de um keg, arquivos "unbrewed"
"""

from __future__ import annotations
import os
import re
import shlex
import shutil
import subprocess
import sys
from typing import Dict, List, Optional, Tuple

from brewer.modules.config import Settings
from brewer.modules.formula import Formula, valid_name
from brewer.modules import logger as _logger
from brewer.modules import utils

LINKED_DIRS = ("bin", "sbin", "include", "lib", "share", "etc")
PRUNE_SKIP = ("Cellar", "Library", ".git")


class InstallError(Exception):
    pass


class BuildError(InstallError):
    def __init__(self, formula: str, exit_status: int, trace: Optional[List[str]] = None):
        self.formula = formula
        self.exit_status = exit_status
        self.trace = trace or []
        super().__init__(f"Failed to build {formula} (exit status {exit_status})")


# -------------------------
# Keg versions
# -------------------------
VERSION_TOKEN_RE = re.compile(r"\d+|[A-Za-z]+")

# token kinds: pre-release words < end of version < numbers < HEAD
_WORD, _END, _NUMBER, _HEAD = 0, 1, 2, 3


def version_key(v: Optional[str]) -> Tuple:
    """
    Chave de ordenação para nomes de diretório de keg.
    1.10 > 1.9, 1.0 > 1.0rc1, 1.0.1 > 1.0 e HEAD fica depois de tudo.
    """
    if not v:
        return ()
    v = str(v).strip()
    if v == "HEAD":
        return ((_HEAD, 0),)
    if re.match(r"v\d", v):
        v = v[1:]
    key = []
    for token in VERSION_TOKEN_RE.findall(v):
        key.append((_NUMBER, int(token)) if token.isdigit() else (_WORD, token.lower()))
    key.append((_END, 0))
    return tuple(key)


def compare_versions(a: Optional[str], b: Optional[str]) -> int:
    ka, kb = version_key(a), version_key(b)
    return (ka > kb) - (ka < kb)


def sort_versions(versions: List[str]) -> List[str]:
    return sorted(versions, key=version_key)


class KegInstaller:
    def __init__(self, settings: Settings, logger: Optional[_logger.Logger] = None):
        self.settings = settings
        self.prefix = settings.prefix
        self.cellar = settings.cellar
        self.log = logger or _logger.Logger("installer", settings)

    # -----------------------
    # Queries
    # -----------------------
    def kegs(self) -> List[str]:
        """Nomes com pelo menos uma versão instalada no Cellar."""
        return [n for n in utils.list_subdirs(self.cellar) if self.versions(n)]

    def versions(self, name: str) -> List[str]:
        """Versões instaladas de `name`; nomes inválidos (`.`, `..`, com `/`) não têm kegs."""
        if not valid_name(name):
            return []
        return sort_versions(utils.list_subdirs(os.path.join(self.cellar, name)))

    def is_installed(self, name: str) -> bool:
        return bool(self.versions(name))

    def installed(self, formula: Formula) -> bool:
        if formula.version:
            return os.path.isdir(self.settings.keg_path(formula.name, formula.version))
        return self.is_installed(formula.name)

    def current_keg(self, name: str) -> str:
        versions = self.versions(name)
        if not versions:
            raise InstallError(f"{name} is not installed")
        return self.settings.keg_path(name, versions[-1])

    def keg_files(self, name: str) -> List[str]:
        out = []
        for version in self.versions(name):
            for root, dirs, files in os.walk(self.settings.keg_path(name, version)):
                dirs.sort()
                for fn in sorted(files):
                    out.append(os.path.join(root, fn))
        return out

    def unbrewed_files(self) -> List[str]:
        """Arquivos regulares sob o prefixo que nenhum keg fornece."""
        out = []
        for d in LINKED_DIRS:
            base = os.path.join(self.prefix, d)
            for root, dirs, files in os.walk(base):
                dirs.sort()
                for fn in sorted(files):
                    path = os.path.join(root, fn)
                    if not os.path.islink(path):
                        out.append(os.path.relpath(path, self.prefix))
        return out

    def cellar_summary(self) -> Tuple[int, int]:
        """(quantidade de kegs, tamanho total em bytes)."""
        count = 0
        size = 0
        for name in self.kegs():
            for version in self.versions(name):
                count += 1
                for root, _, files in os.walk(self.settings.keg_path(name, version)):
                    for fn in files:
                        path = os.path.join(root, fn)
                        if not os.path.islink(path):
                            size += os.path.getsize(path)
        return count, size

    # -----------------------
    # Install
    # -----------------------
    def _build_command(self, formula: Formula) -> List[str]:
        template = self.settings.build_command
        return [part.format(repository=self.settings.repository,
                            formula_path=formula.source_path,
                            name=formula.name,
                            version=formula.version or "",
                            prefix=self.settings.keg_path(formula.name, formula.version or "HEAD"))
                for part in shlex.split(template)]

    def install(self, formula: Formula) -> str:
        """
        Roda o build auxiliar para `formula` e faz o link do keg.
        Levanta BuildError se o processo sair com status diferente de zero.
        """
        cmd = self._build_command(formula)
        env = os.environ.copy()
        env.update({
            "BREWER_PREFIX": self.prefix,
            "BREWER_CELLAR": self.cellar,
            "BREWER_REPOSITORY": self.settings.repository,
            "BREWER_CACHE": self.settings.cache,
        })
        self.log.info(f"Building {formula.name} {formula.version or ''}: {' '.join(cmd)}")
        try:
            res = subprocess.run(cmd, env=env, stderr=subprocess.PIPE, text=True)
        except FileNotFoundError:
            raise InstallError(f"Build helper not found: {cmd[0]}")
        if res.stderr:
            sys.stderr.write(res.stderr)
        if res.returncode != 0:
            raise BuildError(formula.name, res.returncode, res.stderr.splitlines())
        self.log.success(f"Built {formula.name}")
        self.link(formula.name)
        return self.current_keg(formula.name)

    # -----------------------
    # Link management
    # -----------------------
    def _keg_entries(self, keg: str):
        for d in LINKED_DIRS:
            base = os.path.join(keg, d)
            for root, dirs, files in os.walk(base):
                for fn in files:
                    src = os.path.join(root, fn)
                    yield src, os.path.join(self.prefix, os.path.relpath(src, keg))

    def link(self, name: str) -> int:
        keg = self.current_keg(name)
        linked = 0
        for src, dst in self._keg_entries(keg):
            if os.path.islink(dst):
                os.unlink(dst)
            elif os.path.exists(dst):
                self.log.warning(f"Not overwriting existing file {dst}")
                continue
            utils.ensure_dir(os.path.dirname(dst))
            os.symlink(src, dst)
            linked += 1
        self.log.info(f"Linked {linked} files for {keg}")
        return linked

    def unlink(self, name: str) -> int:
        removed = 0
        for version in self.versions(name):
            keg = self.settings.keg_path(name, version)
            for src, dst in self._keg_entries(keg):
                if os.path.islink(dst) and os.path.realpath(dst) == os.path.realpath(src):
                    os.unlink(dst)
                    removed += 1
        self.log.info(f"Unlinked {removed} files for {name}")
        return removed

    def uninstall(self, name: str) -> str:
        if not self.is_installed(name):
            raise InstallError(f"{name} is not installed")
        self.unlink(name)
        path = self.settings.keg_path(name)
        shutil.rmtree(path)
        self.log.info(f"Uninstalled {path}")
        return path

    def prune(self) -> Tuple[int, int]:
        """Remove symlinks quebrados e diretórios vazios. Retorna (links, dirs)."""
        links = 0
        dirs_removed = 0
        for d in LINKED_DIRS:
            base = os.path.join(self.prefix, d)
            for root, dirs, files in os.walk(base, topdown=False):
                for fn in files + dirs:
                    path = os.path.join(root, fn)
                    if os.path.islink(path) and not os.path.exists(path):
                        os.unlink(path)
                        links += 1
                if root != base and not os.listdir(root):
                    os.rmdir(root)
                    dirs_removed += 1
        return links, dirs_removed

    def cleanup(self, name: str) -> List[str]:
        """Remove todas as versões de `name` menos a mais recente."""
        removed = []
        for version in self.versions(name)[:-1]:
            path = self.settings.keg_path(name, version)
            shutil.rmtree(path)
            self.log.info(f"Removed {path}")
            removed.append(path)
        return removed

    def outdated(self, formula_versions: Dict[str, Optional[str]]) -> List[Tuple[str, str, str]]:
        """(nome, versão instalada, versão da formula) quando as versões diferem."""
        out = []
        for name in self.kegs():
            latest = formula_versions.get(name)
            installed = self.versions(name)[-1]
            if latest and compare_versions(installed, latest) != 0:
                out.append((name, installed, latest))
        return out
