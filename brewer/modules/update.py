# brewer/modules/update.py
"""
update.py - atualiza o repositório de formulas a partir do upstream.

Fluxo:
 - falha cedo se git não estiver disponível;
 - captura a revisão antiga, faz fetch+merge, captura a nova;
 - revisões iguais: "Already up-to-date." e nada mais;
 - senão, lista as formulas alteradas (stem do arquivo, ordenado).
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from rich.columns import Columns
from rich.console import Console

from brewer.modules.config import Settings
from brewer.modules import logger as _logger
from brewer.modules import sync as _sync

REVISION_WIDTH = 8


@dataclass(frozen=True)
class UpdateResult:
    old_revision: str
    new_revision: str
    changed_formulae: List[str] = field(default_factory=list)

    @property
    def updated(self) -> bool:
        return self.old_revision != self.new_revision

    @property
    def has_formula_changes(self) -> bool:
        return bool(self.changed_formulae)


def formula_names_from_paths(paths: Iterable[str], formula_dir: str, suffix: str) -> List[str]:
    """
    Filtra caminhos alterados para os arquivos de formula e devolve os nomes
    (stem), ordenados e sem duplicatas. Um caminho conta como formula quando
    fica diretamente no diretório de formulas e termina com `suffix`.
    """
    dir_name = os.path.basename(formula_dir.rstrip("/"))
    names = set()
    for path in paths:
        path = path.replace("\\", "/")
        parent, filename = os.path.split(path)
        if not filename.endswith(suffix) or len(filename) == len(suffix):
            continue
        if parent != formula_dir and os.path.basename(parent) != dir_name:
            continue
        names.add(filename[:-len(suffix)])
    return sorted(names)


class UpdateOrchestrator:
    def __init__(self,
                 vcs,
                 settings: Settings,
                 console: Optional[Console] = None,
                 logger: Optional[_logger.Logger] = None,
                 git_check: Optional[Callable[[], bool]] = None):
        self.vcs = vcs
        self.settings = settings
        self.console = console or Console()
        self.log = logger or _logger.Logger("update", settings)
        self.git_check = git_check or _sync.git_available

    def update(self) -> UpdateResult:
        if not self.git_check():
            raise _sync.GitUnavailable()

        old_revision = self.vcs.current_revision()
        self.log.debug(f"Revision before update: {old_revision}")
        merged = self.vcs.fetch_and_merge()
        new_revision = self.vcs.current_revision() if merged else old_revision
        if new_revision == old_revision:
            return UpdateResult(old_revision, new_revision)

        paths = self.vcs.changed_formula_files(old_revision, new_revision)
        changed = formula_names_from_paths(paths, self.settings.formula_dir, self.settings.formula_suffix)
        self.log.info(f"Updated {old_revision[:REVISION_WIDTH]}..{new_revision[:REVISION_WIDTH]}: "
                      f"{len(changed)} formulae changed")
        return UpdateResult(old_revision, new_revision, changed)

    def report(self, result: UpdateResult):
        console = self.console
        if not result.updated:
            console.print("Already up-to-date.")
            return
        console.print(f"Updated brewer from {result.old_revision[:REVISION_WIDTH]} "
                      f"to {result.new_revision[:REVISION_WIDTH]}.")
        if result.has_formula_changes:
            console.print("Updated formulae:")
            console.print(Columns(result.changed_formulae, equal=True, column_first=True))
        else:
            console.print("No formulae were updated.")
