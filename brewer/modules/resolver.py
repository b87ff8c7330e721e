# brewer/modules/resolver.py

from __future__ import annotations
from typing import Dict, Iterable, List, Optional, Set

from brewer.modules import logger as _logger
from brewer.modules.formula import FormulaRepository, FormulaUnavailable


class DependencyResolver:
    """
    Resolve dependências de formulas.

    - closure(name): fecho transitivo (worklist + visited, seguro contra ciclos)
    - uses(name): dependentes diretos, um nível apenas. A assimetria com
      deps é intencional: uses não calcula fecho transitivo.
    - install_order(names): ordem de instalação, dependências primeiro.

    Dependências não resolvíveis que não são raiz são ignoradas
    (missing_policy="skip") ou registradas como aviso (missing_policy="warn").
    """

    def __init__(self,
                 repository: FormulaRepository,
                 missing_policy: str = "skip",
                 logger: Optional[_logger.Logger] = None):
        self.repository = repository
        self.missing_policy = missing_policy
        self.log = logger or _logger.Logger("resolver")

    def _skip_missing(self, name: str, error: FormulaUnavailable):
        if self.missing_policy == "warn":
            self.log.warning(f"Skipping unresolvable dependency {name}: {error}")
        else:
            self.log.debug(f"Skipping unresolvable dependency {name}")

    def closure(self, name: str) -> List[str]:
        """
        Retorna a lista ordenada e sem duplicatas de tudo que é alcançável a
        partir de `name`, excluindo o próprio `name`.
        Levanta FormulaUnavailable se a raiz não existir.
        """
        root = self.repository.resolve(name)
        visited: Set[str] = set()
        pending: List[str] = [name]
        found: List[str] = []
        while pending:
            current = pending.pop()
            if current in visited:
                continue
            visited.add(current)
            if current == name:
                formula = root
            else:
                try:
                    formula = self.repository.resolve(current)
                except FormulaUnavailable as e:
                    self._skip_missing(current, e)
                    continue
            if not formula.direct_dependencies:
                continue
            found.extend(formula.direct_dependencies)
            pending.extend(d for d in formula.direct_dependencies if d not in visited)
        # a cycle can lead back to the root; it is not its own dependency
        return sorted(set(found) - {name})

    def deps(self, names: Iterable[str]) -> Dict[str, List[str]]:
        return {name: self.closure(name) for name in names}

    def uses(self, name: str) -> List[str]:
        if not self.repository.exists(name):
            raise FormulaUnavailable(name)
        return list(self.repository.used_by_index().get(name, []))

    def install_order(self, names: Iterable[str]) -> List[str]:
        """
        Ordem pós-ordem (dependências antes dos dependentes) sobre o fecho
        de `names`. Um nó já no caminho atual não é revisitado, então ciclos
        terminam. Raízes inexistentes levantam FormulaUnavailable.
        """
        order: List[str] = []
        done: Set[str] = set()
        on_path: Set[str] = set()

        def visit(n: str, is_root: bool):
            if n in done or n in on_path:
                return
            try:
                formula = self.repository.resolve(n)
            except FormulaUnavailable as e:
                if is_root:
                    raise
                self._skip_missing(n, e)
                done.add(n)
                return
            on_path.add(n)
            for d in formula.direct_dependencies:
                visit(d, False)
            on_path.discard(n)
            done.add(n)
            order.append(n)

        for n in names:
            visit(n, True)
        return order


def format_deps(name: str, dependencies: List[str]) -> str:
    if not dependencies:
        return f"{name} has no dependencies"
    return ", ".join(dependencies)


def format_uses(dependents: List[str]) -> str:
    # reported as-is from the index, one per line
    return "\n".join(dependents)
