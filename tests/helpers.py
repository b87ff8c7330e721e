"""Shared test doubles for the brewer collaborators."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from rich.console import Console

from brewer.modules.config import Settings
from brewer.modules.formula import Formula, FormulaUnavailable


class FakeRepository:
    """In-memory formula repository built from a name -> dependencies mapping."""

    def __init__(self, graph: Dict[str, Sequence[str]]):
        self.graph = {name: list(deps) for name, deps in graph.items()}
        self.resolved: List[str] = []

    def resolve(self, name: str) -> Formula:
        self.resolved.append(name)
        if name not in self.graph:
            raise FormulaUnavailable(name)
        return Formula(name=name, version="1.0", direct_dependencies=tuple(self.graph[name]))

    def exists(self, name: str) -> bool:
        return name in self.graph

    def all_names(self) -> List[str]:
        return sorted(self.graph)

    def used_by_index(self) -> Dict[str, List[str]]:
        index: Dict[str, List[str]] = {}
        for name in sorted(self.graph):
            for dep in self.graph[name]:
                index.setdefault(dep, []).append(name)
        return index


class FakeVCS:
    """Version control double: each fetch_and_merge advances to the next revision."""

    def __init__(self, revisions: Iterable[str], changed: Optional[List[str]] = None):
        self.revisions = list(revisions)
        self.position = 0
        self.changed = changed or []
        self.diffs = []

    def current_revision(self) -> str:
        return self.revisions[self.position]

    def fetch_and_merge(self) -> bool:
        if self.position + 1 < len(self.revisions):
            self.position += 1
            return True
        return False

    def changed_formula_files(self, old: str, new: str) -> List[str]:
        self.diffs.append((old, new))
        return list(self.changed)


def string_console() -> Console:
    return Console(file=io.StringIO(), width=200, color_system=None,
                   highlight=False, soft_wrap=True)


def output(console: Console) -> str:
    return console.file.getvalue()


def write_formula(settings: Settings, name: str, deps: Sequence[str] = (),
                  version: Optional[str] = "1.0", homepage: Optional[str] = None) -> Path:
    path = Path(settings.formula_file(name))
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = ["require 'formula'", "", f"class {name.capitalize()} <Formula"]
    if version:
        lines.append(f"  url 'http://example.com/{name}-{version}.tar.gz'")
    if homepage:
        lines.append(f"  homepage '{homepage}'")
    for dep in deps:
        lines.append(f"  depends_on '{dep}'")
    lines += ["", "  def install", "    system 'make install'", "  end", "end", ""]
    path.write_text("\n".join(lines))
    return path


def make_keg(settings: Settings, name: str, version: str, files: Sequence[str] = ("bin/tool",)) -> Path:
    keg = Path(settings.keg_path(name, version))
    for rel in files:
        target = keg / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(f"{name} {version}\n")
    keg.mkdir(parents=True, exist_ok=True)
    return keg
