# brewer/modules/sync.py
"""
sync.py - colaborador de controle de versão (git) do repositório de formulas.

- current_revision(): sha do HEAD (ponteiro de revisão opaco).
- fetch_and_merge(): pull do remoto/branch configurados; True se HEAD mudou.
- changed_formula_files(old, new): caminhos alterados no diretório de formulas.
- show_log(): pass-through para `git log`, devolvendo o status de saída.
"""

from __future__ import annotations
import shutil
from typing import List, Optional

from git import Repo, GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from brewer.modules.config import Settings
from brewer.modules import logger as _logger
from brewer.modules import utils


class VersionControlError(Exception):
    pass


class GitUnavailable(VersionControlError):
    def __init__(self):
        super().__init__("git is not installed or not on PATH. "
                         "Install git (for example with your system package manager) and try again.")


def git_available() -> bool:
    return shutil.which("git") is not None


class GitRepository:
    def __init__(self, settings: Settings, logger: Optional[_logger.Logger] = None):
        self.path = settings.repository
        self.remote = settings.remote
        self.branch = settings.branch
        self.formula_dir = settings.formula_dir
        self.log = logger or _logger.Logger("sync", settings)
        self._repo = None

    def _open(self) -> Repo:
        if self._repo is None:
            if not git_available():
                raise GitUnavailable()
            try:
                self._repo = Repo(self.path)
            except (InvalidGitRepositoryError, NoSuchPathError) as e:
                raise VersionControlError(f"{self.path} is not a git repository: {e}")
        return self._repo

    def current_revision(self) -> str:
        repo = self._open()
        try:
            return repo.head.commit.hexsha
        except ValueError as e:
            # empty repository, HEAD points nowhere
            raise VersionControlError(f"Repository {self.path} has no commits: {e}")

    def fetch_and_merge(self) -> bool:
        repo = self._open()
        before = self.current_revision()
        self.log.info(f"Pulling {self.remote}/{self.branch} into {self.path}")
        try:
            repo.remotes[self.remote].pull(self.branch)
        except IndexError:
            raise VersionControlError(f"Remote '{self.remote}' is not configured in {self.path}")
        except GitCommandError as e:
            raise VersionControlError(f"git pull failed: {e}")
        return self.current_revision() != before

    def changed_formula_files(self, old: str, new: str) -> List[str]:
        """Caminhos (relativos ao repositório) alterados sob formula_dir entre old e new."""
        repo = self._open()
        try:
            out = repo.git.diff("--name-only", old, new, "--", self.formula_dir)
        except GitCommandError as e:
            raise VersionControlError(f"git diff {old[:8]}..{new[:8]} failed: {e}")
        return [line.strip() for line in out.splitlines() if line.strip()]

    def show_log(self, path: Optional[str] = None) -> int:
        if not git_available():
            raise GitUnavailable()
        cmd = ["git", "log"]
        if path:
            cmd += ["--", path]
        return utils.run_passthrough(cmd, cwd=self.path)
