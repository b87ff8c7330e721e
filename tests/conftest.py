"""Shared fixtures for brewer tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from brewer.modules.config import Settings
from brewer.modules.formula import FormulaRepository
from brewer.modules.installer import KegInstaller
from brewer.modules.logger import Logger


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in a temporary prefix with its own repository and cellar."""
    prefix = tmp_path / "prefix"
    repository = tmp_path / "repo"
    (repository / "Library" / "Formula").mkdir(parents=True)
    (prefix / "Cellar").mkdir(parents=True)
    return Settings(
        prefix=str(prefix),
        repository=str(repository),
        cellar=str(prefix / "Cellar"),
        cache=str(tmp_path / "cache"),
        color_output=False,
    )


@pytest.fixture
def quiet_logger(settings: Settings) -> Logger:
    return Logger("test", settings.with_flags(log_level="error"))


@pytest.fixture
def installer(settings: Settings, quiet_logger: Logger) -> KegInstaller:
    return KegInstaller(settings, logger=quiet_logger)


@pytest.fixture
def repository(settings: Settings, installer: KegInstaller, quiet_logger: Logger) -> FormulaRepository:
    return FormulaRepository(settings, installed_check=installer.is_installed, logger=quiet_logger)


@pytest.fixture
def brewer_env(tmp_path: Path, settings: Settings, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Point the CLI at the temporary tree and away from any user configuration."""
    monkeypatch.setenv("BREWER_CONFIG", str(tmp_path / "missing.conf"))
    monkeypatch.setenv("BREWER_PREFIX", settings.prefix)
    monkeypatch.setenv("BREWER_REPOSITORY", settings.repository)
    monkeypatch.setenv("BREWER_CACHE", settings.cache)
    monkeypatch.delenv("BREWER_CELLAR", raising=False)
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.setenv("EDITOR", "true")
    return settings
