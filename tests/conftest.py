"""Shared fixtures: an isolated home directory with an initialized store."""

from pathlib import Path

import pytest

from shelf.dots import Dots, GitBackend
from shelf.repository import ShelfRepository


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Provides an empty home directory isolated from the user's git config.

    Args:
        tmp_path (Path): Pytest fixture for a temporary directory.
        monkeypatch (pytest.MonkeyPatch): Pytest fixture for patching the environment.

    Returns:
        Path: The canonical home directory.
    """
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    monkeypatch.setenv("HOME", str(home_dir))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home_dir / ".config"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for var in ("GIT_DIR", "GIT_WORK_TREE", "GIT_USERNAME", "GIT_PASSWORD", "GITHUB_TOKEN"):
        monkeypatch.delenv(var, raising=False)
    return home_dir.resolve()


@pytest.fixture
def repo(home: Path) -> ShelfRepository:
    """Opens a fresh store in `home` with a commit identity configured."""
    shelf_repo = ShelfRepository.open(home)
    with shelf_repo.repo.config_writer() as cw:
        cw.set_value("user", "name", "Shelf Tester")
        cw.set_value("user", "email", "tester@example.com")
    return shelf_repo


@pytest.fixture
def dots(repo: ShelfRepository) -> Dots:
    """An engine over `repo` with an empty credential chain."""
    return Dots(GitBackend(repo, providers=[]))


@pytest.fixture
def dotfiles(home: Path) -> dict[str, Path]:
    """Populates `home` with a small, typical set of dotfiles."""
    files = {
        ".bashrc": "export EDITOR=vim\n",
        ".inputrc": "set editing-mode vi\n",
        ".config/nvim/init.vim": "set number\n",
        ".config/nvim/lua/plugins.lua": "return {}\n",
    }
    created = {}
    for rel, content in files.items():
        path = home / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        created[rel] = path
    return created
