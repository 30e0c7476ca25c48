"""Tests for batch index mutation (track / untrack)."""

import os
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from git.exc import GitError

from shelf.errors import InvalidUtf8Path, OutsideWorkTree, PathNotFound, StoreError
from shelf.index import IndexMutator
from shelf.repository import ShelfRepository


def _tracked(repo: ShelfRepository) -> list[str]:
    return sorted(path for path, stage in repo.load_index().entries if stage == 0)


def test_track_single_file(repo: ShelfRepository, dotfiles: dict[str, Path]) -> None:
    """Verifies that tracking a file adds exactly that path to the index.

    Args:
        repo (ShelfRepository): Fixture providing an opened store.
        dotfiles (dict[str, Path]): Fixture populating the home directory.
    """
    result = IndexMutator(repo).track([dotfiles[".bashrc"]])

    assert result.paths == [".bashrc"]
    assert _tracked(repo) == [".bashrc"]


def test_track_directory_recurses(repo: ShelfRepository, home: Path, dotfiles: dict[str, Path]) -> None:
    """Verifies that a directory argument stages every file beneath it.

    Args:
        repo (ShelfRepository): Fixture providing an opened store.
        home (Path): Fixture providing an isolated home directory.
        dotfiles (dict[str, Path]): Fixture populating the home directory.
    """
    (home / ".config" / "nvim" / ".hidden").write_text("secret\n")

    result = IndexMutator(repo).track([home / ".config"])

    assert len(result) == 3
    assert _tracked(repo) == [
        ".config/nvim/.hidden",
        ".config/nvim/init.vim",
        ".config/nvim/lua/plugins.lua",
    ]


def test_track_ignores_gitignore(repo: ShelfRepository, home: Path) -> None:
    """Verifies that no ignore rules are applied to explicit tracking."""
    (home / ".gitignore").write_text("*.log\n")
    (home / "debug.log").write_text("noise\n")

    IndexMutator(repo).track([home / "debug.log"])

    assert _tracked(repo) == ["debug.log"]


def test_track_home_skips_store(repo: ShelfRepository, home: Path, dotfiles: dict[str, Path]) -> None:
    """Verifies that walking the home directory never stages the store itself."""
    IndexMutator(repo).track([home])

    tracked = _tracked(repo)
    assert ".bashrc" in tracked
    assert not any(path.startswith(".shelf/") for path in tracked)


def test_track_symlink_as_link(repo: ShelfRepository, home: Path, tmp_path: Path) -> None:
    """Verifies that a symlinked directory is staged as a link and not walked."""
    target = tmp_path / "external"
    target.mkdir()
    (target / "inside.txt").write_text("x")
    (home / ".linked").symlink_to(target)

    IndexMutator(repo).track([home])

    index = repo.load_index()
    assert ".linked" in [path for path, _ in index.entries]
    assert ".linked/inside.txt" not in [path for path, _ in index.entries]
    assert index.entries[(".linked", 0)].mode == 0o120000


def test_track_empty_directory(repo: ShelfRepository, home: Path) -> None:
    (home / ".empty").mkdir()

    result = IndexMutator(repo).track([home / ".empty"])

    assert result.paths == []
    assert _tracked(repo) == []


def test_track_is_idempotent(repo: ShelfRepository, dotfiles: dict[str, Path]) -> None:
    mutator = IndexMutator(repo)
    mutator.track([dotfiles[".bashrc"]])
    mutator.track([dotfiles[".bashrc"]])

    assert _tracked(repo) == [".bashrc"]


def test_track_aborts_batch_on_first_error(
    repo: ShelfRepository, home: Path, dotfiles: dict[str, Path]
) -> None:
    """Verifies that a failing path leaves the on-disk index untouched.

    The valid path before the failure must not be staged either.

    Args:
        repo (ShelfRepository): Fixture providing an opened store.
        home (Path): Fixture providing an isolated home directory.
        dotfiles (dict[str, Path]): Fixture populating the home directory.
    """
    mutator = IndexMutator(repo)

    with pytest.raises(PathNotFound):
        mutator.track([dotfiles[".bashrc"], home / ".missing", dotfiles[".inputrc"]])

    assert _tracked(repo) == []


@pytest.mark.skipif(sys.platform == "darwin", reason="APFS rejects non-UTF-8 file names")
def test_track_rejects_undecodable_name(
    repo: ShelfRepository, home: Path, dotfiles: dict[str, Path]
) -> None:
    """Verifies that a non-UTF-8 file name fails the batch with a typed error.

    The name sits inside a directory next to a valid file, so the error must
    surface during expansion and leave the index unwritten.

    Args:
        repo (ShelfRepository): Fixture providing an opened store.
        home (Path): Fixture providing an isolated home directory.
        dotfiles (dict[str, Path]): Fixture populating the home directory.
    """
    folder = home / ".cfg"
    folder.mkdir()
    (folder / "good").write_text("ok")
    (folder / os.fsdecode(b"bad\xff")).write_text("bad")

    with pytest.raises(InvalidUtf8Path):
        IndexMutator(repo).track([dotfiles[".bashrc"], folder])

    assert _tracked(repo) == []


def test_track_outside_work_tree(repo: ShelfRepository, tmp_path: Path) -> None:
    outside = tmp_path / "outside"
    outside.write_text("x")

    with pytest.raises(OutsideWorkTree):
        IndexMutator(repo).track([outside])


def test_track_writes_index_once(
    repo: ShelfRepository, dotfiles: dict[str, Path], mocker: MagicMock
) -> None:
    """Verifies that a batch writes the index exactly once.

    Args:
        repo (ShelfRepository): Fixture providing an opened store.
        dotfiles (dict[str, Path]): Fixture populating the home directory.
        mocker (MagicMock): Pytest fixture for mocking.
    """
    write = mocker.spy(IndexMutator, "_write")

    IndexMutator(repo).track(list(dotfiles.values()))

    assert write.call_count == 1


def test_track_wraps_store_errors(
    repo: ShelfRepository, dotfiles: dict[str, Path], mocker: MagicMock
) -> None:
    mocker.patch("git.index.base.IndexFile.add", side_effect=GitError("boom"))

    with pytest.raises(StoreError, match="boom") as excinfo:
        IndexMutator(repo).track([dotfiles[".bashrc"]])
    assert isinstance(excinfo.value.__cause__, GitError)


def test_untrack_file(repo: ShelfRepository, dotfiles: dict[str, Path]) -> None:
    """Verifies that untracking removes the entry but keeps the file on disk."""
    mutator = IndexMutator(repo)
    mutator.track([dotfiles[".bashrc"], dotfiles[".inputrc"]])

    result = mutator.untrack([dotfiles[".bashrc"]])

    assert result.paths == [".bashrc"]
    assert _tracked(repo) == [".inputrc"]
    assert dotfiles[".bashrc"].exists()


def test_untrack_directory_prefix(repo: ShelfRepository, home: Path, dotfiles: dict[str, Path]) -> None:
    """Verifies that a directory argument removes every entry beneath it.

    Files already deleted from disk are removed as well.

    Args:
        repo (ShelfRepository): Fixture providing an opened store.
        home (Path): Fixture providing an isolated home directory.
        dotfiles (dict[str, Path]): Fixture populating the home directory.
    """
    mutator = IndexMutator(repo)
    mutator.track([home / ".config", dotfiles[".bashrc"]])
    dotfiles[".config/nvim/lua/plugins.lua"].unlink()

    result = mutator.untrack([home / ".config" / "nvim"])

    assert result.paths == [".config/nvim/init.vim", ".config/nvim/lua/plugins.lua"]
    assert _tracked(repo) == [".bashrc"]


def test_untrack_prefix_does_not_match_siblings(repo: ShelfRepository, home: Path) -> None:
    """Verifies that `.config/nvim` does not remove `.config/nvim-old`."""
    for rel in (".config/nvim/a", ".config/nvim-old/b"):
        (home / rel).parent.mkdir(parents=True, exist_ok=True)
        (home / rel).write_text(rel)
    mutator = IndexMutator(repo)
    mutator.track([home / ".config"])

    mutator.untrack([home / ".config" / "nvim"])

    assert _tracked(repo) == [".config/nvim-old/b"]


def test_untrack_untracked_path_is_noop(repo: ShelfRepository, dotfiles: dict[str, Path]) -> None:
    result = IndexMutator(repo).untrack([dotfiles[".bashrc"]])

    assert result.paths == []
    assert _tracked(repo) == []


def test_untrack_missing_path(repo: ShelfRepository, home: Path) -> None:
    with pytest.raises(PathNotFound):
        IndexMutator(repo).untrack([home / ".gone"])
