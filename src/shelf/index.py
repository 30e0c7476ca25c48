import logging
import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from git.exc import GitError
from git.index import IndexFile

from .constants import APP_NAME
from .errors import ShelfIOError, StoreError
from .repository import ShelfRepository

logger = logging.getLogger(APP_NAME)


@dataclass
class BatchResult:
    """Outcome of a successful track/untrack batch.

    Attributes:
        paths (list[str]): Index paths that were added or removed, in order.
    """

    paths: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.paths)


class IndexMutator:
    """Adds and removes work tree paths in the store's index.

    Each batch call loads the index once, applies every path in memory and writes
    the index back exactly once. The first failing path aborts the batch before
    anything is written, so the on-disk index is never left half-updated.
    """

    def __init__(self, repo: ShelfRepository):
        self.repo = repo

    def track(self, paths: Iterable[Path | str]) -> BatchResult:
        """Stages files, or every file below a directory, for tracking.

        Directories are walked recursively, hidden entries included. No ignore
        rules are consulted: tracking is an explicit opt-in.

        Args:
            paths (Iterable[Path | str]): Files or directories under the work tree.

        Returns:
            BatchResult: The index paths that were staged.

        Raises:
            InvalidUtf8Path: If a file name cannot be stored as UTF-8. Nothing
                             is staged in that case.
        """
        index = self.repo.load_index()
        result = BatchResult()

        for path in paths:
            target = self.repo.validate(path)
            files = list(self._expand(target))
            rel_paths = [self.repo.relative(f) for f in files]
            if not rel_paths:
                logger.debug(f"Nothing to add under {target}")
                continue
            self._add(index, rel_paths)
            result.paths.extend(rel_paths)

        self._write(index)
        logger.info(f"Tracked {len(result)} path(s)")
        return result

    def untrack(self, paths: Iterable[Path | str]) -> BatchResult:
        """Removes paths from the index, leaving the files on disk untouched.

        A directory argument removes every entry beneath it by prefix, whether
        or not those files still exist.

        Args:
            paths (Iterable[Path | str]): Files or directories under the work tree.

        Returns:
            BatchResult: The index paths that were removed.
        """
        index = self.repo.load_index()
        result = BatchResult()

        for path in paths:
            target = self.repo.validate(path)
            prefix = self.repo.relative(target)
            result.paths.extend(self._remove(index, prefix))

        self._write(index)
        logger.info(f"Untracked {len(result)} path(s)")
        return result

    def _expand(self, target: Path) -> Iterator[Path]:
        """Yields the files a path argument stands for.

        Symlinks are yielded as themselves and never followed. The store
        directory is pruned from directory walks.
        """
        if target.is_symlink() or not target.is_dir():
            yield target
            return

        def _raise(err: OSError) -> None:
            raise err

        try:
            for root, dirs, files in os.walk(target, onerror=_raise):
                root_path = Path(root)
                kept_dirs = []
                for name in sorted(dirs):
                    child = root_path / name
                    if child == self.repo.git_dir:
                        continue
                    if child.is_symlink():
                        yield child
                    else:
                        kept_dirs.append(name)
                dirs[:] = kept_dirs
                for name in sorted(files):
                    yield root_path / name
        except OSError as e:
            raise ShelfIOError(f"Cannot walk {target}: {e}") from e

    def _add(self, index: IndexFile, rel_paths: list[str]) -> None:
        try:
            index.add(rel_paths, write=False)
        except GitError as e:
            raise StoreError(f"Cannot add {', '.join(rel_paths)}: {e}") from e
        except OSError as e:
            raise ShelfIOError(f"Cannot add {', '.join(rel_paths)}: {e}") from e
        logger.debug(f"Staged {len(rel_paths)} file(s)")

    @staticmethod
    def _remove(index: IndexFile, prefix: str) -> list[str]:
        """Drops every entry equal to `prefix` or nested below it."""
        removed = []
        for key in list(index.entries):
            entry_path = key[0]
            if not prefix or entry_path == prefix or entry_path.startswith(f"{prefix}/"):
                del index.entries[key]
                removed.append(entry_path)
        logger.debug(f"Removed {len(removed)} entr(ies) under '{prefix or '.'}'")
        return sorted(set(removed))

    @staticmethod
    def _write(index: IndexFile) -> None:
        # The cached TREE extension is stale after in-memory edits.
        try:
            index.write(ignore_extension_data=True)
        except GitError as e:
            raise StoreError(f"Cannot write index: {e}") from e
        except OSError as e:
            raise ShelfIOError(f"Cannot write index: {e}") from e
