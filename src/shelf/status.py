"""Status computation for tracked entries.

Two comparisons are supported, mirroring git's own status model:

* index vs HEAD, which decides whether `save` has anything to commit;
* index vs working tree, which drives the `MODIFIED` listing filter.

Both are computed from the object database and the index file directly, without
invoking the git executable.
"""

import enum
import hashlib
import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path

from git.exc import GitError
from git.index.fun import stat_mode_to_index_mode

from .constants import APP_NAME
from .errors import ShelfIOError, StoreError
from .repository import ShelfRepository, TrackedEntry

logger = logging.getLogger(APP_NAME)


class Status(enum.Flag):
    """Per-path status flags, index side and working tree side."""

    INDEX_NEW = enum.auto()
    INDEX_MODIFIED = enum.auto()
    INDEX_DELETED = enum.auto()
    WT_NEW = enum.auto()
    WT_MODIFIED = enum.auto()
    WT_DELETED = enum.auto()
    WT_TYPECHANGE = enum.auto()

    def describe(self) -> str:
        """Renders the set flags as 'INDEX_NEW|WT_MODIFIED'."""
        names = [flag.name for flag in Status if flag in self and flag.name]
        return "|".join(names) if names else "CURRENT"


COMMITTABLE = (
    Status.INDEX_NEW
    | Status.INDEX_MODIFIED
    | Status.INDEX_DELETED
    | Status.WT_MODIFIED
    | Status.WT_NEW
)
"""Status: Flags that make a change worth committing."""


@dataclass(frozen=True)
class StatusEntry:
    """One changed path and its flags.

    Attributes:
        path (str): The index path, relative to the work tree.
        status (Status): The set flags.
    """

    path: str
    status: Status

    @property
    def committable(self) -> bool:
        return bool(self.status & COMMITTABLE)


def blob_sha(data: bytes) -> bytes:
    """Computes the binary git object id of a blob with the given content."""
    header = f"blob {len(data)}\0".encode()
    return hashlib.sha1(header + data).digest()


def worktree_status(work_tree: Path, entry: TrackedEntry) -> Status:
    """Compares an index entry with the file currently on disk.

    Args:
        work_tree (Path): The work tree the entry is relative to.
        entry (TrackedEntry): The index entry to check.

    Returns:
        Status: `WT_DELETED`, `WT_TYPECHANGE`, `WT_MODIFIED`, or no flags.
    """
    full = work_tree.joinpath(*entry.path.split("/"))
    try:
        st = os.lstat(full)
    except FileNotFoundError:
        return Status.WT_DELETED
    except OSError as e:
        raise ShelfIOError(f"Cannot stat {full}: {e}") from e

    mode = stat_mode_to_index_mode(st.st_mode)
    if stat.S_IFMT(mode) != stat.S_IFMT(entry.mode):
        return Status.WT_TYPECHANGE

    try:
        if stat.S_ISLNK(mode):
            data = os.fsencode(os.readlink(full))
        else:
            data = full.read_bytes()
    except OSError as e:
        raise ShelfIOError(f"Cannot read {full}: {e}") from e

    if mode != entry.mode or blob_sha(data) != entry.binsha:
        return Status.WT_MODIFIED
    return Status(0)


def index_changes(repo: ShelfRepository) -> list[StatusEntry]:
    """Lists entries that differ between HEAD and the index.

    On an unborn branch every index entry is new. Untracked and unchanged
    paths are never reported.

    Args:
        repo (ShelfRepository): The store to inspect.

    Returns:
        list[StatusEntry]: Changed entries, sorted by path.
    """
    index = repo.load_index()
    staged = {
        path: (entry.binsha, entry.mode)
        for (path, stage), entry in index.entries.items()
        if stage == 0
    }

    committed: dict[str, tuple[bytes, int]] = {}
    head = repo.head_commit()
    if head is not None:
        try:
            for item in head.tree.traverse():
                if item.type == "blob":
                    committed[item.path] = (item.binsha, item.mode)
        except GitError as e:
            raise StoreError(f"Cannot read HEAD tree: {e}") from e

    changes = []
    for path in sorted(staged.keys() | committed.keys()):
        if path not in committed:
            changes.append(StatusEntry(path, Status.INDEX_NEW))
        elif path not in staged:
            changes.append(StatusEntry(path, Status.INDEX_DELETED))
        elif staged[path] != committed[path]:
            changes.append(StatusEntry(path, Status.INDEX_MODIFIED))

    logger.debug(f"{len(changes)} change(s) between HEAD and index")
    return changes
