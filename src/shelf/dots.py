from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from git import Commit

from .commit import CommitComposer
from .config import Config
from .constants import APP_NAME
from .index import BatchResult, IndexMutator
from .listing import ListFilter, TrackedFileLister
from .remote import CredentialProvider, RemoteDescriptor, RemoteSync, default_providers
from .repository import ShelfRepository, TrackedEntry
from .status import Status, worktree_status

logger = logging.getLogger(APP_NAME)


class TrackingBackend(ABC):
    """The capabilities a storage backend must provide to the `Dots` engine."""

    work_tree: Path

    @abstractmethod
    def track(self, paths: Iterable[Path | str]) -> BatchResult:
        """Starts tracking paths."""

    @abstractmethod
    def untrack(self, paths: Iterable[Path | str]) -> BatchResult:
        """Stops tracking paths."""

    @abstractmethod
    def tracked_entries(self) -> list[Any]:
        """Returns every tracked entry; each exposes a relative `path`."""

    @abstractmethod
    def absolute(self, rel: str) -> Path:
        """Maps an entry path to an absolute path."""

    @abstractmethod
    def worktree_status(self, entry: Any) -> Status:
        """Compares a tracked entry with its file on disk."""

    @abstractmethod
    def save(self) -> str:
        """Records the tracked state, returning a summary."""

    @abstractmethod
    def add_remote(self, name: str, url: str) -> str:
        """Registers or repoints a remote."""

    @abstractmethod
    def push(self, remote_name: str, branch_name: str) -> None:
        """Publishes a branch to a remote."""

    @abstractmethod
    def remotes(self) -> list[RemoteDescriptor]:
        """Lists registered remotes."""

    @abstractmethod
    def current_branch(self) -> str:
        """Names the branch `save` commits to."""

    @abstractmethod
    def history(self, limit: int) -> list[Any]:
        """Returns recorded snapshots, newest first."""


class GitBackend(TrackingBackend):
    """Tracking backed by a bare git store whose work tree is the home directory."""

    def __init__(
        self,
        repo: ShelfRepository,
        providers: list[CredentialProvider] | None = None,
    ):
        self.repo = repo
        self.work_tree = repo.work_tree
        self.mutator = IndexMutator(repo)
        self.composer = CommitComposer(repo)
        self.remote = RemoteSync(repo, providers)

    def track(self, paths: Iterable[Path | str]) -> BatchResult:
        return self.mutator.track(paths)

    def untrack(self, paths: Iterable[Path | str]) -> BatchResult:
        return self.mutator.untrack(paths)

    def tracked_entries(self) -> list[TrackedEntry]:
        return self.repo.tracked_entries()

    def absolute(self, rel: str) -> Path:
        return self.repo.absolute(rel)

    def worktree_status(self, entry: TrackedEntry) -> Status:
        return worktree_status(self.work_tree, entry)

    def save(self) -> str:
        return self.composer.save()

    def add_remote(self, name: str, url: str) -> str:
        return self.remote.add_remote(name, url)

    def push(self, remote_name: str, branch_name: str) -> None:
        self.remote.push(remote_name, branch_name)

    def remotes(self) -> list[RemoteDescriptor]:
        return self.remote.remotes()

    def current_branch(self) -> str:
        return self.repo.current_branch()

    def history(self, limit: int) -> list[Commit]:
        return self.composer.history(limit)


class Dots:
    """The tracking engine: one backend, one active filter, one listing cache.

    Any mutation made through the engine invalidates the cached listing, so a
    `list()` after `track`, `untrack` or `save` always reflects the new state.

    Attributes:
        backend (TrackingBackend): The store being managed.
        lister (TrackedFileLister): Filter state and listing cache.
    """

    def __init__(self, backend: TrackingBackend):
        self.backend = backend
        self.lister = TrackedFileLister(backend)

    @classmethod
    def open(cls, work_tree: Path, config: Config | None = None) -> "Dots":
        """Opens (or initializes) the git store under `work_tree`.

        Args:
            work_tree (Path): The directory whose files are tracked.
            config (Config | None, optional): Settings. Defaults to `Config()`.

        Returns:
            Dots: An engine over a `GitBackend`.
        """
        config = config or Config()
        repo = ShelfRepository.open(work_tree, config.core.store_dir)
        providers = default_providers(repo.work_tree, config.remote)
        logger.debug(f"Engine ready over {repo!r} ({len(providers)} providers)")
        return cls(GitBackend(repo, providers))

    @property
    def work_tree(self) -> Path:
        return self.backend.work_tree

    @property
    def filter(self) -> ListFilter:
        return self.lister.filter

    def track(self, paths: Iterable[Path | str]) -> BatchResult:
        try:
            return self.backend.track(paths)
        finally:
            self.lister.reset()

    def untrack(self, paths: Iterable[Path | str]) -> BatchResult:
        try:
            return self.backend.untrack(paths)
        finally:
            self.lister.reset()

    def set_filter(self, new: ListFilter) -> None:
        self.lister.set_filter(new)

    def reset(self) -> None:
        self.lister.reset()

    def list(self) -> list[Path]:
        return self.lister.list()

    def save(self) -> str:
        try:
            return self.backend.save()
        finally:
            self.lister.reset()

    def add_remote(self, name: str, url: str) -> str:
        return self.backend.add_remote(name, url)

    def push(self, remote_name: str, branch_name: str) -> None:
        self.backend.push(remote_name, branch_name)

    def remotes(self) -> list[RemoteDescriptor]:
        return self.backend.remotes()

    def current_branch(self) -> str:
        return self.backend.current_branch()

    def history(self, limit: int = 10) -> list[Any]:
        return self.backend.history(limit)

    def __repr__(self) -> str:
        return (
            f"Dots(work_tree={self.work_tree}, filter={self.filter.value}, "
            f"generation={self.lister.generation})"
        )
