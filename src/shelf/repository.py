import logging
import os
from dataclasses import dataclass
from pathlib import Path

from git import Actor, Commit, Repo
from git.exc import GitError, InvalidGitRepositoryError, NoSuchPathError
from git.index import IndexFile

from .constants import APP_NAME, STORE_DIR_NAME
from .errors import (
    HomeDirectoryNotFound,
    InvalidUtf8Path,
    MissingIdentity,
    OutsideWorkTree,
    PathNotFound,
    ShelfIOError,
    StoreError,
    StripPrefixError,
)
from .system import check_git_installation

logger = logging.getLogger(APP_NAME)


@dataclass(frozen=True)
class TrackedEntry:
    """One stage-0 index entry as listed by `git ls-files --stage`.

    Attributes:
        path (str): The entry path. Bytes that are not UTF-8 are kept as
                    surrogate escapes so the entry can still be reported.
        mode (int): The recorded git file mode.
        binsha (bytes): The binary blob id.
    """

    path: str
    mode: int
    binsha: bytes


class ShelfRepository:
    """A headless git store bound to a work tree it never checks out.

    The store lives in a hidden directory directly under the work tree (normally
    the home directory). Tracked files are read in place; nothing is copied,
    moved, or symlinked.

    Attributes:
        repo (Repo): The GitPython handle for the store.
        work_tree (Path): The canonical work tree.
        git_dir (Path): The canonical store directory.
    """

    def __init__(self, repo: Repo, work_tree: Path, git_dir: Path):
        self.repo = repo
        self.work_tree = work_tree
        self.git_dir = git_dir

    @classmethod
    def open(
        cls, work_tree: Path, store_name: str = STORE_DIR_NAME
    ) -> "ShelfRepository":
        """Opens the store under `work_tree`, initializing it on first use.

        Args:
            work_tree (Path): The directory whose files are tracked.
            store_name (str, optional): The store directory name. Defaults to '.shelf'.

        Returns:
            ShelfRepository: The bound repository.

        Raises:
            GitNotInstalled: If the git executable is missing.
            HomeDirectoryNotFound: If the work tree cannot be canonicalized.
            StoreError: If the store cannot be opened or initialized.
        """
        check_git_installation()

        try:
            work_tree = Path(work_tree).resolve(strict=True)
        except (OSError, RuntimeError) as e:
            raise HomeDirectoryNotFound(f"{work_tree} ({e})") from e

        git_dir = work_tree / store_name

        try:
            try:
                repo = Repo(str(git_dir))
            except (InvalidGitRepositoryError, NoSuchPathError):
                logger.info(f"Initializing store at {git_dir}")
                repo = Repo.init(str(git_dir), bare=True)

            with repo.config_writer() as cw:
                cw.set_value("core", "bare", "false")
                cw.set_value("core", "worktree", str(work_tree))

            # Re-open so GitPython picks up the non-bare work tree binding.
            repo = Repo(str(git_dir))
        except GitError as e:
            raise StoreError(f"Cannot open store at {git_dir}: {e}") from e
        except OSError as e:
            raise ShelfIOError(f"Cannot open store at {git_dir}: {e}") from e

        repo.git.update_environment(GIT_DIR=str(git_dir), GIT_WORK_TREE=str(work_tree))
        logger.debug(f"Store {git_dir} bound to work tree {work_tree}")
        return cls(repo, work_tree, git_dir)

    # --- Paths ---

    def validate(self, path: Path | str) -> Path:
        """Checks that a path exists and lies under the work tree.

        Relative paths are resolved against the current directory. The final
        component is not dereferenced, so a symlink is validated as itself.

        Args:
            path (Path | str): The path to check.

        Returns:
            Path: The canonical absolute form of `path`.

        Raises:
            PathNotFound: If nothing exists at `path`.
            OutsideWorkTree: If `path` is not a descendant of the work tree, or
                             lies inside the store directory.
        """
        candidate = Path(os.path.abspath(Path(path).expanduser()))
        if not (candidate.exists() or candidate.is_symlink()):
            raise PathNotFound(path)

        if candidate.parent == candidate:
            resolved = candidate
        else:
            resolved = candidate.parent.resolve() / candidate.name

        if not _is_within(resolved, self.work_tree):
            raise OutsideWorkTree(path)
        if _is_within(resolved, self.git_dir):
            raise OutsideWorkTree(path)
        return resolved

    def relative(self, path: Path) -> str:
        """Strips the work tree prefix, returning a POSIX-style index path.

        Raises:
            StripPrefixError: If `path` is not under the work tree.
            InvalidUtf8Path: If the file name cannot be stored as UTF-8.
        """
        try:
            rel = path.relative_to(self.work_tree)
        except ValueError as e:
            raise StripPrefixError(path, self.work_tree) from e
        return _require_utf8("" if rel == Path(".") else rel.as_posix())

    def absolute(self, rel: str) -> Path:
        """Maps an index path to an absolute path under the work tree.

        Raises:
            InvalidUtf8Path: If `rel` cannot be encoded as UTF-8.
        """
        _require_utf8(rel)
        return self.work_tree.joinpath(*rel.split("/"))

    # --- Store state ---

    def load_index(self) -> IndexFile:
        """Reads the index from disk. Each call returns a fresh instance."""
        try:
            index = IndexFile(self.repo)
            _ = index.entries
            return index
        except GitError as e:
            raise StoreError(f"Cannot read index: {e}") from e
        except UnicodeDecodeError as e:
            raise StoreError(f"Cannot read index: undecodable entry path ({e})") from e
        except OSError as e:
            raise ShelfIOError(f"Cannot read index: {e}") from e

    def tracked_entries(self) -> list[TrackedEntry]:
        """Lists stage-0 index entries without decoding paths strictly.

        GitPython decodes every index path as UTF-8 when it parses the index,
        so a single foreign entry would fail the whole read. Listing through
        `ls-files -z` keeps each path as raw bytes until it is decoded here.

        Returns:
            list[TrackedEntry]: Entries sorted by path.

        Raises:
            StoreError: If the index cannot be listed.
        """
        try:
            raw = self.repo.git.ls_files("-z", "--stage", stdout_as_string=False)
        except GitError as e:
            raise StoreError(f"Cannot list index: {e}") from e

        entries = []
        for record in raw.split(b"\0"):
            if not record:
                continue
            meta, _, path = record.partition(b"\t")
            mode, sha, stage = meta.split(b" ")
            if stage != b"0":
                continue
            entries.append(
                TrackedEntry(
                    path.decode("utf-8", "surrogateescape"),
                    int(mode, 8),
                    bytes.fromhex(sha.decode("ascii")),
                )
            )
        logger.debug(f"Listed {len(entries)} index entr(ies)")
        return sorted(entries, key=lambda entry: entry.path)

    def head_commit(self) -> Commit | None:
        """Returns the commit HEAD points to, or None on an unborn branch."""
        if not self.repo.head.is_valid():
            return None
        try:
            return self.repo.head.commit
        except (GitError, ValueError) as e:
            raise StoreError(f"Cannot resolve HEAD: {e}") from e

    def current_branch(self) -> str:
        """Returns the branch HEAD refers to, even if it has no commits yet.

        Raises:
            StoreError: If HEAD is detached.
        """
        try:
            return self.repo.head.reference.name
        except TypeError as e:
            raise StoreError(f"HEAD is detached: {e}") from e

    def identity(self) -> Actor:
        """Reads the configured commit identity.

        Raises:
            MissingIdentity: If `user.name` or `user.email` is unset.
        """
        reader = self.repo.config_reader()
        values = {}
        missing = []
        for option in ("name", "email"):
            if reader.has_option("user", option):
                values[option] = str(reader.get_value("user", option))
            else:
                missing.append(f"user.{option}")
        if missing:
            raise MissingIdentity(missing)
        return Actor(values["name"], values["email"])

    def __repr__(self) -> str:
        return f"ShelfRepository(git_dir={self.git_dir}, work_tree={self.work_tree})"


def _is_within(path: Path, root: Path) -> bool:
    return path == root or root in path.parents


def _require_utf8(rel: str) -> str:
    try:
        rel.encode("utf-8")
    except UnicodeEncodeError as e:
        raise InvalidUtf8Path(rel) from e
    return rel
