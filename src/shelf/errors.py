"""Exception hierarchy for Shelf.

Every failure raised by the tracking core derives from `ShelfError` and names the
offending path or operation by value. Exceptions coming from GitPython or the
filesystem are wrapped at the module boundary and chained via `__cause__`.
"""

from pathlib import Path


class ShelfError(Exception):
    """Base class for all errors raised by Shelf."""


class HomeDirectoryNotFound(ShelfError):
    """The home directory is unset or cannot be canonicalized."""

    def __init__(self, detail: str = "") -> None:
        message = "Home directory not found"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class GitNotInstalled(ShelfError):
    """The `git` executable could not be located on PATH."""

    def __init__(self) -> None:
        super().__init__("Git executable is not installed")


class PathNotFound(ShelfError):
    """A path argument does not exist on disk."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        super().__init__(f"Path not found: {self.path}")


class OutsideWorkTree(ShelfError):
    """A path argument does not lie under the work tree."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        super().__init__(f"Path is outside work tree: {self.path}")


class InvalidUtf8Path(ShelfError):
    """An index entry's path cannot be represented as UTF-8."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Invalid UTF-8 in path: {path!r}")


class StripPrefixError(ShelfError):
    """A path could not be made relative to the work tree."""

    def __init__(self, path: Path, work_tree: Path) -> None:
        self.path = path
        self.work_tree = work_tree
        super().__init__(f"Path strip error: {path} is not under {work_tree}")


class StoreError(ShelfError):
    """Wraps any failure raised by the underlying git store."""


class ShelfIOError(ShelfError):
    """Wraps a filesystem error encountered while reading or writing."""


class NothingToCommit(ShelfError):
    """`save` was called with no staged changes."""

    def __init__(self) -> None:
        super().__init__("No staged changes to commit")


class MissingIdentity(ShelfError):
    """No `user.name` / `user.email` is configured for the store."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(
            f"No commit identity configured (missing {', '.join(missing)}). "
            "Set it with `git config --global user.name/user.email`."
        )


class RemoteNotFound(ShelfError):
    """The named remote is not registered in the store."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Remote not found: {name}")


class NoCredentials(ShelfError):
    """No provider in the credential chain could authenticate against a remote."""

    def __init__(self, remote: str, url: str) -> None:
        self.remote = remote
        self.url = url
        super().__init__(
            f"No credentials available to push to '{remote}' ({url}). "
            "Add an SSH key or set GIT_USERNAME/GIT_PASSWORD or GITHUB_TOKEN."
        )


class PushError(ShelfError):
    """A push was attempted and rejected."""

    def __init__(self, remote: str, branch: str, detail: str) -> None:
        self.remote = remote
        self.branch = branch
        self.detail = detail
        super().__init__(f"Push of '{branch}' to '{remote}' failed: {detail}")
