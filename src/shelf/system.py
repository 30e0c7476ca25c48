import logging
import os
import shutil
from collections.abc import Mapping
from pathlib import Path

from .constants import APP_NAME
from .errors import GitNotInstalled, HomeDirectoryNotFound

logger = logging.getLogger(APP_NAME)


def git_installed() -> bool:
    """Searches PATH for the `git` executable.

    Returns:
        bool: True if `git` can be located, False otherwise.
    """
    return shutil.which("git") is not None


def check_git_installation() -> None:
    """Pre-flight check that the `git` executable is available.

    Raises:
        GitNotInstalled: If `git` is not on PATH.
    """
    if not git_installed():
        raise GitNotInstalled()


def home_directory(environ: Mapping[str, str] | None = None) -> Path:
    """Resolves the canonical home directory from the environment.

    Args:
        environ (Mapping[str, str] | None, optional): The environment to read.
                                                      Defaults to `os.environ`.

    Returns:
        Path: The absolute, symlink-free home directory.

    Raises:
        HomeDirectoryNotFound: If HOME is unset, empty, or does not exist.
    """
    env = os.environ if environ is None else environ
    raw = env.get("HOME") or env.get("USERPROFILE")
    if not raw:
        raise HomeDirectoryNotFound("HOME is not set")

    try:
        return Path(raw).resolve(strict=True)
    except (OSError, RuntimeError) as e:
        raise HomeDirectoryNotFound(f"{raw} ({e})") from e


def ssh_directory(home: Path) -> Path:
    """Returns the platform-conventional directory holding SSH private keys."""
    return home / ".ssh"
