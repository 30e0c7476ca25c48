import os
from pathlib import Path

"""Global constants and path definitions for Shelf.

This module defines the filesystem layout (adhering to XDG standards where applicable),
the application identifier, and the fixed names used by the tracking store and the
push credential chain.
"""

# --- Identity ---
APP_NAME = "shelf"
"""str: The application name, also used as the logger namespace."""

# --- Store ---
STORE_DIR_NAME = ".shelf"
"""str: The hidden directory under the home directory holding the bare store."""

RECAP_HEADER = "Tracked dotfiles updated:"
"""str: The first line of every commit message produced by `save`."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "shelf"
"""Path: The directory for runtime state data (logs)."""

LOG_FILE = STATE_DIR / "shelf.log"
"""Path: The rotating log file, used when file logging is enabled."""

_XDG_CONFIG = os.environ.get("XDG_CONFIG_HOME")
_BASE_CONFIG = Path(_XDG_CONFIG) if _XDG_CONFIG else Path.home() / ".config"

CONFIG_DIR: Path = _BASE_CONFIG / "shelf"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

# --- Credentials ---
SSH_KEY_NAMES = [
    "id_ed25519",
    "id_ecdsa",
    "id_rsa",
    "id_dsa",
]
"""list[str]: Private key filenames under ~/.ssh, in the order they are tried."""

USERNAME_ENV = "GIT_USERNAME"
"""str: Environment variable holding the HTTP basic-auth username."""

PASSWORD_ENV = "GIT_PASSWORD"
"""str: Environment variable holding the HTTP basic-auth password."""

TOKEN_ENV = "GITHUB_TOKEN"
"""str: Environment variable holding a personal access token."""

TOKEN_USERNAME = "x-access-token"
"""str: The fixed username sent alongside a personal access token."""

AUTH_FAILURE_MARKERS = [
    "authentication failed",
    "permission denied",
    "could not read username",
    "could not read password",
    "terminal prompts disabled",
    "invalid username or password",
    "host key verification failed",
    "403",
    "401",
]
"""list[str]: Lowercase stderr fragments that mark a push as rejected for auth."""
