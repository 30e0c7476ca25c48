import logging
import re
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    CONFIG_FILE,
    PASSWORD_ENV,
    SSH_KEY_NAMES,
    STORE_DIR_NAME,
    TOKEN_ENV,
    TOKEN_USERNAME,
    USERNAME_ENV,
)

logger = logging.getLogger(APP_NAME)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '5MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_level(value: str) -> str:
    """Normalizes a logging level name, rejecting unknown levels."""
    level = str(value).strip().upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"Invalid log level '{value}'")
    return level


@dataclass
class CoreConfig:
    """Core store settings.

    Attributes:
        store_dir (str): Name of the bare store directory under the home directory.
        remote_name (str): The default remote used by `push`.
        branch (str | None): The branch to push. None means the branch HEAD names.
    """

    store_dir: str = STORE_DIR_NAME
    remote_name: str = "origin"
    branch: str | None = None


@dataclass
class RemoteConfig:
    """Credential chain settings.

    Attributes:
        ssh_keys (list[str]): Private key filenames under ~/.ssh, tried in order.
        username_env (str): Environment variable holding the basic-auth username.
        password_env (str): Environment variable holding the basic-auth password.
        token_env (str): Environment variable holding a personal access token.
        token_username (str): The username sent alongside the token.
    """

    ssh_keys: list[str] = field(default_factory=lambda: list(SSH_KEY_NAMES))
    username_env: str = USERNAME_ENV
    password_env: str = PASSWORD_ENV
    token_env: str = TOKEN_ENV
    token_username: str = TOKEN_USERNAME


@dataclass
class LimitsConfig:
    """Resource limitation settings.

    Attributes:
        max_log_size (int): Max bytes for the log file before rotation.
    """

    max_log_size: int = 5 * 1024 * 1024


@dataclass
class LoggingConfig:
    """Logging settings.

    Attributes:
        level (str): The minimum level emitted to stderr.
        file (bool): Whether to also write a rotating log file.
    """

    level: str = "WARNING"
    file: bool = False


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        core (CoreConfig): Store settings.
        remote (RemoteConfig): Push credential settings.
        limits (LimitsConfig): Resource limits.
        logging (LoggingConfig): Logging settings.
    """

    core: CoreConfig = field(default_factory=CoreConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Loads configuration from disk, applying defaults where necessary.

        Args:
            path (Path | None): The TOML file to read. Defaults to CONFIG_FILE.

        Returns:
            Config: The merged configuration object.
        """
        instance = cls()
        source = path or CONFIG_FILE
        if source.exists():
            instance._merge_from_file(source)
        return instance

    def _merge_from_file(self, path: Path) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
            return
        except OSError as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            return

        if "core" in data:
            self.core = self._update_dataclass("core", self.core, data["core"])
        if "remote" in data:
            self.remote = self._update_dataclass("remote", self.remote, data["remote"])
        if "limits" in data:
            self.limits = self._update_dataclass("limits", self.limits, data["limits"])
        if "logging" in data:
            self.logging = self._update_dataclass(
                "logging", self.logging, data["logging"]
            )

        unknown = set(data) - {"core", "remote", "limits", "logging"}
        if unknown:
            logger.warning(
                f"Unknown config sections in {path}: {', '.join(sorted(unknown))}. "
                "Ignoring."
            )

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: {', '.join(sorted(invalid_keys))}. Ignoring."
            )

        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k == "max_log_size":
                    filtered_updates[k] = parse_size(v)
                elif k == "level":
                    filtered_updates[k] = parse_level(v)
                elif k == "ssh_keys":
                    if not isinstance(v, list) or not all(
                        isinstance(name, str) for name in v
                    ):
                        raise ValueError("Expected a list of key filenames")
                    filtered_updates[k] = v
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)
