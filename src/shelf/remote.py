"""Remote registration and push with an ordered credential chain.

A push walks a list of `CredentialProvider` objects in order. Each provider
offers zero or more candidate credentials, and only for the kind of
authentication the remote URL asks for. Each candidate is handed to git as
environment variables, so secrets never appear on the command line or in the
store's config. A candidate rejected for authentication falls through to the
next one. Any other failure stops the push.
"""

import base64
import enum
import logging
import os
import re
import shlex
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from git.exc import GitCommandError, GitError

from .config import RemoteConfig
from .constants import APP_NAME, AUTH_FAILURE_MARKERS, SSH_KEY_NAMES
from .errors import NoCredentials, PushError, RemoteNotFound, StoreError
from .repository import ShelfRepository
from .system import ssh_directory

logger = logging.getLogger(APP_NAME)

_SCP_LIKE = re.compile(r"^(?:[\w.-]+@)?[\w.-]+:(?!//)")


class AuthKind(enum.Enum):
    """The kind of authentication a remote URL requests."""

    NONE = "none"
    SSH_KEY = "ssh-key"
    USER_PASS = "user-pass"


def requested_auth(url: str) -> AuthKind:
    """Classifies a remote URL by the authentication it will ask for.

    Args:
        url (str): The remote URL.

    Returns:
        AuthKind: SSH_KEY for ssh:// and scp-like URLs, USER_PASS for http(s),
                  NONE for local paths and file:// URLs.
    """
    lowered = url.lower()
    if lowered.startswith(("ssh://", "git+ssh://", "ssh+git://")):
        return AuthKind.SSH_KEY
    if lowered.startswith(("http://", "https://")):
        return AuthKind.USER_PASS
    if lowered.startswith("file://") or url.startswith(("/", ".", "~")):
        return AuthKind.NONE
    if _SCP_LIKE.match(url) and not re.match(r"^[a-zA-Z]:[\\/]", url):
        return AuthKind.SSH_KEY
    return AuthKind.NONE


@dataclass(frozen=True)
class Credential:
    """One candidate credential, expressed as git environment variables.

    Attributes:
        label (str): A secret-free description used in logs.
        env (dict[str, str]): Variables to add to the push environment.
    """

    label: str
    env: dict[str, str] = field(default_factory=dict, repr=False)


def _basic_auth(username: str, password: str) -> dict[str, str]:
    token = base64.b64encode(f"{username}:{password}".encode()).decode()
    return {
        "GIT_CONFIG_COUNT": "1",
        "GIT_CONFIG_KEY_0": "http.extraHeader",
        "GIT_CONFIG_VALUE_0": f"Authorization: Basic {token}",
    }


class CredentialProvider(ABC):
    """A source of candidate credentials for one kind of authentication."""

    kind: AuthKind

    @abstractmethod
    def candidates(self) -> Iterator[Credential]:
        """Yields credentials in the order they should be tried."""

    def offer(self, url: str) -> Iterator[Credential]:
        """Yields candidates only if the remote requests this provider's kind."""
        if requested_auth(url) is self.kind:
            yield from self.candidates()


class SshKeyProvider(CredentialProvider):
    """Offers private keys found at conventional locations, one per filename."""

    kind = AuthKind.SSH_KEY

    def __init__(self, ssh_dir: Path, names: list[str] | None = None):
        self.ssh_dir = ssh_dir
        self.names = list(SSH_KEY_NAMES) if names is None else names

    def candidates(self) -> Iterator[Credential]:
        for name in self.names:
            key = self.ssh_dir / name
            if not key.is_file():
                continue
            command = (
                f"ssh -i {shlex.quote(str(key))} "
                "-o IdentitiesOnly=yes -o BatchMode=yes"
            )
            yield Credential(f"ssh key {key}", {"GIT_SSH_COMMAND": command})


class UserPassProvider(CredentialProvider):
    """Offers a username/password pair read from two environment variables."""

    kind = AuthKind.USER_PASS

    def __init__(
        self,
        username_env: str,
        password_env: str,
        environ: Mapping[str, str] | None = None,
    ):
        self.username_env = username_env
        self.password_env = password_env
        self.environ = os.environ if environ is None else environ

    def candidates(self) -> Iterator[Credential]:
        username = self.environ.get(self.username_env)
        password = self.environ.get(self.password_env)
        if username and password:
            yield Credential(
                f"{self.username_env}/{self.password_env}",
                _basic_auth(username, password),
            )


class TokenProvider(CredentialProvider):
    """Offers a personal access token as basic auth under a fixed username."""

    kind = AuthKind.USER_PASS

    def __init__(
        self,
        token_env: str,
        username: str,
        environ: Mapping[str, str] | None = None,
    ):
        self.token_env = token_env
        self.username = username
        self.environ = os.environ if environ is None else environ

    def candidates(self) -> Iterator[Credential]:
        token = self.environ.get(self.token_env)
        if token:
            yield Credential(self.token_env, _basic_auth(self.username, token))


def default_providers(
    home: Path, settings: RemoteConfig | None = None
) -> list[CredentialProvider]:
    """Builds the standard chain: SSH keys, then user/password, then token.

    Args:
        home (Path): The home directory holding `.ssh`.
        settings (RemoteConfig | None, optional): Names of keys and variables.

    Returns:
        list[CredentialProvider]: Providers in the order they are consulted.
    """
    settings = settings or RemoteConfig()
    return [
        SshKeyProvider(ssh_directory(home), settings.ssh_keys),
        UserPassProvider(settings.username_env, settings.password_env),
        TokenProvider(settings.token_env, settings.token_username),
    ]


@dataclass(frozen=True)
class RemoteDescriptor:
    """A named remote and its URL."""

    name: str
    url: str


def _is_auth_failure(error: GitCommandError) -> bool:
    text = f"{error.stderr or ''} {error.stdout or ''}".lower()
    return any(marker in text for marker in AUTH_FAILURE_MARKERS)


def _clean_detail(error: GitCommandError) -> str:
    detail = (error.stderr or str(error)).strip()
    if detail.startswith("stderr:"):
        detail = detail[len("stderr:") :].strip()
    return detail.strip("'").strip()


class RemoteSync:
    """Registers remotes on the store and pushes branches to them."""

    def __init__(
        self,
        repo: ShelfRepository,
        providers: list[CredentialProvider] | None = None,
    ):
        self.repo = repo
        self.providers = (
            default_providers(repo.work_tree) if providers is None else providers
        )

    def add_remote(self, name: str, url: str) -> str:
        """Creates the remote, or repoints it if it already exists.

        Args:
            name (str): The remote name.
            url (str): The remote URL. Reachability is not checked.

        Returns:
            str: The remote name.
        """
        git_repo = self.repo.repo
        try:
            if name in [remote.name for remote in git_repo.remotes]:
                git_repo.remote(name).set_url(url)
                logger.info(f"Updated remote '{name}' -> {url}")
            else:
                git_repo.create_remote(name, url)
                logger.info(f"Added remote '{name}' -> {url}")
        except GitError as e:
            raise StoreError(f"Cannot configure remote '{name}': {e}") from e
        return name

    def remotes(self) -> list[RemoteDescriptor]:
        """Lists the remotes registered on the store."""
        try:
            return [
                RemoteDescriptor(remote.name, remote.url)
                for remote in self.repo.repo.remotes
            ]
        except GitError as e:
            raise StoreError(f"Cannot read remotes: {e}") from e

    def remote_url(self, name: str) -> str:
        for remote in self.remotes():
            if remote.name == name:
                return remote.url
        raise RemoteNotFound(name)

    def push(self, remote_name: str, branch_name: str) -> None:
        """Pushes a local branch to the same-named branch on a remote.

        Args:
            remote_name (str): The registered remote to push to.
            branch_name (str): The local branch to push.

        Raises:
            RemoteNotFound: If the remote is not registered.
            NoCredentials: If no provider can satisfy the remote's auth.
            PushError: If every candidate was rejected, or the push failed
                       for a reason other than authentication.
        """
        url = self.remote_url(remote_name)
        refspec = f"refs/heads/{branch_name}:refs/heads/{branch_name}"
        kind = requested_auth(url)

        if kind is AuthKind.NONE:
            try:
                self._push_with(remote_name, branch_name, refspec, Credential("none"))
            except GitCommandError as e:
                raise PushError(remote_name, branch_name, _clean_detail(e)) from e
            return

        last_rejection: GitCommandError | None = None
        for provider in self.providers:
            for credential in provider.offer(url):
                logger.debug(f"Pushing to '{remote_name}' with {credential.label}")
                try:
                    self._push_with(remote_name, branch_name, refspec, credential)
                    return
                except GitCommandError as e:
                    if not _is_auth_failure(e):
                        raise PushError(remote_name, branch_name, _clean_detail(e)) from e
                    logger.debug(f"{credential.label} rejected by '{remote_name}'")
                    last_rejection = e

        if last_rejection is None:
            raise NoCredentials(remote_name, url)
        raise PushError(
            remote_name, branch_name, _clean_detail(last_rejection)
        ) from last_rejection

    def _push_with(
        self, remote_name: str, branch_name: str, refspec: str, credential: Credential
    ) -> None:
        env = {"GIT_TERMINAL_PROMPT": "0", **credential.env}
        env.setdefault("GIT_SSH_COMMAND", "ssh -o BatchMode=yes")
        git = self.repo.repo.git
        with git.custom_environment(**env):
            git.push(remote_name, refspec, porcelain=True)
        logger.info(f"Pushed '{branch_name}' to '{remote_name}'")
