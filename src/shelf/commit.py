import logging

from git import Commit
from git.exc import GitError

from .constants import APP_NAME, RECAP_HEADER
from .errors import NothingToCommit, ShelfIOError, StoreError
from .repository import ShelfRepository
from .status import StatusEntry, index_changes

logger = logging.getLogger(APP_NAME)


def changes_recap(changes: list[StatusEntry]) -> str:
    """Builds the commit message summarizing each changed entry.

    Args:
        changes (list[StatusEntry]): The entries to summarize.

    Returns:
        str: A header line followed by one '  - KIND: path' line per entry.
    """
    lines = [RECAP_HEADER]
    for change in changes:
        lines.append(f"  - {change.status.describe()}: {change.path}")
    return "\n".join(lines) + "\n"


class CommitComposer:
    """Turns whatever is staged in the store's index into a commit on HEAD."""

    def __init__(self, repo: ShelfRepository):
        self.repo = repo

    def save(self) -> str:
        """Commits the index with a generated recap message.

        The commit has no parent on an unborn branch and exactly one parent
        (the current HEAD commit) otherwise.

        Returns:
            str: The recap message used for the commit.

        Raises:
            NothingToCommit: If the index matches HEAD.
            MissingIdentity: If no commit identity is configured.
            StoreError: If the tree or commit cannot be written.
        """
        changes = index_changes(self.repo)
        if not any(change.committable for change in changes):
            raise NothingToCommit()

        actor = self.repo.identity()
        message = changes_recap(changes)
        head = self.repo.head_commit()
        parents = [] if head is None else [head]

        index = self.repo.load_index()
        try:
            tree = index.write_tree()
            commit = Commit.create_from_tree(
                self.repo.repo,
                tree,
                message,
                parent_commits=parents,
                head=True,
                author=actor,
                committer=actor,
            )
        except GitError as e:
            raise StoreError(f"Cannot create commit: {e}") from e
        except OSError as e:
            raise ShelfIOError(f"Cannot create commit: {e}") from e

        logger.info(
            f"Committed {commit.hexsha[:8]} ({len(changes)} change(s), "
            f"{len(parents)} parent(s))"
        )
        return message

    def history(self, limit: int = 10) -> list[Commit]:
        """Returns up to `limit` commits reachable from HEAD, newest first."""
        head = self.repo.head_commit()
        if head is None:
            return []
        commits = [head]
        while len(commits) < limit and commits[-1].parents:
            commits.append(commits[-1].parents[0])
        return commits
