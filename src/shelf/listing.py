from __future__ import annotations

import enum
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from .constants import APP_NAME
from .errors import InvalidUtf8Path
from .status import Status

if TYPE_CHECKING:
    from .dots import TrackingBackend

logger = logging.getLogger(APP_NAME)


class ListFilter(enum.Enum):
    """Which tracked paths a listing shows."""

    ALL = "all"
    """Every tracked entry."""

    MODIFIED = "modified"
    """Only entries whose on-disk content differs from the index."""


class TrackedFileLister:
    """Materializes the tracked paths that pass the active filter.

    The first `list()` after an invalidation reads the index, applies the
    filter and caches the result. Later calls in the same generation return a
    copy of the cache without touching the store. Changing the filter, calling
    `reset()` or mutating the index through the engine starts a new generation.

    Attributes:
        backend (TrackingBackend): The store being listed.
        generation (int): Incremented on every invalidation.
    """

    def __init__(self, backend: "TrackingBackend"):
        self.backend = backend
        self.generation = 0
        self._filter = ListFilter.ALL
        self._cache: list[Path] | None = None

    @property
    def filter(self) -> ListFilter:
        return self._filter

    def set_filter(self, new: ListFilter) -> None:
        """Switches the active filter, invalidating the cache if it changed."""
        if new is self._filter:
            return
        logger.debug(f"Filter {self._filter.value} -> {new.value}")
        self._filter = new
        self.reset()

    def reset(self) -> None:
        """Drops any cached listing."""
        self._cache = None
        self.generation += 1

    def list(self) -> list[Path]:
        """Returns the absolute paths of tracked entries matching the filter."""
        if self._cache is None:
            self._cache = self._collect()
        else:
            logger.debug(f"Serving listing from cache generation {self.generation}")
        return list(self._cache)

    def _collect(self) -> list[Path]:
        paths = []
        for entry in self.backend.tracked_entries():
            try:
                path = self.backend.absolute(entry.path)
            except InvalidUtf8Path as e:
                logger.debug(f"Skipping entry: {e}")
                continue
            if self._matches(entry):
                paths.append(path)
        logger.debug(
            f"Listed {len(paths)} path(s) with filter '{self._filter.value}' "
            f"(generation {self.generation})"
        )
        return paths

    def _matches(self, entry) -> bool:
        if self._filter is ListFilter.ALL:
            return True
        return Status.WT_MODIFIED in self.backend.worktree_status(entry)
