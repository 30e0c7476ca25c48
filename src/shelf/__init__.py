"""Shelf: dotfile tracking in a bare git store rooted at your home directory.

This package provides the tracking engine (index mutation, filtered listings,
snapshot commits and authenticated pushes) and a command-line interface on top
of it. Dotfiles are read in place; nothing is copied, moved, or symlinked.
"""

from . import (
    cli,
    commit,
    config,
    constants,
    dots,
    errors,
    index,
    listing,
    remote,
    repository,
    status,
    system,
)

__all__ = [
    "cli",
    "commit",
    "config",
    "constants",
    "dots",
    "errors",
    "index",
    "listing",
    "remote",
    "repository",
    "status",
    "system",
]
