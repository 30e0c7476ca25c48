from pathlib import Path
from unittest.mock import MagicMock

from hypothesis import given
from hypothesis import strategies as st

from shelf import cli
from shelf.commit import changes_recap
from shelf.config import parse_size
from shelf.index import IndexMutator
from shelf.remote import AuthKind, requested_auth
from shelf.status import Status, StatusEntry

# Index-style relative paths: 1-4 segments, no separators inside a segment.
segment = st.text(
    alphabet=st.characters(whitelist_categories=("L", "N"), whitelist_characters="._-"),
    min_size=1,
    max_size=8,
).filter(lambda s: s not in (".", ".."))
rel_paths = st.lists(segment, min_size=1, max_size=4).map("/".join)

flags = st.sampled_from([f for f in Status])


@given(entries=st.lists(st.tuples(rel_paths, flags), unique_by=lambda e: e[0]))
def test_recap_has_one_line_per_change(entries: list[tuple[str, Status]]) -> None:
    """
    Property: The recap is the header plus exactly one line per change, in order,
    and every line names its path.
    """
    changes = [StatusEntry(path, status) for path, status in entries]

    lines = changes_recap(changes).splitlines()

    assert lines[0] == "Tracked dotfiles updated:"
    assert len(lines) == len(changes) + 1
    for line, change in zip(lines[1:], changes):
        assert line == f"  - {change.status.name}: {change.path}"


@given(tracked=st.lists(rel_paths, unique=True), prefix=rel_paths)
def test_untrack_prefix_removes_exactly_the_subtree(
    tracked: list[str], prefix: str
) -> None:
    """
    Property: Removing a prefix drops the entry itself and everything under it as a
    directory, and nothing else.
    """
    index = MagicMock()
    index.entries = {(path, 0): object() for path in tracked}

    removed = IndexMutator._remove(index, prefix)

    expected = sorted(p for p in tracked if p == prefix or p.startswith(prefix + "/"))
    assert removed == expected
    assert sorted(path for path, _ in index.entries) == sorted(
        set(tracked) - set(expected)
    )


@given(path=rel_paths)
def test_local_paths_need_no_auth(path: str) -> None:
    """Property: Absolute and file:// remotes never ask for credentials."""
    assert requested_auth("/" + path) is AuthKind.NONE
    assert requested_auth("file:///" + path) is AuthKind.NONE


@given(
    number=st.integers(min_value=0, max_value=10_000),
    unit=st.sampled_from(["k", "kb", "m", "mb", "g", "gb"]),
)
def test_parse_size_scales_by_unit(number: int, unit: str) -> None:
    """Property: A size string always equals the number times its unit multiplier."""
    multiplier = {"k": 1024, "m": 1024**2, "g": 1024**3}[unit[0]]

    assert parse_size(f"{number}{unit.upper()}") == number * multiplier


@given(paths=st.lists(rel_paths, unique=True))
def test_grouping_preserves_every_path(paths: list[str]) -> None:
    """
    Property: Grouping by directory neither loses nor duplicates paths, and every
    path sits under its own parent.
    """
    absolute = [Path("/home/u") / p for p in paths]

    groups = cli.group_by_directory(absolute)

    flattened = [p for members in groups.values() for p in members]
    assert sorted(flattened) == sorted(absolute)
    for parent, members in groups.items():
        assert all(member.parent == parent for member in members)
