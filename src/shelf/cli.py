import argparse
import datetime
import logging
import sys
from collections import defaultdict
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.table import Table

from . import system
from .config import Config
from .constants import APP_NAME, CONFIG_FILE, LOG_FILE
from .dots import Dots
from .errors import GitNotInstalled, HomeDirectoryNotFound, ShelfError
from .listing import ListFilter

logger = logging.getLogger(APP_NAME)
console = Console()


def setup_logging(config: Config, verbose: bool = False) -> None:
    """Configures the logging subsystem.

    Args:
        config (Config): Supplies the level, the file switch and the rotation size.
        verbose (bool, optional): Forces DEBUG output on stderr. Defaults to False.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )
    level = logging.DEBUG if verbose else getattr(logging, config.logging.level)
    logger.setLevel(logging.DEBUG if config.logging.file else level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    stream_handler.setLevel(level)
    logger.addHandler(stream_handler)

    if config.logging.file:
        try:
            LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                LOG_FILE,
                maxBytes=config.limits.max_log_size,
                backupCount=5,
            )
        except OSError as e:
            logger.warning(f"Cannot open log file {LOG_FILE}: {e}")
        else:
            file_handler.setFormatter(formatter)
            file_handler.setLevel(logging.DEBUG)
            logger.addHandler(file_handler)


def _display_relative(path: Path, home: Path) -> str:
    try:
        rel = path.relative_to(home)
    except ValueError:
        return str(path)
    return "." if rel == Path(".") else str(rel)


def _item_type(path: Path) -> str:
    if path.is_symlink():
        return "link"
    if path.is_dir():
        return "dir"
    if path.exists():
        return "file"
    return "missing"


def group_by_directory(paths: list[Path]) -> dict[Path, list[Path]]:
    """Groups paths under their parent directory, both levels sorted."""
    groups: dict[Path, list[Path]] = defaultdict(list)
    for path in paths:
        groups[path.parent].append(path)
    return {parent: sorted(groups[parent]) for parent in sorted(groups)}


def print_grouped_paths(paths: list[Path], home: Path, title: str) -> None:
    """Renders tracked paths as a DIRECTORY / ITEM / TYPE table.

    Args:
        paths (list[Path]): Absolute paths to show.
        home (Path): The work tree; directories are shown relative to it.
        title (str): The table title.
    """
    if not paths:
        console.print("[yellow]Nothing to show.[/yellow]")
        return

    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("DIRECTORY", style="cyan")
    table.add_column("ITEM", style="green")
    table.add_column("TYPE", style="dim")

    for directory, files in group_by_directory(paths).items():
        display_dir = _display_relative(directory, home)
        for index, file in enumerate(files):
            table.add_row(
                display_dir if index == 0 else "",
                file.name,
                _item_type(file),
            )

    console.print(table)


def track_paths(dots: Dots, paths: list[str]) -> None:
    with console.status("Tracking...", spinner="dots"):
        result = dots.track(paths)
    console.print(f"[bold green]✔ Tracking {len(result)} file(s).[/bold green]")
    for rel in result.paths:
        console.print(f"  [green]+[/green] {rel}")


def untrack_paths(dots: Dots, paths: list[str]) -> None:
    with console.status("Untracking...", spinner="dots"):
        result = dots.untrack(paths)
    if not result.paths:
        console.print("[yellow]No tracked files matched.[/yellow]")
        return
    console.print(f"[bold green]✔ Untracked {len(result)} file(s).[/bold green]")
    for rel in result.paths:
        console.print(f"  [red]-[/red] {rel}")


def list_tracked(dots: Dots, modified: bool) -> None:
    dots.set_filter(ListFilter.MODIFIED if modified else ListFilter.ALL)
    title = "Modified dotfiles" if modified else "Tracked dotfiles"
    print_grouped_paths(dots.list(), dots.work_tree, title)


def save_changes(dots: Dots) -> None:
    with console.status("Saving snapshot...", spinner="dots"):
        recap = dots.save()
    console.print("[bold green]✔ Changes saved.[/bold green]")
    console.print(recap.rstrip(), highlight=False)


def add_remote(dots: Dots, name: str, url: str) -> None:
    dots.add_remote(name, url)
    console.print(f"[bold green]✔ Remote '{name}' -> {url}[/bold green]")


def list_remotes(dots: Dots) -> None:
    remotes = dots.remotes()
    if not remotes:
        console.print("[yellow]No remotes configured.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Remote", style="cyan")
    table.add_column("URL")
    for remote in remotes:
        table.add_row(remote.name, remote.url)
    console.print(table)


def push_changes(
    dots: Dots, config: Config, remote: str | None, branch: str | None
) -> None:
    remote_name = remote or config.core.remote_name
    branch_name = branch or config.core.branch or dots.current_branch()
    with console.status(
        f"Pushing {branch_name} to {remote_name}...", spinner="dots"
    ):
        dots.push(remote_name, branch_name)
    console.print(
        f"[bold green]✔ Pushed '{branch_name}' to '{remote_name}'.[/bold green]"
    )


def show_history(dots: Dots, limit: int) -> None:
    commits = dots.history(limit)
    if not commits:
        console.print("[yellow]No snapshots saved yet.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Commit", style="cyan")
    table.add_column("Date", style="dim")
    table.add_column("Changes", justify="right")
    for commit in commits:
        when = datetime.datetime.fromtimestamp(commit.committed_date)
        changed = max(len(commit.message.splitlines()) - 1, 0)
        table.add_row(
            commit.hexsha[:8], when.strftime("%Y-%m-%d %H:%M"), str(changed)
        )
    console.print(table)


class ShelfHelpFormatter(argparse.HelpFormatter):
    """Help formatter that groups subcommands under category headers."""

    groups = {
        "Tracking": ["track", "untrack", "list"],
        "History": ["save", "log"],
        "Remote": ["remote", "push"],
        "General": ["config", "help"],
    }

    def _format_action(self, action: argparse.Action) -> str:
        if isinstance(action, argparse._SubParsersAction):
            parts = []
            subactions = list(self._iter_indented_subactions(action))

            for group_name, commands in self.groups.items():
                group_actions = [a for a in subactions if a.dest in commands]
                if not group_actions:
                    continue

                parts.append(f"\n  {group_name}:\n")

                self._indent()
                for subaction in group_actions:
                    parts.append(self._format_action(subaction))
                self._dedent()

            return self._join_parts(parts)

        return super()._format_action(action)


def show_config_reference() -> None:
    """Displays a formatted table of all available configuration options."""
    table = Table(title="Shelf Configuration Schema", show_lines=True)
    table.add_column("Section", style="cyan", justify="right")
    table.add_column("Key", style="green")
    table.add_column("Type", style="dim")
    table.add_column("Default", style="yellow")
    table.add_column("Description")

    # Core Settings
    table.add_row(
        "core",
        "store_dir",
        "str",
        '".shelf"',
        "Name of the bare store directory under your home directory.",
    )
    table.add_row(
        "", "remote_name", "str", '"origin"', "The remote `push` targets by default."
    )
    table.add_row(
        "",
        "branch",
        "str",
        "None",
        "The branch to push. Defaults to the branch HEAD points at.",
    )

    # Remote Settings
    table.add_row(
        "remote",
        "ssh_keys",
        "list",
        '["id_ed25519", ...]',
        "Private key filenames under ~/.ssh, tried in order.",
    )
    table.add_row(
        "", "username_env", "str", '"GIT_USERNAME"', "Variable holding the HTTP username."
    )
    table.add_row(
        "", "password_env", "str", '"GIT_PASSWORD"', "Variable holding the HTTP password."
    )
    table.add_row(
        "", "token_env", "str", '"GITHUB_TOKEN"', "Variable holding an access token."
    )
    table.add_row(
        "",
        "token_username",
        "str",
        '"x-access-token"',
        "Username sent alongside the access token.",
    )

    # Limits Settings
    table.add_row(
        "limits",
        "max_log_size",
        "int | str",
        '"5mb"',
        "Max size for log files before rotation (e.g., '5mb', '1gb').",
    )

    # Logging Settings
    table.add_row(
        "logging",
        "level",
        "str",
        '"WARNING"',
        "Minimum level printed to stderr.",
    )
    table.add_row(
        "", "file", "bool", "false", f"Also write a rotating log to {LOG_FILE}."
    )

    console.print(table)
    console.print(f"[dim]Config file: {CONFIG_FILE}[/dim]")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        usage=argparse.SUPPRESS,
        formatter_class=ShelfHelpFormatter,
        add_help=False,
    )

    parser.add_argument(
        "-h",
        "--help",
        action="help",
        default=argparse.SUPPRESS,
        help=argparse.SUPPRESS,
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help=argparse.SUPPRESS
    )

    subparsers = parser.add_subparsers(dest="command")

    track_parser = subparsers.add_parser("track", help="Start tracking dotfiles")
    track_parser.add_argument("paths", nargs="+", help="Files or directories")

    untrack_parser = subparsers.add_parser(
        "untrack", help="Stop tracking dotfiles (files stay on disk)"
    )
    untrack_parser.add_argument("paths", nargs="+", help="Files or directories")

    list_parser = subparsers.add_parser("list", help="List tracked dotfiles")
    list_parser.add_argument(
        "--modified",
        "-m",
        action="store_true",
        help="Only show files changed since they were tracked",
    )

    subparsers.add_parser("save", help="Commit tracked changes")

    log_parser = subparsers.add_parser("log", help="Show saved snapshots")
    log_parser.add_argument(
        "-n", type=int, default=10, dest="limit", help="Number of snapshots"
    )

    remote_parser = subparsers.add_parser("remote", help="Manage remotes")
    remote_sub = remote_parser.add_subparsers(dest="remote_command")
    remote_add = remote_sub.add_parser("add", help="Add or repoint a remote")
    remote_add.add_argument("name", help="Remote name")
    remote_add.add_argument("url", help="Remote URL")
    remote_sub.add_parser("list", help="List remotes")

    push_parser = subparsers.add_parser("push", help="Push saved snapshots")
    push_parser.add_argument("--remote", "-r", help="Remote name (default: origin)")
    push_parser.add_argument("--branch", "-b", help="Branch (default: current)")

    config_parser = subparsers.add_parser("config", help="Show configuration options")
    config_parser.add_argument(
        "--list",
        "-l",
        action="store_true",
        help="List all available configuration options and their descriptions",
    )

    subparsers.add_parser("help", help="Show this help message")
    return parser


def run_command(args: argparse.Namespace, config: Config) -> None:
    """Opens the store and dispatches a parsed subcommand."""
    home = system.home_directory()
    dots = Dots.open(home, config)
    logger.debug(f"Opened {dots!r}")

    if args.command == "track":
        track_paths(dots, args.paths)
    elif args.command == "untrack":
        untrack_paths(dots, args.paths)
    elif args.command == "list":
        list_tracked(dots, args.modified)
    elif args.command == "save":
        save_changes(dots)
    elif args.command == "log":
        show_history(dots, args.limit)
    elif args.command == "remote":
        if args.remote_command == "add":
            add_remote(dots, args.name, args.url)
        else:
            list_remotes(dots)
    elif args.command == "push":
        push_changes(dots, config, args.remote, args.branch)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the Shelf CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command in (None, "help"):
        parser.print_help()
        return
    if args.command == "config":
        if args.list:
            show_config_reference()
        else:
            state = "found" if CONFIG_FILE.exists() else "not created yet"
            console.print(f"Config file: [cyan]{CONFIG_FILE}[/cyan] ({state})")
            console.print("[dim]Run `shelf config --list` to see all options.[/dim]")
        return

    config = Config.load()
    setup_logging(config, args.verbose)

    try:
        run_command(args, config)
    except (HomeDirectoryNotFound, GitNotInstalled) as e:
        console.print(f"[bold red]ERROR:[/bold red] {e}")
        console.print("[dim]Shelf cannot start without a home directory and git.[/dim]")
        sys.exit(1)
    except ShelfError as e:
        logger.debug(f"{args.command} failed: {e!r}")
        console.print(f"[bold red]ERROR:[/bold red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
