#!/usr/bin/env python3
"""
bkmk - Command Bookmark Manager

Save, browse and run shell commands you use often. With no arguments
the interactive interface starts; subcommands manage bookmarks from
scripts and the shell.
"""
import sys
import argparse
import json
import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from bkmk import __version__
from bkmk.config import get_config, init_config, user_settings_path
from bkmk.errors import BkmkError
from bkmk.history import analyze_frequency, last_command
from bkmk.models import ActionType
from bkmk.runner import run_command
from bkmk.store import BookmarkStore

logger = logging.getLogger(__name__)


console = Console()

# Dashed spellings accepted in place of a subcommand name
LEGACY_ALIASES = {
    "--add-group": "add-group",
    "--add": "add",
    "--remove-group": "remove-group",
    "--remove": "remove",
    "--list": "list",
    "--history": "history",
    "-l": "last",
    "--last": "last",
    "--suggest": "suggest",
    "-v": "version",
}

TUI_HELP = """
Interactive controls:
  j/k, up/down      Navigate
  enter, tab        Open group / select command
  /                 Search all commands (fuzzy)
  s                 Show all bookmarks
  h                 Browse shell history
  a                 Add group / command
  e                 Edit group / command
  d                 Delete (with confirmation)
  o                 Open the bookmark file in your editor
  ctrl+n/ctrl+p     Navigate in search
  pgup/pgdown       Page through history
  esc               Go back
  q, ctrl+c         Quit

Examples:
  bkmk add-group docker
  bkmk add docker ps "docker ps -a" "List all containers"
  bkmk add docker logs "docker logs -f" --action copy
  bkmk history
  bkmk last                         # Bookmark the command you just ran
  bkmk suggest --days 30

Configuration:
  Bookmarks: ~/.config/bkmk/config.yaml (or --store / BKMK_STORE)
  Settings:  ~/.config/bkmk/settings.toml, ./bkmk.toml, BKMK_* variables
"""


def setup_logging(level: str, log_file: Optional[str] = None):
    """Configure root logging once for the process."""
    numeric = getattr(logging, str(level).upper(), logging.WARNING)
    options = {"level": numeric, "format": "%(asctime)s %(name)s %(levelname)s: %(message)s"}
    if log_file:
        options["filename"] = log_file
    logging.basicConfig(**options)


def load_store() -> BookmarkStore:
    """Load the bookmark store named by the current configuration."""
    config = get_config()
    return BookmarkStore.load(config.get_store_path(), max_backups=config.max_backups)


# Interactive interface

def _run_interactive(factory):
    """Build a session with ``factory(store, **options)``, run it, act on the result."""
    from bkmk.tui.app import run_session

    config = get_config()
    store = load_store()
    session = factory(store, history_limit=config.history_limit)
    outcome = run_session(session, editor=config.editor or None)

    if outcome.selected is None:
        return
    command = outcome.selected.command
    if outcome.action == ActionType.RUN.value:
        console.print(f"Running: {escape(command)}")
        status = run_command(command)
        if status != 0:
            console.print(f"[red]Command exited with status {status}[/red]")
            sys.exit(1)
    elif outcome.action == ActionType.COPY.value:
        console.print(f"Copied to clipboard: {escape(command)}")


def cmd_tui(args):
    """Launch the interactive interface."""
    from bkmk.tui.session import Session
    _run_interactive(Session)


def cmd_history(args):
    """Browse shell history to bookmark commands."""
    from bkmk.tui.session import Session
    _run_interactive(Session.with_history)


def cmd_last(args):
    """Bookmark the most recent command from shell history."""
    from bkmk.tui.session import Session
    command = last_command()
    _run_interactive(lambda store, **options: Session.with_last_command(store, command, **options))


# Bookmark management

def cmd_add_group(args):
    """Create a group."""
    store = load_store()
    with store.mutation():
        group = store.add_group(args.name)
    if not args.quiet:
        console.print(f"[green]Group \"{escape(group.name)}\" created[/green]")


def cmd_add(args):
    """Add a command to a group."""
    try:
        action = ActionType.parse(args.action)
    except ValueError:
        console.print(f"[red]Unknown action: {escape(args.action)} (use none, copy or run)[/red]")
        sys.exit(1)

    store = load_store()
    description = " ".join(args.description)
    with store.mutation():
        command = store.add_command(args.group, args.name, args.cmd, description, action)
    if not args.quiet:
        console.print(f"[green]Command \"{escape(command.name)}\" added to group "
                      f"\"{escape(args.group)}\" with ID {command.id}[/green]")


def cmd_remove_group(args):
    """Remove a group and its commands."""
    store = load_store()
    with store.mutation():
        group = store.remove_group(args.name)
    if not args.quiet:
        count = len(group.commands)
        console.print(f"[green]Group \"{escape(group.name)}\" removed ({count} commands)[/green]")


def cmd_remove(args):
    """Remove a command by name or ID."""
    store = load_store()
    with store.mutation():
        command = store.remove_command(args.group, args.name)
    if not args.quiet:
        console.print(f"[green]Command \"{escape(command.name)}\" removed from group "
                      f"\"{escape(args.group)}\"[/green]")


def cmd_list(args):
    """List groups and their commands."""
    store = load_store()
    groups = store.groups
    if args.group:
        groups = [store.get_group(args.group)]

    output = args.output or get_config().output_format
    if output == "json":
        print(json.dumps([g.to_dict() for g in groups], indent=2))
        return

    if not groups:
        console.print("[yellow]No groups configured.[/yellow]")
        return

    if output == "plain":
        for group in groups:
            print(f"\n[{group.name}]")
            if not group.commands:
                print("  (no commands)")
                continue
            for command in group.commands:
                print(f"  [{command.id}] {command.name}: {command.command}")
                if command.description:
                    print(f"      # {command.description}")
        print()
        return

    table = Table(title="Command Bookmarks")
    table.add_column("Group", style="magenta")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Name", style="green")
    table.add_column("Command", style="white")
    table.add_column("Description", style="dim")
    table.add_column("Action", style="yellow")
    for group in groups:
        if not group.commands:
            table.add_row(escape(group.name), "", "[dim](no commands)[/dim]", "", "", "")
        for command in group.commands:
            action = "" if command.default_action is ActionType.NONE else command.default_action.value
            table.add_row(escape(group.name), str(command.id), escape(command.name),
                          escape(command.command), escape(command.description), action)
    console.print(table)


def cmd_suggest(args):
    """Show frequently used history commands worth bookmarking."""
    config = get_config()
    days = args.days if args.days is not None else config.suggest_days
    min_args = args.min_args if args.min_args is not None else config.suggest_min_args
    limit = args.limit if args.limit is not None else config.suggest_limit

    commands = analyze_frequency(days, min_args, limit)
    if not commands:
        console.print("No frequently used commands found matching criteria.")
        console.print(f"[dim](Looking for commands with {min_args}+ arguments "
                      f"from the last {days} days)[/dim]")
        return

    console.print("Frequently used commands (good candidates for bookmarking):\n")
    for i, item in enumerate(commands, 1):
        console.print(f"{i:2d}. [cyan]\\[{item.count}x][/cyan] {escape(item.command)}")
    console.print("\nAdd one with: bkmk add <group> \"<name>\" \"<command>\"")


def cmd_backups(args):
    """List backups of the bookmark file."""
    store = load_store()
    backups = store.list_backups()
    if not backups:
        console.print("[yellow]No backups found[/yellow]")
        return

    table = Table(title=f"Backups of {store.path}")
    table.add_column("Name", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Modified", style="dim")
    for backup in backups:
        stat = backup.stat()
        modified = datetime.fromtimestamp(stat.st_mtime).strftime("%Y-%m-%d %H:%M:%S")
        table.add_row(backup.name, str(stat.st_size), modified)
    console.print(table)


def cmd_restore(args):
    """Restore the bookmark file from a backup."""
    store = load_store()
    store.restore_backup(args.backup)
    if not args.quiet:
        console.print(f"[green]Restored {store.path} from {escape(Path(args.backup).name)}[/green]")


# Settings and information

def cmd_config(args):
    """Manage settings."""
    config = get_config()

    if args.action == "show":
        if args.key:
            if not hasattr(config, args.key):
                console.print(f"[red]Unknown config key: {args.key}[/red]")
                sys.exit(1)
            print(getattr(config, args.key))
        else:
            print(json.dumps(asdict(config), indent=2))

    elif args.action == "set":
        if not args.key or args.value is None:
            console.print("[red]Usage: bkmk config set <key> <value>[/red]")
            sys.exit(1)
        try:
            config.set_value(args.key, args.value)
        except KeyError:
            console.print(f"[red]Unknown config key: {args.key}[/red]")
            sys.exit(1)
        path = config.save()
        if not args.quiet:
            console.print(f"[green]Set {args.key} = {args.value} in {path}[/green]")

    elif args.action == "init":
        path = config.save(user_settings_path())
        console.print(f"[green]Created config at {path}[/green]")


def cmd_version(args):
    """Show version information."""
    print(f"bkmk {__version__}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bkmk",
        description="bkmk - Command Bookmark Manager",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=TUI_HELP,
    )

    # Global options
    parser.add_argument("--store", help="Bookmark file (default: ~/.config/bkmk/config.yaml)")
    parser.add_argument("--config", help="Settings file path")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal output")
    parser.add_argument("--version", action="version", version=f"bkmk {__version__}")
    parser.set_defaults(func=cmd_tui)

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")

    p = subparsers.add_parser("add-group", aliases=["ag"], help="Create a new group")
    p.add_argument("name", help="Group name")
    p.set_defaults(func=cmd_add_group)

    p = subparsers.add_parser("add", aliases=["a"], help="Add a command to a group")
    p.add_argument("group", help="Group name")
    p.add_argument("name", help="Command name")
    p.add_argument("cmd", metavar="command", help="Shell command to save")
    p.add_argument("description", nargs="*", help="Optional description")
    p.add_argument("--action", default="none", help="Default action: none, copy or run")
    p.set_defaults(func=cmd_add)

    p = subparsers.add_parser("remove-group", aliases=["rg"], help="Remove a group")
    p.add_argument("name", help="Group name")
    p.set_defaults(func=cmd_remove_group)

    p = subparsers.add_parser("remove", aliases=["rm"], help="Remove a command")
    p.add_argument("group", help="Group name")
    p.add_argument("name", help="Command name or ID")
    p.set_defaults(func=cmd_remove)

    p = subparsers.add_parser("list", aliases=["ls"], help="List all groups and commands")
    p.add_argument("-g", "--group", help="Only this group")
    p.add_argument("-o", "--output", choices=["table", "plain", "json"], help="Output format")
    p.set_defaults(func=cmd_list)

    p = subparsers.add_parser("history", aliases=["hist"],
                              help="Browse shell history to add commands")
    p.set_defaults(func=cmd_history)

    p = subparsers.add_parser("last", help="Bookmark the last command from shell history")
    p.set_defaults(func=cmd_last)

    p = subparsers.add_parser("suggest", aliases=["freq"],
                              help="Show frequently used commands to bookmark")
    p.add_argument("--days", type=int, help="Only look this many days back")
    p.add_argument("--min-args", type=int, help="Minimum number of arguments")
    p.add_argument("--limit", type=int, help="Maximum number of suggestions")
    p.set_defaults(func=cmd_suggest)

    p = subparsers.add_parser("backups", help="List backups of the bookmark file")
    p.set_defaults(func=cmd_backups)

    p = subparsers.add_parser("restore", help="Restore the bookmark file from a backup")
    p.add_argument("backup", help="Backup file name or path")
    p.set_defaults(func=cmd_restore)

    p = subparsers.add_parser("config", help="Manage settings")
    p.add_argument("action", choices=["show", "set", "init"], help="Config action")
    p.add_argument("key", nargs="?", help="Config key")
    p.add_argument("value", nargs="?", help="Config value (for set)")
    p.set_defaults(func=cmd_config)

    p = subparsers.add_parser("version", help="Show version information")
    p.set_defaults(func=cmd_version)

    p = subparsers.add_parser("help", help="Show this help message")
    p.set_defaults(func=lambda args: parser.print_help())

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    argv = list(sys.argv[1:] if argv is None else argv)
    if argv and argv[0] in LEGACY_ALIASES:
        argv[0] = LEGACY_ALIASES[argv[0]]

    parser = build_parser()
    args = parser.parse_args(argv)

    config = init_config(store=args.store,
                         config_file=Path(args.config) if args.config else None)
    setup_logging(config.log_level, config.log_file or None)
    if not config.color_output:
        console.no_color = True

    try:
        args.func(args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except BkmkError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)
    except Exception as e:
        logger.debug("Unhandled error", exc_info=True)
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
