"""
Command-line interface for roam-select.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import os
import shlex
import sys
import termios
import tty
from collections.abc import AsyncIterator, Iterator
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from roam_select.config import (
    BACKENDS,
    ConfigError,
    FinderOptions,
    NodeSelectOptions,
    SelectConfig,
)
from roam_select.formatter import NodeEntryFormatter
from roam_select.logging import setup_logging
from roam_select.models import Item, MemoryRecordStore, default_node_to_items
from roam_select.node_select import NodeSelectApi
from roam_select.select.base import SelectState
from roam_select.select.builtin import SelectBuiltin
from roam_select.select.registry import BackendRegistry, register_with_fzf
from roam_select.source import collect_items
from roam_select.tui.keys import Key, parse_key, split_keys
from roam_select.tui.renderer import TUIRenderer

console = Console()


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output (debug logging)",
    )
    common.add_argument(
        "--nodes",
        type=Path,
        required=True,
        help="YAML file listing the nodes",
    )

    parser = argparse.ArgumentParser(
        description="Select org-roam nodes from the terminal",
        prog="roam-select",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # List command
    subparsers.add_parser("list", parents=[common], help="List selectable items")

    # Find command
    find_parser = subparsers.add_parser("find", parents=[common], help="Select a node")
    find_parser.add_argument(
        "-c",
        "--config",
        type=Path,
        help="YAML configuration file",
    )
    find_parser.add_argument(
        "-b",
        "--backend",
        choices=BACKENDS,
        help="Selection backend (default: builtin, or $ROAM_SELECT_BACKEND)",
    )
    find_parser.add_argument("-q", "--query", default="", help="Initial input")
    find_parser.add_argument(
        "--auto-select",
        action="store_true",
        help="Accept a single initial match without asking",
    )
    find_parser.add_argument(
        "--allow-missing",
        action="store_true",
        help="Accept a query that matches no node",
    )
    find_parser.add_argument(
        "-i",
        "--include",
        action="append",
        help="Only offer this node id (repeatable)",
    )
    find_parser.add_argument(
        "-x",
        "--exclude",
        action="append",
        help="Never offer this node id (repeatable)",
    )

    # Preview command, run by fzf for the entry under the cursor
    preview_parser = subparsers.add_parser(
        "preview", parents=[common], help="Show the file around a finder entry"
    )
    preview_parser.add_argument("entry", help="Finder entry as printed by fzf")
    preview_parser.add_argument(
        "-n",
        "--lines",
        type=int,
        default=20,
        help="Number of file lines to show (default: 20)",
    )

    args = parser.parse_args(argv)

    # Setup logging based on verbosity
    if getattr(args, "verbose", False):
        setup_logging("DEBUG")
    else:
        setup_logging("WARNING")

    if args.command == "list":
        cmd_list(args)
    elif args.command == "find":
        sys.exit(asyncio.run(cmd_find(args)))
    elif args.command == "preview":
        sys.exit(cmd_preview(args))
    else:
        parser.print_help()


def _load_store(path: Path) -> MemoryRecordStore:
    if not path.exists():
        console.print(f"[red]Node file not found: {path}[/red]")
        sys.exit(1)
    return MemoryRecordStore.from_yaml(path)


def cmd_list(args: argparse.Namespace) -> None:
    """List the items each node expands into."""
    store = _load_store(args.nodes)
    items = collect_items(store.ids(), store.get_sync, default_node_to_items)

    table = Table(title="Selectable Items")
    table.add_column("Label", style="cyan")
    table.add_column("Id", style="dim")
    table.add_column("Location")

    for item in items:
        node = store.get_sync(item.id)
        location = f"{node.file}:{node.range.start.row + 1}" if node else ""
        table.add_row(item.label, item.id, location)

    console.print(table)
    console.print(f"\n[dim]Total: {len(items)} items from {len(store)} nodes[/dim]")


async def cmd_find(args: argparse.Namespace) -> int:
    """Run a node selection and print its outcome; returns the exit status."""
    store = _load_store(args.nodes)
    try:
        config = SelectConfig.from_yaml(args.config) if args.config else SelectConfig()
        if args.backend:
            config.backend = args.backend
        if config.preview_command is None:
            config.preview_command = preview_command(args.nodes)
        options = NodeSelectOptions(
            initial_input=args.query,
            auto_select=args.auto_select,
            allow_select_missing=args.allow_missing,
            include=args.include,
            exclude=args.exclude,
        )
    except ConfigError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        return 2

    renderer = TUIRenderer(sys.stderr) if config.backend == "builtin" else None
    registry = BackendRegistry()
    api = NodeSelectApi(store, config, registry=registry, renderer=renderer)
    register_with_fzf(registry, api, api.keybindings)

    chosen: list[Item] = []
    missing: list[str] = []
    select = api.select_node(options).on_choice(chosen.append).on_choice_missing(missing.append)

    backend = select.backend
    select.open()
    if isinstance(backend, SelectBuiltin) and not select.state.terminal:
        if not sys.stdin.isatty():
            console.print("[red]The builtin backend needs an interactive terminal[/red]")
            return 1
        fd = sys.stdin.fileno()
        with raw_terminal(fd):
            try:
                await backend.run(read_keys(fd))
            finally:
                if renderer is not None:
                    renderer.clear()
    await select.wait()

    if chosen:
        _print_choice(store, chosen[0])
        return 0
    if missing:
        console.print(f"[yellow]New node:[/yellow] {missing[0]}")
        return 0
    if select.state is SelectState.ACCEPTED:
        console.print(f"[dim]Accepted initial input:[/dim] {options.initial_input}")
        return 0
    console.print("[dim]Canceled[/dim]")
    return 1


def _print_choice(store: MemoryRecordStore, item: Item) -> None:
    node = store.get_sync(item.id)
    console.print(f"\n[bold]{item.label}[/bold] [dim]({item.id})[/dim]")
    if node is not None:
        start = node.range.start
        console.print(f"  File: {node.file}:{start.row + 1}:{start.column + 1}")
        if node.tags:
            console.print(f"  Tags: {', '.join(node.tags)}")


def preview_command(nodes: Path) -> str:
    """Shell command fzf runs to preview the entry under its cursor."""
    nodes_arg = shlex.quote(str(nodes.resolve()))
    return f"{shlex.quote(sys.executable)} -m roam_select.cli preview --nodes {nodes_arg} {{}}"


def cmd_preview(args: argparse.Namespace) -> int:
    """Print the lines of a node's file around the node; returns the exit status."""
    store = _load_store(args.nodes)
    location = NodeEntryFormatter(store).from_entry(args.entry, FinderOptions())
    if not location:
        console.print("[dim]No preview available[/dim]")
        return 1

    file, row, _ = location.rsplit(":", 2)
    console.print(f"[bold]{escape(location)}[/bold]")
    path = Path(file)
    if not path.is_absolute():
        path = args.nodes.parent / path
    if not path.is_file():
        console.print(f"[dim]File not found: {escape(str(path))}[/dim]")
        return 0

    target = int(row)
    lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
    first = max(1, target - 2)
    for number in range(first, min(len(lines), first + args.lines - 1) + 1):
        marker = ">" if number == target else " "
        console.print(f"{marker} {number:>4} {lines[number - 1]}", markup=False, highlight=False)
    return 0


# ---------------------------------------------------------------------------
# Terminal input
# ---------------------------------------------------------------------------


@contextlib.contextmanager
def raw_terminal(fd: int) -> Iterator[None]:
    """Put the terminal on *fd* into raw mode for the duration of the block."""
    attrs = termios.tcgetattr(fd)
    try:
        tty.setraw(fd, termios.TCSADRAIN)
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, attrs)


async def read_keys(fd: int) -> AsyncIterator[Key]:
    """Yield key presses read from *fd* until it reaches end of file."""
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[bytes] = asyncio.Queue()

    def on_readable() -> None:
        try:
            data = os.read(fd, 1024)
        except BlockingIOError:
            return
        queue.put_nowait(data)

    loop.add_reader(fd, on_readable)
    try:
        while True:
            data = await queue.get()
            if not data:
                return
            for chunk in split_keys(data):
                yield parse_key(chunk)
    finally:
        loop.remove_reader(fd)


if __name__ == "__main__":
    main()
