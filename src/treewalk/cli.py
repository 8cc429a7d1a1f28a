from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional, Sequence, Tuple

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .entries import DirEntry
from .runner import TraversalConfig, TraversalRunner
from .task_registry import TaskRegistry, get_global_registry
from .walker import WalkOptions

EPILOG = """\
examples:
  treewalk List --start ./src --exclude '__pycache__/'
  treewalk Size --max-depth 2 --follow --once
  treewalk Run --start ./projects -- git status --short
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="treewalk",
        description="Walk a directory tree depth first and hand every entry to the selected tasks.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("tasks", nargs="*", metavar="TASK", help="tasks to run on each entry, by name or alias")
    parser.add_argument("--start", default=".", metavar="DIR", help="root of the walk (default: .)")

    walk = parser.add_argument_group("walk options")
    walk.add_argument("-c", "--ignore-errors", action="store_true", help="count errors and keep going")
    walk.add_argument("-q", "--quiet", action="store_true", help="hide warnings and notices")
    walk.add_argument("--no-recurse", dest="recurse", action="store_false", help="list the start directory only")
    walk.add_argument("--follow", action="store_true", help="descend into links to directories")
    walk.add_argument("--once", action="store_true", help="enter each physical directory once")
    walk.add_argument("--max-depth", type=int, default=0, metavar="N", help="list N levels, the start directory being 1 (0: no limit)")
    only = walk.add_mutually_exclusive_group()
    only.add_argument("--dirs-only", action="store_true", help="hand directories only to the tasks")
    only.add_argument("--files-only", action="store_true", help="hand non-directories only to the tasks")
    walk.add_argument("--cd", action="store_true", help="change into each directory while it is listed")
    walk.add_argument("--leave", action="store_true", help="also notify the tasks when a directory is done")
    walk.add_argument("--sort", action="store_true", help="list entries in name order")

    filters = parser.add_argument_group("filters")
    filters.add_argument("--exclude", action="append", default=[], metavar="PATTERN", help="gitignore-style pattern to skip, repeatable")
    filters.add_argument("--gitignore", action="store_true", help="skip what .gitignore files in the tree ignore")

    output = parser.add_argument_group("output")
    output.add_argument("--dry-run", action="store_true", help="show commands instead of running them")
    output.add_argument("--color", dest="color", action="store_true", default=None, help="always use colors")
    output.add_argument("--no-color", dest="color", action="store_false", help="never use colors")
    output.add_argument("--list-tasks", action="store_true", help="show the available tasks and exit")
    output.add_argument("--debug", action="store_true", help="log debug messages, let errors raise")
    return parser


def split_command(argv: Sequence[str]) -> Tuple[List[str], List[str]]:
    """Separate treewalk's own arguments from the command following ``--``."""
    argv = list(argv)
    if "--" not in argv:
        return argv, []
    index = argv.index("--")
    return argv[:index], argv[index + 1 :]


def configure_console(color: Optional[bool]) -> Console:
    if color is None:
        color = sys.stdout.isatty()
    return Console(no_color=not color)


def configure_logging(console: Console, debug: bool) -> logging.Logger:
    handler = RichHandler(console=console, show_time=False, show_path=False, markup=False)
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )
    return logging.getLogger("treewalk")


def _by_name(entry: DirEntry) -> str:
    return entry.name


def build_walk_options(args: argparse.Namespace) -> WalkOptions:
    return WalkOptions(
        ignore_errors=args.ignore_errors,
        recurse=args.recurse,
        follow_links=args.follow,
        quiet=args.quiet,
        max_depth=args.max_depth,
        directories_only=args.dirs_only,
        files_only=args.files_only,
        visit_once=args.once,
        change_directory=args.cd,
        report_leave=args.leave,
        sort_key=_by_name if args.sort else None,
    )


def load_registry() -> TaskRegistry:
    registry = get_global_registry()
    registry.load_builtin()
    registry.load_plugins()
    return registry


def list_available_tasks(console: Console, registry: TaskRegistry) -> None:
    table = Table("Task", "Description", box=None, show_edge=False, pad_edge=False)
    for invocation in sorted(registry.tasks(), key=lambda item: item.name.lower()):
        table.add_row(invocation.name, invocation.description)
    if not table.row_count:
        console.print("No tasks registered.")
        return
    console.print(table)


def main(argv: Optional[List[str]] = None) -> int:
    own_args, command = split_command(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    args = parser.parse_args(own_args)
    console = configure_console(args.color)

    if args.list_tasks:
        list_available_tasks(console, load_registry())
        return 0
    if not args.tasks:
        parser.error("no task given (see --list-tasks)")
    if args.max_depth < 0:
        parser.error("--max-depth cannot be negative")

    logger = configure_logging(console, args.debug)
    registry = load_registry()
    try:
        tasks = [registry.resolve(name) for name in args.tasks]
    except KeyError as exc:
        parser.error(exc.args[0])

    config = TraversalConfig(
        start_location=args.start,
        tasks=tasks,
        options=build_walk_options(args),
        exclude_patterns=args.exclude,
        use_gitignore=args.gitignore,
        dry_run=args.dry_run,
        extra_arguments=command,
        console=console,
        logger=logger,
        handle_interrupts=True,
    )
    try:
        result = TraversalRunner(registry).run(config)
    except Exception as exc:
        if args.debug:
            raise
        console.print(f"[red]Error:[/] {exc}", highlight=False)
        return 1

    if result.aborted:
        logger.warning("Walk of %s interrupted", args.start)
    elif result.status:
        logger.debug("Walk of %s finished with %d error(s)", args.start, result.status)
    return result.returncode


if __name__ == "__main__":
    sys.exit(main())
