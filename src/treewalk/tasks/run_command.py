from __future__ import annotations

import shlex
import subprocess
from typing import Optional

from rich.markup import escape

from ..entries import DirEntry, WalkEvent
from ..task_registry import TraversalContext, task
from ..walker import VisitResult


@task(
    "Run",
    aliases=["exec", "in"],
    description="Run the command given after -- inside every directory.",
    walk_overrides={"change_directory": True},
    events={WalkEvent.DIR_ENTERED},
)
def run_command(path: str, entry: DirEntry, context: TraversalContext) -> Optional[VisitResult]:
    command = list(context.extra_arguments)
    if not command:
        raise ValueError("Run requires a command after --")

    preview = " ".join(shlex.quote(arg) for arg in command)
    if context.console:
        context.console.print(f"[bold cyan]{escape(path)}[/]: {escape(preview)}")
    else:
        print(f"{path}: {preview}")

    if context.dry_run:
        return None

    try:
        result = subprocess.run(command, check=False)
    except OSError as exc:
        context.logger.warning("Can't run %s in \"%s\": %s", command[0], path, exc.strerror or exc)
        return VisitResult.ERROR
    if result.returncode != 0:
        context.logger.warning(
            "%s failed with exit code %d in \"%s\"", command[0], result.returncode, path
        )
        return VisitResult.ERROR
    return None
