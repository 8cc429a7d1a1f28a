from __future__ import annotations

import os
from typing import Optional

from ..entries import DirEntry, WalkEvent
from ..task_registry import TraversalContext, task
from ..walker import VisitResult


@task("Links", aliases=["symlinks"], description="Print symbolic links and their targets.")
def show_links(path: str, entry: DirEntry, context: TraversalContext) -> Optional[VisitResult]:
    if entry.event is not WalkEvent.ENTRY or not entry.is_symlink:
        return None
    try:
        target = os.readlink(context.entry_path(path, entry))
    except OSError as exc:
        context.logger.warning("Can't read link \"%s\": %s", path, exc.strerror or exc)
        return VisitResult.ERROR
    context.emit(f"{path} -> {target}")
    return None
