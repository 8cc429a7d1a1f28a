from __future__ import annotations

from typing import List, Optional

from ..entries import DirEntry, EntryKind, WalkEvent
from ..task_registry import TraversalContext, task
from ..walker import VisitResult


@task(
    "Size",
    aliases=["du"],
    description="Print the total size of the files below every directory.",
    walk_overrides={"report_leave": True},
    incompatible=("directories_only", "enter_only"),
)
def dir_size(path: str, entry: DirEntry, context: TraversalContext) -> Optional[VisitResult]:
    # One [path, total] frame per directory being listed
    frames: List[list] = context.task_state(list)

    if entry.event is WalkEvent.DIR_ENTERED:
        frames.append([path, 0])
        return None
    if entry.event is WalkEvent.DIR_LEFT:
        current, total = frames.pop()
        if frames:
            frames[-1][1] += total
        context.emit(f"{total:>12}  {current}")
        return None
    if entry.kind is not EntryKind.REGULAR_FILE:
        return None

    try:
        size = context.filesystem.lstat(context.entry_path(path, entry)).size
    except OSError as exc:
        context.logger.warning("Can't get the size of \"%s\": %s", path, exc.strerror or exc)
        return VisitResult.ERROR
    frames[-1][1] += size
    return None
