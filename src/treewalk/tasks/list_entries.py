from __future__ import annotations

from ..entries import DirEntry, WalkEvent
from ..task_registry import TraversalContext, task


@task("List", aliases=["ls"], description="Print the pathname of every entry.")
def list_entries(path: str, entry: DirEntry, context: TraversalContext) -> None:
    if entry.event is not WalkEvent.ENTRY:
        return
    suffix = "/" if entry.is_dir else ""
    context.emit(f"{path}{suffix}")
