"""Portable directory tree walker."""

from .cwd import LogicalCwd
from .entries import DirEntry, DirEntryReader, EntryKind, FileSystem, OSFileSystem, StatInfo, WalkEvent
from .errors import EntryError, LinkError, PathError, WalkError
from .paths import basename, is_absolute, join, join_and_normalize, normalize
from .walker import WALK_ABORTED, TreeWalker, VisitResult, WalkOptions, WalkStatistics, walk

__all__ = [
    "LogicalCwd",
    "DirEntry",
    "DirEntryReader",
    "EntryKind",
    "FileSystem",
    "OSFileSystem",
    "StatInfo",
    "WalkEvent",
    "WalkError",
    "PathError",
    "EntryError",
    "LinkError",
    "normalize",
    "join",
    "join_and_normalize",
    "is_absolute",
    "basename",
    "TreeWalker",
    "VisitResult",
    "WalkOptions",
    "WalkStatistics",
    "walk",
    "WALK_ABORTED",
]
