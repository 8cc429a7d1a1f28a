"""Depth-first directory tree walker.

The walker calls a visitor once per directory entry, plus a ``DIR_ENTERED``
pseudo-entry for every directory it opens (the root included) and, when
asked, a ``DIR_LEFT`` pseudo-entry once that directory is done.

Visitor contract::

    visitor(path, entry, context) -> VisitResult | None

``None`` and ``CONTINUE`` carry on. ``ERROR`` counts an error; without
``ignore_errors`` the rest of the current directory is skipped and the parent
carries on with its next entry. ``ABORT`` stops the whole walk at once.

Paths given to the visitor are built from the root as it was passed. With
``change_directory`` the process also sits in the directory being listed, so
``entry.name`` is usable as is.
"""

from __future__ import annotations

import errno
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .cwd import LogicalCwd
from .entries import (
    DirEntry,
    DirEntryReader,
    EntryKind,
    FileSystem,
    OSFileSystem,
    StatInfo,
    WalkEvent,
)
from .errors import (
    E_CYCLE,
    E_DANGLING_LINK,
    E_EMPTY_PATH,
    EntryError,
    LinkError,
    PathError,
    WalkError,
    from_os_error,
)
from .paths import NATIVE, PathFlavor, basename, join_and_normalize, normalize

log = logging.getLogger(__name__)

__all__ = [
    "VisitResult",
    "Visitor",
    "WalkOptions",
    "WalkStatistics",
    "TreeWalker",
    "walk",
    "WALK_ABORTED",
]

WALK_ABORTED = -1

Identity = Tuple[int, int]
EntryPredicate = Callable[[str, DirEntry], bool]


class VisitResult(Enum):
    CONTINUE = 0
    ERROR = 1
    ABORT = -1


Visitor = Callable[[str, DirEntry, Any], Optional[VisitResult]]


@dataclass(frozen=True, slots=True)
class WalkOptions:
    ignore_errors: bool = False
    recurse: bool = True
    follow_links: bool = False
    quiet: bool = False
    max_depth: int = 0
    directories_only: bool = False
    files_only: bool = False
    visit_once: bool = False
    change_directory: bool = False
    report_leave: bool = False
    enter_only: bool = False
    sort_key: Optional[Callable[[DirEntry], Any]] = None
    prune: Optional[EntryPredicate] = None

    def __post_init__(self) -> None:
        if self.directories_only and self.files_only:
            raise ValueError("directories_only and files_only are mutually exclusive")
        if self.max_depth < 0:
            raise ValueError("max_depth must be 0 (unlimited) or positive")


@dataclass(slots=True)
class WalkStatistics:
    directories_visited: int = 0
    errors_encountered: int = 0
    entries_processed: int = 0


class _LevelFailed(Exception):
    """Stop listing the current directory; the parent carries on."""


class _WalkAborted(Exception):
    """Unwind every active level back to ``TreeWalker.walk``."""


@dataclass(slots=True)
class _WalkState:
    options: WalkOptions
    stats: WalkStatistics
    visitor: Visitor
    context: Any
    cwd: Optional[LogicalCwd] = None
    visited: Optional[Dict[Identity, str]] = None
    ancestors: List[Identity] = field(default_factory=list)


class TreeWalker:
    """Call a visitor for every entry of a directory tree, depth first."""

    def __init__(
        self,
        filesystem: FileSystem | None = None,
        *,
        flavor: PathFlavor = NATIVE,
    ) -> None:
        self._fs = filesystem or OSFileSystem()
        self._flavor = flavor

    @property
    def filesystem(self) -> FileSystem:
        return self._fs

    def walk(
        self,
        root: str,
        options: WalkOptions,
        stats: WalkStatistics,
        visitor: Visitor,
        context: Any = None,
        *,
        cwd: LogicalCwd | None = None,
    ) -> int:
        """Walk the tree below ``root``.

        Returns 0 when the tree was fully visited, the number of errors
        recorded during this walk otherwise, or ``WALK_ABORTED`` (-1) when
        the visitor aborted it. ``stats`` is updated in place.
        """

        if not root:
            raise PathError(code=E_EMPTY_PATH, message="Cannot walk an empty path")
        path = normalize(root, flavor=self._flavor)
        state = _WalkState(options=options, stats=stats, visitor=visitor, context=context)
        if options.change_directory:
            state.cwd = cwd or LogicalCwd.current(filesystem=self._fs, flavor=self._flavor)

        identity = None
        if options.visit_once or options.follow_links:
            access = path
            if state.cwd is not None:
                access = join_and_normalize(state.cwd.path, path, flavor=self._flavor)
            identity = self._identity(access)
        if options.visit_once:
            state.visited = {}
            if identity is not None:
                state.visited[identity] = path

        errors_before = stats.errors_encountered
        log.debug("Walking %s", path)
        try:
            self._descend(state, path, path, 0, identity)
        except _WalkAborted:
            log.debug("Walk of %s aborted by the visitor", path)
            return WALK_ABORTED
        return stats.errors_encountered - errors_before

    def _identity(self, path: str) -> Optional[Identity]:
        try:
            return self._fs.stat(path).identity
        except OSError:
            return None

    def _descend(
        self,
        state: _WalkState,
        path: str,
        name: str,
        depth: int,
        identity: Optional[Identity],
    ) -> None:
        if identity is not None:
            state.ancestors.append(identity)
        try:
            if state.cwd is None:
                self._walk_level(state, path, path, depth)
                return
            previous = state.cwd.path
            try:
                access = state.cwd.chdir(name)
            except WalkError as exc:
                self._open_failed(state, path, exc)
                return
            try:
                self._walk_level(state, path, access, depth)
            finally:
                self._restore_cwd(state, previous)
        finally:
            if identity is not None:
                state.ancestors.pop()

    def _restore_cwd(self, state: _WalkState, previous: str) -> None:
        try:
            state.cwd.chdir(previous)
        except WalkError as exc:
            state.stats.errors_encountered += 1
            log.error("Can't return to \"%s\": %s", previous, exc.message)
            # Siblings still resolve their names against the parent.
            state.cwd.rebase(previous)

    def _walk_level(self, state: _WalkState, path: str, access: str, depth: int) -> None:
        reader = DirEntryReader(access, filesystem=self._fs, flavor=self._flavor)
        try:
            reader.open()
        except WalkError as exc:
            self._open_failed(state, path, exc)
            return

        state.stats.directories_visited += 1
        marker = DirEntry(
            basename(path, flavor=self._flavor),
            EntryKind.DIRECTORY,
            WalkEvent.DIR_ENTERED,
        )
        try:
            with reader:
                if not self._notify(state, path, marker) and not state.options.ignore_errors:
                    raise _LevelFailed()
                self._enumerate(state, reader, path, access, depth)
        except _LevelFailed:
            log.debug("Left %s early after an error", path)

        if state.options.report_leave:
            self._notify(state, path, replace(marker, event=WalkEvent.DIR_LEFT))

    def _enumerate(
        self,
        state: _WalkState,
        reader: DirEntryReader,
        path: str,
        access: str,
        depth: int,
    ) -> None:
        entries = self._read_entries(state, reader)
        if state.options.sort_key is not None:
            entries = iter(sorted(entries, key=state.options.sort_key))
        for entry in entries:
            self._process(state, entry, path, access, depth)

    def _read_entries(self, state: _WalkState, reader: DirEntryReader) -> Iterator[DirEntry]:
        while True:
            try:
                entry = reader.next()
            except EntryError as exc:
                self._record_error(state, exc)
                continue
            except WalkError as exc:
                self._record_error(state, exc)
                return
            if entry is None:
                return
            state.stats.entries_processed += 1
            yield entry

    def _process(
        self,
        state: _WalkState,
        entry: DirEntry,
        path: str,
        access: str,
        depth: int,
    ) -> None:
        options = state.options
        try:
            child = join_and_normalize(path, entry.name, flavor=self._flavor)
            child_access = child
            if access != path:
                child_access = join_and_normalize(access, entry.name, flavor=self._flavor)
        except MemoryError:
            # Only this entry is lost; its siblings are still listed.
            state.stats.errors_encountered += 1
            log.error("Out of memory building the pathname of %s in %s", entry.name, path)
            return

        target: Optional[StatInfo] = None
        link_error: Optional[WalkError] = None
        if entry.kind is EntryKind.SYMLINK and (options.follow_links or options.visit_once):
            target, link_error = self._examine_link(child_access, child)
        is_dir = entry.kind is EntryKind.DIRECTORY or (
            options.follow_links and target is not None and target.kind is EntryKind.DIRECTORY
        )

        if self._wants(options, is_dir):
            if not self._notify(state, child, entry) and not options.ignore_errors:
                raise _LevelFailed()

        if link_error is not None:
            if options.follow_links:
                self._record_error(state, link_error)
            elif not options.quiet:
                log.warning("%s", link_error)
            return
        if not is_dir or not options.recurse:
            return
        if options.max_depth and depth + 1 >= options.max_depth:
            return
        if options.prune is not None and options.prune(child, entry):
            log.debug("Pruned %s", child)
            return

        identity: Optional[Identity] = None
        if options.visit_once or options.follow_links:
            if target is None:
                try:
                    target = self._fs.stat(child_access)
                except OSError as exc:
                    self._record_error(state, from_os_error(exc, child, cls=EntryError))
                    return
            identity = target.identity

        if state.visited is not None and identity is not None:
            previous = state.visited.get(identity)
            if previous is not None:
                if not options.quiet:
                    log.info("Already visited \"%s\" as \"%s\"", child, previous)
                return
            state.visited[identity] = child
        elif identity is not None and identity in state.ancestors:
            self._record_error(
                state,
                LinkError(code=E_CYCLE, message="Link loops back", context={"path": child}),
            )
            return

        self._descend(state, child, entry.name, depth + 1, identity)

    def _examine_link(
        self, access: str, path: str
    ) -> Tuple[Optional[StatInfo], Optional[WalkError]]:
        try:
            return self._fs.stat(access), None
        except FileNotFoundError:
            return None, LinkError(
                code=E_DANGLING_LINK, message="Dangling link", context={"path": path}
            )
        except OSError as exc:
            if exc.errno == errno.ELOOP:
                return None, LinkError(
                    code=E_CYCLE, message="Link loops to itself", context={"path": path}
                )
            return None, from_os_error(exc, path, cls=LinkError)

    @staticmethod
    def _wants(options: WalkOptions, is_dir: bool) -> bool:
        if options.enter_only:
            return False
        if options.directories_only:
            return is_dir
        if options.files_only:
            return not is_dir
        return True

    def _notify(self, state: _WalkState, path: str, entry: DirEntry) -> bool:
        """Deliver ``entry``; returns False when the visitor reported an error."""
        result = state.visitor(path, entry, state.context)
        if result is VisitResult.ABORT:
            raise _WalkAborted()
        if result is VisitResult.ERROR:
            state.stats.errors_encountered += 1
            return False
        return True

    def _record_error(self, state: _WalkState, exc: WalkError) -> None:
        state.stats.errors_encountered += 1
        if not state.options.ignore_errors:
            log.error("%s", exc)
            raise _LevelFailed() from exc
        if not state.options.quiet:
            log.warning("%s", exc)

    def _open_failed(self, state: _WalkState, path: str, exc: WalkError) -> None:
        state.stats.errors_encountered += 1
        if state.options.ignore_errors:
            log.debug("Skipping \"%s\": %s", path, exc.message)
        else:
            log.error("Can't enter \"%s\": %s", path, exc.message)


def walk(
    root: str,
    options: WalkOptions,
    stats: WalkStatistics,
    visitor: Visitor,
    context: Any = None,
    *,
    filesystem: FileSystem | None = None,
    cwd: LogicalCwd | None = None,
    flavor: PathFlavor = NATIVE,
) -> int:
    return TreeWalker(filesystem, flavor=flavor).walk(
        root, options, stats, visitor, context, cwd=cwd
    )
