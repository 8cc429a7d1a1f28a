"""Helpers for building scratch trees and instrumented filesystems in tests."""

from __future__ import annotations

import errno
import os
from pathlib import Path, PurePath
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

import pytest

from treewalk.entries import DirEntry, EntryKind, OSFileSystem, RawEntry, WalkEvent
from treewalk.walker import VisitResult

Layout = Dict[str, Union["Layout", str]]


def make_tree(root: Path, layout: Layout) -> Path:
    """Create directories (dict values) and files (str values) below ``root``."""
    root.mkdir(parents=True, exist_ok=True)
    for name, content in layout.items():
        target = root / name
        if isinstance(content, dict):
            make_tree(target, content)
        else:
            target.write_text(content, encoding="utf-8")
    return root


def symlink_or_skip(link: Path, target: Union[Path, str], *, target_is_directory: bool = False) -> None:
    try:
        os.symlink(target, link, target_is_directory=target_is_directory)
    except (OSError, NotImplementedError, AttributeError) as exc:
        pytest.skip(f"symbolic links unavailable: {exc}")


class _UnknownKindStream:
    def __init__(self, inner) -> None:
        self._inner = inner
        self.closed = False

    def __iter__(self) -> Iterator[RawEntry]:
        for raw in self._inner:
            yield RawEntry(raw.name)

    def close(self) -> None:
        self.closed = True
        self._inner.close()


class UnknownKindFileSystem(OSFileSystem):
    """Lists entries without their kind, like filesystems that leave d_type unset."""

    def __init__(self) -> None:
        self.lstat_calls: List[str] = []
        self.streams: List[_UnknownKindStream] = []

    def scandir(self, path: str):
        stream = _UnknownKindStream(super().scandir(path))
        self.streams.append(stream)
        return stream

    def lstat(self, path: str):
        self.lstat_calls.append(path)
        return super().lstat(path)


class ListStream:
    def __init__(self, entries: Iterable[RawEntry], fail_after: Optional[int] = None) -> None:
        self._entries = list(entries)
        self._fail_after = fail_after
        self.closed = False

    def __iter__(self) -> Iterator[RawEntry]:
        for index, raw in enumerate(self._entries):
            if self._fail_after is not None and index == self._fail_after:
                raise OSError(errno.EIO, "Input/output error")
            yield raw

    def close(self) -> None:
        self.closed = True


class ScriptedFileSystem(OSFileSystem):
    """Real filesystem, except for the failures it is told to inject."""

    def __init__(
        self,
        *,
        deny_open: Iterable[str] = (),
        vanish: Iterable[str] = (),
        deny_lstat: Iterable[str] = (),
        unknown_kinds: bool = False,
    ) -> None:
        self.deny_open = set(deny_open)
        self.vanish = set(vanish)
        self.deny_lstat = set(deny_lstat)
        self.unknown_kinds = unknown_kinds
        self.streams: List[object] = []

    def scandir(self, path: str):
        if PurePath(path).name in self.deny_open:
            raise PermissionError(errno.EACCES, "Permission denied", path)
        stream = super().scandir(path)
        if self.unknown_kinds:
            stream = _UnknownKindStream(stream)
        self.streams.append(stream)
        return stream

    def lstat(self, path: str):
        name = PurePath(path).name
        if name in self.vanish:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", path)
        if name in self.deny_lstat:
            raise PermissionError(errno.EACCES, "Permission denied", path)
        return super().lstat(path)


class Recorder:
    """Visitor recording every call, answering from a table of scripted results."""

    def __init__(self, results: Optional[Dict[Tuple[str, WalkEvent], VisitResult]] = None) -> None:
        self.calls: List[Tuple[str, WalkEvent, EntryKind]] = []
        self.results = results or {}

    def __call__(self, path: str, entry: DirEntry, context: object) -> VisitResult:
        posix = PurePath(path).as_posix()
        self.calls.append((posix, entry.event, entry.kind))
        return self.results.get((posix, entry.event), VisitResult.CONTINUE)

    def paths(self, event: WalkEvent = WalkEvent.ENTRY) -> List[str]:
        return [path for path, seen, _ in self.calls if seen is event]

    def kinds(self) -> Dict[str, EntryKind]:
        return {path: kind for path, seen, kind in self.calls if seen is WalkEvent.ENTRY}
