"""Directory streams that always report a resolved entry kind.

Some filesystems leave the entry type unset in the directory listing. The
reader detects that case and asks for the link status of the entry instead,
so callers only ever see ``EntryKind.UNKNOWN`` for an entry that vanished
between the listing and the status query.
"""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional, Protocol, Tuple

from .errors import EntryError, from_os_error
from .paths import NATIVE, PathFlavor, join

log = logging.getLogger(__name__)

__all__ = [
    "EntryKind",
    "WalkEvent",
    "DirEntry",
    "RawEntry",
    "StatInfo",
    "FileSystem",
    "OSFileSystem",
    "DirEntryReader",
    "kind_from_mode",
]


class EntryKind(Enum):
    REGULAR_FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    CHAR_DEVICE = "char-device"
    BLOCK_DEVICE = "block-device"
    FIFO = "fifo"
    SOCKET = "socket"
    UNKNOWN = "unknown"


class WalkEvent(Enum):
    ENTRY = auto()
    DIR_ENTERED = auto()
    DIR_LEFT = auto()


@dataclass(frozen=True, slots=True)
class DirEntry:
    name: str
    kind: EntryKind
    event: WalkEvent = WalkEvent.ENTRY

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    @property
    def is_symlink(self) -> bool:
        return self.kind is EntryKind.SYMLINK


@dataclass(frozen=True, slots=True)
class RawEntry:
    name: str
    kind: EntryKind = EntryKind.UNKNOWN


@dataclass(frozen=True, slots=True)
class StatInfo:
    kind: EntryKind
    identity: Tuple[int, int]
    size: int = 0


def kind_from_mode(mode: int) -> EntryKind:
    if stat.S_ISREG(mode):
        return EntryKind.REGULAR_FILE
    if stat.S_ISDIR(mode):
        return EntryKind.DIRECTORY
    if stat.S_ISLNK(mode):
        return EntryKind.SYMLINK
    if stat.S_ISCHR(mode):
        return EntryKind.CHAR_DEVICE
    if stat.S_ISBLK(mode):
        return EntryKind.BLOCK_DEVICE
    if stat.S_ISFIFO(mode):
        return EntryKind.FIFO
    if stat.S_ISSOCK(mode):
        return EntryKind.SOCKET
    return EntryKind.UNKNOWN


class RawDirStream(Protocol):
    def __iter__(self) -> Iterator[RawEntry]: ...

    def close(self) -> None: ...


class FileSystem(Protocol):
    """Host primitives the walker relies on."""

    def scandir(self, path: str) -> RawDirStream: ...

    def lstat(self, path: str) -> StatInfo: ...

    def stat(self, path: str) -> StatInfo: ...

    def getcwd(self) -> str: ...

    def chdir(self, path: str) -> None: ...


def _reported_kind(entry: os.DirEntry) -> EntryKind:
    # Only what the listing can tell cheaply; devices, fifos and sockets stay unknown.
    try:
        if entry.is_symlink() or getattr(entry, "is_junction", lambda: False)():
            return EntryKind.SYMLINK
        if entry.is_dir(follow_symlinks=False):
            return EntryKind.DIRECTORY
        if entry.is_file(follow_symlinks=False):
            return EntryKind.REGULAR_FILE
    except OSError:
        pass
    return EntryKind.UNKNOWN


class _ScandirStream:
    def __init__(self, path: str) -> None:
        self._iterator = os.scandir(path)

    def __iter__(self) -> Iterator[RawEntry]:
        for entry in self._iterator:
            yield RawEntry(entry.name, _reported_kind(entry))

    def close(self) -> None:
        self._iterator.close()


def _stat_info(result: os.stat_result) -> StatInfo:
    return StatInfo(
        kind=kind_from_mode(result.st_mode),
        identity=(result.st_dev, result.st_ino),
        size=result.st_size,
    )


class OSFileSystem:
    """FileSystem backed by the ``os`` module."""

    def scandir(self, path: str) -> RawDirStream:
        return _ScandirStream(path)

    def lstat(self, path: str) -> StatInfo:
        return _stat_info(os.lstat(path))

    def stat(self, path: str) -> StatInfo:
        return _stat_info(os.stat(path))

    def getcwd(self) -> str:
        return os.getcwd()

    def chdir(self, path: str) -> None:
        os.chdir(path)


class DirEntryReader:
    """Read the entries of one directory, ``.`` and ``..`` excluded.

    Use it as a context manager, or pair every successful :meth:`open` with
    one :meth:`close`.
    """

    def __init__(
        self,
        path: str,
        *,
        filesystem: FileSystem | None = None,
        flavor: PathFlavor = NATIVE,
    ) -> None:
        self.path = path
        self._fs = filesystem or OSFileSystem()
        self._flavor = flavor
        self._stream: Optional[RawDirStream] = None
        self._iterator: Optional[Iterator[RawEntry]] = None

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    def open(self) -> "DirEntryReader":
        if self._stream is not None:
            raise RuntimeError(f"Directory stream already open: {self.path}")
        try:
            self._stream = self._fs.scandir(self.path)
            self._iterator = iter(self._stream)
        except OSError as exc:
            self.close()
            raise from_os_error(exc, self.path) from exc
        return self

    def next(self) -> Optional[DirEntry]:
        """Return the next entry, or ``None`` at the end of the directory.

        Raises ``WalkError`` when the stream itself fails, and ``EntryError``
        when only the current entry could not be examined.
        """

        if self._iterator is None:
            raise RuntimeError(f"Directory stream is not open: {self.path}")
        while True:
            try:
                raw = next(self._iterator)
            except StopIteration:
                return None
            except OSError as exc:
                raise from_os_error(exc, self.path) from exc
            if raw.name in (".", ".."):
                continue
            kind = raw.kind
            if kind is EntryKind.UNKNOWN:
                kind = self._resolve_kind(raw.name)
            return DirEntry(raw.name, kind)

    def _resolve_kind(self, name: str) -> EntryKind:
        pathname = join(self.path, name, flavor=self._flavor)
        try:
            return self._fs.lstat(pathname).kind
        except FileNotFoundError:
            log.debug("Entry vanished before it could be examined: %s", pathname)
            return EntryKind.UNKNOWN
        except OSError as exc:
            raise from_os_error(exc, pathname, cls=EntryError) from exc

    def close(self) -> None:
        stream, self._stream = self._stream, None
        self._iterator = None
        if stream is not None:
            stream.close()

    def __enter__(self) -> "DirEntryReader":
        if self._stream is None:
            self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __iter__(self) -> Iterator[DirEntry]:
        while (entry := self.next()) is not None:
            yield entry
