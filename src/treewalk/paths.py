"""Pathname normalization and joining.

All routines work on plain strings and return new strings; nothing touches
the filesystem. ``..`` parts are resolved lexically, the way a shell's
``cd`` does it for its logical current directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .errors import E_EMPTY_PATH, PathError

__all__ = [
    "PathFlavor",
    "POSIX",
    "WINDOWS",
    "NATIVE",
    "split_drive",
    "is_absolute",
    "normalize",
    "join",
    "join_and_normalize",
    "basename",
]


@dataclass(frozen=True, slots=True)
class PathFlavor:
    sep: str
    altsep: Optional[str] = None
    has_drives: bool = False

    @property
    def separators(self) -> str:
        return self.sep + (self.altsep or "")

    def is_sep(self, char: str) -> bool:
        return bool(char) and char in self.separators

    def split(self, text: str) -> List[str]:
        if self.altsep:
            text = text.replace(self.altsep, self.sep)
        return text.split(self.sep)


POSIX = PathFlavor(sep="/")
WINDOWS = PathFlavor(sep="\\", altsep="/", has_drives=True)
NATIVE = WINDOWS if os.name == "nt" else POSIX


def split_drive(path: str, *, flavor: PathFlavor = NATIVE) -> Tuple[str, str]:
    """Split ``path`` into its drive token (``"C:"``) and the remainder."""
    if flavor.has_drives and len(path) >= 2 and path[1] == ":" and path[0].isalpha():
        return path[:2], path[2:]
    return "", path


def _parse(path: str, flavor: PathFlavor) -> Tuple[str, bool, List[str]]:
    prefix, rest = split_drive(path, flavor=flavor)
    if (
        flavor.has_drives
        and not prefix
        and len(rest) > 2
        and flavor.is_sep(rest[0])
        and flavor.is_sep(rest[1])
        and not flavor.is_sep(rest[2])
    ):
        # \\server\share: keep one separator aside, the rest parses as absolute
        prefix = flavor.sep
        rest = rest[1:]
    absolute = flavor.is_sep(rest[:1])
    return prefix, absolute, flavor.split(rest)


def is_absolute(path: str, *, flavor: PathFlavor = NATIVE) -> bool:
    _, absolute, _ = _parse(path, flavor)
    return absolute


def normalize(path: str, *, flavor: PathFlavor = NATIVE) -> str:
    """Remove empty, ``.`` and ``name/..`` parts from ``path``.

    Leading ``..`` parts are kept for relative paths and dropped for absolute
    ones, since nothing lies above the root. An empty relative result is
    ``"."``. Trailing separators are not preserved.
    """

    if not path:
        raise PathError(code=E_EMPTY_PATH, message="Cannot normalize an empty path")

    prefix, absolute, parts = _parse(path, flavor)
    segments: List[str] = []
    for part in parts:
        if not part or part == ".":
            continue
        if part == "..":
            if segments and segments[-1] != "..":
                segments.pop()
                continue
            if absolute:
                continue
        segments.append(part)

    if not segments and prefix == flavor.sep:
        prefix = ""
    body = flavor.sep.join(segments)
    if absolute:
        body = flavor.sep + body
    if not body and not prefix:
        body = "."
    return prefix + body


def join(
    base: Optional[str],
    addition: Optional[str],
    *,
    flavor: PathFlavor = NATIVE,
) -> str:
    """Return the path reached by ``cd base; cd addition``.

    An absolute ``addition`` replaces ``base`` and comes back normalized; it
    inherits the drive of ``base`` when it has none of its own. A relative
    ``addition`` is appended with exactly one separator in between. When one
    side is missing the other is returned as is.
    """

    if not addition:
        if not base:
            raise PathError(code=E_EMPTY_PATH, message="Cannot join two empty paths")
        return base
    if not base:
        return addition

    base_drive, base_rest = split_drive(base, flavor=flavor)
    drive, rest = split_drive(addition, flavor=flavor)
    if is_absolute(addition, flavor=flavor):
        return normalize(addition if drive else base_drive + addition, flavor=flavor)
    if drive:
        if drive.lower() != base_drive.lower():
            return addition
        addition = rest
        if not addition:
            return base
    if not base_rest or flavor.is_sep(base_rest[-1]):
        return base + addition
    return base + flavor.sep + addition


def join_and_normalize(
    base: Optional[str],
    addition: Optional[str],
    *,
    flavor: PathFlavor = NATIVE,
) -> str:
    return normalize(join(base, addition, flavor=flavor), flavor=flavor)


def basename(path: str, *, flavor: PathFlavor = NATIVE) -> str:
    """Last named part of ``path``, or the normalized path when it has none."""
    _, _, parts = _parse(path, flavor)
    names = [part for part in parts if part and part != "."]
    if names:
        return names[-1]
    return normalize(path, flavor=flavor)
