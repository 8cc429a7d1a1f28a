"""Logical current directory.

After ``chdir("link_to_dir")`` a kernel ``chdir("..")`` lands in the parent
of the link target, not back where the caller started. ``LogicalCwd`` keeps
the logical path the way shells keep ``$PWD``: relative changes are joined
onto the logical path and resolved lexically, then the resulting absolute
path is handed to the kernel.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Iterator

from .entries import FileSystem, OSFileSystem
from .errors import E_EMPTY_PATH, E_INVALID_PATH, PathError, from_os_error
from .paths import NATIVE, PathFlavor, is_absolute, join_and_normalize, normalize

log = logging.getLogger(__name__)

__all__ = ["LogicalCwd"]


class LogicalCwd:
    def __init__(
        self,
        path: str,
        *,
        filesystem: FileSystem | None = None,
        export_env: bool = False,
        flavor: PathFlavor = NATIVE,
    ) -> None:
        if not is_absolute(path, flavor=flavor):
            raise PathError(
                code=E_INVALID_PATH,
                message="Logical directory must be absolute",
                context={"path": path},
            )
        self._fs = filesystem or OSFileSystem()
        self._flavor = flavor
        self._path = normalize(path, flavor=flavor)
        self.export_env = export_env

    @classmethod
    def current(
        cls,
        *,
        filesystem: FileSystem | None = None,
        export_env: bool = False,
        flavor: PathFlavor = NATIVE,
    ) -> "LogicalCwd":
        """Build from ``$PWD`` when it designates the physical working directory."""
        fs = filesystem or OSFileSystem()
        physical = fs.getcwd()
        logical = os.environ.get("PWD")
        if logical and logical != physical:
            try:
                same = fs.stat(logical).identity == fs.stat(physical).identity
            except OSError:
                same = False
            if not same:
                log.debug("Ignoring stale PWD %s, using %s", logical, physical)
                logical = None
        if not logical or not is_absolute(logical, flavor=flavor):
            logical = physical
        return cls(logical, filesystem=fs, export_env=export_env, flavor=flavor)

    @property
    def path(self) -> str:
        return self._path

    def chdir(self, path: str) -> str:
        if not path:
            raise PathError(code=E_EMPTY_PATH, message="Cannot change to an empty path")
        target = join_and_normalize(self._path, path, flavor=self._flavor)
        try:
            self._fs.chdir(target)
        except OSError as exc:
            raise from_os_error(exc, target) from exc
        self._path = target
        if self.export_env:
            os.environ["PWD"] = target
        log.debug("chdir %s", target)
        return target

    def rebase(self, path: str) -> None:
        """Take ``path`` as the logical directory without a physical change."""
        self._path = join_and_normalize(self._path, path, flavor=self._flavor)

    @contextmanager
    def entered(self, path: str) -> Iterator[str]:
        """Change to ``path`` for the duration of the block."""
        previous = self._path
        target = self.chdir(path)
        try:
            yield target
        finally:
            self.chdir(previous)

    def __repr__(self) -> str:
        return f"LogicalCwd({self._path!r})"
