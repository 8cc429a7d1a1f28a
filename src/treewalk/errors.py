"""Error definitions for treewalk."""

from __future__ import annotations

import errno
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type

E_NOT_FOUND = "E_NOT_FOUND"
E_PERMISSION_DENIED = "E_PERMISSION_DENIED"
E_NOT_A_DIRECTORY = "E_NOT_A_DIRECTORY"
E_CYCLE = "E_CYCLE"
E_DANGLING_LINK = "E_DANGLING_LINK"
E_OUT_OF_MEMORY = "E_OUT_OF_MEMORY"
E_EMPTY_PATH = "E_EMPTY_PATH"
E_INVALID_PATH = "E_INVALID_PATH"
E_OS_ERROR = "E_OS_ERROR"

_ERRNO_CODES = {
    errno.ENOENT: E_NOT_FOUND,
    errno.EACCES: E_PERMISSION_DENIED,
    errno.EPERM: E_PERMISSION_DENIED,
    errno.ENOTDIR: E_NOT_A_DIRECTORY,
    errno.ELOOP: E_CYCLE,
    errno.ENOMEM: E_OUT_OF_MEMORY,
}


@dataclass
class WalkError(Exception):
    code: str
    message: str
    context: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        path = (self.context or {}).get("path")
        if path:
            return f"{self.message}: \"{path}\""
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context or {},
        }


class PathError(WalkError):
    """A pathname could not be processed."""


class EntryError(WalkError):
    """A single directory entry could not be examined; the stream is still usable."""


class LinkError(WalkError):
    """A symbolic link is dangling or loops back."""


def from_os_error(
    exc: OSError,
    path: Optional[str] = None,
    *,
    cls: Type[WalkError] = WalkError,
) -> WalkError:
    code = _ERRNO_CODES.get(exc.errno, E_OS_ERROR)
    context: Dict[str, Any] = {"errno": exc.errno}
    target = path if path is not None else exc.filename
    if target is not None:
        context["path"] = str(target)
    return cls(code=code, message=exc.strerror or str(exc), context=context)


__all__ = [
    "WalkError",
    "PathError",
    "EntryError",
    "LinkError",
    "from_os_error",
    "E_NOT_FOUND",
    "E_PERMISSION_DENIED",
    "E_NOT_A_DIRECTORY",
    "E_CYCLE",
    "E_DANGLING_LINK",
    "E_OUT_OF_MEMORY",
    "E_EMPTY_PATH",
    "E_INVALID_PATH",
    "E_OS_ERROR",
]
