"""Built-in visitor tasks."""

from .dir_size import dir_size  # noqa: F401
from .list_entries import list_entries  # noqa: F401
from .run_command import run_command  # noqa: F401
from .show_links import show_links  # noqa: F401

__all__ = [
    "dir_size",
    "list_entries",
    "run_command",
    "show_links",
]
