"""Registry of visitor tasks.

A task is a visitor with a name. Built-in tasks live in ``treewalk.tasks``;
third-party packages add theirs through the ``treewalk.tasks`` entry point
group. A task may require walk options (``walk_overrides``) that the runner
merges into the options of the walk.
"""

from __future__ import annotations

import difflib
import importlib
import importlib.metadata
import logging
from dataclasses import dataclass, field
from typing import AbstractSet, Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from rich.console import Console

from .entries import DirEntry, FileSystem, OSFileSystem, WalkEvent
from .walker import VisitResult

log = logging.getLogger(__name__)

TaskFunc = Callable[[str, DirEntry, "TraversalContext"], Optional[VisitResult]]


@dataclass(slots=True)
class TaskInvocation:
    name: str
    func: TaskFunc
    description: str = ""
    walk_overrides: Mapping[str, Any] = field(default_factory=dict)
    events: Optional[FrozenSet[WalkEvent]] = None
    incompatible: Tuple[str, ...] = ()

    def accepts(self, event: WalkEvent) -> bool:
        return self.events is None or event in self.events

    def run(self, path: str, entry: DirEntry, context: "TraversalContext") -> Optional[VisitResult]:
        context.active_task = self.name
        return self.func(path, entry, context)


@dataclass(slots=True)
class TraversalContext:
    """Shared by every task of one walk."""

    root: str = "."
    console: Optional[Console] = None
    dry_run: bool = False
    extra_arguments: List[str] = field(default_factory=list)
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("treewalk"))
    filesystem: FileSystem = field(default_factory=OSFileSystem)
    active_task: Optional[str] = None
    in_directory: bool = False
    interrupted: bool = False
    state: Dict[str, Any] = field(default_factory=dict)

    def emit(self, text: str) -> None:
        if self.console:
            self.console.print(text, markup=False, highlight=False)
        else:
            print(text)

    def entry_path(self, path: str, entry: DirEntry) -> str:
        """Pathname usable from the process working directory."""
        return entry.name if self.in_directory else path

    def task_state(self, factory: Callable[[], Any]) -> Any:
        """Per-task scratch value, created on first use."""
        key = self.active_task or ""
        if key not in self.state:
            self.state[key] = factory()
        return self.state[key]


class TaskRegistry:
    ENTRYPOINT_GROUP = "treewalk.tasks"

    def __init__(self) -> None:
        self._by_key: Dict[str, TaskInvocation] = {}
        self._alias_keys: Dict[str, str] = {}

    def __contains__(self, name: str) -> bool:
        return self._key(name) in self._by_key

    def _key(self, name: str) -> str:
        key = name.lower()
        return self._alias_keys.get(key, key)

    def register(
        self,
        name: str,
        func: TaskFunc,
        *,
        aliases: Iterable[str] | None = None,
        description: str = "",
        walk_overrides: Mapping[str, Any] | None = None,
        events: AbstractSet[WalkEvent] | None = None,
        incompatible: Iterable[str] = (),
    ) -> TaskInvocation:
        if name in self:
            raise ValueError(f"Task '{name}' already registered")
        invocation = TaskInvocation(
            name=name,
            func=func,
            description=description,
            walk_overrides=dict(walk_overrides or {}),
            events=frozenset(events) if events is not None else None,
            incompatible=tuple(incompatible),
        )
        key = name.lower()
        self._by_key[key] = invocation
        self._alias_keys.update((alias.lower(), key) for alias in aliases or ())
        log.debug("Task %s registered", name)
        return invocation

    def resolve(self, name: str) -> TaskInvocation:
        invocation = self._by_key.get(self._key(name))
        if invocation is None:
            known = list(self._by_key) + list(self._alias_keys)
            close = difflib.get_close_matches(name.lower(), known, n=1)
            hint = f" (did you mean '{self._by_key[self._key(close[0])].name}'?)" if close else ""
            raise KeyError(f"Unknown task '{name}'{hint}")
        return invocation

    def tasks(self) -> Iterable[TaskInvocation]:
        return self._by_key.values()

    def load_builtin(self) -> None:
        importlib.import_module("treewalk.tasks")

    def load_plugins(self) -> None:
        for entry_point in importlib.metadata.entry_points().select(group=self.ENTRYPOINT_GROUP):
            try:
                entry_point.load()
            except Exception as exc:  # pragma: no cover
                log.error("Cannot load task plugin %s: %s", entry_point.name, exc)
            else:
                log.debug("Task plugin %s loaded", entry_point.name)


def task(
    name: str,
    *,
    aliases: Iterable[str] | None = None,
    description: str = "",
    walk_overrides: Mapping[str, Any] | None = None,
    events: AbstractSet[WalkEvent] | None = None,
    incompatible: Iterable[str] = (),
) -> Callable[[TaskFunc], TaskFunc]:
    """Register the decorated function in the global registry.

    ``events`` limits the walk events handed to the task, all of them by
    default. ``incompatible`` names ``WalkOptions`` flags the task cannot
    produce a meaningful result under.
    """

    def decorator(func: TaskFunc) -> TaskFunc:
        get_global_registry().register(
            name,
            func,
            aliases=aliases,
            description=description,
            walk_overrides=walk_overrides,
            events=events,
            incompatible=incompatible,
        )
        return func

    return decorator


_registry: Optional[TaskRegistry] = None


def get_global_registry() -> TaskRegistry:
    global _registry
    if _registry is None:
        _registry = TaskRegistry()
    return _registry


__all__ = [
    "TaskFunc",
    "TaskInvocation",
    "TraversalContext",
    "TaskRegistry",
    "task",
    "get_global_registry",
]
