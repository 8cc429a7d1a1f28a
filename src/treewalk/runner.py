from __future__ import annotations

import logging
import signal
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Iterator, List, Optional

from rich.console import Console

from .entries import DirEntry, WalkEvent
from .filters import GitIgnoreFilter, PatternFilter, excluding
from .task_registry import TaskInvocation, TaskRegistry, TraversalContext
from .walker import WALK_ABORTED, TreeWalker, VisitResult, Visitor, WalkOptions, WalkStatistics

log = logging.getLogger(__name__)


@dataclass(slots=True)
class TraversalConfig:
    start_location: str
    tasks: List[TaskInvocation | str]
    options: WalkOptions = field(default_factory=WalkOptions)
    exclude_patterns: List[str] = field(default_factory=list)
    use_gitignore: bool = False
    dry_run: bool = False
    extra_arguments: List[str] | None = None
    console: Console | None = None
    logger: logging.Logger | None = None
    handle_interrupts: bool = False


@dataclass(slots=True)
class TraversalResult:
    status: int
    statistics: WalkStatistics

    @property
    def aborted(self) -> bool:
        return self.status == WALK_ABORTED

    @property
    def returncode(self) -> int:
        if self.aborted:
            return 2
        return 1 if self.status else 0


class _AnyOf:
    def __init__(self, predicates: Iterable[Any]) -> None:
        self._predicates = [p for p in predicates if p is not None]

    def __bool__(self) -> bool:
        return bool(self._predicates)

    def __call__(self, path: str, entry: DirEntry) -> bool:
        return any(predicate(path, entry) for predicate in self._predicates)


class TraversalRunner:
    """Walk a directory tree and run tasks against every entry."""

    def __init__(
        self,
        registry: TaskRegistry | None = None,
        walker: TreeWalker | None = None,
    ) -> None:
        self._registry = registry or TaskRegistry()
        self._walker = walker or TreeWalker()

    def run(self, config: TraversalConfig) -> TraversalResult:
        tasks = [self._resolve(item) for item in config.tasks]
        excluded = _AnyOf(self._filters(config))
        options = self._effective_options(config.options, tasks, excluded)
        context = TraversalContext(
            root=config.start_location,
            console=config.console,
            dry_run=config.dry_run,
            extra_arguments=list(config.extra_arguments or []),
            logger=config.logger or log,
            filesystem=self._walker.filesystem,
            in_directory=options.change_directory,
        )
        visitor = self._build_visitor(tasks)
        if excluded:
            visitor = excluding(visitor, excluded)

        stats = WalkStatistics()
        log.debug("Traversal start: %s", config.start_location)
        with self._interrupts(context, config.handle_interrupts):
            status = self._walker.walk(config.start_location, options, stats, visitor, context)
        log.debug(
            "Visited %d director(ies), %d entries, %d error(s)",
            stats.directories_visited,
            stats.entries_processed,
            stats.errors_encountered,
        )
        return TraversalResult(status=status, statistics=stats)

    def _resolve(self, item: TaskInvocation | str) -> TaskInvocation:
        if isinstance(item, str):
            return self._registry.resolve(item)
        return item

    def _filters(self, config: TraversalConfig) -> List[Any]:
        filters: List[Any] = []
        if config.exclude_patterns:
            filters.append(PatternFilter(config.exclude_patterns, root=config.start_location))
        if config.use_gitignore:
            filters.append(GitIgnoreFilter(config.start_location))
        return filters

    def _effective_options(
        self,
        options: WalkOptions,
        tasks: List[TaskInvocation],
        excluded: _AnyOf,
    ) -> WalkOptions:
        overrides: Dict[str, Any] = {}
        for invocation in tasks:
            for key, value in invocation.walk_overrides.items():
                if isinstance(value, bool):
                    value = value or overrides.get(key, getattr(options, key))
                overrides[key] = value
        if tasks and not any(invocation.accepts(WalkEvent.ENTRY) for invocation in tasks):
            overrides["enter_only"] = True
        if excluded:
            overrides["prune"] = _AnyOf([options.prune, excluded])
        if overrides:
            log.debug("Task walk overrides: %s", overrides)
            options = replace(options, **overrides)
        self._check_compatible(options, tasks)
        return options

    @staticmethod
    def _check_compatible(options: WalkOptions, tasks: List[TaskInvocation]) -> None:
        for invocation in tasks:
            clashing = [flag for flag in invocation.incompatible if getattr(options, flag)]
            if clashing:
                raise ValueError(f"Task {invocation.name} cannot run with {', '.join(clashing)} set")

    def _build_visitor(self, tasks: List[TaskInvocation]) -> Visitor:
        def visit(path: str, entry: DirEntry, context: TraversalContext) -> Optional[VisitResult]:
            if context.interrupted:
                return VisitResult.ABORT
            outcome = VisitResult.CONTINUE
            for invocation in tasks:
                if not invocation.accepts(entry.event):
                    continue
                result = invocation.run(path, entry, context)
                if result is VisitResult.ABORT:
                    return result
                if result is VisitResult.ERROR:
                    outcome = result
            return outcome

        return visit

    @staticmethod
    @contextmanager
    def _interrupts(context: TraversalContext, enabled: bool) -> Iterator[None]:
        if not enabled:
            yield
            return

        def interrupted(signum: int, frame: object) -> None:
            context.interrupted = True

        previous = signal.signal(signal.SIGINT, interrupted)
        try:
            yield
        finally:
            signal.signal(signal.SIGINT, previous)


__all__ = ["TraversalRunner", "TraversalConfig", "TraversalResult"]
