"""Entry filters built on gitignore-style patterns.

Filters are ``(path, entry) -> bool`` predicates. Pass one as
``WalkOptions.prune`` to keep the walker out of matching directories, and
wrap the visitor with :func:`excluding` to hide matching entries from it.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePath
from typing import Any, Callable, Dict, Iterable, Iterator, Optional

from pathspec import GitIgnoreSpec

from .entries import DirEntry, WalkEvent
from .paths import normalize
from .walker import VisitResult, Visitor

log = logging.getLogger(__name__)

__all__ = ["PatternFilter", "GitIgnoreFilter", "excluding"]

EntryPredicate = Callable[[str, DirEntry], bool]


def _candidates(relative: str, entry: DirEntry) -> Iterator[str]:
    yield relative
    if entry.is_dir or entry.event is not WalkEvent.ENTRY:
        yield f"{relative}/"


class PatternFilter:
    """Match walked paths, relative to the walk root, against glob patterns."""

    def __init__(self, patterns: Iterable[str], *, root: str = ".") -> None:
        self.patterns = [line.strip() for line in patterns if line.strip()]
        self._spec = GitIgnoreSpec.from_lines(self.patterns)
        self._root = PurePath(normalize(root))

    def _relative(self, path: str) -> str:
        try:
            return PurePath(path).relative_to(self._root).as_posix()
        except ValueError:
            return PurePath(path).as_posix()

    def matches(self, path: str, entry: DirEntry) -> bool:
        relative = self._relative(path)
        if relative in ("", "."):
            return False
        return any(self._spec.match_file(candidate) for candidate in _candidates(relative, entry))

    __call__ = matches


class GitIgnoreFilter:
    """Evaluate ``.gitignore`` files found in the walked tree, on demand."""

    def __init__(self, root: str) -> None:
        self._walk_root = PurePath(normalize(root))
        self._root = Path(root).resolve()
        self._cache: Dict[Path, Optional[GitIgnoreSpec]] = {}

    def matches(self, path: str, entry: DirEntry) -> bool:
        # Walked paths all start with the root as given, whatever the cwd is now.
        try:
            relative = PurePath(path).relative_to(self._walk_root)
        except ValueError:
            return False
        if not relative.parts:
            return False
        absolute = self._root / relative

        for ancestor in self._iter_ancestors(absolute.parent):
            spec = self._load_spec(ancestor)
            if not spec:
                continue
            rel = absolute.relative_to(ancestor).as_posix()
            if any(spec.match_file(candidate) for candidate in _candidates(rel, entry)):
                log.debug("Ignoring path due to .gitignore rules: %s", path)
                return True
        return False

    __call__ = matches

    def _iter_ancestors(self, directory: Path) -> Iterator[Path]:
        current = directory
        while True:
            yield current
            if current == self._root:
                break
            if (current / ".git").exists():
                break
            if current.parent == current:
                break
            current = current.parent

    def _load_spec(self, directory: Path) -> Optional[GitIgnoreSpec]:
        if directory in self._cache:
            return self._cache[directory]
        spec: Optional[GitIgnoreSpec] = None
        gitignore = directory / ".gitignore"
        try:
            lines = [
                line.strip()
                for line in gitignore.read_text(encoding="utf-8").splitlines()
                if line.strip() and not line.lstrip().startswith("#")
            ]
        except OSError:
            lines = []
        if lines:
            spec = GitIgnoreSpec.from_lines(lines)
        self._cache[directory] = spec
        return spec


def excluding(visitor: Visitor, predicate: EntryPredicate) -> Visitor:
    """Wrap ``visitor`` so that entries matching ``predicate`` never reach it."""

    def guarded(path: str, entry: DirEntry, context: Any) -> Optional[VisitResult]:
        if entry.event is WalkEvent.ENTRY and predicate(path, entry):
            return VisitResult.CONTINUE
        return visitor(path, entry, context)

    return guarded
