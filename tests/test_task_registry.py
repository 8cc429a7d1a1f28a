from __future__ import annotations

import io

import pytest
from rich.console import Console

from treewalk.entries import DirEntry, EntryKind, WalkEvent
from treewalk.task_registry import TaskRegistry, TraversalContext, get_global_registry
from treewalk.walker import VisitResult


def noop(path, entry, context):
    return None


def test_register_and_resolve_by_name_or_alias():
    registry = TaskRegistry()
    registry.register("List", noop, aliases=["ls"], description="print")
    assert registry.resolve("list").name == "List"
    assert registry.resolve("LS").description == "print"
    assert [task.name for task in registry.tasks()] == ["List"]


def test_duplicate_registration_is_rejected():
    registry = TaskRegistry()
    registry.register("List", noop)
    with pytest.raises(ValueError):
        registry.register("list", noop)


def test_unknown_task():
    with pytest.raises(KeyError, match="Unknown task 'Nope'"):
        TaskRegistry().resolve("Nope")


def test_walk_overrides_are_copied():
    overrides = {"report_leave": True}
    registry = TaskRegistry()
    registry.register("Size", noop, walk_overrides=overrides)
    overrides["report_leave"] = False
    assert registry.resolve("size").walk_overrides == {"report_leave": True}


def test_builtin_tasks_are_registered_globally():
    registry = get_global_registry()
    registry.load_builtin()
    names = {task.name for task in registry.tasks()}
    assert {"List", "Size", "Run", "Links"} <= names
    assert registry.resolve("du").name == "Size"
    run = registry.resolve("exec")
    assert run.walk_overrides == {"change_directory": True}
    assert run.events == frozenset({WalkEvent.DIR_ENTERED})
    assert registry.resolve("du").incompatible == ("directories_only", "enter_only")


def test_invocation_marks_the_active_task():
    seen = []

    def record(path, entry, context):
        seen.append(context.active_task)
        return VisitResult.ERROR

    registry = TaskRegistry()
    registry.register("Record", record)
    context = TraversalContext()
    result = registry.resolve("record").run("x", DirEntry("x", EntryKind.REGULAR_FILE), context)
    assert result is VisitResult.ERROR
    assert seen == ["Record"]


def test_task_state_is_kept_per_task():
    context = TraversalContext()
    context.active_task = "A"
    context.task_state(list).append(1)
    context.active_task = "B"
    assert context.task_state(list) == []
    context.active_task = "A"
    assert context.task_state(list) == [1]


def test_emit_writes_plain_text_to_the_console():
    buffer = io.StringIO()
    context = TraversalContext(console=Console(file=buffer, width=200))
    context.emit("[bold]root/x[/]")
    assert buffer.getvalue() == "[bold]root/x[/]\n"


def test_emit_without_console(capsys):
    TraversalContext().emit("root/x")
    assert capsys.readouterr().out == "root/x\n"


def test_entry_path_depends_on_working_directory():
    entry = DirEntry("x", EntryKind.REGULAR_FILE, WalkEvent.ENTRY)
    assert TraversalContext().entry_path("root/d/x", entry) == "root/d/x"
    assert TraversalContext(in_directory=True).entry_path("root/d/x", entry) == "x"


def test_unknown_task_suggests_a_close_name():
    registry = TaskRegistry()
    registry.register("Size", noop, aliases=["du"])
    with pytest.raises(KeyError, match="did you mean 'Size'"):
        registry.resolve("siz")
    assert "du" in registry
    assert "nope" not in registry


def test_event_filter():
    registry = TaskRegistry()
    everything = registry.register("All", noop)
    entered = registry.register("Entered", noop, events={WalkEvent.DIR_ENTERED})
    assert everything.accepts(WalkEvent.ENTRY)
    assert entered.accepts(WalkEvent.DIR_ENTERED)
    assert not entered.accepts(WalkEvent.ENTRY)
    assert not entered.accepts(WalkEvent.DIR_LEFT)
