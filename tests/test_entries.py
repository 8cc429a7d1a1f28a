from __future__ import annotations

import os
from pathlib import Path

import pytest

from fs_helpers import ListStream, ScriptedFileSystem, UnknownKindFileSystem, make_tree, symlink_or_skip
from treewalk.entries import DirEntryReader, EntryKind, OSFileSystem, RawEntry, WalkEvent, kind_from_mode
from treewalk.errors import E_NOT_FOUND, E_PERMISSION_DENIED, EntryError, WalkError


def _sample_tree(tmp_path: Path) -> Path:
    root = make_tree(tmp_path / "root", {"file.txt": "x", "sub": {"inner.txt": "y"}})
    symlink_or_skip(root / "to_file", root / "file.txt")
    symlink_or_skip(root / "to_dir", root / "sub", target_is_directory=True)
    return root


def _read_all(reader: DirEntryReader):
    with reader:
        return {entry.name: entry for entry in reader}


@pytest.mark.parametrize("filesystem", [OSFileSystem, UnknownKindFileSystem])
def test_reader_reports_resolved_kinds(tmp_path, filesystem):
    root = _sample_tree(tmp_path)
    entries = _read_all(DirEntryReader(str(root), filesystem=filesystem()))
    assert {name: entry.kind for name, entry in entries.items()} == {
        "file.txt": EntryKind.REGULAR_FILE,
        "sub": EntryKind.DIRECTORY,
        "to_file": EntryKind.SYMLINK,
        "to_dir": EntryKind.SYMLINK,
    }
    assert all(entry.event is WalkEvent.ENTRY for entry in entries.values())


def test_unknown_kinds_are_resolved_with_link_status(tmp_path):
    root = make_tree(tmp_path / "root", {"a": "1", "b": {}})
    fs = UnknownKindFileSystem()
    entries = _read_all(DirEntryReader(str(root), filesystem=fs))
    assert entries["a"].kind is EntryKind.REGULAR_FILE
    assert entries["b"].kind is EntryKind.DIRECTORY
    assert sorted(Path(p).name for p in fs.lstat_calls) == ["a", "b"]
    assert all(stream.closed for stream in fs.streams)


def test_vanished_entry_stays_unknown(tmp_path):
    root = make_tree(tmp_path / "root", {"gone": "1", "kept": "2"})
    fs = ScriptedFileSystem(vanish={"gone"}, unknown_kinds=True)
    entries = _read_all(DirEntryReader(str(root), filesystem=fs))
    assert entries["gone"].kind is EntryKind.UNKNOWN
    assert entries["kept"].kind is EntryKind.REGULAR_FILE


def test_status_failure_is_an_entry_error_and_reading_goes_on(tmp_path):
    root = make_tree(tmp_path / "root", {"locked": "1"})
    fs = ScriptedFileSystem(deny_lstat={"locked"}, unknown_kinds=True)
    reader = DirEntryReader(str(root), filesystem=fs)
    with reader:
        with pytest.raises(EntryError) as exc:
            reader.next()
        assert exc.value.code == E_PERMISSION_DENIED
        assert reader.next() is None


def test_dot_entries_are_filtered():
    class DotsFileSystem(OSFileSystem):
        def scandir(self, path):
            return ListStream([RawEntry("."), RawEntry(".."), RawEntry("x", EntryKind.REGULAR_FILE)])

    reader = DirEntryReader("anywhere", filesystem=DotsFileSystem())
    with reader:
        assert [entry.name for entry in reader] == ["x"]


def test_stream_failure_raises_walk_error():
    stream = ListStream([RawEntry("a", EntryKind.REGULAR_FILE), RawEntry("b", EntryKind.REGULAR_FILE)], fail_after=1)

    class FlakyFileSystem(OSFileSystem):
        def scandir(self, path):
            return stream

    reader = DirEntryReader("anywhere", filesystem=FlakyFileSystem())
    with reader:
        assert reader.next().name == "a"
        with pytest.raises(WalkError) as exc:
            reader.next()
        assert not isinstance(exc.value, EntryError)
    assert stream.closed


def test_open_missing_directory(tmp_path):
    reader = DirEntryReader(str(tmp_path / "missing"))
    with pytest.raises(WalkError) as exc:
        reader.open()
    assert exc.value.code == E_NOT_FOUND
    assert not reader.is_open


def test_open_twice_and_close_twice(tmp_path):
    reader = DirEntryReader(str(tmp_path))
    reader.open()
    with pytest.raises(RuntimeError):
        reader.open()
    reader.close()
    reader.close()
    with pytest.raises(RuntimeError):
        reader.next()


@pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="fifos unavailable")
def test_fifo_is_resolved(tmp_path):
    os.mkfifo(tmp_path / "pipe")
    entries = _read_all(DirEntryReader(str(tmp_path)))
    assert entries["pipe"].kind is EntryKind.FIFO


def test_kind_from_mode(tmp_path):
    (tmp_path / "f").write_text("x", encoding="utf-8")
    assert kind_from_mode(os.lstat(tmp_path / "f").st_mode) is EntryKind.REGULAR_FILE
    assert kind_from_mode(os.lstat(tmp_path).st_mode) is EntryKind.DIRECTORY
    assert kind_from_mode(0) is EntryKind.UNKNOWN
