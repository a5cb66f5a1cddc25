"""Tests for per-task diff aggregation."""

from core.diff_tracker import TaskDiffTracker
from tools.base import FileChangeRecord


def _record(path, before, after, tool="write_file"):
    return FileChangeRecord(path=path, before=before, after=after, tool_name=tool)


def test_nothing_changed():
    tracker = TaskDiffTracker("task-1")
    assert tracker.build_task_diff() is None

    tracker.record_change(_record("a.txt", "same", "same"))
    assert tracker.build_task_diff() is None


def test_edits_to_one_file_collapse():
    tracker = TaskDiffTracker("task-1")
    tracker.record_change(_record("a.txt", "one\ntwo", "one\n2"))
    tracker.record_change(_record("a.txt", "one\n2", "one\n2\nthree", tool="insert_content"))

    diff = tracker.build_task_diff()

    assert diff["taskId"] == "task-1"
    assert diff["summary"] == {"filesChanged": 1, "linesAdded": 2, "linesRemoved": 1}
    assert diff["files"][0]["lines"] == [
        {"type": "context", "content": "one", "oldLineNumber": 1, "newLineNumber": 1},
        {"type": "remove", "content": "two", "oldLineNumber": 2},
        {"type": "add", "content": "2", "newLineNumber": 2},
        {"type": "add", "content": "three", "newLineNumber": 3},
    ]


def test_reverted_file_is_left_out():
    tracker = TaskDiffTracker("task-1")
    tracker.record_change(_record("a.txt", "x", "y"))
    tracker.record_change(_record("a.txt", "y", "x"))
    tracker.record_change(_record("b.txt", "", "new"))

    diff = tracker.build_task_diff()

    assert tracker.changed_paths == ["a.txt", "b.txt"]
    assert [f["path"] for f in diff["files"]] == ["b.txt"]
    assert diff["files"][0]["added"] == 1
    assert diff["files"][0]["removed"] == 0
