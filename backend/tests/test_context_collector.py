"""Tests for project context collection and formatting."""

from core.context_collector import ContextCollector
from core.events import ActiveFile, CursorPosition, DiagnosticInfo, EditorContext, Selection


def _workspace(root):
    (root / "src" / "pkg").mkdir(parents=True)
    (root / "src" / "pkg" / "deep.py").write_text("", encoding="utf-8")
    (root / "src" / "app.py").write_text("", encoding="utf-8")
    (root / "node_modules").mkdir()
    (root / ".git").mkdir()
    (root / "setup.cfg").write_text("", encoding="utf-8")
    return root


def test_file_tree_skips_ignored_and_respects_depth(workspace):
    collector = ContextCollector(_workspace(workspace), max_depth=3)

    tree = collector.collect_file_tree()

    assert collector.format_file_tree(tree) == "workspace/\n  src/\n    pkg/\n    app.py\n  setup.cfg"


def test_format_context_with_editor_state(workspace):
    collector = ContextCollector(workspace)
    editor = EditorContext(
        active_file=ActiveFile(path="src/app.py", content="x = 1", language="python"),
        selection=Selection(text="x", start_line=1, end_line=1),
        cursor_position=CursorPosition(line=1, character=2),
        diagnostics=[DiagnosticInfo(file="src/app.py", line=1, column=5, message="unused", severity="warning")],
    )

    text = collector.format_context(collector.collect_context(editor))

    assert text.split("\n\n") == [
        "## Active File: src/app.py (python)\nx = 1",
        "## Selection (1-1)\nx",
        "## Cursor Position\nLine: 1, Character: 2",
        "## Diagnostics (1)\n[WARNING] src/app.py:1:5 - unused",
        "## Workspace Structure\nworkspace/",
    ]
    assert collector.get_latest_diagnostics()[0]["message"] == "unused"


def test_format_context_without_editor(tmp_path):
    collector = ContextCollector(tmp_path / "missing")

    assert collector.format_context(collector.collect_context()) == ""
    assert collector.get_latest_diagnostics() == []
