"""Aggregate file changes made during one task.

This module provides:
- TaskDiffTracker: Collects before/after snapshots reported by tools and
  builds a line diff per file when the task completes
"""

import difflib
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from tools.base import FileChangeRecord


logger = logging.getLogger(__name__)


class TaskDiffTracker:
    """Tracks file changes for a single task.

    For each path the first reported ``before`` and the latest ``after``
    are kept, so several edits to one file collapse into one diff.
    """

    def __init__(self, task_id: str):
        self.task_id = task_id
        self.created_at = datetime.now()
        self._files: Dict[str, Dict[str, str]] = {}

    def record_change(self, record: FileChangeRecord) -> None:
        entry = self._files.get(record.path)
        if entry is None:
            self._files[record.path] = {"before": record.before, "after": record.after}
        else:
            entry["after"] = record.after
        logger.debug(f"[TaskDiffTracker] {record.tool_name} changed {record.path}")

    @property
    def changed_paths(self) -> List[str]:
        return list(self._files)

    def build_task_diff(self) -> Optional[Dict[str, Any]]:
        """Build the aggregate diff, or None if no file actually changed."""
        files = []
        total_added = 0
        total_removed = 0

        for path, entry in self._files.items():
            if entry["before"] == entry["after"]:
                continue
            lines, added, removed = _diff_lines(entry["before"], entry["after"])
            total_added += added
            total_removed += removed
            files.append({
                "path": path,
                "added": added,
                "removed": removed,
                "lines": lines,
            })

        if not files:
            return None

        return {
            "taskId": self.task_id,
            "createdAt": self.created_at.isoformat(),
            "summary": {
                "filesChanged": len(files),
                "linesAdded": total_added,
                "linesRemoved": total_removed,
            },
            "files": files,
        }


def _split(text: str) -> List[str]:
    return text.split("\n") if text else []


def _diff_lines(before: str, after: str):
    """Full line diff with old/new line numbers. Returns (lines, added, removed)."""
    old = _split(before)
    new = _split(after)
    lines: List[Dict[str, Any]] = []
    added = 0
    removed = 0

    matcher = difflib.SequenceMatcher(a=old, b=new, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            for offset in range(i2 - i1):
                lines.append({
                    "type": "context",
                    "content": old[i1 + offset],
                    "oldLineNumber": i1 + offset + 1,
                    "newLineNumber": j1 + offset + 1,
                })
            continue

        for i in range(i1, i2):
            lines.append({"type": "remove", "content": old[i], "oldLineNumber": i + 1})
            removed += 1
        for j in range(j1, j2):
            lines.append({"type": "add", "content": new[j], "newLineNumber": j + 1})
            added += 1

    return lines, added, removed
