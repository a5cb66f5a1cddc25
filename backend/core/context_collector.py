"""Project context for user requests.

This module provides:
- FileNode: Entry of the workspace tree
- ProjectContext: Everything known about the project for one request
- ContextCollector: Gathers the workspace tree and client editor state and
  formats them as markdown sections
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.events import DiagnosticInfo, EditorContext
from tools.base import is_ignored_directory


logger = logging.getLogger(__name__)


@dataclass
class FileNode:
    """A file or directory in the workspace tree."""
    name: str
    path: str
    is_directory: bool = False
    children: List["FileNode"] = field(default_factory=list)


@dataclass
class ProjectContext:
    """Context attached to a user request."""
    editor: Optional[EditorContext] = None
    file_tree: List[FileNode] = field(default_factory=list)


class ContextCollector:
    """Collects project context for the agent.

    The workspace tree is read from disk. Editor state (active file,
    selection, cursor, diagnostics) is whatever the client sent along with
    the user message; the most recent diagnostics are kept so the
    get_diagnostics tool can report them.
    """

    def __init__(self, workspace_root: Path, max_depth: int = 3):
        self.workspace_root = Path(workspace_root).resolve()
        self.max_depth = max_depth
        self._diagnostics: List[DiagnosticInfo] = []

    def collect_context(self, editor: Optional[EditorContext] = None) -> ProjectContext:
        if editor is not None:
            self._diagnostics = list(editor.diagnostics)
        return ProjectContext(editor=editor, file_tree=self.collect_file_tree())

    def get_latest_diagnostics(self) -> List[Dict[str, Any]]:
        """Diagnostics from the last editor context, as plain dicts."""
        return [d.model_dump() for d in self._diagnostics]

    def collect_file_tree(self) -> List[FileNode]:
        if not self.workspace_root.is_dir():
            return []
        root = FileNode(
            name=self.workspace_root.name or str(self.workspace_root),
            path=".",
            is_directory=True,
            children=self._children(self.workspace_root, 1),
        )
        return [root]

    def _children(self, directory: Path, depth: int) -> List[FileNode]:
        if depth >= self.max_depth:
            return []
        try:
            entries = sorted(directory.iterdir(), key=lambda p: (not p.is_dir(), p.name.lower()))
        except OSError as e:
            logger.warning(f"[ContextCollector] Cannot read {directory}: {e}")
            return []

        nodes = []
        for entry in entries:
            relative = entry.relative_to(self.workspace_root).as_posix()
            if entry.is_dir():
                if is_ignored_directory(entry.name):
                    continue
                nodes.append(FileNode(
                    name=entry.name,
                    path=relative,
                    is_directory=True,
                    children=self._children(entry, depth + 1),
                ))
            else:
                nodes.append(FileNode(name=entry.name, path=relative))
        return nodes

    def format_context(self, context: ProjectContext) -> str:
        """Render the context as markdown sections separated by blank lines."""
        blocks: List[str] = []
        editor = context.editor

        if editor is not None:
            if editor.active_file is not None:
                active = editor.active_file
                language = f" ({active.language})" if active.language else ""
                blocks.append(f"## Active File: {active.path}{language}\n{active.content}")

            if editor.selection is not None:
                selection = editor.selection
                blocks.append(
                    f"## Selection ({selection.start_line}-{selection.end_line})\n{selection.text}"
                )

            if editor.cursor_position is not None:
                cursor = editor.cursor_position
                blocks.append(
                    f"## Cursor Position\nLine: {cursor.line}, Character: {cursor.character}"
                )

            if editor.diagnostics:
                lines = [
                    f"[{d.severity.upper()}] {d.file}:{d.line}:{d.column} - {d.message}"
                    for d in editor.diagnostics
                ]
                blocks.append(f"## Diagnostics ({len(editor.diagnostics)})\n" + "\n".join(lines))

        if context.file_tree:
            blocks.append("## Workspace Structure\n" + self.format_file_tree(context.file_tree))

        return "\n\n".join(blocks)

    def format_file_tree(self, nodes: List[FileNode], depth: int = 0) -> str:
        if depth >= self.max_depth:
            return ""

        indent = "  " * depth
        lines = []
        for node in nodes:
            if node.is_directory:
                lines.append(f"{indent}{node.name}/")
                if node.children:
                    nested = self.format_file_tree(node.children, depth + 1)
                    if nested:
                        lines.append(nested)
            else:
                lines.append(f"{indent}{node.name}")
        return "\n".join(lines)
