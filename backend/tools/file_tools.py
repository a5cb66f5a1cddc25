"""File operation tools.

This module provides tools for file system operations:
- ReadFileTool: Read file contents with line numbers
- WriteFileTool: Write content to files
- ListFilesTool: List directory contents
- InsertContentTool: Insert lines at a position in a file
- ApplyDiffTool: Replace one exact, unique block of text in a file
"""

import logging
from pathlib import Path
from typing import Any, Dict, List

from core.errors import FileNotFoundToolError, ToolError
from tools.base import ParameterDefinition, WorkspaceTool


logger = logging.getLogger(__name__)


def _read_text(file_path: Path, display: str) -> str:
    if not file_path.exists():
        raise FileNotFoundToolError(f"File not found: {display}")
    if not file_path.is_file():
        raise ToolError(f"Path is not a file: {display}")
    try:
        return file_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ToolError(f"Failed to read file {display}: not valid UTF-8 ({e})")
    except PermissionError:
        raise ToolError(f"Permission denied: Cannot read file {display}")


class ReadFileTool(WorkspaceTool):
    """Tool for reading file contents."""

    @property
    def name(self) -> str:
        return "read_file"

    @property
    def description(self) -> str:
        return (
            "Read the contents of a file. Returns the file content with line numbers "
            "for easy reference."
        )

    @property
    def parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition(
                name="path",
                type="string",
                required=True,
                description="The relative or absolute path to the file to read",
            ),
        ]

    async def execute(self, params: Dict[str, Any]) -> str:
        path = params["path"]
        file_path = self.resolve_path(path)
        content = _read_text(file_path, path)

        lines = content.split("\n")
        width = len(str(len(lines)))
        numbered = "\n".join(
            f"{str(i + 1).rjust(width)} | {line}"
            for i, line in enumerate(lines)
        )
        logger.debug(f"[ReadFile] Read {len(lines)} lines from {file_path}")
        return f"File: {path}\n\n{numbered}"


class WriteFileTool(WorkspaceTool):
    """Tool for writing content to files."""

    @property
    def name(self) -> str:
        return "write_file"

    @property
    def description(self) -> str:
        return (
            "Write content to a file. Creates the file if it does not exist, and creates "
            "parent directories as needed. Overwrites existing files."
        )

    @property
    def requires_permission(self) -> bool:
        return True

    @property
    def parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition(
                name="path",
                type="string",
                required=True,
                description="The relative or absolute path to the file to write",
            ),
            ParameterDefinition(
                name="content",
                type="string",
                required=True,
                description="The content to write to the file",
            ),
        ]

    async def execute(self, params: Dict[str, Any]) -> str:
        path = params["path"]
        content = params["content"]
        file_path = self.resolve_path(path)

        if file_path.is_dir():
            raise ToolError(f"Failed to write file {path}: path is a directory")

        before = file_path.read_text(encoding="utf-8", errors="replace") if file_path.exists() else ""
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(content, encoding="utf-8")
        except PermissionError:
            raise ToolError(f"Permission denied: Cannot write to file {path}")

        self.record_change(file_path, before, content)
        logger.info(f"[WriteFile] Wrote {len(content)} chars to {file_path}")

        line_count = len(content.split("\n"))
        return f"Successfully wrote to file: {path}\n{line_count} lines, {len(content)} characters"


class ListFilesTool(WorkspaceTool):
    """Tool for listing directory contents."""

    @property
    def name(self) -> str:
        return "list_files"

    @property
    def description(self) -> str:
        return (
            "List the contents of a directory. Can optionally list recursively to show "
            "the entire directory tree."
        )

    @property
    def parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition(
                name="path",
                type="string",
                required=True,
                description='The path to the directory to list. Use "." for the workspace root.',
            ),
            ParameterDefinition(
                name="recursive",
                type="boolean",
                required=False,
                description="Whether to list files recursively (default: false)",
            ),
        ]

    async def execute(self, params: Dict[str, Any]) -> str:
        path = params["path"]
        recursive = params.get("recursive") is True
        dir_path = self.resolve_path(path)

        if not dir_path.exists():
            raise FileNotFoundToolError(f"Directory not found: {path}")
        if not dir_path.is_dir():
            raise ToolError(f"Path is not a directory: {path}")

        if recursive:
            entries = self._list_recursive(dir_path, "")
        else:
            entries = sorted(self._entry_name(item) for item in dir_path.iterdir())

        if not entries:
            return f"Directory is empty: {path}"

        header = f"Directory listing (recursive): {path}" if recursive else f"Directory listing: {path}"
        return header + "\n" + "\n".join(entries)

    @staticmethod
    def _entry_name(item: Path) -> str:
        if item.is_symlink():
            return f"{item.name} -> (symlink)"
        if item.is_dir():
            return f"{item.name}/"
        return item.name

    def _list_recursive(self, dir_path: Path, prefix: str) -> List[str]:
        # Directories first, then files, each alphabetically
        items = sorted(dir_path.iterdir(), key=lambda p: (not p.is_dir() or p.is_symlink(), p.name))
        result: List[str] = []
        for item in items:
            result.append(f"{prefix}{self._entry_name(item)}")
            if item.is_dir() and not item.is_symlink():
                result.extend(self._list_recursive(item, prefix + "  "))
        return result


class InsertContentTool(WorkspaceTool):
    """Tool for inserting lines into an existing file."""

    @property
    def name(self) -> str:
        return "insert_content"

    @property
    def description(self) -> str:
        return (
            "Insert content at a specific line number in a file. Line numbers are 1-based. "
            "Content is inserted before the specified line."
        )

    @property
    def requires_permission(self) -> bool:
        return True

    @property
    def parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition(
                name="path",
                type="string",
                required=True,
                description="The relative or absolute path to the file to edit",
            ),
            ParameterDefinition(
                name="line",
                type="number",
                required=True,
                description=(
                    "The line number where content should be inserted (1-based). "
                    "Content is inserted before this line."
                ),
            ),
            ParameterDefinition(
                name="content",
                type="string",
                required=True,
                description="The content to insert. Can be multiple lines.",
            ),
        ]

    async def execute(self, params: Dict[str, Any]) -> str:
        path = params["path"]
        line_number = params["line"]
        content = params["content"]

        if isinstance(line_number, float) and line_number.is_integer():
            line_number = int(line_number)
        if not isinstance(line_number, int) or isinstance(line_number, bool) or line_number < 1:
            raise ToolError(
                f"Invalid line number: {line_number}. Line numbers must be positive integers (1-based)."
            )

        file_path = self.resolve_path(path)
        original = _read_text(file_path, path)
        lines = original.split("\n")
        total_lines = len(lines)

        if line_number > total_lines + 1:
            raise ToolError(
                f"Line number {line_number} is out of bounds. File has {total_lines} lines. "
                f"You can insert at lines 1 to {total_lines + 1}."
            )

        new_lines = content[:-1].split("\n") if content.endswith("\n") else content.split("\n")
        index = line_number - 1
        updated_lines = lines[:index] + new_lines + lines[index:]
        updated = "\n".join(updated_lines)
        file_path.write_text(updated, encoding="utf-8")

        self.record_change(file_path, original, updated)
        logger.info(f"[InsertContent] Inserted {len(new_lines)} lines into {file_path} at {line_number}")

        return (
            f"Successfully inserted content into file: {path}\n"
            f"Inserted {len(new_lines)} line(s) at line {line_number}\n"
            f"File now has {len(updated_lines)} lines (was {total_lines})"
        )


class ApplyDiffTool(WorkspaceTool):
    """Tool for search-and-replace edits."""

    @property
    def name(self) -> str:
        return "apply_diff"

    @property
    def description(self) -> str:
        return (
            "Apply precise code edits to a file by searching for exact text and replacing it. "
            "Use this for targeted code modifications."
        )

    @property
    def requires_permission(self) -> bool:
        return True

    @property
    def parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition(
                name="path",
                type="string",
                required=True,
                description="The relative or absolute path to the file to edit",
            ),
            ParameterDefinition(
                name="search",
                type="string",
                required=True,
                description=(
                    "The exact text to search for in the file. Must match exactly "
                    "including whitespace."
                ),
            ),
            ParameterDefinition(
                name="replace",
                type="string",
                required=True,
                description="The text to replace the search text with",
            ),
        ]

    async def execute(self, params: Dict[str, Any]) -> str:
        path = params["path"]
        search = params["search"]
        replacement = params["replace"]

        if not search:
            raise ToolError("Search text must not be empty")

        file_path = self.resolve_path(path)
        original = _read_text(file_path, path)

        first = original.find(search)
        if first == -1:
            raise ToolError(
                f"Search text not found in file {path}.\n"
                "Make sure the search text matches exactly, including whitespace and line endings."
            )
        if original.find(search, first + 1) != -1:
            raise ToolError(
                f"Search text appears multiple times in file {path}.\n"
                "Please provide more context in the search text to make it unique."
            )

        updated = original.replace(search, replacement, 1)
        file_path.write_text(updated, encoding="utf-8")
        self.record_change(file_path, original, updated)

        removed = len(search.split("\n"))
        added = len(replacement.split("\n"))
        net = added - removed
        sign = "+" if net > 0 else ""
        logger.info(f"[ApplyDiff] Edited {file_path}: -{removed} +{added}")
        return (
            f"Successfully applied diff to file: {path}\n"
            f"Lines changed: {removed} removed, {added} added ({sign}{net} net)"
        )
