"""Search and inspection tools.

This module provides read-only tools that look across the workspace:
- SearchFilesTool: Regex search with surrounding context lines
- GetDiagnosticsTool: Problems reported by the editor plus Python syntax checks
- ListCodeDefinitionsTool: Outline of the classes and functions in a file
"""

import ast
import logging
import os
import re
from fnmatch import fnmatch
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from core.errors import FileNotFoundToolError, ToolError
from tools.base import ParameterDefinition, WorkspaceTool, is_ignored_directory


logger = logging.getLogger(__name__)


def iter_workspace_files(root: Path, file_pattern: str = "**/*") -> Iterator[Path]:
    """Walk the workspace, skipping ignored directories, yielding matching files."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not is_ignored_directory(d))
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            relative = path.relative_to(root).as_posix()
            if _matches(relative, file_pattern):
                yield path


def _matches(relative: str, pattern: str) -> bool:
    if pattern in ("**/*", "*", "**"):
        return True
    if pattern.startswith("**/"):
        # "**/" also matches files at the root
        return fnmatch(relative, pattern) or fnmatch(relative, pattern[3:])
    if "/" not in pattern:
        return fnmatch(relative.rsplit("/", 1)[-1], pattern)
    return fnmatch(relative, pattern)


class SearchFilesTool(WorkspaceTool):
    """Tool for regex search across workspace files."""

    MAX_CONTEXT_LINES = 10

    @property
    def name(self) -> str:
        return "search_files"

    @property
    def description(self) -> str:
        return (
            "Search for text patterns in files using regular expressions. Returns matches "
            "with surrounding context lines."
        )

    @property
    def parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition(
                name="pattern",
                type="string",
                required=True,
                description="The regular expression pattern to search for",
            ),
            ParameterDefinition(
                name="file_pattern",
                type="string",
                required=False,
                description='Glob pattern to filter files (e.g. "*.py", "src/**/*.ts"). Default: all files',
            ),
            ParameterDefinition(
                name="case_sensitive",
                type="boolean",
                required=False,
                description="Whether the search should be case-sensitive (default: false)",
            ),
            ParameterDefinition(
                name="context_lines",
                type="number",
                required=False,
                description="Number of context lines before and after each match (default: 2)",
            ),
        ]

    async def execute(self, params: Dict[str, Any]) -> str:
        pattern = params["pattern"]
        file_pattern = params.get("file_pattern") or "**/*"
        case_sensitive = params.get("case_sensitive") is True
        context_lines = params.get("context_lines", 2)

        if not isinstance(context_lines, int) or not 0 <= context_lines <= self.MAX_CONTEXT_LINES:
            raise ToolError(
                f"Invalid context_lines: {context_lines}. Must be between 0 and {self.MAX_CONTEXT_LINES}."
            )

        try:
            regex = re.compile(pattern, 0 if case_sensitive else re.IGNORECASE)
        except re.error:
            raise ToolError(f"Invalid regular expression pattern: {pattern}")

        files = list(iter_workspace_files(self.workspace_root, file_pattern))
        if not files:
            return f"No files found matching pattern: {file_pattern}"

        results: List[str] = []
        total_matches = 0
        for file_path in files:
            try:
                lines = file_path.read_text(encoding="utf-8").split("\n")
            except (UnicodeDecodeError, OSError):
                continue

            matched = {}
            for index, line in enumerate(lines):
                count = len(regex.findall(line))
                if count:
                    matched[index] = count
            if not matched:
                continue

            total_matches += sum(matched.values())
            results.append(self._format_file(file_path, lines, sorted(matched), context_lines))

        if not results:
            return (
                f"No matches found for pattern: {pattern}\n"
                f"Searched {len(files)} file(s) matching: {file_pattern}"
            )

        summary = (
            f"Found {total_matches} match(es) in {len(results)} file(s)\n"
            f"Pattern: {pattern}\n"
            f"File pattern: {file_pattern}\n"
            f"Case sensitive: {str(case_sensitive).lower()}\n"
        )
        return summary + "\n".join(results)

    def _format_file(
        self,
        file_path: Path,
        lines: List[str],
        matched: List[int],
        context_lines: int
    ) -> str:
        output = [f"\n=== {self.display_path(file_path)} ({len(matched)} matching lines) ==="]

        # Matches close enough to share context are printed as one group
        groups: List[List[int]] = [[matched[0]]]
        for index in matched[1:]:
            if index - groups[-1][-1] <= 2 * context_lines + 1:
                groups[-1].append(index)
            else:
                groups.append([index])

        matched_set = set(matched)
        for n, group in enumerate(groups):
            start = max(0, group[0] - context_lines)
            end = min(len(lines) - 1, group[-1] + context_lines)
            for i in range(start, end + 1):
                prefix = "> " if i in matched_set else "  "
                output.append(f"{prefix}{i + 1}: {lines[i]}")
            if n < len(groups) - 1:
                output.append("  ...")

        return "\n".join(output)


class GetDiagnosticsTool(WorkspaceTool):
    """Tool for reporting problems in workspace files.

    Diagnostics come from two places: whatever the editor client last
    reported (through diagnostics_source) and a syntax check of Python
    files done here.
    """

    def __init__(
        self,
        workspace_root: Optional[Path] = None,
        diagnostics_source: Optional[Callable[[], List[Dict[str, Any]]]] = None
    ):
        super().__init__(workspace_root)
        self.diagnostics_source = diagnostics_source

    @property
    def name(self) -> str:
        return "get_diagnostics"

    @property
    def description(self) -> str:
        return (
            "Get diagnostic information (errors, warnings) for a specific file or for all "
            "files in the workspace."
        )

    @property
    def parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition(
                name="path",
                type="string",
                required=False,
                description="Optional file path. If not provided, returns diagnostics for all files.",
            ),
        ]

    async def execute(self, params: Dict[str, Any]) -> str:
        path = params.get("path") or None

        if path:
            file_path = self.resolve_path(path)
            if not file_path.exists():
                raise FileNotFoundToolError(f"File not found: {path}")
            files = [file_path] if file_path.is_file() else list(iter_workspace_files(file_path))
        else:
            files = list(iter_workspace_files(self.workspace_root))

        by_file: Dict[str, List[Dict[str, Any]]] = {}
        for item in self._reported(files if path else None):
            by_file.setdefault(item["file"], []).append(item)
        for file_path in files:
            if file_path.suffix == ".py":
                problem = self._syntax_check(file_path)
                if problem:
                    by_file.setdefault(problem["file"], []).append(problem)

        if not by_file:
            return f"No diagnostics found for file: {path}" if path else "No diagnostics found in the workspace."

        counts = {"error": 0, "warning": 0, "info": 0, "hint": 0}
        header = f"Diagnostics for {path}:\n\n" if path else f"Diagnostics for {len(by_file)} file(s):\n\n"
        parts = [header]
        for file_name in sorted(by_file):
            parts.append(f"File: {file_name}\n{'=' * (len(file_name) + 6)}\n")
            for item in by_file[file_name]:
                severity = str(item.get("severity", "error")).lower()
                if severity in counts:
                    counts[severity] += 1
                source = f"[{item['source']}]" if item.get("source") else ""
                parts.append(
                    f"{severity.upper()} {source} at line {item.get('line', 1)}, "
                    f"column {item.get('column', 1)}:\n  {item.get('message', '')}\n"
                )
            parts.append("\n")

        parts.append(
            f"Summary: {counts['error']} error(s), {counts['warning']} warning(s), "
            f"{counts['info']} info(s), {counts['hint']} hint(s)\n"
        )
        return "".join(parts)

    def _reported(self, files: Optional[List[Path]]) -> List[Dict[str, Any]]:
        if self.diagnostics_source is None:
            return []
        wanted = {self.display_path(f) for f in files} if files is not None else None
        reported = []
        for item in self.diagnostics_source():
            file_name = item.get("file", "")
            if wanted is None or file_name in wanted:
                reported.append(item)
        return reported

    def _syntax_check(self, file_path: Path) -> Optional[Dict[str, Any]]:
        try:
            source = file_path.read_text(encoding="utf-8")
        except (UnicodeDecodeError, OSError):
            return None
        try:
            compile(source, str(file_path), "exec")
        except SyntaxError as e:
            return {
                "file": self.display_path(file_path),
                "line": e.lineno or 1,
                "column": e.offset or 1,
                "severity": "error",
                "message": e.msg,
                "source": "python",
            }
        except ValueError as e:
            logger.debug(f"[Diagnostics] Skipping {file_path}: {e}")
        return None


class ListCodeDefinitionsTool(WorkspaceTool):
    """Tool for an outline of the classes and functions in a file.

    Python sources are parsed with ast. Other languages have no outline
    and report that no definitions were found.
    """

    @property
    def name(self) -> str:
        return "list_code_definition_names"

    @property
    def description(self) -> str:
        return (
            "Get an overview of code definitions (classes, functions, methods) in a file. "
            "Returns a hierarchical list of definitions with their kinds and line numbers."
        )

    @property
    def parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition(
                name="path",
                type="string",
                required=True,
                description="The relative or absolute path to the file to analyze",
            ),
        ]

    async def execute(self, params: Dict[str, Any]) -> str:
        path = params["path"]
        file_path = self.resolve_path(path)
        if not file_path.exists():
            raise FileNotFoundToolError(f"File not found: {path}")
        if not file_path.is_file():
            raise ToolError(f"Path is not a file: {path}")

        definitions: List[Tuple[int, str, str, int]] = []
        if file_path.suffix == ".py":
            tree = self._parse(file_path, path)
            self._collect(tree.body, 0, False, definitions)

        if not definitions:
            return (
                f"No code definitions found in file: {path}\n\n"
                "This could mean:\n"
                "- The file is empty\n"
                "- The language doesn't support symbol extraction\n"
                "- No symbols are defined in the file"
            )

        lines = [f"Code definitions in {path}:", "=" * (len(path) + 22), ""]
        counts: Dict[str, int] = {}
        for depth, name, kind, line in definitions:
            lines.append(f"{'  ' * depth}{name} ({kind}) - Line {line}")
            counts[kind] = counts.get(kind, 0) + 1

        lines.extend(["", "Summary:"])
        for kind, count in sorted(counts.items(), key=lambda item: -item[1]):
            lines.append(f"  {kind}: {count}")
        logger.debug(f"[CodeDefinitions] {len(definitions)} definitions in {file_path}")
        return "\n".join(lines) + "\n"

    def _parse(self, file_path: Path, path: str) -> ast.Module:
        try:
            source = file_path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            raise ToolError(f"Failed to list code definitions: {path} is not valid UTF-8")
        try:
            return ast.parse(source, filename=str(file_path))
        except SyntaxError as e:
            raise ToolError(
                f"Failed to list code definitions: syntax error at line {e.lineno or 1}: {e.msg}"
            )

    def _collect(
        self,
        nodes: List[ast.stmt],
        depth: int,
        in_class: bool,
        definitions: List[Tuple[int, str, str, int]]
    ) -> None:
        for node in nodes:
            if isinstance(node, ast.ClassDef):
                definitions.append((depth, node.name, "Class", node.lineno))
                self._collect(node.body, depth + 1, True, definitions)
            elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                kind = "Method" if in_class else "Function"
                definitions.append((depth, node.name, kind, node.lineno))
                self._collect(node.body, depth + 1, False, definitions)
