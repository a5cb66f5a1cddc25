"""Tools module for the coding agent.

This module provides a modular, extensible tool system with:
- Base tool class for consistent interface
- Tool registry for ordered lookup
- Individual tool implementations
"""

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from tools.base import (
    BaseTool,
    FileChangeRecord,
    ParameterDefinition,
    ToolRegistry,
    ToolResult,
    WorkspaceTool,
)
from tools.file_tools import (
    ApplyDiffTool,
    InsertContentTool,
    ListFilesTool,
    ReadFileTool,
    WriteFileTool,
)
from tools.command_tools import ExecuteCommandTool
from tools.search_tools import GetDiagnosticsTool, ListCodeDefinitionsTool, SearchFilesTool
from tools.completion_tools import AttemptCompletionTool, EchoTool


def create_default_tools(
    workspace_root: Path,
    command_timeout: int = 60,
    diagnostics_source: Optional[Callable[[], List[Dict[str, Any]]]] = None
) -> List[BaseTool]:
    """Instantiate the built-in tools in registration order."""
    return [
        ReadFileTool(workspace_root),
        WriteFileTool(workspace_root),
        ListFilesTool(workspace_root),
        SearchFilesTool(workspace_root),
        ListCodeDefinitionsTool(workspace_root),
        InsertContentTool(workspace_root),
        ApplyDiffTool(workspace_root),
        ExecuteCommandTool(workspace_root, timeout=command_timeout),
        GetDiagnosticsTool(workspace_root, diagnostics_source=diagnostics_source),
        EchoTool(),
        AttemptCompletionTool(),
    ]


__all__ = [
    "BaseTool",
    "WorkspaceTool",
    "ParameterDefinition",
    "FileChangeRecord",
    "ToolRegistry",
    "ToolResult",
    "ReadFileTool",
    "WriteFileTool",
    "ListFilesTool",
    "InsertContentTool",
    "ApplyDiffTool",
    "ExecuteCommandTool",
    "SearchFilesTool",
    "GetDiagnosticsTool",
    "ListCodeDefinitionsTool",
    "AttemptCompletionTool",
    "EchoTool",
    "create_default_tools",
]
