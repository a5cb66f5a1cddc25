"""Base tool class and tool registry.

This module provides the foundation for the modular tool system:
- ParameterDefinition: Declared parameter of a tool
- ToolResult: Immutable result of one tool call
- BaseTool: Abstract base class for all tools
- WorkspaceTool: Base for tools that touch files inside the workspace
- FileChangeRecord: A before/after snapshot reported by file-writing tools
- ToolRegistry: Ordered registry for tool lookup
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.errors import ToolError


logger = logging.getLogger(__name__)


PARAMETER_TYPES = ("string", "number", "integer", "boolean", "object", "array")

# Directories skipped when walking the workspace
IGNORED_DIRECTORIES = frozenset({
    "node_modules", ".git", "dist", "build", "out", "__pycache__",
    "venv", ".venv", ".mypy_cache", ".pytest_cache", ".tox",
})


def is_ignored_directory(name: str) -> bool:
    return name in IGNORED_DIRECTORIES or name.startswith(".")

_INT_PATTERN = re.compile(r"^[+-]?\d+$")


@dataclass(frozen=True)
class ParameterDefinition:
    """A parameter accepted by a tool."""
    name: str
    type: str
    required: bool
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ToolResult:
    """Result of a single tool call.

    Attributes:
        tool_name: Name of the tool that produced the result
        content: Output text, or the user-facing error message
        is_error: Whether the call failed
        tool_call_id: Id of the ToolUse this result answers
    """
    tool_name: str
    content: str
    is_error: bool = False
    tool_call_id: Optional[str] = None

    @classmethod
    def success(cls, tool_name: str, content: str) -> "ToolResult":
        """Create a successful result."""
        return cls(tool_name=tool_name, content=content, is_error=False)

    @classmethod
    def failure(cls, tool_name: str, content: str) -> "ToolResult":
        """Create a failure result."""
        return cls(tool_name=tool_name, content=content, is_error=True)

    def with_call_id(self, tool_call_id: Optional[str]) -> "ToolResult":
        """Return a copy correlated with a tool call."""
        return replace(self, tool_call_id=tool_call_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "type": "tool_result",
            "tool_name": self.tool_name,
            "content": self.content,
            "is_error": self.is_error,
            "tool_call_id": self.tool_call_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolResult":
        return cls(
            tool_name=data["tool_name"],
            content=data.get("content", ""),
            is_error=data.get("is_error", False),
            tool_call_id=data.get("tool_call_id"),
        )


@dataclass(frozen=True)
class FileChangeRecord:
    """File contents before and after a tool wrote to it."""
    path: str
    before: str
    after: str
    tool_name: str


def _runtime_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


class BaseTool(ABC):
    """Abstract base class for all tools.

    Each tool must implement:
    - name: Unique identifier, also its XML tag
    - description: Human-readable description shown to the model
    - parameters: Declared parameters
    - execute: The actual tool implementation, returning text
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name identifier for the tool."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        pass

    @property
    @abstractmethod
    def parameters(self) -> List[ParameterDefinition]:
        """Declared parameters of the tool."""
        pass

    @property
    def requires_permission(self) -> bool:
        """Whether the user has to authorize each call."""
        return False

    @abstractmethod
    async def execute(self, params: Dict[str, Any]) -> str:
        """Execute the tool with the given parameters.

        Args:
            params: Validated tool parameters

        Returns:
            Output text for the model

        Raises:
            AgentError: With the kind of failure
        """
        pass

    def coerce_params(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Convert string values to the declared scalar type where unambiguous.

        Parameters parsed from XML arrive as strings, so "3" for a number
        parameter becomes 3 and "true" for a boolean becomes True. Values
        that do not convert are left alone for validation to reject.
        """
        declared = {p.name: p.type for p in self.parameters}
        coerced = dict(params)
        for key, value in params.items():
            expected = declared.get(key)
            if not isinstance(value, str) or expected is None:
                continue
            text = value.strip()
            if expected == "integer" and _INT_PATTERN.match(text):
                coerced[key] = int(text)
            elif expected == "number":
                if _INT_PATTERN.match(text):
                    coerced[key] = int(text)
                else:
                    try:
                        coerced[key] = float(text)
                    except ValueError:
                        pass
            elif expected == "boolean" and text.lower() in ("true", "false"):
                coerced[key] = text.lower() == "true"
        return coerced

    def validate_params(self, params: Dict[str, Any]) -> Optional[str]:
        """Validate parameters against the declared schema.

        Returns None if valid, or an error message if invalid. Extra
        parameters are allowed.
        """
        for param in self.parameters:
            if param.required and param.name not in params:
                return f"Missing required parameter: {param.name}"

        declared = {p.name: p for p in self.parameters}
        for key, value in params.items():
            param = declared.get(key)
            if param is None:
                continue
            actual = _runtime_type(value)
            if param.type == "number" and actual in ("integer", "number"):
                continue
            if actual != param.type:
                return f"Parameter '{key}' must be of type {param.type}"

        return None

    def validate(self, params: Dict[str, Any]) -> bool:
        return self.validate_params(params) is None


class WorkspaceTool(BaseTool):
    """Base for tools confined to a workspace directory.

    File-writing subclasses report their changes to an attached tracker
    through record_change().
    """

    def __init__(self, workspace_root: Optional[Path] = None):
        self.workspace_root = Path(workspace_root or Path.cwd()).resolve()
        self.change_tracker = None

    def resolve_path(self, path: str, label: str = "Path") -> Path:
        """Resolve a path against the workspace and refuse anything outside it."""
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.workspace_root / candidate
        resolved = candidate.resolve()
        if resolved != self.workspace_root and self.workspace_root not in resolved.parents:
            raise ToolError(f"Access denied: {label} '{path}' is outside the workspace")
        return resolved

    def display_path(self, path: Path) -> str:
        """Workspace-relative path for messages and diffs."""
        try:
            return path.relative_to(self.workspace_root).as_posix()
        except ValueError:
            return str(path)

    def record_change(self, path: Path, before: str, after: str) -> None:
        if self.change_tracker is None:
            return
        self.change_tracker.record_change(FileChangeRecord(
            path=self.display_path(path),
            before=before,
            after=after,
            tool_name=self.name,
        ))


class ToolRegistry:
    """Ordered registry of tool instances.

    Registration order is preserved; it decides which opening tag the
    parser checks first.
    """

    def __init__(self):
        self._tools: Dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        """Register a tool instance, replacing any tool of the same name."""
        if tool.name in self._tools:
            logger.warning(f"[ToolRegistry] Tool {tool.name} is already registered. Overwriting.")
        self._tools[tool.name] = tool
        logger.debug(f"[ToolRegistry] Tool registered: {tool.name}")

    def get(self, name: str) -> Optional[BaseTool]:
        """Get a tool by name."""
        return self._tools.get(name)

    def get_all(self) -> List[BaseTool]:
        """Get all registered tools."""
        return list(self._tools.values())

    def get_names(self) -> List[str]:
        """Get all tool names."""
        return list(self._tools.keys())

    def has(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools

    def unregister(self, name: str) -> bool:
        """Unregister a tool by name."""
        return self._tools.pop(name, None) is not None

    def __len__(self) -> int:
        return len(self._tools)
