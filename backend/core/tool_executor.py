"""Tool execution engine.

This module provides the ToolExecutor class that:
- Owns the tool registry and answers questions about it
- Validates and authorizes tool calls parsed from assistant output
- Executes tools and turns every outcome into a ToolResult
"""

import json
import logging
from typing import Any, Dict, List, Optional

from core.assistant_message import ToolUse
from core.error_handler import ErrorContext, ErrorHandler
from core.permissions import PermissionManager, PermissionRequest
from tools.base import BaseTool, ToolRegistry, ToolResult, WorkspaceTool


logger = logging.getLogger(__name__)


# Parameter names that carry the object an operation acts on, by priority
TARGET_PARAMETERS = ("path", "file", "command", "target")

CONTENT_PREVIEW_LENGTH = 200


def infer_operation(tool_name: str) -> str:
    """Map a tool name to the permission operation it performs."""
    name = tool_name.lower()
    if "read" in name:
        return "read"
    if "write" in name or "modify" in name:
        return "write"
    if "delete" in name:
        return "delete"
    if "execute" in name or "command" in name:
        return "execute"
    return "unknown"


class ToolExecutor:
    """Executes tool calls on behalf of the agent loop.

    execute_tool() never raises for tool failures: unknown tools, invalid
    parameters, denied permissions and errors raised by the tool all come
    back as a ToolResult with is_error set.
    """

    def __init__(
        self,
        permission_manager: Optional[PermissionManager] = None,
        error_handler: Optional[ErrorHandler] = None,
        registry: Optional[ToolRegistry] = None
    ):
        """Initialize tool executor.

        Args:
            permission_manager: Gate for tools that require permission
            error_handler: Turns raised errors into user-facing messages
            registry: Tool registry, a new empty one by default
        """
        self.registry = registry or ToolRegistry()
        self.permission_manager = permission_manager or PermissionManager()
        self.error_handler = error_handler or ErrorHandler()

    # Registry

    def register_tool(self, tool: BaseTool) -> None:
        self.registry.register(tool)

    def register_tools(self, tools: List[BaseTool]) -> None:
        for tool in tools:
            self.registry.register(tool)

    def unregister_tool(self, name: str) -> bool:
        return self.registry.unregister(name)

    def get_tool(self, name: str) -> Optional[BaseTool]:
        return self.registry.get(name)

    def has_tool(self, name: str) -> bool:
        return self.registry.has(name)

    def get_tool_names(self) -> List[str]:
        """Tool names in registration order."""
        return self.registry.get_names()

    @property
    def tool_count(self) -> int:
        return len(self.registry)

    def get_all_parameter_names(self) -> List[str]:
        """Every parameter name declared by any tool, deduplicated in order."""
        names: Dict[str, None] = {}
        for tool in self.registry.get_all():
            for param in tool.parameters:
                names.setdefault(param.name, None)
        return list(names)

    def format_tool_definitions_as_xml(self) -> str:
        """Describe every tool with its parameters and an XML usage example."""
        sections = []
        for tool in self.registry.get_all():
            lines = [f"## {tool.name}", tool.description, ""]

            if tool.parameters:
                lines.append("**Parameters:**")
                for param in tool.parameters:
                    required = "required" if param.required else "optional"
                    lines.append(
                        f"- `{param.name}` ({param.type}) ({required}): {param.description}"
                    )
                lines.append("")

            lines.append("**Usage Example:**")
            lines.append("```xml")
            lines.append(f"<{tool.name}>")
            for param in tool.parameters:
                if param.required:
                    lines.append(f"<{param.name}>{param.name} value here</{param.name}>")
            lines.append(f"</{tool.name}>")
            lines.append("```")

            sections.append("\n".join(lines))
        return "\n\n".join(sections)

    # Change tracking

    def attach_change_tracker(self, tracker: Any) -> None:
        """Route file changes made by workspace tools to a tracker."""
        for tool in self.registry.get_all():
            if isinstance(tool, WorkspaceTool):
                tool.change_tracker = tracker

    def detach_change_tracker(self) -> None:
        for tool in self.registry.get_all():
            if isinstance(tool, WorkspaceTool):
                tool.change_tracker = None

    # Execution

    def build_permission_request(self, tool: BaseTool, params: Dict[str, Any]) -> PermissionRequest:
        """Describe a tool call for the permission gate."""
        target = ""
        for key in TARGET_PARAMETERS:
            if params.get(key):
                target = str(params[key])
                break

        content = params.get("content")
        if isinstance(content, str):
            details = content[:CONTENT_PREVIEW_LENGTH]
            if len(content) > CONTENT_PREVIEW_LENGTH:
                details += "..."
        else:
            details = json.dumps(params, indent=2, ensure_ascii=False, default=str)

        return PermissionRequest(
            tool_name=tool.name,
            operation=infer_operation(tool.name),
            target=target,
            details=details,
        )

    async def execute_tool(self, tool_use: ToolUse) -> ToolResult:
        """Validate, authorize and run one tool call.

        Args:
            tool_use: Finalized tool call from the parser

        Returns:
            ToolResult for the call, is_error set on any failure
        """
        name = tool_use.name
        tool = self.registry.get(name)

        if tool is None:
            available = ", ".join(self.registry.get_names())
            logger.warning(f"[ToolExecutor] Unknown tool requested: {name}")
            return ToolResult.failure(
                name,
                f"Error: Tool '{name}' does not exist. Available tools: {available}"
            )

        params = tool.coerce_params(tool_use.params)
        validation_error = tool.validate_params(params)
        if validation_error:
            logger.warning(f"[ToolExecutor] Invalid parameters for {name}: {validation_error}")
            expected = json.dumps([p.to_dict() for p in tool.parameters], indent=2)
            return ToolResult.failure(
                name,
                f"Error: Invalid parameters for tool '{name}'. Expected parameters: {expected}"
            )

        if tool.requires_permission:
            request = self.build_permission_request(tool, params)
            if not await self.permission_manager.check_permission(request):
                return ToolResult.failure(
                    name,
                    f"Permission denied: User did not authorize {name} operation"
                )

        logger.info(f"[ToolExecutor] Executing tool: {name}")
        try:
            output = await tool.execute(params)
        except Exception as e:
            response = self.error_handler.handle_error(
                e,
                ErrorContext(
                    operation=f"tool_execution_{name}",
                    additional_info={"tool_name": name, "params": list(params)},
                ),
            )
            return ToolResult.failure(name, response.user_message)

        return ToolResult.success(name, output)
