"""Conversation control tools.

This module provides:
- AttemptCompletionTool: Signals that the task is finished
- EchoTool: Echoes its input, handy for checking tool plumbing
"""

from typing import Any, Dict, List

from core.errors import ToolError
from tools.base import BaseTool, ParameterDefinition


class AttemptCompletionTool(BaseTool):
    """Completion tool. Calling it ends the task."""

    @property
    def name(self) -> str:
        return "attempt_completion"

    @property
    def description(self) -> str:
        return (
            "Use this tool when you have completed the task and want to present the final "
            "result to the user. This will end the current task execution."
        )

    @property
    def parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition(
                name="result",
                type="string",
                required=True,
                description="A summary of what was accomplished and the final result of the task",
            ),
        ]

    async def execute(self, params: Dict[str, Any]) -> str:
        result = params["result"]
        if not result or not result.strip():
            raise ToolError("Result parameter cannot be empty")
        return f"Task completed successfully.\n\nResult:\n{result}"


class EchoTool(BaseTool):
    """Echo back a message."""

    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "Echo back a message. Useful for testing tool execution."

    @property
    def parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition(
                name="message",
                type="string",
                required=True,
                description="The message to echo back",
            ),
        ]

    async def execute(self, params: Dict[str, Any]) -> str:
        return f"Echo: {params['message']}"
