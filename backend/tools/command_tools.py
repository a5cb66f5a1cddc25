"""Command execution tools.

This module provides tools for executing system commands:
- ExecuteCommandTool: Run a shell command inside the workspace
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.errors import ToolError
from tools.base import ParameterDefinition, WorkspaceTool


logger = logging.getLogger(__name__)


class ExecuteCommandTool(WorkspaceTool):
    """Tool for executing shell commands."""

    def __init__(self, workspace_root: Optional[Path] = None, timeout: int = 60):
        super().__init__(workspace_root)
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "execute_command"

    @property
    def description(self) -> str:
        return (
            "Execute a shell command and return its output. Supports specifying a working "
            "directory. Use this to run build commands, tests, linters, or other CLI tools."
        )

    @property
    def requires_permission(self) -> bool:
        return True

    @property
    def parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition(
                name="command",
                type="string",
                required=True,
                description="The shell command to execute",
            ),
            ParameterDefinition(
                name="cwd",
                type="string",
                required=False,
                description=(
                    "The working directory for the command (relative to workspace root). "
                    "Defaults to workspace root."
                ),
            ),
            ParameterDefinition(
                name="timeout",
                type="number",
                required=False,
                description="Timeout in seconds, overriding the default",
            ),
        ]

    async def execute(self, params: Dict[str, Any]) -> str:
        command = params["command"]
        cwd = params.get("cwd") or None
        timeout = params.get("timeout") or self.timeout
        if not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout <= 0:
            raise ToolError(f"Invalid timeout: {timeout}. Must be a positive number of seconds.")

        work_dir = self.resolve_path(cwd, label="Working directory") if cwd else self.workspace_root
        if not work_dir.is_dir():
            raise ToolError(f"Working directory does not exist: {cwd}")

        logger.info(f"[ExecuteCommand] Running '{command}' in {work_dir}")
        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=str(work_dir),
        )

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ToolError(f"Command timed out after {timeout} seconds: {command}")

        output = stdout.decode("utf-8", errors="replace")
        exit_code = process.returncode

        result = (
            f"Working directory: {cwd or '.'}\n"
            f"Command: {command}\n"
            f"Exit code: {exit_code}\n\n"
        )
        if output.strip():
            result += f"Output:\n{output}"
        else:
            result += "No output produced.\n"

        if exit_code != 0:
            raise ToolError(f"Command failed with exit code {exit_code}\n{result}")
        return result
