"""System prompt assembly.

This module provides the PromptBuilder class that joins the role, the
current mode, the tool definitions, environment context, capabilities,
rules and goal into one system prompt.
"""

import platform
from pathlib import Path

from config.prompts import (
    CAPABILITIES_SECTION,
    GOAL_SECTION,
    TOOL_USAGE_INSTRUCTIONS,
    ModeManager,
)
from core.tool_executor import ToolExecutor


class PromptBuilder:
    """Builds the system prompt for the current mode and tool set."""

    def __init__(self, mode_manager: ModeManager, tool_executor: ToolExecutor, workspace_root: Path):
        self.mode_manager = mode_manager
        self.tool_executor = tool_executor
        self.workspace_root = workspace_root

    def build_system_prompt(self) -> str:
        sections = [
            self._role_section(),
            self.mode_manager.get_current_mode_definition().prompt_fragment,
            self._tools_section(),
            self._context_section(),
            CAPABILITIES_SECTION,
            self._rules_section(),
            GOAL_SECTION,
        ]
        return "\n\n".join(sections)

    def _role_section(self) -> str:
        mode = self.mode_manager.get_current_mode_definition()
        return (
            "# AI Coding Assistant\n\n"
            "You are an AI coding assistant connected to the developer's editor. You help with "
            "code analysis, debugging, refactoring and implementation tasks.\n\n"
            f"**Current Mode**: {mode.name} - {mode.description}"
        )

    def _tools_section(self) -> str:
        if self.tool_executor.tool_count == 0:
            return "# Available Tools\n\nNo tools are currently available."
        return (
            "# Available Tools\n\n"
            "You have access to the following tools to interact with the project:\n\n"
            f"{self.tool_executor.format_tool_definitions_as_xml()}\n\n"
            f"{TOOL_USAGE_INSTRUCTIONS}"
        )

    def _context_section(self) -> str:
        return (
            "# Context Information\n\n"
            f"**Operating System**: {platform.system()} ({platform.machine()})\n"
            f"**Workspace**: {self.workspace_root}"
        )

    def _rules_section(self) -> str:
        mode = self.mode_manager.get_current_mode_definition()
        if mode.max_file_edits == 0:
            edit_rule = "- **File Editing**: Avoid making file changes unless explicitly requested"
        elif mode.max_file_edits is not None:
            edit_rule = f"- **File Editing**: Limit file modifications to {mode.max_file_edits} files per task"
        else:
            edit_rule = "- **File Editing**: You can modify files as needed for the task"

        return (
            "# Rules and Guidelines\n\n"
            "## General Rules:\n"
            "- Always use tools to interact with the project (don't make assumptions)\n"
            "- Verify information before making changes\n"
            "- Respect user permissions and confirmations\n"
            "- Ask for clarification when requirements are unclear\n\n"
            "## Mode-Specific Rules:\n"
            f"{edit_rule}\n"
            f"- Follow the guidelines specific to {mode.name} mode\n\n"
            "## Error Handling:\n"
            "- If a tool fails, explain the error and try a different approach\n"
            "- Don't retry the same failing operation repeatedly"
        )
