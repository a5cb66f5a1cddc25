"""Work modes and fixed prompt text.

This module provides:
- ModeDefinition: A work mode with its prompt fragment and edit limit
- ModeManager: Holds the current mode of a session
- Static sections of the system prompt (capabilities, goal, tool usage)
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from core.errors import ConfigurationError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModeDefinition:
    """A work mode.

    Attributes:
        id: Mode identifier used by clients
        name: Display name
        description: One-line summary
        prompt_fragment: Mode section of the system prompt
        max_file_edits: Files the model may change per task, None for no limit
    """
    id: str
    name: str
    description: str
    prompt_fragment: str
    max_file_edits: Optional[int] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "maxFileEdits": self.max_file_edits,
        }


ARCHITECT_FRAGMENT = """# Architect Mode

You are operating in **Architect Mode**. Your primary focus is on:
- **System Design**: Creating high-level architecture and design documents
- **Planning**: Breaking down complex features into manageable tasks
- **Documentation**: Writing clear technical specifications and design decisions

## Guidelines for Architect Mode:
1. **Think Before Coding**: Focus on design and planning before implementation
2. **Document Decisions**: Explain architectural choices and trade-offs
3. **Minimal Code Changes**: Limit file edits to design documents and specifications

## File Edit Restrictions:
- Prefer creating or editing documentation files (*.md, *.txt)
- Avoid making extensive code changes"""

CODE_FRAGMENT = """# Code Mode

You are operating in **Code Mode**. Your primary focus is on:
- **Implementation**: Writing clean and maintainable code
- **Refactoring**: Improving existing code structure
- **Testing**: Creating unit tests and checking correctness

## Guidelines for Code Mode:
1. **Follow Conventions**: Match the style of the surrounding code
2. **Test Your Code**: Write tests to verify functionality
3. **Incremental Changes**: Make small, focused changes that build on each other
4. **Error Handling**: Include proper error handling and validation

## File Edit Permissions:
- Full access to source code files
- Can create, modify and refactor code files"""

ASK_FRAGMENT = """# Ask Mode

You are operating in **Ask Mode**. Your primary focus is on:
- **Explanation**: Clear, detailed explanations of code and concepts
- **Guidance**: Answering questions and giving recommendations

## Guidelines for Ask Mode:
1. **Be Clear**: Break complex topics into digestible parts
2. **Use Examples**: Include code examples to illustrate concepts
3. **Minimal Edits**: Avoid making code changes unless explicitly requested

## File Edit Restrictions:
- Read-only access preferred
- Only make changes if explicitly requested by the user"""

DEBUG_FRAGMENT = """# Debug Mode

You are operating in **Debug Mode**. Your primary focus is on:
- **Error Analysis**: Understanding error messages and stack traces
- **Root Cause**: Finding the underlying cause of bugs
- **Fixing**: Providing targeted fixes for identified issues

## Guidelines for Debug Mode:
1. **Analyze First**: Examine error messages and stack traces carefully
2. **Use Diagnostics**: Use the diagnostic tools to gather information
3. **Targeted Fixes**: Make minimal, focused changes
4. **Verify Fixes**: Check that the fix does not break other functionality

## File Edit Permissions:
- Can modify files to fix bugs
- Should make minimal, targeted changes"""


DEFAULT_MODES: List[ModeDefinition] = [
    ModeDefinition(
        id="architect",
        name="Architect",
        description="Architecture design and planning",
        prompt_fragment=ARCHITECT_FRAGMENT,
        max_file_edits=3,
    ),
    ModeDefinition(
        id="code",
        name="Code",
        description="Writing and refactoring code",
        prompt_fragment=CODE_FRAGMENT,
        max_file_edits=None,
    ),
    ModeDefinition(
        id="ask",
        name="Ask",
        description="Explanations and documentation",
        prompt_fragment=ASK_FRAGMENT,
        max_file_edits=0,
    ),
    ModeDefinition(
        id="debug",
        name="Debug",
        description="Debugging and problem diagnosis",
        prompt_fragment=DEBUG_FRAGMENT,
        max_file_edits=5,
    ),
]


class ModeManager:
    """Current work mode of a session."""

    def __init__(self, default_mode: str = "code"):
        self._modes: Dict[str, ModeDefinition] = {m.id: m for m in DEFAULT_MODES}
        if default_mode not in self._modes:
            raise ConfigurationError(f"Unknown work mode: {default_mode}")
        self._current = default_mode

    @property
    def current_mode(self) -> str:
        return self._current

    def switch_mode(self, mode: str) -> ModeDefinition:
        """Switch to another mode.

        Raises:
            ConfigurationError: If the mode does not exist
        """
        if mode not in self._modes:
            raise ConfigurationError(f"Unknown work mode: {mode}")
        self._current = mode
        logger.info(f"[ModeManager] Switched to {mode} mode")
        return self._modes[mode]

    def get_current_mode_definition(self) -> ModeDefinition:
        return self._modes[self._current]

    def get_mode_definition(self, mode: str) -> Optional[ModeDefinition]:
        return self._modes.get(mode)

    def get_all_modes(self) -> List[ModeDefinition]:
        return list(self._modes.values())


TOOL_USAGE_INSTRUCTIONS = """## Tool Usage Instructions

Tool uses are formatted using XML-style tags. The tool name itself becomes the XML tag name. Each parameter is enclosed within its own set of tags.

**Important Rules:**
1. Always use the exact tool name as the XML tag name
2. Each parameter must be in its own tag
3. Required parameters must be provided
4. Tool calls must be properly formatted XML
5. You can call multiple tools in sequence

**Example:**
```xml
<tool_name>
<parameter1>value1</parameter1>
<parameter2>value2</parameter2>
</tool_name>
```"""

CAPABILITIES_SECTION = """# Capabilities

You can:
- Read and analyze code files
- Write and modify files (with user permission)
- Search for patterns in the codebase
- Execute commands in the terminal
- Access diagnostic information (errors, warnings)
- Navigate the project structure

Your responses should be clear, technically accurate and focused on the current mode's objectives."""

GOAL_SECTION = """# Goal

Your goal is to assist the developer effectively by:
1. Understanding their request or problem
2. Using available tools to gather information
3. Analyzing the situation and forming a plan
4. Taking appropriate actions using tools
5. Providing clear explanations and results

Always think step-by-step and use tools to accomplish tasks. When you've completed the task, use the attempt_completion tool to signal you're done."""

# Sent back to the model when a turn contains text but no tool call
NO_TOOL_USED_MESSAGE = (
    "[ERROR] You did not use a tool in your previous response! Please retry with a tool use.\n\n"
    "# Reminder: Instructions for Tool Use\n\n"
    "Tool uses are formatted using XML-style tags. The tool name itself becomes the XML tag name. "
    "Each parameter is enclosed within its own set of tags. Here's the structure:\n\n"
    "<actual_tool_name>\n"
    "<parameter1_name>value1</parameter1_name>\n"
    "<parameter2_name>value2</parameter2_name>\n"
    "...\n"
    "</actual_tool_name>\n\n"
    "For example, to use the attempt_completion tool:\n\n"
    "<attempt_completion>\n"
    "<result>\n"
    "I have completed the task...\n"
    "</result>\n"
    "</attempt_completion>\n\n"
    "Always use the actual tool name as the XML tag name for proper parsing and execution.\n"
)
