"""Streaming parser for XML-style tool calls in assistant output.

This module provides:
- TextContent: A run of free text from the assistant
- ToolUse: A tool invocation with its (possibly still growing) parameters
- AssistantMessageParser: Incremental parser fed chunk by chunk

Tool calls look like::

    <read_file>
    <path>src/app.py</path>
    </read_file>

Only tool names and parameter names registered with the parser are ever
recognised as tags. Anything else stays literal text.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

from core.errors import ParserLimitError


@dataclass
class TextContent:
    """Free text between tool calls."""
    content: str
    partial: bool = True
    type: str = field(default="text", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "content": self.content, "partial": self.partial}


@dataclass
class ToolUse:
    """A tool invocation parsed from assistant output.

    Attributes:
        name: Registered tool name
        params: Parameter values, raw strings as they appeared in the stream
        partial: True until the closing tag has been consumed
        id: Correlation id, assigned lazily by ensure_id()
    """
    name: str
    params: Dict[str, Any] = field(default_factory=dict)
    partial: bool = True
    id: Optional[str] = None
    type: str = field(default="tool_use", init=False)

    def ensure_id(self) -> str:
        """Return the call id, assigning one on first use."""
        if self.id is None:
            self.id = f"call_{uuid.uuid4().hex[:12]}"
        return self.id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "id": self.id,
            "name": self.name,
            "params": dict(self.params),
            "partial": self.partial,
        }


ContentBlock = Union[TextContent, ToolUse]


def _trim_one_newline(value: str) -> str:
    if value.startswith("\n"):
        value = value[1:]
    if value.endswith("\n"):
        value = value[:-1]
    return value


def _closing_prefix_length(text: str, closing_tag: str) -> int:
    """Length of the longest proper prefix of closing_tag that ends text."""
    for length in range(len(closing_tag) - 1, 0, -1):
        if text.endswith(closing_tag[:length]):
            return length
    return 0


class AssistantMessageParser:
    """Incremental parser that turns streamed text into content blocks.

    The parser is a character-driven state machine with three states:
    scanning text for a tool opening tag, inside a tool scanning for a
    parameter or the closing tag, and inside a parameter value. Matching is
    done by testing whether the accumulated text ends with a tag, so feeding
    a message in any number of chunks produces the same blocks as feeding
    it at once.

    Text that merely mentions a registered tag (for example prose that
    explains the tag syntax) is still parsed as a tag.
    """

    MAX_ACCUMULATOR_SIZE = 1024 * 1024
    MAX_PARAM_LENGTH = 1024 * 100

    # Tool whose content parameter is re-extracted from the whole tool body
    # once a closing </content> is seen, so payloads may contain the tag.
    WRITE_FILE_TOOL = "write_file"
    CONTENT_PARAM = "content"

    def __init__(
        self,
        tool_names: Iterable[str],
        param_names: Iterable[str],
        max_accumulator_size: int = MAX_ACCUMULATOR_SIZE,
        max_param_length: int = MAX_PARAM_LENGTH
    ):
        """Initialize the parser.

        Args:
            tool_names: Tool names to recognise, checked in this order
            param_names: Parameter names to recognise inside any tool
            max_accumulator_size: Hard ceiling on the whole message
            max_param_length: Soft ceiling on a single parameter value
        """
        self.tool_names: List[str] = list(dict.fromkeys(tool_names))
        self.param_names: List[str] = list(dict.fromkeys(param_names))
        self.max_accumulator_size = max_accumulator_size
        self.max_param_length = max_param_length

        self._tool_opening_tags = [f"<{name}>" for name in self.tool_names]
        self._param_opening_tags = [f"<{name}>" for name in self.param_names]
        self.reset()

    def reset(self) -> None:
        """Clear all state so the parser can be reused."""
        self._blocks: List[ContentBlock] = []
        self._accumulator = ""
        self._current_text: Optional[TextContent] = None
        self._text_start = 0
        self._current_tool: Optional[ToolUse] = None
        self._tool_start = 0
        self._current_param: Optional[str] = None
        self._param_start = 0

    @property
    def accumulated_text(self) -> str:
        """Everything fed to the parser so far."""
        return self._accumulator

    def get_content_blocks(self) -> List[ContentBlock]:
        """Return the current blocks (a new list, blocks shared)."""
        return list(self._blocks)

    def process_chunk(self, chunk: str) -> List[ContentBlock]:
        """Feed a chunk of streamed text.

        Args:
            chunk: Next piece of the assistant message

        Returns:
            The current block list, possibly with a partial last block

        Raises:
            ParserLimitError: If the message would exceed the size ceiling
        """
        if len(self._accumulator) + len(chunk) > self.max_accumulator_size:
            raise ParserLimitError("Assistant message exceeds maximum allowed size")

        acc = self._accumulator
        self._accumulator = ""
        for char in chunk:
            acc += char
            if self._current_tool is not None and self._current_param is not None:
                self._scan_param(acc)
            elif self._current_tool is not None:
                self._scan_tool(acc)
            else:
                self._scan_text(acc)
        self._accumulator = acc

        # Bring the growing block up to date once per chunk
        if self._current_text is not None:
            self._current_text.content = acc[self._text_start:].strip()
        if self._current_tool is not None and self._current_param is not None:
            if len(acc) > self._param_start:
                self._current_tool.params[self._current_param] = acc[self._param_start:]

        return self.get_content_blocks()

    def _scan_param(self, acc: str) -> None:
        tool = self._current_tool
        name = self._current_param
        value_length = len(acc) - self._param_start
        closing_tag = f"</{name}>"

        if value_length >= len(closing_tag) and acc.endswith(closing_tag):
            value = acc[self._param_start:len(acc) - len(closing_tag)]
            if name == self.CONTENT_PARAM:
                tool.params[name] = _trim_one_newline(value)
            else:
                tool.params[name] = value.strip()
            self._current_param = None
            return

        # A half-typed closing tag is not part of the value
        pending = _closing_prefix_length(acc, closing_tag)
        if value_length - pending > self.max_param_length:
            # Abandon the oversized parameter and go back to scanning the tool
            tool.params.pop(name, None)
            self._current_param = None
            self._param_start = 0

    def _scan_tool(self, acc: str) -> None:
        tool = self._current_tool

        closing_tag = f"</{tool.name}>"
        if len(acc) - self._tool_start >= len(closing_tag) and acc.endswith(closing_tag):
            tool.partial = False
            self._current_tool = None
            return

        for tag in self._param_opening_tags:
            if acc.endswith(tag):
                self._current_param = tag[1:-1]
                self._param_start = len(acc)
                return

        content_close = f"</{self.CONTENT_PARAM}>"
        if tool.name == self.WRITE_FILE_TOOL and acc.endswith(content_close):
            body = acc[self._tool_start:]
            content_open = f"<{self.CONTENT_PARAM}>"
            open_index = body.find(content_open)
            close_index = body.rfind(content_close)
            if open_index != -1:
                value_start = open_index + len(content_open)
                if close_index > value_start:
                    tool.params[self.CONTENT_PARAM] = _trim_one_newline(
                        body[value_start:close_index]
                    )

    def _scan_text(self, acc: str) -> None:
        for tag in self._tool_opening_tags:
            if acc.endswith(tag):
                self._open_tool(acc, tag)
                return

        if self._current_text is None:
            self._text_start = len(acc) - 1
            self._current_text = TextContent(content="", partial=True)
            self._blocks.append(self._current_text)

    def _open_tool(self, acc: str, tag: str) -> None:
        if self._current_text is not None:
            # Text so far still holds the tag minus its final '>'
            text = acc[self._text_start:len(acc) - 1].strip()
            self._current_text.content = text[:-(len(tag) - 1)].strip()
            self._current_text.partial = False
            if not self._current_text.content and self._blocks[-1] is self._current_text:
                self._blocks.pop()
            self._current_text = None

        self._current_tool = ToolUse(name=tag[1:-1])
        self._tool_start = len(acc)
        self._blocks.append(self._current_tool)

    def finalize_content_blocks(self) -> None:
        """Mark every block complete and trim text blocks."""
        for block in self._blocks:
            block.partial = False
            if isinstance(block, TextContent):
                block.content = block.content.strip()
        self._current_text = None
        self._current_tool = None
        self._current_param = None

    def get_tool_uses(self) -> List[ToolUse]:
        return [b for b in self._blocks if isinstance(b, ToolUse)]

    def get_display_text(self) -> str:
        """Non-empty text blocks joined by blank lines."""
        return "\n\n".join(
            b.content.strip() for b in self._blocks
            if isinstance(b, TextContent) and b.content.strip()
        )
