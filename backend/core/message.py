"""Message handling and conversation management.

This module provides:
- MessageRole: Enum for message roles
- Message: Single history item
- Conversation: Append-only history owned by one task
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Union

from tools.base import ToolResult


class MessageRole(Enum):
    """Role of a message in conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL_RESULT = "tool_result"


def format_tool_result(result: ToolResult) -> str:
    """Render a tool result the way the model sees it."""
    if result.is_error:
        return f"[TOOL ERROR: {result.tool_name}]\n{result.content}"
    return f"[TOOL RESULT: {result.tool_name}]\n{result.content}"


@dataclass
class Message:
    """Represents a single message in conversation.

    Attributes:
        role: The role of the message sender
        content: Text, or a ToolResult for tool_result messages
        timestamp: When the message was created
        tool_calls: Tool calls attached to this message (display history)
        tool_results: Tool results attached to this message (display history)
    """
    role: MessageRole
    content: Union[str, ToolResult]
    timestamp: datetime = field(default_factory=datetime.now)
    tool_calls: Optional[List[Dict[str, Any]]] = None
    tool_results: Optional[List[Dict[str, Any]]] = None

    @property
    def text(self) -> str:
        """Content as plain text."""
        if isinstance(self.content, ToolResult):
            return format_tool_result(self.content)
        return self.content

    def to_openai_format(self) -> Dict[str, Any]:
        """Convert to chat completion message format.

        The transport only speaks system/user/assistant, so tool results
        are sent as user messages.
        """
        if self.role == MessageRole.TOOL_RESULT:
            return {"role": MessageRole.USER.value, "content": self.text}
        return {"role": self.role.value, "content": self.text}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: Dict[str, Any] = {
            "role": self.role.value,
            "content": (
                self.content.to_dict() if isinstance(self.content, ToolResult) else self.content
            ),
            "timestamp": self.timestamp.isoformat(),
        }
        if self.tool_calls is not None:
            data["tool_calls"] = self.tool_calls
        if self.tool_results is not None:
            data["tool_results"] = self.tool_results
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        """Create message from dictionary."""
        content = data.get("content", "")
        if isinstance(content, dict):
            content = ToolResult.from_dict(content)
        return cls(
            role=MessageRole(data["role"]),
            content=content,
            timestamp=datetime.fromisoformat(data.get("timestamp", datetime.now().isoformat())),
            tool_calls=data.get("tool_calls"),
            tool_results=data.get("tool_results"),
        )

    @classmethod
    def system(cls, content: str, **kwargs) -> "Message":
        """Create a system message."""
        return cls(role=MessageRole.SYSTEM, content=content, **kwargs)

    @classmethod
    def user(cls, content: str) -> "Message":
        """Create a user message."""
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        """Create an assistant message."""
        return cls(role=MessageRole.ASSISTANT, content=content)

    @classmethod
    def tool_result(cls, result: ToolResult) -> "Message":
        """Create a tool result message."""
        return cls(role=MessageRole.TOOL_RESULT, content=result)


class Conversation:
    """History of one task.

    Items are only ever appended. get_openai_messages() returns the
    normalized view sent to the transport.
    """

    def __init__(self):
        self._messages: List[Message] = []

    @property
    def messages(self) -> List[Message]:
        """Get all messages."""
        return self._messages.copy()

    def add(self, message: Message) -> None:
        """Add a message to the conversation."""
        self._messages.append(message)

    def add_user(self, content: str) -> Message:
        """Add a user message."""
        msg = Message.user(content)
        self._messages.append(msg)
        return msg

    def add_assistant(self, content: str) -> Message:
        """Add an assistant message."""
        msg = Message.assistant(content)
        self._messages.append(msg)
        return msg

    def add_tool_result(self, result: ToolResult) -> Message:
        """Add a tool result message."""
        msg = Message.tool_result(result)
        self._messages.append(msg)
        return msg

    def get_openai_messages(self) -> List[Dict[str, Any]]:
        """Get messages in chat completion format."""
        return [msg.to_openai_format() for msg in self._messages]

    def __len__(self) -> int:
        """Return number of messages."""
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        """Iterate over messages."""
        return iter(self._messages)
