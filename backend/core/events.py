"""Client protocol messages.

This module provides the closed set of messages exchanged with the editor
client over the websocket:
- Outbound events published by the agent (stream chunks, tool calls, ...)
- Inbound messages sent by the client (user messages, cancel, permission
  responses, ...)
- EditorContext: Optional editor state attached to a user message

Field names are snake_case in Python and camelCase on the wire.
"""

from typing import Annotated, Any, Awaitable, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class ProtocolModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# Editor context

class DiagnosticInfo(ProtocolModel):
    file: str
    line: int = 1
    column: int = 1
    severity: str = "error"
    message: str
    source: Optional[str] = None


class ActiveFile(ProtocolModel):
    path: str
    content: str = ""
    language: Optional[str] = None


class Selection(ProtocolModel):
    text: str
    start_line: int
    end_line: int


class CursorPosition(ProtocolModel):
    line: int
    character: int


class EditorContext(ProtocolModel):
    """Editor state the client may attach to a user message."""
    active_file: Optional[ActiveFile] = None
    selection: Optional[Selection] = None
    cursor_position: Optional[CursorPosition] = None
    diagnostics: List[DiagnosticInfo] = Field(default_factory=list)


# Outbound events

class TokenUsage(ProtocolModel):
    total_tokens: int
    available_tokens: int


class StreamChunkEvent(ProtocolModel):
    type: Literal["stream_chunk"] = "stream_chunk"
    content: str
    is_streaming: bool


class ToolCallEvent(ProtocolModel):
    type: Literal["tool_call"] = "tool_call"
    tool_call: Dict[str, Any]


class ToolResultEvent(ProtocolModel):
    type: Literal["tool_result"] = "tool_result"
    content: Dict[str, Any]


class TokenUsageEvent(ProtocolModel):
    type: Literal["token_usage"] = "token_usage"
    usage: TokenUsage


class TaskDiffEvent(ProtocolModel):
    type: Literal["task_diff"] = "task_diff"
    diff: Dict[str, Any]


class TaskCompleteEvent(ProtocolModel):
    type: Literal["task_complete"] = "task_complete"


class ErrorEvent(ProtocolModel):
    type: Literal["error"] = "error"
    message: str


class PermissionRequestEvent(ProtocolModel):
    type: Literal["permission_request"] = "permission_request"
    request: Dict[str, Any]


class ModeChangedEvent(ProtocolModel):
    type: Literal["mode_changed"] = "mode_changed"
    mode: str


OutboundEvent = Annotated[
    Union[
        StreamChunkEvent,
        ToolCallEvent,
        ToolResultEvent,
        TokenUsageEvent,
        TaskDiffEvent,
        TaskCompleteEvent,
        ErrorEvent,
        PermissionRequestEvent,
        ModeChangedEvent,
    ],
    Field(discriminator="type"),
]

# Async callable the agent publishes events through
EventPublisher = Callable[[OutboundEvent], Awaitable[None]]


# Inbound messages

class UserMessage(ProtocolModel):
    type: Literal["user_message"] = "user_message"
    content: str
    context: Optional[EditorContext] = None


class CancelTask(ProtocolModel):
    type: Literal["cancel_task"] = "cancel_task"


class PermissionResponse(ProtocolModel):
    type: Literal["permission_response"] = "permission_response"
    request_id: str
    approved: bool


class ModeChange(ProtocolModel):
    type: Literal["mode_change"] = "mode_change"
    mode: str


class ClearConversation(ProtocolModel):
    type: Literal["clear_conversation"] = "clear_conversation"


InboundMessage = Annotated[
    Union[UserMessage, CancelTask, PermissionResponse, ModeChange, ClearConversation],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter = TypeAdapter(InboundMessage)


def parse_inbound(data: Dict[str, Any]):
    """Validate a raw client message into its inbound model.

    Raises:
        pydantic.ValidationError: If the type is unknown or fields are wrong
    """
    return _inbound_adapter.validate_python(data)
