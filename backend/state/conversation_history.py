"""Conversation history persistence.

This module provides:
- ConversationEntry: One conversation with its messages
- ConversationHistoryManager: Keeps the current conversation on disk,
  archives finished ones and truncates history to a token budget
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.message import Message, MessageRole
from tools.base import ToolResult


logger = logging.getLogger(__name__)


@dataclass
class ConversationEntry:
    """A persisted conversation."""
    id: str
    timestamp: datetime = field(default_factory=datetime.now)
    messages: List[Message] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "messages": [m.to_dict() for m in self.messages],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationEntry":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
        )


class ConversationHistoryManager:
    """Persists the user-visible conversation across tasks.

    The current conversation is written to ``current.json`` in the history
    directory after every change. Cleared conversations with messages are
    archived under ``archive/``, keeping the most recent ones.

    The websocket protocol only clears conversations. Browsing the archive
    (list_conversations, restore_conversation, delete_conversation) is for
    hosts that embed the store directly, such as an editor extension that
    shows past conversations.
    """

    MAX_TOKENS = 100000
    MAX_MESSAGES = 100
    CHARS_PER_TOKEN = 4
    MAX_ARCHIVED = 50

    def __init__(
        self,
        history_dir: Path,
        max_tokens: int = MAX_TOKENS,
        max_messages: int = MAX_MESSAGES
    ):
        """Initialize the manager.

        Args:
            history_dir: Directory holding the persisted conversations
            max_tokens: Token budget for get_truncated_messages()
            max_messages: Message budget for get_truncated_messages()
        """
        self.history_dir = Path(history_dir)
        self.archive_dir = self.history_dir / "archive"
        self.archive_dir.mkdir(parents=True, exist_ok=True)
        self.max_tokens = max_tokens
        self.max_messages = max_messages

        self._current: Optional[ConversationEntry] = self._load_current()
        if self._current is None:
            self.start_new_conversation()

    @property
    def current_file(self) -> Path:
        return self.history_dir / "current.json"

    @property
    def current_conversation_id(self) -> str:
        return self._current.id

    def _load_current(self) -> Optional[ConversationEntry]:
        if not self.current_file.exists():
            return None
        try:
            data = json.loads(self.current_file.read_text(encoding="utf-8"))
            return ConversationEntry.from_dict(data)
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            logger.warning(f"[ConversationHistory] Ignoring unreadable {self.current_file}: {e}")
            return None

    def _save_current(self) -> None:
        self.current_file.write_text(
            json.dumps(self._current.to_dict(), ensure_ascii=False, indent=2),
            encoding="utf-8"
        )

    def start_new_conversation(self) -> str:
        self._current = ConversationEntry(id=f"conv-{uuid.uuid4().hex[:12]}")
        self._save_current()
        logger.info(f"[ConversationHistory] Started new conversation: {self._current.id}")
        return self._current.id

    def add_message(self, message: Message) -> None:
        self._current.messages.append(message)
        self._save_current()

    def add_messages(self, messages: List[Message]) -> None:
        self._current.messages.extend(messages)
        self._save_current()

    def get_messages(self) -> List[Message]:
        return list(self._current.messages)

    def update_messages(self, messages: List[Message]) -> None:
        """Replace the messages of the current conversation."""
        self._current.messages = list(messages)
        self._save_current()

    def add_tool_call(self, tool_call: Dict[str, Any]) -> None:
        """Attach a tool call to the latest assistant message."""
        message = self._last_assistant_message()
        if message.tool_calls is None:
            message.tool_calls = []
        message.tool_calls.append(tool_call)
        self._save_current()

    def add_tool_result(self, result: ToolResult) -> None:
        """Attach a tool result to the latest assistant message."""
        message = self._last_assistant_message()
        if message.tool_results is None:
            message.tool_results = []
        message.tool_results.append(result.to_dict())
        self._save_current()

    def _last_assistant_message(self) -> Message:
        for message in reversed(self._current.messages):
            if message.role == MessageRole.ASSISTANT:
                return message
        message = Message.assistant("")
        self._current.messages.append(message)
        return message

    # Truncation

    def estimate_tokens(self, messages: List[Message]) -> int:
        """Rough token count at a fixed number of characters per token."""
        total_chars = sum(len(m.text) for m in messages)
        return -(-total_chars // self.CHARS_PER_TOKEN)

    def get_truncated_messages(self) -> List[Message]:
        """Most recent messages that fit the token and message budgets.

        When anything is dropped, a system note saying how many earlier
        messages were left out is put in front.
        """
        messages = self._current.messages
        if not messages:
            return []
        if len(messages) <= self.max_messages and self.estimate_tokens(messages) <= self.max_tokens:
            return list(messages)

        kept: List[Message] = []
        tokens = 0
        for message in reversed(messages):
            message_tokens = self.estimate_tokens([message])
            if tokens + message_tokens > self.max_tokens or len(kept) >= self.max_messages:
                break
            kept.insert(0, message)
            tokens += message_tokens

        dropped = len(messages) - len(kept)
        logger.info(f"[ConversationHistory] Truncated {dropped} message(s) from history")
        note = Message.system(
            f"[Note: {dropped} earlier messages were truncated to fit within context limits]"
        )
        return [note] + kept

    # Archive

    def clear_conversation(self) -> str:
        """Archive the current conversation if it has messages and start a new one."""
        if self._current.messages:
            self._archive(self._current)
        conversation_id = self.start_new_conversation()
        logger.info("[ConversationHistory] Conversation cleared")
        return conversation_id

    def _archive(self, conversation: ConversationEntry) -> None:
        path = self.archive_dir / f"{conversation.id}.json"
        path.write_text(
            json.dumps(conversation.to_dict(), ensure_ascii=False, indent=2),
            encoding="utf-8"
        )
        logger.info(
            f"[ConversationHistory] Archived conversation: {conversation.id} "
            f"with {len(conversation.messages)} messages"
        )

        archived = self.list_conversations()
        for stale in archived[self.MAX_ARCHIVED:]:
            (self.archive_dir / f"{stale.id}.json").unlink(missing_ok=True)

    def list_conversations(self) -> List[ConversationEntry]:
        """Archived conversations, newest first."""
        entries = []
        for path in self.archive_dir.glob("conv-*.json"):
            try:
                entries.append(ConversationEntry.from_dict(json.loads(path.read_text(encoding="utf-8"))))
            except (json.JSONDecodeError, KeyError, ValueError):
                logger.warning(f"[ConversationHistory] Skipping unreadable archive {path.name}")
                continue
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries

    def restore_conversation(self, conversation_id: str) -> bool:
        """Make an archived conversation current again."""
        path = self.archive_dir / f"{conversation_id}.json"
        if not path.exists():
            logger.warning(f"[ConversationHistory] Conversation not found: {conversation_id}")
            return False

        if self._current.messages:
            self._archive(self._current)
        self._current = ConversationEntry.from_dict(json.loads(path.read_text(encoding="utf-8")))
        self._save_current()
        logger.info(f"[ConversationHistory] Restored conversation: {conversation_id}")
        return True

    def delete_conversation(self, conversation_id: str) -> bool:
        path = self.archive_dir / f"{conversation_id}.json"
        if not path.exists():
            logger.warning(f"[ConversationHistory] Conversation not found: {conversation_id}")
            return False
        path.unlink()
        logger.info(f"[ConversationHistory] Deleted conversation: {conversation_id}")
        return True
