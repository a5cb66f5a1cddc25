"""Tests for conversation persistence and truncation."""

import json

from core.message import Message, MessageRole
from state.conversation_history import ConversationHistoryManager
from tools.base import ToolResult


def test_messages_are_persisted(tmp_path):
    manager = ConversationHistoryManager(tmp_path)
    manager.add_message(Message.user("hello"))
    manager.add_message(Message.assistant("hi there"))

    reloaded = ConversationHistoryManager(tmp_path)

    assert reloaded.current_conversation_id == manager.current_conversation_id
    assert [(m.role, m.content) for m in reloaded.get_messages()] == [
        (MessageRole.USER, "hello"),
        (MessageRole.ASSISTANT, "hi there"),
    ]


def test_unreadable_current_file_starts_fresh(tmp_path):
    (tmp_path / "current.json").write_text("{broken", encoding="utf-8")

    manager = ConversationHistoryManager(tmp_path)

    assert manager.get_messages() == []
    assert manager.current_conversation_id.startswith("conv-")


def test_tool_calls_attach_to_last_assistant_message(tmp_path):
    manager = ConversationHistoryManager(tmp_path)
    manager.add_messages([Message.user("go"), Message.assistant("Reading.")])

    manager.add_tool_call({"id": "call_1", "name": "read_file", "params": {"path": "a"}})
    manager.add_tool_result(ToolResult.success("read_file", "contents").with_call_id("call_1"))

    saved = json.loads((tmp_path / "current.json").read_text(encoding="utf-8"))
    assistant = saved["messages"][1]
    assert assistant["tool_calls"][0]["id"] == "call_1"
    assert assistant["tool_results"][0]["tool_call_id"] == "call_1"
    assert assistant["tool_results"][0]["is_error"] is False


def test_estimate_tokens_rounds_up(tmp_path):
    manager = ConversationHistoryManager(tmp_path)
    assert manager.estimate_tokens([Message.user("abcde")]) == 2
    assert manager.estimate_tokens([]) == 0


def test_truncation_keeps_recent_messages(tmp_path):
    manager = ConversationHistoryManager(tmp_path, max_tokens=10)
    manager.add_messages([Message.user("a" * 20), Message.assistant("b" * 20), Message.user("c" * 12)])

    truncated = manager.get_truncated_messages()

    assert truncated[0].role == MessageRole.SYSTEM
    assert truncated[0].content == (
        "[Note: 1 earlier messages were truncated to fit within context limits]"
    )
    assert [m.content for m in truncated[1:]] == ["b" * 20, "c" * 12]


def test_truncation_by_message_count(tmp_path):
    manager = ConversationHistoryManager(tmp_path, max_messages=2)
    manager.add_messages([Message.user(str(i)) for i in range(5)])

    truncated = manager.get_truncated_messages()

    assert [m.content for m in truncated[1:]] == ["3", "4"]
    assert "3 earlier messages" in truncated[0].content


def test_no_truncation_within_budget(tmp_path):
    manager = ConversationHistoryManager(tmp_path)
    manager.add_message(Message.user("short"))

    assert [m.content for m in manager.get_truncated_messages()] == ["short"]


def test_clear_archive_restore_delete(tmp_path):
    manager = ConversationHistoryManager(tmp_path)
    first_id = manager.current_conversation_id
    manager.add_message(Message.user("first"))

    second_id = manager.clear_conversation()

    assert second_id != first_id
    assert manager.get_messages() == []
    assert [c.id for c in manager.list_conversations()] == [first_id]

    assert manager.restore_conversation(first_id) is True
    assert manager.current_conversation_id == first_id
    assert [m.content for m in manager.get_messages()] == ["first"]

    assert manager.delete_conversation(first_id) is True
    assert manager.delete_conversation(first_id) is False
    assert manager.restore_conversation("conv-missing") is False


def test_clearing_empty_conversation_does_not_archive(tmp_path):
    manager = ConversationHistoryManager(tmp_path)
    manager.clear_conversation()

    assert manager.list_conversations() == []
