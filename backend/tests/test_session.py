"""Tests for the client protocol and per-connection sessions."""

import pytest
from pydantic import ValidationError

from core.events import (
    PermissionResponse,
    StreamChunkEvent,
    TokenUsage,
    TokenUsageEvent,
    ToolCallEvent,
    UserMessage,
    parse_inbound,
)
from tests.conftest import COMPLETION, HangingApi, SlowTool, wait_until


def test_outbound_events_use_camel_case():
    assert StreamChunkEvent(content="hi", is_streaming=True).to_wire() == {
        "type": "stream_chunk", "content": "hi", "isStreaming": True,
    }
    assert TokenUsageEvent(usage=TokenUsage(total_tokens=5, available_tokens=100)).to_wire() == {
        "type": "token_usage", "usage": {"totalTokens": 5, "availableTokens": 100},
    }
    wire = ToolCallEvent(tool_call={"name": "echo", "tool_call_id": None}).to_wire()
    assert wire == {"type": "tool_call", "toolCall": {"name": "echo", "tool_call_id": None}}


def test_parse_inbound_messages():
    message = parse_inbound({
        "type": "user_message",
        "content": "fix it",
        "context": {
            "activeFile": {"path": "a.py", "content": "x"},
            "cursorPosition": {"line": 3, "character": 1},
        },
    })
    assert isinstance(message, UserMessage)
    assert message.context.active_file.path == "a.py"
    assert message.context.cursor_position.line == 3
    assert message.context.diagnostics == []

    response = parse_inbound({"type": "permission_response", "requestId": "perm-1", "approved": False})
    assert isinstance(response, PermissionResponse)
    assert response.request_id == "perm-1"


@pytest.mark.parametrize("data", [
    {"type": "bogus"},
    {"type": "user_message"},
    {"type": "permission_response", "requestId": "perm-1"},
])
def test_parse_inbound_rejects_bad_messages(data):
    with pytest.raises(ValidationError):
        parse_inbound(data)


async def test_invalid_message_publishes_error(make_session, recorder):
    session = make_session([COMPLETION])

    await session.handle_message({"type": "bogus"})

    assert [e.message for e in recorder.of_type("error")] == ["Invalid message: bogus"]


async def test_mode_change(make_session, recorder):
    session = make_session([COMPLETION])

    await session.handle_message({"type": "mode_change", "mode": "architect"})
    await session.handle_message({"type": "mode_change", "mode": "poet"})

    assert session.mode_manager.current_mode == "architect"
    assert recorder.of_type("mode_changed")[0].mode == "architect"
    assert recorder.of_type("error")[0].message == "Unknown work mode: poet"
    assert "# Architect Mode" in session.prompt_builder.build_system_prompt()


async def test_user_message_runs_task(make_session, recorder):
    session = make_session([COMPLETION])

    await session.handle_message({"type": "user_message", "content": "wrap up"})
    await session.wait_for_task()

    assert session.current_task.is_completed
    assert recorder.types.count("task_complete") == 1
    assert session.api_handler.calls[0]["messages"][0]["content"].endswith("wrap up")


async def test_editor_diagnostics_reach_the_tool(make_session, recorder):
    diagnostics = "<get_diagnostics></get_diagnostics>"
    session = make_session([diagnostics, COMPLETION])

    await session.handle_message({
        "type": "user_message",
        "content": "what is wrong?",
        "context": {"diagnostics": [{"file": "a.ts", "line": 2, "column": 4, "message": "bad type"}]},
    })
    await session.wait_for_task()

    result = recorder.of_type("tool_result")[0].content
    assert result["tool_name"] == "get_diagnostics"
    assert "bad type" in result["content"]


async def test_permission_round_trip(make_session, recorder, workspace):
    write = "<write_file><path>out.txt</path><content>data</content></write_file>"
    session = make_session([write, COMPLETION], allow_write_by_default=False)

    await session.handle_message({"type": "user_message", "content": "write it"})
    await wait_until(lambda: recorder.of_type("permission_request"))

    request = recorder.of_type("permission_request")[0].request
    assert request["tool_name"] == "write_file"
    await session.handle_message({"type": "permission_response", "requestId": request["id"], "approved": True})
    await session.wait_for_task()

    assert (workspace / "out.txt").read_text(encoding="utf-8") == "data"
    assert recorder.of_type("tool_result")[0].content["is_error"] is False


async def test_permission_denied(make_session, recorder, workspace):
    write = "<write_file><path>out.txt</path><content>data</content></write_file>"
    session = make_session([write, COMPLETION], allow_write_by_default=False)

    await session.handle_message({"type": "user_message", "content": "write it"})
    await wait_until(lambda: recorder.of_type("permission_request"))
    request_id = recorder.of_type("permission_request")[0].request["id"]
    await session.handle_message({"type": "permission_response", "requestId": request_id, "approved": False})
    await session.wait_for_task()

    assert not (workspace / "out.txt").exists()
    result = recorder.of_type("tool_result")[0].content
    assert result["content"] == "Permission denied: User did not authorize write_file operation"


async def test_cancel_message_stops_running_task(make_session, recorder):
    session = make_session([COMPLETION])
    session.api_handler = HangingApi()

    await session.handle_message({"type": "user_message", "content": "take your time"})
    await wait_until(lambda: "stream_chunk" in recorder.types)
    await session.handle_message({"type": "cancel_task"})
    await session.wait_for_task()

    assert session.current_task.is_cancelled
    assert recorder.types.count("task_complete") == 1


async def test_new_message_cancels_previous_task(make_session, recorder):
    session = make_session([COMPLETION])
    session.api_handler = HangingApi()

    await session.handle_message({"type": "user_message", "content": "first"})
    await wait_until(lambda: "stream_chunk" in recorder.types)
    first = session.current_task
    await session.handle_message({"type": "user_message", "content": "second"})

    assert first.is_cancelled
    assert session.current_task is not first
    await session.close()


async def test_cancelled_runner_is_kept_until_its_tool_returns(make_session, recorder):
    session = make_session(["<slow><message>one</message></slow>", COMPLETION])
    tool = SlowTool()
    session.tool_executor.register_tool(tool)

    await session.handle_message({"type": "user_message", "content": "first"})
    await wait_until(lambda: tool.calls)
    first = session.current_task
    await session.handle_message({"type": "user_message", "content": "second"})
    await session.wait_for_task()

    assert first.is_cancelled
    assert session.current_task.is_completed
    assert session.running_tasks == 1

    tool.release.set()
    await wait_until(lambda: session.running_tasks == 0)
    assert tool.calls == ["one"]
    assert recorder.types.count("task_complete") == 2
    await session.close()


async def test_clear_conversation_archives(make_session):
    session = make_session([COMPLETION])
    await session.handle_message({"type": "user_message", "content": "wrap up"})
    await session.wait_for_task()
    old_id = session.history_store.current_conversation_id

    await session.handle_message({"type": "clear_conversation"})

    assert session.history_store.current_conversation_id != old_id
    assert session.history_store.get_messages() == []
    assert [c.id for c in session.history_store.list_conversations()] == [old_id]
