"""Tests for tool validation, authorization and execution."""

import pytest

from core.assistant_message import ToolUse
from core.permissions import PermissionManager, PermissionSettings
from core.tool_executor import ToolExecutor, infer_operation
from tools import WriteFileTool, create_default_tools


@pytest.fixture
def executor(workspace):
    permissions = PermissionManager(PermissionSettings(allow_write_by_default=True))
    executor = ToolExecutor(permission_manager=permissions)
    executor.register_tools(create_default_tools(workspace))
    return executor


def _call(name, **params):
    return ToolUse(name=name, params=params, partial=False)


async def test_unknown_tool_lists_available(executor):
    result = await executor.execute_tool(_call("delete_everything"))

    assert result.is_error
    assert result.content.startswith("Error: Tool 'delete_everything' does not exist.")
    assert "read_file, write_file, list_files" in result.content


async def test_missing_required_parameter(executor):
    result = await executor.execute_tool(_call("write_file", path="a.txt"))

    assert result.is_error
    assert result.content.startswith("Error: Invalid parameters for tool 'write_file'.")
    assert '"name": "content"' in result.content


async def test_string_parameters_are_coerced(executor, workspace):
    (workspace / "notes.txt").write_text("alpha\nbeta\ngamma\n", encoding="utf-8")

    result = await executor.execute_tool(_call(
        "search_files", pattern="beta", context_lines="0", case_sensitive="true"
    ))

    assert not result.is_error
    assert "> 2: beta" in result.content
    assert "1: alpha" not in result.content


async def test_uncoercible_value_is_rejected(executor):
    result = await executor.execute_tool(_call("search_files", pattern="x", context_lines="many"))

    assert result.is_error
    assert "Invalid parameters for tool 'search_files'" in result.content


async def test_read_missing_file(executor):
    result = await executor.execute_tool(_call("read_file", path="missing.txt"))

    assert result.is_error
    assert result.content == "File not found. The specified file does not exist."


async def test_path_outside_workspace(executor):
    result = await executor.execute_tool(_call("read_file", path="../secret.txt"))

    assert result.is_error
    assert result.content.startswith("Tool execution failed: Access denied")


async def test_write_then_read(executor, workspace):
    write = await executor.execute_tool(_call("write_file", path="src/a.py", content="x = 1\n"))
    read = await executor.execute_tool(_call("read_file", path="src/a.py"))

    assert not write.is_error
    assert (workspace / "src" / "a.py").read_text(encoding="utf-8") == "x = 1\n"
    assert read.content == "File: src/a.py\n\n1 | x = 1\n2 | "


async def test_permission_denied_without_client(workspace):
    executor = ToolExecutor(permission_manager=PermissionManager(PermissionSettings()))
    executor.register_tool(WriteFileTool(workspace))

    result = await executor.execute_tool(_call("write_file", path="a.txt", content="hi"))

    assert result.is_error
    assert result.content == "Permission denied: User did not authorize write_file operation"
    assert not (workspace / "a.txt").exists()


async def test_failed_tool_is_logged(executor):
    await executor.execute_tool(_call("read_file", path="missing.txt"))

    log = executor.error_handler.get_error_log()
    assert log[-1].context.operation == "tool_execution_read_file"


@pytest.mark.parametrize("name, operation", [
    ("read_file", "read"),
    ("write_file", "write"),
    ("modify_config", "write"),
    ("delete_file", "delete"),
    ("execute_command", "execute"),
    ("run_command", "execute"),
    ("apply_diff", "unknown"),
    ("insert_content", "unknown"),
])
def test_infer_operation(name, operation):
    assert infer_operation(name) == operation


def test_build_permission_request(executor):
    tool = executor.get_tool("write_file")
    request = executor.build_permission_request(tool, {"path": "a.txt", "content": "y" * 250})

    assert request.operation == "write"
    assert request.target == "a.txt"
    assert request.details == "y" * 200 + "..."

    command = executor.get_tool("execute_command")
    request = executor.build_permission_request(command, {"command": "ls"})
    assert request.target == "ls"
    assert '"command": "ls"' in request.details


def test_registry_queries(executor):
    names = executor.get_tool_names()
    assert names[0] == "read_file"
    assert names[-1] == "attempt_completion"
    assert executor.tool_count == len(names)

    params = executor.get_all_parameter_names()
    assert params.count("path") == 1
    assert "content" in params and "result" in params

    assert executor.unregister_tool("echo") is True
    assert executor.has_tool("echo") is False
    assert executor.unregister_tool("echo") is False


def test_tool_definitions_as_xml(executor):
    text = executor.format_tool_definitions_as_xml()

    assert "## write_file" in text
    assert "- `path` (string) (required):" in text
    assert "- `recursive` (boolean) (optional):" in text
    assert "<write_file>\n<path>path value here</path>\n<content>content value here</content>\n</write_file>" in text
