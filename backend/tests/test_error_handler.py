"""Tests for error classification and the retry policy."""

import json

import httpx
import pytest

from core.error_handler import ErrorContext, ErrorHandler
from core.errors import (
    ApiError,
    ErrorType,
    FileNotFoundToolError,
    NetworkError,
    ParserLimitError,
    ToolError,
)


def _context(operation="react_loop_1"):
    return ErrorContext(operation=operation)


def test_network_retry_cap_resets_counter():
    handler = ErrorHandler(max_retry_attempts=3)
    error = NetworkError("connection reset")

    responses = [handler.handle_error(error, _context()) for _ in range(4)]

    assert [r.should_retry for r in responses] == [True, True, True, False]
    assert "Attempt 3/3" in responses[2].user_message
    assert "after multiple attempts" in responses[3].user_message
    assert handler.get_retry_attempts("react_loop_1") == 0


def test_retry_counters_are_per_operation():
    handler = ErrorHandler(max_retry_attempts=1)
    error = NetworkError("timeout")

    assert handler.handle_error(error, _context("a")).should_retry is True
    assert handler.handle_error(error, _context("b")).should_retry is True
    assert handler.get_retry_attempts("a") == 1
    assert handler.get_retry_attempts("b") == 1

    handler.reset_retry_attempts("a")
    assert handler.get_retry_attempts("a") == 0
    assert handler.get_retry_attempts("b") == 1


async def test_attempt_recovery_only_for_network_errors():
    handler = ErrorHandler()
    context = _context()

    network = NetworkError("fetch failed")
    handler.handle_error(network, context)
    assert await handler.attempt_recovery(network, context) is True

    parsing = ParserLimitError("Assistant message exceeds maximum allowed size")
    response = handler.handle_error(parsing, context)
    assert response.should_retry is True
    assert await handler.attempt_recovery(parsing, context) is False

    assert await handler.attempt_recovery(ToolError("boom"), context) is False


@pytest.mark.parametrize("error, expected", [
    (FileNotFoundToolError("File not found: a.txt"), ErrorType.TOOL_ERROR),
    (ApiError("API request failed with status 500: oops", status_code=500), ErrorType.API_ERROR),
    (httpx.ConnectTimeout("timed out"), ErrorType.NETWORK_ERROR),
    (httpx.ConnectError("refused"), ErrorType.NETWORK_ERROR),
    (ConnectionResetError("reset by peer"), ErrorType.NETWORK_ERROR),
    (FileNotFoundError(2, "No such file or directory"), ErrorType.TOOL_ERROR),
    (json.JSONDecodeError("Expecting value", "", 0), ErrorType.PARSING_ERROR),
    (MemoryError(), ErrorType.SYSTEM_ERROR),
    (RuntimeError("unauthorized request"), ErrorType.API_ERROR),
    (RuntimeError("socket timeout while reading"), ErrorType.NETWORK_ERROR),
    (RuntimeError("could not parse the payload"), ErrorType.PARSING_ERROR),
    (RuntimeError("app is not configured"), ErrorType.CONFIGURATION_ERROR),
    (RuntimeError("disk quota exceeded"), ErrorType.SYSTEM_ERROR),
    (RuntimeError("something odd"), ErrorType.UNKNOWN_ERROR),
])
def test_classify_error(error, expected):
    assert ErrorHandler().classify_error(error) == expected


def test_keyword_order_prefers_api_over_permission():
    # "unauthorized" is both an API and a permission keyword
    assert ErrorHandler().classify_error(ValueError("Unauthorized")) == ErrorType.API_ERROR


def test_api_error_messages():
    handler = ErrorHandler()

    auth = handler.handle_error(ApiError("API request failed with status 401: bad key", 401), _context())
    assert auth.user_message.startswith("API authentication failed")
    assert auth.should_retry is False

    rate = handler.handle_error(ApiError("API request failed with status 429: slow down", 429), _context())
    assert rate.user_message.startswith("API rate limit exceeded")
    assert rate.should_retry is False


def test_tool_error_messages():
    handler = ErrorHandler()

    missing = handler.handle_error(FileNotFoundToolError("File not found: x.py"), _context())
    assert missing.user_message == "File not found. The specified file does not exist."

    other = handler.handle_error(ToolError("Search text must not be empty"), _context())
    assert other.user_message == "Tool execution failed: Search text must not be empty"


def test_handle_error_logs_with_stack_trace():
    handler = ErrorHandler()
    context = _context("tool_execution_read_file")
    try:
        raise ToolError("boom")
    except ToolError as e:
        handler.handle_error(e, context)

    log = handler.get_error_log()
    assert len(log) == 1
    assert log[0].type == ErrorType.TOOL_ERROR
    assert log[0].message == "boom"
    assert "ToolError" in context.stack_trace


def test_error_log_is_a_ring_buffer():
    handler = ErrorHandler(max_log_size=3)
    for i in range(5):
        handler.handle_error(ToolError(f"error {i}"), _context())

    assert [e.message for e in handler.get_error_log()] == ["error 2", "error 3", "error 4"]


def test_resolution_and_statistics():
    handler = ErrorHandler()
    handler.handle_error(ToolError("a"), _context())
    handler.handle_error(NetworkError("b"), _context())
    first = handler.get_error_log()[0]

    handler.mark_error_resolved(first.id)

    assert [e.message for e in handler.get_unresolved_errors()] == ["b"]
    stats = handler.get_error_statistics()
    assert stats["total"] == 2
    assert stats["resolved"] == 1
    assert stats["unresolved"] == 1
    assert stats["by_type"]["tool_error"] == 1
    assert stats["by_type"]["network_error"] == 1

    handler.clear_error_log()
    assert handler.get_error_log() == []
    assert handler.get_retry_attempts("react_loop_1") == 0


def test_sanitize_error_message():
    assert ErrorHandler.sanitize_error_message("first\nsecond") == "first"
    long = "x" * 250
    assert ErrorHandler.sanitize_error_message(long) == "x" * 200 + "..."


def test_is_retryable():
    handler = ErrorHandler()
    assert handler.is_retryable(NetworkError("x")) is True
    assert handler.is_retryable(ParserLimitError("x")) is True
    assert handler.is_retryable(ToolError("x")) is False
