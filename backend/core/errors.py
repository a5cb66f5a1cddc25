"""Error kinds and typed exceptions.

This module provides:
- ErrorType: The closed set of error kinds the agent understands
- AgentError: Base exception carrying its kind from the raise site
- One subclass per kind raised inside this codebase
"""

from enum import Enum


class ErrorType(Enum):
    """Kind of an error, used to pick the user message and retry policy."""
    API_ERROR = "api_error"
    TOOL_ERROR = "tool_error"
    PARSING_ERROR = "parsing_error"
    NETWORK_ERROR = "network_error"
    PERMISSION_ERROR = "permission_error"
    CONFIGURATION_ERROR = "configuration_error"
    SYSTEM_ERROR = "system_error"
    UNKNOWN_ERROR = "unknown_error"


class AgentError(Exception):
    """Base class for errors whose kind is known where they are raised."""

    error_type: ErrorType = ErrorType.UNKNOWN_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ApiError(AgentError):
    """The chat completion endpoint rejected or failed a request."""

    error_type = ErrorType.API_ERROR

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class NetworkError(AgentError):
    """The request never reached the endpoint or the stream broke."""

    error_type = ErrorType.NETWORK_ERROR


class ToolError(AgentError):
    """A tool could not complete its operation."""

    error_type = ErrorType.TOOL_ERROR


class FileNotFoundToolError(ToolError):
    """A tool was pointed at a path that does not exist."""


class ParsingError(AgentError):
    """The assistant output could not be parsed."""

    error_type = ErrorType.PARSING_ERROR


class ParserLimitError(ParsingError):
    """The streamed assistant message outgrew the parser's ceiling."""


class ConfigurationError(AgentError):
    """Required settings are missing or invalid."""

    error_type = ErrorType.CONFIGURATION_ERROR
