"""Error classification, logging and retry policy.

This module provides:
- ErrorContext: Where and why an error happened
- ErrorResponse: User-facing message plus retry decision
- ErrorLogEntry: One entry of the bounded error log
- ErrorHandler: Classifies errors, keeps the log and the retry counters
"""

import asyncio
import json
import logging
import traceback
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

import httpx

from core.errors import AgentError, ErrorType


logger = logging.getLogger(__name__)


@dataclass
class ErrorContext:
    """Context information attached to a handled error.

    Attributes:
        operation: Logical operation key, also the retry bookkeeping key
        timestamp: When the error was handled
        user_message: The user request being served, if any
        stack_trace: Formatted traceback, filled in by the handler
        additional_info: Free-form diagnostic data
    """
    operation: str
    timestamp: datetime = field(default_factory=datetime.now)
    user_message: Optional[str] = None
    stack_trace: Optional[str] = None
    additional_info: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ErrorResponse:
    """User-facing outcome of handling an error."""
    user_message: str
    should_retry: bool
    recovery_action: Optional[str] = None
    technical_details: Optional[str] = None


@dataclass
class ErrorLogEntry:
    """A logged error."""
    id: str
    type: ErrorType
    message: str
    context: ErrorContext
    timestamp: datetime = field(default_factory=datetime.now)
    resolved: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "type": self.type.value,
            "message": self.message,
            "operation": self.context.operation,
            "timestamp": self.timestamp.isoformat(),
            "resolved": self.resolved,
        }


# Ordered keyword heuristics for errors whose kind is not known structurally.
# First matching category wins.
_KEYWORD_RULES = [
    (ErrorType.API_ERROR,
     ("api", "authentication", "unauthorized", "rate limit"), ("apierror",)),
    (ErrorType.NETWORK_ERROR,
     ("network", "timeout", "timed out", "econnrefused", "enotfound", "fetch failed",
      "connection refused"), ("networkerror",)),
    (ErrorType.TOOL_ERROR,
     ("tool", "file not found", "enoent", "permission denied", "eacces"), ()),
    (ErrorType.PERMISSION_ERROR,
     ("permission", "access denied", "unauthorized"), ()),
    (ErrorType.PARSING_ERROR,
     ("parse", "xml", "json", "syntax"), ("syntaxerror",)),
    (ErrorType.CONFIGURATION_ERROR,
     ("configuration", "config", "not configured"), ()),
    (ErrorType.SYSTEM_ERROR,
     ("memory", "disk", "system"), ()),
]


class ErrorHandler:
    """Manages error handling, logging and recovery.

    Typed errors (AgentError subclasses and a few well-known library and
    builtin exceptions) are classified structurally; everything else falls
    back to keyword heuristics over the message and class name.
    """

    MAX_LOG_SIZE = 100
    MAX_RETRY_ATTEMPTS = 3

    def __init__(
        self,
        max_retry_attempts: int = MAX_RETRY_ATTEMPTS,
        max_log_size: int = MAX_LOG_SIZE
    ):
        """Initialize the handler.

        Args:
            max_retry_attempts: Network retries allowed per operation key
            max_log_size: Capacity of the error log ring buffer
        """
        self.max_retry_attempts = max_retry_attempts
        self._error_log: Deque[ErrorLogEntry] = deque(maxlen=max_log_size)
        self._retry_attempts: Dict[str, int] = {}

    def handle_error(self, error: BaseException, context: ErrorContext) -> ErrorResponse:
        """Classify and log an error, then build the user-facing response.

        Args:
            error: The caught exception
            context: Where the error happened

        Returns:
            ErrorResponse with the message to show and whether to retry
        """
        error_type = self.classify_error(error)
        message = str(error) or type(error).__name__

        if context.stack_trace is None and error.__traceback__ is not None:
            context.stack_trace = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )

        self.log_error(error_type, message, context)
        return self._generate_response(error_type, message, context)

    def classify_error(self, error: BaseException) -> ErrorType:
        """Map an exception to an ErrorType."""
        if isinstance(error, AgentError):
            return error.error_type

        if isinstance(error, httpx.HTTPStatusError):
            return ErrorType.API_ERROR
        if isinstance(error, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)):
            return ErrorType.NETWORK_ERROR
        if isinstance(error, (asyncio.TimeoutError, ConnectionError)):
            return ErrorType.NETWORK_ERROR
        if isinstance(error, (FileNotFoundError, PermissionError, IsADirectoryError)):
            return ErrorType.TOOL_ERROR
        if isinstance(error, json.JSONDecodeError):
            return ErrorType.PARSING_ERROR
        if isinstance(error, MemoryError):
            return ErrorType.SYSTEM_ERROR

        if not isinstance(error, Exception):
            return ErrorType.UNKNOWN_ERROR

        message = str(error).lower()
        name = type(error).__name__.lower()
        for error_type, keywords, names in _KEYWORD_RULES:
            if any(k in message for k in keywords) or any(n in name for n in names):
                return error_type

        return ErrorType.UNKNOWN_ERROR

    def _generate_response(
        self,
        error_type: ErrorType,
        message: str,
        context: ErrorContext
    ) -> ErrorResponse:
        lowered = message.lower()

        if error_type == ErrorType.API_ERROR:
            if "authentication" in lowered or "unauthorized" in lowered or "401" in lowered:
                return ErrorResponse(
                    user_message="API authentication failed. Please check your API key in settings.",
                    should_retry=False,
                    recovery_action="Update your API key in the settings.",
                    technical_details=message,
                )
            if "rate limit" in lowered or "429" in lowered:
                return ErrorResponse(
                    user_message="API rate limit exceeded. Please wait a moment before trying again.",
                    should_retry=False,
                    recovery_action="Wait a few minutes and retry your request.",
                    technical_details=message,
                )
            return ErrorResponse(
                user_message=f"API error occurred: {self.sanitize_error_message(message)}",
                should_retry=False,
                recovery_action="Check your API configuration and try again.",
                technical_details=message,
            )

        if error_type == ErrorType.NETWORK_ERROR:
            return self._handle_network_error(message, context)

        if error_type == ErrorType.TOOL_ERROR:
            if "file not found" in lowered or "enoent" in lowered or "no such file" in lowered:
                return ErrorResponse(
                    user_message="File not found. The specified file does not exist.",
                    should_retry=False,
                    recovery_action="Verify the file path and try again.",
                    technical_details=message,
                )
            if "permission denied" in lowered or "eacces" in lowered:
                return ErrorResponse(
                    user_message="Permission denied. Insufficient permissions to access the file or directory.",
                    should_retry=False,
                    recovery_action="Check file permissions or run with appropriate access rights.",
                    technical_details=message,
                )
            return ErrorResponse(
                user_message=f"Tool execution failed: {self.sanitize_error_message(message)}",
                should_retry=False,
                recovery_action="Review the error details and adjust your request.",
                technical_details=message,
            )

        if error_type == ErrorType.PERMISSION_ERROR:
            return ErrorResponse(
                user_message="Permission denied. You need to grant permission for this operation.",
                should_retry=False,
                recovery_action="Update your permission settings or approve the operation when prompted.",
                technical_details=message,
            )

        if error_type == ErrorType.PARSING_ERROR:
            return ErrorResponse(
                user_message="Failed to parse response. The AI response format was invalid.",
                should_retry=True,
                recovery_action="The request can be retried with corrected formatting.",
                technical_details=message,
            )

        if error_type == ErrorType.CONFIGURATION_ERROR:
            return ErrorResponse(
                user_message="Configuration error. Please check your settings.",
                should_retry=False,
                recovery_action="Review and update your configuration.",
                technical_details=message,
            )

        if error_type == ErrorType.SYSTEM_ERROR:
            return ErrorResponse(
                user_message="System error occurred. This may be due to resource constraints.",
                should_retry=False,
                recovery_action="Free up resources or restart the service.",
                technical_details=message,
            )

        return ErrorResponse(
            user_message=f"An unexpected error occurred: {self.sanitize_error_message(message)}",
            should_retry=False,
            recovery_action="Please try again or report this issue if it persists.",
            technical_details=message,
        )

    def _handle_network_error(self, message: str, context: ErrorContext) -> ErrorResponse:
        key = context.operation
        attempts = self._retry_attempts.get(key, 0)

        if attempts < self.max_retry_attempts:
            self._retry_attempts[key] = attempts + 1
            return ErrorResponse(
                user_message=(
                    f"Network error occurred. Retrying... "
                    f"(Attempt {attempts + 1}/{self.max_retry_attempts})"
                ),
                should_retry=True,
                recovery_action="Automatic retry in progress.",
                technical_details=message,
            )

        # Cap reached
        self._retry_attempts.pop(key, None)
        return ErrorResponse(
            user_message=(
                "Network connection failed after multiple attempts. "
                "Please check your internet connection."
            ),
            should_retry=False,
            recovery_action="Check your network connection and try again.",
            technical_details=message,
        )

    async def attempt_recovery(self, error: BaseException, context: ErrorContext) -> bool:
        """Decide whether the failed operation should be re-issued.

        Only network errors whose operation is still under the retry cap
        are recoverable.
        """
        if self.classify_error(error) != ErrorType.NETWORK_ERROR:
            return False

        attempts = self._retry_attempts.get(context.operation, 0)
        if attempts <= self.max_retry_attempts:
            logger.info(
                f"[ErrorHandler] Attempting recovery for {context.operation}, attempt {attempts}"
            )
            return True
        return False

    def is_retryable(self, error: BaseException) -> bool:
        """Network and parsing errors are retryable."""
        return self.classify_error(error) in (ErrorType.NETWORK_ERROR, ErrorType.PARSING_ERROR)

    def log_error(self, error_type: ErrorType, message: str, context: ErrorContext) -> ErrorLogEntry:
        """Append an entry to the error log, evicting the oldest past capacity."""
        entry = ErrorLogEntry(
            id=f"error-{uuid.uuid4().hex[:12]}",
            type=error_type,
            message=message,
            context=context,
        )
        self._error_log.append(entry)
        logger.error(f"[ErrorHandler] {error_type.value} in {context.operation}: {message}")
        if context.stack_trace:
            logger.debug(context.stack_trace)
        return entry

    def mark_error_resolved(self, error_id: str) -> None:
        for entry in self._error_log:
            if entry.id == error_id:
                entry.resolved = True
                return

    def get_error_log(self) -> List[ErrorLogEntry]:
        return list(self._error_log)

    def get_unresolved_errors(self) -> List[ErrorLogEntry]:
        return [e for e in self._error_log if not e.resolved]

    def clear_error_log(self) -> None:
        """Clear the log and every retry counter."""
        self._error_log.clear()
        self._retry_attempts.clear()
        logger.info("[ErrorHandler] Error log cleared")

    def reset_retry_attempts(self, operation: str) -> None:
        self._retry_attempts.pop(operation, None)

    def get_retry_attempts(self, operation: str) -> int:
        return self._retry_attempts.get(operation, 0)

    @staticmethod
    def sanitize_error_message(message: str) -> str:
        """Keep the first line only, truncated to 200 characters."""
        first_line = message.split("\n", 1)[0]
        if len(first_line) > 200:
            return first_line[:200] + "..."
        return first_line

    def get_error_statistics(self) -> Dict[str, Any]:
        """Totals by kind and by resolution status."""
        by_type = {t.value: 0 for t in ErrorType}
        resolved = 0
        for entry in self._error_log:
            by_type[entry.type.value] += 1
            if entry.resolved:
                resolved += 1

        return {
            "total": len(self._error_log),
            "by_type": by_type,
            "resolved": resolved,
            "unresolved": len(self._error_log) - resolved,
        }
