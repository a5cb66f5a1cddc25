"""The ReAct loop for one user request.

This module provides:
- TaskState: Lifecycle states of a task
- AgentServices: Collaborators shared by every task of a session
- Task: Streams model turns, executes the tool calls they contain and
  feeds the results back until the model completes or a limit is hit
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from config.prompts import NO_TOOL_USED_MESSAGE
from config.settings import Settings
from core.api_handler import ApiHandler, ContentEvent, UsageEvent
from core.assistant_message import AssistantMessageParser, ToolUse
from core.context_collector import ContextCollector
from core.diff_tracker import TaskDiffTracker
from core.error_handler import ErrorContext, ErrorHandler
from core.events import (
    EditorContext,
    ErrorEvent,
    EventPublisher,
    OutboundEvent,
    StreamChunkEvent,
    TaskCompleteEvent,
    TaskDiffEvent,
    TokenUsage,
    TokenUsageEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from core.message import Conversation, Message
from core.prompt_builder import PromptBuilder
from core.tool_executor import ToolExecutor
from state.conversation_history import ConversationHistoryManager


logger = logging.getLogger(__name__)


class TaskState(Enum):
    """Lifecycle state of a task."""
    RUNNING = "running"
    AWAITING_TOOL_RESULTS = "awaiting_tool_results"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


@dataclass
class AgentServices:
    """Everything a task needs, built once per session."""
    settings: Settings
    api_handler: ApiHandler
    tool_executor: ToolExecutor
    prompt_builder: PromptBuilder
    context_collector: ContextCollector
    history_store: ConversationHistoryManager
    error_handler: ErrorHandler
    publish: EventPublisher


# Per-parameter sizes are compared in buckets so partial tool calls are
# re-published every few dozen characters rather than on every chunk.
SNAPSHOT_BUCKET_SIZE = 64


def tool_call_snapshot(tool_use: ToolUse) -> Tuple[Any, ...]:
    """Coarse fingerprint of a tool call used to skip redundant updates."""
    keys = tuple(sorted(tool_use.params))
    sizes = tuple(len(str(tool_use.params[k])) // SNAPSHOT_BUCKET_SIZE for k in keys)
    return (tool_use.name, tool_use.partial, keys, sizes)


def format_user_message(message: str, context_text: str) -> str:
    parts = []
    if context_text:
        parts.append("# Project Context")
        parts.append(context_text)
    parts.append("# User Request")
    parts.append(message)
    return "\n".join(parts)


class Task:
    """One user request and its ReAct loop.

    Each turn sends the history to the model, streams the answer through an
    AssistantMessageParser while publishing progress, then runs the parsed
    tool calls one after another. The loop ends when the model calls the
    completion tool, sends an empty answer, the loop limit is reached, an
    error cannot be recovered from, or the task is cancelled. Every one of
    those paths ends in _complete(), which publishes task_complete once.
    """

    COMPLETION_TOOL = "attempt_completion"

    def __init__(
        self,
        message: str,
        services: AgentServices,
        editor_context: Optional[EditorContext] = None
    ):
        """Initialize the task.

        Args:
            message: The user's request
            services: Session collaborators
            editor_context: Editor state sent with the request, if any
        """
        self.id = f"task-{uuid.uuid4().hex[:12]}"
        self.message = message
        self.services = services
        self.settings = services.settings
        self.editor_context = editor_context

        self.history = Conversation()
        self.loop_count = 0
        self.state = TaskState.RUNNING

        self._cancelled = False
        self._cancel_event = asyncio.Event()
        self._completed = False
        self._system_prompt: Optional[str] = None
        self._diff_tracker = TaskDiffTracker(self.id)

        self._published_tool_calls: Dict[str, Tuple[Any, ...]] = {}
        self._last_display_text = ""

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def is_completed(self) -> bool:
        return self._completed

    async def start(self) -> None:
        """Run the task to completion."""
        logger.info(f"[Task {self.id}] Starting")
        self.services.tool_executor.attach_change_tracker(self._diff_tracker)
        try:
            collector = self.services.context_collector
            context = collector.collect_context(self.editor_context)
            self.history.add_user(format_user_message(self.message, collector.format_context(context)))
            self.services.history_store.add_message(Message.user(self.message))

            await self._run_loop()
        except Exception as e:
            await self._handle_fatal_error(e, "task_start")

    async def cancel(self) -> None:
        """Stop the task. Safe to call more than once or after completion."""
        if self._cancelled:
            return
        self._cancelled = True
        self._cancel_event.set()
        logger.info(f"[Task {self.id}] Cancelled")
        await self._complete()

    # Loop

    async def _run_loop(self) -> None:
        error_handler = self.services.error_handler
        retry_operation: Optional[str] = None

        while not self._cancelled and not self._completed:
            if retry_operation is None:
                if self.loop_count >= self.settings.max_loop_count:
                    logger.warning(f"[Task {self.id}] Loop limit {self.settings.max_loop_count} reached")
                    await self._publish(ErrorEvent(
                        message=(
                            f"Maximum loop count reached ({self.settings.max_loop_count}). "
                            "The task may be too complex; simplify it or split it into smaller steps."
                        )
                    ))
                    await self._complete()
                    return
                self.loop_count += 1

            try:
                finished = await self._run_turn()
            except Exception as e:
                if self._cancelled:
                    return
                operation = retry_operation or f"react_loop_{self.loop_count}"
                if await self._recover(e, operation):
                    retry_operation = operation
                    continue
                await self._complete()
                return

            if retry_operation is not None:
                error_handler.reset_retry_attempts(retry_operation)
                retry_operation = None

            if finished:
                await self._complete()
                return

    async def _run_turn(self) -> bool:
        """Run one turn. Returns True when the task should end."""
        self.state = TaskState.RUNNING
        executor = self.services.tool_executor
        parser = AssistantMessageParser(
            executor.get_tool_names(),
            executor.get_all_parameter_names(),
            max_accumulator_size=self.settings.max_message_size,
            max_param_length=self.settings.max_param_length,
        )
        self._published_tool_calls = {}
        self._last_display_text = ""

        logger.info(f"[Task {self.id}] Loop {self.loop_count}: requesting model response")
        chunks = []
        usage: Optional[UsageEvent] = None
        stream = self.services.api_handler.create_message(
            self._get_system_prompt(),
            self.history.get_openai_messages(),
            self._cancel_event,
        )
        try:
            async for event in stream:
                if self._cancelled:
                    break
                if isinstance(event, ContentEvent):
                    chunks.append(event.content)
                    parser.process_chunk(event.content)
                    await self._publish_progress(parser)
                elif isinstance(event, UsageEvent):
                    usage = event
        finally:
            await stream.aclose()

        if self._cancelled:
            return True

        parser.finalize_content_blocks()
        assistant_message = "".join(chunks)
        display_text = parser.get_display_text()

        await self._publish(StreamChunkEvent(content=display_text, is_streaming=False))
        if usage is not None:
            await self._publish(TokenUsageEvent(usage=TokenUsage(
                total_tokens=usage.total_tokens,
                available_tokens=self.settings.context_window_size,
            )))

        self.history.add_assistant(assistant_message)
        self.services.history_store.add_message(Message.assistant(display_text))

        tool_uses = parser.get_tool_uses()
        if not tool_uses:
            if display_text:
                logger.info(f"[Task {self.id}] No tool calls found, prompting to use tools")
                self.history.add_user(NO_TOOL_USED_MESSAGE)
                return False
            logger.info(f"[Task {self.id}] Empty response, ending loop")
            return True

        return await self._execute_tool_calls(tool_uses)

    async def _execute_tool_calls(self, tool_uses) -> bool:
        """Run tool calls in order. Returns True if completion was requested."""
        self.state = TaskState.AWAITING_TOOL_RESULTS
        executor = self.services.tool_executor
        history_store = self.services.history_store
        completion_requested = False

        for tool_use in tool_uses:
            if self._cancelled:
                break

            call_id = tool_use.ensure_id()
            logger.info(f"[Task {self.id}] Executing tool: {tool_use.name}")
            await self._publish(ToolCallEvent(tool_call=tool_use.to_dict()))
            history_store.add_tool_call(tool_use.to_dict())

            result = (await executor.execute_tool(tool_use)).with_call_id(call_id)
            if self._completed:
                logger.info(f"[Task {self.id}] Dropping result of {tool_use.name} after completion")
                break

            self.history.add_tool_result(result)
            await self._publish(ToolResultEvent(content=result.to_dict()))
            history_store.add_tool_result(result)

            if tool_use.name == self.COMPLETION_TOOL:
                completion_requested = True

        if completion_requested:
            logger.info(f"[Task {self.id}] Task completion requested, ending loop")
        return completion_requested or self._cancelled

    async def _publish_progress(self, parser: AssistantMessageParser) -> None:
        for tool_use in parser.get_tool_uses():
            call_id = tool_use.ensure_id()
            snapshot = tool_call_snapshot(tool_use)
            if self._published_tool_calls.get(call_id) != snapshot:
                self._published_tool_calls[call_id] = snapshot
                await self._publish(ToolCallEvent(tool_call=tool_use.to_dict()))

        display_text = parser.get_display_text()
        if display_text != self._last_display_text:
            self._last_display_text = display_text
            await self._publish(StreamChunkEvent(content=display_text, is_streaming=True))

    def _get_system_prompt(self) -> str:
        if self._system_prompt is None:
            self._system_prompt = self.services.prompt_builder.build_system_prompt()
        return self._system_prompt

    # Errors

    def _error_context(self, operation: str) -> ErrorContext:
        return ErrorContext(
            operation=operation,
            user_message=self.message,
            additional_info={"task_id": self.id, "loop_count": self.loop_count},
        )

    async def _recover(self, error: Exception, operation: str) -> bool:
        """Report a failed turn. Returns True if the turn should be re-run."""
        error_handler = self.services.error_handler
        context = self._error_context(operation)
        response = error_handler.handle_error(error, context)
        await self._publish(ErrorEvent(message=response.user_message))

        if response.should_retry and await error_handler.attempt_recovery(error, context):
            logger.info(f"[Task {self.id}] Retrying {operation} in {self.settings.retry_delay}s")
            await asyncio.sleep(self.settings.retry_delay)
            return not self._cancelled

        logger.error(f"[Task {self.id}] Task failed due to error in {operation}")
        return False

    async def _handle_fatal_error(self, error: Exception, operation: str) -> None:
        response = self.services.error_handler.handle_error(error, self._error_context(operation))
        await self._publish(ErrorEvent(message=response.user_message))
        await self._complete()

    # Output

    async def _publish(self, event: OutboundEvent) -> None:
        if self._completed:
            logger.debug(f"[Task {self.id}] Dropping {event.type} after completion")
            return
        await self.services.publish(event)

    async def _complete(self) -> None:
        """Finish the task. Only the first call has any effect."""
        if self._completed:
            return
        self._completed = True
        self.state = TaskState.CANCELLED if self._cancelled else TaskState.COMPLETED
        self.services.tool_executor.detach_change_tracker()

        diff = self._diff_tracker.build_task_diff()
        if diff is not None:
            await self.services.publish(TaskDiffEvent(diff=diff))
        await self.services.publish(TaskCompleteEvent())
        logger.info(f"[Task {self.id}] Completed after {self.loop_count} loop(s)")
