"""Per-connection agent session.

This module provides the AgentSession class that owns the collaborators
of one client connection, dispatches inbound client messages and runs at
most one Task at a time.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Set

from pydantic import ValidationError

from config.prompts import ModeManager
from config.settings import Settings
from core.api_handler import ApiHandler
from core.context_collector import ContextCollector
from core.error_handler import ErrorHandler
from core.errors import ConfigurationError
from core.events import (
    CancelTask,
    ClearConversation,
    EditorContext,
    ErrorEvent,
    EventPublisher,
    ModeChange,
    ModeChangedEvent,
    PermissionResponse,
    UserMessage,
    parse_inbound,
)
from core.permissions import PermissionManager, PermissionSettings
from core.prompt_builder import PromptBuilder
from core.task import AgentServices, Task
from core.tool_executor import ToolExecutor
from state.conversation_history import ConversationHistoryManager
from tools import create_default_tools


logger = logging.getLogger(__name__)


class AgentSession:
    """Agent state for one connected client.

    A new user message cancels the running task, if any, and starts a new
    one in the background so that cancel and permission responses can be
    received while it runs.
    """

    def __init__(
        self,
        settings: Settings,
        publish: EventPublisher,
        api_handler: Optional[ApiHandler] = None
    ):
        self.settings = settings
        self.publish = publish

        self.mode_manager = ModeManager(settings.default_mode)
        self.error_handler = ErrorHandler(max_retry_attempts=settings.max_retry_attempts)
        self.permission_manager = PermissionManager(
            PermissionSettings.from_settings(settings),
            publish=publish,
        )
        self.context_collector = ContextCollector(settings.workspace_root)
        self.tool_executor = ToolExecutor(self.permission_manager, self.error_handler)
        self.tool_executor.register_tools(create_default_tools(
            settings.workspace_root,
            command_timeout=settings.command_timeout,
            diagnostics_source=self.context_collector.get_latest_diagnostics,
        ))
        self.prompt_builder = PromptBuilder(
            self.mode_manager, self.tool_executor, settings.workspace_root
        )
        self.history_store = ConversationHistoryManager(settings.history_dir)
        self.api_handler = api_handler or ApiHandler(settings)

        self.current_task: Optional[Task] = None
        self._runner: Optional[asyncio.Task] = None
        # A cancelled task keeps running until its in-flight tool returns
        self._runners: Set[asyncio.Task] = set()

    @property
    def services(self) -> AgentServices:
        return AgentServices(
            settings=self.settings,
            api_handler=self.api_handler,
            tool_executor=self.tool_executor,
            prompt_builder=self.prompt_builder,
            context_collector=self.context_collector,
            history_store=self.history_store,
            error_handler=self.error_handler,
            publish=self.publish,
        )

    async def handle_message(self, data: Dict[str, Any]) -> None:
        """Dispatch one raw message received from the client."""
        try:
            message = parse_inbound(data)
        except ValidationError as e:
            logger.warning(f"[AgentSession] Rejected message {data.get('type')!r}: {e}")
            await self.publish(ErrorEvent(message=f"Invalid message: {data.get('type', 'unknown')}"))
            return

        if isinstance(message, UserMessage):
            await self.start_task(message.content, message.context)
        elif isinstance(message, CancelTask):
            await self.cancel_task()
        elif isinstance(message, PermissionResponse):
            self.permission_manager.handle_permission_response(message.request_id, message.approved)
        elif isinstance(message, ModeChange):
            await self.change_mode(message.mode)
        elif isinstance(message, ClearConversation):
            await self.cancel_task()
            self.history_store.clear_conversation()

    async def start_task(self, content: str, context: Optional[EditorContext] = None) -> Task:
        await self.cancel_task()
        task = Task(content, self.services, editor_context=context)
        self.current_task = task
        runner = asyncio.create_task(task.start())
        self._runners.add(runner)
        runner.add_done_callback(self._runner_done)
        self._runner = runner
        logger.info(f"[AgentSession] Started {task.id}")
        return task

    def _runner_done(self, runner: asyncio.Task) -> None:
        self._runners.discard(runner)
        if runner.cancelled():
            return
        error = runner.exception()
        if error is not None:
            logger.error(
                f"[AgentSession] Task runner failed: {error}",
                exc_info=(type(error), error, error.__traceback__),
            )

    async def cancel_task(self) -> None:
        if self.current_task is None or self.current_task.is_completed:
            return
        self.permission_manager.deny_all_pending()
        await self.current_task.cancel()

    async def change_mode(self, mode: str) -> None:
        try:
            self.mode_manager.switch_mode(mode)
        except ConfigurationError as e:
            await self.publish(ErrorEvent(message=str(e)))
            return
        await self.publish(ModeChangedEvent(mode=mode))

    async def wait_for_task(self) -> None:
        """Wait until the background task runner finishes."""
        if self._runner is not None:
            await self._runner

    async def close(self) -> None:
        await self.cancel_task()
        runners = list(self._runners)
        for runner in runners:
            runner.cancel()
        if runners:
            await asyncio.gather(*runners, return_exceptions=True)
        await self.api_handler.close()

    @property
    def running_tasks(self) -> int:
        """Number of task runners that have not finished yet."""
        return len(self._runners)
