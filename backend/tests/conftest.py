"""Shared fixtures for the agent tests."""

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

from api.session import AgentSession
from config.settings import Settings
from core.api_handler import ContentEvent, UsageEvent
from tools.base import BaseTool, ParameterDefinition


COMPLETION = "All set.\n<attempt_completion>\n<result>done</result>\n</attempt_completion>"


class EventRecorder:
    """Publisher that keeps every event it is given."""

    def __init__(self):
        self.events = []

    async def __call__(self, event) -> None:
        self.events.append(event)

    @property
    def types(self) -> List[str]:
        return [e.type for e in self.events]

    def of_type(self, event_type: str) -> list:
        return [e for e in self.events if e.type == event_type]


class ScriptedApi:
    """Transport stub that answers each request with the next scripted response.

    A response is a string (streamed in small chunks), a list of chunks, or
    an exception raised when the stream is read. The last response repeats.
    """

    def __init__(self, responses, chunk_size: int = 7, total_tokens: Optional[int] = 42):
        self.responses = list(responses)
        self.chunk_size = chunk_size
        self.total_tokens = total_tokens
        self.calls: List[Dict[str, Any]] = []

    def _next_response(self):
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]

    async def create_message(self, system_prompt, messages, cancel_event=None):
        self.calls.append({
            "system_prompt": system_prompt,
            "messages": [dict(m) for m in messages],
        })
        response = self._next_response()
        if isinstance(response, BaseException):
            raise response

        if isinstance(response, str):
            chunks = [
                response[i:i + self.chunk_size]
                for i in range(0, len(response), self.chunk_size)
            ]
        else:
            chunks = list(response)

        for chunk in chunks:
            yield ContentEvent(content=chunk)
        if self.total_tokens is not None:
            yield UsageEvent(total_tokens=self.total_tokens)

    async def close(self) -> None:
        pass


class SlowTool(BaseTool):
    """Blocks until released so a test can cancel while it runs."""

    def __init__(self):
        self.calls = []
        self.release = asyncio.Event()

    @property
    def name(self) -> str:
        return "slow"

    @property
    def description(self) -> str:
        return "Wait for the test to release it."

    @property
    def parameters(self):
        return [ParameterDefinition(name="message", type="string", required=True, description="Label")]

    async def execute(self, params):
        self.calls.append(params["message"])
        await self.release.wait()
        return f"Done: {params['message']}"


class HangingApi:
    """Streams one chunk and then waits until the request is cancelled."""

    def __init__(self):
        self.calls = 0

    async def create_message(self, system_prompt, messages, cancel_event=None):
        self.calls += 1
        yield ContentEvent(content="Working on it")
        await cancel_event.wait()

    async def close(self) -> None:
        pass


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the event loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def workspace(tmp_path) -> Path:
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def settings(tmp_path, workspace) -> Settings:
    return Settings(
        _env_file=None,
        api_key="test-key",
        api_base_url="https://llm.test/v1",
        model="test-model",
        workspace_root=workspace,
        history_dir=tmp_path / "history",
        retry_delay=0,
        allow_write_by_default=True,
        permission_timeout=1.0,
    )


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def make_session(settings, recorder):
    """Build an AgentSession around a ScriptedApi."""

    def _make(responses, **overrides) -> AgentSession:
        session_settings = settings.model_copy(update=overrides) if overrides else settings
        return AgentSession(session_settings, recorder, api_handler=ScriptedApi(responses))

    return _make
