"""Streaming chat completion client.

This module provides:
- ContentEvent / UsageEvent: Items yielded by a streaming request
- ApiHandler: Sends the system prompt and history to an OpenAI-compatible
  endpoint and yields the streamed response
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, AsyncIterator, Dict, List, Optional, Union

import httpx

from config.settings import Settings
from core.errors import ApiError, ConfigurationError, NetworkError


logger = logging.getLogger(__name__)


@dataclass
class ContentEvent:
    """A piece of assistant text."""
    content: str
    type: str = field(default="content", init=False)


@dataclass
class UsageEvent:
    """Token usage reported at the end of a stream."""
    total_tokens: int
    prompt_tokens: int = 0
    completion_tokens: int = 0
    type: str = field(default="usage", init=False)


StreamEvent = Union[ContentEvent, UsageEvent]


class ApiHandler:
    """Client for a streaming chat completion endpoint.

    The HTTP client is created lazily and reused across requests. Tests
    can pass their own ``httpx.AsyncClient`` (for example one built on
    ``httpx.MockTransport``).
    """

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.request_timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_body(self, system_prompt: str, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "model": self.settings.model,
            "messages": [{"role": "system", "content": system_prompt}] + list(messages),
            "temperature": self.settings.temperature,
            "max_tokens": self.settings.max_tokens,
            "stream": True,
            "stream_options": {"include_usage": True},
        }

    async def create_message(
        self,
        system_prompt: str,
        messages: List[Dict[str, Any]],
        cancel_event: Optional[asyncio.Event] = None
    ) -> AsyncGenerator[StreamEvent, None]:
        """Stream a chat completion.

        Args:
            system_prompt: System prompt sent as the first message
            messages: History in chat completion format
            cancel_event: When set, the stream ends promptly

        Yields:
            ContentEvent for each text delta, UsageEvent if usage is reported

        Raises:
            ConfigurationError: If no API key is configured
            ApiError: If the endpoint answers with an error status
            NetworkError: On connection failures and timeouts
        """
        if not self.settings.api_key:
            raise ConfigurationError("API key is not configured. Set API_KEY in the environment.")

        client = await self._get_client()
        headers = {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
        }
        url = f"{self.settings.api_base_url.rstrip('/')}/chat/completions"
        body = self._build_body(system_prompt, messages)

        logger.info(f"[ApiHandler] Requesting {self.settings.model} with {len(messages)} message(s)")

        try:
            async with client.stream("POST", url, headers=headers, json=body) as response:
                if response.status_code >= 400:
                    error_body = (await response.aread()).decode("utf-8", errors="replace")
                    raise ApiError(
                        f"API request failed with status {response.status_code}: {error_body}",
                        status_code=response.status_code,
                    )

                lines = response.aiter_lines()
                while True:
                    line = await self._next_line(lines, cancel_event)
                    if line is None:
                        break
                    if not line.startswith("data: "):
                        continue
                    data = line[6:].strip()
                    if data == "[DONE]":
                        break

                    try:
                        chunk = json.loads(data)
                    except json.JSONDecodeError:
                        continue

                    if chunk.get("choices"):
                        delta = chunk["choices"][0].get("delta") or {}
                        if delta.get("content"):
                            yield ContentEvent(content=delta["content"])

                    usage = chunk.get("usage")
                    if usage:
                        yield UsageEvent(
                            total_tokens=usage.get("total_tokens", 0),
                            prompt_tokens=usage.get("prompt_tokens", 0),
                            completion_tokens=usage.get("completion_tokens", 0),
                        )
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request timed out: {e}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Network error: {e}") from e

    @staticmethod
    async def _next_line(
        lines: AsyncIterator[str],
        cancel_event: Optional[asyncio.Event]
    ) -> Optional[str]:
        """Next line of the response, or None at end of stream or on cancel."""
        if cancel_event is None:
            try:
                return await lines.__anext__()
            except StopAsyncIteration:
                return None

        if cancel_event.is_set():
            return None

        next_line = asyncio.ensure_future(lines.__anext__())
        cancelled = asyncio.ensure_future(cancel_event.wait())
        await asyncio.wait({next_line, cancelled}, return_when=asyncio.FIRST_COMPLETED)

        if next_line.done():
            cancelled.cancel()
            try:
                return next_line.result()
            except StopAsyncIteration:
                return None

        logger.info("[ApiHandler] Request cancelled")
        next_line.cancel()
        return None
