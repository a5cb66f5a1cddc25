"""WebSocket API for the agent.

This module provides the ``/ws/agent`` endpoint. Each connection gets its
own AgentSession; client messages are dispatched to it and every event the
agent publishes is sent back as JSON.
"""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from api.session import AgentSession
from core.events import ErrorEvent, OutboundEvent


logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


@router.websocket("/ws/agent")
async def websocket_agent(websocket: WebSocket):
    """WebSocket endpoint for agent interaction.

    Messages:
    - user_message: Start a task for the request
    - cancel_task: Cancel the running task
    - permission_response: Answer a permission_request
    - mode_change: Switch the work mode
    - clear_conversation: Archive the conversation and start a new one
    """
    await websocket.accept()
    settings = websocket.app.state.settings

    async def publish(event: OutboundEvent) -> None:
        try:
            await websocket.send_json(event.to_wire())
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.debug(f"[WebSocket] Dropping {event.type}, connection closed: {e}")

    session = AgentSession(settings, publish)
    logger.info("[WebSocket] Agent session connected")

    try:
        while True:
            try:
                data = await websocket.receive_json()
            except json.JSONDecodeError:
                await publish(ErrorEvent(message="Invalid JSON"))
                continue
            if not isinstance(data, dict):
                await publish(ErrorEvent(message="Invalid message"))
                continue
            await session.handle_message(data)
    except WebSocketDisconnect:
        logger.info("[WebSocket] Agent session disconnected")
    finally:
        await session.close()
