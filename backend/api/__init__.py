"""API module for FastAPI routes.

This module provides:
- WebSocket endpoint for the agent
- AgentSession: Per-connection agent state
"""

from api.session import AgentSession
from api.websocket import router as websocket_router

__all__ = [
    "AgentSession",
    "websocket_router",
]
