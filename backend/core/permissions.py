"""User authorization for tool operations.

This module provides:
- PermissionSettings: Which operations are auto-approved
- PermissionRequest: Descriptor of an operation awaiting approval
- PermissionManager: Decides, or asks the client and waits for the answer
"""

import asyncio
import logging
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from config.settings import Settings
from core.events import EventPublisher, PermissionRequestEvent


logger = logging.getLogger(__name__)


@dataclass
class PermissionSettings:
    """Default permission policy."""
    allow_read_by_default: bool = True
    allow_write_by_default: bool = False
    allow_execute_by_default: bool = False
    always_confirm: List[str] = field(default_factory=lambda: ["delete", "execute"])
    timeout: float = 300.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "PermissionSettings":
        return cls(
            allow_read_by_default=settings.allow_read_by_default,
            allow_write_by_default=settings.allow_write_by_default,
            allow_execute_by_default=settings.allow_execute_by_default,
            always_confirm=list(settings.always_confirm),
            timeout=settings.permission_timeout,
        )


@dataclass
class PermissionRequest:
    """An operation that needs the user's approval.

    Attributes:
        tool_name: Tool asking for permission
        operation: read, write, delete, execute or unknown
        target: File path or command the operation acts on
        details: Content preview or parameter dump shown to the user
    """
    tool_name: str
    operation: str
    target: str
    details: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class PermissionManager:
    """Handles user authorization for tool operations.

    Requests that are not auto-approved are sent to the client as a
    permission_request event and resolved by handle_permission_response().
    Without a connected client they are denied.
    """

    def __init__(
        self,
        settings: Optional[PermissionSettings] = None,
        publish: Optional[EventPublisher] = None
    ):
        self.settings = settings or PermissionSettings()
        self._publish = publish
        self._pending: Dict[str, asyncio.Future] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def check_permission(self, request: PermissionRequest) -> bool:
        """Return whether the operation may proceed."""
        operation = request.operation.lower()

        if operation in self.settings.always_confirm:
            return await self.request_user_confirmation(request)

        if operation == "read" and self.settings.allow_read_by_default:
            logger.info(f"[PermissionManager] Auto-approved read operation: {request.target}")
            return True
        if operation in ("write", "modify") and self.settings.allow_write_by_default:
            logger.info(f"[PermissionManager] Auto-approved write operation: {request.target}")
            return True
        if operation == "execute" and self.settings.allow_execute_by_default:
            logger.info(f"[PermissionManager] Auto-approved execute operation: {request.target}")
            return True

        return await self.request_user_confirmation(request)

    async def request_user_confirmation(self, request: PermissionRequest) -> bool:
        """Ask the client and wait for its answer, denying on timeout."""
        if self._publish is None:
            logger.warning(
                f"[PermissionManager] No client attached, denying {request.operation} on {request.target}"
            )
            return False

        request_id = f"perm-{uuid.uuid4().hex[:12]}"
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        payload = {"id": request_id}
        payload.update(request.to_dict())
        try:
            await self._publish(PermissionRequestEvent(request=payload))
            approved = await asyncio.wait_for(future, timeout=self.settings.timeout)
        except asyncio.TimeoutError:
            logger.info(f"[PermissionManager] Permission request {request_id} timed out")
            approved = False
        finally:
            self._pending.pop(request_id, None)

        verdict = "approved" if approved else "denied"
        logger.info(
            f"[PermissionManager] User {verdict}: {request.tool_name} - "
            f"{request.operation} on {request.target}"
        )
        return approved

    def handle_permission_response(self, request_id: str, approved: bool) -> bool:
        """Resolve a pending request. Returns False for unknown ids."""
        future = self._pending.get(request_id)
        if future is None or future.done():
            logger.warning(f"[PermissionManager] No pending request {request_id}")
            return False
        future.set_result(bool(approved))
        return True

    def deny_all_pending(self) -> None:
        """Resolve every outstanding request as denied."""
        for future in self._pending.values():
            if not future.done():
                future.set_result(False)
