"""Notification permission gate."""

from __future__ import annotations

from taskminder.logging_config import get_logger
from taskminder.modules.notifications.models import PermissionStatus

logger = get_logger(__name__)


class PermissionGate:
    """Tracks whether the user allows notifications.

    On a desktop host there is no OS prompt; the ``notifications_enabled``
    setting plays the role of the user's answer.
    """

    def __init__(self, enabled: bool = True) -> None:
        self._enabled = enabled
        self._status = PermissionStatus.UNDETERMINED

    @property
    def status(self) -> PermissionStatus:
        return self._status

    async def has_permission(self) -> bool:
        return self._status is PermissionStatus.GRANTED

    async def request_permission(self) -> bool:
        """Ask once; later calls return the recorded answer."""
        if self._status is PermissionStatus.UNDETERMINED:
            self._status = PermissionStatus.GRANTED if self._enabled else PermissionStatus.DENIED
            logger.info("notification_permission_resolved", status=self._status.value)
        return self._status is PermissionStatus.GRANTED
