"""Notification collaborator: delivery jobs, sinks and the permission gate."""

from taskminder.modules.notifications.models import (
    Notification,
    NotificationKind,
    PermissionStatus,
    ScheduledNotification,
)
from taskminder.modules.notifications.permissions import PermissionGate
from taskminder.modules.notifications.service import NotificationService
from taskminder.modules.notifications.sinks import ConsoleSink, NotificationSink

__all__ = [
    "ConsoleSink",
    "Notification",
    "NotificationKind",
    "NotificationService",
    "NotificationSink",
    "PermissionGate",
    "PermissionStatus",
    "ScheduledNotification",
]
