"""Models for scheduled and delivered notifications."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Optional


class NotificationKind(StrEnum):
    """Why a notification exists."""

    INITIAL = "initial"  # weekly "it's time" at the scheduled time
    REMINDER = "reminder"  # escalation for a pending execution
    IMMEDIATE = "immediate"


class PermissionStatus(StrEnum):
    """State of the notification permission."""

    UNDETERMINED = "undetermined"
    GRANTED = "granted"
    DENIED = "denied"


@dataclass
class ScheduledNotification:
    """Handle for a notification job the service is holding."""

    id: str
    task_id: str
    kind: NotificationKind
    fire_at: Optional[dt.datetime]
    execution_id: Optional[str] = None
    is_active: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "execution_id": self.execution_id,
            "kind": self.kind.value,
            "fire_at": self.fire_at.isoformat() if self.fire_at else None,
            "is_active": self.is_active,
        }


@dataclass
class Notification:
    """What actually reaches the user."""

    title: str
    body: str
    kind: NotificationKind
    data: dict[str, Any] = field(default_factory=dict)
    priority: str = "high"
    sound: bool = True
    created_at: dt.datetime = field(default_factory=lambda: dt.datetime.now(dt.UTC))
