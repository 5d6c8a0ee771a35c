"""Where delivered notifications end up."""

from __future__ import annotations

from typing import Optional, Protocol

from rich.console import Console

from taskminder.modules.notifications.models import Notification, NotificationKind


class NotificationSink(Protocol):
    """Anything that can show a notification to the user."""

    async def deliver(self, notification: Notification) -> None: ...


class ConsoleSink:
    """Print notifications to the terminal."""

    _STYLES = {
        NotificationKind.INITIAL: "bold cyan",
        NotificationKind.REMINDER: "bold yellow",
        NotificationKind.IMMEDIATE: "bold",
    }

    def __init__(self, console: Optional[Console] = None) -> None:
        self._console = console or Console()

    async def deliver(self, notification: Notification) -> None:
        style = self._STYLES.get(notification.kind, "bold")
        bell = "\a" if notification.sound else ""
        self._console.print(f"{bell}[{style}]🔔 {notification.title}[/{style}]  {notification.body}")
