"""Test doubles and builders shared across the test modules."""

from __future__ import annotations

import datetime as dt
from typing import Any, Optional

from taskminder.clock import Clock
from taskminder.errors import NotificationPermissionError
from taskminder.modules.executions.models import Execution
from taskminder.modules.storage.models import AppSettings
from taskminder.modules.tasks.models import Task

# 2026-10-19 is a Monday
MONDAY = dt.date(2026, 10, 19)
TUESDAY = dt.date(2026, 10, 20)


def at(day: dt.date, hour: int, minute: int = 0) -> dt.datetime:
    """Aware UTC instant on ``day``."""
    return dt.datetime(day.year, day.month, day.day, hour, minute, tzinfo=dt.UTC)


class FrozenClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, now: dt.datetime) -> None:
        super().__init__()
        self.current = now

    def now(self) -> dt.datetime:
        return self.current

    def today(self) -> dt.date:
        return self.current.date()

    def set(self, now: dt.datetime) -> dt.datetime:
        self.current = now
        return now

    def advance(self, **kwargs: float) -> dt.datetime:
        self.current += dt.timedelta(**kwargs)
        return self.current


class RecordingNotifier:
    """Stands in for NotificationService and records every call."""

    def __init__(self, permitted: bool = True) -> None:
        self.permitted = permitted
        self.initial: list[str] = []
        self.reminders: list[tuple[str, str, int, int]] = []
        self.cancelled_tasks: list[str] = []
        self.cancelled_executions: list[str] = []
        self.configured: Optional[AppSettings] = None
        self.fail_reminders = False

    async def has_permission(self) -> bool:
        return self.permitted

    async def request_permission(self) -> bool:
        return self.permitted

    def configure(self, settings: AppSettings) -> None:
        self.configured = settings

    async def schedule_initial(self, task: Task) -> list[str]:
        if not self.permitted:
            raise NotificationPermissionError("Notification permission not granted")
        self.initial.append(task.id)
        return [f"initial:{task.id}"]

    async def schedule_reminder(self, execution: Execution, task_name: str, interval_minutes: int) -> str:
        if not self.permitted:
            raise NotificationPermissionError("Notification permission not granted")
        if self.fail_reminders:
            raise RuntimeError("delivery backend down")
        self.reminders.append((execution.id, task_name, interval_minutes, execution.reminder_count))
        return f"reminder:{execution.id}:{len(self.reminders)}"

    async def cancel(self, task_id: str) -> int:
        self.cancelled_tasks.append(task_id)
        return 0

    async def cancel_for_execution(self, execution_id: str) -> int:
        self.cancelled_executions.append(execution_id)
        return 0


def make_task(**overrides: Any) -> Task:
    """A Monday 08:00 task with a 15 minute reminder interval, unless overridden."""
    fields: dict[str, Any] = {
        "name": "Take medicine",
        "scheduled_times": ["08:00"],
        "days_of_week": [1],
        "reminder_interval_minutes": 15,
    }
    fields.update(overrides)
    return Task(**fields)


def make_execution(task: Task, day: dt.date = MONDAY, time: str = "08:00", **overrides: Any) -> Execution:
    fields: dict[str, Any] = {"task_id": task.id, "date": day, "scheduled_time": time}
    fields.update(overrides)
    return Execution(**fields)
