"""Notification dispatch backed by APScheduler jobs.

Initial notifications are weekly cron jobs, one per (weekday, time) of a
task. Reminders are one-shot date jobs for a single execution. Every job
delivers into a ``NotificationSink``.
"""

from __future__ import annotations

import asyncio
import datetime as dt
from typing import Any, Optional
from uuid import uuid4

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from taskminder.clock import Clock, format_time
from taskminder.errors import NotificationPermissionError
from taskminder.logging_config import get_logger
from taskminder.modules.executions.models import Execution
from taskminder.modules.notifications.models import Notification, NotificationKind, ScheduledNotification
from taskminder.modules.notifications.permissions import PermissionGate
from taskminder.modules.notifications.sinks import ConsoleSink, NotificationSink
from taskminder.modules.storage.models import AppSettings
from taskminder.modules.tasks.models import Task

logger = get_logger(__name__)

_CRON_DAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


class NotificationService:
    """Schedules, delivers and cancels notifications."""

    def __init__(
        self,
        sink: Optional[NotificationSink] = None,
        permissions: Optional[PermissionGate] = None,
        clock: Optional[Clock] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
    ) -> None:
        self._sink = sink or ConsoleSink()
        self._permissions = permissions or PermissionGate()
        self._clock = clock or Clock()
        self._owns_scheduler = scheduler is None
        self._scheduler = scheduler or AsyncIOScheduler(
            job_defaults={
                "misfire_grace_time": 300,
                "coalesce": True,
                "max_instances": 1,
            },
        )
        self._handles: dict[str, ScheduledNotification] = {}
        self._priority = "high"
        self._sound = True

    @property
    def permissions(self) -> PermissionGate:
        return self._permissions

    async def start(self) -> None:
        """Start the job scheduler (idempotent)."""
        if self._owns_scheduler and not self._scheduler.running:
            self._scheduler.start()
            logger.info("notification_scheduler_started")

    async def stop(self) -> None:
        """Shut down the job scheduler if this service owns it."""
        if not self._owns_scheduler or not self._scheduler.running:
            return
        self._scheduler.shutdown(wait=False)
        await asyncio.sleep(0)
        logger.info("notification_scheduler_stopped")

    def configure(self, settings: AppSettings) -> None:
        """Apply user preferences to notifications created from now on."""
        self._priority = settings.notification_priority.value
        self._sound = settings.sound_enabled

    async def has_permission(self) -> bool:
        return await self._permissions.has_permission()

    async def request_permission(self) -> bool:
        return await self._permissions.request_permission()

    async def _require_permission(self) -> None:
        if not await self._permissions.has_permission():
            raise NotificationPermissionError("Notification permission not granted")

    # ── Scheduling ───────────────────────────────────────────────────

    async def schedule_initial(self, task: Task) -> list[str]:
        """Register weekly "it's time" notifications for every day/time of a task.

        Any initial jobs the task already had are replaced, so calling this
        repeatedly never stacks duplicate weekly jobs.
        """
        await self._require_permission()
        self._remove_handles(task_id=task.id, kind=NotificationKind.INITIAL)

        now = self._clock.now()
        handle_ids: list[str] = []
        for day in task.days_of_week:
            for scheduled_time in task.scheduled_times:
                handle_id = f"initial:{task.id}:{day}:{format_time(scheduled_time)}"
                trigger = CronTrigger(
                    day_of_week=_CRON_DAYS[day],
                    hour=scheduled_time.hour,
                    minute=scheduled_time.minute,
                    timezone=now.tzinfo,
                )
                self._scheduler.add_job(
                    self._deliver,
                    trigger=trigger,
                    id=handle_id,
                    name=f"initial: {task.name}",
                    kwargs={"handle_id": handle_id, "title": "Task reminder", "body": f"Time for {task.name}"},
                    replace_existing=True,
                )
                self._handles[handle_id] = ScheduledNotification(
                    id=handle_id,
                    task_id=task.id,
                    kind=NotificationKind.INITIAL,
                    fire_at=trigger.get_next_fire_time(None, now),
                )
                handle_ids.append(handle_id)

        logger.info("initial_notifications_scheduled", task_id=task.id, count=len(handle_ids))
        return handle_ids

    async def schedule_reminder(self, execution: Execution, task_name: str, interval_minutes: int) -> str:
        """Schedule one escalation reminder for a pending execution.

        The reminder is due ``reminder_count`` intervals after the scheduled
        instant; if that moment has already passed it is delivered right away.
        Offsets are added in UTC so a DST change in between does not shift them.
        """
        await self._require_permission()
        now = self._clock.now()
        due_at = execution.scheduled_instant(now.tzinfo).astimezone(dt.UTC) + dt.timedelta(
            minutes=interval_minutes * max(execution.reminder_count, 1)
        )
        fire_at = max(due_at, now.astimezone(dt.UTC))

        handle_id = f"reminder:{execution.id}:{uuid4().hex[:8]}"
        self._scheduler.add_job(
            self._deliver,
            trigger=DateTrigger(run_date=fire_at),
            id=handle_id,
            name=f"reminder: {task_name}",
            kwargs={
                "handle_id": handle_id,
                "title": "Task reminder",
                "body": f"{task_name} is still not done",
                "data": {"reminder_count": execution.reminder_count},
            },
        )
        self._handles[handle_id] = ScheduledNotification(
            id=handle_id,
            task_id=execution.task_id,
            execution_id=execution.id,
            kind=NotificationKind.REMINDER,
            fire_at=fire_at,
        )
        logger.info(
            "reminder_scheduled",
            execution_id=execution.id,
            task_name=task_name,
            reminder_count=execution.reminder_count,
            fire_at=fire_at.isoformat(),
        )
        return handle_id

    async def send_immediate(self, title: str, body: str, data: Optional[dict[str, Any]] = None) -> None:
        """Deliver a notification now, without scheduling a job."""
        await self._require_permission()
        await self._sink.deliver(self._build(title, body, NotificationKind.IMMEDIATE, data))

    # ── Cancellation ─────────────────────────────────────────────────

    async def cancel(self, task_id: str) -> int:
        """Cancel every notification belonging to a task."""
        removed = self._remove_handles(task_id=task_id)
        logger.info("notifications_cancelled", task_id=task_id, count=removed)
        return removed

    async def cancel_for_execution(self, execution_id: str) -> int:
        """Cancel reminders still queued for one execution."""
        removed = self._remove_handles(execution_id=execution_id)
        if removed:
            logger.info("execution_reminders_cancelled", execution_id=execution_id, count=removed)
        return removed

    async def cancel_by_id(self, handle_id: str) -> bool:
        """Cancel a single notification handle."""
        return self._remove_handle(handle_id)

    def list_scheduled(self) -> list[ScheduledNotification]:
        """Active notification handles."""
        return [h for h in self._handles.values() if h.is_active]

    # ── Internals ────────────────────────────────────────────────────

    def _build(
        self,
        title: str,
        body: str,
        kind: NotificationKind,
        data: Optional[dict[str, Any]] = None,
    ) -> Notification:
        return Notification(
            title=title,
            body=body,
            kind=kind,
            data=data or {},
            priority=self._priority,
            sound=self._sound,
        )

    async def _deliver(
        self,
        handle_id: str,
        title: str,
        body: str,
        data: Optional[dict[str, Any]] = None,
    ) -> None:
        handle = self._handles.get(handle_id)
        if handle is None or not handle.is_active:
            return
        payload = {"task_id": handle.task_id, "execution_id": handle.execution_id, **(data or {})}
        try:
            await self._sink.deliver(self._build(title, body, handle.kind, payload))
            logger.info("notification_delivered", handle_id=handle_id, kind=handle.kind.value)
        except Exception as exc:
            logger.error("notification_delivery_failed", handle_id=handle_id, error=str(exc))
        if handle.kind is NotificationKind.REMINDER:
            handle.is_active = False
            self._handles.pop(handle_id, None)

    def _remove_handle(self, handle_id: str) -> bool:
        handle = self._handles.pop(handle_id, None)
        if handle is None:
            return False
        handle.is_active = False
        try:
            self._scheduler.remove_job(handle_id)
        except JobLookupError:
            pass  # already fired
        return True

    def _remove_handles(
        self,
        task_id: Optional[str] = None,
        execution_id: Optional[str] = None,
        kind: Optional[NotificationKind] = None,
    ) -> int:
        matching = [
            h.id
            for h in self._handles.values()
            if (task_id is None or h.task_id == task_id)
            and (execution_id is None or h.execution_id == execution_id)
            and (kind is None or h.kind is kind)
        ]
        for handle_id in matching:
            self._remove_handle(handle_id)
        return len(matching)
