"""Reminder escalation engine.

A pending execution is owed ``floor(elapsed / interval)`` reminders, where
``elapsed`` is the time since its scheduled instant. Whenever that number is
ahead of the stored ``reminder_count`` the engine issues one reminder and
jumps the counter to the owed value. A long suspension therefore produces a
single catch-up reminder instead of one per skipped interval, and repeated
ticks at the same moment do nothing.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Iterable, Optional

from taskminder.errors import NotificationPermissionError
from taskminder.logging_config import get_logger
from taskminder.modules.executions.models import Execution
from taskminder.modules.notifications.service import NotificationService
from taskminder.modules.storage.service import StorageService
from taskminder.modules.tasks.models import Task

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class DueReminder:
    """One reminder the engine decided to issue."""

    execution: Execution
    task: Task
    reminder_number: int


def due_reminder_count(execution: Execution, interval_minutes: int, now: dt.datetime) -> int:
    """How many reminders an execution is owed at ``now``."""
    # UTC on both sides: same-zone subtraction would ignore a DST change.
    elapsed = now.astimezone(dt.UTC) - execution.scheduled_instant(now.tzinfo).astimezone(dt.UTC)
    if elapsed <= dt.timedelta(0):
        return 0
    return elapsed // dt.timedelta(minutes=interval_minutes)


def plan_reminders(now: dt.datetime, executions: Iterable[Execution], tasks: Iterable[Task]) -> list[DueReminder]:
    """Pick the executions that are due for their next reminder. Pure."""
    by_id = {t.id: t for t in tasks}
    due: list[DueReminder] = []
    for execution in executions:
        if not execution.is_pending:
            continue
        task = by_id.get(execution.task_id)
        if task is None or not task.is_active:
            continue
        owed = due_reminder_count(execution, task.reminder_interval_minutes, now)
        if owed > execution.reminder_count:
            due.append(DueReminder(execution=execution, task=task, reminder_number=owed))
    return due


class ReminderEscalationEngine:
    """Advances reminder counters and dispatches the matching notifications."""

    def __init__(self, storage: StorageService, notifier: Optional[NotificationService] = None) -> None:
        self._storage = storage
        self._notifier = notifier

    async def tick(
        self,
        now: dt.datetime,
        pending_executions: Iterable[Execution],
        tasks: Iterable[Task],
    ) -> list[DueReminder]:
        """Run one escalation step.

        Counters are persisted before any notification goes out, so a failed
        save never leads to the same reminder being sent on every tick.

        Raises:
            StorageError: If the updated counters cannot be persisted.
        """
        due = plan_reminders(now, pending_executions, tasks)
        if not due:
            return []

        owed = {d.execution.id: d.reminder_number for d in due}
        stored = await self._storage.load_executions()
        advanced = {e.id for e in stored if e.id in owed and e.raise_reminder_count(owed[e.id])}
        if advanced:
            await self._storage.save_executions(stored)

        issued = [d for d in due if d.execution.id in advanced]
        for reminder in issued:
            reminder.execution.raise_reminder_count(reminder.reminder_number)
            logger.info(
                "reminder_due",
                execution_id=reminder.execution.id,
                task_id=reminder.task.id,
                reminder_count=reminder.reminder_number,
            )

        await self._dispatch(issued)
        return issued

    async def _dispatch(self, reminders: list[DueReminder]) -> None:
        if self._notifier is None or not reminders:
            return
        if not await self._notifier.has_permission():
            logger.warning("reminders_skipped_no_permission", count=len(reminders))
            return

        for reminder in reminders:
            execution = reminder.execution
            try:
                # The engine owns escalation; drop anything still queued for this execution
                await self._notifier.cancel_for_execution(execution.id)
                await self._notifier.schedule_reminder(
                    execution,
                    reminder.task.name,
                    reminder.task.reminder_interval_minutes,
                )
            except NotificationPermissionError:
                logger.warning("reminder_skipped_no_permission", execution_id=execution.id)
            except Exception as exc:
                logger.error("reminder_dispatch_failed", execution_id=execution.id, error=str(exc))
