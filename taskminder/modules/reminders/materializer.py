"""Execution materializer.

For a date, every active task scheduled on that weekday gets one pending
execution per scheduled time. Existing executions are never touched, so the
operation is idempotent and task edits only ever add occurrences.
"""

from __future__ import annotations

import datetime as dt
from typing import Iterable, Optional

from taskminder.errors import NotificationPermissionError
from taskminder.logging_config import get_logger
from taskminder.modules.executions.models import Execution, ExecutionKey
from taskminder.modules.notifications.service import NotificationService
from taskminder.modules.storage.service import StorageService
from taskminder.modules.tasks.models import Task

logger = get_logger(__name__)


def plan_executions(day: dt.date, tasks: Iterable[Task], existing: Iterable[Execution]) -> list[Execution]:
    """Executions that should exist for ``day`` but do not yet."""
    seen: set[ExecutionKey] = {e.key for e in existing}
    planned: list[Execution] = []
    for task in tasks:
        if not task.is_active or not task.runs_on(day):
            continue
        for scheduled_time in task.scheduled_times:
            key = (task.id, day, scheduled_time)
            if key in seen:
                continue
            seen.add(key)
            planned.append(Execution(task_id=task.id, date=day, scheduled_time=scheduled_time))
    return planned


class ExecutionMaterializer:
    """Creates executions for a date and requests their initial notifications."""

    def __init__(self, storage: StorageService, notifier: Optional[NotificationService] = None) -> None:
        self._storage = storage
        self._notifier = notifier

    async def materialize(self, day: dt.date, active_tasks: Iterable[Task]) -> list[Execution]:
        """Create the missing executions for ``day``.

        Returns only the executions created by this call. The whole collection
        is written in one save, so a StorageError means nothing was created.

        Raises:
            StorageError: If executions cannot be loaded or saved.
        """
        tasks = [t for t in active_tasks if t.is_active]
        existing = await self._storage.load_executions()
        created = plan_executions(day, tasks, existing)
        if not created:
            logger.debug("executions_up_to_date", date=day.isoformat())
            return []

        await self._storage.save_executions([*existing, *created])
        logger.info("executions_materialized", date=day.isoformat(), count=len(created))

        task_ids = {e.task_id for e in created}
        await self._schedule_initial([t for t in tasks if t.id in task_ids])
        return created

    async def _schedule_initial(self, tasks: list[Task]) -> None:
        if self._notifier is None:
            return
        for task in tasks:
            try:
                await self._notifier.schedule_initial(task)
            except NotificationPermissionError:
                logger.warning("initial_notification_skipped_no_permission", task_id=task.id)
            except Exception as exc:
                logger.error("initial_notification_failed", task_id=task.id, error=str(exc))
