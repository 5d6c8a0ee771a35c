"""Task CRUD with validation.

Creating or editing a task re-materializes today's executions, so a task
added at 07:55 for 08:00 shows up immediately. Edits are forward-looking:
executions that already exist are left as they are.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Optional

from pydantic import ValidationError

from taskminder.errors import NotFoundError, NotificationPermissionError, StorageError, TaskValidationError
from taskminder.logging_config import get_logger
from taskminder.modules.lifecycle.service import LifecycleCoordinator
from taskminder.modules.notifications.service import NotificationService
from taskminder.modules.storage.service import StorageService
from taskminder.modules.tasks.models import Task, TaskCreate, TaskUpdate

logger = get_logger(__name__)


def _validation_error(exc: ValidationError) -> TaskValidationError:
    problems = [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return TaskValidationError("Invalid task definition", {"errors": problems})


class TaskService:
    """Creates, edits and deletes recurring tasks."""

    def __init__(
        self,
        storage: StorageService,
        notifier: NotificationService,
        coordinator: LifecycleCoordinator,
    ) -> None:
        self._storage = storage
        self._notifier = notifier
        self._coordinator = coordinator

    async def list_tasks(self) -> list[Task]:
        return await self._storage.load_tasks()

    async def get_task(self, task_id: str) -> Task:
        """Raises NotFoundError for unknown ids."""
        for task in await self._storage.load_tasks():
            if task.id == task_id:
                return task
        raise NotFoundError("Task not found", {"task_id": task_id})

    async def create_task(self, data: TaskCreate) -> Task:
        """Validate and store a new task, then materialize today.

        Raises:
            TaskValidationError: Empty schedule, bad time, bad weekday, etc.
            StorageError: If persistence fails.
        """
        fields: dict[str, Any] = data.model_dump()
        if fields.get("reminder_interval_minutes") is None:
            fields["reminder_interval_minutes"] = (await self._storage.load_settings()).default_reminder_interval
        try:
            task = Task(**fields)
        except ValidationError as exc:
            raise _validation_error(exc) from exc

        async with self._coordinator.exclusive():
            tasks = await self._storage.load_tasks()
            tasks.append(task)
            await self._storage.save_tasks(tasks)
        logger.info("task_created", task_id=task.id, name=task.name)

        await self._after_change(task)
        return task

    async def update_task(self, task_id: str, updates: TaskUpdate) -> Task:
        """Apply a partial update.

        Raises:
            NotFoundError: Unknown task id.
            TaskValidationError: The merged definition is invalid.
            StorageError: If persistence fails.
        """
        changes = updates.model_dump(exclude_unset=True, exclude_none=True)
        async with self._coordinator.exclusive():
            tasks = await self._storage.load_tasks()
            index = next((i for i, t in enumerate(tasks) if t.id == task_id), None)
            if index is None:
                raise NotFoundError("Task not found", {"task_id": task_id})

            current = tasks[index]
            merged = {**current.model_dump(), **changes, "updated_at": dt.datetime.now(dt.UTC)}
            try:
                updated = Task.model_validate(merged)
            except ValidationError as exc:
                raise _validation_error(exc) from exc

            tasks[index] = updated
            await self._storage.save_tasks(tasks)
        logger.info("task_updated", task_id=task_id, fields=sorted(changes))

        await self._after_change(updated)
        return updated

    async def delete_task(self, task_id: str) -> None:
        """Delete a task together with all of its executions.

        Raises:
            NotFoundError: Unknown task id.
            StorageError: If persistence fails.
        """
        async with self._coordinator.exclusive():
            tasks = await self._storage.load_tasks()
            remaining = [t for t in tasks if t.id != task_id]
            if len(remaining) == len(tasks):
                raise NotFoundError("Task not found", {"task_id": task_id})
            executions = await self._storage.load_executions()
            await self._storage.save_executions([e for e in executions if e.task_id != task_id])
            await self._storage.save_tasks(remaining)

        try:
            await self._notifier.cancel(task_id)
        except Exception as exc:
            logger.error("cancel_notifications_failed", task_id=task_id, error=str(exc))
        logger.info("task_deleted", task_id=task_id)

    async def _after_change(self, task: Task) -> None:
        try:
            if task.is_active:
                await self._notifier.schedule_initial(task)
            else:
                await self._notifier.cancel(task.id)
        except NotificationPermissionError:
            logger.warning("initial_notification_skipped_no_permission", task_id=task.id)
        except Exception as exc:
            logger.error("initial_notification_failed", task_id=task.id, error=str(exc))

        try:
            await self._coordinator.materialize_today()
        except StorageError as exc:
            # The task itself is saved; the next reconciliation pass will catch up
            logger.error("materialize_after_change_failed", task_id=task.id, error=exc.message)

    async def set_active(self, task_id: str, active: bool) -> Task:
        """Pause or resume a task."""
        return await self.update_task(task_id, TaskUpdate(is_active=active))

    async def find_by_name(self, name: str) -> Optional[Task]:
        """Case-insensitive lookup; the CLI accepts a task name wherever it takes an id."""
        wanted = name.strip().lower()
        for task in await self._storage.load_tasks():
            if task.name.lower() == wanted:
                return task
        return None

    async def clear_all(self) -> int:
        """Erase every task, execution and preference and cancel their notifications.

        Returns the number of tasks removed.

        Raises:
            StorageError: If persistence fails.
        """
        async with self._coordinator.exclusive():
            tasks = await self._storage.load_tasks()
            await self._storage.clear_all_data()

        for task in tasks:
            try:
                await self._notifier.cancel(task.id)
            except Exception as exc:
                logger.error("cancel_notifications_failed", task_id=task.id, error=str(exc))
        self._notifier.configure(await self._storage.load_settings())
        logger.info("tasks_cleared", count=len(tasks))
        return len(tasks)
