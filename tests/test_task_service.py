"""Tests for task CRUD."""

from __future__ import annotations

import datetime as dt

import pytest

from taskminder.errors import NotFoundError, TaskValidationError
from taskminder.modules.lifecycle.service import LifecycleCoordinator
from taskminder.modules.storage.models import AppSettings
from taskminder.modules.tasks.models import TaskCreate, TaskUpdate
from taskminder.modules.tasks.service import TaskService

from helpers import MONDAY, RecordingNotifier


@pytest.fixture
def service(storage, notifier, clock, settings) -> TaskService:
    coordinator = LifecycleCoordinator(storage, notifier, clock=clock, settings=settings)
    return TaskService(storage, notifier, coordinator)


def _create(**overrides) -> TaskCreate:
    fields = {"name": "Stretch", "scheduled_times": ["08:00"], "days_of_week": [1]}
    fields.update(overrides)
    return TaskCreate(**fields)


class TestCreateTask:
    """Tests for creating tasks."""

    @pytest.mark.asyncio
    async def test_create_materializes_today(self, service: TaskService, storage, notifier: RecordingNotifier) -> None:
        """A task created at 07:00 for 08:00 today shows up right away."""
        task = await service.create_task(_create(reminder_interval_minutes=5))

        assert await service.list_tasks() == [task]
        [execution] = await storage.load_executions()
        assert execution.task_id == task.id
        assert execution.date == MONDAY
        assert task.id in notifier.initial

    @pytest.mark.asyncio
    async def test_default_interval_comes_from_settings(self, service: TaskService, storage) -> None:
        await storage.save_settings(AppSettings(default_reminder_interval=25))

        task = await service.create_task(_create())

        assert task.reminder_interval_minutes == 25

    @pytest.mark.asyncio
    async def test_invalid_definition(self, service: TaskService, storage) -> None:
        with pytest.raises(TaskValidationError) as exc_info:
            await service.create_task(_create(name=" ", days_of_week=[9]))

        fields = {e["field"] for e in exc_info.value.context["errors"]}
        assert {"name", "days_of_week"} <= fields
        assert await storage.load_tasks() == []

    @pytest.mark.asyncio
    async def test_bad_time(self, service: TaskService) -> None:
        with pytest.raises(TaskValidationError):
            await service.create_task(_create(scheduled_times=["8pm"]))

    @pytest.mark.asyncio
    async def test_created_without_permission(self, storage, clock, settings) -> None:
        """Missing permission does not block saving the task."""
        notifier = RecordingNotifier(permitted=False)
        coordinator = LifecycleCoordinator(storage, notifier, clock=clock, settings=settings)
        service = TaskService(storage, notifier, coordinator)

        task = await service.create_task(_create())

        assert await service.get_task(task.id) == task


class TestUpdateTask:
    """Tests for editing tasks."""

    @pytest.mark.asyncio
    async def test_added_time_adds_execution(self, service: TaskService, storage) -> None:
        task = await service.create_task(_create())

        updated = await service.update_task(task.id, TaskUpdate(scheduled_times=["08:00", "12:30"]))

        assert updated.scheduled_times == [dt.time(8, 0), dt.time(12, 30)]
        assert updated.name == task.name
        assert len(await storage.load_executions()) == 2

    @pytest.mark.asyncio
    async def test_invalid_update(self, service: TaskService) -> None:
        task = await service.create_task(_create())
        with pytest.raises(TaskValidationError):
            await service.update_task(task.id, TaskUpdate(reminder_interval_minutes=0))
        assert (await service.get_task(task.id)).reminder_interval_minutes == task.reminder_interval_minutes

    @pytest.mark.asyncio
    async def test_unknown_task(self, service: TaskService) -> None:
        with pytest.raises(NotFoundError):
            await service.update_task("missing", TaskUpdate(name="x"))

    @pytest.mark.asyncio
    async def test_pause_cancels_notifications(self, service: TaskService, notifier: RecordingNotifier) -> None:
        task = await service.create_task(_create())

        paused = await service.set_active(task.id, False)

        assert paused.is_active is False
        assert task.id in notifier.cancelled_tasks


class TestDeleteTask:
    """Tests for deleting tasks."""

    @pytest.mark.asyncio
    async def test_delete_removes_executions(self, service: TaskService, storage, notifier: RecordingNotifier) -> None:
        keep = await service.create_task(_create(name="Keep"))
        drop = await service.create_task(_create(name="Drop"))

        await service.delete_task(drop.id)

        assert [t.id for t in await service.list_tasks()] == [keep.id]
        assert {e.task_id for e in await storage.load_executions()} == {keep.id}
        assert drop.id in notifier.cancelled_tasks

    @pytest.mark.asyncio
    async def test_delete_unknown(self, service: TaskService) -> None:
        with pytest.raises(NotFoundError):
            await service.delete_task("missing")

    @pytest.mark.asyncio
    async def test_find_by_name(self, service: TaskService) -> None:
        task = await service.create_task(_create(name="Water Plants"))
        assert await service.find_by_name("  water plants") == task
        assert await service.find_by_name("nope") is None

    @pytest.mark.asyncio
    async def test_clear_all(self, service: TaskService, storage, notifier: RecordingNotifier) -> None:
        """Tasks, history and preferences go; every task's notifications are cancelled."""
        first = await service.create_task(_create(name="Stretch"))
        second = await service.create_task(_create(name="Water plants"))
        await storage.save_settings(AppSettings(sound_enabled=False))

        assert await service.clear_all() == 2

        assert await service.list_tasks() == []
        assert await storage.load_executions() == []
        assert set(notifier.cancelled_tasks) >= {first.id, second.id}
        assert notifier.configured is not None
        assert notifier.configured.sound_enabled is True
