"""Tests for the execution materializer."""

from __future__ import annotations

import datetime as dt

import pytest

from taskminder.modules.executions.models import ExecutionStatus
from taskminder.modules.reminders.materializer import ExecutionMaterializer, plan_executions

from helpers import MONDAY, TUESDAY, RecordingNotifier, make_execution, make_task


class TestPlanExecutions:
    """Tests for the pure planning step."""

    def test_one_execution_per_time(self) -> None:
        task = make_task(scheduled_times=["08:00", "20:00"])
        planned = plan_executions(MONDAY, [task], [])
        assert [e.scheduled_time for e in planned] == [dt.time(8, 0), dt.time(20, 0)]
        assert all(e.status is ExecutionStatus.PENDING and e.reminder_count == 0 for e in planned)

    def test_other_weekday_yields_nothing(self) -> None:
        """A Mon/Wed/Fri task has nothing on a Tuesday."""
        task = make_task(days_of_week=[1, 3, 5])
        assert plan_executions(TUESDAY, [task], []) == []

    def test_inactive_tasks_are_skipped(self) -> None:
        task = make_task(is_active=False)
        assert plan_executions(MONDAY, [task], []) == []

    def test_existing_keys_are_skipped(self) -> None:
        task = make_task(scheduled_times=["08:00", "20:00"])
        existing = [make_execution(task, MONDAY, "08:00", status=ExecutionStatus.COMPLETED)]
        planned = plan_executions(MONDAY, [task], existing)
        assert [e.scheduled_time for e in planned] == [dt.time(20, 0)]


class TestExecutionMaterializer:
    """Tests for materializing into storage."""

    @pytest.mark.asyncio
    async def test_materialize_creates_and_schedules(self, storage, notifier: RecordingNotifier) -> None:
        task = make_task(scheduled_times=["08:00", "20:00"])
        materializer = ExecutionMaterializer(storage, notifier)

        created = await materializer.materialize(MONDAY, [task])

        assert len(created) == 2
        assert await storage.load_executions() == created
        assert notifier.initial == [task.id]

    @pytest.mark.asyncio
    async def test_idempotent(self, storage, notifier: RecordingNotifier) -> None:
        """Running twice for the same day creates nothing new."""
        task = make_task()
        materializer = ExecutionMaterializer(storage, notifier)

        first = await materializer.materialize(MONDAY, [task])
        second = await materializer.materialize(MONDAY, [task])

        assert len(first) == 1
        assert second == []
        assert len(await storage.load_executions()) == 1
        assert notifier.initial == [task.id]

    @pytest.mark.asyncio
    async def test_progress_is_preserved(self, storage) -> None:
        """Existing executions keep their status and counters."""
        task = make_task()
        materializer = ExecutionMaterializer(storage)
        [execution] = await materializer.materialize(MONDAY, [task])
        execution.raise_reminder_count(3)
        await storage.save_executions([execution])

        await materializer.materialize(MONDAY, [task])

        [stored] = await storage.load_executions()
        assert stored.id == execution.id
        assert stored.reminder_count == 3

    @pytest.mark.asyncio
    async def test_edit_adds_new_time_only(self, storage) -> None:
        """Adding a time to a task adds one execution and keeps the old one."""
        task = make_task()
        materializer = ExecutionMaterializer(storage)
        [original] = await materializer.materialize(MONDAY, [task])

        edited = task.model_copy(update={"scheduled_times": [dt.time(8, 0), dt.time(12, 0)]})
        created = await materializer.materialize(MONDAY, [edited])

        assert [e.scheduled_time for e in created] == [dt.time(12, 0)]
        assert {e.id for e in await storage.load_executions()} == {original.id, created[0].id}

    @pytest.mark.asyncio
    async def test_removed_time_keeps_existing_execution(self, storage) -> None:
        task = make_task(scheduled_times=["08:00", "12:00"])
        materializer = ExecutionMaterializer(storage)
        await materializer.materialize(MONDAY, [task])

        edited = task.model_copy(update={"scheduled_times": [dt.time(8, 0)]})
        assert await materializer.materialize(MONDAY, [edited]) == []
        assert len(await storage.load_executions()) == 2

    @pytest.mark.asyncio
    async def test_no_permission_still_materializes(self, storage) -> None:
        task = make_task()
        materializer = ExecutionMaterializer(storage, RecordingNotifier(permitted=False))

        created = await materializer.materialize(MONDAY, [task])

        assert len(created) == 1
        assert len(await storage.load_executions()) == 1
