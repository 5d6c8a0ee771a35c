"""Tests for task and execution models."""

from __future__ import annotations

import datetime as dt

import pytest
from pydantic import ValidationError

from taskminder.errors import InvalidTransitionError
from taskminder.modules.executions.models import Execution, ExecutionStatus
from taskminder.modules.tasks.models import Task

from helpers import MONDAY, TUESDAY, at, make_task


class TestTask:
    """Tests for the Task model."""

    def test_times_are_parsed_sorted_and_deduplicated(self) -> None:
        task = make_task(scheduled_times=["20:00", "08:00", "8:00"])
        assert task.scheduled_times == [dt.time(8, 0), dt.time(20, 0)]

    def test_days_are_sorted_and_deduplicated(self) -> None:
        task = make_task(days_of_week=[5, 1, 3, 1])
        assert task.days_of_week == [1, 3, 5]

    def test_name_is_stripped(self) -> None:
        assert make_task(name="  Water plants ").name == "Water plants"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"name": "   "},
            {"scheduled_times": []},
            {"scheduled_times": ["25:00"]},
            {"days_of_week": []},
            {"days_of_week": [7]},
            {"days_of_week": [-1]},
            {"reminder_interval_minutes": 0},
        ],
    )
    def test_invalid_definitions_are_rejected(self, overrides: dict) -> None:
        with pytest.raises(ValidationError):
            make_task(**overrides)

    def test_runs_on(self) -> None:
        """Monday-only tasks run on 2026-10-19 but not the day after."""
        task = make_task(days_of_week=[1])
        assert task.runs_on(MONDAY)
        assert not task.runs_on(TUESDAY)

    def test_dump_uses_hh_mm(self) -> None:
        task = make_task(scheduled_times=["07:30"])
        assert task.model_dump(mode="json")["scheduled_times"] == ["07:30"]
        assert Task.model_validate(task.model_dump()) == task


class TestExecution:
    """Tests for execution state transitions."""

    def _execution(self, **kwargs) -> Execution:
        fields = {"task_id": "t1", "date": MONDAY, "scheduled_time": "08:00"}
        fields.update(kwargs)
        return Execution(**fields)

    def test_defaults(self) -> None:
        execution = self._execution()
        assert execution.status is ExecutionStatus.PENDING
        assert execution.reminder_count == 0
        assert execution.completed_at is None
        assert execution.key == ("t1", MONDAY, dt.time(8, 0))

    def test_scheduled_instant(self) -> None:
        assert self._execution().scheduled_instant(dt.UTC) == at(MONDAY, 8)

    def test_complete_sets_timestamp(self) -> None:
        execution = self._execution()
        assert execution.complete(at(MONDAY, 8, 5)) is True
        assert execution.status is ExecutionStatus.COMPLETED
        assert execution.completed_at == at(MONDAY, 8, 5)

    def test_complete_twice_keeps_first_timestamp(self) -> None:
        execution = self._execution()
        execution.complete(at(MONDAY, 8, 5))
        assert execution.complete(at(MONDAY, 9, 0)) is False
        assert execution.completed_at == at(MONDAY, 8, 5)

    def test_complete_missed_is_rejected(self) -> None:
        execution = self._execution()
        execution.mark_missed()
        with pytest.raises(InvalidTransitionError):
            execution.complete(at(MONDAY, 11))
        assert execution.status is ExecutionStatus.MISSED

    def test_mark_missed_only_from_pending(self) -> None:
        execution = self._execution()
        execution.complete(at(MONDAY, 8, 5))
        assert execution.mark_missed() is False
        assert execution.status is ExecutionStatus.COMPLETED

    def test_reminder_count_is_monotonic(self) -> None:
        execution = self._execution()
        assert execution.raise_reminder_count(3) is True
        assert execution.raise_reminder_count(2) is False
        assert execution.raise_reminder_count(3) is False
        assert execution.reminder_count == 3

    def test_reminder_count_frozen_after_completion(self) -> None:
        execution = self._execution()
        execution.complete(at(MONDAY, 8, 5))
        assert execution.raise_reminder_count(1) is False
        assert execution.reminder_count == 0

    def test_terminal_statuses(self) -> None:
        assert not ExecutionStatus.PENDING.is_terminal
        assert ExecutionStatus.COMPLETED.is_terminal
        assert ExecutionStatus.MISSED.is_terminal
