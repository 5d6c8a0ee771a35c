"""Execution model: one scheduled occurrence of a task on a given date.

Status moves PENDING -> COMPLETED (user action) or PENDING -> MISSED
(grace period elapsed). Both are terminal.
"""

from __future__ import annotations

import datetime as dt
from enum import StrEnum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_serializer, field_validator

from taskminder.clock import combine, format_time, parse_time
from taskminder.errors import InvalidTransitionError

ExecutionKey = tuple[str, dt.date, dt.time]


class ExecutionStatus(StrEnum):
    """Execution lifecycle status."""

    PENDING = "pending"
    COMPLETED = "completed"
    MISSED = "missed"

    @property
    def is_terminal(self) -> bool:
        return self is not ExecutionStatus.PENDING


class Execution(BaseModel):
    """A concrete, dated occurrence of a task."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    task_id: str
    date: dt.date
    scheduled_time: dt.time
    status: ExecutionStatus = ExecutionStatus.PENDING
    completed_at: Optional[dt.datetime] = None
    reminder_count: int = Field(default=0, ge=0)

    @field_validator("scheduled_time", mode="before")
    @classmethod
    def _parse_time(cls, value: Any) -> Any:
        return parse_time(value) if isinstance(value, str) else value

    @field_serializer("scheduled_time")
    def _dump_time(self, value: dt.time) -> str:
        return format_time(value)

    @property
    def key(self) -> ExecutionKey:
        """Identity of the occurrence; unique across all executions."""
        return (self.task_id, self.date, self.scheduled_time)

    @property
    def is_pending(self) -> bool:
        return self.status is ExecutionStatus.PENDING

    def scheduled_instant(self, tzinfo: Optional[dt.tzinfo] = None) -> dt.datetime:
        """When this occurrence is due, in the zone of ``tzinfo``."""
        return combine(self.date, self.scheduled_time, tzinfo)

    def complete(self, at: dt.datetime) -> bool:
        """Mark completed. Returns False when it already was.

        Raises:
            InvalidTransitionError: If the execution was already marked missed.
        """
        if self.status is ExecutionStatus.COMPLETED:
            return False
        if self.status is ExecutionStatus.MISSED:
            raise InvalidTransitionError(
                "Missed executions cannot be completed",
                {"execution_id": self.id},
            )
        self.status = ExecutionStatus.COMPLETED
        self.completed_at = at
        return True

    def mark_missed(self) -> bool:
        """Mark missed if still pending. Returns whether anything changed."""
        if not self.is_pending:
            return False
        self.status = ExecutionStatus.MISSED
        return True

    def raise_reminder_count(self, count: int) -> bool:
        """Raise the reminder counter; never lowers it, never touches terminal rows."""
        if not self.is_pending or count <= self.reminder_count:
            return False
        self.reminder_count = count
        return True
