"""Data models for recurring task definitions."""

from __future__ import annotations

import datetime as dt
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_serializer, field_validator

from taskminder.clock import format_time, parse_time, weekday


def _coerce_times(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [parse_time(v) if isinstance(v, str) else v for v in value]
    return value


def _normalize_times(value: list[dt.time]) -> list[dt.time]:
    if not value:
        raise ValueError("at least one scheduled time is required")
    # Seconds are dropped: schedules are minute-granular
    return sorted({t.replace(second=0, microsecond=0, tzinfo=None) for t in value})


def _normalize_days(value: list[int]) -> list[int]:
    if not value:
        raise ValueError("at least one day of week is required")
    for day in value:
        if not 0 <= day <= 6:
            raise ValueError(f"day of week out of range (0=Sunday..6=Saturday): {day}")
    return sorted(set(value))


class Task(BaseModel):
    """A recurring schedule: which days, which times, how often to nag."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    scheduled_times: list[dt.time]
    days_of_week: list[int]
    reminder_interval_minutes: int = Field(gt=0)
    is_active: bool = True
    created_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.UTC))
    updated_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.UTC))

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be empty")
        return value

    @field_validator("scheduled_times", mode="before")
    @classmethod
    def _parse_times(cls, value: Any) -> Any:
        return _coerce_times(value)

    @field_validator("scheduled_times")
    @classmethod
    def _check_times(cls, value: list[dt.time]) -> list[dt.time]:
        return _normalize_times(value)

    @field_validator("days_of_week")
    @classmethod
    def _check_days(cls, value: list[int]) -> list[int]:
        return _normalize_days(value)

    @field_serializer("scheduled_times")
    def _dump_times(self, value: list[dt.time]) -> list[str]:
        return [format_time(t) for t in value]

    def runs_on(self, day: dt.date) -> bool:
        """Whether this task is scheduled on the given calendar date."""
        return weekday(day) in self.days_of_week


class TaskCreate(BaseModel):
    """Fields accepted when creating a task."""

    name: str
    scheduled_times: list[str]
    days_of_week: list[int]
    reminder_interval_minutes: Optional[int] = None  # falls back to app settings
    is_active: bool = True


class TaskUpdate(BaseModel):
    """Partial update; unset fields are left alone."""

    name: Optional[str] = None
    scheduled_times: Optional[list[str]] = None
    days_of_week: Optional[list[int]] = None
    reminder_interval_minutes: Optional[int] = None
    is_active: Optional[bool] = None
