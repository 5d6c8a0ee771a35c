"""Database tables for tasks, executions and user preferences."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field
from sqlalchemy import Boolean, Column, Date, DateTime, Index, Integer, String, Text, UniqueConstraint

from taskminder.database import Base


class TaskRecord(Base):
    """Persisted recurring task definition."""

    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True)
    name = Column(String(256), nullable=False)
    scheduled_times = Column(Text, nullable=False)  # JSON list of "HH:MM"
    days_of_week = Column(String(32), nullable=False)  # JSON list of 0..6
    reminder_interval_minutes = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, nullable=False)  # naive UTC
    updated_at = Column(DateTime, nullable=False)  # naive UTC

    def __repr__(self) -> str:
        return f"<TaskRecord(id={self.id}, name={self.name}, active={self.is_active})>"


class ExecutionRecord(Base):
    """Persisted execution; one row per (task, date, time)."""

    __tablename__ = "task_executions"

    id = Column(String(36), primary_key=True)
    task_id = Column(String(36), nullable=False)
    date = Column(Date, nullable=False)
    scheduled_time = Column(String(5), nullable=False)  # local "HH:MM"
    status = Column(String(16), nullable=False, default="pending")
    completed_at = Column(DateTime, nullable=True)  # naive UTC
    reminder_count = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("task_id", "date", "scheduled_time", name="uq_task_executions_occurrence"),
        Index("ix_task_executions_date", "date"),
        Index("ix_task_executions_task_id", "task_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ExecutionRecord(id={self.id}, task_id={self.task_id}, "
            f"date={self.date}, time={self.scheduled_time}, status={self.status})>"
        )


class SettingsRecord(Base):
    """Single-row JSON blob of user preferences."""

    __tablename__ = "app_settings"

    id = Column(Integer, primary_key=True)
    payload = Column(Text, nullable=False, default="{}")


class NotificationPriority(StrEnum):
    """How loudly reminders should present themselves."""

    DEFAULT = "default"
    HIGH = "high"
    MAX = "max"


class AppSettings(BaseModel):
    """User preferences stored alongside the data."""

    default_reminder_interval: int = Field(default=10, gt=0)
    sound_enabled: bool = True
    vibration_enabled: bool = True
    history_retention_days: int = Field(default=30, gt=0)
    notification_priority: NotificationPriority = NotificationPriority.HIGH
