"""SQLite-backed persistence for tasks, executions and settings.

Every save replaces the whole collection (last write wins). Callers load,
modify and save back; there are no partial updates. The dataset is a
single user's schedule plus a bounded history window, so full loads stay
small.

Rows are decoded one at a time. A corrupt row is logged and skipped rather
than failing the whole load, and it is left in place by later saves.
"""

from __future__ import annotations

import datetime as dt
import json
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy import String, delete, select, type_coerce
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskminder.clock import format_time
from taskminder.config import get_settings
from taskminder.database import get_session
from taskminder.errors import StorageError
from taskminder.logging_config import get_logger
from taskminder.modules.executions.models import Execution, ExecutionStatus
from taskminder.modules.storage.models import AppSettings, ExecutionRecord, SettingsRecord, TaskRecord
from taskminder.modules.tasks.models import Task

logger = get_logger(__name__)

DateRange = tuple[dt.date, dt.date]
RawKey = tuple[str, str, str]

_SETTINGS_ROW_ID = 1


def _to_naive_utc(value: Optional[dt.datetime]) -> Optional[dt.datetime]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(dt.UTC)
    return value.replace(tzinfo=None)


def _parse_utc(value: Any) -> Optional[dt.datetime]:
    """Stored naive-UTC timestamp (datetime or raw text) as an aware datetime."""
    if value is None:
        return None
    if isinstance(value, str):
        value = dt.datetime.fromisoformat(value)
    return value.replace(tzinfo=dt.UTC)


# Date and timestamp columns are read as raw text so one undecodable value
# fails only its own row instead of the whole fetch.
_TASK_COLUMNS = (
    TaskRecord.id,
    TaskRecord.name,
    TaskRecord.scheduled_times,
    TaskRecord.days_of_week,
    TaskRecord.reminder_interval_minutes,
    TaskRecord.is_active,
    type_coerce(TaskRecord.created_at, String).label("created_at"),
    type_coerce(TaskRecord.updated_at, String).label("updated_at"),
)

_EXECUTION_COLUMNS = (
    ExecutionRecord.id,
    ExecutionRecord.task_id,
    type_coerce(ExecutionRecord.date, String).label("date"),
    ExecutionRecord.scheduled_time,
    ExecutionRecord.status,
    type_coerce(ExecutionRecord.completed_at, String).label("completed_at"),
    ExecutionRecord.reminder_count,
)


class StorageService:
    """Load and save whole collections; raise StorageError when the database fails."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        default_settings: Optional[AppSettings] = None,
    ) -> None:
        self._factory = session_factory
        if default_settings is None:
            cfg = get_settings()
            default_settings = AppSettings(
                default_reminder_interval=cfg.default_reminder_interval,
                history_retention_days=cfg.history_retention_days,
            )
        self._default_settings = default_settings
        self._unreadable_tasks: set[str] = set()
        self._unreadable_executions: dict[str, RawKey] = {}

    # ── Conversion ───────────────────────────────────────────────────

    @staticmethod
    def _task_to_db(task: Task) -> TaskRecord:
        return TaskRecord(
            id=task.id,
            name=task.name,
            scheduled_times=json.dumps([format_time(t) for t in task.scheduled_times]),
            days_of_week=json.dumps(task.days_of_week),
            reminder_interval_minutes=task.reminder_interval_minutes,
            is_active=task.is_active,
            created_at=_to_naive_utc(task.created_at),
            updated_at=_to_naive_utc(task.updated_at),
        )

    @staticmethod
    def _task_from_db(row: Any) -> Task:
        return Task(
            id=row.id,
            name=row.name,
            scheduled_times=json.loads(row.scheduled_times),
            days_of_week=json.loads(row.days_of_week),
            reminder_interval_minutes=row.reminder_interval_minutes,
            is_active=row.is_active,
            created_at=_parse_utc(row.created_at),
            updated_at=_parse_utc(row.updated_at),
        )

    @staticmethod
    def _execution_to_db(execution: Execution) -> ExecutionRecord:
        return ExecutionRecord(
            id=execution.id,
            task_id=execution.task_id,
            date=execution.date,
            scheduled_time=format_time(execution.scheduled_time),
            status=execution.status.value,
            completed_at=_to_naive_utc(execution.completed_at),
            reminder_count=execution.reminder_count,
        )

    @staticmethod
    def _execution_from_db(row: Any) -> Execution:
        return Execution(
            id=row.id,
            task_id=row.task_id,
            date=row.date,
            scheduled_time=row.scheduled_time,
            status=ExecutionStatus(row.status),
            completed_at=_parse_utc(row.completed_at),
            reminder_count=row.reminder_count,
        )

    # ── Tasks ────────────────────────────────────────────────────────

    async def load_tasks(self) -> list[Task]:
        """Return every readable stored task.

        Rows that fail to parse are logged and left out; they stay in the
        database across later saves.
        """
        try:
            async with get_session(self._factory) as session:
                result = await session.execute(select(*_TASK_COLUMNS).order_by(TaskRecord.created_at))
                rows = result.all()
        except SQLAlchemyError as exc:
            logger.error("load_tasks_failed", error=str(exc))
            raise StorageError("Failed to load tasks", {"error": str(exc)}) from exc

        tasks: list[Task] = []
        unreadable: set[str] = set()
        for row in rows:
            try:
                tasks.append(self._task_from_db(row))
            except (ValueError, TypeError) as exc:
                unreadable.add(row.id)
                logger.error("task_row_skipped", task_id=row.id, error=str(exc))
        self._unreadable_tasks = unreadable
        return tasks

    async def save_tasks(self, tasks: list[Task]) -> None:
        """Replace the stored task collection."""
        kept = self._unreadable_tasks - {t.id for t in tasks}
        try:
            async with get_session(self._factory) as session:
                query = delete(TaskRecord)
                if kept:
                    query = query.where(TaskRecord.id.not_in(kept))
                await session.execute(query)
                session.add_all([self._task_to_db(task) for task in tasks])
            logger.debug("tasks_saved", count=len(tasks))
        except SQLAlchemyError as exc:
            logger.error("save_tasks_failed", error=str(exc))
            raise StorageError("Failed to save tasks", {"error": str(exc)}) from exc
        self._unreadable_tasks = kept

    # ── Executions ───────────────────────────────────────────────────

    async def load_executions(self, date_range: Optional[DateRange] = None) -> list[Execution]:
        """Return stored executions, optionally limited to an inclusive date range.

        A row that fails to parse is logged as ``execution_row_skipped`` and
        left out, so one corrupt record never hides the others.
        """
        try:
            async with get_session(self._factory) as session:
                query = select(*_EXECUTION_COLUMNS)
                if date_range is not None:
                    start, end = date_range
                    query = query.where(ExecutionRecord.date >= start, ExecutionRecord.date <= end)
                query = query.order_by(ExecutionRecord.date, ExecutionRecord.scheduled_time)
                result = await session.execute(query)
                rows = result.all()
        except SQLAlchemyError as exc:
            logger.error("load_executions_failed", error=str(exc))
            raise StorageError("Failed to load executions", {"error": str(exc)}) from exc

        executions: list[Execution] = []
        unreadable: dict[str, RawKey] = {}
        for row in rows:
            try:
                executions.append(self._execution_from_db(row))
            except (ValueError, TypeError) as exc:
                unreadable[row.id] = (row.task_id, str(row.date), str(row.scheduled_time))
                logger.error("execution_row_skipped", execution_id=row.id, error=str(exc))

        if date_range is None:
            self._unreadable_executions = unreadable
        else:
            self._unreadable_executions.update(unreadable)
        return executions

    async def save_executions(self, executions: list[Execution]) -> None:
        """Replace the stored execution collection.

        Unreadable rows seen by an earlier load are kept unless a saved
        execution now occupies their (task, date, time) slot.
        """
        taken = {(e.task_id, e.date.isoformat(), format_time(e.scheduled_time)) for e in executions}
        kept = {rid: key for rid, key in self._unreadable_executions.items() if key not in taken}
        try:
            async with get_session(self._factory) as session:
                query = delete(ExecutionRecord)
                if kept:
                    query = query.where(ExecutionRecord.id.not_in(list(kept)))
                await session.execute(query)
                session.add_all([self._execution_to_db(e) for e in executions])
            logger.debug("executions_saved", count=len(executions), unreadable_kept=len(kept))
        except SQLAlchemyError as exc:
            logger.error("save_executions_failed", error=str(exc))
            raise StorageError("Failed to save executions", {"error": str(exc)}) from exc
        self._unreadable_executions = kept

    # ── Settings ─────────────────────────────────────────────────────

    async def load_settings(self) -> AppSettings:
        """Return stored preferences, or defaults when none were saved."""
        try:
            async with get_session(self._factory) as session:
                row = await session.get(SettingsRecord, _SETTINGS_ROW_ID)
            if row is None:
                return self._default_settings.model_copy()
            return AppSettings.model_validate_json(row.payload)
        except (SQLAlchemyError, ValidationError) as exc:
            logger.error("load_settings_failed", error=str(exc))
            raise StorageError("Failed to load settings", {"error": str(exc)}) from exc

    async def save_settings(self, settings: AppSettings) -> None:
        """Persist preferences."""
        try:
            async with get_session(self._factory) as session:
                await session.merge(SettingsRecord(id=_SETTINGS_ROW_ID, payload=settings.model_dump_json()))
        except SQLAlchemyError as exc:
            logger.error("save_settings_failed", error=str(exc))
            raise StorageError("Failed to save settings", {"error": str(exc)}) from exc

    async def clear_all_data(self) -> None:
        """Drop every task, execution and preference, unreadable rows included."""
        try:
            async with get_session(self._factory) as session:
                await session.execute(delete(ExecutionRecord))
                await session.execute(delete(TaskRecord))
                await session.execute(delete(SettingsRecord))
            logger.info("all_data_cleared")
        except SQLAlchemyError as exc:
            logger.error("clear_all_data_failed", error=str(exc))
            raise StorageError("Failed to clear data", {"error": str(exc)}) from exc
        self._unreadable_tasks = set()
        self._unreadable_executions = {}
