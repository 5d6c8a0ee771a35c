"""Lifecycle coordinator.

There is no background process guaranteed to run, so correct state is
re-derived from the wall clock whenever something wakes the app up: cold
start, a date rollover, coming back to the foreground, or the periodic
ticks while running. Each wake-up runs a reconciliation pass:

    materialize today -> mark missed -> escalate reminders

All passes and user completions go through one lock so the read-modify-write
cycles on the execution collection never interleave.
"""

from __future__ import annotations

import asyncio
import datetime as dt
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncGenerator, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from taskminder.clock import Clock
from taskminder.config import Settings, get_settings
from taskminder.errors import NotFoundError, NotificationPermissionError, StorageError
from taskminder.logging_config import get_logger
from taskminder.modules.executions.models import Execution
from taskminder.modules.notifications.service import NotificationService
from taskminder.modules.reminders.escalation import DueReminder, ReminderEscalationEngine
from taskminder.modules.reminders.materializer import ExecutionMaterializer
from taskminder.modules.reminders.missed import MissedTaskDetector
from taskminder.modules.storage.service import StorageService
from taskminder.modules.tasks.models import Task

logger = get_logger(__name__)

TICK_JOB_ID = "lifecycle:reminder_tick"
DATE_CHECK_JOB_ID = "lifecycle:date_check"


@dataclass
class ReconcileResult:
    """What one reconciliation pass did."""

    trigger: str
    date: dt.date
    materialized: list[Execution] = field(default_factory=list)
    missed: list[Execution] = field(default_factory=list)
    reminders: list[DueReminder] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "trigger": self.trigger,
            "date": self.date.isoformat(),
            "materialized": len(self.materialized),
            "missed": len(self.missed),
            "reminders": len(self.reminders),
            "error": self.error,
        }


class LifecycleCoordinator:
    """Runs reconciliation passes and owns the completion transition."""

    def __init__(
        self,
        storage: StorageService,
        notifier: NotificationService,
        clock: Optional[Clock] = None,
        settings: Optional[Settings] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._storage = storage
        self._notifier = notifier
        self._clock = clock or Clock(self._settings.tzinfo)
        self._scheduler = scheduler or AsyncIOScheduler(
            job_defaults={"misfire_grace_time": 300, "coalesce": True, "max_instances": 1},
        )
        self._lock = asyncio.Lock()
        self._last_date: Optional[dt.date] = None

        self.materializer = ExecutionMaterializer(storage, notifier)
        self.detector = MissedTaskDetector(
            storage, grace=dt.timedelta(minutes=self._settings.missed_grace_minutes)
        )
        self.escalator = ReminderEscalationEngine(storage, notifier)

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def scheduler(self) -> AsyncIOScheduler:
        return self._scheduler

    @property
    def is_running(self) -> bool:
        return self._scheduler.running

    @asynccontextmanager
    async def exclusive(self) -> AsyncGenerator[None, None]:
        """Hold the execution-collection lock for a read-modify-write cycle."""
        async with self._lock:
            yield

    # ── Start / stop ─────────────────────────────────────────────────

    async def start(self) -> ReconcileResult:
        """Cold start, then keep ticking until ``stop()``."""
        result = await self.cold_start()
        if not self._scheduler.running:
            self._scheduler.add_job(
                self.tick,
                trigger=IntervalTrigger(seconds=self._settings.reminder_tick_seconds),
                id=TICK_JOB_ID,
                name="reminder tick",
                replace_existing=True,
            )
            self._scheduler.add_job(
                self.check_date,
                trigger=IntervalTrigger(minutes=self._settings.date_check_minutes),
                id=DATE_CHECK_JOB_ID,
                name="date rollover check",
                replace_existing=True,
            )
            self._scheduler.start()
            logger.info(
                "lifecycle_started",
                tick_seconds=self._settings.reminder_tick_seconds,
                date_check_minutes=self._settings.date_check_minutes,
            )
        return result

    async def stop(self) -> None:
        """Release the timers; no further ticks in this process lifetime."""
        if not self._scheduler.running:
            return
        self._scheduler.shutdown(wait=False)
        # AsyncIOScheduler finishes shutting down on the next loop iteration.
        await asyncio.sleep(0)
        logger.info("lifecycle_stopped")

    # ── Triggers ─────────────────────────────────────────────────────

    async def cold_start(self) -> ReconcileResult:
        """First pass after the process starts."""
        try:
            granted = await self._notifier.request_permission()
            if not granted:
                logger.warning("notification_permission_denied")
        except Exception as exc:
            logger.error("permission_request_failed", error=str(exc))

        # Registrations from a previous process are not trusted after a restart.
        await self.reschedule_all_notifications()

        try:
            self._notifier.configure(await self._storage.load_settings())
        except StorageError as exc:
            logger.error("load_settings_failed_using_defaults", error=str(exc))

        await self.purge_old_executions()
        return await self.reconcile(trigger="cold_start")

    async def on_foreground(self) -> ReconcileResult:
        """App came back to the foreground."""
        if self._clock.today() != self._last_date:
            return await self.on_date_rollover()
        return await self.reconcile(trigger="foreground")

    async def on_date_rollover(self) -> ReconcileResult:
        """Today changed: reconcile and pre-materialize the coming days."""
        result = await self.reconcile(trigger="date_rollover")
        if result.error is None:
            await self._materialize_ahead(result.date)
        return result

    async def check_date(self) -> Optional[ReconcileResult]:
        """Periodic job: run the rollover pass when the date has moved on."""
        if self._clock.today() == self._last_date:
            return None
        logger.info("date_change_detected", previous=str(self._last_date), today=self._clock.today().isoformat())
        return await self.on_date_rollover()

    async def tick(self) -> ReconcileResult:
        """Periodic job: missed detection and escalation for existing executions."""
        return await self.reconcile(trigger="tick", materialize=False)

    # ── Reconciliation ───────────────────────────────────────────────

    async def reconcile(
        self, trigger: str = "manual", materialize: bool = True, escalate: bool = True
    ) -> ReconcileResult:
        """One pass: materialize today, mark missed, escalate.

        With ``escalate=False`` the pass stops after missed detection, so no
        reminder counters move.

        Storage failures end the pass early and are logged; the next pass
        recovers from the wall clock.
        """
        async with self._lock:
            now = self._clock.now()
            today = now.date()
            result = ReconcileResult(trigger=trigger, date=today)
            try:
                tasks = await self._storage.load_tasks()
                if materialize:
                    result.materialized = await self.materializer.materialize(
                        today, [t for t in tasks if t.is_active]
                    )
                    self._last_date = today

                open_executions = [
                    e for e in await self._storage.load_executions() if e.is_pending and e.date <= today
                ]
                result.missed = await self.detector.reconcile(now, open_executions)
                still_pending = [e for e in open_executions if e.is_pending]
                if escalate:
                    result.reminders = await self.escalator.tick(now, still_pending, tasks)
            except StorageError as exc:
                result.error = exc.message
                logger.error("reconcile_failed", trigger=trigger, error=exc.message)

        logger.info("reconcile_finished", **result.to_dict())
        return result

    async def _materialize_ahead(self, today: dt.date) -> None:
        days = self._settings.lookahead_days
        if days <= 0:
            return
        async with self._lock:
            try:
                tasks = [t for t in await self._storage.load_tasks() if t.is_active]
                for offset in range(1, days + 1):
                    await self.materializer.materialize(today + dt.timedelta(days=offset), tasks)
            except StorageError as exc:
                logger.error("lookahead_materialize_failed", error=exc.message)

    async def materialize_today(self) -> list[Execution]:
        """Materialize today's executions outside of a full pass.

        Raises:
            StorageError: If persistence fails.
        """
        async with self._lock:
            tasks = await self._storage.load_tasks()
            return await self.materializer.materialize(
                self._clock.today(), [t for t in tasks if t.is_active]
            )

    # ── Completion ───────────────────────────────────────────────────

    async def complete(self, execution_id: str) -> Execution:
        """Mark an execution completed and stop its reminders.

        Completing an already completed execution succeeds without changing
        ``completed_at``.

        Raises:
            NotFoundError: No execution with that id.
            InvalidTransitionError: The execution was already marked missed.
            StorageError: If persistence fails.
        """
        async with self._lock:
            executions = await self._storage.load_executions()
            execution = next((e for e in executions if e.id == execution_id), None)
            if execution is None:
                raise NotFoundError("Execution not found", {"execution_id": execution_id})

            if execution.complete(self._clock.now()):
                await self._storage.save_executions(executions)
                logger.info("execution_completed", execution_id=execution_id, task_id=execution.task_id)
            else:
                logger.debug("execution_already_completed", execution_id=execution_id)

        try:
            await self._notifier.cancel_for_execution(execution_id)
        except Exception as exc:
            logger.error("stop_reminders_failed", execution_id=execution_id, error=str(exc))
        return execution

    # ── Queries & housekeeping ───────────────────────────────────────

    async def today(self) -> list[Execution]:
        """Today's executions ordered by scheduled time."""
        day = self._clock.today()
        return await self._storage.load_executions((day, day))

    async def purge_old_executions(self) -> int:
        """Drop executions older than the retention window. Never raises."""
        async with self._lock:
            try:
                retention = (await self._storage.load_settings()).history_retention_days
                today = self._clock.today()
                cutoff = today - dt.timedelta(days=retention)
                executions = await self._storage.load_executions()
                kept = [e for e in executions if e.date >= cutoff or e.date == today]
                removed = len(executions) - len(kept)
                if removed:
                    await self._storage.save_executions(kept)
                    logger.info("old_executions_purged", count=removed, cutoff=cutoff.isoformat())
                return removed
            except Exception as exc:
                logger.error("purge_failed", error=str(exc))
                return 0

    async def reschedule_all_notifications(self) -> int:
        """Cancel every task's notifications and re-register the active ones."""
        try:
            tasks: list[Task] = await self._storage.load_tasks()
        except StorageError as exc:
            logger.error("reschedule_failed", error=exc.message)
            return 0

        scheduled = 0
        for task in tasks:
            try:
                await self._notifier.cancel(task.id)
                if task.is_active:
                    await self._notifier.schedule_initial(task)
                    scheduled += 1
            except NotificationPermissionError:
                logger.warning("reschedule_skipped_no_permission", task_id=task.id)
            except Exception as exc:
                logger.error("reschedule_task_failed", task_id=task.id, error=str(exc))
        logger.info("notifications_rescheduled", count=scheduled)
        return scheduled
