"""Wires storage, notifications, the lifecycle coordinator and the task service."""

from __future__ import annotations

from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskminder.clock import Clock
from taskminder.config import Settings, get_settings
from taskminder.logging_config import get_logger
from taskminder.modules.lifecycle.service import LifecycleCoordinator, ReconcileResult
from taskminder.modules.notifications.permissions import PermissionGate
from taskminder.modules.notifications.service import NotificationService
from taskminder.modules.notifications.sinks import NotificationSink
from taskminder.modules.storage.service import StorageService
from taskminder.modules.tasks.service import TaskService

logger = get_logger(__name__)


class Orchestrator:
    """Owns every service for one running process."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        sink: Optional[NotificationSink] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.clock = clock or Clock(self.settings.tzinfo)
        # One scheduler handle shared by the lifecycle timers and notification jobs
        scheduler_kwargs: dict = {
            "job_defaults": {"misfire_grace_time": 300, "coalesce": True, "max_instances": 1},
        }
        if self.settings.tzinfo is not None:
            scheduler_kwargs["timezone"] = self.settings.tzinfo
        self.scheduler = AsyncIOScheduler(**scheduler_kwargs)

        self.storage = StorageService(session_factory)
        self.permissions = PermissionGate(enabled=self.settings.notifications_enabled)
        self.notifications = NotificationService(
            sink=sink,
            permissions=self.permissions,
            clock=self.clock,
            scheduler=self.scheduler,
        )
        self.lifecycle = LifecycleCoordinator(
            self.storage,
            self.notifications,
            clock=self.clock,
            settings=self.settings,
            scheduler=self.scheduler,
        )
        self.tasks = TaskService(self.storage, self.notifications, self.lifecycle)

    async def startup(self) -> ReconcileResult:
        """Cold-start pass and periodic timers."""
        logger.info("orchestrator_startup_begin")
        result = await self.lifecycle.start()
        logger.info("orchestrator_startup_done", **result.to_dict())
        return result

    async def shutdown(self) -> None:
        """Stop timers and pending notification jobs."""
        logger.info("orchestrator_shutdown_begin")
        try:
            await self.lifecycle.stop()
        except Exception as exc:
            logger.error("lifecycle_stop_failed", error=str(exc))
