"""Missed-task detector: pending executions past the grace period become missed."""

from __future__ import annotations

import datetime as dt
from typing import Iterable

from taskminder.logging_config import get_logger
from taskminder.modules.executions.models import Execution
from taskminder.modules.storage.service import StorageService

logger = get_logger(__name__)

DEFAULT_GRACE = dt.timedelta(hours=2)


def is_overdue(execution: Execution, now: dt.datetime, grace: dt.timedelta = DEFAULT_GRACE) -> bool:
    """True when a pending execution is more than ``grace`` past its scheduled instant."""
    if not execution.is_pending:
        return False
    elapsed = now.astimezone(dt.UTC) - execution.scheduled_instant(now.tzinfo).astimezone(dt.UTC)
    return elapsed > grace


class MissedTaskDetector:
    """Marks stale pending executions as missed and persists the change."""

    def __init__(self, storage: StorageService, grace: dt.timedelta = DEFAULT_GRACE) -> None:
        self._storage = storage
        self._grace = grace

    @property
    def grace(self) -> dt.timedelta:
        return self._grace

    async def reconcile(self, now: dt.datetime, executions: Iterable[Execution]) -> list[Execution]:
        """Transition overdue pending executions to missed.

        The given execution objects are updated in place. Returns those that
        changed.

        Raises:
            StorageError: If the change cannot be persisted.
        """
        overdue = [e for e in executions if is_overdue(e, now, self._grace)]
        if not overdue:
            return []

        overdue_ids = {e.id for e in overdue}
        stored = await self._storage.load_executions()
        changed = {e.id for e in stored if e.id in overdue_ids and e.mark_missed()}
        if not changed:
            return []
        await self._storage.save_executions(stored)

        overdue = [e for e in overdue if e.id in changed]
        for execution in overdue:
            execution.mark_missed()
            logger.info(
                "execution_missed",
                execution_id=execution.id,
                task_id=execution.task_id,
                date=execution.date.isoformat(),
            )
        return overdue
