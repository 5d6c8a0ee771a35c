"""API route definitions for Taskminder."""

from __future__ import annotations

import datetime as dt
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from taskminder import __version__
from taskminder.errors import ErrorKind, NotFoundError, TaskminderError
from taskminder.logging_config import get_logger
from taskminder.modules.executions.models import Execution
from taskminder.modules.storage.models import AppSettings
from taskminder.modules.tasks.models import Task, TaskCreate, TaskUpdate

logger = get_logger(__name__)

router = APIRouter()


# ── Error mapping ────────────────────────────────────────────────────

def status_for(kind: ErrorKind) -> int:
    """HTTP status for each error kind."""
    match kind:
        case ErrorKind.NOT_FOUND:
            return 404
        case ErrorKind.VALIDATION:
            return 422
        case ErrorKind.INVALID_TRANSITION:
            return 409
        case ErrorKind.PERMISSION:
            return 403
        case ErrorKind.STORAGE:
            return 503


async def taskminder_error_handler(request: Request, exc: TaskminderError) -> JSONResponse:
    """Render domain errors as JSON with a status matching their kind."""
    status = status_for(exc.kind)
    if status >= 500:
        logger.error("api_error", path=request.url.path, **exc.to_dict())
    return JSONResponse(status_code=status, content={"error": exc.to_dict()})


# ── Orchestrator accessor (set from main.py) ────────────────────────

_orchestrator = None


def set_orchestrator(orch: Any) -> None:
    """Inject the orchestrator instance."""
    global _orchestrator
    _orchestrator = orch


def get_orchestrator():
    """Get the orchestrator, raising if not initialized."""
    if _orchestrator is None:
        raise HTTPException(status_code=503, detail="System not initialized")
    return _orchestrator


# ── Health ───────────────────────────────────────────────────────────

@router.get("/health")
async def health_check() -> dict[str, Any]:
    """System health check."""
    orch = get_orchestrator()
    return {
        "status": "healthy",
        "version": __version__,
        "lifecycle_running": orch.lifecycle.is_running,
        "notifications_permitted": await orch.notifications.has_permission(),
        "scheduled_notifications": len(orch.notifications.list_scheduled()),
    }


# ── Tasks ────────────────────────────────────────────────────────────

@router.get("/tasks", response_model=list[Task])
async def list_tasks() -> list[Task]:
    """List all recurring tasks."""
    return await get_orchestrator().tasks.list_tasks()


@router.post("/tasks", response_model=Task, status_code=201)
async def create_task(request: TaskCreate) -> Task:
    """Create a recurring task."""
    return await get_orchestrator().tasks.create_task(request)


@router.get("/tasks/{task_id}", response_model=Task)
async def get_task(task_id: str) -> Task:
    """Fetch a single task."""
    return await get_orchestrator().tasks.get_task(task_id)


@router.patch("/tasks/{task_id}", response_model=Task)
async def update_task(task_id: str, request: TaskUpdate) -> Task:
    """Partially update a task. Existing executions are left unchanged."""
    return await get_orchestrator().tasks.update_task(task_id, request)


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: str) -> dict[str, Any]:
    """Delete a task and its executions."""
    await get_orchestrator().tasks.delete_task(task_id)
    return {"deleted": True, "task_id": task_id}


# ── Executions ───────────────────────────────────────────────────────

@router.get("/executions/today", response_model=list[Execution])
async def today_executions() -> list[Execution]:
    """Today's executions ordered by scheduled time."""
    return await get_orchestrator().lifecycle.today()


@router.get("/executions", response_model=list[Execution])
async def list_executions(
    start: Optional[dt.date] = Query(None, description="First date, inclusive"),
    end: Optional[dt.date] = Query(None, description="Last date, inclusive"),
) -> list[Execution]:
    """Executions within an optional date range."""
    orch = get_orchestrator()
    if start is None and end is None:
        return await orch.storage.load_executions()
    today = orch.clock.today()
    return await orch.storage.load_executions((start or dt.date.min, end or today))


@router.post("/executions/{execution_id}/complete", response_model=Execution)
async def complete_execution(execution_id: str) -> Execution:
    """Mark an execution completed. Repeating the call is harmless."""
    return await get_orchestrator().lifecycle.complete(execution_id)


# ── Lifecycle ────────────────────────────────────────────────────────

@router.post("/lifecycle/foreground")
async def foreground() -> dict[str, Any]:
    """Client came back to the foreground; run a reconciliation pass."""
    result = await get_orchestrator().lifecycle.on_foreground()
    return result.to_dict()


@router.post("/lifecycle/rollover")
async def rollover() -> dict[str, Any]:
    """Force the date-rollover pass."""
    result = await get_orchestrator().lifecycle.on_date_rollover()
    return result.to_dict()


# ── Settings & notifications ─────────────────────────────────────────

@router.get("/settings", response_model=AppSettings)
async def get_app_settings() -> AppSettings:
    """Current user preferences."""
    return await get_orchestrator().storage.load_settings()


@router.put("/settings", response_model=AppSettings)
async def put_app_settings(request: AppSettings) -> AppSettings:
    """Replace user preferences."""
    orch = get_orchestrator()
    await orch.storage.save_settings(request)
    orch.notifications.configure(request)
    return request


@router.get("/notifications")
async def list_notifications() -> list[dict[str, Any]]:
    """Notification handles currently scheduled."""
    return [n.to_dict() for n in get_orchestrator().notifications.list_scheduled()]


@router.post("/notifications/test")
async def send_test_notification() -> dict[str, Any]:
    """Deliver a test notification right away."""
    await get_orchestrator().notifications.send_immediate(
        "Test notification", "Notifications are working", {"test": True}
    )
    return {"sent": True}


@router.delete("/notifications/{handle_id}")
async def cancel_notification(handle_id: str) -> dict[str, Any]:
    """Cancel a single scheduled notification."""
    if not await get_orchestrator().notifications.cancel_by_id(handle_id):
        raise NotFoundError("Notification not found", {"handle_id": handle_id})
    return {"cancelled": True, "handle_id": handle_id}


# ── Data ─────────────────────────────────────────────────────────────

@router.delete("/data")
async def clear_all_data() -> dict[str, Any]:
    """Erase all tasks, history and preferences."""
    removed = await get_orchestrator().tasks.clear_all()
    return {"cleared": True, "tasks_removed": removed}
