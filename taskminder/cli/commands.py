"""Taskminder CLI commands."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from taskminder.clock import describe_days, format_time
from taskminder.errors import ErrorKind, TaskminderError
from taskminder.modules.executions.models import ExecutionStatus
from taskminder.modules.tasks.models import TaskCreate

if TYPE_CHECKING:
    from taskminder.orchestrator import Orchestrator

T = TypeVar("T")

# Create Typer app
app = typer.Typer(help="Taskminder: recurring tasks with escalating reminders", no_args_is_help=True)
console = Console()

# Task subcommand
task_app = typer.Typer(help="Manage recurring tasks", no_args_is_help=True)
app.add_typer(task_app, name="task")

_STATUS_STYLE = {
    ExecutionStatus.PENDING: "yellow",
    ExecutionStatus.COMPLETED: "green",
    ExecutionStatus.MISSED: "red",
}


def user_message(error: TaskminderError) -> str:
    """What to tell the user for each error kind."""
    match error.kind:
        case ErrorKind.NOT_FOUND:
            return f"Not found: {error.message}. It may already have been deleted."
        case ErrorKind.VALIDATION:
            details = "; ".join(f"{e['field']}: {e['message']}" for e in error.context.get("errors", []))
            return f"Invalid task: {details or error.message}"
        case ErrorKind.INVALID_TRANSITION:
            return f"Not allowed: {error.message}"
        case ErrorKind.PERMISSION:
            return "Notifications are disabled. Set NOTIFICATIONS_ENABLED=true to receive reminders."
        case ErrorKind.STORAGE:
            return f"Could not read or write data: {error.message}. Check DATABASE_URL and try again."


def _run(func: Callable[["Orchestrator"], Awaitable[T]]) -> T:
    """Run ``func`` against a freshly initialized orchestrator."""
    from taskminder.database import close_db, init_db
    from taskminder.logging_config import setup_logging
    from taskminder.orchestrator import Orchestrator

    setup_logging()

    async def _main() -> T:
        await init_db()
        orch = Orchestrator()
        try:
            await orch.permissions.request_permission()
            return await func(orch)
        finally:
            await close_db()

    try:
        return asyncio.run(_main())
    except TaskminderError as exc:
        console.print(f"[red]✗[/red] {user_message(exc)}")
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port"),
) -> None:
    """Start the API server and the reminder loop."""
    from taskminder.main import main

    main(host=host, port=port)


@task_app.command("add")
def task_add(
    name: str = typer.Argument(..., help="Task name"),
    times: list[str] = typer.Option(..., "--at", "-t", help="Time of day HH:MM (repeatable)"),
    days: list[int] = typer.Option(..., "--day", "-d", help="Weekday 0=Sun..6=Sat (repeatable)"),
    interval: Optional[int] = typer.Option(None, "--every", "-e", help="Reminder interval in minutes"),
) -> None:
    """Create a recurring task."""
    data = TaskCreate(name=name, scheduled_times=times, days_of_week=days, reminder_interval_minutes=interval)
    task = _run(lambda orch: orch.tasks.create_task(data))
    console.print(f"[green]✓[/green] Created [bold]{task.name}[/bold] ({task.id})")


@task_app.command("list")
def task_list() -> None:
    """List recurring tasks."""
    tasks = _run(lambda orch: orch.tasks.list_tasks())
    if not tasks:
        console.print("[dim]No tasks yet.[/dim]")
        return

    table = Table(title="Tasks")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Days")
    table.add_column("Times")
    table.add_column("Every", justify="right")
    table.add_column("Active")
    for task in tasks:
        table.add_row(
            task.id,
            task.name,
            describe_days(task.days_of_week),
            ", ".join(format_time(t) for t in task.scheduled_times),
            f"{task.reminder_interval_minutes} min",
            "[green]yes[/green]" if task.is_active else "[dim]no[/dim]",
        )
    console.print(table)


async def _resolve_task(orch: "Orchestrator", ref: str) -> str:
    """Accept a task name as well as an id."""
    task = await orch.tasks.find_by_name(ref)
    return task.id if task is not None else ref


@task_app.command("rm")
def task_remove(task_ref: str = typer.Argument(..., help="Task name or ID")) -> None:
    """Delete a task and its history."""

    async def _remove(orch):
        task_id = await _resolve_task(orch, task_ref)
        await orch.tasks.delete_task(task_id)
        return task_id

    task_id = _run(_remove)
    console.print(f"[green]✓[/green] Deleted {task_id}")


@task_app.command("pause")
def task_pause(task_ref: str = typer.Argument(..., help="Task name or ID")) -> None:
    """Stop materializing and reminding for a task."""

    async def _pause(orch):
        return await orch.tasks.set_active(await _resolve_task(orch, task_ref), False)

    task = _run(_pause)
    console.print(f"[yellow]⏸[/yellow] Paused {task.name}")


@task_app.command("resume")
def task_resume(task_ref: str = typer.Argument(..., help="Task name or ID")) -> None:
    """Resume a paused task."""

    async def _resume(orch):
        return await orch.tasks.set_active(await _resolve_task(orch, task_ref), True)

    task = _run(_resume)
    console.print(f"[green]▶[/green] Resumed {task.name}")


@app.command()
def today() -> None:
    """Show today's executions."""

    async def _today(orch):
        await orch.lifecycle.materialize_today()
        tasks = {t.id: t for t in await orch.tasks.list_tasks()}
        return tasks, await orch.lifecycle.today()

    tasks, executions = _run(_today)
    if not executions:
        console.print("[dim]Nothing scheduled today.[/dim]")
        return

    table = Table(title="Today")
    table.add_column("ID", style="dim")
    table.add_column("Time")
    table.add_column("Task", style="bold")
    table.add_column("Status")
    table.add_column("Reminders", justify="right")
    for execution in executions:
        task = tasks.get(execution.task_id)
        style = _STATUS_STYLE[execution.status]
        table.add_row(
            execution.id[:8],
            format_time(execution.scheduled_time),
            task.name if task else "[dim](deleted)[/dim]",
            f"[{style}]{execution.status.value}[/{style}]",
            str(execution.reminder_count),
        )
    console.print(table)


@app.command()
def complete(execution_id: str = typer.Argument(..., help="Execution ID (or unique prefix)")) -> None:
    """Mark one of today's executions as done."""

    async def _complete(orch):
        target = execution_id
        if len(target) < 36:
            matches = [e.id for e in await orch.lifecycle.today() if e.id.startswith(target)]
            if len(matches) == 1:
                target = matches[0]
        return await orch.lifecycle.complete(target)

    execution = _run(_complete)
    console.print(f"[green]✓[/green] Done at {execution.completed_at:%H:%M}")


@app.command()
def reconcile() -> None:
    """Materialize today and mark missed executions.

    Reminder escalation is left to the running server, whose notification
    jobs outlive this command.
    """
    result = _run(lambda orch: orch.lifecycle.reconcile(trigger="cli", escalate=False))
    if result.error:
        console.print(f"[red]✗[/red] Pass stopped early: {result.error}")
        raise typer.Exit(code=1)
    console.print(
        f"[bold cyan]{result.date.isoformat()}[/bold cyan]  "
        f"created {len(result.materialized)}, missed {len(result.missed)}"
    )


if __name__ == "__main__":
    app()
