"""Recurring task definitions and their CRUD service."""

from taskminder.modules.tasks.models import Task, TaskCreate, TaskUpdate

__all__ = ["Task", "TaskCreate", "TaskUpdate"]
