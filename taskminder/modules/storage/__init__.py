"""Persistence collaborator: whole-collection load/save of tasks and executions."""

from taskminder.modules.storage.models import AppSettings, NotificationPriority
from taskminder.modules.storage.service import StorageService

__all__ = ["AppSettings", "NotificationPriority", "StorageService"]
