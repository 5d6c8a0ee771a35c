"""Scheduling and escalation engine.

Components:
- materializer.py: turns active task definitions into dated executions
- missed.py: reclassifies stale pending executions as missed
- escalation.py: decides which pending executions get their next reminder
"""

from taskminder.modules.reminders.escalation import DueReminder, ReminderEscalationEngine, due_reminder_count
from taskminder.modules.reminders.materializer import ExecutionMaterializer, plan_executions
from taskminder.modules.reminders.missed import MissedTaskDetector, is_overdue

__all__ = [
    "DueReminder",
    "ExecutionMaterializer",
    "MissedTaskDetector",
    "ReminderEscalationEngine",
    "due_reminder_count",
    "is_overdue",
    "plan_executions",
]
