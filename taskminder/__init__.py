"""Taskminder: recurring task tracking with escalating reminders."""

__version__ = "0.1.0"
