"""Dated occurrences of a task and their completion state machine."""

from taskminder.modules.executions.models import Execution, ExecutionStatus

__all__ = ["Execution", "ExecutionStatus"]
