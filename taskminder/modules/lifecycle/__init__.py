"""Lifecycle coordination: reconciliation passes, timers and completion."""

from taskminder.modules.lifecycle.service import LifecycleCoordinator, ReconcileResult

__all__ = ["LifecycleCoordinator", "ReconcileResult"]
