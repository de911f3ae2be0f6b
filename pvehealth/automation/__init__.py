"""Automation module — remediation task catalog and engine."""

from pvehealth.automation.base import AutomationTask, TaskContext
from pvehealth.automation.engine import TASKS, AutomationEngine, completion_severity

__all__ = [
    "TASKS",
    "AutomationEngine",
    "AutomationTask",
    "TaskContext",
    "completion_severity",
]
