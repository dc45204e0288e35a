"""
Execution Layer - Workflow Orchestration

Defines the WorkflowEngine (deterministic state machine), the
ValidationRunner it uses to check steps, and the StepTimer that reports
the active step's elapsed time.
"""

from troubleshooting_workflow.execution.engine import WorkflowEngine
from troubleshooting_workflow.execution.timers import StepTimer
from troubleshooting_workflow.execution.validation import ValidationRunner


__all__ = [
    "StepTimer",
    "ValidationRunner",
    "WorkflowEngine",
]
