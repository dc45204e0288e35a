"""
State Layer - Runtime Data Models

Defines the runtime state that tracks a user's progress through the
remediation workflow, including step timing and outcome history.
"""

from troubleshooting_workflow.state.models import (
    CamelModel,
    HistoryEntry,
    TroubleshootingContext,
    WorkflowInstance,
    WorkflowStep,
)

__all__ = [
    "CamelModel",
    "HistoryEntry",
    "TroubleshootingContext",
    "WorkflowInstance",
    "WorkflowStep",
]
