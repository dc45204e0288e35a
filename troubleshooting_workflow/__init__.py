"""
Troubleshooting Workflow Engine

A deterministic step-by-step remediation workflow: ordered steps with
dependency requirements and validation gates, timed step transitions, an
append-only outcome history, derived analytics, and versioned
export/import of the whole workflow.
"""

from troubleshooting_workflow.domain import (
    StepDefinition,
    StepKind,
    ValidationRule,
)
from troubleshooting_workflow.state import (
    HistoryEntry,
    TroubleshootingContext,
    WorkflowInstance,
    WorkflowStep,
)
from troubleshooting_workflow.execution import StepTimer, ValidationRunner, WorkflowEngine
from troubleshooting_workflow.history import HistoryLedger, PersistentHistoryLedger

__all__ = [
    # Domain Layer
    "StepDefinition",
    "StepKind",
    "ValidationRule",
    # State Layer
    "HistoryEntry",
    "TroubleshootingContext",
    "WorkflowInstance",
    "WorkflowStep",
    # Execution Layer
    "StepTimer",
    "ValidationRunner",
    "WorkflowEngine",
    # History
    "HistoryLedger",
    "PersistentHistoryLedger",
]
