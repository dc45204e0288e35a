"""
Schemas - Derived and Wire Models

Defines the analytics models the aggregator produces and the versioned
snapshot document used for export and import.
"""

from troubleshooting_workflow.schemas.analytics import (
    AnalyticsSnapshot,
    CategoryCompletion,
    StatusCount,
    StepAverageTime,
    StepOutcomeCounts,
    TrendPoint,
    WorkflowMetrics,
)
from troubleshooting_workflow.schemas.snapshot import (
    SnapshotDocument,
    SnapshotMetadata,
    SnapshotProgress,
    SnapshotWorkflow,
)

__all__ = [
    "AnalyticsSnapshot",
    "CategoryCompletion",
    "StatusCount",
    "StepAverageTime",
    "StepOutcomeCounts",
    "TrendPoint",
    "WorkflowMetrics",
    "SnapshotDocument",
    "SnapshotMetadata",
    "SnapshotProgress",
    "SnapshotWorkflow",
]
