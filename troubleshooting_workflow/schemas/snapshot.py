"""
Schemas - Export / Import Document

The versioned document a workflow is exported to and imported from.
Serialized with camelCase keys:

    {version, timestamp, workflow: {steps, analytics, metadata}, progress?}
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from ..state.models import CamelModel, WorkflowStep, utcnow
from .analytics import AnalyticsSnapshot


class SnapshotMetadata(CamelModel):
    total_steps: int
    completed_steps: int
    exported_by: str = "User"
    description: str = "Exported workflow from troubleshooting session"


class SnapshotProgress(CamelModel):
    """Optional timing state carried along with an export."""
    current_step_id: Optional[str] = None
    step_durations: Dict[str, int] = Field(default_factory=dict)
    validation_errors: Dict[str, List[str]] = Field(default_factory=dict)


class SnapshotWorkflow(CamelModel):
    steps: List[WorkflowStep]
    analytics: Optional[AnalyticsSnapshot] = None
    metadata: Optional[SnapshotMetadata] = None


class SnapshotDocument(CamelModel):
    version: str
    timestamp: datetime = Field(default_factory=utcnow)
    workflow: SnapshotWorkflow
    progress: Optional[SnapshotProgress] = None
