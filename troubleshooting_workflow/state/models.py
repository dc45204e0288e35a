"""
State Layer - Runtime Data Models

This module defines the runtime state of a troubleshooting session: the
per-step statuses, the single step in focus, step timing, the latest
validation errors, and the immutable history of step outcomes. Everything
here is serializable; field aliases are camelCase so the JSON matches the
export document format.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..domain.models import OutcomeStatus, StepKind, StepStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WorkflowStep(CamelModel):
    """
    Serializable state of one step.

    Validation rules are not part of this model; the engine resolves them
    from the catalog definitions by step id.
    """
    id: str
    title: str
    description: str = ""
    status: StepStatus = "pending"
    optional: bool = False
    category: str = "analysis"
    estimated_time: str = ""
    requirements: List[str] = Field(default_factory=list)
    icon: str = StepKind.GENERIC.icon


class TroubleshootingContext(CamelModel):
    """
    Upstream input for the session.

    The engine never parses these structurally; validation predicates and
    notification text read them.
    """
    problem_description: str = ""
    solutions: List[Dict[str, Any]] = Field(default_factory=list)
    selected_solution_id: Optional[str] = None


class HistoryEntry(CamelModel):
    """
    Immutable record of a terminal step transition.
    """
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    step_id: str
    step_title: str
    status: OutcomeStatus
    duration: int = 0  # milliseconds
    timestamp: datetime = Field(default_factory=utcnow)
    notes: Optional[str] = None


class WorkflowInstance(CamelModel):
    """
    The mutable state of a single troubleshooting session.

    Owned by exactly one WorkflowEngine. At most one step is 'active'.
    """
    session_id: str
    steps: List[WorkflowStep] = Field(default_factory=list)
    current_step_id: str
    viewed_step_id: Optional[str] = None

    # Running timers only: stepId -> epoch milliseconds when the step became active
    step_start_timestamps: Dict[str, int] = Field(default_factory=dict)
    # stepId -> cumulative milliseconds spent active
    step_durations: Dict[str, int] = Field(default_factory=dict)
    validation_errors: Dict[str, List[str]] = Field(default_factory=dict)

    context: TroubleshootingContext = Field(default_factory=TroubleshootingContext)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def get_step(self, step_id: str) -> Optional[WorkflowStep]:
        return next((s for s in self.steps if s.id == step_id), None)

    @property
    def active_step(self) -> Optional[WorkflowStep]:
        return next((s for s in self.steps if s.status == "active"), None)

    @property
    def step_ids(self) -> List[str]:
        return [s.id for s in self.steps]
