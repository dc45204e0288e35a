"""
Schemas - Derived Analytics Models

Pydantic models for the numbers the Analytics Aggregator derives from the
workflow state and the history ledger. None of these are stored; they are
recomputed on demand after every mutation.
"""
from typing import Any, Dict, List

from pydantic import Field

from ..state.models import CamelModel


class AnalyticsSnapshot(CamelModel):
    """
    Point-in-time summary of a workflow's progress.
    """
    total_steps: int = 0
    completed_steps: int = 0
    skipped_steps: int = 0
    failed_steps: int = 0
    progress_percent: int = 0
    estimated_time_remaining: str = "Unknown"
    average_step_time: int = Field(
        0,
        description="Mean recorded step duration in whole seconds."
    )
    bottleneck_steps: List[str] = Field(
        default_factory=list,
        description="Titles of steps whose duration exceeds 1.5x the mean."
    )


class StepAverageTime(CamelModel):
    step_id: str
    name: str
    time: float  # seconds, one decimal


class StepOutcomeCounts(CamelModel):
    step_id: str
    name: str
    completed: int = 0
    failed: int = 0
    skipped: int = 0


class TrendPoint(CamelModel):
    date: str  # ISO calendar day (UTC)
    avg_time: float  # seconds, one decimal
    completions: int


class WorkflowMetrics(CamelModel):
    """
    History-derived metrics over a time range.
    """
    per_step_average_time: List[StepAverageTime] = Field(default_factory=list)
    per_step_outcome_counts: List[StepOutcomeCounts] = Field(default_factory=list)
    daily_trend: List[TrendPoint] = Field(default_factory=list)
    collaboration_data: List[Dict[str, Any]] = Field(default_factory=list)


class CategoryCompletion(CamelModel):
    category: str
    completed: int
    total: int
    completion: int  # percent


class StatusCount(CamelModel):
    status: str
    count: int
