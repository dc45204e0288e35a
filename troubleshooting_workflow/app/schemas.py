"""
API Layer - Request/Response Schemas

Pydantic models for API request and response validation. Keys are
camelCase on the wire, matching the export document format.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from ..schemas.analytics import AnalyticsSnapshot, CategoryCompletion, StatusCount
from ..state.models import CamelModel, WorkflowInstance


class CreateSessionRequest(CamelModel):
    entry_step_id: Optional[str] = None
    problem_description: str = ""
    solutions: List[Dict[str, Any]] = Field(default_factory=list)


class SessionRead(CamelModel):
    session: WorkflowInstance
    analytics: AnalyticsSnapshot
    active_elapsed_ms: int = 0


class AdvanceRequest(CamelModel):
    target_step_id: str
    skip_validation: bool = False
    notes: Optional[str] = None


class CompleteRequest(CamelModel):
    skip_validation: bool = False
    notes: Optional[str] = None


class FailRequest(CamelModel):
    reason: Optional[str] = None


class ContextUpdate(CamelModel):
    problem_description: Optional[str] = None
    solutions: Optional[List[Dict[str, Any]]] = None
    selected_solution_id: Optional[str] = None


class ValidationResponse(CamelModel):
    step_id: str
    is_valid: bool
    errors: List[str] = Field(default_factory=list)


class DashboardResponse(CamelModel):
    analytics: AnalyticsSnapshot
    category_completion: List[CategoryCompletion] = Field(default_factory=list)
    status_distribution: List[StatusCount] = Field(default_factory=list)


class ImportRequest(CamelModel):
    # The exported document as raw JSON text
    document: str


class ShareToken(CamelModel):
    token: str


class BookmarkCreate(CamelModel):
    solution_id: str
    title: str
    category: str = "General"
    confidence: float = 0
    difficulty: Literal["Easy", "Medium", "Hard"] = "Medium"
    notes: Optional[str] = None
    problem_context: str = "No context provided"


class BookmarkToggleResponse(CamelModel):
    solution_id: str
    bookmarked: bool
