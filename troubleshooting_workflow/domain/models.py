"""
Domain Layer - Static Data Models

This module defines the static structure of a remediation workflow: the
step definitions a session is seeded from, their dependency edges, and the
validation rules that must hold before a step may be left. These dataclasses
never change at runtime; the mutable per-session state lives in the State Layer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Literal, Union

"""
StepStatus tracks where a step is in its lifecycle:
- pending: Not started yet
- active: The single step currently in focus
- completed: Finished successfully
- skipped: Optional step the user chose not to do
- failed: An externally detected failure was reported
"""
StepStatus = Literal["pending", "active", "completed", "skipped", "failed"]

"""Statuses a HistoryEntry can record (the terminal ones)."""
OutcomeStatus = Literal["completed", "skipped", "failed"]


# A predicate receives the session's TroubleshootingContext and may be async.
Predicate = Callable[[Any], Union[bool, Awaitable[bool]]]


class StepKind(Enum):
    """
    Tagged variant for a step, resolved once when the catalog is built.

    The value is the icon name the presentation layer renders for the step.
    """

    ANALYSIS = "brain"
    REVIEW = "lightbulb"
    EXECUTION = "play"
    COLLABORATION = "users"
    FEEDBACK = "message-square"
    GENERIC = "circle"

    @property
    def icon(self) -> str:
        return self.value


@dataclass
class ValidationRule:
    """
    A named check that must hold before a step may be left.

    Attributes:
        id: Stable identifier of the rule within its step.
        description: What the rule checks, in plain words.
        predicate: Side-effect free check, sync or async.
        error_message: Shown to the user when the predicate fails.
    """
    id: str
    description: str
    predicate: Predicate
    error_message: str


@dataclass
class StepDefinition:
    """
    Static definition of one remediation step.

    Attributes:
        id: Unique identifier within the workflow.
        title: Display title. Used in history entries and bottleneck reports.
        description: Display text, opaque to the engine.
        category: Free-form analytics grouping label.
        optional: Whether the step may be skipped.
        estimated_time: Display hint (e.g. "2-5 min").
        requirements: Step ids that must be completed before this step may become active.
        validation_rules: Checks run before leaving this step.
        kind: Tagged variant resolved from the catalog's lookup table.
    """
    id: str
    title: str
    description: str
    category: str
    optional: bool = False
    estimated_time: str = ""
    requirements: List[str] = field(default_factory=list)
    validation_rules: List[ValidationRule] = field(default_factory=list)
    kind: StepKind = StepKind.GENERIC
