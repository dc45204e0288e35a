"""
Domain Layer - Static Data Models

Defines the static structure of a remediation workflow: step definitions,
their requirements, validation rules and step kinds.
"""

from troubleshooting_workflow.domain.models import (
    OutcomeStatus,
    Predicate,
    StepDefinition,
    StepKind,
    StepStatus,
    ValidationRule,
)

__all__ = [
    "OutcomeStatus",
    "Predicate",
    "StepDefinition",
    "StepKind",
    "StepStatus",
    "ValidationRule",
]
