"""
Workflow Exceptions

Every failure below is recoverable: the operation that raised it left the
workflow state and the history ledger exactly as they were.
"""
from typing import List, Sequence


class WorkflowError(Exception):
    """Base class for rejected workflow operations."""
    pass


class StepNotFoundError(WorkflowError):
    """Raised when an operation names a step id that is not in the workflow."""

    def __init__(self, step_id: str):
        self.step_id = step_id
        super().__init__(f"Step '{step_id}' not found.")


class RequirementsNotMetError(WorkflowError):
    """Raised when a step's required steps are not all completed."""

    def __init__(self, step_id: str, missing: Sequence[str]):
        self.step_id = step_id
        self.missing: List[str] = list(missing)
        super().__init__(
            f"Cannot advance to '{step_id}': complete {', '.join(self.missing)} first."
        )


class ValidationFailedError(WorkflowError):
    """Raised when the current step's validation rules do not all hold."""

    def __init__(self, step_id: str, errors: Sequence[str]):
        self.step_id = step_id
        self.errors: List[str] = list(errors)
        super().__init__(
            f"Validation failed for '{step_id}': {'; '.join(self.errors)}"
        )


class NotSkippableError(WorkflowError):
    """Raised when skipping a step that is not optional."""

    def __init__(self, step_id: str):
        self.step_id = step_id
        super().__init__(f"Step '{step_id}' is required and cannot be skipped.")


class StepNotActiveError(WorkflowError):
    """Raised when completing a step that is not the active one."""

    def __init__(self, step_id: str, status: str):
        self.step_id = step_id
        self.status = status
        super().__init__(f"Step '{step_id}' is {status}, not active.")


class StepAlreadyFinishedError(WorkflowError):
    """Raised when advancing into a completed, skipped or failed step."""

    def __init__(self, step_id: str, status: str):
        self.step_id = step_id
        self.status = status
        super().__init__(
            f"Step '{step_id}' is already {status}; use navigate_to_step to review it."
        )


class WorkflowBusyError(WorkflowError):
    """Raised on a re-entrant call for a step whose validation is still in flight."""

    def __init__(self, step_ids: Sequence[str]):
        self.step_ids: List[str] = list(step_ids)
        super().__init__(
            f"An operation on {', '.join(self.step_ids)} is already in progress."
        )


class SnapshotImportError(Exception):
    """Base class for rejected snapshot imports."""
    pass


class MalformedDocumentError(SnapshotImportError):
    """The text could not be parsed at all."""
    pass


class InvalidSchemaError(SnapshotImportError):
    """The text parsed but does not have the shape of a workflow snapshot."""
    pass
