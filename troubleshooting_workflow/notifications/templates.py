"""
Template name constants.

Pure constants - no I/O or file system knowledge.
"""


class Template:
    """Template name constants. Use these instead of raw strings."""

    STEP_ACTIVATED = "step_activated"
    STEP_CHECKPOINT = "step_checkpoint"
    STEP_COMPLETED = "step_completed"
    WORKFLOW_COMPLETE = "workflow_complete"
    REQUIREMENTS_NOT_MET = "requirements_not_met"
    VALIDATION_FAILED = "validation_failed"
    STEP_SKIPPED = "step_skipped"
    NOT_SKIPPABLE = "not_skippable"
    STEP_FAILED = "step_failed"
    STEP_NOT_ACTIVE = "step_not_active"
    STEP_ALREADY_FINISHED = "step_already_finished"
    SNAPSHOT_IMPORTED = "snapshot_imported"
