"""
Engine - Workflow Orchestration Layer

The WorkflowEngine is the deterministic state machine that owns one
session's WorkflowInstance and its HistoryLedger. Every status change goes
through one of its operations:

    pending --advance_to_step (requirements met)--> active
    active  --advance_to_step / complete_current_step--> completed
    active  --skip_step (optional only)--> skipped
    any     --mark_step_failed--> failed

At most one step is 'active' at any time. A rejected operation raises a
WorkflowError subclass and leaves statuses, pointers, timers and the ledger
exactly as they were. Completed, skipped and failed steps are never
re-entered by advance_to_step; looking at one again (navigate_to_step) only
moves the viewed-step pointer and never changes a status.

Validation predicates may be coroutines. While a call is awaiting them, a
second advance/complete/validate call touching the same step is rejected
with WorkflowBusyError instead of being interleaved.
"""

import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional, Sequence, Set

from ..analytics.aggregator import compute_analytics, compute_metrics, format_duration
from ..collaboration.interface import CollaborationChannel, NullCollaborationChannel
from ..config import settings
from ..data.step_catalog import DEFAULT_STEP_DEFINITIONS, build_initial_steps, index_definitions
from ..domain.models import OutcomeStatus, StepDefinition, ValidationRule
from ..exceptions import (
    InvalidSchemaError,
    NotSkippableError,
    RequirementsNotMetError,
    StepAlreadyFinishedError,
    StepNotActiveError,
    StepNotFoundError,
    ValidationFailedError,
    WorkflowBusyError,
    WorkflowError,
)
from ..history.ledger import HistoryLedger
from ..notifications.interface import (
    LoggingNotificationSink,
    Notification,
    NotificationSink,
    NotificationType,
)
from ..notifications.loader import render
from ..notifications.templates import Template
from ..schemas.analytics import AnalyticsSnapshot, WorkflowMetrics
from ..schemas.snapshot import SnapshotProgress
from ..state.models import HistoryEntry, TroubleshootingContext, WorkflowInstance, WorkflowStep
from .validation import ValidationRunner

logger = logging.getLogger(__name__)

FINISHED_STATUSES = ("completed", "skipped", "failed")


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class WorkflowEngine:
    def __init__(
        self,
        instance: WorkflowInstance,
        definitions: Sequence[StepDefinition] = DEFAULT_STEP_DEFINITIONS,
        ledger: Optional[HistoryLedger] = None,
        notifications: Optional[NotificationSink] = None,
        collaboration: Optional[CollaborationChannel] = None,
        clock: Optional[Callable[[], int]] = None,
        validation_timeout: Optional[float] = None,
    ):
        self.instance = instance
        self.definitions = index_definitions(definitions)
        self.ledger = ledger if ledger is not None else HistoryLedger()
        self.notifications = notifications if notifications is not None else LoggingNotificationSink()
        self.collaboration = collaboration if collaboration is not None else NullCollaborationChannel()
        self.clock = clock or _epoch_ms
        self.validator = ValidationRunner(timeout=validation_timeout)
        self._in_flight: Set[str] = set()

        # Resume timing for the step in focus (no-op if its timer is already running)
        active = self.instance.active_step
        if active:
            self._start_timer(active.id, self._now())

    @classmethod
    def create(
        cls,
        session_id: str,
        entry_step_id: str = settings.DEFAULT_ENTRY_STEP,
        definitions: Sequence[StepDefinition] = DEFAULT_STEP_DEFINITIONS,
        context: Optional[TroubleshootingContext] = None,
        **kwargs,
    ) -> "WorkflowEngine":
        """Seeds a fresh instance from the step catalog."""
        instance = WorkflowInstance(
            session_id=session_id,
            steps=build_initial_steps(entry_step_id, definitions),
            current_step_id=entry_step_id,
            viewed_step_id=entry_step_id,
            context=context or TroubleshootingContext(),
        )
        return cls(instance, definitions=definitions, **kwargs)

    # ==========================================================================
    # Transitions
    # ==========================================================================

    async def advance_to_step(
        self, target_id: str, skip_validation: bool = False, notes: Optional[str] = None
    ) -> bool:
        """
        Moves the focus to `target_id`.

        The outgoing step is validated first (unless `skip_validation`, or it
        is the target itself) and, if it was active, completed and recorded
        in the ledger. Advancing to the current step records a checkpoint:
        its elapsed time is logged and it stays active.

        Raises:
            StepNotFoundError, StepAlreadyFinishedError, RequirementsNotMetError,
            ValidationFailedError, WorkflowBusyError
        """
        target = self._require_step(target_id)
        current_id = self.instance.current_step_id

        with self._exclusive(current_id, target_id):
            self._check_enterable(target)

            if not skip_validation and target_id != current_id:
                errors = await self._run_validation(current_id)
                if errors:
                    raise self._rejection(
                        ValidationFailedError(current_id, errors),
                        "Validation Failed",
                        Template.VALIDATION_FAILED,
                        errors=errors,
                    )
                # Statuses may have moved while the predicates were awaited
                self._check_enterable(target)

            self._apply_advance(target, notes)
        return True

    async def complete_current_step(
        self, skip_validation: bool = False, notes: Optional[str] = None
    ) -> bool:
        """
        Completes the active step without activating another one.
        Used for the last step of the workflow.

        Raises:
            StepNotActiveError, ValidationFailedError, WorkflowBusyError
        """
        current_id = self.instance.current_step_id
        step = self._require_step(current_id)

        with self._exclusive(current_id):
            self._check_active(step)

            if not skip_validation:
                errors = await self._run_validation(current_id)
                if errors:
                    raise self._rejection(
                        ValidationFailedError(current_id, errors),
                        "Validation Failed",
                        Template.VALIDATION_FAILED,
                        errors=errors,
                    )
                self._check_active(step)

            now = self._now()
            elapsed = self._stop_timer(current_id, now)
            step.status = "completed"
            self._record(step, "completed", elapsed, notes, now)

        logger.info(f"Session {self.instance.session_id}: completed '{current_id}'")
        if self.is_complete:
            self._notify(
                "success", "Workflow Complete!", Template.WORKFLOW_COMPLETE,
                duration_ms=4000, context=self.instance.context,
            )
        else:
            self._notify("success", "Step Completed", Template.STEP_COMPLETED, step=step)
        return True

    def skip_step(self, step_id: str) -> bool:
        """
        Marks an optional step as skipped. Requirements are not checked.

        Raises:
            StepNotFoundError, NotSkippableError
        """
        step = self._require_step(step_id)
        if not step.optional:
            raise self._rejection(
                NotSkippableError(step_id), "Cannot Skip", Template.NOT_SKIPPABLE, step=step
            )

        now = self._now()
        self._stop_timer(step_id, now)
        step.status = "skipped"
        self._record(step, "skipped", 0, None, now)

        logger.info(f"Session {self.instance.session_id}: skipped '{step_id}'")
        self._notify("info", "Step Skipped", Template.STEP_SKIPPED, duration_ms=2000, step=step)
        return True

    def mark_step_failed(self, step_id: str, reason: Optional[str] = None) -> None:
        """
        Records an externally detected failure. Always allowed: no
        requirement or validation check stands in the way of a failure report.
        """
        step = self._require_step(step_id)

        now = self._now()
        elapsed = self._stop_timer(step_id, now)
        step.status = "failed"
        self._record(step, "failed", elapsed, reason, now)

        logger.warning(f"Session {self.instance.session_id}: step '{step_id}' failed: {reason}")
        self._notify(
            "error", "Step Failed", Template.STEP_FAILED,
            duration_ms=4000, step=step, reason=reason,
        )

    async def validate_step(self, step_id: str) -> bool:
        """
        Runs the step's validation rules and replaces its error list.

        Returns:
            True when every rule holds.
        """
        self._require_step(step_id)
        with self._exclusive(step_id):
            errors = await self._run_validation(step_id)
        return not errors

    def navigate_to_step(self, step_id: str) -> WorkflowStep:
        """
        Read-only revisit: moves the viewed-step pointer, never a status.

        Pending steps can only be viewed once their requirements are met.
        """
        step = self._require_step(step_id)
        if step.status == "pending" and not self.can_advance_to_step(step_id):
            missing = self._titles(self.missing_requirements(step_id))
            raise self._rejection(
                RequirementsNotMetError(step_id, missing),
                "Cannot Navigate",
                Template.REQUIREMENTS_NOT_MET,
                missing=missing,
            )
        self.instance.viewed_step_id = step_id
        return step

    def replace_steps(
        self, steps: Sequence[WorkflowStep], progress: Optional[SnapshotProgress] = None
    ) -> None:
        """
        Replaces the whole step list (snapshot import). Nothing is merged:
        timers restart, and durations and validation errors are reset or
        taken from the progress hint.
        """
        if not steps:
            raise InvalidSchemaError("Invalid workflow format: workflow has no steps")
        if sum(1 for s in steps if s.status == "active") > 1:
            raise InvalidSchemaError("Invalid workflow format: more than one active step")

        instance = self.instance
        instance.steps = [s.model_copy(deep=True) for s in steps]
        instance.step_start_timestamps = {}
        instance.step_durations = dict(progress.step_durations) if progress else {}
        instance.validation_errors = dict(progress.validation_errors) if progress else {}

        active = instance.active_step
        ids = instance.step_ids
        if active:
            current_id = active.id
        elif progress and progress.current_step_id in ids:
            current_id = progress.current_step_id
        else:
            current_id = next((s.id for s in instance.steps if s.status == "pending"), ids[0])

        instance.current_step_id = current_id
        instance.viewed_step_id = current_id
        if active:
            self._start_timer(active.id, self._now())

        logger.info(f"Session {instance.session_id}: replaced workflow with {len(steps)} steps")
        self._notify("success", "Workflow Imported", Template.SNAPSHOT_IMPORTED, count=len(steps))

    # ==========================================================================
    # Queries
    # ==========================================================================

    def missing_requirements(self, step_id: str) -> List[str]:
        """
        Ids of required steps that block advancing to `step_id`.

        A requirement is met when it is completed, or when it is the active
        current step, since advancing away from it completes it. Unknown ids
        count as missing.
        """
        step = self._require_step(step_id)
        current_id = self.instance.current_step_id
        missing = []
        for req_id in step.requirements:
            req = self.instance.get_step(req_id)
            if req is None:
                missing.append(req_id)
            elif req.status == "completed":
                continue
            elif req.status == "active" and req_id == current_id and step_id != current_id:
                continue
            else:
                missing.append(req_id)
        return missing

    def can_advance_to_step(self, step_id: str) -> bool:
        step = self.instance.get_step(step_id)
        if step is None or step.status in FINISHED_STATUSES:
            return False
        return not self.missing_requirements(step_id)

    @property
    def busy(self) -> bool:
        """True while an operation is awaiting validation."""
        return bool(self._in_flight)

    @property
    def is_complete(self) -> bool:
        """True once every non-optional step is completed."""
        return all(s.status == "completed" for s in self.instance.steps if not s.optional)

    def elapsed_ms(self, step_id: str, now: Optional[int] = None) -> int:
        """Recorded time for the step plus its running segment, if any."""
        now = self._now() if now is None else now
        total = self.instance.step_durations.get(step_id, 0)
        started = self.instance.step_start_timestamps.get(step_id)
        if started is not None:
            total += max(0, now - started)
        return total

    def get_analytics(self) -> AnalyticsSnapshot:
        return compute_analytics(self.instance.steps, self.instance.step_durations)

    def get_metrics(
        self, time_range_days: int, now: Optional[datetime] = None
    ) -> WorkflowMetrics:
        metrics = compute_metrics(self.ledger, self.instance.steps, time_range_days, now=now)
        metrics.collaboration_data = self.collaboration.activity(
            self.instance.session_id, time_range_days
        )
        return metrics

    def rules_for(self, step_id: str) -> List[ValidationRule]:
        definition = self.definitions.get(step_id)
        return list(definition.validation_rules) if definition else []

    # ==========================================================================
    # State Mutation
    # ==========================================================================

    def _apply_advance(self, target: WorkflowStep, notes: Optional[str]) -> None:
        instance = self.instance
        now = self._now()
        current_id = instance.current_step_id
        outgoing = instance.get_step(current_id)
        outgoing_was_active = outgoing is not None and outgoing.status == "active"

        elapsed = self._stop_timer(current_id, now)
        if outgoing_was_active:
            if outgoing.id != target.id:
                outgoing.status = "completed"
            self._record(outgoing, "completed", elapsed, notes, now)

        target.status = "active"
        instance.current_step_id = target.id
        instance.viewed_step_id = target.id
        self._start_timer(target.id, now)

        if target.id == current_id and outgoing_was_active:
            logger.info(f"Session {instance.session_id}: checkpoint on '{target.id}'")
            self._notify(
                "info", "Progress Recorded", Template.STEP_CHECKPOINT,
                step=target, duration=format_duration(elapsed),
            )
        else:
            logger.info(f"Session {instance.session_id}: '{current_id}' -> '{target.id}'")
            self._notify("success", "Step Activated", Template.STEP_ACTIVATED, step=target)

        self.collaboration.publish_step_change(instance.session_id, target.id)

    def _record(
        self,
        step: WorkflowStep,
        status: OutcomeStatus,
        duration: int,
        notes: Optional[str],
        now: int,
    ) -> None:
        self.ledger.append(
            HistoryEntry(
                step_id=step.id,
                step_title=step.title,
                status=status,
                duration=duration,
                timestamp=datetime.fromtimestamp(now / 1000, tz=timezone.utc),
                notes=notes,
            )
        )

    async def _run_validation(self, step_id: str) -> List[str]:
        errors = await self.validator.run(self.rules_for(step_id), self.instance.context)
        # Replaced wholesale, never merged
        self.instance.validation_errors[step_id] = errors
        return errors

    # ==========================================================================
    # Timers
    # ==========================================================================

    def _start_timer(self, step_id: str, now: int) -> None:
        # Starting a running timer keeps the original start
        self.instance.step_start_timestamps.setdefault(step_id, now)

    def _stop_timer(self, step_id: str, now: int) -> int:
        """Stops the step's timer and returns the segment it measured (0 if not running)."""
        started = self.instance.step_start_timestamps.pop(step_id, None)
        if started is None:
            return 0
        elapsed = max(0, now - started)
        durations = self.instance.step_durations
        durations[step_id] = durations.get(step_id, 0) + elapsed
        return elapsed

    # ==========================================================================
    # Standard Helpers
    # ==========================================================================

    def _now(self) -> int:
        return int(self.clock())

    def _require_step(self, step_id: str) -> WorkflowStep:
        step = self.instance.get_step(step_id)
        if step is None:
            raise StepNotFoundError(step_id)
        return step

    def _titles(self, step_ids: Sequence[str]) -> List[str]:
        titles = []
        for step_id in step_ids:
            step = self.instance.get_step(step_id)
            titles.append(step.title if step else step_id)
        return titles

    def _check_enterable(self, target: WorkflowStep) -> None:
        if target.status in FINISHED_STATUSES:
            raise self._rejection(
                StepAlreadyFinishedError(target.id, target.status),
                "Cannot Advance",
                Template.STEP_ALREADY_FINISHED,
                step=target,
            )
        self._check_requirements(target)

    def _check_requirements(self, target: WorkflowStep) -> None:
        missing = self.missing_requirements(target.id)
        if missing:
            titles = self._titles(missing)
            raise self._rejection(
                RequirementsNotMetError(target.id, titles),
                "Cannot Advance",
                Template.REQUIREMENTS_NOT_MET,
                missing=titles,
            )

    def _check_active(self, step: WorkflowStep) -> None:
        if step.status != "active":
            raise self._rejection(
                StepNotActiveError(step.id, step.status),
                "Cannot Complete",
                Template.STEP_NOT_ACTIVE,
                step=step,
            )

    @contextmanager
    def _exclusive(self, *step_ids: str) -> Iterator[None]:
        claimed = set(step_ids)
        busy = sorted(claimed & self._in_flight)
        if busy:
            raise WorkflowBusyError(busy)
        self._in_flight |= claimed
        try:
            yield
        finally:
            self._in_flight -= claimed

    def _rejection(self, error: WorkflowError, title: str, template: str, **context) -> WorkflowError:
        """Logs and announces a rejected operation; the caller raises the returned error."""
        logger.warning(f"Session {self.instance.session_id}: {error}")
        self._notify("error", title, template, duration_ms=4000, **context)
        return error

    def _notify(
        self, type_: NotificationType, title: str, template: str, duration_ms: int = 3000, **context
    ) -> None:
        self.notifications.emit(
            Notification(
                type=type_,
                title=title,
                message=render(template, **context),
                duration_ms=duration_ms,
            )
        )
