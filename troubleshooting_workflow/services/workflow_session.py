"""
Workflow Session Service - Application Orchestration Layer

This service is the entry point for all workflow operations. It orchestrates
the interaction between the Data Layer (Repositories, Key-Value Store), the
Logic Layer (WorkflowEngine) and the API. It ensures that sessions are
loaded, processed, and saved correctly.

Each live session gets exactly one engine (and one notification queue), so
the re-entrancy guard holds across requests. At most `max_live_sessions`
engines stay in memory; the least recently used idle ones are dropped and
reloaded from the repository on their next use.
"""

import logging
import uuid
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..analytics.aggregator import (
    compute_category_completion,
    compute_status_distribution,
    parse_time_range,
)
from ..collaboration.interface import CollaborationChannel, NullCollaborationChannel
from ..config import settings
from ..data.step_catalog import DEFAULT_STEP_DEFINITIONS
from ..domain.models import StepDefinition
from ..exceptions import SnapshotImportError
from ..execution.engine import WorkflowEngine
from ..history.ledger import PersistentHistoryLedger
from ..notifications.interface import InMemoryNotificationSink, Notification
from ..repositories.session import SessionRepository
from ..repositories.storage import KeyValueStore
from ..schemas.analytics import (
    AnalyticsSnapshot,
    CategoryCompletion,
    StatusCount,
    WorkflowMetrics,
)
from ..schemas.snapshot import SnapshotDocument, SnapshotProgress
from ..serialization.snapshot import (
    ImportedSnapshot,
    decode_share_token,
    encode_share_token,
    export_snapshot,
    import_snapshot,
)
from ..state.models import (
    HistoryEntry,
    TroubleshootingContext,
    WorkflowInstance,
    WorkflowStep,
)
from .exceptions import SessionNotFoundError

logger = logging.getLogger(__name__)


class WorkflowSessionService:
    def __init__(
        self,
        session_repository: SessionRepository,
        store: KeyValueStore,
        definitions: Sequence[StepDefinition] = DEFAULT_STEP_DEFINITIONS,
        collaboration: Optional[CollaborationChannel] = None,
        clock: Optional[Callable[[], int]] = None,
        validation_timeout: Optional[float] = settings.VALIDATION_TIMEOUT_SECONDS,
        max_live_sessions: int = settings.MAX_LIVE_SESSIONS,
    ):
        self.session_repo = session_repository
        self.store = store
        self.definitions = list(definitions)
        self.collaboration = collaboration or NullCollaborationChannel()
        self.clock = clock
        self.validation_timeout = validation_timeout
        self.max_live_sessions = max_live_sessions

        self._engines: "OrderedDict[str, WorkflowEngine]" = OrderedDict()
        self._sinks: Dict[str, InMemoryNotificationSink] = {}

    # ==========================================================================
    # Session Lifecycle
    # ==========================================================================

    def create_session(
        self,
        entry_step_id: Optional[str] = None,
        problem_description: str = "",
        solutions: Optional[List[Dict[str, Any]]] = None,
    ) -> WorkflowInstance:
        """Creates a session seeded from the catalog, starting on `entry_step_id`."""
        session_id = str(uuid.uuid4())
        entry_step_id = entry_step_id or settings.DEFAULT_ENTRY_STEP

        engine = WorkflowEngine.create(
            session_id,
            entry_step_id=entry_step_id,
            definitions=self.definitions,
            context=TroubleshootingContext(
                problem_description=problem_description,
                solutions=solutions or [],
            ),
            **self._engine_dependencies(session_id),
        )
        self._remember(session_id, engine)
        self.session_repo.save(engine.instance)

        logger.info(f"Created session {session_id} starting on '{entry_step_id}'")
        return engine.instance

    def get_session(self, session_id: str) -> WorkflowInstance:
        return self._engine(session_id).instance

    def delete_session(self, session_id: str) -> bool:
        """Deletes a session together with its history."""
        engine = self._engines.pop(session_id, None)
        self._sinks.pop(session_id, None)
        if engine is not None:
            engine.ledger.clear()
        else:
            self.store.remove(self._history_key(session_id))
        return self.session_repo.delete(session_id)

    def update_context(
        self,
        session_id: str,
        problem_description: Optional[str] = None,
        solutions: Optional[List[Dict[str, Any]]] = None,
        selected_solution_id: Optional[str] = None,
    ) -> TroubleshootingContext:
        """Updates the upstream inputs the validation rules read. None leaves a field as is."""
        engine = self._engine(session_id)
        context = engine.instance.context
        if problem_description is not None:
            context.problem_description = problem_description
        if solutions is not None:
            context.solutions = solutions
        if selected_solution_id is not None:
            context.selected_solution_id = selected_solution_id
        self._save(engine)
        return context

    def elapsed_ms(self, session_id: str) -> int:
        """Elapsed time on the step in focus, 0 when nothing is active."""
        engine = self._engine(session_id)
        active = engine.instance.active_step
        return engine.elapsed_ms(active.id) if active else 0

    # ==========================================================================
    # Step Operations
    # ==========================================================================

    async def advance(
        self,
        session_id: str,
        target_id: str,
        skip_validation: bool = False,
        notes: Optional[str] = None,
    ) -> WorkflowInstance:
        engine = self._engine(session_id)
        try:
            await engine.advance_to_step(target_id, skip_validation=skip_validation, notes=notes)
        finally:
            # Validation errors are kept even when the advance is rejected
            self._save(engine)
        return engine.instance

    async def complete(
        self, session_id: str, skip_validation: bool = False, notes: Optional[str] = None
    ) -> WorkflowInstance:
        engine = self._engine(session_id)
        try:
            await engine.complete_current_step(skip_validation=skip_validation, notes=notes)
        finally:
            self._save(engine)
        return engine.instance

    def skip(self, session_id: str, step_id: str) -> WorkflowInstance:
        engine = self._engine(session_id)
        engine.skip_step(step_id)
        self._save(engine)
        return engine.instance

    def fail(self, session_id: str, step_id: str, reason: Optional[str] = None) -> WorkflowInstance:
        engine = self._engine(session_id)
        engine.mark_step_failed(step_id, reason=reason)
        self._save(engine)
        return engine.instance

    async def validate(self, session_id: str, step_id: str) -> Tuple[bool, List[str]]:
        """Returns whether the step is valid and its current error list."""
        engine = self._engine(session_id)
        is_valid = await engine.validate_step(step_id)
        self._save(engine)
        return is_valid, list(engine.instance.validation_errors.get(step_id, []))

    def navigate(self, session_id: str, step_id: str) -> WorkflowStep:
        engine = self._engine(session_id)
        step = engine.navigate_to_step(step_id)
        self._save(engine)
        return step

    # ==========================================================================
    # Analytics & History
    # ==========================================================================

    def get_analytics(self, session_id: str) -> AnalyticsSnapshot:
        return self._engine(session_id).get_analytics()

    def get_breakdown(self, session_id: str) -> Tuple[List[CategoryCompletion], List[StatusCount]]:
        steps = self._engine(session_id).instance.steps
        return compute_category_completion(steps), compute_status_distribution(steps)

    def get_metrics(self, session_id: str, time_range: Optional[str] = None) -> WorkflowMetrics:
        """
        Metrics over the last `time_range` ('7d', '30d', '90d').

        Raises:
            ValueError: unparseable time range.
        """
        days = parse_time_range(time_range) if time_range else settings.METRICS_TIME_RANGE_DAYS
        return self._engine(session_id).get_metrics(days)

    def list_history(self, session_id: str) -> List[HistoryEntry]:
        return self._engine(session_id).ledger.all()

    def clear_history(self, session_id: str) -> None:
        engine = self._engine(session_id)
        engine.ledger.clear()
        logger.info(f"Cleared history for session {session_id}")

    # ==========================================================================
    # Export / Import
    # ==========================================================================

    def export_snapshot(self, session_id: str, include_progress: bool = False) -> SnapshotDocument:
        engine = self._engine(session_id)
        instance = engine.instance
        progress = None
        if include_progress:
            progress = SnapshotProgress(
                current_step_id=instance.current_step_id,
                step_durations=dict(instance.step_durations),
                validation_errors=dict(instance.validation_errors),
            )
        return export_snapshot(instance.steps, engine.get_analytics(), progress=progress)

    def import_snapshot(self, session_id: str, raw_text: str) -> WorkflowInstance:
        """
        Replaces the session's steps with the document's. Rejected documents
        leave the session untouched.
        """
        engine = self._engine(session_id)
        return self._apply_import(engine, lambda: import_snapshot(raw_text))

    def share_token(self, session_id: str) -> str:
        return encode_share_token(self.export_snapshot(session_id))

    def import_share_token(self, session_id: str, token: str) -> WorkflowInstance:
        engine = self._engine(session_id)
        return self._apply_import(engine, lambda: decode_share_token(token))

    def _apply_import(
        self, engine: WorkflowEngine, parse: Callable[[], ImportedSnapshot]
    ) -> WorkflowInstance:
        try:
            imported = parse()
            engine.replace_steps(imported.steps, progress=imported.progress)
        except SnapshotImportError as e:
            logger.warning(f"Rejected import for session {engine.instance.session_id}: {e}")
            engine.notifications.emit(
                Notification(type="error", title="Import Failed", message=str(e), duration_ms=4000)
            )
            raise
        self._save(engine)
        return engine.instance

    # ==========================================================================
    # Notifications
    # ==========================================================================

    def list_notifications(self, session_id: str) -> List[Notification]:
        self._engine(session_id)
        return self._sink(session_id).list()

    def dismiss_notification(self, session_id: str, notification_id: str) -> bool:
        self._engine(session_id)
        return self._sink(session_id).dismiss(notification_id)

    def dismiss_all_notifications(self, session_id: str) -> None:
        self._engine(session_id)
        self._sink(session_id).dismiss_all()

    # ==========================================================================
    # Standard Helpers
    # ==========================================================================

    def _engine(self, session_id: str) -> WorkflowEngine:
        """Returns the live engine for a session, loading it from the repository if needed."""
        engine = self._engines.get(session_id)
        if engine is not None:
            self._engines.move_to_end(session_id)
            return engine

        instance = self.session_repo.get(session_id)
        if instance is None:
            raise SessionNotFoundError(session_id)

        engine = WorkflowEngine(
            instance,
            definitions=self.definitions,
            **self._engine_dependencies(session_id),
        )
        self._remember(session_id, engine)
        logger.debug(f"Loaded session {session_id} into memory")
        return engine

    def _remember(self, session_id: str, engine: WorkflowEngine) -> None:
        self._engines[session_id] = engine
        self._engines.move_to_end(session_id)

        overflow = len(self._engines) - self.max_live_sessions
        if overflow <= 0:
            return
        # Busy engines hold the re-entrancy guard and must stay
        idle = [
            sid for sid, live in self._engines.items()
            if sid != session_id and not live.busy
        ]
        for sid in idle[:overflow]:
            del self._engines[sid]
            self._sinks.pop(sid, None)
            logger.debug(f"Evicted idle session {sid} from memory")

    def _engine_dependencies(self, session_id: str) -> Dict[str, Any]:
        return {
            "ledger": PersistentHistoryLedger(self.store, self._history_key(session_id)),
            "notifications": self._sink(session_id),
            "collaboration": self.collaboration,
            "clock": self.clock,
            "validation_timeout": self.validation_timeout,
        }

    def _sink(self, session_id: str) -> InMemoryNotificationSink:
        sink = self._sinks.get(session_id)
        if sink is None:
            sink = InMemoryNotificationSink(limit=settings.NOTIFICATION_LIMIT)
            self._sinks[session_id] = sink
        return sink

    def _history_key(self, session_id: str) -> str:
        return f"{settings.HISTORY_STORAGE_KEY}:{session_id}"

    def _save(self, engine: WorkflowEngine) -> None:
        self.session_repo.save(engine.instance)
