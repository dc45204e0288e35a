import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Optional

from ..state.models import WorkflowInstance
from .storage import KeyValueStore

logger = logging.getLogger(__name__)


class SessionRepository(ABC):
    """
    Defines how the application accesses workflow sessions.
    This allows us change how data is accessed (Memory -> SQL -> API) later
    without changing the WorkflowEngine code.
    """

    @abstractmethod
    def get(self, session_id: str) -> Optional[WorkflowInstance]:
        """Retrieves a session by ID."""
        pass

    @abstractmethod
    def save(self, instance: WorkflowInstance):
        """Persists the session state (insert or replace)."""
        pass

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Deletes a session. Returns True if found and deleted."""
        pass


class InMemorySessionRepository(SessionRepository):
    """
    Uses in-memory dictionary for session storage for testing/dev purposes.
    """

    def __init__(self):
        self._store: Dict[str, WorkflowInstance] = {}

    def get(self, session_id: str) -> Optional[WorkflowInstance]:
        return self._store.get(session_id)

    def save(self, instance: WorkflowInstance):
        self._store[instance.session_id] = instance

    def delete(self, session_id: str) -> bool:
        if session_id in self._store:
            del self._store[session_id]
            return True
        return False


class KeyValueSessionRepository(SessionRepository):
    """
    Stores each WorkflowInstance as a JSON blob under '<prefix><session_id>'.
    """

    def __init__(self, store: KeyValueStore, prefix: str):
        self.store = store
        self.prefix = prefix

    def _key(self, session_id: str) -> str:
        return f"{self.prefix}{session_id}"

    def get(self, session_id: str) -> Optional[WorkflowInstance]:
        raw = self.store.get(self._key(session_id))
        if raw is None:
            return None
        try:
            return WorkflowInstance.model_validate_json(raw)
        except ValueError as e:
            # Fail closed: an unreadable session behaves like a missing one
            logger.warning(f"Discarding unreadable session {session_id}: {e}")
            return None

    def save(self, instance: WorkflowInstance):
        instance.updated_at = datetime.now(timezone.utc)
        self.store.set(
            self._key(instance.session_id),
            instance.model_dump_json(by_alias=True),
        )

    def delete(self, session_id: str) -> bool:
        key = self._key(session_id)
        if self.store.get(key) is None:
            return False
        self.store.remove(key)
        return True
