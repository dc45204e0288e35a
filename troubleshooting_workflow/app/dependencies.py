"""
Dependency Injection Wiring (Composition Root).

This module acts as the central "container" for the application's services.
It is responsible for:
1. Instantiating the core Singleton services (Store, Repositories, Service).
2. Wiring them together (e.g., injecting the Repository and Store into the Service).
3. Managing the lifecycle of these objects using @lru_cache to ensure
   they are created only once per application process.

By consolidating construction logic here, we keep the API layer (main.py)
clean and strictly focused on routing, while allowing for easy dependency
overrides during testing.
"""


from functools import lru_cache
from fastapi import Depends

from ..config import settings
from ..collaboration.interface import CollaborationChannel, NullCollaborationChannel
from ..repositories.bookmarks import BookmarkRepository
from ..repositories.session import SessionRepository, InMemorySessionRepository, KeyValueSessionRepository
from ..repositories.storage import KeyValueStore, InMemoryKeyValueStore, SQLKeyValueStore
from ..services.workflow_session import WorkflowSessionService

from ..infrastructure.database.connection import engine, init_db

# Key-Value Store (Singleton)
# Note: In-memory storage must be a singleton so data persists across requests!
@lru_cache()
def get_key_value_store() -> KeyValueStore:
    if settings.STORAGE_BACKEND == "sql":
        init_db()
        return SQLKeyValueStore(engine)
    return InMemoryKeyValueStore()

# Session Repository (Singleton)
@lru_cache()
def get_session_repository(
    store: KeyValueStore = Depends(get_key_value_store)
) -> SessionRepository:
    if settings.STORAGE_BACKEND == "sql":
        return KeyValueSessionRepository(store, prefix=settings.SESSION_STORAGE_PREFIX)
    return InMemorySessionRepository()

# Collaboration Channel (Singleton)
@lru_cache()
def get_collaboration_channel() -> CollaborationChannel:
    return NullCollaborationChannel()

# Bookmarks (Singleton)
@lru_cache()
def get_bookmark_repository(
    store: KeyValueStore = Depends(get_key_value_store)
) -> BookmarkRepository:
    return BookmarkRepository(store, key=settings.BOOKMARKS_STORAGE_KEY)

# The Workflow Session Service (Singleton Service)
@lru_cache()
def get_workflow_session_service(
    session_repo: SessionRepository = Depends(get_session_repository),
    store: KeyValueStore = Depends(get_key_value_store),
    collaboration: CollaborationChannel = Depends(get_collaboration_channel)
) -> WorkflowSessionService:
    """
    Injects all necessary components into the WorkflowSessionService.
    """
    return WorkflowSessionService(
        session_repository=session_repo,
        store=store,
        collaboration=collaboration,
        validation_timeout=settings.VALIDATION_TIMEOUT_SECONDS
    )
