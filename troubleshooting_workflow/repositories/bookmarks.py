import logging
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, TypeAdapter

from ..state.models import CamelModel, utcnow
from .storage import KeyValueStore

logger = logging.getLogger(__name__)


class BookmarkedSolution(CamelModel):
    """
    A solution the user saved for later, with the problem it was found for.
    """
    id: str
    solution_id: str
    title: str
    category: str = "General"
    confidence: float = 0
    difficulty: Literal["Easy", "Medium", "Hard"] = "Medium"
    bookmarked_at: datetime = Field(default_factory=utcnow)
    notes: Optional[str] = None
    problem_context: str = "No context provided"


_bookmarks_adapter = TypeAdapter(List[BookmarkedSolution])


class BookmarkRepository:
    """
    Bookmarked solutions kept as one JSON array under a fixed key.

    A corrupt value reads as no bookmarks at all.
    """

    def __init__(self, store: KeyValueStore, key: str):
        self.store = store
        self.key = key

    def list(self) -> List[BookmarkedSolution]:
        raw = self.store.get(self.key)
        if raw is None:
            return []
        try:
            return _bookmarks_adapter.validate_json(raw)
        except ValueError as e:
            logger.warning(f"Discarding unreadable bookmarks under '{self.key}': {e}")
            return []

    def is_bookmarked(self, solution_id: str) -> bool:
        return any(b.solution_id == solution_id for b in self.list())

    def add(self, bookmark: BookmarkedSolution) -> BookmarkedSolution:
        bookmarks = self.list()
        bookmarks.append(bookmark)
        self._save(bookmarks)
        return bookmark

    def remove(self, bookmark_id: str) -> bool:
        bookmarks = self.list()
        remaining = [b for b in bookmarks if b.id != bookmark_id]
        if len(remaining) == len(bookmarks):
            return False
        self._save(remaining)
        return True

    def remove_solution(self, solution_id: str) -> bool:
        bookmarks = self.list()
        remaining = [b for b in bookmarks if b.solution_id != solution_id]
        if len(remaining) == len(bookmarks):
            return False
        self._save(remaining)
        return True

    def toggle(self, bookmark: BookmarkedSolution) -> bool:
        """
        Bookmarks the solution, or removes it if already bookmarked.

        Returns:
            True if the solution is bookmarked after the call.
        """
        if self.is_bookmarked(bookmark.solution_id):
            self.remove_solution(bookmark.solution_id)
            return False
        self.add(bookmark)
        return True

    def _save(self, bookmarks: List[BookmarkedSolution]) -> None:
        payload = _bookmarks_adapter.dump_json(bookmarks, by_alias=True)
        self.store.set(self.key, payload.decode("utf-8"))
