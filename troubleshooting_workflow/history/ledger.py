"""
History Ledger - Append-only Record of Step Outcomes

Every terminal transition the engine performs (completed, skipped, failed)
is appended here. Entries are frozen models and are never edited; the only
way to remove them is clear(), which empties the ledger wholesale. Asking
the user to confirm a clear is the caller's job.
"""

import logging
from typing import Iterator, List, Optional

from pydantic import TypeAdapter

from ..repositories.storage import KeyValueStore
from ..state.models import HistoryEntry

logger = logging.getLogger(__name__)

_entries_adapter = TypeAdapter(List[HistoryEntry])


class HistoryLedger:
    """
    In-memory ledger. Keeps entries in insertion order internally.
    """

    def __init__(self, entries: Optional[List[HistoryEntry]] = None):
        self._entries: List[HistoryEntry] = list(entries or [])

    def append(self, entry: HistoryEntry) -> None:
        self._entries.append(entry)

    def all(self) -> List[HistoryEntry]:
        """Returns all entries, most recent first."""
        return list(reversed(self._entries))

    def clear(self) -> None:
        self._entries = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        # Chronological order
        return iter(list(self._entries))


class PersistentHistoryLedger(HistoryLedger):
    """
    Ledger mirrored into a key-value store as a JSON array under a fixed key.

    A missing or corrupt value loads as an empty ledger instead of raising.
    """

    def __init__(self, store: KeyValueStore, key: str):
        self.store = store
        self.key = key
        super().__init__(self._load())

    def append(self, entry: HistoryEntry) -> None:
        super().append(entry)
        self._save()

    def clear(self) -> None:
        super().clear()
        self.store.remove(self.key)

    def _load(self) -> List[HistoryEntry]:
        raw = self.store.get(self.key)
        if raw is None:
            return []
        try:
            return _entries_adapter.validate_json(raw)
        except ValueError as e:
            # pydantic.ValidationError is a ValueError
            logger.warning(f"Discarding unreadable history under '{self.key}': {e}")
            return []

    def _save(self) -> None:
        payload = _entries_adapter.dump_json(self._entries, by_alias=True)
        self.store.set(self.key, payload.decode("utf-8"))
