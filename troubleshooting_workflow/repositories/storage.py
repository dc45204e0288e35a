from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from ..infrastructure.database.tables import KeyValueDBModel


class KeyValueStore(ABC):
    """
    Generic string key-value store (browser local storage in spirit).
    Callers store JSON text blobs under fixed keys.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Returns the stored value, or None if the key is absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Stores the value, replacing any previous one."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Removes the key. Removing an absent key is a no-op."""
        pass


class InMemoryKeyValueStore(KeyValueStore):
    """
    Uses an in-memory dictionary for testing/dev purposes.
    """

    def __init__(self):
        self._store: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._store.get(key)

    def set(self, key: str, value: str) -> None:
        self._store[key] = value

    def remove(self, key: str) -> None:
        self._store.pop(key, None)


class SQLKeyValueStore(KeyValueStore):
    """
    Reads and writes the 'key_value_store' table.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def get(self, key: str) -> Optional[str]:
        with Session(self.engine) as db:
            result = db.get(KeyValueDBModel, key)
            return result.value if result else None

    def set(self, key: str, value: str) -> None:
        with Session(self.engine) as db:
            result = db.get(KeyValueDBModel, key)
            if result:
                result.value = value
                result.updated_at = datetime.now(timezone.utc)
            else:
                result = KeyValueDBModel(key=key, value=value)
            db.add(result)
            db.commit()

    def remove(self, key: str) -> None:
        with Session(self.engine) as db:
            statement = select(KeyValueDBModel).where(KeyValueDBModel.key == key)
            result = db.exec(statement).first()
            if result:
                db.delete(result)
                db.commit()
