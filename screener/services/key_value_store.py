"""Key-value persistence used to keep the watchlist across sessions."""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from sqlalchemy.orm import Session, sessionmaker

from screener.database.models import KeyValueRecord
from screener.utils.logger import StructuredLogger


class KeyValueStore(ABC):
    """String values under string keys."""

    @abstractmethod
    def load(self, key: str) -> str | None:
        """Return the stored value, or None if nothing was saved under key."""

    @abstractmethod
    def save(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""


class SqlKeyValueStore(KeyValueStore):
    """Stores values in the key_value table, one short session per call."""

    def __init__(self, session_factory: sessionmaker):
        """
        Args:
            session_factory: SQLAlchemy sessionmaker bound to an initialized database
        """
        self.session_factory = session_factory
        self.logger = StructuredLogger("SqlKeyValueStore")

    def load(self, key: str) -> str | None:
        session: Session = self.session_factory()
        try:
            record = session.get(KeyValueRecord, key)
            return record.value if record else None
        finally:
            session.close()

    def save(self, key: str, value: str) -> None:
        session: Session = self.session_factory()
        try:
            record = session.get(KeyValueRecord, key)
            if record is None:
                session.add(KeyValueRecord(key=key, value=value))
            else:
                record.value = value
                record.updated_at = datetime.now(timezone.utc)
            session.commit()
            self.logger.debug("Stored value", context={"key": key, "size": len(value)})
        except Exception as e:
            session.rollback()
            self.logger.error(f"Error storing value for {key}", exception=e)
            raise
        finally:
            session.close()


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store for tests and throwaway sessions."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._values = dict(initial or {})
        self._lock = threading.Lock()

    def load(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def save(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value
