"""
Key-value stores used to persist session state across restarts.

Core code only depends on the KeyValueStore get/set/delete surface, so
tests swap in InMemoryKeyValueStore.
"""
import logging
from typing import Callable, Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import KeyValueEntry

logger = logging.getLogger(__name__)


class KeyValueStore:
    """String key -> string value storage."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store, lost on restart."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class SqlKeyValueStore(KeyValueStore):
    """Store backed by the key_value_entries table; one short session per call."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        with self.session_factory() as session:
            return session.execute(
                select(KeyValueEntry.value).where(KeyValueEntry.key == key)
            ).scalar_one_or_none()

    def set(self, key: str, value: str) -> None:
        with self.session_factory() as session:
            entry = session.get(KeyValueEntry, key)
            if entry is None:
                session.add(KeyValueEntry(key=key, value=value))
            else:
                entry.value = value
            session.commit()
        logger.debug(f"Stored {len(value)} chars under '{key}'")

    def delete(self, key: str) -> None:
        with self.session_factory() as session:
            entry = session.get(KeyValueEntry, key)
            if entry is not None:
                session.delete(entry)
                session.commit()
