"""
Key-value store used by the marketplace core.

Collections are whole JSON lists written with last-write-wins semantics;
the weekly stamp is a single scalar. There are no transactions, so the
user collection has a single re-entrant writer lock: callers doing a
read-modify-write of users hold `store.locked()` for the whole cycle.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)

STORAGE_KEYS = {
    "USERS": "st_users",
    "WEBSITES": "st_websites",
    "RATINGS": "st_ratings",
    "CAMPAIGNS": "st_campaigns",
    "SYSTEM_LAST_UPDATE": "st_sys_last_update",
}

# One writer lock per process; every store instance shares it.
_writer_lock = threading.RLock()


class KeyValueStore:
    """Contract shared by the in-memory and SQL stores."""

    def get_list(self, key: str) -> List[Dict[str, Any]]:
        value = self.get_value(key)
        return list(value) if isinstance(value, list) else []

    def set_list(self, key: str, items: List[Dict[str, Any]]) -> None:
        self.set_value(key, list(items))

    def get_value(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set_value(self, key: str, value: Any) -> None:
        raise NotImplementedError

    @contextmanager
    def locked(self) -> Iterator["KeyValueStore"]:
        with _writer_lock:
            yield self


class InMemoryStore(KeyValueStore):
    """Dict-backed store; values are deep-copied on the way in and out."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})
        self._guard = threading.Lock()

    def get_value(self, key: str) -> Optional[Any]:
        with self._guard:
            return copy.deepcopy(self._data.get(key))

    def set_value(self, key: str, value: Any) -> None:
        with self._guard:
            self._data[key] = copy.deepcopy(value)


class SqlStore(KeyValueStore):
    """StoreEntry-backed store; needs an active Flask app context."""

    def get_value(self, key: str) -> Optional[Any]:
        from app import db
        import models

        entry = db.session.get(models.StoreEntry, key)
        if entry is None or not entry.value:
            return None
        return json.loads(entry.value)

    def set_value(self, key: str, value: Any) -> None:
        from app import db
        import models

        payload = json.dumps(value, ensure_ascii=False)
        entry = db.session.get(models.StoreEntry, key)
        if entry is None:
            entry = models.StoreEntry(key=key, value=payload)
        else:
            entry.value = payload
        db.session.add(entry)
        db.session.commit()
        logger.debug("store write %s (%s bytes)", key, len(payload))
