"""
Tool: Temporal Store
Purpose: Narrow key-value persistence for budgets, preferences, outcomes and commitments

Usage:
    from temporal_intel.store import get_store, MemoryStore, SQLiteStore

    store = get_store()
    store.set("prefs:alice", {...})
    with store.locked("budget:alice:2026-02-05"):
        ...

Key layout:
    budget:{user_id}:{YYYY-MM-DD}     InterruptBudget
    prefs:{user_id}                   TemporalPreferences
    outcome:{user_id}:{iso}:{id}      NotificationOutcome (append-only)
    commitment:{user_id}:{id}         Commitment with embedded dependency chain

Writes to one key must come from a single writer at a time. Both stores
serialize writers per key through locked(); a production backend must give
the same guarantee (optimistic concurrency or a per-key mutex), otherwise
two racing queue evaluations under- or over-count realtime interrupts.
"""

import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from temporal_intel import DB_PATH
from temporal_intel.logging_config import get_logger

logger = get_logger(__name__)


class KeyValueStore(ABC):
    """Get/set/delete by key, plus per-key write serialization."""

    def __init__(self) -> None:
        self._locks: dict[str, threading.RLock] = defaultdict(threading.RLock)
        self._locks_guard = threading.Lock()

    @abstractmethod
    def get(self, key: str) -> Any | None: ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> bool: ...

    @abstractmethod
    def keys(self, prefix: str = "") -> list[str]:
        """Keys starting with prefix, sorted."""

    def clear(self, prefix: str = "") -> int:
        removed = 0
        for key in self.keys(prefix):
            if self.delete(key):
                removed += 1
        return removed

    def values(self, prefix: str = "") -> list[Any]:
        results = []
        for key in self.keys(prefix):
            value = self.get(key)
            if value is not None:
                results.append(value)
        return results

    @contextmanager
    def locked(self, key: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks[key]
        with lock:
            yield

    def update(self, key: str, fn: Callable[[Any | None], Any]) -> Any:
        """Read-modify-write one key under its lock and return the new value."""
        with self.locked(key):
            new_value = fn(self.get(key))
            self.set(key, new_value)
            return new_value


class MemoryStore(KeyValueStore):
    """Process-local store. Values are JSON round-tripped so callers never share objects."""

    def __init__(self) -> None:
        super().__init__()
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))


class SQLiteStore(KeyValueStore):
    """Durable store backed by a single kv table."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        super().__init__()
        self.db_path = Path(db_path) if db_path else DB_PATH
        conn = self.get_connection()
        conn.close()

    def get_connection(self) -> sqlite3.Connection:
        """Get database connection, creating tables if needed."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row

        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
            )
        """)
        conn.commit()
        return conn

    def get(self, key: str) -> Any | None:
        conn = self.get_connection()
        row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        conn.close()
        return json.loads(row["value"]) if row else None

    def set(self, key: str, value: Any) -> None:
        conn = self.get_connection()
        conn.execute(
            """
            INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (key, json.dumps(value), datetime.now().isoformat()),
        )
        conn.commit()
        conn.close()

    def delete(self, key: str) -> bool:
        conn = self.get_connection()
        cursor = conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        conn.commit()
        deleted = cursor.rowcount > 0
        conn.close()
        return deleted

    def keys(self, prefix: str = "") -> list[str]:
        conn = self.get_connection()
        rows = conn.execute(
            "SELECT key FROM kv_store WHERE substr(key, 1, ?) = ? ORDER BY key",
            (len(prefix), prefix),
        ).fetchall()
        conn.close()
        return [row["key"] for row in rows]


_default_store: KeyValueStore | None = None


def get_store() -> KeyValueStore:
    """Process-wide default store, built from the storage config on first use."""
    global _default_store
    if _default_store is None:
        from temporal_intel.config_models import resolve_config

        storage = resolve_config().storage
        if storage.backend == "sqlite":
            _default_store = SQLiteStore(storage.db_path)
        else:
            _default_store = MemoryStore()
        logger.info("store_initialized", backend=storage.backend)
    return _default_store


def set_store(store: KeyValueStore | None) -> None:
    """Swap the process-wide store (None rebuilds it from config on next use)."""
    global _default_store
    _default_store = store


def resolve_store(store: KeyValueStore | None = None) -> KeyValueStore:
    return store if store is not None else get_store()


__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "SQLiteStore",
    "get_store",
    "resolve_store",
    "set_store",
]
