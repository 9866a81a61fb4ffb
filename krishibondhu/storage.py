"""
Storage Backend Module

Provides the durable key-value persistence port and implementations for
in-memory (testing) and SQLite (persistence). Each key holds one opaque
blob; the services store whole collections as JSON under keys such as
``kb_loans`` and ``kb_reminders``.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union
from datetime import datetime, timezone
from pathlib import Path
import sqlite3
import json
import threading


LOANS_KEY = "kb_loans"
REMINDERS_KEY = "kb_reminders"


class KeyValueStore(ABC):
    """Abstract interface for key-value persistence backends"""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the blob stored under key, or None"""
        pass

    @abstractmethod
    def set(self, key: str, blob: str) -> None:
        """Durably store blob under key, replacing any previous value"""
        pass

    @abstractmethod
    def remove(self, key: str) -> bool:
        """Remove key; returns True if it existed"""
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        """List stored keys"""
        pass

    def close(self) -> None:
        """Close storage connection (default no-op)"""
        pass

    def get_json(self, key: str, default: Any = None) -> Any:
        """Load and decode a JSON blob"""
        blob = self.get(key)
        if blob is None:
            return default
        return json.loads(blob)

    def set_json(self, key: str, value: Any) -> None:
        """Encode value as JSON and store it"""
        self.set(key, json.dumps(value, default=str))


class InMemoryStore(KeyValueStore):
    """In-memory key-value store for testing"""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, blob: str) -> None:
        if not isinstance(blob, str):
            raise TypeError(f"Blob for key {key} must be str, got {type(blob).__name__}")
        with self._lock:
            self._data[key] = blob

    def remove(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._data)


class SQLiteStore(KeyValueStore):
    """SQLite key-value store for persistence across restarts"""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()

        with self._lock:
            if self.db_path != ":memory:":
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = FULL")
            self._connection.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            self._connection.commit()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            cursor = self._connection.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            )
            row = cursor.fetchone()
            return row['value'] if row else None

    def set(self, key: str, blob: str) -> None:
        if not isinstance(blob, str):
            raise TypeError(f"Blob for key {key} must be str, got {type(blob).__name__}")
        with self._lock:
            now = datetime.now(timezone.utc).isoformat()
            self._connection.execute("""
                INSERT OR REPLACE INTO kv_store (key, value, updated_at)
                VALUES (?, ?, ?)
            """, (key, blob, now))
            self._connection.commit()

    def remove(self, key: str) -> bool:
        with self._lock:
            cursor = self._connection.execute(
                "DELETE FROM kv_store WHERE key = ?", (key,)
            )
            self._connection.commit()
            return cursor.rowcount > 0

    def keys(self) -> List[str]:
        with self._lock:
            cursor = self._connection.execute("SELECT key FROM kv_store ORDER BY key")
            return [row['key'] for row in cursor.fetchall()]

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_store(use_sqlite: bool = True, db_path: Union[str, Path] = "krishibondhu.db") -> KeyValueStore:
    """Build the configured store backend"""
    if use_sqlite:
        return SQLiteStore(db_path)
    return InMemoryStore()
