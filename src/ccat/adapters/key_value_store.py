import sqlite3
import threading
from datetime import datetime

from src.ccat.adapters.db_manager import DatabaseManager
from src.ccat.domain.errors import PersistenceError
from src.ccat.domain.ports import IKeyValueStore
from src.shared.telemetry import Telemetry, measure_time


class InMemoryKeyValueStore(IKeyValueStore):
    """Process-local store for tests and ephemeral runs."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def save(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def load(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)


class SQLiteKeyValueStore(IKeyValueStore):
    """
    Key-value blobs in the `kv_store` table.
    sqlite3 errors are re-raised as PersistenceError; the gateway decides
    whether they are fatal. Every call holds the manager's lock; the
    connection is shared with the ticker thread.
    """

    def __init__(self, db_manager: DatabaseManager) -> None:
        self.telemetry = Telemetry("SQLiteKeyValueStore")
        self.db_manager = db_manager

    def _get_connection(self) -> sqlite3.Connection:
        return self.db_manager.get_connection()

    @measure_time("kv_save")
    def save(self, key: str, value: str) -> None:
        with self.db_manager.lock:
            conn = self._get_connection()
            try:
                conn.execute(
                    "INSERT OR REPLACE INTO kv_store (key, value, updated_at) "
                    "VALUES (?, ?, ?)",
                    (key, value, datetime.now().isoformat()),
                )
                conn.commit()
            except sqlite3.Error as e:
                raise PersistenceError(f"save {key} failed: {e}") from e
            finally:
                if not self.db_manager._shared_connection:
                    conn.close()

    def load(self, key: str) -> str | None:
        with self.db_manager.lock:
            conn = self._get_connection()
            try:
                cursor = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
                row = cursor.fetchone()
                return row[0] if row else None
            except sqlite3.Error as e:
                raise PersistenceError(f"load {key} failed: {e}") from e
            finally:
                if not self.db_manager._shared_connection:
                    conn.close()

    def delete(self, key: str) -> None:
        with self.db_manager.lock:
            conn = self._get_connection()
            try:
                conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                conn.commit()
            except sqlite3.Error as e:
                raise PersistenceError(f"delete {key} failed: {e}") from e
            finally:
                if not self.db_manager._shared_connection:
                    conn.close()
