import os
import sqlite3
import threading
from typing import Any

from src.config import ExamConfig
from src.shared.telemetry import Telemetry, measure_time


class DatabaseManager:
    """
    Responsible for:
    1. Managing the SQLite connection lifecycle.
    2. Creating the key-value schema.
    3. Handling migrations.
    4. Staying pickle-safe (the connection is dropped and reopened lazily).
    """

    def __init__(self, db_path: str = ExamConfig.DB_PATH) -> None:
        self.db_path = db_path
        self.telemetry = Telemetry("DatabaseManager")
        self._shared_connection: sqlite3.Connection | None = None
        # Serializes use of the shared connection across threads
        self.lock = threading.RLock()

        self._ensure_db_exists()

        # In-memory databases vanish with their connection, so open it now
        if self.db_path == ":memory:":
            self._shared_connection = sqlite3.connect(
                ":memory:", check_same_thread=False
            )

        self._init_schema()
        self._migrate_schema()

    # --- Pickle Safety ---
    def __getstate__(self) -> dict[str, Any]:
        state = self.__dict__.copy()
        state.pop("_shared_connection", None)
        state.pop("lock", None)
        return state

    def __setstate__(self, state: dict[str, Any]) -> None:
        self.__dict__.update(state)
        self.lock = threading.RLock()
        # Re-created lazily by get_connection(). ":memory:" data does not survive.
        self._shared_connection = None

    def get_connection(self) -> sqlite3.Connection:
        """Returns a usable connection, reconnecting if necessary."""
        if self._shared_connection:
            try:
                self._shared_connection.execute("SELECT 1")
                return self._shared_connection
            except sqlite3.ProgrammingError:
                # Closed externally
                self._shared_connection = None

        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        if self.db_path != ":memory:":
            conn.execute("PRAGMA journal_mode=WAL")

        self._shared_connection = conn
        return conn

    def close(self) -> None:
        if self._shared_connection:
            self._shared_connection.close()
            self._shared_connection = None

    def _ensure_db_exists(self) -> None:
        if self.db_path == ":memory:":
            return
        dir_name = os.path.dirname(self.db_path)
        if dir_name:
            os.makedirs(dir_name, exist_ok=True)

    @measure_time("db_init_schema")
    def _init_schema(self) -> None:
        conn = self.get_connection()
        try:
            # Settings, progress and the in-flight session snapshot
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store
                (
                    key   TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            conn.commit()
        except sqlite3.Error as e:
            self.telemetry.log_error("Schema Init Failed", e)

    def _migrate_schema(self) -> None:
        conn = self.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("PRAGMA table_info(kv_store)")
            columns = [info[1] for info in cursor.fetchall()]

            # Migration: track when each blob was last written
            if "updated_at" not in columns:
                self.telemetry.log_info("Migrating: Adding updated_at to kv_store")
                cursor.execute("ALTER TABLE kv_store ADD COLUMN updated_at DATETIME")

            conn.commit()
        except sqlite3.Error as e:
            self.telemetry.log_error("Schema migration failed", e)
