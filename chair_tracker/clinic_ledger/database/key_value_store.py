"""Key-value persistence for the clinic collections."""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Protocol

from chair_tracker.errors import PersistenceError

from .schema import SCHEMA

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Opaque string store keyed by name."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def set_many(self, items: dict[str, str]) -> None: ...


class SqliteKeyValueStore:
    """Key-value store backed by a single SQLite table."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)

    def get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory enabled."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_database(self) -> None:
        """Initialize the database with schema."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = self.get_connection()
            conn.executescript(SCHEMA)
            conn.commit()
            conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not initialize {self.db_path}: {e}") from e

    def get(self, key: str) -> str | None:
        try:
            conn = self.get_connection()
            cursor = conn.cursor()
            cursor.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
            row = cursor.fetchone()
            conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not read {key}: {e}") from e
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, items: dict[str, str]) -> None:
        """Write several keys in one transaction."""
        now = datetime.now().isoformat()
        try:
            conn = self.get_connection()
            with conn:
                conn.executemany(
                    """INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                       ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                                      updated_at = excluded.updated_at""",
                    [(key, value, now) for key, value in items.items()],
                )
            conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not write {', '.join(items)}: {e}") from e
        logger.debug("Wrote keys %s", list(items))


class InMemoryKeyValueStore:
    """Dict-backed store for tests and dry runs."""

    def __init__(self, data: dict[str, str] | None = None):
        self.data = dict(data or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def set_many(self, items: dict[str, str]) -> None:
        self.data.update(items)
