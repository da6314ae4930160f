"""Key/value persistence backends for JSON datasets."""

import logging
import sqlite3
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class StorageBackend(Protocol):
    """String key/value storage, the shape of a browser's localStorage."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryBackend:
    """In-process backend. Nothing survives the process."""

    def __init__(self, items: Optional[dict[str, str]] = None):
        self.items: dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


class SQLiteBackend:
    """Simple SQLite key/value table."""

    def __init__(self, db_path: str = "data/reading_goals.db"):
        """Initialize database."""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Create database tables if they don't exist."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS items (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            conn.commit()
        logger.info(f"Database initialized at {self.db_path}")

    def get_item(self, key: str) -> Optional[str]:
        """Get raw value by key."""
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute("SELECT value FROM items WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set_item(self, key: str, value: str) -> None:
        """Insert or replace a value."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO items (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )
            conn.commit()
        logger.debug(f"Stored {key} ({len(value)} bytes)")

    def remove_item(self, key: str) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("DELETE FROM items WHERE key = ?", (key,))
            conn.commit()
