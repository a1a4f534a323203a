"""Persistence backends for the bookmark set.

Each backend holds one serialized JSON array under a fixed key and is
read and written wholesale.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Optional, Protocol

from .config import STORAGE_KEY, get_data_dir, get_storage_backend

logger = logging.getLogger(__name__)


class BookmarkStorage(Protocol):
    """Minimal read/write interface the bookmark store depends on."""

    def read(self) -> Optional[str]:
        ...

    def write(self, data: str) -> None:
        ...


class MemoryStorage:
    """In-process storage, used in tests and for throwaway sessions."""

    def __init__(self, data: Optional[str] = None):
        self.data = data
        self.writes = 0

    def read(self) -> Optional[str]:
        return self.data

    def write(self, data: str) -> None:
        self.data = data
        self.writes += 1


class JsonFileStorage:
    """Single JSON file on disk."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def read(self) -> Optional[str]:
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    def write(self, data: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(data, encoding="utf-8")


class SQLiteStorage:
    """Key/value table in SQLite, the local-storage equivalent."""

    def __init__(self, db_path: Path, key: str = STORAGE_KEY):
        self.db_path = Path(db_path)
        self.key = key
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_sqlite()

    def _init_sqlite(self):
        """Initialize SQLite database schema."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS local_storage (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()

    def read(self) -> Optional[str]:
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT value FROM local_storage WHERE key = ?", (self.key,)
            ).fetchone()
            return row[0] if row else None

    def write(self, data: str) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO local_storage (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                """,
                (self.key, data),
            )
            conn.commit()


def get_storage(data_dir: Optional[Path] = None) -> BookmarkStorage:
    """Create the configured storage backend."""
    data_dir = data_dir or get_data_dir()
    backend = get_storage_backend()
    logger.info("Using %s bookmark storage", backend)

    if backend == "memory":
        return MemoryStorage()
    if backend == "json":
        return JsonFileStorage(data_dir / f"{STORAGE_KEY}.json")
    return SQLiteStorage(data_dir / "bookmarks.db")
