"""Local cache: the serialized Document in a SQLite key-value table."""

import sqlite3
from pathlib import Path

from loguru import logger

from tidymemo.config import CACHE_DB_NAME, STORAGE_KEY
from tidymemo.models.document import Document, now_ms
from tidymemo.storage.schema import migrate_schema


class LocalCache:
    """Durable device-scoped copy of the Document.

    The cache is a convenience layer, not the authority: saving never raises,
    and anything unreadable on load is reported as absent.
    """

    def __init__(self, conn: sqlite3.Connection, *, key: str = STORAGE_KEY) -> None:
        self.conn = conn
        self.key = key
        migrate_schema(self.conn)

    @classmethod
    def open(cls, data_dir: str | Path, *, key: str = STORAGE_KEY) -> "LocalCache":
        """Open (creating if needed) the cache database inside ``data_dir``.

        A file that is not a SQLite database is moved aside and replaced by an
        empty cache.
        """
        path = Path(data_dir)
        path.mkdir(parents=True, exist_ok=True)
        db_path = path / CACHE_DB_NAME
        conn = sqlite3.connect(str(db_path))
        try:
            cache = cls(conn, key=key)
        except sqlite3.DatabaseError as e:
            conn.close()
            corrupt = db_path.with_name(f"{db_path.name}.corrupt-{now_ms()}")
            logger.warning("Local cache {} is unreadable ({}), moved to {}", db_path, e, corrupt)
            db_path.replace(corrupt)
            cache = cls(sqlite3.connect(str(db_path)), key=key)
        logger.debug("Local cache ready at {}", db_path)
        return cache

    def close(self) -> None:
        self.conn.close()

    def save_raw(self, payload: str) -> None:
        """Store an already-serialized Document. Failures are logged, never raised."""
        try:
            self.conn.execute(
                "INSERT OR REPLACE INTO kv (key, value, updated_at) VALUES (?, ?, ?)",
                (self.key, payload, now_ms()),
            )
            self.conn.commit()
        except (sqlite3.Error, OSError):
            logger.exception("Failed to save to local cache")

    def save_local(self, doc: Document) -> None:
        self.save_raw(doc.serialize())

    def load_raw(self) -> str | None:
        try:
            row = self.conn.execute(
                "SELECT value FROM kv WHERE key = ?", (self.key,)
            ).fetchone()
        except sqlite3.Error:
            logger.exception("Failed to read local cache")
            return None
        return row[0] if row else None

    def load_local(self) -> Document | None:
        """Return the cached Document, or None when absent or corrupt."""
        raw = self.load_raw()
        if raw is None:
            return None
        try:
            return Document.deserialize(raw)
        except (ValueError, TypeError) as e:
            logger.warning("Failed to parse local data, ignoring it: {}", e)
            return None
