"""SQLite key-value store for persisted JSON snapshots."""
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import aiosqlite

from src.config import DEFAULT_DB_PATH

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Async SQLite store mapping string keys to JSON values.

    Shares the same database as RecordStore (default: ~/.browser-search/browser.db).
    Malformed stored values are discarded on load rather than raised.
    """

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or DEFAULT_DB_PATH
        self._connection: Optional[aiosqlite.Connection] = None

    async def initialize(self) -> None:
        """Initialize the database, creating the key-value table if needed."""
        if str(self.db_path) != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row

        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        await self._connection.commit()

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    def _require_connection(self) -> aiosqlite.Connection:
        if not self._connection:
            raise RuntimeError("SnapshotStore not initialized. Call initialize() first.")
        return self._connection

    async def load(self, key: str, default: Any) -> Any:
        """Load a JSON value.

        Args:
            key: Storage key
            default: Returned when the key is missing or its value is unusable

        Returns:
            The stored value, or ``default``. A corrupt value is deleted.
        """
        connection = self._require_connection()

        cursor = await connection.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
        row = await cursor.fetchone()
        if row is None:
            return default

        try:
            value = json.loads(row["value"])
        except json.JSONDecodeError:
            logger.warning("Discarding corrupt stored value for %s", key)
            await self.delete(key)
            return default

        if isinstance(default, list) and not isinstance(value, list):
            logger.warning("Expected a list for %s, got %s", key, type(value).__name__)
            return default

        return value

    async def save(self, key: str, value: Any) -> bool:
        """Store a JSON-serialisable value.

        Args:
            key: Storage key
            value: Value to serialise

        Returns:
            True if saved, False if serialisation or the write failed
        """
        connection = self._require_connection()
        now = datetime.now(timezone.utc).isoformat()

        try:
            payload = json.dumps(value)
            await connection.execute("""
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
            """, (key, payload, now))
            await connection.commit()
        except (TypeError, ValueError, aiosqlite.Error):
            logger.error("Failed to save %s", key, exc_info=True)
            return False

        return True

    async def delete(self, key: str) -> bool:
        """Delete a key.

        Returns:
            True if deleted, False if not found
        """
        connection = self._require_connection()

        cursor = await connection.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        await connection.commit()

        return cursor.rowcount > 0
