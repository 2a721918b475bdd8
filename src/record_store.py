"""History and bookmark records: the source the search index is built from."""
import json
import logging
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Protocol

import aiosqlite

from src.config import DEFAULT_DB_PATH
from src.models import BookmarkRecord, HistoryRecord, parse_timestamp

logger = logging.getLogger(__name__)


class RecordSource(Protocol):
    """Read access to history and bookmark records, as the search index needs it."""

    async def get_all_history_records(self) -> List[HistoryRecord]:
        ...

    async def get_all_bookmark_records(self) -> List[BookmarkRecord]:
        ...

    async def get_history_record_by_id(self, record_id: str) -> Optional[HistoryRecord]:
        ...

    async def get_bookmark_record_by_id(self, record_id: str) -> Optional[BookmarkRecord]:
        ...


def _generate_id(prefix: str) -> str:
    """Generate a record id such as ``history_1718000000000_3f9a1c2b7``."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordStore:
    """Async SQLite store for browsing history and bookmarks.

    History keeps one row per URL; revisiting a URL bumps its visit count.
    Bookmark URLs are unique as well.
    """

    def __init__(
        self,
        db_path: Optional[Path] = None,
        max_history_items: int = 1000,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize the record store.

        Args:
            db_path: Path to SQLite database. Defaults to ~/.browser-search/browser.db
            max_history_items: History is trimmed to this many most recent visits
            clock: Returns the current time (UTC)
        """
        self.db_path = db_path or DEFAULT_DB_PATH
        self.max_history_items = max_history_items
        self._clock = clock
        self._connection: Optional[aiosqlite.Connection] = None

    async def initialize(self) -> None:
        """Initialize the database, creating tables if needed."""
        if str(self.db_path) != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row

        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS history (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                url TEXT NOT NULL UNIQUE,
                last_visited_at TEXT NOT NULL,
                visit_count INTEGER NOT NULL DEFAULT 1
            )
        """)

        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS bookmarks (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                url TEXT NOT NULL UNIQUE,
                folder TEXT NOT NULL DEFAULT '',
                tags TEXT,
                added_at TEXT NOT NULL
            )
        """)

        await self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_history_last_visited
            ON history(last_visited_at DESC)
        """)

        await self._connection.commit()

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    def _require_connection(self) -> aiosqlite.Connection:
        if not self._connection:
            raise RuntimeError("RecordStore not initialized. Call initialize() first.")
        return self._connection

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def get_all_history_records(self) -> List[HistoryRecord]:
        """Get all history records, most recently visited first."""
        connection = self._require_connection()

        cursor = await connection.execute(
            "SELECT * FROM history ORDER BY last_visited_at DESC, rowid DESC"
        )
        rows = await cursor.fetchall()

        return [self._row_to_history(row) for row in rows]

    async def get_history_record_by_id(self, record_id: str) -> Optional[HistoryRecord]:
        connection = self._require_connection()

        cursor = await connection.execute("SELECT * FROM history WHERE id = ?", (record_id,))
        row = await cursor.fetchone()

        return self._row_to_history(row) if row else None

    async def add_history_visit(self, url: str, title: str) -> HistoryRecord:
        """Record a page visit.

        A URL already in history gets its title refreshed, its visit time set
        to now and its visit count incremented; otherwise a new record is
        created with a visit count of 1.

        Args:
            url: Visited URL
            title: Page title

        Returns:
            The stored history record
        """
        connection = self._require_connection()
        now = self._clock()

        cursor = await connection.execute("SELECT * FROM history WHERE url = ?", (url,))
        existing = await cursor.fetchone()

        if existing is not None:
            record = self._row_to_history(existing)
            record.title = title
            record.last_visited_at = now
            record.visit_count += 1
            await connection.execute(
                "UPDATE history SET title = ?, last_visited_at = ?, visit_count = ? WHERE id = ?",
                (record.title, now.isoformat(), record.visit_count, record.id),
            )
        else:
            record = HistoryRecord(
                id=_generate_id("history"),
                title=title,
                url=url,
                last_visited_at=now,
                visit_count=1,
            )
            await connection.execute(
                "INSERT INTO history (id, title, url, last_visited_at, visit_count) VALUES (?, ?, ?, ?, ?)",
                (record.id, record.title, record.url, now.isoformat(), record.visit_count),
            )

        await self._trim_history(connection)
        await connection.commit()

        return record

    async def _trim_history(self, connection: aiosqlite.Connection) -> None:
        await connection.execute("""
            DELETE FROM history WHERE id NOT IN (
                SELECT id FROM history ORDER BY last_visited_at DESC, rowid DESC LIMIT ?
            )
        """, (self.max_history_items,))

    async def remove_history_record(self, record_id: str) -> bool:
        """Delete a history record.

        Returns:
            True if deleted, False if not found
        """
        connection = self._require_connection()

        cursor = await connection.execute("DELETE FROM history WHERE id = ?", (record_id,))
        await connection.commit()

        return cursor.rowcount > 0

    async def clear_history(self) -> int:
        """Delete all history.

        Returns:
            Number of records deleted
        """
        connection = self._require_connection()

        cursor = await connection.execute("DELETE FROM history")
        await connection.commit()

        return cursor.rowcount

    # ------------------------------------------------------------------
    # Bookmarks
    # ------------------------------------------------------------------

    async def get_all_bookmark_records(self) -> List[BookmarkRecord]:
        """Get all bookmarks, most recently added first."""
        connection = self._require_connection()

        cursor = await connection.execute(
            "SELECT * FROM bookmarks ORDER BY added_at DESC, rowid DESC"
        )
        rows = await cursor.fetchall()

        return [self._row_to_bookmark(row) for row in rows]

    async def get_bookmark_record_by_id(self, record_id: str) -> Optional[BookmarkRecord]:
        connection = self._require_connection()

        cursor = await connection.execute("SELECT * FROM bookmarks WHERE id = ?", (record_id,))
        row = await cursor.fetchone()

        return self._row_to_bookmark(row) if row else None

    async def add_bookmark(
        self,
        url: str,
        title: str,
        folder: str = "",
        tags: Optional[List[str]] = None,
    ) -> Optional[BookmarkRecord]:
        """Add a new bookmark.

        Args:
            url: Bookmarked URL
            title: Bookmark title
            folder: Folder name or path
            tags: Optional user tags

        Returns:
            The new bookmark, or None if the URL is already bookmarked
        """
        record = BookmarkRecord(
            id=_generate_id("bookmark"),
            title=title,
            url=url,
            folder=folder,
            added_at=self._clock(),
            tags=list(tags) if tags else None,
        )

        inserted = await self._insert_bookmark(record)
        if not inserted:
            logger.info("Bookmark already exists: %s", url)
            return None

        await self._require_connection().commit()
        return record

    async def import_bookmarks(self, records: Iterable[BookmarkRecord]) -> int:
        """Insert bookmarks in bulk, skipping URLs that are already bookmarked.

        Returns:
            Number of bookmarks inserted
        """
        inserted = 0
        for record in records:
            if await self._insert_bookmark(record):
                inserted += 1

        await self._require_connection().commit()
        return inserted

    async def _insert_bookmark(self, record: BookmarkRecord) -> bool:
        connection = self._require_connection()

        cursor = await connection.execute(
            """
            INSERT INTO bookmarks (id, title, url, folder, tags, added_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT DO NOTHING
            """,
            (
                record.id,
                record.title,
                record.url,
                record.folder,
                json.dumps(record.tags) if record.tags else None,
                record.added_at.isoformat(),
            ),
        )
        return cursor.rowcount > 0

    async def update_bookmark(
        self,
        record_id: str,
        title: Optional[str] = None,
        url: Optional[str] = None,
        folder: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> Optional[BookmarkRecord]:
        """Update fields of an existing bookmark; None arguments are left unchanged.

        Returns:
            The updated bookmark, or None if not found

        Raises:
            ValueError: If the new url is already bookmarked
        """
        connection = self._require_connection()

        record = await self.get_bookmark_record_by_id(record_id)
        if record is None:
            return None

        if title is not None:
            record.title = title
        if url is not None:
            record.url = url
        if folder is not None:
            record.folder = folder
        if tags is not None:
            record.tags = list(tags) or None

        try:
            await connection.execute(
                "UPDATE bookmarks SET title = ?, url = ?, folder = ?, tags = ? WHERE id = ?",
                (
                    record.title,
                    record.url,
                    record.folder,
                    json.dumps(record.tags) if record.tags else None,
                    record.id,
                ),
            )
        except aiosqlite.IntegrityError as e:
            await connection.rollback()
            raise ValueError(f"Bookmark already exists: {record.url}") from e
        await connection.commit()

        return record

    async def remove_bookmark(self, record_id: str) -> bool:
        """Delete a bookmark.

        Returns:
            True if deleted, False if not found
        """
        connection = self._require_connection()

        cursor = await connection.execute("DELETE FROM bookmarks WHERE id = ?", (record_id,))
        await connection.commit()

        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    def _row_to_history(self, row: aiosqlite.Row) -> HistoryRecord:
        return HistoryRecord(
            id=row["id"],
            title=row["title"],
            url=row["url"],
            last_visited_at=parse_timestamp(row["last_visited_at"]),
            visit_count=row["visit_count"],
        )

    def _row_to_bookmark(self, row: aiosqlite.Row) -> BookmarkRecord:
        """Convert a bookmark row, parsing the tags JSON."""
        tags = None
        if row["tags"]:
            try:
                tags = json.loads(row["tags"]) or None
            except json.JSONDecodeError:
                tags = None

        return BookmarkRecord(
            id=row["id"],
            title=row["title"],
            url=row["url"],
            folder=row["folder"],
            added_at=parse_timestamp(row["added_at"]),
            tags=tags,
        )
