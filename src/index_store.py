"""In-memory search index over history and bookmark records, with snapshot persistence."""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

from src.indexing import build_index_entry
from src.models import IndexEntry, RecordKind, SourceRecord, parse_timestamp
from src.record_store import RecordSource
from src.snapshot_store import SnapshotStore


INDEX_KEY = "search_index"
TIMESTAMP_KEY = "search_index_timestamp"
DEFAULT_REFRESH_INTERVAL = timedelta(minutes=5)

IndexKey = Tuple[RecordKind, str]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IndexStore:
    """Mapping of (kind, id) to IndexEntry, rebuilt from a RecordSource on a schedule.

    The entry map is never mutated in place: every change builds a new dict
    and swaps it in under a lock, so readers iterating ``entries()`` always
    see a complete index.
    """

    def __init__(
        self,
        source: RecordSource,
        snapshots: SnapshotStore,
        refresh_interval: timedelta = DEFAULT_REFRESH_INTERVAL,
        clock: Callable[[], datetime] = _utcnow,
        logger: Optional[logging.Logger] = None,
    ):
        self.source = source
        self.snapshots = snapshots
        self.refresh_interval = refresh_interval
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._entries: Dict[IndexKey, IndexEntry] = {}
        self._last_build_at: Optional[datetime] = None
        self._lock = asyncio.Lock()

    @property
    def last_build_at(self) -> Optional[datetime]:
        return self._last_build_at

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> List[IndexEntry]:
        """Entries in index order (insertion order of the last build, then upserts)."""
        return list(self._entries.values())

    def get(self, kind: RecordKind, record_id: str) -> Optional[IndexEntry]:
        return self._entries.get((kind, record_id))

    def is_fresh(self) -> bool:
        """True if the last build is within the refresh interval."""
        if self._last_build_at is None:
            return False
        return self._clock() - self._last_build_at < self.refresh_interval

    async def build(self, force: bool = False) -> bool:
        """Rebuild the index from the record source.

        Skipped when not forced and the last build is still fresh. When the
        record source fails the current entries are kept.

        Args:
            force: Rebuild regardless of the refresh interval

        Returns:
            True if the index was rebuilt, False if skipped or the source failed
        """
        async with self._lock:
            # Writers queued behind the lock land after the swap, not before it
            if not force and self.is_fresh():
                return False

            try:
                history = await self.source.get_all_history_records()
                bookmarks = await self.source.get_all_bookmark_records()
            except Exception:
                self._logger.error("Failed to fetch records for index rebuild", exc_info=True)
                return False

            now = self._clock()
            entries: Dict[IndexKey, IndexEntry] = {}
            for record in [*history, *bookmarks]:
                entry = build_index_entry(record, now)
                entries[entry.key] = entry

            self._entries = entries
            self._last_build_at = now

        self._logger.info(
            "Rebuilt search index: %d history, %d bookmarks", len(history), len(bookmarks)
        )
        await self.save()
        return True

    async def add(self, record: SourceRecord) -> IndexEntry:
        """Index one record immediately, replacing any entry with the same kind and id."""
        entry = build_index_entry(record, self._clock())

        async with self._lock:
            entries = dict(self._entries)
            entries[entry.key] = entry
            self._entries = entries

        await self.save()
        return entry

    async def remove(self, record_id: str, kind: Optional[RecordKind] = None) -> int:
        """Remove entries by id.

        Args:
            record_id: Record id to remove
            kind: Restrict removal to one record kind; None removes the id from both

        Returns:
            Number of entries removed (0 if absent)
        """
        kinds = [kind] if kind is not None else list(RecordKind)

        async with self._lock:
            entries = dict(self._entries)
            removed = sum(1 for k in kinds if entries.pop((k, record_id), None) is not None)
            self._entries = entries

        await self.save()
        return removed

    async def clear(self) -> None:
        """Drop every entry."""
        async with self._lock:
            self._entries = {}

        await self.save()

    async def load(self) -> bool:
        """Load the persisted snapshot.

        A snapshot that is not a well-formed list of entries resets the index
        to empty.

        Returns:
            True if a snapshot was loaded, False if the index was reset
        """
        try:
            raw_entries = await self.snapshots.load(INDEX_KEY, [])
            raw_timestamp = await self.snapshots.load(TIMESTAMP_KEY, None)
        except Exception:
            self._logger.error("Failed to load search index snapshot", exc_info=True)
            await self._reset()
            return False

        try:
            loaded = [IndexEntry.from_dict(item) for item in raw_entries]
        except (AttributeError, KeyError, TypeError, ValueError):
            self._logger.warning("Discarding malformed search index snapshot", exc_info=True)
            await self._reset()
            return False

        try:
            last_build_at = parse_timestamp(raw_timestamp) if raw_timestamp else None
        except (TypeError, ValueError):
            last_build_at = None

        async with self._lock:
            self._entries = {entry.key: entry for entry in loaded}
            self._last_build_at = last_build_at

        self._logger.info("Loaded %d search index entries from snapshot", len(loaded))
        return True

    async def _reset(self) -> None:
        async with self._lock:
            self._entries = {}
            self._last_build_at = None

    async def save(self) -> bool:
        """Persist the full snapshot.

        Returns:
            True if both the entries and the build timestamp were saved
        """
        snapshot = [entry.to_dict() for entry in self._entries.values()]
        timestamp = self._last_build_at.isoformat() if self._last_build_at else None

        try:
            saved = await self.snapshots.save(INDEX_KEY, snapshot)
            saved = await self.snapshots.save(TIMESTAMP_KEY, timestamp) and saved
        except Exception:
            self._logger.error("Failed to save search index snapshot", exc_info=True)
            return False

        if not saved:
            self._logger.warning("Search index snapshot not saved; in-memory index remains authoritative")
        return saved

    def stats(self) -> Dict[str, object]:
        entries = self.entries()
        return {
            "total_entries": len(entries),
            "history_entries": sum(1 for e in entries if e.kind is RecordKind.HISTORY),
            "bookmark_entries": sum(1 for e in entries if e.kind is RecordKind.BOOKMARK),
            "last_build_at": self._last_build_at,
        }
