"""Search engine over browsing history and bookmarks."""
import logging
from typing import Dict, List, Optional

from src.index_store import IndexStore
from src.indexing import tokenize_query
from src.models import (
    IndexEntry,
    RecordKind,
    SearchOptions,
    SearchResult,
    SortBy,
    SourceRecord,
    ensure_utc,
)
from src.scoring import score_entry


SNIPPET_LENGTH = 150
SNIPPET_CONTEXT = 50
ELLIPSIS = "..."


def generate_snippet(entry: IndexEntry, query_terms: List[str]) -> str:
    """Build a display snippet from the entry's title and URL.

    The window starts 50 characters before the first occurrence of the
    earliest query term that occurs at all, and spans up to 150 characters.
    Ellipses mark text cut off on either side.

    Args:
        entry: Index entry
        query_terms: Lowercase query terms in query order

    Returns:
        Snippet text
    """
    text = f"{entry.title} {entry.url}"
    lowered = text.lower()

    best_position = 0
    best_priority = 0

    for index, term in enumerate(query_terms):
        position = lowered.find(term)
        if position < 0:
            continue
        # Earlier terms get higher priority
        priority = len(query_terms) - index
        if priority > best_priority:
            best_priority = priority
            best_position = max(0, position - SNIPPET_CONTEXT)

    snippet = text[best_position:best_position + SNIPPET_LENGTH]
    if best_position > 0:
        snippet = ELLIPSIS + snippet
    if best_position + SNIPPET_LENGTH < len(text):
        snippet += ELLIPSIS

    return snippet


def sort_results(results: List[SearchResult], sort_by: SortBy) -> List[SearchResult]:
    """Sort results descending by score, record date or visit frequency.

    The sort is stable, so ties keep index order.
    """
    if sort_by is SortBy.DATE:
        return sorted(results, key=lambda r: ensure_utc(r.record.timestamp), reverse=True)
    if sort_by is SortBy.FREQUENCY:
        return sorted(results, key=lambda r: r.record.frequency, reverse=True)
    return sorted(results, key=lambda r: r.score, reverse=True)


class SearchEngine:
    """Answers free-text queries against an IndexStore.

    Owns no global state; construct one per application and inject it where
    search is needed.
    """

    def __init__(self, index: IndexStore, logger: Optional[logging.Logger] = None):
        self.index = index
        self._logger = logger or logging.getLogger(__name__)

    async def initialize_index(self) -> None:
        """Load the persisted snapshot, then force a rebuild from the record source."""
        await self.index.load()
        await self.index.build(force=True)

    async def rebuild_index(self) -> bool:
        return await self.index.build(force=True)

    async def search(self, query: str, options: Optional[SearchOptions] = None) -> List[SearchResult]:
        """Search history and bookmarks.

        Args:
            query: Free-text query
            options: Filtering, sorting and limit options (defaults if None)

        Returns:
            Ranked results, at most ``options.limit`` long. Never raises for
            record source or persistence failures.
        """
        if not query.strip():
            return []

        options = options or SearchOptions()

        await self.index.build()

        query_terms = tokenize_query(query)
        results: List[SearchResult] = []

        for entry in self.index.entries():
            if not options.includes(entry.kind):
                continue

            match = score_entry(entry, query_terms, options.fuzzy_match)
            if match.score <= 0:
                continue

            record = await self._get_original_record(entry)
            if record is None:
                continue

            results.append(SearchResult(
                record=record,
                kind=entry.kind,
                score=match.score,
                matched_fields=match.matched_fields,
                snippet=generate_snippet(entry, query_terms),
            ))

        return sort_results(results, options.sort_by)[:options.limit]

    async def _get_original_record(self, entry: IndexEntry) -> Optional[SourceRecord]:
        """Fetch the record behind an entry; None if it was deleted or the lookup failed."""
        source = self.index.source
        try:
            if entry.kind is RecordKind.HISTORY:
                return await source.get_history_record_by_id(entry.id)
            return await source.get_bookmark_record_by_id(entry.id)
        except Exception:
            self._logger.warning(
                "Failed to fetch %s record %s", entry.kind.value, entry.id, exc_info=True
            )
            return None

    async def add_record_to_index(self, record: SourceRecord) -> None:
        """Index a newly created history visit or bookmark right away."""
        await self.index.add(record)

    async def remove_record_from_index(self, record_id: str, kind: Optional[RecordKind] = None) -> None:
        await self.index.remove(record_id, kind)

    async def clear_index(self) -> None:
        await self.index.clear()

    def get_index_stats(self) -> Dict[str, object]:
        """Entry counts per kind and the last build time."""
        return self.index.stats()
