"""Record, index entry and search result types."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class RecordKind(str, Enum):
    """Which record source an entry came from."""
    HISTORY = "history"
    BOOKMARK = "bookmark"


class SortBy(str, Enum):
    RELEVANCE = "relevance"
    DATE = "date"
    FREQUENCY = "frequency"


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(value))


@dataclass
class HistoryRecord:
    """A visited page."""
    id: str
    title: str
    url: str
    last_visited_at: datetime
    visit_count: int = 1

    kind = RecordKind.HISTORY

    @property
    def timestamp(self) -> datetime:
        return self.last_visited_at

    @property
    def frequency(self) -> int:
        return self.visit_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "last_visited_at": self.last_visited_at.isoformat(),
            "visit_count": self.visit_count,
        }


@dataclass
class BookmarkRecord:
    """A saved bookmark."""
    id: str
    title: str
    url: str
    folder: str
    added_at: datetime
    tags: Optional[List[str]] = None

    kind = RecordKind.BOOKMARK

    @property
    def timestamp(self) -> datetime:
        return self.added_at

    @property
    def frequency(self) -> int:
        # Bookmarks carry no visit count; they rank as a single visit
        return 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "folder": self.folder,
            "tags": list(self.tags) if self.tags else [],
            "added_at": self.added_at.isoformat(),
        }


SourceRecord = Union[HistoryRecord, BookmarkRecord]


@dataclass
class IndexEntry:
    """Derived, searchable projection of one source record."""
    id: str
    kind: RecordKind
    title: str
    url: str
    searchable_text: str
    keywords: List[str]
    base_score: float
    indexed_at: datetime

    @property
    def key(self) -> tuple:
        """Index key; ids are only unique within one record kind."""
        return (self.kind, self.id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "title": self.title,
            "url": self.url,
            "searchable_text": self.searchable_text,
            "keywords": list(self.keywords),
            "base_score": self.base_score,
            "indexed_at": self.indexed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexEntry":
        """Rebuild an entry from its snapshot form.

        Raises:
            KeyError, TypeError, ValueError: If the snapshot item is malformed
        """
        keywords = data["keywords"]
        if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
            raise TypeError("keywords must be a list of strings")

        return cls(
            id=str(data["id"]),
            kind=RecordKind(data["kind"]),
            title=str(data["title"]),
            url=str(data["url"]),
            searchable_text=str(data["searchable_text"]),
            keywords=keywords,
            base_score=float(data["base_score"]),
            indexed_at=parse_timestamp(data["indexed_at"]),
        )


@dataclass
class SearchOptions:
    """Options for a single search call."""
    limit: int = 50
    include_history: bool = True
    include_bookmarks: bool = True
    fuzzy_match: bool = True
    sort_by: SortBy = SortBy.RELEVANCE

    def __post_init__(self):
        # Accepts plain strings ("date") as well as SortBy members
        self.sort_by = SortBy(self.sort_by)
        if self.limit < 0:
            raise ValueError(f"limit must be non-negative, got {self.limit}")

    def includes(self, kind: RecordKind) -> bool:
        if kind is RecordKind.HISTORY:
            return self.include_history
        return self.include_bookmarks


@dataclass
class MatchResult:
    """Scorer output: relevance score plus matched field tags in first-hit order."""
    score: float
    matched_fields: List[str] = field(default_factory=list)


@dataclass
class SearchResult:
    record: SourceRecord
    kind: RecordKind
    score: float
    matched_fields: List[str]
    snippet: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record": self.record.to_dict(),
            "kind": self.kind.value,
            "score": round(self.score, 4),
            "matched_fields": list(self.matched_fields),
            "snippet": self.snippet,
        }
