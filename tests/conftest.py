"""Shared fixtures for tests."""
import json
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
import pytest_asyncio

from src.index_store import IndexStore
from src.models import BookmarkRecord, HistoryRecord
from src.search import SearchEngine
from src.snapshot_store import SnapshotStore


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

# 2026-10-19 12:00 UTC as microseconds since 1601-01-01
NOW_CHROME = str(int((NOW - datetime(1601, 1, 1, tzinfo=timezone.utc)).total_seconds()) * 1_000_000)


SAMPLE_BOOKMARKS = {
    "checksum": "test",
    "roots": {
        "bookmark_bar": {
            "children": [
                {
                    "id": "1",
                    "name": "Python Docs",
                    "type": "url",
                    "url": "https://docs.python.org",
                    "date_added": NOW_CHROME,
                },
                {
                    "id": "2",
                    "name": "Work",
                    "type": "folder",
                    "children": [
                        {
                            "id": "3",
                            "name": "Jira Board",
                            "type": "url",
                            "url": "https://jira.example.com/board",
                            "date_added": "0",
                        },
                        {
                            "id": "4",
                            "name": "Confluence",
                            "type": "url",
                            "url": "https://confluence.example.com",
                        }
                    ]
                },
                {
                    "id": "5",
                    "name": "Tutorials",
                    "type": "folder",
                    "children": [
                        {
                            "id": "6",
                            "name": "SQLite Guide",
                            "type": "url",
                            "url": "https://sqlite.org/guide"
                        }
                    ]
                }
            ],
            "id": "0",
            "name": "Bookmarks Bar",
            "type": "folder"
        },
        "other": {
            "children": [
                {
                    "id": "7",
                    "name": "Stack Overflow",
                    "type": "url",
                    "url": "https://stackoverflow.com"
                }
            ],
            "id": "100",
            "name": "Other Bookmarks",
            "type": "folder"
        },
        "synced": {
            "children": [],
            "id": "200",
            "name": "Mobile Bookmarks",
            "type": "folder"
        }
    },
    "version": 1
}


class FakeClock:
    """Settable clock for index refresh and recency tests."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeRecordSource:
    """In-memory record source with failure injection."""

    def __init__(
        self,
        history: Optional[List[HistoryRecord]] = None,
        bookmarks: Optional[List[BookmarkRecord]] = None,
    ):
        self.history: Dict[str, HistoryRecord] = {r.id: r for r in history or []}
        self.bookmarks: Dict[str, BookmarkRecord] = {r.id: r for r in bookmarks or []}
        self.fail_listing = False
        self.fail_lookup = False
        self.list_calls = 0

    async def get_all_history_records(self) -> List[HistoryRecord]:
        self.list_calls += 1
        if self.fail_listing:
            raise OSError("history storage unavailable")
        return list(self.history.values())

    async def get_all_bookmark_records(self) -> List[BookmarkRecord]:
        if self.fail_listing:
            raise OSError("bookmark storage unavailable")
        return list(self.bookmarks.values())

    async def get_history_record_by_id(self, record_id: str) -> Optional[HistoryRecord]:
        if self.fail_lookup:
            raise OSError("history storage unavailable")
        return self.history.get(record_id)

    async def get_bookmark_record_by_id(self, record_id: str) -> Optional[BookmarkRecord]:
        if self.fail_lookup:
            raise OSError("bookmark storage unavailable")
        return self.bookmarks.get(record_id)

    def add(self, record) -> None:
        if isinstance(record, HistoryRecord):
            self.history[record.id] = record
        else:
            self.bookmarks[record.id] = record


def make_history(record_id: str, title: str, url: str, visit_count: int = 1, days_ago: float = 0.0) -> HistoryRecord:
    return HistoryRecord(
        id=record_id,
        title=title,
        url=url,
        last_visited_at=NOW - timedelta(days=days_ago),
        visit_count=visit_count,
    )


def make_bookmark(
    record_id: str,
    title: str,
    url: str,
    folder: str = "",
    tags: Optional[List[str]] = None,
    days_ago: float = 0.0,
) -> BookmarkRecord:
    return BookmarkRecord(
        id=record_id,
        title=title,
        url=url,
        folder=folder,
        added_at=NOW - timedelta(days=days_ago),
        tags=tags,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_path(tmp_path):
    """Return path for a temporary database."""
    return tmp_path / "test_browser.db"


@pytest.fixture
def sample_bookmarks_path(tmp_path):
    """Create a temporary Chrome bookmarks file with sample data."""
    bookmarks_file = tmp_path / "Bookmarks"
    bookmarks_file.write_text(json.dumps(SAMPLE_BOOKMARKS, indent=3))
    return bookmarks_file


@pytest.fixture
def source():
    return FakeRecordSource(
        history=[
            make_history("h1", "OpenAI Blog", "https://openai.com/blog", visit_count=5),
            make_history("h2", "GitHub Pull Requests", "https://github.com/pulls", visit_count=20, days_ago=2),
            make_history("h3", "Python Docs", "https://docs.python.org/3/", visit_count=3, days_ago=40),
        ],
        bookmarks=[
            make_bookmark("b1", "Team Wiki", "https://wiki.example.com", folder="work", tags=["urgent"]),
            make_bookmark("b2", "Python Tutorial", "https://docs.python.org/3/tutorial/", folder="learning", days_ago=10),
        ],
    )


@pytest_asyncio.fixture
async def snapshots(db_path):
    """Create and initialize a test snapshot store."""
    s = SnapshotStore(db_path)
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def index(source, snapshots, clock):
    return IndexStore(source, snapshots, clock=clock)


@pytest.fixture
def engine(index):
    return SearchEngine(index)
