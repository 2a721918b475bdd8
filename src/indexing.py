"""Derivation of index entries from history and bookmark records."""
import math
import re
from datetime import datetime
from typing import List
from urllib.parse import urlsplit

from src.models import HistoryRecord, IndexEntry, RecordKind, SourceRecord, ensure_utc


MAX_KEYWORDS = 20
MIN_KEYWORD_LENGTH = 3

# Recency bonus decays linearly to zero over this many days
RECENCY_WINDOW_DAYS = 30.0
RECENCY_WEIGHT = 0.2
VISIT_WEIGHT = 0.1

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    "http", "https", "www", "com", "org", "net", "edu", "gov",
})

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


def _words(text: str) -> List[str]:
    """Lowercase text, blank out everything but ASCII letters/digits, split on whitespace."""
    return _NON_ALNUM.sub(" ", text.lower()).split()


def tokenize_query(query: str) -> List[str]:
    """Split a raw query into lowercase alphanumeric terms, preserving order.

    Args:
        query: Raw user query

    Returns:
        List of query terms (may contain duplicates)
    """
    return _words(query)


def extract_keywords(title: str, url: str) -> List[str]:
    """Extract distinct keywords from a title and URL.

    Stop words and words shorter than three characters are dropped, then the
    first 20 survivors are de-duplicated in order.
    """
    words = [
        word for word in _words(f"{title} {url}")
        if len(word) >= MIN_KEYWORD_LENGTH and word not in STOP_WORDS
    ][:MAX_KEYWORDS]

    return list(dict.fromkeys(words))


def extract_domain(url: str) -> str:
    """Return the URL hostname without a leading 'www.', or '' if there is none."""
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return ""

    if not hostname:
        return ""
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname


def compute_base_score(record: SourceRecord, now: datetime) -> float:
    """Static quality weight for a record: 1.0 plus visit and recency bonuses."""
    score = 1.0

    if isinstance(record, HistoryRecord):
        score += math.log(max(record.visit_count, 0) + 1) * VISIT_WEIGHT

    days_since = (ensure_utc(now) - ensure_utc(record.timestamp)).total_seconds() / 86400.0
    score += max(0.0, 1.0 - days_since / RECENCY_WINDOW_DAYS) * RECENCY_WEIGHT

    return score


def build_index_entry(record: SourceRecord, now: datetime) -> IndexEntry:
    """Derive the searchable index entry for one record.

    Args:
        record: History or bookmark record
        now: Build time, used for the recency bonus and ``indexed_at``

    Returns:
        IndexEntry for the record
    """
    domain = extract_domain(record.url).lower()
    keywords = extract_keywords(record.title, record.url)

    if record.kind is RecordKind.BOOKMARK:
        extra = [record.folder] + list(record.tags or [])
        for word in extra:
            word = word.lower()
            if word and word not in keywords:
                keywords.append(word)

    return IndexEntry(
        id=record.id,
        kind=record.kind,
        title=record.title,
        url=record.url,
        searchable_text=f"{record.title.lower()} {record.url.lower()} {domain}",
        keywords=keywords,
        base_score=compute_base_score(record, now),
        indexed_at=now,
    )
